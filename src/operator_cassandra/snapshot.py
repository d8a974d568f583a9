"""
YAML-file-backed membership provider.

The snapshot file describes members, datacenter replica state and host
machines as an orchestration layer would report them:

    datacenters:
      - {name: dc1, replicas: 3, ready_replicas: 3}
    members:
      - name: test-cluster-cassandra-dc1-0
        uid: 0b1c...
        dc: dc1
        pod_ip: 10.0.0.1
        node_name: node-a
        ready: true
        seed: true
    hosts:
      - {name: node-a, internal_ip: 192.168.0.1, external_ip: 34.1.2.3, zone: us-east-1a}

The file is re-read on every call. Mutations are read-modify-write under a
lock and replace the file atomically; replica updates are compare-and-set.
"""

import asyncio
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from operator_cassandra.errors import ConflictError
from operator_cassandra.types import DatacenterState, HostNode, Member


class SnapshotDatacenter(BaseModel):
    name: str
    replicas: int = Field(ge=0)
    ready_replicas: int = Field(default=0, ge=0)


class SnapshotMember(BaseModel):
    name: str
    uid: str
    dc: str
    pod_ip: str = ""
    node_name: str = ""
    ready: bool = False
    seed: bool = False


class SnapshotHost(BaseModel):
    name: str
    internal_ip: str = ""
    external_ip: str = ""
    zone: str = ""


class Snapshot(BaseModel):
    """Contents of a membership snapshot file."""

    datacenters: list[SnapshotDatacenter] = Field(default_factory=list)
    members: list[SnapshotMember] = Field(default_factory=list)
    hosts: list[SnapshotHost] = Field(default_factory=list)


class SnapshotMembershipProvider:
    """
    MembershipProvider reading from and writing back to a YAML snapshot.

    Example:
        provider = SnapshotMembershipProvider(Path("cluster-state.yaml"))
        members = await provider.list_members()
        await provider.set_replicas("dc1", expected=3, replicas=4)
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()

    def _read(self) -> Snapshot:
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}
        return Snapshot.model_validate(data)

    def _write(self, snapshot: Snapshot) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w") as f:
            yaml.safe_dump(snapshot.model_dump(mode="json"), f, sort_keys=False)
        os.replace(tmp, self.path)

    async def load(self) -> Snapshot:
        return await asyncio.to_thread(self._read)

    async def list_members(self) -> list[Member]:
        snapshot = await self.load()
        return [Member(**m.model_dump()) for m in snapshot.members]

    async def list_datacenters(self) -> list[DatacenterState]:
        snapshot = await self.load()
        return [DatacenterState(**dc.model_dump()) for dc in snapshot.datacenters]

    async def get_host(self, node_name: str) -> HostNode:
        """Return the named host, or a host with no addresses if it is not listed."""
        snapshot = await self.load()
        for host in snapshot.hosts:
            if host.name == node_name:
                return HostNode(**host.model_dump())
        return HostNode(name=node_name)

    async def set_replicas(self, dc: str, expected: int, replicas: int) -> None:
        """
        Set a datacenter's replica count if it still equals `expected`.

        Raises:
            ConflictError: The stored count differs, or the datacenter is unknown.
        """
        async with self._lock:
            snapshot = await self.load()
            entry = next((d for d in snapshot.datacenters if d.name == dc), None)
            if entry is None or entry.replicas != expected:
                raise ConflictError(
                    f"datacenter {dc} replicas",
                    expected=expected,
                    actual=entry.replicas if entry else None,
                )
            entry.replicas = replicas
            await asyncio.to_thread(self._write, snapshot)

    async def set_seed_label(self, member_name: str, seed: bool) -> None:
        async with self._lock:
            snapshot = await self.load()
            for member in snapshot.members:
                if member.name == member_name:
                    member.seed = seed
                    break
            else:
                return
            await asyncio.to_thread(self._write, snapshot)
