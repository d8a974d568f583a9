"""
Shared data types for the Cassandra cluster coordinator.

This module defines the internal structures used to describe cluster
members, per-datacenter replica state, node hosts and node-control
results. These are internal types used by the coordinators and clients -
not API models.

All types use @dataclass for simplicity. Pydantic models are reserved
for config file parsing (config.py) and wire responses (responses.py).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Type aliases for common patterns
MemberName = str
"""Stable member name, e.g. "test-cluster-cassandra-dc1-2"."""

Address = str
"""Address other nodes and regions use to reach a member (IP or hostname)."""

RegionHost = str
"""Stable identifier of a region (the ingress host of its prober)."""


class OperationMode(str, Enum):
    """Operation modes a Cassandra node reports over the node-control channel."""

    STARTING = "STARTING"
    NORMAL = "NORMAL"
    JOINING = "JOINING"
    LEAVING = "LEAVING"
    DECOMMISSIONED = "DECOMMISSIONED"
    MOVING = "MOVING"
    DRAINING = "DRAINING"
    DRAINED = "DRAINED"


@dataclass
class Member:
    """
    Represents one running database process instance.

    Attributes:
        name: Stable name encoding the datacenter object and ordinal index
            (e.g., "test-cluster-cassandra-dc1-3").
        uid: Unique instance identifier. Changes when the member is recreated.
        dc: Name of the datacenter the member belongs to.
        pod_ip: Assigned network address. Empty until the member is scheduled.
        node_name: Name of the host machine running the member. Empty until
            the member is scheduled.
        ready: True when every container of the member reports ready.
        seed: Value of the seed label as last materialized on the member.
    """

    name: MemberName
    uid: str
    dc: str
    pod_ip: str = ""
    node_name: str = ""
    ready: bool = False
    seed: bool = False

    @property
    def ordinal(self) -> int:
        """Ordinal index parsed from the trailing "-<n>" of the name."""
        _, _, suffix = self.name.rpartition("-")
        return int(suffix)

    @property
    def scheduled(self) -> bool:
        return bool(self.pod_ip)


@dataclass
class DatacenterState:
    """
    Live replica state of a datacenter's orchestration object.

    Attributes:
        name: Datacenter name.
        replicas: Replica count currently set on the orchestration object.
        ready_replicas: Number of replicas observed ready.
    """

    name: str
    replicas: int
    ready_replicas: int = 0


@dataclass
class HostNode:
    """
    A machine hosting members, used when members are exposed through the
    host network.

    Attributes:
        name: Host machine name.
        internal_ip: Address on the internal network.
        external_ip: Address on the external network (may be empty).
        zone: Topology zone of the machine (used as a rack hint).
    """

    name: str
    internal_ip: str = ""
    external_ip: str = ""
    zone: str = ""


@dataclass
class ClusterView:
    """
    A single node's view of ring membership, as read over the node-control
    channel.

    Attributes:
        live_nodes: Addresses the node considers live.
        leaving_nodes: Addresses being decommissioned.
        joining_nodes: Addresses bootstrapping into the ring.
        unreachable_nodes: Addresses the node cannot reach.
        moving_nodes: Addresses moving tokens.
    """

    live_nodes: list[Address] = field(default_factory=list)
    leaving_nodes: list[Address] = field(default_factory=list)
    joining_nodes: list[Address] = field(default_factory=list)
    unreachable_nodes: list[Address] = field(default_factory=list)
    moving_nodes: list[Address] = field(default_factory=list)


class JobStatus(str, Enum):
    """Lifecycle states of a decommission job."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class DecommissionJob:
    """
    Durable record of a decommission action.

    Attributes:
        name: Deterministic job name derived from the target member.
        target_member: Member being decommissioned.
        status: Current job status.
        owner: Identifier of the tracker instance running the job.
        started_at: When the job was (re)started.
        heartbeat_at: Last liveness update from the running tracker.
        finished_at: When the action returned, None while running.
        error: Error message if the action failed.
        version: Optimistic concurrency counter, bumped on every update.
    """

    name: str
    target_member: MemberName
    status: JobStatus = JobStatus.RUNNING
    owner: str = ""
    started_at: datetime | None = None
    heartbeat_at: datetime | None = None
    finished_at: datetime | None = None
    error: str | None = None
    version: int = 0

    @property
    def running(self) -> bool:
        return self.status == JobStatus.RUNNING
