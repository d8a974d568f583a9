"""
Protocol definitions for the coordinator's external collaborators.

The coordinators only depend on these interfaces, never on concrete
clients, so tests and alternative backends can be plugged in freely:

- MembershipProvider: member list, datacenter replica state, hosts, and the
  two mutations the core owns (replica count, seed label)
- CrossRegionGateway: seed and readiness exchange with cooperating regions
- NodeControl: direct administrative channel to a running node
- FactSheetPublisher: consumer of the per-member fact sheet
- JobStore: durable decommission job records

Implementations raise GatewayError / NodeControlError on transport failure.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from operator_cassandra.types import (
    Address,
    ClusterView,
    DatacenterState,
    DecommissionJob,
    HostNode,
    JobStatus,
    Member,
    OperationMode,
)

if TYPE_CHECKING:
    from operator_cassandra.facts import MemberFacts


@runtime_checkable
class MembershipProvider(Protocol):
    """
    Protocol for the orchestration layer holding members and datacenters.

    Mutations use compare-and-set semantics: set_replicas must raise
    ConflictError when the stored replica count differs from `expected`.
    """

    async def list_members(self) -> list[Member]:
        """Return all members of the cluster."""
        ...

    async def list_datacenters(self) -> list[DatacenterState]:
        """Return replica state of every datacenter object that exists."""
        ...

    async def get_host(self, node_name: str) -> HostNode:
        """Return host information for a machine running members."""
        ...

    async def set_replicas(self, dc: str, expected: int, replicas: int) -> None:
        """Set a datacenter's replica count if it still equals `expected`."""
        ...

    async def set_seed_label(self, member_name: str, seed: bool) -> None:
        """Add or remove the seed label on a member."""
        ...


@runtime_checkable
class CrossRegionGateway(Protocol):
    """Protocol for exchanging seeds and readiness with cooperating regions."""

    async def publish_local_seeds(self, seeds: list[Address]) -> None:
        ...

    async def fetch_seeds(self, region: str) -> list[Address]:
        ...

    async def is_region_ready(self, region: str) -> bool:
        ...

    async def publish_local_readiness(self, ready: bool) -> None:
        ...


@runtime_checkable
class NodeControl(Protocol):
    """Protocol for the node administrative channel."""

    async def operation_mode(self, address: Address) -> OperationMode:
        ...

    async def cluster_view(self, address: Address) -> ClusterView:
        ...

    async def decommission(self, address: Address) -> None:
        ...


@runtime_checkable
class FactSheetPublisher(Protocol):
    """Protocol for the downstream generator of per-node configuration."""

    async def publish(self, facts: Mapping[str, "MemberFacts"]) -> None:
        ...


@runtime_checkable
class JobStore(Protocol):
    """
    Protocol for durable decommission job records.

    Updates are compare-and-set on `DecommissionJob.version`: update_job must
    raise ConflictError when the stored version differs, and create_job must
    raise ConflictError when a record with the same name exists.
    """

    async def get_job(self, name: str) -> DecommissionJob | None:
        ...

    async def list_jobs(self, status: JobStatus | None = None) -> list[DecommissionJob]:
        ...

    async def create_job(self, job: DecommissionJob) -> DecommissionJob:
        ...

    async def update_job(self, job: DecommissionJob) -> DecommissionJob:
        ...

    async def delete_job(self, name: str) -> bool:
        ...
