"""
MembershipView - read-only snapshot of cluster members for one pass.

The view is rebuilt at the start of every reconciliation pass from the
MembershipProvider and never mutated afterwards; every decision of the pass
is a function of this snapshot. Members are kept sorted by name so that
everything derived from the view is deterministic.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field

from operator_cassandra.config import ClusterSpec
from operator_cassandra.protocols import MembershipProvider
from operator_cassandra.seeds import seed_member_names
from operator_cassandra.types import DatacenterState, Member, MemberName

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MembershipView:
    """
    Snapshot of members and datacenter replica state.

    Attributes:
        members: All members, sorted by name.
        datacenters: Live replica state keyed by datacenter name. A declared
            datacenter missing here has no orchestration object yet.
    """

    members: tuple[Member, ...] = ()
    datacenters: dict[str, DatacenterState] = field(default_factory=dict)

    @classmethod
    def build(
        cls, members: list[Member], datacenters: list[DatacenterState]
    ) -> "MembershipView":
        return cls(
            members=tuple(sorted(members, key=lambda m: m.name)),
            datacenters={dc.name: dc for dc in datacenters},
        )

    def member(self, name: MemberName) -> Member | None:
        for m in self.members:
            if m.name == name:
                return m
        return None

    def members_in_dc(self, dc: str) -> list[Member]:
        return [m for m in self.members if m.dc == dc]

    def dc_state(self, dc: str) -> DatacenterState | None:
        return self.datacenters.get(dc)

    def seeds_ready(self, dc: str) -> bool:
        """
        True when every seed member of the datacenter is container-ready.

        A view without any members is never considered ready.
        """
        if not self.members:
            return False
        return all(m.ready for m in self.members_in_dc(dc) if m.seed)


async def load_membership(provider: MembershipProvider) -> MembershipView:
    """Read members and datacenter state concurrently and build a view."""
    members, datacenters = await asyncio.gather(
        provider.list_members(),
        provider.list_datacenters(),
    )
    return MembershipView.build(members, datacenters)


async def reconcile_seed_labels(
    cluster: ClusterSpec, view: MembershipView, provider: MembershipProvider
) -> MembershipView:
    """
    Keep each member's seed label consistent with its ordinal.

    Members that should be seeds but lack the label get it; members that
    carry the label but are no longer within the seed range lose it.

    Returns:
        A view whose members reflect the updated labels.
    """
    seeds = set(seed_member_names(cluster))
    updated: list[Member] = []
    for member in view.members:
        should_be_seed = member.name in seeds
        if member.seed != should_be_seed:
            action = "Adding" if should_be_seed else "Removing"
            logger.info(f"{action} seed label on member {member.name}")
            await provider.set_seed_label(member.name, should_be_seed)
            member = dataclasses.replace(member, seed=should_be_seed)
        updated.append(member)

    return MembershipView(members=tuple(updated), datacenters=view.datacenters)
