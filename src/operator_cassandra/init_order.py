"""
InitOrderCoordinator - decides which members may start and which must wait.

The decision is recomputed in full on every pass from the membership view
and the readiness of cooperating regions; nothing is carried over between
passes. Bring-up ordering rules:

1. Regions start one at a time, in sorted order of their identifiers.
   A region whose turn has not come keeps every member paused.
2. Within a region, datacenters start one at a time, in declared order.
3. Within a datacenter, seeds start first. Non-seeds wait for every seed
   to be ready and then start one at a time, in name order.

The outcome of rules 1-2 is an InitPlan; rule 3 turns the plan into one
InitDecision per member. Both are tagged values rather than flags so that
every case is handled explicitly.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from operator_cassandra.config import ClusterSpec
from operator_cassandra.errors import GatewayError, PodNotScheduledError, RegionNotReadyError
from operator_cassandra.membership import MembershipView
from operator_cassandra.protocols import CrossRegionGateway
from operator_cassandra.types import Member, MemberName

logger = logging.getLogger(__name__)


class PauseReason(str, Enum):
    """Human-readable reasons published to paused members."""

    WAITING_FOR_REGIONS = "waiting for other regions to init"
    WAITING_FOR_DCS = "waiting for other DCs to init"
    WAITING_FOR_SEEDS = "waiting for seed nodes to init"
    WAITING_FOR_NON_SEEDS = (
        "waiting for other non seed nodes since only one non seed node can start at a time"
    )


@dataclass(frozen=True)
class Run:
    """The member may start."""

    @property
    def pause(self) -> bool:
        return False


@dataclass(frozen=True)
class Pause:
    """The member must wait before starting."""

    reason: PauseReason

    @property
    def pause(self) -> bool:
        return True


InitDecision = Run | Pause


@dataclass(frozen=True)
class NoPause:
    """Nothing in the local region is held back."""


@dataclass(frozen=True)
class RegionPaused:
    """Another region initializes first; the whole local region waits."""

    waiting_for: str


@dataclass(frozen=True)
class DatacenterInit:
    """The local region is initializing `dc`; other datacenters wait."""

    dc: str


InitPlan = NoPause | RegionPaused | DatacenterInit


def unready_datacenters(cluster: ClusterSpec, view: MembershipView) -> list[str]:
    """
    Declared datacenters whose ready replicas differ from the declared count.

    A datacenter without an orchestration object yet is unready, as is one
    with zero ready replicas and a nonzero declared count.
    """
    unready = []
    for dc in cluster.datacenters:
        state = view.dc_state(dc.name)
        if state is None:
            unready.append(dc.name)
            continue
        if dc.replicas != state.ready_replicas or (
            state.ready_replicas == 0 and dc.replicas != 0
        ):
            unready.append(dc.name)
    return unready


def next_local_dc(cluster: ClusterSpec, unready: list[str]) -> str | None:
    """First declared datacenter that is unready, or None."""
    for dc in cluster.datacenters:
        if dc.name in unready:
            return dc.name
    return None


def all_region_hosts(cluster: ClusterSpec) -> list[str]:
    """The local region plus every managed region, in sorted order."""
    return sorted([*cluster.managed_region_hosts(), cluster.region_host])


def next_region(region_hosts: list[str], statuses: dict[str, bool]) -> str | None:
    """First region in `region_hosts` that is not ready, or None."""
    for host in region_hosts:
        if not statuses.get(host, False):
            return host
    return None


def next_non_seed(view: MembershipView, dc: str) -> MemberName | None:
    """Name-ordered first non-seed member of `dc` that is not ready yet."""
    for member in sorted(view.members_in_dc(dc), key=lambda m: m.name):
        if not member.seed and not member.ready:
            return member.name
    return None


def decide_member(
    member: Member,
    plan: InitPlan,
    seeds_ready: bool,
    next_non_seed_name: MemberName | None,
) -> InitDecision:
    """Decision for a single member under `plan`."""
    if isinstance(plan, RegionPaused):
        return Pause(PauseReason.WAITING_FOR_REGIONS)
    if isinstance(plan, NoPause):
        return Run()
    if not isinstance(plan, DatacenterInit):
        raise TypeError(f"unknown init plan {plan!r}")

    if member.dc != plan.dc:
        return Pause(PauseReason.WAITING_FOR_DCS)
    if member.seed:
        return Run()
    if not seeds_ready:
        return Pause(PauseReason.WAITING_FOR_SEEDS)
    if next_non_seed_name is None or member.name == next_non_seed_name or member.ready:
        return Run()
    return Pause(PauseReason.WAITING_FOR_NON_SEEDS)


def decide_all(plan: InitPlan, view: MembershipView) -> dict[MemberName, InitDecision]:
    """
    Decisions for every member of the view, keyed and ordered by member name.

    Raises:
        PodNotScheduledError: A member has no address yet. No decision is
            returned for any member in that case.
    """
    seeds_ready = False
    next_non_seed_name = None
    if isinstance(plan, DatacenterInit):
        seeds_ready = view.seeds_ready(plan.dc)
        next_non_seed_name = next_non_seed(view, plan.dc)

    decisions: dict[MemberName, InitDecision] = {}
    for member in sorted(view.members, key=lambda m: m.name):
        if not member.scheduled:
            raise PodNotScheduledError(member.name)
        decisions[member.name] = decide_member(member, plan, seeds_ready, next_non_seed_name)
    return decisions


class InitOrderCoordinator:
    """
    Computes the init plan for the local region.

    Example:
        coordinator = InitOrderCoordinator(gateway=prober_client)
        plan = await coordinator.plan(cluster, view)
        decisions = decide_all(plan, view)
    """

    def __init__(self, gateway: CrossRegionGateway) -> None:
        self.gateway = gateway

    async def plan(self, cluster: ClusterSpec, view: MembershipView) -> InitPlan:
        """
        Compute this pass's init plan.

        Local readiness is always published so peer regions see it.

        Raises:
            RegionNotReadyError: Publishing local readiness or querying a
                managed region's readiness failed.
        """
        unready = unready_datacenters(cluster, view)
        local_ready = len(unready) == 0
        if unready:
            logger.info(f"Not all DCs are ready: {', '.join(unready)}")

        try:
            await self.gateway.publish_local_readiness(local_ready)
        except GatewayError as e:
            logger.warning(f"Can't publish local region readiness: {e}")
            raise RegionNotReadyError(cluster.region_host, f"readiness publish failed: {e}") from e

        next_dc = next_local_dc(cluster, unready)
        if not cluster.region_gating_enabled:
            if next_dc is None:
                return NoPause()
            logger.info(f"Initializing DC {next_dc}")
            return DatacenterInit(next_dc)

        statuses = await self._region_statuses(cluster)
        local_host = cluster.region_host
        statuses[local_host] = local_ready

        waiting_for = next_region(all_region_hosts(cluster), statuses)
        if waiting_for is None:
            logger.debug("All regions are ready")
            return NoPause()

        if local_ready:
            logger.debug(f"Current region ({local_host}) is initialized")
            return NoPause()

        if waiting_for != local_host:
            logger.info(
                f"Current region initialization is paused. Waiting for region {waiting_for} to be ready"
            )
            return RegionPaused(waiting_for)

        logger.info(f"Current region ({local_host}) is initializing. DC {next_dc} is initializing")
        return DatacenterInit(next_dc)

    async def _region_statuses(self, cluster: ClusterSpec) -> dict[str, bool]:
        """Readiness of every managed region, failing if any query fails."""
        hosts = cluster.managed_region_hosts()
        results = await asyncio.gather(
            *(self.gateway.is_region_ready(host) for host in hosts),
            return_exceptions=True,
        )

        statuses: dict[str, bool] = {}
        for host, result in zip(hosts, results):
            if isinstance(result, GatewayError):
                logger.warning(f"Unable to get region readiness status from {host}: {result}")
                raise RegionNotReadyError(host, f"readiness query failed: {result}") from result
            if isinstance(result, BaseException):
                raise result
            statuses[host] = result
        return statuses
