"""
Replica-count reconciliation with orchestrated decommission.

ScaleCoordinator compares each datacenter's declared replica count with the
count on its orchestration object, in declared order, and acts on at most
one datacenter per pass:

- Scale-up: the replica count is raised immediately. New members are gated
  by the init-order coordinator, not here.
- Scale-down: the highest-ordinal member is decommissioned first. The
  replica count is only lowered once the member is confirmed gone, either
  because every peer reports it as not live after its own node-control
  channel stopped answering, or because it reports itself decommissioned.

The replica count is updated with compare-and-set, so overlapping passes
cannot both shrink the same datacenter.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from operator_cassandra.addresses import AddressResolver
from operator_cassandra.config import ClusterSpec
from operator_cassandra.errors import (
    ConfigurationInvariantError,
    DecommissionUnconfirmedError,
    NodeControlError,
)
from operator_cassandra.jobs import DecommissionJobTracker
from operator_cassandra.membership import MembershipView
from operator_cassandra.protocols import MembershipProvider, NodeControl
from operator_cassandra.types import Address, Member, OperationMode

logger = logging.getLogger(__name__)


class ScaleOutcome(str, Enum):
    """What a scaling pass did."""

    NONE = "none"
    SCALED_UP = "scaled_up"
    DECOMMISSION_STARTED = "decommission_started"
    DECOMMISSION_IN_PROGRESS = "decommission_in_progress"
    SCALED_DOWN = "scaled_down"


@dataclass(frozen=True)
class ScaleAction:
    """
    Result of ScaleCoordinator.reconcile.

    Attributes:
        outcome: What happened.
        dc: Datacenter acted on (None when nothing needed scaling).
        member: Member being decommissioned, for scale-down outcomes.
    """

    outcome: ScaleOutcome
    dc: str | None = None
    member: str | None = None

    @property
    def converged(self) -> bool:
        return self.outcome == ScaleOutcome.NONE


class ScaleCoordinator:
    """
    Drive declared replica counts one datacenter at a time.

    Example:
        coordinator = ScaleCoordinator(provider, node_control, tracker)
        action = await coordinator.reconcile(cluster, view, resolver)
        if not action.converged:
            ...  # requeue
    """

    def __init__(
        self,
        provider: MembershipProvider,
        node_control: NodeControl,
        jobs: DecommissionJobTracker,
    ) -> None:
        self.provider = provider
        self.node_control = node_control
        self.jobs = jobs

    async def reconcile(
        self,
        cluster: ClusterSpec,
        view: MembershipView,
        resolver: AddressResolver,
    ) -> ScaleAction:
        """
        Act on the first datacenter whose replica count differs from its declaration.

        Raises:
            ConfigurationInvariantError: The scale-down target is not a known member.
            DecommissionUnconfirmedError: The target stopped answering but some
                peers still see it as live.
            ConflictError: The replica count changed under us.
            PodNotScheduledError: An address needed for the check is not assigned yet.
        """
        for dc in cluster.datacenters:
            state = view.dc_state(dc.name)
            if state is None:
                logger.debug(f"Datacenter {dc.name} has no orchestration object yet")
                continue

            current = state.replicas
            if dc.replicas == current:
                continue

            if dc.replicas > current:
                logger.info(f"Scaling up datacenter {dc.name}: {current} -> {dc.replicas}")
                await self.provider.set_replicas(dc.name, expected=current, replicas=dc.replicas)
                return ScaleAction(ScaleOutcome.SCALED_UP, dc=dc.name)

            return await self._scale_down(cluster, view, resolver, dc.name, current)

        return ScaleAction(ScaleOutcome.NONE)

    async def _scale_down(
        self,
        cluster: ClusterSpec,
        view: MembershipView,
        resolver: AddressResolver,
        dc: str,
        current: int,
    ) -> ScaleAction:
        target_name = f"{cluster.dc_object_name(dc)}-{current - 1}"
        job_name = self.jobs.job_name(target_name)
        logger.debug(f"Handling decommission of {target_name}")

        if await self.jobs.exists(job_name) and await self.jobs.is_running(job_name):
            logger.info(f"Decommission of {target_name} in progress, waiting to finish")
            return ScaleAction(ScaleOutcome.DECOMMISSION_IN_PROGRESS, dc=dc, member=target_name)

        target = view.member(target_name)
        if target is None:
            raise ConfigurationInvariantError(
                f"Cannot find member {target_name} to decommission for datacenter {dc} "
                f"({current} replicas)"
            )
        address = await resolver.resolve(target)

        try:
            mode = await self.node_control.operation_mode(address)
        except NodeControlError as e:
            logger.warning(
                f"Could not get operation mode of {target_name} ({e}), "
                f"checking if it is decommissioned already"
            )
            return await self._confirm_and_shrink(
                cluster, view, resolver, dc, current, target, address, cause=e
            )

        if mode == OperationMode.DECOMMISSIONED:
            logger.info(f"Member {target_name} reports it is decommissioned, asking peers")
            return await self._confirm_and_shrink(
                cluster, view, resolver, dc, current, target, address, cause=None
            )

        if mode == OperationMode.LEAVING:
            logger.info(f"Member {target_name} is leaving the ring, waiting to finish")
            return ScaleAction(ScaleOutcome.DECOMMISSION_IN_PROGRESS, dc=dc, member=target_name)

        logger.info(f"Starting decommission of {target_name} (operation mode {mode.value})")
        await self.jobs.run(
            job_name,
            target_name,
            lambda: self.node_control.decommission(address),
        )
        return ScaleAction(ScaleOutcome.DECOMMISSION_STARTED, dc=dc, member=target_name)

    async def _confirm_and_shrink(
        self,
        cluster: ClusterSpec,
        view: MembershipView,
        resolver: AddressResolver,
        dc: str,
        current: int,
        target: Member,
        address: Address,
        cause: NodeControlError | None,
    ) -> ScaleAction:
        peers = [
            m
            for m in view.members
            if m.name != target.name and cluster.datacenter(m.dc) is not None
        ]

        try:
            not_live = await self._count_not_live(peers, resolver, address)
        except NodeControlError as e:
            if cause is None:
                logger.info(f"Cannot confirm {target.name} left the ring yet: {e}")
                return ScaleAction(
                    ScaleOutcome.DECOMMISSION_IN_PROGRESS, dc=dc, member=target.name
                )
            raise DecommissionUnconfirmedError(target.name, cause, peers=len(peers)) from cause

        logger.debug(f"{not_live} of {len(peers)} peer(s) don't see {target.name} as live")
        if not_live < len(peers):
            if cause is None:
                logger.info(
                    f"Member {target.name} is decommissioned but still seen as live "
                    f"by {len(peers) - not_live} peer(s)"
                )
                return ScaleAction(
                    ScaleOutcome.DECOMMISSION_IN_PROGRESS, dc=dc, member=target.name
                )
            raise DecommissionUnconfirmedError(
                target.name, cause, not_live=not_live, peers=len(peers)
            ) from cause

        logger.info(f"Member {target.name} is decommissioned, scaling down datacenter {dc}")
        await self.provider.set_replicas(dc, expected=current, replicas=current - 1)
        await self.jobs.remove_job(self.jobs.job_name(target.name))
        return ScaleAction(ScaleOutcome.SCALED_DOWN, dc=dc, member=target.name)

    async def _count_not_live(
        self,
        peers: list[Member],
        resolver: AddressResolver,
        target_address: Address,
    ) -> int:
        """Ask every peer for its ring view; any failed query fails the count."""
        addresses = await resolver.resolve_all(peers)
        views = await asyncio.gather(
            *(self.node_control.cluster_view(addresses[p.name]) for p in peers)
        )
        return sum(1 for v in views if target_address not in v.live_nodes)
