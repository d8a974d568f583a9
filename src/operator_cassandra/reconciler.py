"""
One reconciliation pass over a Cassandra cluster.

ClusterReconciler.reconcile_once() rebuilds everything from the live
cluster each time:

1. Load the membership view and fix up seed labels
2. Resolve every member's broadcast address
3. Compute the seed list (publishing the local part to peer regions)
4. Plan the init order (publishing local readiness) and decide per member
5. Update the previous-address record and build the fact sheet
6. Publish the fact sheet
7. Reconcile replica counts, acting on at most one datacenter

Expected transient conditions end the pass early with a requeue delay
instead of an exception; nothing is published from an aborted pass.
ConfigurationInvariantError is the only error that escapes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from operator_cassandra.addresses import AddressResolver
from operator_cassandra.config import ClusterSpec, OperatorSettings
from operator_cassandra.errors import (
    ConfigurationInvariantError,
    ConflictError,
    DecommissionUnconfirmedError,
    JobAlreadyRunningError,
    JobStillRunningError,
    PodNotScheduledError,
    RegionNotReadyError,
)
from operator_cassandra.facts import MemberFacts, build_fact_sheet
from operator_cassandra.init_order import InitOrderCoordinator, NoPause, decide_all
from operator_cassandra.membership import MembershipView, load_membership, reconcile_seed_labels
from operator_cassandra.protocols import (
    CrossRegionGateway,
    FactSheetPublisher,
    MembershipProvider,
)
from operator_cassandra.scaling import ScaleAction, ScaleCoordinator
from operator_cassandra.seeds import SeedSetCalculator
from operator_cassandra.types import Address, MemberName

logger = logging.getLogger(__name__)


class AddressBook(Protocol):
    """Durable record of the address each member was last seen ready at."""

    async def update(
        self, view: MembershipView, addresses: dict[MemberName, Address]
    ) -> dict[MemberName, Address]:
        ...


@dataclass
class ReconcileResult:
    """
    Outcome of a reconciliation pass.

    Attributes:
        requeue_after: Seconds until the next pass should run, or None when
            the cluster is converged and the regular interval applies.
        reason: Why the pass asked to be requeued.
        aborted: True if an error ended the pass early.
        facts: The fact sheet built by the pass (empty if it was aborted).
        seeds: The seed list computed by the pass.
        scale: What the scaling step did (None if it did not run).
    """

    requeue_after: float | None = None
    reason: str = ""
    aborted: bool = False
    facts: dict[MemberName, MemberFacts] = field(default_factory=dict)
    seeds: list[Address] = field(default_factory=list)
    scale: ScaleAction | None = None

    @property
    def converged(self) -> bool:
        return self.requeue_after is None


class ClusterReconciler:
    """
    Runs reconciliation passes for one declared cluster.

    Example:
        reconciler = ClusterReconciler(
            cluster=cluster,
            settings=settings,
            provider=provider,
            gateway=prober,
            scaler=ScaleCoordinator(provider, jolokia, tracker),
            address_book=address_db,
            publisher=DirectoryFactSheetPublisher(Path("pods")),
        )
        result = await reconciler.reconcile_once()
    """

    def __init__(
        self,
        cluster: ClusterSpec,
        settings: OperatorSettings,
        provider: MembershipProvider,
        gateway: CrossRegionGateway,
        scaler: ScaleCoordinator | None,
        address_book: AddressBook,
        publisher: FactSheetPublisher | None = None,
    ) -> None:
        """
        Args:
            cluster: Declared topology
            settings: Retry delays
            provider: Live membership source
            gateway: Cross-region seed and readiness exchange
            scaler: Scale coordinator, or None to skip scaling (plan mode)
            address_book: Previous-address record
            publisher: Fact sheet consumer, or None to only return the sheet
        """
        self.cluster = cluster
        self.settings = settings
        self.provider = provider
        self.seeds = SeedSetCalculator(gateway)
        self.init_order = InitOrderCoordinator(gateway)
        self.scaler = scaler
        self.address_book = address_book
        self.publisher = publisher

    async def reconcile_once(self) -> ReconcileResult:
        """
        Run one pass.

        Raises:
            ConfigurationInvariantError: Declared state contradicts the live
                cluster; retrying will not help.
        """
        try:
            return await self._reconcile()
        except PodNotScheduledError as e:
            logger.info(f"{e}, retrying in {self.settings.not_scheduled_retry_seconds}s")
            return self._requeue(self.settings.not_scheduled_retry_seconds, str(e))
        except RegionNotReadyError as e:
            logger.warning(f"{e}, retrying in {self.settings.region_retry_seconds}s")
            return self._requeue(self.settings.region_retry_seconds, str(e))
        except DecommissionUnconfirmedError as e:
            logger.warning(f"{e}, retrying in {self.settings.progress_retry_seconds}s")
            return self._requeue(self.settings.progress_retry_seconds, str(e))
        except ConflictError as e:
            logger.info(f"{e}, retrying in {self.settings.conflict_retry_seconds}s")
            return self._requeue(self.settings.conflict_retry_seconds, str(e))
        except (JobAlreadyRunningError, JobStillRunningError) as e:
            logger.info(f"{e}, retrying in {self.settings.progress_retry_seconds}s")
            return self._requeue(self.settings.progress_retry_seconds, str(e))
        except ConfigurationInvariantError as e:
            logger.error(f"Configuration invariant violated: {e}")
            raise

    def _requeue(self, delay: float, reason: str) -> ReconcileResult:
        return ReconcileResult(requeue_after=delay, reason=reason, aborted=True)

    async def _reconcile(self) -> ReconcileResult:
        cluster = self.cluster

        view = await load_membership(self.provider)
        view = await reconcile_seed_labels(cluster, view, self.provider)

        resolver = AddressResolver(cluster, self.provider)
        addresses = await resolver.resolve_all(view.members)

        seeds = await self.seeds.compute_seeds(cluster, addresses)
        plan = await self.init_order.plan(cluster, view)
        decisions = decide_all(plan, view)

        racks = None
        if cluster.zones_as_racks:
            zones = await asyncio.gather(*(resolver.rack(m) for m in view.members))
            racks = {m.name: zone for m, zone in zip(view.members, zones)}

        previous = await self.address_book.update(view, addresses)
        facts = build_fact_sheet(view, addresses, seeds, decisions, previous, racks)
        if self.publisher is not None:
            await self.publisher.publish(facts)

        result = ReconcileResult(facts=facts, seeds=seeds)
        if not isinstance(plan, NoPause):
            result.requeue_after = self.settings.progress_retry_seconds
            result.reason = "cluster initialization in progress"

        if self.scaler is None:
            return result

        result.scale = await self.scaler.reconcile(cluster, view, resolver)
        if not result.scale.converged:
            logger.info(
                f"Scaling {result.scale.outcome.value} for datacenter {result.scale.dc}"
            )
            result.requeue_after = self.settings.progress_retry_seconds
            result.reason = f"scaling: {result.scale.outcome.value}"
        return result
