"""
Seed set calculation.

Seeds are the members other nodes contact first to learn the ring
topology. Per datacenter the first `seed_count` ordinals are seeds; the
full seed list handed to every member is:

1. local datacenters, in declared order
2. managed regions, in declared order (host-network exposure only)
3. unmanaged regions, in declared order (host-network exposure only)

The order is fixed so that an unchanged topology always yields a
byte-identical seed list, which keeps member configuration stable.
"""

import asyncio
import logging
from collections.abc import Mapping

from operator_cassandra.config import ClusterSpec, DatacenterSpec
from operator_cassandra.errors import GatewayError, PodNotScheduledError, RegionNotReadyError
from operator_cassandra.protocols import CrossRegionGateway
from operator_cassandra.types import Address, MemberName

logger = logging.getLogger(__name__)


def seed_count(num_seeds: int, replicas: int) -> int:
    """
    Number of seeds for a datacenter.

    Never makes every member a seed: at least one non-seed remains whenever
    the datacenter has more than one replica. A datacenter with zero or one
    replica uses all of its replicas as seeds.
    """
    if replicas <= 1:
        return replicas
    return min(num_seeds, replicas - 1)


def dc_seed_count(cluster: ClusterSpec, dc: DatacenterSpec) -> int:
    return seed_count(cluster.num_seeds, dc.replicas)


def seed_member_names(cluster: ClusterSpec) -> list[MemberName]:
    """Names of every member that should carry the seed label."""
    names = []
    for dc in cluster.datacenters:
        prefix = cluster.dc_object_name(dc.name)
        names.extend(f"{prefix}-{i}" for i in range(dc_seed_count(cluster, dc)))
    return names


def seed_hostname(cluster: ClusterSpec, dc_name: str, ordinal: int) -> str:
    """In-cluster DNS name of a seed member."""
    svc = cluster.dc_object_name(dc_name)
    return f"{svc}-{ordinal}.{svc}.{cluster.namespace}.svc.cluster.local"


def local_seeds(
    cluster: ClusterSpec, addresses: Mapping[MemberName, Address]
) -> list[Address]:
    """
    Seed addresses of the local region's datacenters.

    Uses DNS names unless members are exposed through the host network, in
    which case the resolved host address of each seed member is used.

    Raises:
        PodNotScheduledError: A seed member has no resolved address yet
            (host-network exposure only).
    """
    seeds: list[Address] = []
    for dc in cluster.datacenters:
        for i in range(dc_seed_count(cluster, dc)):
            if not cluster.host_network.enabled:
                seeds.append(seed_hostname(cluster, dc.name, i))
                continue
            member_name = f"{cluster.dc_object_name(dc.name)}-{i}"
            address = addresses.get(member_name, "")
            if not address:
                raise PodNotScheduledError(member_name)
            seeds.append(address)
    return seeds


class SeedSetCalculator:
    """
    Assembles the cluster-wide seed list and shares the local part with
    cooperating regions.

    Example:
        calculator = SeedSetCalculator(gateway=prober_client)
        seeds = await calculator.compute_seeds(cluster, addresses)
    """

    def __init__(self, gateway: CrossRegionGateway) -> None:
        self.gateway = gateway

    async def compute_seeds(
        self, cluster: ClusterSpec, addresses: Mapping[MemberName, Address]
    ) -> list[Address]:
        """
        Compute the full seed list for this pass.

        The local seed list is always published, even while local bring-up
        is incomplete, so peers never work from a stale list.

        Raises:
            PodNotScheduledError: A local seed has no address yet.
            RegionNotReadyError: Publishing failed, or a managed region
                could not be queried or returned no seeds.
        """
        seeds = local_seeds(cluster, addresses)

        try:
            await self.gateway.publish_local_seeds(seeds)
        except GatewayError as e:
            logger.warning(f"Can't publish local seeds: {e}")
            raise RegionNotReadyError(cluster.region_host, f"seed publish failed: {e}") from e

        if not cluster.host_network.enabled:
            return seeds

        seeds.extend(await self._managed_region_seeds(cluster))
        for region in cluster.unmanaged_regions:
            seeds.extend(region.seeds)

        return seeds

    async def _managed_region_seeds(self, cluster: ClusterSpec) -> list[Address]:
        hosts = cluster.managed_region_hosts()
        results = await asyncio.gather(
            *(self.gateway.fetch_seeds(host) for host in hosts),
            return_exceptions=True,
        )

        seeds: list[Address] = []
        for host, result in zip(hosts, results):
            if isinstance(result, GatewayError):
                logger.warning(f"Can't get seeds from region {host}: {result}")
                raise RegionNotReadyError(host, f"seed query failed: {result}") from result
            if isinstance(result, BaseException):
                raise result
            if not result:
                # An empty list would keep new members from ever joining
                logger.warning(f"Region {host} returned no seeds")
                raise RegionNotReadyError(host, "region returned no seeds")
            seeds.extend(result)
        return seeds
