"""
AddressResolver - maps members to the address peers should use.

Without host-network exposure a member is reached at its own assigned
address. With host-network exposure it is reached at the internal or
external address of the machine hosting it, as configured per cluster.

Host lookups are cached for the lifetime of the resolver, which is one pass.
"""

import asyncio
import logging
from collections.abc import Iterable

from operator_cassandra.config import ClusterSpec
from operator_cassandra.errors import PodNotScheduledError
from operator_cassandra.protocols import MembershipProvider
from operator_cassandra.types import Address, HostNode, Member, MemberName

logger = logging.getLogger(__name__)


class AddressResolver:
    """
    Resolves broadcast addresses and rack hints for members.

    Example:
        resolver = AddressResolver(cluster, provider)
        addresses = await resolver.resolve_all(view.members)
    """

    def __init__(self, cluster: ClusterSpec, provider: MembershipProvider) -> None:
        self.cluster = cluster
        self.provider = provider
        self._hosts: dict[str, HostNode] = {}

    async def _host(self, node_name: str) -> HostNode:
        if node_name not in self._hosts:
            self._hosts[node_name] = await self.provider.get_host(node_name)
        return self._hosts[node_name]

    async def resolve(self, member: Member) -> Address:
        """
        Resolve the address other members and regions use to reach `member`.

        Raises:
            PodNotScheduledError: The member has no address or host yet, or
                its host has no address of the configured family.
        """
        if not self.cluster.host_network.enabled:
            if not member.pod_ip:
                raise PodNotScheduledError(member.name)
            return member.pod_ip

        if not member.node_name:
            raise PodNotScheduledError(member.name)

        host = await self._host(member.node_name)
        if self.cluster.host_network.use_external_host_ip:
            address = host.external_ip
        else:
            address = host.internal_ip
        if not address:
            logger.info(f"Host {host.name} of member {member.name} has no usable address yet")
            raise PodNotScheduledError(member.name)
        return address

    async def resolve_all(self, members: Iterable[Member]) -> dict[MemberName, Address]:
        """
        Resolve every member concurrently.

        Fails as a whole if any member cannot be resolved; a partial address
        map is never returned.
        """
        members = list(members)
        if self.cluster.host_network.enabled or self.cluster.zones_as_racks:
            # Look each host up once, not once per member
            node_names = sorted({m.node_name for m in members if m.node_name} - self._hosts.keys())
            hosts = await asyncio.gather(*(self.provider.get_host(n) for n in node_names))
            self._hosts.update(zip(node_names, hosts))
        resolved = await asyncio.gather(*(self.resolve(m) for m in members))
        return {m.name: address for m, address in zip(members, resolved)}

    async def rack(self, member: Member) -> str:
        """Zone of the machine hosting `member`, used as its rack."""
        if not member.node_name:
            raise PodNotScheduledError(member.name)
        host = await self._host(member.node_name)
        return host.zone
