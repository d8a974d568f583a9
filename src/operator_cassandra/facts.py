"""
Per-member fact sheet - the coordinator's externally observable output.

Each member gets a small set of facts: whether it must pause before
starting (and why), the address it broadcasts, the address it was last seen
at, and the seed list. A downstream generator turns these facts into the
member's startup configuration.

The sheet must be identical for identical inputs: members are ordered by
name and seeds keep their computed order, so repeated passes over an
unchanged cluster never produce a spurious difference.
"""

import asyncio
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from operator_cassandra.errors import PodNotScheduledError
from operator_cassandra.init_order import InitDecision, Pause
from operator_cassandra.membership import MembershipView
from operator_cassandra.types import Address, MemberName

logger = logging.getLogger(__name__)

RACK_SNITCH = "GossipingPropertyFileSnitch"


@dataclass(frozen=True)
class MemberFacts:
    """
    Facts published to a single member.

    Attributes:
        member: Member name.
        uid: Member instance identifier.
        pause: True if the member must wait before starting.
        reason: Why the member waits ("" when it may start).
        broadcast_address: Address peers use to reach the member.
        rpc_address: The member's own assigned address.
        previous_address: Address the member was last seen ready at ("" if never).
        seeds: Full seed list, in computed order.
        rack: Rack hint (zone of the hosting machine), if racks follow zones.
        snitch: Endpoint snitch hint, set together with `rack`.
    """

    member: MemberName
    uid: str
    pause: bool
    reason: str
    broadcast_address: Address
    rpc_address: Address
    previous_address: Address
    seeds: tuple[Address, ...]
    rack: str | None = None
    snitch: str | None = None

    @property
    def entry_name(self) -> str:
        """Key of this member's entry; changes when the member is recreated."""
        return f"{self.member}_{self.uid}.sh"

    def to_env(self) -> str:
        """Render the environment script read by the member's startup wrapper."""
        lines = []
        if self.rack is not None:
            lines.append(f"export CASSANDRA_RACK={self.rack}")
            lines.append(f"export CASSANDRA_ENDPOINT_SNITCH={self.snitch}")
        lines.extend(
            [
                f"export CASSANDRA_BROADCAST_ADDRESS={self.broadcast_address}",
                f"export CASSANDRA_BROADCAST_RPC_ADDRESS={self.rpc_address}",
                f"export CASSANDRA_SEEDS={','.join(self.seeds)}",
                f"export CASSANDRA_NODE_PREVIOUS_IP={self.previous_address}",
                f"export PAUSE_INIT={'true' if self.pause else 'false'}",
            ]
        )
        return "\n".join(lines) + "\n"


def build_fact_sheet(
    view: MembershipView,
    addresses: Mapping[MemberName, Address],
    seeds: list[Address],
    decisions: Mapping[MemberName, InitDecision],
    previous_addresses: Mapping[MemberName, Address],
    racks: Mapping[MemberName, str] | None = None,
) -> dict[MemberName, MemberFacts]:
    """
    Combine one pass's results into the fact sheet.

    Raises:
        PodNotScheduledError: A member has no address or no resolved
            broadcast address. No partial sheet is returned.
    """
    sheet: dict[MemberName, MemberFacts] = {}
    for member in sorted(view.members, key=lambda m: m.name):
        broadcast = addresses.get(member.name, "")
        if not member.pod_ip or not broadcast:
            raise PodNotScheduledError(member.name)

        decision = decisions[member.name]
        rack = racks.get(member.name) if racks is not None else None
        sheet[member.name] = MemberFacts(
            member=member.name,
            uid=member.uid,
            pause=decision.pause,
            reason=decision.reason.value if isinstance(decision, Pause) else "",
            broadcast_address=broadcast,
            rpc_address=member.pod_ip,
            previous_address=previous_addresses.get(member.name, ""),
            seeds=tuple(seeds),
            rack=rack,
            snitch=RACK_SNITCH if rack is not None else None,
        )
    return sheet


def merge_previous_addresses(
    previous: Mapping[MemberName, Address],
    view: MembershipView,
    addresses: Mapping[MemberName, Address],
) -> dict[MemberName, Address]:
    """
    Update the last-known address record with this pass's ready members.

    Entries of members that no longer exist are kept, so a member that comes
    back after a scale-down still learns its old address. An entry changes
    only when the member is ready and has a new, non-empty address.
    """
    merged = dict(previous)
    for member in view.members:
        address = addresses.get(member.name, "")
        if address and member.ready and merged.get(member.name) != address:
            merged[member.name] = address
    return merged


class DirectoryFactSheetPublisher:
    """
    Writes each member's environment script into a directory.

    A file is rewritten only when its content changes, and scripts of
    members that are gone are removed. Scripts are written to a temporary
    file and renamed into place, so readers never see a partial script.

    Example:
        publisher = DirectoryFactSheetPublisher(Path("/etc/cassandra/pods"))
        await publisher.publish(sheet)
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    async def publish(self, facts: Mapping[MemberName, MemberFacts]) -> None:
        wanted = {f.entry_name: f.to_env() for f in facts.values()}
        await asyncio.to_thread(self._sync, wanted)

    def _sync(self, wanted: dict[str, str]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

        for entry_name, content in sorted(wanted.items()):
            path = self.directory / entry_name
            if path.exists() and path.read_text() == content:
                continue
            logger.info(f"Updating config entry {entry_name}")
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_text(content)
            os.replace(tmp, path)

        for path in sorted(self.directory.glob("*.sh")):
            if path.name not in wanted:
                logger.info(f"Removing stale config entry {path.name}")
                path.unlink()
