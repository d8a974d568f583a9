"""
SQLite-based record of the last address each member was seen ready at.

The record outlives members: entries are never deleted when a member goes
away, so a member recreated after a scale-down can still be told where it
used to live.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import aiosqlite

from operator_cassandra.db.schema import ADDRESSES_SCHEMA_SQL
from operator_cassandra.facts import merge_previous_addresses
from operator_cassandra.membership import MembershipView
from operator_cassandra.types import Address, MemberName


class AddressDB:
    """
    Async context manager for the member address record.

    Example:
        async with AddressDB(Path("cassandra.db")) as db:
            previous = await db.update(view, addresses)
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "AddressDB":
        """Open database connection and ensure schema exists."""
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(ADDRESSES_SCHEMA_SQL)
        await self._conn.commit()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def get_all(self) -> dict[MemberName, Address]:
        async with self._conn.execute(
            "SELECT member, address FROM member_addresses ORDER BY member"
        ) as cursor:
            rows = await cursor.fetchall()
        return {row["member"]: row["address"] for row in rows}

    async def set_many(self, addresses: Mapping[MemberName, Address]) -> None:
        await self._conn.executemany(
            """
            INSERT INTO member_addresses (member, address) VALUES (?, ?)
            ON CONFLICT(member) DO UPDATE SET
                address = excluded.address,
                updated_at = CURRENT_TIMESTAMP
            """,
            sorted(addresses.items()),
        )
        await self._conn.commit()

    async def update(
        self, view: MembershipView, addresses: Mapping[MemberName, Address]
    ) -> dict[MemberName, Address]:
        """
        Record this pass's ready members and return the full record.

        Only entries that actually changed are written.
        """
        previous = await self.get_all()
        merged = merge_previous_addresses(previous, view, addresses)
        changed = {m: a for m, a in merged.items() if previous.get(m) != a}
        if changed:
            await self.set_many(changed)
        return merged
