"""
SQLite-based decommission job persistence.

This module provides async database operations for the job registry:
- Create a job record (fails if the name is taken)
- Read and list job records
- Compare-and-set updates keyed on the record version
- Delete records

Per project patterns:
- Use async context manager for connection lifecycle
- Commit after every write so other coordinators see it immediately
"""

from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from operator_cassandra.db.schema import JOBS_SCHEMA_SQL
from operator_cassandra.errors import ConflictError
from operator_cassandra.types import DecommissionJob, JobStatus


def _parse_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class JobDB:
    """
    Async context manager for decommission job records.

    Example:
        async with JobDB(Path("cassandra.db")) as db:
            job = await db.create_job(DecommissionJob(name=..., target_member=...))
            job.status = JobStatus.SUCCEEDED
            job = await db.update_job(job)
    """

    def __init__(self, db_path: Path) -> None:
        """
        Initialize the database connection manager.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "JobDB":
        """Open database connection and ensure schema exists."""
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(JOBS_SCHEMA_SQL)
        await self._conn.commit()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _row_to_job(self, row: aiosqlite.Row) -> DecommissionJob:
        return DecommissionJob(
            name=row["name"],
            target_member=row["target_member"],
            status=JobStatus(row["status"]),
            owner=row["owner"],
            started_at=_parse_time(row["started_at"]),
            heartbeat_at=_parse_time(row["heartbeat_at"]),
            finished_at=_parse_time(row["finished_at"]),
            error=row["error"],
            version=row["version"],
        )

    async def get_job(self, name: str) -> DecommissionJob | None:
        """
        Fetch a job record by name.

        Returns:
            The DecommissionJob if found, None otherwise
        """
        async with self._conn.execute(
            "SELECT * FROM decommission_jobs WHERE name = ?",
            (name,),
        ) as cursor:
            row = await cursor.fetchone()

        if row:
            return self._row_to_job(row)
        return None

    async def list_jobs(self, status: JobStatus | None = None) -> list[DecommissionJob]:
        """List job records, optionally filtered by status, ordered by name."""
        query = "SELECT * FROM decommission_jobs"
        params: tuple[Any, ...] = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (status.value,)
        query += " ORDER BY name"

        async with self._conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_job(row) for row in rows]

    async def create_job(self, job: DecommissionJob) -> DecommissionJob:
        """
        Insert a new job record with version 1.

        Raises:
            ConflictError: A record with the same name already exists.
        """
        try:
            await self._conn.execute(
                """
                INSERT INTO decommission_jobs (
                    name, target_member, status, owner,
                    started_at, heartbeat_at, finished_at, error, version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1)
                """,
                (
                    job.name,
                    job.target_member,
                    job.status.value,
                    job.owner,
                    _format_time(job.started_at),
                    _format_time(job.heartbeat_at),
                    _format_time(job.finished_at),
                    job.error,
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise ConflictError(f"job {job.name}", expected=None, actual="existing record") from e
        await self._conn.commit()
        return await self.get_job(job.name)

    async def update_job(self, job: DecommissionJob) -> DecommissionJob:
        """
        Write `job` if the stored record still has `job.version`.

        Returns:
            The stored record with its new version.

        Raises:
            ConflictError: The record changed or disappeared since it was read.
        """
        cursor = await self._conn.execute(
            """
            UPDATE decommission_jobs
            SET target_member = ?, status = ?, owner = ?, started_at = ?,
                heartbeat_at = ?, finished_at = ?, error = ?, version = version + 1
            WHERE name = ? AND version = ?
            """,
            (
                job.target_member,
                job.status.value,
                job.owner,
                _format_time(job.started_at),
                _format_time(job.heartbeat_at),
                _format_time(job.finished_at),
                job.error,
                job.name,
                job.version,
            ),
        )
        await self._conn.commit()

        if cursor.rowcount == 0:
            current = await self.get_job(job.name)
            raise ConflictError(
                f"job {job.name}",
                expected=job.version,
                actual=current.version if current else None,
            )
        return await self.get_job(job.name)

    async def delete_job(self, name: str) -> bool:
        """
        Delete a job record.

        Returns:
            True if a record was deleted, False if none existed
        """
        cursor = await self._conn.execute(
            "DELETE FROM decommission_jobs WHERE name = ?",
            (name,),
        )
        await self._conn.commit()
        return cursor.rowcount > 0
