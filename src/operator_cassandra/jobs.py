"""
Single-flight registry for decommission jobs.

DecommissionJobTracker runs each decommission action as an asyncio task and
keeps its durable record in a JobStore:
- The record is created (or a finished record reused) before the task starts
- A running task refreshes the record's heartbeat so other coordinators can
  tell a live job from one whose owner died
- Exit status and error are recorded when the action returns
- An optional callback is notified on completion so the control loop can run
  a pass right away

A running record whose heartbeat is older than the lease reads as not
running; the scale coordinator then re-derives progress from the node.
"""

import asyncio
import contextlib
import logging
import socket
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from operator_cassandra.errors import (
    ConflictError,
    JobAlreadyRunningError,
    JobStillRunningError,
)
from operator_cassandra.protocols import JobStore
from operator_cassandra.types import DecommissionJob, JobStatus, MemberName

logger = logging.getLogger(__name__)

JOB_NAME_PREFIX = "pod-decommission-"

# Attempts at recording a job's exit status before giving up
FINISH_ATTEMPTS = 3


def default_owner() -> str:
    """Identifier for this tracker instance: host name plus a random suffix."""
    return f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"


class DecommissionJobTracker:
    """
    Run decommission actions at most once per job name.

    Example:
        async with JobDB(path) as db:
            tracker = DecommissionJobTracker(db, lease_seconds=60)
            name = tracker.job_name("test-cluster-cassandra-dc1-3")
            if not await tracker.is_running(name):
                await tracker.run(name, "test-cluster-cassandra-dc1-3", action)
    """

    def __init__(
        self,
        store: JobStore,
        owner: str | None = None,
        lease_seconds: float = 60.0,
        on_finished: Callable[[str], None] | None = None,
    ) -> None:
        """
        Args:
            store: Durable job record store
            owner: Identifier written into records this tracker runs
            lease_seconds: Heartbeat age after which a running record is orphaned
            on_finished: Called with the job name after a job's status is recorded
        """
        self.store = store
        self.owner = owner or default_owner()
        self.lease = timedelta(seconds=lease_seconds)
        self.on_finished = on_finished
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @staticmethod
    def job_name(member: MemberName) -> str:
        return JOB_NAME_PREFIX + member

    async def exists(self, name: str) -> bool:
        return await self.store.get_job(name) is not None

    async def is_running(self, name: str) -> bool:
        """True if the job's record is running and its owner is still alive."""
        if self._has_local_task(name):
            return True
        job = await self.store.get_job(name)
        return job is not None and self._is_live(job)

    async def list_jobs(self) -> list[DecommissionJob]:
        return await self.store.list_jobs()

    async def run(
        self,
        name: str,
        target_member: MemberName,
        action: Callable[[], Awaitable[None]],
    ) -> DecommissionJob:
        """
        Record the job as running and start `action` in the background.

        Returns:
            The stored job record

        Raises:
            JobAlreadyRunningError: A live job with this name exists, or another
                coordinator claimed the record first.
        """
        if self._has_local_task(name):
            raise JobAlreadyRunningError(name)

        now = datetime.now()
        job = DecommissionJob(
            name=name,
            target_member=target_member,
            status=JobStatus.RUNNING,
            owner=self.owner,
            started_at=now,
            heartbeat_at=now,
        )

        existing = await self.store.get_job(name)
        try:
            if existing is None:
                job = await self.store.create_job(job)
            elif self._is_live(existing):
                raise JobAlreadyRunningError(name)
            else:
                job.version = existing.version
                job = await self.store.update_job(job)
        except ConflictError as e:
            raise JobAlreadyRunningError(name) from e

        task = asyncio.create_task(self._execute(job, action), name=name)
        self._tasks[name] = task
        task.add_done_callback(_discard_when_done(self._tasks, name))
        logger.info(f"Started job {name} for member {target_member}")
        return job

    async def remove_job(self, name: str) -> bool:
        """
        Delete a job's record. Removing a job that does not exist is a no-op.

        Returns:
            True if a record was deleted

        Raises:
            JobStillRunningError: The job is still running.
        """
        job = await self.store.get_job(name)
        if job is None:
            return False
        if self._has_local_task(name) or self._is_live(job):
            raise JobStillRunningError(name)
        removed = await self.store.delete_job(name)
        if removed:
            logger.info(f"Removed job {name}")
        return removed

    async def wait(self, name: str) -> None:
        """Wait for a locally running job to finish."""
        task = self._tasks.get(name)
        if task is not None:
            await asyncio.shield(task)

    async def close(self) -> None:
        """Cancel locally running jobs. Their records are left for the lease to expire."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _has_local_task(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def _is_live(self, job: DecommissionJob) -> bool:
        if not job.running:
            return False
        if job.heartbeat_at is None:
            return False
        return datetime.now() - job.heartbeat_at < self.lease

    async def _execute(
        self, job: DecommissionJob, action: Callable[[], Awaitable[None]]
    ) -> None:
        heartbeat = asyncio.create_task(self._heartbeat(job.name))
        error: str | None = None
        try:
            await action()
        except Exception as e:
            logger.warning(f"Job {job.name} failed: {e}")
            error = str(e) or type(e).__name__
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat

        await self._finish(job.name, error)
        if self.on_finished is not None:
            self.on_finished(job.name)

    async def _heartbeat(self, name: str) -> None:
        interval = self.lease.total_seconds() / 3
        while True:
            await asyncio.sleep(interval)
            try:
                job = await self.store.get_job(name)
                if job is None or not job.running or job.owner != self.owner:
                    return
                job.heartbeat_at = datetime.now()
                await self.store.update_job(job)
            except ConflictError:
                logger.debug(f"Heartbeat for job {name} lost a race, retrying next beat")
            except Exception as e:
                logger.warning(f"Heartbeat for job {name} failed, retrying next beat: {e}")

    async def _finish(self, name: str, error: str | None) -> None:
        for _ in range(FINISH_ATTEMPTS):
            job = await self.store.get_job(name)
            if job is None or job.owner != self.owner:
                logger.info(f"Job {name} record is gone or taken over, not recording status")
                return
            job.status = JobStatus.FAILED if error else JobStatus.SUCCEEDED
            job.error = error
            job.finished_at = datetime.now()
            try:
                await self.store.update_job(job)
            except ConflictError:
                continue
            logger.info(f"Job {name} finished: {job.status.value}")
            return
        logger.warning(f"Could not record status of job {name} after {FINISH_ATTEMPTS} attempts")


def _discard_when_done(tasks: dict[str, asyncio.Task[None]], name: str):
    """Done-callback that drops a finished task from `tasks` if it is still the registered one."""

    def _discard(task: asyncio.Task[None]) -> None:
        if tasks.get(name) is task:
            del tasks[name]

    return _discard
