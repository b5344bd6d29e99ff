"""
Repositories for database operations.
Implements the data access patterns for jobs, workers and runtime config.
"""

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from queuectl.constants import (
    CONFIG_BACKOFF_BASE,
    CONFIG_KEYS,
    CONFIG_MAX_RETRIES,
    REQUEUEABLE_STATES,
    JobState,
    WorkerStatus,
)
from queuectl.db.connection import Store
from queuectl.db.models import ConfigEntry, Job, WorkerRecord, as_utc, utcnow
from queuectl.errors import DuplicateJobError, ValidationError
from queuectl.types.api import JobSpec

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for job database operations.

    Every state change is a single conditional UPDATE, so the database alone
    decides which worker owns a job:
    - claim only matches a row that is still pending and unlocked
    - complete and fail only match a row that is still processing
    - requeue only matches a failed or dead row
    """

    def __init__(self, store: Store):
        """
        Initialize the repository with a store.

        Args:
            store: The store handle used to open sessions.
        """
        self._store = store
        self._config = ConfigRepository(store)

    async def create_job(self, spec: JobSpec) -> Job:
        """
        Insert a new pending job.

        Args:
            spec: Validated job specification.

        Returns:
            The stored Job.

        Raises:
            DuplicateJobError: If a job with the same id exists.
        """
        max_retries = spec.max_retries
        if max_retries is None:
            max_retries = await self._config.get_int(CONFIG_MAX_RETRIES)

        now = utcnow()
        job = Job(
            id=spec.id,
            command=spec.command,
            state=JobState.PENDING,
            attempts=0,
            max_retries=max_retries,
            created_at=now,
            updated_at=now,
            scheduled_at=as_utc(spec.scheduled_at),
        )

        async with self._store.session() as session:
            session.add(job)
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateJobError(spec.id) from e

        logger.info(
            "Created new job",
            extra={"job_id": job.id, "max_retries": max_retries},
        )
        return job

    async def get_job(self, job_id: str) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job id.

        Returns:
            The Job or None if not found.
        """
        async with self._store.session() as session:
            return await session.get(Job, job_id)

    async def list_jobs_by_state(self, state: JobState) -> Sequence[Job]:
        """List jobs in one state, oldest first."""
        stmt = (
            select(Job)
            .where(Job.state == state)
            .order_by(Job.created_at.asc(), Job.id.asc())
        )
        async with self._store.session() as session:
            result = await session.execute(stmt)
            return result.scalars().all()

    async def list_jobs(self) -> Sequence[Job]:
        """List all jobs, newest first."""
        stmt = select(Job).order_by(Job.created_at.desc(), Job.id.desc())
        async with self._store.session() as session:
            result = await session.execute(stmt)
            return result.scalars().all()

    async def get_job_stats(self) -> dict[str, int]:
        """
        Get job counts by state.

        Returns:
            Dictionary of state -> count for every state, plus "total".
        """
        stmt = select(Job.state, func.count()).group_by(Job.state)
        async with self._store.session() as session:
            result = await session.execute(stmt)
            rows = result.all()

        stats = {state.value: 0 for state in JobState}
        for state, count in rows:
            stats[JobState(state).value] = count
        stats["total"] = sum(stats.values())
        return stats

    async def claim_next_job(self, worker_id: str) -> Job | None:
        """
        Claim the oldest eligible job for a worker.

        The subquery picks the oldest pending, unlocked job whose scheduled_at
        has passed. The outer UPDATE re-checks that the row is still pending
        and unlocked, so when two workers race for the same row exactly one
        UPDATE matches. On PostgreSQL the subquery also skips rows locked by a
        concurrent claim.

        Args:
            worker_id: The claiming worker.

        Returns:
            The claimed Job, or None if nothing was eligible or the race was
            lost.
        """
        now = utcnow()
        candidate = aliased(Job, name="candidate")

        next_id = (
            select(candidate.id)
            .where(
                candidate.state == JobState.PENDING,
                candidate.locked_by.is_(None),
                or_(candidate.scheduled_at.is_(None), candidate.scheduled_at <= now),
            )
            .order_by(candidate.created_at.asc(), candidate.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )

        stmt = (
            update(Job)
            .where(
                Job.id == next_id,
                Job.state == JobState.PENDING,
                Job.locked_by.is_(None),
            )
            .values(
                state=JobState.PROCESSING,
                locked_by=worker_id,
                locked_at=now,
                updated_at=now,
            )
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        async with self._store.session() as session:
            result = await session.execute(stmt)
            job = result.scalar_one_or_none()

        if job is not None:
            logger.info(
                "Claimed job",
                extra={"job_id": job.id, "worker_id": worker_id},
            )
        return job

    async def complete_job(
        self,
        job_id: str,
        output: str | None,
        worker_id: str | None = None,
    ) -> Job | None:
        """
        Mark a processing job as completed.

        Args:
            job_id: The job id.
            output: Captured command output.
            worker_id: If given, the job must be locked by this worker.

        Returns:
            Updated Job or None if the job was not processing.
        """
        conditions = [Job.id == job_id, Job.state == JobState.PROCESSING]
        if worker_id is not None:
            conditions.append(Job.locked_by == worker_id)

        stmt = (
            update(Job)
            .where(*conditions)
            .values(
                state=JobState.COMPLETED,
                output=output,
                locked_by=None,
                locked_at=None,
                updated_at=utcnow(),
            )
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        async with self._store.session() as session:
            result = await session.execute(stmt)
            job = result.scalar_one_or_none()

        if job is None:
            logger.warning(
                "Job was not processing, completion ignored",
                extra={"job_id": job_id, "worker_id": worker_id},
            )
        else:
            logger.info("Job completed successfully", extra={"job_id": job_id})
        return job

    async def fail_job(
        self,
        job_id: str,
        error: str,
        attempts: int,
        max_retries: int,
        worker_id: str | None = None,
    ) -> Job | None:
        """
        Record a failed execution.

        The job becomes dead once attempts reaches max_retries, otherwise
        failed. Attempts are capped at max_retries, which matters for a job
        retried by hand from the DLQ.

        Args:
            job_id: The job id.
            error: Error message of this failure.
            attempts: Attempt count including this failure.
            max_retries: The job's retry ceiling.
            worker_id: If given, the job must be locked by this worker.

        Returns:
            Updated Job or None if the job was not processing.
        """
        attempts = min(attempts, max_retries)
        new_state = JobState.DEAD if attempts >= max_retries else JobState.FAILED

        conditions = [Job.id == job_id, Job.state == JobState.PROCESSING]
        if worker_id is not None:
            conditions.append(Job.locked_by == worker_id)

        stmt = (
            update(Job)
            .where(*conditions)
            .values(
                state=new_state,
                attempts=attempts,
                last_error=error,
                locked_by=None,
                locked_at=None,
                updated_at=utcnow(),
            )
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        async with self._store.session() as session:
            result = await session.execute(stmt)
            job = result.scalar_one_or_none()

        if job is None:
            logger.warning(
                "Job was not processing, failure ignored",
                extra={"job_id": job_id, "worker_id": worker_id},
            )
        elif new_state == JobState.DEAD:
            logger.warning(
                f"Job moved to DLQ after {attempts} attempts",
                extra={"job_id": job_id, "error": error},
            )
        else:
            logger.info(
                "Job failed, retry pending",
                extra={"job_id": job_id, "attempts": attempts},
            )
        return job

    async def requeue_job(
        self,
        job_id: str,
        not_before: datetime | None = None,
    ) -> Job | None:
        """
        Move a failed or dead job back to pending.

        Attempts are kept, so a dead job retried by hand goes straight back to
        the DLQ if it fails again.

        Args:
            job_id: The job id.
            not_before: Optional time before which the job is not claimable.

        Returns:
            Updated Job or None if the job was not failed or dead.
        """
        values = {
            "state": JobState.PENDING,
            "locked_by": None,
            "locked_at": None,
            "updated_at": utcnow(),
        }
        if not_before is not None:
            values["scheduled_at"] = as_utc(not_before)

        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.state.in_(REQUEUEABLE_STATES))
            .values(**values)
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        async with self._store.session() as session:
            result = await session.execute(stmt)
            job = result.scalar_one_or_none()

        if job:
            logger.info("Job requeued", extra={"job_id": job_id})
        return job


class WorkerRepository:
    """
    Repository for worker records.

    Worker rows are informational; concurrent writers may overwrite each
    other's heartbeats without affecting job safety.
    """

    def __init__(self, store: Store):
        self._store = store

    async def register(self, worker_id: str) -> WorkerRecord:
        """Create or reset the worker row as active."""
        now = utcnow()
        async with self._store.session() as session:
            record = await session.merge(
                WorkerRecord(
                    id=worker_id,
                    status=WorkerStatus.ACTIVE,
                    started_at=now,
                    last_heartbeat=now,
                    current_job_id=None,
                )
            )
        logger.info("Worker registered", extra={"worker_id": worker_id})
        return record

    async def heartbeat(self, worker_id: str, current_job_id: str | None) -> bool:
        """
        Refresh liveness and the current job of an active worker.

        Returns:
            False if the row is no longer active, meaning an operator asked
            the worker to stop.
        """
        stmt = (
            update(WorkerRecord)
            .where(
                WorkerRecord.id == worker_id,
                WorkerRecord.status == WorkerStatus.ACTIVE,
            )
            .values(last_heartbeat=utcnow(), current_job_id=current_job_id)
            .execution_options(synchronize_session=False)
        )
        async with self._store.session() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def mark_stopped(self, worker_id: str) -> None:
        stmt = (
            update(WorkerRecord)
            .where(WorkerRecord.id == worker_id)
            .values(status=WorkerStatus.STOPPED, current_job_id=None)
            .execution_options(synchronize_session=False)
        )
        async with self._store.session() as session:
            await session.execute(stmt)

    async def stop_all(self) -> int:
        """
        Mark every active worker as stopped.

        Running workers notice on their next heartbeat and shut down
        gracefully.

        Returns:
            Number of workers signalled.
        """
        stmt = (
            update(WorkerRecord)
            .where(WorkerRecord.status == WorkerStatus.ACTIVE)
            .values(status=WorkerStatus.STOPPED)
            .execution_options(synchronize_session=False)
        )
        async with self._store.session() as session:
            result = await session.execute(stmt)
            count = result.rowcount

        logger.info(f"Signalled {count} workers to stop")
        return count

    async def get_worker(self, worker_id: str) -> WorkerRecord | None:
        async with self._store.session() as session:
            return await session.get(WorkerRecord, worker_id)

    async def list_workers(
        self,
        status: WorkerStatus | None = None,
    ) -> Sequence[WorkerRecord]:
        """List workers, optionally filtered by status, oldest first."""
        stmt = select(WorkerRecord).order_by(WorkerRecord.started_at.asc())
        if status is not None:
            stmt = stmt.where(WorkerRecord.status == status)
        async with self._store.session() as session:
            result = await session.execute(stmt)
            return result.scalars().all()


def normalize_config_key(key: str) -> str:
    """
    Map a user supplied key to its stored form.

    Raises:
        ValidationError: If the key is not a known config key.
    """
    normalized = key.strip().replace("-", "_")
    if normalized not in CONFIG_KEYS:
        allowed = ", ".join(k.replace("_", "-") for k in CONFIG_KEYS)
        raise ValidationError(f"Invalid config key: {key}. Must be one of: {allowed}")
    return normalized


class ConfigRepository:
    """Repository for operator-tunable queue settings."""

    def __init__(self, store: Store):
        self._store = store
        self._defaults = {
            CONFIG_MAX_RETRIES: str(store.settings.default_max_retries),
            CONFIG_BACKOFF_BASE: str(store.settings.default_backoff_base),
        }

    async def get(self, key: str) -> str:
        """Get a config value, falling back to its default."""
        key = normalize_config_key(key)
        async with self._store.session() as session:
            entry = await session.get(ConfigEntry, key)
        return entry.value if entry is not None else self._defaults[key]

    async def get_int(self, key: str) -> int:
        """Get a config value as an int; unparseable values yield the default."""
        key = normalize_config_key(key)
        value = await self.get(key)
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Invalid config value, using default",
                extra={"key": key, "value": value},
            )
            return int(self._defaults[key])

    async def set(self, key: str, value: str) -> str:
        """
        Set a config value.

        Args:
            key: Config key, dashed or underscored.
            value: Positive integer as text.

        Returns:
            The normalized key.

        Raises:
            ValidationError: On an unknown key or a non-numeric value.
        """
        key = normalize_config_key(key)
        try:
            number = int(value)
        except ValueError:
            raise ValidationError(f"Value must be a number, got: {value}") from None
        if number < 1:
            raise ValidationError(f"Value must be a positive number, got: {value}")

        async with self._store.session() as session:
            await session.merge(ConfigEntry(key=key, value=str(number), updated_at=utcnow()))

        logger.info("Config updated", extra={"key": key, "value": number})
        return key

    async def list_values(self) -> dict[str, str]:
        """All known config keys with their effective values."""
        async with self._store.session() as session:
            result = await session.execute(select(ConfigEntry))
            stored = {entry.key: entry.value for entry in result.scalars().all()}
        return {key: stored.get(key, self._defaults[key]) for key in CONFIG_KEYS}
