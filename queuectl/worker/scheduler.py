"""
Deferred requeue of failed jobs.

A failed job waits out its backoff delay on a timer task owned by the worker
that ran it. The worker loop never blocks on these timers.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from queuectl.db.models import utcnow
from queuectl.db.repository import JobRepository

logger = logging.getLogger(__name__)


class RetryScheduler:
    """
    Tracks pending backoff timers for one worker.

    Each timer sleeps for the backoff delay and then requeues its job. On
    shutdown, flush() turns outstanding timers into immediate requeues that
    carry the original due time as scheduled_at, so no retry is lost and none
    runs early.
    """

    def __init__(self, jobs: JobRepository):
        self._jobs = jobs
        self._timers: dict[str, tuple[asyncio.Task, datetime]] = {}

    @property
    def pending(self) -> dict[str, datetime]:
        """Job id -> due time of every timer still waiting."""
        return {job_id: due for job_id, (_, due) in self._timers.items()}

    def schedule(self, job_id: str, delay_seconds: float) -> datetime:
        """
        Requeue a job after a delay without blocking the caller.

        Args:
            job_id: The failed job.
            delay_seconds: Backoff delay.

        Returns:
            When the job becomes eligible again.
        """
        due = utcnow() + timedelta(seconds=delay_seconds)
        existing = self._timers.pop(job_id, None)
        if existing is not None:
            existing[0].cancel()

        task = asyncio.create_task(
            self._requeue_after(job_id, delay_seconds),
            name=f"requeue-{job_id}",
        )
        self._timers[job_id] = (task, due)
        return due

    async def _requeue_after(self, job_id: str, delay_seconds: float) -> None:
        await asyncio.sleep(delay_seconds)
        try:
            job = await self._jobs.requeue_job(job_id)
            if job is None:
                logger.warning(
                    "Job was no longer failed, requeue skipped",
                    extra={"job_id": job_id},
                )
        except Exception:
            logger.exception("Failed to requeue job", extra={"job_id": job_id})
        finally:
            self._timers.pop(job_id, None)

    async def flush(self) -> int:
        """
        Cancel all timers and requeue their jobs with a not-before time.

        Returns:
            Number of jobs requeued.
        """
        timers, self._timers = self._timers, {}
        requeued = 0

        for job_id, (task, due) in timers.items():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

            try:
                job = await self._jobs.requeue_job(job_id, not_before=due)
            except Exception:
                logger.exception("Failed to requeue job", extra={"job_id": job_id})
                continue

            if job is not None:
                requeued += 1
                logger.info(
                    "Requeued job with deferred start",
                    extra={"job_id": job_id, "scheduled_at": due.isoformat()},
                )

        return requeued
