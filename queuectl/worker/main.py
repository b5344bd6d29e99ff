"""
Worker for executing jobs.

The worker claims jobs from the queue one at a time, runs them, and handles
retries and failures according to the job lifecycle.
"""

import asyncio
import logging
import os
from contextlib import suppress
from uuid import uuid4

from queuectl.config import Settings
from queuectl.constants import CONFIG_BACKOFF_BASE, JobState
from queuectl.db import Job, Store
from queuectl.db.repository import ConfigRepository, JobRepository, WorkerRepository
from queuectl.errors import StoreError
from queuectl.observability.logging import bind_worker
from queuectl.types.job import JobContext
from queuectl.worker.backoff import compute_backoff
from queuectl.worker.executor import execute_job
from queuectl.worker.scheduler import RetryScheduler

logger = logging.getLogger(__name__)


def default_worker_id() -> str:
    """Host, PID and a random suffix, unique per worker instance."""
    return f"worker-{os.uname().nodename}-{os.getpid()}-{uuid4().hex[:8]}"


class Worker:
    """
    Job worker that polls for and executes jobs.

    Features:
    - Atomic claiming through a conditional UPDATE
    - At most one job at a time
    - Heartbeat on its own worker row
    - Retry with exponential backoff and DLQ handling
    - Graceful shutdown that never abandons a running job
    """

    def __init__(
        self,
        store: Store,
        worker_id: str | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the worker.

        Args:
            store: Store handle shared with the rest of the process.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            settings: Overrides the store's settings.
        """
        settings = settings or store.settings

        self.worker_id = worker_id or default_worker_id()
        self.poll_interval = settings.worker_poll_interval_seconds
        self.heartbeat_interval = settings.worker_heartbeat_interval_seconds
        self.stop_poll_interval = settings.worker_stop_poll_interval_seconds
        self.job_timeout = settings.job_timeout_seconds
        self.default_backoff_base = settings.default_backoff_base

        self._jobs = JobRepository(store)
        self._workers = WorkerRepository(store)
        self._config = ConfigRepository(store)
        self._retries = RetryScheduler(self._jobs)

        self._started = False
        self._stopping = asyncio.Event()
        self._stopped = asyncio.Event()
        self._current_job_id: str | None = None
        self._poll_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._stop_task: asyncio.Task | None = None

    @property
    def current_job_id(self) -> str | None:
        return self._current_job_id

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopping.is_set()

    @property
    def retries(self) -> RetryScheduler:
        return self._retries

    async def start(self) -> None:
        """
        Register the worker and start its poll and heartbeat tasks.

        The first claim attempt happens right away. Errors while registering
        propagate; the worker cannot run without its store.
        """
        if self._started:
            raise RuntimeError(f"Worker {self.worker_id} already started")

        logger.info("Worker starting", extra={"worker_id": self.worker_id})
        await self._workers.register(self.worker_id)
        self._started = True

        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(), name=f"{self.worker_id}-heartbeat"
        )
        self._poll_task = asyncio.create_task(
            self._poll_loop(), name=f"{self.worker_id}-poll"
        )

    def request_stop(self) -> None:
        """Begin a graceful stop without waiting for it."""
        if self._stop_task is None:
            self._stop_task = asyncio.create_task(
                self._shutdown(), name=f"{self.worker_id}-stop"
            )

    async def stop(self) -> None:
        """
        Stop the worker gracefully.

        New claims and heartbeats stop at once. Returns after the job being
        run (if any) has finished and the worker row reads stopped.
        """
        self.request_stop()
        await asyncio.shield(self._stop_task)

    async def wait_stopped(self) -> None:
        """Wait until the worker has fully stopped."""
        await self._stopped.wait()

    async def _shutdown(self) -> None:
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._stopping.set()

        if not self._started:
            self._stopped.set()
            return

        while self._current_job_id is not None:
            logger.info(
                "Waiting for current job to complete",
                extra={"worker_id": self.worker_id, "job_id": self._current_job_id},
            )
            await asyncio.sleep(self.stop_poll_interval)

        tasks = [t for t in (self._poll_task, self._heartbeat_task) if t is not None]
        await asyncio.gather(*tasks, return_exceptions=True)

        requeued = await self._retries.flush()
        if requeued:
            logger.info(f"Handed over {requeued} pending retries")

        try:
            await self._workers.mark_stopped(self.worker_id)
        except Exception:
            logger.exception(
                "Failed to mark worker stopped", extra={"worker_id": self.worker_id}
            )

        self._stopped.set()
        logger.info("Worker stopped", extra={"worker_id": self.worker_id})

    async def _wait(self, seconds: float) -> None:
        """Sleep for a tick, waking early when a stop is requested."""
        with suppress(TimeoutError):
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)

    async def _poll_loop(self) -> None:
        with bind_worker(self.worker_id):
            while not self._stopping.is_set():
                try:
                    await self.process_next_job()
                except Exception as e:
                    logger.exception(f"Error in worker loop: {e}")

                await self._wait(self.poll_interval)

    async def _heartbeat_loop(self) -> None:
        with bind_worker(self.worker_id):
            while not self._stopping.is_set():
                await self._wait(self.heartbeat_interval)
                if self._stopping.is_set():
                    break

                try:
                    active = await self._workers.heartbeat(
                        self.worker_id, self._current_job_id
                    )
                except Exception as e:
                    logger.exception(f"Error in heartbeat loop: {e}")
                    continue

                if not active:
                    logger.info("Worker marked stopped externally, shutting down")
                    self.request_stop()
                    break

    async def process_next_job(self) -> bool:
        """
        Make one claim attempt and run the job if one was claimed.

        Returns:
            True if a job was executed.
        """
        if self._current_job_id is not None or self._stopping.is_set():
            return False

        job = await self._jobs.claim_next_job(self.worker_id)
        if job is None:
            return False

        self._current_job_id = job.id
        try:
            await self._report_current_job(job.id)
            await self._execute_job(job)
        finally:
            self._current_job_id = None
            await self._report_current_job(None)

        return True

    async def _report_current_job(self, job_id: str | None) -> None:
        try:
            await self._workers.heartbeat(self.worker_id, job_id)
        except Exception:
            logger.exception("Failed to update worker record")

    async def _execute_job(self, job: Job) -> None:
        """
        Execute a claimed job and record the outcome.

        Args:
            job: The claimed job, in processing state.
        """
        context = JobContext(
            job_id=job.id,
            command=job.command,
            attempt=job.attempts + 1,
            max_retries=job.max_retries,
            worker_id=self.worker_id,
            timeout_seconds=self.job_timeout,
        )

        logger.info(
            "Executing job",
            extra={
                "job_id": job.id,
                "command": job.command,
                "attempt": context.attempt,
            },
        )

        result = await execute_job(context)

        if result.success:
            await self._jobs.complete_job(job.id, result.output, worker_id=self.worker_id)
            logger.info(
                "Job completed successfully",
                extra={"job_id": job.id, "duration": f"{result.duration_ms:.0f}ms"},
            )
        else:
            await self._handle_failure(job, result.error or "Unknown error")

    async def _handle_failure(self, job: Job, error: str) -> None:
        """
        Record a failed attempt and schedule the retry, if any remains.

        Args:
            job: The job as it was claimed.
            error: Failure message.
        """
        attempts = job.attempts + 1
        failed = await self._jobs.fail_job(
            job.id,
            error,
            attempts,
            job.max_retries,
            worker_id=self.worker_id,
        )
        if failed is None:
            return

        logger.warning(
            f"Job failed (attempt {failed.attempts}/{failed.max_retries})",
            extra={"job_id": job.id, "error": error},
        )

        if failed.state == JobState.DEAD:
            return

        try:
            base = await self._config.get_int(CONFIG_BACKOFF_BASE)
        except StoreError:
            logger.warning("Could not read backoff_base, using default")
            base = self.default_backoff_base

        delay = compute_backoff(failed.attempts, base)
        self._retries.schedule(job.id, delay)
        logger.info(f"Job will retry in {delay}s", extra={"job_id": job.id})
