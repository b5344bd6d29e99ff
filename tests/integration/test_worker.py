"""
Integration tests for worker functionality.
"""

import asyncio
from pathlib import Path

import pytest

from queuectl.constants import JobState, WorkerStatus
from queuectl.db import Job, Store
from queuectl.db.models import as_utc, utcnow
from queuectl.db.repository import ConfigRepository, JobRepository, WorkerRepository
from queuectl.types.api import JobSpec
from queuectl.worker import Worker


async def wait_for_state(
    repo: JobRepository,
    job_id: str,
    state: JobState,
    timeout: float = 10.0,
) -> Job:
    """Poll until the job reaches a state."""
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        job = await repo.get_job(job_id)
        if job is not None and job.state == state:
            return job
        if asyncio.get_running_loop().time() > deadline:
            pytest.fail(f"Job {job_id} never reached {state}, last seen: {job!r}")
        await asyncio.sleep(0.05)


class TestWorkerIntegration:
    """Integration tests for worker job processing."""

    async def test_full_job_lifecycle_success(
        self,
        store: Store,
        job_repo: JobRepository,
        worker_repo: WorkerRepository,
    ):
        """Test complete job lifecycle: enqueue -> claim -> run -> complete."""
        await job_repo.create_job(JobSpec(id="job1", command="echo hello"))

        worker = Worker(store, worker_id="worker-1")
        await worker.start()
        try:
            job = await wait_for_state(job_repo, "job1", JobState.COMPLETED)
        finally:
            await worker.stop()

        assert job.output == "hello\n"
        assert job.attempts == 0
        assert job.locked_by is None
        assert job.locked_at is None

        record = await worker_repo.get_worker("worker-1")
        assert record.status == WorkerStatus.STOPPED
        assert record.current_job_id is None

    async def test_retries_then_dead(
        self,
        store: Store,
        job_repo: JobRepository,
        config_repo: ConfigRepository,
    ):
        """Test a failing job is retried with backoff and ends in the DLQ."""
        await config_repo.set("backoff-base", "1")
        await job_repo.create_job(JobSpec(id="job1", command="exit 1", max_retries=2))

        worker = Worker(store)
        await worker.start()
        try:
            failed = await wait_for_state(job_repo, "job1", JobState.FAILED)
            assert failed.attempts == 1
            assert "exit code 1" in failed.last_error

            dead = await wait_for_state(job_repo, "job1", JobState.DEAD)
        finally:
            await worker.stop()

        assert dead.attempts == 2
        assert dead.locked_by is None

    async def test_dlq_retry_fails_straight_back(
        self,
        store: Store,
        job_repo: JobRepository,
    ):
        """Test a dead job retried by hand returns to the DLQ on failure."""
        await job_repo.create_job(JobSpec(id="job1", command="false", max_retries=1))

        worker = Worker(store)
        await worker.start()
        try:
            await wait_for_state(job_repo, "job1", JobState.DEAD)

            requeued = await job_repo.requeue_job("job1")
            assert requeued.state == JobState.PENDING

            dead = await wait_for_state(job_repo, "job1", JobState.DEAD)
        finally:
            await worker.stop()

        assert dead.attempts == 1

    async def test_locked_only_while_processing(
        self,
        store: Store,
        job_repo: JobRepository,
        worker_repo: WorkerRepository,
    ):
        """Test the lock and worker row track the running job."""
        await job_repo.create_job(JobSpec(id="job1", command="sleep 0.5"))

        worker = Worker(store, worker_id="worker-1")
        await worker.start()
        try:
            running = await wait_for_state(job_repo, "job1", JobState.PROCESSING)
            assert running.locked_by == "worker-1"
            assert running.locked_at is not None
            assert worker.current_job_id == "job1"

            done = await wait_for_state(job_repo, "job1", JobState.COMPLETED)
            assert done.locked_by is None
        finally:
            await worker.stop()

        assert worker.current_job_id is None

    async def test_graceful_stop_finishes_running_job(
        self,
        store: Store,
        job_repo: JobRepository,
    ):
        """Test stop waits for the job in hand and claims nothing more."""
        await job_repo.create_job(JobSpec(id="slow", command="sleep 1"))

        worker = Worker(store)
        await worker.start()
        await wait_for_state(job_repo, "slow", JobState.PROCESSING)
        await job_repo.create_job(JobSpec(id="next", command="true"))

        await worker.stop()

        assert (await job_repo.get_job("slow")).state == JobState.COMPLETED
        assert (await job_repo.get_job("next")).state == JobState.PENDING
        assert worker.is_running is False

    async def test_stop_flushes_pending_retries(
        self,
        store: Store,
        job_repo: JobRepository,
        config_repo: ConfigRepository,
    ):
        """Test a retry still in backoff is handed over on stop."""
        await config_repo.set("backoff-base", "30")
        await job_repo.create_job(JobSpec(id="job1", command="false"))

        worker = Worker(store)
        await worker.start()
        await wait_for_state(job_repo, "job1", JobState.FAILED)
        while "job1" not in worker.retries.pending:
            await asyncio.sleep(0.01)

        await worker.stop()

        job = await job_repo.get_job("job1")
        assert job.state == JobState.PENDING
        assert as_utc(job.scheduled_at) > utcnow()
        assert await job_repo.claim_next_job("other") is None

    async def test_stopped_externally(
        self,
        store: Store,
        worker_repo: WorkerRepository,
    ):
        """Test marking workers stopped makes running workers exit."""
        worker = Worker(store, worker_id="worker-1")
        await worker.start()

        assert await worker_repo.stop_all() == 1

        await asyncio.wait_for(worker.wait_stopped(), timeout=5)
        assert worker.is_running is False

    async def test_concurrent_workers_run_each_job_once(
        self,
        store: Store,
        job_repo: JobRepository,
        tmp_path: Path,
    ):
        """Test several workers drain the queue without running a job twice."""
        log_file = tmp_path / "runs.log"
        job_ids = [f"job{i}" for i in range(8)]
        for job_id in job_ids:
            await job_repo.create_job(
                JobSpec(id=job_id, command=f"echo {job_id} >> {log_file}")
            )

        workers = [Worker(store, worker_id=f"worker-{i}") for i in range(3)]
        for worker in workers:
            await worker.start()
        try:
            for job_id in job_ids:
                await wait_for_state(job_repo, job_id, JobState.COMPLETED)
        finally:
            await asyncio.gather(*(w.stop() for w in workers))

        runs = log_file.read_text().split()
        assert sorted(runs) == sorted(job_ids)

    async def test_process_next_job_empty_queue(self, store: Store):
        """Test a claim attempt with nothing queued."""
        worker = Worker(store)
        assert await worker.process_next_job() is False

    async def test_start_twice(self, store: Store):
        worker = Worker(store)
        await worker.start()
        try:
            with pytest.raises(RuntimeError, match="already started"):
                await worker.start()
        finally:
            await worker.stop()

    async def test_stop_before_start(self, store: Store):
        """Test stopping a worker that never started returns at once."""
        worker = Worker(store)
        await asyncio.wait_for(worker.stop(), timeout=1)
