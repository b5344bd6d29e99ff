"""
Dead letter queue commands.
"""

import click

from queuectl.cli.commands.jobs import echo_job
from queuectl.cli.context import pass_settings, run_with_store
from queuectl.config import Settings
from queuectl.constants import JobState
from queuectl.db import Job, Store
from queuectl.db.repository import JobRepository
from queuectl.errors import NotFoundError, ValidationError


@click.group()
def dlq() -> None:
    """Inspect and retry dead jobs."""


@dlq.command(name="list")
@pass_settings
def list_dead(settings: Settings) -> None:
    """List jobs in the dead letter queue."""

    async def action(store: Store):
        return await JobRepository(store).list_jobs_by_state(JobState.DEAD)

    jobs = run_with_store(settings, action)

    if not jobs:
        click.echo("No jobs in DLQ")
        return

    click.echo(f"\n=== Dead Letter Queue ({len(jobs)} jobs) ===\n")
    for job in jobs:
        echo_job(job, show_output=False)


@dlq.command()
@click.argument("job_id")
@pass_settings
def retry(settings: Settings, job_id: str) -> None:
    """Move a dead job back to pending with its attempts reset."""

    async def action(store: Store) -> Job:
        repo = JobRepository(store)
        job = await repo.get_job(job_id)
        if job is None:
            raise NotFoundError(job_id)
        if job.state != JobState.DEAD:
            raise ValidationError(
                f"Job {job_id} is not in DLQ (current state: {job.state})"
            )

        requeued = await repo.requeue_job(job_id)
        if requeued is None:
            raise ValidationError(f"Job {job_id} changed state, not requeued")
        return requeued

    run_with_store(settings, action)
    click.echo(f"Job {job_id} moved back to queue for retry")
