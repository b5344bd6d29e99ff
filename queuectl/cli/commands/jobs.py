"""
Job submission and inspection commands.
"""

from datetime import datetime, timezone

import click

from queuectl.cli.context import pass_settings, run_with_store
from queuectl.config import Settings
from queuectl.constants import JobState, WorkerStatus
from queuectl.db import Job, Store
from queuectl.db.models import as_utc
from queuectl.db.repository import JobRepository, WorkerRepository
from queuectl.types.api import JobSpec, JobView

# Longest slice of job output shown by `list`
OUTPUT_PREVIEW_LENGTH = 100


def format_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return as_utc(value).strftime("%Y-%m-%d %H:%M:%S UTC")


def echo_job(job: Job, show_output: bool = True) -> None:
    """Print one job as a block of `Label: value` lines."""
    click.echo(f"ID:       {job.id}")
    click.echo(f"Command:  {job.command}")
    click.echo(f"State:    {job.state}")
    click.echo(f"Attempts: {job.attempts}/{job.max_retries}")
    click.echo(f"Created:  {format_time(job.created_at)}")
    if job.scheduled_at is not None:
        click.echo(f"Runs at:  {format_time(job.scheduled_at)}")
    if job.last_error:
        click.echo(f"Error:    {job.last_error}")
    if show_output and job.output:
        preview = job.output[:OUTPUT_PREVIEW_LENGTH]
        suffix = "..." if len(job.output) > OUTPUT_PREVIEW_LENGTH else ""
        click.echo(f"Output:   {preview}{suffix}")
    click.echo("---")


@click.command()
@click.argument("job_json")
@pass_settings
def enqueue(settings: Settings, job_json: str) -> None:
    """Add a new job to the queue.

    JOB_JSON is a JSON object such as '{"id": "job1", "command": "echo hi"}'.
    Optional fields: max_retries, scheduled_at (ISO 8601).
    """

    async def action(store: Store) -> Job:
        spec = JobSpec.from_json(job_json)
        return await JobRepository(store).create_job(spec)

    job = run_with_store(settings, action)
    click.echo("Job enqueued successfully:")
    click.echo(JobView.model_validate(job).model_dump_json(indent=2))


@click.command()
@pass_settings
def status(settings: Settings) -> None:
    """Show a summary of job states and active workers."""

    async def action(store: Store):
        stats = await JobRepository(store).get_job_stats()
        workers = await WorkerRepository(store).list_workers(WorkerStatus.ACTIVE)
        return stats, workers

    stats, workers = run_with_store(settings, action)

    click.echo("\n=== Job Queue Status ===\n")
    click.echo(f"Total Jobs:      {stats['total']}")
    click.echo(f"Pending:         {stats[JobState.PENDING]}")
    click.echo(f"Processing:      {stats[JobState.PROCESSING]}")
    click.echo(f"Completed:       {stats[JobState.COMPLETED]}")
    click.echo(f"Failed:          {stats[JobState.FAILED]}")
    click.echo(f"Dead (DLQ):      {stats[JobState.DEAD]}")
    click.echo(f"\nActive Workers:  {len(workers)}")

    if workers:
        click.echo("\n--- Active Workers ---")
        now = datetime.now(timezone.utc)
        for worker in workers:
            uptime = int((now - as_utc(worker.started_at)).total_seconds())
            activity = (
                f"Processing {worker.current_job_id}" if worker.current_job_id else "Idle"
            )
            click.echo(f"  {worker.id}: {activity} (uptime: {uptime}s)")

    click.echo("")


@click.command(name="list")
@click.option(
    "--state",
    "-s",
    type=click.Choice([state.value for state in JobState] + ["all"]),
    default="all",
    show_default=True,
    help="Filter by job state.",
)
@pass_settings
def list_jobs(settings: Settings, state: str) -> None:
    """List jobs, optionally filtered by state."""

    async def action(store: Store):
        repo = JobRepository(store)
        if state == "all":
            return await repo.list_jobs()
        return await repo.list_jobs_by_state(JobState(state))

    jobs = run_with_store(settings, action)

    if not jobs:
        qualifier = f" with state: {state}" if state != "all" else ""
        click.echo(f"No jobs found{qualifier}")
        return

    click.echo(f"\nFound {len(jobs)} job(s):\n")
    for job in jobs:
        echo_job(job)
