"""
Worker process commands.
"""

import click

from queuectl.cli.context import pass_settings, run_with_store
from queuectl.config import Settings
from queuectl.db import Store
from queuectl.db.repository import WorkerRepository
from queuectl.worker.supervisor import run_workers


@click.group()
def worker() -> None:
    """Manage worker processes."""


@worker.command()
@click.option(
    "--count",
    "-c",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of workers to run in this process.",
)
@pass_settings
def start(settings: Settings, count: int) -> None:
    """Start workers and run until SIGINT/SIGTERM or `worker stop`."""
    click.echo(f"Starting {count} worker(s)...")
    click.echo("Press Ctrl+C to stop gracefully\n")

    async def action(store: Store) -> None:
        await run_workers(store, count, settings=settings)

    run_with_store(settings, action)
    click.echo("All workers stopped")


@worker.command()
@pass_settings
def stop(settings: Settings) -> None:
    """Ask every running worker to stop gracefully.

    Workers notice on their next heartbeat, finish the job they are running
    and exit.
    """

    async def action(store: Store) -> int:
        return await WorkerRepository(store).stop_all()

    stopped = run_with_store(settings, action)
    if stopped:
        click.echo(f"Signalled {stopped} worker(s) to stop")
    else:
        click.echo("No active workers")
