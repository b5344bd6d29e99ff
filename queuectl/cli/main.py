"""
Entry point for the queuectl command line.
"""

import click

from queuectl import __version__
from queuectl.cli.commands import config, dlq, enqueue, list_jobs, status, worker
from queuectl.config import get_settings
from queuectl.observability.logging import setup_logging


@click.group()
@click.version_option(__version__, prog_name="queuectl")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """CLI-based background job queue system."""
    if ctx.obj is None:
        ctx.obj = get_settings()
    setup_logging(ctx.obj)


cli.add_command(enqueue)
cli.add_command(status)
cli.add_command(list_jobs)
cli.add_command(worker)
cli.add_command(dlq)
cli.add_command(config)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
