"""
Runtime configuration commands.
"""

import click

from queuectl.cli.context import pass_settings, run_with_store
from queuectl.config import Settings
from queuectl.db import Store
from queuectl.db.repository import ConfigRepository, normalize_config_key


def display_key(key: str) -> str:
    return key.replace("_", "-")


@click.group()
def config() -> None:
    """Read and change retry settings (max-retries, backoff-base)."""


@config.command(name="get")
@click.argument("key")
@pass_settings
def get_value(settings: Settings, key: str) -> None:
    """Print the value of KEY."""

    async def action(store: Store) -> tuple[str, str]:
        normalized = normalize_config_key(key)
        return normalized, await ConfigRepository(store).get(normalized)

    normalized, value = run_with_store(settings, action)
    click.echo(f"{display_key(normalized)} = {value}")


@config.command(name="set")
@click.argument("key")
@click.argument("value")
@pass_settings
def set_value(settings: Settings, key: str, value: str) -> None:
    """Set KEY to a positive integer VALUE."""

    async def action(store: Store) -> str:
        return await ConfigRepository(store).set(key, value)

    normalized = run_with_store(settings, action)
    click.echo(f"Configuration updated: {display_key(normalized)} = {value.strip()}")


@config.command(name="list")
@pass_settings
def list_values(settings: Settings) -> None:
    """Show all configuration values."""

    async def action(store: Store) -> dict[str, str]:
        return await ConfigRepository(store).list_values()

    values = run_with_store(settings, action)

    click.echo("\n=== Configuration ===\n")
    for key, value in values.items():
        click.echo(f"{display_key(key) + ':':<15} {value}")
    click.echo("")
