"""
Shared plumbing for CLI commands.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

from queuectl.config import Settings
from queuectl.db import Store
from queuectl.errors import QueueError

T = TypeVar("T")

pass_settings = click.make_pass_decorator(Settings)


def run_with_store(settings: Settings, action: Callable[[Store], Awaitable[T]]) -> T:
    """
    Open a store, run an async action against it, and close the store.

    Queue errors become a ClickException: one `Error: ...` line on stderr
    and exit status 1.

    Args:
        settings: Settings for the store.
        action: Coroutine function receiving the store.

    Returns:
        Whatever the action returns.
    """

    async def runner() -> T:
        store = Store.from_settings(settings)
        try:
            if settings.database_auto_create:
                await store.create_schema()
            return await action(store)
        finally:
            await store.close()

    try:
        return asyncio.run(runner())
    except QueueError as e:
        raise click.ClickException(str(e)) from e
