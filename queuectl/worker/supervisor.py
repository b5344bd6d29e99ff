"""
Worker supervisor.

Runs N workers in one process and relays termination signals to them. The
process only exits after every worker has confirmed it is stopped.
"""

import asyncio
import logging
import signal

from queuectl.config import Settings
from queuectl.db import Store
from queuectl.worker.main import Worker

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class Supervisor:
    """
    Starts workers, waits for a shutdown trigger, stops them all.

    Shutdown is triggered by SIGTERM/SIGINT, by request_shutdown(), or by
    every worker having stopped on its own (e.g. `queuectl worker stop`).
    """

    def __init__(
        self,
        store: Store,
        count: int = 1,
        settings: Settings | None = None,
        install_signal_handlers: bool = True,
    ):
        if count < 1:
            raise ValueError("count must be at least 1")

        self._store = store
        self._settings = settings or store.settings
        self._count = count
        self._install_signal_handlers = install_signal_handlers
        self._shutdown = asyncio.Event()
        self.workers: list[Worker] = []

    def request_shutdown(self) -> None:
        """Ask all workers to stop."""
        if not self._shutdown.is_set():
            logger.info("Received shutdown signal, stopping workers")
        self._shutdown.set()

    async def run(self, started: asyncio.Event | None = None) -> None:
        """
        Run workers until shutdown.

        Args:
            started: Set once every worker is running.
        """
        loop = asyncio.get_running_loop()
        if self._install_signal_handlers:
            for sig in SHUTDOWN_SIGNALS:
                loop.add_signal_handler(sig, self.request_shutdown)

        try:
            for _ in range(self._count):
                worker = Worker(self._store, settings=self._settings)
                await worker.start()
                self.workers.append(worker)

            logger.info(f"Started {len(self.workers)} worker(s)")
            if started is not None:
                started.set()

            shutdown = asyncio.create_task(self._shutdown.wait())
            all_stopped = asyncio.gather(*(w.wait_stopped() for w in self.workers))
            await asyncio.wait(
                {shutdown, all_stopped},
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in (shutdown, all_stopped):
                task.cancel()
        finally:
            if self._install_signal_handlers:
                for sig in SHUTDOWN_SIGNALS:
                    loop.remove_signal_handler(sig)

            await asyncio.gather(*(w.stop() for w in self.workers))
            logger.info("All workers stopped")


async def run_workers(store: Store, count: int, settings: Settings | None = None) -> None:
    """Run `count` workers until a termination signal arrives."""
    supervisor = Supervisor(store, count=count, settings=settings)
    await supervisor.run()
