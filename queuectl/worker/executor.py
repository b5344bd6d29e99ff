"""
Job command execution.

Each attempt runs the job's command through the shell in its own process
group. Non-zero exit, timeout and launch failure are all reported as a failed
JobResult; nothing raised here escapes to the worker loop.
"""

import asyncio
import logging
import os
import signal
import time
from contextlib import suppress

from queuectl.constants import EMPTY_OUTPUT_MESSAGE
from queuectl.errors import ExecutionError
from queuectl.types.job import JobContext, JobResult

logger = logging.getLogger(__name__)

# Longest slice of command output quoted in an error message
ERROR_OUTPUT_LIMIT = 1000


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it started."""
    with suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, signal.SIGKILL)


async def run_command(command: str, timeout_seconds: float) -> str:
    """
    Run a shell command and capture its combined stdout and stderr.

    Args:
        command: Command line passed to /bin/sh.
        timeout_seconds: Wall clock limit; the process group is killed when
            it is exceeded.

    Returns:
        The decoded output.

    Raises:
        ExecutionError: On launch failure, timeout or non-zero exit.
    """
    try:
        process = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            start_new_session=True,
        )
    except OSError as e:
        raise ExecutionError(f"Failed to launch command: {e}") from e

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
    except TimeoutError:
        _kill_process_group(process)
        await process.wait()
        raise ExecutionError(f"Command timed out after {timeout_seconds:g} seconds") from None
    except asyncio.CancelledError:
        _kill_process_group(process)
        raise

    output = stdout.decode(errors="replace")

    if process.returncode != 0:
        message = f"Command failed with exit code {process.returncode}"
        detail = output.strip()
        if detail:
            message = f"{message}: {detail[-ERROR_OUTPUT_LIMIT:]}"
        raise ExecutionError(message)

    return output


async def execute_job(context: JobContext) -> JobResult:
    """
    Execute one attempt of a job.

    Args:
        context: The job context.

    Returns:
        JobResult describing success or failure.
    """
    start_time = time.monotonic()

    try:
        output = await run_command(context.command, context.timeout_seconds)
    except ExecutionError as e:
        duration_ms = (time.monotonic() - start_time) * 1000
        logger.warning(
            "Job command failed",
            extra={
                "job_id": context.job_id,
                "attempt": context.attempt,
                "error": str(e),
            },
        )
        return JobResult(success=False, error=str(e), duration_ms=duration_ms)

    duration_ms = (time.monotonic() - start_time) * 1000
    return JobResult(
        success=True,
        output=output or EMPTY_OUTPUT_MESSAGE,
        duration_ms=duration_ms,
    )
