"""
Unit tests for job command execution.
"""

import pytest

from queuectl.constants import EMPTY_OUTPUT_MESSAGE
from queuectl.errors import ExecutionError
from queuectl.types.job import JobContext
from queuectl.worker.executor import ERROR_OUTPUT_LIMIT, execute_job, run_command


def make_context(command: str, timeout_seconds: float = 10, attempt: int = 1) -> JobContext:
    return JobContext(
        job_id="job-1",
        command=command,
        attempt=attempt,
        max_retries=3,
        worker_id="test-worker",
        timeout_seconds=timeout_seconds,
    )


class TestRunCommand:
    """Tests for run_command."""

    async def test_captures_stdout(self):
        """Test stdout is returned."""
        output = await run_command("echo hello", timeout_seconds=10)
        assert output == "hello\n"

    async def test_captures_stderr(self):
        """Test stderr is merged into the output."""
        output = await run_command("echo oops 1>&2", timeout_seconds=10)
        assert "oops" in output

    async def test_non_zero_exit(self):
        """Test non-zero exit raises with the exit code."""
        with pytest.raises(ExecutionError, match="exit code 3"):
            await run_command("exit 3", timeout_seconds=10)

    async def test_non_zero_exit_includes_output(self):
        """Test failure message quotes the command output."""
        with pytest.raises(ExecutionError) as exc_info:
            await run_command("echo boom; exit 1", timeout_seconds=10)

        assert str(exc_info.value) == "Command failed with exit code 1: boom"

    async def test_failure_output_truncated(self):
        """Test only the tail of long output ends up in the message."""
        with pytest.raises(ExecutionError) as exc_info:
            await run_command("printf 'x%.0s' $(seq 1 3000); exit 1", timeout_seconds=10)

        detail = str(exc_info.value).split(": ", 1)[1]
        assert len(detail) == ERROR_OUTPUT_LIMIT

    async def test_unknown_command(self):
        """Test a command the shell cannot find fails with exit 127."""
        with pytest.raises(ExecutionError, match="exit code 127"):
            await run_command("definitely-not-a-real-command-xyz", timeout_seconds=10)

    async def test_timeout(self):
        """Test a command exceeding the timeout is killed."""
        with pytest.raises(ExecutionError, match="timed out after 0.2 seconds"):
            await run_command("sleep 5", timeout_seconds=0.2)


class TestExecuteJob:
    """Tests for execute_job."""

    async def test_success(self):
        """Test a successful command yields its output."""
        result = await execute_job(make_context("echo done"))

        assert result.success is True
        assert result.output == "done\n"
        assert result.error is None
        assert result.duration_ms is not None
        assert result.duration_ms >= 0

    async def test_empty_output(self):
        """Test a silent command gets a placeholder output."""
        result = await execute_job(make_context("true"))

        assert result.success is True
        assert result.output == EMPTY_OUTPUT_MESSAGE

    async def test_failure(self):
        """Test a failing command yields an error instead of raising."""
        result = await execute_job(make_context("false"))

        assert result.success is False
        assert result.output is None
        assert "exit code 1" in result.error

    async def test_timeout(self):
        """Test a timeout is reported as a failure."""
        result = await execute_job(make_context("sleep 5", timeout_seconds=0.2))

        assert result.success is False
        assert "timed out" in result.error


class TestJobContext:
    """Tests for JobContext attempt bookkeeping."""

    def test_first_attempt(self):
        context = make_context("true", attempt=1)

        assert context.is_last_attempt is False
        assert context.remaining_attempts == 2

    def test_last_attempt(self):
        context = make_context("true", attempt=3)

        assert context.is_last_attempt is True
        assert context.remaining_attempts == 0
