"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass

from pydantic import BaseModel


class JobResult(BaseModel):
    """
    Result of running a job's command.
    Returned by the executor after the subprocess finishes.
    """

    success: bool
    output: str | None = None
    error: str | None = None
    duration_ms: float | None = None


@dataclass
class JobContext:
    """
    Context passed to the executor for one attempt.
    Contains the command and what the worker knows about the attempt.
    """

    job_id: str
    command: str
    attempt: int
    max_retries: int
    worker_id: str
    timeout_seconds: float

    @property
    def is_last_attempt(self) -> bool:
        """Check if a failure of this attempt sends the job to the DLQ."""
        return self.attempt >= self.max_retries

    @property
    def remaining_attempts(self) -> int:
        """Get remaining retry attempts after this one."""
        return max(0, self.max_retries - self.attempt)
