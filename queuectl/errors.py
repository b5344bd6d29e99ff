"""
Exception hierarchy for queue operations.

Validation and lookup errors surface straight to the caller. Store errors are
transient and the worker loop retries on its next tick. Execution errors never
escape the worker; they are recorded on the job instead.
"""


class QueueError(Exception):
    """Base class for all queuectl errors."""


class ValidationError(QueueError):
    """Malformed job spec, unknown config key or non-numeric config value."""


class DuplicateJobError(ValidationError):
    """A job with the requested id already exists."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} already exists")
        self.job_id = job_id


class NotFoundError(QueueError):
    """The requested job does not exist."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class StoreError(QueueError):
    """The database could not be reached or a query failed."""


class ExecutionError(QueueError):
    """A job command exited non-zero, timed out or could not be launched."""
