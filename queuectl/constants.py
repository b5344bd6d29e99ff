"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobState(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING (claimed by a worker)
    - PROCESSING -> COMPLETED (success)
    - PROCESSING -> FAILED (failure, retries left)
    - PROCESSING -> DEAD (failure, retries exhausted)
    - FAILED -> PENDING (backoff elapsed)
    - DEAD -> PENDING (manual retry from the DLQ)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD = "dead"


class WorkerStatus(StrEnum):
    """Worker record states."""

    ACTIVE = "active"
    STOPPED = "stopped"


# States a job may be requeued from
REQUEUEABLE_STATES = (JobState.FAILED, JobState.DEAD)

# Default values
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 2
DEFAULT_JOB_TIMEOUT_SECONDS = 300

# Runtime configuration keys stored in the config table
CONFIG_MAX_RETRIES = "max_retries"
CONFIG_BACKOFF_BASE = "backoff_base"
CONFIG_KEYS = (CONFIG_MAX_RETRIES, CONFIG_BACKOFF_BASE)

# Output shown for a successful command that printed nothing
EMPTY_OUTPUT_MESSAGE = "Command executed successfully"
