"""
Type definitions for the job queue.
Contains input/output type definitions for all functions, grouped by module.
"""

from queuectl.types.api import JobSpec, JobView
from queuectl.types.job import JobContext, JobResult

__all__ = [
    # CLI types
    "JobSpec",
    "JobView",
    # Job types
    "JobContext",
    "JobResult",
]
