"""
Database module.
Contains the store handle, models, and repository implementations.
"""

from queuectl.db.connection import Store
from queuectl.db.models import Base, ConfigEntry, Job, WorkerRecord

__all__ = [
    "Store",
    "Base",
    "Job",
    "WorkerRecord",
    "ConfigEntry",
]
