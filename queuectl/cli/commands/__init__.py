"""
CLI command groups.
"""

from queuectl.cli.commands.config import config
from queuectl.cli.commands.dlq import dlq
from queuectl.cli.commands.jobs import enqueue, list_jobs, status
from queuectl.cli.commands.workers import worker

__all__ = ["config", "dlq", "enqueue", "list_jobs", "status", "worker"]
