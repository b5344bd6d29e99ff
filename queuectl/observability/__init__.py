"""
Observability module.
Contains logging setup.
"""

from queuectl.observability.logging import bind_worker, setup_logging

__all__ = [
    "setup_logging",
    "bind_worker",
]
