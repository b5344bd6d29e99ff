"""
CLI module.
Contains the click command group and its subcommands.
"""

from queuectl.cli.main import cli

__all__ = ["cli"]
