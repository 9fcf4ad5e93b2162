"""Adapters — bindings for external host utilities.

Public re-exports for convenient access.
"""

from igor.adapters.base import CommandResult, CommandRunner
from igor.adapters.mock import MockCommandRunner
from igor.adapters.shell.command import ShellCommandRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "MockCommandRunner",
    "ShellCommandRunner",
]
