"""
Adapter base — the contract between detectors and external commands.

Detectors never call ``subprocess`` directly. They go through a
``CommandRunner`` so tests can script command output with the mock
runner and production code gets timeouts and logging in one place.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from igor.core.deadline import Deadline


class CommandResult(BaseModel):
    """Outcome of one external command.

    Runners NEVER raise — a missing binary, a timeout or a non-zero
    exit status are all captured here.
    """

    command: str
    args: list[str] = Field(default_factory=list)
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    duration_ms: int = 0
    error: str | None = None     # set when the command could not run at all

    @property
    def ok(self) -> bool:
        """Whether the command ran and exited with status 0."""
        return self.error is None and self.exit_code == 0

    @property
    def not_found(self) -> bool:
        """Whether the binary was missing from PATH."""
        return self.exit_code == 127

    @property
    def stdout_lines(self) -> list[str]:
        """Non-empty stdout lines, stripped."""
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]

    @property
    def combined(self) -> str:
        """stdout followed by stderr."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])

    @classmethod
    def success(cls, command: str, args: list[str] | None = None, stdout: str = "", **kwargs) -> CommandResult:
        """Create a successful result."""
        return cls(command=command, args=args or [], stdout=stdout, exit_code=0, **kwargs)

    @classmethod
    def failure(
        cls,
        command: str,
        args: list[str] | None = None,
        stderr: str = "",
        exit_code: int = 1,
        **kwargs,
    ) -> CommandResult:
        """Create a failed result."""
        return cls(command=command, args=args or [], stderr=stderr, exit_code=exit_code, **kwargs)


class CommandRunner(ABC):
    """Abstract base class for command execution.

    To create a new runner:
        1. Subclass CommandRunner
        2. Implement name and run
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'shell', 'mock')."""

    @abstractmethod
    def run(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> CommandResult:
        """Run ``command`` with ``args`` and return its result.

        MUST never raise exceptions. An already-expired deadline yields
        a failed result without starting the process.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
