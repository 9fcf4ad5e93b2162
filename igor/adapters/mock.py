"""
Mock command runner — scripted test double for external utilities.

Responses are looked up by the full command line first ("nvidia-smi
--query-gpu=..."), then by the bare command name. Anything unscripted
behaves like a binary missing from PATH.
"""

from __future__ import annotations

import threading

from igor.adapters.base import CommandResult, CommandRunner
from igor.core.deadline import Deadline


class MockCommandRunner(CommandRunner):
    """Universal mock runner for testing.

    Safe to share between the orchestrator's worker threads.
    """

    def __init__(self, runner_name: str = "mock", default: CommandResult | None = None):
        self._name = runner_name
        self._default = default
        self._responses: dict[str, CommandResult] = {}
        self._call_log: list[str] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[str]:
        """Every command line this mock has received, in order."""
        with self._lock:
            return list(self._call_log)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._call_log)

    def called(self, command: str) -> bool:
        """Whether any call started with ``command``."""
        return any(line.split()[0] == command for line in self.call_log)

    def set_response(self, key: str, result: CommandResult) -> None:
        """Script a response for a command name or a full command line."""
        with self._lock:
            self._responses[key] = result

    def set_output(self, key: str, stdout: str, stderr: str = "") -> None:
        command, *args = key.split()
        self.set_response(key, CommandResult.success(command, args, stdout=stdout, stderr=stderr))

    def set_failure(self, key: str, stderr: str = "Mock failure", exit_code: int = 1) -> None:
        """Configure a command to exit non-zero."""
        command, *args = key.split()
        self.set_response(key, CommandResult.failure(command, args, stderr=stderr, exit_code=exit_code))

    def run(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> CommandResult:
        args = list(args or [])
        line = " ".join([command, *args])
        with self._lock:
            self._call_log.append(line)
            scripted = self._responses.get(line) or self._responses.get(command)

        if deadline is not None and deadline.expired:
            return CommandResult(command=command, args=args, exit_code=-1, error="deadline exceeded before start")
        if scripted is not None:
            return scripted.model_copy(update={"command": command, "args": args})
        if self._default is not None:
            return self._default.model_copy(update={"command": command, "args": args})
        return CommandResult(
            command=command, args=args, exit_code=127,
            stderr=f"{command}: command not found",
            error=f"command not found: {command}",
        )

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        with self._lock:
            self._call_log.clear()
            self._responses.clear()
