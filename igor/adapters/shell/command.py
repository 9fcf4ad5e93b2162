"""
Shell command runner — execute host utilities and capture output.

Used for lspci, nvidia-smi and mokutil. Commands are run without a
shell; the timeout is the smaller of the runner's own limit and
whatever is left on the caller's deadline.
"""

from __future__ import annotations

import logging
import subprocess
import time

from igor.adapters.base import CommandResult, CommandRunner
from igor.core.deadline import Deadline

logger = logging.getLogger(__name__)


class ShellCommandRunner(CommandRunner):
    """Run commands via ``subprocess.run`` with captured text output.

    Output is decoded as UTF-8; undecodable bytes become U+FFFD.

    Args:
        timeout: Per-command ceiling in seconds (default: 120).
    """

    def __init__(self, timeout: float = 120.0):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "shell"

    def run(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> CommandResult:
        args = list(args or [])
        timeout = self._timeout
        if deadline is not None:
            if deadline.expired:
                return CommandResult(
                    command=command, args=args, exit_code=-1,
                    error="deadline exceeded before start",
                )
            remaining = deadline.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)

        logger.debug("Executing: %s %s (timeout=%.1fs)", command, " ".join(args), timeout)
        start = time.monotonic()

        try:
            proc = subprocess.run(
                [command, *args],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except FileNotFoundError:
            return CommandResult(
                command=command, args=args, exit_code=127,
                stderr=f"{command}: command not found",
                error=f"command not found: {command}",
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=command, args=args, exit_code=-1,
                duration_ms=int((time.monotonic() - start) * 1000),
                error=f"Command timed out after {timeout:.1f}s",
            )
        except Exception as e:
            return CommandResult(
                command=command, args=args, exit_code=-1,
                error=f"Command execution error: {e}",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if proc.returncode != 0:
            logger.debug("%s exited with code %d", command, proc.returncode)

        return CommandResult(
            command=command,
            args=args,
            stdout=proc.stdout,
            stderr=proc.stderr,
            exit_code=proc.returncode,
            duration_ms=elapsed_ms,
        )
