"""
Error taxonomy — one exception family, classified by kind.

Detectors raise ``IgorError`` subclasses. Callers branch on ``kind``
rather than on the concrete type, so a detector can refine its
exception class without breaking anyone.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Classification of a failure."""

    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    VALIDATION = "validation"
    EXECUTION = "execution"
    CONFIGURATION = "configuration"
    IO = "io"


class IgorError(Exception):
    """Base error carrying a kind, the failing operation, and a cause."""

    default_kind = ErrorKind.EXECUTION

    def __init__(
        self,
        message: str,
        *,
        op: str = "",
        kind: ErrorKind | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.op = op
        self.kind = kind or self.default_kind
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [p for p in (self.op, self.message) if p]
        if self.cause is not None:
            parts.append(str(self.cause))
        return ": ".join(parts)

    def is_kind(self, kind: ErrorKind) -> bool:
        return self.kind == kind


class OperationCancelled(IgorError):
    """The deadline expired or the caller cancelled."""

    default_kind = ErrorKind.CANCELLED


class CapabilityNotConfigured(IgorError):
    """A required detector was never wired into the orchestrator."""

    default_kind = ErrorKind.CONFIGURATION


class UtilityNotFound(IgorError):
    """An external utility (nvidia-smi, lspci, ...) is not installed."""

    default_kind = ErrorKind.NOT_FOUND


class DriverNotLoaded(IgorError):
    """nvidia-smi ran but could not talk to the kernel driver."""

    default_kind = ErrorKind.EXECUTION


class NoDevicesFound(IgorError):
    """nvidia-smi ran but reported no devices."""

    default_kind = ErrorKind.NOT_FOUND


def wrap_os_error(err: OSError, op: str, message: str) -> IgorError:
    """Classify an ``OSError`` into the matching error kind."""
    if isinstance(err, FileNotFoundError):
        kind = ErrorKind.NOT_FOUND
    elif isinstance(err, PermissionError):
        kind = ErrorKind.PERMISSION_DENIED
    else:
        kind = ErrorKind.IO
    return IgorError(message, op=op, kind=kind, cause=err)
