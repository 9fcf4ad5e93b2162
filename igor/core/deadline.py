"""
Deadline — cooperative cancellation for detection calls.

A deadline is installed once at the top of an orchestrator call and
handed down to every detector. Nothing is interrupted mid-syscall:
callers invoke ``check()`` at call boundaries and once per item of a
multi-item scan.

    deadline = Deadline(timeout=30)
    child = deadline.child(5)      # expires at the earlier of the two
    child.check("pci.scan_all")    # raises OperationCancelled once expired
"""

from __future__ import annotations

import threading
import time

from igor.core.errors import OperationCancelled


class Deadline:
    """Monotonic-clock deadline with explicit cancellation.

    Args:
        timeout: Seconds until expiry. ``None`` never expires on its own.
        parent: Optional enclosing deadline; its expiry or cancellation
            propagates to this one.
    """

    def __init__(self, timeout: float | None = None, parent: Deadline | None = None):
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._parent = parent
        self._cancelled = threading.Event()

    def child(self, timeout: float | None = None) -> Deadline:
        """Derive a deadline that expires no later than this one."""
        return Deadline(timeout=timeout, parent=self)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent.cancelled if self._parent else False

    @property
    def expired(self) -> bool:
        """True once cancelled or past the expiry time (own or parent's)."""
        if self._cancelled.is_set():
            return True
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            return True
        return self._parent.expired if self._parent else False

    def remaining(self) -> float | None:
        """Seconds left, or ``None`` when unbounded."""
        own = None
        if self._expires_at is not None:
            own = max(0.0, self._expires_at - time.monotonic())
        inherited = self._parent.remaining() if self._parent else None
        if own is None:
            return inherited
        if inherited is None:
            return own
        return min(own, inherited)

    def check(self, op: str = "") -> None:
        """Raise ``OperationCancelled`` if the deadline has passed."""
        if not self.expired:
            return
        reason = "operation cancelled" if self.cancelled else "deadline exceeded"
        raise OperationCancelled(reason, op=op)

    def __repr__(self) -> str:
        return f"<Deadline remaining={self.remaining()!r} cancelled={self.cancelled}>"


def ensure(deadline: Deadline | None) -> Deadline:
    """Return ``deadline`` or an unbounded one."""
    return deadline if deadline is not None else Deadline()
