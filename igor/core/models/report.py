"""
Detection report and readiness verdict — what the orchestrator hands back.

Both are frozen snapshots: the orchestrator assembles them only after
every detection branch has joined.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from igor.core.errors import ErrorKind, IgorError
from igor.core.models.gpu import DriverKind, DriverStatus, GPURecord
from igor.core.models.pci import PCIDevice
from igor.core.models.system import KernelInfo, NouveauStatus
from igor.core.models.validation import ValidationReport

WARNING_PREFIX = "Warning: "


class DetectionIssue(BaseModel):
    """A non-fatal failure recorded by one detection branch."""

    model_config = ConfigDict(frozen=True)

    source: str            # branch name: gpus, driver, nouveau, kernel, validation
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, source: str, exc: BaseException) -> DetectionIssue:
        kind = exc.kind if isinstance(exc, IgorError) else ErrorKind.EXECUTION
        return cls(source=source, kind=kind, message=str(exc) or exc.__class__.__name__)

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


class DetectionReport(BaseModel):
    """Everything one full detection run learned about the host."""

    model_config = ConfigDict(frozen=True)

    pci_devices: tuple[PCIDevice, ...] = ()
    gpus: tuple[GPURecord, ...] = ()
    driver: DriverStatus | None = None
    nouveau: NouveauStatus | None = None
    kernel: KernelInfo | None = None
    validation: ValidationReport | None = None
    started_at: datetime
    duration_ms: int = 0
    errors: tuple[DetectionIssue, ...] = ()

    @property
    def has_nvidia_gpus(self) -> bool:
        return bool(self.gpus)

    @property
    def gpu_count(self) -> int:
        return len(self.gpus)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def is_driver_installed(self) -> bool:
        return self.driver is not None and self.driver.installed

    @property
    def is_nvidia_driver(self) -> bool:
        return self.driver is not None and self.driver.kind == DriverKind.NVIDIA

    @property
    def is_nouveau_loaded(self) -> bool:
        return self.nouveau is not None and self.nouveau.loaded

    @property
    def has_validation_errors(self) -> bool:
        return self.validation is not None and self.validation.has_errors

    @property
    def has_validation_warnings(self) -> bool:
        return self.validation is not None and self.validation.has_warnings

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["gpu_count"] = self.gpu_count
        return data


# ── Readiness ───────────────────────────────────────────────────────


class ReasonKind(StrEnum):
    BLOCKING = "blocking"
    WARNING = "warning"


class Reason(BaseModel):
    """One readiness reason; renders with ``Warning: `` when non-blocking."""

    model_config = ConfigDict(frozen=True)

    kind: ReasonKind
    text: str

    @classmethod
    def blocking(cls, text: str) -> Reason:
        return cls(kind=ReasonKind.BLOCKING, text=text)

    @classmethod
    def warning(cls, text: str) -> Reason:
        return cls(kind=ReasonKind.WARNING, text=text)

    def __str__(self) -> str:
        if self.kind == ReasonKind.WARNING:
            return f"{WARNING_PREFIX}{self.text}"
        return self.text


class Readiness(BaseModel):
    """Whether driver installation may proceed, and why (not)."""

    model_config = ConfigDict(frozen=True)

    ready: bool
    gpu_count: int = 0
    reasons: tuple[Reason, ...] = ()

    @property
    def messages(self) -> list[str]:
        """Reasons rendered as plain strings, in precedence order."""
        return [str(r) for r in self.reasons]

    @property
    def blocking(self) -> list[Reason]:
        return [r for r in self.reasons if r.kind == ReasonKind.BLOCKING]

    def to_dict(self) -> dict:
        return {
            "ready": self.ready,
            "gpu_count": self.gpu_count,
            "reasons": self.messages,
        }
