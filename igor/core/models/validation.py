"""
Validation models — check results and the aggregated report.

Severity decides where a failed check lands:

    error   → blocks readiness, flips ``passed`` to False for good
    warning → flagged, never blocks
    info    → descriptive only
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

from pydantic import Field

from igor.core.models.base import SealableModel


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class CheckName(StrEnum):
    """The fixed set of validation rules."""

    KERNEL_VERSION = "kernel_version"
    KERNEL_HEADERS = "kernel_headers"
    DISK_SPACE = "disk_space"
    SECURE_BOOT = "secure_boot"
    BUILD_TOOLS = "build_tools"
    NOUVEAU_STATUS = "nouveau_status"


class CheckResult(SealableModel):
    """Outcome of one validation rule.

    ``with_remediation`` and ``with_detail`` return the same instance so
    a check can be built in one expression. Once sealed, neither works.
    """

    name: CheckName
    passed: bool
    message: str
    severity: Severity
    remediation: str = ""
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, name: CheckName, message: str, severity: Severity = Severity.INFO) -> CheckResult:
        return cls(name=name, passed=True, message=message, severity=severity)

    @classmethod
    def fail(cls, name: CheckName, message: str, severity: Severity = Severity.ERROR) -> CheckResult:
        return cls(name=name, passed=False, message=message, severity=severity)

    def with_remediation(self, remediation: str) -> CheckResult:
        self.remediation = remediation
        return self

    def with_detail(self, key: str, value: Any) -> CheckResult:
        self.details = {**self.details, key: value}
        return self

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return f"[{status}] {self.name}: {self.message}"


def _now() -> datetime:
    return datetime.now(UTC)


class ValidationReport(SealableModel):
    """Ordered check results with derived aggregates.

    ``add_check`` is the only way in; it keeps ``passed`` and the
    error/warning/info sub-lists consistent with ``checks``. ``seal()``
    freezes the report and every check in it.
    """

    checks: tuple[CheckResult, ...] = ()
    errors: tuple[CheckResult, ...] = ()
    warnings: tuple[CheckResult, ...] = ()
    infos: tuple[CheckResult, ...] = ()
    passed: bool = True
    timestamp: datetime = Field(default_factory=_now)
    duration_ms: int | None = None

    def add_check(self, check: CheckResult) -> None:
        self.checks = (*self.checks, check)

        if check.severity == Severity.ERROR and not check.passed:
            self.errors = (*self.errors, check)
            self.passed = False
        elif check.severity == Severity.WARNING and not check.passed:
            self.warnings = (*self.warnings, check)
        elif check.severity == Severity.INFO:
            self.infos = (*self.infos, check)

    def finish(self, duration_ms: int) -> None:
        """Record the run duration. Only the first call counts."""
        if self.duration_ms is None:
            self.duration_ms = duration_ms

    def seal(self) -> Self:
        for check in self.checks:
            check.seal()
        return super().seal()

    # ── Aggregates ──────────────────────────────────────────────

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def total_checks(self) -> int:
        return len(self.checks)

    @property
    def passed_checks(self) -> int:
        return sum(1 for c in self.checks if c.passed)

    @property
    def failed_checks(self) -> int:
        return self.total_checks - self.passed_checks

    def get_check(self, name: CheckName | str) -> CheckResult | None:
        for check in self.checks:
            if check.name == name:
                return check
        return None

    def summary(self) -> str:
        verdict = "PASSED" if self.passed else "FAILED"
        return (
            f"Validation {verdict}: {self.passed_checks}/{self.total_checks} checks passed, "
            f"{self.error_count} errors, {self.warning_count} warnings"
        )
