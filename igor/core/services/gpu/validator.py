"""
System validator — the pre-install check battery.

Checks run in a fixed order:

    kernel_version → disk_space → kernel_headers
    → build_tools → secure_boot → nouveau_status

Every check returns a CheckResult, even when its detector blows up.
The deadline is checked before each check; once it has passed the
run raises ``OperationCancelled`` instead of returning a partial report.
"""

from __future__ import annotations

import logging
import re
import shutil
import time
from collections.abc import Callable

from igor.core.deadline import Deadline, ensure
from igor.core.errors import IgorError, OperationCancelled
from igor.core.models.system import DistroFamily
from igor.core.models.validation import CheckName, CheckResult, Severity, ValidationReport
from igor.core.services.distro import PACKAGE_INSTALL_COMMANDS, detect_distribution
from igor.core.services.gpu.base import KernelDetector, NouveauDetector, SystemValidator

logger = logging.getLogger(__name__)

# ── Defaults ────────────────────────────────────────────────────────

DEFAULT_MIN_DISK_SPACE_MB = 2048
CUDA_MIN_DISK_SPACE_MB = 5120
MIN_KERNEL_VERSION = (4, 15)
REQUIRED_BUILD_TOOLS = ("gcc", "make", "dkms")
OPTIONAL_BUILD_TOOLS = ("pkg-config",)
DISK_CHECK_PATHS = ("/usr", "/var", "/")

BLACKLIST_REMEDIATION = (
    "Create /etc/modprobe.d/blacklist-nouveau.conf with 'blacklist nouveau' and "
    "'options nouveau modeset=0', then run 'sudo update-initramfs -u' and reboot"
)
REBOOT_REMEDIATION = "Blacklist the nouveau driver and reboot before installing NVIDIA drivers"
SECURE_BOOT_REMEDIATION = (
    "Either disable Secure Boot in BIOS/UEFI settings, "
    "or use pre-signed NVIDIA drivers from your distribution"
)

_KERNEL_VERSION_RE = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?")


def parse_kernel_version(version: str) -> tuple[int, int, int]:
    """``6.5.0`` → (6, 5, 0); ``4.15`` → (4, 15, 0).

    Raises:
        ValueError: If the string does not start with ``major.minor``.
    """
    match = _KERNEL_VERSION_RE.match(version)
    if not match:
        raise ValueError(f"invalid kernel version format: {version}")
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch or 0)


def _disk_free_mb(path: str) -> int:
    return shutil.disk_usage(path).free // (1024 * 1024)


class HostSystemValidator(SystemValidator):
    """Validator backed by the kernel and nouveau detectors.

    Args:
        kernel: Kernel detector; checks that need it fail without it.
        nouveau: Nouveau detector; its check is skipped without it.
        required_disk_mb: Free space required on every checked path.
        min_kernel: Minimum (major, minor) kernel version.
        required_tools: Build tools that must be on PATH.
        disk_paths: Mount points to check; the lowest free space wins.
        distro_family: Selects the package manager in remediation text.
        disk_free_mb: ``path → free MB``; raises OSError for unusable paths.
        which: ``tool → path or None``.
    """

    def __init__(
        self,
        kernel: KernelDetector | None = None,
        nouveau: NouveauDetector | None = None,
        *,
        required_disk_mb: int = DEFAULT_MIN_DISK_SPACE_MB,
        min_kernel: tuple[int, int] = MIN_KERNEL_VERSION,
        required_tools: tuple[str, ...] | list[str] = REQUIRED_BUILD_TOOLS,
        disk_paths: tuple[str, ...] | list[str] = DISK_CHECK_PATHS,
        distro_family: DistroFamily | None = None,
        disk_free_mb: Callable[[str], int] = _disk_free_mb,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self._kernel = kernel
        self._nouveau = nouveau
        self._required_disk_mb = required_disk_mb
        self._min_kernel = min_kernel
        self._required_tools = list(required_tools)
        self._disk_paths = list(disk_paths)
        self._distro_family = distro_family
        self._disk_free_mb = disk_free_mb
        self._which = which

    # ── Battery ─────────────────────────────────────────────────

    def validate(self, *, deadline: Deadline | None = None) -> ValidationReport:
        deadline = ensure(deadline)
        deadline.check("validator.validate")

        start = time.monotonic()
        report = ValidationReport()
        checks: list[tuple[CheckName, Callable[[], CheckResult]]] = [
            (CheckName.KERNEL_VERSION, lambda: self.validate_kernel(deadline=deadline)),
            (CheckName.DISK_SPACE, lambda: self.validate_disk_space(deadline=deadline)),
            (CheckName.KERNEL_HEADERS, lambda: self.validate_kernel_headers(deadline=deadline)),
            (CheckName.BUILD_TOOLS, lambda: self.validate_build_tools(deadline=deadline)),
            (CheckName.SECURE_BOOT, lambda: self.validate_secure_boot(deadline=deadline)),
            (CheckName.NOUVEAU_STATUS, lambda: self.validate_nouveau_status(deadline=deadline)),
        ]

        for name, run_check in checks:
            if deadline.expired:
                raise OperationCancelled("validation cancelled", op="validator.validate")
            try:
                result = run_check()
            except Exception as e:
                logger.warning("Check %s failed: %s", name, e)
                result = CheckResult.fail(name, f"check failed: {e}")
            report.add_check(result)

        report.finish(int((time.monotonic() - start) * 1000))
        logger.debug(report.summary())
        return report

    # ── Kernel version ──────────────────────────────────────────

    def validate_kernel(self, *, deadline: Deadline | None = None) -> CheckResult:
        deadline = ensure(deadline)
        deadline.check("validator.validate_kernel")
        name = CheckName.KERNEL_VERSION

        if self._kernel is None:
            return CheckResult.fail(name, "kernel detector not available").with_remediation(
                "Internal error: kernel detector not configured"
            )
        try:
            info = self._kernel.get_kernel_info(deadline=deadline)
        except IgorError as e:
            return CheckResult.fail(name, f"failed to get kernel info: {e}")

        try:
            major, minor, patch = parse_kernel_version(info.version)
        except ValueError as e:
            return CheckResult.fail(name, f"failed to parse kernel version {info.release!r}: {e}")

        min_major, min_minor = self._min_kernel
        minimum = f"{min_major}.{min_minor}"
        if (major, minor) < (min_major, min_minor):
            return (
                CheckResult.fail(name, f"kernel version {info.version} is below minimum required {minimum}")
                .with_remediation(f"Upgrade kernel to version {minimum} or newer")
                .with_detail("current_version", info.version)
                .with_detail("minimum_version", minimum)
            )

        return (
            CheckResult.ok(name, f"kernel version {info.version} is compatible")
            .with_detail("version", info.version)
            .with_detail("release", info.release)
            .with_detail("major", major)
            .with_detail("minor", minor)
            .with_detail("patch", patch)
        )

    # ── Disk space ──────────────────────────────────────────────

    def validate_disk_space(
        self, required_mb: int | None = None, *, deadline: Deadline | None = None
    ) -> CheckResult:
        deadline = ensure(deadline)
        deadline.check("validator.validate_disk_space")
        name = CheckName.DISK_SPACE
        required = required_mb if required_mb is not None else self._required_disk_mb

        lowest_mb: int | None = None
        lowest_path = ""
        for path in self._disk_paths:
            try:
                free = self._disk_free_mb(path)
            except OSError as e:
                logger.debug("Skipping disk check on %s: %s", path, e)
                continue
            if lowest_mb is None or free < lowest_mb:
                lowest_mb, lowest_path = free, path

        if lowest_mb is None:
            return CheckResult.fail(name, "could not determine available disk space").with_remediation(
                "Ensure disk is accessible and has read permissions"
            )

        if lowest_mb < required:
            return (
                CheckResult.fail(
                    name,
                    f"insufficient disk space: {lowest_mb} MB available, "
                    f"{required} MB required on {lowest_path}",
                )
                .with_remediation(f"Free up at least {required - lowest_mb} MB of disk space on {lowest_path}")
                .with_detail("available_mb", lowest_mb)
                .with_detail("required_mb", required)
                .with_detail("path", lowest_path)
            )

        return (
            CheckResult.ok(name, f"sufficient disk space: {lowest_mb} MB available ({required} MB required)")
            .with_detail("available_mb", lowest_mb)
            .with_detail("required_mb", required)
            .with_detail("path", lowest_path)
        )

    # ── Kernel headers ──────────────────────────────────────────

    def validate_kernel_headers(self, *, deadline: Deadline | None = None) -> CheckResult:
        deadline = ensure(deadline)
        deadline.check("validator.validate_kernel_headers")
        name = CheckName.KERNEL_HEADERS

        if self._kernel is None:
            return CheckResult.fail(name, "kernel detector not available").with_remediation(
                "Internal error: kernel detector not configured"
            )
        try:
            installed = self._kernel.are_headers_installed(deadline=deadline)
        except IgorError as e:
            return CheckResult.fail(name, f"failed to check kernel headers: {e}")

        if installed:
            return CheckResult.ok(name, "kernel headers are installed")

        try:
            package = self._kernel.get_headers_package_name(deadline=deadline)
        except IgorError:
            package = ""
        remediation = "Install kernel headers for your current kernel"
        if package:
            remediation = f"Install kernel headers: {self._install_hint(package)}"
        return (
            CheckResult.fail(name, "kernel headers are not installed")
            .with_remediation(remediation)
            .with_detail("headers_package", package)
        )

    # ── Build tools ─────────────────────────────────────────────

    def validate_build_tools(self, *, deadline: Deadline | None = None) -> CheckResult:
        deadline = ensure(deadline)
        deadline.check("validator.validate_build_tools")
        name = CheckName.BUILD_TOOLS

        found, missing = [], []
        for tool in self._required_tools:
            (found if self._which(tool) else missing).append(tool)

        if missing:
            return (
                CheckResult.fail(name, f"missing required build tools: {', '.join(missing)}")
                .with_remediation(f"Install missing tools: {self._install_hint(' '.join(missing))}")
                .with_detail("missing_tools", missing)
                .with_detail("found_tools", found)
            )
        return CheckResult.ok(
            name, f"all required build tools are available: {', '.join(found)}"
        ).with_detail("found_tools", found)

    # ── Secure Boot ─────────────────────────────────────────────

    def validate_secure_boot(self, *, deadline: Deadline | None = None) -> CheckResult:
        deadline = ensure(deadline)
        deadline.check("validator.validate_secure_boot")
        name = CheckName.SECURE_BOOT

        if self._kernel is None:
            return CheckResult.ok(name, "kernel detector not available, skipping Secure Boot check")
        try:
            enabled = self._kernel.is_secure_boot_enabled(deadline=deadline)
        except Exception as e:
            return CheckResult.ok(name, "could not determine Secure Boot status").with_detail("error", str(e))

        if enabled:
            return (
                CheckResult.fail(name, "Secure Boot is enabled - unsigned kernel modules may not load", Severity.WARNING)
                .with_remediation(SECURE_BOOT_REMEDIATION)
                .with_detail("secure_boot", "enabled")
            )
        return CheckResult.ok(name, "Secure Boot is disabled or not supported").with_detail("secure_boot", "disabled")

    # ── Nouveau ─────────────────────────────────────────────────

    def validate_nouveau_status(self, *, deadline: Deadline | None = None) -> CheckResult:
        deadline = ensure(deadline)
        deadline.check("validator.validate_nouveau_status")
        name = CheckName.NOUVEAU_STATUS

        if self._nouveau is None:
            return CheckResult.ok(name, "nouveau detector not available, skipping check")
        try:
            status = self._nouveau.detect(deadline=deadline)
        except IgorError as e:
            return CheckResult.fail(name, f"failed to check Nouveau status: {e}")

        if status.loaded:
            remediation = REBOOT_REMEDIATION if status.blacklist_exists else BLACKLIST_REMEDIATION
            return (
                CheckResult.fail(name, "Nouveau driver is currently loaded", Severity.WARNING)
                .with_remediation(remediation)
                .with_detail("loaded", True)
                .with_detail("in_use", status.in_use)
                .with_detail("blacklist_exists", status.blacklist_exists)
            )

        if not status.blacklist_exists:
            return (
                CheckResult.ok(name, "Nouveau driver is not loaded, but blacklist configuration not found")
                .with_detail("loaded", False)
                .with_detail("blacklist_exists", False)
            )
        return (
            CheckResult.ok(name, "Nouveau driver is not loaded and is blacklisted")
            .with_detail("loaded", False)
            .with_detail("blacklist_exists", True)
            .with_detail("blacklist_files", list(status.blacklist_files))
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _family(self) -> DistroFamily:
        if self._distro_family is not None:
            return self._distro_family
        try:
            return detect_distribution().family
        except IgorError:
            return DistroFamily.UNKNOWN

    def _install_hint(self, packages: str) -> str:
        command = PACKAGE_INSTALL_COMMANDS.get(self._family(), "sudo apt install")
        return f"{command} {packages} (or equivalent for your distribution)"
