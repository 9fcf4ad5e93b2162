"""
Tests for the system validator — every check, the battery, cancellation.
"""

import pytest

from fakes import FakeKernelDetector, FakeNouveauDetector
from igor.core.deadline import Deadline
from igor.core.errors import ErrorKind, IgorError, OperationCancelled
from igor.core.models.system import DistroFamily, KernelInfo, NouveauStatus
from igor.core.models.validation import CheckName, Severity
from igor.core.services.gpu.validator import (
    BLACKLIST_REMEDIATION,
    CUDA_MIN_DISK_SPACE_MB,
    REBOOT_REMEDIATION,
    SECURE_BOOT_REMEDIATION,
    HostSystemValidator,
    parse_kernel_version,
)


def all_tools(tool: str) -> str:
    return f"/usr/bin/{tool}"


def make_validator(**overrides) -> HostSystemValidator:
    options = {
        "kernel": FakeKernelDetector(),
        "nouveau": FakeNouveauDetector(NouveauStatus(blacklist_exists=True, blacklist_files=["/etc/modprobe.d/x.conf"])),
        "disk_free_mb": lambda path: 50_000,
        "which": all_tools,
        "distro_family": DistroFamily.DEBIAN,
    }
    options.update(overrides)
    kernel = options.pop("kernel")
    nouveau = options.pop("nouveau")
    return HostSystemValidator(kernel, nouveau, **options)


def kernel_with(**fields) -> FakeKernelDetector:
    info = {"version": "6.5.0", "release": "6.5.0-44-generic", "headers_installed": True}
    info.update(fields)
    return FakeKernelDetector(KernelInfo(**info))


# ── Kernel version ──────────────────────────────────────────────────


class TestParseKernelVersion:
    def test_three_part(self):
        assert parse_kernel_version("6.5.0") == (6, 5, 0)

    def test_two_part(self):
        assert parse_kernel_version("4.15") == (4, 15, 0)

    def test_suffix_ignored(self):
        assert parse_kernel_version("5.15.0-91-generic") == (5, 15, 0)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_kernel_version("linux")


class TestKernelCheck:
    def test_compatible(self):
        check = make_validator().validate_kernel()
        assert check.passed
        assert check.name == CheckName.KERNEL_VERSION
        assert check.details["major"] == 6
        assert check.details["release"] == "6.5.0-44-generic"

    def test_too_old(self):
        check = make_validator(kernel=kernel_with(version="4.4.0", release="4.4.0-210-generic")).validate_kernel()
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert "below minimum required 4.15" in check.message
        assert check.remediation == "Upgrade kernel to version 4.15 or newer"

    def test_configurable_minimum(self):
        check = make_validator(min_kernel=(6, 8)).validate_kernel()
        assert not check.passed
        assert check.details["minimum_version"] == "6.8"

    def test_exact_minimum_passes(self):
        assert make_validator(kernel=kernel_with(version="4.15.0")).validate_kernel().passed

    def test_unparsable_version(self):
        check = make_validator(kernel=kernel_with(version="")).validate_kernel()
        assert not check.passed
        assert "failed to parse kernel version" in check.message

    def test_detector_error(self):
        check = make_validator(kernel=FakeKernelDetector(error=IgorError("uname failed"))).validate_kernel()
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert "failed to get kernel info: uname failed" == check.message

    def test_no_detector(self):
        check = make_validator(kernel=None).validate_kernel()
        assert not check.passed
        assert check.message == "kernel detector not available"


# ── Disk space ──────────────────────────────────────────────────────


class TestDiskSpaceCheck:
    def test_lowest_mount_wins(self):
        free = {"/": 500, "/usr": 5000}
        validator = make_validator(disk_paths=["/usr", "/"], disk_free_mb=free.__getitem__, required_disk_mb=2048)
        check = validator.validate_disk_space()

        assert not check.passed
        assert check.severity == Severity.ERROR
        assert check.message == "insufficient disk space: 500 MB available, 2048 MB required on /"
        assert check.remediation == "Free up at least 1548 MB of disk space on /"
        assert check.details == {"available_mb": 500, "required_mb": 2048, "path": "/"}

    def test_sufficient(self):
        check = make_validator(disk_paths=["/"], disk_free_mb=lambda p: 4096).validate_disk_space()
        assert check.passed
        assert check.details["available_mb"] == 4096

    def test_explicit_requirement(self):
        validator = make_validator(disk_paths=["/"], disk_free_mb=lambda p: 4096)
        assert not validator.validate_disk_space(CUDA_MIN_DISK_SPACE_MB).passed

    def test_unreadable_paths_skipped(self):
        def free(path):
            if path == "/var":
                raise FileNotFoundError(path)
            return 3000

        check = make_validator(disk_paths=["/var", "/usr"], disk_free_mb=free).validate_disk_space()
        assert check.passed
        assert check.details["path"] == "/usr"

    def test_no_readable_paths(self):
        def free(path):
            raise PermissionError(path)

        check = make_validator(disk_free_mb=free).validate_disk_space()
        assert not check.passed
        assert check.message == "could not determine available disk space"


# ── Kernel headers ──────────────────────────────────────────────────


class TestHeadersCheck:
    def test_installed(self):
        check = make_validator().validate_kernel_headers()
        assert check.passed

    def test_missing_debian(self):
        check = make_validator(kernel=kernel_with(headers_installed=False)).validate_kernel_headers()
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert check.remediation == (
            "Install kernel headers: sudo apt install linux-headers-6.5.0-44-generic "
            "(or equivalent for your distribution)"
        )
        assert check.details["headers_package"] == "linux-headers-6.5.0-44-generic"

    def test_missing_rhel(self):
        kernel = FakeKernelDetector(
            KernelInfo(version="5.14.0", release="5.14.0-362.el9.x86_64"),
            headers_package="kernel-devel-5.14.0-362.el9.x86_64",
        )
        check = make_validator(kernel=kernel, distro_family=DistroFamily.RHEL).validate_kernel_headers()
        assert "sudo dnf install kernel-devel-5.14.0-362.el9.x86_64" in check.remediation

    def test_detector_error(self):
        check = make_validator(kernel=FakeKernelDetector(error=IgorError("boom"))).validate_kernel_headers()
        assert not check.passed
        assert check.message.startswith("failed to check kernel headers")


# ── Build tools ─────────────────────────────────────────────────────


class TestBuildToolsCheck:
    def test_all_present(self):
        check = make_validator().validate_build_tools()
        assert check.passed
        assert check.details["found_tools"] == ["gcc", "make", "dkms"]

    def test_every_missing_tool_named(self):
        def which(tool):
            return None if tool in ("make", "dkms") else f"/usr/bin/{tool}"

        check = make_validator(which=which).validate_build_tools()
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert check.message == "missing required build tools: make, dkms"
        assert check.details["missing_tools"] == ["make", "dkms"]
        assert "sudo apt install make dkms" in check.remediation

    def test_custom_tool_list(self):
        check = make_validator(required_tools=["clang"], which=lambda t: None).validate_build_tools()
        assert check.message == "missing required build tools: clang"


# ── Secure Boot ─────────────────────────────────────────────────────


class TestSecureBootCheck:
    def test_disabled(self):
        check = make_validator().validate_secure_boot()
        assert check.passed
        assert check.details["secure_boot"] == "disabled"

    def test_enabled_is_warning(self):
        check = make_validator(kernel=kernel_with(secure_boot_enabled=True)).validate_secure_boot()
        assert not check.passed
        assert check.severity == Severity.WARNING
        assert check.remediation == SECURE_BOOT_REMEDIATION

    def test_detector_error_is_not_fatal(self):
        check = make_validator(kernel=FakeKernelDetector(error=IgorError("x"))).validate_secure_boot()
        assert check.passed

    def test_unexpected_detector_failure_is_not_fatal(self):
        kernel = FakeKernelDetector(error=UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"))
        check = make_validator(kernel=kernel).validate_secure_boot()
        assert check.passed
        assert check.severity == Severity.INFO
        assert "invalid start byte" in check.details["error"]


# ── Nouveau ─────────────────────────────────────────────────────────


class TestNouveauCheck:
    def test_loaded_without_blacklist(self):
        nouveau = FakeNouveauDetector(NouveauStatus(loaded=True, in_use=True, bound_devices=["0000:01:00.0"]))
        check = make_validator(nouveau=nouveau).validate_nouveau_status()
        assert not check.passed
        assert check.severity == Severity.WARNING
        assert check.remediation == BLACKLIST_REMEDIATION
        assert check.details["in_use"] is True

    def test_loaded_with_blacklist_needs_reboot(self):
        nouveau = FakeNouveauDetector(NouveauStatus(loaded=True, blacklist_exists=True))
        check = make_validator(nouveau=nouveau).validate_nouveau_status()
        assert check.remediation == REBOOT_REMEDIATION

    def test_not_loaded_and_blacklisted(self):
        check = make_validator().validate_nouveau_status()
        assert check.passed
        assert check.details["blacklist_files"] == ["/etc/modprobe.d/x.conf"]

    def test_not_loaded_without_blacklist(self):
        check = make_validator(nouveau=FakeNouveauDetector()).validate_nouveau_status()
        assert check.passed
        assert "blacklist configuration not found" in check.message

    def test_detector_error_is_error(self):
        nouveau = FakeNouveauDetector(error=IgorError("cannot read", kind=ErrorKind.IO))
        check = make_validator(nouveau=nouveau).validate_nouveau_status()
        assert not check.passed
        assert check.severity == Severity.ERROR

    def test_no_detector_skips(self):
        assert make_validator(nouveau=None).validate_nouveau_status().passed


# ── Battery ─────────────────────────────────────────────────────────


class TestValidate:
    def test_fixed_order(self):
        report = make_validator().validate()
        assert [c.name for c in report.checks] == [
            CheckName.KERNEL_VERSION,
            CheckName.DISK_SPACE,
            CheckName.KERNEL_HEADERS,
            CheckName.BUILD_TOOLS,
            CheckName.SECURE_BOOT,
            CheckName.NOUVEAU_STATUS,
        ]
        assert report.passed
        assert report.duration_ms is not None

    def test_failures_do_not_stop_battery(self):
        validator = make_validator(
            kernel=kernel_with(version="3.10.0", headers_installed=False),
            disk_free_mb=lambda p: 10,
        )
        report = validator.validate()
        assert report.total_checks == 6
        assert report.error_count == 3
        assert not report.passed

    def test_unexpected_exception_becomes_failed_check(self):
        report = make_validator(kernel=FakeKernelDetector(error=RuntimeError("segfault"))).validate()
        kernel_check = report.get_check(CheckName.KERNEL_VERSION)
        assert not kernel_check.passed
        assert kernel_check.severity == Severity.ERROR
        assert kernel_check.message == "check failed: segfault"
        assert report.total_checks == 6

    def test_warnings_keep_report_passing(self):
        report = make_validator(kernel=kernel_with(secure_boot_enabled=True)).validate()
        assert report.passed
        assert report.warning_count == 1

    def test_expired_deadline_on_entry(self):
        deadline = Deadline(timeout=0)
        with pytest.raises(OperationCancelled):
            make_validator().validate(deadline=deadline)

    def test_cancellation_between_checks(self):
        deadline = Deadline()
        calls = []

        def which(tool):
            calls.append(tool)
            deadline.cancel()
            return f"/usr/bin/{tool}"

        with pytest.raises(OperationCancelled) as exc:
            make_validator(which=which).validate(deadline=deadline)
        assert exc.value.kind == ErrorKind.CANCELLED
        # build tools finished all lookups before the next check saw the cancel
        assert calls == ["gcc", "make", "dkms"]
