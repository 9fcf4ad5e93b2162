"""
Hand-written capability fakes for orchestrator and validator tests.

Each fake returns canned data or raises a canned error, and counts
its calls so tests can assert what was (not) consulted.
"""

from __future__ import annotations

from igor.core.deadline import Deadline, ensure
from igor.core.errors import ErrorKind, IgorError, UtilityNotFound
from igor.core.models.gpu import SMIGPUInfo, SMIInfo
from igor.core.models.pci import PCIDevice
from igor.core.models.system import KernelInfo, ModuleInfo, NouveauStatus
from igor.core.models.validation import CheckName, CheckResult, ValidationReport
from igor.core.services.gpu.base import (
    DriverUtility,
    KernelDetector,
    NameResolver,
    NouveauDetector,
    PCIScanner,
    SystemValidator,
)


def nvidia_device(
    address: str = "0000:01:00.0",
    device_id: str = "2684",
    driver: str = "nvidia",
    class_code: str = "030000",
) -> PCIDevice:
    return PCIDevice(
        address=address,
        vendor_id="10de",
        device_id=device_id,
        class_code=class_code,
        driver=driver,
    )


def smi_gpu(index: int = 0, name: str = "NVIDIA GeForce RTX 4090", **kwargs) -> SMIGPUInfo:
    kwargs.setdefault("memory_total_mb", 24564)
    kwargs.setdefault("memory_used_mb", 512)
    kwargs.setdefault("temperature_c", 41)
    return SMIGPUInfo(index=index, name=name, **kwargs)


def smi_info(*gpus: SMIGPUInfo, driver_version: str = "550.54.14", cuda_version: str = "12.4") -> SMIInfo:
    return SMIInfo(
        available=True,
        driver_version=driver_version,
        cuda_version=cuda_version,
        gpus=list(gpus),
    )


def passing_report() -> ValidationReport:
    report = ValidationReport()
    for name in CheckName:
        report.add_check(CheckResult.ok(name, f"{name} ok"))
    return report


class FakePCIScanner(PCIScanner):
    def __init__(self, devices: list[PCIDevice] | None = None, error: Exception | None = None):
        self.devices = devices or []
        self.error = error
        self.calls = 0

    def scan_all(self, *, deadline: Deadline | None = None) -> list[PCIDevice]:
        ensure(deadline).check("fake.scan_all")
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [d.model_copy() for d in self.devices]


class FakeNameResolver(NameResolver):
    def __init__(self, names: dict[str, str] | None = None, error: Exception | None = None):
        self.names = names or {}
        self.error = error

    def resolve_names(self, *, deadline: Deadline | None = None) -> dict[str, str]:
        if self.error is not None:
            raise self.error
        return dict(self.names)


class FakeDriverUtility(DriverUtility):
    """``info=None`` behaves like nvidia-smi missing from PATH."""

    def __init__(self, info: SMIInfo | None = None):
        self.info = info
        self.parse_calls = 0

    def _require(self) -> SMIInfo:
        if self.info is None:
            raise UtilityNotFound("nvidia-smi not found", op="fake.smi")
        return self.info

    def parse(self, *, deadline: Deadline | None = None) -> SMIInfo:
        self.parse_calls += 1
        return self._require().model_copy(deep=True)

    def is_available(self, *, deadline: Deadline | None = None) -> bool:
        return self.info is not None and self.info.available

    def get_driver_version(self, *, deadline: Deadline | None = None) -> str:
        return self._require().driver_version

    def get_cuda_version(self, *, deadline: Deadline | None = None) -> str:
        return self._require().cuda_version


class FakeNouveauDetector(NouveauDetector):
    def __init__(self, status: NouveauStatus | None = None, error: Exception | None = None):
        self.status = status or NouveauStatus()
        self.error = error
        self.calls = 0

    def detect(self, *, deadline: Deadline | None = None) -> NouveauStatus:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.status.model_copy()


class FakeKernelDetector(KernelDetector):
    def __init__(
        self,
        info: KernelInfo | None = None,
        *,
        headers_package: str = "linux-headers-6.5.0-44-generic",
        modules: list[ModuleInfo] | None = None,
        error: Exception | None = None,
    ):
        self.info = info or KernelInfo(
            version="6.5.0",
            release="6.5.0-44-generic",
            architecture="x86_64",
            headers_installed=True,
            headers_path="/usr/src/linux-headers-6.5.0-44-generic",
        )
        self.headers_package = headers_package
        self.modules = modules or []
        self.error = error

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def get_kernel_info(self, *, deadline: Deadline | None = None) -> KernelInfo:
        self._check()
        return self.info.model_copy()

    def is_module_loaded(self, name: str, *, deadline: Deadline | None = None) -> bool:
        return self.get_module(name, deadline=deadline) is not None

    def get_loaded_modules(self, *, deadline: Deadline | None = None) -> list[ModuleInfo]:
        self._check()
        return list(self.modules)

    def get_module(self, name: str, *, deadline: Deadline | None = None) -> ModuleInfo | None:
        return next((m for m in self.get_loaded_modules() if m.name == name), None)

    def are_headers_installed(self, *, deadline: Deadline | None = None) -> bool:
        self._check()
        return self.info.headers_installed

    def get_headers_package_name(self, *, deadline: Deadline | None = None) -> str:
        self._check()
        return self.headers_package

    def is_secure_boot_enabled(self, *, deadline: Deadline | None = None) -> bool:
        self._check()
        return self.info.secure_boot_enabled


class FakeSystemValidator(SystemValidator):
    """Returns a canned report from ``validate``; single checks pass."""

    def __init__(self, report: ValidationReport | None = None, error: Exception | None = None):
        self.report = report if report is not None else passing_report()
        self.error = error
        self.calls = 0

    def validate(self, *, deadline: Deadline | None = None) -> ValidationReport:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.report.model_copy(deep=True)

    def _ok(self, name: CheckName) -> CheckResult:
        return CheckResult.ok(name, f"{name} ok")

    def validate_kernel(self, *, deadline=None):
        return self._ok(CheckName.KERNEL_VERSION)

    def validate_disk_space(self, required_mb=None, *, deadline=None):
        return self._ok(CheckName.DISK_SPACE)

    def validate_kernel_headers(self, *, deadline=None):
        return self._ok(CheckName.KERNEL_HEADERS)

    def validate_build_tools(self, *, deadline=None):
        return self._ok(CheckName.BUILD_TOOLS)

    def validate_secure_boot(self, *, deadline=None):
        return self._ok(CheckName.SECURE_BOOT)

    def validate_nouveau_status(self, *, deadline=None):
        return self._ok(CheckName.NOUVEAU_STATUS)


def failing_scanner(message: str = "permission denied") -> FakePCIScanner:
    return FakePCIScanner(error=IgorError(message, op="pci.scan_all", kind=ErrorKind.PERMISSION_DENIED))
