"""
Detector capabilities — the contracts the orchestrator talks to.

Every capability is an ABC with one real implementation in this
package. Tests substitute hand-written fakes; the orchestrator never
knows the difference.

All methods take an optional ``deadline`` keyword. Implementations
call ``deadline.check()`` before blocking work and once per item of
a multi-item scan; they never interrupt a single blocking call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from igor.core.deadline import Deadline
from igor.core.models.gpu import GPUModel, SMIInfo
from igor.core.models.pci import VENDOR_NVIDIA, PCIDevice, normalize_address, parse_hex_id
from igor.core.models.system import KernelInfo, ModuleInfo, NouveauStatus
from igor.core.models.validation import CheckResult, ValidationReport


class PCIScanner(ABC):
    """Enumerates PCI devices.

    Only ``scan_all`` is abstract; the filters are conjunctions over it.
    Raises ``IgorError`` with kind not_found, permission_denied or io.
    """

    @abstractmethod
    def scan_all(self, *, deadline: Deadline | None = None) -> list[PCIDevice]:
        """Every PCI device on the host."""

    def scan_vendor(self, vendor_id: str, *, deadline: Deadline | None = None) -> list[PCIDevice]:
        vendor_id = parse_hex_id(vendor_id)
        return [d for d in self.scan_all(deadline=deadline) if d.matches_vendor(vendor_id)]

    def scan_class(self, class_prefix: str, *, deadline: Deadline | None = None) -> list[PCIDevice]:
        return [d for d in self.scan_all(deadline=deadline) if d.matches_class(class_prefix)]

    def scan_nvidia(self, *, deadline: Deadline | None = None) -> list[PCIDevice]:
        """NVIDIA devices that are also display-class devices."""
        return [d for d in self.scan_vendor(VENDOR_NVIDIA, deadline=deadline) if d.is_gpu]


class NameResolver(ABC):
    """Maps PCI addresses to marketing names from the live system database."""

    @abstractmethod
    def resolve_names(self, *, deadline: Deadline | None = None) -> dict[str, str]:
        """Address → name for every NVIDIA device the resolver knows."""

    @staticmethod
    def lookup(names: dict[str, str], address: str) -> str:
        """Exact address first, then domain-less address on both sides."""
        if address in names:
            return names[address]
        short = normalize_address(address)
        for candidate, name in names.items():
            if normalize_address(candidate) == short:
                return name
        return ""


class GPUDatabase(ABC):
    """Static GPU model lookup. Must return copies and be thread-safe."""

    @abstractmethod
    def lookup(self, device_id: str) -> GPUModel | None:
        """Model for a PCI device id, or None."""


class DriverUtility(ABC):
    """nvidia-smi style runtime utility.

    Failures are classified as ``UtilityNotFound``, ``DriverNotLoaded``,
    ``NoDevicesFound`` or a generic execution ``IgorError``.
    """

    @abstractmethod
    def parse(self, *, deadline: Deadline | None = None) -> SMIInfo:
        """Full snapshot: versions plus per-GPU metrics."""

    @abstractmethod
    def is_available(self, *, deadline: Deadline | None = None) -> bool:
        """Whether the utility exists and can talk to the driver."""

    @abstractmethod
    def get_driver_version(self, *, deadline: Deadline | None = None) -> str:
        """Driver version string."""

    @abstractmethod
    def get_cuda_version(self, *, deadline: Deadline | None = None) -> str:
        """Highest CUDA runtime the driver supports."""


class NouveauDetector(ABC):
    @abstractmethod
    def detect(self, *, deadline: Deadline | None = None) -> NouveauStatus:
        """Loaded, bound devices and blacklist state of nouveau."""


class KernelDetector(ABC):
    """Kernel release, modules, headers and Secure Boot."""

    @abstractmethod
    def get_kernel_info(self, *, deadline: Deadline | None = None) -> KernelInfo:
        """Release, arch, headers and Secure Boot in one call."""

    @abstractmethod
    def is_module_loaded(self, name: str, *, deadline: Deadline | None = None) -> bool:
        """Whether a kernel module appears in the loaded module list."""

    @abstractmethod
    def get_loaded_modules(self, *, deadline: Deadline | None = None) -> list[ModuleInfo]:
        """All loaded kernel modules."""

    @abstractmethod
    def get_module(self, name: str, *, deadline: Deadline | None = None) -> ModuleInfo | None:
        """One loaded module, or None."""

    @abstractmethod
    def are_headers_installed(self, *, deadline: Deadline | None = None) -> bool:
        """Whether headers for the running kernel are present."""

    @abstractmethod
    def get_headers_package_name(self, *, deadline: Deadline | None = None) -> str:
        """Distribution package that provides the headers."""

    @abstractmethod
    def is_secure_boot_enabled(self, *, deadline: Deadline | None = None) -> bool:
        """Never raises; any probe failure means disabled."""


class SystemValidator(ABC):
    """The validation battery, individually and combined."""

    @abstractmethod
    def validate(self, *, deadline: Deadline | None = None) -> ValidationReport:
        """Run every check in order."""

    @abstractmethod
    def validate_kernel(self, *, deadline: Deadline | None = None) -> CheckResult: ...

    @abstractmethod
    def validate_disk_space(
        self, required_mb: int | None = None, *, deadline: Deadline | None = None
    ) -> CheckResult: ...

    @abstractmethod
    def validate_kernel_headers(self, *, deadline: Deadline | None = None) -> CheckResult: ...

    @abstractmethod
    def validate_build_tools(self, *, deadline: Deadline | None = None) -> CheckResult: ...

    @abstractmethod
    def validate_secure_boot(self, *, deadline: Deadline | None = None) -> CheckResult: ...

    @abstractmethod
    def validate_nouveau_status(self, *, deadline: Deadline | None = None) -> CheckResult: ...
