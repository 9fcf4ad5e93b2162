"""
Domain models — Pydantic types for GPU detection and validation.

All models are re-exported here for convenient access:

    from igor.core.models import PCIDevice, GPURecord, DetectionReport, ValidationReport
"""

from igor.core.models.gpu import (
    Architecture,
    DriverKind,
    DriverStatus,
    GPUModel,
    GPURecord,
    SMIGPUInfo,
    SMIInfo,
)
from igor.core.models.pci import PCIDevice
from igor.core.models.report import (
    DetectionIssue,
    DetectionReport,
    Readiness,
    Reason,
    ReasonKind,
)
from igor.core.models.system import (
    Distribution,
    DistroFamily,
    KernelInfo,
    ModuleInfo,
    NouveauStatus,
)
from igor.core.models.validation import (
    CheckName,
    CheckResult,
    Severity,
    ValidationReport,
)

__all__ = [
    # gpu.py
    "Architecture",
    "DriverKind",
    "DriverStatus",
    "GPUModel",
    "GPURecord",
    "SMIGPUInfo",
    "SMIInfo",
    # pci.py
    "PCIDevice",
    # report.py
    "DetectionIssue",
    "DetectionReport",
    "Readiness",
    "Reason",
    "ReasonKind",
    # system.py
    "Distribution",
    "DistroFamily",
    "KernelInfo",
    "ModuleInfo",
    "NouveauStatus",
    # validation.py
    "CheckName",
    "CheckResult",
    "Severity",
    "ValidationReport",
]
