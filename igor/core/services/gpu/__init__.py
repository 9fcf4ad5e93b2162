"""
GPU detection — capabilities, host implementations, validation, orchestration.

Re-exports the public API::

    from igor.core.services.gpu import GPUOrchestrator, SysfsPCIScanner
"""

from igor.core.services.gpu.base import (
    DriverUtility,
    GPUDatabase,
    KernelDetector,
    NameResolver,
    NouveauDetector,
    PCIScanner,
    SystemValidator,
)
from igor.core.services.gpu.database import StaticGPUDatabase
from igor.core.services.gpu.kernel import HostKernelDetector
from igor.core.services.gpu.lspci import LspciResolver
from igor.core.services.gpu.nouveau import SysfsNouveauDetector
from igor.core.services.gpu.orchestrator import GPUOrchestrator
from igor.core.services.gpu.pci import SysfsPCIScanner
from igor.core.services.gpu.smi import NvidiaSMIParser
from igor.core.services.gpu.validator import HostSystemValidator

__all__ = [
    "DriverUtility",
    "GPUDatabase",
    "GPUOrchestrator",
    "HostKernelDetector",
    "HostSystemValidator",
    "KernelDetector",
    "LspciResolver",
    "NameResolver",
    "NouveauDetector",
    "NvidiaSMIParser",
    "PCIScanner",
    "StaticGPUDatabase",
    "SysfsNouveauDetector",
    "SysfsPCIScanner",
    "SystemValidator",
]
