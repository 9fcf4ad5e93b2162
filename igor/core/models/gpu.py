"""
GPU models — database entries, nvidia-smi snapshots, driver status,
and the canonical per-device GPU record.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from igor.core.models.base import SealableModel
from igor.core.models.pci import PCIDevice

# ── Architecture ────────────────────────────────────────────────────


class Architecture(StrEnum):
    """NVIDIA GPU micro-architecture families."""

    KEPLER = "kepler"
    MAXWELL = "maxwell"
    PASCAL = "pascal"
    VOLTA = "volta"
    TURING = "turing"
    AMPERE = "ampere"
    ADA = "ada"
    HOPPER = "hopper"
    BLACKWELL = "blackwell"
    UNKNOWN = "unknown"

    @property
    def min_driver_version(self) -> str:
        return _MIN_DRIVER_VERSIONS.get(self, "")

    @property
    def compute_capability(self) -> str:
        return _COMPUTE_CAPABILITIES.get(self, "")


_MIN_DRIVER_VERSIONS = {
    Architecture.BLACKWELL: "560.00",
    Architecture.HOPPER: "525.60",
    Architecture.ADA: "525.60",
    Architecture.AMPERE: "455.23",
    Architecture.TURING: "418.39",
    Architecture.VOLTA: "396.24",
    Architecture.PASCAL: "384.59",
    Architecture.MAXWELL: "340.21",
    Architecture.KEPLER: "304.64",
}

_COMPUTE_CAPABILITIES = {
    Architecture.BLACKWELL: "10.0",
    Architecture.HOPPER: "9.0",
    Architecture.ADA: "8.9",
    Architecture.AMPERE: "8.6",
    Architecture.TURING: "7.5",
    Architecture.VOLTA: "7.0",
    Architecture.PASCAL: "6.1",
    Architecture.MAXWELL: "5.2",
    Architecture.KEPLER: "3.5",
}


class GPUModel(SealableModel):
    """A static GPU database entry. Sealed once attached to a report."""

    device_id: str
    name: str
    architecture: Architecture = Architecture.UNKNOWN
    min_driver_version: str = ""
    compute_capability: str = ""
    memory_size: str = ""
    is_data_center: bool = False

    def __str__(self) -> str:
        if self.is_data_center:
            return f"{self.name} (Data Center)"
        return self.name


# ── nvidia-smi ──────────────────────────────────────────────────────


class SMIGPUInfo(BaseModel):
    """One GPU as reported by ``nvidia-smi --query-gpu``.

    Numeric fields are ``None`` when nvidia-smi reports ``[N/A]``.
    """

    model_config = ConfigDict(frozen=True)

    index: int
    name: str = ""
    uuid: str = ""
    memory_total_mb: int | None = None
    memory_used_mb: int | None = None
    memory_free_mb: int | None = None
    temperature_c: int | None = None
    power_draw_w: float | None = None
    power_limit_w: float | None = None
    utilization_gpu: int | None = None        # percent
    utilization_memory: int | None = None     # percent
    compute_mode: str = ""
    persistence_mode: bool = False

    @property
    def memory_usage_percent(self) -> float:
        if not self.memory_total_mb or self.memory_used_mb is None:
            return 0.0
        return self.memory_used_mb / self.memory_total_mb * 100

    @property
    def power_usage_percent(self) -> float:
        if not self.power_limit_w or self.power_draw_w is None:
            return 0.0
        return self.power_draw_w / self.power_limit_w * 100

    @property
    def is_idle(self) -> bool:
        """Below 5% GPU utilization and 10% memory usage."""
        return (self.utilization_gpu or 0) < 5 and self.memory_usage_percent < 10


class SMIInfo(BaseModel):
    """A complete nvidia-smi snapshot."""

    available: bool = False
    driver_version: str = ""
    cuda_version: str = ""
    gpus: list[SMIGPUInfo] = Field(default_factory=list)

    @property
    def gpu_count(self) -> int:
        return len(self.gpus)


# ── Driver status ───────────────────────────────────────────────────


class DriverKind(StrEnum):
    NVIDIA = "nvidia"
    NOUVEAU = "nouveau"
    NONE = "none"


class DriverStatus(BaseModel):
    """Which GPU kernel driver is active on the host."""

    model_config = ConfigDict(frozen=True)

    kind: DriverKind = DriverKind.NONE
    version: str = ""
    cuda_version: str = ""

    @computed_field
    @property
    def installed(self) -> bool:
        return self.kind != DriverKind.NONE

    @classmethod
    def none(cls) -> DriverStatus:
        return cls(kind=DriverKind.NONE)


# ── Canonical GPU record ────────────────────────────────────────────


class GPURecord(BaseModel):
    """One physical NVIDIA GPU with every source merged in.

    ``name`` resolves live lspci name → database model name →
    nvidia-smi name → synthesized fallback, so it is never empty.
    ``architecture`` comes from the database match only.
    """

    model_config = ConfigDict(frozen=True)

    pci: PCIDevice
    model: GPUModel | None = None
    smi: SMIGPUInfo | None = None

    @computed_field
    @property
    def name(self) -> str:
        if self.pci.name:
            return self.pci.name
        if self.model is not None and self.model.name:
            return self.model.name
        if self.smi is not None and self.smi.name:
            return self.smi.name
        return f"NVIDIA GPU (Device ID: {self.pci.device_id})"

    @computed_field
    @property
    def architecture(self) -> str:
        if self.model is not None:
            return str(self.model.architecture)
        return str(Architecture.UNKNOWN)

    @property
    def address(self) -> str:
        return self.pci.address

    @property
    def device_id(self) -> str:
        return self.pci.device_id
