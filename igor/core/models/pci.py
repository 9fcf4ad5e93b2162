"""
PCI device model — one function on the PCI bus as seen in sysfs.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

# ── Identifiers ─────────────────────────────────────────────────────

VENDOR_NVIDIA = "10de"

CLASS_VGA = "0300"
CLASS_3D = "0302"
CLASS_DISPLAY = "0380"
GPU_CLASSES = (CLASS_VGA, CLASS_3D, CLASS_DISPLAY)

DRIVER_NVIDIA = "nvidia"
DRIVER_NOUVEAU = "nouveau"
DRIVER_VFIO = "vfio-pci"


def parse_hex_id(value: str) -> str:
    """Normalize a sysfs hex id: strip whitespace and ``0x``, lowercase."""
    value = value.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    return value


def normalize_address(address: str) -> str:
    """Drop the PCI domain: ``0000:01:00.0`` → ``01:00.0``."""
    parts = address.split(":")
    if len(parts) == 3:
        return ":".join(parts[1:])
    return address


class PCIDevice(BaseModel):
    """A PCI device as enumerated from ``/sys/bus/pci/devices``."""

    model_config = ConfigDict(frozen=True)

    address: str                    # full bus address, e.g. 0000:01:00.0
    vendor_id: str
    device_id: str
    class_code: str                 # 6 hex digits, e.g. 030000
    subsystem_vendor: str = ""
    subsystem_device: str = ""
    revision: str = ""
    driver: str = ""                # bound kernel driver, empty if none
    name: str = ""                  # live name from lspci, if resolved

    @property
    def is_nvidia(self) -> bool:
        return self.vendor_id.lower() == VENDOR_NVIDIA

    @property
    def is_gpu(self) -> bool:
        """VGA, 3D or display controller, judged by the first 4 class digits."""
        return self.class_code[:4].lower() in GPU_CLASSES

    @property
    def is_nvidia_gpu(self) -> bool:
        return self.is_nvidia and self.is_gpu

    @property
    def has_driver(self) -> bool:
        return bool(self.driver)

    @property
    def is_using_nvidia(self) -> bool:
        return self.driver == DRIVER_NVIDIA

    @property
    def is_using_nouveau(self) -> bool:
        return self.driver == DRIVER_NOUVEAU

    @property
    def is_using_vfio(self) -> bool:
        return self.driver == DRIVER_VFIO

    @property
    def short_id(self) -> str:
        return f"{self.vendor_id}:{self.device_id}"

    @property
    def pci_id(self) -> str:
        return f"[{self.short_id}]"

    def matches_vendor(self, vendor_id: str) -> bool:
        return self.vendor_id.lower() == parse_hex_id(vendor_id)

    def matches_class(self, prefix: str) -> bool:
        return self.class_code.lower().startswith(parse_hex_id(prefix))

    def __str__(self) -> str:
        driver = self.driver or "none"
        return f"{self.address} {self.pci_id} class={self.class_code} driver={driver}"
