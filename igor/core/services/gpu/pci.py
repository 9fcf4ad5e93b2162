"""
PCI scanner — enumerate devices from ``/sys/bus/pci/devices``.

Each device directory carries ``vendor``, ``device`` and ``class``
files (required) plus optional subsystem ids and revision. The bound
driver is the basename of the ``driver`` symlink.
"""

from __future__ import annotations

import logging
from pathlib import Path

from igor.core.deadline import Deadline, ensure
from igor.core.errors import wrap_os_error
from igor.core.models.pci import PCIDevice, parse_hex_id
from igor.core.services.gpu.base import PCIScanner

logger = logging.getLogger(__name__)

SYSFS_PCI_DEVICES = "/sys/bus/pci/devices"


def _read_attr(device_dir: Path, name: str) -> str:
    return parse_hex_id(device_dir.joinpath(name).read_text(encoding="utf-8"))


def _read_optional(device_dir: Path, name: str) -> str:
    try:
        return _read_attr(device_dir, name)
    except OSError:
        return ""


def _read_driver(device_dir: Path) -> str:
    link = device_dir / "driver"
    try:
        return Path(link.readlink()).name
    except OSError:
        return ""


class SysfsPCIScanner(PCIScanner):
    """Reads PCI devices from sysfs.

    Args:
        sysfs_path: Root of the PCI device directories.
    """

    def __init__(self, sysfs_path: str | Path = SYSFS_PCI_DEVICES):
        self._root = Path(sysfs_path)

    def scan_all(self, *, deadline: Deadline | None = None) -> list[PCIDevice]:
        deadline = ensure(deadline)
        deadline.check("pci.scan_all")

        try:
            entries = sorted(self._root.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise wrap_os_error(e, "pci.scan_all", f"failed to read {self._root}") from e

        devices: list[PCIDevice] = []
        for entry in entries:
            deadline.check("pci.scan_all")
            device = self.read_device(entry)
            if device is not None:
                devices.append(device)

        logger.debug("Scanned %d PCI devices under %s", len(devices), self._root)
        return devices

    def read_device(self, device_dir: Path) -> PCIDevice | None:
        """Parse one device directory; None if a required file is unreadable."""
        try:
            vendor = _read_attr(device_dir, "vendor")
            device = _read_attr(device_dir, "device")
            class_code = _read_attr(device_dir, "class")
        except OSError as e:
            logger.debug("Skipping PCI device %s: %s", device_dir.name, e)
            return None

        return PCIDevice(
            address=device_dir.name,
            vendor_id=vendor,
            device_id=device,
            class_code=class_code,
            subsystem_vendor=_read_optional(device_dir, "subsystem_vendor"),
            subsystem_device=_read_optional(device_dir, "subsystem_device"),
            revision=_read_optional(device_dir, "revision"),
            driver=_read_driver(device_dir),
        )
