"""
Nouveau detector — is the open-source driver loaded, bound, blacklisted?
"""

from __future__ import annotations

import logging
from pathlib import Path

from igor.core.deadline import Deadline, ensure
from igor.core.models.pci import DRIVER_NOUVEAU
from igor.core.models.system import NouveauStatus
from igor.core.services.gpu.base import NouveauDetector, PCIScanner
from igor.core.services.gpu.pci import SysfsPCIScanner

logger = logging.getLogger(__name__)

SYS_MODULE_ROOT = "/sys/module"
MODPROBE_DIR = "/etc/modprobe.d"

_BLACKLIST_DIRECTIVES = ("blacklist nouveau", "options nouveau modeset=0")


def is_blacklist_content(content: str) -> bool:
    """Whether a modprobe.d file disables nouveau (comments ignored)."""
    for raw in content.splitlines():
        line = " ".join(raw.split())
        if not line or line.startswith("#"):
            continue
        if line.startswith(_BLACKLIST_DIRECTIVES):
            return True
    return False


class SysfsNouveauDetector(NouveauDetector):
    """Reads nouveau state from ``/sys/module``, PCI bindings and modprobe.d."""

    def __init__(
        self,
        pci_scanner: PCIScanner | None = None,
        *,
        module_root: str | Path = SYS_MODULE_ROOT,
        modprobe_dir: str | Path = MODPROBE_DIR,
    ):
        self._pci = pci_scanner or SysfsPCIScanner()
        self._module_root = Path(module_root)
        self._modprobe_dir = Path(modprobe_dir)

    def detect(self, *, deadline: Deadline | None = None) -> NouveauStatus:
        deadline = ensure(deadline)
        deadline.check("nouveau.detect")

        loaded = self.is_loaded(deadline=deadline)
        bound = self.get_bound_devices(deadline=deadline)
        blacklists = self.blacklist_files(deadline=deadline)
        return NouveauStatus(
            loaded=loaded,
            in_use=bool(bound),
            bound_devices=bound,
            blacklist_exists=bool(blacklists),
            blacklist_files=blacklists,
        )

    def is_loaded(self, *, deadline: Deadline | None = None) -> bool:
        ensure(deadline).check("nouveau.is_loaded")
        return (self._module_root / DRIVER_NOUVEAU).exists()

    def get_bound_devices(self, *, deadline: Deadline | None = None) -> list[str]:
        """Addresses of PCI devices bound to nouveau."""
        deadline = ensure(deadline)
        deadline.check("nouveau.get_bound_devices")
        devices = self._pci.scan_all(deadline=deadline)
        return [d.address for d in devices if d.driver == DRIVER_NOUVEAU]

    def blacklist_files(self, *, deadline: Deadline | None = None) -> list[str]:
        """``*.conf`` files in modprobe.d that disable nouveau."""
        deadline = ensure(deadline)
        deadline.check("nouveau.blacklist_files")
        try:
            entries = sorted(self._modprobe_dir.iterdir())
        except OSError as e:
            logger.debug("Cannot list %s: %s", self._modprobe_dir, e)
            return []

        found: list[str] = []
        for entry in entries:
            deadline.check("nouveau.blacklist_files")
            if entry.suffix != ".conf" or not entry.is_file():
                continue
            try:
                content = entry.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            if is_blacklist_content(content):
                found.append(str(entry))
        return found

    def is_blacklisted(self, *, deadline: Deadline | None = None) -> bool:
        return bool(self.blacklist_files(deadline=deadline))
