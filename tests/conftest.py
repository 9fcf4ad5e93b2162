"""
Shared test fixtures — throwaway host trees under tmp_path.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest


class SysfsTree:
    """Builds a fake ``/sys/bus/pci/devices`` directory.

    Driver bindings are real symlinks into a sibling ``drivers/`` tree,
    the same shape the kernel exposes.
    """

    def __init__(self, base: Path):
        self.root = base / "devices"
        self.drivers = base / "drivers"
        self.root.mkdir(parents=True)
        self.drivers.mkdir()

    def add_device(
        self,
        address: str,
        vendor: str = "0x10de",
        device: str = "0x2684",
        class_code: str | None = "0x030000",
        driver: str | None = None,
        **optional: str,
    ) -> Path:
        path = self.root / address
        path.mkdir()
        (path / "vendor").write_text(f"{vendor}\n")
        (path / "device").write_text(f"{device}\n")
        if class_code is not None:
            (path / "class").write_text(f"{class_code}\n")
        for name, value in optional.items():
            (path / name).write_text(f"{value}\n")
        if driver:
            target = self.drivers / driver
            target.mkdir(exist_ok=True)
            (path / "driver").symlink_to(target)
        return path


@pytest.fixture
def sysfs(tmp_path: Path) -> SysfsTree:
    """An empty PCI device tree."""
    return SysfsTree(tmp_path / "sys" / "bus" / "pci")


@pytest.fixture
def module_root(tmp_path: Path) -> Path:
    """Stand-in for ``/sys/module``."""
    path = tmp_path / "sys" / "module"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def modprobe_dir(tmp_path: Path) -> Path:
    """Stand-in for ``/etc/modprobe.d``."""
    path = tmp_path / "etc" / "modprobe.d"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def restore_logging():
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def fake_bin(tmp_path: Path, monkeypatch):
    """Install shell scripts on a PATH directory that shadows the host's."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    def install(name: str, body: str) -> Path:
        script = bin_dir / name
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(0o755)
        return script

    return install
