"""
Kernel detector — release, loaded modules, headers and Secure Boot.

Secure Boot is a fallback chain:

    1. ``mokutil --sb-state`` stdout+stderr contains
       "SecureBoot enabled" / "SecureBoot disabled"
    2. otherwise the ``SecureBoot-*`` EFI variable: 4 attribute bytes,
       then one data byte (1 = enabled)
    3. anything else → disabled
"""

from __future__ import annotations

import logging
import platform
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

from igor.adapters.base import CommandRunner
from igor.adapters.shell.command import ShellCommandRunner
from igor.core.deadline import Deadline, ensure
from igor.core.errors import ErrorKind, IgorError, wrap_os_error
from igor.core.models.system import DistroFamily, KernelInfo, ModuleInfo
from igor.core.services.distro import detect_distribution
from igor.core.services.gpu.base import KernelDetector

logger = logging.getLogger(__name__)

PROC_MODULES = "/proc/modules"
HEADERS_PREFIX = "/usr/src/linux-headers-"
MODULES_BUILD_ROOT = "/lib/modules"
EFIVARS_PATH = "/sys/firmware/efi/efivars"

_VERSION_RE = re.compile(r"^(\d+\.\d+\.\d+)")
_SHORT_VERSION_RE = re.compile(r"^(\d+\.\d+)")


# ── /proc/modules ───────────────────────────────────────────────────


def parse_module_line(line: str) -> ModuleInfo | None:
    """``name size used_count used_by state offset`` → ModuleInfo."""
    fields = line.split()
    if len(fields) < 5:
        return None
    try:
        size = int(fields[1])
        used_count = int(fields[2])
    except ValueError:
        return None

    deps = fields[3].rstrip(",")
    used_by = deps.split(",") if deps and deps != "-" else []
    return ModuleInfo(name=fields[0], size=size, used_count=used_count, used_by=used_by, state=fields[4])


def parse_modules(content: str) -> list[ModuleInfo]:
    """Parse ``/proc/modules``; malformed lines are skipped."""
    modules = []
    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue
        module = parse_module_line(line)
        if module is not None:
            modules.append(module)
    return modules


def extract_version(release: str) -> str:
    """``6.5.0-44-generic`` → ``6.5.0``; ``4.15`` stays as is."""
    for pattern in (_VERSION_RE, _SHORT_VERSION_RE):
        match = pattern.match(release)
        if match:
            return match.group(1)
    return release


def headers_package_name(release: str, family: DistroFamily) -> str:
    if family == DistroFamily.RHEL:
        return f"kernel-devel-{release}"
    if family == DistroFamily.ARCH:
        return "linux-headers"
    if family == DistroFamily.SUSE:
        return "kernel-default-devel"
    return f"linux-headers-{release}"


# ── Detector ────────────────────────────────────────────────────────


class HostKernelDetector(KernelDetector):
    """Kernel facts from ``platform.uname``, procfs, sysfs and mokutil.

    Args:
        runner: Command runner for mokutil.
        distro_family: Override for headers package naming. Detected
            from os-release on each call when omitted.
        uname: Callable returning an object with ``release`` and
            ``machine`` attributes.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        proc_modules: str | Path = PROC_MODULES,
        headers_prefix: str = HEADERS_PREFIX,
        modules_build_root: str | Path = MODULES_BUILD_ROOT,
        efivars_path: str | Path = EFIVARS_PATH,
        distro_family: DistroFamily | None = None,
        uname: Callable[[], Any] = platform.uname,
    ):
        self._runner = runner or ShellCommandRunner()
        self._proc_modules = Path(proc_modules)
        self._headers_prefix = headers_prefix
        self._modules_build_root = Path(modules_build_root)
        self._efivars = Path(efivars_path)
        self._distro_family = distro_family
        self._uname = uname

    # ── Release ─────────────────────────────────────────────────

    def _release(self) -> str:
        release = (self._uname().release or "").strip()
        if not release:
            raise IgorError("empty kernel release", op="kernel.release", kind=ErrorKind.EXECUTION)
        return release

    def get_kernel_info(self, *, deadline: Deadline | None = None) -> KernelInfo:
        deadline = ensure(deadline)
        deadline.check("kernel.get_kernel_info")

        uname = self._uname()
        release = self._release()
        headers_path = self._find_headers(release)

        return KernelInfo(
            version=extract_version(release),
            release=release,
            architecture=(uname.machine or "").strip(),
            headers_installed=bool(headers_path),
            headers_path=headers_path,
            secure_boot_enabled=self.is_secure_boot_enabled(deadline=deadline),
        )

    # ── Modules ─────────────────────────────────────────────────

    def get_loaded_modules(self, *, deadline: Deadline | None = None) -> list[ModuleInfo]:
        ensure(deadline).check("kernel.get_loaded_modules")
        try:
            content = self._proc_modules.read_text(encoding="utf-8")
        except OSError as e:
            raise wrap_os_error(e, "kernel.get_loaded_modules", f"failed to read {self._proc_modules}") from e
        return parse_modules(content)

    def get_module(self, name: str, *, deadline: Deadline | None = None) -> ModuleInfo | None:
        for module in self.get_loaded_modules(deadline=deadline):
            if module.name == name:
                return module
        return None

    def is_module_loaded(self, name: str, *, deadline: Deadline | None = None) -> bool:
        return self.get_module(name, deadline=deadline) is not None

    # ── Headers ─────────────────────────────────────────────────

    def _find_headers(self, release: str) -> str:
        """Path of the headers for ``release``, or empty string."""
        candidate = Path(f"{self._headers_prefix}{release}")
        if candidate.exists():
            return str(candidate)
        build = self._modules_build_root / release / "build"
        if build.is_dir():
            return str(build)
        return ""

    def are_headers_installed(self, *, deadline: Deadline | None = None) -> bool:
        ensure(deadline).check("kernel.are_headers_installed")
        return bool(self._find_headers(self._release()))

    def get_headers_package_name(self, *, deadline: Deadline | None = None) -> str:
        ensure(deadline).check("kernel.get_headers_package_name")
        return headers_package_name(self._release(), self.distro_family())

    def distro_family(self) -> DistroFamily:
        if self._distro_family is not None:
            return self._distro_family
        try:
            return detect_distribution().family
        except IgorError as e:
            logger.debug("Distribution unknown: %s", e)
            return DistroFamily.UNKNOWN

    # ── Secure Boot ─────────────────────────────────────────────

    def is_secure_boot_enabled(self, *, deadline: Deadline | None = None) -> bool:
        deadline = ensure(deadline)
        if deadline.expired:
            return False

        result = self._runner.run("mokutil", ["--sb-state"], deadline=deadline)
        output = result.combined
        if "SecureBoot enabled" in output:
            return True
        if "SecureBoot disabled" in output:
            return False

        logger.debug("mokutil inconclusive, reading EFI variables")
        return self._secure_boot_from_efivars(deadline)

    def _secure_boot_from_efivars(self, deadline: Deadline) -> bool:
        try:
            entries = list(self._efivars.iterdir())
        except OSError:
            return False

        for entry in entries:
            if deadline.expired:
                return False
            if not entry.name.startswith("SecureBoot-"):
                continue
            try:
                content = entry.read_bytes()
            except OSError:
                return False
            return len(content) >= 5 and content[4] == 1
        return False
