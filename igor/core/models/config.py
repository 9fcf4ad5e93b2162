"""
Configuration model — the igor.yml schema.

Every field has a default, so an empty or absent file is valid.

Example igor.yml::

    timeout: 45
    min_disk_space_mb: 4096
    min_kernel_version: "5.4"
    required_build_tools: [gcc, make, dkms]
    disk_check_paths: [/usr, /var, /]
    paths:
      modprobe_dir: /etc/modprobe.d
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class HostPaths(BaseModel):
    """Filesystem locations the detectors read from."""

    pci_devices: str = "/sys/bus/pci/devices"
    proc_modules: str = "/proc/modules"
    module_root: str = "/sys/module"
    modprobe_dir: str = "/etc/modprobe.d"
    efivars: str = "/sys/firmware/efi/efivars"
    headers_prefix: str = "/usr/src/linux-headers-"
    modules_build_root: str = "/lib/modules"
    os_release: list[str] = Field(default_factory=lambda: ["/etc/os-release", "/usr/lib/os-release"])


class IgorConfig(BaseModel):
    """Validated runtime configuration."""

    timeout: float = 30.0                      # seconds per orchestrator call
    command_timeout: float = 120.0             # seconds per external command
    min_disk_space_mb: int = 2048
    min_kernel_version: str = "4.15"
    required_build_tools: list[str] = Field(default_factory=lambda: ["gcc", "make", "dkms"])
    disk_check_paths: list[str] = Field(default_factory=lambda: ["/usr", "/var", "/"])
    resolve_names: bool = True                 # use lspci for live GPU names
    paths: HostPaths = Field(default_factory=HostPaths)

    @field_validator("min_kernel_version")
    @classmethod
    def _check_kernel_version(cls, v: str) -> str:
        major, sep, minor = v.partition(".")
        if not sep or not major.isdigit() or not minor.isdigit():
            raise ValueError(f"expected MAJOR.MINOR, got {v!r}")
        return v

    @field_validator("timeout", "command_timeout")
    @classmethod
    def _check_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @property
    def min_kernel(self) -> tuple[int, int]:
        major, _, minor = self.min_kernel_version.partition(".")
        return int(major), int(minor)
