"""
Host system models — kernel, loaded modules, Nouveau, distribution.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class KernelInfo(BaseModel):
    """Running kernel facts."""

    model_config = ConfigDict(frozen=True)

    version: str = ""              # numeric part, e.g. 6.5.0
    release: str = ""              # full uname -r, e.g. 6.5.0-44-generic
    architecture: str = ""         # uname -m
    headers_installed: bool = False
    headers_path: str = ""
    secure_boot_enabled: bool = False


class ModuleInfo(BaseModel):
    """One line of ``/proc/modules``."""

    name: str
    size: int = 0
    used_count: int = 0
    used_by: list[str] = Field(default_factory=list)
    state: str = ""               # Live, Loading, Unloading


class NouveauStatus(BaseModel):
    """State of the open-source nouveau driver."""

    model_config = ConfigDict(frozen=True)

    loaded: bool = False
    in_use: bool = False
    bound_devices: tuple[str, ...] = ()    # PCI addresses
    blacklist_exists: bool = False
    blacklist_files: tuple[str, ...] = ()


class DistroFamily(StrEnum):
    """Package-management family of a Linux distribution."""

    DEBIAN = "debian"
    RHEL = "rhel"
    ARCH = "arch"
    SUSE = "suse"
    UNKNOWN = "unknown"


class Distribution(BaseModel):
    """Parsed ``/etc/os-release``."""

    id: str = ""
    id_like: list[str] = Field(default_factory=list)
    name: str = ""
    pretty_name: str = ""
    version_id: str = ""
    version_codename: str = ""
    family: DistroFamily = DistroFamily.UNKNOWN
