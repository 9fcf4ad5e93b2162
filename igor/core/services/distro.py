"""
Distribution detection — parse os-release and classify the family.

The family decides which package provides kernel headers and which
package manager appears in remediation text.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from igor.core.errors import wrap_os_error
from igor.core.models.system import Distribution, DistroFamily

logger = logging.getLogger(__name__)

OS_RELEASE_PATHS = ("/etc/os-release", "/usr/lib/os-release")

_FAMILY_BY_ID: dict[str, DistroFamily] = {
    **dict.fromkeys(
        ("debian", "ubuntu", "linuxmint", "pop", "elementary", "zorin",
         "kali", "mx", "lmde", "raspbian", "devuan"),
        DistroFamily.DEBIAN,
    ),
    **dict.fromkeys(
        ("fedora", "rhel", "centos", "rocky", "almalinux", "ol", "amzn",
         "scientific", "oracle"),
        DistroFamily.RHEL,
    ),
    **dict.fromkeys(
        ("arch", "manjaro", "endeavouros", "garuda", "artix", "arcolinux",
         "archcraft", "archbang"),
        DistroFamily.ARCH,
    ),
    **dict.fromkeys(
        ("opensuse", "opensuse-leap", "opensuse-tumbleweed", "sles", "suse"),
        DistroFamily.SUSE,
    ),
}

_FAMILY_BY_LIKE: dict[str, DistroFamily] = {
    "debian": DistroFamily.DEBIAN,
    "ubuntu": DistroFamily.DEBIAN,
    "fedora": DistroFamily.RHEL,
    "rhel": DistroFamily.RHEL,
    "centos": DistroFamily.RHEL,
    "arch": DistroFamily.ARCH,
    "suse": DistroFamily.SUSE,
    "opensuse": DistroFamily.SUSE,
}

# Install command per family, used in remediation text
PACKAGE_INSTALL_COMMANDS: dict[DistroFamily, str] = {
    DistroFamily.DEBIAN: "sudo apt install",
    DistroFamily.RHEL: "sudo dnf install",
    DistroFamily.ARCH: "sudo pacman -S",
    DistroFamily.SUSE: "sudo zypper install",
}


def detect_family(distro_id: str, id_like: list[str] | None = None) -> DistroFamily:
    """Family from ID first, then from the ID_LIKE chain."""
    family = _FAMILY_BY_ID.get(distro_id.lower())
    if family is not None:
        return family
    for like in id_like or []:
        family = _FAMILY_BY_LIKE.get(like.lower())
        if family is not None:
            return family
    return DistroFamily.UNKNOWN


def parse_os_release(content: str) -> Distribution:
    """Parse os-release ``KEY=value`` lines; unknown keys are ignored."""
    fields: dict[str, str] = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value.strip("\"'")]
        fields[key] = parts[0] if parts else ""

    distro_id = fields.get("ID", "").lower()
    id_like = fields.get("ID_LIKE", "").split()
    return Distribution(
        id=distro_id,
        id_like=id_like,
        name=fields.get("NAME", ""),
        pretty_name=fields.get("PRETTY_NAME", ""),
        version_id=fields.get("VERSION_ID", ""),
        version_codename=fields.get("VERSION_CODENAME", ""),
        family=detect_family(distro_id, id_like),
    )


def detect_distribution(paths: tuple[str, ...] | list[str] = OS_RELEASE_PATHS) -> Distribution:
    """Read the first readable os-release file.

    Raises:
        IgorError: kind not_found/permission_denied/io when none is readable.
    """
    last_error: OSError | None = None
    for path in paths:
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            last_error = e
            continue
        logger.debug("Parsed distribution from %s", path)
        return parse_os_release(content)

    assert last_error is not None
    raise wrap_os_error(last_error, "distro.detect", "failed to read os-release file")
