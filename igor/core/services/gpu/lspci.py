"""
lspci name resolver — marketing names from the system PCI id database.

``lspci -D`` output looks like::

    0000:01:00.0 VGA compatible controller: NVIDIA Corporation GA102 [GeForce RTX 3090] (rev a1)

The bracketed part is the product name. When there is none, the
description minus vendor prefix and revision suffix is used.
"""

from __future__ import annotations

import logging
import re

from igor.adapters.base import CommandRunner
from igor.adapters.shell.command import ShellCommandRunner
from igor.core.deadline import Deadline, ensure
from igor.core.services.gpu.base import NameResolver

logger = logging.getLogger(__name__)

_BRACKET_RE = re.compile(r"\[([^\]]+)\]")
_VENDOR_PREFIX = "NVIDIA Corporation "


def parse_lspci_line(line: str) -> tuple[str, str, str]:
    """Split a line into (address, device type, description)."""
    address, sep, rest = line.partition(" ")
    if not sep:
        return "", "", ""
    dev_type, sep, description = rest.partition(": ")
    if not sep:
        return address, "", ""
    return address, dev_type, description


def extract_model_name(description: str) -> str:
    match = _BRACKET_RE.search(description)
    if match:
        return match.group(1).strip()

    name = description.removeprefix(_VENDOR_PREFIX)
    idx = name.find(" (rev")
    if idx != -1:
        name = name[:idx]
    return name.strip()


class LspciResolver(NameResolver):
    """Resolves GPU names by running ``lspci -D``."""

    def __init__(self, runner: CommandRunner | None = None):
        self._runner = runner or ShellCommandRunner()

    def resolve_names(self, *, deadline: Deadline | None = None) -> dict[str, str]:
        deadline = ensure(deadline)
        deadline.check("lspci.resolve_names")

        result = self._runner.run("lspci", ["-D"], deadline=deadline)
        if not result.ok:
            logger.debug("lspci unavailable: %s", result.error or result.stderr.strip())
            return {}

        names: dict[str, str] = {}
        for line in result.stdout.splitlines():
            if "nvidia" not in line.lower():
                continue
            address, _, description = parse_lspci_line(line)
            if not address or not description:
                continue
            name = extract_model_name(description)
            if name:
                names[address] = name
        return names
