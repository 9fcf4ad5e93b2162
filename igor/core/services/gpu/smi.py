"""
nvidia-smi parser — driver version, CUDA version and per-GPU metrics.

Two invocations:

    nvidia-smi                       → header with driver/CUDA versions
    nvidia-smi --query-gpu=... csv   → one line per GPU

If the header parses but the query fails, the snapshot is still
returned with versions only.
"""

from __future__ import annotations

import csv
import io
import logging
import re

from igor.adapters.base import CommandResult, CommandRunner
from igor.adapters.shell.command import ShellCommandRunner
from igor.core.deadline import Deadline, ensure
from igor.core.errors import (
    DriverNotLoaded,
    ErrorKind,
    IgorError,
    NoDevicesFound,
    UtilityNotFound,
)
from igor.core.models.gpu import SMIGPUInfo, SMIInfo
from igor.core.services.gpu.base import DriverUtility

logger = logging.getLogger(__name__)

NVIDIA_SMI = "nvidia-smi"

QUERY_FIELDS = (
    "index", "name", "uuid",
    "memory.total", "memory.used", "memory.free",
    "temperature.gpu", "power.draw", "power.limit",
    "utilization.gpu", "utilization.memory",
    "compute_mode", "persistence_mode",
)
QUERY_ARGS = [f"--query-gpu={','.join(QUERY_FIELDS)}", "--format=csv,noheader,nounits"]

_HEADER_RE = re.compile(r"Driver Version:\s*(\d+\.\d+(?:\.\d+)?)\s+CUDA Version:\s*(\d+\.\d+)")
_DRIVER_RE = re.compile(r"Driver Version:\s*(\d+\.\d+(?:\.\d+)?)")
_CUDA_RE = re.compile(r"CUDA Version:\s*(\d+\.\d+)")

_MSG_NOT_FOUND = "command not found"
_MSG_DRIVER_NOT_LOADED = "NVIDIA-SMI has failed"
_MSG_NO_DEVICES = "No devices were found"


def classify_failure(result: CommandResult) -> IgorError | None:
    """Map a failed nvidia-smi run to its error class; None if it succeeded."""
    combined = result.combined
    if result.error is not None:
        if result.not_found or _MSG_NOT_FOUND in combined.lower():
            return UtilityNotFound(
                "nvidia-smi not found: NVIDIA drivers may not be installed", op="smi",
            )
        return IgorError(f"failed to execute nvidia-smi: {result.error}", op="smi")

    if result.exit_code != 0:
        if _MSG_DRIVER_NOT_LOADED in combined:
            return DriverNotLoaded(
                "NVIDIA driver is not loaded: nvidia-smi cannot communicate with the driver",
                op="smi",
            )
        if _MSG_NO_DEVICES in combined:
            return NoDevicesFound("no NVIDIA devices found", op="smi")
        return IgorError(
            f"nvidia-smi exited with code {result.exit_code}: {combined.strip()}", op="smi",
        )
    return None


def _int(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None


def _float(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def parse_gpu_row(fields: list[str]) -> SMIGPUInfo:
    """Build one GPU entry from a CSV row.

    Raises:
        IgorError: kind validation for short rows or a bad index.
    """
    if len(fields) < len(QUERY_FIELDS):
        raise IgorError(
            f"expected {len(QUERY_FIELDS)} fields, got {len(fields)}",
            op="smi.parse_gpu_row", kind=ErrorKind.VALIDATION,
        )
    fields = [f.strip() for f in fields]
    index = _int(fields[0])
    if index is None:
        raise IgorError(
            f"invalid GPU index: {fields[0]!r}",
            op="smi.parse_gpu_row", kind=ErrorKind.VALIDATION,
        )

    return SMIGPUInfo(
        index=index,
        name=fields[1],
        uuid=fields[2],
        memory_total_mb=_int(fields[3]),
        memory_used_mb=_int(fields[4]),
        memory_free_mb=_int(fields[5]),
        temperature_c=_int(fields[6]),
        power_draw_w=_float(fields[7]),
        power_limit_w=_float(fields[8]),
        utilization_gpu=_int(fields[9]),
        utilization_memory=_int(fields[10]),
        compute_mode=fields[11],
        persistence_mode=fields[12].lower() in ("enabled", "on", "1"),
    )


def parse_gpu_csv(output: str) -> list[SMIGPUInfo]:
    """Parse query output; malformed rows are skipped."""
    gpus: list[SMIGPUInfo] = []
    for row in csv.reader(io.StringIO(output.strip()), skipinitialspace=True):
        if not row or not "".join(row).strip():
            continue
        try:
            gpus.append(parse_gpu_row(row))
        except IgorError as e:
            logger.debug("Skipping nvidia-smi row %r: %s", row, e)
    return gpus


class NvidiaSMIParser(DriverUtility):
    """Runs nvidia-smi through a command runner."""

    def __init__(self, runner: CommandRunner | None = None):
        self._runner = runner or ShellCommandRunner()

    def _run(self, args: list[str], deadline: Deadline, op: str) -> CommandResult:
        deadline.check(op)
        result = self._runner.run(NVIDIA_SMI, args, deadline=deadline)
        error = classify_failure(result)
        if error is not None:
            raise error
        return result

    def parse(self, *, deadline: Deadline | None = None) -> SMIInfo:
        deadline = ensure(deadline)
        header = self._run([], deadline, "smi.parse")

        info = SMIInfo()
        match = _HEADER_RE.search(header.stdout)
        if match:
            info.driver_version, info.cuda_version = match.group(1), match.group(2)

        try:
            query = self._run(QUERY_ARGS, deadline, "smi.parse")
        except IgorError:
            if info.driver_version:
                logger.debug("nvidia-smi query failed; returning versions only")
                info.available = True
                return info
            raise

        info.gpus = parse_gpu_csv(query.stdout)
        info.available = True
        return info

    def is_available(self, *, deadline: Deadline | None = None) -> bool:
        try:
            self._run([], ensure(deadline), "smi.is_available")
        except IgorError:
            return False
        return True

    def get_driver_version(self, *, deadline: Deadline | None = None) -> str:
        result = self._run([], ensure(deadline), "smi.get_driver_version")
        match = _DRIVER_RE.search(result.stdout)
        if not match:
            raise IgorError(
                "driver version not found in nvidia-smi output",
                op="smi.get_driver_version", kind=ErrorKind.NOT_FOUND,
            )
        return match.group(1)

    def get_cuda_version(self, *, deadline: Deadline | None = None) -> str:
        result = self._run([], ensure(deadline), "smi.get_cuda_version")
        match = _CUDA_RE.search(result.stdout)
        if not match:
            raise IgorError(
                "CUDA version not found in nvidia-smi output",
                op="smi.get_cuda_version", kind=ErrorKind.NOT_FOUND,
            )
        return match.group(1)

    def get_gpu_count(self, *, deadline: Deadline | None = None) -> int:
        result = self._run(
            ["--query-gpu=index", "--format=csv,noheader,nounits"],
            ensure(deadline), "smi.get_gpu_count",
        )
        return len(result.stdout_lines)
