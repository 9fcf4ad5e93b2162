"""
Detection use cases — config in, orchestrator call, result object out.

Each ``run_*`` function never raises: configuration and orchestration
failures land in ``result.error`` so the CLI can render them in text
or JSON the same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from igor.adapters.base import CommandRunner
from igor.adapters.shell.command import ShellCommandRunner
from igor.core.config.loader import ConfigError, load_config
from igor.core.errors import IgorError
from igor.core.models.config import IgorConfig
from igor.core.models.gpu import DriverStatus, GPURecord
from igor.core.models.report import DetectionReport, Readiness
from igor.core.models.system import DistroFamily
from igor.core.models.validation import ValidationReport
from igor.core.services.distro import detect_distribution
from igor.core.services.gpu.database import StaticGPUDatabase
from igor.core.services.gpu.kernel import HostKernelDetector
from igor.core.services.gpu.lspci import LspciResolver
from igor.core.services.gpu.nouveau import SysfsNouveauDetector
from igor.core.services.gpu.orchestrator import GPUOrchestrator
from igor.core.services.gpu.pci import SysfsPCIScanner
from igor.core.services.gpu.smi import NvidiaSMIParser
from igor.core.services.gpu.validator import HostSystemValidator

logger = logging.getLogger(__name__)


def build_orchestrator(config: IgorConfig, runner: CommandRunner | None = None) -> GPUOrchestrator:
    """Wire the real detectors according to ``config``."""
    runner = runner or ShellCommandRunner(timeout=config.command_timeout)
    paths = config.paths

    try:
        family = detect_distribution(paths.os_release).family
    except IgorError as e:
        logger.debug("Distribution unknown: %s", e)
        family = DistroFamily.UNKNOWN

    pci = SysfsPCIScanner(paths.pci_devices)
    kernel = HostKernelDetector(
        runner,
        proc_modules=paths.proc_modules,
        headers_prefix=paths.headers_prefix,
        modules_build_root=paths.modules_build_root,
        efivars_path=paths.efivars,
        distro_family=family,
    )
    nouveau = SysfsNouveauDetector(pci, module_root=paths.module_root, modprobe_dir=paths.modprobe_dir)
    validator = HostSystemValidator(
        kernel,
        nouveau,
        required_disk_mb=config.min_disk_space_mb,
        min_kernel=config.min_kernel,
        required_tools=config.required_build_tools,
        disk_paths=config.disk_check_paths,
        distro_family=family,
    )
    return GPUOrchestrator(
        pci_scanner=pci,
        gpu_database=StaticGPUDatabase(),
        driver_utility=NvidiaSMIParser(runner),
        nouveau_detector=nouveau,
        kernel_detector=kernel,
        validator=validator,
        name_resolver=LspciResolver(runner) if config.resolve_names else None,
        timeout=config.timeout,
    )


def _orchestrator(config_path: Path | None) -> GPUOrchestrator:
    return build_orchestrator(load_config(config_path))


# ── Full detection ──────────────────────────────────────────────────


@dataclass
class DetectResult:
    """Result of a full detection run."""

    report: DetectionReport | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.report is not None
        return self.report.to_dict()


def run_detect(config_path: Path | None = None) -> DetectResult:
    result = DetectResult()
    try:
        result.report = _orchestrator(config_path).detect_all()
    except (ConfigError, IgorError) as e:
        result.error = str(e)
    return result


# ── GPU inventory ───────────────────────────────────────────────────


@dataclass
class InventoryResult:
    """GPUs and the active driver, without validation."""

    gpus: list[GPURecord] = field(default_factory=list)
    driver: DriverStatus | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "gpu_count": len(self.gpus),
            "gpus": [g.model_dump(mode="json") for g in self.gpus],
            "driver": self.driver.model_dump(mode="json") if self.driver else None,
        }


def run_inventory(config_path: Path | None = None) -> InventoryResult:
    result = InventoryResult()
    try:
        orchestrator = _orchestrator(config_path)
        result.gpus = orchestrator.detect_gpus()
        result.driver = orchestrator.get_driver_status()
    except (ConfigError, IgorError) as e:
        result.error = str(e)
    return result


# ── Validation ──────────────────────────────────────────────────────


@dataclass
class ValidateResult:
    report: ValidationReport | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.report is not None
        data = self.report.model_dump(mode="json", exclude={"errors", "warnings", "infos"})
        data["summary"] = self.report.summary()
        return data


def run_validate(config_path: Path | None = None) -> ValidateResult:
    result = ValidateResult()
    try:
        result.report = _orchestrator(config_path).validate_system()
    except (ConfigError, IgorError) as e:
        result.error = str(e)
    return result


# ── Readiness ───────────────────────────────────────────────────────


@dataclass
class ReadyResult:
    readiness: Readiness | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.readiness is not None
        return self.readiness.to_dict()


def run_ready(config_path: Path | None = None) -> ReadyResult:
    result = ReadyResult()
    try:
        result.readiness = _orchestrator(config_path).is_ready_for_install()
    except (ConfigError, IgorError) as e:
        result.error = str(e)
    return result
