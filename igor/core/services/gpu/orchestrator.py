"""
GPU orchestrator — fan detection out, fold results into one report.

``detect_all`` runs five branches on a thread pool under one deadline:

    gpus        PCI scan → lspci names → database match
    driver      PCI bindings → nvidia-smi → nouveau fallback
    nouveau     nouveau detector
    kernel      kernel detector
    validation  system validator

A failing branch is recorded in ``DetectionReport.errors`` and the
others carry on. After every branch has joined, nvidia-smi metrics are
attached to GPU records by list position: record i gets smi GPU i.
That pairing assumes sysfs order equals nvidia-smi enumeration order.

The returned report is read-only all the way down: value models are
frozen, and the validation report and database entries are sealed.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime

from igor.core.deadline import Deadline
from igor.core.errors import CapabilityNotConfigured, IgorError
from igor.core.models.gpu import DriverKind, DriverStatus, GPURecord
from igor.core.models.pci import PCIDevice
from igor.core.models.report import DetectionIssue, DetectionReport, Readiness, Reason, ReasonKind
from igor.core.models.system import KernelInfo, NouveauStatus
from igor.core.models.validation import ValidationReport
from igor.core.services.gpu.base import (
    DriverUtility,
    GPUDatabase,
    KernelDetector,
    NameResolver,
    NouveauDetector,
    PCIScanner,
    SystemValidator,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

NOUVEAU_LOADED_WARNING = "Nouveau driver is currently loaded (will need to be disabled)"


@dataclass
class _RunState:
    """In-flight report shared by the detection branches.

    Branches compute outside the lock and take it only to store results.
    """

    pci_devices: list[PCIDevice] = field(default_factory=list)
    gpus: list[GPURecord] = field(default_factory=list)
    driver: DriverStatus | None = None
    nouveau: NouveauStatus | None = None
    kernel: KernelInfo | None = None
    validation: ValidationReport | None = None
    errors: list[DetectionIssue] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def record_error(self, source: str, exc: BaseException) -> None:
        issue = DetectionIssue.from_exception(source, exc)
        with self.lock:
            self.errors.append(issue)


class GPUOrchestrator:
    """Coordinates the detector capabilities.

    Every capability is optional; operations that need a missing one
    either skip it or raise ``CapabilityNotConfigured``.

    Args:
        pci_scanner: PCI enumeration. Required for GPU detection.
        gpu_database: Static model lookup.
        driver_utility: nvidia-smi parser.
        nouveau_detector: Nouveau state.
        kernel_detector: Kernel facts.
        validator: Validation battery.
        name_resolver: Live GPU names (lspci).
        timeout: Seconds allowed for one top-level call.
    """

    def __init__(
        self,
        *,
        pci_scanner: PCIScanner | None = None,
        gpu_database: GPUDatabase | None = None,
        driver_utility: DriverUtility | None = None,
        nouveau_detector: NouveauDetector | None = None,
        kernel_detector: KernelDetector | None = None,
        validator: SystemValidator | None = None,
        name_resolver: NameResolver | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.pci_scanner = pci_scanner
        self.gpu_database = gpu_database
        self.driver_utility = driver_utility
        self.nouveau_detector = nouveau_detector
        self.kernel_detector = kernel_detector
        self.validator = validator
        self.name_resolver = name_resolver
        self.timeout = timeout

    def _deadline(self, parent: Deadline | None) -> Deadline:
        timeout = self.timeout if self.timeout > 0 else None
        return (parent or Deadline()).child(timeout)

    # ── Full run ────────────────────────────────────────────────

    def detect_all(self, *, deadline: Deadline | None = None) -> DetectionReport:
        """Run every detector concurrently and return a frozen report.

        Raises:
            OperationCancelled: If the deadline had already passed on entry.
        """
        deadline = self._deadline(deadline)
        deadline.check("orchestrator.detect_all")

        started_at = datetime.now(UTC)
        start = time.monotonic()
        state = _RunState()

        branches: dict[str, Callable[[_RunState, Deadline], None]] = {
            "gpus": self._branch_gpus,
            "driver": self._branch_driver,
            "nouveau": self._branch_nouveau,
            "kernel": self._branch_kernel,
            "validation": self._branch_validation,
        }
        with ThreadPoolExecutor(max_workers=len(branches), thread_name_prefix="igor-detect") as pool:
            futures = [
                pool.submit(self._run_branch, name, branch, state, deadline)
                for name, branch in branches.items()
            ]
            wait(futures)

        # Needs the gpus and driver branches; both have joined
        gpus = self._attach_smi(state.gpus, deadline)

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.debug(
            "Detection finished in %dms: %d GPU(s), %d error(s)",
            duration_ms, len(gpus), len(state.errors),
        )
        return DetectionReport(
            pci_devices=tuple(state.pci_devices),
            gpus=tuple(gpus),
            driver=state.driver,
            nouveau=state.nouveau,
            kernel=state.kernel,
            validation=state.validation.model_copy(deep=True).seal() if state.validation else None,
            started_at=started_at,
            duration_ms=duration_ms,
            errors=tuple(state.errors),
        )

    @staticmethod
    def _run_branch(
        name: str,
        branch: Callable[[_RunState, Deadline], None],
        state: _RunState,
        deadline: Deadline,
    ) -> None:
        start = time.monotonic()
        try:
            branch(state, deadline)
        except Exception as e:
            logger.warning("Detection branch %s failed: %s", name, e)
            state.record_error(name, e)
        logger.debug("Branch %s took %dms", name, int((time.monotonic() - start) * 1000))

    def _branch_gpus(self, state: _RunState, deadline: Deadline) -> None:
        devices, gpus = self._scan_gpus(deadline)
        with state.lock:
            state.pci_devices = devices
            state.gpus = gpus

    def _branch_driver(self, state: _RunState, deadline: Deadline) -> None:
        driver = self._driver_status(deadline)
        with state.lock:
            state.driver = driver

    def _branch_nouveau(self, state: _RunState, deadline: Deadline) -> None:
        if self.nouveau_detector is None:
            return
        status = self.nouveau_detector.detect(deadline=deadline)
        with state.lock:
            state.nouveau = status

    def _branch_kernel(self, state: _RunState, deadline: Deadline) -> None:
        if self.kernel_detector is None:
            return
        info = self.kernel_detector.get_kernel_info(deadline=deadline)
        with state.lock:
            state.kernel = info

    def _branch_validation(self, state: _RunState, deadline: Deadline) -> None:
        if self.validator is None:
            return
        report = self.validator.validate(deadline=deadline)
        with state.lock:
            state.validation = report

    # ── GPU detection ───────────────────────────────────────────

    def detect_gpus(self, *, deadline: Deadline | None = None) -> list[GPURecord]:
        """Enriched GPU records, without driver or validation work.

        Raises:
            CapabilityNotConfigured: If no PCI scanner is wired in.
            IgorError: If the PCI scan itself fails.
        """
        deadline = self._deadline(deadline)
        _, gpus = self._scan_gpus(deadline)
        return self._attach_smi(gpus, deadline)

    def _scan_gpus(self, deadline: Deadline) -> tuple[list[PCIDevice], list[GPURecord]]:
        if self.pci_scanner is None:
            raise CapabilityNotConfigured("PCI scanner not configured", op="orchestrator.detect_gpus")

        devices = self.pci_scanner.scan_nvidia(deadline=deadline)
        names = self._resolve_names(deadline) if devices else {}

        named, gpus = [], []
        for device in devices:
            name = NameResolver.lookup(names, device.address)
            pci = device.model_copy(update={"name": name} if name else None)
            model = self.gpu_database.lookup(device.device_id) if self.gpu_database else None
            named.append(pci)
            gpus.append(GPURecord(pci=pci, model=model.seal() if model else None))
        return named, gpus

    def _resolve_names(self, deadline: Deadline) -> dict[str, str]:
        if self.name_resolver is None:
            return {}
        try:
            return self.name_resolver.resolve_names(deadline=deadline)
        except Exception as e:
            logger.debug("GPU name resolution skipped: %s", e)
            return {}

    def _attach_smi(self, gpus: list[GPURecord], deadline: Deadline) -> list[GPURecord]:
        """Pair record i with nvidia-smi GPU i; unavailable smi is not an error."""
        if self.driver_utility is None or not gpus:
            return gpus
        try:
            info = self.driver_utility.parse(deadline=deadline)
        except IgorError as e:
            logger.debug("nvidia-smi enrichment skipped: %s", e)
            return gpus
        if not info.available:
            return gpus

        enriched = []
        for i, gpu in enumerate(gpus):
            if i < len(info.gpus):
                gpu = gpu.model_copy(update={"smi": info.gpus[i].model_copy()})
            enriched.append(gpu)
        return enriched

    # ── Driver status ───────────────────────────────────────────

    def get_driver_status(self, *, deadline: Deadline | None = None) -> DriverStatus:
        """Active GPU driver. Inconclusive probes degrade to ``none``."""
        return self._driver_status(self._deadline(deadline))

    def _driver_status(self, deadline: Deadline) -> DriverStatus:
        pci_kind = DriverKind.NONE
        if self.pci_scanner is not None:
            try:
                devices = self.pci_scanner.scan_nvidia(deadline=deadline)
            except Exception as e:
                logger.debug("PCI scan inconclusive for driver status: %s", e)
                devices = []
            for device in devices:
                if device.is_using_nouveau:
                    return DriverStatus(kind=DriverKind.NOUVEAU)
                if device.is_using_nvidia:
                    pci_kind = DriverKind.NVIDIA
                    break

        if self.driver_utility is not None and self.driver_utility.is_available(deadline=deadline):
            version = cuda_version = ""
            try:
                version = self.driver_utility.get_driver_version(deadline=deadline)
            except IgorError:
                pass
            try:
                cuda_version = self.driver_utility.get_cuda_version(deadline=deadline)
            except IgorError:
                pass
            return DriverStatus(kind=DriverKind.NVIDIA, version=version, cuda_version=cuda_version)

        if pci_kind == DriverKind.NVIDIA:
            return DriverStatus(kind=DriverKind.NVIDIA)

        if self.nouveau_detector is not None:
            try:
                if self.nouveau_detector.detect(deadline=deadline).loaded:
                    return DriverStatus(kind=DriverKind.NOUVEAU)
            except Exception as e:
                logger.debug("Nouveau fallback inconclusive: %s", e)

        return DriverStatus.none()

    # ── Validation ──────────────────────────────────────────────

    def validate_system(self, *, deadline: Deadline | None = None) -> ValidationReport:
        """Run the validation battery.

        Raises:
            CapabilityNotConfigured: If no validator is wired in.
            OperationCancelled: If the deadline passes between checks.
        """
        if self.validator is None:
            raise CapabilityNotConfigured("system validator not configured", op="orchestrator.validate_system")
        return self.validator.validate(deadline=self._deadline(deadline))

    # ── Readiness ───────────────────────────────────────────────

    def is_ready_for_install(self, *, deadline: Deadline | None = None) -> Readiness:
        """Decide whether driver installation may proceed.

        Reasons accumulate in order: GPU detection failure, no GPUs,
        validation errors, then a nouveau warning. Only warnings may be
        present on a ready system.
        """
        deadline = self._deadline(deadline)
        reasons: list[Reason] = []

        try:
            _, gpus = self._scan_gpus(deadline)
        except Exception as e:
            reasons.append(Reason.blocking(f"Failed to detect GPUs: {e}"))
            return Readiness(ready=False, reasons=tuple(reasons))
        if not gpus:
            reasons.append(Reason.blocking("No NVIDIA GPUs detected"))
            return Readiness(ready=False, reasons=tuple(reasons))

        if self.validator is not None:
            try:
                report = self.validator.validate(deadline=deadline)
            except Exception as e:
                reasons.append(Reason.blocking(f"System validation failed: {e}"))
                return Readiness(ready=False, gpu_count=len(gpus), reasons=tuple(reasons))
            for check in report.errors:
                text = f"{check.name}: {check.message}"
                if check.remediation:
                    text += f" ({check.remediation})"
                reasons.append(Reason.blocking(text))

        if self.nouveau_detector is not None:
            try:
                if self.nouveau_detector.detect(deadline=deadline).loaded:
                    reasons.append(Reason.warning(NOUVEAU_LOADED_WARNING))
            except IgorError as e:
                logger.debug("Nouveau check skipped for readiness: %s", e)

        ready = all(r.kind == ReasonKind.WARNING for r in reasons)
        return Readiness(ready=ready, gpu_count=len(gpus), reasons=tuple(reasons))
