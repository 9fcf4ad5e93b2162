"""
Tests for CLI commands — detect, gpus, validate, ready, and global options.
"""

import json

import pytest
from click.testing import CliRunner

from fakes import (
    FakeDriverUtility,
    FakeKernelDetector,
    FakeNouveauDetector,
    FakePCIScanner,
    FakeSystemValidator,
    failing_scanner,
    nvidia_device,
    passing_report,
    smi_gpu,
    smi_info,
)
from igor.core.models.system import NouveauStatus
from igor.core.models.validation import CheckName, CheckResult
from igor.core.services.gpu.database import StaticGPUDatabase
from igor.core.services.gpu.orchestrator import GPUOrchestrator
from igor.core.use_cases import detect as use_cases
from igor.main import cli


def healthy_orchestrator(**overrides) -> GPUOrchestrator:
    capabilities = {
        "pci_scanner": FakePCIScanner([nvidia_device()]),
        "gpu_database": StaticGPUDatabase(),
        "driver_utility": FakeDriverUtility(smi_info(smi_gpu(0))),
        "nouveau_detector": FakeNouveauDetector(),
        "kernel_detector": FakeKernelDetector(),
        "validator": FakeSystemValidator(),
    }
    capabilities.update(overrides)
    return GPUOrchestrator(**capabilities)


@pytest.fixture(autouse=True)
def _logging(restore_logging):
    yield


@pytest.fixture
def invoke(tmp_path, monkeypatch):
    """Run the CLI against an orchestrator built from fakes."""
    config = tmp_path / "igor.yml"
    config.write_text("timeout: 10\n")

    def run(args: list[str], orchestrator: GPUOrchestrator | None = None):
        orchestrator = orchestrator or healthy_orchestrator()
        monkeypatch.setattr(use_cases, "build_orchestrator", lambda cfg, runner=None: orchestrator)
        return CliRunner().invoke(cli, ["--config", str(config), *args])

    return run


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Igor" in result.output
        for command in ("detect", "gpus", "validate", "ready"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_config(self, tmp_path):
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yml"), "detect"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_missing_config_json(self, tmp_path):
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yml"), "ready", "--json"])
        assert result.exit_code == 1
        assert "error" in json.loads(result.output)


class TestDetectCommand:
    def test_text(self, invoke):
        result = invoke(["detect"])
        assert result.exit_code == 0
        assert "GPUs: 1" in result.output
        assert "GeForce RTX 4090" in result.output
        assert "Driver: nvidia 550.54.14 (CUDA 12.4)" in result.output
        assert "Validation PASSED" in result.output

    def test_json(self, invoke):
        result = invoke(["detect", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["gpu_count"] == 1
        assert data["gpus"][0]["architecture"] == "ada"
        assert data["driver"]["installed"] is True
        assert data["errors"] == []

    def test_branch_errors_listed(self, invoke):
        result = invoke(["detect"], healthy_orchestrator(pci_scanner=failing_scanner("sysfs unreadable")))
        assert result.exit_code == 0
        assert "No NVIDIA GPUs detected" in result.output
        assert "1 detector error(s)" in result.output
        assert "sysfs unreadable" in result.output


class TestGpusCommand:
    def test_text(self, invoke):
        result = invoke(["gpus"])
        assert result.exit_code == 0
        assert "0000:01:00.0" in result.output
        assert "[ada]" in result.output
        assert "Driver: nvidia" in result.output

    def test_json(self, invoke):
        data = json.loads(invoke(["gpus", "--json"]).output)
        assert data["gpu_count"] == 1
        assert data["gpus"][0]["smi"]["temperature_c"] == 41
        assert data["driver"]["cuda_version"] == "12.4"

    def test_scan_failure(self, invoke):
        result = invoke(["gpus"], healthy_orchestrator(pci_scanner=failing_scanner("denied")))
        assert result.exit_code == 1
        assert "denied" in result.output


class TestValidateCommand:
    def test_passing(self, invoke):
        result = invoke(["validate"])
        assert result.exit_code == 0
        assert "kernel_version" in result.output
        assert "Validation PASSED" in result.output

    def test_failing_exit_code(self, invoke):
        report = passing_report()
        report.add_check(
            CheckResult.fail(CheckName.BUILD_TOOLS, "missing required build tools: dkms")
            .with_remediation("Install missing tools: sudo apt install dkms")
        )
        result = invoke(["validate"], healthy_orchestrator(validator=FakeSystemValidator(report)))
        assert result.exit_code == 1
        assert "missing required build tools: dkms" in result.output
        assert "sudo apt install dkms" in result.output

    def test_json(self, invoke):
        result = invoke(["validate", "--json"])
        data = json.loads(result.output)
        assert data["passed"] is True
        assert len(data["checks"]) == 6


class TestReadyCommand:
    def test_ready(self, invoke):
        result = invoke(["ready"])
        assert result.exit_code == 0
        assert "Ready for NVIDIA driver installation" in result.output

    def test_ready_with_warning(self, invoke):
        orchestrator = healthy_orchestrator(nouveau_detector=FakeNouveauDetector(NouveauStatus(loaded=True)))
        result = invoke(["ready"], orchestrator)
        assert result.exit_code == 0
        assert "Warning: Nouveau driver is currently loaded" in result.output

    def test_not_ready(self, invoke):
        result = invoke(["ready"], healthy_orchestrator(pci_scanner=FakePCIScanner([])))
        assert result.exit_code == 1
        assert "Not ready" in result.output
        assert "No NVIDIA GPUs detected" in result.output

    def test_json(self, invoke):
        result = invoke(["ready", "--json"], healthy_orchestrator(pci_scanner=FakePCIScanner([])))
        assert result.exit_code == 1
        assert json.loads(result.output) == {
            "ready": False,
            "gpu_count": 0,
            "reasons": ["No NVIDIA GPUs detected"],
        }
