"""
Igor — CLI entrypoint.

Usage:
    igor --help
    igor detect
    igor ready --json
    python -m igor.main validate
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from igor import __version__
from igor.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="igor")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to igor.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Igor — check whether this host is ready for the NVIDIA driver."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("IGOR_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("IGOR_LOG_FILE"),
        log_file_level=os.environ.get("IGOR_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


json_option = click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")


def _emit_json(data: dict, *, failed: bool) -> None:
    click.echo(json.dumps(data, indent=2))
    if failed:
        sys.exit(1)


def _fail(message: str) -> None:
    click.secho(f"❌ {message}", fg="red")
    sys.exit(1)


def _echo_gpus(gpus) -> None:
    if not gpus:
        click.secho("   No NVIDIA GPUs detected", fg="yellow")
        return
    for gpu in gpus:
        line = f"     • {gpu.address}  {gpu.name}  [{gpu.architecture}]"
        if gpu.pci.driver:
            line += f"  driver={gpu.pci.driver}"
        click.echo(line)
        if gpu.smi is not None and gpu.smi.memory_total_mb:
            click.echo(
                f"       {gpu.smi.memory_used_mb or 0}/{gpu.smi.memory_total_mb} MiB"
                f"  {gpu.smi.temperature_c if gpu.smi.temperature_c is not None else '?'}°C"
            )


def _echo_driver(driver) -> None:
    if driver is None:
        return
    if not driver.installed:
        click.echo("   Driver: none")
        return
    version = f" {driver.version}" if driver.version else ""
    cuda = f" (CUDA {driver.cuda_version})" if driver.cuda_version else ""
    click.echo(f"   Driver: {driver.kind}{version}{cuda}")


def _echo_validation(report) -> None:
    markers = {"error": ("❌", "red"), "warning": ("⚠️ ", "yellow"), "info": ("✅", "green")}
    for check in report.checks:
        if check.passed:
            marker, color = "✅", "green"
        else:
            marker, color = markers[check.severity]
        click.secho(f"   {marker} {check.name}: {check.message}", fg=color)
        if not check.passed and check.remediation:
            click.echo(f"      → {check.remediation}")
    click.echo()
    click.secho(f"   {report.summary()}", fg="green" if report.passed else "red", bold=True)


# ── Commands ────────────────────────────────────────────────────────


@cli.command()
@json_option
@click.pass_context
def detect(ctx: click.Context, as_json: bool) -> None:
    """Run every detector and show the full report."""
    from igor.core.use_cases.detect import run_detect

    result = run_detect(config_path=ctx.obj.get("config_path"))

    if as_json:
        _emit_json(result.to_dict(), failed=bool(result.error))
        return

    if result.error:
        _fail(result.error)

    report = result.report
    assert report is not None  # guaranteed after error check above

    click.secho(f"\n🖥️  GPUs: {report.gpu_count}", fg="cyan", bold=True)
    _echo_gpus(report.gpus)
    _echo_driver(report.driver)

    if report.kernel is not None:
        kernel = report.kernel
        headers = "headers installed" if kernel.headers_installed else "headers missing"
        sb = "Secure Boot on" if kernel.secure_boot_enabled else "Secure Boot off"
        click.echo(f"   Kernel: {kernel.release} ({kernel.architecture}), {headers}, {sb}")

    if report.nouveau is not None:
        nv = report.nouveau
        state = "loaded" if nv.loaded else "not loaded"
        blacklist = "blacklisted" if nv.blacklist_exists else "not blacklisted"
        click.echo(f"   Nouveau: {state}, {blacklist}")

    if report.validation is not None:
        click.echo()
        click.secho("   Validation:", fg="white", bold=True)
        _echo_validation(report.validation)

    if report.errors:
        click.echo()
        click.secho(f"   ⚠️  {len(report.errors)} detector error(s):", fg="yellow")
        for issue in report.errors:
            click.echo(f"     • {issue}")

    click.echo()


@cli.command()
@json_option
@click.pass_context
def gpus(ctx: click.Context, as_json: bool) -> None:
    """List NVIDIA GPUs and the active driver."""
    from igor.core.use_cases.detect import run_inventory

    result = run_inventory(config_path=ctx.obj.get("config_path"))

    if as_json:
        _emit_json(result.to_dict(), failed=bool(result.error))
        return

    if result.error:
        _fail(result.error)

    click.secho(f"\n🖥️  GPUs: {len(result.gpus)}", fg="cyan", bold=True)
    _echo_gpus(result.gpus)
    _echo_driver(result.driver)
    click.echo()


@cli.command()
@json_option
@click.pass_context
def validate(ctx: click.Context, as_json: bool) -> None:
    """Run the pre-install validation checks."""
    from igor.core.use_cases.detect import run_validate

    result = run_validate(config_path=ctx.obj.get("config_path"))

    if as_json:
        _emit_json(result.to_dict(), failed=bool(result.error or (result.report and not result.report.passed)))
        return

    if result.error:
        _fail(result.error)

    assert result.report is not None
    click.echo()
    _echo_validation(result.report)
    click.echo()
    if not result.report.passed:
        sys.exit(1)


@cli.command()
@json_option
@click.pass_context
def ready(ctx: click.Context, as_json: bool) -> None:
    """Decide whether driver installation can proceed."""
    from igor.core.use_cases.detect import run_ready

    result = run_ready(config_path=ctx.obj.get("config_path"))

    if as_json:
        _emit_json(result.to_dict(), failed=bool(result.error or (result.readiness and not result.readiness.ready)))
        return

    if result.error:
        _fail(result.error)

    readiness = result.readiness
    assert readiness is not None

    if readiness.ready:
        click.secho("\n✅ Ready for NVIDIA driver installation", fg="green", bold=True)
    else:
        click.secho("\n❌ Not ready for NVIDIA driver installation", fg="red", bold=True)
    for message in readiness.messages:
        color = "yellow" if message.startswith("Warning:") else "red"
        click.secho(f"   • {message}", fg=color)
    click.echo()

    if not readiness.ready:
        sys.exit(1)


if __name__ == "__main__":
    cli()
