"""Command line entry point for chart-readiness.

Example:
    $ chart-readiness list
    $ chart-readiness run --charts-dir ../charts
    $ chart-readiness run --case standard-chart --context kind-ci --output json
    $ chart-readiness run --cases my-cases.yaml --workers 2
"""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import structlog
from kubernetes.config import ConfigException
from pydantic import ValidationError

from chart_readiness import __version__
from chart_readiness.cases import (
    DEFAULT_CASES,
    CaseTableError,
    build_case_table,
    load_cases,
    select_cases,
)
from chart_readiness.config import ReadinessSettings
from chart_readiness.lifecycle import LifecycleCoordinator
from chart_readiness.logging import configure_logging
from chart_readiness.models import CaseResult, DeploymentCase

if TYPE_CHECKING:
    from typing import NoReturn

logger = structlog.get_logger(__name__)


class ExitCode(IntEnum):
    """Exit codes for chart-readiness commands."""

    SUCCESS = 0
    """Every selected case passed."""

    CASE_FAILED = 1
    """At least one case failed."""

    USAGE_ERROR = 2
    """Invalid arguments, case table or settings."""


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Case file not found", path="cases.yaml")
        # Output: Error: Case file not found (path=cases.yaml)
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        click.echo(f"Error: {message} ({context_str})", err=True)
    else:
        click.echo(f"Error: {message}", err=True)


def error_exit(
    message: str,
    exit_code: ExitCode = ExitCode.USAGE_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code."""
    error(message, **context)
    sys.exit(exit_code)


def warning(message: str) -> None:
    click.echo(f"Warning: {message}", err=True)


def _load_table(cases_file: Path | None) -> list[DeploymentCase]:
    try:
        if cases_file is None:
            return build_case_table(DEFAULT_CASES)
        return load_cases(cases_file)
    except CaseTableError as e:
        error_exit(str(e), path=str(cases_file) if cases_file else None)


def _format_result(result: CaseResult) -> str:
    status = "PASS" if result.passed else "FAIL"
    line = f"{status}  {result.case_name}  [{result.namespace}]  {result.duration_seconds:.1f}s"
    if result.outcome is not None:
        line += f"  attempts={result.outcome.attempts}"
    if result.error is not None:
        line += f"\n      {result.error_type}: {result.error}"
    return line


def _report(results: Sequence[CaseResult], output_format: str) -> None:
    if output_format == "json":
        payload: dict[str, Any] = {
            "passed": all(r.passed for r in results),
            "cases": [r.model_dump(mode="json") for r in results],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for result in results:
        click.echo(_format_result(result))
    passed = sum(1 for r in results if r.passed)
    click.echo(f"\n{passed}/{len(results)} cases passed")


@click.group()
@click.version_option(version=__version__, prog_name="chart-readiness")
def cli() -> None:
    """chart-readiness - dynamic readiness checks for Helm charts.

    Deploys each chart into its own namespace, waits for its pods to become
    ready, and checks the application's status endpoint through a
    port-forward.
    """


@cli.command(name="list")
@click.option(
    "--cases",
    "cases_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML case table (default: built-in SonarQube cases).",
)
def list_command(cases_file: Path | None) -> None:
    """List the cases of a case table."""
    for case in _load_table(cases_file):
        overrides = ", ".join(f"{k}={v}" for k, v in sorted(case.values.items()))
        click.echo(
            f"{case.name}  chart={case.chart_name}  pods={case.expected_pods}  "
            f"namespace={case.namespace}  values=[{overrides}]"
        )


@cli.command(name="run")
@click.option(
    "--cases",
    "cases_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML case table (default: built-in SonarQube cases).",
)
@click.option("--case", "case_names", multiple=True, help="Run only the named case(s).")
@click.option(
    "--charts-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the charts.",
)
@click.option(
    "--kubeconfig",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to kubeconfig file.",
)
@click.option("--context", "kube_context", default=None, help="kubeconfig context to use.")
@click.option("--workers", type=click.IntRange(min=1), default=1, show_default=True)
@click.option(
    "--output",
    "-o",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Log level (default: from settings).",
)
@click.option("--json-logs/--console-logs", default=None, help="Log format.")
def run_command(
    cases_file: Path | None,
    case_names: tuple[str, ...],
    charts_dir: Path | None,
    kubeconfig: Path | None,
    kube_context: str | None,
    workers: int,
    output_format: str,
    log_level: str | None,
    json_logs: bool | None,
) -> None:
    """Deploy each case's chart and check that it becomes healthy."""
    overrides: dict[str, Any] = {
        "charts_dir": charts_dir,
        "kubeconfig": kubeconfig,
        "kube_context": kube_context,
        "log_level": log_level.upper() if log_level else None,
        "json_logs": json_logs,
    }
    try:
        settings = ReadinessSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        error_exit(f"Invalid settings: {e}")

    configure_logging(settings.log_level, json_output=settings.json_logs)

    try:
        cases = select_cases(_load_table(cases_file), case_names)
    except CaseTableError as e:
        error_exit(str(e))

    try:
        coordinator = LifecycleCoordinator.from_settings(settings)
    except ConfigException as e:
        error_exit(
            f"Cannot load cluster configuration: {e}",
            kubeconfig=str(kubeconfig) if kubeconfig else None,
        )

    logger.info("run_started", cases=[c.name for c in cases], workers=workers)
    results = coordinator.run_cases(cases, max_workers=workers)

    _report(results, output_format.lower())
    for result in results:
        if result.teardown_error:
            warning(f"teardown of {result.namespace} incomplete: {result.teardown_error}")

    if not all(r.passed for r in results):
        sys.exit(ExitCode.CASE_FAILED)


def main() -> None:
    """Console script entry point."""
    cli()


__all__ = ["ExitCode", "cli", "main"]
