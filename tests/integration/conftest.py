"""Live-cluster fixtures for chart readiness integration tests.

These tests deploy real charts and need:
- a reachable cluster (``kubectl cluster-info`` succeeds)
- the helm and kubectl binaries on PATH
- a charts directory holding the charts named by the case table

Fixtures fail fast when a prerequisite is missing. Run with:
    pytest -m integration tests/integration
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import NoReturn

import pytest

from chart_readiness.config import ReadinessSettings
from chart_readiness.lifecycle import LifecycleCoordinator
from chart_readiness.logging import configure_logging


def _fail(message: str) -> NoReturn:
    """Wrapper for pytest.fail with proper type annotation."""
    pytest.fail(message)
    raise AssertionError("Unreachable")  # For type checker


def _command_succeeds(args: list[str]) -> bool:
    try:
        result = subprocess.run(args, capture_output=True, timeout=10, check=False)
        return result.returncode == 0
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return False


@pytest.fixture(scope="session")
def live_cluster() -> None:
    """Verify a cluster and both CLIs are available."""
    if not _command_succeeds(["helm", "version", "--short"]):
        _fail("Helm CLI is not available.\nInstall Helm: https://helm.sh/docs/intro/install/")
    if not _command_succeeds(["kubectl", "cluster-info"]):
        _fail(
            "Cluster is not available.\n"
            "Start one with: kind create cluster --name chart-readiness"
        )


@pytest.fixture(scope="session")
def settings() -> ReadinessSettings:
    """Settings from CHART_READINESS_* variables.

    CHART_READINESS_CHARTS_DIR must point at a directory holding the charts.
    """
    settings = ReadinessSettings()
    if not settings.charts_dir.is_dir():
        _fail(
            f"Charts directory not found at {settings.charts_dir.resolve()}\n"
            "Set CHART_READINESS_CHARTS_DIR to the charts checkout."
        )
    return settings


@pytest.fixture(scope="session")
def coordinator(live_cluster: None, settings: ReadinessSettings) -> LifecycleCoordinator:
    _ = live_cluster  # Used for fixture ordering
    configure_logging(settings.log_level, json_output=bool(os.environ.get("CI")))
    return LifecycleCoordinator.from_settings(settings)
