"""chart-readiness: dynamic readiness checks for Helm charts.

Deploys a chart into an isolated namespace, waits for its pods to exist and
report ContainersReady, opens a port-forward to one verified pod, and polls
the application's status endpoint until it reports UP. The namespace and
tunnel are torn down on every exit path.

Usage:
    from chart_readiness import DEFAULT_CASES, LifecycleCoordinator, ReadinessSettings

    coordinator = LifecycleCoordinator.from_settings(ReadinessSettings())
    for result in coordinator.run_cases(DEFAULT_CASES):
        print(result.case_name, result.passed)
"""

from __future__ import annotations

__version__ = "0.1.0"

from chart_readiness.cases import DEFAULT_CASES, load_cases
from chart_readiness.config import ReadinessSettings
from chart_readiness.errors import (
    ApplyError,
    ChartReadinessError,
    ClusterAPIError,
    HealthCheckExhaustedError,
    NoPodFoundError,
    PopulationTimeoutError,
    ReadinessTimeoutError,
    RenderError,
    TunnelEstablishError,
)
from chart_readiness.lifecycle import LifecycleCoordinator
from chart_readiness.models import CaseResult, DeploymentCase, ValidationOutcome

__all__ = [
    "ApplyError",
    "CaseResult",
    "ChartReadinessError",
    "ClusterAPIError",
    "DEFAULT_CASES",
    "DeploymentCase",
    "HealthCheckExhaustedError",
    "LifecycleCoordinator",
    "NoPodFoundError",
    "PopulationTimeoutError",
    "ReadinessSettings",
    "ReadinessTimeoutError",
    "RenderError",
    "TunnelEstablishError",
    "ValidationOutcome",
    "__version__",
    "load_cases",
]
