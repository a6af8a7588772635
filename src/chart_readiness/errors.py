"""Exception types for chart-readiness.

This module defines the exception hierarchy raised while driving a chart
through a dynamic readiness check. All exceptions inherit from
ChartReadinessError so a case runner can catch every phase failure at once.

Exception Hierarchy:
    ChartReadinessError (base)
    ├── ClusterAPIError - A cluster API call failed
    ├── ProvisionError - Manifest provisioning failures
    │   ├── RenderError - helm template rejected the chart or overrides
    │   └── ApplyError - The cluster rejected the rendered manifest
    ├── PopulationTimeoutError - Expected pod count never reached
    ├── ReadinessTimeoutError - A pod never reported ContainersReady
    ├── NoPodFoundError - Label selector matched no usable pod
    ├── TunnelEstablishError - Port-forward could not be armed
    └── HealthCheckExhaustedError - Health endpoint never reported UP

Example:
    >>> from chart_readiness.errors import ChartReadinessError, ReadinessTimeoutError
    >>> try:
    ...     poller.wait_for_readiness(namespace, pods)
    ... except ReadinessTimeoutError as e:
    ...     print(f"Pod {e.pod_name} not ready after {e.attempts} attempts")
    ... except ChartReadinessError as e:
    ...     print(f"Readiness check failed: {e}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chart_readiness.models import ValidationOutcome


class ChartReadinessError(Exception):
    """Base exception for all chart-readiness errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize ChartReadinessError.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


# =============================================================================
# Cluster Errors
# =============================================================================


class ClusterAPIError(ChartReadinessError):
    """A call to the cluster API failed.

    Polling phases treat this as a failed attempt and retry within their
    budget; everywhere else it is fatal to the case.

    Attributes:
        operation: API operation that failed (e.g., "list_pods").
        status: HTTP status returned by the API server, if any.
    """

    def __init__(self, operation: str, reason: str, status: int | None = None) -> None:
        details: dict[str, Any] = {"operation": operation}
        if status is not None:
            details["status"] = status
        super().__init__(f"Cluster API call failed: {reason}", details)
        self.operation = operation
        self.status = status


# =============================================================================
# Provisioning Errors
# =============================================================================


class ProvisionError(ChartReadinessError):
    """Rendering or applying the chart manifest failed."""


class RenderError(ProvisionError):
    """helm template failed for the chart.

    Raised when the chart path does not exist, an override key is rejected
    by the chart's values schema, or a template fails to render.

    Attributes:
        chart: Chart identifier that failed to render.
        stderr: Captured helm stderr, if any.
    """

    def __init__(self, message: str, chart: str, stderr: str = "") -> None:
        details: dict[str, Any] = {"chart": chart}
        if stderr:
            details["stderr"] = stderr.strip()
        super().__init__(message, details)
        self.chart = chart
        self.stderr = stderr


class ApplyError(ProvisionError):
    """The cluster rejected the rendered manifest.

    Attributes:
        namespace: Target namespace of the apply.
        stderr: Captured kubectl stderr, if any.
    """

    def __init__(self, message: str, namespace: str, stderr: str = "") -> None:
        details: dict[str, Any] = {"namespace": namespace}
        if stderr:
            details["stderr"] = stderr.strip()
        super().__init__(message, details)
        self.namespace = namespace
        self.stderr = stderr


# =============================================================================
# Readiness Errors
# =============================================================================


class PopulationTimeoutError(ChartReadinessError):
    """The namespace never reached the expected pod count before the deadline.

    Attributes:
        namespace: Namespace that was being listed.
        expected: Expected pod count.
        observed: Pod count seen on the last successful list.
        timeout: Deadline in seconds.
    """

    def __init__(self, namespace: str, expected: int, observed: int, timeout: float) -> None:
        super().__init__(
            f"Timeout waiting for {expected} pods in namespace '{namespace}' after {timeout:.1f}s",
            {"namespace": namespace, "expected": expected, "observed": observed},
        )
        self.namespace = namespace
        self.expected = expected
        self.observed = observed
        self.timeout = timeout


class ReadinessTimeoutError(ChartReadinessError):
    """A pod did not report ContainersReady within its retry budget.

    Attributes:
        pod_name: Name of the pod that never became ready.
        attempts: Number of status reads performed.
        last_error: Last API error seen while reading the pod, if any.
    """

    def __init__(
        self,
        pod_name: str,
        attempts: int,
        last_error: BaseException | None = None,
    ) -> None:
        details: dict[str, Any] = {"pod": pod_name, "attempts": attempts}
        if last_error is not None:
            details["last_error"] = str(last_error)
        super().__init__(f"Pod '{pod_name}' containers not ready", details)
        self.pod_name = pod_name
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# Tunnel Errors
# =============================================================================


class NoPodFoundError(ChartReadinessError):
    """No pod matched the tunnel selector.

    Attributes:
        namespace: Namespace that was searched.
        label_selector: Selector that matched nothing usable.
    """

    def __init__(self, namespace: str, label_selector: str) -> None:
        super().__init__(
            "No ready pod matches selector",
            {"namespace": namespace, "selector": label_selector},
        )
        self.namespace = namespace
        self.label_selector = label_selector


class TunnelEstablishError(ChartReadinessError):
    """The port-forward to a pod could not be armed.

    Attributes:
        pod_name: Pod the forward targeted.
    """

    def __init__(self, message: str, pod_name: str, details: dict[str, Any] | None = None) -> None:
        _details = {"pod": pod_name}
        _details.update(details or {})
        super().__init__(message, _details)
        self.pod_name = pod_name


# =============================================================================
# Health Errors
# =============================================================================


class HealthCheckExhaustedError(ChartReadinessError):
    """No health check attempt satisfied the predicate.

    Attributes:
        endpoint: URL that was checked.
        outcome: Final ValidationOutcome with the last status and body.
        last_error: Last transport error, if the final attempt failed on I/O.
    """

    def __init__(
        self,
        endpoint: str,
        outcome: ValidationOutcome,
        last_error: BaseException | None = None,
    ) -> None:
        details: dict[str, Any] = {
            "endpoint": endpoint,
            "attempts": outcome.attempts,
            "status_code": outcome.status_code,
            "body": outcome.body[:200],
        }
        if last_error is not None:
            details["last_error"] = str(last_error)
        super().__init__("Health check did not pass", details)
        self.endpoint = endpoint
        self.outcome = outcome
        self.last_error = last_error


__all__ = [
    "ApplyError",
    "ChartReadinessError",
    "ClusterAPIError",
    "HealthCheckExhaustedError",
    "NoPodFoundError",
    "PopulationTimeoutError",
    "ProvisionError",
    "ReadinessTimeoutError",
    "RenderError",
    "TunnelEstablishError",
]
