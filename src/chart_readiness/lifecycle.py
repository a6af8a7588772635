"""Case lifecycle: provision, wait, tunnel, validate, tear down.

LifecycleCoordinator runs one DeploymentCase through every phase in order:

    create namespace -> render + apply chart -> wait for pod population
    -> wait for each pod's readiness -> select a verified pod -> open tunnel
    -> health check -> close tunnel -> delete namespace

Teardown is scheduled on a contextlib.ExitStack before the resource it
releases is created, so it runs on every exit path: success, a phase
error, or an unexpected exception. The namespace delete is registered
before the namespace create and therefore runs exactly once per case; the
tunnel close is registered after it and therefore runs first.

Example:
    coordinator = LifecycleCoordinator.from_settings(ReadinessSettings())
    results = coordinator.run_cases(DEFAULT_CASES)
    assert all(r.passed for r in results)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass, field

import structlog

from chart_readiness.cases import build_case_table
from chart_readiness.cluster import ClusterClient, KubernetesCluster
from chart_readiness.config import ReadinessSettings
from chart_readiness.errors import ChartReadinessError, HealthCheckExhaustedError
from chart_readiness.health import (
    DEFAULT_HEALTH_PATH,
    HealthValidator,
    health_endpoint,
    status_up_predicate,
)
from chart_readiness.helm import HelmRenderer
from chart_readiness.models import (
    CaseResult,
    ClusterContext,
    DeploymentCase,
    NamespaceHandle,
    TlsConfig,
    TunnelHandle,
    ValidationOutcome,
)
from chart_readiness.provisioner import ManifestProvisioner
from chart_readiness.readiness import ReadinessPoller
from chart_readiness.retry import RetryPolicy
from chart_readiness.telemetry import traced
from chart_readiness.tunnel import DEFAULT_REMOTE_PORT, TunnelManager

logger = structlog.get_logger(__name__)


@dataclass
class _Teardown:
    """Teardown failures collected for one case."""

    errors: list[str] = field(default_factory=list)

    def record(self, what: str, exc: Exception) -> None:
        self.errors.append(f"{what}: {exc}")

    @property
    def summary(self) -> str | None:
        return "; ".join(self.errors) if self.errors else None


class LifecycleCoordinator:
    """Runs deployment cases end to end with guaranteed teardown.

    Args:
        cluster: Cluster client shared by all phases.
        provisioner: Renders and applies charts.
        poller: Population and readiness polling.
        tunnels: Pod selection and port-forwarding.
        validator: HTTP health validation.
        context: Connection context recorded on namespace handles.
        remote_port: Pod port the tunnel targets.
        health_path: Status endpoint path.
        health_policy: Attempt budget for the health check.
        tls: Client TLS settings for the health check.
        clock: Monotonic clock used for case durations.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        provisioner: ManifestProvisioner,
        poller: ReadinessPoller,
        tunnels: TunnelManager,
        validator: HealthValidator,
        *,
        context: ClusterContext | None = None,
        remote_port: int = DEFAULT_REMOTE_PORT,
        health_path: str = DEFAULT_HEALTH_PATH,
        health_policy: RetryPolicy | None = None,
        tls: TlsConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cluster = cluster
        self.provisioner = provisioner
        self.poller = poller
        self.tunnels = tunnels
        self.validator = validator
        self.context = context or ClusterContext()
        self.remote_port = remote_port
        self.health_path = health_path
        self.health_policy = health_policy or RetryPolicy(max_attempts=15, delay=5.0)
        self.tls = tls or TlsConfig()
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: ReadinessSettings,
        cluster: ClusterClient | None = None,
    ) -> LifecycleCoordinator:
        """Wire every component from one settings object.

        Args:
            settings: Process-wide settings.
            cluster: Cluster client. Defaults to a KubernetesCluster for the
                settings' connection context.
        """
        context = settings.cluster_context()
        cluster = cluster or KubernetesCluster(context)
        return cls(
            cluster,
            ManifestProvisioner(HelmRenderer(settings.charts_dir), cluster),
            ReadinessPoller(
                cluster,
                population_policy=settings.population_policy(),
                readiness_policy=settings.readiness_policy(),
            ),
            TunnelManager(cluster, timeout=settings.tunnel_timeout),
            HealthValidator(request_timeout=settings.request_timeout),
            context=context,
            remote_port=settings.remote_port,
            health_path=settings.health_path,
            health_policy=settings.health_policy(),
            tls=settings.tls_config(),
        )

    def check(self, case: DeploymentCase) -> ValidationOutcome:
        """Run one case, raising on the first failing phase.

        Teardown still runs before the exception leaves this method.

        Returns:
            The successful ValidationOutcome.

        Raises:
            ChartReadinessError: Subclass naming the phase that failed.
        """
        return self._execute(case, _Teardown())

    @traced(
        operation_name="chart_readiness.run_case",
        attributes_fn=lambda self, case, teardown: {
            "chart_readiness.case": case.name,
            "chart_readiness.chart": case.chart_name,
            "chart_readiness.namespace": case.namespace,
        },
    )
    def _execute(self, case: DeploymentCase, teardown: _Teardown) -> ValidationOutcome:
        namespace = NamespaceHandle(name=case.namespace, context=self.context)

        with ExitStack() as stack:
            stack.callback(self._delete_namespace, namespace, teardown)
            self.cluster.create_namespace(namespace.name)

            self.provisioner.provision(case)

            pods = self.poller.wait_for_population(namespace.name, case.expected_pods)
            ready = self.poller.wait_for_readiness(namespace.name, pods)

            pod_name = self.tunnels.select_pod(namespace.name, case.label_selector, ready)
            tunnel = self.tunnels.open(namespace.name, pod_name, self.remote_port)
            stack.callback(self._close_tunnel, tunnel, teardown)

            return self.validator.check_until_healthy(
                health_endpoint(tunnel.endpoint, self.health_path),
                self.tls,
                self.health_policy.max_attempts or 1,
                self.health_policy.delay,
                status_up_predicate,
            )

    def _close_tunnel(self, tunnel: TunnelHandle, teardown: _Teardown) -> None:
        try:
            self.tunnels.close(tunnel)
        except Exception as e:  # noqa: BLE001
            logger.warning("tunnel_close_failed", pod=tunnel.pod_name, error=str(e))
            teardown.record("tunnel close", e)

    def _delete_namespace(self, namespace: NamespaceHandle, teardown: _Teardown) -> None:
        logger.info("teardown", namespace=namespace.name)
        try:
            self.cluster.delete_namespace(namespace.name)
        except Exception as e:  # noqa: BLE001
            logger.warning("namespace_delete_failed", namespace=namespace.name, error=str(e))
            teardown.record("namespace delete", e)

    def run_case(self, case: DeploymentCase) -> CaseResult:
        """Run one case and report the result instead of raising.

        Returns:
            CaseResult with the outcome, or the error of the failed phase.
        """
        start = self._clock()
        teardown = _Teardown()
        outcome: ValidationOutcome | None = None
        error: Exception | None = None
        namespace = ""

        with structlog.contextvars.bound_contextvars(case=case.name, namespace=None):
            try:
                namespace = case.namespace
                structlog.contextvars.bind_contextvars(namespace=namespace)
                logger.info(
                    "case_started", chart=case.chart_name, expected_pods=case.expected_pods
                )
                outcome = self._execute(case, teardown)
            except ChartReadinessError as e:
                error = e
                if isinstance(e, HealthCheckExhaustedError):
                    outcome = e.outcome
                logger.error("case_failed", error_type=type(e).__name__, error=str(e))
            except Exception as e:  # noqa: BLE001
                error = e
                logger.exception("case_errored", error_type=type(e).__name__)
            else:
                logger.info("case_passed", attempts=outcome.attempts)

        return CaseResult(
            case_name=case.name,
            namespace=namespace,
            passed=error is None,
            outcome=outcome,
            error=str(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None,
            teardown_error=teardown.summary,
            duration_seconds=round(self._clock() - start, 3),
        )

    def run_cases(
        self,
        cases: Sequence[DeploymentCase],
        max_workers: int = 1,
    ) -> list[CaseResult]:
        """Run cases independently; one failure never stops the others.

        Args:
            cases: Cases to run. Their namespaces must be distinct.
            max_workers: Cases run concurrently. 1 runs them sequentially.

        Returns:
            One CaseResult per case, in input order.

        Raises:
            CaseTableError: Two cases share a name or a namespace. No case
                is run.
        """
        if not cases:
            return []
        build_case_table(cases)
        if max_workers <= 1 or len(cases) <= 1:
            return [self.run_case(case) for case in cases]
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(self.run_case, cases))


__all__ = ["LifecycleCoordinator"]
