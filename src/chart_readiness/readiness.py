"""Readiness polling for a freshly applied chart.

Two phases run one after the other:

Population:
    List every pod in the namespace (no selector) until at least the
    expected number exists. Bounded by an overall deadline.

Readiness:
    For each pod found by the population phase, in list order, read the pod
    until its ContainersReady condition is True, with a per-pod attempt
    budget. Pods that appear after the population phase are not added.

Both phases are polls with fixed delays: the cluster's object model is
eventually consistent and no watch is used.

Example:
    poller = ReadinessPoller(cluster)
    pods = poller.wait_for_population("sonarqube-dynamic-test", expected=2)
    ready = poller.wait_for_readiness("sonarqube-dynamic-test", pods)
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from chart_readiness.cluster import ClusterClient
from chart_readiness.errors import (
    ClusterAPIError,
    PopulationTimeoutError,
    ReadinessTimeoutError,
)
from chart_readiness.models import PodSnapshot
from chart_readiness.retry import RetryPolicy, retry
from chart_readiness.telemetry import traced

logger = structlog.get_logger(__name__)

DEFAULT_POPULATION_INTERVAL = 5.0
DEFAULT_POPULATION_TIMEOUT = 1800.0
DEFAULT_READINESS_MAX_RETRIES = 100
DEFAULT_READINESS_DELAY = 30.0


class ReadinessPoller:
    """Waits for a namespace's pods to exist and report ready.

    Args:
        cluster: Cluster client used for pod list/read.
        population_policy: Budget for the population phase.
        readiness_policy: Per-pod budget for the readiness phase.
        sleep: Sleep function, injectable for tests.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        *,
        population_policy: RetryPolicy | None = None,
        readiness_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cluster = cluster
        self.population_policy = population_policy or RetryPolicy(
            delay=DEFAULT_POPULATION_INTERVAL,
            timeout=DEFAULT_POPULATION_TIMEOUT,
        )
        self.readiness_policy = readiness_policy or RetryPolicy(
            max_attempts=DEFAULT_READINESS_MAX_RETRIES,
            delay=DEFAULT_READINESS_DELAY,
        )
        self._sleep = sleep
        self._clock = clock

    @traced(
        operation_name="chart_readiness.wait_for_population",
        attributes_fn=lambda self, namespace, expected: {
            "chart_readiness.namespace": namespace,
            "chart_readiness.expected_pods": expected,
        },
    )
    def wait_for_population(self, namespace: str, expected: int) -> list[PodSnapshot]:
        """Block until the namespace holds at least ``expected`` pods.

        Args:
            namespace: Namespace to list.
            expected: Minimum pod count.

        Returns:
            The pod list from the poll that reached the count.

        Raises:
            PopulationTimeoutError: If the deadline passes first.
        """

        def _log(attempt: int, pods: list[PodSnapshot] | None, error: BaseException | None) -> None:
            if error is not None:
                logger.warning("pod_list_failed", namespace=namespace, attempt=attempt, error=str(error))
            else:
                logger.info(
                    "pods_observed",
                    namespace=namespace,
                    count=len(pods or []),
                    expected=expected,
                )

        result = retry(
            lambda: self.cluster.list_pods(namespace),
            lambda pods: len(pods) >= expected,
            self.population_policy,
            retry_on=(ClusterAPIError,),
            sleep=self._sleep,
            clock=self._clock,
            on_attempt=_log,
        )
        if not result.succeeded or result.value is None:
            observed = len(result.value) if result.value is not None else 0
            timeout = self.population_policy.timeout or 0.0
            raise PopulationTimeoutError(namespace, expected, observed, timeout)
        return result.value

    def wait_for_pod_ready(self, namespace: str, pod_name: str) -> int:
        """Poll one pod until ContainersReady is True.

        Args:
            namespace: Namespace of the pod.
            pod_name: Pod to poll.

        Returns:
            Number of reads it took.

        Raises:
            ReadinessTimeoutError: If the attempt budget runs out.
        """
        logger.info("checking_pod", namespace=namespace, pod=pod_name)
        result = retry(
            lambda: self.cluster.get_pod(namespace, pod_name),
            lambda pod: pod.ready,
            self.readiness_policy,
            retry_on=(ClusterAPIError,),
            sleep=self._sleep,
            clock=self._clock,
        )
        if not result.succeeded:
            raise ReadinessTimeoutError(pod_name, result.attempts, result.last_error)
        logger.info("pod_ready", namespace=namespace, pod=pod_name, attempts=result.attempts)
        return result.attempts

    @traced(
        operation_name="chart_readiness.wait_for_readiness",
        attributes_fn=lambda self, namespace, pods: {
            "chart_readiness.namespace": namespace,
            "chart_readiness.pod_count": len(pods),
        },
    )
    def wait_for_readiness(self, namespace: str, pods: list[PodSnapshot]) -> list[str]:
        """Wait for every pod in ``pods`` to report ready, sequentially.

        Returns:
            Names of the verified-ready pods, in the order checked.

        Raises:
            ReadinessTimeoutError: Naming the first pod that ran out of budget.
        """
        ready: list[str] = []
        for pod in pods:
            self.wait_for_pod_ready(namespace, pod.name)
            ready.append(pod.name)
        return ready


__all__ = [
    "DEFAULT_POPULATION_INTERVAL",
    "DEFAULT_POPULATION_TIMEOUT",
    "DEFAULT_READINESS_DELAY",
    "DEFAULT_READINESS_MAX_RETRIES",
    "ReadinessPoller",
]
