"""Shared test configuration for chart-readiness.

Provides a scriptable in-memory cluster so every phase can be exercised
without kind, helm or kubectl, plus helpers that record sleeps and fake the
monotonic clock.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import pytest

from chart_readiness.models import PodSnapshot


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: Integration tests requiring a live K8s cluster with helm and kubectl",
    )
    config.addinivalue_line(
        "markers",
        "requirement(id): Mark test as covering a specific requirement",
    )


class FakeClock:
    """Monotonic clock advanced only by FakeClock.sleep."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@dataclass
class FakeSession:
    """Port-forward session double."""

    local_port: int = 54321
    fail_with: Exception | None = None
    closed: int = 0
    waited: list[float] = field(default_factory=list)

    def wait_until_ready(self, timeout: float) -> int:
        self.waited.append(timeout)
        if self.fail_with is not None:
            raise self.fail_with
        return self.local_port

    def close(self) -> None:
        self.closed += 1


class FakeCluster:
    """In-memory ClusterClient with scripted pod behavior.

    Attributes:
        population: Pod counts returned by successive full-namespace lists;
            the last entry repeats.
        ready_after: Pod name -> read number on which it reports ready
            (0 means never).
        selector_pods: Pod names returned for label-selector lists. Defaults
            to every known pod.
        calls: Ordered log of operations.
    """

    def __init__(
        self,
        population: Sequence[int] = (1,),
        ready_after: dict[str, int] | None = None,
        pod_prefix: str = "app",
    ) -> None:
        self.population = list(population)
        self.pod_prefix = pod_prefix
        self.ready_after = ready_after or {}
        self.selector_pods: list[str] | None = None
        self.calls: list[str] = []
        self.list_calls = 0
        self.reads: dict[str, int] = {}
        self.deleted: list[str] = []
        self.created: list[str] = []
        self.applied: list[tuple[str, str]] = []
        self.sessions: list[FakeSession] = []
        self.session_factory: Callable[[], FakeSession] = FakeSession
        self.create_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.apply_error: Exception | None = None
        self.list_errors: list[Exception] = []

    def pod_names(self, count: int) -> list[str]:
        return [f"{self.pod_prefix}-{i}" for i in range(count)]

    def create_namespace(self, name: str) -> None:
        self.calls.append(f"create_namespace:{name}")
        if self.create_error is not None:
            raise self.create_error
        self.created.append(name)

    def delete_namespace(self, name: str) -> None:
        self.calls.append(f"delete_namespace:{name}")
        self.deleted.append(name)
        if self.delete_error is not None:
            raise self.delete_error

    def apply_manifest(self, namespace: str, manifest: str) -> None:
        self.calls.append(f"apply:{namespace}")
        if self.apply_error is not None:
            raise self.apply_error
        self.applied.append((namespace, manifest))

    def list_pods(self, namespace: str, label_selector: str | None = None) -> list[PodSnapshot]:
        if label_selector:
            self.calls.append(f"select:{label_selector}")
            names = self.selector_pods
            if names is None:
                names = self.pod_names(self.population[-1])
            return [PodSnapshot(name=n, ready=True, labels={}) for n in names]

        self.calls.append("list_pods")
        index = min(self.list_calls, len(self.population) - 1)
        self.list_calls += 1
        if self.list_errors:
            raise self.list_errors.pop(0)
        return [PodSnapshot(name=n) for n in self.pod_names(self.population[index])]

    def get_pod(self, namespace: str, name: str) -> PodSnapshot:
        self.calls.append(f"get_pod:{name}")
        self.reads[name] = self.reads.get(name, 0) + 1
        after = self.ready_after.get(name, 1)
        ready = after > 0 and self.reads[name] >= after
        return PodSnapshot(name=name, ready=ready)

    def port_forward(self, namespace: str, pod_name: str, remote_port: int) -> FakeSession:
        self.calls.append(f"port_forward:{pod_name}:{remote_port}")
        session = self.session_factory()
        self.sessions.append(session)
        return session


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def make_cluster() -> type[FakeCluster]:
    """FakeCluster class, for tests that script population and readiness."""
    return FakeCluster


@pytest.fixture
def make_session() -> type[FakeSession]:
    """FakeSession class, for tests that script port-forward behavior."""
    return FakeSession
