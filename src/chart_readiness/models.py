"""Data models for chart readiness checks.

Immutable Pydantic models describe what is being checked (DeploymentCase),
where (ClusterContext, NamespaceHandle), what was observed (PodSnapshot,
ValidationOutcome) and how the case ended (CaseResult). TunnelHandle is a
plain dataclass because it owns a live port-forward session.

Example:
    >>> case = DeploymentCase(name="standard-chart", chart_name="sonarqube", expected_pods=2)
    >>> case.namespace
    'sonarqube-dynamic-test'
    >>> case.label_selector
    'app=sonarqube,release=sonarqube'
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chart_readiness.namespaces import case_namespace

if TYPE_CHECKING:
    from chart_readiness.cluster import PortForwardSession

CONTAINERS_READY = "ContainersReady"


class DeploymentCase(BaseModel):
    """One chart deployment scenario.

    Accepts both the snake_case field names and the camelCase keys used in
    case tables (``chartName``, ``expectedPods``).
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1, description="Case identifier")
    chart_name: str = Field(
        ...,
        alias="chartName",
        min_length=1,
        description="Chart directory name under the charts root",
    )
    expected_pods: int = Field(
        ...,
        alias="expectedPods",
        ge=1,
        description="Pod count the namespace must reach",
    )
    values: dict[str, str] = Field(
        default_factory=dict,
        description="helm --set overrides, dotted keys address nested values",
    )

    @field_validator("values", mode="before")
    @classmethod
    def _stringify_values(cls, value: Any) -> Any:
        # YAML turns `false` into a bool; helm only ever sees strings.
        if isinstance(value, dict):
            return {str(k): _to_helm_string(k, v) for k, v in value.items()}
        return value

    @model_validator(mode="after")
    def _check_namespace(self) -> DeploymentCase:
        case_namespace(self.chart_name)
        return self

    @property
    def release_name(self) -> str:
        """Helm release name; the chart name is reused."""
        return self.chart_name

    @property
    def namespace(self) -> str:
        """Namespace derived deterministically from the chart name."""
        return case_namespace(self.chart_name)

    @property
    def label_selector(self) -> str:
        """Selector matching the chart's application pods."""
        return f"app={self.chart_name},release={self.release_name}"


def _to_helm_string(key: Any, value: Any) -> str:
    if value is None:
        raise ValueError(f"Override '{key}' has no value")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ClusterContext(BaseModel):
    """Connection context for the cluster.

    None for either field means the kubeconfig default
    (``$KUBECONFIG`` or ``~/.kube/config``, current context).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kubeconfig: Path | None = None
    context: str | None = None

    def kubectl_args(self) -> list[str]:
        """Global kubectl/helm flags selecting this context."""
        args: list[str] = []
        if self.kubeconfig is not None:
            args.extend(["--kubeconfig", str(self.kubeconfig)])
        if self.context:
            args.extend(["--context", self.context])
        return args


class NamespaceHandle(BaseModel):
    """A namespace owned by one running case."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    context: ClusterContext = Field(default_factory=ClusterContext)


class PodSnapshot(BaseModel):
    """A pod as observed at one poll instant. Never cached across polls."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    ready: bool = False
    labels: dict[str, str] = Field(default_factory=dict)
    phase: str | None = None

    @classmethod
    def from_v1_pod(cls, pod: Any) -> PodSnapshot:
        """Build a snapshot from a kubernetes ``V1Pod``.

        Args:
            pod: V1Pod returned by CoreV1Api.

        Returns:
            PodSnapshot with ``ready`` set from the ContainersReady condition.
        """
        metadata = pod.metadata
        status = pod.status
        conditions = (status.conditions if status is not None else None) or []
        ready = any(c.type == CONTAINERS_READY and c.status == "True" for c in conditions)
        return cls(
            name=metadata.name,
            ready=ready,
            labels=dict(metadata.labels or {}),
            phase=status.phase if status is not None else None,
        )


class TlsConfig(BaseModel):
    """Client TLS settings for health checks.

    The default instance means no client certificate and the default
    trust store.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    verify: bool | Path = True
    client_cert: Path | None = None
    client_key: Path | None = None

    def httpx_verify(self) -> ssl.SSLContext | bool:
        """Value for httpx's ``verify`` argument."""
        if self.verify is False:
            return False
        if self.verify is True and self.client_cert is None:
            return True
        cafile = str(self.verify) if isinstance(self.verify, Path) else None
        context = ssl.create_default_context(cafile=cafile)
        if self.client_cert is not None:
            context.load_cert_chain(
                str(self.client_cert),
                str(self.client_key) if self.client_key else None,
            )
        return context


class ValidationOutcome(BaseModel):
    """Result of a health validation run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    attempts: int = Field(..., ge=0)
    status_code: int | None = None
    body: str = ""
    success: bool = False


class CaseResult(BaseModel):
    """Per-case report produced by the lifecycle coordinator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    case_name: str
    namespace: str
    passed: bool
    outcome: ValidationOutcome | None = None
    error: str | None = None
    error_type: str | None = None
    teardown_error: str | None = None
    duration_seconds: float = 0.0


@dataclass
class TunnelHandle:
    """A live local-to-pod forward.

    Attributes:
        local_host: Host the forward listens on.
        local_port: Ephemeral local port chosen for the forward.
        pod_name: Pod the forward targets.
        remote_port: Port on the pod.
        session: Underlying forward session.
    """

    local_host: str
    local_port: int
    pod_name: str
    remote_port: int
    session: PortForwardSession | None = field(default=None, repr=False)
    closed: bool = False

    @property
    def endpoint(self) -> str:
        """``host:port`` of the local end of the forward."""
        return f"{self.local_host}:{self.local_port}"

    def close(self) -> None:
        """Release the forward. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        if self.session is not None:
            self.session.close()


__all__ = [
    "CONTAINERS_READY",
    "CaseResult",
    "ClusterContext",
    "DeploymentCase",
    "NamespaceHandle",
    "PodSnapshot",
    "TlsConfig",
    "TunnelHandle",
    "ValidationOutcome",
]
