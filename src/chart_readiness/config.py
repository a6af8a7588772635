"""Process-wide settings for chart readiness runs.

Settings load from ``CHART_READINESS_*`` environment variables and an
optional ``.env`` file. They are built once at startup and passed down to
the components; nothing below reads the environment directly.

Example:
    >>> settings = ReadinessSettings(charts_dir=Path("charts"), health_max_retries=5)
    >>> settings.health_policy().max_attempts
    5
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chart_readiness.health import (
    DEFAULT_HEALTH_DELAY,
    DEFAULT_HEALTH_MAX_RETRIES,
    DEFAULT_HEALTH_PATH,
    DEFAULT_REQUEST_TIMEOUT,
)
from chart_readiness.models import ClusterContext, TlsConfig
from chart_readiness.readiness import (
    DEFAULT_POPULATION_INTERVAL,
    DEFAULT_POPULATION_TIMEOUT,
    DEFAULT_READINESS_DELAY,
    DEFAULT_READINESS_MAX_RETRIES,
)
from chart_readiness.retry import RetryPolicy
from chart_readiness.tunnel import DEFAULT_REMOTE_PORT, DEFAULT_TUNNEL_TIMEOUT

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ReadinessSettings(BaseSettings):
    """Configuration for a chart readiness run.

    Environment Variables:
        CHART_READINESS_CHARTS_DIR: Directory holding the charts
        CHART_READINESS_KUBECONFIG: kubeconfig path (default: kubeconfig default)
        CHART_READINESS_KUBE_CONTEXT: kubeconfig context (default: current)
        CHART_READINESS_POPULATION_TIMEOUT: Deadline for the pod count, seconds
        ... one variable per field below
    """

    model_config = SettingsConfigDict(
        env_prefix="CHART_READINESS_",
        env_file=".env",
        extra="ignore",
    )

    charts_dir: Path = Field(
        default=Path("charts"),
        description="Directory holding one sub-directory per chart",
    )
    kubeconfig: Path | None = Field(
        default=None,
        description="kubeconfig file (None for $KUBECONFIG or ~/.kube/config)",
    )
    kube_context: str | None = Field(
        default=None,
        description="kubeconfig context (None for the current context)",
    )

    # Population phase
    population_interval: float = Field(default=DEFAULT_POPULATION_INTERVAL, ge=0.0)
    population_timeout: float = Field(default=DEFAULT_POPULATION_TIMEOUT, gt=0.0)

    # Readiness phase
    readiness_max_retries: int = Field(default=DEFAULT_READINESS_MAX_RETRIES, ge=1)
    readiness_delay: float = Field(default=DEFAULT_READINESS_DELAY, ge=0.0)

    # Tunnel
    remote_port: int = Field(default=DEFAULT_REMOTE_PORT, ge=1, le=65535)
    tunnel_timeout: float = Field(default=DEFAULT_TUNNEL_TIMEOUT, gt=0.0)

    # Health check
    health_max_retries: int = Field(default=DEFAULT_HEALTH_MAX_RETRIES, ge=1)
    health_delay: float = Field(default=DEFAULT_HEALTH_DELAY, ge=0.0)
    health_path: str = Field(default=DEFAULT_HEALTH_PATH, min_length=1)
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0.0)
    tls_verify: bool = Field(default=True, description="Verify TLS certificates")

    # Logging
    log_level: LogLevel = Field(default="INFO")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    def cluster_context(self) -> ClusterContext:
        return ClusterContext(kubeconfig=self.kubeconfig, context=self.kube_context)

    def population_policy(self) -> RetryPolicy:
        return RetryPolicy(delay=self.population_interval, timeout=self.population_timeout)

    def readiness_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.readiness_max_retries, delay=self.readiness_delay)

    def health_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.health_max_retries, delay=self.health_delay)

    def tls_config(self) -> TlsConfig:
        return TlsConfig(verify=self.tls_verify)


__all__ = ["LogLevel", "ReadinessSettings"]
