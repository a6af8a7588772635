"""Manifest provisioning: render a chart and submit it to a namespace.

No retries happen here. A render or apply failure is fatal to the case.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from chart_readiness.cluster import ClusterClient
from chart_readiness.helm import HelmRenderer
from chart_readiness.models import DeploymentCase
from chart_readiness.telemetry import traced

logger = structlog.get_logger(__name__)


class ManifestProvisioner:
    """Render charts with helm and apply them through the cluster client."""

    def __init__(self, renderer: HelmRenderer, cluster: ClusterClient) -> None:
        self.renderer = renderer
        self.cluster = cluster

    @traced(
        operation_name="chart_readiness.render",
        attributes_fn=lambda self, chart_name, overrides, namespace, *_, **__: {
            "chart_readiness.chart": chart_name,
            "chart_readiness.namespace": namespace,
        },
    )
    def render(
        self,
        chart_name: str,
        overrides: Mapping[str, str],
        namespace: str,
        release_name: str | None = None,
    ) -> str:
        """Render ``chart_name`` with ``overrides``. Raises RenderError."""
        return self.renderer.render(chart_name, overrides, namespace, release_name)

    @traced(
        operation_name="chart_readiness.apply",
        attributes_fn=lambda self, namespace, manifest: {"chart_readiness.namespace": namespace},
    )
    def apply(self, namespace: str, manifest: str) -> None:
        """Submit ``manifest`` to ``namespace``. Raises ApplyError."""
        self.cluster.apply_manifest(namespace, manifest)
        logger.info("manifest_applied", namespace=namespace)

    def provision(self, case: DeploymentCase) -> str:
        """Render and apply a case's chart into its namespace.

        Returns:
            The applied manifest.
        """
        manifest = self.render(case.chart_name, case.values, case.namespace, case.release_name)
        self.apply(case.namespace, manifest)
        return manifest


__all__ = ["ManifestProvisioner"]
