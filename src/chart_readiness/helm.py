"""Helm chart rendering.

Renders a chart to a manifest with ``helm template`` so the result can be
applied with kubectl into the case's namespace. Overrides are passed with
``--set``, which keeps helm's dotted-path semantics (``a.b.c=x`` sets the
nested field ``a.b.c``).
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Mapping
from pathlib import Path

import structlog

from chart_readiness.errors import RenderError

logger = structlog.get_logger(__name__)

VALUES_FILE = "values.yaml"

# Default render timeout in seconds
DEFAULT_RENDER_TIMEOUT = 300


def _run_helm(args: list[str], timeout: int = DEFAULT_RENDER_TIMEOUT) -> subprocess.CompletedProcess[str]:
    """Run helm command with timeout.

    Args:
        args: helm arguments.
        timeout: Command timeout in seconds.

    Returns:
        Completed process result.
    """
    return subprocess.run(
        ["helm"] + args,
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )


def build_set_args(overrides: Mapping[str, str]) -> list[str]:
    """Turn an override map into ``--set`` arguments, in key order.

    Example:
        >>> build_set_args({"tests.enabled": "false"})
        ['--set', 'tests.enabled=false']
    """
    args: list[str] = []
    for key in sorted(overrides):
        args.extend(["--set", f"{key}={overrides[key]}"])
    return args


class HelmRenderer:
    """Render charts found under a charts directory.

    Args:
        charts_dir: Directory holding one sub-directory per chart.
        helm_runner: Callable that runs helm commands. Signature:
            ``(args: list[str]) -> subprocess.CompletedProcess[str]``.
            Defaults to the internal ``_run_helm`` helper.
    """

    def __init__(
        self,
        charts_dir: Path,
        *,
        helm_runner: Callable[[list[str]], subprocess.CompletedProcess[str]] | None = None,
    ) -> None:
        self.charts_dir = Path(charts_dir)
        self._run = helm_runner or _run_helm

    def chart_path(self, chart_name: str) -> Path:
        return self.charts_dir / chart_name

    def template_args(
        self,
        chart_name: str,
        overrides: Mapping[str, str],
        namespace: str,
        release_name: str | None = None,
    ) -> list[str]:
        """helm arguments for rendering ``chart_name``."""
        chart_path = self.chart_path(chart_name)
        args = [
            "template",
            release_name or chart_name,
            str(chart_path),
            "--namespace",
            namespace,
        ]
        values_file = chart_path / VALUES_FILE
        if values_file.is_file():
            args.extend(["--values", str(values_file)])
        args.extend(build_set_args(overrides))
        return args

    def render(
        self,
        chart_name: str,
        overrides: Mapping[str, str],
        namespace: str,
        release_name: str | None = None,
    ) -> str:
        """Render a chart to a manifest document.

        Args:
            chart_name: Chart directory name under ``charts_dir``.
            overrides: ``--set`` overrides.
            namespace: Namespace the manifest is rendered for.
            release_name: Helm release name. Defaults to the chart name.

        Returns:
            Rendered multi-document YAML.

        Raises:
            RenderError: If the chart path is invalid, helm is missing, helm
                rejects the chart or overrides, or nothing was rendered.
        """
        chart_path = self.chart_path(chart_name)
        if not chart_path.is_dir():
            raise RenderError(f"Chart not found at {chart_path}", chart_name)

        args = self.template_args(chart_name, overrides, namespace, release_name)
        try:
            result = self._run(args)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise RenderError(f"helm template could not run: {e}", chart_name) from e

        if result.returncode != 0:
            raise RenderError("helm template failed", chart_name, result.stderr)
        if not result.stdout.strip():
            raise RenderError("helm template rendered an empty manifest", chart_name)

        logger.debug(
            "chart_rendered",
            chart=chart_name,
            namespace=namespace,
            overrides=sorted(overrides),
            size=len(result.stdout),
        )
        return result.stdout


__all__ = [
    "DEFAULT_RENDER_TIMEOUT",
    "HelmRenderer",
    "VALUES_FILE",
    "build_set_args",
]
