"""Deployment case tables.

A case table lists the chart scenarios to check. The built-in table covers
the SonarQube standard and DCE charts; other tables load from YAML:

    cases:
      - name: standard-chart
        chartName: sonarqube
        expectedPods: 2
        values:
          tests.enabled: "false"

Because namespaces are derived from chart names, two cases for the same
chart would collide. Tables with duplicate case names or namespaces are
rejected when built.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import yaml

from chart_readiness.models import DeploymentCase
from chart_readiness.namespaces import InvalidNamespaceError

DEFAULT_CASES: tuple[DeploymentCase, ...] = (
    DeploymentCase(
        name="standard-chart",
        chart_name="sonarqube",
        expected_pods=2,
        values={"tests.enabled": "false"},
    ),
    DeploymentCase(
        name="dce-chart",
        chart_name="sonarqube-dce",
        expected_pods=6,
        values={
            "tests.enabled": "false",
            "ApplicationNodes.jwtSecret": "dZ0EB0KxnF++nr5+4vfTCaun/eWbv6gOoXodiAMqcFo=",
        },
    ),
)


class CaseTableError(ValueError):
    """Raised when a case table is malformed or has colliding cases."""


def build_case_table(cases: Iterable[DeploymentCase]) -> list[DeploymentCase]:
    """Validate a case table.

    Args:
        cases: Cases in run order.

    Returns:
        The cases as a list, order preserved.

    Raises:
        CaseTableError: If the table is empty, or two cases share a name or
            a namespace.
    """
    table = list(cases)
    if not table:
        raise CaseTableError("Case table is empty")

    seen_names: set[str] = set()
    seen_namespaces: dict[str, str] = {}
    for case in table:
        if case.name in seen_names:
            raise CaseTableError(f"Duplicate case name '{case.name}'")
        seen_names.add(case.name)

        try:
            namespace = case.namespace
        except InvalidNamespaceError as e:
            raise CaseTableError(f"Case '{case.name}': {e}") from e
        other = seen_namespaces.get(namespace)
        if other is not None:
            raise CaseTableError(
                f"Cases '{other}' and '{case.name}' would share namespace '{namespace}'"
            )
        seen_namespaces[namespace] = case.name
    return table


def parse_cases(data: Any) -> list[DeploymentCase]:
    """Build a case table from parsed YAML.

    Accepts a top-level list or a mapping with a ``cases`` list.

    Raises:
        CaseTableError: If the structure or a case is invalid.
    """
    if isinstance(data, dict):
        data = data.get("cases")
    if not isinstance(data, list):
        raise CaseTableError("Case file must contain a list of cases or a 'cases' list")

    cases: list[DeploymentCase] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise CaseTableError(f"Case #{index} is not a mapping")
        try:
            cases.append(DeploymentCase.model_validate(entry))
        except ValueError as e:
            raise CaseTableError(f"Case #{index} is invalid: {e}") from e
    return build_case_table(cases)


def load_cases(path: Path) -> list[DeploymentCase]:
    """Load a case table from a YAML file.

    Raises:
        CaseTableError: If the file cannot be parsed or is invalid.
    """
    try:
        data = yaml.safe_load(Path(path).read_text())
    except yaml.YAMLError as e:
        raise CaseTableError(f"Case file {path} is not valid YAML: {e}") from e
    return parse_cases(data)


def select_cases(cases: Sequence[DeploymentCase], names: Iterable[str]) -> list[DeploymentCase]:
    """Keep only the named cases, in table order.

    Raises:
        CaseTableError: If a name is not in the table.
    """
    wanted = list(names)
    if not wanted:
        return list(cases)
    known = {case.name for case in cases}
    unknown = [name for name in wanted if name not in known]
    if unknown:
        raise CaseTableError(f"Unknown case(s): {', '.join(unknown)}")
    return [case for case in cases if case.name in wanted]


__all__ = [
    "CaseTableError",
    "DEFAULT_CASES",
    "build_case_table",
    "load_cases",
    "parse_cases",
    "select_cases",
]
