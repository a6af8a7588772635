"""Namespace naming for chart readiness cases.

Each case runs in its own namespace, derived deterministically from the
chart name. A namespace left behind by an aborted run makes the next run's
create fail with a conflict, and that case's teardown then deletes it, so
leftovers do not pile up.

Functions:
    case_namespace: Namespace name for a chart
    validate_namespace: Check if a namespace name is valid for K8s

Example:
    >>> case_namespace("sonarqube-dce")
    'sonarqube-dce-dynamic-test'
"""

from __future__ import annotations

import re

# K8s namespace constraints
MAX_NAMESPACE_LENGTH = 63
NAMESPACE_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

NAMESPACE_SUFFIX = "dynamic-test"


class InvalidNamespaceError(ValueError):
    """Raised when a namespace name is invalid for Kubernetes."""

    def __init__(self, namespace: str, reason: str) -> None:
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"Invalid namespace '{namespace}': {reason}")


def case_namespace(chart_name: str) -> str:
    """Return the namespace a chart's case runs in.

    The chart name is lowercased and underscores become hyphens, then
    ``-dynamic-test`` is appended. Names that would exceed the K8s length
    limit are truncated on the chart side.

    Args:
        chart_name: Chart identifier (e.g., "sonarqube").

    Returns:
        Namespace name (e.g., "sonarqube-dynamic-test").

    Raises:
        InvalidNamespaceError: If the chart name yields no valid namespace.
    """
    normalized = chart_name.lower().replace("_", "-")
    normalized = re.sub(r"[^a-z0-9-]", "", normalized).strip("-")
    if not normalized:
        raise InvalidNamespaceError(chart_name, "chart name has no usable characters")

    max_prefix_length = MAX_NAMESPACE_LENGTH - len(NAMESPACE_SUFFIX) - 1
    if len(normalized) > max_prefix_length:
        normalized = normalized[:max_prefix_length].rstrip("-")

    namespace = f"{normalized}-{NAMESPACE_SUFFIX}"
    if not validate_namespace(namespace):
        raise InvalidNamespaceError(namespace, "does not match K8s naming rules")
    return namespace


def validate_namespace(namespace: str) -> bool:
    """Check if a namespace name is valid for Kubernetes.

    Args:
        namespace: The namespace name to validate.

    Returns:
        True if valid, False otherwise.

    Example:
        >>> validate_namespace("sonarqube-dynamic-test")
        True
        >>> validate_namespace("Test_Namespace")
        False
    """
    if not namespace:
        return False

    if len(namespace) > MAX_NAMESPACE_LENGTH:
        return False

    return bool(NAMESPACE_PATTERN.match(namespace))


__all__ = [
    "InvalidNamespaceError",
    "MAX_NAMESPACE_LENGTH",
    "NAMESPACE_SUFFIX",
    "case_namespace",
    "validate_namespace",
]
