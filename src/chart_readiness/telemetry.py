"""OpenTelemetry instrumentation for chart readiness phases.

Each phase (render, apply, population wait, readiness wait, tunnel, health
check, case) runs inside a span so a slow or failing case can be located in
a trace. Uses only the OpenTelemetry API; exporting is left to whatever
tracer provider the host process installs.

Example:
    >>> from chart_readiness.telemetry import traced
    >>>
    >>> @traced(operation_name="chart_readiness.render")
    ... def render(chart: str) -> str:
    ...     ...
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, ParamSpec, TypeVar, overload

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode, Tracer

P = ParamSpec("P")
R = TypeVar("R")

TRACER_NAME = "chart-readiness"
"""OpenTelemetry instrumentation library name."""


def get_tracer() -> Tracer:
    """Get the package tracer from the global tracer provider."""
    return trace.get_tracer(TRACER_NAME)


@overload
def traced(
    func: Callable[P, R],
    *,
    operation_name: str | None = ...,
    attributes_fn: Callable[..., dict[str, Any]] | None = ...,
) -> Callable[P, R]: ...


@overload
def traced(
    func: None = ...,
    *,
    operation_name: str | None = ...,
    attributes_fn: Callable[..., dict[str, Any]] | None = ...,
) -> Callable[[Callable[P, R]], Callable[P, R]]: ...


def traced(
    func: Callable[P, R] | None = None,
    *,
    operation_name: str | None = None,
    attributes_fn: Callable[..., dict[str, Any]] | None = None,
) -> Callable[P, R] | Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator creating a span around each call.

    Can be used with or without parentheses. Exceptions are recorded on the
    span, which is marked as errored, and then re-raised unchanged.

    Args:
        func: The function to decorate (when used without parentheses).
        operation_name: Span name. Defaults to the function name.
        attributes_fn: Callable receiving the decorated function's arguments
            and returning span attributes.

    Returns:
        Decorated function.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            span_name = operation_name or fn.__name__
            with get_tracer().start_as_current_span(span_name) as span:
                if attributes_fn is not None:
                    for key, value in attributes_fn(*args, **kwargs).items():
                        if value is not None:
                            span.set_attribute(key, value)
                try:
                    return fn(*args, **kwargs)
                except Exception as exc:
                    span.record_exception(exc)
                    span.set_status(Status(StatusCode.ERROR, str(exc)))
                    raise

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


__all__ = [
    "TRACER_NAME",
    "get_tracer",
    "traced",
]
