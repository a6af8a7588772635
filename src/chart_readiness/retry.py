"""Retry primitive shared by every polling loop.

Readiness checks are polls against an eventually consistent cluster. Rather
than ad hoc ``while``/``sleep`` loops, each phase describes its budget with a
RetryPolicy and hands an action plus an acceptance predicate to retry().
``sleep`` and ``clock`` are injectable so budgets can be tested without
waiting.

Example:
    from chart_readiness.retry import RetryPolicy, retry

    result = retry(
        lambda: cluster.get_pod(namespace, name),
        lambda pod: pod.ready,
        RetryPolicy(max_attempts=100, delay=30.0),
        retry_on=(ApiException,),
    )
    if not result.succeeded:
        raise ReadinessTimeoutError(name, result.attempts, result.last_error)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Budget for a retried action.

    Attributes:
        max_attempts: Maximum number of attempts. None means no attempt cap.
        delay: Seconds slept between attempts.
        timeout: Wall-clock budget in seconds. None means no deadline.

    At least one of ``max_attempts`` and ``timeout`` must be set.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int | None = Field(default=None, ge=1)
    delay: float = Field(default=0.0, ge=0.0)
    timeout: float | None = Field(default=None, ge=0.0)

    @model_validator(mode="after")
    def _require_bound(self) -> RetryPolicy:
        if self.max_attempts is None and self.timeout is None:
            msg = "RetryPolicy needs max_attempts or timeout"
            raise ValueError(msg)
        return self


@dataclass
class RetryResult(Generic[T]):
    """Outcome of retry().

    Attributes:
        succeeded: True if an attempt was accepted.
        attempts: Number of attempts made.
        value: Value of the last attempt that returned normally, if any.
        last_error: Last retried exception, if any.
    """

    succeeded: bool
    attempts: int
    value: T | None = None
    last_error: BaseException | None = None


def retry(
    action: Callable[[], T],
    accept: Callable[[T], bool],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (),
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    on_attempt: Callable[[int, T | None, BaseException | None], None] | None = None,
) -> RetryResult[T]:
    """Call ``action`` until ``accept`` approves its value or the budget runs out.

    Args:
        action: Zero-argument callable performing one attempt.
        accept: Predicate on the action's value.
        policy: Attempt and time budget.
        retry_on: Exception types counted as a failed attempt. Anything
            else propagates immediately.
        sleep: Sleep function, injectable for tests.
        clock: Monotonic clock, injectable for tests.
        on_attempt: Optional callback ``(attempt, value, error)`` invoked
            after every attempt.

    Returns:
        RetryResult describing the final attempt.
    """
    start = clock()
    attempt = 0
    value: T | None = None
    last_error: BaseException | None = None

    while True:
        attempt += 1
        error: BaseException | None = None
        try:
            value = action()
        except retry_on as exc:
            error = exc
            last_error = exc
        else:
            if on_attempt is not None:
                on_attempt(attempt, value, None)
            if accept(value):
                return RetryResult(True, attempt, value, last_error)
        if error is not None and on_attempt is not None:
            on_attempt(attempt, None, error)

        if policy.max_attempts is not None and attempt >= policy.max_attempts:
            break
        if policy.timeout is not None:
            elapsed = clock() - start
            if elapsed >= policy.timeout:
                break
            # Don't sleep past the deadline
            sleep_time = min(policy.delay, policy.timeout - elapsed)
        else:
            sleep_time = policy.delay
        if sleep_time > 0:
            sleep(sleep_time)

    return RetryResult(False, attempt, value, last_error)


__all__ = [
    "RetryPolicy",
    "RetryResult",
    "retry",
]
