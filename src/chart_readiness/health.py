"""HTTP health validation through a tunnel.

The application is healthy only when its status endpoint answers 200 AND the
body reports ``"status":"UP"``. Any other answer (a 200 saying "STARTING" or
"DOWN", a 503 saying "UP", a connection error) is treated as not healthy yet
and retried until the attempt budget is exhausted.

Example:
    validator = HealthValidator()
    outcome = validator.check_until_healthy(
        f"http://{tunnel.endpoint}/api/system/status",
        TlsConfig(),
        max_retries=15,
        delay=5.0,
        predicate=status_up_predicate,
    )
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx
import structlog

from chart_readiness.errors import HealthCheckExhaustedError
from chart_readiness.models import TlsConfig, ValidationOutcome
from chart_readiness.retry import RetryPolicy, retry
from chart_readiness.telemetry import traced

logger = structlog.get_logger(__name__)

STATUS_UP_MARKER = '"status":"UP"'
DEFAULT_HEALTH_PATH = "/api/system/status"
DEFAULT_HEALTH_MAX_RETRIES = 15
DEFAULT_HEALTH_DELAY = 5.0
DEFAULT_REQUEST_TIMEOUT = 10.0

Predicate = Callable[[int, str], bool]


def status_up_predicate(status_code: int, body: str) -> bool:
    """True iff the response is a 200 whose body reports status UP.

    Example:
        >>> status_up_predicate(200, '{"status":"UP"}')
        True
        >>> status_up_predicate(200, '{"status":"DOWN"}')
        False
        >>> status_up_predicate(503, '{"status":"UP"}')
        False
    """
    return status_code == 200 and STATUS_UP_MARKER in body


def health_endpoint(tunnel_endpoint: str, path: str = DEFAULT_HEALTH_PATH) -> str:
    """Build the status URL for a ``host:port`` tunnel endpoint."""
    return f"http://{tunnel_endpoint}/{path.lstrip('/')}"


@dataclass(frozen=True)
class _Response:
    status_code: int
    body: str


class HealthValidator:
    """Repeatedly GET an endpoint until a predicate accepts the response.

    Args:
        request_timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.request_timeout = request_timeout
        self._transport = transport
        self._sleep = sleep

    def _client(self, tls: TlsConfig) -> httpx.Client:
        return httpx.Client(
            verify=tls.httpx_verify(),
            timeout=self.request_timeout,
            transport=self._transport,
        )

    @traced(
        operation_name="chart_readiness.check_until_healthy",
        attributes_fn=lambda self, endpoint, *_, **__: {"chart_readiness.endpoint": endpoint},
    )
    def check_until_healthy(
        self,
        endpoint: str,
        tls: TlsConfig | None = None,
        max_retries: int = DEFAULT_HEALTH_MAX_RETRIES,
        delay: float = DEFAULT_HEALTH_DELAY,
        predicate: Predicate = status_up_predicate,
    ) -> ValidationOutcome:
        """GET ``endpoint`` until ``predicate(status, body)`` holds.

        Args:
            endpoint: URL to check.
            tls: Client TLS settings. Defaults to the system trust store and
                no client certificate.
            max_retries: Total number of attempts.
            delay: Seconds slept between attempts.
            predicate: Acceptance test on ``(status_code, body)``.

        Returns:
            ValidationOutcome of the successful attempt.

        Raises:
            HealthCheckExhaustedError: If no attempt satisfied the predicate.
        """
        last: dict[str, _Response] = {}

        def _attempt() -> _Response:
            response = client.get(endpoint)
            last["response"] = _Response(response.status_code, response.text)
            return last["response"]

        def _log(attempt: int, response: _Response | None, error: BaseException | None) -> None:
            if error is not None:
                logger.info("health_check_error", endpoint=endpoint, attempt=attempt, error=str(error))
            elif response is not None:
                logger.info(
                    "health_check_response",
                    endpoint=endpoint,
                    attempt=attempt,
                    status_code=response.status_code,
                )

        with self._client(tls or TlsConfig()) as client:
            result = retry(
                _attempt,
                lambda r: predicate(r.status_code, r.body),
                RetryPolicy(max_attempts=max_retries, delay=delay),
                retry_on=(httpx.HTTPError,),
                sleep=self._sleep,
                on_attempt=_log,
            )

        final = last.get("response")
        outcome = ValidationOutcome(
            attempts=result.attempts,
            status_code=final.status_code if final else None,
            body=final.body if final else "",
            success=result.succeeded,
        )
        if not result.succeeded:
            raise HealthCheckExhaustedError(endpoint, outcome, result.last_error)

        logger.info("service_healthy", endpoint=endpoint, attempts=outcome.attempts)
        return outcome


__all__ = [
    "DEFAULT_HEALTH_DELAY",
    "DEFAULT_HEALTH_MAX_RETRIES",
    "DEFAULT_HEALTH_PATH",
    "DEFAULT_REQUEST_TIMEOUT",
    "HealthValidator",
    "STATUS_UP_MARKER",
    "health_endpoint",
    "status_up_predicate",
]
