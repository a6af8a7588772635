"""kubectl port-forward sessions.

A KubectlPortForward runs ``kubectl port-forward pod/<name> :<port>`` so
kubectl picks a free local port, reads the chosen port from kubectl's
``Forwarding from ...`` line, and then confirms the local listener accepts
TCP connections before reporting the forward as armed.

Example:
    session = KubectlPortForward("sonarqube-dynamic-test", "sonarqube-0", 9000)
    session.start()
    try:
        local_port = session.wait_until_ready(timeout=30.0)
        httpx.get(f"http://127.0.0.1:{local_port}/api/system/status")
    finally:
        session.close()
"""

from __future__ import annotations

import queue
import re
import socket
import subprocess
import threading
import time
from collections.abc import Callable
from typing import IO, Any

import structlog

from chart_readiness.errors import TunnelEstablishError
from chart_readiness.models import ClusterContext
from chart_readiness.retry import RetryPolicy, retry

logger = structlog.get_logger(__name__)

LOCAL_HOST = "127.0.0.1"

FORWARDING_PATTERN = re.compile(
    r"Forwarding from (?P<host>127\.0\.0\.1|\[::1\]):(?P<local>\d+) -> (?P<remote>\d+)"
)


def parse_forwarding_line(line: str) -> tuple[int, int] | None:
    """Extract ``(local_port, remote_port)`` from a kubectl output line.

    Args:
        line: One line of ``kubectl port-forward`` stdout.

    Returns:
        Port pair, or None if the line is not a forwarding announcement.

    Example:
        >>> parse_forwarding_line("Forwarding from 127.0.0.1:54321 -> 9000")
        (54321, 9000)
    """
    match = FORWARDING_PATTERN.search(line)
    if match is None:
        return None
    return int(match.group("local")), int(match.group("remote"))


def _tcp_check(host: str, port: int, timeout: float = 2.0) -> bool:
    """Check if a TCP connection can be established."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class KubectlPortForward:
    """A ``kubectl port-forward`` subprocess to one pod port.

    Attributes:
        namespace: Namespace of the pod.
        pod_name: Pod to forward to.
        remote_port: Port on the pod.
        local_port: Chosen local port, once known.
    """

    def __init__(
        self,
        namespace: str,
        pod_name: str,
        remote_port: int,
        context: ClusterContext | None = None,
        *,
        popen: Callable[..., Any] = subprocess.Popen,
        tcp_check: Callable[[str, int], bool] = _tcp_check,
    ) -> None:
        self.namespace = namespace
        self.pod_name = pod_name
        self.remote_port = remote_port
        self.context = context or ClusterContext()
        self.local_port: int | None = None
        self._popen = popen
        self._tcp_check = tcp_check
        self._process: Any = None
        self._stdout_lines: queue.Queue[str] = queue.Queue()
        self._stderr_lines: list[str] = []

    def command(self) -> list[str]:
        """kubectl command line for this forward."""
        return [
            "kubectl",
            *self.context.kubectl_args(),
            "-n",
            self.namespace,
            "port-forward",
            "--address",
            LOCAL_HOST,
            f"pod/{self.pod_name}",
            f":{self.remote_port}",
        ]

    def start(self) -> None:
        """Launch kubectl.

        Raises:
            TunnelEstablishError: If kubectl cannot be started.
        """
        try:
            self._process = self._popen(
                self.command(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise TunnelEstablishError(
                f"Could not start kubectl port-forward: {e}", self.pod_name
            ) from e

        self._pump(self._process.stdout, self._stdout_lines.put)
        self._pump(self._process.stderr, self._stderr_lines.append)

    @staticmethod
    def _pump(stream: IO[str] | None, sink: Callable[[str], None]) -> None:
        if stream is None:
            return

        def _read() -> None:
            try:
                for line in stream:
                    sink(line.rstrip("\n"))
            except (OSError, ValueError):
                # Stream closed by close() while a read was pending.
                return

        threading.Thread(target=_read, daemon=True).start()

    @property
    def stderr(self) -> str:
        return "\n".join(self._stderr_lines)

    def wait_until_ready(self, timeout: float) -> int:
        """Block until the forward is listening and accepting connections.

        Args:
            timeout: Seconds to wait in total.

        Returns:
            The local port the forward listens on.

        Raises:
            TunnelEstablishError: If kubectl exits, never announces a port,
                or the local port never accepts connections.
        """
        if self._process is None:
            raise TunnelEstablishError("Port-forward was not started", self.pod_name)

        deadline = time.monotonic() + timeout
        while self.local_port is None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TunnelEstablishError(
                    "Timed out waiting for port-forward",
                    self.pod_name,
                    {"timeout": timeout, "stderr": self.stderr},
                )
            try:
                line = self._stdout_lines.get(timeout=min(remaining, 0.5))
            except queue.Empty:
                returncode = self._process.poll()
                if returncode is not None:
                    raise TunnelEstablishError(
                        "kubectl port-forward exited",
                        self.pod_name,
                        {"returncode": returncode, "stderr": self.stderr},
                    ) from None
                continue
            ports = parse_forwarding_line(line)
            if ports is not None:
                self.local_port = ports[0]

        local_port = self.local_port
        result = retry(
            lambda: self._tcp_check(LOCAL_HOST, local_port),
            bool,
            RetryPolicy(timeout=max(deadline - time.monotonic(), 0.0), delay=0.2),
        )
        if not result.succeeded:
            raise TunnelEstablishError(
                "Port-forward not accepting connections",
                self.pod_name,
                {"local_port": local_port, "stderr": self.stderr},
            )

        logger.debug(
            "port_forward_ready",
            pod=self.pod_name,
            local_port=local_port,
            remote_port=self.remote_port,
        )
        return local_port

    def close(self) -> None:
        """Stop kubectl and release its pipes.

        Safe to call on a session that never started or whose kubectl has
        already exited.
        """
        process = self._process
        if process is None:
            return
        try:
            if process.poll() is None:
                process.terminate()
                try:
                    process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    process.kill()
                    process.wait(timeout=5)
        finally:
            for stream in (process.stdout, process.stderr):
                if stream is not None:
                    stream.close()


__all__ = [
    "FORWARDING_PATTERN",
    "KubectlPortForward",
    "LOCAL_HOST",
    "parse_forwarding_line",
]
