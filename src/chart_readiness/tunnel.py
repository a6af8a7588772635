"""Tunnel management: pick a pod and expose one of its ports locally.

Pod selection queries by label selector, then keeps only pods that the
readiness phase already verified, so the tunnel never lands on a pod that
was never checked (e.g., a replacement spawned after the readiness phase).
"""

from __future__ import annotations

from collections.abc import Collection

import structlog

from chart_readiness.cluster import ClusterClient
from chart_readiness.errors import NoPodFoundError, TunnelEstablishError
from chart_readiness.models import TunnelHandle
from chart_readiness.portforward import LOCAL_HOST
from chart_readiness.telemetry import traced

logger = structlog.get_logger(__name__)

DEFAULT_REMOTE_PORT = 9000
DEFAULT_TUNNEL_TIMEOUT = 30.0


class TunnelManager:
    """Select pods and open/close port-forward tunnels to them.

    Args:
        cluster: Cluster client used for pod listing and forwards.
        timeout: Seconds to wait for a forward to be armed.
    """

    def __init__(self, cluster: ClusterClient, *, timeout: float = DEFAULT_TUNNEL_TIMEOUT) -> None:
        self.cluster = cluster
        self.timeout = timeout

    def select_pod(
        self,
        namespace: str,
        label_selector: str,
        ready_pods: Collection[str] | None = None,
    ) -> str:
        """Pick the pod to tunnel to.

        Args:
            namespace: Namespace to search.
            label_selector: Selector identifying the application pods.
            ready_pods: Names verified ready. When given, only these pods
                are eligible.

        Returns:
            Name of the first eligible pod in list order.

        Raises:
            NoPodFoundError: If no eligible pod matches.
        """
        pods = self.cluster.list_pods(namespace, label_selector=label_selector)
        candidates = [p.name for p in pods if ready_pods is None or p.name in ready_pods]
        if not candidates:
            logger.warning(
                "no_pod_for_tunnel",
                namespace=namespace,
                selector=label_selector,
                matched=[p.name for p in pods],
            )
            raise NoPodFoundError(namespace, label_selector)
        return candidates[0]

    @traced(
        operation_name="chart_readiness.open_tunnel",
        attributes_fn=lambda self, namespace, pod_name, remote_port: {
            "chart_readiness.namespace": namespace,
            "chart_readiness.pod": pod_name,
            "chart_readiness.remote_port": remote_port,
        },
    )
    def open(self, namespace: str, pod_name: str, remote_port: int) -> TunnelHandle:
        """Open a forward from an ephemeral local port to ``remote_port``.

        Blocks until the forward is armed.

        Raises:
            TunnelEstablishError: If the forward cannot be armed. Any
                partially opened session is closed first.
        """
        logger.info("opening_tunnel", namespace=namespace, pod=pod_name, remote_port=remote_port)
        session = self.cluster.port_forward(namespace, pod_name, remote_port)
        try:
            local_port = session.wait_until_ready(self.timeout)
        except TunnelEstablishError:
            session.close()
            raise
        except Exception as e:
            session.close()
            raise TunnelEstablishError(f"Port-forward failed: {e}", pod_name) from e

        handle = TunnelHandle(
            local_host=LOCAL_HOST,
            local_port=local_port,
            pod_name=pod_name,
            remote_port=remote_port,
            session=session,
        )
        logger.info("tunnel_open", pod=pod_name, endpoint=handle.endpoint)
        return handle

    @staticmethod
    def close(handle: TunnelHandle | None) -> None:
        """Release a tunnel. Accepts None and already-closed handles."""
        if handle is None:
            return
        handle.close()
        logger.info("tunnel_closed", pod=handle.pod_name)


__all__ = [
    "DEFAULT_REMOTE_PORT",
    "DEFAULT_TUNNEL_TIMEOUT",
    "TunnelManager",
]
