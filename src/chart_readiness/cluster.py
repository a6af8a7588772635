"""Cluster access for chart readiness checks.

The readiness phases only need a small capability surface from the cluster:
namespace create/delete, manifest apply, pod list and read, and a
port-forward. ClusterClient names that surface; KubernetesCluster implements
it with the kubernetes Python client for API calls and the kubectl binary
for ``apply`` and ``port-forward``.

The connection context is explicit. A KubernetesCluster is built once per
process from a ClusterContext and handed to every component; nothing below
reads kubeconfig on its own.

Example:
    from chart_readiness.cluster import KubernetesCluster
    from chart_readiness.models import ClusterContext

    cluster = KubernetesCluster(ClusterContext(context="kind-ci"))
    cluster.create_namespace("sonarqube-dynamic-test")
    pods = cluster.list_pods("sonarqube-dynamic-test")
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from typing import Any, Protocol

import structlog
from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from chart_readiness.errors import ApplyError, ClusterAPIError
from chart_readiness.models import ClusterContext, PodSnapshot
from chart_readiness.portforward import KubectlPortForward

logger = structlog.get_logger(__name__)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "chart-readiness"


class PortForwardSession(Protocol):
    """A started local-to-pod forward."""

    def wait_until_ready(self, timeout: float) -> int: ...

    def close(self) -> None: ...


class ClusterClient(Protocol):
    """Cluster operations the readiness phases depend on."""

    def create_namespace(self, name: str) -> None: ...

    def delete_namespace(self, name: str) -> None: ...

    def apply_manifest(self, namespace: str, manifest: str) -> None: ...

    def list_pods(self, namespace: str, label_selector: str | None = None) -> list[PodSnapshot]: ...

    def get_pod(self, namespace: str, name: str) -> PodSnapshot: ...

    def port_forward(self, namespace: str, pod_name: str, remote_port: int) -> PortForwardSession: ...


def run_kubectl(
    args: list[str],
    namespace: str | None = None,
    context: ClusterContext | None = None,
    input_text: str | None = None,
    timeout: int = 300,
) -> subprocess.CompletedProcess[str]:
    """Run kubectl against the given context.

    Args:
        args: kubectl arguments (e.g., ["apply", "-f", "-"]).
        namespace: K8s namespace to target. If provided, adds -n flag.
        context: Connection context. Defaults to the kubeconfig default.
        input_text: Text piped to kubectl's stdin.
        timeout: Command timeout in seconds.

    Returns:
        Completed process result with stdout, stderr, and returncode.
    """
    cmd = ["kubectl", *(context or ClusterContext()).kubectl_args()]
    if namespace:
        cmd.extend(["-n", namespace])
    cmd.extend(args)
    return subprocess.run(
        cmd,
        input=input_text,
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )


def create_api_client(context: ClusterContext) -> client.ApiClient:
    """Build a kubernetes ApiClient for the context.

    With no explicit kubeconfig or context, in-cluster configuration is
    tried first, then the default kubeconfig.

    Args:
        context: Connection context.

    Returns:
        Configured ApiClient.
    """
    if context.kubeconfig is None and context.context is None:
        configuration = client.Configuration()
        try:
            k8s_config.load_incluster_config(client_configuration=configuration)
            return client.ApiClient(configuration)
        except k8s_config.ConfigException:
            pass

    return k8s_config.new_client_from_config(
        config_file=str(context.kubeconfig) if context.kubeconfig else None,
        context=context.context,
    )


def _api_error(operation: str, exc: Exception) -> ClusterAPIError:
    if isinstance(exc, ApiException):
        return ClusterAPIError(operation, exc.reason or str(exc), status=exc.status)
    return ClusterAPIError(operation, str(exc))


class KubernetesCluster:
    """ClusterClient backed by the kubernetes client and kubectl.

    Args:
        context: Connection context used for API calls and kubectl.
        api_client: Optional pre-built ApiClient. Built from ``context``
            when omitted.
        kubectl_runner: Callable with the run_kubectl signature.
    """

    def __init__(
        self,
        context: ClusterContext | None = None,
        *,
        api_client: Any = None,
        kubectl_runner: Callable[..., subprocess.CompletedProcess[str]] | None = None,
    ) -> None:
        self.context = context or ClusterContext()
        self._core = client.CoreV1Api(api_client or create_api_client(self.context))
        self._kubectl = kubectl_runner or run_kubectl

    def create_namespace(self, name: str) -> None:
        body = client.V1Namespace(
            metadata=client.V1ObjectMeta(
                name=name,
                labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            )
        )
        try:
            self._core.create_namespace(body)
        except (ApiException, Urllib3HTTPError) as e:
            raise _api_error("create_namespace", e) from e
        logger.info("namespace_created", namespace=name)

    def delete_namespace(self, name: str) -> None:
        try:
            self._core.delete_namespace(name)
        except ApiException as e:
            if e.status == 404:
                logger.info("namespace_already_absent", namespace=name)
                return
            raise _api_error("delete_namespace", e) from e
        except Urllib3HTTPError as e:
            raise _api_error("delete_namespace", e) from e
        logger.info("namespace_deleted", namespace=name)

    def apply_manifest(self, namespace: str, manifest: str) -> None:
        try:
            result = self._kubectl(
                ["apply", "-f", "-"],
                namespace=namespace,
                context=self.context,
                input_text=manifest,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ApplyError(f"kubectl apply could not run: {e}", namespace) from e
        if result.returncode != 0:
            raise ApplyError("kubectl apply rejected the manifest", namespace, result.stderr)
        logger.debug("manifest_applied", namespace=namespace, output=result.stdout.strip())

    def list_pods(self, namespace: str, label_selector: str | None = None) -> list[PodSnapshot]:
        try:
            pod_list = self._core.list_namespaced_pod(namespace, label_selector=label_selector or "")
        except (ApiException, Urllib3HTTPError) as e:
            raise _api_error("list_pods", e) from e
        return [PodSnapshot.from_v1_pod(pod) for pod in pod_list.items]

    def get_pod(self, namespace: str, name: str) -> PodSnapshot:
        try:
            pod = self._core.read_namespaced_pod(name, namespace)
        except (ApiException, Urllib3HTTPError) as e:
            raise _api_error("get_pod", e) from e
        return PodSnapshot.from_v1_pod(pod)

    def port_forward(self, namespace: str, pod_name: str, remote_port: int) -> KubectlPortForward:
        session = KubectlPortForward(namespace, pod_name, remote_port, self.context)
        session.start()
        return session


__all__ = [
    "ClusterClient",
    "KubernetesCluster",
    "MANAGED_BY_LABEL",
    "PortForwardSession",
    "create_api_client",
    "run_kubectl",
]
