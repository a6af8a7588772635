"""Unit tests for chart-readiness data models."""

from __future__ import annotations

import ssl
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from chart_readiness.models import (
    CaseResult,
    ClusterContext,
    DeploymentCase,
    PodSnapshot,
    TlsConfig,
    TunnelHandle,
    ValidationOutcome,
)


class TestDeploymentCase:
    """Tests for DeploymentCase."""

    @pytest.mark.requirement("CR-FR-010")
    def test_camel_case_keys(self) -> None:
        case = DeploymentCase.model_validate(
            {"name": "dce-chart", "chartName": "sonarqube-dce", "expectedPods": 6}
        )

        assert case.chart_name == "sonarqube-dce"
        assert case.expected_pods == 6
        assert case.values == {}

    @pytest.mark.requirement("CR-FR-010")
    def test_derived_names(self) -> None:
        case = DeploymentCase(name="standard-chart", chart_name="sonarqube", expected_pods=2)

        assert case.release_name == "sonarqube"
        assert case.namespace == "sonarqube-dynamic-test"
        assert case.label_selector == "app=sonarqube,release=sonarqube"

    @pytest.mark.requirement("CR-FR-010")
    def test_values_become_helm_strings(self) -> None:
        case = DeploymentCase(
            name="c",
            chart_name="sonarqube",
            expected_pods=1,
            values={"tests.enabled": False, "replicaCount": 3, "flag": True},
        )

        assert case.values == {"tests.enabled": "false", "replicaCount": "3", "flag": "true"}

    @pytest.mark.requirement("CR-FR-010")
    def test_null_override_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Override 'tests.enabled' has no value"):
            DeploymentCase(
                name="c", chart_name="sonarqube", expected_pods=1, values={"tests.enabled": None}
            )

    @pytest.mark.requirement("CR-FR-010")
    @pytest.mark.parametrize(
        "data",
        [
            {"name": "", "chartName": "sonarqube", "expectedPods": 1},
            {"name": "c", "chartName": "", "expectedPods": 1},
            {"name": "c", "chartName": "sonarqube", "expectedPods": 0},
            {"name": "c", "chartName": "sonarqube", "expectedPods": 1, "extra": "x"},
            {"name": "c", "expectedPods": 1},
            {"name": "c", "chartName": "___", "expectedPods": 1},
            {"name": "c", "chartName": "!!!", "expectedPods": 1},
        ],
    )
    def test_rejects_invalid(self, data: dict) -> None:
        with pytest.raises(ValidationError):
            DeploymentCase.model_validate(data)

    @pytest.mark.requirement("CR-FR-010")
    def test_frozen(self) -> None:
        case = DeploymentCase(name="c", chart_name="sonarqube", expected_pods=1)

        with pytest.raises(ValidationError):
            case.expected_pods = 2


class TestClusterContext:
    @pytest.mark.requirement("CR-FR-010")
    def test_default_has_no_flags(self) -> None:
        assert ClusterContext().kubectl_args() == []

    @pytest.mark.requirement("CR-FR-010")
    def test_flags(self) -> None:
        context = ClusterContext(kubeconfig=Path("/etc/kube/config"), context="kind-ci")

        assert context.kubectl_args() == [
            "--kubeconfig",
            "/etc/kube/config",
            "--context",
            "kind-ci",
        ]


class TestPodSnapshot:
    """Tests for PodSnapshot.from_v1_pod."""

    @staticmethod
    def _pod(conditions, labels=None, phase="Running"):
        return SimpleNamespace(
            metadata=SimpleNamespace(name="sonarqube-0", labels=labels),
            status=SimpleNamespace(phase=phase, conditions=conditions),
        )

    @pytest.mark.requirement("CR-FR-010")
    def test_ready_from_containers_ready(self) -> None:
        pod = self._pod(
            [
                SimpleNamespace(type="PodScheduled", status="True"),
                SimpleNamespace(type="ContainersReady", status="True"),
            ],
            labels={"app": "sonarqube"},
        )

        snapshot = PodSnapshot.from_v1_pod(pod)

        assert snapshot.name == "sonarqube-0"
        assert snapshot.ready is True
        assert snapshot.labels == {"app": "sonarqube"}
        assert snapshot.phase == "Running"

    @pytest.mark.requirement("CR-FR-010")
    @pytest.mark.parametrize(
        "conditions",
        [
            None,
            [],
            [SimpleNamespace(type="ContainersReady", status="False")],
            [SimpleNamespace(type="ContainersReady", status="Unknown")],
            [SimpleNamespace(type="Ready", status="True")],
        ],
    )
    def test_not_ready(self, conditions) -> None:
        assert PodSnapshot.from_v1_pod(self._pod(conditions)).ready is False

    @pytest.mark.requirement("CR-FR-010")
    def test_missing_status(self) -> None:
        pod = SimpleNamespace(metadata=SimpleNamespace(name="p", labels=None), status=None)

        snapshot = PodSnapshot.from_v1_pod(pod)

        assert snapshot.ready is False
        assert snapshot.phase is None
        assert snapshot.labels == {}


class TestTlsConfig:
    """Tests for TlsConfig.httpx_verify."""

    @pytest.mark.requirement("CR-FR-010")
    def test_default_verifies(self) -> None:
        assert TlsConfig().httpx_verify() is True

    @pytest.mark.requirement("CR-FR-010")
    def test_disabled(self) -> None:
        assert TlsConfig(verify=False).httpx_verify() is False

    @pytest.mark.requirement("CR-FR-010")
    def test_ca_bundle_builds_context(self, monkeypatch: pytest.MonkeyPatch) -> None:
        context = MagicMock(spec=ssl.SSLContext)
        create = MagicMock(return_value=context)
        monkeypatch.setattr("chart_readiness.models.ssl.create_default_context", create)

        result = TlsConfig(verify=Path("/etc/ssl/ca.pem")).httpx_verify()

        assert result is context
        create.assert_called_once_with(cafile="/etc/ssl/ca.pem")
        context.load_cert_chain.assert_not_called()

    @pytest.mark.requirement("CR-FR-010")
    def test_client_certificate(self, monkeypatch: pytest.MonkeyPatch) -> None:
        context = MagicMock(spec=ssl.SSLContext)
        monkeypatch.setattr(
            "chart_readiness.models.ssl.create_default_context", MagicMock(return_value=context)
        )

        TlsConfig(client_cert=Path("/certs/tls.crt"), client_key=Path("/certs/tls.key")).httpx_verify()

        context.load_cert_chain.assert_called_once_with("/certs/tls.crt", "/certs/tls.key")


class TestTunnelHandle:
    @pytest.mark.requirement("CR-FR-010")
    def test_endpoint(self) -> None:
        handle = TunnelHandle(local_host="127.0.0.1", local_port=40000, pod_name="p", remote_port=9000)

        assert handle.endpoint == "127.0.0.1:40000"

    @pytest.mark.requirement("CR-FR-010")
    def test_close_once(self, make_session) -> None:
        session = make_session()
        handle = TunnelHandle("127.0.0.1", 40000, "p", 9000, session=session)

        handle.close()
        handle.close()

        assert handle.closed is True
        assert session.closed == 1


class TestCaseResult:
    @pytest.mark.requirement("CR-FR-010")
    def test_json_dump(self) -> None:
        result = CaseResult(
            case_name="standard-chart",
            namespace="sonarqube-dynamic-test",
            passed=True,
            outcome=ValidationOutcome(attempts=2, status_code=200, body='{"status":"UP"}', success=True),
            duration_seconds=12.5,
        )

        data = result.model_dump(mode="json")

        assert data["outcome"]["attempts"] == 2
        assert data["error"] is None
