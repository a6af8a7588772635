"""Unit tests for case tables."""

from __future__ import annotations

from pathlib import Path

import pytest

from chart_readiness.cases import (
    DEFAULT_CASES,
    CaseTableError,
    build_case_table,
    load_cases,
    parse_cases,
    select_cases,
)
from chart_readiness.models import DeploymentCase


def _case(name: str, chart: str, pods: int = 1) -> DeploymentCase:
    return DeploymentCase(name=name, chart_name=chart, expected_pods=pods)


class TestDefaultCases:
    @pytest.mark.requirement("CR-FR-009")
    def test_standard_and_dce(self) -> None:
        standard, dce = DEFAULT_CASES

        assert (standard.name, standard.chart_name, standard.expected_pods) == (
            "standard-chart",
            "sonarqube",
            2,
        )
        assert standard.values == {"tests.enabled": "false"}
        assert (dce.name, dce.chart_name, dce.expected_pods) == ("dce-chart", "sonarqube-dce", 6)
        assert dce.values["tests.enabled"] == "false"
        assert dce.values["ApplicationNodes.jwtSecret"].endswith("=")

    @pytest.mark.requirement("CR-FR-009")
    def test_default_table_is_valid(self) -> None:
        assert build_case_table(DEFAULT_CASES) == list(DEFAULT_CASES)


class TestBuildCaseTable:
    @pytest.mark.requirement("CR-FR-009")
    def test_empty(self) -> None:
        with pytest.raises(CaseTableError, match="empty"):
            build_case_table([])

    @pytest.mark.requirement("CR-FR-009")
    def test_duplicate_name(self) -> None:
        with pytest.raises(CaseTableError, match="Duplicate case name 'a'"):
            build_case_table([_case("a", "one"), _case("a", "two")])

    @pytest.mark.requirement("CR-FR-009")
    def test_shared_namespace(self) -> None:
        """Two cases for the same chart would run in the same namespace."""
        with pytest.raises(CaseTableError, match="share namespace 'sonarqube-dynamic-test'"):
            build_case_table([_case("a", "sonarqube"), _case("b", "sonarqube")])

    @pytest.mark.requirement("CR-FR-009")
    def test_unusable_chart_name(self) -> None:
        with pytest.raises(CaseTableError, match="Case 'a'"):
            build_case_table(
                [DeploymentCase.model_construct(name="a", chart_name="___", expected_pods=1)]
            )

    @pytest.mark.requirement("CR-FR-009")
    def test_order_preserved(self) -> None:
        table = build_case_table([_case("z", "zeta"), _case("a", "alpha")])

        assert [c.name for c in table] == ["z", "a"]


class TestParseCases:
    @pytest.mark.requirement("CR-FR-009")
    def test_mapping_with_cases_key(self) -> None:
        cases = parse_cases(
            {
                "cases": [
                    {
                        "name": "standard-chart",
                        "chartName": "sonarqube",
                        "expectedPods": 2,
                        "values": {"tests.enabled": False},
                    }
                ]
            }
        )

        assert cases[0].values == {"tests.enabled": "false"}

    @pytest.mark.requirement("CR-FR-009")
    def test_top_level_list(self) -> None:
        cases = parse_cases([{"name": "a", "chartName": "one", "expectedPods": 1}])

        assert [c.name for c in cases] == ["a"]

    @pytest.mark.requirement("CR-FR-009")
    @pytest.mark.parametrize("data", [None, "cases", {"other": []}, 42])
    def test_wrong_shape(self, data) -> None:
        with pytest.raises(CaseTableError, match="list of cases"):
            parse_cases(data)

    @pytest.mark.requirement("CR-FR-009")
    def test_entry_not_a_mapping(self) -> None:
        with pytest.raises(CaseTableError, match="Case #1 is not a mapping"):
            parse_cases([{"name": "a", "chartName": "one", "expectedPods": 1}, "b"])

    @pytest.mark.requirement("CR-FR-009")
    def test_invalid_entry(self) -> None:
        with pytest.raises(CaseTableError, match="Case #0 is invalid"):
            parse_cases([{"name": "a", "chartName": "one", "expectedPods": 0}])


class TestLoadCases:
    @pytest.mark.requirement("CR-FR-009")
    def test_load_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "cases.yaml"
        path.write_text(
            "cases:\n"
            "  - name: dce-chart\n"
            "    chartName: sonarqube-dce\n"
            "    expectedPods: 6\n"
            "    values:\n"
            "      tests.enabled: false\n"
            "      ApplicationNodes.jwtSecret: abc=\n"
        )

        (case,) = load_cases(path)

        assert case.namespace == "sonarqube-dce-dynamic-test"
        assert case.values == {"tests.enabled": "false", "ApplicationNodes.jwtSecret": "abc="}

    @pytest.mark.requirement("CR-FR-009")
    def test_null_override(self, tmp_path: Path) -> None:
        path = tmp_path / "cases.yaml"
        path.write_text(
            "cases:\n"
            "  - name: standard-chart\n"
            "    chartName: sonarqube\n"
            "    expectedPods: 2\n"
            "    values:\n"
            "      tests.enabled:\n"
        )

        with pytest.raises(CaseTableError, match="Case #0 is invalid"):
            load_cases(path)

    @pytest.mark.requirement("CR-FR-009")
    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "cases.yaml"
        path.write_text("cases: [unterminated\n")

        with pytest.raises(CaseTableError, match="not valid YAML"):
            load_cases(path)


class TestSelectCases:
    @pytest.mark.requirement("CR-FR-009")
    def test_no_names_selects_all(self) -> None:
        assert select_cases(DEFAULT_CASES, []) == list(DEFAULT_CASES)

    @pytest.mark.requirement("CR-FR-009")
    def test_keeps_table_order(self) -> None:
        selected = select_cases(DEFAULT_CASES, ["dce-chart", "standard-chart"])

        assert [c.name for c in selected] == ["standard-chart", "dce-chart"]

    @pytest.mark.requirement("CR-FR-009")
    def test_unknown(self) -> None:
        with pytest.raises(CaseTableError, match="Unknown case"):
            select_cases(DEFAULT_CASES, ["nope"])
