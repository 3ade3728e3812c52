#!/usr/bin/env python3
"""Tests for cbv_validation_common.py - diagnostic model, registry and shared helpers."""

import json
from pathlib import Path

import pytest

from cbv_validation_common import (
    CODE_REGISTRY,
    FIXABLE_CODES,
    Diagnostic,
    DiagnosticReport,
    batch_exit_code,
    estimate_tokens,
    format_diagnostic,
    is_valid_kebab_case,
    new_diagnostic,
    print_json_results,
    print_text_results,
    relative_label,
    resolve_profile,
    sort_diagnostics,
    summarize,
    type_name,
    worst_severity,
)


class TestCodeRegistry:
    """The registry is the single source of severities and messages."""

    def test_prefixes_are_known(self) -> None:
        assert {code[0] for code in CODE_REGISTRY} <= set("EWISCPHAKX")

    def test_fixable_codes(self) -> None:
        assert FIXABLE_CODES == {"E002", "E003", "E006", "E012", "I002"}

    def test_prefix_severity_conventions(self) -> None:
        for code, spec in CODE_REGISTRY.items():
            if code.startswith("W"):
                assert spec.severity == "warning", code
            if code.startswith("I"):
                assert spec.severity == "info", code

    def test_precondition_codes_are_errors(self) -> None:
        for code in ("E000", "P001", "H001", "A001", "K001"):
            assert CODE_REGISTRY[code].severity == "error"


class TestNewDiagnostic:
    """new_diagnostic() looks up severity and template from the registry."""

    def test_severity_comes_from_registry(self) -> None:
        diag = new_diagnostic("W001", key="foo")
        assert diag.severity == "warning"
        assert diag.message == "unexpected metadata field: 'foo'"

    def test_field_and_suggestion(self) -> None:
        diag = new_diagnostic("E003", field="name", suggestion="Use lowercase", chars="'A'")
        assert diag.field == "name"
        assert diag.suggestion == "Use lowercase"
        assert diag.fixable

    def test_unknown_code_raises(self) -> None:
        with pytest.raises(KeyError):
            new_diagnostic("Z999")

    def test_missing_template_param_raises(self) -> None:
        with pytest.raises(KeyError):
            new_diagnostic("E002", limit=64)

    def test_predicates(self) -> None:
        assert new_diagnostic("E001").is_error()
        assert new_diagnostic("W002", limit=500, count=501).is_warning()
        assert new_diagnostic("I002").is_info()

    def test_str_rendering(self) -> None:
        assert str(new_diagnostic("E001")) == "error[E001]: name must not be empty"

    def test_to_dict_omits_unset_optionals(self) -> None:
        assert new_diagnostic("E001").to_dict() == {
            "severity": "error",
            "code": "E001",
            "message": "name must not be empty",
        }
        assert new_diagnostic("E001", field="name").to_dict()["field"] == "name"

    def test_diagnostics_are_immutable(self) -> None:
        diag = new_diagnostic("E001")
        with pytest.raises(AttributeError):
            diag.code = "E002"  # type: ignore[misc]


class TestOrdering:
    """Sorting and worst-severity summaries."""

    def test_sort_by_severity_then_code(self) -> None:
        diags = [
            new_diagnostic("I002"),
            new_diagnostic("W001", key="x"),
            new_diagnostic("E010"),
            new_diagnostic("E001"),
        ]
        assert [d.code for d in sort_diagnostics(diags)] == ["E001", "E010", "W001", "I002"]

    def test_worst_severity(self) -> None:
        assert worst_severity([]) is None
        assert worst_severity([new_diagnostic("I002"), new_diagnostic("W001", key="x")]) == "warning"
        assert worst_severity([new_diagnostic("I002"), new_diagnostic("E001")]) == "error"


class TestDiagnosticReport:
    """Report aggregation and exit codes."""

    def test_empty_report(self) -> None:
        report = DiagnosticReport(path="a")
        assert not report.has_errors
        assert report.exit_code == 0
        assert report.worst_severity is None

    def test_warnings_do_not_block(self) -> None:
        report = DiagnosticReport(path="a")
        report.add("W001", field="x", key="x")
        report.add("I002")
        assert report.exit_code == 0
        assert report.count_by_severity() == {"error": 0, "warning": 1, "info": 1}

    def test_error_blocks(self) -> None:
        report = DiagnosticReport(path="a")
        report.add("E001", field="name")
        assert report.exit_code == 1
        assert report.codes() == ["E001"]

    def test_merge_and_to_dict(self) -> None:
        first = DiagnosticReport(path="a")
        second = DiagnosticReport(path="b", diagnostics=[new_diagnostic("E001")])
        first.merge(second)
        assert first.to_dict() == {"path": "a", "diagnostics": [new_diagnostic("E001").to_dict()]}

    def test_batch_exit_code(self) -> None:
        clean = DiagnosticReport(path="a")
        broken = DiagnosticReport(path="b", diagnostics=[new_diagnostic("E001")])
        assert batch_exit_code([clean]) == 0
        assert batch_exit_code([clean, broken]) == 1


class TestHelpers:
    """Small shared helpers."""

    @pytest.mark.parametrize("name", ["a", "my-skill", "tool2", "a-b-c"])
    def test_kebab_case_accepted(self, name: str) -> None:
        assert is_valid_kebab_case(name)

    @pytest.mark.parametrize("name", ["", "My-Skill", "my_skill", "-a", "a-", "a--b", "2fast"])
    def test_kebab_case_rejected(self, name: str) -> None:
        assert not is_valid_kebab_case(name)

    def test_estimate_tokens(self) -> None:
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcdefgh") == 2

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, "null"), (True, "boolean"), (3, "number"), (1.5, "number"), ([], "list"), ({}, "mapping"), ("x", "str")],
    )
    def test_type_name(self, value: object, expected: str) -> None:
        assert type_name(value) == expected

    def test_relative_label(self, tmp_path: Path) -> None:
        assert relative_label(tmp_path / "agents" / "x.md", tmp_path) == "agents/x.md"
        outside = Path("/somewhere/else")
        assert relative_label(outside, tmp_path) == str(outside)


class TestResolveProfile:
    """Profile selection: argument, then environment, then strict."""

    def test_default_is_strict(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CBV_PROFILE", raising=False)
        assert resolve_profile() == "strict"

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CBV_PROFILE", "permissive")
        assert resolve_profile() == "permissive"
        assert resolve_profile("extended") == "extended"

    def test_unknown_profile(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CBV_PROFILE", raising=False)
        with pytest.raises(ValueError, match="unknown profile"):
            resolve_profile("lenient")


class TestOutput:
    """Text and JSON renderers."""

    def test_format_diagnostic_verbose_shows_help(self) -> None:
        diag = new_diagnostic("E003", suggestion="Use lowercase", chars="'A'")
        assert format_diagnostic(diag) == "  error[E003]: name contains invalid character(s): 'A'"
        assert format_diagnostic(diag, verbose=True).endswith("\n    help: Use lowercase")

    def test_clean_batch_prints_ok(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_text_results([DiagnosticReport(path="a")])
        assert capsys.readouterr().out == "ok\n"

    def test_grouped_output_with_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        reports = [
            DiagnosticReport(path="a", diagnostics=[new_diagnostic("E001")]),
            DiagnosticReport(path="b"),
        ]
        print_text_results(reports, noun="skills")
        out = capsys.readouterr().out
        assert "a:\n  error[E001]: name must not be empty\n" in out
        assert "b:" not in out
        assert out.rstrip().endswith("2 skills: 1 ok, 1 with errors, 0 with warnings only")

    def test_summarize_counts_warning_only(self) -> None:
        reports = [DiagnosticReport(path="a", diagnostics=[new_diagnostic("W001", key="x")])]
        assert summarize(reports) == "1 documents: 0 ok, 0 with errors, 1 with warnings only"

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_json_results([DiagnosticReport(path="a", diagnostics=[new_diagnostic("E001", field="name")])])
        data = json.loads(capsys.readouterr().out)
        assert data == [
            {
                "path": "a",
                "diagnostics": [
                    {"severity": "error", "code": "E001", "message": "name must not be empty", "field": "name"}
                ],
            }
        ]

    def test_diagnostic_equality(self) -> None:
        assert Diagnostic("error", "E001", "name must not be empty") == new_diagnostic("E001")
