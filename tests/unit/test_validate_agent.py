#!/usr/bin/env python3
"""Tests for validate_agent.py - agent definition rules."""

import json
import subprocess
import sys
from pathlib import Path

import pytest

from validate_agent import validate_agent, validate_agent_document, validate_agents_directory

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
SCRIPT_PATH = PROJECT_ROOT / "scripts" / "validate_agent.py"

PROMPT = "You review pull requests and point out correctness problems.\n"

HEADER = {
    "name": "code-reviewer",
    "description": "Reviews code for correctness issues",
    "model": "sonnet",
    "color": "blue",
}


def codes(diags: list) -> list[str]:
    return [d.code for d in diags]


def write_agent(root: Path, file_name: str, frontmatter: str, body: str = PROMPT) -> Path:
    path = root / file_name
    path.write_text(f"---\n{frontmatter}---\n{body}", encoding="utf-8")
    return path


class TestAgentRules:
    """Header fields and system prompt."""

    def test_valid_agent(self) -> None:
        assert validate_agent_document(dict(HEADER), PROMPT) == []

    def test_missing_required_fields(self) -> None:
        diags = validate_agent_document({}, PROMPT)
        assert codes(diags) == ["A002"] * 4
        assert [d.field for d in diags] == ["name", "description", "model", "color"]

    def test_name_not_kebab_case(self) -> None:
        assert codes(validate_agent_document({**HEADER, "name": "Code_Reviewer"}, PROMPT)) == ["A003"]

    @pytest.mark.parametrize("name", ["helper", "assistant", "agent", "tool"])
    def test_generic_names(self, name: str) -> None:
        diags = validate_agent_document({**HEADER, "name": name}, PROMPT)
        assert codes(diags) == ["A004"]
        assert diags[0].is_warning()

    def test_generic_check_is_whole_string(self) -> None:
        assert validate_agent_document({**HEADER, "name": "review-helper"}, PROMPT) == []

    def test_name_length(self) -> None:
        assert codes(validate_agent_document({**HEADER, "name": "ab"}, PROMPT)) == ["A005"]
        assert validate_agent_document({**HEADER, "name": "abc"}, PROMPT) == []
        assert validate_agent_document({**HEADER, "name": "a" * 50}, PROMPT) == []
        assert codes(validate_agent_document({**HEADER, "name": "a" * 51}, PROMPT)) == ["A005"]

    def test_description_length(self) -> None:
        assert codes(validate_agent_document({**HEADER, "description": "too short"}, PROMPT)) == ["A006"]
        assert validate_agent_document({**HEADER, "description": "d" * 5000}, PROMPT) == []
        assert codes(validate_agent_document({**HEADER, "description": "d" * 5001}, PROMPT)) == ["A006"]

    def test_non_string_name_and_description_are_not_measured(self) -> None:
        # Present but null or numeric: the field exists, so no A002 either
        header = {**HEADER, "name": None, "description": None}
        assert validate_agent_document(header, PROMPT) == []
        assert validate_agent_document({**HEADER, "name": 12345, "description": 1.5}, PROMPT) == []

    def test_model(self) -> None:
        assert validate_agent_document({**HEADER, "model": "inherit"}, PROMPT) == []
        diags = validate_agent_document({**HEADER, "model": "gpt-4"}, PROMPT)
        assert codes(diags) == ["A007"]
        assert diags[0].suggestion == "Valid models: inherit, sonnet, opus, haiku"

    def test_color(self) -> None:
        assert codes(validate_agent_document({**HEADER, "color": "purple"}, PROMPT)) == ["A008"]

    def test_missing_prompt(self) -> None:
        diags = validate_agent_document(dict(HEADER), "\n\n")
        assert codes(diags) == ["A009"]
        assert "missing" in diags[0].message

    def test_short_prompt(self) -> None:
        diags = validate_agent_document(dict(HEADER), "Review code.")
        assert codes(diags) == ["A009"]
        assert "too short (12 chars)" in diags[0].message

    def test_long_prompt(self) -> None:
        diags = validate_agent_document(dict(HEADER), "x" * 10_001)
        assert codes(diags) == ["A010"]
        assert diags[0].is_warning()
        assert validate_agent_document(dict(HEADER), "x" * 10_000) == []

    def test_every_rule_runs(self) -> None:
        header = {"name": "Helper", "description": "short", "model": "gpt", "color": "pink"}
        assert codes(validate_agent_document(header, "")) == ["A003", "A006", "A007", "A008", "A009"]


class TestValidateAgentFile:
    """File entry point."""

    def test_valid_file(self, tmp_path: Path) -> None:
        path = write_agent(
            tmp_path,
            "code-reviewer.md",
            "name: code-reviewer\ndescription: Reviews code for correctness issues\nmodel: sonnet\ncolor: blue\n",
        )
        report = validate_agent(path)
        assert report.diagnostics == []
        assert report.header["name"] == "code-reviewer"

    def test_missing_frontmatter(self, tmp_path: Path) -> None:
        path = tmp_path / "agent.md"
        path.write_text("Just a prompt that is long enough to count.\n")
        report = validate_agent(path)
        assert report.codes() == ["A001"]

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = write_agent(tmp_path, "agent.md", "name: [broken\n")
        assert validate_agent(path).codes() == ["A001"]

    def test_unreadable(self, tmp_path: Path) -> None:
        assert validate_agent(tmp_path / "missing.md").codes() == ["A001"]

    def test_directory(self, tmp_path: Path) -> None:
        write_agent(tmp_path, "b.md", "name: b\n")
        write_agent(tmp_path, "a.md", "name: a\n")
        (tmp_path / "notes.txt").write_text("x")
        reports = validate_agents_directory(tmp_path)
        assert [Path(r.path).name for r in reports] == ["a.md", "b.md"]

    def test_cli_json(self, tmp_path: Path) -> None:
        write_agent(tmp_path, "helper.md", "name: helper\ndescription: Helps with many things\nmodel: opus\ncolor: red\n")
        result = subprocess.run(
            [sys.executable, str(SCRIPT_PATH), str(tmp_path), "--json"], capture_output=True, text=True, timeout=60
        )
        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert [d["code"] for d in data[0]["diagnostics"]] == ["A004"]
