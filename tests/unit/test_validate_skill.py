#!/usr/bin/env python3
"""Tests for validate_skill.py - skill metadata and body rules."""

import json
import subprocess
import sys
from pathlib import Path

import pytest

from validate_skill import (
    collect_skill_paths,
    count_body_lines,
    discover_skills,
    invalid_name_chars,
    is_name_char,
    truncate_name,
    validate_body,
    validate_document,
    validate_metadata,
    validate_skill,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
SCRIPT_PATH = PROJECT_ROOT / "scripts" / "validate_skill.py"

VALID_DESCRIPTION = "Extracts tables from PDF files. Use when working with PDF documents."


def make_skill(root: Path, dir_name: str, frontmatter: str, body: str = "# Skill\n\nInstructions.\n") -> Path:
    """Create a skill directory with a SKILL.md and return the directory."""
    skill_dir = root / dir_name
    skill_dir.mkdir(parents=True)
    (skill_dir / "SKILL.md").write_text(f"---\n{frontmatter}---\n{body}", encoding="utf-8")
    return skill_dir


def codes(diags: list) -> list[str]:
    return [d.code for d in diags]


class TestNameCharacters:
    """The exact character rule for names."""

    @pytest.mark.parametrize("ch", ["a", "z", "0", "9", "-", "é", "ß", "数", "한", "\u093f", "\u0902"])
    def test_accepted(self, ch: str) -> None:
        assert is_name_char(ch)

    @pytest.mark.parametrize("ch", ["A", "Ü", "Ж", "Σ", "_", " ", ".", "<"])
    def test_rejected(self, ch: str) -> None:
        assert not is_name_char(ch)

    def test_invalid_chars_are_distinct_and_ordered(self) -> None:
        assert invalid_name_chars("A_b_A") == ["A", "_"]


class TestNameRules:
    """Name checks after NFKC normalization."""

    def test_valid_name(self) -> None:
        assert validate_metadata({"name": "pdf-tools", "description": VALID_DESCRIPTION}) == []

    def test_missing_name(self) -> None:
        assert codes(validate_metadata({"description": VALID_DESCRIPTION})) == ["E017"]

    def test_non_string_name(self) -> None:
        diags = validate_metadata({"name": 42, "description": VALID_DESCRIPTION})
        assert codes(diags) == ["E014"]
        assert "number" in diags[0].message

    def test_empty_name_short_circuits_only_name_checks(self) -> None:
        diags = validate_metadata({"name": "  ", "description": "x" * 2000}, dir_name="other")
        assert codes(diags) == ["E001", "E011"]

    def test_uppercase_umlaut_rejected(self) -> None:
        diags = validate_metadata({"name": "Über-Tool", "description": VALID_DESCRIPTION})
        assert codes(diags) == ["E003"]
        assert diags[0].suggestion == "Use lowercase: 'über-tool'"

    def test_reserved_word_as_segment_rejected(self) -> None:
        diags = validate_metadata({"name": "my-claude-helper", "description": VALID_DESCRIPTION})
        assert codes(diags) == ["E007"]
        assert "'claude'" in diags[0].message

    def test_reserved_word_as_substring_accepted(self) -> None:
        assert validate_metadata({"name": "claudette", "description": VALID_DESCRIPTION}) == []

    def test_ideographic_name_accepted(self) -> None:
        assert validate_metadata({"name": "数据-工具", "description": VALID_DESCRIPTION}) == []

    def test_combining_vowel_signs_accepted(self) -> None:
        # Devanagari vowel sign and anusvara are Alphabetic but not isalpha()
        assert validate_metadata({"name": "हिंदी", "description": VALID_DESCRIPTION}) == []

    def test_nfkc_normalization_before_checks(self) -> None:
        # Fullwidth letters normalize to ASCII lowercase
        assert validate_metadata({"name": "ｐｄｆ-tools", "description": VALID_DESCRIPTION}) == []

    def test_length_boundary(self) -> None:
        assert validate_metadata({"name": "a" * 64, "description": VALID_DESCRIPTION}) == []
        diags = validate_metadata({"name": "a" * 65, "description": VALID_DESCRIPTION})
        assert codes(diags) == ["E002"]
        assert "(65 chars)" in diags[0].message

    def test_hyphen_rules(self) -> None:
        assert codes(validate_metadata({"name": "-a", "description": VALID_DESCRIPTION})) == ["E004"]
        assert codes(validate_metadata({"name": "a-", "description": VALID_DESCRIPTION})) == ["E005"]
        diags = validate_metadata({"name": "a--b", "description": VALID_DESCRIPTION})
        assert codes(diags) == ["E006"]
        assert diags[0].suggestion == "Collapse to: 'a-b'"

    def test_directory_mismatch(self) -> None:
        diags = validate_metadata({"name": "pdf-tools", "description": VALID_DESCRIPTION}, dir_name="pdf")
        assert codes(diags) == ["E009"]

    def test_truncate_prefers_hyphen_boundary(self) -> None:
        name = "-".join(["segment"] * 10)
        truncated = truncate_name(name)
        assert len(truncated) <= 64
        assert not truncated.endswith("-")
        assert name.startswith(truncated)


class TestDescriptionAndCompatibility:
    """Description, compatibility and unknown-key rules."""

    def test_missing_description(self) -> None:
        assert codes(validate_metadata({"name": "x"})) == ["E018"]

    def test_empty_description(self) -> None:
        assert codes(validate_metadata({"name": "x", "description": ""})) == ["E010"]

    def test_non_string_description(self) -> None:
        assert codes(validate_metadata({"name": "x", "description": ["a"]})) == ["E015"]

    def test_description_length(self) -> None:
        assert validate_metadata({"name": "x", "description": "d" * 1024}) == []
        assert codes(validate_metadata({"name": "x", "description": "d" * 1025})) == ["E011"]

    def test_markup_tags_rejected(self) -> None:
        assert codes(validate_metadata({"name": "x", "description": "Uses <b>bold</b> text"})) == ["E012"]

    def test_bare_angle_bracket_accepted(self) -> None:
        assert validate_metadata({"name": "x", "description": "Use when a < b or 3 > 2"}) == []

    def test_compatibility(self) -> None:
        base = {"name": "x", "description": VALID_DESCRIPTION}
        assert validate_metadata({**base, "compatibility": "c" * 500}) == []
        assert codes(validate_metadata({**base, "compatibility": "c" * 501})) == ["E013"]
        assert codes(validate_metadata({**base, "compatibility": 3})) == ["E016"]

    def test_unknown_keys_depend_on_profile(self) -> None:
        header = {"name": "x", "description": VALID_DESCRIPTION, "model": "opus", "colour": "red"}
        assert codes(validate_metadata(header, profile="strict")) == ["W001", "W001"]
        assert codes(validate_metadata(header, profile="extended")) == ["W001"]
        assert validate_metadata(header, profile="permissive") == []

    def test_all_rules_run_together(self) -> None:
        header = {"name": "Bad--Name", "description": "<x>", "compatibility": "c" * 600, "extra": 1}
        assert codes(validate_metadata(header)) == ["E003", "E006", "E012", "E013", "W001"]


class TestBody:
    """Body line count warning."""

    def test_exactly_500_lines(self) -> None:
        assert validate_body("line\n" * 500) == []

    def test_501_lines(self) -> None:
        diags = validate_body("line\n" * 501)
        assert codes(diags) == ["W002"]
        assert "(501 lines)" in diags[0].message

    def test_no_trailing_newline(self) -> None:
        assert validate_body("line\n" * 499 + "line") == []

    def test_only_line_feed_ends_a_line(self) -> None:
        body = "page\x0cbreak\u2028same line\x1c\r\n" * 300
        assert count_body_lines(body) == 300
        assert validate_body(body) == []

    def test_count_body_lines(self) -> None:
        assert count_body_lines("") == 0
        assert count_body_lines("\n") == 1
        assert count_body_lines("a\nb") == 2
        assert count_body_lines("a\r\nb\r\n") == 2


class TestValidateDocument:
    """Parsing failures become a single synthetic diagnostic."""

    def test_missing_frontmatter(self) -> None:
        diags = validate_document("# Title\n")
        assert codes(diags) == ["E000"]

    def test_bad_yaml(self) -> None:
        assert codes(validate_document("---\nname: [\n---\n")) == ["E000"]

    def test_deeply_nested_yaml(self) -> None:
        content = "---\nname: " + "[" * 5000 + "]" * 5000 + "\n---\n"
        diags = validate_document(content)
        assert codes(diags) == ["E000"]
        assert "nesting is too deep" in diags[0].message

    def test_header_and_body_rules(self) -> None:
        content = f"---\nname: x\ndescription: {VALID_DESCRIPTION}\n---\n" + "l\n" * 501
        assert codes(validate_document(content)) == ["W002"]


class TestValidateSkill:
    """Filesystem entry point."""

    def test_valid_skill(self, tmp_path: Path) -> None:
        skill_dir = make_skill(tmp_path, "pdf-tools", f"name: pdf-tools\ndescription: {VALID_DESCRIPTION}\n")
        report = validate_skill(skill_dir)
        assert report.diagnostics == []
        assert report.parsed
        assert report.header["name"] == "pdf-tools"

    def test_skill_file_path_accepted(self, tmp_path: Path) -> None:
        skill_dir = make_skill(tmp_path, "pdf-tools", f"name: pdf-tools\ndescription: {VALID_DESCRIPTION}\n")
        assert validate_skill(skill_dir / "SKILL.md").diagnostics == []

    def test_missing_skill_file(self, tmp_path: Path) -> None:
        report = validate_skill(tmp_path)
        assert report.codes() == ["E000"]
        assert not report.parsed

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        skill_dir = tmp_path / "broken"
        skill_dir.mkdir()
        (skill_dir / "SKILL.md").write_bytes(b"---\nname: \xff\n---\n")
        assert validate_skill(skill_dir).codes() == ["E000"]

    def test_name_must_match_directory(self, tmp_path: Path) -> None:
        skill_dir = make_skill(tmp_path, "other", f"name: pdf-tools\ndescription: {VALID_DESCRIPTION}\n")
        assert validate_skill(skill_dir).codes() == ["E009"]

    def test_batch_order_independence(self, tmp_path: Path) -> None:
        good = make_skill(tmp_path, "good", f"name: good\ndescription: {VALID_DESCRIPTION}\n")
        bad = make_skill(tmp_path, "bad", "name: Bad\ndescription: <i>x</i>\n")
        forward = [validate_skill(p).diagnostics for p in (good, bad)]
        backward = [validate_skill(p).diagnostics for p in (bad, good)]
        assert forward == list(reversed(backward))


class TestDiscovery:
    """Recursive skill discovery."""

    def test_discover_skips_hidden_and_cache_dirs(self, tmp_path: Path) -> None:
        make_skill(tmp_path, "a", "name: a\ndescription: d\n")
        make_skill(tmp_path / "nested", "b", "name: b\ndescription: d\n")
        make_skill(tmp_path / ".hidden", "c", "name: c\ndescription: d\n")
        make_skill(tmp_path / "node_modules", "d", "name: d\ndescription: d\n")
        found = discover_skills(tmp_path)
        assert [p.name for p in found] == ["a", "b"]

    def test_collect_without_recursion_keeps_paths(self, tmp_path: Path) -> None:
        assert collect_skill_paths([str(tmp_path)], recursive=False) == [tmp_path]


class TestCli:
    """Command-line front end."""

    def run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = [sys.executable, str(SCRIPT_PATH), *args]
        return subprocess.run(cmd, capture_output=True, text=True, timeout=60)

    def test_clean_skill_exits_zero(self, tmp_path: Path) -> None:
        skill_dir = make_skill(tmp_path, "pdf-tools", f"name: pdf-tools\ndescription: {VALID_DESCRIPTION}\n")
        result = self.run(str(skill_dir))
        assert result.returncode == 0
        assert result.stdout.strip() == "ok"

    def test_error_exits_one_with_json(self, tmp_path: Path) -> None:
        skill_dir = make_skill(tmp_path, "bad", "name: Bad\ndescription: d\n")
        result = self.run(str(skill_dir), "--json")
        assert result.returncode == 1
        data = json.loads(result.stdout)
        assert data[0]["path"] == str(skill_dir)
        assert [d["code"] for d in data[0]["diagnostics"]] == ["E003", "E009"]

    def test_missing_path(self, tmp_path: Path) -> None:
        result = self.run(str(tmp_path / "nope"))
        assert result.returncode == 1
        assert "Error:" in result.stderr

    def test_apply_fixes_flag(self, tmp_path: Path) -> None:
        skill_dir = make_skill(tmp_path, "bad-name", f"name: Bad--Name\ndescription: {VALID_DESCRIPTION}\n")
        result = self.run(str(skill_dir), "--apply-fixes")
        assert result.returncode == 0, result.stdout
        assert "name: bad-name\n" in (skill_dir / "SKILL.md").read_text(encoding="utf-8")

    def test_recursive_batch_reports_conflicts(self, tmp_path: Path) -> None:
        make_skill(tmp_path / "one", "same", f"name: same\ndescription: {VALID_DESCRIPTION}\n")
        make_skill(tmp_path / "two", "same", f"name: same\ndescription: {VALID_DESCRIPTION}\n")
        result = self.run(str(tmp_path), "--recursive", "--json")
        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert data[-1]["path"] == "<conflicts>"
        assert [d["code"] for d in data[-1]["diagnostics"]] == ["C001", "C002"]
