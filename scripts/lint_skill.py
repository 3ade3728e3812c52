#!/usr/bin/env python3
"""
Component Bundle Validation - Skill Linter

Heuristic quality checks for skill metadata. Every finding is informational
and never affects the exit code on its own. The `check` entry point layers
these checks on top of the regular skill validation.

Usage:
    uv run python scripts/lint_skill.py path/to/skill/
    uv run python scripts/lint_skill.py path/to/skill/ --no-validate
    uv run python scripts/lint_skill.py path/to/skills/ --recursive --json

Exit codes:
    0 - No errors
    1 - Validation errors found (lint findings alone never fail)
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import Any

from cbv_document import DocumentParseError, parse_document
from cbv_validation_common import (
    Diagnostic,
    Profile,
    batch_exit_code,
    configure_logging,
    new_diagnostic,
    print_json_results,
    print_text_results,
    resolve_profile,
    use_color,
)
from validate_skill import SkillValidationReport, collect_skill_paths, validate_skill

# First/second-person pronouns (descriptions should be written in third person)
PRONOUN_PATTERN = re.compile(r"\b(I|me|my|you|your)\b", re.IGNORECASE)

# Phrases telling the agent when to pick the skill
TRIGGER_PHRASES = ("use when", "use for", "use this", "invoke when", "activate when")

# First name segments that say nothing about what the skill does
GENERIC_SEGMENTS = {"helper", "utils", "tools", "stuff", "thing", "misc", "general"}

MIN_DESCRIPTION_CHARS = 20
MIN_DESCRIPTION_WORDS = 4


def has_trigger_phrase(description: str) -> bool:
    lowered = description.lower()
    return any(phrase in lowered for phrase in TRIGGER_PHRASES)


def lint_description(description: str) -> list[Diagnostic]:
    diags: list[Diagnostic] = []

    match = PRONOUN_PATTERN.search(description)
    if match:
        diags.append(
            new_diagnostic(
                "I001",
                field="description",
                suggestion="Write the description in third person",
                word=match.group(0),
            )
        )

    if not has_trigger_phrase(description):
        diags.append(
            new_diagnostic(
                "I002",
                field="description",
                suggestion="Add a phrase such as 'Use when ...' describing when to invoke the skill",
            )
        )

    return diags


def lint_name(name: str) -> list[Diagnostic]:
    diags: list[Diagnostic] = []
    first = name.split("-", 1)[0]

    if not first.endswith("ing"):
        diags.append(
            new_diagnostic(
                "I003",
                field="name",
                suggestion="Prefer a gerund form such as 'processing-pdfs'",
                segment=first,
            )
        )

    if first in GENERIC_SEGMENTS:
        diags.append(new_diagnostic("I004", field="name", segment=first))

    return diags


def lint_description_length(description: str) -> list[Diagnostic]:
    words = len(description.split())
    if len(description) < MIN_DESCRIPTION_CHARS or words < MIN_DESCRIPTION_WORDS:
        return [new_diagnostic("I005", field="description", length=len(description), words=words)]
    return []


def lint(header: dict[str, Any], body: str) -> list[Diagnostic]:
    """Run every lint heuristic over a parsed skill.

    Values that are missing or of the wrong type are skipped here; the
    validator already reports them.

    Args:
        header: Parsed frontmatter mapping
        body: Skill body (currently unused by the heuristics)

    Returns:
        Info-level diagnostics, ordered by code
    """
    diags: list[Diagnostic] = []

    description = header.get("description")
    if isinstance(description, str):
        diags.extend(lint_description(description))

    name = header.get("name")
    if isinstance(name, str) and name.strip():
        diags.extend(lint_name(name))

    if isinstance(description, str):
        diags.extend(lint_description_length(description))

    return diags


def lint_document(content: str) -> list[Diagnostic]:
    """Lint raw SKILL.md content; unparseable content yields nothing to lint."""
    try:
        doc = parse_document(content, "required")
    except DocumentParseError:
        return []
    return lint(doc.header, doc.body)


def check_skill(path: Path, profile: Profile = "strict", run_validation: bool = True) -> SkillValidationReport:
    """Validate (optionally) and lint one skill.

    Args:
        path: Skill directory or SKILL.md file
        profile: Strictness profile for validation
        run_validation: When False only the lint heuristics run

    Returns:
        SkillValidationReport with validation diagnostics followed by lint ones
    """
    report = validate_skill(path, profile)
    if not run_validation:
        # Keep infrastructure failures visible, drop content findings
        report.diagnostics = [d for d in report.diagnostics if d.code == "E000"]

    if report.parsed:
        report.extend(lint(report.header, report.body))
    return report


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate and lint skill directories")
    parser.add_argument("paths", nargs="+", help="Skill directories or SKILL.md files")
    parser.add_argument("--recursive", "-r", action="store_true", help="Discover skills below each directory")
    parser.add_argument("--no-validate", action="store_true", help="Only run the lint heuristics")
    parser.add_argument("--profile", choices=["strict", "extended", "permissive"], help="Strictness profile")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show suggestions and debug logging")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    configure_logging(args.verbose)
    try:
        profile = resolve_profile(args.profile)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for raw in args.paths:
        if not Path(raw).exists():
            print(f"Error: {raw} does not exist", file=sys.stderr)
            return 1

    reports = [check_skill(p, profile, not args.no_validate) for p in collect_skill_paths(args.paths, args.recursive)]

    if args.json:
        print_json_results(reports)
    else:
        print_text_results(reports, use_color(), args.verbose, noun="skills")

    return batch_exit_code(reports)


if __name__ == "__main__":
    sys.exit(main())
