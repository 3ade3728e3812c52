#!/usr/bin/env python3
"""
Component Bundle Validation - Skill Conflict Detection

Looks at a collection of skills together: duplicate names, descriptions so
similar that activation becomes ambiguous, and the combined size of the
metadata loaded for every skill.

Usage:
    uv run python scripts/detect_conflicts.py path/to/skills/
    uv run python scripts/detect_conflicts.py skill-a/ skill-b/ --threshold 0.6

Exit codes:
    0 - Always (conflicts are warnings)
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from cbv_validation_common import (
    Diagnostic,
    DiagnosticReport,
    estimate_tokens,
    new_diagnostic,
    print_json_results,
    print_text_results,
    use_color,
)
from validate_skill import SkillValidationReport, discover_skills, validate_skill

DEFAULT_SIMILARITY_THRESHOLD = 0.7

# Combined name+description token estimate above which loading all skills is costly
TOKEN_BUDGET_THRESHOLD = 4000


@dataclass(frozen=True)
class SkillEntry:
    """Name, description and location of one skill."""

    name: str
    description: str
    location: str


def entries_from_reports(reports: Iterable[SkillValidationReport]) -> list[SkillEntry]:
    """Build entries from validation reports whose header has string name/description."""
    entries: list[SkillEntry] = []
    for report in reports:
        name = report.header.get("name")
        description = report.header.get("description")
        if isinstance(name, str) and isinstance(description, str):
            entries.append(SkillEntry(name, description, report.skill_path))
    return entries


def _word_set(text: str) -> set[str]:
    words = (w.strip("".join(c for c in w if not c.isalnum())) for w in text.lower().split())
    return {w for w in words if w}


def jaccard_similarity(a: str, b: str) -> float:
    """Word-set Jaccard similarity of two descriptions (0.0 for two empty texts)."""
    set_a, set_b = _word_set(a), _word_set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def check_name_collisions(entries: list[SkillEntry]) -> list[Diagnostic]:
    by_name: dict[str, list[str]] = {}
    for entry in entries:
        by_name.setdefault(entry.name, []).append(entry.location)

    return [
        new_diagnostic(
            "C001",
            field="name",
            suggestion="Rename one of the conflicting skills",
            name=name,
            locations=", ".join(locations),
        )
        for name, locations in by_name.items()
        if len(locations) > 1
    ]


def check_description_similarity(entries: list[SkillEntry], threshold: float) -> list[Diagnostic]:
    diags: list[Diagnostic] = []
    for i, first in enumerate(entries):
        for second in entries[i + 1 :]:
            similarity = jaccard_similarity(first.description, second.description)
            if similarity >= threshold:
                diags.append(
                    new_diagnostic(
                        "C002",
                        field="description",
                        suggestion="Differentiate descriptions to avoid activation conflicts",
                        percent=round(similarity * 100),
                        first=first.name,
                        second=second.name,
                    )
                )
    return diags


def check_token_budget(entries: list[SkillEntry]) -> list[Diagnostic]:
    total = sum(estimate_tokens(e.name) + estimate_tokens(e.description) for e in entries)
    if total > TOKEN_BUDGET_THRESHOLD:
        return [
            new_diagnostic(
                "C003",
                field="collection",
                suggestion="Remove or consolidate skills to reduce token usage",
                total=total,
                limit=TOKEN_BUDGET_THRESHOLD,
            )
        ]
    return []


def detect_conflicts(entries: list[SkillEntry], threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> list[Diagnostic]:
    """Run all collection-level checks.

    Args:
        entries: Skills in a stable order (diagnostic order follows it)
        threshold: Minimum Jaccard similarity reported as overlap

    Returns:
        Collisions, then overlaps, then the budget warning
    """
    diags = check_name_collisions(entries)
    diags.extend(check_description_similarity(entries, threshold))
    diags.extend(check_token_budget(entries))
    return diags


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Detect conflicts between skills")
    parser.add_argument("paths", nargs="+", help="Skill directories, or parents to search recursively")
    parser.add_argument("--threshold", type=float, default=DEFAULT_SIMILARITY_THRESHOLD, help="Similarity threshold")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    skill_dirs: list[Path] = []
    for raw in args.paths:
        path = Path(raw)
        if not path.is_dir():
            print(f"Error: {path} is not a directory", file=sys.stderr)
            return 1
        skill_dirs.extend(discover_skills(path))

    entries = entries_from_reports(validate_skill(d) for d in skill_dirs)
    report = DiagnosticReport(path="<conflicts>", diagnostics=detect_conflicts(entries, args.threshold))

    if args.json:
        print_json_results([report])
    else:
        print_text_results([report], use_color())
    return 0


if __name__ == "__main__":
    sys.exit(main())
