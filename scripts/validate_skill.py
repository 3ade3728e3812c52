#!/usr/bin/env python3
"""
Component Bundle Validation - Skill Validator

Validates skill directories (a SKILL.md with YAML frontmatter plus an
optional body) against the skill metadata rules.

Usage:
    uv run python scripts/validate_skill.py path/to/skill/
    uv run python scripts/validate_skill.py path/to/skills/ --recursive
    uv run python scripts/validate_skill.py path/to/skill/ --profile extended
    uv run python scripts/validate_skill.py path/to/skill/ --structure --json
    uv run python scripts/validate_skill.py path/to/skill/ --apply-fixes

Exit codes:
    0 - No errors (warnings and info never block)
    1 - At least one error found
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import regex
from cbv_document import DocumentParseError, parse_document, read_document_text
from cbv_validation_common import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    SKIP_DIRS,
    Diagnostic,
    DiagnosticReport,
    Profile,
    batch_exit_code,
    configure_logging,
    new_diagnostic,
    print_json_results,
    print_text_results,
    resolve_profile,
    type_name,
    use_color,
)

logger = logging.getLogger(__name__)

# Skill definition file names, in lookup order
SKILL_FILE_NAMES = ("SKILL.md", "skill.md")

# Maximum compatibility field length
MAX_COMPATIBILITY_LENGTH = 500

# Maximum recommended SKILL.md body line count
MAX_BODY_LINES = 500

# Unicode Alphabetic property: letters plus Other_Alphabetic marks such as
# Devanagari vowel signs, which str.isalpha() rejects
ALPHABETIC_PATTERN = regex.compile(r"\p{Alphabetic}")

# Words that may not appear as a whole name segment
RESERVED_WORDS = {"anthropic", "claude"}

# Markup tags in descriptions: '<' + letter or slash + anything but '>' + '>'
MARKUP_TAG_PATTERN = re.compile(r"<[a-zA-Z/][^>]*>")

# Known frontmatter fields for the strict profile
STRICT_KEYS = frozenset({"name", "description", "license", "compatibility", "allowed-tools", "metadata"})

# Extended profile adds the agent-runtime specific fields
EXTENDED_KEYS = STRICT_KEYS | frozenset(
    {
        "disable-model-invocation",
        "user-invocable",
        "context",
        "agent",
        "hooks",
        "argument-hint",
        "model",
    }
)

PROFILE_KEYS: dict[str, frozenset[str] | None] = {
    "strict": STRICT_KEYS,
    "extended": EXTENDED_KEYS,
    "permissive": None,
}


@dataclass
class SkillValidationReport(DiagnosticReport):
    """Skill validation report with the parsed header kept for aggregation."""

    skill_path: str = ""
    parsed: bool = False
    header: dict[str, Any] = field(default_factory=dict)
    body: str = ""


# =============================================================================
# Name rules
# =============================================================================


def normalize_name(name: str) -> str:
    """Apply Unicode compatibility (NFKC) normalization."""
    return unicodedata.normalize("NFKC", name)


def is_name_char(ch: str) -> bool:
    """ASCII lowercase, ASCII digit, hyphen, or a non-uppercase Alphabetic char.

    The last clause accepts case-less scripts (ideographs, Hangul, ...) while
    still rejecting uppercase Latin, Greek and Cyrillic letters.
    """
    if ch == "-" or ("a" <= ch <= "z") or ("0" <= ch <= "9"):
        return True
    return ALPHABETIC_PATTERN.match(ch) is not None and not ch.isupper()


def invalid_name_chars(name: str) -> list[str]:
    """Distinct invalid characters, in order of first appearance."""
    seen: list[str] = []
    for ch in name:
        if not is_name_char(ch) and ch not in seen:
            seen.append(ch)
    return seen


def truncate_name(name: str, limit: int = MAX_NAME_LENGTH) -> str:
    """Truncate a name to at most `limit` chars, preferring a hyphen boundary."""
    if len(name) <= limit:
        return name
    cut = name[:limit]
    if name[limit] != "-" and "-" in cut:
        cut = cut[: cut.rindex("-")]
    return cut.strip("-") or name[:limit]


def collapse_hyphens(name: str) -> str:
    return re.sub(r"-{2,}", "-", name)


def validate_name_field(header: dict[str, Any], dir_name: str | None) -> list[Diagnostic]:
    """Validate the 'name' field (NFKC-normalized before every check)."""
    diags: list[Diagnostic] = []
    if "name" not in header:
        return [new_diagnostic("E017", field="name")]

    raw = header["name"]
    if not isinstance(raw, str):
        return [new_diagnostic("E014", field="name", type=type_name(raw))]

    name = normalize_name(raw)
    if not name.strip():
        # Emptiness short-circuits the remaining name checks only
        return [new_diagnostic("E001", field="name")]

    if len(name) > MAX_NAME_LENGTH:
        diags.append(
            new_diagnostic(
                "E002",
                field="name",
                suggestion=f"Truncate to: '{truncate_name(name)}'",
                limit=MAX_NAME_LENGTH,
                length=len(name),
            )
        )

    bad_chars = invalid_name_chars(name)
    if bad_chars:
        lowered = name.lower()
        if lowered != name and not invalid_name_chars(lowered):
            suggestion = f"Use lowercase: '{lowered}'"
        else:
            suggestion = "Use only lowercase letters, digits, and hyphens"
        diags.append(
            new_diagnostic(
                "E003",
                field="name",
                suggestion=suggestion,
                chars=", ".join(repr(c) for c in bad_chars),
            )
        )

    if name.startswith("-"):
        diags.append(new_diagnostic("E004", field="name"))
    if name.endswith("-"):
        diags.append(new_diagnostic("E005", field="name"))
    if "--" in name:
        diags.append(
            new_diagnostic("E006", field="name", suggestion=f"Collapse to: '{collapse_hyphens(name)}'")
        )

    # Segment equality, not substring: "claudette" is fine, "my-claude-helper" is not
    for segment in name.split("-"):
        if segment in RESERVED_WORDS:
            diags.append(new_diagnostic("E007", field="name", word=segment))
            break

    if dir_name is not None and name != normalize_name(dir_name):
        diags.append(new_diagnostic("E009", field="name", name=name, directory=dir_name))

    return diags


# =============================================================================
# Other field rules
# =============================================================================


def validate_description_field(header: dict[str, Any]) -> list[Diagnostic]:
    """Validate the 'description' field."""
    if "description" not in header:
        return [new_diagnostic("E018", field="description")]

    desc = header["description"]
    if not isinstance(desc, str):
        return [new_diagnostic("E015", field="description", type=type_name(desc))]

    diags: list[Diagnostic] = []
    if not desc.strip():
        diags.append(new_diagnostic("E010", field="description"))
    if len(desc) > MAX_DESCRIPTION_LENGTH:
        diags.append(
            new_diagnostic("E011", field="description", limit=MAX_DESCRIPTION_LENGTH, length=len(desc))
        )
    if MARKUP_TAG_PATTERN.search(desc):
        diags.append(
            new_diagnostic("E012", field="description", suggestion="Remove XML/HTML tags from the description")
        )
    return diags


def validate_compatibility_field(header: dict[str, Any]) -> list[Diagnostic]:
    """Validate the optional 'compatibility' field."""
    if "compatibility" not in header:
        return []

    value = header["compatibility"]
    if not isinstance(value, str):
        return [new_diagnostic("E016", field="compatibility", type=type_name(value))]
    if len(value) > MAX_COMPATIBILITY_LENGTH:
        return [
            new_diagnostic("E013", field="compatibility", limit=MAX_COMPATIBILITY_LENGTH, length=len(value))
        ]
    return []


def validate_known_keys(header: dict[str, Any], profile: Profile) -> list[Diagnostic]:
    """Warn about header keys outside the profile's known-key set."""
    known = PROFILE_KEYS[profile]
    if known is None:
        return []
    return [new_diagnostic("W001", field=key, key=key) for key in header if key not in known]


def count_body_lines(body: str) -> int:
    """Count lines split on LF only; a trailing LF does not start a new line."""
    lines = body.split("\n")
    if lines[-1] == "":
        lines.pop()
    return len(lines)


def validate_body(body: str) -> list[Diagnostic]:
    """Warn when the body is longer than the recommended line count."""
    count = count_body_lines(body)
    if count > MAX_BODY_LINES:
        return [new_diagnostic("W002", limit=MAX_BODY_LINES, count=count)]
    return []


# =============================================================================
# Entry points
# =============================================================================


def validate_metadata(
    header: dict[str, Any],
    dir_name: str | None = None,
    profile: Profile = "strict",
) -> list[Diagnostic]:
    """Run the header rules in their fixed order.

    Args:
        header: Parsed frontmatter mapping
        dir_name: Directory the skill lives in; when given, the name must match it
        profile: Strictness profile for the unknown-key check

    Returns:
        Ordered list of diagnostics
    """
    diags = validate_name_field(header, dir_name)
    diags.extend(validate_description_field(header))
    diags.extend(validate_compatibility_field(header))
    diags.extend(validate_known_keys(header, profile))
    return diags


def validate_document(
    content: str,
    dir_name: str | None = None,
    profile: Profile = "strict",
) -> list[Diagnostic]:
    """Parse and validate SKILL.md content. Never raises on bad content."""
    try:
        doc = parse_document(content, "required")
    except DocumentParseError as e:
        return [new_diagnostic("E000", detail=str(e))]

    diags = validate_metadata(doc.header, dir_name, profile)
    diags.extend(validate_body(doc.body))
    return diags


def find_skill_file(skill_dir: Path) -> Path | None:
    """Return SKILL.md (or skill.md) inside skill_dir, if present."""
    for name in SKILL_FILE_NAMES:
        candidate = skill_dir / name
        if candidate.is_file():
            return candidate
    return None


def resolve_skill_path(path: Path) -> tuple[Path, Path | None]:
    """Split a skill path into (skill directory, skill file or None)."""
    if path.is_file():
        return path.parent, path
    return path, find_skill_file(path)


def validate_skill(path: Path, profile: Profile = "strict") -> SkillValidationReport:
    """Validate one skill.

    Args:
        path: Skill directory or its SKILL.md file
        profile: Strictness profile

    Returns:
        SkillValidationReport; infrastructure failures become a single E000
    """
    skill_dir, skill_file = resolve_skill_path(path)
    report = SkillValidationReport(path=str(path), skill_path=str(skill_dir))

    if skill_file is None:
        report.add("E000", detail=f"SKILL.md not found in {skill_dir}")
        return report

    try:
        content = read_document_text(skill_file)
    except (OSError, UnicodeDecodeError) as e:
        report.add("E000", detail=f"cannot read {skill_file.name}: {e}")
        return report

    try:
        doc = parse_document(content, "required")
    except DocumentParseError as e:
        report.add("E000", detail=str(e))
        return report

    report.parsed = True
    report.header = doc.header
    report.body = doc.body
    report.extend(validate_metadata(doc.header, skill_dir.name, profile))
    report.extend(validate_body(doc.body))
    return report


def discover_skills(root: Path) -> list[Path]:
    """Recursively find skill directories under root (sorted, cache dirs skipped)."""
    found: list[Path] = []
    if find_skill_file(root) is not None:
        found.append(root)

    for child in sorted(root.iterdir()) if root.is_dir() else []:
        if not child.is_dir() or child.is_symlink():
            continue
        if child.name in SKIP_DIRS or child.name.startswith("."):
            continue
        found.extend(discover_skills(child))
    return found


# =============================================================================
# Command line
# =============================================================================


def collect_skill_paths(paths: list[str], recursive: bool) -> list[Path]:
    """Expand CLI arguments into skill paths."""
    result: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if recursive and path.is_dir():
            discovered = discover_skills(path)
            logger.debug("discovered %d skill(s) under %s", len(discovered), path)
            result.extend(discovered)
        else:
            result.append(path)
    return result


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate skill directories")
    parser.add_argument("paths", nargs="+", help="Skill directories or SKILL.md files")
    parser.add_argument("--recursive", "-r", action="store_true", help="Discover skills below each directory")
    parser.add_argument("--profile", choices=["strict", "extended", "permissive"], help="Strictness profile")
    parser.add_argument("--structure", action="store_true", help="Also check references, scripts and nesting")
    parser.add_argument("--apply-fixes", action="store_true", help="Apply safe automatic fixes first")
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

    skill_paths = collect_skill_paths(args.paths, args.recursive)

    if args.apply_fixes:
        from fix_skill import FixError, apply_fixes

        for skill_path in skill_paths:
            before = validate_skill(skill_path, profile)
            try:
                result = apply_fixes(skill_path, before.diagnostics, profile=profile)
            except FixError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            if result.applied:
                print(f"Applied {result.applied} fix(es) to {skill_path}", file=sys.stderr)

    reports = [validate_skill(p, profile) for p in skill_paths]

    if args.structure:
        from validate_structure import validate_structure

        for report in reports:
            if report.parsed:
                report.extend(validate_structure(Path(report.skill_path), report.body))

    all_reports: list[DiagnosticReport] = list(reports)
    if len(reports) > 1:
        from detect_conflicts import entries_from_reports, detect_conflicts

        conflicts = detect_conflicts(entries_from_reports(reports))
        if conflicts:
            all_reports.append(DiagnosticReport(path="<conflicts>", diagnostics=conflicts))

    if args.json:
        print_json_results(all_reports)
    else:
        print_text_results(all_reports, use_color(), args.verbose, noun="skills")

    return batch_exit_code(all_reports)


if __name__ == "__main__":
    sys.exit(main())
