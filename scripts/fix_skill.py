#!/usr/bin/env python3
"""
Component Bundle Validation - Skill Fixer

Applies safe, mechanical corrections to SKILL.md frontmatter:

    E002  name too long          -> truncate at a hyphen boundary
    E003  invalid name chars     -> lowercase
    E006  consecutive hyphens    -> collapse
    E012  markup in description  -> strip tags
    I002  no trigger phrase      -> append a canned "Use when ..." sentence

Each round re-validates the current text and applies the first fix that
actually changes it, so the reported count is the number of distinct edits
and no fix is ever applied twice. Only the edited frontmatter lines change;
everything else stays byte-identical. The file is rewritten atomically.

Usage:
    uv run python scripts/fix_skill.py path/to/skill/
    uv run python scripts/fix_skill.py path/to/skills/ --recursive
    uv run python scripts/fix_skill.py path/to/skill/ --json

Exit codes:
    0 - Fixes applied (or nothing to fix) and no errors remain
    1 - Errors remain after fixing, or the file could not be written
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import shutil
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml
from cbv_document import LINE_PATTERN, DocumentParseError, parse_document, read_document_text, split_header
from cbv_validation_common import (
    FIXABLE_CODES,
    MAX_DESCRIPTION_LENGTH,
    Diagnostic,
    DiagnosticReport,
    Profile,
    batch_exit_code,
    configure_logging,
    print_text_results,
    resolve_profile,
    use_color,
)
from lint_skill import lint, lint_document
from validate_skill import (
    MARKUP_TAG_PATTERN,
    collapse_hyphens,
    collect_skill_paths,
    normalize_name,
    resolve_skill_path,
    truncate_name,
    validate_document,
    validate_skill,
)

logger = logging.getLogger(__name__)

# Upper bound on fix rounds for a single file
MAX_FIX_ITERATIONS = 16

TRIGGER_SENTENCE = "Use when working with {subject}."


class FixError(RuntimeError):
    """The fixed content could not be written back."""


@dataclass
class FixResult:
    """Outcome of a fixer run on one skill."""

    path: str
    applied: int = 0
    remaining: list[Diagnostic] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "applied": self.applied,
            "diagnostics": [d.to_dict() for d in self.remaining],
        }


# =============================================================================
# Field rewriting
# =============================================================================


def replace_header_field(content: str, key: str, value: Any) -> str | None:
    """Rewrite one top-level frontmatter field, leaving all other bytes alone.

    The key's line plus any indented continuation lines are replaced by a
    freshly dumped `key: value` line using the original line ending.

    Returns:
        Updated content, or None if the field line cannot be located
    """
    try:
        span = split_header(content)
    except DocumentParseError:
        return None
    if span is None:
        return None

    lines = LINE_PATTERN.findall(content[span.start : span.end])
    key_pattern = re.compile(rf"^{re.escape(key)}\s*:")
    start = next((i for i, line in enumerate(lines) if key_pattern.match(line)), None)
    if start is None:
        return None

    end = start + 1
    while end < len(lines) and (lines[end][:1] in (" ", "\t") or not lines[end].strip()):
        end += 1
    # Blank lines after the block belong to the surrounding header
    while end > start + 1 and not lines[end - 1].strip():
        end -= 1

    newline = "\r\n" if lines[start].endswith("\r\n") else "\n"
    dumped = yaml.safe_dump(
        {key: value},
        allow_unicode=True,
        default_flow_style=False,
        sort_keys=False,
        width=float("inf"),
    )
    if newline != "\n":
        dumped = dumped.replace("\n", newline)

    header = "".join(lines[:start]) + dumped + "".join(lines[end:])
    return content[: span.start] + header + content[span.end :]


# =============================================================================
# Individual fixes
# =============================================================================


def strip_markup(description: str) -> str:
    stripped = MARKUP_TAG_PATTERN.sub("", description)
    return re.sub(r" {2,}", " ", stripped).strip()


def append_trigger_phrase(description: str, name: Any) -> str | None:
    """Append the canned trigger sentence, unless that would overflow the limit."""
    subject = name.replace("-", " ").strip() if isinstance(name, str) and name.strip() else "this skill"
    base = description.rstrip()
    if base and base[-1] not in ".!?":
        base += "."
    sentence = TRIGGER_SENTENCE.format(subject=subject)
    updated = f"{base} {sentence}" if base else sentence
    if len(updated) > MAX_DESCRIPTION_LENGTH:
        return None
    return updated


def compute_fix(diag: Diagnostic, header: dict[str, Any]) -> tuple[str, str] | None:
    """Return (field, new value) for a fixable diagnostic, or None if not applicable."""
    name = header.get("name")
    description = header.get("description")

    if diag.code in ("E002", "E003", "E006"):
        if not isinstance(name, str):
            return None
        normalized = normalize_name(name)
        if diag.code == "E002":
            fixed = truncate_name(normalized)
        elif diag.code == "E003":
            fixed = normalized.lower()
        else:
            fixed = collapse_hyphens(normalized)
        return None if fixed == name or not fixed else ("name", fixed)

    if diag.code in ("E012", "I002"):
        if not isinstance(description, str):
            return None
        if diag.code == "E012":
            fixed_desc: str | None = strip_markup(description)
        else:
            fixed_desc = append_trigger_phrase(description, name)
        if not fixed_desc or fixed_desc == description:
            return None
        return ("description", fixed_desc)

    return None


# =============================================================================
# Fix loop
# =============================================================================


def collect_diagnostics(content: str, dir_name: str, profile: Profile, include_lint: bool) -> list[Diagnostic]:
    """Validator diagnostics, followed by lint ones when requested."""
    diags = validate_document(content, dir_name, profile)
    if include_lint:
        diags.extend(lint_document(content))
    return diags


def fix_content(
    content: str,
    dir_name: str,
    allowed: Iterable[str] = FIXABLE_CODES,
    profile: Profile = "strict",
) -> tuple[str, int]:
    """Fix SKILL.md content in memory.

    Args:
        content: Current file content
        dir_name: Name of the skill directory
        allowed: Codes the caller wants fixed (limited to fixable codes)
        profile: Strictness profile used while re-validating

    Returns:
        Tuple of (new content, number of distinct edits applied)
    """
    allowed_codes = set(allowed) & FIXABLE_CODES
    include_lint = any(code.startswith("I") for code in allowed_codes)
    applied = 0

    for _ in range(MAX_FIX_ITERATIONS):
        eligible = [
            d for d in collect_diagnostics(content, dir_name, profile, include_lint) if d.code in allowed_codes
        ]
        if not eligible:
            break

        header = parse_document(content, "required").header
        for diag in eligible:
            change = compute_fix(diag, header)
            if change is None:
                continue
            updated = replace_header_field(content, *change)
            if updated is None or updated == content:
                continue
            logger.debug("fixed %s: %s -> %r", diag.code, change[0], change[1])
            content = updated
            applied += 1
            break
        else:
            # Remaining eligible diagnostics have no effective fix
            break

    return content, applied


def atomic_write_text(path: Path, content: str) -> None:
    """Write content to path via a temp file in the same directory and os.replace."""
    fd, tmp_path_str = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=".cbv_fix_tmp_",
        suffix=path.suffix,
    )
    tmp_path = Path(tmp_path_str)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp_file:
            tmp_file.write(content)
        shutil.copymode(path, tmp_path)
        # Atomic rename (same filesystem guarantees atomicity)
        os.replace(tmp_path, path)
    except Exception:
        # Clean up temp file on failure
        tmp_path.unlink(missing_ok=True)
        raise


def apply_fixes(
    path: Path,
    diagnostics: Iterable[Diagnostic] | None = None,
    *,
    profile: Profile = "strict",
) -> FixResult:
    """Apply every applicable fix to one skill and write it back.

    Args:
        path: Skill directory or SKILL.md file
        diagnostics: Diagnostics from a previous run; only fixable codes present
            here are considered. None means every fixable code.
        profile: Strictness profile

    Returns:
        FixResult with the edit count and the diagnostics that remain

    Raises:
        FixError: If the fixed content could not be written (file untouched)
    """
    allowed = set(FIXABLE_CODES) if diagnostics is None else {d.code for d in diagnostics} & FIXABLE_CODES
    include_lint = any(code.startswith("I") for code in allowed)
    skill_dir, skill_file = resolve_skill_path(path)
    result = FixResult(path=str(path))

    if allowed and skill_file is not None:
        try:
            original = read_document_text(skill_file)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("not fixing %s: %s", skill_file, e)
        else:
            fixed, result.applied = fix_content(original, skill_dir.name, allowed, profile)
            if result.applied:
                try:
                    atomic_write_text(skill_file, fixed)
                except OSError as e:
                    raise FixError(f"cannot write {skill_file}: {e}") from e

    report = validate_skill(path, profile)
    if include_lint and report.parsed:
        report.extend(lint(report.header, report.body))
    result.remaining = report.diagnostics
    return result


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Apply safe automatic fixes to skill frontmatter")
    parser.add_argument("paths", nargs="+", help="Skill directories or SKILL.md files")
    parser.add_argument("--recursive", "-r", action="store_true", help="Discover skills below each directory")
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

    results: list[FixResult] = []
    for skill_path in collect_skill_paths(args.paths, args.recursive):
        try:
            results.append(apply_fixes(skill_path, profile=profile))
        except FixError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    reports = [DiagnosticReport(path=r.path, diagnostics=r.remaining) for r in results]

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
    else:
        for r in results:
            print(f"Applied {r.applied} fix(es) to {r.path}")
        print_text_results(reports, use_color(), args.verbose, noun="skills")

    return batch_exit_code(reports)


if __name__ == "__main__":
    sys.exit(main())
