#!/usr/bin/env python3
"""
Component Bundle Validation - Skill Structure Validator

Checks the files around a SKILL.md: links from the body to bundled files,
script permissions, directory nesting and symlinks.

Usage:
    uv run python scripts/validate_structure.py path/to/skill/
    uv run python scripts/validate_structure.py path/to/skill/ --json

Exit codes:
    0 - No errors
    1 - At least one error found (path traversal in a reference)
"""

from __future__ import annotations

import argparse
import os
import re
import sys
from pathlib import Path, PurePosixPath, PureWindowsPath

from cbv_document import DocumentParseError, parse_document, read_document_text
from cbv_validation_common import (
    Diagnostic,
    DiagnosticReport,
    batch_exit_code,
    new_diagnostic,
    print_json_results,
    print_text_results,
    use_color,
)
from validate_skill import find_skill_file

# Markdown links and images: [text](path) / ![alt](path)
LINK_PATTERN = re.compile(r"!?\[[^\]]*\]\((?P<path>[^)\s]+)(?:\s+\"[^\"]*\")?\)")

# Referenced files may sit at most this many directories below the skill
MAX_REFERENCE_DEPTH = 1

# Deepest allowed directory nesting inside a skill
MAX_NESTING_DEPTH = 2

SCRIPT_SUFFIXES = {".sh", ".bash"}

URL_PREFIXES = ("http://", "https://", "mailto:", "ftp://")


def _is_escaping(ref: str) -> bool:
    """True for absolute references or ones that climb out with '..'."""
    if PurePosixPath(ref).is_absolute() or PureWindowsPath(ref).is_absolute() or ref.startswith("\\"):
        return True
    return ".." in re.split(r"[\\/]", ref)


def check_references(skill_dir: Path, body: str) -> list[Diagnostic]:
    """Validate links from the body to files shipped with the skill."""
    diags: list[Diagnostic] = []
    for match in LINK_PATTERN.finditer(body):
        ref = match.group("path")
        if ref.startswith("#") or ref.lower().startswith(URL_PREFIXES):
            continue
        clean = ref.split("#", 1)[0]
        if not clean:
            continue

        if _is_escaping(clean):
            # Never look at the filesystem outside the skill
            diags.append(
                new_diagnostic(
                    "S006",
                    field="body",
                    suggestion="Reference files inside the skill directory with relative paths",
                    path=clean,
                )
            )
            continue

        if clean.count("/") > MAX_REFERENCE_DEPTH:
            diags.append(
                new_diagnostic(
                    "S003",
                    field="body",
                    suggestion="Keep referenced files at most one directory level deep",
                    limit=MAX_REFERENCE_DEPTH,
                    path=clean,
                )
            )

        if not (skill_dir / clean).exists():
            diags.append(
                new_diagnostic(
                    "S001",
                    field="body",
                    suggestion=f"Create the file or fix the reference path: '{clean}'",
                    path=clean,
                )
            )
    return diags


def check_script_permissions(skill_dir: Path) -> list[Diagnostic]:
    """Shell scripts in the skill root or scripts/ must be executable (POSIX only)."""
    if os.name != "posix":
        return []

    diags: list[Diagnostic] = []
    for directory in (skill_dir, skill_dir / "scripts"):
        if not directory.is_dir():
            continue
        for path in sorted(directory.iterdir()):
            if path.is_symlink() or not path.is_file() or path.suffix.lower() not in SCRIPT_SUFFIXES:
                continue
            if not path.stat().st_mode & 0o111:
                rel = path.relative_to(skill_dir).as_posix()
                diags.append(
                    new_diagnostic("S002", field="structure", suggestion=f"Run: chmod +x {rel}", path=rel)
                )
    return diags


def check_nesting_and_symlinks(skill_dir: Path) -> list[Diagnostic]:
    """Flag symlinks anywhere in the skill and directories nested too deeply."""
    diags: list[Diagnostic] = []

    def walk(current: Path, depth: int) -> None:
        for entry in sorted(current.iterdir()):
            rel = entry.relative_to(skill_dir).as_posix()
            if entry.is_symlink():
                diags.append(
                    new_diagnostic(
                        "S005",
                        field="structure",
                        suggestion="Replace the symlink with a regular file or directory",
                        path=rel,
                    )
                )
                continue
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            if depth + 1 > MAX_NESTING_DEPTH:
                diags.append(
                    new_diagnostic(
                        "S004",
                        field="structure",
                        suggestion=f"Keep directory depth to at most {MAX_NESTING_DEPTH} levels",
                        depth=depth + 1,
                        path=rel,
                    )
                )
                continue
            walk(entry, depth + 1)

    walk(skill_dir, 0)
    return diags


def validate_structure(skill_dir: Path, body: str | None = None) -> list[Diagnostic]:
    """Run all structure checks for one skill directory.

    Args:
        skill_dir: Skill directory
        body: SKILL.md body; read from disk when not supplied

    Returns:
        Ordered diagnostics (references, permissions, nesting/symlinks)
    """
    if body is None:
        body = ""
        skill_file = find_skill_file(skill_dir)
        if skill_file is not None:
            try:
                body = parse_document(read_document_text(skill_file), "optional").body
            except (OSError, UnicodeDecodeError, DocumentParseError):
                # The skill validator reports unreadable files
                body = ""

    diags = check_references(skill_dir, body)
    diags.extend(check_script_permissions(skill_dir))
    diags.extend(check_nesting_and_symlinks(skill_dir))
    return diags


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Check the file structure of skill directories")
    parser.add_argument("paths", nargs="+", help="Skill directories")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show suggestions")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    reports: list[DiagnosticReport] = []
    for raw in args.paths:
        skill_dir = Path(raw)
        if not skill_dir.is_dir():
            print(f"Error: {skill_dir} is not a directory", file=sys.stderr)
            return 1
        reports.append(DiagnosticReport(path=str(skill_dir), diagnostics=validate_structure(skill_dir)))

    if args.json:
        print_json_results(reports)
    else:
        print_text_results(reports, use_color(), args.verbose, noun="skills")

    return batch_exit_code(reports)


if __name__ == "__main__":
    sys.exit(main())
