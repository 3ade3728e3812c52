#!/usr/bin/env python3
"""
Component Bundle Validation - Common Module

Shared validation infrastructure for all component bundle validators.
This module contains:
- Type definitions (Severity, Diagnostic, DiagnosticReport)
- The code registry (every diagnostic code, its severity and message template)
- Common constants (name rules, hook events, profiles, scan exclusions)
- Utility functions (formatting, grouped output, exit codes, logging setup)

All individual validators should import from this module to ensure consistency.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal

logger = logging.getLogger(__name__)

# =============================================================================
# Type Definitions
# =============================================================================

# Diagnostic severity, ordered: error > warning > info
# - error: blocks acceptance (non-zero exit code)
# - warning: never blocks, always reported
# - info: informational only, never blocks
Severity = Literal["error", "warning", "info"]

SEVERITY_RANK: dict[str, int] = {"error": 0, "warning": 1, "info": 2}

# Strictness profiles controlling the unknown-header-key check
Profile = Literal["strict", "extended", "permissive"]

PROFILES: tuple[str, ...] = ("strict", "extended", "permissive")

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_OK = 0  # No errors (warnings and info never block)
EXIT_ERROR = 1  # At least one error anywhere in the batch

# =============================================================================
# Code Registry
# =============================================================================


@dataclass(frozen=True)
class CodeSpec:
    """Registered metadata for one diagnostic code.

    Attributes:
        severity: Severity every diagnostic with this code carries
        template: str.format template producing the final message
        fixable: Whether the fixer has a safe automatic correction for it
    """

    severity: Severity
    template: str
    fixable: bool = False


# Append-only: codes are never renumbered or removed.
# Prefixes: E/W skill metadata, I skill lint, S skill structure, C skill conflicts,
# P manifest, H hooks, A agent, K command, X cross-component.
CODE_REGISTRY: dict[str, CodeSpec] = {
    # Skill validator (E000 is the precondition code)
    "E000": CodeSpec("error", "{detail}"),
    "E001": CodeSpec("error", "name must not be empty"),
    "E002": CodeSpec("error", "name exceeds {limit} characters ({length} chars)", fixable=True),
    "E003": CodeSpec("error", "name contains invalid character(s): {chars}", fixable=True),
    "E004": CodeSpec("error", "name must not start with a hyphen"),
    "E005": CodeSpec("error", "name must not end with a hyphen"),
    "E006": CodeSpec("error", "name must not contain consecutive hyphens", fixable=True),
    "E007": CodeSpec("error", "name contains reserved word: '{word}'"),
    "E008": CodeSpec("error", "name contains XML/HTML tags"),  # reserved, covered by E003
    "E009": CodeSpec("error", "name '{name}' does not match directory name '{directory}'"),
    "E010": CodeSpec("error", "description must not be empty"),
    "E011": CodeSpec("error", "description exceeds {limit} characters ({length} chars)"),
    "E012": CodeSpec("error", "description contains XML/HTML tags", fixable=True),
    "E013": CodeSpec("error", "compatibility exceeds {limit} characters ({length} chars)"),
    "E014": CodeSpec("error", "`name` must be a string, got {type}"),
    "E015": CodeSpec("error", "`description` must be a string, got {type}"),
    "E016": CodeSpec("error", "`compatibility` must be a string, got {type}"),
    "E017": CodeSpec("error", "missing required field `name`"),
    "E018": CodeSpec("error", "missing required field `description`"),
    "W001": CodeSpec("warning", "unexpected metadata field: '{key}'"),
    "W002": CodeSpec("warning", "body exceeds {limit} lines ({count} lines)"),
    # Skill linter
    "I001": CodeSpec("info", "description uses first/second-person pronouns ('{word}')"),
    "I002": CodeSpec("info", "description has no trigger phrase (e.g. 'Use when ...')", fixable=True),
    "I003": CodeSpec("info", "name does not start with a gerund ('{segment}')"),
    "I004": CodeSpec("info", "name starts with a generic word ('{segment}')"),
    "I005": CodeSpec("info", "description is too short ({length} chars, {words} words)"),
    # Skill structure
    "S001": CodeSpec("warning", "referenced file does not exist: '{path}'"),
    "S002": CodeSpec("warning", "script missing execute permission: '{path}'"),
    "S003": CodeSpec("warning", "reference depth exceeds {limit} level(s): '{path}'"),
    "S004": CodeSpec("warning", "excessive nesting depth ({depth} levels): '{path}'"),
    "S005": CodeSpec("warning", "symlink detected in skill directory: '{path}'"),
    "S006": CodeSpec("error", "path traversal in reference: '{path}'"),
    # Skill conflicts
    "C001": CodeSpec("warning", "name collision: '{name}' appears in {locations}"),
    "C002": CodeSpec("warning", "description overlap ({percent}%): '{first}' and '{second}'"),
    "C003": CodeSpec("warning", "total estimated tokens ({total}) exceed budget threshold ({limit})"),
    # Manifest validator (P001 is the precondition code)
    "P001": CodeSpec("error", "{detail}"),
    "P002": CodeSpec("error", "manifest `name` is {state}"),
    "P003": CodeSpec("error", "`name` is not valid kebab-case: \"{name}\""),
    "P004": CodeSpec("warning", "`version` is not valid semver (x.y.z): \"{version}\""),
    "P005": CodeSpec("warning", "`description` is {state}"),
    "P006": CodeSpec("error", "`{key}` uses absolute path: \"{value}\""),
    "P007": CodeSpec("error", "`{key}` path does not exist: \"{value}\""),
    "P008": CodeSpec("error", "possible hardcoded credential detected at `{path}`"),
    "P009": CodeSpec("warning", "{location} uses insecure URL: \"{url}\""),
    "P010": CodeSpec("info", "missing recommended field `{key}`"),
    # Hook validator (H001 is the precondition code)
    "H001": CodeSpec("error", "{detail}"),
    "H002": CodeSpec("error", "invalid hooks structure: {detail}"),
    "H003": CodeSpec("error", "unknown event name: \"{event}\""),
    "H004": CodeSpec("error", "hook entry for \"{event}\" is missing a `hooks` array"),
    "H005": CodeSpec("error", "hook in \"{event}\" is missing the `type` field"),
    "H006": CodeSpec("error", "unknown hook type in \"{event}\": \"{type}\""),
    "H007": CodeSpec("error", "command hook in \"{event}\" is missing the `command` field"),
    "H008": CodeSpec("error", "prompt hook in \"{event}\" is missing the `prompt` field"),
    "H009": CodeSpec("warning", "timeout {timeout}s in \"{event}\" is outside recommended range ({low}-{high}s)"),
    "H010": CodeSpec("warning", "absolute path in command: \"{command}\""),
    "H011": CodeSpec("info", "prompt hook on \"{event}\" (prompt hooks work best on {events})"),
    # Agent validator (A001 is the precondition code)
    "A001": CodeSpec("error", "{detail}"),
    "A002": CodeSpec("error", "missing required field `{key}`"),
    "A003": CodeSpec("error", "`name` is not valid kebab-case: \"{name}\""),
    "A004": CodeSpec("warning", "`name` is too generic: \"{name}\""),
    "A005": CodeSpec("error", "`name` length {length} is outside {low}-{high} chars"),
    "A006": CodeSpec("error", "`description` length {length} is outside {low}-{high} chars"),
    "A007": CodeSpec("error", "`model` is not valid: \"{model}\""),
    "A008": CodeSpec("error", "`color` is not valid: \"{color}\""),
    "A009": CodeSpec("error", "system prompt is {state} (minimum {limit} chars)"),
    "A010": CodeSpec("warning", "system prompt is {length} chars (recommended max {limit})"),
    # Command validator (K001 is the precondition code)
    "K001": CodeSpec("error", "{detail}"),
    "K002": CodeSpec("warning", "`description` is {length} chars (recommended max {limit})"),
    "K003": CodeSpec("error", "`model` is not valid: \"{model}\""),
    "K004": CodeSpec("warning", "`description` does not start with a verb: \"{word}\""),
    "K005": CodeSpec("error", "command body is empty"),
    "K006": CodeSpec("warning", "`allowed-tools` must be a string or a list of strings, got {type}"),
    "K007": CodeSpec("info", "missing `description` field (recommended for discoverability)"),
    # Cross-component checker
    "X001": CodeSpec("info", "`{directory}/` exists but contains no {kind} definitions"),
    "X002": CodeSpec("error", "hook command references missing script: \"{command}\""),
    "X003": CodeSpec("warning", "orphaned entry in `{directory}/`: \"{name}\""),
    "X004": CodeSpec("warning", "naming inconsistency in {category}: {count} of {total} are not kebab-case ({examples})"),
    "X005": CodeSpec("info", "total skill token budget is ~{total} tokens (threshold: {limit})"),
    "X006": CodeSpec("error", "duplicate name \"{name}\" used across component types: {locations}"),
}

# Codes the fixer knows how to correct
FIXABLE_CODES: frozenset[str] = frozenset(code for code, spec in CODE_REGISTRY.items() if spec.fixable)

# =============================================================================
# Diagnostic Record
# =============================================================================


@dataclass(frozen=True)
class Diagnostic:
    """A single finding.

    Attributes:
        severity: Always the registered severity of ``code``
        code: Registry code (e.g. ``E003``)
        message: Final, self-contained text shown verbatim
        field: Optional header/JSON field the finding is about
        suggestion: Optional descriptive hint (does not imply fixability)
    """

    severity: Severity
    code: str
    message: str
    field: str | None = None
    suggestion: str | None = None

    def is_error(self) -> bool:
        return self.severity == "error"

    def is_warning(self) -> bool:
        return self.severity == "warning"

    def is_info(self) -> bool:
        return self.severity == "info"

    @property
    def fixable(self) -> bool:
        """Whether the fixer has a correction for this code."""
        return self.code in FIXABLE_CODES

    def sort_key(self) -> tuple[int, str]:
        """Ordering key: worst severity first, then code."""
        return (SEVERITY_RANK[self.severity], self.code)

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization (unset optionals omitted)."""
        result = {"severity": self.severity, "code": self.code, "message": self.message}
        if self.field is not None:
            result["field"] = self.field
        if self.suggestion is not None:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"{self.severity}[{self.code}]: {self.message}"


def new_diagnostic(code: str, *, field: str | None = None, suggestion: str | None = None, **params: Any) -> Diagnostic:
    """Build a diagnostic from the registry.

    Severity and message come from ``CODE_REGISTRY``; callers never choose a
    severity themselves. An unknown code or a missing template parameter is a
    programming error and raises ``KeyError``.

    Args:
        code: Registry code
        field: Optional field the diagnostic refers to
        suggestion: Optional suggestion text
        **params: Values substituted into the message template

    Returns:
        The new Diagnostic
    """
    spec = CODE_REGISTRY[code]
    return Diagnostic(spec.severity, code, spec.template.format(**params), field, suggestion)


def sort_diagnostics(diagnostics: Iterable[Diagnostic]) -> list[Diagnostic]:
    """Return diagnostics ordered by (severity, code), stable within equal keys."""
    return sorted(diagnostics, key=Diagnostic.sort_key)


def worst_severity(diagnostics: Iterable[Diagnostic]) -> Severity | None:
    """Return the worst severity present, or None when there are no diagnostics."""
    worst: Severity | None = None
    for diag in diagnostics:
        if worst is None or SEVERITY_RANK[diag.severity] < SEVERITY_RANK[worst]:
            worst = diag.severity
    return worst


# =============================================================================
# Reports
# =============================================================================


@dataclass
class DiagnosticReport:
    """Ordered diagnostics for one document (or one aggregate check).

    This is the base class that all validators use (or extend). Diagnostics
    keep the order in which rules emitted them.
    """

    path: str = ""
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def add(self, code: str, *, field: str | None = None, suggestion: str | None = None, **params: Any) -> Diagnostic:
        """Create a diagnostic from the registry and append it."""
        diag = new_diagnostic(code, field=field, suggestion=suggestion, **params)
        self.diagnostics.append(diag)
        return diag

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        """Append already-built diagnostics."""
        self.diagnostics.extend(diagnostics)

    @property
    def has_errors(self) -> bool:
        """Check if any error exists."""
        return any(d.is_error() for d in self.diagnostics)

    @property
    def has_warnings(self) -> bool:
        """Check if any warning exists."""
        return any(d.is_warning() for d in self.diagnostics)

    @property
    def worst_severity(self) -> Severity | None:
        return worst_severity(self.diagnostics)

    @property
    def exit_code(self) -> int:
        """Non-zero iff an error exists; warnings and info never block."""
        return EXIT_ERROR if self.has_errors else EXIT_OK

    def count_by_severity(self) -> dict[str, int]:
        """Get count of diagnostics by severity."""
        counts = {"error": 0, "warning": 0, "info": 0}
        for diag in self.diagnostics:
            counts[diag.severity] += 1
        return counts

    def codes(self) -> list[str]:
        """Codes in emission order (handy for assertions and summaries)."""
        return [d.code for d in self.diagnostics]

    def merge(self, other: DiagnosticReport) -> None:
        """Merge diagnostics from another report into this one."""
        self.diagnostics.extend(other.diagnostics)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the `{path, diagnostics}` JSON shape."""
        return {"path": self.path, "diagnostics": [d.to_dict() for d in self.diagnostics]}


def batch_exit_code(reports: Iterable[DiagnosticReport]) -> int:
    """Exit code for a whole batch: non-zero iff any report has an error."""
    return EXIT_ERROR if any(r.has_errors for r in reports) else EXIT_OK


# =============================================================================
# Validation Name Patterns and Shared Constants
# =============================================================================

# Name validation pattern (kebab-case)
NAME_PATTERN = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$")

# Limits shared by more than one validator
MAX_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1024

# Placeholder hooks and manifests use for the bundle root directory
PLUGIN_ROOT_PLACEHOLDER = "${CLAUDE_PLUGIN_ROOT}"

# Hook events a hooks document may configure
VALID_HOOK_EVENTS = (
    "PreToolUse",
    "PostToolUse",
    "Stop",
    "SubagentStop",
    "SessionStart",
    "SessionEnd",
    "UserPromptSubmit",
    "PreCompact",
    "Notification",
)

# Directories to skip when scanning (cache dirs, hidden dirs, etc.)
SKIP_DIRS = {
    ".ruff_cache",
    ".mypy_cache",
    ".git",
    "__pycache__",
    ".venv",
    "node_modules",
    ".pytest_cache",
    ".tox",
    "dist",
    "build",
}

# Environment variable selecting the default strictness profile
PROFILE_ENV_VAR = "CBV_PROFILE"


def is_valid_kebab_case(name: str) -> bool:
    """Check if name follows kebab-case convention."""
    return bool(NAME_PATTERN.match(name))


def estimate_tokens(text: str) -> int:
    """Rough token estimate used for budget checks (about 4 chars per token)."""
    return len(text) // 4


def type_name(value: Any) -> str:
    """Human-readable type name of a decoded YAML/JSON value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (list, tuple)):
        return "list"
    if isinstance(value, dict):
        return "mapping"
    return type(value).__name__


def resolve_profile(value: str | None = None) -> Profile:
    """Resolve the active strictness profile.

    Args:
        value: Explicit profile (e.g. from --profile); falls back to the
            CBV_PROFILE environment variable, then "strict"

    Returns:
        A valid profile name

    Raises:
        ValueError: If the requested profile does not exist
    """
    chosen = value or os.environ.get(PROFILE_ENV_VAR, "").strip() or "strict"
    if chosen not in PROFILES:
        raise ValueError(f"unknown profile '{chosen}' (expected one of: {', '.join(PROFILES)})")
    return chosen  # type: ignore[return-value]


def relative_label(path: Path, root: Path) -> str:
    """Display path relative to root (posix separators), or the path itself."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


# =============================================================================
# Logging
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Send debug traces to stderr so stdout stays clean for JSON output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# =============================================================================
# Color Formatting (for terminal output)
# =============================================================================

# ANSI color codes
COLORS = {
    "error": "\033[91m",  # Red
    "warning": "\033[93m",  # Yellow
    "info": "\033[90m",  # Gray
    "ok": "\033[92m",  # Green
    "RESET": "\033[0m",  # Reset
    "BOLD": "\033[1m",  # Bold
}


def use_color() -> bool:
    """Colors only on an interactive terminal, and never when NO_COLOR is set."""
    return sys.stdout.isatty() and "NO_COLOR" not in os.environ


def colorize(text: str, level: str, enabled: bool = True) -> str:
    """Apply color to text based on level."""
    if not enabled:
        return text
    color = COLORS.get(level, "")
    return f"{color}{text}{COLORS['RESET']}"


def format_diagnostic(diag: Diagnostic, color: bool = False, verbose: bool = False) -> str:
    """Format a single diagnostic for terminal output."""
    line = f"  {colorize(str(diag), diag.severity, color)}"
    if verbose and diag.suggestion:
        line += f"\n    help: {diag.suggestion}"
    return line


def summarize(reports: list[DiagnosticReport], noun: str = "documents") -> str:
    """One-line batch summary: totals of clean, erroring and warning-only documents."""
    ok = sum(1 for r in reports if not r.has_errors and not r.has_warnings)
    errors = sum(1 for r in reports if r.has_errors)
    warnings_only = sum(1 for r in reports if r.has_warnings and not r.has_errors)
    return f"{len(reports)} {noun}: {ok} ok, {errors} with errors, {warnings_only} with warnings only"


def print_text_results(
    reports: list[DiagnosticReport],
    color: bool = False,
    verbose: bool = False,
    noun: str = "documents",
) -> None:
    """Print diagnostics grouped per document, one line per diagnostic."""
    if not any(r.diagnostics for r in reports):
        print(colorize("ok", "ok", color))
        return

    for report in reports:
        if not report.diagnostics:
            continue
        print(f"{report.path}:")
        for diag in report.diagnostics:
            print(format_diagnostic(diag, color, verbose))

    if len(reports) > 1:
        print()
        print(summarize(reports, noun))


def print_json_results(reports: list[DiagnosticReport]) -> None:
    """Print the batch as a JSON array of {path, diagnostics} objects."""
    print(json.dumps([r.to_dict() for r in reports], indent=2, ensure_ascii=False))
