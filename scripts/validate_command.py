#!/usr/bin/env python3
"""
Component Bundle Validation - Command Validator

Validates command markdown files. Frontmatter is optional for commands: a
file without it is a plain prompt. When frontmatter is present its fields are
checked; the body must never be empty.

Usage:
    uv run python scripts/validate_command.py path/to/command.md
    uv run python scripts/validate_command.py path/to/commands/  # validate all commands in dir
    uv run python scripts/validate_command.py path/to/command.md --verbose
    uv run python scripts/validate_command.py path/to/command.md --json

Exit codes:
    0 - No errors
    1 - At least one error found
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cbv_document import DocumentParseError, parse_document, read_document_text
from cbv_validation_common import (
    Diagnostic,
    DiagnosticReport,
    batch_exit_code,
    configure_logging,
    new_diagnostic,
    print_json_results,
    print_text_results,
    type_name,
    use_color,
)

# =============================================================================
# Command-Specific Constants
# =============================================================================

# Maximum description length for commands (shorter than agents)
MAX_COMMAND_DESCRIPTION_LENGTH = 60

# Commands cannot inherit the caller's model
VALID_MODELS = ("sonnet", "opus", "haiku")

# Imperative verbs a description is expected to start with. Not exhaustive,
# which is why a miss is only a warning.
COMMON_VERBS = frozenset(
    {
        "add", "analyze", "apply", "build", "check", "clean", "commit", "configure",
        "convert", "copy", "create", "debug", "delete", "deploy", "describe", "detect",
        "display", "download", "edit", "enable", "execute", "export", "extract", "fetch",
        "find", "fix", "format", "generate", "get", "help", "import", "initialize",
        "insert", "inspect", "install", "launch", "lint", "list", "load", "log",
        "manage", "merge", "migrate", "monitor", "move", "open", "optimize", "output",
        "parse", "patch", "perform", "plan", "preview", "print", "process", "publish",
        "pull", "push", "query", "read", "refactor", "reload", "remove", "rename",
        "repair", "replace", "report", "reset", "resolve", "restart", "restore", "retrieve",
        "review", "run", "save", "scan", "search", "send", "serve", "set",
        "setup", "show", "sort", "start", "stop", "submit", "summarize", "sync",
        "test", "trace", "transform", "trigger", "uninstall", "update", "upgrade", "upload",
        "validate", "verify", "view", "watch", "write",
    }
)  # fmt: skip


@dataclass
class CommandValidationReport(DiagnosticReport):
    """Validation report for a command file."""

    command_path: str = ""
    header: dict[str, Any] = field(default_factory=dict)


def first_word(text: str) -> str:
    """First whitespace-separated word, lowercased, trailing punctuation removed."""
    words = text.split()
    if not words:
        return ""
    return words[0].lower().rstrip(".,:;!?")


def validate_description_field(description: Any) -> list[Diagnostic]:
    """Length and leading-verb checks for a string description."""
    if not isinstance(description, str):
        return []

    diags: list[Diagnostic] = []
    if len(description) > MAX_COMMAND_DESCRIPTION_LENGTH:
        diags.append(
            new_diagnostic(
                "K002",
                field="description",
                suggestion="Keep command descriptions short; put details in the body",
                length=len(description),
                limit=MAX_COMMAND_DESCRIPTION_LENGTH,
            )
        )

    word = first_word(description)
    if word and word not in COMMON_VERBS:
        diags.append(
            new_diagnostic(
                "K004",
                field="description",
                suggestion='Start with an imperative verb (e.g., "Run tests", "Generate docs")',
                word=description.split()[0],
            )
        )
    return diags


def validate_model_field(model: Any) -> list[Diagnostic]:
    if model not in VALID_MODELS:
        return [
            new_diagnostic(
                "K003",
                field="model",
                suggestion=f"Valid models: {', '.join(VALID_MODELS)}",
                model=str(model),
            )
        ]
    return []


def validate_allowed_tools(tools: Any) -> list[Diagnostic]:
    """allowed-tools is a single string or a list of strings."""
    if isinstance(tools, str):
        return []
    if isinstance(tools, list):
        for item in tools:
            if not isinstance(item, str):
                return [new_diagnostic("K006", field="allowed-tools", type=f"list with a {type_name(item)} item")]
        return []
    return [new_diagnostic("K006", field="allowed-tools", type=type_name(tools))]


def validate_command_document(header: dict[str, Any], body: str) -> list[Diagnostic]:
    """Run every command rule over a parsed document, in fixed order."""
    diags: list[Diagnostic] = []

    # Header rules only apply when frontmatter was given
    if header:
        if "description" in header:
            diags.extend(validate_description_field(header["description"]))
        else:
            diags.append(new_diagnostic("K007", field="description"))

        if "model" in header:
            diags.extend(validate_model_field(header["model"]))
        if "allowed-tools" in header:
            diags.extend(validate_allowed_tools(header["allowed-tools"]))

    if not body.strip():
        diags.append(new_diagnostic("K005", suggestion="Add the command prompt text after the frontmatter"))
    return diags


def validate_command(command_path: Path) -> CommandValidationReport:
    """Validate a complete command file.

    Args:
        command_path: Path to the command .md file

    Returns:
        CommandValidationReport; unreadable files or broken frontmatter give a single K001
    """
    report = CommandValidationReport(path=str(command_path), command_path=str(command_path))

    try:
        content = read_document_text(command_path)
    except (OSError, UnicodeDecodeError) as e:
        report.add("K001", detail=f"cannot read command file: {e}")
        return report

    try:
        doc = parse_document(content, "optional")
    except DocumentParseError as e:
        report.add("K001", detail=f"frontmatter syntax error: {e}")
        return report

    report.header = doc.header
    report.extend(validate_command_document(doc.header, doc.body))
    return report


def validate_commands_directory(commands_dir: Path) -> list[CommandValidationReport]:
    """Validate all command files (*.md) in a directory, sorted by name."""
    return [validate_command(p) for p in sorted(commands_dir.glob("*.md"))]


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate a command file or directory")
    parser.add_argument("path", help="Path to command .md file or commands/ directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show suggestions and debug logging")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    configure_logging(args.verbose)
    path = Path(args.path)

    if not path.exists():
        print(f"Error: {path} does not exist", file=sys.stderr)
        return 1
    if path.is_dir() and not list(path.glob("*.md")):
        print(f"Error: No command files (.md) found in {path}", file=sys.stderr)
        return 1

    reports = validate_commands_directory(path) if path.is_dir() else [validate_command(path)]

    if args.json:
        print_json_results(reports)
    else:
        print_text_results(reports, use_color(), args.verbose, noun="commands")

    return batch_exit_code(reports)


if __name__ == "__main__":
    sys.exit(main())
