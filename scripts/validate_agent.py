#!/usr/bin/env python3
"""
Component Bundle Validation - Agent Validator

Validates agent definition files: markdown with required YAML frontmatter
(name, description, model, color) followed by the agent's system prompt.

Usage:
    uv run python scripts/validate_agent.py path/to/agent.md
    uv run python scripts/validate_agent.py path/to/agents/  # validate all agents in dir
    uv run python scripts/validate_agent.py path/to/agent.md --json

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
    is_valid_kebab_case,
    new_diagnostic,
    print_json_results,
    print_text_results,
    use_color,
)

REQUIRED_FIELDS = ("name", "description", "model", "color")

# Valid model selectors for agents
VALID_MODELS = ("inherit", "sonnet", "opus", "haiku")

# Valid display colors
VALID_COLORS = ("blue", "cyan", "green", "yellow", "magenta", "red")

# Whole-name matches that say nothing about the agent
GENERIC_NAMES = {"helper", "assistant", "agent", "tool"}

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 50
MIN_DESCRIPTION_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 5000

# System prompt (body) limits, measured after trimming
MIN_BODY_CHARS = 20
MAX_BODY_CHARS = 10_000


@dataclass
class AgentValidationReport(DiagnosticReport):
    """Validation report for an agent file, extends DiagnosticReport with agent metadata."""

    agent_path: str = ""
    header: dict[str, Any] = field(default_factory=dict)


def validate_name_field(name: Any) -> list[Diagnostic]:
    """Validate the 'name' frontmatter field; non-string values are not checked."""
    diags: list[Diagnostic] = []
    if not isinstance(name, str):
        return diags

    if not is_valid_kebab_case(name):
        diags.append(
            new_diagnostic(
                "A003",
                field="name",
                suggestion="Use lowercase letters, digits, and hyphens",
                name=name,
            )
        )

    if name in GENERIC_NAMES:
        diags.append(
            new_diagnostic(
                "A004",
                field="name",
                suggestion='Use a descriptive name (e.g., "code-reviewer" instead of "helper")',
                name=name,
            )
        )

    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        diags.append(
            new_diagnostic("A005", field="name", length=len(name), low=MIN_NAME_LENGTH, high=MAX_NAME_LENGTH)
        )
    return diags


def validate_description_field(description: Any) -> list[Diagnostic]:
    """Validate the 'description' frontmatter field."""
    if not isinstance(description, str):
        return []
    length = len(description)
    if not MIN_DESCRIPTION_LENGTH <= length <= MAX_DESCRIPTION_LENGTH:
        return [
            new_diagnostic(
                "A006",
                field="description",
                length=length,
                low=MIN_DESCRIPTION_LENGTH,
                high=MAX_DESCRIPTION_LENGTH,
            )
        ]
    return []


def validate_model_field(model: Any) -> list[Diagnostic]:
    """Validate the 'model' frontmatter field."""
    if model not in VALID_MODELS:
        return [
            new_diagnostic(
                "A007",
                field="model",
                suggestion=f"Valid models: {', '.join(VALID_MODELS)}",
                model=str(model),
            )
        ]
    return []


def validate_color_field(color: Any) -> list[Diagnostic]:
    """Validate the 'color' frontmatter field."""
    if color not in VALID_COLORS:
        return [
            new_diagnostic(
                "A008",
                field="color",
                suggestion=f"Valid colors: {', '.join(VALID_COLORS)}",
                color=str(color),
            )
        ]
    return []


def validate_body_content(body: str) -> list[Diagnostic]:
    """The system prompt must be substantial but not enormous."""
    trimmed = body.strip()
    if len(trimmed) < MIN_BODY_CHARS:
        state = "missing" if not trimmed else f"too short ({len(trimmed)} chars)"
        return [
            new_diagnostic(
                "A009",
                suggestion="Add a detailed system prompt describing the agent's behavior",
                state=state,
                limit=MIN_BODY_CHARS,
            )
        ]
    if len(trimmed) > MAX_BODY_CHARS:
        return [
            new_diagnostic(
                "A010",
                suggestion="Consider splitting into shorter sections or using reference files",
                length=len(trimmed),
                limit=f"{MAX_BODY_CHARS:,}",
            )
        ]
    return []


def validate_agent_document(header: dict[str, Any], body: str) -> list[Diagnostic]:
    """Run every agent rule over a parsed document, in fixed order."""
    diags = [new_diagnostic("A002", field=key, key=key) for key in REQUIRED_FIELDS if key not in header]

    if "name" in header:
        diags.extend(validate_name_field(header["name"]))
    if "description" in header:
        diags.extend(validate_description_field(header["description"]))
    if "model" in header:
        diags.extend(validate_model_field(header["model"]))
    if "color" in header:
        diags.extend(validate_color_field(header["color"]))

    diags.extend(validate_body_content(body))
    return diags


def validate_agent(agent_path: Path) -> AgentValidationReport:
    """Validate a complete agent file.

    Args:
        agent_path: Path to the agent .md file

    Returns:
        AgentValidationReport; unreadable files or bad frontmatter give a single A001
    """
    report = AgentValidationReport(path=str(agent_path), agent_path=str(agent_path))

    try:
        content = read_document_text(agent_path)
    except (OSError, UnicodeDecodeError) as e:
        report.add("A001", detail=f"cannot read agent file: {e}")
        return report

    try:
        doc = parse_document(content, "required")
    except DocumentParseError as e:
        report.add("A001", detail=f"invalid agent frontmatter: {e}")
        return report

    report.header = doc.header
    report.extend(validate_agent_document(doc.header, doc.body))
    return report


def validate_agents_directory(agents_dir: Path) -> list[AgentValidationReport]:
    """Validate all agent files (*.md) in a directory, sorted by name."""
    return [validate_agent(p) for p in sorted(agents_dir.glob("*.md"))]


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate an agent file or directory")
    parser.add_argument("path", help="Path to agent .md file or agents/ directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show suggestions and debug logging")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    configure_logging(args.verbose)
    path = Path(args.path)

    if not path.exists():
        print(f"Error: {path} does not exist", file=sys.stderr)
        return 1
    if path.is_dir() and not list(path.glob("*.md")):
        print(f"Error: No agent definition files (.md) found in {path}", file=sys.stderr)
        return 1

    reports = validate_agents_directory(path) if path.is_dir() else [validate_agent(path)]

    if args.json:
        print_json_results(reports)
    else:
        print_text_results(reports, use_color(), args.verbose, noun="agents")

    return batch_exit_code(reports)


if __name__ == "__main__":
    sys.exit(main())
