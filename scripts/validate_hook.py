#!/usr/bin/env python3
"""
Component Bundle Validation - Hook Validator

Validates hook configuration files (hooks.json). Both the bare form
`{"PreToolUse": [...]}` and the bundle form `{"description": ..., "hooks": {...}}`
are accepted.

Usage:
    uv run python scripts/validate_hook.py path/to/hooks.json
    uv run python scripts/validate_hook.py path/to/hooks.json --verbose
    uv run python scripts/validate_hook.py path/to/hooks.json --json

Exit codes:
    0 - No errors
    1 - At least one error found
"""

from __future__ import annotations

import argparse
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from cbv_document import DocumentParseError, DocumentShapeError, parse_document, read_document_text
from cbv_validation_common import (
    PLUGIN_ROOT_PLACEHOLDER,
    VALID_HOOK_EVENTS,
    Diagnostic,
    DiagnosticReport,
    configure_logging,
    new_diagnostic,
    print_json_results,
    print_text_results,
    type_name,
    use_color,
)

# Hooks file locations, in lookup order (relative to the bundle root)
HOOKS_LOCATIONS = (Path("hooks") / "hooks.json", Path("hooks.json"))

VALID_HOOK_TYPES = ("command", "prompt")

# Events where prompt hooks make the most sense
PROMPT_HOOK_EVENTS = ("Stop", "SubagentStop", "UserPromptSubmit", "PreToolUse")

# Recommended timeout range in seconds
MIN_TIMEOUT = 5
MAX_TIMEOUT = 600

# Absolute paths that are fine in commands (redirections, scratch files)
ALLOWED_ABSOLUTE_PREFIXES = ("/dev/", "/tmp/")

# Shell-style spelling of the bundle root placeholder
PLUGIN_ROOT_BARE = "$CLAUDE_PLUGIN_ROOT"

# Fields the wrapped `{"hooks": {...}}` form may carry beside the event map
WRAPPER_FIELDS = ("description",)


class HookShapeError(ValueError):
    """A hooks document value has the wrong type."""


@dataclass
class HookDefinition:
    """One hook inside an entry's `hooks` list."""

    type: str | None = None
    command: str | None = None
    prompt: str | None = None
    timeout: float | None = None

    @classmethod
    def from_json(cls, raw: Any) -> HookDefinition:
        if not isinstance(raw, dict):
            raise HookShapeError(f"hook definition must be an object, got {type_name(raw)}")

        timeout = raw.get("timeout")
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
            raise HookShapeError(f"`timeout` must be a number, got {type_name(timeout)}")

        hook_type = raw.get("type")
        return cls(
            type=hook_type if hook_type is None else str(hook_type),
            command=raw["command"] if isinstance(raw.get("command"), str) else None,
            prompt=raw["prompt"] if isinstance(raw.get("prompt"), str) else None,
            timeout=timeout,
        )


@dataclass
class HookEntry:
    """A matcher plus its hook definitions."""

    matcher: str | None = None
    hooks: list[Any] | None = None

    @classmethod
    def from_json(cls, raw: Any) -> HookEntry:
        if not isinstance(raw, dict):
            raise HookShapeError(f"hook entry must be an object, got {type_name(raw)}")

        matcher = raw.get("matcher")
        if matcher is not None and not isinstance(matcher, str):
            raise HookShapeError(f"`matcher` must be a string, got {type_name(matcher)}")

        hooks = raw.get("hooks")
        return cls(matcher=matcher, hooks=hooks if isinstance(hooks, list) else None)


@dataclass
class HookValidationReport(DiagnosticReport):
    """Hook validation report; keeps the event map for cross-component checks."""

    hook_path: str = ""
    events: dict[str, Any] = field(default_factory=dict)


def find_hooks_file(bundle_root: Path) -> Path | None:
    """Return the hooks file of a bundle, if any."""
    for location in HOOKS_LOCATIONS:
        candidate = bundle_root / location
        if candidate.is_file():
            return candidate
    return None


def unwrap_events(data: dict[str, Any]) -> dict[str, Any]:
    """Return the event map, unwrapping the `{"hooks": {...}}` bundle form."""
    inner = data.get("hooks")
    if isinstance(inner, dict):
        return inner
    return data


def wrapper_extras(data: dict[str, Any]) -> dict[str, Any]:
    """Top-level keys of the wrapped form that sit beside `hooks` and are not wrapper fields."""
    if not isinstance(data.get("hooks"), dict):
        return {}
    return {key: value for key, value in data.items() if key != "hooks" and key not in WRAPPER_FIELDS}


def iter_hook_commands(events: dict[str, Any]) -> Iterator[tuple[str, str]]:
    """Yield (event, command) for every well-formed command hook, in source order."""
    for event, entries in events.items():
        if not isinstance(entries, list):
            continue
        for entry in entries:
            hooks = entry.get("hooks") if isinstance(entry, dict) else None
            for hook in hooks if isinstance(hooks, list) else []:
                if isinstance(hook, dict) and hook.get("type") == "command" and isinstance(hook.get("command"), str):
                    yield event, hook["command"]


def split_command(command: str) -> list[str]:
    """Shell-like tokenization, falling back to whitespace splitting on bad quoting."""
    try:
        return shlex.split(command)
    except ValueError:
        return command.split()


def has_absolute_path(command: str) -> bool:
    """True when a token is an absolute path literal not rooted at the placeholder."""
    for token in split_command(command):
        # Redirections like 2>/dev/null or >/tmp/x
        candidate = token.lstrip("0123456789<>&|")
        if not candidate.startswith("/"):
            continue
        if candidate.startswith(ALLOWED_ABSOLUTE_PREFIXES):
            continue
        return True
    return False


# =============================================================================
# Rules
# =============================================================================


def validate_hook_definition(event: str, raw: Any) -> list[Diagnostic]:
    """Validate one hook definition of an event."""
    try:
        hook = HookDefinition.from_json(raw)
    except HookShapeError as e:
        return [new_diagnostic("H002", detail=f"{event}: {e}")]

    if hook.type is None:
        return [new_diagnostic("H005", field="type", event=event)]
    if hook.type not in VALID_HOOK_TYPES:
        return [
            new_diagnostic(
                "H006",
                field="type",
                suggestion=f"Valid types: {', '.join(VALID_HOOK_TYPES)}",
                event=event,
                type=hook.type,
            )
        ]

    diags: list[Diagnostic] = []
    if hook.type == "command" and not (hook.command and hook.command.strip()):
        diags.append(new_diagnostic("H007", field="command", event=event))
    if hook.type == "prompt" and hook.prompt is None:
        diags.append(new_diagnostic("H008", field="prompt", event=event))

    if hook.timeout is not None and not MIN_TIMEOUT <= hook.timeout <= MAX_TIMEOUT:
        diags.append(
            new_diagnostic(
                "H009",
                field="timeout",
                suggestion=f"Use a timeout between {MIN_TIMEOUT} and {MAX_TIMEOUT} seconds",
                timeout=f"{hook.timeout:g}",
                event=event,
                low=MIN_TIMEOUT,
                high=MAX_TIMEOUT,
            )
        )

    if hook.type == "command" and hook.command and has_absolute_path(hook.command):
        diags.append(
            new_diagnostic(
                "H010",
                field="command",
                suggestion=f"Use {PLUGIN_ROOT_PLACEHOLDER} for portable paths",
                command=hook.command,
            )
        )

    if hook.type == "prompt" and event not in PROMPT_HOOK_EVENTS:
        diags.append(new_diagnostic("H011", event=event, events=", ".join(PROMPT_HOOK_EVENTS)))

    return diags


def validate_event(event: str, entries: Any) -> list[Diagnostic]:
    """Validate one event and all of its entries."""
    diags: list[Diagnostic] = []
    if event not in VALID_HOOK_EVENTS:
        # Entries of unknown events are still checked
        diags.append(
            new_diagnostic("H003", field=event, suggestion=f"Valid events: {', '.join(VALID_HOOK_EVENTS)}", event=event)
        )

    if not isinstance(entries, list):
        diags.append(new_diagnostic("H002", detail=f"{event}: expected a list of entries, got {type_name(entries)}"))
        return diags

    for raw_entry in entries:
        try:
            entry = HookEntry.from_json(raw_entry)
        except HookShapeError as e:
            diags.append(new_diagnostic("H002", detail=f"{event}: {e}"))
            continue

        if entry.hooks is None:
            diags.append(new_diagnostic("H004", field="hooks", event=event))
            continue

        for raw_hook in entry.hooks:
            diags.extend(validate_hook_definition(event, raw_hook))

    return diags


def validate_hooks_data(data: dict[str, Any]) -> list[Diagnostic]:
    """Validate a decoded hooks document (bare or wrapped), in source order."""
    diags: list[Diagnostic] = []
    for event, entries in unwrap_events(data).items():
        diags.extend(validate_event(event, entries))

    # Keys beside the wrapped event map are never read as events
    for key, value in wrapper_extras(data).items():
        if key in VALID_HOOK_EVENTS:
            diags.append(
                new_diagnostic(
                    "H002",
                    field=key,
                    suggestion="Move the event inside the `hooks` object",
                    detail=f'event "{key}" is outside the `hooks` object and is ignored',
                )
            )
        else:
            diags.extend(validate_event(key, value))
    return diags


def validate_hooks(hook_path: Path) -> HookValidationReport:
    """Validate one hooks file.

    Args:
        hook_path: Path to hooks.json

    Returns:
        HookValidationReport; unreadable or non-JSON files give a single H001
    """
    report = HookValidationReport(path=str(hook_path), hook_path=str(hook_path))

    try:
        content = read_document_text(hook_path)
    except (OSError, UnicodeDecodeError) as e:
        report.add("H001", detail=f"cannot read {hook_path.name}: {e}")
        return report

    try:
        doc = parse_document(content, "json")
    except DocumentShapeError as e:
        report.add("H002", detail=str(e))
        return report
    except DocumentParseError as e:
        report.add("H001", detail=str(e))
        return report

    report.events = unwrap_events(doc.header)
    report.extend(validate_hooks_data(doc.header))
    return report


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate a hooks.json file")
    parser.add_argument("hook_path", help="Path to the hooks.json file (or a bundle directory)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show suggestions and debug logging")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    configure_logging(args.verbose)
    hook_path = Path(args.hook_path)
    if not hook_path.exists():
        print(f"Error: {hook_path} does not exist", file=sys.stderr)
        return 1

    if hook_path.is_dir():
        found = find_hooks_file(hook_path)
        if found is None:
            print(f"Error: no hooks.json found in {hook_path}", file=sys.stderr)
            return 1
        hook_path = found

    report = validate_hooks(hook_path)

    if args.json:
        print_json_results([report])
    else:
        print_text_results([report], use_color(), args.verbose)

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
