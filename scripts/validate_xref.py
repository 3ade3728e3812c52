#!/usr/bin/env python3
"""
Component Bundle Validation - Cross-Component Validator

Checks consistency between the components of a bundle, after every unit has
been validated on its own:
1. Category directories that exist but hold no components (info)
2. Orphaned files that do not fit their category (warning)
3. Mixed kebab-case / other naming within a category (warning)
4. The same name used by components of different kinds (error)
5. Total skill metadata size above the token budget (info)
6. Hook commands that reference bundle scripts which do not exist (error)

Usage:
    uv run python scripts/validate_xref.py /path/to/bundle
    uv run python scripts/validate_xref.py /path/to/bundle --verbose
    uv run python scripts/validate_xref.py /path/to/bundle --json

Exit codes:
    0 - No errors
    1 - At least one error found
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Iterable

from cbv_bundle import CategoryScan, ComponentUnit, resolve_layout, scan_bundle, validate_units
from cbv_validation_common import (
    PLUGIN_ROOT_PLACEHOLDER,
    Diagnostic,
    DiagnosticReport,
    Profile,
    configure_logging,
    estimate_tokens,
    is_valid_kebab_case,
    new_diagnostic,
    print_json_results,
    print_text_results,
    resolve_profile,
    use_color,
)
from validate_hook import PLUGIN_ROOT_BARE, iter_hook_commands, split_command, validate_hooks
from validate_manifest import find_manifest, validate_manifest

logger = logging.getLogger(__name__)

# Combined skill name+description token estimate considered expensive
TOKEN_BUDGET_THRESHOLD = 50_000

# Naming examples quoted in an inconsistency warning
MAX_NAMING_EXAMPLES = 3


# =============================================================================
# Rule 1-2: Empty categories and orphaned entries
# =============================================================================


def check_empty_categories(scans: list[CategoryScan]) -> list[Diagnostic]:
    return [
        new_diagnostic("X001", directory=scan.label, kind=scan.kind)
        for scan in scans
        if not scan.units
    ]


def check_orphans(scans: list[CategoryScan]) -> list[Diagnostic]:
    diags: list[Diagnostic] = []
    for scan in scans:
        if scan.kind == "skill":
            suggestion = "Move it into its own subdirectory with a SKILL.md, or remove it"
        else:
            suggestion = f"Remove it or convert to .md if it's a {scan.kind} file"
        for name in scan.orphans:
            diags.append(new_diagnostic("X003", suggestion=suggestion, directory=scan.label, name=name))
    return diags


# =============================================================================
# Rule 3-4: Naming
# =============================================================================


def check_naming_consistency(scans: list[CategoryScan]) -> list[Diagnostic]:
    """Warn once per category whose unit names mix kebab-case with anything else."""
    by_category: dict[str, list[ComponentUnit]] = {}
    for scan in scans:
        by_category.setdefault(f"{scan.kind}s", []).extend(scan.units)

    diags: list[Diagnostic] = []
    for category, units in by_category.items():
        non_kebab = [u for u in units if not is_valid_kebab_case(u.name)]
        if not non_kebab or len(non_kebab) == len(units):
            continue
        diags.append(
            new_diagnostic(
                "X004",
                suggestion=f"Use kebab-case for every name in {category}",
                category=category,
                count=len(non_kebab),
                total=len(units),
                examples=", ".join(u.label for u in non_kebab[:MAX_NAMING_EXAMPLES]),
            )
        )
    return diags


def check_duplicate_names(units: Iterable[ComponentUnit]) -> list[Diagnostic]:
    """One error per name shared by components of more than one kind."""
    by_name: dict[str, list[ComponentUnit]] = {}
    for unit in units:
        by_name.setdefault(unit.name, []).append(unit)

    return [
        new_diagnostic(
            "X006",
            suggestion="Use unique names for each component",
            name=name,
            locations=", ".join(u.label for u in same_name),
        )
        for name, same_name in sorted(by_name.items())
        if len({u.kind for u in same_name}) > 1
    ]


# =============================================================================
# Rule 5: Token budget
# =============================================================================


def skill_token_total(units: Iterable[ComponentUnit]) -> int:
    total = 0
    for unit in units:
        if unit.kind != "skill":
            continue
        for key in ("name", "description"):
            value = unit.header.get(key)
            if isinstance(value, str):
                total += estimate_tokens(value)
    return total


def check_token_budget(units: Iterable[ComponentUnit]) -> list[Diagnostic]:
    total = skill_token_total(units)
    if total > TOKEN_BUDGET_THRESHOLD:
        return [
            new_diagnostic(
                "X005",
                suggestion="Consider splitting skills into separate bundles or reducing descriptions",
                total=total,
                limit=TOKEN_BUDGET_THRESHOLD,
            )
        ]
    return []


# =============================================================================
# Rule 6: Hook scripts referenced in hooks.json must exist
# =============================================================================


def referenced_script(command: str, bundle_root: Path) -> Path | None:
    """The bundle file a hook command runs, when it names one.

    Tokens starting with the bundle root placeholder are resolved against the
    bundle root, as is a leading `./` token. The placeholder must be followed by
    `/` or end the token, so `$CLAUDE_PLUGIN_ROOT_DIR` is a different variable.
    Commands that reference nothing inside the bundle return None.
    """
    tokens = split_command(command)
    for token in tokens:
        for placeholder in (PLUGIN_ROOT_PLACEHOLDER, PLUGIN_ROOT_BARE):
            if not token.startswith(placeholder):
                continue
            rest = token[len(placeholder) :]
            if rest and not rest.startswith("/"):
                continue
            relative = rest.lstrip("/")
            return bundle_root / relative if relative else None
    if tokens and tokens[0].startswith("./"):
        return bundle_root / tokens[0]
    return None


def check_hook_scripts(hook_events: Iterable[dict[str, Any]], bundle_root: Path) -> list[Diagnostic]:
    diags: list[Diagnostic] = []
    for events in hook_events:
        for event, command in iter_hook_commands(events):
            script = referenced_script(command, bundle_root)
            if script is not None and not script.exists():
                logger.debug("%s hook script %s not found", event, script)
                diags.append(
                    new_diagnostic(
                        "X002",
                        suggestion="Ensure the script exists at the referenced path",
                        command=command,
                    )
                )
    return diags


# =============================================================================
# Entry points
# =============================================================================


def check_cross_component(
    bundle_root: Path,
    scans: list[CategoryScan],
    hook_events: Iterable[dict[str, Any]] = (),
) -> list[Diagnostic]:
    """Aggregate checks over already-validated bundle contents.

    Args:
        bundle_root: Root directory hook script paths resolve against
        scans: Category scans whose units carry their validation results
        hook_events: Event maps of every hooks file of the bundle

    Returns:
        Diagnostics in rule order: X001, X003, X004, X006, X005, X002
    """
    units = [unit for scan in scans for unit in scan.units]

    diags = check_empty_categories(scans)
    diags.extend(check_orphans(scans))
    diags.extend(check_naming_consistency(scans))
    diags.extend(check_duplicate_names(units))
    diags.extend(check_token_budget(units))
    diags.extend(check_hook_scripts(hook_events, bundle_root))
    return diags


def check_bundle(bundle_root: Path, profile: Profile = "strict") -> list[Diagnostic]:
    """Collect and validate a bundle's units, then run the cross-component checks."""
    manifest_path = find_manifest(bundle_root)
    manifest = validate_manifest(manifest_path, bundle_root).manifest if manifest_path else None

    layout = resolve_layout(bundle_root, manifest)
    scans = scan_bundle(layout)
    validate_units(scans, profile)
    hook_events = [validate_hooks(path).events for path in layout.hooks_files]
    return check_cross_component(bundle_root, scans, hook_events)


def main() -> int:
    """CLI entry point for cross-component validation."""
    parser = argparse.ArgumentParser(description="Check consistency between the components of a bundle")
    parser.add_argument("path", help="Bundle root directory")
    parser.add_argument("--profile", choices=["strict", "extended", "permissive"], help="Strictness profile")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show suggestions and debug logging")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    configure_logging(args.verbose)
    bundle_root = Path(args.path)
    if not bundle_root.is_dir():
        print(f"Error: {bundle_root} is not a directory", file=sys.stderr)
        return 1

    try:
        profile = resolve_profile(args.profile)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    report = DiagnosticReport(path="<cross-component>", diagnostics=check_bundle(bundle_root, profile))

    if args.json:
        print_json_results([report])
    else:
        print_text_results([report], use_color(), args.verbose)

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
