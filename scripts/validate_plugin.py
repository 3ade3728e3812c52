#!/usr/bin/env python3
"""
Component Bundle Validation - Bundle Validator

Validates a whole bundle in two stages:
1. Every document on its own: the manifest, each hooks file, and each skill,
   agent and command unit discovered from the resolved layout
2. The cross-component checks over the collected results

Usage:
    uv run python scripts/validate_plugin.py /path/to/bundle
    uv run python scripts/validate_plugin.py /path/to/bundle --verbose
    uv run python scripts/validate_plugin.py /path/to/bundle --json
    uv run python scripts/validate_plugin.py /path/to/bundle --profile extended

Exit codes:
    0 - No errors
    1 - At least one error found
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from cbv_bundle import resolve_layout, scan_bundle, validate_units
from cbv_validation_common import (
    DiagnosticReport,
    Profile,
    batch_exit_code,
    colorize,
    configure_logging,
    print_json_results,
    print_text_results,
    relative_label,
    resolve_profile,
    use_color,
)
from validate_hook import validate_hooks
from validate_manifest import find_manifest, validate_manifest
from validate_xref import check_cross_component

logger = logging.getLogger(__name__)

CROSS_COMPONENT_LABEL = "<cross-component>"


def validate_bundle(bundle_root: Path, profile: Profile = "strict") -> list[DiagnosticReport]:
    """Validate every document of a bundle, then the bundle as a whole.

    Args:
        bundle_root: Bundle root directory
        profile: Strictness profile for skill validation

    Returns:
        One report per document (labelled relative to the root), followed by
        the cross-component report
    """
    reports: list[DiagnosticReport] = []

    manifest = None
    manifest_path = find_manifest(bundle_root)
    if manifest_path is not None:
        manifest_report = validate_manifest(manifest_path, bundle_root)
        manifest_report.path = relative_label(manifest_path, bundle_root)
        manifest = manifest_report.manifest
        reports.append(manifest_report)
    else:
        logger.debug("no manifest in %s, using default layout", bundle_root)

    layout = resolve_layout(bundle_root, manifest)

    hook_events = []
    for hooks_path in layout.hooks_files:
        hooks_report = validate_hooks(hooks_path)
        hooks_report.path = relative_label(hooks_path, bundle_root)
        hook_events.append(hooks_report.events)
        reports.append(hooks_report)

    scans = scan_bundle(layout)
    for unit in validate_units(scans, profile):
        reports.append(DiagnosticReport(path=unit.label, diagnostics=unit.diagnostics))

    # Stage two only aggregates; it never re-validates a unit
    cross = check_cross_component(bundle_root, scans, hook_events)
    reports.append(DiagnosticReport(path=CROSS_COMPONENT_LABEL, diagnostics=cross))
    return reports


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate a component bundle")
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

    reports = validate_bundle(bundle_root, profile)
    color = use_color()

    if args.json:
        print_json_results(reports)
    elif not any(r.diagnostics for r in reports):
        print(colorize("Plugin validation passed.", "ok", color))
    else:
        print_text_results(reports, color, args.verbose, noun="documents")

    return batch_exit_code(reports)


if __name__ == "__main__":
    sys.exit(main())
