#!/usr/bin/env python3
"""
Component Bundle Validation - Bundle Layout and Discovery

Resolves where each component category lives in a bundle (default
directories plus manifest path overrides), discovers the units of each
category, and runs the per-unit validators. The result is the input of the
cross-component checker, which never re-validates anything itself.

Layout rules:
- skills/ holds one skill per immediate subdirectory (SKILL.md inside)
- agents/ and commands/ hold flat .md files, one component per file
- hooks live in one JSON file (hooks/hooks.json or hooks.json)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from cbv_validation_common import Diagnostic, Profile, relative_label
from validate_agent import validate_agent
from validate_command import validate_command
from validate_hook import find_hooks_file
from validate_manifest import PluginManifest, is_absolute_path
from validate_skill import find_skill_file, validate_skill

logger = logging.getLogger(__name__)

ComponentKind = Literal["skill", "agent", "command"]

# Category directory name -> kind of unit it holds, in reporting order
CATEGORY_DIRECTORIES: dict[str, ComponentKind] = {
    "skills": "skill",
    "agents": "agent",
    "commands": "command",
}

# Files that may sit in a category directory without being components
IGNORED_FILES = {".gitkeep", "README.md", "readme.md", ".DS_Store"}


@dataclass
class ComponentUnit:
    """One discovered component and, once validated, its results."""

    kind: ComponentKind
    name: str
    path: Path
    label: str
    header: dict[str, Any] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)


@dataclass
class CategoryScan:
    """Everything found in one category directory."""

    kind: ComponentKind
    directory: Path
    label: str
    units: list[ComponentUnit] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)


@dataclass
class BundleLayout:
    """Authoritative locations of every component category of a bundle."""

    root: Path
    directories: dict[str, list[Path]] = field(default_factory=dict)
    hooks_files: list[Path] = field(default_factory=list)


def _add_unique(paths: list[Path], candidate: Path) -> None:
    if all(candidate.resolve() != existing.resolve() for existing in paths):
        paths.append(candidate)


def resolve_layout(root: Path, manifest: PluginManifest | None = None) -> BundleLayout:
    """Combine default locations with manifest overrides.

    Overrides supplement the defaults. Absolute or missing override paths are
    skipped here; the manifest validator already reports them.
    """
    layout = BundleLayout(root=root)

    for directory in CATEGORY_DIRECTORIES:
        found: list[Path] = []
        default = root / directory
        if default.is_dir():
            found.append(default)
        for value in manifest.overrides.get(directory, []) if manifest else []:
            candidate = root / value
            if not is_absolute_path(value) and candidate.is_dir():
                _add_unique(found, candidate)
        layout.directories[directory] = found

    default_hooks = find_hooks_file(root)
    if default_hooks is not None:
        layout.hooks_files.append(default_hooks)
    for value in manifest.overrides.get("hooks", []) if manifest else []:
        candidate = root / value
        if not is_absolute_path(value) and candidate.is_file():
            _add_unique(layout.hooks_files, candidate)

    logger.debug("resolved layout for %s: %s", root, layout)
    return layout


def scan_category(kind: ComponentKind, directory: Path, root: Path) -> CategoryScan:
    """Discover the units and orphans of one category directory.

    Skills are subdirectories containing a skill file; anything else at that
    level is an orphan. Agents and commands are .md files; other files are
    orphans, subdirectories are ignored.
    """
    scan = CategoryScan(kind=kind, directory=directory, label=relative_label(directory, root))

    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.warning("cannot list %s: %s", directory, e)
        return scan

    for entry in entries:
        if entry.name in IGNORED_FILES:
            continue

        if kind == "skill":
            if entry.is_dir() and find_skill_file(entry) is not None:
                scan.units.append(ComponentUnit(kind, entry.name, entry, relative_label(entry, root)))
            else:
                scan.orphans.append(entry.name)
        elif entry.is_file():
            if entry.suffix == ".md":
                scan.units.append(ComponentUnit(kind, entry.stem, entry, relative_label(entry, root)))
            else:
                scan.orphans.append(entry.name)

    return scan


def scan_bundle(layout: BundleLayout) -> list[CategoryScan]:
    """Scan every resolved category directory, in category order."""
    scans: list[CategoryScan] = []
    for directory_name, kind in CATEGORY_DIRECTORIES.items():
        for directory in layout.directories.get(directory_name, []):
            scans.append(scan_category(kind, directory, layout.root))
    return scans


def validate_unit(unit: ComponentUnit, profile: Profile = "strict") -> ComponentUnit:
    """Run the validator matching the unit's kind and store its results on the unit."""
    if unit.kind == "skill":
        report: Any = validate_skill(unit.path, profile)
    elif unit.kind == "agent":
        report = validate_agent(unit.path)
    else:
        report = validate_command(unit.path)

    unit.header = report.header
    unit.diagnostics = list(report.diagnostics)
    return unit


def validate_units(scans: list[CategoryScan], profile: Profile = "strict") -> list[ComponentUnit]:
    """Validate every discovered unit; returns them in discovery order."""
    units: list[ComponentUnit] = []
    for scan in scans:
        for unit in scan.units:
            units.append(validate_unit(unit, profile))
    return units
