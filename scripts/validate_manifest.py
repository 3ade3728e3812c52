#!/usr/bin/env python3
"""
Component Bundle Validation - Manifest Validator

Validates a bundle manifest (plugin.json). The file is parsed as generic JSON
first, so that "not JSON" and "wrong shape" are reported separately, then
decoded into a typed PluginManifest before the content rules run.

Usage:
    uv run python scripts/validate_manifest.py path/to/bundle/
    uv run python scripts/validate_manifest.py path/to/.claude-plugin/plugin.json
    uv run python scripts/validate_manifest.py path/to/bundle/ --json

Exit codes:
    0 - No errors
    1 - At least one error found
"""

from __future__ import annotations

import argparse
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path, PureWindowsPath
from typing import Any

from cbv_document import DocumentParseError, DocumentShapeError, parse_document, read_document_text
from cbv_validation_common import (
    Diagnostic,
    DiagnosticReport,
    configure_logging,
    is_valid_kebab_case,
    new_diagnostic,
    print_json_results,
    print_text_results,
    type_name,
    use_color,
)

# Manifest locations, in lookup order (relative to the bundle root)
MANIFEST_LOCATIONS = (Path(".claude-plugin") / "plugin.json", Path("plugin.json"))

# Strict x.y.z version
VERSION_PATTERN = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+$")

# Credential-looking assignments inside string values
CREDENTIAL_PATTERN = re.compile(r"(?i)(api[_-]?key|token|secret|password|credential)\s*[:=]\s*[\"'][^\"']+[\"']")

# Keys naming a credential (apiKey, auth_token, clientSecret, ...)
CREDENTIAL_KEY_PATTERN = re.compile(r"(?i)(api[_-]?key|token|secret|password|credential)")

# Environment variable placeholders are not credentials
PLACEHOLDER_PATTERN = re.compile(r"^\$\{?[A-Za-z_][A-Za-z0-9_]*\}?$")

INSECURE_SCHEMES = ("http://", "ws://")

RECOMMENDED_FIELDS = (
    ("author", "Add an author field for attribution"),
    ("homepage", "Add a homepage URL for documentation"),
    ("license", "Add a license field for legal clarity"),
)

# Path override fields that must point at directories
DIRECTORY_OVERRIDES = ("commands", "agents", "skills", "outputStyles")

# Path override fields that may point at a config file
FILE_OVERRIDES = ("hooks", "lspServers")

# Order in which override fields are checked
OVERRIDE_FIELDS = ("commands", "agents", "skills", "hooks", "outputStyles", "lspServers", "mcpServers")


class ManifestShapeError(ValueError):
    """The manifest is valid JSON but a field has the wrong type."""


@dataclass
class PluginManifest:
    """Typed view of plugin.json (unknown keys stay available in `raw`)."""

    name: str | None = None
    description: str | None = None
    version: str | None = None
    author: str | dict[str, Any] | None = None
    homepage: str | None = None
    repository: str | None = None
    license: str | None = None
    keywords: list[str] = field(default_factory=list)
    overrides: dict[str, list[str]] = field(default_factory=dict)
    mcp_servers: Any = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> PluginManifest:
        """Decode a generic JSON object.

        Raises:
            ManifestShapeError: If a known field has the wrong type
        """

        def optional_str(key: str) -> str | None:
            value = raw.get(key)
            if value is not None and not isinstance(value, str):
                raise ManifestShapeError(f"`{key}` must be a string, got {type_name(value)}")
            return value

        author = raw.get("author")
        if author is not None:
            if isinstance(author, dict):
                if not isinstance(author.get("name"), str):
                    raise ManifestShapeError("`author.name` must be a string")
            elif not isinstance(author, str):
                raise ManifestShapeError(f"`author` must be a string or an object, got {type_name(author)}")

        # npm-style {"type": "git", "url": ...} objects are accepted too
        repository = raw.get("repository")
        if isinstance(repository, dict):
            url = repository.get("url")
            repository = url if isinstance(url, str) else None
        elif repository is not None and not isinstance(repository, str):
            raise ManifestShapeError(f"`repository` must be a string or an object, got {type_name(repository)}")

        # null stands for an absent field throughout
        keywords = raw.get("keywords")
        if keywords is None:
            keywords = []
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise ManifestShapeError("`keywords` must be a list of strings")

        overrides: dict[str, list[str]] = {}
        for key in OVERRIDE_FIELDS:
            value = raw.get(key)
            if value is None:
                continue
            if isinstance(value, str):
                overrides[key] = [value]
            elif key == "mcpServers":
                # Inline server definitions are not a path override
                continue
            elif isinstance(value, list) and all(isinstance(v, str) for v in value):
                overrides[key] = list(value)
            elif key in FILE_OVERRIDES and isinstance(value, dict):
                # Inline configuration
                continue
            else:
                raise ManifestShapeError(f"`{key}` must be a path or a list of paths, got {type_name(value)}")

        return cls(
            name=optional_str("name"),
            description=optional_str("description"),
            version=optional_str("version"),
            author=author,
            homepage=optional_str("homepage"),
            repository=repository,
            license=optional_str("license"),
            keywords=list(keywords),
            overrides=overrides,
            mcp_servers=raw.get("mcpServers"),
            raw=raw,
        )


@dataclass
class ManifestValidationReport(DiagnosticReport):
    """Manifest report; keeps the decoded manifest for bundle layout resolution."""

    manifest_path: str = ""
    manifest: PluginManifest | None = None


def find_manifest(bundle_root: Path) -> Path | None:
    """Return the manifest file of a bundle, if any."""
    for location in MANIFEST_LOCATIONS:
        candidate = bundle_root / location
        if candidate.is_file():
            return candidate
    return None


def bundle_root_for(manifest_path: Path) -> Path:
    """The bundle root a manifest belongs to."""
    parent = manifest_path.parent
    return parent.parent if parent.name == ".claude-plugin" else parent


def is_absolute_path(value: str) -> bool:
    """Absolute on this platform or as a Windows path (drive or UNC)."""
    return Path(value).is_absolute() or PureWindowsPath(value).is_absolute()


# =============================================================================
# Rules
# =============================================================================


def validate_identity(manifest: PluginManifest) -> list[Diagnostic]:
    diags: list[Diagnostic] = []

    if manifest.name is None:
        diags.append(new_diagnostic("P002", field="name", state="missing"))
    elif not manifest.name.strip():
        diags.append(new_diagnostic("P002", field="name", state="empty"))
    elif not is_valid_kebab_case(manifest.name):
        diags.append(
            new_diagnostic(
                "P003",
                field="name",
                suggestion='Use lowercase letters, digits, and hyphens (e.g., "my-plugin")',
                name=manifest.name,
            )
        )

    if manifest.version is not None and not VERSION_PATTERN.match(manifest.version):
        diags.append(
            new_diagnostic(
                "P004",
                field="version",
                suggestion='Use x.y.z format (e.g., "1.0.0")',
                version=manifest.version,
            )
        )

    if manifest.description is None:
        diags.append(new_diagnostic("P005", field="description", state="missing"))
    elif not manifest.description.strip():
        diags.append(new_diagnostic("P005", field="description", state="empty"))

    return diags


def validate_path_overrides(manifest: PluginManifest, bundle_root: Path) -> list[Diagnostic]:
    """Overrides must be relative and point at something that exists."""
    diags: list[Diagnostic] = []
    for key, values in manifest.overrides.items():
        for value in values:
            if is_absolute_path(value):
                diags.append(
                    new_diagnostic(
                        "P006",
                        field=key,
                        suggestion='Use a relative path (e.g., "./my-commands")',
                        key=key,
                        value=value,
                    )
                )
                continue

            resolved = bundle_root / value
            exists = resolved.is_dir() if key in DIRECTORY_OVERRIDES else resolved.exists()
            if not exists:
                diags.append(new_diagnostic("P007", field=key, key=key, value=value))
    return diags


def _is_placeholder(value: str) -> bool:
    return bool(PLACEHOLDER_PATTERN.match(value.strip()))


def _is_credential_entry(key: Any, child: Any) -> bool:
    """A literal, non-placeholder string stored under a credential-named key."""
    return (
        isinstance(child, str)
        and bool(child.strip())
        and bool(CREDENTIAL_KEY_PATTERN.search(str(key)))
        and not _is_placeholder(child)
        and not CREDENTIAL_PATTERN.search(child)
    )


def scan_credentials(value: Any, path: str = "") -> list[Diagnostic]:
    """Flag credential-looking strings, one diagnostic per JSON path.

    A string is flagged when it contains an assignment such as `token: "abc"`,
    or when it is the non-placeholder value of a key naming a credential.
    The walk is depth-first over an explicit stack, so nesting depth is not
    limited by the interpreter's recursion limit.
    """
    diags: list[Diagnostic] = []
    # (value, JSON path, already known to be a credential)
    stack: list[tuple[Any, str, bool]] = [(value, path, False)]
    while stack:
        current, current_path, flagged = stack.pop()
        if flagged:
            diags.append(_credential_diagnostic(current_path))
            continue

        children: list[tuple[Any, str, bool]] = []
        if isinstance(current, dict):
            for key, child in current.items():
                child_path = f"{current_path}.{key}" if current_path else str(key)
                children.append((child, child_path, _is_credential_entry(key, child)))
        elif isinstance(current, list):
            children = [(child, f"{current_path}[{index}]", False) for index, child in enumerate(current)]
        elif isinstance(current, str) and CREDENTIAL_PATTERN.search(current):
            diags.append(_credential_diagnostic(current_path))

        # Reversed so children come off the stack in source order
        stack.extend(reversed(children))
    return diags


def _credential_diagnostic(path: str) -> Diagnostic:
    return new_diagnostic(
        "P008",
        field=path,
        suggestion="Use environment variables or a secrets manager instead of inline credentials",
        path=path,
    )


def _is_insecure(url: str) -> bool:
    return url.lower().startswith(INSECURE_SCHEMES)


def validate_urls(manifest: PluginManifest) -> list[Diagnostic]:
    """Warn about plain http:// and ws:// URLs."""
    diags: list[Diagnostic] = []
    if isinstance(manifest.mcp_servers, dict):
        for server_name, config in manifest.mcp_servers.items():
            url = config.get("url") if isinstance(config, dict) else None
            if isinstance(url, str) and _is_insecure(url):
                diags.append(
                    new_diagnostic(
                        "P009",
                        field="mcpServers",
                        suggestion="Use HTTPS or WSS for secure communication",
                        location=f'MCP server "{server_name}"',
                        url=url,
                    )
                )

    for key in ("homepage", "repository"):
        url = getattr(manifest, key)
        if url is not None and _is_insecure(url):
            diags.append(
                new_diagnostic("P009", field=key, suggestion="Use HTTPS", location=f"`{key}`", url=url)
            )
    return diags


def validate_recommended_fields(manifest: PluginManifest) -> list[Diagnostic]:
    return [
        new_diagnostic("P010", field=key, suggestion=suggestion, key=key)
        for key, suggestion in RECOMMENDED_FIELDS
        if manifest.raw.get(key) is None
    ]


# =============================================================================
# Entry points
# =============================================================================


def validate_manifest_data(raw: dict[str, Any], bundle_root: Path) -> tuple[PluginManifest | None, list[Diagnostic]]:
    """Decode and validate an already-parsed manifest object.

    Returns:
        Tuple of (manifest or None when decoding failed, diagnostics)
    """
    try:
        manifest = PluginManifest.from_json(raw)
    except ManifestShapeError as e:
        return None, [new_diagnostic("P001", detail=f"invalid manifest structure: {e}")]

    diags = validate_identity(manifest)
    diags.extend(validate_path_overrides(manifest, bundle_root))
    diags.extend(scan_credentials(raw))
    diags.extend(validate_urls(manifest))
    diags.extend(validate_recommended_fields(manifest))
    return manifest, diags


def validate_manifest(manifest_path: Path, bundle_root: Path | None = None) -> ManifestValidationReport:
    """Validate one manifest file.

    Args:
        manifest_path: Path to plugin.json
        bundle_root: Directory overrides are resolved against (derived from
            the manifest location when omitted)

    Returns:
        ManifestValidationReport; read/parse failures become a single P001
    """
    report = ManifestValidationReport(path=str(manifest_path), manifest_path=str(manifest_path))
    root = bundle_root if bundle_root is not None else bundle_root_for(manifest_path)

    try:
        content = read_document_text(manifest_path)
    except (OSError, UnicodeDecodeError) as e:
        report.add("P001", detail=f"cannot read {manifest_path.name}: {e}")
        return report

    try:
        doc = parse_document(content, "json")
    except DocumentShapeError as e:
        report.add("P001", detail=f"invalid manifest structure: {e}")
        return report
    except DocumentParseError as e:
        report.add("P001", detail=str(e))
        return report

    report.manifest, diags = validate_manifest_data(doc.header, root)
    report.extend(diags)
    return report


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate a bundle manifest (plugin.json)")
    parser.add_argument("path", help="Bundle directory or plugin.json file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show suggestions and debug logging")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    configure_logging(args.verbose)
    path = Path(args.path)
    if not path.exists():
        print(f"Error: {path} does not exist", file=sys.stderr)
        return 1

    manifest_path = find_manifest(path) if path.is_dir() else path
    if manifest_path is None:
        print(f"Error: no plugin.json found in {path}", file=sys.stderr)
        return 1

    report = validate_manifest(manifest_path)

    if args.json:
        print_json_results([report])
    else:
        print_text_results([report], use_color(), args.verbose)

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
