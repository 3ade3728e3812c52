#!/usr/bin/env python3
"""
Component Bundle Validation - Document Parser

Splits component documents into a header (key/value mapping) and a body.

Dialects:
    required  - YAML header between `---` lines must open the document
    optional  - a missing header means an empty header and all-body content
    json      - the whole document is a JSON object, there is no body

Parsing never normalizes keys or values; validators decide what to do with
them. Failures raise DocumentParseError (or DocumentShapeError when the syntax
is fine but the top-level value has the wrong shape).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml

Dialect = Literal["required", "optional", "json"]

DELIMITER = "---"

# Lines split on "\n" only, terminators kept
LINE_PATTERN = re.compile(r"[^\n]*\n|[^\n]+\Z")


class DocumentParseError(ValueError):
    """The document could not be parsed at all."""


class DocumentShapeError(DocumentParseError):
    """The document parsed, but its top-level value has the wrong shape."""


@dataclass(frozen=True)
class ParsedDocument:
    """Header mapping plus the untouched body text."""

    header: dict[str, Any] = field(default_factory=dict)
    body: str = ""


@dataclass(frozen=True)
class HeaderSpan:
    """Character offsets of a delimited header inside the raw content.

    Attributes:
        start: Offset of the first header line (just after the opening delimiter line)
        end: Offset of the closing delimiter line
        body_start: Offset of the first body character
    """

    start: int
    end: int
    body_start: int


class HeaderLoader(yaml.SafeLoader):
    """Safe loader that keeps scalar mapping keys exactly as spelled in the source.

    The stock loader resolves `1:` and `true:` to int and bool keys, which hash
    equal and collapse into one entry.
    """

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        if not isinstance(node, yaml.MappingNode):
            raise yaml.constructor.ConstructorError(
                None, None, f"expected a mapping node, but found {node.id}", node.start_mark
            )
        self.flatten_mapping(node)
        mapping: dict[Any, Any] = {}
        for key_node, value_node in node.value:
            if isinstance(key_node, yaml.ScalarNode):
                key = key_node.value
            else:
                key = str(self.construct_object(key_node, deep=True))
            mapping[key] = self.construct_object(value_node, deep=deep)
        return mapping


def read_document_text(path: Path) -> str:
    """Read a document as UTF-8 without newline translation.

    Raises:
        OSError: If the file cannot be read
        UnicodeDecodeError: If the file is not valid UTF-8
    """
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _is_delimiter(line: str) -> bool:
    return line.rstrip() == DELIMITER


def split_header(content: str) -> HeaderSpan | None:
    """Locate the delimited header.

    Returns:
        HeaderSpan, or None when the content does not open with a delimiter line

    Raises:
        DocumentParseError: If the opening delimiter has no closing partner
    """
    lines = LINE_PATTERN.findall(content)
    if not lines or not _is_delimiter(lines[0]):
        return None

    offset = len(lines[0])
    start = offset
    for line in lines[1:]:
        if _is_delimiter(line):
            return HeaderSpan(start=start, end=offset, body_start=offset + len(line))
        offset += len(line)

    raise DocumentParseError("frontmatter is missing the closing `---` delimiter")


def _load_yaml_header(text: str) -> dict[str, Any]:
    try:
        data = yaml.load(text, Loader=HeaderLoader)
    except yaml.YAMLError as e:
        raise DocumentParseError(f"invalid YAML in frontmatter: {e}") from e
    except RecursionError as e:
        raise DocumentParseError("invalid YAML in frontmatter: nesting is too deep") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DocumentShapeError(f"frontmatter must be a mapping, got {type(data).__name__}")

    return data


def _parse_delimited(content: str, header_required: bool) -> ParsedDocument:
    span = split_header(content)
    if span is None:
        if header_required:
            raise DocumentParseError("missing frontmatter (document must start with `---`)")
        return ParsedDocument({}, content)

    header = _load_yaml_header(content[span.start : span.end])
    return ParsedDocument(header, content[span.body_start :])


def _parse_json(content: str) -> ParsedDocument:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise DocumentParseError(f"invalid JSON syntax: {e.msg} at line {e.lineno}, column {e.colno}") from e
    except RecursionError as e:
        raise DocumentParseError("invalid JSON syntax: nesting is too deep") from e

    if not isinstance(data, dict):
        raise DocumentShapeError(f"top-level value must be an object, got {type(data).__name__}")

    return ParsedDocument(data, "")


def parse_document(content: str, dialect: Dialect) -> ParsedDocument:
    """Parse document content using the given dialect.

    Args:
        content: Raw document text
        dialect: "required", "optional" or "json"

    Returns:
        ParsedDocument with the header mapping and raw body

    Raises:
        DocumentParseError: On missing delimiters or invalid YAML/JSON
        DocumentShapeError: When the header/document is not a mapping
    """
    if dialect == "required":
        return _parse_delimited(content, header_required=True)
    if dialect == "optional":
        return _parse_delimited(content, header_required=False)
    if dialect == "json":
        return _parse_json(content)
    raise ValueError(f"unknown dialect: {dialect!r}")
