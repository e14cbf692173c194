"""Front-matter parser for course documents.

A document may start with a YAML block fenced by ``---`` lines::

    ---
    title: Introduction
    order: 1
    ---
    Body text...

``parse_front_matter`` never raises.  Every failure degrades to an empty
front-matter mapping plus a diagnostic string, so one bad file never stops
a discovery pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml

FRONT_MATTER_MARKER = "---"

NO_FRONT_MATTER = "no front matter found"
UNTERMINATED = "unterminated front matter block"
NOT_AN_OBJECT = "front matter must be an object"


@dataclass(frozen=True)
class ParsedDocument:
    """Result of splitting a document.

    Attributes:
        front_matter: Parsed mapping; empty on any failure.
        body: Text after the closing marker (whole input if none).
        raw: Raw YAML text between the markers, if a block was found.
        diagnostic: Why the front matter could not be used, or ``None``.
    """

    front_matter: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    raw: str | None = None
    diagnostic: str | None = None


def _is_marker(line: str) -> bool:
    return line.rstrip() == FRONT_MATTER_MARKER


def parse_front_matter(text: str) -> ParsedDocument:
    """Split *text* into front matter and body.

    Args:
        text: Full document content.

    Returns:
        A ``ParsedDocument``; see the module docstring for failure modes.
    """
    content = text.lstrip("\ufeff")
    lines = content.splitlines(keepends=True)

    if not lines or not _is_marker(lines[0]):
        return ParsedDocument(body=text, diagnostic=NO_FRONT_MATTER)

    closing = None
    for idx in range(1, len(lines)):
        if _is_marker(lines[idx]):
            closing = idx
            break

    if closing is None:
        return ParsedDocument(body=text, diagnostic=UNTERMINATED)

    raw = "".join(lines[1:closing])
    body = "".join(lines[closing + 1 :])

    if not raw.strip():
        return ParsedDocument(body=body, raw=raw)

    try:
        parsed = yaml.safe_load(raw)
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        # Constructors raise ValueError for values like ``date: 2024-13-45``.
        # Collapse PyYAML's multi-line messages onto one line
        detail = " ".join(str(exc).split())
        return ParsedDocument(
            body=body, raw=raw, diagnostic=f"invalid YAML: {detail}"
        )

    if parsed is None:
        # Only comments between the markers
        return ParsedDocument(body=body, raw=raw)

    if not isinstance(parsed, dict):
        return ParsedDocument(body=body, raw=raw, diagnostic=NOT_AN_OBJECT)

    front_matter = {str(k): v for k, v in parsed.items()}
    return ParsedDocument(front_matter=front_matter, body=body, raw=raw)
