"""Content normalisation and hashing.

The same normalisation is applied before every hash and every body
comparison, so purely cosmetic edits (line endings, trailing spaces,
extra blank lines) never register as content changes.
"""

from __future__ import annotations

import hashlib
import re

_BLANK_RUN = re.compile(r"\n{3,}")


def normalize_content(content: str) -> str:
    """Normalise a document body for comparison.

    Steps (applied in order):

    1. Strip BOM (``\\ufeff``).
    2. Replace ``\\r\\n`` and lone ``\\r`` with ``\\n``.
    3. Right-strip each line.
    4. Collapse runs of blank lines to a single blank line.
    5. Strip leading and trailing whitespace.
    """
    if not content:
        return ""
    text = content.replace("\ufeff", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()


def hash_text(text: str) -> str:
    """SHA-256 hex digest of *text* encoded as UTF-8 (no normalisation)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def content_hash(body: str) -> str:
    """Hash of the normalised *body*.  Pure and deterministic."""
    return hash_text(normalize_content(body))

