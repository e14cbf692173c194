"""Platform reader: parse documents already deployed on the platform.

Layout under the platform root::

    src/content/
        lessons/<course_id>/<NN-slug>.md
        guides/<course_id>/<slug>.md

Every document is parsed with the same front-matter parser used for the
source side, hashed over its body only, and its front matter is split
into platform-owned fields (the protected list) and authorable fields.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from course_sync.config_schema import DEFAULT_PROTECTED_FIELDS
from course_sync.file_handler import read_file_with_encoding
from course_sync.sync.discovery import parse_lesson_filename
from course_sync.sync.hashing import content_hash
from course_sync.sync.models import (
    DOCUMENT_COLLECTIONS,
    LESSONS,
    DiscoveryWarning,
    PlatformDocument,
    PlatformManifest,
)
from course_sync.sync.parser import NO_FRONT_MATTER, parse_front_matter

logger = logging.getLogger(__name__)

CONTENT_DIR = Path("src") / "content"


def content_root(platform_root: Path) -> Path:
    """Directory holding the platform's content collections."""
    return platform_root / CONTENT_DIR


def collection_dir(platform_root: Path, collection: str) -> Path:
    return content_root(platform_root) / collection


def platform_slug(collection: str, filename: str) -> str:
    """Derive the slug of a platform file.

    Lessons use the ordinal-prefix rule (``01-intro.md`` -> ``intro``) and
    fall back to the file stem; guides are always ``<slug>.md``.
    """
    if collection == LESSONS:
        parsed = parse_lesson_filename(filename)
        if parsed is not None:
            return parsed[1]
    return Path(filename).stem.lower()


def split_fields(
    front_matter: dict[str, Any], protected_fields: Iterable[str]
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split front matter into ``(platform_fields, authorable_fields)``.

    Key order of the input is preserved in both halves.
    """
    protected = set(protected_fields)
    platform: dict[str, Any] = {}
    authorable: dict[str, Any] = {}
    for key, value in front_matter.items():
        if key in protected:
            platform[key] = value
        else:
            authorable[key] = value
    return platform, authorable


def read_platform_document(
    path: Path,
    collection: str,
    course_id: str,
    protected_fields: Iterable[str] = DEFAULT_PROTECTED_FIELDS,
) -> PlatformDocument:
    """Parse one platform file.

    Raises:
        OSError: If the file cannot be read.
    """
    content, _ = read_file_with_encoding(path)
    parsed = parse_front_matter(content)
    platform_fields, authorable_fields = split_fields(
        parsed.front_matter, protected_fields
    )
    diagnostic = parsed.diagnostic
    if diagnostic == NO_FRONT_MATTER:
        diagnostic = None

    return PlatformDocument(
        path=str(path),
        relative_path=f"{course_id}/{path.name}",
        collection=collection,
        course_id=course_id,
        slug=platform_slug(collection, path.name),
        front_matter=parsed.front_matter,
        platform_fields=platform_fields,
        authorable_fields=authorable_fields,
        body=parsed.body,
        content_hash=content_hash(parsed.body),
        diagnostic=diagnostic,
    )


def _read_collection(
    platform_root: Path,
    collection: str,
    protected_fields: tuple[str, ...],
    course_id: str | None,
    warnings: list[DiscoveryWarning],
) -> list[PlatformDocument]:
    root = collection_dir(platform_root, collection)
    if not root.is_dir():
        logger.debug("No %s collection at %s", collection, root)
        return []

    documents: list[PlatformDocument] = []
    seen: dict[str, Path] = {}
    for path in sorted(root.rglob("*.md")):
        if not path.is_file():
            continue
        rel = path.relative_to(root)
        if any(part.startswith(".") for part in rel.parts):
            continue
        if len(rel.parts) != 2:
            warnings.append(
                DiscoveryWarning(
                    code="INVALID_PATH",
                    message=(
                        f"{collection}/{rel.as_posix()} is not under a "
                        "course directory"
                    ),
                    path=str(path),
                )
            )
            continue

        cid = rel.parts[0]
        if course_id is not None and cid != course_id:
            continue

        try:
            doc = read_platform_document(
                path, collection, cid, protected_fields
            )
        except OSError as exc:
            warnings.append(
                DiscoveryWarning(
                    code="READ_ERROR",
                    message=f"Failed to read file: {exc}",
                    path=str(path),
                )
            )
            continue

        if doc.diagnostic:
            warnings.append(
                DiscoveryWarning(
                    code="MALFORMED_FRONTMATTER",
                    message=doc.diagnostic,
                    path=str(path),
                )
            )
        if doc.key in seen:
            warnings.append(
                DiscoveryWarning(
                    code="DUPLICATE_SLUG",
                    message=(
                        f"{collection}/{rel.as_posix()} has the same key as "
                        f"{seen[doc.key].name}; only the first is compared"
                    ),
                    path=str(path),
                )
            )
        else:
            seen[doc.key] = path
        documents.append(doc)

    documents.sort(key=lambda d: d.relative_path)
    return documents


def read_platform_state(
    platform_root: Path,
    protected_fields: Iterable[str] = DEFAULT_PROTECTED_FIELDS,
    course_id: str | None = None,
    collections: Iterable[str] = DOCUMENT_COLLECTIONS,
) -> PlatformManifest:
    """Read every deployed lesson and guide under *platform_root*.

    Args:
        platform_root: Platform repository root.
        protected_fields: Front-matter keys owned by the platform.
        course_id: Restrict the pass to one course.
        collections: Collections to read (default: lessons and guides).

    Returns:
        Manifest with documents sorted by relative path.  A missing
        content root yields an empty manifest and a
        ``MISSING_CONTENT_DIR`` warning.
    """
    platform_root = Path(platform_root)
    warnings: list[DiscoveryWarning] = []
    root = content_root(platform_root)

    if not root.is_dir():
        warnings.append(
            DiscoveryWarning(
                code="MISSING_CONTENT_DIR",
                message=f"Platform content directory not found: {root}",
                path=str(root),
            )
        )
        for w in warnings:
            logger.warning("%s: %s", w.code, w.message)
        return PlatformManifest(
            platform_root=str(platform_root), warnings=warnings
        )

    protected = tuple(protected_fields)
    by_collection: dict[str, list[PlatformDocument]] = {}
    for collection in collections:
        if collection not in DOCUMENT_COLLECTIONS:
            raise ValueError(f"Unknown document collection: {collection}")
        by_collection[collection] = _read_collection(
            platform_root, collection, protected, course_id, warnings
        )

    for w in warnings:
        logger.warning("%s: %s", w.code, w.message)

    manifest = PlatformManifest(
        platform_root=str(platform_root),
        warnings=warnings,
        **by_collection,
    )
    logger.info(
        "Read %d lessons and %d guides from platform",
        len(manifest.lessons),
        len(manifest.guides),
    )
    return manifest
