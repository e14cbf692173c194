"""Source discovery for lessons and guides.

Each configured course maps a course id to a source directory::

    <source_dir>/
        lessons/
            01-intro.md
            02-setup.md
        module-1/
            guide.md
            guide-install.md

Lessons must be named ``NN-slug.md`` (two or more digits).  Guides are
``guide.md`` or ``guide-<slug>.md`` anywhere under the course directory.

Discovery never raises for per-file problems: bad filenames, unreadable
files and malformed front matter are collected as ``DiscoveryWarning``
values alongside whatever could be recovered.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from course_sync.config import SyncConfig
from course_sync.file_handler import read_file_with_encoding
from course_sync.sync.hashing import content_hash
from course_sync.sync.models import (
    GUIDES,
    LESSONS,
    DiscoveryWarning,
    SourceDocument,
    SourceManifest,
)
from course_sync.sync.parser import NO_FRONT_MATTER, parse_front_matter

logger = logging.getLogger(__name__)

LESSONS_DIRNAME = "lessons"

#: ``{nn}-{slug}.md``
LESSON_FILENAME_PATTERN = re.compile(r"^(\d{2,})-([a-z0-9-]+)\.md$", re.I)

#: ``guide.md`` or ``guide-{slug}.md``
GUIDE_FILENAME_PATTERN = re.compile(r"^guide(?:-(.+))?\.md$", re.I)


# ---------------------------------------------------------------------------
# Filename parsing
# ---------------------------------------------------------------------------


def parse_lesson_filename(filename: str) -> tuple[int, str] | None:
    """Parse ``(order, slug)`` from a lesson filename.

    >>> parse_lesson_filename("01-intro.md")
    (1, 'intro')
    >>> parse_lesson_filename("intro.md") is None
    True
    """
    match = LESSON_FILENAME_PATTERN.match(filename)
    if not match:
        return None
    return int(match.group(1)), match.group(2).lower()


def parse_guide_filename(filename: str) -> str | None:
    """Return the slug for a guide filename, or ``None``.

    ``guide.md`` has the slug ``guide``.
    """
    match = GUIDE_FILENAME_PATTERN.match(filename)
    if not match:
        return None
    return (match.group(1) or "guide").lower()


# ---------------------------------------------------------------------------
# Directory scanning
# ---------------------------------------------------------------------------


def _is_hidden(path: Path, root: Path) -> bool:
    return any(
        part.startswith(".") for part in path.relative_to(root).parts
    )


def scan_lesson_files(
    source_dir: Path, course_id: str
) -> tuple[list[Path], DiscoveryWarning | None]:
    """List markdown files in a course's lessons directory.

    Returns:
        ``(files, warning)``; the warning is set when the directory is
        missing or holds no markdown files.
    """
    lessons_dir = source_dir / LESSONS_DIRNAME
    if not lessons_dir.is_dir():
        return [], DiscoveryWarning(
            code="MISSING_LESSONS_DIR",
            message=f"No lessons directory found for course {course_id}",
            path=str(lessons_dir),
        )

    files = sorted(
        p
        for p in lessons_dir.iterdir()
        if p.is_file()
        and p.suffix.lower() == ".md"
        and not p.name.startswith(".")
    )
    if not files:
        return [], DiscoveryWarning(
            code="EMPTY_LESSONS_DIR",
            message=f"No lesson files found in {course_id}/{LESSONS_DIRNAME}/",
            path=str(lessons_dir),
        )
    return files, None


def scan_guide_files(source_dir: Path) -> list[Path]:
    """Recursively list guide files under *source_dir*, skipping hidden dirs."""
    if not source_dir.is_dir():
        return []
    return sorted(
        p
        for p in source_dir.rglob("*.md")
        if p.is_file()
        and GUIDE_FILENAME_PATTERN.match(p.name)
        and not _is_hidden(p, source_dir)
    )


# ---------------------------------------------------------------------------
# Document loading
# ---------------------------------------------------------------------------


def _load_document(
    path: Path,
    source_dir: Path,
    warnings: list[DiscoveryWarning],
    **fields,
) -> SourceDocument | None:
    """Read and parse one source file; record problems in *warnings*."""
    try:
        content, _ = read_file_with_encoding(path)
    except OSError as exc:
        warnings.append(
            DiscoveryWarning(
                code="READ_ERROR",
                message=f"Failed to read file: {exc}",
                path=str(path),
            )
        )
        return None

    parsed = parse_front_matter(content)
    if parsed.diagnostic and parsed.diagnostic != NO_FRONT_MATTER:
        warnings.append(
            DiscoveryWarning(
                code="MALFORMED_FRONTMATTER",
                message=parsed.diagnostic,
                path=str(path),
            )
        )

    return SourceDocument(
        path=str(path),
        relative_path=path.relative_to(source_dir).as_posix(),
        front_matter=parsed.front_matter,
        body=parsed.body,
        body_hash=content_hash(parsed.body),
        **fields,
    )


def _selected_courses(
    config: SyncConfig,
    course_id: str | None,
    warnings: list[DiscoveryWarning],
) -> list[tuple[str, Path]]:
    if course_id is None:
        return sorted(config.courses.items())
    source_dir = config.source_dir(course_id)
    if source_dir is None:
        warnings.append(
            DiscoveryWarning(
                code="UNKNOWN_COURSE",
                message=f"Course {course_id} is not configured",
            )
        )
        return []
    return [(course_id, source_dir)]


def discover_lessons(
    config: SyncConfig, course_id: str | None = None
) -> SourceManifest:
    """Discover lessons for every configured course (or just *course_id*).

    Returns:
        Manifest sorted by course id then lesson order.
    """
    documents: list[SourceDocument] = []
    warnings: list[DiscoveryWarning] = []

    for cid, source_dir in _selected_courses(config, course_id, warnings):
        files, warning = scan_lesson_files(source_dir, cid)
        if warning is not None:
            warnings.append(warning)
            continue

        seen: dict[str, Path] = {}
        for path in files:
            parsed_name = parse_lesson_filename(path.name)
            if parsed_name is None:
                warnings.append(
                    DiscoveryWarning(
                        code="INVALID_FILENAME",
                        message=(
                            f"Invalid lesson filename format: {path.name} "
                            "(expected NN-slug.md)"
                        ),
                        path=str(path),
                    )
                )
                continue

            order, slug = parsed_name
            if slug in seen:
                warnings.append(
                    DiscoveryWarning(
                        code="DUPLICATE_SLUG",
                        message=(
                            f"Lesson slug '{slug}' in course {cid} already "
                            f"used by {seen[slug].name}"
                        ),
                        path=str(path),
                    )
                )
                continue
            seen[slug] = path

            doc = _load_document(
                path,
                source_dir,
                warnings,
                collection=LESSONS,
                course_id=cid,
                slug=slug,
                order=order,
            )
            if doc is not None:
                documents.append(doc)

    documents.sort(key=lambda d: (d.course_id, d.order or 0, d.slug))
    for w in warnings:
        logger.warning("%s: %s", w.code, w.message)

    logger.info(
        "Discovered %d lessons (%d warnings)", len(documents), len(warnings)
    )
    return SourceManifest(documents=documents, warnings=warnings)


def discover_guides(
    config: SyncConfig, course_id: str | None = None
) -> SourceManifest:
    """Discover guides for every configured course (or just *course_id*).

    Returns:
        Manifest sorted by course id then relative path.
    """
    documents: list[SourceDocument] = []
    warnings: list[DiscoveryWarning] = []

    for cid, source_dir in _selected_courses(config, course_id, warnings):
        seen: dict[str, Path] = {}
        for path in scan_guide_files(source_dir):
            slug = parse_guide_filename(path.name)
            if slug is None:
                continue
            if slug in seen:
                warnings.append(
                    DiscoveryWarning(
                        code="DUPLICATE_SLUG",
                        message=(
                            f"Guide slug '{slug}' in course {cid} already "
                            f"used by {seen[slug].relative_to(source_dir).as_posix()}"
                        ),
                        path=str(path),
                    )
                )
                continue
            seen[slug] = path

            doc = _load_document(
                path,
                source_dir,
                warnings,
                collection=GUIDES,
                course_id=cid,
                slug=slug,
            )
            if doc is not None:
                documents.append(doc)

    documents.sort(key=lambda d: (d.course_id, d.relative_path))
    for w in warnings:
        logger.warning("%s: %s", w.code, w.message)

    return SourceManifest(documents=documents, warnings=warnings)


def discover_documents(
    config: SyncConfig, collection: str, course_id: str | None = None
) -> SourceManifest:
    """Dispatch to the discovery function for *collection*."""
    if collection == LESSONS:
        return discover_lessons(config, course_id)
    if collection == GUIDES:
        return discover_guides(config, course_id)
    raise ValueError(f"Unknown document collection: {collection}")
