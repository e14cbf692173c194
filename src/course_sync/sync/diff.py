"""Diff engine: compare source documents with their platform counterparts.

Documents are joined on the canonical key ``courseId/slug``.  Bodies are
compared by the hash of their normalised content; front matter is compared
field by field, ignoring platform-owned fields.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from course_sync.config import SyncConfig
from course_sync.sync.discovery import discover_documents
from course_sync.sync.models import (
    ChangeKind,
    DiffItem,
    DiffResult,
    DiffStatus,
    DiffSummary,
    FieldChange,
    PlatformDocument,
    SourceDocument,
)
from course_sync.sync.platform import read_platform_state

logger = logging.getLogger(__name__)

_STATUS_PRIORITY = {
    DiffStatus.ADDED: 0,
    DiffStatus.MODIFIED: 1,
    DiffStatus.REMOVED: 2,
    DiffStatus.UNCHANGED: 3,
}


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def match_documents(
    source_docs: Iterable[SourceDocument],
    platform_docs: Iterable[PlatformDocument],
) -> list[tuple[str, SourceDocument | None, PlatformDocument | None]]:
    """Outer-join documents by canonical key.

    Returns:
        ``(key, source, platform)`` triples sorted by key; either side may
        be ``None``.  On duplicate keys the first document wins.
    """
    sources: dict[str, SourceDocument] = {}
    for doc in source_docs:
        sources.setdefault(doc.key, doc)
    platforms: dict[str, PlatformDocument] = {}
    for doc in platform_docs:
        platforms.setdefault(doc.key, doc)

    keys = sorted(set(sources) | set(platforms))
    return [(k, sources.get(k), platforms.get(k)) for k in keys]


# ---------------------------------------------------------------------------
# Field comparison
# ---------------------------------------------------------------------------


def values_equal(a: Any, b: Any) -> bool:
    """Structural equality for front-matter values.

    Unlike ``==``, a boolean never equals a number (``True != 1``), and
    the rule applies recursively inside lists and mappings.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(values_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (dict, list, tuple)) or isinstance(b, (dict, list, tuple)):
        return False
    return a == b


def compare_front_matter(
    source: dict[str, Any],
    platform: dict[str, Any],
    protected_fields: Iterable[str] = (),
) -> list[FieldChange]:
    """List authorable fields that differ between the two mappings.

    A key present on only one side is ``added`` or ``removed`` even when
    the other side's value would be ``None``.  Protected fields are
    skipped entirely.
    """
    protected = set(protected_fields)
    changes: list[FieldChange] = []

    for name, value in source.items():
        if name in protected:
            continue
        if name not in platform:
            changes.append(
                FieldChange(
                    field=name, source_value=value, kind=ChangeKind.ADDED
                )
            )
        elif not values_equal(value, platform[name]):
            changes.append(
                FieldChange(
                    field=name,
                    source_value=value,
                    platform_value=platform[name],
                    kind=ChangeKind.MODIFIED,
                )
            )

    for name, value in platform.items():
        if name in protected or name in source:
            continue
        changes.append(
            FieldChange(
                field=name, platform_value=value, kind=ChangeKind.REMOVED
            )
        )

    return changes


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify(
    key: str,
    source: SourceDocument | None,
    platform: PlatformDocument | None,
    protected_fields: Iterable[str] = (),
) -> DiffItem:
    """Classify one matched pair.

    Raises:
        ValueError: If both sides are ``None``.
    """
    if source is None and platform is None:
        raise ValueError(f"Nothing to compare for {key}")

    ref = source if source is not None else platform
    base = {
        "key": key,
        "course_id": ref.course_id,
        "slug": ref.slug,
        "source_path": source.path if source is not None else None,
        "platform_path": platform.path if platform is not None else None,
    }

    if platform is None:
        return DiffItem(status=DiffStatus.ADDED, body_changed=True, **base)
    if source is None:
        return DiffItem(status=DiffStatus.REMOVED, **base)

    changes = compare_front_matter(
        source.front_matter, platform.authorable_fields, protected_fields
    )

    if platform.content_hash is None or source.body_hash != platform.content_hash:
        return DiffItem(
            status=DiffStatus.MODIFIED,
            changes=changes,
            body_changed=True,
            **base,
        )
    if changes:
        return DiffItem(
            status=DiffStatus.MODIFIED,
            changes=changes,
            body_changed=False,
            **base,
        )
    return DiffItem(status=DiffStatus.UNCHANGED, **base)


def summarize(items: Sequence[DiffItem]) -> DiffSummary:
    counts = {status: 0 for status in DiffStatus}
    for item in items:
        counts[item.status] += 1
    return DiffSummary(
        total=len(items),
        added=counts[DiffStatus.ADDED],
        modified=counts[DiffStatus.MODIFIED],
        removed=counts[DiffStatus.REMOVED],
        unchanged=counts[DiffStatus.UNCHANGED],
    )


def diff_documents(
    source_docs: Iterable[SourceDocument],
    platform_docs: Iterable[PlatformDocument],
    collection: str,
    protected_fields: Iterable[str] = (),
    include_unchanged: bool = False,
    warnings: list | None = None,
) -> DiffResult:
    """Pure diff of two document sets.

    Args:
        source_docs: Documents discovered in the source directories.
        platform_docs: Documents read from the platform.
        collection: Collection name recorded on the result.
        protected_fields: Front-matter keys never compared.
        include_unchanged: Keep ``unchanged`` items in ``items``.
        warnings: Discovery warnings to carry on the result.

    Returns:
        ``DiffResult`` with items sorted by status priority then key.  The
        summary always counts every key.
    """
    protected = tuple(protected_fields)
    items = [
        classify(key, src, plat, protected)
        for key, src, plat in match_documents(source_docs, platform_docs)
    ]
    items.sort(key=lambda i: (_STATUS_PRIORITY[i.status], i.key))
    summary = summarize(items)

    if not include_unchanged:
        items = [i for i in items if i.status != DiffStatus.UNCHANGED]

    return DiffResult(
        collection=collection,
        items=items,
        summary=summary,
        warnings=warnings or [],
    )


def calculate_diff(
    config: SyncConfig,
    collection: str,
    course_id: str | None = None,
    include_unchanged: bool = False,
) -> DiffResult:
    """Discover source and platform documents and diff them."""
    source = discover_documents(config, collection, course_id)
    platform = read_platform_state(
        config.platform_root,
        config.protected_fields,
        course_id=course_id,
        collections=(collection,),
    )
    result = diff_documents(
        source.documents,
        platform.documents(collection),
        collection,
        config.protected_fields,
        include_unchanged=include_unchanged,
        warnings=[*source.warnings, *platform.warnings],
    )
    s = result.summary
    logger.info(
        "%s diff: %d added, %d modified, %d removed, %d unchanged",
        collection,
        s.added,
        s.modified,
        s.removed,
        s.unchanged,
    )
    return result
