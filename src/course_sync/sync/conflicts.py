"""Conflict detection: platform drift against the last-synced baseline.

A conflict means the platform no longer holds what this tool last wrote
there, so a push would silently discard someone else's edit.  Such keys
are only overwritten with ``--force``.
"""

from __future__ import annotations

import logging
from typing import Iterable

from course_sync.sync.models import (
    ConflictItem,
    ConflictKind,
    ConflictReport,
    PlatformDocument,
    SyncRecord,
    key_from_state_key,
    state_key,
)
from course_sync.sync.state import records_from_state

logger = logging.getLogger(__name__)


def classify_conflict(
    key: str,
    record: SyncRecord | None,
    platform_doc: PlatformDocument | None,
) -> ConflictItem | None:
    """Compare one baseline record with the current platform document.

    Args:
        key: State key used on the returned item.
        record: Baseline from the last sync, if any.
        platform_doc: Current platform document, if any.

    Returns:
        A ``ConflictItem``, or ``None`` when the platform matches the
        baseline (or neither side exists).
    """
    if record is None and platform_doc is None:
        return None

    if record is None:
        return ConflictItem(
            key=key,
            kind=ConflictKind.NEW_ON_PLATFORM,
            current_hash=platform_doc.content_hash,
            platform_path=platform_doc.path,
            summary="Exists on platform but was never synced",
        )

    if platform_doc is None:
        return ConflictItem(
            key=key,
            kind=ConflictKind.DELETED,
            expected_hash=record.content_hash,
            last_synced_at=record.synced_at,
            summary=f"Deleted on platform since last sync ({record.file_path})",
        )

    if platform_doc.content_hash != record.content_hash:
        return ConflictItem(
            key=key,
            kind=ConflictKind.MODIFIED,
            expected_hash=record.content_hash,
            current_hash=platform_doc.content_hash,
            platform_path=platform_doc.path,
            last_synced_at=record.synced_at,
            summary="Modified on platform since last sync",
        )

    return None


def _in_course(key: str, course_id: str | None) -> bool:
    return course_id is None or key.split("/", 1)[0] == course_id


def detect_conflicts(
    state: dict,
    platform_documents: Iterable[PlatformDocument],
    collection: str,
    course_id: str | None = None,
) -> ConflictReport:
    """Check every key known to the baseline or the platform.

    Args:
        state: Loaded sync state dict.
        platform_documents: Current platform documents of *collection*.
        collection: ``lessons`` or ``guides``.
        course_id: Restrict the check to one course.

    Returns:
        ``ConflictReport`` with conflicts sorted by state key.
    """
    records = {}
    for skey, record in records_from_state(state).items():
        key = key_from_state_key(collection, skey)
        if key is not None and _in_course(key, course_id):
            records[key] = record

    platform: dict[str, PlatformDocument] = {}
    for doc in platform_documents:
        if _in_course(doc.key, course_id):
            platform.setdefault(doc.key, doc)

    keys = sorted(set(records) | set(platform))
    conflicts: list[ConflictItem] = []
    for key in keys:
        item = classify_conflict(
            state_key(collection, key), records.get(key), platform.get(key)
        )
        if item is not None:
            conflicts.append(item)

    conflicts.sort(key=lambda c: c.key)
    if conflicts:
        logger.info("%d %s conflict(s) detected", len(conflicts), collection)
    return ConflictReport(
        collection=collection, conflicts=conflicts, total_checked=len(keys)
    )
