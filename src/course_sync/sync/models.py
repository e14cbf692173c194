"""Pydantic models for the sync engine.

Defines the core data contracts used across all sync modules:

- ``SourceDocument`` / ``PlatformDocument``: parsed documents on each side.
- ``DiscoveryWarning``: a recoverable, document-scoped problem.
- ``FieldChange`` / ``DiffItem`` / ``DiffResult``: diff engine output.
- ``SyncRecord``: the persisted baseline for one state key.
- ``ConflictItem`` / ``ConflictReport``: platform drift against the baseline.
- ``SyncItemResult`` / ``SyncReport``: executor outcome.

All models are frozen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

LESSONS = "lessons"
GUIDES = "guides"
ASSETS = "assets"

#: Collections read from ``src/content`` on the platform.
DOCUMENT_COLLECTIONS: tuple[str, ...] = (LESSONS, GUIDES)

#: Everything a push handles, in processing order.
ALL_COLLECTIONS: tuple[str, ...] = (LESSONS, GUIDES, ASSETS)


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def canonical_key(course_id: str, slug: str) -> str:
    """Join key between a source document and its platform counterpart."""
    return f"{course_id}/{slug}"


def state_key(collection: str, key: str) -> str:
    """Key under which *key* is recorded in the sync state.

    Lessons use the bare canonical key; every other collection is
    namespaced so the key spaces never overlap.
    """
    if collection == LESSONS:
        return key
    return f"{collection}/{key}"


def key_from_state_key(collection: str, skey: str) -> str | None:
    """Inverse of ``state_key``; ``None`` if *skey* is in another collection."""
    if collection == LESSONS:
        first = skey.split("/", 1)[0]
        if first in (GUIDES, ASSETS):
            return None
        return skey
    prefix = f"{collection}/"
    if skey.startswith(prefix):
        return skey[len(prefix) :]
    return None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DiscoveryWarning(BaseModel):
    """A recoverable problem found while reading one document or directory.

    Attributes:
        code: Machine-readable code (e.g. ``INVALID_FILENAME``).
        message: Human-readable description.
        path: Affected file or directory, when there is one.
    """

    code: str
    message: str
    path: str | None = None

    model_config = {"frozen": True}


class SourceDocument(BaseModel):
    """A lesson or guide discovered in a course source directory.

    Attributes:
        path: Absolute path to the file.
        relative_path: Path relative to the course source directory.
        collection: ``lessons`` or ``guides``.
        course_id: Course identifier (config key).
        slug: Stable identifier derived from the filename.
        order: Ordinal from the filename prefix (lessons only).
        front_matter: Parsed front matter, unknown keys preserved.
        body: Raw body text after the front-matter block.
        body_hash: Hash of the normalised body.
    """

    path: str
    relative_path: str
    collection: str = LESSONS
    course_id: str
    slug: str
    order: int | None = None
    front_matter: dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    body_hash: str

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        return canonical_key(self.course_id, self.slug)

    @property
    def filename(self) -> str:
        return self.relative_path.replace("\\", "/").rsplit("/", 1)[-1]


class PlatformDocument(BaseModel):
    """A document already deployed on the platform.

    Attributes:
        path: Absolute path to the file.
        relative_path: Path relative to the collection directory
            (``<course_id>/<filename>``).
        collection: ``lessons`` or ``guides``.
        course_id: Course identifier (first directory level).
        slug: Identifier derived from the filename.
        front_matter: Full parsed front matter.
        platform_fields: Front-matter keys on the protected list.
        authorable_fields: Every other front-matter key.
        body: Body text after the front-matter block.
        content_hash: Hash of the normalised body, ``None`` if unknown.
        diagnostic: Parser diagnostic, if the front matter was malformed.
    """

    path: str
    relative_path: str
    collection: str = LESSONS
    course_id: str
    slug: str
    front_matter: dict[str, Any] = Field(default_factory=dict)
    platform_fields: dict[str, Any] = Field(default_factory=dict)
    authorable_fields: dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    content_hash: str | None = None
    diagnostic: str | None = None

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        return canonical_key(self.course_id, self.slug)


class SourceAsset(BaseModel):
    """A binary asset found under an ``assets/`` directory.

    Attributes:
        path: Absolute path to the file.
        relative_path: Path relative to the course source directory.
        course_id: Course identifier.
        asset_path: Path after the ``assets/`` segment (POSIX separators).
        size: File size in bytes.
        mime_type: Guessed from the extension.
        content_hash: SHA-256 of the raw bytes.
    """

    path: str
    relative_path: str
    course_id: str
    asset_path: str
    size: int = 0
    mime_type: str = "application/octet-stream"
    content_hash: str

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        return canonical_key(self.course_id, self.asset_path)


class SourceManifest(BaseModel):
    """Result of a source discovery pass."""

    documents: list[SourceDocument] = Field(default_factory=list)
    warnings: list[DiscoveryWarning] = Field(default_factory=list)
    discovered_at: str = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class PlatformManifest(BaseModel):
    """Result of reading the platform content tree."""

    platform_root: str
    lessons: list[PlatformDocument] = Field(default_factory=list)
    guides: list[PlatformDocument] = Field(default_factory=list)
    warnings: list[DiscoveryWarning] = Field(default_factory=list)
    read_at: str = Field(default_factory=utc_now)

    model_config = {"frozen": True}

    def documents(self, collection: str) -> list[PlatformDocument]:
        if collection == LESSONS:
            return self.lessons
        if collection == GUIDES:
            return self.guides
        raise ValueError(f"Unknown document collection: {collection}")


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


class ChangeKind(str, Enum):
    """How a single front-matter field differs."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class DiffStatus(str, Enum):
    """Classification of a source/platform pair."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


class FieldChange(BaseModel):
    """One authorable front-matter field that differs.

    ``source_value`` is ``None`` for removed fields and ``platform_value``
    is ``None`` for added ones; ``kind`` disambiguates from a real null.
    """

    field: str
    source_value: Any = None
    platform_value: Any = None
    kind: ChangeKind

    model_config = {"frozen": True}


class DiffItem(BaseModel):
    """Diff outcome for one canonical key."""

    key: str
    course_id: str
    slug: str
    status: DiffStatus
    source_path: str | None = None
    platform_path: str | None = None
    changes: list[FieldChange] = Field(default_factory=list)
    body_changed: bool = False

    model_config = {"frozen": True}


class DiffSummary(BaseModel):
    total: int = 0
    added: int = 0
    modified: int = 0
    removed: int = 0
    unchanged: int = 0

    model_config = {"frozen": True}


class DiffResult(BaseModel):
    """Diff for one collection.

    ``summary`` always counts every key, even when unchanged items were
    left out of ``items``.
    """

    collection: str
    items: list[DiffItem] = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)
    warnings: list[DiscoveryWarning] = Field(default_factory=list)
    calculated_at: str = Field(default_factory=utc_now)

    model_config = {"frozen": True}

    @property
    def pending(self) -> list[DiffItem]:
        """Items that are not unchanged."""
        return [i for i in self.items if i.status != DiffStatus.UNCHANGED]


# ---------------------------------------------------------------------------
# Sync state
# ---------------------------------------------------------------------------


class SyncRecord(BaseModel):
    """Baseline for one state key, written after a successful sync.

    Serialised with camelCase aliases to keep the state file format
    stable: ``filePath``, ``contentHash``, ``syncedAt``, ``sourceRepo``.
    """

    file_path: str = Field(alias="filePath")
    content_hash: str = Field(alias="contentHash")
    synced_at: str = Field(alias="syncedAt")
    source: str = Field(alias="sourceRepo")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_state(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class ConflictKind(str, Enum):
    """Kinds of platform-side drift."""

    MODIFIED = "modified"
    DELETED = "deleted"
    NEW_ON_PLATFORM = "new_on_platform"


class ConflictItem(BaseModel):
    """Platform drift for one key.

    Attributes:
        key: State key of the document.
        kind: Type of drift.
        expected_hash: Hash recorded at the last sync.
        current_hash: Hash of the platform file now.
        platform_path: Platform file, when it exists.
        last_synced_at: Timestamp of the last sync, when there was one.
        summary: Human-readable description.
    """

    key: str
    kind: ConflictKind
    expected_hash: str | None = None
    current_hash: str | None = None
    platform_path: str | None = None
    last_synced_at: str | None = None
    summary: str = ""

    model_config = {"frozen": True}


class ConflictReport(BaseModel):
    """Conflicts for one collection, sorted by key."""

    collection: str
    conflicts: list[ConflictItem] = Field(default_factory=list)
    total_checked: int = 0

    model_config = {"frozen": True}

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def keys(self) -> set[str]:
        return {c.key for c in self.conflicts}


# ---------------------------------------------------------------------------
# Sync execution
# ---------------------------------------------------------------------------


class SyncOutcome(str, Enum):
    """What happened (or would happen) to one key."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    ERROR = "error"


class SyncItemResult(BaseModel):
    """Outcome of syncing one key.

    Attributes:
        key: State key.
        collection: Collection the key belongs to.
        outcome: What happened.
        target_path: Platform file written (or that would be written).
        message: Reason for a skip or error.
    """

    key: str
    collection: str
    outcome: SyncOutcome
    target_path: str | None = None
    message: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a push.

    Attributes:
        dry_run: Whether this was a dry-run (nothing written).
        force: Whether conflicts were overridden.
        results: Individual item results, in processing order.
        warnings: Discovery and platform warnings seen during the pass.
        started_at: ISO 8601 timestamp when the push started.
        completed_at: ISO 8601 timestamp when it completed.
    """

    dry_run: bool = False
    force: bool = False
    results: list[SyncItemResult] = Field(default_factory=list)
    warnings: list[DiscoveryWarning] = Field(default_factory=list)
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _keys(self, outcome: SyncOutcome) -> list[str]:
        return [r.key for r in self.results if r.outcome == outcome]

    @property
    def created(self) -> list[str]:
        return self._keys(SyncOutcome.CREATED)

    @property
    def updated(self) -> list[str]:
        return self._keys(SyncOutcome.UPDATED)

    @property
    def unchanged(self) -> list[str]:
        return self._keys(SyncOutcome.UNCHANGED)

    @property
    def skipped(self) -> list[str]:
        return self._keys(SyncOutcome.SKIPPED)

    @property
    def errors(self) -> list[SyncItemResult]:
        return [r for r in self.results if r.outcome == SyncOutcome.ERROR]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.skipped)

    @property
    def success(self) -> bool:
        """True when nothing was skipped and nothing failed."""
        return not self.skipped and not self.errors

    @property
    def exit_code(self) -> int:
        """0 on success, 1 when any item failed, 2 for unresolved conflicts."""
        if self.errors:
            return 1
        if self.skipped:
            return 2
        return 0

    def counts(self) -> dict[str, int]:
        return {
            "total": len(self.results),
            "created": len(self.created),
            "updated": len(self.updated),
            "unchanged": len(self.unchanged),
            "skipped": len(self.skipped),
            "errors": len(self.errors),
        }
