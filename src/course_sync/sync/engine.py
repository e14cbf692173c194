"""Sync executor: apply source changes to the platform.

The ``SyncEngine`` ties together discovery, the platform reader, the diff
engine, conflict detection and the state store.  For each collection a
push:

1. Loads the sync state.
2. Discovers source documents and reads the platform.
3. Diffs them and detects conflicts against the baseline.
4. Skips conflicted keys unless ``force`` is set.
5. Copies each added or modified source file to the platform.
6. Updates and saves the state after every successful write, so a crash
   loses at most the record of the file being written.

Error handling is per-item: a single write failure becomes an ``error``
result and the pass continues.  Removed documents are never deleted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from course_sync.config import SyncConfig
from course_sync.file_handler import copy_file
from course_sync.sync.assets import (
    AssetAction,
    asset_conflict_report,
    discover_assets,
    plan_assets,
)
from course_sync.sync.conflicts import detect_conflicts
from course_sync.sync.diff import calculate_diff, diff_documents
from course_sync.sync.discovery import discover_documents
from course_sync.sync.models import (
    ALL_COLLECTIONS,
    ASSETS,
    DOCUMENT_COLLECTIONS,
    GUIDES,
    ConflictReport,
    DiffResult,
    DiffStatus,
    DiscoveryWarning,
    SourceDocument,
    SyncItemResult,
    SyncOutcome,
    SyncRecord,
    SyncReport,
    state_key,
    utc_now,
)
from course_sync.sync.platform import collection_dir, read_platform_state
from course_sync.sync.state import SyncState

logger = logging.getLogger(__name__)


class SyncEngine:
    """Run status checks and pushes for one configuration.

    Args:
        config: Resolved configuration.
        state_store: State store; defaults to the one in the platform root.
    """

    def __init__(
        self, config: SyncConfig, state_store: SyncState | None = None
    ) -> None:
        self.config = config
        self.platform_root = Path(config.platform_root)
        self.state_store = state_store or SyncState(self.platform_root)

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def diff(
        self,
        collection: str,
        course_id: str | None = None,
        include_unchanged: bool = False,
    ) -> DiffResult:
        """Diff one document collection."""
        return calculate_diff(
            self.config, collection, course_id, include_unchanged
        )

    def conflicts(
        self,
        collection: str,
        course_id: str | None = None,
        state: dict | None = None,
    ) -> ConflictReport:
        """Detect platform drift for one collection.

        Raises:
            SyncStateError: If the state file is corrupt.
        """
        if state is None:
            state = self.state_store.load()

        if collection == ASSETS:
            assets, _ = discover_assets(self.config, course_id)
            return asset_conflict_report(
                plan_assets(assets, state, self.platform_root)
            )

        platform = read_platform_state(
            self.platform_root,
            self.config.protected_fields,
            course_id=course_id,
            collections=(collection,),
        )
        return detect_conflicts(
            state, platform.documents(collection), collection, course_id
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def push(
        self,
        dry_run: bool = False,
        force: bool = False,
        course_id: str | None = None,
        slug: str | None = None,
        collections: Iterable[str] = ALL_COLLECTIONS,
    ) -> SyncReport:
        """Push source changes to the platform.

        Args:
            dry_run: If ``True``, report what would happen but write
                nothing (neither platform files nor state).
            force: Overwrite conflicted keys.
            course_id: Restrict the push to one course.
            slug: Restrict the push to one document slug; assets are not
                pushed when a slug is given.
            collections: Collections to push, processed in the given order.

        Returns:
            A ``SyncReport`` summarising what was (or would be) done.

        Raises:
            SyncStateError: If the state file is corrupt.
        """
        started_at = utc_now()
        state = self.state_store.load()
        results: list[SyncItemResult] = []
        warnings: list[DiscoveryWarning] = []

        for collection in collections:
            if collection in DOCUMENT_COLLECTIONS:
                self._push_documents(
                    collection, state, results, warnings,
                    dry_run=dry_run, force=force,
                    course_id=course_id, slug=slug,
                )
            elif collection == ASSETS:
                if slug is None:
                    self._push_assets(
                        state, results, warnings,
                        dry_run=dry_run, force=force, course_id=course_id,
                    )
            else:
                raise ValueError(f"Unknown collection: {collection}")

        report = SyncReport(
            dry_run=dry_run,
            force=force,
            results=results,
            warnings=warnings,
            started_at=started_at,
            completed_at=utc_now(),
        )
        logger.info(
            "Push finished%s: %s",
            " (dry run)" if dry_run else "",
            ", ".join(f"{k}={v}" for k, v in report.counts().items()),
        )
        return report

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _target_path(
        self, collection: str, doc: SourceDocument, existing: str | None
    ) -> Path:
        """Where *doc* is written: over its current platform file, if any."""
        if existing is not None:
            return Path(existing)
        filename = f"{doc.slug}.md" if collection == GUIDES else doc.filename
        return (
            collection_dir(self.platform_root, collection)
            / doc.course_id
            / filename
        )

    def _push_documents(
        self,
        collection: str,
        state: dict,
        results: list[SyncItemResult],
        warnings: list[DiscoveryWarning],
        *,
        dry_run: bool,
        force: bool,
        course_id: str | None,
        slug: str | None,
    ) -> None:
        source = discover_documents(self.config, collection, course_id)
        platform = read_platform_state(
            self.platform_root,
            self.config.protected_fields,
            course_id=course_id,
            collections=(collection,),
        )
        warnings.extend(source.warnings)
        warnings.extend(platform.warnings)

        diff = diff_documents(
            source.documents,
            platform.documents(collection),
            collection,
            self.config.protected_fields,
            include_unchanged=True,
        )
        conflicts = detect_conflicts(
            state, platform.documents(collection), collection, course_id
        )
        conflicted = {c.key: c for c in conflicts.conflicts}
        by_key = {doc.key: doc for doc in source.documents}

        for item in diff.items:
            if slug is not None and item.slug != slug:
                continue
            if item.status == DiffStatus.REMOVED:
                continue

            skey = state_key(collection, item.key)
            doc = by_key[item.key]
            target = self._target_path(collection, doc, item.platform_path)
            conflict = conflicted.get(skey)

            if item.status == DiffStatus.UNCHANGED:
                if conflict is not None and force and not dry_run:
                    # Content already matches; adopt it as the baseline
                    self._record(
                        state, skey, target, doc.body_hash, doc.course_id
                    )
                results.append(
                    SyncItemResult(
                        key=skey,
                        collection=collection,
                        outcome=SyncOutcome.UNCHANGED,
                        target_path=str(target),
                    )
                )
                continue

            if conflict is not None and not force:
                logger.warning("Skipping conflicted key: %s", skey)
                results.append(
                    SyncItemResult(
                        key=skey,
                        collection=collection,
                        outcome=SyncOutcome.SKIPPED,
                        target_path=str(target),
                        message=f"{conflict.kind.value}: {conflict.summary}",
                    )
                )
                continue

            outcome = (
                SyncOutcome.CREATED
                if item.status == DiffStatus.ADDED
                else SyncOutcome.UPDATED
            )
            results.append(
                self._write(
                    collection, skey, Path(doc.path), target, outcome,
                    doc.body_hash, doc.course_id, state, dry_run,
                )
            )

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def _push_assets(
        self,
        state: dict,
        results: list[SyncItemResult],
        warnings: list[DiscoveryWarning],
        *,
        dry_run: bool,
        force: bool,
        course_id: str | None,
    ) -> None:
        assets, asset_warnings = discover_assets(self.config, course_id)
        warnings.extend(asset_warnings)

        for plan in plan_assets(assets, state, self.platform_root):
            target = Path(plan.target_path)
            if plan.action == AssetAction.UNCHANGED:
                results.append(
                    SyncItemResult(
                        key=plan.key,
                        collection=ASSETS,
                        outcome=SyncOutcome.UNCHANGED,
                        target_path=str(target),
                    )
                )
                continue

            if plan.action == AssetAction.CONFLICT and not force:
                logger.warning("Skipping conflicted asset: %s", plan.key)
                results.append(
                    SyncItemResult(
                        key=plan.key,
                        collection=ASSETS,
                        outcome=SyncOutcome.SKIPPED,
                        target_path=str(target),
                        message=(
                            f"{plan.conflict.kind.value}: {plan.conflict.summary}"
                        ),
                    )
                )
                continue

            outcome = (
                SyncOutcome.CREATED
                if plan.action == AssetAction.CREATE
                else SyncOutcome.UPDATED
            )
            results.append(
                self._write(
                    ASSETS, plan.key, Path(plan.asset.path), target, outcome,
                    plan.asset.content_hash, plan.asset.course_id, state,
                    dry_run,
                )
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _record(
        self,
        state: dict,
        skey: str,
        target: Path,
        digest: str,
        course_id: str,
    ) -> None:
        """Record a new baseline for *skey* and persist the state."""
        now = utc_now()
        record = SyncRecord(
            file_path=target.relative_to(self.platform_root).as_posix(),
            content_hash=digest,
            synced_at=now,
            source=str(self.config.courses[course_id]),
        )
        self.state_store.update_record(state, skey, record)
        state["lastSync"] = now
        self.state_store.save(state)

    def _write(
        self,
        collection: str,
        skey: str,
        source: Path,
        target: Path,
        outcome: SyncOutcome,
        digest: str,
        course_id: str,
        state: dict,
        dry_run: bool,
    ) -> SyncItemResult:
        """Copy one file and record it, or describe the copy on a dry run."""
        if not dry_run:
            try:
                copy_file(source, target)
                self._record(state, skey, target, digest, course_id)
            except OSError as exc:
                logger.error("Failed to write %s: %s", target, exc)
                return SyncItemResult(
                    key=skey,
                    collection=collection,
                    outcome=SyncOutcome.ERROR,
                    target_path=str(target),
                    message=str(exc),
                )
            logger.debug("%s %s -> %s", outcome.value, skey, target)

        return SyncItemResult(
            key=skey,
            collection=collection,
            outcome=outcome,
            target_path=str(target),
        )
