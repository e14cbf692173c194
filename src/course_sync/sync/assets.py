"""Binary asset sync.

Assets are any files under an ``assets/`` directory inside a course's
source directory, e.g. ``module-1/assets/images/hero.png``.  The path
after the ``assets`` segment (``images/hero.png``) identifies the asset
within its course:

* state key: ``assets/<course_id>/images/hero.png``
* target:    ``<platform_root>/public/courses/<course_id>/images/hero.png``

Assets are compared by the SHA-256 of their raw bytes and copied whole.
The plan for each asset reuses the baseline rules of document sync: an
unrecorded file already at the target, or a target that no longer matches
its record, is a conflict.
"""

from __future__ import annotations

import logging
import mimetypes
from enum import Enum
from pathlib import Path

from pydantic import BaseModel

from course_sync.config import SyncConfig
from course_sync.file_handler import file_sha256
from course_sync.sync.models import (
    ASSETS,
    ConflictItem,
    ConflictKind,
    ConflictReport,
    DiscoveryWarning,
    SourceAsset,
    SyncRecord,
    state_key,
)
from course_sync.sync.state import records_from_state

logger = logging.getLogger(__name__)

ASSETS_DIRNAME = "assets"
PUBLIC_COURSES_DIR = Path("public") / "courses"


class AssetAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"


class AssetPlan(BaseModel):
    """What a push would do with one asset."""

    asset: SourceAsset
    key: str
    target_path: str
    action: AssetAction
    conflict: ConflictItem | None = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def asset_target_path(
    platform_root: Path, course_id: str, asset_path: str
) -> Path:
    """Platform location of an asset."""
    return platform_root / PUBLIC_COURSES_DIR / course_id / asset_path


def asset_relative_path(relative: Path) -> str | None:
    """Path after the first ``assets`` directory segment.

    >>> asset_relative_path(Path("module-01/assets/images/hero.png"))
    'images/hero.png'
    >>> asset_relative_path(Path("lessons/01-intro.md")) is None
    True
    """
    parts = relative.parts
    for idx, part in enumerate(parts[:-1]):
        if part == ASSETS_DIRNAME:
            return "/".join(parts[idx + 1 :])
    return None


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def scan_asset_files(source_dir: Path) -> list[Path]:
    """Every non-hidden file below an ``assets/`` directory, sorted."""
    if not source_dir.is_dir():
        return []
    files = []
    for path in source_dir.rglob("*"):
        if not path.is_file():
            continue
        rel = path.relative_to(source_dir)
        if any(part.startswith(".") for part in rel.parts):
            continue
        if asset_relative_path(rel) is not None:
            files.append(path)
    return sorted(files)


def discover_assets(
    config: SyncConfig, course_id: str | None = None
) -> tuple[list[SourceAsset], list[DiscoveryWarning]]:
    """Discover assets for every configured course (or just *course_id*).

    Returns:
        ``(assets, warnings)``; assets sorted by key.  When two files map
        to the same asset path the first (by source path) wins.
    """
    assets: list[SourceAsset] = []
    warnings: list[DiscoveryWarning] = []

    if course_id is None:
        courses = sorted(config.courses.items())
    elif config.source_dir(course_id) is None:
        warnings.append(
            DiscoveryWarning(
                code="UNKNOWN_COURSE",
                message=f"Course {course_id} is not configured",
            )
        )
        courses = []
    else:
        courses = [(course_id, config.source_dir(course_id))]

    for cid, source_dir in courses:
        seen: dict[str, str] = {}
        for path in scan_asset_files(source_dir):
            rel = path.relative_to(source_dir)
            asset_path = asset_relative_path(rel)
            if asset_path in seen:
                warnings.append(
                    DiscoveryWarning(
                        code="DUPLICATE_ASSET",
                        message=(
                            f"Asset '{asset_path}' in course {cid} already "
                            f"provided by {seen[asset_path]}"
                        ),
                        path=str(path),
                    )
                )
                continue
            seen[asset_path] = rel.as_posix()

            try:
                digest = file_sha256(path)
                size = path.stat().st_size
            except OSError as exc:
                warnings.append(
                    DiscoveryWarning(
                        code="READ_ERROR",
                        message=f"Failed to read file: {exc}",
                        path=str(path),
                    )
                )
                continue

            mime_type, _ = mimetypes.guess_type(path.name)
            assets.append(
                SourceAsset(
                    path=str(path),
                    relative_path=rel.as_posix(),
                    course_id=cid,
                    asset_path=asset_path,
                    size=size,
                    mime_type=mime_type or "application/octet-stream",
                    content_hash=digest,
                )
            )

    assets.sort(key=lambda a: a.key)
    for w in warnings:
        logger.warning("%s: %s", w.code, w.message)
    logger.info("Discovered %d assets", len(assets))
    return assets, warnings


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def plan_asset(
    asset: SourceAsset,
    record: SyncRecord | None,
    platform_root: Path,
) -> AssetPlan:
    """Decide what to do with one asset.

    Rules, in order:

    1. Target missing -> create.
    2. Target present, no record -> conflict (``new_on_platform``).
    3. Target hash differs from the record -> conflict (``modified``).
    4. Source hash equals the record -> unchanged.
    5. Otherwise -> update.
    """
    key = state_key(ASSETS, asset.key)
    target = asset_target_path(platform_root, asset.course_id, asset.asset_path)
    base = {"asset": asset, "key": key, "target_path": str(target)}

    if not target.is_file():
        return AssetPlan(action=AssetAction.CREATE, **base)

    try:
        target_hash = file_sha256(target)
    except OSError as exc:
        logger.warning("Cannot hash platform asset %s: %s", target, exc)
        target_hash = None

    if record is None:
        return AssetPlan(
            action=AssetAction.CONFLICT,
            conflict=ConflictItem(
                key=key,
                kind=ConflictKind.NEW_ON_PLATFORM,
                current_hash=target_hash,
                platform_path=str(target),
                summary="Asset exists on platform but was never synced",
            ),
            **base,
        )

    if target_hash != record.content_hash:
        return AssetPlan(
            action=AssetAction.CONFLICT,
            conflict=ConflictItem(
                key=key,
                kind=ConflictKind.MODIFIED,
                expected_hash=record.content_hash,
                current_hash=target_hash,
                platform_path=str(target),
                last_synced_at=record.synced_at,
                summary="Asset modified on platform since last sync",
            ),
            **base,
        )

    if asset.content_hash == record.content_hash:
        return AssetPlan(action=AssetAction.UNCHANGED, **base)
    return AssetPlan(action=AssetAction.UPDATE, **base)


def plan_assets(
    assets: list[SourceAsset], state: dict, platform_root: Path
) -> list[AssetPlan]:
    records = records_from_state(state)
    return [
        plan_asset(a, records.get(state_key(ASSETS, a.key)), platform_root)
        for a in assets
    ]


def asset_conflict_report(plans: list[AssetPlan]) -> ConflictReport:
    """Collect the conflicts found while planning."""
    conflicts = sorted(
        (p.conflict for p in plans if p.conflict is not None),
        key=lambda c: c.key,
    )
    return ConflictReport(
        collection=ASSETS, conflicts=conflicts, total_checked=len(plans)
    )
