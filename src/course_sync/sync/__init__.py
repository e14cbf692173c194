"""One-way course content sync engine.

Public API for pushing course material (lessons, guides, assets) from
source directories into a deployed platform repository.

Architecture
------------
Source and platform are compared by the hash of each document's
normalised body plus a field-by-field comparison of authorable front
matter.  A separate baseline (the sync state file in the platform root)
records what was last written, so edits made directly on the platform
show up as conflicts instead of being silently overwritten.

Modules:

- ``parser``     -- front-matter extraction, never raises.
- ``hashing``    -- body normalisation and content hashes.
- ``discovery``  -- lessons and guides in source directories.
- ``platform``   -- documents already deployed on the platform.
- ``diff``       -- added / modified / removed / unchanged classification.
- ``conflicts``  -- platform drift against the baseline.
- ``state``      -- ``SyncState``: load/save the JSON state file.
- ``assets``     -- binary asset discovery and planning.
- ``engine``     -- ``SyncEngine``: diff, conflict and push orchestration.
- ``validation`` -- strict lesson front-matter checks.
- ``reporter``   -- human-readable and JSON report formatting.

Usage example
-------------
::

    from course_sync.config import load_config
    from course_sync.sync import SyncEngine, format_sync_report

    engine = SyncEngine(load_config())

    # Dry-run first to preview changes
    preview = engine.push(dry_run=True)
    print(format_sync_report(preview))

    report = engine.push()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .models import (
    ConflictItem,
    ConflictReport,
    DiffItem,
    DiffResult,
    SyncItemResult,
    SyncRecord,
    SyncReport,
)
from .reporter import (
    format_conflict_report,
    format_diff_report,
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .state import SyncState

__all__ = [
    "ConflictItem",
    "ConflictReport",
    "DiffItem",
    "DiffResult",
    "SyncEngine",
    "SyncItemResult",
    "SyncRecord",
    "SyncReport",
    "SyncState",
    "format_conflict_report",
    "format_diff_report",
    "format_dry_run_preview",
    "format_sync_report",
    "report_to_json",
]
