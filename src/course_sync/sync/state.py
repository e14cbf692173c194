"""Sync state persistence layer.

Manages ``<platform_root>/.course-sync.json``, the only durable state of
the system.  It maps each state key to the ``SyncRecord`` written after
the last successful sync::

    {
      "version": 1,
      "records": {
        "intro-python/setup": {
          "filePath": "src/content/lessons/intro-python/02-setup.md",
          "contentHash": "9f86d0...",
          "syncedAt": "2026-01-01T00:00:00+00:00",
          "sourceRepo": "/work/materials/intro-python"
        }
      },
      "lastSync": "2026-01-01T00:00:00+00:00"
    }

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Fail closed** -- ``load()`` refuses corrupt files and versions newer
  than ``STATE_VERSION`` instead of guessing.
* **Dict-based state** -- state is a plain ``dict`` so the executor can
  mutate it during a push and persist after each write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from course_sync.errors import SyncStateError
from course_sync.sync.models import SyncRecord

logger = logging.getLogger(__name__)

STATE_VERSION = 1
STATE_FILENAME = ".course-sync.json"


def empty_state() -> dict:
    return {"version": STATE_VERSION, "records": {}, "lastSync": None}


def parse_record(raw: object, key: str = "") -> SyncRecord | None:
    """Validate one raw record; ``None`` if it is malformed."""
    if not isinstance(raw, dict):
        return None
    try:
        return SyncRecord.model_validate(raw)
    except ValueError:
        logger.warning("Ignoring malformed sync record for %s", key)
        return None


def records_from_state(state: dict) -> dict[str, SyncRecord]:
    """Every readable record in *state*, keyed by state key."""
    records: dict[str, SyncRecord] = {}
    for key, raw in state.get("records", {}).items():
        record = parse_record(raw, key)
        if record is not None:
            records[key] = record
    return records


class SyncState:
    """Load, save, and query the sync state of one platform.

    Args:
        platform_root: Platform repository root; the state file lives
            directly inside it.
    """

    def __init__(self, platform_root: Path) -> None:
        self._platform_root = Path(platform_root)

    @property
    def path(self) -> Path:
        return self._platform_root / STATE_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load sync state from disk.

        Returns:
            The state dict.  If the file does not exist an empty state at
            the current version is returned.

        Raises:
            SyncStateError: If the file is not valid JSON, is not an
                object, has a missing or non-integer version, or was
                written by a newer version of the tool.
        """
        path = self.path
        if not path.exists():
            return empty_state()

        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise SyncStateError(
                f"Sync state is not valid JSON: {exc}", path=path
            ) from exc
        except OSError as exc:
            raise SyncStateError(
                f"Cannot read sync state: {exc}", path=path
            ) from exc

        if not isinstance(data, dict):
            raise SyncStateError(
                "Sync state root must be a JSON object", path=path
            )

        version = data.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise SyncStateError(
                "Sync state has a missing or invalid version", path=path
            )
        if version > STATE_VERSION:
            raise SyncStateError(
                f"Sync state version {version} is newer than supported "
                f"version {STATE_VERSION}; upgrade course-sync",
                path=path,
            )

        records = data.get("records")
        if records is None:
            data["records"] = {}
        elif not isinstance(records, dict):
            raise SyncStateError(
                "Sync state 'records' must be a JSON object", path=path
            )
        data.setdefault("lastSync", None)

        logger.debug(
            "Loaded %d sync records from %s", len(data["records"]), path
        )
        return data

    def save(self, state: dict) -> None:
        """Persist sync state to disk atomically.

        Writes to a temporary file in the platform root then atomically
        replaces the target.  The temp file is removed on any failure.

        Args:
            state: The state dict to persist.
        """
        target = self.path
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._platform_root),
            prefix=f"{STATE_FILENAME}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
                fh.write("\n")
            os.replace(tmp_path, target)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Record helpers
    # ------------------------------------------------------------------

    def get_record(self, state: dict, key: str) -> SyncRecord | None:
        """Return the record for *key*, or ``None`` if absent or unreadable."""
        return parse_record(state.get("records", {}).get(key), key)

    def update_record(
        self, state: dict, key: str, record: SyncRecord
    ) -> None:
        """Upsert *record* under *key*.  Mutates *state* in place."""
        state.setdefault("records", {})[key] = record.to_state()

    def delete_record(self, state: dict, key: str) -> bool:
        """Remove *key* from the records.

        Returns:
            ``True`` if a record was removed.
        """
        return state.get("records", {}).pop(key, None) is not None

    def all_records(self, state: dict) -> dict[str, SyncRecord]:
        """Every readable record, keyed by state key."""
        return records_from_state(state)
