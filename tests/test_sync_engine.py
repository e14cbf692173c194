"""Scenario tests for SyncEngine.push() against real directory trees.

Covers:
- Clean sync: new lessons and guides are created and recorded
- No-op: a second push writes nothing and leaves the state untouched
- Platform drift: skipped without --force, overwritten with it
- Deleted on platform: skipped without --force
- Front-matter-only change is pushed
- Protected fields on the platform never trigger a write
- Dry-run writes nothing
- Write failures become error items and the pass continues
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from course_sync.errors import SyncStateError
from course_sync.file_handler import copy_file
from course_sync.sync.engine import SyncEngine
from course_sync.sync.hashing import content_hash
from course_sync.sync.models import SyncOutcome
from course_sync.sync.state import STATE_FILENAME

COURSE_ID = "intro-python"


def _lesson_target(platform_root: Path, name: str) -> Path:
    return platform_root / "src" / "content" / "lessons" / COURSE_ID / name


def _guide_target(platform_root: Path, slug: str) -> Path:
    return platform_root / "src" / "content" / "guides" / COURSE_ID / f"{slug}.md"


def _state(platform_root: Path) -> dict:
    return json.loads((platform_root / STATE_FILENAME).read_text("utf-8"))


@pytest.fixture
def course(source_dir, write_doc, lesson_fm):
    """Two lessons and one guide in the source tree."""
    write_doc(
        source_dir / "lessons" / "01-intro.md",
        lesson_fm(1, "Intro"),
        "Welcome.\n",
    )
    write_doc(
        source_dir / "lessons" / "02-setup.md",
        lesson_fm(2, "Setup"),
        "Install things.\n",
    )
    write_doc(
        source_dir / "module-1" / "guide-install.md",
        {"title": "Install guide"},
        "Steps.\n",
    )
    return source_dir


# ---------------------------------------------------------------------------
# Clean sync
# ---------------------------------------------------------------------------


class TestCleanSync:
    def test_creates_files_and_records(self, sync_config, course, platform_root):
        report = SyncEngine(sync_config).push()

        assert report.success
        assert report.exit_code == 0
        assert sorted(report.created) == [
            f"guides/{COURSE_ID}/install",
            f"{COURSE_ID}/intro",
            f"{COURSE_ID}/setup",
        ]

        target = _lesson_target(platform_root, "01-intro.md")
        assert target.read_bytes() == (
            course / "lessons" / "01-intro.md"
        ).read_bytes()
        assert _guide_target(platform_root, "install").is_file()

        state = _state(platform_root)
        assert state["version"] == 1
        assert state["lastSync"] is not None
        record = state["records"][f"{COURSE_ID}/intro"]
        assert record["filePath"] == (
            f"src/content/lessons/{COURSE_ID}/01-intro.md"
        )
        assert record["contentHash"] == content_hash("Welcome.\n")
        assert record["sourceRepo"] == str(course)
        assert f"guides/{COURSE_ID}/install" in state["records"]

    def test_course_and_slug_filters(self, sync_config, course, platform_root):
        report = SyncEngine(sync_config).push(slug="setup")

        assert report.created == [f"{COURSE_ID}/setup"]
        assert not _lesson_target(platform_root, "01-intro.md").exists()

    def test_collection_filter(self, sync_config, course, platform_root):
        report = SyncEngine(sync_config).push(collections=("guides",))
        assert report.created == [f"guides/{COURSE_ID}/install"]


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


class TestNoOp:
    def test_second_push_writes_nothing(self, sync_config, course, platform_root):
        engine = SyncEngine(sync_config)
        engine.push()
        state_file = platform_root / STATE_FILENAME
        before = state_file.read_bytes()
        mtime = state_file.stat().st_mtime_ns

        with patch("course_sync.sync.engine.copy_file") as mock_copy:
            report = engine.push()

        mock_copy.assert_not_called()
        assert report.created == []
        assert report.updated == []
        assert sorted(report.unchanged) == [
            f"guides/{COURSE_ID}/install",
            f"{COURSE_ID}/intro",
            f"{COURSE_ID}/setup",
        ]
        assert report.success
        assert state_file.read_bytes() == before
        assert state_file.stat().st_mtime_ns == mtime

    def test_removed_documents_are_not_reported_or_deleted(
        self, sync_config, course, platform_root
    ):
        engine = SyncEngine(sync_config)
        engine.push()
        (course / "lessons" / "02-setup.md").unlink()

        report = engine.push()

        assert f"{COURSE_ID}/setup" not in [r.key for r in report.results]
        assert _lesson_target(platform_root, "02-setup.md").exists()


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class TestPlatformDrift:
    def _drift(self, sync_config, course, platform_root):
        engine = SyncEngine(sync_config)
        engine.push()
        # Someone edits the deployed lesson directly
        target = _lesson_target(platform_root, "01-intro.md")
        target.write_text(
            target.read_text("utf-8").replace("Welcome.", "Hot fix."),
            encoding="utf-8",
        )
        # ... and the author changes the source too
        src = course / "lessons" / "01-intro.md"
        src.write_text(
            src.read_text("utf-8").replace("Welcome.", "Welcome back."),
            encoding="utf-8",
        )
        return engine, target

    def test_skipped_without_force(self, sync_config, course, platform_root):
        engine, target = self._drift(sync_config, course, platform_root)

        report = engine.push()

        assert report.skipped == [f"{COURSE_ID}/intro"]
        assert not report.success
        assert report.exit_code == 2
        assert "Hot fix." in target.read_text("utf-8")
        skipped = [r for r in report.results if r.outcome == SyncOutcome.SKIPPED]
        assert skipped[0].message.startswith("modified:")

    def test_overwritten_with_force(self, sync_config, course, platform_root):
        engine, target = self._drift(sync_config, course, platform_root)

        report = engine.push(force=True)

        assert report.updated == [f"{COURSE_ID}/intro"]
        assert report.success
        assert "Welcome back." in target.read_text("utf-8")
        record = _state(platform_root)["records"][f"{COURSE_ID}/intro"]
        assert record["contentHash"] == content_hash("Welcome back.\n")

        # Baseline now matches; the next push is clean
        assert engine.conflicts("lessons").conflicts == []

    def test_deleted_on_platform(self, sync_config, course, platform_root):
        engine = SyncEngine(sync_config)
        engine.push()
        _lesson_target(platform_root, "02-setup.md").unlink()

        report = engine.push()

        assert report.skipped == [f"{COURSE_ID}/setup"]
        assert not _lesson_target(platform_root, "02-setup.md").exists()

        forced = engine.push(force=True)
        assert forced.created == [f"{COURSE_ID}/setup"]
        assert _lesson_target(platform_root, "02-setup.md").exists()

    def test_unrecorded_platform_file_blocks_update(
        self, sync_config, course, platform_root, write_doc, lesson_fm
    ):
        write_doc(
            _lesson_target(platform_root, "01-intro.md"),
            lesson_fm(1, "Intro"),
            "Written by hand.\n",
        )

        report = SyncEngine(sync_config).push(collections=("lessons",))

        assert report.skipped == [f"{COURSE_ID}/intro"]
        assert report.created == [f"{COURSE_ID}/setup"]

    def test_force_adopts_identical_unrecorded_file(
        self, sync_config, course, platform_root
    ):
        target = _lesson_target(platform_root, "01-intro.md")
        target.parent.mkdir(parents=True)
        target.write_bytes((course / "lessons" / "01-intro.md").read_bytes())
        engine = SyncEngine(sync_config)
        assert engine.conflicts("lessons").has_conflicts

        report = engine.push(force=True, collections=("lessons",))

        assert f"{COURSE_ID}/intro" in report.unchanged
        assert not engine.conflicts("lessons").has_conflicts


# ---------------------------------------------------------------------------
# Front matter
# ---------------------------------------------------------------------------


class TestFrontMatterChanges:
    def test_front_matter_only_change_is_pushed(
        self, sync_config, course, platform_root, write_doc, lesson_fm
    ):
        engine = SyncEngine(sync_config)
        engine.push()
        write_doc(
            course / "lessons" / "01-intro.md",
            lesson_fm(1, "Introduction to Python"),
            "Welcome.\n",
        )

        diff = engine.diff("lessons")
        assert [(i.key, i.body_changed) for i in diff.items] == [
            (f"{COURSE_ID}/intro", False)
        ]

        report = engine.push()

        assert report.updated == [f"{COURSE_ID}/intro"]
        assert "Introduction to Python" in _lesson_target(
            platform_root, "01-intro.md"
        ).read_text("utf-8")

    def test_reordered_lesson_updates_existing_platform_file(
        self, sync_config, course, platform_root, write_doc, lesson_fm
    ):
        engine = SyncEngine(sync_config)
        engine.push()
        (course / "lessons" / "01-intro.md").unlink()
        write_doc(
            course / "lessons" / "05-intro.md",
            lesson_fm(5, "Intro"),
            "Welcome, revised.\n",
        )

        report = engine.push()

        assert report.updated == [f"{COURSE_ID}/intro"]
        assert not _lesson_target(platform_root, "05-intro.md").exists()
        assert "Welcome, revised." in _lesson_target(
            platform_root, "01-intro.md"
        ).read_text("utf-8")
        record = _state(platform_root)["records"][f"{COURSE_ID}/intro"]
        assert record["filePath"].endswith("/01-intro.md")

        again = engine.push()

        assert f"{COURSE_ID}/intro" in again.unchanged
        assert again.skipped == []
        assert again.success

    def test_protected_platform_fields_do_not_trigger_writes(
        self, sync_config, course, platform_root, write_doc, lesson_fm
    ):
        engine = SyncEngine(sync_config)
        engine.push()
        # The platform stamps commerce data onto the deployed lesson
        write_doc(
            _lesson_target(platform_root, "01-intro.md"),
            lesson_fm(1, "Intro", price=49, stripePriceId="price_123"),
            "Welcome.\n",
        )

        report = engine.push()

        assert f"{COURSE_ID}/intro" in report.unchanged
        assert report.success
        assert "price_123" in _lesson_target(
            platform_root, "01-intro.md"
        ).read_text("utf-8")


# ---------------------------------------------------------------------------
# Dry run and errors
# ---------------------------------------------------------------------------


class TestDryRun:
    def test_dry_run_writes_nothing(self, sync_config, course, platform_root):
        report = SyncEngine(sync_config).push(dry_run=True)

        assert report.dry_run
        assert len(report.created) == 3
        assert not (platform_root / STATE_FILENAME).exists()
        assert not (platform_root / "src" / "content" / "lessons").exists()

    def test_dry_run_reports_skips(self, sync_config, course, platform_root):
        engine = SyncEngine(sync_config)
        engine.push()
        _lesson_target(platform_root, "01-intro.md").write_text(
            "edited", encoding="utf-8"
        )
        (course / "lessons" / "01-intro.md").write_text(
            "changed", encoding="utf-8"
        )
        before = _state(platform_root)

        report = engine.push(dry_run=True)

        assert report.skipped == [f"{COURSE_ID}/intro"]
        assert _state(platform_root) == before


class TestWriteErrors:
    def test_write_failure_is_an_error_item(
        self, sync_config, course, platform_root
    ):
        def flaky_copy(source, target):
            if target.name == "01-intro.md":
                raise PermissionError("read-only")
            return copy_file(source, target)

        with patch("course_sync.sync.engine.copy_file", side_effect=flaky_copy):
            report = SyncEngine(sync_config).push()

        assert [r.key for r in report.errors] == [f"{COURSE_ID}/intro"]
        assert report.errors[0].message == "read-only"
        assert f"{COURSE_ID}/setup" in report.created
        assert report.exit_code == 1
        assert f"{COURSE_ID}/intro" not in _state(platform_root)["records"]

    def test_corrupt_state_raises(self, sync_config, course, platform_root):
        (platform_root / STATE_FILENAME).write_text("{", encoding="utf-8")
        with pytest.raises(SyncStateError):
            SyncEngine(sync_config).push()

    def test_unknown_collection(self, sync_config):
        with pytest.raises(ValueError):
            SyncEngine(sync_config).push(collections=("videos",))
