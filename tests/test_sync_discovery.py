"""Tests for source discovery and the platform reader."""

from __future__ import annotations

from pathlib import Path

from course_sync.config import SyncConfig
from course_sync.sync.discovery import (
    discover_guides,
    discover_lessons,
    parse_guide_filename,
    parse_lesson_filename,
)
from course_sync.sync.models import GUIDES, LESSONS
from course_sync.sync.hashing import content_hash
from course_sync.sync.platform import (
    platform_slug,
    read_platform_state,
    split_fields,
)

COURSE_ID = "intro-python"


def _codes(warnings) -> list[str]:
    return [w.code for w in warnings]


# ---------------------------------------------------------------------------
# Filename parsing
# ---------------------------------------------------------------------------


class TestFilenames:
    def test_lesson_filename(self):
        assert parse_lesson_filename("01-intro.md") == (1, "intro")
        assert parse_lesson_filename("120-deep-dive.md") == (120, "deep-dive")

    def test_lesson_filename_case_insensitive(self):
        assert parse_lesson_filename("03-Setup-Env.MD") == (3, "setup-env")

    def test_lesson_filename_rejects(self):
        for name in ("1-intro.md", "intro.md", "01_intro.md", "01-intro.txt"):
            assert parse_lesson_filename(name) is None

    def test_guide_filename(self):
        assert parse_guide_filename("guide.md") == "guide"
        assert parse_guide_filename("guide-install.md") == "install"
        assert parse_guide_filename("notes.md") is None


# ---------------------------------------------------------------------------
# Lessons
# ---------------------------------------------------------------------------


class TestDiscoverLessons:
    def test_discovers_and_sorts_by_order(
        self, sync_config, source_dir, write_doc
    ):
        write_doc(source_dir / "lessons" / "02-setup.md", {"title": "Setup"})
        write_doc(source_dir / "lessons" / "01-intro.md", {"title": "Intro"})

        manifest = discover_lessons(sync_config)

        assert [d.slug for d in manifest.documents] == ["intro", "setup"]
        first = manifest.documents[0]
        assert first.key == f"{COURSE_ID}/intro"
        assert first.order == 1
        assert first.collection == LESSONS
        assert first.relative_path == "lessons/01-intro.md"
        assert first.front_matter == {"title": "Intro"}
        assert first.body_hash == content_hash("Body text.\n")
        assert manifest.warnings == []

    def test_invalid_filename_warns_and_skips(
        self, sync_config, source_dir, write_doc
    ):
        write_doc(source_dir / "lessons" / "intro.md", {"title": "x"})
        write_doc(source_dir / "lessons" / "01-ok.md", {"title": "ok"})

        manifest = discover_lessons(sync_config)

        assert [d.slug for d in manifest.documents] == ["ok"]
        assert _codes(manifest.warnings) == ["INVALID_FILENAME"]

    def test_missing_lessons_dir(self, tmp_path, platform_root):
        config = SyncConfig(
            platform_root=platform_root, courses={"empty": tmp_path / "nope"}
        )
        manifest = discover_lessons(config)
        assert manifest.documents == []
        assert _codes(manifest.warnings) == ["MISSING_LESSONS_DIR"]

    def test_empty_lessons_dir(self, sync_config):
        manifest = discover_lessons(sync_config)
        assert manifest.documents == []
        assert _codes(manifest.warnings) == ["EMPTY_LESSONS_DIR"]

    def test_malformed_front_matter_still_included(
        self, sync_config, source_dir
    ):
        path = source_dir / "lessons" / "01-intro.md"
        path.write_text("---\ntitle: [broken\n---\nBody\n", encoding="utf-8")

        manifest = discover_lessons(sync_config)

        assert len(manifest.documents) == 1
        assert manifest.documents[0].front_matter == {}
        assert _codes(manifest.warnings) == ["MALFORMED_FRONTMATTER"]

    def test_bad_date_does_not_stop_discovery(
        self, sync_config, source_dir, write_doc
    ):
        (source_dir / "lessons" / "01-intro.md").write_text(
            "---\ntitle: Intro\ndate: 2024-13-45\n---\nBody\n", encoding="utf-8"
        )
        write_doc(source_dir / "lessons" / "02-setup.md", {"title": "Setup"})

        manifest = discover_lessons(sync_config)

        assert [d.slug for d in manifest.documents] == ["intro", "setup"]
        assert manifest.documents[0].front_matter == {}
        assert _codes(manifest.warnings) == ["MALFORMED_FRONTMATTER"]
        assert manifest.warnings[0].message.startswith("invalid YAML: ")

    def test_missing_front_matter_is_not_a_warning(
        self, sync_config, source_dir, write_doc
    ):
        write_doc(source_dir / "lessons" / "01-intro.md", None, "# Plain\n")
        manifest = discover_lessons(sync_config)
        assert len(manifest.documents) == 1
        assert manifest.warnings == []

    def test_duplicate_slug_keeps_first(
        self, sync_config, source_dir, write_doc
    ):
        write_doc(source_dir / "lessons" / "01-intro.md", {"title": "a"})
        write_doc(source_dir / "lessons" / "02-intro.md", {"title": "b"})

        manifest = discover_lessons(sync_config)

        assert len(manifest.documents) == 1
        assert manifest.documents[0].order == 1
        assert _codes(manifest.warnings) == ["DUPLICATE_SLUG"]

    def test_non_utf8_file_is_decoded(self, sync_config, source_dir):
        path = source_dir / "lessons" / "01-cafe.md"
        path.write_bytes(
            "---\ntitle: Café\n---\nDéjà vu, crème "
            "brûlée et café noir.\n".encode("latin-1")
        )
        manifest = discover_lessons(sync_config)
        assert len(manifest.documents) == 1
        assert manifest.documents[0].slug == "cafe"

    def test_course_filter(self, tmp_path, platform_root, write_doc):
        a = tmp_path / "a"
        b = tmp_path / "b"
        write_doc(a / "lessons" / "01-x.md", {"title": "x"})
        write_doc(b / "lessons" / "01-y.md", {"title": "y"})
        config = SyncConfig(platform_root=platform_root, courses={"a": a, "b": b})

        assert [d.key for d in discover_lessons(config).documents] == [
            "a/x",
            "b/y",
        ]
        assert [d.key for d in discover_lessons(config, "b").documents] == [
            "b/y"
        ]

    def test_unknown_course_filter(self, sync_config):
        manifest = discover_lessons(sync_config, "missing")
        assert manifest.documents == []
        assert _codes(manifest.warnings) == ["UNKNOWN_COURSE"]


# ---------------------------------------------------------------------------
# Guides
# ---------------------------------------------------------------------------


class TestDiscoverGuides:
    def test_recursive_guides(self, sync_config, source_dir, write_doc):
        write_doc(source_dir / "guide.md", {"title": "Course guide"})
        write_doc(source_dir / "module-1" / "guide-install.md", {"title": "Install"})
        write_doc(source_dir / ".hidden" / "guide-secret.md", {"title": "no"})
        write_doc(source_dir / "module-1" / "notes.md", {"title": "no"})

        manifest = discover_guides(sync_config)

        assert [d.slug for d in manifest.documents] == ["guide", "install"]
        assert all(d.collection == GUIDES for d in manifest.documents)
        assert all(d.order is None for d in manifest.documents)
        assert manifest.documents[1].relative_path == "module-1/guide-install.md"

    def test_duplicate_guide_slug(self, sync_config, source_dir, write_doc):
        write_doc(source_dir / "m1" / "guide-setup.md", {"title": "a"})
        write_doc(source_dir / "m2" / "guide-setup.md", {"title": "b"})

        manifest = discover_guides(sync_config)

        assert len(manifest.documents) == 1
        assert manifest.documents[0].relative_path == "m1/guide-setup.md"
        assert _codes(manifest.warnings) == ["DUPLICATE_SLUG"]


# ---------------------------------------------------------------------------
# Platform reader
# ---------------------------------------------------------------------------


def _platform_lesson(platform_root: Path, name: str) -> Path:
    return platform_root / "src" / "content" / "lessons" / COURSE_ID / name


class TestPlatformReader:
    def test_platform_slug(self):
        assert platform_slug(LESSONS, "01-intro.md") == "intro"
        assert platform_slug(LESSONS, "intro.md") == "intro"
        assert platform_slug(GUIDES, "install.md") == "install"

    def test_split_fields(self):
        platform, authorable = split_fields(
            {"title": "x", "price": 10, "order": 1}, ["price"]
        )
        assert platform == {"price": 10}
        assert authorable == {"title": "x", "order": 1}

    def test_reads_documents(self, platform_root, write_doc):
        write_doc(
            _platform_lesson(platform_root, "01-intro.md"),
            {"title": "Intro", "price": 49, "stripePriceId": "price_1"},
            "Hello\n",
        )

        manifest = read_platform_state(platform_root)

        assert len(manifest.lessons) == 1
        doc = manifest.lessons[0]
        assert doc.key == f"{COURSE_ID}/intro"
        assert doc.relative_path == f"{COURSE_ID}/01-intro.md"
        assert doc.platform_fields == {"price": 49, "stripePriceId": "price_1"}
        assert doc.authorable_fields == {"title": "Intro"}
        assert doc.content_hash == content_hash("Hello\n")
        assert manifest.guides == []
        assert manifest.warnings == []

    def test_extra_protected_fields(self, platform_root, write_doc):
        write_doc(
            _platform_lesson(platform_root, "01-intro.md"),
            {"title": "Intro", "featured": True},
        )
        manifest = read_platform_state(
            platform_root, protected_fields=("featured",)
        )
        assert manifest.lessons[0].platform_fields == {"featured": True}

    def test_missing_content_dir(self, tmp_path):
        manifest = read_platform_state(tmp_path)
        assert manifest.lessons == []
        assert _codes(manifest.warnings) == ["MISSING_CONTENT_DIR"]

    def test_file_outside_course_dir(self, platform_root, write_doc):
        write_doc(platform_root / "src" / "content" / "lessons" / "stray.md")
        manifest = read_platform_state(platform_root)
        assert manifest.lessons == []
        assert _codes(manifest.warnings) == ["INVALID_PATH"]

    def test_malformed_front_matter_kept(self, platform_root):
        path = _platform_lesson(platform_root, "01-intro.md")
        path.parent.mkdir(parents=True)
        path.write_text("---\n- list\n---\nBody\n", encoding="utf-8")

        manifest = read_platform_state(platform_root)

        assert len(manifest.lessons) == 1
        assert manifest.lessons[0].diagnostic == "front matter must be an object"
        assert _codes(manifest.warnings) == ["MALFORMED_FRONTMATTER"]

    def test_course_filter_and_sorting(self, platform_root, write_doc):
        content = platform_root / "src" / "content" / "lessons"
        write_doc(content / "b-course" / "01-x.md")
        write_doc(content / "a-course" / "02-y.md")
        write_doc(content / "a-course" / "01-z.md")

        all_docs = read_platform_state(platform_root).lessons
        assert [d.relative_path for d in all_docs] == [
            "a-course/01-z.md",
            "a-course/02-y.md",
            "b-course/01-x.md",
        ]
        only_b = read_platform_state(platform_root, course_id="b-course")
        assert [d.key for d in only_b.lessons] == ["b-course/x"]

    def test_duplicate_platform_key_warns(self, platform_root, write_doc):
        write_doc(_platform_lesson(platform_root, "01-intro.md"), {"title": "a"})
        write_doc(_platform_lesson(platform_root, "05-intro.md"), {"title": "b"})

        manifest = read_platform_state(platform_root)

        assert [d.relative_path for d in manifest.lessons] == [
            f"{COURSE_ID}/01-intro.md",
            f"{COURSE_ID}/05-intro.md",
        ]
        assert _codes(manifest.warnings) == ["DUPLICATE_SLUG"]
        assert manifest.warnings[0].path.endswith("05-intro.md")
