"""Shared pytest fixtures for course-sync tests."""

from pathlib import Path

import pytest
import yaml

from course_sync.config import SyncConfig

COURSE_ID = "intro-python"


def render_document(front_matter: dict | None, body: str) -> str:
    """Build a markdown document with an optional YAML front-matter block."""
    if front_matter is None:
        return body
    fm = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True)
    return f"---\n{fm}---\n{body}"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep the developer's environment and config files out of tests."""
    for var in (
        "COURSE_SYNC_CONFIG",
        "COURSE_SYNC_PLATFORM",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def platform_root(tmp_path) -> Path:
    """An empty platform repository with a content directory."""
    root = tmp_path / "platform"
    (root / "src" / "content").mkdir(parents=True)
    return root


@pytest.fixture
def source_dir(tmp_path) -> Path:
    """Course source directory with an empty ``lessons/`` folder."""
    root = tmp_path / "materials" / COURSE_ID
    (root / "lessons").mkdir(parents=True)
    return root


@pytest.fixture
def sync_config(platform_root, source_dir) -> SyncConfig:
    return SyncConfig(
        platform_root=platform_root, courses={COURSE_ID: source_dir}
    )


@pytest.fixture
def write_doc():
    """Factory fixture: write a markdown document and return its path."""

    def _write(
        path: Path,
        front_matter: dict | None = None,
        body: str = "Body text.\n",
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_document(front_matter, body), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def lesson_fm():
    """Factory fixture for valid lesson front matter."""

    def _fm(order: int = 1, title: str = "Introduction", **extra) -> dict:
        fm = {
            "courseSlug": COURSE_ID,
            "moduleId": "m1",
            "title": title,
            "order": order,
        }
        fm.update(extra)
        return fm

    return _fm
