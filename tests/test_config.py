"""Tests for course_sync.config: resolution and validation."""

from pathlib import Path

import pytest

from course_sync.config import (
    SyncConfig,
    config_from_unified,
    load_config,
    validate_config,
)
from course_sync.config_schema import DEFAULT_PROTECTED_FIELDS, build_config
from course_sync.errors import ConfigError


def _unified(**raw):
    return build_config(raw)


class TestConfigFromUnified:
    def test_platform_from_yaml(self, tmp_path):
        config = config_from_unified(
            _unified(platform={"path": "platform"}), base_dir=tmp_path
        )
        assert config.platform_root == (tmp_path / "platform").resolve()

    def test_env_beats_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COURSE_SYNC_PLATFORM", str(tmp_path / "env"))
        config = config_from_unified(_unified(platform={"path": "/yaml"}))
        assert config.platform_root == (tmp_path / "env").resolve()

    def test_cli_beats_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COURSE_SYNC_PLATFORM", str(tmp_path / "env"))
        config = config_from_unified(
            _unified(), platform_root=str(tmp_path / "cli")
        )
        assert config.platform_root == (tmp_path / "cli").resolve()

    def test_missing_platform_root(self):
        with pytest.raises(ConfigError, match="Platform root not found"):
            config_from_unified(_unified())

    def test_relative_paths_resolve_against_base(self, tmp_path):
        config = config_from_unified(
            _unified(
                platform={"path": "/srv/platform"},
                courses={"intro": {"source_dir": "materials/intro"}},
            ),
            base_dir=tmp_path,
        )
        assert config.courses == {
            "intro": (tmp_path / "materials" / "intro").resolve()
        }

    def test_relative_paths_default_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = config_from_unified(
            _unified(courses={"intro": {"source_dir": "intro"}}),
            platform_root="platform",
        )
        assert config.platform_root == (tmp_path / "platform").resolve()
        assert config.source_dir("intro") == (tmp_path / "intro").resolve()
        assert config.source_dir("missing") is None

    def test_home_expanded(self, tmp_path):
        config = config_from_unified(
            _unified(platform={"path": "~/platform"})
        )
        assert config.platform_root == (tmp_path / "home" / "platform").resolve()

    def test_extra_protected_fields_appended(self):
        config = config_from_unified(
            _unified(
                platform={"path": "/p"},
                sync={"protected_fields": ["featured", "price"]},
            )
        )
        assert config.protected_fields == DEFAULT_PROTECTED_FIELDS + (
            "featured",
        )

    def test_logging_section_carried(self):
        config = config_from_unified(
            _unified(platform={"path": "/p"}, logging={"level": "debug"})
        )
        assert config.logging.level == "DEBUG"


class TestValidateConfig:
    def test_valid(self, sync_config):
        validate_config(sync_config)

    def test_missing_platform_dir(self, tmp_path, source_dir):
        config = SyncConfig(
            platform_root=tmp_path / "nope", courses={"intro": source_dir}
        )
        with pytest.raises(ConfigError, match="Platform directory not found"):
            validate_config(config)

    def test_no_courses(self, platform_root):
        with pytest.raises(ConfigError, match="No courses configured"):
            validate_config(SyncConfig(platform_root=platform_root, courses={}))

    def test_missing_source_dir_only_warns(self, platform_root, tmp_path, caplog):
        config = SyncConfig(
            platform_root=platform_root, courses={"intro": tmp_path / "gone"}
        )
        validate_config(config)
        assert "Source directory for course intro not found" in caplog.text


class TestLoadConfig:
    def _write(self, path: Path, text: str) -> Path:
        path.write_text(text, encoding="utf-8")
        return path

    def test_end_to_end(self, tmp_path, platform_root, source_dir):
        cfg = self._write(
            tmp_path / "config.yml",
            f"platform:\n  path: {platform_root}\n"
            f"courses:\n  intro-python:\n    source_dir: {source_dir}\n",
        )
        config = load_config(config_path=cfg)
        assert config.platform_root == platform_root.resolve()
        assert config.courses == {"intro-python": source_dir.resolve()}

    def test_cli_platform_root_override(self, tmp_path, platform_root, source_dir):
        cfg = self._write(
            tmp_path / "config.yml",
            "platform:\n  path: /does/not/exist\n"
            f"courses:\n  intro-python:\n    source_dir: {source_dir}\n",
        )
        config = load_config(platform_root=str(platform_root), config_path=cfg)
        assert config.platform_root == platform_root.resolve()

    def test_env_interpolation(self, tmp_path, platform_root, source_dir, monkeypatch):
        monkeypatch.setenv("MATERIALS", str(source_dir))
        cfg = self._write(
            tmp_path / "config.yml",
            f"platform:\n  path: {platform_root}\n"
            "courses:\n  intro-python:\n    source_dir: ${MATERIALS}\n",
        )
        assert load_config(config_path=cfg).source_dir("intro-python") == (
            source_dir.resolve()
        )

    def test_no_config_at_all(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError):
            load_config()
