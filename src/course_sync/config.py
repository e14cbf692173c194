"""Resolved runtime configuration for the sync engine.

Reads the platform root and the course source mapping from CLI args,
environment variables, .env files, and the YAML config.

Precedence for the platform root (highest to lowest):
    CLI arg > COURSE_SYNC_PLATFORM env var > YAML ``platform.path``

Relative paths are resolved against the current working directory.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .config_loader import load_hierarchical_config
from .config_schema import (
    DEFAULT_PROTECTED_FIELDS,
    LoggingConfig,
    UnifiedConfig,
    build_config,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class SyncConfig:
    platform_root: Path
    courses: dict[str, Path]
    protected_fields: tuple[str, ...] = DEFAULT_PROTECTED_FIELDS
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def source_dir(self, course_id: str) -> Path | None:
        """Return the source directory for *course_id*, or ``None``."""
        return self.courses.get(course_id)


def validate_config(config: SyncConfig) -> None:
    """Validate a resolved configuration and raise ConfigError if unusable.

    Args:
        config: SyncConfig instance to validate.

    Raises:
        ConfigError: If the platform root does not exist or no courses
            are configured.
    """
    if not config.platform_root.is_dir():
        raise ConfigError(
            f"Platform directory not found: {config.platform_root}"
        )

    if not config.courses:
        raise ConfigError(
            "No courses configured. Add a 'courses' section mapping "
            "course ids to source directories."
        )

    for course_id, source_dir in config.courses.items():
        if not source_dir.is_dir():
            # Discovery reports this per course; not fatal
            logger.warning(
                "Source directory for course %s not found: %s",
                course_id,
                source_dir,
            )


def _resolve(path_str: str, base: Path) -> Path:
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def config_from_unified(
    unified: UnifiedConfig,
    platform_root: str | None = None,
    base_dir: Path | None = None,
) -> SyncConfig:
    """Resolve a ``UnifiedConfig`` into a ``SyncConfig`` (NOT validated).

    Args:
        unified: Parsed config file contents.
        platform_root: Override for the platform root (CLI argument).
        base_dir: Directory relative paths are resolved against
            (default: current working directory).

    Raises:
        ConfigError: If no platform root is available from any source.
    """
    base = base_dir or Path.cwd()

    root_str = (
        platform_root
        or os.getenv("COURSE_SYNC_PLATFORM")
        or unified.platform.path
    )
    if not root_str:
        raise ConfigError(
            "Platform root not found. Set COURSE_SYNC_PLATFORM, pass "
            "--platform-root, or add 'platform.path' to the config file."
        )

    courses = {
        course_id: _resolve(mapping.source_dir, base)
        for course_id, mapping in sorted(unified.courses.items())
    }

    protected = DEFAULT_PROTECTED_FIELDS + tuple(
        f for f in unified.sync.protected_fields
        if f not in DEFAULT_PROTECTED_FIELDS
    )

    return SyncConfig(
        platform_root=_resolve(root_str, base),
        courses=courses,
        protected_fields=protected,
        logging=unified.logging,
    )


def load_config(
    platform_root: str | None = None,
    config_path: Path | None = None,
) -> SyncConfig:
    """Load, resolve and validate the configuration.

    The caller is responsible for calling ``load_dotenv()`` first so that
    .env values are visible to env var interpolation.

    Args:
        platform_root: Override platform root (takes precedence over env
            var and YAML).
        config_path: Explicit config file; disables discovery.

    Returns:
        Validated SyncConfig instance.

    Raises:
        ConfigError: On any missing or invalid configuration.
    """
    raw = load_hierarchical_config(config_path)
    unified = build_config(raw)
    config = config_from_unified(unified, platform_root=platform_root)
    validate_config(config)
    return config
