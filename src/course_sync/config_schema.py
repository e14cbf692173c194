"""Configuration schema for course_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the platform, the course source mapping, sync behaviour and
logging.

Usage:
    from course_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

#: Front-matter keys managed by the deployment platform.  They are never
#: compared or overwritten-by-diff, so commerce data can change on the
#: platform without registering as drift.
DEFAULT_PROTECTED_FIELDS: tuple[str, ...] = (
    "price",
    "stripeProductId",
    "stripePriceId",
    "enrollmentCount",
    "publishedAt",
    "updatedAt",
)

# Namespace prefixes of non-lesson state keys
_RESERVED_COURSE_IDS = frozenset({"guides", "assets"})


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class PlatformConfig(BaseModel):
    """Deployment platform location."""

    path: str | None = Field(
        default=None, description="Platform repository root"
    )

    model_config = {"frozen": True}


class CourseMapping(BaseModel):
    """Where the source material for one course lives."""

    source_dir: str = Field(
        min_length=1, description="Course source directory"
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Sync behaviour tweaks.

    Attributes:
        protected_fields: Extra platform-owned front-matter keys, appended
            to ``DEFAULT_PROTECTED_FIELDS``.
    """

    protected_fields: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level '{value}'")
        return upper


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration.

    Every section has defaults so ``UnifiedConfig()`` is valid; whether the
    result is usable for a sync is decided later by ``load_config()``.
    """

    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    courses: dict[str, CourseMapping] = Field(default_factory=dict)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    @field_validator("courses")
    @classmethod
    def _safe_course_ids(
        cls, value: dict[str, CourseMapping]
    ) -> dict[str, CourseMapping]:
        for course_id in value:
            if not course_id or "/" in course_id or course_id.startswith("."):
                raise ValueError(
                    f"invalid course id '{course_id}': must be a plain directory name"
                )
            if course_id in _RESERVED_COURSE_IDS:
                raise ValueError(
                    f"invalid course id '{course_id}': reserved for state keys"
                )
        return value


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def _format_issues(exc: ValidationError) -> str:
    return "\n".join(
        f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        ConfigError: If the data does not match the schema.
    """
    if not raw_data:
        return UnifiedConfig()

    try:
        return UnifiedConfig(**raw_data)
    except ValidationError as exc:
        raise ConfigError(
            f"Configuration validation failed:\n{_format_issues(exc)}"
        ) from exc
