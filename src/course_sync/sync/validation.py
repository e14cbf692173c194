"""Front-matter validation for lessons.

Lessons are checked against a strict schema before a push: ``courseSlug``,
``moduleId`` and ``title`` must be non-empty strings and ``order`` a
positive integer.  Unknown fields are allowed.  ``courseSlug`` must name a
configured course, and two lessons of the same module may not share an
``order``.
"""

from __future__ import annotations

import logging
from typing import Iterable

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
)

from course_sync.sync.models import SourceDocument

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class LessonResource(BaseModel):
    label: StrictStr
    path: StrictStr


class LessonFrontMatter(BaseModel):
    """Required lesson metadata; extra keys pass through untouched."""

    courseSlug: StrictStr = Field(min_length=1)
    moduleId: StrictStr = Field(min_length=1)
    title: StrictStr = Field(min_length=1)
    order: StrictInt = Field(gt=0)
    description: StrictStr | None = None
    durationMinutes: StrictInt | StrictFloat | None = None
    draft: StrictBool | None = None
    resources: list[LessonResource] | None = None

    model_config = ConfigDict(extra="allow")


_SUGGESTIONS = {
    "courseSlug": 'Add courseSlug field, e.g. courseSlug: "my-course"',
    "moduleId": 'Add moduleId field, e.g. moduleId: "m1"',
    "title": 'Add title field, e.g. title: "Introduction"',
    "order": "Add order field as a positive integer, e.g. order: 1",
    "front_matter": "Add YAML front matter between --- lines at the start of the file",
}


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class ValidationIssue(BaseModel):
    field: str
    message: str
    suggestion: str | None = None

    model_config = {"frozen": True}


class FileValidation(BaseModel):
    """Validation outcome for one lesson file."""

    path: str
    relative_path: str
    course_id: str
    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)

    model_config = {"frozen": True}


class ValidationWarning(BaseModel):
    code: str
    message: str
    files: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    """Aggregate result; ``files`` lists only the invalid ones."""

    valid: bool
    total_files: int = 0
    valid_files: int = 0
    invalid_files: int = 0
    files: list[FileValidation] = Field(default_factory=list)
    warnings: list[ValidationWarning] = Field(default_factory=list)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _suggestion(field: str, course_ids: list[str] | None = None) -> str:
    if field == "courseSlug" and course_ids:
        return f"Use one of: {', '.join(course_ids)}"
    return _SUGGESTIONS.get(field, f"Check the {field} field")


def validate_lesson(
    lesson: SourceDocument, course_ids: Iterable[str]
) -> FileValidation:
    """Validate one lesson's front matter, collecting every problem."""
    known = sorted(course_ids)
    fm = lesson.front_matter
    base = {
        "path": lesson.path,
        "relative_path": lesson.relative_path,
        "course_id": lesson.course_id,
    }

    if not fm:
        return FileValidation(
            valid=False,
            errors=[
                ValidationIssue(
                    field="front_matter",
                    message="No front matter found",
                    suggestion=_SUGGESTIONS["front_matter"],
                )
            ],
            **base,
        )

    errors: list[ValidationIssue] = []
    try:
        LessonFrontMatter.model_validate(fm)
    except ValidationError as exc:
        for err in exc.errors():
            field = str(err["loc"][0]) if err["loc"] else "unknown"
            errors.append(
                ValidationIssue(
                    field=field,
                    message=err["msg"],
                    suggestion=_suggestion(field),
                )
            )

    course_slug = fm.get("courseSlug")
    if isinstance(course_slug, str) and course_slug and course_slug not in known:
        errors.append(
            ValidationIssue(
                field="courseSlug",
                message=f'Unknown course: "{course_slug}"',
                suggestion=_suggestion("courseSlug", known),
            )
        )

    return FileValidation(valid=not errors, errors=errors, **base)


def detect_duplicate_orders(
    lessons: Iterable[SourceDocument],
) -> list[ValidationWarning]:
    """Warn when lessons of one ``courseSlug:moduleId`` share an order."""
    groups: dict[str, dict[int, list[str]]] = {}
    for lesson in lessons:
        fm = lesson.front_matter
        slug, module_id, order = (
            fm.get("courseSlug"),
            fm.get("moduleId"),
            fm.get("order"),
        )
        if not (isinstance(slug, str) and isinstance(module_id, str)):
            continue
        if isinstance(order, bool) or not isinstance(order, int):
            continue
        group = groups.setdefault(f"{slug}:{module_id}", {})
        group.setdefault(order, []).append(lesson.relative_path)

    warnings = []
    for group_key in sorted(groups):
        for order, files in sorted(groups[group_key].items()):
            if len(files) > 1:
                warnings.append(
                    ValidationWarning(
                        code="DUPLICATE_ORDER",
                        message=f"Duplicate order {order} in {group_key}",
                        files=files,
                    )
                )
    return warnings


def validate_lessons(
    lessons: list[SourceDocument], course_ids: Iterable[str]
) -> ValidationResult:
    """Validate every lesson.

    Args:
        lessons: Discovered lessons.
        course_ids: Configured course ids.

    Returns:
        ``ValidationResult``; ``valid`` is ``False`` if any file failed.
        Duplicate orders are warnings only.
    """
    course_ids = list(course_ids)
    invalid = []
    for lesson in lessons:
        result = validate_lesson(lesson, course_ids)
        if not result.valid:
            invalid.append(result)

    warnings = detect_duplicate_orders(lessons)
    for w in warnings:
        logger.warning("%s: %s", w.code, w.message)

    return ValidationResult(
        valid=not invalid,
        total_files=len(lessons),
        valid_files=len(lessons) - len(invalid),
        invalid_files=len(invalid),
        files=invalid,
        warnings=warnings,
    )
