"""Report formatting functions.

Provides human-readable and machine-readable output for every command:

- ``format_diff_report`` -- itemised diff with field changes.
- ``format_conflict_report`` -- platform drift per key.
- ``format_sync_report`` -- full post-push summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by outcome.
- ``format_validation_report`` -- front-matter validation result.
- ``*_to_json`` -- structured dicts for ``--json`` output.
"""

from __future__ import annotations

import json
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Iterable

from .models import ChangeKind, DiffStatus, SyncOutcome

if TYPE_CHECKING:
    from .models import (
        ConflictReport,
        DiffResult,
        DiscoveryWarning,
        FieldChange,
        SyncReport,
    )
    from .validation import ValidationResult

_STATUS_MARKERS = {
    DiffStatus.ADDED: "+",
    DiffStatus.MODIFIED: "~",
    DiffStatus.REMOVED: "-",
    DiffStatus.UNCHANGED: "=",
}


def _value(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


def format_warnings(warnings: Iterable[DiscoveryWarning]) -> list[str]:
    """One line per warning, or nothing."""
    warnings = list(warnings)
    if not warnings:
        return []
    lines = [f"Warnings ({len(warnings)}):"]
    for w in warnings:
        where = f" [{w.path}]" if w.path else ""
        lines.append(f"  ! {w.code}: {w.message}{where}")
    lines.append("")
    return lines


# ------------------------------------------------------------------
# Diff
# ------------------------------------------------------------------


def format_field_change(change: FieldChange) -> str:
    if change.kind == ChangeKind.ADDED:
        return f"{change.field}: (absent) -> {_value(change.source_value)}"
    if change.kind == ChangeKind.REMOVED:
        return f"{change.field}: {_value(change.platform_value)} -> (absent)"
    return (
        f"{change.field}: {_value(change.platform_value)} -> "
        f"{_value(change.source_value)}"
    )


def format_diff_report(diff: DiffResult, verbose: bool = True) -> str:
    """Format a diff as text.

    Args:
        diff: Diff for one collection.
        verbose: Include per-field changes under modified items.

    Returns:
        Multi-line formatted string.
    """
    s = diff.summary
    lines = [
        f"Diff for {diff.collection}: {s.added} added, {s.modified} modified, "
        f"{s.removed} removed, {s.unchanged} unchanged",
        "",
    ]

    if not diff.pending:
        lines.append("Everything is in sync.")
        lines.append("")

    for item in diff.items:
        detail = ""
        if item.status == DiffStatus.MODIFIED:
            detail = " (body)" if item.body_changed else " (front matter)"
        lines.append(f"  {_STATUS_MARKERS[item.status]} {item.key}{detail}")
        if verbose:
            for change in item.changes:
                lines.append(f"      {format_field_change(change)}")
    if diff.items:
        lines.append("")

    lines.extend(format_warnings(diff.warnings))
    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflicts
# ------------------------------------------------------------------


def format_conflict_report(report: ConflictReport) -> str:
    """Format detected conflicts as text."""
    if not report.has_conflicts:
        return (
            f"No {report.collection} conflicts "
            f"({report.total_checked} checked)."
        )

    lines = [
        f"{len(report.conflicts)} {report.collection} conflict(s) "
        f"({report.total_checked} checked):",
    ]
    for c in report.conflicts:
        lines.append(f"  [{c.kind.value}] {c.key}: {c.summary}")
        if c.last_synced_at:
            lines.append(f"      last synced: {c.last_synced_at}")
        if c.expected_hash or c.current_hash:
            lines.append(
                f"      expected {(c.expected_hash or '-')[:12]}, "
                f"found {(c.current_hash or '-')[:12]}"
            )
    lines.append("")
    lines.append("Use --force to overwrite conflicted keys.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# Push
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete push report as human-readable text.

    Sections are only included when they contain at least one result.
    Unchanged keys are summarised by count only to avoid excessive output.

    Args:
        report: The completed push report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = "Push report"
    if report.dry_run:
        header += " (DRY RUN)"
    if report.force:
        header += " (FORCE)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    c = report.counts()
    lines.append(
        f"Processed {c['total']} keys: {c['created']} created, "
        f"{c['updated']} updated, {c['unchanged']} unchanged, "
        f"{c['skipped']} skipped, {c['errors']} errors"
    )
    lines.append("")

    by_outcome: dict[SyncOutcome, list] = defaultdict(list)
    for r in report.results:
        by_outcome[r.outcome].append(r)

    for outcome, title in (
        (SyncOutcome.CREATED, "Created:"),
        (SyncOutcome.UPDATED, "Updated:"),
    ):
        if by_outcome[outcome]:
            lines.append(title)
            for r in by_outcome[outcome]:
                lines.append(f"  {r.key} -> {r.target_path}")
            lines.append("")

    if by_outcome[SyncOutcome.SKIPPED]:
        lines.append("Skipped (conflicts):")
        for r in by_outcome[SyncOutcome.SKIPPED]:
            lines.append(f"  {r.key}: {r.message}")
        lines.append("Use --force to overwrite.")
        lines.append("")

    if by_outcome[SyncOutcome.ERROR]:
        lines.append("Errors:")
        for r in by_outcome[SyncOutcome.ERROR]:
            lines.append(f"  {r.key}: {r.message}")
        lines.append("")

    lines.extend(format_warnings(report.warnings))
    return "\n".join(lines).rstrip()


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by outcome.

    Each proposed write is shown as ``[OUTCOME] key -> target``.

    Args:
        report: A dry-run report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = ["DRY RUN -- No changes will be made", ""]

    groups: dict[SyncOutcome, list] = defaultdict(list)
    for r in report.results:
        groups[r.outcome].append(r)

    for outcome in (SyncOutcome.CREATED, SyncOutcome.UPDATED):
        if outcome not in groups:
            continue
        lines.append(f"[{outcome.value.upper()}]")
        for r in groups[outcome]:
            lines.append(f"  {r.key} -> {r.target_path}")
        lines.append("")

    if SyncOutcome.SKIPPED in groups:
        lines.append("[SKIPPED]")
        for r in groups[SyncOutcome.SKIPPED]:
            lines.append(f"  {r.key}: {r.message}")
        lines.append("")

    unchanged = len(groups.get(SyncOutcome.UNCHANGED, []))
    if unchanged:
        lines.append(f"Unchanged: {unchanged} keys")
        lines.append("")

    if not report.created and not report.updated:
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


def format_validation_report(result: ValidationResult) -> str:
    lines = ["Front-matter validation:"]
    if result.valid:
        lines.append(f"  All {result.total_files} files valid")
    else:
        lines.append(f"  {result.valid_files} valid")
        lines.append(f"  {result.invalid_files} invalid")
        lines.append("")
        for f in result.files:
            lines.append(f"  {f.course_id}/{f.relative_path}:")
            for err in f.errors:
                lines.append(f"    x {err.field}: {err.message}")
                if err.suggestion:
                    lines.append(f"      {err.suggestion}")

    if result.warnings:
        lines.append("")
        lines.append("Warnings:")
        for w in result.warnings:
            lines.append(f"  ! {w.message}: {', '.join(w.files)}")

    lines.append("")
    if result.valid:
        lines.append("Validation passed. Ready to push.")
    else:
        lines.append("Validation failed. Fix errors before pushing.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def diff_to_json(diff: DiffResult) -> dict:
    return diff.model_dump(mode="json")


def conflicts_to_json(report: ConflictReport) -> dict:
    data = report.model_dump(mode="json")
    data["has_conflicts"] = report.has_conflicts
    return data


def validation_to_json(result: ValidationResult) -> dict:
    return result.model_dump(mode="json")


def report_to_json(report: SyncReport) -> dict:
    """Convert a push report to a structured dict for JSON serialisation.

    Args:
        report: The push report.

    Returns:
        Dict with flags, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "key": r.key,
            "collection": r.collection,
            "outcome": r.outcome.value,
        }
        if r.target_path:
            entry["target_path"] = r.target_path
        if r.message:
            entry["message"] = r.message
        results_list.append(entry)

    return {
        "dry_run": report.dry_run,
        "force": report.force,
        "success": report.success,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": report.counts(),
        "results": results_list,
        "warnings": [w.model_dump(mode="json") for w in report.warnings],
    }
