"""Command-line interface for course-sync.

Subcommands:

- ``status``    -- diff summary, conflicts and pending changes.
- ``diff``      -- itemised diff with field changes.
- ``conflicts`` -- platform drift against the last sync.
- ``push``      -- write source changes to the platform.
- ``validate``  -- strict lesson front-matter checks.

Exit codes: 0 success, 1 hard error, 2 unresolved conflicts.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import SyncConfig, load_config
from .errors import CourseSyncError
from .logger import setup_logging
from .sync.discovery import discover_lessons
from .sync.engine import SyncEngine
from .sync.models import ALL_COLLECTIONS, DOCUMENT_COLLECTIONS
from .sync.reporter import (
    conflicts_to_json,
    diff_to_json,
    format_conflict_report,
    format_diff_report,
    format_dry_run_preview,
    format_sync_report,
    format_validation_report,
    format_warnings,
    report_to_json,
    validation_to_json,
)
from .sync.validation import validate_lessons

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFLICTS = 2


def _emit(data: dict) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_status(config: SyncConfig, args: argparse.Namespace) -> int:
    engine = SyncEngine(config)
    state = engine.state_store.load()

    diffs = {c: engine.diff(c, args.course) for c in DOCUMENT_COLLECTIONS}
    conflicts = {
        c: engine.conflicts(c, args.course, state=state)
        for c in ALL_COLLECTIONS
    }
    has_conflicts = any(r.has_conflicts for r in conflicts.values())

    if args.json:
        _emit(
            {
                "platform_root": str(config.platform_root),
                "last_sync": state.get("lastSync"),
                "diff": {c: d.summary.model_dump() for c, d in diffs.items()},
                "pending": {
                    c: [i.key for i in d.pending] for c, d in diffs.items()
                },
                "conflicts": {
                    c: conflicts_to_json(r) for c, r in conflicts.items()
                },
            }
        )
        return EXIT_CONFLICTS if has_conflicts else EXIT_OK

    lines = [
        f"Platform:  {config.platform_root}",
        f"Courses:   {', '.join(config.courses)}",
        f"Last sync: {state.get('lastSync') or 'never'}",
        "",
    ]
    for collection, diff in diffs.items():
        s = diff.summary
        lines.append(
            f"{collection}: {s.total} total, {s.added} added, "
            f"{s.modified} modified, {s.removed} removed, "
            f"{s.unchanged} unchanged"
        )
        for item in diff.pending:
            lines.append(f"  {item.status.value:<9} {item.key}")
    lines.append("")
    for report in conflicts.values():
        if report.has_conflicts:
            lines.append(format_conflict_report(report))
            lines.append("")
    if not has_conflicts:
        lines.append("No conflicts.")
    warnings = [w for d in diffs.values() for w in d.warnings]
    if warnings:
        lines.append("")
        lines.extend(format_warnings(warnings))
    print("\n".join(lines).rstrip())
    return EXIT_CONFLICTS if has_conflicts else EXIT_OK


def cmd_diff(config: SyncConfig, args: argparse.Namespace) -> int:
    engine = SyncEngine(config)
    collections = args.collection or list(DOCUMENT_COLLECTIONS)
    diffs = [
        engine.diff(c, args.course, include_unchanged=args.all)
        for c in collections
    ]
    if args.json:
        _emit({d.collection: diff_to_json(d) for d in diffs})
    else:
        print("\n\n".join(format_diff_report(d) for d in diffs))
    return EXIT_OK


def cmd_conflicts(config: SyncConfig, args: argparse.Namespace) -> int:
    engine = SyncEngine(config)
    state = engine.state_store.load()
    collections = args.collection or list(ALL_COLLECTIONS)
    reports = [
        engine.conflicts(c, args.course, state=state) for c in collections
    ]

    if args.json:
        _emit({r.collection: conflicts_to_json(r) for r in reports})
    else:
        print("\n\n".join(format_conflict_report(r) for r in reports))
    if any(r.has_conflicts for r in reports):
        return EXIT_CONFLICTS
    return EXIT_OK


def cmd_push(config: SyncConfig, args: argparse.Namespace) -> int:
    engine = SyncEngine(config)
    report = engine.push(
        dry_run=args.dry_run,
        force=args.force,
        course_id=args.course,
        slug=args.slug,
        collections=args.collection or ALL_COLLECTIONS,
    )
    if args.json:
        _emit(report_to_json(report))
    elif report.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_sync_report(report))
    return report.exit_code


def cmd_validate(config: SyncConfig, args: argparse.Namespace) -> int:
    manifest = discover_lessons(config, args.course)
    result = validate_lessons(manifest.documents, config.courses)

    if args.json:
        _emit(
            {
                "discovery": {
                    "lessons": len(manifest.documents),
                    "warnings": [
                        w.model_dump(mode="json") for w in manifest.warnings
                    ],
                },
                "validation": validation_to_json(result),
            }
        )
    else:
        lines = [f"Discovered {len(manifest.documents)} lessons", ""]
        lines.extend(format_warnings(manifest.warnings))
        lines.append(format_validation_report(result))
        print("\n".join(lines))
    return EXIT_OK if result.valid else EXIT_ERROR


COMMANDS = {
    "status": cmd_status,
    "diff": cmd_diff,
    "conflicts": cmd_conflicts,
    "push": cmd_push,
    "validate": cmd_validate,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--course", help="Restrict to one course id")
    common.add_argument(
        "--json", action="store_true", help="Print machine-readable JSON"
    )
    common.add_argument(
        "--config",
        type=Path,
        help="Config file (disables config discovery)",
    )
    common.add_argument(
        "--platform-root",
        help="Platform repository root (takes precedence over "
        "COURSE_SYNC_PLATFORM env var and config files)",
    )
    common.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    common.add_argument("--log-file", help="Also write logs to this file")
    common.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log record format (default: text)",
    )

    parser = argparse.ArgumentParser(
        prog="course-sync",
        description="One-way sync of course lessons, guides and assets "
        "to a deployment platform",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # What would change, and is anything in conflict?
  course-sync status

  # Itemised diff for one course, including unchanged lessons
  course-sync diff --course intro-python --all

  # Preview, then push
  course-sync push --dry-run
  course-sync push

  # Overwrite edits made directly on the platform
  course-sync push --force

  # Check lesson front matter before pushing
  course-sync validate

Exit codes: 0 success, 1 error, 2 unresolved conflicts.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"course-sync version {__version__}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser(
        "status", parents=[common], help="Summarise pending changes"
    )

    p_diff = sub.add_parser(
        "diff", parents=[common], help="Show an itemised diff"
    )
    p_diff.add_argument(
        "--collection",
        action="append",
        choices=DOCUMENT_COLLECTIONS,
        help="Collection to diff (repeatable; default: all)",
    )
    p_diff.add_argument(
        "--all", action="store_true", help="Include unchanged documents"
    )

    p_conflicts = sub.add_parser(
        "conflicts", parents=[common], help="List platform conflicts"
    )
    p_conflicts.add_argument(
        "--collection",
        action="append",
        choices=ALL_COLLECTIONS,
        help="Collection to check (repeatable; default: all)",
    )

    p_push = sub.add_parser(
        "push", parents=[common], help="Push changes to the platform"
    )
    p_push.add_argument(
        "--dry-run", action="store_true", help="Show what would change"
    )
    p_push.add_argument(
        "--force", action="store_true", help="Overwrite conflicted keys"
    )
    p_push.add_argument("--slug", help="Push a single document slug")
    p_push.add_argument(
        "--collection",
        action="append",
        choices=ALL_COLLECTIONS,
        help="Collection to push (repeatable; default: all)",
    )

    sub.add_parser(
        "validate", parents=[common], help="Validate lesson front matter"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run one command and return its exit code."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(
        debug=args.debug, log_file=args.log_file, log_format=args.log_format
    )

    try:
        config = load_config(
            platform_root=args.platform_root, config_path=args.config
        )
        if config.logging.file or config.logging.level != "WARNING":
            setup_logging(
                debug=args.debug,
                log_file=args.log_file or config.logging.file,
                log_format=args.log_format,
                level=config.logging.level,
            )
        return COMMANDS[args.command](config, args)
    except CourseSyncError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    run()
