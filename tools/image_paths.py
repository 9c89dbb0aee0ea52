"""Command-line harness for auditing and repairing stored post image references."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable

from blog_api.database import SessionLocal
from blog_api.services import ImageReferenceReport, analyze_image_references, fix_all_image_references


def _print_reports(reports: Iterable[ImageReferenceReport], *, only_flagged: bool) -> int:
    shown = 0
    for report in reports:
        if only_flagged and not report.needs_fix:
            continue
        shown += 1
        marker = "FIX" if report.needs_fix else "ok "
        suggestion = report.suggested_path or "(no suggestion)"
        print(f"[{marker}] {report.post_id} | {report.kind.value:<16} | {report.original!r} -> {suggestion}")
        print(f"       {report.title}")
    return shown


def _run_analyze(args: argparse.Namespace) -> int:
    with SessionLocal() as db:
        reports = analyze_image_references(db)
    flagged = sum(1 for report in reports if report.needs_fix)
    if not _print_reports(reports, only_flagged=args.flagged):
        print("No image references found.")
    print("-" * 80)
    print(f"{len(reports)} references, {flagged} need fixing")
    return 0


def _run_fix(args: argparse.Namespace) -> int:
    with SessionLocal() as db:
        reports = analyze_image_references(db)
        if args.dry_run:
            shown = _print_reports(reports, only_flagged=True)
            print(f"Dry run: {shown} references would be rewritten or skipped")
            return 0
        summary = fix_all_image_references(db, reports)

    print(
        f"attempted={summary.attempted} fixed={summary.fixed} "
        f"failed={summary.failed} skipped={summary.skipped}"
    )
    for outcome in summary.failures:
        print(f"  failed {outcome.post_id} -> {outcome.path}: {outcome.error}", file=sys.stderr)
    return 1 if summary.failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Audit and normalise stored post image references.")
    parser.add_argument("--verbose", action="store_true", help="Log service activity to stderr.")
    subcommands = parser.add_subparsers(dest="command", required=True)

    analyze = subcommands.add_parser("analyze", help="Classify every stored image reference.")
    analyze.add_argument("--flagged", action="store_true", help="Only list references that need fixing.")
    analyze.set_defaults(func=_run_analyze)

    fix = subcommands.add_parser("fix", help="Rewrite flagged references to their canonical paths.")
    fix.add_argument("--dry-run", action="store_true", help="Show what would change without writing.")
    fix.set_defaults(func=_run_fix)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.error("Please supply a sub-command")
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
