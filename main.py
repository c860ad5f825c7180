"""CLI entrypoint for the Journal Scout run: collect -> render -> write -> sync."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from dotenv import load_dotenv

from config import ConfigError, Settings
from journal_feed import category_for, collect, default_queries
from models import Category, PaperRecord, SourceName
from report import CATEGORY_SLUGS, render_report, report_path, write_report
from report_parser import ReportParseError, parse_file
from tracker_client import TrackerClient, TrackerSyncError


def _non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(
        description="Scan PubMed and Semantic Scholar and write a Journal Scout report"
    )
    parser.add_argument(
        "--days",
        type=_non_negative_int,
        default=None,
        help="Look back this many days (overrides JOURNAL_DAYS_BACK, default 7)",
    )
    parser.add_argument(
        "--split",
        action="store_true",
        help="Write one report per category instead of a single combined report",
    )
    parser.add_argument(
        "--no-sync",
        action="store_true",
        help="Do not push written reports to the Scout Tracker even if it is configured",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Collect and render, but only log what would be written",
    )
    return parser.parse_args(argv)


def collect_all(settings: Settings) -> tuple[dict[Category, list[PaperRecord]], int]:
    """Collect every source in turn; returns capped papers per category and total scanned."""
    papers_by_category: dict[Category, list[PaperRecord]] = {}
    total_scanned = 0

    for source in (SourceName.PUBMED, SourceName.SEMANTIC_SCHOLAR):
        logging.info("Fetching %s papers from %s...", category_for(source), source)
        result = collect(default_queries(source), settings.lookback_days, source, settings)
        total_scanned += result.scanned
        kept = result.papers[: settings.max_papers_per_category]
        papers_by_category.setdefault(category_for(source), []).extend(kept)
        logging.info(
            "%s: scanned=%s unique=%s kept=%s", source, result.scanned, len(result.papers), len(kept)
        )

    return papers_by_category, total_scanned


def build_reports(
    papers_by_category: dict[Category, list[PaperRecord]],
    total_scanned: int,
    settings: Settings,
    *,
    split: bool,
) -> list[tuple[Path, str]]:
    """Render the report text(s) and their target paths, without writing."""
    today = datetime.now(UTC).date()
    stats = {"totalScanned": total_scanned}

    if not split:
        text = render_report(
            papers_by_category, stats, lookback_days=settings.lookback_days, today=today
        )
        return [(report_path(settings.output_dir, today), text)]

    # Split mode mirrors the per-category files: empty categories get no file.
    outputs: list[tuple[Path, str]] = []
    for category in Category:
        if not papers_by_category.get(category):
            continue
        text = render_report(
            papers_by_category,
            stats,
            lookback_days=settings.lookback_days,
            today=today,
            categories=[category],
        )
        outputs.append((report_path(settings.output_dir, today, CATEGORY_SLUGS[category]), text))
    return outputs


def sync_written_reports(paths: list[Path], settings: Settings) -> int:
    """Best-effort in-process sync of each written report; returns the failure count."""
    client = TrackerClient.from_settings(settings)
    failures = 0
    for path in paths:
        logging.info("Syncing %s...", path.name)
        try:
            result = client.sync(parse_file(path), file_path=str(path))
        except (ReportParseError, TrackerSyncError) as exc:
            failures += 1
            logging.error("Sync failed for %s: %s", path.name, exc)
            continue
        logging.info(
            "Synced %s: report id=%s, %s opportunities (%s failed)",
            path.name,
            result.report_id,
            len(result.opportunity_ids),
            len(result.failed_opportunities),
        )
    return failures


def run(settings: Settings, *, split: bool, sync: bool, dry_run: bool) -> list[Path]:
    """Run one scout cycle and return the paths of the reports written."""
    logging.info("Journal Scout — scanning last %s days", settings.lookback_days)
    papers_by_category, total_scanned = collect_all(settings)
    outputs = build_reports(papers_by_category, total_scanned, settings, split=split)

    if dry_run:
        for path, text in outputs:
            logging.info("[dry-run] Would write %s (%d chars)", path, len(text))
        return []

    written = [write_report(path, text) for path, text in outputs]
    for path in written:
        logging.info("Report saved: %s", path)

    if not sync:
        logging.info("Tracker sync disabled for this run")
    elif not settings.sync_enabled:
        logging.info("Tracker sync skipped: SCOUT_TRACKER_URL / SCOUT_TRACKER_KEY not set")
    else:
        sync_written_reports(written, settings)

    return written


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute one scout run. Returns the process exit code."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    try:
        settings = Settings.from_env()
        if args.days is not None:
            settings = dataclasses.replace(settings, lookback_days=args.days)
        run(settings, split=args.split, sync=not args.no_sync, dry_run=args.dry_run)
    except ConfigError as exc:
        logging.error("Configuration error: %s", exc)
        return 1
    except Exception as exc:  # any fatal error ends the run non-zero
        logging.exception("Journal Scout error: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
