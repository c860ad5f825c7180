"""Standalone CLI: sync one report file to the Scout Tracker.

Usage:
    python sync_report.py reports/journal-report-2026-02-07.md
    python sync_report.py reports/report-2026-02-07.json

Requires SCOUT_TRACKER_URL and SCOUT_TRACKER_KEY (environment or .env).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from config import ConfigError, Settings
from report_parser import ReportParseError, parse_file
from tracker_client import TrackerClient, TrackerSyncError

LOGGER = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync a scout report to the Scout Tracker")
    parser.add_argument("report_file", help="Markdown (.md) or JSON (.json) report to sync")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    # Fail on missing credentials before touching the report.
    try:
        client = TrackerClient.from_settings(Settings.from_env())
    except ConfigError as exc:
        LOGGER.error("%s", exc)
        return 1

    path = Path(args.report_file).resolve()
    if not path.is_file():
        LOGGER.error("File not found: %s", path)
        return 1

    try:
        parsed = parse_file(path)
    except (ReportParseError, OSError, UnicodeDecodeError) as exc:
        LOGGER.error("Failed to parse report: %s", exc)
        return 1

    try:
        result = client.sync(parsed, file_path=str(path))
    except TrackerSyncError as exc:
        LOGGER.error("Sync failed: %s", exc)
        return 1

    LOGGER.info(
        "Done! %s of %s opportunities synced to Scout Tracker (report id=%s).",
        len(result.opportunity_ids),
        len(parsed.opportunities),
        result.report_id,
    )
    if result.failed_opportunities:
        LOGGER.warning("Not synced: %s", ", ".join(result.failed_opportunities))
    return 0


if __name__ == "__main__":
    sys.exit(main())
