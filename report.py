"""Markdown report rendering and atomic report-file output.

The rendered layout is what ``report_parser`` expects from a journal report:

  # Journal Scout Report — YYYY-MM-DD
  ## Overview           scanned-count sentence (meta section, never an opportunity)
  ## <Category title>   one per category, always present
  ### <Paper title>     one per paper: metadata line, link line, abstract, ---

An empty category gets a short placeholder body that stays under the parser's
description threshold, so the section is present but yields no opportunity.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, date, datetime
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Mapping, Sequence

from models import Category, PaperRecord

LOGGER = logging.getLogger(__name__)

REPORT_TITLE = "Journal Scout Report"
NO_RESULTS_PLACEHOLDER = "No notable results."
MAX_DISPLAY_AUTHORS = 3

CATEGORY_TITLES: dict[Category, str] = {
    Category.HEALTH: "Health & Longevity",
    Category.BUSINESS: "Business & Product Opportunities",
}

# File slugs used when each category is written to its own report.
CATEGORY_SLUGS: dict[Category, str] = {
    Category.HEALTH: "health-longevity",
    Category.BUSINESS: "business-ideas",
}
COMBINED_SLUG = "journal-report"


def format_authors(authors: Sequence[str]) -> str:
    """First three surnames joined by commas, then 'et al.' when there are more."""
    if not authors:
        return "Unknown"
    shown = ", ".join(authors[:MAX_DISPLAY_AUTHORS])
    return f"{shown} et al." if len(authors) > MAX_DISPLAY_AUTHORS else shown


def _metadata_line(paper: PaperRecord) -> str:
    line = f"**{paper.venue or 'Unknown venue'}** | {format_authors(paper.authors)} | {paper.published_label}"
    if paper.citation_count:
        line += f" | {paper.citation_count} citations"
    return line


def render_report(
    papers_by_category: Mapping[Category, Sequence[PaperRecord]],
    stats: Mapping[str, int],
    *,
    lookback_days: int,
    today: date | None = None,
    categories: Sequence[Category] | None = None,
) -> str:
    """Render papers grouped by category into one markdown report.

    Args:
        papers_by_category: Papers to list, per category, in display order.
        stats: Run statistics; ``totalScanned`` feeds the overview sentence.
        lookback_days: Search window, shown in the overview sentence.
        today: Report date (defaults to the current UTC date).
        categories: Categories to render, in order. Defaults to every category.
    """
    report_date = (today or datetime.now(UTC).date()).isoformat()
    selected = list(categories) if categories is not None else list(Category)
    total_scanned = int(stats.get("totalScanned", 0))

    lines = [
        f"# {REPORT_TITLE} — {report_date}",
        "",
        "## Overview",
        "",
        f"Scanned {total_scanned} results from PubMed and Semantic Scholar "
        f"(last {lookback_days} days).",
        "",
    ]

    for category in selected:
        papers = papers_by_category.get(category, [])
        lines.append(f"## {CATEGORY_TITLES[category]}")
        lines.append("")
        if not papers:
            lines.append(NO_RESULTS_PLACEHOLDER)
            lines.append("")
            continue
        for paper in papers:
            # Headings are single-line.
            lines.append(f"### {' '.join(paper.title.split())}")
            lines.append("")
            lines.append(_metadata_line(paper))
            lines.append(f"**Link:** {paper.url}")
            lines.append("")
            lines.append(paper.abstract)
            lines.append("")
            lines.append("---")
            lines.append("")

    return "\n".join(lines)


def report_path(output_dir: str | Path, today: date, slug: str = COMBINED_SLUG) -> Path:
    return Path(output_dir) / f"{slug}-{today.isoformat()}.md"


def write_report(path: Path, text: str) -> Path:
    """Write text to path atomically: the file is either complete or absent."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with NamedTemporaryFile(
        "w", delete=False, encoding="utf-8", dir=str(path.parent), suffix=".tmp"
    ) as tmp:
        tmp.write(text)
        tmp_name = tmp.name
    try:
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    LOGGER.info("report: wrote %s (%d chars)", path, len(text))
    return path
