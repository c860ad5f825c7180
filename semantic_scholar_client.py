"""Semantic Scholar graph API search helpers."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import requests

from config import Settings
from filters import has_substantive_abstract, truncate_abstract
from models import Category, PaperRecord, SourceName

S2_SEARCH_URL = "https://api.semanticscholar.org/graph/v1/paper/search"
S2_FIELDS = "title,abstract,authors,venue,year,citationCount,externalIds,publicationDate"
USER_AGENT = "JournalScout/1.0"

LOGGER = logging.getLogger(__name__)


def search(query: str, lookback_days: int, settings: Settings) -> tuple[list[PaperRecord], int]:
    """Search papers published since lookback_days ago.

    Returns the normalized papers with a usable abstract and the raw hit count.
    Any failure (transport error, non-200, malformed body) yields ([], 0).
    """
    min_date = datetime.now(UTC).date() - timedelta(days=lookback_days)
    params = {
        "query": query,
        "limit": settings.max_per_query,
        "fields": S2_FIELDS,
        "publicationDateOrYear": f"{min_date.isoformat()}:",
    }

    try:
        response = requests.get(
            S2_SEARCH_URL,
            params=params,
            headers={"User-Agent": USER_AGENT},
            timeout=settings.request_timeout_seconds,
        )
    except requests.RequestException as exc:
        LOGGER.warning("Semantic Scholar: request failed for query=%r, skipping: %s", query, exc)
        return [], 0

    if response.status_code != 200:
        LOGGER.warning(
            "Semantic Scholar: returned status=%s for query=%r, skipping",
            response.status_code,
            query,
        )
        return [], 0

    try:
        payload = response.json()
    except ValueError as exc:
        LOGGER.warning("Semantic Scholar: malformed body for query=%r, skipping: %s", query, exc)
        return [], 0

    items = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        return [], 0

    return _parse_results(items, settings.abstract_max_chars), len(items)


def _parse_results(items: list[Any], abstract_max_chars: int | None) -> list[PaperRecord]:
    papers: list[PaperRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        abstract = _as_str(item.get("abstract"))
        if not has_substantive_abstract(abstract):
            continue

        papers.append(
            PaperRecord(
                title=_as_str(item.get("title")) or "Untitled",
                abstract=truncate_abstract(abstract, abstract_max_chars),
                venue=_as_str(item.get("venue")) or "Preprint",
                authors=_surnames(item.get("authors")),
                published_label=_published_label(item),
                url=_paper_url(item),
                source=SourceName.SEMANTIC_SCHOLAR,
                category=Category.BUSINESS,
                citation_count=_citation_count(item.get("citationCount")),
            )
        )
    return papers


def _surnames(authors: Any) -> tuple[str, ...]:
    if not isinstance(authors, list):
        return ()
    names = (_as_str(a.get("name")) for a in authors if isinstance(a, dict))
    return tuple(name.split()[-1] for name in names if name)


def _published_label(item: dict[str, Any]) -> str:
    published = _as_str(item.get("publicationDate"))
    if published:
        return published
    year = item.get("year")
    return str(year) if isinstance(year, int) else "Recent"


def _paper_url(item: dict[str, Any]) -> str:
    external = item.get("externalIds") if isinstance(item.get("externalIds"), dict) else {}
    doi = _as_str(external.get("DOI"))
    if doi:
        return f"https://doi.org/{doi}"
    return f"https://www.semanticscholar.org/paper/{_as_str(item.get('paperId')) or ''}"


def _citation_count(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return None


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
