"""Journal collection: run topical queries against one source and normalize results."""

from __future__ import annotations

import logging
import time
from typing import Sequence

import pubmed_client
import semantic_scholar_client
from config import Settings
from filters import dedup_papers
from models import Category, CollectionResult, PaperRecord, SourceName

LOGGER = logging.getLogger(__name__)

HEALTH_QUERIES = [
    "dietary supplement longevity aging",
    "nutraceutical healthspan lifespan",
    "caloric restriction intermittent fasting longevity",
    "exercise protocol aging biomarker",
    "sleep quality longevity lifestyle",
    "microbiome supplement prebiotic probiotic",
    "resveratrol NMN NAD supplement",
    "lifestyle intervention biological age",
]

BUSINESS_QUERIES = [
    "contrarian strategy business model disruption",
    "unconventional entrepreneurship market opportunity",
    "counterintuitive business innovation",
    "solo founder bootstrapping scalable",
    "niche market underserved business opportunity",
]

# Minimum gap between consecutive requests to the same source. PubMed allows
# ~3 req/s without a key; unauthenticated Semantic Scholar allows ~1 req/s.
SOURCE_DELAYS_SECONDS: dict[SourceName, float] = {
    SourceName.PUBMED: 0.4,
    SourceName.SEMANTIC_SCHOLAR: 1.1,
}

_CATEGORY_BY_SOURCE: dict[SourceName, Category] = {
    SourceName.PUBMED: Category.HEALTH,
    SourceName.SEMANTIC_SCHOLAR: Category.BUSINESS,
}

_DEFAULT_QUERIES: dict[SourceName, list[str]] = {
    SourceName.PUBMED: HEALTH_QUERIES,
    SourceName.SEMANTIC_SCHOLAR: BUSINESS_QUERIES,
}


def category_for(source: SourceName) -> Category:
    return _CATEGORY_BY_SOURCE[source]


def default_queries(source: SourceName) -> list[str]:
    return list(_DEFAULT_QUERIES[source])


def collect(
    queries: Sequence[str],
    lookback_days: int,
    source: SourceName,
    settings: Settings,
) -> CollectionResult:
    """Run every query against source sequentially and return deduped papers.

    Requests are issued one at a time with SOURCE_DELAYS_SECONDS[source] between
    them. A failing query contributes zero results; the run always continues.
    Dedup happens once, across everything accumulated, keeping first-seen records.
    """
    if source is SourceName.PUBMED:
        papers, scanned = _collect_pubmed(queries, lookback_days, settings)
    else:
        papers, scanned = _collect_semantic_scholar(queries, lookback_days, settings)

    unique = dedup_papers(papers)
    LOGGER.info(
        "collect: source=%s queries=%s scanned=%s with_abstract=%s unique=%s",
        source,
        len(queries),
        scanned,
        len(papers),
        len(unique),
    )
    return CollectionResult(papers=unique, scanned=scanned)


def _collect_pubmed(
    queries: Sequence[str], lookback_days: int, settings: Settings
) -> tuple[list[PaperRecord], int]:
    delay = SOURCE_DELAYS_SECONDS[SourceName.PUBMED]
    ids: dict[str, None] = {}

    for query in queries:
        found = pubmed_client.search_ids(query, lookback_days, settings)
        for pmid in found:
            ids.setdefault(pmid, None)
        LOGGER.info("collect: PubMed query=%r -> %s ids", query, len(found))
        time.sleep(delay)

    if not ids:
        return [], 0

    papers = pubmed_client.fetch_details(list(ids), settings)
    return papers, len(ids)


def _collect_semantic_scholar(
    queries: Sequence[str], lookback_days: int, settings: Settings
) -> tuple[list[PaperRecord], int]:
    delay = SOURCE_DELAYS_SECONDS[SourceName.SEMANTIC_SCHOLAR]
    papers: list[PaperRecord] = []
    scanned = 0

    for index, query in enumerate(queries):
        if index:
            time.sleep(delay)
        found, hits = semantic_scholar_client.search(query, lookback_days, settings)
        papers.extend(found)
        scanned += hits
        LOGGER.info("collect: Semantic Scholar query=%r -> %s results", query, len(found))

    return papers, scanned
