"""Shared typed models for the scout pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class SourceName(StrEnum):
    PUBMED = "PubMed"
    SEMANTIC_SCHOLAR = "Semantic Scholar"


class Category(StrEnum):
    HEALTH = "health"
    BUSINESS = "business"


class SourceType(StrEnum):
    """Inferred origin platform of a report."""

    JOURNAL = "journal"
    PODCAST = "podcast"
    TWITTER = "twitter"
    DISCORD = "discord"


class PriorityTier(StrEnum):
    BUILD_NOW = "build_now"
    BACKLOG = "backlog"
    MONITOR = "monitor"
    SKIP = "skip"


class ReportFormat(StrEnum):
    MARKDOWN = "markdown"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class PaperRecord:
    """Normalized paper record produced by the search clients."""

    title: str
    abstract: str
    venue: str
    authors: tuple[str, ...]
    published_label: str
    url: str
    source: SourceName
    category: Category
    citation_count: int | None = None


@dataclass(frozen=True, slots=True)
class CollectionResult:
    """Papers kept from one source plus the raw number of hits scanned."""

    papers: list[PaperRecord] = field(default_factory=list)
    scanned: int = 0


@dataclass(frozen=True, slots=True)
class Section:
    heading: str
    body: str
    level: int


@dataclass(frozen=True, slots=True)
class ReportDocument:
    title: str
    raw_content: str
    source_type: SourceType
    declared_item_count: int | None
    sections: tuple[Section, ...]


@dataclass(frozen=True, slots=True)
class OpportunityCandidate:
    title: str
    description: str
    source_type: SourceType
    priority: PriorityTier


@dataclass(frozen=True, slots=True)
class ParsedReport:
    """Parser output: report metadata plus the extracted opportunities."""

    title: str
    content: str
    source_type: SourceType
    declared_item_count: int | None
    opportunities: tuple[OpportunityCandidate, ...]


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of one tracker sync: created ids and opportunities that failed."""

    report_id: str
    opportunity_ids: tuple[str, ...]
    failed_opportunities: tuple[str, ...] = ()
