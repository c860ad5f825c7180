"""Report parsing and opportunity extraction.

Turns a rendered report (markdown or JSON) into a ParsedReport: title, source type,
declared item count, and an ordered list of prioritized opportunity candidates.

Reports come from several producers whose conventions drift independently of this
module, so every narrow ambiguity (missing field, odd section shape, unknown priority
text) degrades to a default. Only input that cannot be decoded at all raises
ReportParseError.

Markdown extraction runs in two passes:

1. ``split_sections`` tokenizes the document into heading-delimited sections
   (levels 1-3; fenced code is never a heading).
2. ``extract_opportunities`` walks the sections with a SCANNING/STOPPED state.
   A stop heading ("Pattern Summary", "Bottom line", ...) latches STOPPED for the
   rest of the document. Meta headings ("Overview", "Config", ...) are skipped one
   at a time. Remaining sections with a body longer than MIN_DESCRIPTION_CHARS
   become candidates.

Priority comes from two ordered rule tables: an explicit ``Priority: <value>`` line
is classified with EXPLICIT_PRIORITY_RULES and always wins; otherwise the section
text is scanned with INFERRED_PRIORITY_RULES. First matching rule wins in both.
"""

from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Mapping

from models import (
    OpportunityCandidate,
    ParsedReport,
    PriorityTier,
    ReportDocument,
    ReportFormat,
    Section,
    SourceType,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TITLE = "Scout Report"
DEFAULT_JSON_TITLE_PREFIX = "Scout Analysis"
UNTITLED = "Untitled"
MIN_DESCRIPTION_CHARS = 20

DEFAULT_PRIORITY = PriorityTier.BACKLOG
DEFAULT_SOURCE = SourceType.TWITTER


class ReportParseError(ValueError):
    """The report could not be decoded at all."""


# ─────────────────────────────────────────────────────────────────────────────
# Classification tables
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class PriorityRule:
    tier: PriorityTier
    pattern: re.Pattern[str]


EXPLICIT_PRIORITY_RULES: tuple[PriorityRule, ...] = (
    PriorityRule(PriorityTier.BUILD_NOW, re.compile(r"build now|immediate", re.I)),
    PriorityRule(PriorityTier.BACKLOG, re.compile(r"backlog|explore|investigate", re.I)),
    PriorityRule(PriorityTier.SKIP, re.compile(r"skip|none|dismiss|not a build", re.I)),
    PriorityRule(PriorityTier.MONITOR, re.compile(r"\bmonitor\b|watch|track", re.I)),
)

INFERRED_PRIORITY_RULES: tuple[PriorityRule, ...] = (
    PriorityRule(PriorityTier.BUILD_NOW, re.compile(r"build now|high priority|urgent", re.I)),
    PriorityRule(PriorityTier.MONITOR, re.compile(r"low priority|maybe|someday|monitor", re.I)),
)

# Each rule matches when any of its term groups has all of its terms present in the
# lowercased text. Order is the tie-break: journal > podcast > discord > twitter.
SOURCE_RULES: tuple[tuple[SourceType, tuple[tuple[str, ...], ...]], ...] = (
    (
        SourceType.JOURNAL,
        (("journal",), ("pubmed",), ("semantic scholar",), ("doi:",), ("longevity", "paper")),
    ),
    (SourceType.PODCAST, (("podcast",), ("transcript",))),
    (SourceType.DISCORD, (("discord",),)),
)

_HEADING_RE = re.compile(r"^(#{1,3})[ \t]+(\S.*?)[ \t]*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_ORDINAL_RE = re.compile(r"^\d+\.\s*")
_STOP_RE = re.compile(r"pattern summary|opportunities\s*\(|opportunities recap|bottom line", re.I)
_META_RE = re.compile(r"summary|overview|intro|metadata|config", re.I)
_ITEM_COUNT_RE = re.compile(r"(\d+)\s*(?:tweets?|posts?|results?)", re.I)
# "Priority: 🔴 Build Now", "**Priority:** Backlog", "Recommended Priority: watch", "| Priority: ⛔ Skip |"
_PRIORITY_LINE_RE = re.compile(r"priority[*_]*:[*_]*[ \t]*(.+)$", re.I | re.M)
_LEADING_MARKERS_RE = re.compile(r"^[\W_]+")
_TRAILING_MARKERS_RE = re.compile(r"[\s|*_]+$")


def classify_priority(
    text: str,
    rules: tuple[PriorityRule, ...],
    default: PriorityTier = DEFAULT_PRIORITY,
) -> PriorityTier:
    """Return the tier of the first rule whose pattern occurs in text."""
    for rule in rules:
        if rule.pattern.search(text):
            return rule.tier
    return default


def classify_source(text: str) -> SourceType:
    lowered = text.lower()
    for source_type, groups in SOURCE_RULES:
        if any(all(term in lowered for term in group) for group in groups):
            return source_type
    return DEFAULT_SOURCE


def declared_item_count(text: str) -> int | None:
    """First '<N> tweets/posts/results' figure in text, if any."""
    match = _ITEM_COUNT_RE.search(text)
    return int(match.group(1)) if match else None


def explicit_priority_value(text: str) -> str | None:
    """Value after the first 'Priority:' anywhere in text, with emoji/markers removed.

    Any line containing 'priority:' counts, so 'High priority: ...' is explicit too.
    """
    match = _PRIORITY_LINE_RE.search(text)
    if not match:
        return None
    value = _LEADING_MARKERS_RE.sub("", match.group(1))
    return _TRAILING_MARKERS_RE.sub("", value).strip()


def derive_priority(section: Section) -> PriorityTier:
    explicit = explicit_priority_value(section.body)
    if explicit is not None:
        return classify_priority(explicit, EXPLICIT_PRIORITY_RULES)
    return classify_priority(f"{section.heading}\n{section.body}", INFERRED_PRIORITY_RULES)


# ─────────────────────────────────────────────────────────────────────────────
# Markdown
# ─────────────────────────────────────────────────────────────────────────────

def split_sections(text: str) -> list[Section]:
    """Split markdown into heading-delimited sections, in document order.

    Text before the first heading is preamble and belongs to no section.
    Raises ReportParseError when the document has no heading at all.
    """
    sections: list[Section] = []
    heading: str | None = None
    level = 0
    body: list[str] = []
    in_fence = False

    for line in text.splitlines():
        if _FENCE_RE.match(line):
            in_fence = not in_fence
        match = None if in_fence else _HEADING_RE.match(line)
        if match:
            if heading is not None:
                sections.append(Section(heading=heading, body="\n".join(body).strip(), level=level))
            level = len(match.group(1))
            heading = match.group(2)
            body = []
        elif heading is not None:
            body.append(line)

    if heading is not None:
        sections.append(Section(heading=heading, body="\n".join(body).strip(), level=level))

    if not sections:
        raise ReportParseError("Markdown report has no heading to extract sections from")
    return sections


class _ScanState(enum.Enum):
    SCANNING = "scanning"
    STOPPED = "stopped"


def extract_opportunities(document: ReportDocument) -> tuple[OpportunityCandidate, ...]:
    state = _ScanState.SCANNING
    candidates: list[OpportunityCandidate] = []

    for section in document.sections:
        if state is _ScanState.STOPPED:
            break
        if _STOP_RE.search(section.heading):
            LOGGER.debug("parser: stop heading %r, ignoring the rest", section.heading)
            state = _ScanState.STOPPED
            continue
        if _META_RE.search(section.heading):
            continue
        if len(section.body) <= MIN_DESCRIPTION_CHARS:
            continue

        candidates.append(
            OpportunityCandidate(
                title=_ORDINAL_RE.sub("", section.heading),
                description=section.body,
                source_type=document.source_type,
                priority=derive_priority(section),
            )
        )

    return tuple(candidates)


def parse_markdown(raw: str) -> ParsedReport:
    sections = split_sections(raw)
    title = next((s.heading for s in sections if s.level == 1), DEFAULT_TITLE)
    document = ReportDocument(
        title=title,
        raw_content=raw,
        source_type=classify_source(raw),
        declared_item_count=declared_item_count(raw),
        sections=tuple(sections),
    )
    return ParsedReport(
        title=document.title,
        content=document.raw_content,
        source_type=document.source_type,
        declared_item_count=document.declared_item_count,
        opportunities=extract_opportunities(document),
    )


# ─────────────────────────────────────────────────────────────────────────────
# JSON
# ─────────────────────────────────────────────────────────────────────────────

Accessor = Callable[[Mapping[str, Any]], Any]


def json_field(name: str) -> Accessor:
    """Accessor reading one top-level key of a JSON object."""

    def access(doc: Mapping[str, Any]) -> Any:
        return doc.get(name)

    access.__name__ = f"field_{name}"
    return access


def _chain(*names: str) -> tuple[Accessor, ...]:
    return tuple(json_field(name) for name in names)


# Alternate field names seen across report producers, most preferred first.
# Bump JSON_FIELD_CHAINS_VERSION when a chain changes.
JSON_FIELD_CHAINS_VERSION = 1
JSON_FIELD_CHAINS: dict[str, tuple[Accessor, ...]] = {
    "title": _chain("title", "reportTitle"),
    "source": _chain("source", "sourceType"),
    "item_count": _chain("tweetCount", "totalTweets", "itemCount"),
    "content": _chain("summary", "content"),
    "opportunities": _chain("opportunities", "findings", "signals", "items"),
    "item_title": _chain("title", "name", "whatItIs"),
    "item_description": _chain("description", "opportunity", "summary"),
}


def first_present(
    doc: Mapping[str, Any],
    chain: tuple[Accessor, ...],
    accept: Callable[[Any], bool] | None = None,
) -> Any:
    """Value of the first accessor whose result is accepted (default: non-empty text)."""
    accept = accept or _is_text
    for accessor in chain:
        value = accessor(doc)
        if accept(value):
            return value
    return None


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_source(value: Any) -> bool:
    return _is_text(value) and value.strip().lower() in {s.value for s in SourceType}


def _is_nonempty_list(value: Any) -> bool:
    return isinstance(value, list) and bool(value)


def _as_count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def json_item_priority(item: Mapping[str, Any]) -> PriorityTier:
    explicit = item.get("priority")
    if _is_text(explicit):
        value = explicit.strip().lower()
        if value in {tier.value for tier in PriorityTier}:
            return PriorityTier(value)
        return classify_priority(value.replace("_", " "), EXPLICIT_PRIORITY_RULES)
    difficulty = item.get("difficulty")
    if isinstance(difficulty, str) and difficulty.strip().lower() == "easy":
        return PriorityTier.BUILD_NOW
    return DEFAULT_PRIORITY


def parse_json(raw: str) -> ParsedReport:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ReportParseError(f"Report is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ReportParseError(
            f"JSON report must be an object, got {type(data).__name__}"
        )

    chains = JSON_FIELD_CHAINS
    title = first_present(data, chains["title"])
    if title is None:
        title = f"{DEFAULT_JSON_TITLE_PREFIX} - {datetime.now(UTC).date().isoformat()}"

    source_value = first_present(data, chains["source"], _is_source)
    source_type = SourceType(source_value.strip().lower()) if source_value else DEFAULT_SOURCE

    count_value = first_present(data, chains["item_count"], lambda v: _as_count(v) is not None)
    content = first_present(data, chains["content"])
    if content is None:
        content = json.dumps(data, indent=2, ensure_ascii=False)

    items = first_present(data, chains["opportunities"], _is_nonempty_list) or []
    opportunities: list[OpportunityCandidate] = []
    for item in items:
        if not isinstance(item, dict):
            LOGGER.debug("parser: skipping non-object opportunity item %r", item)
            continue
        opportunities.append(
            OpportunityCandidate(
                title=(first_present(item, chains["item_title"]) or UNTITLED).strip(),
                description=(first_present(item, chains["item_description"]) or "").strip(),
                source_type=source_type,
                priority=json_item_priority(item),
            )
        )

    return ParsedReport(
        title=title.strip(),
        content=content,
        source_type=source_type,
        declared_item_count=_as_count(count_value),
        opportunities=tuple(opportunities),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Entry points
# ─────────────────────────────────────────────────────────────────────────────

def format_for_path(path: str | Path) -> ReportFormat:
    """The file extension selects the parser: .json is JSON, anything else markdown."""
    return ReportFormat.JSON if Path(path).suffix.lower() == ".json" else ReportFormat.MARKDOWN


def parse(raw: str, fmt: ReportFormat | str = ReportFormat.MARKDOWN) -> ParsedReport:
    fmt = ReportFormat(fmt)
    parsed = parse_json(raw) if fmt is ReportFormat.JSON else parse_markdown(raw)
    LOGGER.info(
        "parser: title=%r source=%s items=%s opportunities=%s",
        parsed.title,
        parsed.source_type,
        parsed.declared_item_count,
        len(parsed.opportunities),
    )
    return parsed


def parse_file(path: str | Path) -> ParsedReport:
    """Read a report file (UTF-8) and parse it according to its extension."""
    file_path = Path(path)
    return parse(file_path.read_text(encoding="utf-8-sig"), format_for_path(file_path))
