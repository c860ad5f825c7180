"""Tests for report_parser: markdown sections, stop latch, priorities, JSON chains."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from models import PriorityTier, ReportFormat, Section, SourceType
from report_parser import (
    DEFAULT_TITLE,
    EXPLICIT_PRIORITY_RULES,
    ReportParseError,
    classify_priority,
    classify_source,
    declared_item_count,
    derive_priority,
    format_for_path,
    parse,
    parse_file,
    split_sections,
)

_BODY = "A body that is comfortably longer than twenty characters."


def _md(*sections: tuple[str, str], title: str = "# Report") -> str:
    parts = [title, ""]
    for heading, body in sections:
        parts.extend([heading, "", body, ""])
    return "\n".join(parts)


# ─── End-to-end scenarios ────────────────────────────────────────────────────

def test_markdown_scenario_build_now_with_emoji_priority() -> None:
    raw = (
        "# Report\n\n### Build a widget\n\n"
        "This idea has real legs and clear demand signals.\n\n"
        "Priority: 🔴 Build Now\n"
    )

    parsed = parse(raw, ReportFormat.MARKDOWN)

    assert [(o.title, o.priority) for o in parsed.opportunities] == [
        ("Build a widget", PriorityTier.BUILD_NOW)
    ]


def test_json_scenario_easy_difficulty_is_build_now() -> None:
    raw = '{"title":"X","opportunities":[{"name":"Y","difficulty":"easy"}]}'

    parsed = parse(raw, ReportFormat.JSON)

    assert parsed.title == "X"
    assert len(parsed.opportunities) == 1
    assert parsed.opportunities[0].title == "Y"
    assert parsed.opportunities[0].priority is PriorityTier.BUILD_NOW


def test_journal_outranks_podcast() -> None:
    assert classify_source("From the podcast, plus a pubmed search.") is SourceType.JOURNAL


# ─── Source classification and item count ───────────────────────────────────

@pytest.mark.parametrize("text, expected", [
    ("Notes from a Semantic Scholar sweep", SourceType.JOURNAL),
    ("See doi:10.1000/x", SourceType.JOURNAL),
    ("Longevity paper roundup", SourceType.JOURNAL),
    ("Longevity tips from the feed", SourceType.TWITTER),
    ("Episode transcript highlights, discord chatter too", SourceType.PODCAST),
    ("Discord server digest", SourceType.DISCORD),
    ("Scanned 120 tweets", SourceType.TWITTER),
])
def test_classify_source(text: str, expected: SourceType) -> None:
    assert classify_source(text) is expected


@pytest.mark.parametrize("text, expected", [
    ("Scanned 120 tweets today", 120),
    ("1 Post reviewed", 1),
    ("Found 42 results and 7 tweets", 42),
    ("Top 5 postures for desk work", 5),
    ("Top 5 postures, 100 tweets", 5),
    ("No counts here", None),
])
def test_declared_item_count(text: str, expected: int | None) -> None:
    assert declared_item_count(text) == expected


# ─── Sections ───────────────────────────────────────────────────────────────

def test_split_sections_levels_and_bodies() -> None:
    raw = "preamble\n# Top\nintro text\n## Mid\n### Low\nlow body\n#### Not a heading\n"

    sections = split_sections(raw)

    assert sections == [
        Section(heading="Top", body="intro text", level=1),
        Section(heading="Mid", body="", level=2),
        Section(heading="Low", body="low body\n#### Not a heading", level=3),
    ]


def test_split_sections_ignores_headings_inside_code_fences() -> None:
    raw = "# Report\n```\n# not a heading\n```\n## Real\nbody\n"

    sections = split_sections(raw)

    assert [s.heading for s in sections] == ["Report", "Real"]
    assert "# not a heading" in sections[0].body


def test_split_sections_requires_a_space_after_hashes() -> None:
    with pytest.raises(ReportParseError):
        split_sections("#hashtag only\nplain text\n")


def test_markdown_without_any_heading_is_a_hard_failure() -> None:
    with pytest.raises(ReportParseError):
        parse("Just some text without structure.", ReportFormat.MARKDOWN)


def test_title_defaults_when_no_top_level_heading() -> None:
    parsed = parse(f"## Idea\n\n{_BODY}\n", ReportFormat.MARKDOWN)

    assert parsed.title == DEFAULT_TITLE
    assert [o.title for o in parsed.opportunities] == ["Idea"]


def test_content_is_raw_text() -> None:
    raw = _md(("### Idea", _BODY))

    assert parse(raw).content == raw


# ─── Extraction ─────────────────────────────────────────────────────────────

def test_stop_latch_excludes_everything_after_pattern_summary() -> None:
    raw = _md(
        ("### A", _BODY),
        ("### B", _BODY),
        ("## Pattern Summary", _BODY),
        ("### C", "Build now! Urgent and very compelling idea text."),
    )

    parsed = parse(raw)

    assert [o.title for o in parsed.opportunities] == ["A", "B"]


@pytest.mark.parametrize("heading", [
    "## Opportunities (3)",
    "## Opportunities Recap",
    "## The Bottom Line",
])
def test_other_stop_headings_latch(heading: str) -> None:
    raw = _md(("### A", _BODY), (heading, _BODY), ("### Later", _BODY))

    assert [o.title for o in parse(raw).opportunities] == ["A"]


@pytest.mark.parametrize("heading", [
    "## Executive Summary",
    "## Overview",
    "## Intro",
    "## Metadata",
    "## Config",
])
def test_meta_sections_are_skipped_without_latching(heading: str) -> None:
    raw = _md(("### A", _BODY), (heading, _BODY), ("### B", _BODY))

    assert [o.title for o in parse(raw).opportunities] == ["A", "B"]


def test_description_boundary_twenty_excluded_twenty_one_included() -> None:
    raw = _md(("### Twenty", "x" * 20), ("### TwentyOne", "y" * 21))

    parsed = parse(raw)

    assert [o.title for o in parsed.opportunities] == ["TwentyOne"]
    assert parsed.opportunities[0].description == "y" * 21


def test_leading_ordinal_is_stripped_from_title() -> None:
    raw = _md(("### 1. First idea", _BODY), ("### 12. Twelfth idea", _BODY))

    assert [o.title for o in parse(raw).opportunities] == ["First idea", "Twelfth idea"]


def test_candidates_inherit_document_source_type() -> None:
    raw = _md(("### Episode idea", _BODY), title="# Podcast digest")

    parsed = parse(raw)

    assert parsed.source_type is SourceType.PODCAST
    assert parsed.opportunities[0].source_type is SourceType.PODCAST


# ─── Priority ───────────────────────────────────────────────────────────────

def _section(body: str, heading: str = "Idea") -> Section:
    return Section(heading=heading, body=body, level=3)


def test_explicit_priority_beats_inferred_keywords() -> None:
    body = "We might do this someday.\n\nPriority: Build Now"

    assert derive_priority(_section(body)) is PriorityTier.BUILD_NOW


@pytest.mark.parametrize("line, expected", [
    ("Priority: 🔴 Build Now", PriorityTier.BUILD_NOW),
    ("**Priority:** Immediate", PriorityTier.BUILD_NOW),
    ("Priority: 🟡 Add to backlog", PriorityTier.BACKLOG),
    ("Priority: Investigate further", PriorityTier.BACKLOG),
    ("Priority: ⛔ Skip", PriorityTier.SKIP),
    ("Priority: Not a build", PriorityTier.SKIP),
    ("- Priority: ⚪ None", PriorityTier.SKIP),
    ("Priority: 🟢 Monitor", PriorityTier.MONITOR),
    ("Priority: watch closely", PriorityTier.MONITOR),
    ("Priority: whenever", PriorityTier.BACKLOG),
])
def test_explicit_priority_values(line: str, expected: PriorityTier) -> None:
    assert derive_priority(_section(f"Some context for the idea.\n{line}")) is expected


def test_unmatched_explicit_priority_does_not_fall_back_to_inferred() -> None:
    body = "This is urgent.\nPriority: whenever"

    assert derive_priority(_section(body)) is PriorityTier.BACKLOG


@pytest.mark.parametrize("line", [
    "Recommended Priority: ⛔ Skip",
    "⛔ Priority: Skip",
    "| Priority: ⛔ Skip |",
    "**Recommended priority:** skip",
])
def test_priority_label_anywhere_on_a_line_is_explicit(line: str) -> None:
    body = f"Customers call this urgent, but it is not urgent for us.\n{line}"

    assert derive_priority(_section(body)) is PriorityTier.SKIP


def test_high_priority_with_colon_is_an_explicit_line() -> None:
    body = "This is urgent.\nHigh priority: customers are asking."

    assert derive_priority(_section(body)) is PriorityTier.BACKLOG


@pytest.mark.parametrize("body, expected", [
    ("A high priority for customers who ask daily.", PriorityTier.BUILD_NOW),
    ("This is urgent and customers ask daily.", PriorityTier.BUILD_NOW),
    ("Worth a look someday, maybe.", PriorityTier.MONITOR),
    ("Low priority experiment.", PriorityTier.MONITOR),
    ("Urgent, but maybe too early.", PriorityTier.BUILD_NOW),
    ("Solid idea with steady demand.", PriorityTier.BACKLOG),
])
def test_inferred_priority(body: str, expected: PriorityTier) -> None:
    assert derive_priority(_section(body)) is expected


def test_inferred_priority_scans_heading_too() -> None:
    assert derive_priority(_section("Plain body text here.", heading="Urgent fix")) is PriorityTier.BUILD_NOW


def test_classify_priority_first_rule_wins() -> None:
    assert classify_priority("skip the backlog", EXPLICIT_PRIORITY_RULES) is PriorityTier.BACKLOG


# ─── JSON ───────────────────────────────────────────────────────────────────

def test_json_field_fallbacks() -> None:
    raw = json.dumps({
        "reportTitle": "Weekly signals",
        "source": "Discord",
        "totalTweets": "57",
        "content": "Body text",
        "opportunities": [],
        "findings": [
            {"whatItIs": "Agent inbox", "opportunity": "Email triage for founders"},
            "not an object",
            {"title": "Ranked", "summary": "From summary", "priority": "monitor"},
        ],
    })

    parsed = parse(raw, ReportFormat.JSON)

    assert parsed.title == "Weekly signals"
    assert parsed.source_type is SourceType.DISCORD
    assert parsed.declared_item_count == 57
    assert parsed.content == "Body text"
    assert [(o.title, o.description, o.priority) for o in parsed.opportunities] == [
        ("Agent inbox", "Email triage for founders", PriorityTier.BACKLOG),
        ("Ranked", "From summary", PriorityTier.MONITOR),
    ]
    assert all(o.source_type is SourceType.DISCORD for o in parsed.opportunities)


def test_json_defaults() -> None:
    parsed = parse('{"signals": [{}]}', ReportFormat.JSON)

    assert parsed.title.startswith("Scout Analysis - ")
    assert parsed.source_type is SourceType.TWITTER
    assert parsed.declared_item_count is None
    assert json.loads(parsed.content) == {"signals": [{}]}
    assert parsed.opportunities[0].title == "Untitled"
    assert parsed.opportunities[0].description == ""
    assert parsed.opportunities[0].priority is PriorityTier.BACKLOG


def test_json_unknown_source_degrades_to_default() -> None:
    parsed = parse('{"source": "mastodon", "items": [{"name": "Z"}]}', ReportFormat.JSON)

    assert parsed.source_type is SourceType.TWITTER


def test_json_explicit_priority_wins_over_difficulty() -> None:
    raw = '{"items": [{"name": "Z", "priority": "skip", "difficulty": "easy"}]}'

    assert parse(raw, ReportFormat.JSON).opportunities[0].priority is PriorityTier.SKIP


def test_json_free_text_priority_is_classified() -> None:
    raw = '{"items": [{"name": "Z", "priority": "Build now, seriously"}]}'

    assert parse(raw, ReportFormat.JSON).opportunities[0].priority is PriorityTier.BUILD_NOW


def test_json_prefers_summary_over_content() -> None:
    parsed = parse('{"summary": "Short summary", "content": "Long content"}', ReportFormat.JSON)

    assert parsed.content == "Short summary"
    assert parsed.opportunities == ()


@pytest.mark.parametrize("raw", ["{not json", "[1, 2, 3]", '"just a string"'])
def test_json_undecodable_is_a_hard_failure(raw: str) -> None:
    with pytest.raises(ReportParseError):
        parse(raw, ReportFormat.JSON)


# ─── Files ──────────────────────────────────────────────────────────────────

def test_format_for_path() -> None:
    assert format_for_path("reports/a.json") is ReportFormat.JSON
    assert format_for_path("reports/a.JSON") is ReportFormat.JSON
    assert format_for_path("reports/a.md") is ReportFormat.MARKDOWN
    assert format_for_path("reports/a.txt") is ReportFormat.MARKDOWN


def test_parse_file_dispatches_on_extension(tmp_path: Path) -> None:
    json_file = tmp_path / "report.json"
    json_file.write_text('{"title": "From JSON"}', encoding="utf-8")
    md_file = tmp_path / "report.md"
    md_file.write_text(_md(("### Idea", _BODY), title="# From Markdown"), encoding="utf-8")

    assert parse_file(json_file).title == "From JSON"
    assert parse_file(md_file).title == "From Markdown"


def test_parse_file_accepts_byte_order_mark(tmp_path: Path) -> None:
    json_file = tmp_path / "report.json"
    json_file.write_bytes(b"\xef\xbb\xbf" + '{"title": "With BOM"}'.encode("utf-8"))
    md_file = tmp_path / "report.md"
    md_file.write_text(_md(("### Idea", _BODY), title="# BOM Markdown"), encoding="utf-8-sig")

    assert parse_file(json_file).title == "With BOM"
    assert parse_file(md_file).title == "BOM Markdown"
