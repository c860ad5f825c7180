"""Heuristic paper filters: abstract quality gate and title-key dedup (no network)."""

from __future__ import annotations

import re
from typing import Iterable

from models import PaperRecord

# Papers whose abstract is this short or shorter carry too little signal to report.
MIN_ABSTRACT_CHARS = 50

TITLE_KEY_LENGTH = 60

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def title_key(title: str) -> str:
    """Normalized dedup key: lowercase, alphanumerics only, first 60 chars."""
    return _NON_ALNUM.sub("", title.lower())[:TITLE_KEY_LENGTH]


def has_substantive_abstract(abstract: str | None) -> bool:
    return bool(abstract) and len(abstract) > MIN_ABSTRACT_CHARS


def truncate_abstract(text: str, max_chars: int | None) -> str:
    """Clip text to max_chars, appending '…' if clipped. 0 or None means unbounded."""
    value = text.strip()
    if not max_chars or len(value) <= max_chars:
        return value
    return value[: max_chars - 1] + "…"


def dedup_papers(papers: Iterable[PaperRecord]) -> list[PaperRecord]:
    """Keep the first record per title key, preserving first-occurrence order."""
    seen: set[str] = set()
    unique: list[PaperRecord] = []
    for paper in papers:
        key = title_key(paper.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(paper)
    return unique
