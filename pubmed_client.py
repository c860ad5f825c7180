"""PubMed (NCBI E-utilities) search helpers.

Search is two-step: ``esearch`` returns PMIDs for a query inside a publication-date
window, then ``efetch`` returns the full records as XML. Both steps treat any failure
as zero results so a single bad query never aborts a collection run.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import UTC, datetime, timedelta
from typing import Any

import requests

from config import Settings
from filters import has_substantive_abstract, truncate_abstract
from models import Category, PaperRecord, SourceName

PUBMED_BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
USER_AGENT = "JournalScout/1.0"
# NCBI recommends at most 200 ids per efetch request.
EFETCH_BATCH_SIZE = 200

LOGGER = logging.getLogger(__name__)


class RateLimitedError(RuntimeError):
    """PubMed answered 429; the caller should back off."""


def search_ids(query: str, lookback_days: int, settings: Settings) -> list[str]:
    """Return PMIDs matching query published in the last lookback_days days."""
    today = datetime.now(UTC).date()
    min_date = today - timedelta(days=lookback_days)
    params: dict[str, Any] = {
        "db": "pubmed",
        "term": query,
        "retmax": settings.max_per_query,
        "retmode": "json",
        "datetype": "pdat",
        "mindate": min_date.strftime("%Y/%m/%d"),
        "maxdate": today.strftime("%Y/%m/%d"),
        "sort": "relevance",
    }

    try:
        response = _get("esearch.fcgi", params, settings)
        payload = response.json()
    except RateLimitedError:
        LOGGER.warning("PubMed search: rate limited (429) for query=%r, skipping", query)
        return []
    except (requests.RequestException, ValueError) as exc:
        LOGGER.warning("PubMed search: failed for query=%r, skipping: %s", query, exc)
        return []

    result = payload.get("esearchresult") if isinstance(payload, dict) else None
    id_list = result.get("idlist") if isinstance(result, dict) else None
    if not isinstance(id_list, list):
        LOGGER.warning("PubMed search: unexpected payload shape for query=%r", query)
        return []
    return [str(pmid) for pmid in id_list if pmid]


def fetch_details(ids: list[str], settings: Settings) -> list[PaperRecord]:
    """Fetch full records for ids and normalize those with a usable abstract."""
    papers: list[PaperRecord] = []
    for start in range(0, len(ids), EFETCH_BATCH_SIZE):
        batch = ids[start : start + EFETCH_BATCH_SIZE]
        params = {"db": "pubmed", "id": ",".join(batch), "retmode": "xml"}
        try:
            response = _get("efetch.fcgi", params, settings)
        except RateLimitedError:
            LOGGER.warning("PubMed fetch: rate limited (429) for %s ids, skipping", len(batch))
            continue
        except requests.RequestException as exc:
            LOGGER.warning("PubMed fetch: failed for %s ids, skipping: %s", len(batch), exc)
            continue
        papers.extend(parse_articles_xml(response.text, settings.abstract_max_chars))
    return papers


def parse_articles_xml(xml_text: str, abstract_max_chars: int | None = None) -> list[PaperRecord]:
    """Parse an efetch XML payload into PaperRecords, dropping thin abstracts."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        LOGGER.warning("PubMed fetch: malformed XML, skipping batch: %s", exc)
        return []

    papers: list[PaperRecord] = []
    for article in root.iter("PubmedArticle"):
        paper = _parse_article(article, abstract_max_chars)
        if paper is not None:
            papers.append(paper)
    return papers


def _parse_article(article: ET.Element, abstract_max_chars: int | None) -> PaperRecord | None:
    abstract = _join_abstract(article)
    if not has_substantive_abstract(abstract):
        return None

    pmid = _text(article.find(".//PMID"))
    doi = _find_doi(article)
    if doi:
        url = f"https://doi.org/{doi}"
    else:
        url = f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/"

    authors = tuple(
        last_name
        for last_name in (_text(el) for el in article.iterfind(".//AuthorList/Author/LastName"))
        if last_name
    )

    return PaperRecord(
        title=_text(article.find(".//ArticleTitle")) or "Untitled",
        abstract=truncate_abstract(abstract, abstract_max_chars),
        venue=_text(article.find(".//Journal/Title")),
        authors=authors,
        published_label=_published_label(article),
        url=url,
        source=SourceName.PUBMED,
        category=Category.HEALTH,
    )


def _join_abstract(article: ET.Element) -> str:
    """Join AbstractText parts; structured abstracts keep their section labels."""
    parts: list[str] = []
    for element in article.iterfind(".//Abstract/AbstractText"):
        text = _text(element)
        if not text:
            continue
        label = element.get("Label")
        parts.append(f"{label}: {text}" if label else text)
    return " ".join(parts)


def _find_doi(article: ET.Element) -> str:
    for element in article.iterfind(".//ArticleId"):
        if element.get("IdType") == "doi" and _text(element):
            return _text(element)
    for element in article.iterfind(".//ELocationID"):
        if element.get("EIdType") == "doi" and _text(element):
            return _text(element)
    return ""


def _published_label(article: ET.Element) -> str:
    pub_date = article.find(".//PubDate")
    if pub_date is None:
        return "Recent"
    year = _text(pub_date.find("Year"))
    if year:
        month = _text(pub_date.find("Month"))
        return f"{year} {month}" if month else year
    return _text(pub_date.find("MedlineDate")) or "Recent"


def _text(element: ET.Element | None) -> str:
    """Flattened, whitespace-normalized text of element (inline markup dropped)."""
    if element is None:
        return ""
    return " ".join("".join(element.itertext()).split())


def _get(endpoint: str, params: dict[str, Any], settings: Settings) -> requests.Response:
    if settings.pubmed_api_key:
        params = {**params, "api_key": settings.pubmed_api_key}
    response = requests.get(
        f"{PUBMED_BASE_URL}/{endpoint}",
        params=params,
        headers={"User-Agent": USER_AGENT},
        timeout=settings.request_timeout_seconds,
    )
    if response.status_code == 429:
        raise RateLimitedError(f"PubMed rate limited on {endpoint}")
    response.raise_for_status()
    return response
