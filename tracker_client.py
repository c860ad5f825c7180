"""Scout Tracker API integration: push parsed reports and their opportunities."""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urljoin

import requests

from config import Settings
from models import OpportunityCandidate, ParsedReport, SyncResult

REPORTS_ENDPOINT = "/api/reports"
OPPORTUNITIES_ENDPOINT = "/api/opportunities"
MAX_RETRIES = 3

LOGGER = logging.getLogger(__name__)


class TrackerSyncError(RuntimeError):
    """A tracker request failed after retries or returned no record id."""


class TrackerClient:
    """Minimal client for the tracker's create-report / create-opportunity routes.

    Duplicate detection is left to the tracker: the report's file path is sent as
    ``filePath`` so the persistence layer can enforce uniqueness on it.
    """

    def __init__(self, base_url: str, api_key: str, timeout_seconds: int = 30) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> TrackerClient:
        base_url, api_key = settings.require_tracker()
        return cls(base_url, api_key, timeout_seconds=settings.sync_timeout_seconds)

    def create_report(
        self,
        report: ParsedReport,
        *,
        date: datetime | None = None,
        file_path: str | None = None,
    ) -> str:
        payload = {
            "source": str(report.source_type),
            "date": (date or datetime.now(UTC)).isoformat(),
            "title": report.title,
            "content": report.content,
            "tweetCount": report.declared_item_count,
            "filePath": file_path,
        }
        return self._post(REPORTS_ENDPOINT, payload)

    def create_opportunity(self, opportunity: OpportunityCandidate, report_id: str) -> str:
        payload = {
            "title": opportunity.title,
            "description": opportunity.description,
            "source": str(opportunity.source_type),
            "priority": str(opportunity.priority),
            "reportId": report_id,
        }
        return self._post(OPPORTUNITIES_ENDPOINT, payload)

    def sync(self, report: ParsedReport, *, file_path: str | None = None) -> SyncResult:
        """Create the report, then each linked opportunity.

        Report creation is a hard prerequisite: if it fails, TrackerSyncError
        propagates and no opportunity is attempted. Opportunity failures are logged
        and collected; they neither stop the remaining ones nor undo the report.
        """
        LOGGER.info(
            "tracker: syncing %r (%s opportunities)", report.title, len(report.opportunities)
        )
        report_id = self.create_report(report, file_path=file_path)
        LOGGER.info("tracker: created report id=%s", report_id)

        created: list[str] = []
        failed: list[str] = []
        for opportunity in report.opportunities:
            try:
                created.append(self.create_opportunity(opportunity, report_id))
            except TrackerSyncError as exc:
                failed.append(opportunity.title)
                LOGGER.error(
                    "tracker: failed to create opportunity %r for report id=%s: %s",
                    opportunity.title,
                    report_id,
                    exc,
                )
                continue
            LOGGER.info("tracker:   + opportunity %r", opportunity.title)

        LOGGER.info(
            "tracker: done report id=%s created=%s failed=%s",
            report_id,
            len(created),
            len(failed),
        )
        return SyncResult(
            report_id=report_id,
            opportunity_ids=tuple(created),
            failed_opportunities=tuple(failed),
        )

    def _post(self, endpoint: str, payload: dict[str, Any]) -> str:
        response = self._request_with_backoff(
            url=urljoin(self.base_url, endpoint.lstrip("/")),
            json_payload=payload,
        )
        try:
            body = response.json()
        except ValueError as exc:
            raise TrackerSyncError(f"Tracker returned a non-JSON body for {endpoint}") from exc

        record_id = body.get("id") if isinstance(body, dict) else None
        if record_id is None or record_id == "":
            raise TrackerSyncError(f"Tracker response for {endpoint} has no id: {body}")
        return str(record_id)

    def _request_with_backoff(self, *, url: str, json_payload: dict[str, Any]) -> requests.Response:
        """POST with simple exponential backoff for rate limits and transport errors."""
        headers = {"Content-Type": "application/json", "x-api-key": self.api_key}
        delay_seconds = 1.0
        last_error: Exception | None = None

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = requests.post(
                    url,
                    headers=headers,
                    json=json_payload,
                    timeout=self.timeout_seconds,
                )
                if response.status_code == 429 and attempt < MAX_RETRIES:
                    time.sleep(delay_seconds)
                    delay_seconds *= 2
                    continue
                response.raise_for_status()
                return response
            except requests.HTTPError as exc:
                # 4xx/5xx other than 429 will not improve on retry.
                last_error = exc
                break
            except requests.RequestException as exc:
                last_error = exc
                if attempt >= MAX_RETRIES:
                    break
                time.sleep(delay_seconds)
                delay_seconds *= 2

        response_text = ""
        if isinstance(last_error, requests.HTTPError) and last_error.response is not None:
            try:
                response_text = json.dumps(last_error.response.json())
            except ValueError:
                response_text = last_error.response.text

        raise TrackerSyncError(f"Tracker request to {url} failed: {last_error} {response_text}".strip())
