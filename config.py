"""Runtime settings for the journal scout and tracker sync entry points."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or malformed."""


_DEFAULT_OUTPUT_DIR = "reports"
_DEFAULT_LOOKBACK_DAYS = 7
_DEFAULT_MAX_PER_QUERY = 10
_DEFAULT_MAX_PAPERS_PER_CATEGORY = 15
_DEFAULT_ABSTRACT_MAX_CHARS = 1000
_DEFAULT_REQUEST_TIMEOUT_SECONDS = 20
_DEFAULT_SYNC_TIMEOUT_SECONDS = 30


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide configuration, built once at startup and passed down."""

    output_dir: str = _DEFAULT_OUTPUT_DIR
    lookback_days: int = _DEFAULT_LOOKBACK_DAYS
    max_per_query: int = _DEFAULT_MAX_PER_QUERY
    max_papers_per_category: int = _DEFAULT_MAX_PAPERS_PER_CATEGORY
    # 0 disables truncation.
    abstract_max_chars: int = _DEFAULT_ABSTRACT_MAX_CHARS
    request_timeout_seconds: int = _DEFAULT_REQUEST_TIMEOUT_SECONDS
    tracker_url: str | None = None
    tracker_key: str | None = None
    sync_timeout_seconds: int = _DEFAULT_SYNC_TIMEOUT_SECONDS
    pubmed_api_key: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables (call after load_dotenv)."""
        env = os.environ if environ is None else environ
        return cls(
            output_dir=_as_str(env.get("JOURNAL_OUTPUT_DIR")) or _DEFAULT_OUTPUT_DIR,
            lookback_days=_as_int(env, "JOURNAL_DAYS_BACK", _DEFAULT_LOOKBACK_DAYS),
            max_per_query=_as_int(env, "JOURNAL_MAX_PER_QUERY", _DEFAULT_MAX_PER_QUERY),
            max_papers_per_category=_as_int(
                env, "JOURNAL_MAX_PAPERS", _DEFAULT_MAX_PAPERS_PER_CATEGORY
            ),
            abstract_max_chars=_as_int(
                env, "JOURNAL_ABSTRACT_MAX_CHARS", _DEFAULT_ABSTRACT_MAX_CHARS
            ),
            request_timeout_seconds=_as_int(
                env, "JOURNAL_REQUEST_TIMEOUT", _DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            tracker_url=_as_str(env.get("SCOUT_TRACKER_URL")),
            tracker_key=_as_str(env.get("SCOUT_TRACKER_KEY")),
            sync_timeout_seconds=_as_int(
                env, "SCOUT_TRACKER_TIMEOUT", _DEFAULT_SYNC_TIMEOUT_SECONDS
            ),
            pubmed_api_key=_as_str(env.get("PUBMED_API_KEY")),
        )

    @property
    def sync_enabled(self) -> bool:
        return bool(self.tracker_url and self.tracker_key)

    def require_tracker(self) -> tuple[str, str]:
        """Return (url, key) or raise ConfigError if either is missing."""
        if not self.tracker_url or not self.tracker_key:
            raise ConfigError(
                "Missing env vars. Set SCOUT_TRACKER_URL and SCOUT_TRACKER_KEY"
            )
        return self.tracker_url, self.tracker_key


def _as_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _as_str(env.get(name))
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must be non-negative, got {value}")
    return value


def _as_str(value: str | None) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None
