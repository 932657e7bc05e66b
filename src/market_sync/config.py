"""
Pipeline configuration.

All settings are read from environment variables by PipelineConfig.from_env().

Environment Variables:
    DATABASE_URL                      PostgreSQL connection string (required)
    INDEXER_URL                       GraphQL endpoint of the event indexer
    INDEXER_TIMEOUT_SECONDS           Per-request timeout for indexer queries (default: 30)
    DISCOVERY_PAGE_SIZE               MarketCreated events per page (default: 100)
    DISCOVERY_MAX_PAGES               Page limit for one discovery pass (default: 100)
    RESOLUTION_EVENT_LIMIT            MarketResolved events fetched per pass (default: 1000)
    TRADE_EVENT_LIMIT                 Buy/sell events fetched per market (default: 1000)
    FETCH_WINDOW_SIZE                 Concurrent per-market fetches per window (default: 5)
    FETCH_WINDOW_DELAY_SECONDS        Pause between fetch windows (default: 0.1)
    METADATA_TIMEOUT_SECONDS          Timeout for metadata document fetches (default: 10)
    REFRESH_EXISTING_MARKETS          Recompute volume/resolution for known markets (default: false)
    DISCOVERY_SCHEDULE_ENABLED        Enqueue a sync job periodically (default: true)
    DISCOVERY_INTERVAL_SECONDS        Sync job period (default: 300)
    SYNC_ON_STARTUP                   Enqueue a sync job when the service starts (default: true)
    EVALUATION_SCHEDULE_ENABLED       Enqueue an evaluation job periodically (default: true)
    EVALUATION_INTERVAL_SECONDS       Evaluation job period (default: 30)
    JOB_MAX_ATTEMPTS                  Attempts per job before it is marked failed (default: 3)
    JOB_RETRY_INITIAL_DELAY_SECONDS   First retry backoff (default: 1.0)
    JOB_RETRY_MAX_DELAY_SECONDS       Backoff ceiling (default: 30.0)
    JOB_KEEP_COMPLETED                Completed jobs kept for inspection (default: 5)
    JOB_KEEP_FAILED                   Failed jobs kept for inspection (default: 10)
    OPENAI_API_KEY                    Enables the OpenAI scoring provider
    OPENAI_MODEL                      (default: gpt-4o-mini)
    ANTHROPIC_API_KEY                 Enables the Anthropic scoring provider
    ANTHROPIC_MODEL                   (default: claude-3-haiku-20240307)
    SCORING_TIMEOUT_SECONDS           Timeout for one provider call (default: 30)
    LOG_LEVEL                         Logging level (default: INFO)
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from market_sync.errors import ConfigurationError

DEFAULT_INDEXER_URL = "http://localhost:8080/v1/graphql"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""

    # Database
    database_url: str = ""

    # Event indexer
    indexer_url: str = DEFAULT_INDEXER_URL
    indexer_timeout_seconds: float = 30.0
    discovery_page_size: int = 100
    discovery_max_pages: int = 100
    resolution_event_limit: int = 1000
    trade_event_limit: int = 1000

    # Batch fetching
    fetch_window_size: int = 5
    fetch_window_delay_seconds: float = 0.1
    metadata_timeout_seconds: float = 10.0
    refresh_existing_markets: bool = False

    # Scheduling
    discovery_schedule_enabled: bool = True
    discovery_interval_seconds: float = 300
    sync_on_startup: bool = True
    evaluation_schedule_enabled: bool = True
    evaluation_interval_seconds: float = 30

    # Job queue
    job_max_attempts: int = 3
    job_retry_initial_delay_seconds: float = 1.0
    job_retry_max_delay_seconds: float = 30.0
    job_keep_completed: int = 5
    job_keep_failed: int = 10

    # Scoring providers
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-haiku-20240307"
    scoring_timeout_seconds: float = 30.0

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Load configuration from environment variables."""
        return cls(
            database_url=os.environ.get("DATABASE_URL", ""),
            indexer_url=os.environ.get("INDEXER_URL", DEFAULT_INDEXER_URL),
            indexer_timeout_seconds=_env_number("INDEXER_TIMEOUT_SECONDS", 30.0, float),
            discovery_page_size=_env_number("DISCOVERY_PAGE_SIZE", 100, int),
            discovery_max_pages=_env_number("DISCOVERY_MAX_PAGES", 100, int),
            resolution_event_limit=_env_number("RESOLUTION_EVENT_LIMIT", 1000, int),
            trade_event_limit=_env_number("TRADE_EVENT_LIMIT", 1000, int),
            fetch_window_size=_env_number("FETCH_WINDOW_SIZE", 5, int),
            fetch_window_delay_seconds=_env_number("FETCH_WINDOW_DELAY_SECONDS", 0.1, float),
            metadata_timeout_seconds=_env_number("METADATA_TIMEOUT_SECONDS", 10.0, float),
            refresh_existing_markets=_env_bool("REFRESH_EXISTING_MARKETS", False),
            discovery_schedule_enabled=_env_bool("DISCOVERY_SCHEDULE_ENABLED", True),
            discovery_interval_seconds=_env_number("DISCOVERY_INTERVAL_SECONDS", 300.0, float),
            sync_on_startup=_env_bool("SYNC_ON_STARTUP", True),
            evaluation_schedule_enabled=_env_bool("EVALUATION_SCHEDULE_ENABLED", True),
            evaluation_interval_seconds=_env_number("EVALUATION_INTERVAL_SECONDS", 30.0, float),
            job_max_attempts=_env_number("JOB_MAX_ATTEMPTS", 3, int),
            job_retry_initial_delay_seconds=_env_number("JOB_RETRY_INITIAL_DELAY_SECONDS", 1.0, float),
            job_retry_max_delay_seconds=_env_number("JOB_RETRY_MAX_DELAY_SECONDS", 30.0, float),
            job_keep_completed=_env_number("JOB_KEEP_COMPLETED", 5, int),
            job_keep_failed=_env_number("JOB_KEEP_FAILED", 10, int),
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            openai_model=os.environ.get("OPENAI_MODEL", "gpt-4o-mini"),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            anthropic_model=os.environ.get("ANTHROPIC_MODEL", "claude-3-haiku-20240307"),
            scoring_timeout_seconds=_env_number("SCORING_TIMEOUT_SECONDS", 30.0, float),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        """
        Fail fast on settings the pipeline cannot run with.

        Raises:
            ConfigurationError: On the first invalid setting found
        """
        if not self.database_url:
            raise ConfigurationError("DATABASE_URL is required")
        if not self.indexer_url:
            raise ConfigurationError("INDEXER_URL is required")
        if self.fetch_window_size < 1:
            raise ConfigurationError(
                f"FETCH_WINDOW_SIZE must be >= 1, got {self.fetch_window_size}"
            )
        if self.discovery_page_size < 1:
            raise ConfigurationError(
                f"DISCOVERY_PAGE_SIZE must be >= 1, got {self.discovery_page_size}"
            )
        if self.job_max_attempts < 1:
            raise ConfigurationError(
                f"JOB_MAX_ATTEMPTS must be >= 1, got {self.job_max_attempts}"
            )
        for name in (
            "fetch_window_delay_seconds",
            "discovery_interval_seconds",
            "evaluation_interval_seconds",
            "job_retry_initial_delay_seconds",
            "job_retry_max_delay_seconds",
        ):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name.upper()} must not be negative")

    @property
    def has_scoring_credentials(self) -> bool:
        """Whether at least one LLM provider can be used."""
        return bool(self.openai_api_key or self.anthropic_api_key)
