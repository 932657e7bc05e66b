"""
Storage Layer - Async PostgreSQL record store.

Public API:
    Database, DatabaseConfig - Connection pool management
    ensure_schema - Idempotent DDL for markets and pipeline_job_runs

    Models:
        MarketRecord - One market, keyed by market_id
        JobRun - Persisted job outcome

    Repositories:
        MarketRepository - get / upsert / update / select-needing-evaluation
        JobRunRepository - Bounded job history
"""
from market_sync.storage.database import Database, DatabaseConfig
from market_sync.storage.models import JobRun, MarketRecord
from market_sync.storage.repositories import JobRunRepository, MarketRepository
from market_sync.storage.schema import ensure_schema

__all__ = [
    "Database",
    "DatabaseConfig",
    "ensure_schema",
    "MarketRecord",
    "JobRun",
    "MarketRepository",
    "JobRunRepository",
]
