"""
Repository exports.
"""
from market_sync.storage.repositories.job_repo import JobRunRepository
from market_sync.storage.repositories.market_repo import (
    UPDATABLE_COLUMNS,
    MarketRepository,
)

__all__ = [
    "MarketRepository",
    "UPDATABLE_COLUMNS",
    "JobRunRepository",
]
