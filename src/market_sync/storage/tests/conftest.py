"""
Storage test fixtures.

Repositories are tested against a mocked Database; rows are plain dicts,
which convert the same way asyncpg Records do.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from market_sync.storage.models import MarketRecord
from market_sync.storage.repositories import JobRunRepository, MarketRepository


@pytest.fixture
def mock_db():
    db = MagicMock()
    db.execute = AsyncMock(return_value="DELETE 0")
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=0)
    return db


@pytest.fixture
def market_repo(mock_db) -> MarketRepository:
    return MarketRepository(mock_db)


@pytest.fixture
def job_repo(mock_db) -> JobRunRepository:
    return JobRunRepository(mock_db)


@pytest.fixture
def market_row():
    """Factory for a markets row as the driver returns it."""
    def _make(market_id=7, **overrides):
        row = {
            "id": 1,
            "market_id": market_id,
            "creator": "0xabc",
            "starts_at": Decimal("1700000000"),
            "expires_at": Decimal("1800000000"),
            "collateral_token": "0xdef",
            "outcome_count": 2,
            "initial_collateral": Decimal("1000000000000000000"),
            "creator_fee_bps": 100,
            "meta_data_uri": "ipfs://Qm",
            "alpha": Decimal("100000000000000000"),
            "title": None,
            "resolution_criteria": None,
            "end_date": None,
            "outcomes": None,
            "total_volume": Decimal("0"),
            "trade_count": 0,
            "resolved": False,
            "resolved_at": None,
            "ai_resolvability": None,
            "ai_clarity": None,
            "ai_manipulability_risk": None,
            "ai_explanation": None,
            "ai_evaluated_at": None,
            "needs_ai_evaluation": True,
            "created_at": None,
            "updated_at": None,
        }
        row.update(overrides)
        return row
    return _make


@pytest.fixture
def market_record(market_row) -> MarketRecord:
    row = market_row()
    row.pop("id")
    return MarketRecord(**row)
