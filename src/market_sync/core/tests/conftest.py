"""
Core layer test fixtures.

Core tests verify orchestration logic, so the indexer, metadata fetcher
and market store are mocked.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from market_sync.ingestion.models import (
    BuyEvent,
    CreationEvent,
    ResolutionEvent,
    SellEvent,
    TradeActivity,
)
from market_sync.storage.models import MarketRecord


# =============================================================================
# Event Fixtures
# =============================================================================


def make_creation_event(market_id: int, meta_data_uri=None) -> CreationEvent:
    return CreationEvent(
        market_id=market_id,
        creator="0xcreator",
        starts_at=Decimal("1700000000"),
        expires_at=Decimal("1800000000"),
        collateral_token="0xcollateral",
        outcome_count=2,
        initial_collateral=Decimal("1000000"),
        creator_fee_bps=100,
        meta_data_uri=meta_data_uri,
        alpha=Decimal("30000000000000000"),
    )


def make_record(market_id: int, **overrides) -> MarketRecord:
    fields = dict(
        market_id=market_id,
        creator="0xcreator",
        starts_at=Decimal("1700000000"),
        expires_at=Decimal("1800000000"),
        collateral_token="0xcollateral",
        outcome_count=2,
        initial_collateral=Decimal("1000000"),
        creator_fee_bps=100,
        alpha=Decimal("30000000000000000"),
    )
    fields.update(overrides)
    return MarketRecord(**fields)


@pytest.fixture
def creation_event():
    return make_creation_event


@pytest.fixture
def market_record():
    return make_record


@pytest.fixture
def sample_activity():
    """bought 100 + 50, sold 30."""
    return TradeActivity(
        market_id=1,
        bought=(
            BuyEvent(market_id=1, cost=Decimal("100")),
            BuyEvent(market_id=1, cost=Decimal("50")),
        ),
        sold=(SellEvent(market_id=1, received=Decimal("30")),),
    )


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def mock_index():
    """Mock IndexerClient with no events."""
    index = MagicMock()
    index.get_all_creation_events = AsyncMock(return_value=[])
    index.query_creation_event = AsyncMock(return_value=None)
    index.query_resolution_events = AsyncMock(return_value=[])
    index.query_trade_events = AsyncMock(
        side_effect=lambda market_id, limit=1000: TradeActivity(market_id=market_id)
    )
    return index


@pytest.fixture
def mock_store():
    """Mock MarketRepository where no market exists yet."""
    store = MagicMock()
    store.get_by_market_id = AsyncMock(return_value=None)
    store.upsert = AsyncMock(side_effect=lambda record: record)
    store.update = AsyncMock(return_value=None)
    store.update_trade_stats = AsyncMock(return_value=None)
    store.mark_resolved = AsyncMock(return_value=None)
    return store


@pytest.fixture
def mock_metadata():
    """Mock MetadataFetcher that finds nothing."""
    metadata = MagicMock()
    metadata.fetch = AsyncMock(return_value=None)
    return metadata


@pytest.fixture
def resolution_event():
    return lambda market_id: ResolutionEvent(market_id=market_id)
