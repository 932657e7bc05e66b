"""
Evaluation test fixtures.

Provider HTTP calls are always mocked at the _post boundary.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from market_sync.evaluation.models import MarketForEvaluation
from market_sync.storage.models import MarketRecord


@pytest.fixture
def binary_market():
    return MarketForEvaluation(
        market_id=11,
        title="Will the Fed cut rates by June 2026?",
        resolution_criteria=(
            "Resolves YES if the Federal Reserve officially announces a rate cut "
            "by June 30, 2026, as published on the official government website."
        ),
        outcomes=("Yes", "No"),
        outcome_count=2,
    )


@pytest.fixture
def pending_record():
    def _make(market_id=11, **overrides):
        fields = dict(
            market_id=market_id,
            creator="0xcreator",
            starts_at=Decimal("1700000000"),
            expires_at=Decimal("1800000000"),
            collateral_token="0xcollateral",
            outcome_count=2,
            initial_collateral=Decimal("1000000"),
            creator_fee_bps=100,
            alpha=Decimal("1"),
            title="Will it snow in Lisbon?",
            resolution_criteria="Per the public weather record.",
            needs_ai_evaluation=True,
        )
        fields.update(overrides)
        return MarketRecord(**fields)
    return _make


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.select_needing_evaluation = AsyncMock(return_value=[])
    store.update_evaluation = AsyncMock(return_value=None)
    store.update = AsyncMock(return_value=None)
    return store


@pytest.fixture
def mock_metadata():
    metadata = MagicMock()
    metadata.fetch = AsyncMock(return_value=None)
    return metadata
