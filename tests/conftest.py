"""
Shared test fixtures for end-to-end pipeline tests.

Component-specific fixtures live in src/market_sync/{component}/tests/conftest.py.
These fixtures span components: an in-memory market store with the same
merge rules as MarketRepository, and fake indexer/metadata backends.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

import pytest

from market_sync.ingestion.models import (
    BuyEvent,
    CreationEvent,
    MarketMetadata,
    ResolutionEvent,
    SellEvent,
    TradeActivity,
)
from market_sync.storage.models import MarketRecord
from market_sync.storage.repositories import UPDATABLE_COLUMNS

# Enrichment columns that an upsert never overwrites with NULL
_COALESCED = ("title", "resolution_criteria", "end_date", "outcomes")


class InMemoryMarketStore:
    """Dict-backed stand-in for MarketRepository."""

    def __init__(self) -> None:
        self.rows: dict[int, MarketRecord] = {}
        self.upserts = 0

    async def get_by_market_id(self, market_id: int) -> Optional[MarketRecord]:
        return self.rows.get(market_id)

    async def upsert(self, market: MarketRecord) -> MarketRecord:
        self.upserts += 1
        current = self.rows.get(market.market_id)
        if current is None:
            self.rows[market.market_id] = market
            return market

        data = market.model_dump()
        for column in _COALESCED:
            if data[column] is None:
                data[column] = getattr(current, column)
        data["resolved"] = current.resolved or market.resolved
        data["resolved_at"] = current.resolved_at or market.resolved_at
        for column in list(data):
            if column.startswith("ai_") or column == "needs_ai_evaluation":
                data[column] = getattr(current, column)
        merged = MarketRecord(**data)
        self.rows[market.market_id] = merged
        return merged

    async def update(self, market_id: int, fields: Mapping[str, Any]) -> Optional[MarketRecord]:
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable: {sorted(unknown)}")
        current = self.rows.get(market_id)
        if current is None:
            return None
        updated = current.model_copy(update=dict(fields))
        self.rows[market_id] = updated
        return updated

    async def select_needing_evaluation(self, limit: int = 1) -> list[MarketRecord]:
        candidates = [
            r for r in self.rows.values() if r.needs_ai_evaluation or r.title is None
        ]
        candidates.sort(key=lambda r: (not r.needs_ai_evaluation, r.market_id))
        return candidates[:limit]

    async def update_evaluation(self, evaluation) -> Optional[MarketRecord]:
        current = self.rows.get(evaluation.market_id)
        if current is None:
            return None
        updated = current.model_copy(update={
            "ai_resolvability": Decimal(evaluation.resolvability),
            "ai_clarity": Decimal(evaluation.clarity),
            "ai_manipulability_risk": Decimal(evaluation.manipulability_risk),
            "ai_explanation": evaluation.explanation,
            "ai_evaluated_at": evaluation.evaluated_at,
            "needs_ai_evaluation": False,
        })
        self.rows[evaluation.market_id] = updated
        return updated

    async def mark_resolved(self, market_id: int, resolved_at: datetime) -> Optional[MarketRecord]:
        current = self.rows.get(market_id)
        if current is None:
            return None
        updated = current.model_copy(update={
            "resolved": True,
            "resolved_at": current.resolved_at or resolved_at,
        })
        self.rows[market_id] = updated
        return updated

    async def update_trade_stats(
        self, market_id: int, total_volume: Decimal, trade_count: int
    ) -> Optional[MarketRecord]:
        return await self.update(
            market_id, {"total_volume": total_volume, "trade_count": trade_count}
        )

    async def get_all(self) -> list[MarketRecord]:
        return [self.rows[k] for k in sorted(self.rows)]

    async def get_available(self) -> list[MarketRecord]:
        return [
            r for r in await self.get_all()
            if not r.resolved and r.ai_evaluated_at is not None
        ]

    async def count(self) -> int:
        return len(self.rows)


class FakeIndexer:
    """Serves canned creation, resolution and trade events."""

    def __init__(self) -> None:
        self.creations: list[CreationEvent] = []
        self.resolutions: list[ResolutionEvent] = []
        self.trades: dict[int, TradeActivity] = {}

    def add_market(self, market_id: int, meta_data_uri: Optional[str] = None) -> CreationEvent:
        event = CreationEvent(
            market_id=market_id,
            creator="0xabc",
            starts_at=Decimal("1700000000"),
            expires_at=Decimal("1800000000"),
            collateral_token="0xdef",
            outcome_count=2,
            initial_collateral=Decimal("1000000000000000000"),
            creator_fee_bps=100,
            meta_data_uri=meta_data_uri,
            alpha=Decimal("100000000000000000"),
        )
        self.creations.append(event)
        return event

    def add_trades(self, market_id: int, costs=(), proceeds=()) -> None:
        self.trades[market_id] = TradeActivity(
            market_id=market_id,
            bought=tuple(BuyEvent(market_id=market_id, cost=Decimal(c)) for c in costs),
            sold=tuple(SellEvent(market_id=market_id, received=Decimal(p)) for p in proceeds),
        )

    def resolve(self, market_id: int) -> None:
        self.resolutions.append(ResolutionEvent(market_id=market_id))

    async def get_all_creation_events(self, page_size: int = 100, max_pages: int = 100):
        return list(self.creations)

    async def query_creation_event(self, market_id: int):
        return next((e for e in self.creations if e.market_id == market_id), None)

    async def query_resolution_events(self, limit: int = 1000, offset: int = 0):
        return list(self.resolutions)

    async def query_trade_events(self, market_id: int, limit: int = 1000):
        return self.trades.get(market_id, TradeActivity(market_id=market_id))

    async def close(self) -> None:
        pass


class FakeMetadata:
    """MetadataFetcher stand-in keyed by URI."""

    def __init__(self, documents: Optional[dict[str, MarketMetadata]] = None) -> None:
        self.documents = documents or {}
        self.fetched: list[str] = []

    async def fetch(self, uri: Optional[str]) -> Optional[MarketMetadata]:
        if uri is None:
            return None
        self.fetched.append(uri)
        return self.documents.get(uri)

    async def close(self) -> None:
        pass


@pytest.fixture
def store() -> InMemoryMarketStore:
    return InMemoryMarketStore()


@pytest.fixture
def indexer() -> FakeIndexer:
    return FakeIndexer()


@pytest.fixture
def metadata() -> FakeMetadata:
    return FakeMetadata()
