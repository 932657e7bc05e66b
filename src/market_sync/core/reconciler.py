"""
MarketReconciler - discovers markets on the indexer and writes new ones.

One sync pass:
1. Page all MarketCreated events and build the resolved-market set
2. Look each discovered market_id up in the store; existing ones are skipped
   (or refreshed when refresh_existing is on)
3. For each new market, fetch trades and metadata and upsert the record

Per-key failures are counted in the SyncReport and never abort the pass.
Failing to discover at all (indexer unreachable) raises TransportError so
the job queue records the pass as a failed attempt.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from market_sync.errors import StoreError
from market_sync.ingestion.batch import BatchFetcher
from market_sync.ingestion.metadata import is_http_uri
from market_sync.ingestion.models import CreationEvent, TradeActivity
from market_sync.storage.models import MarketRecord

if TYPE_CHECKING:
    from market_sync.ingestion.client import IndexerClient
    from market_sync.ingestion.metadata import MetadataFetcher
    from market_sync.storage.repositories.market_repo import MarketRepository

logger = logging.getLogger(__name__)


def compute_trade_volume(activity: TradeActivity) -> tuple[Decimal, int]:
    """Total volume (buy cost + sell proceeds) and trade count for one market."""
    return activity.total_volume, activity.trade_count


@dataclass
class SyncReport:
    """Counts from one sync pass."""

    discovered: int = 0
    created: int = 0
    skipped: int = 0
    errored: int = 0
    refreshed: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "discovered": self.discovered,
            "created": self.created,
            "skipped": self.skipped,
            "errored": self.errored,
            "refreshed": self.refreshed,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class MarketReconciler:
    """
    Reconciles indexer events against the markets table.

    Usage:
        reconciler = MarketReconciler(index, store, metadata, BatchFetcher(5, 0.1))
        report = await reconciler.sync_pass()
    """

    def __init__(
        self,
        index: "IndexerClient",
        store: "MarketRepository",
        metadata: "MetadataFetcher",
        batch: Optional[BatchFetcher] = None,
        page_size: int = 100,
        max_pages: int = 100,
        resolution_event_limit: int = 1000,
        trade_event_limit: int = 1000,
        refresh_existing: bool = False,
    ) -> None:
        self._index = index
        self._store = store
        self._metadata = metadata
        self._batch = batch or BatchFetcher()
        self._page_size = page_size
        self._max_pages = max_pages
        self._resolution_event_limit = resolution_event_limit
        self._trade_event_limit = trade_event_limit
        self._refresh_existing = refresh_existing

        self._last_report: Optional[SyncReport] = None

    @property
    def last_report(self) -> Optional[SyncReport]:
        return self._last_report

    async def sync_pass(self) -> SyncReport:
        """
        Run one full reconciliation pass.

        Raises:
            TransportError: If creation or resolution events cannot be fetched
        """
        report = SyncReport()
        logger.info("Starting market sync from indexer...")

        events = await self._index.get_all_creation_events(
            page_size=self._page_size, max_pages=self._max_pages
        )
        resolved_ids = await self._resolved_market_ids()

        # First event wins if the indexer ever returns a marketId twice
        by_id: dict[int, CreationEvent] = {}
        for event in events:
            by_id.setdefault(event.market_id, event)
        report.discovered = len(by_id)
        logger.info(
            f"Found {report.discovered} markets from indexer, "
            f"{len(resolved_ids)} resolved"
        )

        new_ids: list[int] = []
        existing: dict[int, MarketRecord] = {}
        for market_id in by_id:
            try:
                record = await self._store.get_by_market_id(market_id)
            except StoreError as e:
                logger.error(f"Lookup failed for market {market_id}: {e}")
                report.errored += 1
                continue
            if record is None:
                new_ids.append(market_id)
            elif self._refresh_existing:
                existing[market_id] = record
            else:
                logger.debug(f"Market {market_id} already exists, skipping")
                report.skipped += 1

        if new_ids:
            created = await self._batch.fetch_all_detailed(
                new_ids,
                lambda market_id: self._create_market(by_id[market_id], resolved_ids),
            )
            report.created = len(created.successes)
            report.errored += created.failed_count

        if existing:
            refreshed = await self._batch.fetch_all_detailed(
                list(existing),
                lambda market_id: self._refresh_market(existing[market_id], resolved_ids),
            )
            report.refreshed = len(refreshed.successes)
            report.errored += refreshed.failed_count

        report.completed_at = datetime.now(timezone.utc)
        self._last_report = report
        logger.info(
            f"Market sync completed: {report.created} new markets, "
            f"{report.skipped} skipped, {report.refreshed} refreshed, "
            f"{report.errored} errors"
        )
        return report

    async def sync_market(self, market_id: int) -> Optional[MarketRecord]:
        """
        Upsert a single market from its creation event, whether or not it
        already exists. Returns None if the indexer has no such market.
        """
        event = await self._index.query_creation_event(market_id)
        if event is None:
            logger.warning(f"Market {market_id} not found on indexer")
            return None
        resolved_ids = await self._resolved_market_ids()
        return await self._create_market(event, resolved_ids)

    async def _resolved_market_ids(self) -> set[int]:
        events = await self._index.query_resolution_events(
            limit=self._resolution_event_limit
        )
        return {event.market_id for event in events}

    async def _create_market(
        self, event: CreationEvent, resolved_ids: set[int]
    ) -> MarketRecord:
        """Build and upsert the record for a newly discovered market."""
        activity = await self._index.query_trade_events(
            event.market_id, limit=self._trade_event_limit
        )
        volume, trade_count = compute_trade_volume(activity)

        metadata = await self._metadata.fetch(event.meta_data_uri)
        if metadata is None and is_http_uri(event.meta_data_uri):
            logger.warning(f"No metadata for market {event.market_id}")

        resolved = event.market_id in resolved_ids
        record = MarketRecord(
            market_id=event.market_id,
            creator=event.creator,
            starts_at=event.starts_at,
            expires_at=event.expires_at,
            collateral_token=event.collateral_token,
            outcome_count=event.outcome_count,
            initial_collateral=event.initial_collateral,
            creator_fee_bps=event.creator_fee_bps,
            meta_data_uri=event.meta_data_uri,
            alpha=event.alpha,
            title=metadata.title if metadata else None,
            resolution_criteria=metadata.resolution_criteria if metadata else None,
            end_date=metadata.end_date if metadata else None,
            outcomes=metadata.outcomes if metadata else None,
            total_volume=volume,
            trade_count=trade_count,
            resolved=resolved,
            resolved_at=datetime.now(timezone.utc) if resolved else None,
        )
        stored = await self._store.upsert(record)
        logger.info(f"Created new market {event.market_id}")
        return stored

    async def _refresh_market(
        self, record: MarketRecord, resolved_ids: set[int]
    ) -> MarketRecord:
        """Recompute aggregates and resolution state for an existing market."""
        activity = await self._index.query_trade_events(
            record.market_id, limit=self._trade_event_limit
        )
        volume, trade_count = compute_trade_volume(activity)
        updated = await self._store.update_trade_stats(record.market_id, volume, trade_count)

        if record.market_id in resolved_ids and not record.resolved:
            updated = await self._store.mark_resolved(
                record.market_id, datetime.now(timezone.utc)
            )
            logger.info(f"Market {record.market_id} resolved")

        if record.title is None and record.has_http_metadata:
            metadata = await self._metadata.fetch(record.meta_data_uri)
            if metadata is not None and metadata.as_fields():
                updated = await self._store.update(record.market_id, metadata.as_fields())

        return updated or record
