"""
EvaluationEngine - scores one stale market per cycle.

A cycle selects the next market needing evaluation, retries its metadata
if the title is still missing, asks each configured provider in order and
falls back to the heuristic, then writes the scores and clears
needs_ai_evaluation in a single statement.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Sequence

from market_sync.errors import StoreError

from .heuristic import heuristic_evaluation
from .models import EvaluationOutcome, MarketEvaluation, MarketForEvaluation
from .providers import ScoringProvider

if TYPE_CHECKING:
    from market_sync.ingestion.metadata import MetadataFetcher
    from market_sync.storage.models import MarketRecord
    from market_sync.storage.repositories.market_repo import MarketRepository

logger = logging.getLogger(__name__)


class EvaluationEngine:
    """
    Runs evaluation cycles against the markets table.

    Usage:
        engine = EvaluationEngine(repo, build_providers(config), metadata)
        outcome = await engine.run_one_cycle()  # None when nothing is pending
    """

    def __init__(
        self,
        store: "MarketRepository",
        providers: Sequence[ScoringProvider] = (),
        metadata: Optional["MetadataFetcher"] = None,
    ) -> None:
        self._store = store
        self._providers = list(providers)
        self._metadata = metadata

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    async def evaluate(self, market: MarketForEvaluation) -> MarketEvaluation:
        """Score a market through the provider chain. Always returns a result."""
        for provider in self._providers:
            try:
                evaluation = await provider.evaluate(market)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Provider {provider.name} raised for market {market.market_id}: {e}")
                evaluation = None
            if evaluation is not None:
                logger.info(f"{provider.name} evaluation completed for market {market.market_id}")
                return evaluation

        if self._providers:
            logger.warning(f"All providers failed for market {market.market_id}, using heuristic")
        return heuristic_evaluation(market)

    async def run_one_cycle(self) -> Optional[EvaluationOutcome]:
        """
        Evaluate the next pending market.

        Returns None when no market needs evaluation. A store failure on the
        final write is logged and reported with persisted=False; the market
        stays pending and is picked up again next cycle.
        """
        try:
            candidates = await self._store.select_needing_evaluation(limit=1)
        except StoreError as e:
            logger.error(f"Failed to select markets for evaluation: {e}")
            return None
        if not candidates:
            logger.info("No markets needing AI evaluation found")
            return None

        record = candidates[0]
        record, recovered = await self._recover_metadata(record)

        market = MarketForEvaluation.from_record(record)
        logger.info(f"Evaluating market {market.market_id}: {market.title!r}")
        evaluation = await self.evaluate(market)

        try:
            await self._store.update_evaluation(evaluation)
        except StoreError as e:
            logger.error(f"Failed to store evaluation for market {market.market_id}: {e}")
            return EvaluationOutcome(
                market_id=market.market_id,
                evaluation=evaluation,
                persisted=False,
                metadata_recovered=recovered,
                error=str(e),
            )

        logger.info(
            f"Stored {evaluation.source} evaluation for market {market.market_id}: "
            f"resolvability={evaluation.resolvability} clarity={evaluation.clarity} "
            f"manipulability_risk={evaluation.manipulability_risk}"
        )
        return EvaluationOutcome(
            market_id=market.market_id,
            evaluation=evaluation,
            metadata_recovered=recovered,
        )

    async def _recover_metadata(self, record: "MarketRecord") -> tuple["MarketRecord", bool]:
        """Refetch metadata for an untitled market and persist what it yields."""
        if record.title is not None or self._metadata is None or not record.has_http_metadata:
            return record, False

        metadata = await self._metadata.fetch(record.meta_data_uri)
        if metadata is None or not metadata.as_fields():
            return record, False

        try:
            updated = await self._store.update(record.market_id, metadata.as_fields())
        except StoreError as e:
            logger.error(f"Failed to store recovered metadata for market {record.market_id}: {e}")
            return record.model_copy(update=metadata.as_fields()), False

        logger.info(f"Recovered metadata for market {record.market_id}")
        return (updated or record.model_copy(update=metadata.as_fields())), True
