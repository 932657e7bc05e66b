"""
Market repository - the record store behind reconciliation and evaluation.

Every write is a single statement, so each one is atomic on its own and
the pipeline needs no multi-row transactions.
"""
from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Mapping, Optional

from market_sync.storage.models import MarketRecord
from market_sync.storage.repositories.base import BaseRepository

if TYPE_CHECKING:
    from market_sync.evaluation.models import MarketEvaluation

# Columns update() may touch. Identity and AI columns have dedicated writers.
UPDATABLE_COLUMNS = frozenset({
    "title",
    "resolution_criteria",
    "end_date",
    "outcomes",
    "meta_data_uri",
    "total_volume",
    "trade_count",
})


class MarketRepository(BaseRepository[MarketRecord]):
    """Repository for the markets table."""

    table_name = "markets"
    model_class = MarketRecord
    json_columns = ("outcomes",)

    async def get_by_market_id(self, market_id: int) -> Optional[MarketRecord]:
        """Point lookup by business key."""
        record = await self._run(
            "fetchrow",
            "SELECT * FROM markets WHERE market_id = $1",
            market_id,
        )
        return self._record_to_model(record)

    async def upsert(self, market: MarketRecord) -> MarketRecord:
        """
        Insert a market, or merge into the existing row for its market_id.

        Merge rules on conflict:
            - creation fields are rewritten (they are immutable on-chain, so
              this is a no-op in practice)
            - enrichment fields keep their stored value when the new one is NULL
            - resolved is OR-merged and resolved_at keeps its first value
            - volume and trade count are overwritten
            - AI evaluation columns are never touched
        """
        query = """
            INSERT INTO markets
            (market_id, creator, starts_at, expires_at, collateral_token,
             outcome_count, initial_collateral, creator_fee_bps, meta_data_uri,
             alpha, title, resolution_criteria, end_date, outcomes,
             total_volume, trade_count, resolved, resolved_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10,
                    $11, $12, $13, $14::jsonb, $15, $16, $17, $18)
            ON CONFLICT (market_id) DO UPDATE
            SET creator = EXCLUDED.creator,
                starts_at = EXCLUDED.starts_at,
                expires_at = EXCLUDED.expires_at,
                collateral_token = EXCLUDED.collateral_token,
                outcome_count = EXCLUDED.outcome_count,
                initial_collateral = EXCLUDED.initial_collateral,
                creator_fee_bps = EXCLUDED.creator_fee_bps,
                meta_data_uri = EXCLUDED.meta_data_uri,
                alpha = EXCLUDED.alpha,
                title = COALESCE(EXCLUDED.title, markets.title),
                resolution_criteria = COALESCE(EXCLUDED.resolution_criteria, markets.resolution_criteria),
                end_date = COALESCE(EXCLUDED.end_date, markets.end_date),
                outcomes = COALESCE(EXCLUDED.outcomes, markets.outcomes),
                total_volume = EXCLUDED.total_volume,
                trade_count = EXCLUDED.trade_count,
                resolved = markets.resolved OR EXCLUDED.resolved,
                resolved_at = COALESCE(markets.resolved_at, EXCLUDED.resolved_at),
                updated_at = NOW()
            RETURNING *
        """
        record = await self._run(
            "fetchrow",
            query,
            market.market_id,
            market.creator,
            market.starts_at,
            market.expires_at,
            market.collateral_token,
            market.outcome_count,
            market.initial_collateral,
            market.creator_fee_bps,
            market.meta_data_uri,
            market.alpha,
            market.title,
            market.resolution_criteria,
            market.end_date,
            json.dumps(market.outcomes) if market.outcomes is not None else None,
            market.total_volume,
            market.trade_count,
            market.resolved,
            market.resolved_at,
        )
        return self._record_to_model(record)

    async def update(
        self, market_id: int, fields: Mapping[str, Any]
    ) -> Optional[MarketRecord]:
        """
        Update selected columns in place.

        Raises:
            ValueError: If a column outside UPDATABLE_COLUMNS is requested
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable: {sorted(unknown)}")
        if not fields:
            return await self.get_by_market_id(market_id)

        assignments = []
        args: list[Any] = [market_id]
        for column, value in fields.items():
            args.append(json.dumps(value) if column == "outcomes" and value is not None else value)
            cast = "::jsonb" if column == "outcomes" else ""
            assignments.append(f"{column} = ${len(args)}{cast}")

        query = f"""
            UPDATE markets
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE market_id = $1
            RETURNING *
        """
        record = await self._run("fetchrow", query, *args)
        return self._record_to_model(record)

    async def select_needing_evaluation(self, limit: int = 1) -> list[MarketRecord]:
        """
        Markets that still need an AI evaluation or have no title yet.

        Ordered on purpose by pending flag first, then oldest market_id,
        rather than by market_id alone. An evaluated market whose title
        never arrives keeps matching the filter, and under plain key order
        it would be picked every cycle ahead of newer pending markets.
        """
        query = """
            SELECT * FROM markets
            WHERE needs_ai_evaluation = TRUE OR title IS NULL
            ORDER BY needs_ai_evaluation DESC, market_id ASC
            LIMIT $1
        """
        records = await self._run("fetch", query, limit)
        return self._records_to_models(records)

    async def update_evaluation(
        self, evaluation: "MarketEvaluation"
    ) -> Optional[MarketRecord]:
        """Write all AI fields and clear needs_ai_evaluation in one statement."""
        query = """
            UPDATE markets
            SET ai_resolvability = $2,
                ai_clarity = $3,
                ai_manipulability_risk = $4,
                ai_explanation = $5,
                ai_evaluated_at = $6,
                needs_ai_evaluation = FALSE,
                updated_at = NOW()
            WHERE market_id = $1
            RETURNING *
        """
        record = await self._run(
            "fetchrow",
            query,
            evaluation.market_id,
            Decimal(evaluation.resolvability),
            Decimal(evaluation.clarity),
            Decimal(evaluation.manipulability_risk),
            evaluation.explanation,
            evaluation.evaluated_at,
        )
        return self._record_to_model(record)

    async def mark_resolved(
        self, market_id: int, resolved_at: datetime
    ) -> Optional[MarketRecord]:
        """Set resolved. Never reverts, and keeps the first resolved_at."""
        query = """
            UPDATE markets
            SET resolved = TRUE,
                resolved_at = COALESCE(resolved_at, $2),
                updated_at = NOW()
            WHERE market_id = $1
            RETURNING *
        """
        record = await self._run("fetchrow", query, market_id, resolved_at)
        return self._record_to_model(record)

    async def update_trade_stats(
        self, market_id: int, total_volume: Decimal, trade_count: int
    ) -> Optional[MarketRecord]:
        """Overwrite volume and trade count with freshly recomputed values."""
        return await self.update(
            market_id,
            {"total_volume": total_volume, "trade_count": trade_count},
        )

    async def get_available(self) -> list[MarketRecord]:
        """Open markets that already carry an AI evaluation, by market_id."""
        query = """
            SELECT * FROM markets
            WHERE resolved = FALSE AND ai_evaluated_at IS NOT NULL
            ORDER BY market_id
        """
        records = await self._run("fetch", query)
        return self._records_to_models(records)

    async def get_all(self) -> list[MarketRecord]:
        """All markets ordered by market_id."""
        records = await self._run("fetch", "SELECT * FROM markets ORDER BY market_id")
        return self._records_to_models(records)
