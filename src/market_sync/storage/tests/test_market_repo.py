"""
Market repository tests.

The merge rules live in SQL, so these tests pin the statement shape and
the parameters handed to the driver.
"""
import json
from datetime import datetime, timezone
from decimal import Decimal

import asyncpg
import pytest

from market_sync.errors import StoreError
from market_sync.evaluation.models import MarketEvaluation
from market_sync.storage.repositories import UPDATABLE_COLUMNS, MarketRepository


@pytest.mark.asyncio
class TestReads:

    async def test_get_by_market_id_converts_row(self, market_repo, mock_db, market_row):
        mock_db.fetchrow.return_value = market_row(7, total_volume=Decimal("180"))

        record = await market_repo.get_by_market_id(7)

        assert record.market_id == 7
        assert record.total_volume == Decimal("180")
        assert mock_db.fetchrow.call_args[0][1] == 7

    async def test_get_by_market_id_missing(self, market_repo):
        assert await market_repo.get_by_market_id(99) is None

    async def test_outcomes_json_string_is_decoded(self, market_repo, mock_db, market_row):
        mock_db.fetchrow.return_value = market_row(outcomes='["Yes", "No"]')

        record = await market_repo.get_by_market_id(7)

        assert record.outcomes == ["Yes", "No"]

    async def test_get_all_orders_by_market_id(self, market_repo, mock_db, market_row):
        mock_db.fetch.return_value = [market_row(1), market_row(2)]

        records = await market_repo.get_all()

        assert [r.market_id for r in records] == [1, 2]
        assert "ORDER BY market_id" in mock_db.fetch.call_args[0][0]

    async def test_get_available_filters_open_evaluated(self, market_repo, mock_db, market_row):
        mock_db.fetch.return_value = [market_row(4)]

        records = await market_repo.get_available()

        query = mock_db.fetch.call_args[0][0]
        assert "resolved = FALSE" in query
        assert "ai_evaluated_at IS NOT NULL" in query
        assert "ORDER BY market_id" in query
        assert [r.market_id for r in records] == [4]

    async def test_count(self, market_repo, mock_db):
        mock_db.fetchval.return_value = 3
        assert await market_repo.count() == 3


@pytest.mark.asyncio
class TestUpsert:

    async def test_merge_rules_in_statement(self, market_repo, mock_db, market_record, market_row):
        mock_db.fetchrow.return_value = market_row()

        await market_repo.upsert(market_record)

        query = mock_db.fetchrow.call_args[0][0]
        assert "ON CONFLICT (market_id) DO UPDATE" in query
        assert "title = COALESCE(EXCLUDED.title, markets.title)" in query
        assert "resolved = markets.resolved OR EXCLUDED.resolved" in query
        assert "resolved_at = COALESCE(markets.resolved_at, EXCLUDED.resolved_at)" in query
        assert "total_volume = EXCLUDED.total_volume" in query
        # AI columns are owned by update_evaluation
        assert "ai_" not in query
        assert "needs_ai_evaluation" not in query

    async def test_parameters_keep_decimals_and_encode_outcomes(
        self, market_repo, mock_db, market_record, market_row
    ):
        mock_db.fetchrow.return_value = market_row()
        market = market_record.model_copy(update={"outcomes": ["Yes", "No"]})

        await market_repo.upsert(market)

        args = mock_db.fetchrow.call_args[0][1:]
        assert args[0] == 7
        assert args[6] == Decimal("1000000000000000000")
        assert json.loads(args[13]) == ["Yes", "No"]

    async def test_null_outcomes_stay_null(self, market_repo, mock_db, market_record, market_row):
        mock_db.fetchrow.return_value = market_row()

        await market_repo.upsert(market_record)

        assert mock_db.fetchrow.call_args[0][14] is None

    async def test_driver_error_becomes_store_error(self, market_repo, mock_db, market_record):
        mock_db.fetchrow.side_effect = asyncpg.InterfaceError("boom")

        with pytest.raises(StoreError, match="markets"):
            await market_repo.upsert(market_record)


@pytest.mark.asyncio
class TestUpdate:

    async def test_builds_assignments(self, market_repo, mock_db, market_row):
        mock_db.fetchrow.return_value = market_row(title="Will it rain?")

        record = await market_repo.update(7, {"title": "Will it rain?", "outcomes": ["Yes", "No"]})

        query, *args = mock_db.fetchrow.call_args[0]
        assert "title = $2" in query
        assert "outcomes = $3::jsonb" in query
        assert args == [7, "Will it rain?", '["Yes", "No"]']
        assert record.title == "Will it rain?"

    async def test_rejects_unknown_columns(self, market_repo, mock_db):
        with pytest.raises(ValueError, match="needs_ai_evaluation"):
            await market_repo.update(7, {"needs_ai_evaluation": False})
        mock_db.fetchrow.assert_not_called()

    async def test_empty_update_reads_current_row(self, market_repo, mock_db, market_row):
        mock_db.fetchrow.return_value = market_row()

        record = await market_repo.update(7, {})

        assert record.market_id == 7
        assert "SELECT" in mock_db.fetchrow.call_args[0][0]

    async def test_update_trade_stats(self, market_repo, mock_db):
        await market_repo.update_trade_stats(7, Decimal("180"), 3)

        query, *args = mock_db.fetchrow.call_args[0]
        assert "total_volume = $2" in query
        assert "trade_count = $3" in query
        assert args == [7, Decimal("180"), 3]

    def test_identity_columns_not_updatable(self):
        assert "market_id" not in UPDATABLE_COLUMNS
        assert "ai_clarity" not in UPDATABLE_COLUMNS


@pytest.mark.asyncio
class TestEvaluationWrites:

    async def test_selection_prefers_pending_then_oldest(self, market_repo, mock_db, market_row):
        mock_db.fetch.return_value = [market_row(3)]

        records = await market_repo.select_needing_evaluation(limit=1)

        query, limit = mock_db.fetch.call_args[0]
        assert "needs_ai_evaluation = TRUE OR title IS NULL" in query
        assert "ORDER BY needs_ai_evaluation DESC, market_id ASC" in query
        assert limit == 1
        assert records[0].market_id == 3

    async def test_update_evaluation_clears_flag(self, market_repo, mock_db):
        evaluation = MarketEvaluation(
            market_id=7,
            resolvability=8,
            clarity=6,
            manipulability_risk=4,
            explanation="Fine.",
        )

        await market_repo.update_evaluation(evaluation)

        query, *args = mock_db.fetchrow.call_args[0]
        assert "needs_ai_evaluation = FALSE" in query
        assert args[:5] == [7, Decimal(8), Decimal(6), Decimal(4), "Fine."]
        assert args[5] == evaluation.evaluated_at

    async def test_mark_resolved_keeps_first_timestamp(self, market_repo, mock_db):
        resolved_at = datetime(2026, 1, 1, tzinfo=timezone.utc)

        await market_repo.mark_resolved(7, resolved_at)

        query, *args = mock_db.fetchrow.call_args[0]
        assert "resolved = TRUE" in query
        assert "COALESCE(resolved_at, $2)" in query
        assert args == [7, resolved_at]


def test_repository_table():
    assert MarketRepository.table_name == "markets"
