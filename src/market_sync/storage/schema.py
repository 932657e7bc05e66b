"""
Schema DDL for the market record store.

ensure_schema() is idempotent and runs at service startup. Column names are
the on-disk contract shared with the read API and migration tooling.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from market_sync.storage.database import Database

logger = logging.getLogger(__name__)

# uint256 fits in 78 decimal digits
MARKETS_DDL = """
    CREATE TABLE IF NOT EXISTS markets (
        id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
        market_id INTEGER NOT NULL UNIQUE,

        creator VARCHAR(42) NOT NULL,
        starts_at NUMERIC(78, 0) NOT NULL,
        expires_at NUMERIC(78, 0) NOT NULL,
        collateral_token VARCHAR(42) NOT NULL,
        outcome_count INTEGER NOT NULL,
        initial_collateral NUMERIC(78, 0) NOT NULL,
        creator_fee_bps INTEGER NOT NULL,
        meta_data_uri TEXT,
        alpha NUMERIC(78, 0) NOT NULL,

        title TEXT,
        resolution_criteria TEXT,
        end_date NUMERIC(78, 0),
        outcomes JSONB,

        total_volume NUMERIC(78, 0) NOT NULL DEFAULT 0,
        trade_count INTEGER NOT NULL DEFAULT 0,

        resolved BOOLEAN NOT NULL DEFAULT FALSE,
        resolved_at TIMESTAMPTZ,

        ai_resolvability NUMERIC(3, 1),
        ai_clarity NUMERIC(3, 1),
        ai_manipulability_risk NUMERIC(3, 1),
        ai_explanation TEXT,
        ai_evaluated_at TIMESTAMPTZ,
        needs_ai_evaluation BOOLEAN NOT NULL DEFAULT TRUE,

        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

MARKETS_EVALUATION_INDEX_DDL = """
    CREATE INDEX IF NOT EXISTS idx_markets_needs_ai_evaluation
    ON markets (needs_ai_evaluation, market_id)
"""

JOB_RUNS_DDL = """
    CREATE TABLE IF NOT EXISTS pipeline_job_runs (
        id SERIAL PRIMARY KEY,
        job_id TEXT NOT NULL,
        queue TEXT NOT NULL,
        job_name TEXT NOT NULL,
        status TEXT NOT NULL,
        attempts INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        result_summary JSONB,
        created_at TIMESTAMPTZ,
        started_at TIMESTAMPTZ,
        finished_at TIMESTAMPTZ
    )
"""

SCHEMA_STATEMENTS = (MARKETS_DDL, MARKETS_EVALUATION_INDEX_DDL, JOB_RUNS_DDL)


async def ensure_schema(db: "Database") -> None:
    """Create the pipeline tables if they do not exist."""
    for statement in SCHEMA_STATEMENTS:
        await db.execute(statement)
    logger.info("Schema verified (markets, pipeline_job_runs)")
