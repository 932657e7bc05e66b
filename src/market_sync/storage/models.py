"""
Pydantic models matching the PostgreSQL schema in storage/schema.py.

IMPORTANT: On-chain integer amounts (timestamps, collateral, alpha, volume)
are Decimal, never float. They are uint256 values that exceed both float
precision and the native integer range of most consumers.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# MARKETS
# =============================================================================


class MarketRecord(BaseModel):
    """One row of the markets table, keyed by market_id."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[int] = None
    market_id: int

    # Written from the MarketCreated event
    creator: str
    starts_at: Decimal
    expires_at: Decimal
    collateral_token: str
    outcome_count: int
    initial_collateral: Decimal
    creator_fee_bps: int
    meta_data_uri: Optional[str] = None
    alpha: Decimal

    # Enrichment from the metadata document
    title: Optional[str] = None
    resolution_criteria: Optional[str] = None
    end_date: Optional[Decimal] = None
    outcomes: Optional[list[str]] = None

    # Aggregates recomputed from trade events
    total_volume: Decimal = Decimal("0")
    trade_count: int = 0

    # Resolution (monotonic)
    resolved: bool = False
    resolved_at: Optional[datetime] = None

    # AI evaluation, scores in [0, 10]
    ai_resolvability: Optional[Decimal] = None
    ai_clarity: Optional[Decimal] = None
    ai_manipulability_risk: Optional[Decimal] = None
    ai_explanation: Optional[str] = None
    ai_evaluated_at: Optional[datetime] = None
    needs_ai_evaluation: bool = True

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_http_metadata(self) -> bool:
        """Whether the metadata URI can be fetched over HTTP(S)."""
        uri = (self.meta_data_uri or "").lower()
        return uri.startswith("http://") or uri.startswith("https://")


# =============================================================================
# JOB HISTORY
# =============================================================================


class JobRun(BaseModel):
    """Outcome of one job, as mirrored into pipeline_job_runs."""

    id: Optional[int] = None
    job_id: str
    queue: str
    job_name: str
    status: str
    attempts: int = 0
    error_message: Optional[str] = None
    result_summary: Optional[dict] = Field(default=None)
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
