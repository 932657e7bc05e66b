"""
Data models for market evaluation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from market_sync.storage.models import MarketRecord


@dataclass(frozen=True)
class MarketForEvaluation:
    """The text a scorer sees for one market."""

    market_id: int
    title: str = ""
    resolution_criteria: str = ""
    outcomes: tuple[str, ...] = ()
    outcome_count: int = 0

    @classmethod
    def from_record(cls, record: "MarketRecord") -> "MarketForEvaluation":
        return cls(
            market_id=record.market_id,
            title=record.title or "",
            resolution_criteria=record.resolution_criteria or "",
            outcomes=tuple(record.outcomes or ()),
            outcome_count=record.outcome_count,
        )

    @property
    def effective_outcome_count(self) -> int:
        """Outcome labels if known, otherwise the on-chain outcome count."""
        return len(self.outcomes) if self.outcomes else self.outcome_count


@dataclass(frozen=True)
class MarketEvaluation:
    """
    Scores for one market.

    All three scores are integers in [0, 10]. manipulability_risk follows
    the scoring convention where 10 means low risk.
    """

    market_id: int
    resolvability: int
    clarity: int
    manipulability_risk: int
    explanation: str
    source: str = "heuristic"
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "market_id": self.market_id,
            "resolvability": self.resolvability,
            "clarity": self.clarity,
            "manipulability_risk": self.manipulability_risk,
            "explanation": self.explanation,
            "source": self.source,
            "evaluated_at": self.evaluated_at.isoformat(),
        }


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of one evaluation cycle."""

    market_id: int
    evaluation: MarketEvaluation
    persisted: bool = True
    metadata_recovered: bool = False
    error: Optional[str] = None

    @property
    def source(self) -> str:
        return self.evaluation.source

    def to_dict(self) -> dict[str, Any]:
        return {
            "market_id": self.market_id,
            "source": self.source,
            "persisted": self.persisted,
            "metadata_recovered": self.metadata_recovered,
            "error": self.error,
            "evaluation": self.evaluation.to_dict(),
        }
