"""
Deterministic rule-based scorer used when no provider produces a result.

Same (title, criteria, outcomes) in, same scores and explanation out.
"""
from __future__ import annotations

import re
from typing import Optional

from .models import MarketEvaluation, MarketForEvaluation
from .prompt import DEFAULT_SCORE, SCORE_MAX, SCORE_MIN

SOURCE = "heuristic"

_YEAR = re.compile(r"\b20\d{2}\b")


def _contains_any(text: str, needles: tuple[str, ...]) -> bool:
    return any(needle in text for needle in needles)


def _clamp(score: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, score))


def _band(score: int, high: str, moderate: Optional[str], low: str) -> str:
    if score >= 7:
        return high
    if moderate is not None and score >= 4:
        return moderate
    return low


def heuristic_scores(market: MarketForEvaluation) -> tuple[int, int, int]:
    """(resolvability, clarity, manipulability_risk) from substring rules."""
    title = market.title.lower()
    criteria = market.resolution_criteria.lower()

    resolvability = DEFAULT_SCORE
    if _contains_any(criteria, ("public", "official", "announced")):
        resolvability += 2
    if _contains_any(criteria, ("verified", "confirm")):
        resolvability += 1
    if len(criteria) > 100:
        resolvability += 1

    clarity = DEFAULT_SCORE
    if market.effective_outcome_count == 2:
        clarity += 1
    if "by" in criteria and _YEAR.search(criteria):
        clarity += 1
    if "will" in title or "?" in title:
        clarity += 1

    # Higher is lower risk
    manipulability = DEFAULT_SCORE
    if _contains_any(title, ("celebrity", "social", "twitter", "x.com")):
        manipulability -= 1
    if _contains_any(criteria, ("official", "government")):
        manipulability += 2

    return _clamp(resolvability), _clamp(clarity), _clamp(manipulability)


def heuristic_explanation(resolvability: int, clarity: int, manipulability: int) -> str:
    return (
        f"Heuristic evaluation: Market appears "
        f"{_band(resolvability, 'highly', 'moderately', 'poorly')} resolvable with "
        f"{_band(clarity, 'clear', None, 'somewhat ambiguous')} criteria. "
        f"{_band(manipulability, 'Low', 'Moderate', 'High')} manipulation risk detected."
    )


def heuristic_evaluation(market: MarketForEvaluation) -> MarketEvaluation:
    resolvability, clarity, manipulability = heuristic_scores(market)
    return MarketEvaluation(
        market_id=market.market_id,
        resolvability=resolvability,
        clarity=clarity,
        manipulability_risk=manipulability,
        explanation=heuristic_explanation(resolvability, clarity, manipulability),
        source=SOURCE,
    )
