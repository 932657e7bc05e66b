"""
Evaluation prompt and provider response parsing.

Providers answer in free text that should contain one JSON object. The
first-brace-to-last-brace span is parsed; scores are coerced to integers
in [0, 10] with 5 as the neutral default for anything missing or
non-numeric.
"""
from __future__ import annotations

import json
import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from market_sync.errors import ValidationError

from .models import MarketEvaluation, MarketForEvaluation

logger = logging.getLogger(__name__)

SCORE_MIN = 0
SCORE_MAX = 10
DEFAULT_SCORE = 5
DEFAULT_EXPLANATION = "No explanation provided"

SYSTEM_PROMPT = (
    "You are an expert at evaluating prediction markets. "
    "Always respond with valid JSON only, no additional text."
)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def build_evaluation_prompt(market: MarketForEvaluation) -> str:
    return f"""
Evaluate this prediction market on three metrics (0-10 scale):

**Market Details:**
Title: "{market.title}"
Resolution Criteria: "{market.resolution_criteria}"

**Evaluation Metrics:**
1. **Resolvability (0-10)**: Can this market be resolved using clear, public, objective data?
2. **Clarity (0-10)**: Is the phrasing unambiguous and specific?
3. **Manipulability Risk (0-10)**: Is the outcome at risk of being influenced by insiders or vague sources?

**Instructions:**
- Score each metric from 0 (worst) to 10 (best)
- Higher manipulability risk = lower score (0 = high risk, 10 = low risk)
- Provide a 1-3 sentence explanation of your overall assessment

**Response Format (JSON only):**
{{
  "resolvability": 8,
  "clarity": 7,
  "manipulabilityRisk": 6,
  "explanation": "Brief explanation of the scores in 1-3 sentences."
}}"""


def extract_score_payload(text: Optional[str]) -> Optional[dict[str, Any]]:
    """The JSON object embedded in a provider's reply, or None."""
    if not text:
        return None
    match = _JSON_OBJECT.search(text)
    if match is None:
        return None
    try:
        payload = json.loads(match.group(0))
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def score_value(value: Any) -> Decimal:
    """
    Parse a raw provider score.

    Raises:
        ValidationError: If the value is missing, boolean or non-numeric
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Not a score: {value!r}")
    text = str(value).strip()
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Not a score: {value!r}")
    if number.is_nan():
        raise ValidationError(f"Not a score: {value!r}")
    return number


def coerce_score(value: Any) -> int:
    """
    Coerce a provider score to an integer in [0, 10].

    Numbers and numeric strings are rounded half-up and clamped. Missing,
    boolean, blank and non-numeric values become DEFAULT_SCORE.
    """
    try:
        number = score_value(value)
    except ValidationError as e:
        logger.debug(f"{e}, using {DEFAULT_SCORE}")
        return DEFAULT_SCORE
    if number > SCORE_MAX:
        return SCORE_MAX
    if number < SCORE_MIN:
        return SCORE_MIN
    return int(number.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_evaluation_response(
    text: Optional[str], market_id: int, source: str
) -> Optional[MarketEvaluation]:
    """Build an evaluation from a provider reply, or None if it has no score object."""
    payload = extract_score_payload(text)
    if payload is None:
        logger.warning(f"No JSON object in {source} response for market {market_id}")
        return None

    explanation = payload.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        explanation = DEFAULT_EXPLANATION

    return MarketEvaluation(
        market_id=market_id,
        resolvability=coerce_score(payload.get("resolvability")),
        clarity=coerce_score(payload.get("clarity")),
        manipulability_risk=coerce_score(payload.get("manipulabilityRisk")),
        explanation=explanation.strip(),
        source=source,
    )
