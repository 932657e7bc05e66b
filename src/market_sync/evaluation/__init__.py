"""
Market evaluation - LLM scoring with a deterministic heuristic fallback.
"""

from .engine import EvaluationEngine
from .heuristic import heuristic_evaluation
from .models import EvaluationOutcome, MarketEvaluation, MarketForEvaluation
from .prompt import build_evaluation_prompt, coerce_score, parse_evaluation_response, score_value
from .providers import (
    AnthropicProvider,
    HTTPScoringProvider,
    OpenAIProvider,
    ScoringProvider,
    build_providers,
)

__all__ = [
    "AnthropicProvider",
    "EvaluationEngine",
    "EvaluationOutcome",
    "HTTPScoringProvider",
    "MarketEvaluation",
    "MarketForEvaluation",
    "OpenAIProvider",
    "ScoringProvider",
    "build_evaluation_prompt",
    "build_providers",
    "coerce_score",
    "score_value",
    "heuristic_evaluation",
    "parse_evaluation_response",
]
