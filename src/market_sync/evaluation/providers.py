"""
Scoring providers - external LLM APIs tried in order.

Each provider turns a prompt into a MarketEvaluation or None. None means
"try the next one": transport errors, non-2xx responses, empty replies and
replies with no score object are all logged here and never raised.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, List, Optional, Protocol

import httpx

from .models import MarketEvaluation, MarketForEvaluation
from .prompt import SYSTEM_PROMPT, build_evaluation_prompt, parse_evaluation_response

if TYPE_CHECKING:
    from market_sync.config import PipelineConfig

logger = logging.getLogger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class ScoringProvider(Protocol):
    name: str

    async def evaluate(self, market: MarketForEvaluation) -> Optional[MarketEvaluation]:
        ...


class HTTPScoringProvider(ABC):
    """
    Base for providers reached with a single JSON POST.

    Subclasses supply the URL, headers, request body and the path to the
    reply text.
    """

    name = "http"
    url = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        temperature: float = 0.1,
        max_tokens: int = 500,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self._timeout = timeout
        self._temperature = temperature
        self._max_tokens = max_tokens

    @abstractmethod
    def _headers(self) -> dict[str, str]:
        ...

    @abstractmethod
    def _body(self, prompt: str) -> dict[str, Any]:
        ...

    @abstractmethod
    def _extract_text(self, data: Any) -> Optional[str]:
        ...

    async def _post(self, body: dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(self.url, headers=self._headers(), json=body)
            resp.raise_for_status()
            return resp.json()

    async def evaluate(self, market: MarketForEvaluation) -> Optional[MarketEvaluation]:
        prompt = build_evaluation_prompt(market)
        try:
            data = await self._post(self._body(prompt))
        except asyncio.CancelledError:
            raise
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"{self.name} API error {e.response.status_code} for market {market.market_id}"
            )
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"{self.name} API call failed for market {market.market_id}: {e}")
            return None

        try:
            text = self._extract_text(data)
        except (KeyError, IndexError, TypeError, AttributeError):
            text = None
        if not text:
            logger.warning(f"No content in {self.name} response for market {market.market_id}")
            return None

        return parse_evaluation_response(text, market.market_id, self.name)


class OpenAIProvider(HTTPScoringProvider):
    """OpenAI Chat Completions."""

    name = "openai"
    url = OPENAI_API_URL

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

    def _extract_text(self, data: Any) -> Optional[str]:
        return data["choices"][0]["message"]["content"]


class AnthropicProvider(HTTPScoringProvider):
    """Anthropic Messages API."""

    name = "anthropic"
    url = ANTHROPIC_API_URL

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def _body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self._max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._temperature,
        }

    def _extract_text(self, data: Any) -> Optional[str]:
        return data["content"][0]["text"]


def build_providers(config: "PipelineConfig") -> List[ScoringProvider]:
    """Providers with credentials, in priority order (OpenAI, then Anthropic)."""
    providers: List[ScoringProvider] = []
    if config.openai_api_key:
        providers.append(OpenAIProvider(
            config.openai_api_key, config.openai_model, timeout=config.scoring_timeout_seconds
        ))
    if config.anthropic_api_key:
        providers.append(AnthropicProvider(
            config.anthropic_api_key, config.anthropic_model, timeout=config.scoring_timeout_seconds
        ))
    if not providers:
        logger.warning("No scoring API keys configured, evaluations will use the heuristic")
    return providers
