"""
Off-chain metadata documents referenced by a market's metaDataURI.

Failures here never abort a market's creation: anything that goes wrong
yields None and the enrichment fields stay null until a later retry.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, Optional

import aiohttp

from market_sync.errors import ParseError

from .models import MarketMetadata

logger = logging.getLogger(__name__)

OUTCOME_LABEL_KEYS = ("name", "title", "label")
END_DATE_KEYS = ("endDate", "end_date", "expiresAt", "resolutionDate")

# markets.end_date is NUMERIC(78,0)
MAX_END_DATE_DIGITS = 78
MAX_END_DATE_TEXT = 128


def is_http_uri(uri: Optional[str]) -> bool:
    return bool(uri) and uri.lower().startswith(("http://", "https://"))


def _clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _bounded_seconds(value: Decimal) -> Optional[Decimal]:
    """Truncate to whole seconds; None if it cannot fit end_date's column."""
    if not value.is_finite() or value < 0:
        return None
    # Checked before integral conversion so a huge exponent never expands
    if value and value.adjusted() >= MAX_END_DATE_DIGITS:
        return None
    return value.to_integral_value(rounding=ROUND_DOWN)


def _parse_end_date(value: Any) -> Optional[Decimal]:
    """Unix seconds from a number, numeric string or ISO-8601 string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _bounded_seconds(Decimal(value))
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if len(text) > MAX_END_DATE_TEXT:
            return None
        try:
            return _bounded_seconds(Decimal(text))
        except (InvalidOperation, ValueError):
            pass
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return _bounded_seconds(Decimal(int(parsed.timestamp())))
    return None


def _parse_outcomes(value: Any) -> Optional[list[str]]:
    if not isinstance(value, list):
        return None
    labels: list[str] = []
    for item in value:
        if isinstance(item, str):
            label = _clean_text(item)
        elif isinstance(item, dict):
            label = next(
                (_clean_text(item.get(k)) for k in OUTCOME_LABEL_KEYS if _clean_text(item.get(k))),
                None,
            )
        else:
            label = None
        if label is None:
            return None
        labels.append(label)
    return labels or None


def parse_metadata(doc: Any) -> MarketMetadata:
    """
    Extract enrichment fields from a metadata document.

    The document is expected to be a JSON object with `title` and
    `rules.description`. End date and outcome labels are optional. Fields
    of the wrong shape are treated as absent.

    Raises:
        ParseError: If the document is not a JSON object
    """
    if not isinstance(doc, dict):
        raise ParseError(f"metadata document is {type(doc).__name__}, expected object")

    rules = doc.get("rules")
    criteria = _clean_text(rules.get("description")) if isinstance(rules, dict) else None

    end_date = None
    for key in END_DATE_KEYS:
        end_date = _parse_end_date(doc.get(key))
        if end_date is not None:
            break

    return MarketMetadata(
        title=_clean_text(doc.get("title")),
        resolution_criteria=criteria,
        end_date=end_date,
        outcomes=_parse_outcomes(doc.get("outcomes")),
    )


class MetadataFetcher:
    """Fetches and parses metadata documents over HTTP(S)."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ):
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def close(self) -> None:
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def _get_json(self, uri: str) -> Any:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        async with self._session.get(uri) as response:
            if response.status >= 300:
                raise aiohttp.ClientResponseError(
                    response.request_info,
                    response.history,
                    status=response.status,
                    message=f"HTTP {response.status}",
                )
            return await response.json(content_type=None)

    async def fetch(self, uri: Optional[str]) -> Optional[MarketMetadata]:
        """
        Fetch and parse the document at `uri`.

        Returns None for non-HTTP URIs, transport failures, non-2xx
        responses and malformed documents.
        """
        if not is_http_uri(uri):
            return None
        try:
            doc = await self._get_json(uri)
            return parse_metadata(doc)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"Metadata fetch timed out for {uri}")
        except aiohttp.ClientError as e:
            logger.warning(f"Failed to fetch metadata from {uri}: {e}")
        except (ValueError, ParseError) as e:
            logger.warning(f"Malformed metadata document at {uri}: {e}")
        return None
