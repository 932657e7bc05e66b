"""
GraphQL client for the market event indexer.

Thin typed façade over the indexer's HTTP endpoint. Each query is a single
POST; there is no retry or backoff here, callers decide what a failure
costs (the Reconciler skips the key, the JobQueue retries the pass).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

import aiohttp

from market_sync.errors import ParseError, TransportError

from . import queries
from .models import BuyEvent, CreationEvent, ResolutionEvent, SellEvent, TradeActivity

logger = logging.getLogger(__name__)

E = TypeVar("E")


class IndexerAPIError(TransportError):
    """HTTP or GraphQL-level failure from the indexer."""
    pass


def _parse_rows(rows: list[dict], parser: Callable[[dict], E], kind: str) -> list[E]:
    """Parse event rows, logging and skipping any that are malformed."""
    events: list[E] = []
    for row in rows or []:
        if not isinstance(row, dict):
            logger.warning(f"Skipping non-object {kind} event row: {row!r}")
            continue
        try:
            events.append(parser(row))
        except ParseError as e:
            logger.warning(f"Skipping malformed {kind} event {row.get('id')}: {e}")
    return events


class IndexerClient:
    """
    Async client for the XO market indexer.

    Usage:
        async with IndexerClient("http://localhost:8080/v1/graphql") as client:
            events = await client.query_creation_events(limit=100, offset=0)
            activity = await client.query_trade_events(market_id=7)
    """

    def __init__(
        self,
        url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the client.

        Args:
            url: GraphQL endpoint of the indexer
            session: Optional aiohttp session (created if not provided)
            timeout: Request timeout in seconds
        """
        self._url = url
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self) -> "IndexerClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def _query(self, document: str, variables: Optional[dict[str, Any]] = None) -> dict:
        """
        POST a GraphQL document and return its `data` object.

        Raises:
            IndexerAPIError: On transport failure, non-2xx status, or GraphQL errors
            asyncio.CancelledError: When task is cancelled (re-raised)
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        payload = {"query": document, "variables": variables or {}}
        try:
            async with self._session.post(self._url, json=payload) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise IndexerAPIError(
                        f"Indexer error: {response.status} - {text[:200]}",
                        status_code=response.status,
                    )
                body = await response.json(content_type=None)
        except asyncio.CancelledError:
            raise
        except IndexerAPIError:
            raise
        except asyncio.TimeoutError as e:
            raise IndexerAPIError("Indexer request timed out") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise IndexerAPIError(f"Indexer request failed: {e}") from e

        if not isinstance(body, dict):
            raise IndexerAPIError("Indexer returned a non-object response")
        if body.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in body["errors"])
            raise IndexerAPIError(f"GraphQL errors: {messages}")
        return body.get("data") or {}

    # =========================================================================
    # Creation events
    # =========================================================================

    async def query_creation_events(
        self, limit: int = 100, offset: int = 0
    ) -> list[CreationEvent]:
        """One page of MarketCreated events ordered by marketId ascending."""
        data = await self._query(
            queries.GET_MARKET_CREATED_EVENTS,
            {"limit": limit, "offset": offset, "orderBy": [{"marketId": "asc"}]},
        )
        return _parse_rows(
            data.get("XOMarketContract_MarketCreated", []),
            CreationEvent.from_graphql,
            "creation",
        )

    async def query_creation_event(self, market_id: int) -> Optional[CreationEvent]:
        """The MarketCreated event for one market, or None if not indexed."""
        data = await self._query(
            queries.GET_MARKET_CREATED_EVENT_BY_ID,
            {"marketId": str(market_id)},
        )
        events = _parse_rows(
            data.get("XOMarketContract_MarketCreated", []),
            CreationEvent.from_graphql,
            "creation",
        )
        return events[0] if events else None

    async def get_all_creation_events(
        self, page_size: int = 100, max_pages: int = 100
    ) -> list[CreationEvent]:
        """
        Page through creation events until a short page or max_pages.

        Rows dropped as malformed do not shorten a page: the raw row count
        decides whether another page exists.
        """
        events: list[CreationEvent] = []
        for page in range(max_pages):
            data = await self._query(
                queries.GET_MARKET_CREATED_EVENTS,
                {
                    "limit": page_size,
                    "offset": page * page_size,
                    "orderBy": [{"marketId": "asc"}],
                },
            )
            rows = data.get("XOMarketContract_MarketCreated", [])
            events.extend(_parse_rows(rows, CreationEvent.from_graphql, "creation"))
            if len(rows) < page_size:
                break
        else:
            logger.warning(f"Stopped paging creation events after {max_pages} pages")

        logger.debug(f"Fetched {len(events)} creation events")
        return events

    # =========================================================================
    # Resolution and trade events
    # =========================================================================

    async def query_resolution_events(
        self, limit: int = 1000, offset: int = 0
    ) -> list[ResolutionEvent]:
        """MarketResolved events, newest market first."""
        data = await self._query(
            queries.GET_MARKET_RESOLVED_EVENTS,
            {"limit": limit, "offset": offset},
        )
        return _parse_rows(
            data.get("XOMarketContract_MarketResolved", []),
            ResolutionEvent.from_graphql,
            "resolution",
        )

    async def query_trade_events(
        self, market_id: int, limit: int = 1000
    ) -> TradeActivity:
        """Buy and sell events for a market."""
        data = await self._query(
            queries.GET_TRADING_ACTIVITY,
            {"marketId": str(market_id), "limit": limit},
        )
        bought = _parse_rows(data.get("bought", []), BuyEvent.from_graphql, "buy")
        sold = _parse_rows(data.get("sold", []), SellEvent.from_graphql, "sell")
        return TradeActivity(market_id=market_id, bought=tuple(bought), sold=tuple(sold))
