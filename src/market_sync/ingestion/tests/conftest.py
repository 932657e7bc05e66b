"""
Test fixtures for the ingestion layer.

All indexer and metadata HTTP calls are mocked.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


def creation_row(market_id: int = 7, **overrides) -> dict:
    """A MarketCreated row as the indexer returns it (BigInts as strings)."""
    row = {
        "id": f"evt-{market_id}",
        "marketId": str(market_id),
        "creator": "0xAbCdEf0000000000000000000000000000000001",
        "startsAt": "1700000000",
        "expiresAt": "1800000000",
        "collateralToken": "0xCoLLaTeRaL00000000000000000000000000000002",
        "outcomeCount": "2",
        "initialCollateral": "1000000000000000000000",
        "creatorFeeBps": "100",
        "metaDataURI": "",
        "alpha": "30000000000000000",
    }
    row.update(overrides)
    return row


@pytest.fixture
def make_creation_row():
    return creation_row


class FakeResponse:
    """Minimal stand-in for an aiohttp response context manager."""

    def __init__(self, status: int = 200, body=None, text: str = ""):
        self.status = status
        self._body = body
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type=None):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    async def text(self):
        return self._text


@pytest.fixture
def fake_session():
    """aiohttp-like session whose post() returns a configurable FakeResponse."""
    session = MagicMock()
    session.post = MagicMock(return_value=FakeResponse(200, {"data": {}}))
    session.close = AsyncMock()
    return session


@pytest.fixture
def make_response():
    return FakeResponse
