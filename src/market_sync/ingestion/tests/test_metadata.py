"""
Tests for metadata document fetching and parsing.

Every failure path must return None rather than raise.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from market_sync.errors import ParseError
from market_sync.ingestion.metadata import MetadataFetcher, is_http_uri, parse_metadata


class TestParseMetadata:

    def test_extracts_title_and_rules_description(self):
        meta = parse_metadata({
            "title": "Will ETH close above $5k by 2026?",
            "rules": {"description": "Resolves YES per the official CoinGecko close."},
        })
        assert meta.title == "Will ETH close above $5k by 2026?"
        assert meta.resolution_criteria == "Resolves YES per the official CoinGecko close."

    def test_missing_fields_are_none(self):
        meta = parse_metadata({})
        assert meta.title is None
        assert meta.resolution_criteria is None
        assert meta.as_fields() == {}

    def test_rules_of_wrong_shape_is_ignored(self):
        meta = parse_metadata({"title": "T", "rules": "just a string"})
        assert meta.resolution_criteria is None
        assert meta.as_fields() == {"title": "T"}

    def test_outcomes_as_strings_or_objects(self):
        assert parse_metadata({"outcomes": ["Yes", "No"]}).outcomes == ["Yes", "No"]
        assert parse_metadata({"outcomes": [{"name": "Up"}, {"label": "Down"}]}).outcomes == ["Up", "Down"]

    def test_unlabelled_outcome_discards_list(self):
        assert parse_metadata({"outcomes": ["Yes", {"id": 2}]}).outcomes is None

    def test_end_date_from_unix_and_iso(self):
        assert parse_metadata({"endDate": 1800000000}).end_date == Decimal(1800000000)
        assert parse_metadata({"endDate": "1970-01-01T00:01:40Z"}).end_date == Decimal(100)
        assert parse_metadata({"endDate": "not a date"}).end_date is None

    @pytest.mark.parametrize("raw", [
        1e100,
        "1e100",
        "1e400000000",
        10 ** 78,
        -1,
        "-1800000000",
        float("nan"),
        "Infinity",
        "9" * 200,
    ])
    def test_end_date_out_of_column_range_is_dropped(self, raw):
        meta = parse_metadata({"title": "T", "endDate": raw})
        assert meta.end_date is None
        assert meta.as_fields() == {"title": "T"}

    def test_end_date_at_column_width_is_kept(self):
        widest = 10 ** 78 - 1
        assert parse_metadata({"endDate": widest}).end_date == Decimal(widest)
        assert parse_metadata({"endDate": "1800000000.9"}).end_date == Decimal(1800000000)

    def test_non_object_raises_parse_error(self):
        with pytest.raises(ParseError):
            parse_metadata(["not", "an", "object"])


class TestIsHttpUri:

    @pytest.mark.parametrize("uri,expected", [
        ("https://example.com/m.json", True),
        ("HTTP://example.com/m.json", True),
        ("ipfs://bafy", False),
        ("", False),
        (None, False),
    ])
    def test_schemes(self, uri, expected):
        assert is_http_uri(uri) is expected


class TestMetadataFetcher:

    @pytest.fixture
    def fetcher(self):
        return MetadataFetcher()

    @pytest.mark.asyncio
    async def test_non_http_uri_is_not_fetched(self, fetcher):
        with patch.object(fetcher, "_get_json", new_callable=AsyncMock) as mock_get:
            assert await fetcher.fetch("ipfs://bafy") is None
            assert await fetcher.fetch(None) is None
        mock_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_successful_fetch(self, fetcher):
        doc = {"title": "T", "rules": {"description": "D"}}
        with patch.object(fetcher, "_get_json", new_callable=AsyncMock, return_value=doc):
            meta = await fetcher.fetch("https://example.com/m.json")
        assert meta.title == "T"
        assert meta.resolution_criteria == "D"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        aiohttp.ClientConnectionError("refused"),
        asyncio.TimeoutError(),
        ValueError("bad json"),
    ])
    async def test_failures_yield_none(self, fetcher, error):
        with patch.object(fetcher, "_get_json", new_callable=AsyncMock, side_effect=error):
            assert await fetcher.fetch("https://example.com/m.json") is None

    @pytest.mark.asyncio
    async def test_non_object_document_yields_none(self, fetcher):
        with patch.object(fetcher, "_get_json", new_callable=AsyncMock, return_value="text"):
            assert await fetcher.fetch("https://example.com/m.json") is None

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, fetcher):
        with patch.object(fetcher, "_get_json", new_callable=AsyncMock, side_effect=asyncio.CancelledError()):
            with pytest.raises(asyncio.CancelledError):
                await fetcher.fetch("https://example.com/m.json")
