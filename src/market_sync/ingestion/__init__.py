"""
Ingestion layer - indexer events, metadata documents and batched fetching.
"""

from .batch import BatchFetcher, BatchResult
from .client import IndexerAPIError, IndexerClient
from .metadata import MetadataFetcher, is_http_uri, parse_metadata
from .models import (
    BuyEvent,
    CreationEvent,
    MarketMetadata,
    ResolutionEvent,
    SellEvent,
    TradeActivity,
)

__all__ = [
    "BatchFetcher",
    "BatchResult",
    "BuyEvent",
    "CreationEvent",
    "IndexerAPIError",
    "IndexerClient",
    "MarketMetadata",
    "MetadataFetcher",
    "ResolutionEvent",
    "SellEvent",
    "TradeActivity",
    "is_http_uri",
    "parse_metadata",
]
