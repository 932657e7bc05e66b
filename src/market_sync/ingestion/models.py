"""
Data models for the ingestion layer.

These models represent events returned by the indexer:
- MarketCreated (discovery)
- MarketResolved (resolution state)
- OutcomeTokensBought / OutcomeTokensSold (volume and trade count)
- The off-chain metadata document referenced by metaDataURI

All chain integers arrive as decimal strings and are kept as Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from market_sync.errors import ParseError


def _chain_int(data: Mapping[str, Any], key: str) -> Decimal:
    """Parse a BigInt-as-string field into an integral Decimal."""
    raw = data.get(key)
    if raw is None:
        raise ParseError(f"missing field {key!r}")
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ParseError(f"field {key!r} is not numeric: {raw!r}")
    if not value.is_finite() or value != value.to_integral_value():
        raise ParseError(f"field {key!r} is not an integer: {raw!r}")
    return value


def _text(data: Mapping[str, Any], key: str) -> str:
    raw = data.get(key)
    if raw is None:
        raise ParseError(f"missing field {key!r}")
    return str(raw)


def _optional_chain_int(data: Mapping[str, Any], key: str) -> Optional[Decimal]:
    return _chain_int(data, key) if data.get(key) is not None else None


def _optional_index(data: Mapping[str, Any], key: str) -> Optional[int]:
    value = _optional_chain_int(data, key)
    if value is None:
        return None
    if value < 0 or value.adjusted() > 3:
        raise ParseError(f"field {key!r} is not an outcome index: {data[key]!r}")
    return int(value)


def _optional_address(data: Mapping[str, Any], key: str) -> Optional[str]:
    raw = data.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ParseError(f"field {key!r} is not an address: {raw!r}")
    return raw.lower() or None


@dataclass(frozen=True)
class CreationEvent:
    """
    MarketCreated event from the indexer.

    Attributes:
        market_id: On-chain market identifier (reconciliation key)
        creator: Creator address, lower-cased
        starts_at / expires_at: Unix timestamps as chain integers
        collateral_token: Collateral ERC-20 address, lower-cased
        outcome_count: Number of outcomes
        initial_collateral: Collateral seeded at creation
        creator_fee_bps: Creator fee in basis points
        meta_data_uri: URI of the off-chain metadata document (may be empty)
        alpha: LS-LMSR curve parameter
    """
    market_id: int
    creator: str
    starts_at: Decimal
    expires_at: Decimal
    collateral_token: str
    outcome_count: int
    initial_collateral: Decimal
    creator_fee_bps: int
    meta_data_uri: Optional[str]
    alpha: Decimal
    event_id: Optional[str] = None

    @classmethod
    def from_graphql(cls, data: Mapping[str, Any]) -> "CreationEvent":
        """Parse an XOMarketContract_MarketCreated row. Raises ParseError."""
        return cls(
            market_id=int(_chain_int(data, "marketId")),
            creator=_text(data, "creator").lower(),
            starts_at=_chain_int(data, "startsAt"),
            expires_at=_chain_int(data, "expiresAt"),
            collateral_token=_text(data, "collateralToken").lower(),
            outcome_count=int(_chain_int(data, "outcomeCount")),
            initial_collateral=_chain_int(data, "initialCollateral"),
            creator_fee_bps=int(_chain_int(data, "creatorFeeBps")),
            meta_data_uri=data.get("metaDataURI") or None,
            alpha=_chain_int(data, "alpha"),
            event_id=data.get("id"),
        )


@dataclass(frozen=True)
class ResolutionEvent:
    """MarketResolved event from the indexer."""
    market_id: int
    resolver: Optional[str] = None
    winning_token_id: Optional[Decimal] = None
    redeemable_amount: Optional[Decimal] = None
    event_id: Optional[str] = None

    @classmethod
    def from_graphql(cls, data: Mapping[str, Any]) -> "ResolutionEvent":
        """Parse an XOMarketContract_MarketResolved row. Raises ParseError."""
        return cls(
            market_id=int(_chain_int(data, "marketId")),
            resolver=_optional_address(data, "resolver"),
            winning_token_id=_optional_chain_int(data, "winningTokenId"),
            redeemable_amount=_optional_chain_int(data, "redeemableAmount"),
            event_id=data.get("id"),
        )


@dataclass(frozen=True)
class BuyEvent:
    """OutcomeTokensBought event. cost is the collateral paid."""
    market_id: int
    cost: Decimal
    amount: Decimal = Decimal("0")
    outcome_index: Optional[int] = None
    buyer: Optional[str] = None
    event_id: Optional[str] = None

    @classmethod
    def from_graphql(cls, data: Mapping[str, Any]) -> "BuyEvent":
        return cls(
            market_id=int(_chain_int(data, "marketId")),
            cost=_chain_int(data, "cost"),
            amount=_optional_chain_int(data, "amount") or Decimal("0"),
            outcome_index=_optional_index(data, "outcomeIndex"),
            buyer=_optional_address(data, "buyer"),
            event_id=data.get("id"),
        )


@dataclass(frozen=True)
class SellEvent:
    """OutcomeTokensSold event. received is the collateral paid out."""
    market_id: int
    received: Decimal
    amount: Decimal = Decimal("0")
    outcome_index: Optional[int] = None
    seller: Optional[str] = None
    event_id: Optional[str] = None

    @classmethod
    def from_graphql(cls, data: Mapping[str, Any]) -> "SellEvent":
        return cls(
            market_id=int(_chain_int(data, "marketId")),
            received=_chain_int(data, "received"),
            amount=_optional_chain_int(data, "amount") or Decimal("0"),
            outcome_index=_optional_index(data, "outcomeIndex"),
            seller=_optional_address(data, "seller"),
            event_id=data.get("id"),
        )


@dataclass(frozen=True)
class TradeActivity:
    """Buy and sell events for one market."""
    market_id: int
    bought: tuple[BuyEvent, ...] = ()
    sold: tuple[SellEvent, ...] = ()

    @property
    def total_volume(self) -> Decimal:
        """Sum of buy costs and sell proceeds, in exact decimal arithmetic."""
        buy_volume = sum((e.cost for e in self.bought), Decimal("0"))
        sell_volume = sum((e.received for e in self.sold), Decimal("0"))
        return buy_volume + sell_volume

    @property
    def trade_count(self) -> int:
        return len(self.bought) + len(self.sold)


@dataclass(frozen=True)
class MarketMetadata:
    """Fields extracted from the off-chain metadata document."""
    title: Optional[str] = None
    resolution_criteria: Optional[str] = None
    end_date: Optional[Decimal] = None
    outcomes: Optional[list[str]] = field(default=None, hash=False)

    def as_fields(self) -> dict[str, Any]:
        """Non-null fields keyed by markets column name."""
        values = {
            "title": self.title,
            "resolution_criteria": self.resolution_criteria,
            "end_date": self.end_date,
            "outcomes": self.outcomes,
        }
        return {k: v for k, v in values.items() if v is not None}
