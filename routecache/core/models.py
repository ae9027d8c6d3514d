"""Core data models for the route caching engine.

This module defines Pydantic models for tokens, amounts, cached routes,
quote requests and quote results. The route payload itself belongs to the
external router; the engine only reads the fields it needs to derive keys
and freshness.
"""

from decimal import ROUND_DOWN, Decimal, localcontext
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# uint256 needs up to 78 significant digits
_AMOUNT_PRECISION = 80


class CacheMode(str, Enum):
    """Caching behavior for a bucket of trade amounts."""

    LIVEMODE = "livemode"
    DARKMODE = "darkmode"
    TAPCOMPARE = "tapcompare"


class TradeType(str, Enum):
    """Direction of a trade: fixed input amount or fixed output amount."""

    EXACT_INPUT = "ExactIn"
    EXACT_OUTPUT = "ExactOut"

    @classmethod
    def parse(cls, value: "str | int | TradeType") -> "TradeType":
        """Parse a trade type from config or request input.

        Accepts the canonical values plus the aliases used across routing
        tooling (``EXACT_INPUT``, ``exact_in``, ``exactIn``, ``0``/``1``).

        Raises:
            ValueError: If the value is not a known trade type
        """
        if isinstance(value, TradeType):
            return value
        normalized = str(value).strip().lower().replace("_", "").replace("-", "")
        if normalized in ("exactin", "exactinput", "0"):
            return cls.EXACT_INPUT
        if normalized in ("exactout", "exactoutput", "1"):
            return cls.EXACT_OUTPUT
        raise ValueError(f"Unknown trade type: {value!r}")


class Protocol(str, Enum):
    """Liquidity protocols a route may traverse."""

    V2 = "V2"
    V3 = "V3"
    MIXED = "MIXED"


class Token(BaseModel):
    """An ERC20 token on a specific chain."""

    model_config = ConfigDict(frozen=True)

    chain_id: int = Field(..., description="Chain the token lives on", ge=1)
    address: str = Field(..., description="Contract address", min_length=1)
    symbol: str = Field(..., description="Ticker symbol", min_length=1)
    decimals: int = Field(default=18, description="Token decimals", ge=0, le=77)

    @property
    def identifiers(self) -> tuple[str, str]:
        """Lowercased identifiers used for strategy lookup, address first."""
        return (self.address.lower(), self.symbol.lower())


class CurrencyAmount(BaseModel):
    """Amount of a token in its smallest unit."""

    model_config = ConfigDict(frozen=True)

    currency: Token
    quotient: int = Field(..., description="Raw amount in smallest units", ge=0)

    @classmethod
    def from_exact(cls, currency: Token, value: Decimal | int | float | str) -> "CurrencyAmount":
        """Build an amount from a human-readable quantity (e.g. 1.5 WETH)."""
        with localcontext() as ctx:
            ctx.prec = _AMOUNT_PRECISION
            raw = to_decimal(value).scaleb(currency.decimals)
            quotient = int(raw.to_integral_value(rounding=ROUND_DOWN))
        return cls(currency=currency, quotient=quotient)

    @property
    def exact(self) -> Decimal:
        """Human-readable quantity, exact to the token's decimals."""
        with localcontext() as ctx:
            ctx.prec = _AMOUNT_PRECISION
            return Decimal(self.quotient).scaleb(-self.currency.decimals)

    def to_exact(self) -> str:
        """Render the exact quantity without exponent notation."""
        return format(self.exact.normalize(), "f")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a numeric value to Decimal without binary float artifacts.

    Floats go through ``str`` so that ``10.01`` stays ``10.01`` rather than
    ``10.0099999999999997868371792719699442386627197265625``.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a valid amount")
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


class CachedRoute(BaseModel):
    """A single route payload as produced by the external router."""

    route: dict[str, Any] = Field(..., description="Opaque route description")
    percent: int = Field(default=100, description="Share of the trade", ge=0, le=100)


class CachedRoutes(BaseModel):
    """Routes computed for a pair at a block, ready to be cached.

    Everything except the key-related fields is opaque to the engine.
    """

    routes: list[CachedRoute] = Field(default_factory=list)
    chain_id: int = Field(..., ge=1)
    token_in: Token
    token_out: Token
    protocols_covered: list[Protocol] = Field(default_factory=list)
    block_number: int = Field(..., ge=0)
    trade_type: TradeType
    original_amount: str = Field(..., description="Amount the routes were computed for")
    blocks_to_live: int = Field(default=0, ge=0)

    @field_validator("trade_type", mode="before")
    @classmethod
    def parse_trade_type(cls, v: Any) -> TradeType:
        """Accept trade type aliases."""
        return TradeType.parse(v)

    def not_expired(self, current_block: int, optimistic: bool = False) -> bool:
        """Check whether these routes are still valid at ``current_block``.

        Args:
            current_block: Latest block known to the caller
            optimistic: Allow one extra block of staleness

        Returns:
            True if block_number + blocks_to_live covers current_block
        """
        window = self.blocks_to_live + (1 if optimistic else 0)
        return self.block_number + window >= current_block


class QuoteRequest(BaseModel):
    """A quote request as seen by the caching engine."""

    chain_id: int = Field(..., ge=1)
    amount: CurrencyAmount
    quote_token: Token
    trade_type: TradeType
    protocols: list[Protocol] = Field(default_factory=list)
    block_number: int | None = Field(default=None, ge=0)

    @field_validator("trade_type", mode="before")
    @classmethod
    def parse_trade_type(cls, v: Any) -> TradeType:
        """Accept trade type aliases."""
        return TradeType.parse(v)

    @property
    def token_in(self) -> Token:
        """Input token given the trade direction."""
        if self.trade_type == TradeType.EXACT_INPUT:
            return self.amount.currency
        return self.quote_token

    @property
    def token_out(self) -> Token:
        """Output token given the trade direction."""
        if self.trade_type == TradeType.EXACT_INPUT:
            return self.quote_token
        return self.amount.currency


class QuoteResult(BaseModel):
    """A computed quote, either live or re-quoted from cached routes."""

    quote: Decimal
    quote_gas_adjusted: Decimal
    block_number: int = Field(..., ge=0)
    cached_routes: CachedRoutes | None = None
    served_from_cache: bool = False
