"""Key models shared by the strategy registry and the route store.

The same key derivation is used for reads and writes so a route written
after a live computation is found again by the next read.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from routecache.core.defaults import WILDCARD
from routecache.core.models import CachedRoutes, Protocol, TradeType


@dataclass(frozen=True)
class PairTradeTypeChainId:
    """Partition key of the cache and of the strategy table.

    Token identifiers (addresses or symbols) are lowercased on construction.
    """

    token_in: str
    token_out: str
    trade_type: TradeType
    chain_id: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "token_in", self.token_in.strip().lower())
        object.__setattr__(self, "token_out", self.token_out.strip().lower())
        object.__setattr__(self, "trade_type", TradeType.parse(self.trade_type))

    def __str__(self) -> str:
        return f"{self.token_in}/{self.token_out}/{self.trade_type.value}/{self.chain_id}"

    @property
    def wildcard_count(self) -> int:
        """Number of token positions holding the wildcard."""
        return (self.token_in == WILDCARD) + (self.token_out == WILDCARD)

    @classmethod
    def from_cached_routes(cls, cached_routes: CachedRoutes) -> "PairTradeTypeChainId":
        """Build the partition key from the routes' own tokens (by address)."""
        return cls(
            token_in=cached_routes.token_in.address,
            token_out=cached_routes.token_out.address,
            trade_type=cached_routes.trade_type,
            chain_id=cached_routes.chain_id,
        )


def format_bound(bound: Decimal) -> str:
    """Render a bucket bound so 10, 10.0 and 1E+1 give the same key."""
    normalized = bound.normalize()
    return format(normalized, "f")


@dataclass(frozen=True)
class ProtocolsBucketKey:
    """Sort key of the cache: protocol set plus bucket bound."""

    protocols: frozenset[Protocol]
    bucket: Decimal

    @classmethod
    def build(cls, protocols: Iterable[Protocol], bucket: Decimal) -> "ProtocolsBucketKey":
        return cls(protocols=frozenset(protocols), bucket=bucket)

    def __str__(self) -> str:
        protocols = ",".join(sorted(p.value for p in self.protocols))
        return f"{protocols}/{format_bound(self.bucket)}"


def route_cache_key(
    prefix: str,
    partition: PairTradeTypeChainId,
    sort_key: ProtocolsBucketKey,
) -> str:
    """Composite store key for one (pair, trade type, chain, protocols, bucket)."""
    return f"{prefix}:{partition}:{sort_key}"
