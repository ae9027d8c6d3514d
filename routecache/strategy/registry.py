"""Lookup of caching strategies by pair, trade type and chain.

Lookup precedence:
    1. Exact match on both tokens
    2. One wildcard position ("WETH/*" or "*/USDC")
    3. Both positions wildcard ("*/*")

A strategy configured with token addresses also answers to its pair's
symbols. Each token is tried by address first, then by symbol. A table in which a
concrete pair could match both an "X/*" and a "*/Y" strategy without an
exact "X/Y" strategy to settle it is rejected when the registry is built.
"""

import logging
from collections.abc import Iterable, Iterator, Sequence
from itertools import product
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from routecache.core.defaults import WILDCARD
from routecache.core.exceptions import ConfigurationError
from routecache.core.models import Token, TradeType
from routecache.strategy.keys import PairTradeTypeChainId
from routecache.strategy.models import StrategyConfig
from routecache.strategy.strategy import CachingStrategy

logger = logging.getLogger(__name__)

TokenRef = Token | str


def _identifiers(token: TokenRef) -> tuple[str, ...]:
    """Lowercased lookup identifiers, most specific first."""
    if isinstance(token, Token):
        address, symbol = token.identifiers
        return (address,) if address == symbol else (address, symbol)
    return (token.strip().lower(),)


class StrategyRegistry:
    """Read-only table of caching strategies.

    Built once at startup and shared by every request. No method mutates it
    after construction, so concurrent lookups need no locking.

    Example:
        >>> registry = StrategyRegistry.load()
        >>> strategy = registry.get("WETH", "USDC", TradeType.EXACT_INPUT, 1)
    """

    def __init__(self, strategies: Iterable[CachingStrategy]):
        """Initialize registry.

        Args:
            strategies: Strategies to register

        Raises:
            ConfigurationError: On duplicate keys or ambiguous wildcards
        """
        self._strategies: list[CachingStrategy] = []
        self._exact: dict[str, CachingStrategy] = {}
        self._wildcard: dict[str, CachingStrategy] = {}

        for strategy in strategies:
            target = self._wildcard if strategy.is_wildcard else self._exact
            for lookup_key in strategy.lookup_keys:
                key = str(lookup_key)
                if key in self._exact or key in self._wildcard:
                    raise ConfigurationError(
                        f"Duplicate caching strategy for {key}",
                        details={"key": key, "pair": strategy.pair},
                    )
                target[key] = strategy
            self._strategies.append(strategy)

        self._check_wildcard_overlaps()

        wildcards = sum(1 for s in self._strategies if s.is_wildcard)
        logger.info(
            f"Strategy registry loaded: {len(self._strategies) - wildcards} exact, "
            f"{wildcards} wildcard strategies"
        )

    @classmethod
    def from_config(
        cls, records: Sequence[dict[str, Any]], require_sorted: bool = False
    ) -> "StrategyRegistry":
        """Build a registry from raw configuration records.

        Args:
            records: Strategy records (see StrategyConfig)
            require_sorted: Reject bucket lists not written in ascending order

        Raises:
            ConfigurationError: If any record is invalid
        """
        strategies = []
        for index, record in enumerate(records):
            try:
                config = StrategyConfig.model_validate(record)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid strategy record #{index}: {e}",
                    details={"index": index, "record": record},
                ) from e
            strategies.append(CachingStrategy.from_config(config, require_sorted=require_sorted))
        return cls(strategies)

    @classmethod
    def load(cls, path: str | Path | None = None, require_sorted: bool = False) -> "StrategyRegistry":
        """Load the registry from routecache.yaml (or the built-in table)."""
        from routecache.core.config import load_strategy_config

        return cls.from_config(load_strategy_config(path), require_sorted=require_sorted)

    def _check_wildcard_overlaps(self) -> None:
        """Reject X/* and */Y pairs that have no exact X/Y to settle them."""
        in_wildcards = [
            s for s in self._strategies
            if s.key.token_out == WILDCARD and s.key.token_in != WILDCARD
        ]
        out_wildcards = [
            s for s in self._strategies
            if s.key.token_in == WILDCARD and s.key.token_out != WILDCARD
        ]

        exact_keys = [
            key for s in self._strategies if not s.is_wildcard for key in s.lookup_keys
        ]

        for left, right in product(in_wildcards, out_wildcards):
            if (left.trade_type, left.chain_id) != (right.trade_type, right.chain_id):
                continue
            ins = {key.token_in for key in left.lookup_keys}
            outs = {key.token_out for key in right.lookup_keys}
            settled = any(
                key.token_in in ins
                and key.token_out in outs
                and key.trade_type == left.trade_type
                and key.chain_id == left.chain_id
                for key in exact_keys
            )
            if not settled:
                raise ConfigurationError(
                    f"Ambiguous wildcard strategies {left.pair} and {right.pair} "
                    f"can both match one pair; add an exact strategy for it",
                    details={"left": str(left.key), "right": str(right.key)},
                )

    def get(
        self,
        token_in: TokenRef,
        token_out: TokenRef,
        trade_type: TradeType | str,
        chain_id: int,
    ) -> CachingStrategy | None:
        """Find the strategy for a concrete pair.

        Args:
            token_in: Input token (Token, address or symbol)
            token_out: Output token (Token, address or symbol)
            trade_type: ExactIn or ExactOut
            chain_id: Chain identifier

        Returns:
            The most specific matching strategy, or None (treat as Darkmode)
        """
        parsed = TradeType.parse(trade_type)
        ins = _identifiers(token_in)
        outs = _identifiers(token_out)

        def key(i: str, o: str) -> str:
            return str(PairTradeTypeChainId(i, o, parsed, chain_id))

        for i, o in product(ins, outs):
            strategy = self._exact.get(key(i, o))
            if strategy is not None:
                return strategy

        if not self._wildcard:
            return None

        # X/* and */Y never both match here: the constructor rejects that table
        candidates = [key(i, WILDCARD) for i in ins] + [key(WILDCARD, o) for o in outs]
        for candidate in candidates:
            strategy = self._wildcard.get(candidate)
            if strategy is not None:
                return strategy

        return self._wildcard.get(key(WILDCARD, WILDCARD))

    def strategies(self) -> list[CachingStrategy]:
        """All registered strategies, exact ones first."""
        return sorted(self._strategies, key=lambda s: s.is_wildcard)

    def find(self, pair: str, trade_type: TradeType | str, chain_id: int) -> CachingStrategy | None:
        """Find a strategy by its readable pair ("WETH/USDC"), with wildcard fallback."""
        token_in, _, token_out = pair.partition("/")
        return self.get(token_in, token_out, trade_type, chain_id)

    def __len__(self) -> int:
        return len(self._strategies)

    def __iter__(self) -> Iterator[CachingStrategy]:
        return iter(self.strategies())
