"""Centralized default values and configuration constants.

All magic numbers and built-in tables live here so that config loaders,
the provider and the CLI agree on them.
"""

from typing import Any

# =============================================================================
# CACHE DEFAULTS
# =============================================================================

WILDCARD = "*"

DEFAULT_KEY_PREFIX = "routecache:routes"
DEFAULT_TTL_MINUTES = 20
DEFAULT_BLOCKS_TO_LIVE = 1

# Cache reads share the request latency budget, so fail fast
DEFAULT_STORE_TIMEOUT_SECONDS = 0.1

DEFAULT_CIRCUIT_BREAKER_THRESHOLD = 5
DEFAULT_CIRCUIT_BREAKER_TIMEOUT = 300

DEFAULT_CONFIG_FILENAME = "routecache.yaml"

# =============================================================================
# MAINNET TOKENS
# =============================================================================

MAINNET = 1
WETH_MAINNET = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
USDC_MAINNET = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"

# =============================================================================
# STRATEGY TABLE
# =============================================================================

# Used when no routecache.yaml `strategies:` section is found.
# Bucket bounds are in whole tokens of the amount's currency.
DEFAULT_STRATEGIES: list[dict[str, Any]] = [
    {
        "pair": "WETH/USDC",
        "token_in": WETH_MAINNET,
        "token_out": USDC_MAINNET,
        "trade_type": "ExactIn",
        "chain_id": MAINNET,
        "buckets": [
            {"bucket": bound, "blocks_to_live": 1, "cache_mode": "tapcompare"}
            for bound in (1, 2, 3, 5, 8, 13, 21, 34, 55)
        ],
    },
    {
        "pair": "USDC/WETH",
        "token_in": USDC_MAINNET,
        "token_out": WETH_MAINNET,
        "trade_type": "ExactIn",
        "chain_id": MAINNET,
        "buckets": [
            {"bucket": bound, "blocks_to_live": 1, "cache_mode": "tapcompare"}
            for bound in (
                1000,
                2000,
                3000,
                8000,
                13000,
                21000,
                34000,
                55000,
                89000,
                144000,
                233000,
                377000,
                610000,
            )
        ],
    },
    {
        "pair": "WETH/*",
        "token_in": WETH_MAINNET,
        "token_out": WILDCARD,
        "trade_type": "ExactIn",
        "chain_id": MAINNET,
        "buckets": [
            {"bucket": bound, "blocks_to_live": 1, "cache_mode": "tapcompare"}
            for bound in (1, 2, 3, 5)
        ],
    },
]

# =============================================================================
# QUOTE AMOUNT TRACKING
# =============================================================================

# chain_id -> trade type -> pairs whose requested amounts are recorded
DEFAULT_TRACKED_PAIRS: dict[int, dict[str, list[str]]] = {
    MAINNET: {
        "ExactIn": ["WETH/USDC", "USDC/WETH", "USDT/WETH", "WETH/USDT"],
        "ExactOut": ["USDC/WETH"],
    },
}
