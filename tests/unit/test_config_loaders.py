"""Tests for configuration loaders in routecache/core/config.

Tests verify the 3-tier fallback chain:
1. YAML config file (routecache.yaml)
2. Environment variables
3. Hardcoded defaults
"""

import pytest
import yaml

from routecache.cache import CacheConfig
from routecache.core.config import (
    find_config_file,
    load_cache_config,
    load_strategy_config,
    load_tracked_pairs,
    read_yaml_section,
)
from routecache.core.defaults import DEFAULT_STRATEGIES
from routecache.core.exceptions import ConfigurationError
from routecache.core.models import TradeType


def write_config(tmp_path, data):
    path = tmp_path / "routecache.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestYamlHelpers:
    def test_explicit_missing_path(self, tmp_path):
        assert find_config_file(tmp_path / "nope.yaml") is None
        assert read_yaml_section("strategies", tmp_path / "nope.yaml") is None

    def test_cwd_fallback(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, {"cache": {"ttl_minutes": 3}})
        monkeypatch.chdir(tmp_path)

        assert find_config_file() is not None
        assert find_config_file().resolve() == path.resolve()

    def test_unparseable_yaml_returns_none(self, tmp_path):
        path = tmp_path / "routecache.yaml"
        path.write_text("strategies: [unclosed")

        assert read_yaml_section("strategies", path) is None

    def test_strict_unparseable_yaml_raises(self, tmp_path):
        path = tmp_path / "routecache.yaml"
        path.write_text("strategies: [unclosed")

        with pytest.raises(ConfigurationError, match="Failed to read"):
            read_yaml_section("strategies", path, strict=True)

    def test_strict_missing_explicit_path_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            find_config_file(tmp_path / "nope.yaml", strict=True)

    def test_strict_non_mapping_raises(self, tmp_path):
        path = tmp_path / "routecache.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            read_yaml_section("strategies", path, strict=True)


class TestLoadCacheConfig:
    def test_hardcoded_defaults(self, tmp_path):
        config = load_cache_config(tmp_path / "missing.yaml")

        assert config["ttl_minutes"] == 20
        assert config["key_prefix"] == "routecache:routes"
        assert config["timeout"] == 0.1
        assert config["circuit_breaker"] == {"threshold": 5, "timeout": 300}

    def test_yaml_overrides_and_deep_merges(self, tmp_path):
        path = write_config(
            tmp_path,
            {"cache": {"ttl_minutes": 5, "circuit_breaker": {"threshold": 2}}},
        )

        config = load_cache_config(path)

        assert config["ttl_minutes"] == 5
        assert config["circuit_breaker"] == {"threshold": 2, "timeout": 300}
        assert config["key_prefix"] == "routecache:routes"

    def test_builds_cache_config(self, tmp_path):
        path = write_config(tmp_path, {"cache": {"enabled": False, "ttl_minutes": 2}})

        config = CacheConfig.from_loaded(load_cache_config(path))

        assert config.enabled is False
        assert config.ttl_seconds == 120
        assert config.circuit_breaker_threshold == 5


class TestLoadStrategyConfig:
    def test_defaults_when_no_file_found(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        records = load_strategy_config()

        assert [r["pair"] for r in records] == ["WETH/USDC", "USDC/WETH", "WETH/*"]

    def test_defaults_when_section_missing(self, tmp_path):
        path = write_config(tmp_path, {"cache": {"ttl_minutes": 3}})

        records = load_strategy_config(path)
        records[0]["buckets"].clear()

        assert DEFAULT_STRATEGIES[0]["buckets"]

    def test_yaml_strategies(self, tmp_path):
        path = write_config(
            tmp_path,
            {
                "strategies": [
                    {
                        "pair": "WBTC/WETH",
                        "tradeType": "ExactIn",
                        "chainId": 1,
                        "buckets": [{"bucket": 1, "cacheMode": "livemode"}],
                    }
                ]
            },
        )

        records = load_strategy_config(path)

        assert len(records) == 1
        assert records[0]["pair"] == "WBTC/WETH"

    def test_section_must_be_a_list(self, tmp_path):
        path = write_config(tmp_path, {"strategies": {"pair": "WETH/USDC"}})

        with pytest.raises(ConfigurationError, match="must be a list"):
            load_strategy_config(path)

    def test_records_must_be_mappings(self, tmp_path):
        path = write_config(tmp_path, {"strategies": ["WETH/USDC"]})

        with pytest.raises(ConfigurationError, match="#0"):
            load_strategy_config(path)

    def test_unparseable_file_is_not_replaced_by_defaults(self, tmp_path):
        path = tmp_path / "routecache.yaml"
        path.write_text("strategies:\n  - pair: WETH/USDC\n    buckets: [ {bucket: 10, cache_mode: livemode\n")

        with pytest.raises(ConfigurationError, match="Failed to read"):
            load_strategy_config(path)

    def test_missing_explicit_path_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_strategy_config(tmp_path / "missing.yaml")


class TestLoadTrackedPairs:
    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TRACKED_PAIRS", raising=False)

        tracked = load_tracked_pairs(tmp_path / "missing.yaml")

        assert "WETH/USDC" in tracked[1][TradeType.EXACT_INPUT]
        assert tracked[1][TradeType.EXACT_OUTPUT] == {"USDC/WETH"}

    def test_environment_variable(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TRACKED_PAIRS", "1:ExactIn:weth/dai, 137:ExactOut:USDC/WMATIC, bogus")

        tracked = load_tracked_pairs(tmp_path / "missing.yaml")

        assert tracked == {
            1: {TradeType.EXACT_INPUT: {"WETH/DAI"}},
            137: {TradeType.EXACT_OUTPUT: {"USDC/WMATIC"}},
        }

    def test_yaml_wins_over_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TRACKED_PAIRS", "1:ExactIn:WETH/DAI")
        path = write_config(tmp_path, {"tracked_pairs": {1: {"exact_in": ["wbtc/weth"]}}})

        tracked = load_tracked_pairs(path)

        assert tracked == {1: {TradeType.EXACT_INPUT: {"WBTC/WETH"}}}
