"""Command-line interface for routecache."""

import json
import logging
import sys
from decimal import InvalidOperation

import click

from routecache import __version__
from routecache.core.exceptions import ConfigurationError
from routecache.core.models import CacheMode, TradeType, to_decimal
from routecache.strategy import CachingStrategy, StrategyRegistry, format_bound

logger = logging.getLogger(__name__)

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to routecache.yaml (default: settings or ./routecache.yaml)",
)
trade_type_option = click.option(
    "--trade-type",
    default="ExactIn",
    help="ExactIn or ExactOut",
    show_default=True,
)
chain_id_option = click.option(
    "--chain-id",
    default=1,
    type=int,
    help="Chain identifier",
    show_default=True,
)


def _load_registry(config_path: str | None) -> StrategyRegistry:
    try:
        return StrategyRegistry.load(config_path)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)


def _parse_trade_type(value: str) -> TradeType:
    try:
        return TradeType.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--trade-type") from e


def _find_strategy(
    registry: StrategyRegistry, pair: str, trade_type: TradeType, chain_id: int
) -> CachingStrategy:
    strategy = registry.find(pair, trade_type, chain_id)
    if strategy is None:
        click.echo(
            f"No caching strategy for {pair.upper()}/{trade_type.value}/{chain_id} (darkmode)",
            err=True,
        )
        sys.exit(1)
    return strategy


@click.group()
def cli() -> None:
    """routecache - cached route decisions for DEX aggregation."""
    logging.basicConfig(level=logging.WARNING, format="%(message)s")


@cli.command()
@config_option
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output results as JSON",
)
def strategies(config_path: str | None, output_json: bool) -> None:
    """List registered caching strategies."""
    registry = _load_registry(config_path)

    rows = [
        {
            "pair": strategy.readable_pair_trade_type_chain_id(),
            "key": str(strategy.key),
            "buckets": len(strategy.buckets),
            "tapcompare": strategy.supports_tapcompare,
        }
        for strategy in registry.strategies()
    ]

    if output_json:
        click.echo(json.dumps(rows, indent=2))
        return

    click.echo(f"{'Strategy':<30} {'Buckets':>7}  Tapcompare")
    click.echo("=" * 50)
    for row in rows:
        flag = "yes" if row["tapcompare"] else "no"
        click.echo(f"{row['pair']:<30} {row['buckets']:>7}  {flag}")
    click.echo(f"\n{len(rows)} strategies")


@cli.command()
@click.argument("pair")
@trade_type_option
@chain_id_option
@config_option
def buckets(pair: str, trade_type: str, chain_id: int, config_path: str | None) -> None:
    """Print the amount ranges covered by each bucket of PAIR."""
    registry = _load_registry(config_path)
    strategy = _find_strategy(registry, pair, _parse_trade_type(trade_type), chain_id)

    click.echo(strategy.readable_pair_trade_type_chain_id())
    for (lower, upper), spec in zip(strategy.bucket_ranges(), strategy.bucket_specs):
        click.echo(
            f"  ({format_bound(lower)}, {format_bound(upper)}]  "
            f"{spec.cache_mode.value}  blocks_to_live={spec.blocks_to_live}"
        )
    if strategy.buckets:
        click.echo(f"  ({format_bound(strategy.buckets[-1])}, +inf)  {CacheMode.DARKMODE.value}")


@cli.command()
@click.argument("pair")
@click.argument("amount")
@trade_type_option
@chain_id_option
@config_option
def mode(
    pair: str, amount: str, trade_type: str, chain_id: int, config_path: str | None
) -> None:
    """Print the cache mode for AMOUNT (whole tokens) of PAIR."""
    try:
        value = to_decimal(amount)
    except InvalidOperation as e:
        raise click.BadParameter(f"Not a number: {amount!r}", param_hint="AMOUNT") from e
    if not value.is_finite() or value < 0:
        raise click.BadParameter(f"Not a valid amount: {amount!r}", param_hint="AMOUNT")

    registry = _load_registry(config_path)
    parsed = _parse_trade_type(trade_type)
    strategy = registry.find(pair, parsed, chain_id)
    bucket = strategy.resolve_bucket(value) if strategy else None

    if bucket is None:
        click.echo(CacheMode.DARKMODE.value)
        return

    click.echo(f"{bucket.cache_mode.value} (bucket {format_bound(bucket.bucket)})")


@cli.command()
@config_option
@click.option(
    "--require-sorted",
    is_flag=True,
    help="Also reject bucket lists not written in ascending order",
)
def validate(config_path: str | None, require_sorted: bool) -> None:
    """Load the strategy table and report configuration errors."""
    try:
        registry = StrategyRegistry.load(config_path, require_sorted=require_sorted)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        click.echo(f"Invalid: {e.message}", err=True)
        sys.exit(1)

    click.echo(f"OK: {len(registry)} strategies")


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"routecache v{__version__}")


if __name__ == "__main__":
    cli()
