"""Command-line interface for the DLMM portfolio service."""
from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone

from .addresses import short_address, validate_address
from .chains.solana import SolanaClient
from .config import AppConfig, load_config
from .errors import UserInputError
from .formatting import CURRENCIES, format_currency, format_percent
from .indexers import DammClient, MeteoraClient
from .logging_setup import configure_logging
from .models import ExchangeRates, PnlCard, PositionSnapshot
from .oracles import JupiterQuoteClient, RatesProvider
from .protocols.dlmm import SolanaDlmmReader
from .services import (
    LaunchMonitor,
    PnlCardBuilder,
    PortfolioAggregator,
    PortfolioMonitor,
    PositionLocator,
    RefreshOutcome,
    RefreshStatus,
    ValuationEngine,
    compute_totals,
)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="metina",
        description="Meteora DLMM portfolio valuation",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    portfolio_parser = sub.add_parser("portfolio", help="Value all open positions once")
    portfolio_parser.add_argument(
        "address", nargs="?", default=None, help="Owner wallet (default: first configured wallet)"
    )
    portfolio_parser.add_argument(
        "--currency", default="USD", type=str.upper, choices=CURRENCIES, help="Display currency"
    )

    watch_parser = sub.add_parser("watch", help="Refresh the portfolio continuously")
    watch_parser.add_argument(
        "address", nargs="?", default=None, help="Owner wallet (default: first configured wallet)"
    )
    watch_parser.add_argument(
        "--interval", type=float, default=None, help="Refresh interval in seconds (overrides config)"
    )
    watch_parser.add_argument(
        "--currency", default="USD", type=str.upper, choices=CURRENCIES, help="Display currency"
    )

    pnl_parser = sub.add_parser("pnl", help="Build a PNL card from a transaction")
    pnl_parser.add_argument("tx", help="Transaction signature or explorer link")

    launch_parser = sub.add_parser("launch", help="Wait for a DAMM v2 pool for a token")
    launch_parser.add_argument("mint", help="Token mint address")
    launch_parser.add_argument("--interval", type=float, default=None, help="Seconds between checks")
    launch_parser.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds")

    return parser


# ----------------------------------------------------------------------
# Wiring
# ----------------------------------------------------------------------


def build_engine(
    config: AppConfig,
) -> tuple[SolanaClient, MeteoraClient, SolanaDlmmReader, ValuationEngine]:
    chain = SolanaClient(config.solana)
    indexer = MeteoraClient(config.meteora)
    dlmm = SolanaDlmmReader(chain, config.solana.dlmm_program_id)
    engine = ValuationEngine(
        indexer, JupiterQuoteClient(config.jupiter), dlmm, config=config.valuation
    )
    return chain, indexer, dlmm, engine


def build_aggregator(config: AppConfig) -> PortfolioAggregator:
    chain, indexer, dlmm, engine = build_engine(config)
    locator = PositionLocator(
        chain, indexer, dlmm, config=config.locator, program_id=config.solana.dlmm_program_id
    )
    return PortfolioAggregator(locator, engine, config.valuation)


def _resolve_owner(address: str | None, config: AppConfig) -> str:
    if address is None and config.wallets:
        address = config.wallets[0].address
    return validate_address(address)


# ----------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------


def _now_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def render_snapshot(snapshot: PositionSnapshot, currency: str, rates: ExchangeRates) -> str:
    return (
        f"{snapshot.pair_name} · {short_address(snapshot.address)}\n"
        f"  Balance: {snapshot.current_balance_x:,.6g} {snapshot.token_x_symbol}"
        f" / {snapshot.current_balance_y:,.6g} {snapshot.token_y_symbol}\n"
        f"  TVL: {format_currency(snapshot.tvl_usd, currency, rates)}"
        f" · Claimed: {format_currency(snapshot.claimed_fee_usd, currency, rates)}"
        f" · Unclaimed: {format_currency(snapshot.unclaimed_fee_usd, currency, rates)}\n"
        f"  UPNL: {format_currency(snapshot.upnl.usd, currency, rates)}"
        f" ({format_percent(snapshot.upnl.percent)})"
    )


def render_portfolio(
    snapshots: tuple[PositionSnapshot, ...] | list[PositionSnapshot],
    currency: str,
    rates: ExchangeRates,
) -> str:
    if not snapshots:
        return "No DLMM positions found"

    totals = compute_totals(snapshots, "USD", rates)
    body = "\n\n".join(render_snapshot(s, currency, rates) for s in snapshots)
    return (
        f"{body}\n"
        f"\n"
        f"━━ {totals.position_count} position(s) ━━\n"
        f"TVL: {format_currency(totals.tvl, currency, rates)}"
        f" · Claimed: {format_currency(totals.claimed_fee, currency, rates)}"
        f" · Unclaimed: {format_currency(totals.unclaimed_fee, currency, rates)}\n"
        f"UPNL: {format_currency(totals.upnl, currency, rates)}"
        f" ({format_percent(totals.upnl_percent)})\n"
        f"{_now_str()} UTC"
    )


def render_pnl_card(card: PnlCard, rates: ExchangeRates) -> str:
    status = "Closed" if card.is_closed else "Open"
    return (
        f"{card.pair_name} · {status}\n"
        f"Position: {card.position_address}\n"
        f"Tx: {card.transaction_id}\n"
        f"\n"
        f"Deposited: {format_currency(card.total_deposit_usd, rates=rates)}\n"
        f"Withdrawn: {format_currency(card.total_withdraw_usd, rates=rates)}\n"
        f"Fees claimed: {format_currency(card.claimed_fee_usd, rates=rates)}\n"
        f"Rewards claimed: {format_currency(card.claimed_reward_usd, rates=rates)}\n"
        f"Current value: {format_currency(card.tvl_usd, rates=rates)}"
        f" + {format_currency(card.unclaimed_fee_usd, rates=rates)} unclaimed\n"
        f"\n"
        f"PNL: {format_currency(card.upnl.usd, rates=rates)}"
        f" ({format_percent(card.upnl.percent)}) · {format_currency(card.upnl.usd, 'SOL', rates)}\n"
        f"Duration: {card.duration}"
    )


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


async def _portfolio(args: argparse.Namespace, config: AppConfig) -> None:
    owner = _resolve_owner(args.address, config)
    rates = await RatesProvider(config.rates).refresh()
    snapshots = await build_aggregator(config).aggregate(owner, rates)
    print(render_portfolio(snapshots, args.currency, rates))


async def _watch(args: argparse.Namespace, config: AppConfig) -> None:
    owner = _resolve_owner(args.address, config)
    monitor = PortfolioMonitor(build_aggregator(config), RatesProvider(config.rates))
    interval = args.interval or config.monitor.refresh_interval_seconds

    def show(outcome: RefreshOutcome) -> None:
        if outcome.status is RefreshStatus.STALE:
            return
        if outcome.status is RefreshStatus.FAILED:
            print(f"Refresh failed: {outcome.error} (showing last result)")
        print(render_portfolio(outcome.snapshots, args.currency, monitor.rates))
        print()

    await monitor.run_continuous(owner, interval, on_refresh=show)


async def _pnl(args: argparse.Namespace, config: AppConfig) -> None:
    chain, indexer, _, engine = build_engine(config)
    rates = await RatesProvider(config.rates).refresh()
    builder = PnlCardBuilder(chain, indexer, engine, program_id=config.solana.dlmm_program_id)
    card = await builder.build(args.tx, rates)
    print(render_pnl_card(card, rates))


async def _launch(args: argparse.Namespace, config: AppConfig) -> None:
    mint = validate_address(args.mint)
    monitor = LaunchMonitor(DammClient(config.meteora), config.launch)
    result = await monitor.wait_until_launched(mint, args.interval, args.timeout)
    if result.launched:
        pool = result.pool_info or {}
        print(f"Pool launched: {pool.get('pool_address') or pool.get('address') or 'unknown'}")
    else:
        print(f"No pool after {result.attempts} attempt(s)")


_COMMANDS = {
    "portfolio": _portfolio,
    "watch": _watch,
    "pnl": _pnl,
    "launch": _launch,
}


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    await _COMMANDS[args.command](args, config)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except UserInputError as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        sys.exit(130)
