"""Pure parsing and valuation math for Meteora DLMM positions."""
from __future__ import annotations

from typing import Any, Iterable

from ...addresses import is_valid_address
from ...config import LAMPORTS_PER_SOL, SOL_MINTS
from ...models import (
    DEFAULT_EXCHANGE_RATES,
    FeeAmounts,
    IndexedPosition,
    LedgerEvent,
    LedgerKind,
    OnchainPosition,
    PairInfo,
    TokenInfo,
    TokenPrices,
    Upnl,
)

_RESERVE_X_KEYS = ("reserve_x_amount", "token_x_reserve", "x_reserve", "reserveX", "reserve_x")
_RESERVE_Y_KEYS = ("reserve_y_amount", "token_y_reserve", "y_reserve", "reserveY", "reserve_y")
_TOKEN_X_KEYS = ("token_x", "tokenX", "x_token", "xToken")
_TOKEN_Y_KEYS = ("token_y", "tokenY", "y_token", "yToken")


def to_float(value: Any) -> float:
    """Coerce an indexer number (int, float or numeric string) to float; junk → 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_int(value: Any) -> int:
    """Coerce a raw on-chain amount (int, string, big-number object) to int."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(str(value))
    except ValueError:
        return int(to_float(value))


def _first_number(data: dict[str, Any], keys: Iterable[str]) -> float:
    for key in keys:
        number = to_float(data.get(key))
        if number:
            return number
    return 0.0


def _optional_number(data: dict[str, Any], keys: Iterable[str]) -> float | None:
    for key in keys:
        if data.get(key) is not None:
            return to_float(data[key])
    return None


def _address(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) and is_valid_address(value) else ""


def is_sol_mint(mint: str) -> bool:
    return mint in SOL_MINTS


# ---------------------------------------------------------------------------
# Indexer payloads → models
# ---------------------------------------------------------------------------


def parse_ledger(items: Any, kind: LedgerKind) -> list[LedgerEvent]:
    """Parse a ledger endpoint response; anything but a list yields []."""
    if not isinstance(items, list):
        return []

    events: list[LedgerEvent] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        timestamp = item.get("onchain_timestamp")
        events.append(
            LedgerEvent(
                kind=kind,
                token_x_amount=to_float(item.get("token_x_amount")),
                token_y_amount=to_float(item.get("token_y_amount")),
                token_x_usd_amount=to_float(item.get("token_x_usd_amount")),
                token_y_usd_amount=to_float(item.get("token_y_usd_amount")),
                onchain_timestamp=to_int(timestamp) if timestamp is not None else None,
                tx_id=str(item.get("tx_id", "")),
            )
        )
    return events


def parse_position(data: Any) -> IndexedPosition | None:
    if not isinstance(data, dict) or not data.get("address"):
        return None

    claimed = data.get("total_fee_usd_claimed")
    return IndexedPosition(
        address=str(data["address"]),
        pair_address=str(data.get("pair_address", "")),
        owner=str(data.get("owner", "")),
        total_fee_usd_claimed=to_float(claimed) if claimed is not None else None,
        total_reward_usd_claimed=to_float(data.get("total_reward_usd_claimed")),
        token_x_amount=_optional_number(data, ("token_x_amount", "x_amount")),
        token_y_amount=_optional_number(data, ("token_y_amount", "y_amount")),
    )


def _parse_token(data: dict[str, Any], keys: Iterable[str], mint: str, default_decimals: int) -> TokenInfo:
    token: dict[str, Any] = {}
    for key in keys:
        if isinstance(data.get(key), dict):
            token = data[key]
            break

    decimals = token.get("decimals")
    if is_sol_mint(mint):
        decimals = 9
    return TokenInfo(
        mint=mint,
        symbol=str(token.get("symbol") or token.get("name") or ""),
        decimals=int(decimals) if decimals is not None else default_decimals,
    )


def parse_pair(data: Any) -> PairInfo | None:
    if not isinstance(data, dict) or not data.get("address"):
        return None

    mint_x = str(data.get("mint_x", ""))
    mint_y = str(data.get("mint_y", ""))
    return PairInfo(
        address=str(data["address"]),
        name=str(data.get("name", "")),
        mint_x=mint_x,
        mint_y=mint_y,
        reserve_x_amount=_first_number(data, _RESERVE_X_KEYS),
        reserve_y_amount=_first_number(data, _RESERVE_Y_KEYS),
        base_fee_percentage=to_float(data.get("base_fee_percentage")),
        bin_step=int(to_float(data.get("bin_step"))),
        token_x=_parse_token(data, _TOKEN_X_KEYS, mint_x, 6),
        token_y=_parse_token(data, _TOKEN_Y_KEYS, mint_y, 9 if is_sol_mint(mint_y) else 6),
        reserve_x=_address(data, "reserve_x"),
        reserve_y=_address(data, "reserve_y"),
    )


def token_symbols(pair: PairInfo | None) -> tuple[str, str]:
    """Display symbols for both sides, falling back to the pair name, then X/Y.

    Examples:
        token_x.symbol="BONK", token_y.symbol="SOL" → ("BONK", "SOL")
        name="Frieren-SOL", no token metadata      → ("Frieren", "SOL")
    """
    if pair is None:
        return "X", "Y"

    symbol_x = pair.token_x.symbol
    symbol_y = pair.token_y.symbol
    if (not symbol_x or not symbol_y) and pair.name:
        parts = pair.name.replace("/", "-").split("-")
        if len(parts) >= 2:
            symbol_x = symbol_x or parts[0].strip()
            symbol_y = symbol_y or parts[1].strip()
    return symbol_x or "X", symbol_y or "Y"


def pair_display_name(pair: PairInfo | None) -> str:
    if pair is None:
        return "Unknown"
    if pair.name:
        return pair.name
    symbol_x, symbol_y = token_symbols(pair)
    return f"{symbol_x}/{symbol_y}"


# ---------------------------------------------------------------------------
# Valuation math
# ---------------------------------------------------------------------------


def sum_usd(events: Iterable[LedgerEvent]) -> float:
    return sum(event.usd_total for event in events)


def scale_amount(raw: float, decimals: int) -> float:
    return raw / (10**decimals)


def effective_sol_price(sol_price: float) -> float:
    return sol_price if sol_price and sol_price > 0 else DEFAULT_EXCHANGE_RATES.sol


def price_from_reserves(
    reserve_x_raw: float,
    reserve_y_raw: float,
    pair: PairInfo,
    sol_price: float,
    source: str,
) -> TokenPrices:
    """Token prices implied by pool reserves; only defined for X/SOL pairs.

    priceX = reserveY_in_SOL * solPriceUsd / reserveX, priceY = solPriceUsd
    """
    if not is_sol_mint(pair.mint_y) or sol_price <= 0:
        return TokenPrices()
    if reserve_x_raw <= 0 or reserve_y_raw <= 0:
        return TokenPrices()

    reserve_x = scale_amount(reserve_x_raw, pair.token_x.decimals)
    reserve_y_sol = reserve_y_raw / LAMPORTS_PER_SOL
    return TokenPrices(
        x=reserve_y_sol * sol_price / reserve_x,
        y=sol_price,
        source=source,
    )


def price_from_last_deposit(
    deposits: list[LedgerEvent], pair: PairInfo | None, sol_price: float
) -> TokenPrices:
    """Realized price of the most recent deposit, per side."""
    if not deposits:
        return TokenPrices()

    latest = deposits[-1]
    price_x = 0.0
    price_y = 0.0
    if latest.token_x_amount > 0 and latest.token_x_usd_amount > 0:
        price_x = latest.token_x_usd_amount / latest.token_x_amount
    if latest.token_y_amount > 0 and latest.token_y_usd_amount > 0:
        price_y = latest.token_y_usd_amount / latest.token_y_amount
    if price_y == 0 and pair is not None and is_sol_mint(pair.mint_y) and sol_price > 0:
        price_y = sol_price
    return TokenPrices(x=price_x, y=price_y, source="deposit")


def merge_prices(candidates: Iterable[TokenPrices]) -> TokenPrices:
    """Fill each side from the first candidate that prices it."""
    price_x = 0.0
    price_y = 0.0
    sources: list[str] = []
    for candidate in candidates:
        used = False
        if price_x == 0 and candidate.x > 0:
            price_x = candidate.x
            used = True
        if price_y == 0 and candidate.y > 0:
            price_y = candidate.y
            used = True
        if used:
            sources.append(candidate.source)
        if price_x > 0 and price_y > 0:
            break
    return TokenPrices(x=price_x, y=price_y, source="+".join(sources) or "none")


def calc_tvl(balance_x: float, balance_y: float, prices: TokenPrices) -> float:
    """Current USD value of the balances; negative balances count as zero."""
    return max(0.0, balance_x) * prices.x + max(0.0, balance_y) * prices.y


def unclaimed_fee_amounts(fees: FeeAmounts, onchain: OnchainPosition | None) -> tuple[int, int]:
    """Raw unclaimed fee amounts.

    When ``fees`` may be lifetime totals, previously-claimed raw amounts are
    subtracted per side, but only where the total covers the claimed amount.
    """
    fee_x, fee_y = fees.fee_x, fees.fee_y
    if fees.unclaimed_only or onchain is None:
        return max(0, fee_x), max(0, fee_y)

    claimed_x = onchain.total_claimed_fee_x
    claimed_y = onchain.total_claimed_fee_y
    if claimed_x > 0 and fee_x >= claimed_x:
        fee_x -= claimed_x
    if claimed_y > 0 and fee_y >= claimed_y:
        fee_y -= claimed_y
    return max(0, fee_x), max(0, fee_y)


def calc_upnl_percent(upnl_usd: float, net_deposit_usd: float, total_value_usd: float) -> float:
    if net_deposit_usd > 0:
        return upnl_usd / net_deposit_usd * 100
    if net_deposit_usd < 0:
        return upnl_usd / abs(net_deposit_usd) * 100
    if total_value_usd > 0:
        return 100.0
    if total_value_usd < 0:
        return -100.0
    return 0.0


def calc_upnl(
    tvl_usd: float,
    net_deposit_usd: float,
    sol_price: float,
    unclaimed_fee_usd: float = 0.0,
    claimed_fee_usd: float = 0.0,
) -> Upnl:
    """Unrealized PNL.

    upnl = (tvl + unclaimed fees + claimed fees) - (deposits - withdraws)
    """
    total_value_usd = tvl_usd + unclaimed_fee_usd + claimed_fee_usd
    upnl_usd = total_value_usd - net_deposit_usd
    return Upnl(
        usd=upnl_usd,
        sol=upnl_usd / effective_sol_price(sol_price),
        percent=calc_upnl_percent(upnl_usd, net_deposit_usd, total_value_usd),
    )
