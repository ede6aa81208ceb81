"""Currency conversion and display formatting."""
from __future__ import annotations

import math

from .models import DEFAULT_EXCHANGE_RATES, ExchangeRates

CURRENCIES = ("USD", "IDR", "SOL")


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def convert_usd(value_usd: float, currency: str, rates: ExchangeRates = DEFAULT_EXCHANGE_RATES) -> float:
    """Express a USD amount in ``currency``."""
    currency = currency.upper()
    if currency == "IDR":
        return value_usd * (rates.idr or DEFAULT_EXCHANGE_RATES.idr)
    if currency == "SOL":
        sol = rates.sol if rates.sol and rates.sol > 0 else DEFAULT_EXCHANGE_RATES.sol
        return value_usd / sol
    return value_usd


def _id_number(value: float) -> str:
    """Render with Indonesian separators: ``.`` for thousands, ``,`` for decimals."""
    if value == int(value):
        return f"{int(value):,}".replace(",", ".")
    whole, _, fraction = f"{value}".partition(".")
    return f"{int(whole):,}".replace(",", ".") + "," + fraction


def _strip_zeros(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_currency(
    value_usd: float | None,
    currency: str = "USD",
    rates: ExchangeRates = DEFAULT_EXCHANGE_RATES,
) -> str:
    """Format a USD amount for display in ``currency``.

    Examples:
        format_currency(12.5)                 → "$12.5"
        format_currency(-5)                   → "-$5"
        format_currency(100, "SOL", rates)    → "0.667 SOL"   (rates.sol = 150)
        format_currency(0.0001, "SOL", rates) → "<0.001 SOL"
        format_currency(100, "IDR", rates)    → "Rp1,7JT"     (rates.idr = 16700)
    """
    currency = currency.upper()
    if value_usd is None or (isinstance(value_usd, float) and math.isnan(value_usd)):
        return "0 SOL" if currency == "SOL" else "$0"

    value = convert_usd(float(value_usd), currency, rates)
    sign = "-" if value < 0 else ""
    magnitude = abs(value)

    if currency == "SOL":
        if magnitude < 0.001:
            return f"{sign}<0.001 SOL"
        return f"{sign}{_strip_zeros(f'{magnitude:,.3f}')} SOL"

    if currency == "IDR":
        if magnitude >= 1_000_000_000:
            text, suffix = _id_number(float(_strip_zeros(f"{magnitude / 1_000_000_000:.1f}"))), "M"
        elif magnitude >= 1_000_000:
            text, suffix = _id_number(float(_strip_zeros(f"{magnitude / 1_000_000:.1f}"))), "JT"
        elif magnitude >= 1_000:
            text, suffix = _id_number(_round_half_up(magnitude / 1_000)), "K"
        else:
            text, suffix = _id_number(_round_half_up(magnitude)), ""
        return f"{sign}Rp{text}{suffix}"

    rounded = _round_half_up(magnitude, 2)
    if rounded == 0:
        sign = ""
    return f"{sign}${_strip_zeros(f'{rounded:.2f}')}"


def format_percent(value: float) -> str:
    return f"{value:.2f}%"


def format_duration(seconds: float | None) -> str:
    """``HH:MM:SS`` with unbounded hours; ``N/A`` when unknown."""
    if seconds is None or seconds < 0:
        return "N/A"
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
