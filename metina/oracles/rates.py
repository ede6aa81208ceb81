"""Exchange-rate provider: USD→IDR and the SOL/USD price."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import RatesConfig
from ..models import ExchangeRates

logger = logging.getLogger(__name__)


def _positive(value: Any) -> float | None:
    """A positive rate from an upstream value, or None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _field(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class RatesProvider:
    """Holds the current ``ExchangeRates`` and refreshes them from public APIs.

    Each refresh replaces ``current`` with a new immutable value; a source that
    fails leaves the corresponding rate at its previous value.
    """

    def __init__(self, config: RatesConfig) -> None:
        self._config = config
        self.current = ExchangeRates(idr=config.default_idr, sol=config.default_sol)

    async def _get_json(self, url: str) -> Any | None:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self._config.timeout)
                ) as response:
                    if response.status != 200:
                        logger.warning("Rate request to %s failed: HTTP %s", url, response.status)
                        return None
                    return await response.json()
        except Exception as e:
            logger.warning("Rate request to %s failed: %s", url, e)
            return None

    async def fetch_idr_rate(self) -> float | None:
        data = await self._get_json(self._config.fiat_url)
        return _positive(_field(data, "rates", "IDR"))

    async def fetch_sol_price(self) -> float | None:
        """SOL/USD from CoinGecko, then Binance, then Jupiter."""
        sources = (
            (self._config.coingecko_url, ("solana", "usd")),
            (self._config.binance_url, ("price",)),
            (self._config.jupiter_price_url, ("data", "SOL", "price")),
        )
        for url, path in sources:
            price = _positive(_field(await self._get_json(url), *path))
            if price is not None:
                return price

        logger.warning("All SOL price sources failed, keeping $%.2f", self.current.sol)
        return None

    async def refresh(self) -> ExchangeRates:
        idr = await self.fetch_idr_rate()
        sol = await self.fetch_sol_price()
        self.current = ExchangeRates(
            usd=1.0,
            idr=idr if idr and idr > 0 else self.current.idr,
            sol=sol if sol and sol > 0 else self.current.sol,
        )
        logger.info(
            "Exchange rates: 1 USD = %.2f IDR, 1 SOL = $%.2f",
            self.current.idr,
            self.current.sol,
        )
        return self.current
