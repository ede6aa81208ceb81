"""Jupiter swap-quote client, used to value fee tokens in SOL."""
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import LAMPORTS_PER_SOL, WRAPPED_SOL_MINT, JupiterConfig

logger = logging.getLogger(__name__)

# Below this many whole tokens a quote is not worth requesting.
MIN_QUOTE_AMOUNT = 0.000001


class JupiterQuoteClient:
    """Fetch swap quotes from the Jupiter API."""

    def __init__(self, config: JupiterConfig) -> None:
        self.quote_api_base = config.quote_api_base.rstrip("/")
        self.slippage_bps = config.slippage_bps
        self.timeout = config.timeout

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int | None = None,
    ) -> dict[str, Any] | None:
        """Raw quote response or None on failure."""
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps if slippage_bps is not None else self.slippage_bps),
            "restrictIntermediateTokens": "true",
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    f"{self.quote_api_base}/quote",
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        logger.warning("Jupiter quote failed: HTTP %s", response.status)
                        return None
                    return await response.json()
        except Exception as e:
            logger.warning("Error fetching Jupiter quote: %s", e)
            return None

    async def convert_to_sol(self, mint: str, amount: float, decimals: int = 6) -> float:
        """SOL realizable by swapping ``amount`` whole tokens of ``mint``; 0 when unknown."""
        if amount < MIN_QUOTE_AMOUNT:
            return 0.0

        raw_amount = int(amount * (10**decimals))
        if raw_amount <= 0:
            return 0.0

        quote = await self.get_quote(mint, WRAPPED_SOL_MINT, raw_amount)
        if not isinstance(quote, dict) or not quote.get("outAmount"):
            logger.debug("No quote for %s amount %s (raw %d)", mint, amount, raw_amount)
            return 0.0

        try:
            sol_amount = int(quote["outAmount"]) / LAMPORTS_PER_SOL
        except (TypeError, ValueError):
            return 0.0

        logger.debug("Quoted %s %s → %.9f SOL", amount, mint, sol_amount)
        return sol_amount
