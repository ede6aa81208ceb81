"""Meteora DAMM v2 pool API client."""
from __future__ import annotations

import logging
import ssl
from typing import Any
from urllib.parse import quote

import aiohttp
import certifi

from ..config import MeteoraConfig
from ..models import LaunchCheck

logger = logging.getLogger(__name__)


class DammClient:
    """Query DAMM v2 pools by token mint."""

    def __init__(self, config: MeteoraConfig) -> None:
        self.api_base = config.damm_api_base.rstrip("/")
        self.api_key = config.api_key
        self.timeout = config.timeout

    async def check_token_launched(self, mint: str) -> LaunchCheck:
        """Return whether a pool exists for ``mint``; failures report no pool."""
        url = f"{self.api_base}/pools?token_a_mint={quote(mint)}"
        headers = {"x-api-key": self.api_key} if self.api_key else {}

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        logger.warning("DAMM pool lookup failed: HTTP %s", response.status)
                        return LaunchCheck(has_pool=False, error=f"HTTP {response.status}")
                    data = await response.json()
        except Exception as e:
            logger.warning("DAMM pool lookup failed: %s", e)
            return LaunchCheck(has_pool=False, error=str(e))

        return parse_pools(data)


def parse_pools(data: Any) -> LaunchCheck:
    """Launch check from a ``/pools`` response; unexpected shapes mean no pool."""
    if not isinstance(data, dict):
        logger.warning("Unexpected DAMM response type: %s", type(data).__name__)
        return LaunchCheck(has_pool=False, error="unexpected response")

    pools = data.get("data")
    pool_info = pools[0] if isinstance(pools, list) and pools and isinstance(pools[0], dict) else None
    try:
        total = int(data.get("total") or 0)
    except (TypeError, ValueError):
        total = len(pools) if isinstance(pools, list) else 0
    return LaunchCheck(has_pool=pool_info is not None, pool_info=pool_info, total=total)
