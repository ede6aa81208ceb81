"""Waits for a DAMM v2 pool to appear for a token."""
from __future__ import annotations

import asyncio
import logging
import math

from ..config import LaunchConfig
from ..indexers.damm import DammClient
from ..models import LaunchCheck, LaunchResult

logger = logging.getLogger(__name__)


class LaunchMonitor:
    def __init__(self, damm: DammClient, config: LaunchConfig | None = None) -> None:
        self._damm = damm
        self._config = config or LaunchConfig()

    async def check_token_launched(self, mint: str) -> LaunchCheck:
        return await self._damm.check_token_launched(mint)

    async def wait_until_launched(
        self,
        mint: str,
        interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ) -> LaunchResult:
        """Poll until a pool exists or the attempt budget is spent.

        At most ``floor(timeout / interval)`` checks are made, with at least one.
        """
        interval = interval_seconds if interval_seconds is not None else self._config.interval_seconds
        timeout = timeout_seconds if timeout_seconds is not None else self._config.timeout_seconds
        if interval <= 0:
            raise ValueError("interval_seconds must be positive")

        max_attempts = max(1, math.floor(timeout / interval))
        logger.info("Watching %s for a pool (%d attempts, every %.1fs)", mint, max_attempts, interval)

        for attempt in range(1, max_attempts + 1):
            check = await self.check_token_launched(mint)
            if check.has_pool:
                logger.info("Pool found for %s after %d attempt(s)", mint, attempt)
                return LaunchResult(True, attempt, max_attempts, check.pool_info)
            if attempt < max_attempts:
                await asyncio.sleep(interval)

        logger.info("No pool for %s after %d attempts", mint, max_attempts)
        return LaunchResult(False, max_attempts, max_attempts)
