"""Meteora DLMM indexing API client."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import MeteoraConfig
from ..models import IndexedPosition, LedgerEvent, LedgerKind, PairInfo
from ..protocols.dlmm import parser

logger = logging.getLogger(__name__)


class MeteoraClient:
    """Fetch-or-default wrapper around the DLMM indexing API."""

    def __init__(self, config: MeteoraConfig) -> None:
        self.api_base = config.api_base.rstrip("/")
        self.api_key = config.api_key
        self.timeout = config.timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def get_json(self, path: str, default: Any = None) -> Any:
        """GET ``path`` and decode JSON; any failure returns ``default``."""
        url = f"{self.api_base}{path}"
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url,
                    headers=self._headers(),
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        logger.warning("Indexer request %s failed: HTTP %s", path, response.status)
                        return default
                    return await response.json()
        except Exception as e:
            logger.warning("Indexer request %s failed: %s", path, e)
            return default

    async def get_position(self, position_id: str) -> IndexedPosition | None:
        return parser.parse_position(await self.get_json(f"/position/{position_id}"))

    async def _get_ledger(self, position_id: str, endpoint: str, kind: LedgerKind) -> list[LedgerEvent]:
        data = await self.get_json(f"/position/{position_id}/{endpoint}", default=[])
        return parser.parse_ledger(data, kind)

    async def get_deposits(self, position_id: str) -> list[LedgerEvent]:
        return await self._get_ledger(position_id, "deposits", LedgerKind.DEPOSIT)

    async def get_withdraws(self, position_id: str) -> list[LedgerEvent]:
        return await self._get_ledger(position_id, "withdraws", LedgerKind.WITHDRAW)

    async def get_claim_fees(self, position_id: str) -> list[LedgerEvent]:
        return await self._get_ledger(position_id, "claim_fees", LedgerKind.CLAIM_FEE)

    async def get_claim_rewards(self, position_id: str) -> list[LedgerEvent]:
        return await self._get_ledger(position_id, "claim_rewards", LedgerKind.CLAIM_REWARD)

    async def get_pair(self, pair_address: str) -> PairInfo | None:
        if not pair_address:
            return None
        return parser.parse_pair(await self.get_json(f"/pair/{pair_address}"))
