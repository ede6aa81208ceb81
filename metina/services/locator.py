"""Discovers DLMM position accounts owned by a wallet."""
from __future__ import annotations

import logging
from typing import Any

from ..config import DLMM_PROGRAM_ID, LocatorConfig
from ..interfaces.chain import ChainClient
from ..interfaces.dlmm import DlmmReader
from ..interfaces.indexer import PositionIndexer
from ..protocols.dlmm.shapes import flatten_identifiers

logger = logging.getLogger(__name__)


def account_keys(transaction: dict[str, Any]) -> list[str]:
    """Account addresses referenced by a transaction, as strings.

    Keys come either as plain strings or as ``{"pubkey": ...}`` objects
    depending on the encoding.
    """
    message = (transaction.get("transaction") or {}).get("message") or {}
    keys: list[str] = []
    for key in message.get("accountKeys") or []:
        if isinstance(key, str):
            keys.append(key)
        elif isinstance(key, dict) and key.get("pubkey"):
            keys.append(str(key["pubkey"]))
    return keys


class PositionLocator:
    """Find position identifiers for an owner.

    Strategies, first non-empty result wins:

    1. on-chain enumeration through the DLMM reader,
    2. ``getProgramAccounts`` filtered on the owner field,
    3. recent transaction history, validated against the indexer.
    """

    def __init__(
        self,
        chain: ChainClient,
        indexer: PositionIndexer,
        dlmm: DlmmReader | None = None,
        config: LocatorConfig | None = None,
        program_id: str = DLMM_PROGRAM_ID,
    ) -> None:
        self._chain = chain
        self._indexer = indexer
        self._dlmm = dlmm
        self._config = config or LocatorConfig()
        self._program_id = program_id

    async def locate_positions(self, owner: str) -> list[str]:
        for strategy in (self._from_enumeration, self._from_account_scan, self._from_history):
            try:
                found = await strategy(owner)
            except Exception as e:
                logger.warning("Position lookup via %s failed: %s", strategy.__name__, e)
                continue
            if found:
                logger.info("Found %d position(s) via %s", len(found), strategy.__name__)
                return found
        logger.info("No positions found for %s", owner)
        return []

    async def _from_enumeration(self, owner: str) -> list[str]:
        if self._dlmm is None:
            return []
        by_pair = await self._dlmm.get_positions_by_user(owner)
        if not isinstance(by_pair, dict):
            return []
        return flatten_identifiers(by_pair)

    async def _from_account_scan(self, owner: str) -> list[str]:
        accounts = await self._chain.get_program_accounts(self._program_id, owner)
        if not accounts:
            accounts = await self._chain.get_program_accounts(
                self._program_id, owner, encoding="jsonParsed"
            )

        found: dict[str, None] = {}
        for account in accounts:
            if isinstance(account, dict) and account.get("pubkey"):
                found.setdefault(str(account["pubkey"]), None)
        return list(found)

    async def _from_history(self, owner: str) -> list[str]:
        signatures = await self._chain.get_signatures_for_address(
            owner, limit=self._config.signature_limit
        )

        candidates: dict[str, None] = {}
        for entry in signatures:
            signature = entry.get("signature") if isinstance(entry, dict) else None
            if not signature:
                continue
            transaction = await self._chain.get_transaction(signature)
            if not transaction:
                continue
            for key in account_keys(transaction):
                if key != owner:
                    candidates.setdefault(key, None)

        owner_lower = owner.lower()
        found: list[str] = []
        for candidate in list(candidates)[: self._config.candidate_limit]:
            position = await self._indexer.get_position(candidate)
            if position is None:
                continue
            if position.owner.lower() != owner_lower:
                logger.debug("Discarding %s: owned by %s", candidate, position.owner)
                continue
            found.append(candidate)
        return found
