"""On-chain DLMM reader backed by Solana JSON-RPC account reads."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import base58
from solders.pubkey import Pubkey

from ...chains.solana.client import SolanaClient, account_bytes
from ...config import DLMM_PROGRAM_ID
from ...models import FeeAmounts, OnchainPosition
from . import accounts
from .accounts import BinArray, PositionAccount

logger = logging.getLogger(__name__)


def bin_array_address(lb_pair: str, index: int, program_id: str = DLMM_PROGRAM_ID) -> str:
    """PDA of the bin array holding bins ``[index * 70, index * 70 + 69]``."""
    address, _ = Pubkey.find_program_address(
        [
            b"bin_array",
            bytes(Pubkey.from_string(lb_pair)),
            index.to_bytes(8, "little", signed=True),
        ],
        Pubkey.from_string(program_id),
    )
    return str(address)


class SolanaDlmmReader:
    """Decode DLMM position, bin array and pair accounts.

    Reads return None when an account is missing or does not decode, so the
    valuation engine can fall back to indexer data.
    """

    def __init__(self, client: SolanaClient, program_id: str = DLMM_PROGRAM_ID) -> None:
        self._client = client
        self._program_id = program_id

    async def get_positions_by_user(self, owner: str) -> dict[str, Any]:
        """Owner's position accounts grouped by pair address."""
        found = await self._client.find_program_accounts(
            self._program_id,
            [
                {
                    "memcmp": {
                        "offset": 0,
                        "bytes": base58.b58encode(accounts.POSITION_V2_DISCRIMINATOR).decode(),
                    }
                },
                {"memcmp": {"offset": accounts.POSITION_OWNER_OFFSET, "bytes": owner}},
            ],
        )

        by_pair: dict[str, list[dict[str, Any]]] = {}
        for entry in found:
            if not isinstance(entry, dict) or not entry.get("pubkey"):
                continue
            data = account_bytes(entry.get("account"))
            if data is None:
                continue
            try:
                position = accounts.decode_position(data)
            except accounts.AccountDecodeError as e:
                logger.debug("Skipping account %s: %s", entry["pubkey"], e)
                continue
            by_pair.setdefault(position.lb_pair, []).append({"publicKey": str(entry["pubkey"])})
        return by_pair

    async def _load(
        self, pair_address: str, position_address: str
    ) -> tuple[PositionAccount, dict[int, BinArray]] | None:
        data = await self._client.get_account_data(position_address)
        if data is None:
            return None
        try:
            position = accounts.decode_position(data)
        except accounts.AccountDecodeError as e:
            logger.warning("Position %s did not decode: %s", position_address, e)
            return None
        if pair_address and position.lb_pair != pair_address:
            logger.warning(
                "Position %s belongs to pair %s, not %s",
                position_address,
                position.lb_pair,
                pair_address,
            )
            return None

        indexes = accounts.bin_array_indexes(position.lower_bin_id, position.upper_bin_id)
        raw_arrays = await self._client.get_multiple_account_data(
            [bin_array_address(position.lb_pair, i, self._program_id) for i in indexes]
        )

        arrays: dict[int, BinArray] = {}
        for raw in raw_arrays:
            if raw is None:
                continue
            try:
                array = accounts.decode_bin_array(raw)
            except accounts.AccountDecodeError as e:
                logger.warning("Bin array for %s did not decode: %s", position_address, e)
                continue
            arrays[array.index] = array
        if len(arrays) < len(indexes):
            logger.warning(
                "Position %s: %d of %d bin arrays readable", position_address, len(arrays), len(indexes)
            )
            return None
        return position, arrays

    async def get_position(self, pair_address: str, position_address: str) -> OnchainPosition | None:
        state = await self._load(pair_address, position_address)
        if state is None:
            return None
        position, arrays = state
        return accounts.to_onchain_position(position_address, position, arrays)

    async def get_pool_reserves(
        self, pair_address: str, reserve_accounts: tuple[str, str] | None = None
    ) -> tuple[float, float] | None:
        """Raw balances of the pair's reserve token accounts.

        Reserve addresses come from ``reserve_accounts`` when given, else from
        the decoded pair account.
        """
        if reserve_accounts is None:
            data = await self._client.get_account_data(pair_address)
            if data is None:
                return None
            try:
                pair = accounts.decode_lb_pair(data)
            except accounts.AccountDecodeError as e:
                logger.warning("Pair %s did not decode: %s", pair_address, e)
                return None
            reserve_accounts = (pair.reserve_x, pair.reserve_y)

        reserve_x, reserve_y = await asyncio.gather(
            self._client.get_token_account_balance(reserve_accounts[0]),
            self._client.get_token_account_balance(reserve_accounts[1]),
        )
        if reserve_x is None or reserve_y is None:
            return None
        return float(reserve_x), float(reserve_y)

    async def get_unclaimed_lp_fee(
        self, pair_address: str, position_address: str
    ) -> FeeAmounts | None:
        state = await self._load(pair_address, position_address)
        if state is None:
            return None
        position, arrays = state
        return accounts.position_fees(position, arrays)

    async def get_claimable_fees(
        self, pair_address: str, position_address: str
    ) -> FeeAmounts | None:
        """Fees already settled into the position; no bin arrays needed."""
        data = await self._client.get_account_data(position_address)
        if data is None:
            return None
        try:
            return accounts.pending_fees(accounts.decode_position(data))
        except accounts.AccountDecodeError as e:
            logger.warning("Position %s did not decode: %s", position_address, e)
            return None
