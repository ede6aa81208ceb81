"""Lifetime profit/loss card for the position touched by a transaction."""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Iterable

from ..config import DLMM_PROGRAM_ID
from ..errors import UserInputError
from ..formatting import format_duration
from ..interfaces.chain import ChainClient
from ..interfaces.indexer import PositionIndexer
from ..models import ExchangeRates, LedgerEvent, PnlCard
from ..protocols.dlmm import parser
from .valuation import ValuationEngine

logger = logging.getLogger(__name__)

_TX_LINK_PATTERNS = (
    re.compile(r"solscan\.io/tx/([1-9A-HJ-NP-Za-km-z]+)"),
    re.compile(r"solbeach\.io/tx/([1-9A-HJ-NP-Za-km-z]+)"),
    re.compile(r"explorer\.solana\.com/tx/([1-9A-HJ-NP-Za-km-z]+)"),
    re.compile(r"solana\.fm/tx/([1-9A-HJ-NP-Za-km-z]+)"),
    re.compile(r"oklink\.com/sol/tx/([1-9A-HJ-NP-Za-km-z]+)"),
)


def extract_tx_id(value: str | None) -> str:
    """Transaction signature from a raw id or an explorer link."""
    text = (value or "").strip()
    if not text:
        raise UserInputError("Please enter a transaction ID")

    for pattern in _TX_LINK_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return text


def _account_key(key: Any) -> str:
    if isinstance(key, dict):
        return str(key.get("pubkey", ""))
    return str(key)


def find_position_address(transaction: dict[str, Any], program_id: str = DLMM_PROGRAM_ID) -> str | None:
    """First account of the last top-level instruction addressed to ``program_id``.

    Handles parsed instructions (``programId``/``accounts`` as addresses) and
    compiled ones (``programIdIndex``/``accounts`` as indexes into the keys).
    """
    message = (transaction.get("transaction") or {}).get("message") or {}
    keys = [_account_key(k) for k in message.get("accountKeys") or []]

    position: str | None = None
    for instruction in message.get("instructions") or []:
        if "programId" in instruction:
            target = str(instruction["programId"])
        elif "programIdIndex" in instruction and instruction["programIdIndex"] < len(keys):
            target = keys[instruction["programIdIndex"]]
        else:
            continue
        if target != program_id:
            continue

        accounts = instruction.get("accounts") or []
        if not accounts:
            continue
        first = accounts[0]
        if isinstance(first, int):
            position = keys[first] if first < len(keys) else None
        else:
            position = str(first)
    return position


def event_time_range(
    events: Iterable[LedgerEvent], block_time: int | None = None
) -> tuple[int | None, int | None]:
    """Earliest and latest ledger timestamps.

    With fewer than two timestamped events the close is the transaction's
    ``block_time`` when known.
    """
    timestamps = sorted(e.onchain_timestamp for e in events if e.onchain_timestamp is not None)
    if not timestamps:
        return None, block_time
    if len(timestamps) < 2 and block_time is not None:
        return timestamps[0], block_time
    return timestamps[0], timestamps[-1]


class PnlCardBuilder:
    def __init__(
        self,
        chain: ChainClient,
        indexer: PositionIndexer,
        engine: ValuationEngine | None = None,
        program_id: str = DLMM_PROGRAM_ID,
    ) -> None:
        self._chain = chain
        self._indexer = indexer
        self._engine = engine
        self._program_id = program_id

    async def build(self, tx_input: str, rates: ExchangeRates) -> PnlCard:
        tx_id = extract_tx_id(tx_input)

        transaction = await self._chain.get_transaction(tx_id)
        if not transaction:
            raise UserInputError(f"Transaction not found: {tx_id}")

        position_id = find_position_address(transaction, self._program_id)
        if not position_id:
            raise UserInputError("Transaction has no DLMM position instruction")

        position, deposits, withdraws, claim_fees, claim_rewards = await asyncio.gather(
            self._indexer.get_position(position_id),
            self._indexer.get_deposits(position_id),
            self._indexer.get_withdraws(position_id),
            self._indexer.get_claim_fees(position_id),
            self._indexer.get_claim_rewards(position_id),
        )
        if position is None:
            raise UserInputError(f"Position not found: {position_id}")

        pair = await self._indexer.get_pair(position.pair_address)

        claimed_fee = (
            position.total_fee_usd_claimed
            if position.total_fee_usd_claimed is not None
            else parser.sum_usd(claim_fees)
        )
        claimed_reward = position.total_reward_usd_claimed or parser.sum_usd(claim_rewards)

        tvl = 0.0
        unclaimed_fee = 0.0
        is_closed = True
        if self._engine is not None:
            snapshot = await self._engine.valuate(position_id, position.owner, rates)
            # Only measured balances mark a position as open.
            if snapshot is not None and snapshot.balance_source != "none":
                tvl = snapshot.tvl_usd
                unclaimed_fee = snapshot.unclaimed_fee_usd
                is_closed = False

        total_deposit = parser.sum_usd(deposits)
        total_withdraw = parser.sum_usd(withdraws)
        upnl = parser.calc_upnl(
            tvl,
            total_deposit - total_withdraw,
            rates.sol,
            unclaimed_fee,
            claimed_fee + claimed_reward,
        )

        open_time, close_time = event_time_range(
            [*deposits, *withdraws, *claim_fees, *claim_rewards],
            transaction.get("blockTime"),
        )
        duration = (
            format_duration(close_time - open_time)
            if open_time is not None and close_time is not None
            else "N/A"
        )

        symbol_x, symbol_y = parser.token_symbols(pair)
        logger.info("Built PNL card for position %s (tx %s)", position_id, tx_id)
        return PnlCard(
            transaction_id=tx_id,
            position_address=position_id,
            pair_name=parser.pair_display_name(pair),
            token_x_symbol=symbol_x,
            token_y_symbol=symbol_y,
            total_deposit_usd=total_deposit,
            total_withdraw_usd=total_withdraw,
            claimed_fee_usd=claimed_fee,
            claimed_reward_usd=claimed_reward,
            tvl_usd=tvl,
            unclaimed_fee_usd=unclaimed_fee,
            upnl=upnl,
            open_time=open_time,
            close_time=close_time,
            duration=duration,
            is_closed=is_closed,
        )
