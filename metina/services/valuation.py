"""Values one DLMM position into a PositionSnapshot."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from ..config import LAMPORTS_PER_SOL, ValuationConfig
from ..interfaces.dlmm import DlmmReader
from ..interfaces.indexer import PositionIndexer
from ..interfaces.quote import QuoteSource
from ..models import (
    ExchangeRates,
    FeeAmounts,
    IndexedPosition,
    LedgerEvent,
    OnchainPosition,
    PairInfo,
    PositionSnapshot,
    TokenInfo,
    TokenPrices,
)
from ..protocols.dlmm import parser

logger = logging.getLogger(__name__)


class ValuationEngine:
    """Reconstruct a position's value, fees and UPNL from indexer, chain and quotes.

    Every upstream read defaults independently; a missing source lowers
    precision but never aborts the valuation. Only unexpected errors propagate,
    to be handled at the per-position boundary by the caller.
    """

    def __init__(
        self,
        indexer: PositionIndexer,
        quotes: QuoteSource | None = None,
        dlmm: DlmmReader | None = None,
        config: ValuationConfig | None = None,
    ) -> None:
        self._indexer = indexer
        self._quotes = quotes
        self._dlmm = dlmm
        self._config = config or ValuationConfig()

    async def _read(self, name: str, call: Callable[[DlmmReader], Awaitable[Any]]) -> Any:
        """Run an on-chain read; unavailable reader or any failure → None."""
        if self._dlmm is None:
            return None
        try:
            return await call(self._dlmm)
        except Exception as e:
            logger.warning("On-chain %s failed: %s", name, e)
            return None

    async def valuate(
        self, position_id: str, owner: str, rates: ExchangeRates
    ) -> PositionSnapshot | None:
        """Snapshot of ``position_id`` or None when it is unknown, foreign, empty or dust."""
        position, deposits, withdraws, claim_fees = await asyncio.gather(
            self._indexer.get_position(position_id),
            self._indexer.get_deposits(position_id),
            self._indexer.get_withdraws(position_id),
            self._indexer.get_claim_fees(position_id),
        )
        if position is None:
            logger.debug("Position %s unknown to indexer", position_id)
            return None
        if owner and position.owner and position.owner.lower() != owner.lower():
            logger.debug("Position %s is owned by %s, not %s", position_id, position.owner, owner)
            return None

        pair_address = position.pair_address
        pair, onchain = await asyncio.gather(
            self._indexer.get_pair(pair_address),
            self._read("position read", lambda r: r.get_position(pair_address, position_id)),
        )

        if not deposits and not (onchain is not None and onchain.has_liquidity):
            logger.debug("Position %s has no deposits and no liquidity", position_id)
            return None

        pair_info = pair or PairInfo(address=pair_address)
        reserve_accounts = pair_info.reserve_accounts
        reserves = await self._read(
            "reserve read", lambda r: r.get_pool_reserves(pair_address, reserve_accounts)
        )
        sol_price = parser.effective_sol_price(rates.sol)

        total_deposit = parser.sum_usd(deposits)
        total_withdraw = parser.sum_usd(withdraws)
        net_deposit = total_deposit - total_withdraw

        balance_source, balances = self._balances(position, onchain, pair_info)
        prices = self._resolve_prices(pair, pair_info, reserves, deposits, sol_price)
        tvl = self._tvl(balances, prices, net_deposit)
        if tvl < self._config.dust_threshold_usd:
            logger.debug("Position %s below dust threshold (tvl $%.4f)", position_id, tvl)
            return None

        claimed_fee = self._claimed_fee_usd(position)
        unclaimed_fee = await self._unclaimed_fee_usd(
            position_id, pair_info, onchain, claim_fees, prices, sol_price
        )

        symbol_x, symbol_y = parser.token_symbols(pair)
        balance_x, balance_y = balances if balances is not None else (0.0, 0.0)
        return PositionSnapshot(
            address=position_id,
            pair_address=pair_address,
            owner=position.owner or owner,
            total_deposit_usd=total_deposit,
            total_withdraw_usd=total_withdraw,
            current_balance_x=balance_x,
            current_balance_y=balance_y,
            tvl_usd=tvl,
            claimed_fee_usd=claimed_fee,
            unclaimed_fee_usd=unclaimed_fee,
            upnl=parser.calc_upnl(tvl, net_deposit, rates.sol, unclaimed_fee, claimed_fee),
            token_x_symbol=symbol_x,
            token_y_symbol=symbol_y,
            token_x_price_usd=prices.x,
            token_y_price_usd=prices.y,
            pair_name=parser.pair_display_name(pair),
            balance_source=balance_source,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def _balances(
        position: IndexedPosition, onchain: OnchainPosition | None, pair: PairInfo
    ) -> tuple[str, tuple[float, float] | None]:
        """Human-scaled balances and where they came from: on-chain, then indexer."""
        if onchain is not None:
            source = "onchain"
            balance_x = parser.scale_amount(onchain.total_x_amount, pair.token_x.decimals)
            balance_y = parser.scale_amount(onchain.total_y_amount, pair.token_y.decimals)
        elif position.token_x_amount is not None or position.token_y_amount is not None:
            source = "indexer"
            balance_x = position.token_x_amount or 0.0
            balance_y = position.token_y_amount or 0.0
        else:
            return "none", None
        return source, (max(0.0, balance_x), max(0.0, balance_y))

    @staticmethod
    def _resolve_prices(
        pair: PairInfo | None,
        pair_info: PairInfo,
        reserves: tuple[float, float] | None,
        deposits: list[LedgerEvent],
        sol_price: float,
    ) -> TokenPrices:
        candidates: list[TokenPrices] = []
        if reserves is not None:
            reserve_x, reserve_y = reserves
            candidates.append(
                parser.price_from_reserves(reserve_x, reserve_y, pair_info, sol_price, "onchain")
            )
        if pair is not None:
            candidates.append(
                parser.price_from_reserves(
                    pair.reserve_x_amount, pair.reserve_y_amount, pair, sol_price, "indexer"
                )
            )
        candidates.append(parser.price_from_last_deposit(deposits, pair, sol_price))
        return parser.merge_prices(candidates)

    @staticmethod
    def _tvl(
        balances: tuple[float, float] | None, prices: TokenPrices, net_deposit: float
    ) -> float:
        """Balances at resolved prices; net deposit when balances cannot be valued."""
        if balances is None:
            return max(0.0, net_deposit)
        balance_x, balance_y = balances
        unpriced = (balance_x > 0 and prices.x <= 0) or (balance_y > 0 and prices.y <= 0)
        if unpriced:
            return max(0.0, net_deposit)
        return parser.calc_tvl(balance_x, balance_y, prices)

    @staticmethod
    def _claimed_fee_usd(position: IndexedPosition) -> float:
        return position.total_fee_usd_claimed or 0.0

    async def _fee_amounts(
        self, pair_address: str, position_id: str, onchain: OnchainPosition | None
    ) -> FeeAmounts | None:
        fees = await self._read(
            "unclaimed fee read", lambda r: r.get_unclaimed_lp_fee(pair_address, position_id)
        )
        if fees is not None:
            return fees
        fees = await self._read(
            "claimable fee read", lambda r: r.get_claimable_fees(pair_address, position_id)
        )
        if fees is not None:
            return fees
        if onchain is not None:
            # Raw position fields may hold lifetime totals.
            return FeeAmounts(onchain.fee_x, onchain.fee_y, unclaimed_only=False)
        return None

    async def _unclaimed_fee_usd(
        self,
        position_id: str,
        pair: PairInfo,
        onchain: OnchainPosition | None,
        claim_fees: list[LedgerEvent],
        prices: TokenPrices,
        sol_price: float,
    ) -> float:
        fees = await self._fee_amounts(pair.address, position_id, onchain)
        if fees is None:
            return parser.sum_usd(claim_fees)

        fee_x, fee_y = parser.unclaimed_fee_amounts(fees, onchain)
        value_x = await self._fee_value_usd(fee_x, pair.token_x, prices.x, sol_price)
        value_y = await self._fee_value_usd(fee_y, pair.token_y, prices.y, sol_price)
        return value_x + value_y

    async def _fee_value_usd(
        self, raw_amount: int, token: TokenInfo, price_usd: float, sol_price: float
    ) -> float:
        """USD value of a raw fee amount.

        SOL fees are lamports. Other tokens are quoted into SOL; without a
        quote the resolved USD price is used.
        """
        if raw_amount <= 0:
            return 0.0
        if parser.is_sol_mint(token.mint):
            return raw_amount / LAMPORTS_PER_SOL * sol_price

        amount = parser.scale_amount(raw_amount, token.decimals)
        if self._quotes is not None and token.mint:
            sol_amount = await self._quotes.convert_to_sol(token.mint, amount, token.decimals)
            if sol_amount > 0:
                return sol_amount * sol_price
        return amount * price_usd
