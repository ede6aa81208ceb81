"""Fan-out portfolio valuation and currency totals."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ..config import ValuationConfig
from ..formatting import convert_usd
from ..models import ExchangeRates, PortfolioTotals, PositionSnapshot
from ..protocols.dlmm.parser import calc_upnl_percent
from .locator import PositionLocator
from .valuation import ValuationEngine

logger = logging.getLogger(__name__)


def compute_totals(
    snapshots: Iterable[PositionSnapshot], currency: str, rates: ExchangeRates
) -> PortfolioTotals:
    """Sum snapshots in USD, then convert.

    The UPNL percentage is taken over the summed net deposit, not averaged
    across positions.
    """
    snapshots = list(snapshots)
    tvl = sum(s.tvl_usd for s in snapshots)
    claimed = sum(s.claimed_fee_usd for s in snapshots)
    unclaimed = sum(s.unclaimed_fee_usd for s in snapshots)
    upnl = sum(s.upnl.usd for s in snapshots)
    net_deposit = sum(s.net_deposit_usd for s in snapshots)

    return PortfolioTotals(
        currency=currency.upper(),
        tvl=convert_usd(tvl, currency, rates),
        claimed_fee=convert_usd(claimed, currency, rates),
        unclaimed_fee=convert_usd(unclaimed, currency, rates),
        upnl=convert_usd(upnl, currency, rates),
        upnl_percent=calc_upnl_percent(upnl, net_deposit, tvl + claimed + unclaimed),
        net_deposit_usd=net_deposit,
        position_count=len(snapshots),
    )


class PortfolioAggregator:
    """Locate an owner's positions and value each one concurrently."""

    def __init__(
        self,
        locator: PositionLocator,
        engine: ValuationEngine,
        config: ValuationConfig | None = None,
    ) -> None:
        self._locator = locator
        self._engine = engine
        self._stagger = (config or ValuationConfig()).stagger_seconds

    async def _valuate(
        self, index: int, position_id: str, owner: str, rates: ExchangeRates
    ) -> PositionSnapshot | None:
        if index and self._stagger:
            await asyncio.sleep(self._stagger * index)
        try:
            return await self._engine.valuate(position_id, owner, rates)
        except Exception:
            logger.exception("Valuation failed for position %s", position_id)
            return None

    async def aggregate(self, owner: str, rates: ExchangeRates) -> list[PositionSnapshot]:
        """Snapshots in located order; failed, foreign and dust positions are dropped."""
        position_ids = await self._locator.locate_positions(owner)
        if not position_ids:
            return []

        results = await asyncio.gather(
            *(
                self._valuate(index, position_id, owner, rates)
                for index, position_id in enumerate(position_ids)
            )
        )
        snapshots = [snapshot for snapshot in results if snapshot is not None]
        logger.info(
            "Valued %d of %d position(s) for %s", len(snapshots), len(position_ids), owner
        )
        return snapshots
