"""Portfolio refresh scheduler with stale-result protection."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..models import ExchangeRates, PositionSnapshot
from ..oracles.rates import RatesProvider
from .portfolio import PortfolioAggregator

logger = logging.getLogger(__name__)


class RefreshStatus(str, Enum):
    OK = "ok"
    NO_POSITIONS = "no_positions"
    FAILED = "failed"
    STALE = "stale"


@dataclass(frozen=True)
class RefreshOutcome:
    status: RefreshStatus
    epoch: int
    snapshots: tuple[PositionSnapshot, ...] = ()
    rates: ExchangeRates | None = None
    error: str = ""


class PortfolioMonitor:
    """Keeps the latest snapshot set for one portfolio.

    Every refresh takes a new epoch. A refresh that finishes after a newer one
    started is discarded, and a failed refresh leaves the previous snapshots
    in place.
    """

    def __init__(self, aggregator: PortfolioAggregator, rates: RatesProvider) -> None:
        self._aggregator = aggregator
        self._rates = rates
        self._epoch = 0
        self._snapshots: tuple[PositionSnapshot, ...] = ()
        self._stop_event = asyncio.Event()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def snapshots(self) -> tuple[PositionSnapshot, ...]:
        return self._snapshots

    @property
    def rates(self) -> ExchangeRates:
        return self._rates.current

    async def refresh_rates(self) -> ExchangeRates:
        return await self._rates.refresh()

    async def refresh(self, owner: str) -> RefreshOutcome:
        self._epoch += 1
        epoch = self._epoch
        rates = self._rates.current

        try:
            snapshots = await self._aggregator.aggregate(owner, rates)
        except Exception as e:
            logger.exception("Portfolio refresh %d failed", epoch)
            if epoch != self._epoch:
                return RefreshOutcome(RefreshStatus.STALE, epoch, self._snapshots, rates)
            return RefreshOutcome(RefreshStatus.FAILED, epoch, self._snapshots, rates, str(e))

        if epoch != self._epoch:
            logger.info("Discarding refresh %d, superseded by %d", epoch, self._epoch)
            return RefreshOutcome(RefreshStatus.STALE, epoch, self._snapshots, rates)

        self._snapshots = tuple(snapshots)
        status = RefreshStatus.OK if snapshots else RefreshStatus.NO_POSITIONS
        return RefreshOutcome(status, epoch, self._snapshots, rates)

    def stop(self) -> None:
        self._stop_event.set()

    async def run_continuous(
        self,
        owner: str,
        interval_seconds: float,
        on_refresh: Callable[[RefreshOutcome], None] | None = None,
    ) -> None:
        """Refresh every ``interval_seconds`` until :meth:`stop` is called."""
        logger.info("Starting portfolio refresh every %.1fs for %s", interval_seconds, owner)
        self._stop_event.clear()
        await self.refresh_rates()

        while not self._stop_event.is_set():
            outcome = await self.refresh(owner)
            if on_refresh is not None:
                on_refresh(outcome)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                continue

        logger.info("Portfolio refresh stopped")
