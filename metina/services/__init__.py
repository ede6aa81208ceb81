"""Locator, valuation, aggregation and monitoring services."""
from .launch import LaunchMonitor
from .locator import PositionLocator
from .monitor import PortfolioMonitor, RefreshOutcome, RefreshStatus
from .pnl_card import PnlCardBuilder
from .portfolio import PortfolioAggregator, compute_totals
from .valuation import ValuationEngine

__all__ = [
    "LaunchMonitor",
    "PnlCardBuilder",
    "PortfolioAggregator",
    "PortfolioMonitor",
    "PositionLocator",
    "RefreshOutcome",
    "RefreshStatus",
    "ValuationEngine",
    "compute_totals",
]
