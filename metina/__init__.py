"""Meteora DLMM position locator, valuation and portfolio monitor."""

__version__ = "0.1.0"
