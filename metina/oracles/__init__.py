"""Price and rate sources."""
from .jupiter import JupiterQuoteClient
from .rates import RatesProvider

__all__ = ["JupiterQuoteClient", "RatesProvider"]
