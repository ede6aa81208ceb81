"""Indexing API clients."""
from .damm import DammClient
from .meteora import MeteoraClient

__all__ = ["DammClient", "MeteoraClient"]
