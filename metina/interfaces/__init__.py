"""Protocol interfaces for the DLMM portfolio service."""
from .chain import ChainClient
from .dlmm import DlmmReader
from .indexer import PositionIndexer
from .quote import QuoteSource

__all__ = ["ChainClient", "DlmmReader", "PositionIndexer", "QuoteSource"]
