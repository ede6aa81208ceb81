"""Meteora DLMM account decoding, parsing and valuation math."""
from . import accounts, parser, shapes
from .reader import SolanaDlmmReader

__all__ = ["accounts", "parser", "shapes", "SolanaDlmmReader"]
