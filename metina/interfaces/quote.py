"""Quote source protocol — token→SOL conversion."""
from typing import Protocol


class QuoteSource(Protocol):
    async def convert_to_sol(self, mint: str, amount: float, decimals: int = 6) -> float: ...
