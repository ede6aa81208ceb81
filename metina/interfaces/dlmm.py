"""DLMM reader protocol: decoded on-chain DLMM state.

Every method returns ``None`` (or an empty mapping) when the data cannot be
read; callers fall back to indexer data.
"""
from typing import Any, Protocol

from ..models import FeeAmounts, OnchainPosition


class DlmmReader(Protocol):
    async def get_positions_by_user(self, owner: str) -> dict[str, Any]:
        """Positions per pair address, in whatever shape the decoder returns."""
        ...

    async def get_position(self, pair_address: str, position_address: str) -> OnchainPosition | None: ...

    async def get_pool_reserves(
        self, pair_address: str, reserve_accounts: tuple[str, str] | None = None
    ) -> tuple[float, float] | None:
        """Raw (reserve_x, reserve_y) of the pool."""
        ...

    async def get_unclaimed_lp_fee(
        self, pair_address: str, position_address: str
    ) -> FeeAmounts | None: ...

    async def get_claimable_fees(
        self, pair_address: str, position_address: str
    ) -> FeeAmounts | None: ...
