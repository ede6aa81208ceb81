"""Position indexer protocol — the DLMM indexing API abstraction."""
from typing import Protocol

from ..models import IndexedPosition, LedgerEvent, PairInfo


class PositionIndexer(Protocol):
    async def get_position(self, position_address: str) -> IndexedPosition | None: ...

    async def get_deposits(self, position_address: str) -> list[LedgerEvent]: ...

    async def get_withdraws(self, position_address: str) -> list[LedgerEvent]: ...

    async def get_claim_fees(self, position_address: str) -> list[LedgerEvent]: ...

    async def get_claim_rewards(self, position_address: str) -> list[LedgerEvent]: ...

    async def get_pair(self, pair_address: str) -> PairInfo | None: ...
