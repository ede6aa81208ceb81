"""Chain client protocol — Solana JSON-RPC abstraction."""
from typing import Any, Protocol


class ChainClient(Protocol):
    """Abstract interface for the RPC reads the locator and PNL card need."""

    async def get_program_accounts(
        self, program_id: str, owner: str, encoding: str = "base64"
    ) -> list[dict[str, Any]]: ...

    async def get_signatures_for_address(
        self, address: str, limit: int = 50
    ) -> list[dict[str, Any]]: ...

    async def get_transaction(self, signature: str) -> dict[str, Any] | None: ...
