"""Solana JSON-RPC client with endpoint fallback."""
import base64
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import SolanaConfig

logger = logging.getLogger(__name__)

# Position accounts store the owner right after the 8-byte anchor discriminator.
OWNER_OFFSET = 8


class SolanaClient:
    """Solana RPC client with automatic endpoint fallback."""

    def __init__(self, config: SolanaConfig) -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0
        self._request_id = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
                        if "error" in result:
                            raise RuntimeError(f"RPC Error: {result['error']}")

                        if rpc_index != self.current_rpc_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)
                            self.current_rpc_index = rpc_index

                        return result.get("result")
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise RuntimeError(f"All RPC endpoints failed. Last error: {last_error}")

    async def get_program_accounts(
        self,
        program_id: str,
        owner: str,
        encoding: str = "base64",
    ) -> list[dict[str, Any]]:
        """Accounts of ``program_id`` whose owner field matches ``owner``."""
        return await self.find_program_accounts(
            program_id,
            [{"memcmp": {"offset": OWNER_OFFSET, "bytes": owner}}],
            encoding,
        )

    async def find_program_accounts(
        self,
        program_id: str,
        filters: list[dict[str, Any]],
        encoding: str = "base64",
    ) -> list[dict[str, Any]]:
        """``getProgramAccounts`` with arbitrary ``memcmp``/``dataSize`` filters."""
        try:
            result = await self.rpc_call(
                "getProgramAccounts",
                [program_id, {"encoding": encoding, "filters": filters}],
            )
        except Exception as e:
            logger.error("Error fetching program accounts: %s", e)
            return []

        # Some RPCs wrap the list in a context envelope.
        if isinstance(result, dict):
            result = result.get("value", [])
        return result if isinstance(result, list) else []

    async def get_signatures_for_address(
        self, address: str, limit: int = 50
    ) -> list[dict[str, Any]]:
        """Most recent transaction signatures for ``address``."""
        try:
            result = await self.rpc_call(
                "getSignaturesForAddress", [address, {"limit": limit}]
            )
            return result if isinstance(result, list) else []
        except Exception as e:
            logger.error("Error fetching signatures for %s: %s", address, e)
            return []

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        """Parsed transaction or None if unavailable."""
        try:
            result = await self.rpc_call(
                "getTransaction",
                [
                    signature,
                    {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0},
                ],
            )
            return result if isinstance(result, dict) else None
        except Exception as e:
            logger.error("Error fetching transaction %s: %s", signature, e)
            return None

    async def get_account_data(self, address: str) -> bytes | None:
        """Raw data of one account, or None if it does not exist."""
        try:
            result = await self.rpc_call("getAccountInfo", [address, {"encoding": "base64"}])
        except Exception as e:
            logger.error("Error fetching account %s: %s", address, e)
            return None
        value = result.get("value") if isinstance(result, dict) else None
        return account_bytes(value)

    async def get_multiple_account_data(self, addresses: list[str]) -> list[bytes | None]:
        """Raw data for each address, in order; missing accounts are None."""
        if not addresses:
            return []
        try:
            result = await self.rpc_call(
                "getMultipleAccounts", [addresses, {"encoding": "base64"}]
            )
        except Exception as e:
            logger.error("Error fetching %d accounts: %s", len(addresses), e)
            return [None] * len(addresses)
        values = result.get("value") if isinstance(result, dict) else None
        if not isinstance(values, list) or len(values) != len(addresses):
            return [None] * len(addresses)
        return [account_bytes(value) for value in values]

    async def get_token_account_balance(self, address: str) -> int | None:
        """Raw amount held by a token account."""
        try:
            result = await self.rpc_call("getTokenAccountBalance", [address])
        except Exception as e:
            logger.error("Error fetching token balance for %s: %s", address, e)
            return None
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            return None
        try:
            return int(value.get("amount"))
        except (TypeError, ValueError):
            return None


def account_bytes(account: Any) -> bytes | None:
    """Decode the ``data`` field of a base64-encoded account object."""
    if not isinstance(account, dict):
        return None
    data = account.get("data")
    if isinstance(data, list) and data and isinstance(data[0], str):
        try:
            return base64.b64decode(data[0])
        except ValueError:
            return None
    return None
