"""Integration tests for the Solana client: RPC fallback and error handling."""
from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from metina.chains.solana.client import OWNER_OFFSET, SolanaClient, account_bytes
from metina.config import DLMM_PROGRAM_ID, SolanaConfig

OWNER = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"


@pytest.fixture()
def client() -> SolanaClient:
    return SolanaClient(
        SolanaConfig(
            rpc_endpoints=(
                "https://rpc1.example.com",
                "https://rpc2.example.com",
                "https://rpc3.example.com",
            ),
            rpc_timeout=5,
        )
    )


def _mock_session(response_data: dict | None = None, error: Exception | None = None):
    """Create a mock aiohttp session that returns given data or raises error."""
    mock_response = AsyncMock()
    if error:
        mock_response.json = AsyncMock(side_effect=error)
    else:
        mock_response.json = AsyncMock(return_value=response_data or {})
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    if error:
        mock_session.post = MagicMock(side_effect=error)
    else:
        mock_session.post = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)

    return mock_session


class TestRpcCall:
    @pytest.mark.asyncio
    async def test_successful_call(self, client: SolanaClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": {"data": "ok"}})

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                result = await client.rpc_call("getHealth", [])

        assert result == {"data": "ok"}
        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["jsonrpc"] == "2.0"
        assert payload["method"] == "getHealth"

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {"jsonrpc": "2.0", "error": {"code": -32000, "message": "bad"}}
        )

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                with pytest.raises(RuntimeError, match="All RPC endpoints failed"):
                    await client.rpc_call("getHealth", [])

    @pytest.mark.asyncio
    async def test_fallback_on_connection_error(self, client: SolanaClient) -> None:
        """When first endpoint fails, should try the next one."""
        call_count = 0

        success_response = AsyncMock()
        success_response.json = AsyncMock(
            return_value={"jsonrpc": "2.0", "result": {"ok": True}}
        )
        success_response.__aenter__ = AsyncMock(return_value=success_response)
        success_response.__aexit__ = AsyncMock(return_value=None)

        def side_effect(*args, **kwargs):
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise ConnectionError("first endpoint down")
            return success_response

        mock_session = AsyncMock()
        mock_session.post = MagicMock(side_effect=side_effect)
        mock_session.__aenter__ = AsyncMock(return_value=mock_session)
        mock_session.__aexit__ = AsyncMock(return_value=None)

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                result = await client.rpc_call("getHealth", [])

        assert result == {"ok": True}
        assert client.current_rpc_index == 1
        assert mock_session.post.call_args.args[0] == "https://rpc2.example.com"

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self, client: SolanaClient) -> None:
        mock_session = _mock_session(error=ConnectionError("down"))

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                with pytest.raises(RuntimeError, match="All RPC endpoints failed"):
                    await client.rpc_call("getHealth", [])

        assert mock_session.post.call_count == 3


class TestGetProgramAccounts:
    @pytest.mark.asyncio
    async def test_owner_memcmp_filter(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {"jsonrpc": "2.0", "result": [{"pubkey": "Pos1", "account": {}}]}
        )

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                accounts = await client.get_program_accounts(DLMM_PROGRAM_ID, OWNER)

        assert accounts == [{"pubkey": "Pos1", "account": {}}]
        params = mock_session.post.call_args.kwargs["json"]["params"]
        assert params[0] == DLMM_PROGRAM_ID
        assert params[1]["encoding"] == "base64"
        assert params[1]["filters"] == [{"memcmp": {"offset": OWNER_OFFSET, "bytes": OWNER}}]
        assert OWNER_OFFSET == 8

    @pytest.mark.asyncio
    async def test_unwraps_context_envelope(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {"jsonrpc": "2.0", "result": {"context": {}, "value": [{"pubkey": "Pos1"}]}}
        )

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                accounts = await client.get_program_accounts(
                    DLMM_PROGRAM_ID, OWNER, encoding="jsonParsed"
                )

        assert accounts == [{"pubkey": "Pos1"}]

    @pytest.mark.asyncio
    async def test_returns_empty_on_error(self, client: SolanaClient) -> None:
        mock_session = _mock_session(error=ConnectionError("down"))

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                accounts = await client.get_program_accounts(DLMM_PROGRAM_ID, OWNER)

        assert accounts == []


class TestHistory:
    @pytest.mark.asyncio
    async def test_signatures(self, client: SolanaClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": [{"signature": "s1"}]})

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                signatures = await client.get_signatures_for_address(OWNER, limit=10)

        assert signatures == [{"signature": "s1"}]
        params = mock_session.post.call_args.kwargs["json"]["params"]
        assert params == [OWNER, {"limit": 10}]

    @pytest.mark.asyncio
    async def test_signatures_empty_on_error(self, client: SolanaClient) -> None:
        mock_session = _mock_session(error=ConnectionError("down"))

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                assert await client.get_signatures_for_address(OWNER) == []

    @pytest.mark.asyncio
    async def test_transaction(self, client: SolanaClient) -> None:
        tx = {"blockTime": 1700000000, "transaction": {"message": {}}}
        mock_session = _mock_session({"jsonrpc": "2.0", "result": tx})

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                result = await client.get_transaction("sig")

        assert result == tx
        params = mock_session.post.call_args.kwargs["json"]["params"]
        assert params[1] == {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}

    @pytest.mark.asyncio
    async def test_missing_transaction(self, client: SolanaClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": None})

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                assert await client.get_transaction("sig") is None


def _encoded(raw: bytes) -> dict:
    return {"data": [base64.b64encode(raw).decode(), "base64"], "owner": DLMM_PROGRAM_ID}


class TestAccountReads:
    @pytest.mark.asyncio
    async def test_account_data_decoded(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {"jsonrpc": "2.0", "result": {"context": {}, "value": _encoded(b"\x01\x02\x03")}}
        )

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                data = await client.get_account_data(OWNER)

        assert data == b"\x01\x02\x03"
        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["method"] == "getAccountInfo"
        assert payload["params"] == [OWNER, {"encoding": "base64"}]

    @pytest.mark.asyncio
    async def test_missing_account_is_none(self, client: SolanaClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": {"context": {}, "value": None}})

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                assert await client.get_account_data(OWNER) is None

    @pytest.mark.asyncio
    async def test_multiple_accounts_keep_order(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {
                "jsonrpc": "2.0",
                "result": {"context": {}, "value": [_encoded(b"a"), None, _encoded(b"c")]},
            }
        )

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                data = await client.get_multiple_account_data(["A", "B", "C"])

        assert data == [b"a", None, b"c"]
        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["method"] == "getMultipleAccounts"
        assert payload["params"][0] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_multiple_accounts_length_mismatch(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {"jsonrpc": "2.0", "result": {"context": {}, "value": [_encoded(b"a")]}}
        )

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                data = await client.get_multiple_account_data(["A", "B"])

        assert data == [None, None]

    @pytest.mark.asyncio
    async def test_multiple_accounts_empty_request(self, client: SolanaClient) -> None:
        with patch("metina.chains.solana.client.aiohttp.ClientSession") as session_cls:
            assert await client.get_multiple_account_data([]) == []
        session_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_token_balance(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {
                "jsonrpc": "2.0",
                "result": {
                    "context": {},
                    "value": {"amount": "123456789", "decimals": 9, "uiAmount": 0.123456789},
                },
            }
        )

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                assert await client.get_token_account_balance("Reserve") == 123456789

    @pytest.mark.asyncio
    async def test_token_balance_on_error(self, client: SolanaClient) -> None:
        mock_session = _mock_session(error=ConnectionError("down"))

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                assert await client.get_token_account_balance("Reserve") is None

    @pytest.mark.asyncio
    async def test_find_program_accounts_passes_filters(self, client: SolanaClient) -> None:
        filters = [{"dataSize": 8120}, {"memcmp": {"offset": 40, "bytes": OWNER}}]
        mock_session = _mock_session({"jsonrpc": "2.0", "result": [{"pubkey": "Pos1"}]})

        with patch("metina.chains.solana.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("metina.chains.solana.client.aiohttp.TCPConnector"):
                found = await client.find_program_accounts(DLMM_PROGRAM_ID, filters)

        assert found == [{"pubkey": "Pos1"}]
        params = mock_session.post.call_args.kwargs["json"]["params"]
        assert params[1]["filters"] == filters


class TestAccountBytes:
    def test_base64_payload(self) -> None:
        assert account_bytes(_encoded(b"xyz")) == b"xyz"

    def test_non_base64_shapes(self) -> None:
        assert account_bytes(None) is None
        assert account_bytes({"data": {"parsed": {}}}) is None
        assert account_bytes({"data": []}) is None

    def test_corrupt_payload(self) -> None:
        assert account_bytes({"data": ["!!not-base64", "base64"]}) is None
