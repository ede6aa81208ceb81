"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock

import base58
import pytest

from metina.config import (
    WRAPPED_SOL_MINT,
    AppConfig,
    JupiterConfig,
    LaunchConfig,
    LocatorConfig,
    MeteoraConfig,
    MonitorConfig,
    RatesConfig,
    SolanaConfig,
    ValuationConfig,
    WalletConfig,
)
from metina.models import (
    ExchangeRates,
    IndexedPosition,
    LedgerEvent,
    LedgerKind,
    PairInfo,
    TokenInfo,
)
from metina.protocols.dlmm import accounts

OWNER = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
OTHER_OWNER = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
PAIR_ADDRESS = "PairBonkSol"
POSITION_ADDRESS = "PositionOne"


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_solana_config() -> SolanaConfig:
    return SolanaConfig(
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def sample_meteora_config() -> MeteoraConfig:
    return MeteoraConfig(
        api_base="https://dlmm.example.com",
        damm_api_base="https://damm.example.com",
        api_key="",
        timeout=5,
    )


@pytest.fixture()
def sample_app_config(
    sample_solana_config: SolanaConfig, sample_meteora_config: MeteoraConfig
) -> AppConfig:
    return AppConfig(
        monitor=MonitorConfig(refresh_interval_seconds=5.0),
        wallets=(WalletConfig(label="test-wallet", address=OWNER),),
        solana=sample_solana_config,
        meteora=sample_meteora_config,
        jupiter=JupiterConfig(quote_api_base="https://quote.example.com"),
        rates=RatesConfig(),
        valuation=ValuationConfig(dust_threshold_usd=0.01, stagger_seconds=0.0),
        locator=LocatorConfig(),
        launch=LaunchConfig(interval_seconds=2.0, timeout_seconds=10.0),
    )


@pytest.fixture()
def rates() -> ExchangeRates:
    return ExchangeRates(usd=1.0, idr=16_000.0, sol=150.0)


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_pair() -> PairInfo:
    # 10,000,000 BONK against 100 SOL → 1 BONK = 0.0015 USD at $150/SOL.
    return PairInfo(
        address=PAIR_ADDRESS,
        name="BONK-SOL",
        mint_x=BONK_MINT,
        mint_y=WRAPPED_SOL_MINT,
        reserve_x_amount=1_000_000_000_000,
        reserve_y_amount=100_000_000_000,
        base_fee_percentage=0.25,
        bin_step=100,
        token_x=TokenInfo(mint=BONK_MINT, symbol="BONK", decimals=5),
        token_y=TokenInfo(mint=WRAPPED_SOL_MINT, symbol="SOL", decimals=9),
    )


@pytest.fixture()
def sample_position() -> IndexedPosition:
    return IndexedPosition(
        address=POSITION_ADDRESS,
        pair_address=PAIR_ADDRESS,
        owner=OWNER,
        total_fee_usd_claimed=5.0,
        total_reward_usd_claimed=0.0,
    )


def make_event(
    kind: LedgerKind,
    x: float = 0.0,
    y: float = 0.0,
    x_usd: float = 0.0,
    y_usd: float = 0.0,
    timestamp: int | None = None,
) -> LedgerEvent:
    return LedgerEvent(
        kind=kind,
        token_x_amount=x,
        token_y_amount=y,
        token_x_usd_amount=x_usd,
        token_y_usd_amount=y_usd,
        onchain_timestamp=timestamp,
    )


@pytest.fixture()
def sample_deposits() -> list[LedgerEvent]:
    return [
        make_event(LedgerKind.DEPOSIT, x=50_000, y=0.5, x_usd=60.0, y_usd=75.0, timestamp=1_700_000_000),
    ]


@pytest.fixture()
def mock_indexer(sample_position: IndexedPosition, sample_pair: PairInfo) -> AsyncMock:
    """Indexer returning ``sample_position`` with empty ledgers by default."""
    indexer = AsyncMock()
    indexer.get_position.return_value = sample_position
    indexer.get_deposits.return_value = []
    indexer.get_withdraws.return_value = []
    indexer.get_claim_fees.return_value = []
    indexer.get_claim_rewards.return_value = []
    indexer.get_pair.return_value = sample_pair
    return indexer


# ---------------------------------------------------------------------------
# Raw account fixtures
# ---------------------------------------------------------------------------

FeeTuple = tuple[int, int, int, int]


def _put(buf: bytearray, offset: int, value: int, size: int, signed: bool = False) -> None:
    buf[offset : offset + size] = value.to_bytes(size, "little", signed=signed)


@pytest.fixture()
def position_data() -> Callable[..., bytes]:
    """Build PositionV2 account bytes.

    ``bins`` maps bin id to ``(liquidity share, (x complete, y complete,
    x pending, y pending))``. Bins beyond the first 70 go to the extension.
    """

    def build(
        lb_pair: str,
        owner: str,
        lower: int,
        upper: int,
        bins: dict[int, tuple[int, FeeTuple]] | None = None,
        claimed: tuple[int, int] = (0, 0),
    ) -> bytes:
        width = upper - lower + 1
        extension = max(0, width - 70)
        buf = bytearray(8120 + 112 * extension)
        buf[0:8] = accounts.POSITION_V2_DISCRIMINATOR
        buf[8:40] = base58.b58decode(lb_pair)
        buf[40:72] = base58.b58decode(owner)
        for bin_id, (share, fee) in (bins or {}).items():
            i = bin_id - lower
            if i < 70:
                share_at, fee_at = 72 + 16 * i, 4552 + 48 * i
            else:
                share_at = 8120 + 112 * (i - 70)
                fee_at = share_at + 64
            _put(buf, share_at, share, 16)
            _put(buf, fee_at, fee[0], 16)
            _put(buf, fee_at + 16, fee[1], 16)
            _put(buf, fee_at + 32, fee[2], 8)
            _put(buf, fee_at + 40, fee[3], 8)
        _put(buf, 7912, lower, 4, signed=True)
        _put(buf, 7916, upper, 4, signed=True)
        _put(buf, 7928, claimed[0], 8)
        _put(buf, 7936, claimed[1], 8)
        return bytes(buf)

    return build


@pytest.fixture()
def bin_array_data() -> Callable[..., bytes]:
    """Build BinArray bytes; ``bins`` maps bin id to
    ``(amount x, amount y, supply, fee x stored, fee y stored)``."""

    def build(
        lb_pair: str, index: int, bins: dict[int, tuple[int, int, int, int, int]] | None = None
    ) -> bytes:
        buf = bytearray(56 + 144 * 70)
        buf[0:8] = accounts.BIN_ARRAY_DISCRIMINATOR
        _put(buf, 8, index, 8, signed=True)
        buf[24:56] = base58.b58decode(lb_pair)
        for bin_id, (amount_x, amount_y, supply, fee_x, fee_y) in (bins or {}).items():
            at = 56 + 144 * (bin_id - index * 70)
            _put(buf, at, amount_x, 8)
            _put(buf, at + 8, amount_y, 8)
            _put(buf, at + 32, supply, 16)
            _put(buf, at + 80, fee_x, 16)
            _put(buf, at + 96, fee_y, 16)
        return bytes(buf)

    return build


@pytest.fixture()
def lb_pair_data() -> Callable[..., bytes]:
    def build(
        mint_x: str, mint_y: str, reserve_x: str, reserve_y: str, active_id: int = 0, bin_step: int = 100
    ) -> bytes:
        buf = bytearray(904)
        buf[0:8] = accounts.LB_PAIR_DISCRIMINATOR
        _put(buf, 76, active_id, 4, signed=True)
        _put(buf, 80, bin_step, 2)
        buf[88:120] = base58.b58decode(mint_x)
        buf[120:152] = base58.b58decode(mint_y)
        buf[152:184] = base58.b58decode(reserve_x)
        buf[184:216] = base58.b58decode(reserve_y)
        return bytes(buf)

    return build


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent(f"""\
    monitor:
      refresh_interval_seconds: 10
    wallets:
      - label: test-wallet
        address: "{OWNER}"
    solana:
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
    meteora:
      api_base: "https://dlmm.example.com/"
      api_key: "key-123"
    jupiter:
      slippage_bps: 100
    rates:
      default_idr: 16000
    valuation:
      dust_threshold_usd: 0.05
      stagger_seconds: 0.2
    locator:
      signature_limit: 20
    launch:
      interval_seconds: 5
      timeout_seconds: 60
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
