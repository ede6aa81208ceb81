"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .addresses import is_valid_address
from .models import DEFAULT_EXCHANGE_RATES

logger = logging.getLogger(__name__)

DLMM_PROGRAM_ID = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"
WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"
NATIVE_SOL_MINT = "11111111111111111111111111111111"
SOL_MINTS = (WRAPPED_SOL_MINT, NATIVE_SOL_MINT)
LAMPORTS_PER_SOL = 1_000_000_000

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonitorConfig:
    refresh_interval_seconds: float = 5.0


@dataclass(frozen=True)
class WalletConfig:
    label: str = ""
    address: str = ""


@dataclass(frozen=True)
class SolanaConfig:
    rpc_endpoints: tuple[str, ...] = ("https://api.mainnet-beta.solana.com",)
    rpc_timeout: int = 30
    dlmm_program_id: str = DLMM_PROGRAM_ID


@dataclass(frozen=True)
class MeteoraConfig:
    api_base: str = "https://dlmm-api.meteora.ag"
    damm_api_base: str = "https://dammv2-api.meteora.ag"
    api_key: str = ""
    timeout: int = 15


@dataclass(frozen=True)
class JupiterConfig:
    quote_api_base: str = "https://lite-api.jup.ag/swap/v1"
    slippage_bps: int = 500
    timeout: int = 10


@dataclass(frozen=True)
class RatesConfig:
    fiat_url: str = "https://open.er-api.com/v6/latest/USD"
    coingecko_url: str = (
        "https://api.coingecko.com/api/v3/simple/price?ids=solana&vs_currencies=usd"
    )
    binance_url: str = "https://api.binance.com/api/v3/ticker/price?symbol=SOLUSDT"
    jupiter_price_url: str = "https://price.jup.ag/v6/price?ids=SOL"
    default_idr: float = DEFAULT_EXCHANGE_RATES.idr
    default_sol: float = DEFAULT_EXCHANGE_RATES.sol
    timeout: int = 10


@dataclass(frozen=True)
class ValuationConfig:
    dust_threshold_usd: float = 0.01
    stagger_seconds: float = 0.1


@dataclass(frozen=True)
class LocatorConfig:
    signature_limit: int = 50
    candidate_limit: int = 50


@dataclass(frozen=True)
class LaunchConfig:
    interval_seconds: float = 2.0
    timeout_seconds: float = 300.0


@dataclass(frozen=True)
class AppConfig:
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    wallets: tuple[WalletConfig, ...] = ()
    solana: SolanaConfig = field(default_factory=SolanaConfig)
    meteora: MeteoraConfig = field(default_factory=MeteoraConfig)
    jupiter: JupiterConfig = field(default_factory=JupiterConfig)
    rates: RatesConfig = field(default_factory=RatesConfig)
    valuation: ValuationConfig = field(default_factory=ValuationConfig)
    locator: LocatorConfig = field(default_factory=LocatorConfig)
    launch: LaunchConfig = field(default_factory=LaunchConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_monitor(raw: dict[str, Any]) -> MonitorConfig:
    return MonitorConfig(
        refresh_interval_seconds=float(raw.get("refresh_interval_seconds", 5.0)),
    )


def _build_wallets(raw: list[dict[str, Any]]) -> tuple[WalletConfig, ...]:
    wallets: list[WalletConfig] = []
    for w in raw:
        wallets.append(
            WalletConfig(
                label=w.get("label", ""),
                address=str(w.get("address", "")).strip(),
            )
        )
    return tuple(wallets)


def _build_solana(raw: dict[str, Any]) -> SolanaConfig:
    endpoints = [e for e in raw.get("rpc_endpoints", []) if e]
    return SolanaConfig(
        rpc_endpoints=tuple(endpoints) if endpoints else SolanaConfig.rpc_endpoints,
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
        dlmm_program_id=raw.get("dlmm_program_id", DLMM_PROGRAM_ID),
    )


def _build_meteora(raw: dict[str, Any]) -> MeteoraConfig:
    return MeteoraConfig(
        api_base=raw.get("api_base", MeteoraConfig.api_base).rstrip("/"),
        damm_api_base=raw.get("damm_api_base", MeteoraConfig.damm_api_base).rstrip("/"),
        api_key=raw.get("api_key", ""),
        timeout=int(raw.get("timeout", 15)),
    )


def _build_jupiter(raw: dict[str, Any]) -> JupiterConfig:
    return JupiterConfig(
        quote_api_base=raw.get("quote_api_base", JupiterConfig.quote_api_base).rstrip("/"),
        slippage_bps=int(raw.get("slippage_bps", 500)),
        timeout=int(raw.get("timeout", 10)),
    )


def _build_rates(raw: dict[str, Any]) -> RatesConfig:
    return RatesConfig(
        fiat_url=raw.get("fiat_url", RatesConfig.fiat_url),
        coingecko_url=raw.get("coingecko_url", RatesConfig.coingecko_url),
        binance_url=raw.get("binance_url", RatesConfig.binance_url),
        jupiter_price_url=raw.get("jupiter_price_url", RatesConfig.jupiter_price_url),
        default_idr=float(raw.get("default_idr", RatesConfig.default_idr)),
        default_sol=float(raw.get("default_sol", RatesConfig.default_sol)),
        timeout=int(raw.get("timeout", 10)),
    )


def _build_valuation(raw: dict[str, Any]) -> ValuationConfig:
    return ValuationConfig(
        dust_threshold_usd=float(raw.get("dust_threshold_usd", 0.01)),
        stagger_seconds=float(raw.get("stagger_seconds", 0.1)),
    )


def _build_locator(raw: dict[str, Any]) -> LocatorConfig:
    return LocatorConfig(
        signature_limit=int(raw.get("signature_limit", 50)),
        candidate_limit=int(raw.get("candidate_limit", 50)),
    )


def _build_launch(raw: dict[str, Any]) -> LaunchConfig:
    return LaunchConfig(
        interval_seconds=float(raw.get("interval_seconds", 2.0)),
        timeout_seconds=float(raw.get("timeout_seconds", 300.0)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package). A missing default
            file yields the built-in defaults; an explicit missing path raises.
    """
    load_dotenv()

    explicit = config_path is not None
    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        logger.info("No config.yaml found, using defaults")
        cfg = AppConfig()
        _validate(cfg)
        return cfg

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        monitor=_build_monitor(raw.get("monitor") or {}),
        wallets=_build_wallets(raw.get("wallets") or []),
        solana=_build_solana(raw.get("solana") or {}),
        meteora=_build_meteora(raw.get("meteora") or {}),
        jupiter=_build_jupiter(raw.get("jupiter") or {}),
        rates=_build_rates(raw.get("rates") or {}),
        valuation=_build_valuation(raw.get("valuation") or {}),
        locator=_build_locator(raw.get("locator") or {}),
        launch=_build_launch(raw.get("launch") or {}),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.solana.rpc_endpoints:
        raise ValueError("At least one Solana RPC endpoint must be configured")

    for wallet in cfg.wallets:
        if not wallet.address:
            raise ValueError(f"Wallet '{wallet.label}' has no address")
        if not is_valid_address(wallet.address):
            raise ValueError(
                f"Wallet '{wallet.label}' has an invalid Solana address"
            )

    if cfg.monitor.refresh_interval_seconds <= 0:
        raise ValueError("monitor.refresh_interval_seconds must be positive")
    if cfg.valuation.dust_threshold_usd < 0:
        raise ValueError("valuation.dust_threshold_usd must not be negative")
    if cfg.valuation.stagger_seconds < 0:
        raise ValueError("valuation.stagger_seconds must not be negative")
    if cfg.launch.interval_seconds <= 0:
        raise ValueError("launch.interval_seconds must be positive")
