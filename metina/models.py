"""Data models. All frozen."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LedgerKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    CLAIM_FEE = "claim_fee"
    CLAIM_REWARD = "claim_reward"


@dataclass(frozen=True)
class LedgerEvent:
    """One indexer ledger entry for a position."""

    kind: LedgerKind
    token_x_amount: float = 0.0
    token_y_amount: float = 0.0
    token_x_usd_amount: float = 0.0
    token_y_usd_amount: float = 0.0
    onchain_timestamp: int | None = None
    tx_id: str = ""

    @property
    def usd_total(self) -> float:
        return self.token_x_usd_amount + self.token_y_usd_amount


@dataclass(frozen=True)
class TokenInfo:
    mint: str = ""
    symbol: str = ""
    decimals: int = 6


@dataclass(frozen=True)
class PairInfo:
    """Two-sided DLMM market.

    ``reserve_*_amount`` are raw smallest-unit amounts; ``reserve_x``/``reserve_y``
    are the addresses of the reserve token accounts.
    """

    address: str
    name: str = ""
    mint_x: str = ""
    mint_y: str = ""
    reserve_x_amount: float = 0.0
    reserve_y_amount: float = 0.0
    base_fee_percentage: float = 0.0
    bin_step: int = 0
    token_x: TokenInfo = field(default_factory=TokenInfo)
    token_y: TokenInfo = field(default_factory=lambda: TokenInfo(decimals=9))
    reserve_x: str = ""
    reserve_y: str = ""

    @property
    def reserve_accounts(self) -> tuple[str, str] | None:
        """Reserve token account addresses, when the indexer reported both."""
        if self.reserve_x and self.reserve_y:
            return self.reserve_x, self.reserve_y
        return None


@dataclass(frozen=True)
class IndexedPosition:
    """Position record as reported by the indexing API."""

    address: str
    pair_address: str
    owner: str
    total_fee_usd_claimed: float | None = None
    total_reward_usd_claimed: float = 0.0
    token_x_amount: float | None = None
    token_y_amount: float | None = None


@dataclass(frozen=True)
class OnchainPosition:
    """Position account state read from chain, raw smallest-unit amounts."""

    address: str
    total_x_amount: int = 0
    total_y_amount: int = 0
    fee_x: int = 0
    fee_y: int = 0
    total_claimed_fee_x: int = 0
    total_claimed_fee_y: int = 0

    @property
    def has_liquidity(self) -> bool:
        return self.total_x_amount > 0 or self.total_y_amount > 0


@dataclass(frozen=True)
class FeeAmounts:
    """Raw fee amounts; ``unclaimed_only`` is False when they may be lifetime totals."""

    fee_x: int = 0
    fee_y: int = 0
    unclaimed_only: bool = True


@dataclass(frozen=True)
class TokenPrices:
    x: float = 0.0
    y: float = 0.0
    source: str = "none"


@dataclass(frozen=True)
class Upnl:
    usd: float
    sol: float
    percent: float


@dataclass(frozen=True)
class ExchangeRates:
    """USD-denominated conversion rates: 1 USD = ``idr`` IDR, 1 SOL = ``sol`` USD."""

    usd: float = 1.0
    idr: float = 16_700.0
    sol: float = 150.0


DEFAULT_EXCHANGE_RATES = ExchangeRates()


@dataclass(frozen=True)
class PositionSnapshot:
    """Valuation of one open position at a point in time.

    ``balance_source`` names where the balances came from (``onchain`` or
    ``indexer``). With ``none`` the TVL is the net-deposit estimate.
    """

    address: str
    pair_address: str
    owner: str
    total_deposit_usd: float
    total_withdraw_usd: float
    current_balance_x: float
    current_balance_y: float
    tvl_usd: float
    claimed_fee_usd: float
    unclaimed_fee_usd: float
    upnl: Upnl
    token_x_symbol: str = "X"
    token_y_symbol: str = "Y"
    token_x_price_usd: float = 0.0
    token_y_price_usd: float = 0.0
    pair_name: str = "Unknown"
    balance_source: str = "none"

    @property
    def net_deposit_usd(self) -> float:
        return self.total_deposit_usd - self.total_withdraw_usd


@dataclass(frozen=True)
class PortfolioTotals:
    """Aggregate figures across snapshots, expressed in ``currency``."""

    currency: str
    tvl: float
    claimed_fee: float
    unclaimed_fee: float
    upnl: float
    upnl_percent: float
    net_deposit_usd: float
    position_count: int


@dataclass(frozen=True)
class PnlCard:
    """Lifetime profit/loss of a single position, ready for rendering."""

    transaction_id: str
    position_address: str
    pair_name: str
    token_x_symbol: str
    token_y_symbol: str
    total_deposit_usd: float
    total_withdraw_usd: float
    claimed_fee_usd: float
    claimed_reward_usd: float
    tvl_usd: float
    unclaimed_fee_usd: float
    upnl: Upnl
    open_time: int | None
    close_time: int | None
    duration: str
    is_closed: bool


@dataclass(frozen=True)
class LaunchCheck:
    has_pool: bool
    pool_info: dict | None = None
    total: int = 0
    error: str = ""


@dataclass(frozen=True)
class LaunchResult:
    launched: bool
    attempts: int
    max_attempts: int
    pool_info: dict | None = None
