"""Decoding of DLMM program accounts (position, bin array, pair).

All functions are pure and work on raw account bytes. Amounts stay in raw
smallest units; liquidity shares and per-token fee accumulators are Q64.64
fixed point.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable

import base58

from ...models import FeeAmounts, OnchainPosition

MAX_BIN_PER_ARRAY = 70
MAX_BIN_PER_POSITION = 70
SCALE_OFFSET = 64

# PositionV2
POSITION_LB_PAIR_OFFSET = 8
POSITION_OWNER_OFFSET = 40
_LIQUIDITY_SHARES_OFFSET = 72
_REWARD_INFOS_OFFSET = _LIQUIDITY_SHARES_OFFSET + 16 * MAX_BIN_PER_POSITION
_FEE_INFOS_OFFSET = _REWARD_INFOS_OFFSET + 48 * MAX_BIN_PER_POSITION
_LOWER_BIN_OFFSET = _FEE_INFOS_OFFSET + 48 * MAX_BIN_PER_POSITION
_UPPER_BIN_OFFSET = _LOWER_BIN_OFFSET + 4
_CLAIMED_FEE_X_OFFSET = _UPPER_BIN_OFFSET + 12
_CLAIMED_FEE_Y_OFFSET = _CLAIMED_FEE_X_OFFSET + 8
POSITION_V2_SIZE = 8120
# Bins past the first 70 live after the fixed account body.
_EXTENSION_BIN_SIZE = 16 + 48 + 48

# BinArray
_BIN_ARRAY_INDEX_OFFSET = 8
BIN_ARRAY_LB_PAIR_OFFSET = 24
_BINS_OFFSET = 56
_BIN_SIZE = 144

# LbPair
_ACTIVE_ID_OFFSET = 76
_BIN_STEP_OFFSET = 80
_TOKEN_X_MINT_OFFSET = 88
_TOKEN_Y_MINT_OFFSET = 120
_RESERVE_X_OFFSET = 152
_RESERVE_Y_OFFSET = 184

# SPL token account
_TOKEN_AMOUNT_OFFSET = 64


class AccountDecodeError(ValueError):
    """Account bytes do not match the expected layout."""


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator: first 8 bytes of sha256("account:<name>")."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:8]


POSITION_V2_DISCRIMINATOR = account_discriminator("PositionV2")
BIN_ARRAY_DISCRIMINATOR = account_discriminator("BinArray")
LB_PAIR_DISCRIMINATOR = account_discriminator("LbPair")


def _u(data: bytes, offset: int, size: int) -> int:
    return int.from_bytes(data[offset : offset + size], "little")


def _i(data: bytes, offset: int, size: int) -> int:
    return int.from_bytes(data[offset : offset + size], "little", signed=True)


def _pubkey(data: bytes, offset: int) -> str:
    return base58.b58encode(data[offset : offset + 32]).decode()


def _check(data: bytes, discriminator: bytes, min_size: int, name: str) -> None:
    if len(data) < min_size:
        raise AccountDecodeError(f"{name} account too short: {len(data)} bytes")
    if data[:8] != discriminator:
        raise AccountDecodeError(f"Not a {name} account")


@dataclass(frozen=True)
class FeeInfo:
    fee_x_per_token_complete: int = 0
    fee_y_per_token_complete: int = 0
    fee_x_pending: int = 0
    fee_y_pending: int = 0


@dataclass(frozen=True)
class PositionAccount:
    lb_pair: str
    owner: str
    lower_bin_id: int
    upper_bin_id: int
    liquidity_shares: tuple[int, ...]
    fee_infos: tuple[FeeInfo, ...]
    total_claimed_fee_x: int = 0
    total_claimed_fee_y: int = 0

    def bins(self) -> Iterable[tuple[int, int, FeeInfo]]:
        """(bin id, liquidity share, fee info) for every bin in range."""
        for i, bin_id in enumerate(range(self.lower_bin_id, self.upper_bin_id + 1)):
            if i >= len(self.liquidity_shares):
                return
            yield bin_id, self.liquidity_shares[i], self.fee_infos[i]


@dataclass(frozen=True)
class Bin:
    amount_x: int = 0
    amount_y: int = 0
    liquidity_supply: int = 0
    fee_amount_x_per_token_stored: int = 0
    fee_amount_y_per_token_stored: int = 0


@dataclass(frozen=True)
class BinArray:
    index: int
    lb_pair: str
    bins: tuple[Bin, ...]

    @property
    def lower_bin_id(self) -> int:
        return self.index * MAX_BIN_PER_ARRAY

    def get(self, bin_id: int) -> Bin | None:
        offset = bin_id - self.lower_bin_id
        if 0 <= offset < len(self.bins):
            return self.bins[offset]
        return None


@dataclass(frozen=True)
class LbPairAccount:
    active_id: int
    bin_step: int
    token_x_mint: str
    token_y_mint: str
    reserve_x: str
    reserve_y: str


def _fee_info(data: bytes, offset: int) -> FeeInfo:
    return FeeInfo(
        fee_x_per_token_complete=_u(data, offset, 16),
        fee_y_per_token_complete=_u(data, offset + 16, 16),
        fee_x_pending=_u(data, offset + 32, 8),
        fee_y_pending=_u(data, offset + 40, 8),
    )


def decode_position(data: bytes) -> PositionAccount:
    _check(data, POSITION_V2_DISCRIMINATOR, POSITION_V2_SIZE, "PositionV2")

    lower = _i(data, _LOWER_BIN_OFFSET, 4)
    upper = _i(data, _UPPER_BIN_OFFSET, 4)
    width = max(0, upper - lower + 1)

    shares: list[int] = []
    fees: list[FeeInfo] = []
    for i in range(min(width, MAX_BIN_PER_POSITION)):
        shares.append(_u(data, _LIQUIDITY_SHARES_OFFSET + 16 * i, 16))
        fees.append(_fee_info(data, _FEE_INFOS_OFFSET + 48 * i))
    for i in range(MAX_BIN_PER_POSITION, width):
        offset = POSITION_V2_SIZE + _EXTENSION_BIN_SIZE * (i - MAX_BIN_PER_POSITION)
        if offset + _EXTENSION_BIN_SIZE > len(data):
            break
        shares.append(_u(data, offset, 16))
        fees.append(_fee_info(data, offset + 16 + 48))

    return PositionAccount(
        lb_pair=_pubkey(data, POSITION_LB_PAIR_OFFSET),
        owner=_pubkey(data, POSITION_OWNER_OFFSET),
        lower_bin_id=lower,
        upper_bin_id=upper,
        liquidity_shares=tuple(shares),
        fee_infos=tuple(fees),
        total_claimed_fee_x=_u(data, _CLAIMED_FEE_X_OFFSET, 8),
        total_claimed_fee_y=_u(data, _CLAIMED_FEE_Y_OFFSET, 8),
    )


def decode_bin_array(data: bytes) -> BinArray:
    _check(data, BIN_ARRAY_DISCRIMINATOR, _BINS_OFFSET + _BIN_SIZE * MAX_BIN_PER_ARRAY, "BinArray")

    bins = []
    for i in range(MAX_BIN_PER_ARRAY):
        offset = _BINS_OFFSET + _BIN_SIZE * i
        bins.append(
            Bin(
                amount_x=_u(data, offset, 8),
                amount_y=_u(data, offset + 8, 8),
                liquidity_supply=_u(data, offset + 32, 16),
                fee_amount_x_per_token_stored=_u(data, offset + 80, 16),
                fee_amount_y_per_token_stored=_u(data, offset + 96, 16),
            )
        )
    return BinArray(
        index=_i(data, _BIN_ARRAY_INDEX_OFFSET, 8),
        lb_pair=_pubkey(data, BIN_ARRAY_LB_PAIR_OFFSET),
        bins=tuple(bins),
    )


def decode_lb_pair(data: bytes) -> LbPairAccount:
    _check(data, LB_PAIR_DISCRIMINATOR, _RESERVE_Y_OFFSET + 32, "LbPair")
    return LbPairAccount(
        active_id=_i(data, _ACTIVE_ID_OFFSET, 4),
        bin_step=_u(data, _BIN_STEP_OFFSET, 2),
        token_x_mint=_pubkey(data, _TOKEN_X_MINT_OFFSET),
        token_y_mint=_pubkey(data, _TOKEN_Y_MINT_OFFSET),
        reserve_x=_pubkey(data, _RESERVE_X_OFFSET),
        reserve_y=_pubkey(data, _RESERVE_Y_OFFSET),
    )


def decode_token_amount(data: bytes) -> int:
    """Raw amount held by an SPL token account."""
    if len(data) < _TOKEN_AMOUNT_OFFSET + 8:
        raise AccountDecodeError("Token account too short")
    return _u(data, _TOKEN_AMOUNT_OFFSET, 8)


def bin_array_index(bin_id: int) -> int:
    return bin_id // MAX_BIN_PER_ARRAY


def bin_array_indexes(lower_bin_id: int, upper_bin_id: int) -> list[int]:
    return list(range(bin_array_index(lower_bin_id), bin_array_index(upper_bin_id) + 1))


# ---------------------------------------------------------------------------
# Position math
# ---------------------------------------------------------------------------


def _lookup(arrays: dict[int, BinArray], bin_id: int) -> Bin | None:
    array = arrays.get(bin_array_index(bin_id))
    return array.get(bin_id) if array is not None else None


def position_amounts(position: PositionAccount, arrays: dict[int, BinArray]) -> tuple[int, int]:
    """Raw token amounts withdrawable by the position.

    Per bin: share * bin amount / bin liquidity supply, rounded down.
    """
    total_x = 0
    total_y = 0
    for bin_id, share, _ in position.bins():
        bin_ = _lookup(arrays, bin_id)
        if share == 0 or bin_ is None or bin_.liquidity_supply == 0:
            continue
        total_x += share * bin_.amount_x // bin_.liquidity_supply
        total_y += share * bin_.amount_y // bin_.liquidity_supply
    return total_x, total_y


def position_fees(position: PositionAccount, arrays: dict[int, BinArray]) -> FeeAmounts:
    """Claimable swap fees: pending plus fees accrued since the last checkpoint."""
    fee_x = 0
    fee_y = 0
    for bin_id, share, info in position.bins():
        fee_x += info.fee_x_pending
        fee_y += info.fee_y_pending
        bin_ = _lookup(arrays, bin_id)
        if share == 0 or bin_ is None:
            continue
        liquidity = share >> SCALE_OFFSET
        delta_x = max(0, bin_.fee_amount_x_per_token_stored - info.fee_x_per_token_complete)
        delta_y = max(0, bin_.fee_amount_y_per_token_stored - info.fee_y_per_token_complete)
        fee_x += (liquidity * delta_x) >> SCALE_OFFSET
        fee_y += (liquidity * delta_y) >> SCALE_OFFSET
    return FeeAmounts(fee_x, fee_y, unclaimed_only=True)


def pending_fees(position: PositionAccount) -> FeeAmounts:
    """Fees already settled into the position but not yet claimed."""
    return FeeAmounts(
        sum(info.fee_x_pending for info in position.fee_infos),
        sum(info.fee_y_pending for info in position.fee_infos),
        unclaimed_only=True,
    )


def to_onchain_position(
    address: str, position: PositionAccount, arrays: dict[int, BinArray]
) -> OnchainPosition:
    total_x, total_y = position_amounts(position, arrays)
    pending = pending_fees(position)
    return OnchainPosition(
        address=address,
        total_x_amount=total_x,
        total_y_amount=total_y,
        fee_x=pending.fee_x,
        fee_y=pending.fee_y,
        total_claimed_fee_x=position.total_claimed_fee_x,
        total_claimed_fee_y=position.total_claimed_fee_y,
    )
