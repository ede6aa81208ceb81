"""Solana address helpers."""
from __future__ import annotations

import base58

from .errors import UserInputError

PUBKEY_LENGTH = 32


def is_valid_address(address: str) -> bool:
    """Return True if ``address`` is a base58 string decoding to a 32-byte key."""
    if not isinstance(address, str):
        return False
    address = address.strip()
    if not 32 <= len(address) <= 44:
        return False
    try:
        return len(base58.b58decode(address)) == PUBKEY_LENGTH
    except ValueError:
        return False


def validate_address(address: str | None) -> str:
    """Return the trimmed address or raise :class:`UserInputError`."""
    trimmed = (address or "").strip()
    if not trimmed:
        raise UserInputError("Please enter a Solana address")
    if not is_valid_address(trimmed):
        raise UserInputError("Invalid Solana address format")
    return trimmed


def short_address(address: str) -> str:
    if len(address) > 16:
        return f"{address[:10]}...{address[-6:]}"
    return address
