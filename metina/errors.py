"""Exceptions surfaced to callers."""


class UserInputError(ValueError):
    """Malformed user input (wallet address, transaction id, mint)."""
