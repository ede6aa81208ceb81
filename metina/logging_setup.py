"""Root logging configuration."""
from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_NOISY_LOGGERS = ("aiohttp", "asyncio", "urllib3")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging; unknown level names fall back to INFO."""
    numeric = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(format=_FORMAT, force=True)
    logging.getLogger().setLevel(numeric)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
