"""Utility helpers."""

from urbanthread.utils.logging import configure_logging, get_logger
from urbanthread.utils.text import normalize_for_dedupe, normalize_whitespace
from urbanthread.utils.time import expiry_from, is_expired, utc_now

__all__ = [
    "configure_logging",
    "get_logger",
    "normalize_whitespace",
    "normalize_for_dedupe",
    "expiry_from",
    "is_expired",
    "utc_now",
]
