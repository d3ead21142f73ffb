"""Text helpers."""

from __future__ import annotations

import re
from typing import Optional


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace and trim."""
    return re.sub(r"\s+", " ", text).strip()


def strip_urls(text: str) -> str:
    """Remove URLs from text."""
    return re.sub(r"https?://\S+|www\.\S+", "", text)


def normalize_for_dedupe(text: str) -> str:
    """Normalize text for strict duplicate checks."""
    return normalize_whitespace(strip_urls(text)).lower()


def truncate(text: Optional[str], max_chars: int) -> str:
    """Trim and cut text to a storage limit."""
    return (text or "").strip()[:max_chars]
