"""Time helpers for report lifetimes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return an aware UTC timestamp."""
    return datetime.now(timezone.utc)


def expiry_from(created_at: datetime, ttl_days: int) -> datetime:
    """Return the visibility cut-off for a record created at ``created_at``."""
    return created_at + timedelta(days=ttl_days)


def is_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    """True once the cut-off has passed."""
    return expires_at <= (now or utc_now())


def age_hours(created_at: datetime, now: Optional[datetime] = None) -> float:
    """Hours elapsed since creation, never negative."""
    delta = (now or utc_now()) - created_at
    return max(0.0, delta.total_seconds() / 3600)
