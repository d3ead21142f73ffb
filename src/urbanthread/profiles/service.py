"""Submission history and the contributor leaderboard."""

from __future__ import annotations

from typing import Optional

from urbanthread.config import Settings
from urbanthread.db.store import ReportStore
from urbanthread.models import LeaderboardEntry, ReportPage
from urbanthread.scoring.reputation import reputation_level
from urbanthread.utils.logging import get_logger


logger = get_logger(__name__)


def user_history(
    store: ReportStore,
    user_id: str,
    status: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> ReportPage:
    """Page through a user's own reports, newest first. ``page`` is 1-based."""
    settings = settings or Settings()
    if page < 1:
        raise ValueError("page must be 1 or greater")
    page_size = settings.history_page_size if limit is None else limit
    if page_size < 1:
        raise ValueError("limit must be 1 or greater")

    history = store.list_user_reports(
        user_id,
        status=status,
        category=category,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    logger.info(
        "profile.history user_id=%s page=%s returned=%s total=%s",
        user_id,
        page,
        len(history.reports),
        history.total,
    )
    return history


def get_leaderboard(
    store: ReportStore,
    limit: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> list[LeaderboardEntry]:
    settings = settings or Settings()
    size = settings.leaderboard_size if limit is None else limit
    profiles = store.leaderboard(limit=max(0, size))
    return [
        LeaderboardEntry(
            rank=rank,
            user_id=profile.user_id,
            credibility_score=profile.credibility_score,
            reports_published=profile.reports_published,
            reputation_level=reputation_level(profile),
        )
        for rank, profile in enumerate(profiles, start=1)
    ]
