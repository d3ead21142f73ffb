"""Discussion comments on live reports."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from urbanthread.config import Settings
from urbanthread.db.store import ReportStore
from urbanthread.errors import InvalidCommentError
from urbanthread.models import Comment
from urbanthread.utils.logging import get_logger
from urbanthread.utils.time import expiry_from, utc_now


logger = get_logger(__name__)

MAX_COMMENT_CHARS = 1000


def add_comment(
    store: ReportStore,
    report_id: str,
    user_id: str,
    body: str,
    parent_comment_id: Optional[str] = None,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> Comment:
    """Attach a comment to a live report and bump its comment counter.

    Raises ``InvalidCommentError`` for an empty or oversized body, a missing
    author or an unknown parent, and ``NotFoundError`` when the report is
    missing or expired.
    """
    settings = settings or Settings()
    now = now or utc_now()

    text = (body or "").strip()
    if not text:
        raise InvalidCommentError("comment body is empty")
    if len(text) > MAX_COMMENT_CHARS:
        raise InvalidCommentError(f"comment body exceeds {MAX_COMMENT_CHARS} characters")
    author = (user_id or "").strip()
    if not author:
        raise InvalidCommentError("comment author is missing")

    store.get_report(report_id, now=now)

    if parent_comment_id is not None:
        existing = {comment.id for comment in store.list_comments(report_id, now=now)}
        if parent_comment_id not in existing:
            raise InvalidCommentError(f"parent comment not found: {parent_comment_id}")

    comment = Comment(
        id=uuid.uuid4().hex,
        report_id=report_id,
        user_id=author,
        body=text,
        parent_comment_id=parent_comment_id,
        created_at=now,
        expires_at=expiry_from(now, settings.comment_ttl_days),
    )
    report = store.add_comment(comment)
    logger.info(
        "comment.added comment_id=%s report_id=%s comments_count=%s",
        comment.id,
        report_id,
        report.comments_count,
    )
    return comment


def list_comments(store: ReportStore, report_id: str, now: Optional[datetime] = None) -> list[Comment]:
    """Live comments of a live report, oldest first."""
    now = now or utc_now()
    store.get_report(report_id, now=now)
    return store.list_comments(report_id, now=now)
