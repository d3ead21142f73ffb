from datetime import datetime, timedelta, timezone

import pytest

from urbanthread.db.store import InMemoryStore
from urbanthread.errors import InvalidCommentError, NotFoundError
from urbanthread.intake.comments import add_comment, list_comments
from urbanthread.models import Report


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _base_report(**overrides) -> Report:
    payload = {
        "id": "r-1",
        "user_id": "author",
        "category": "Hazard",
        "severity": "Medium",
        "description": "Open manhole on the footpath",
        "lat": 12.97,
        "lng": 77.59,
        "confidence_score": 75,
        "status": "published",
        "created_at": NOW - timedelta(hours=1),
        "expires_at": NOW + timedelta(days=3),
    }
    payload.update(overrides)
    return Report.model_validate(payload)


def _store_with(*reports: Report) -> InMemoryStore:
    store = InMemoryStore()
    for report in reports:
        store.record_submission(report, lambda profile: profile)
    return store


def test_add_comment_sets_ttl_and_bumps_counter():
    store = _store_with(_base_report())
    comment = add_comment(store, "r-1", "reader", "  Still open this morning  ", now=NOW)

    assert comment.body == "Still open this morning"
    assert comment.expires_at == NOW + timedelta(days=7)
    assert store.get_report("r-1", now=NOW).comments_count == 1

    add_comment(store, "r-1", "reader-2", "Reported to the ward office", now=NOW)
    assert store.get_report("r-1", now=NOW).comments_count == 2


def test_list_comments_oldest_first_and_drops_expired():
    store = _store_with(_base_report())
    late = add_comment(store, "r-1", "a", "second", now=NOW + timedelta(minutes=5))
    early = add_comment(store, "r-1", "b", "first", now=NOW)

    assert [c.id for c in list_comments(store, "r-1", now=NOW + timedelta(minutes=10))] == [early.id, late.id]

    # Comments outlive the report, so expired comments are checked on the store directly.
    remaining = store.list_comments("r-1", now=NOW + timedelta(days=7, minutes=1))
    assert [c.id for c in remaining] == [late.id]


def test_reply_requires_existing_parent():
    store = _store_with(_base_report())
    parent = add_comment(store, "r-1", "a", "Is it fixed?", now=NOW)
    reply = add_comment(store, "r-1", "b", "Not yet", parent_comment_id=parent.id, now=NOW)
    assert reply.parent_comment_id == parent.id

    with pytest.raises(InvalidCommentError):
        add_comment(store, "r-1", "b", "Orphan", parent_comment_id="missing", now=NOW)


@pytest.mark.parametrize("body", ["", "   ", "x" * 1001])
def test_invalid_body_rejected(body):
    store = _store_with(_base_report())
    with pytest.raises(InvalidCommentError):
        add_comment(store, "r-1", "reader", body, now=NOW)
    assert store.get_report("r-1", now=NOW).comments_count == 0


def test_missing_author_rejected():
    store = _store_with(_base_report())
    with pytest.raises(InvalidCommentError):
        add_comment(store, "r-1", " ", "hello", now=NOW)


def test_comment_on_unknown_or_expired_report():
    store = _store_with(_base_report(id="old", expires_at=NOW - timedelta(seconds=1)))
    with pytest.raises(NotFoundError):
        add_comment(store, "missing", "reader", "hello", now=NOW)
    with pytest.raises(NotFoundError):
        add_comment(store, "old", "reader", "hello", now=NOW)
    with pytest.raises(NotFoundError):
        list_comments(store, "old", now=NOW)
