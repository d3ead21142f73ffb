from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest
from psycopg import errors

from urbanthread.config import Settings
from urbanthread.db import postgres
from urbanthread.db.postgres import PostgresStore
from urbanthread.errors import LedgerConflictError
from urbanthread.models import Report
from urbanthread.scoring.reputation import apply_report


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class _FakeCursor:
    def __init__(self, fail_on_lock: int = 0):
        self.statements = []
        self.fail_on_lock = fail_on_lock

    def execute(self, query, params=None):
        self.statements.append((query, params))
        if "for update" in query and self.fail_on_lock:
            self.fail_on_lock -= 1
            raise errors.LockNotAvailable("canceling statement due to lock timeout")

    def fetchone(self):
        return {"user_id": "user-1", "reports_submitted": 2, "avg_confidence": 60.0, "credibility_score": 70}


def _base_report(**overrides) -> Report:
    payload = {
        "id": "r-1",
        "user_id": "user-1",
        "category": "Accident",
        "severity": "High",
        "description": "Bus and bike collided at the signal",
        "lat": 12.97,
        "lng": 77.59,
        "confidence_score": 90,
        "status": "published",
        "created_at": NOW,
        "expires_at": NOW + timedelta(days=3),
    }
    payload.update(overrides)
    return Report.model_validate(payload)


def _patch_cursor(monkeypatch, cursor):
    opened = []

    @contextmanager
    def _fake_db_cursor(settings=None, row_factory=None):
        opened.append(row_factory)
        yield cursor

    monkeypatch.setattr(postgres, "db_cursor", _fake_db_cursor)
    return opened


def test_record_submission_locks_profile_then_writes(monkeypatch):
    cursor = _FakeCursor()
    _patch_cursor(monkeypatch, cursor)
    store = PostgresStore(Settings(LEDGER_LOCK_TIMEOUT_MS=750))

    profile = store.record_submission(_base_report(), lambda current: apply_report(current, 90))

    assert profile.reports_submitted == 3
    assert profile.avg_confidence == pytest.approx(70)
    queries = [query for query, _ in cursor.statements]
    assert queries[0].startswith("select set_config('lock_timeout'")
    assert cursor.statements[0][1] == ("750ms",)
    assert queries[1].startswith("insert into profiles")
    assert "for update" in queries[2]
    assert queries[3].startswith("update profiles set")
    assert queries[4].startswith("insert into reports")
    assert len(queries) == 5


def test_record_submission_retries_lock_timeouts(monkeypatch):
    cursor = _FakeCursor(fail_on_lock=2)
    opened = _patch_cursor(monkeypatch, cursor)
    store = PostgresStore(Settings(LEDGER_MAX_RETRIES=3))

    profile = store.record_submission(_base_report(), lambda current: apply_report(current, 90))

    assert len(opened) == 3
    assert profile.reports_submitted == 3


def test_record_submission_gives_up_with_conflict_error(monkeypatch):
    cursor = _FakeCursor(fail_on_lock=10)
    opened = _patch_cursor(monkeypatch, cursor)
    store = PostgresStore(Settings(LEDGER_MAX_RETRIES=2))

    with pytest.raises(LedgerConflictError):
        store.record_submission(_base_report(), lambda current: apply_report(current, 90))
    assert len(opened) == 2


class _QueryCursor:
    def __init__(self, one=None, rows=None):
        self.statements = []
        self.one = one
        self.rows = rows or []

    def execute(self, query, params=None):
        self.statements.append((query, params))

    def fetchone(self):
        return self.one

    def fetchall(self):
        return self.rows


def test_list_user_reports_builds_filtered_page(monkeypatch):
    row = _base_report().model_dump(exclude={"evidence"})
    cursor = _QueryCursor(one={"total": 7}, rows=[row])
    _patch_cursor(monkeypatch, cursor)

    store = PostgresStore(Settings())
    page = store.list_user_reports("user-1", status="published", category="All", limit=5, offset=5)

    (count_query, count_params), (select_query, select_params) = cursor.statements
    assert count_query.startswith("select count(*) as total from reports where user_id = %s and status = %s")
    assert "category" not in count_query
    assert count_params == ["user-1", "published"]
    assert "order by created_at desc limit %s offset %s" in select_query
    assert select_params == ["user-1", "published", 5, 5]
    assert page.total == 7
    assert [report.id for report in page.reports] == ["r-1"]


def test_leaderboard_query_orders_and_limits(monkeypatch):
    cursor = _QueryCursor(rows=[{"user_id": "bob", "credibility_score": 90, "reports_published": 25}])
    _patch_cursor(monkeypatch, cursor)

    profiles = PostgresStore(Settings()).leaderboard(limit=3)

    query, params = cursor.statements[0]
    assert "where reports_published > 0" in query
    assert "order by credibility_score desc, reports_published desc, user_id limit %s" in query
    assert params == (3,)
    assert profiles[0].user_id == "bob"


def test_city_stats_escapes_like_pattern(monkeypatch):
    cursor = _QueryCursor(
        one={"total": 4, "reporters": 2},
        rows=[{"category": "Traffic", "count": 2, "avg_confidence": 77.5}],
    )
    _patch_cursor(monkeypatch, cursor)
    since = NOW - timedelta(days=30)

    stats = PostgresStore(Settings()).city_stats("100%_City", since)

    (_, total_params), (group_query, group_params) = cursor.statements
    assert total_params == ("%100\\%\\_City%",)
    assert group_params == ("%100\\%\\_City%", since)
    assert "group by category" in group_query
    assert (stats.total_incidents, stats.active_reporters) == (4, 2)
    assert stats.categories[0].avg_confidence == 77.5
