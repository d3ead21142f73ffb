from datetime import datetime, timedelta, timezone

import pytest

from urbanthread.db.store import InMemoryStore
from urbanthread.feed.service import city_stats
from urbanthread.models import Report
from urbanthread.profiles.service import get_leaderboard, user_history


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _base_report(**overrides) -> Report:
    payload = {
        "id": "r-1",
        "user_id": "user-1",
        "category": "Traffic",
        "severity": "Medium",
        "description": "Slow traffic past the metro works",
        "lat": 12.97,
        "lng": 77.59,
        "city": "Bengaluru",
        "confidence_score": 80,
        "status": "published",
        "created_at": NOW,
        "expires_at": NOW + timedelta(days=3),
    }
    payload.update(overrides)
    return Report.model_validate(payload)


def _store_with(*reports: Report, profiles=None) -> InMemoryStore:
    profiles = profiles or {}
    store = InMemoryStore()
    for report in reports:
        overrides = profiles.get(report.user_id, {})
        store.record_submission(report, lambda profile: profile.model_copy(update=overrides))
    return store


def test_history_is_newest_first_and_paged():
    store = _store_with(
        *[_base_report(id=f"r-{index}", created_at=NOW - timedelta(hours=index)) for index in range(5)],
        _base_report(id="other", user_id="user-2"),
    )

    first = user_history(store, "user-1", limit=2)
    assert [report.id for report in first.reports] == ["r-0", "r-1"]
    assert (first.total, first.limit, first.offset) == (5, 2, 0)

    last = user_history(store, "user-1", page=3, limit=2)
    assert [report.id for report in last.reports] == ["r-4"]
    assert user_history(store, "user-1", page=4, limit=2).reports == []


def test_history_filters_by_status_and_category():
    store = _store_with(
        _base_report(id="pub-traffic"),
        _base_report(id="draft", status="unpublished", confidence_score=40),
        _base_report(id="pub-flood", category="Flood", created_at=NOW - timedelta(days=10)),
    )

    assert [r.id for r in user_history(store, "user-1", status="unpublished").reports] == ["draft"]
    assert [r.id for r in user_history(store, "user-1", category="Flood").reports] == ["pub-flood"]
    both = user_history(store, "user-1", status="published", category="Traffic")
    assert [r.id for r in both.reports] == ["pub-traffic"]
    assert user_history(store, "user-1", status="all", category="All").total == 3


def test_history_keeps_expired_reports():
    store = _store_with(
        _base_report(id="old", created_at=NOW - timedelta(days=9), expires_at=NOW - timedelta(days=6))
    )
    assert user_history(store, "user-1").total == 1


def test_history_rejects_bad_paging():
    store = InMemoryStore()
    with pytest.raises(ValueError):
        user_history(store, "user-1", page=0)
    with pytest.raises(ValueError):
        user_history(store, "user-1", limit=0)
    assert user_history(store, "nobody").total == 0


def test_leaderboard_orders_by_credibility_then_published():
    store = _store_with(
        _base_report(id="a", user_id="alice"),
        _base_report(id="b", user_id="bob"),
        _base_report(id="c", user_id="chen"),
        _base_report(id="d", user_id="dana"),
        profiles={
            "alice": {"credibility_score": 82, "reports_published": 4, "reports_submitted": 5},
            "bob": {"credibility_score": 90, "reports_published": 25, "reports_submitted": 25},
            "chen": {"credibility_score": 82, "reports_published": 11, "reports_submitted": 12},
            "dana": {"credibility_score": 99, "reports_published": 0, "reports_submitted": 3},
        },
    )

    board = get_leaderboard(store)
    assert [entry.user_id for entry in board] == ["bob", "chen", "alice"]
    assert [entry.rank for entry in board] == [1, 2, 3]
    assert [entry.reputation_level for entry in board] == ["Expert", "Trusted", "Reporter"]
    assert [entry.user_id for entry in get_leaderboard(store, limit=1)] == ["bob"]


def test_city_stats_groups_recent_published_reports():
    store = _store_with(
        _base_report(id="t1", confidence_score=80),
        _base_report(id="t2", user_id="user-2", confidence_score=75, city="Bengaluru Urban"),
        _base_report(id="f1", category="Flood", confidence_score=91),
        _base_report(id="old", category="Flood", created_at=NOW - timedelta(days=40)),
        _base_report(id="draft", status="unpublished", confidence_score=30),
        _base_report(id="elsewhere", city="Mysuru"),
    )

    stats = city_stats(store, "  bengaluru ", now=NOW)
    assert stats.city == "bengaluru"
    assert stats.total_incidents == 4
    assert stats.active_reporters == 2
    assert stats.since == NOW - timedelta(days=30)
    assert [(item.category, item.count) for item in stats.categories] == [("Traffic", 2), ("Flood", 1)]
    assert stats.categories[0].avg_confidence == 77.5


def test_city_stats_requires_city():
    with pytest.raises(ValueError):
        city_stats(InMemoryStore(), "   ", now=NOW)
