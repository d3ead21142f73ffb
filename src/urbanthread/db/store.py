"""Storage contract and the in-process implementation."""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from urbanthread.errors import NotFoundError
from urbanthread.geo import bounding_box
from urbanthread.intake.quality_gate import DuplicateKey
from urbanthread.models import (
    CategoryStats,
    CityStats,
    Comment,
    GeoPoint,
    Report,
    ReportPage,
    ReputationProfile,
)
from urbanthread.scoring.reputation import new_profile
from urbanthread.utils.text import normalize_for_dedupe
from urbanthread.utils.time import is_expired, utc_now


ProfileUpdate = Callable[[ReputationProfile], ReputationProfile]


def applies_filter(value: Optional[str]) -> bool:
    """True when a history filter narrows the result; "all" in any case does not."""
    return bool(value) and value.lower() != "all"


class ReportStore(Protocol):
    """Persistence needed by the submission pipeline, feed, routes and comments."""

    def get_profile(self, user_id: str) -> ReputationProfile:
        ...

    def record_submission(self, report: Report, update: ProfileUpdate) -> ReputationProfile:
        """Apply ``update`` to the owner's profile and persist ``report``.

        The profile read-modify-write is atomic per user.
        """
        ...

    def get_report(self, report_id: str, now: Optional[datetime] = None) -> Report:
        ...

    def list_visible_reports(
        self,
        now: Optional[datetime] = None,
        center: Optional[GeoPoint] = None,
        radius_km: Optional[float] = None,
        category: Optional[str] = None,
    ) -> list[Report]:
        ...

    def add_comment(self, comment: Comment) -> Report:
        """Persist ``comment`` and bump the report's comment counter."""
        ...

    def list_comments(self, report_id: str, now: Optional[datetime] = None) -> list[Comment]:
        ...

    def find_duplicate(self, key: DuplicateKey, submitted_at: datetime) -> Optional[str]:
        ...

    def list_user_reports(
        self,
        user_id: str,
        status: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ReportPage:
        """Return a user's reports, newest first, expired ones included."""
        ...

    def leaderboard(self, limit: int = 10) -> list[ReputationProfile]:
        """Profiles with at least one published report, best credibility first."""
        ...

    def city_stats(self, city: str, since: datetime) -> CityStats:
        ...


class InMemoryStore:
    """Process-local store. Ledger updates are serialized with a lock per user."""

    def __init__(self, duplicate_window_hours: int = 24, coord_precision: int = 4) -> None:
        self._profiles: dict[str, ReputationProfile] = {}
        self._reports: dict[str, Report] = {}
        self._comments: dict[str, list[Comment]] = defaultdict(list)
        self._lock = threading.Lock()
        self._user_locks: dict[str, threading.Lock] = {}
        self._duplicate_window = timedelta(hours=duplicate_window_hours)
        self._coord_precision = coord_precision

    def _user_lock(self, user_id: str) -> threading.Lock:
        with self._lock:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = self._user_locks[user_id] = threading.Lock()
            return lock

    def get_profile(self, user_id: str) -> ReputationProfile:
        with self._lock:
            profile = self._profiles.get(user_id)
        if profile is None:
            raise NotFoundError(f"profile not found: {user_id}")
        return profile

    def ensure_profile(self, user_id: str) -> ReputationProfile:
        with self._lock:
            return self._profiles.setdefault(user_id, new_profile(user_id))

    def record_submission(self, report: Report, update: ProfileUpdate) -> ReputationProfile:
        with self._user_lock(report.user_id):
            current = self.ensure_profile(report.user_id)
            updated = update(current)
            with self._lock:
                self._profiles[report.user_id] = updated
                self._reports[report.id] = report
        return updated

    def get_report(self, report_id: str, now: Optional[datetime] = None) -> Report:
        with self._lock:
            report = self._reports.get(report_id)
        if report is None or is_expired(report.expires_at, now):
            raise NotFoundError(f"report not found: {report_id}")
        return report

    def list_visible_reports(
        self,
        now: Optional[datetime] = None,
        center: Optional[GeoPoint] = None,
        radius_km: Optional[float] = None,
        category: Optional[str] = None,
    ) -> list[Report]:
        now = now or utc_now()
        box = bounding_box(center, radius_km) if center is not None and radius_km is not None else None
        with self._lock:
            reports = list(self._reports.values())

        visible: list[Report] = []
        for report in reports:
            if report.status != "published" or is_expired(report.expires_at, now):
                continue
            if category and category != "All" and report.category != category:
                continue
            if box is not None and report.lat is not None and report.lng is not None:
                if not box.contains(report.lat, report.lng):
                    continue
            visible.append(report)
        return visible

    def add_comment(self, comment: Comment) -> Report:
        with self._lock:
            report = self._reports.get(comment.report_id)
            if report is None:
                raise NotFoundError(f"report not found: {comment.report_id}")
            updated = report.model_copy(update={"comments_count": report.comments_count + 1})
            self._reports[report.id] = updated
            self._comments[comment.report_id].append(comment)
        return updated

    def list_comments(self, report_id: str, now: Optional[datetime] = None) -> list[Comment]:
        with self._lock:
            comments = list(self._comments.get(report_id, []))
        live = [comment for comment in comments if not is_expired(comment.expires_at, now)]
        return sorted(live, key=lambda comment: comment.created_at)

    def find_duplicate(self, key: DuplicateKey, submitted_at: datetime) -> Optional[str]:
        with self._lock:
            reports = list(self._reports.values())
        for report in reports:
            if report.user_id != key.user_id or report.lat is None or report.lng is None:
                continue
            if abs(report.created_at - submitted_at) > self._duplicate_window:
                continue
            if (
                round(report.lat, self._coord_precision) == key.lat_round
                and round(report.lng, self._coord_precision) == key.lng_round
                and normalize_for_dedupe(report.description) == key.description
            ):
                return report.id
        return None

    def list_user_reports(
        self,
        user_id: str,
        status: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ReportPage:
        with self._lock:
            reports = [report for report in self._reports.values() if report.user_id == user_id]
        if applies_filter(status):
            reports = [report for report in reports if report.status == status]
        if applies_filter(category):
            reports = [report for report in reports if report.category == category]
        reports.sort(key=lambda report: report.created_at, reverse=True)
        offset = max(0, offset)
        return ReportPage(
            reports=reports[offset : offset + max(0, limit)],
            total=len(reports),
            limit=limit,
            offset=offset,
            status=status,
            category=category,
        )

    def leaderboard(self, limit: int = 10) -> list[ReputationProfile]:
        with self._lock:
            profiles = [profile for profile in self._profiles.values() if profile.reports_published > 0]
        profiles.sort(
            key=lambda profile: (-profile.credibility_score, -profile.reports_published, profile.user_id)
        )
        return profiles[: max(0, limit)]

    def city_stats(self, city: str, since: datetime) -> CityStats:
        needle = city.strip().casefold()
        with self._lock:
            reports = [
                report
                for report in self._reports.values()
                if report.status == "published" and report.city and needle in report.city.casefold()
            ]

        grouped: dict[str, list[int]] = defaultdict(list)
        for report in reports:
            if report.created_at >= since:
                grouped[report.category].append(report.confidence_score)
        categories = [
            CategoryStats(
                category=category,
                count=len(scores),
                avg_confidence=round(sum(scores) / len(scores), 1),
            )
            for category, scores in grouped.items()
        ]
        categories.sort(key=lambda item: (-item.count, item.category))
        return CityStats(
            city=city,
            total_incidents=len(reports),
            active_reporters=len({report.user_id for report in reports}),
            since=since,
            categories=categories,
        )
