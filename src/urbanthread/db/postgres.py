"""Postgres-backed report store."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from psycopg import Cursor, errors
from psycopg.rows import dict_row

from urbanthread.config import Settings
from urbanthread.db.client import db_cursor
from urbanthread.db.duplicate_checker import DatabaseDuplicateChecker
from urbanthread.db.store import ProfileUpdate, applies_filter
from urbanthread.errors import LedgerConflictError, NotFoundError
from urbanthread.geo import bounding_box
from urbanthread.intake.quality_gate import DuplicateKey
from urbanthread.models import (
    CategoryStats,
    CityStats,
    Comment,
    EvidenceEntry,
    GeoPoint,
    Report,
    ReportPage,
    ReputationProfile,
)
from urbanthread.utils.logging import get_logger
from urbanthread.utils.time import utc_now


logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

PROFILE_COLUMNS = (
    "user_id",
    "reports_submitted",
    "avg_confidence",
    "image_analyses",
    "avg_image_score",
    "high_credibility_reports",
    "reports_published",
    "safety_violations",
    "detected_labels",
    "credibility_score",
)
REPORT_COLUMNS = (
    "id",
    "user_id",
    "category",
    "severity",
    "description",
    "lat",
    "lng",
    "location_name",
    "city",
    "formatted_address",
    "photo_ref",
    "confidence_score",
    "status",
    "image_score",
    "image_labels",
    "safety_rating",
    "comments_count",
    "created_at",
    "expires_at",
)
COMMENT_COLUMNS = (
    "id",
    "report_id",
    "user_id",
    "body",
    "parent_comment_id",
    "created_at",
    "expires_at",
)

RETRYABLE_ERRORS = (errors.LockNotAvailable, errors.SerializationFailure, errors.DeadlockDetected)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def init_schema(settings: Optional[Settings] = None) -> None:
    """Create tables and indexes if they do not exist."""
    with db_cursor(settings) as cursor:
        cursor.execute(SCHEMA_PATH.read_text(encoding="utf-8"))


class PostgresStore:
    """Report store on Postgres; ledger updates lock the profile row."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        self._duplicates = DatabaseDuplicateChecker(self.settings)

    def get_profile(self, user_id: str) -> ReputationProfile:
        with db_cursor(self.settings, row_factory=dict_row) as cursor:
            cursor.execute(
                f"select {', '.join(PROFILE_COLUMNS)} from profiles where user_id = %s",
                (user_id,),
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError(f"profile not found: {user_id}")
        return ReputationProfile.model_validate(row)

    def record_submission(self, report: Report, update: ProfileUpdate) -> ReputationProfile:
        attempts = max(1, self.settings.ledger_max_retries)
        for attempt in range(1, attempts + 1):
            try:
                with db_cursor(self.settings, row_factory=dict_row) as cursor:
                    current = self._lock_profile(cursor, report.user_id)
                    updated = update(current)
                    self._write_profile(cursor, updated)
                    self._insert_report(cursor, report)
                return updated
            except RETRYABLE_ERRORS as exc:
                logger.warning(
                    "ledger.conflict user_id=%s attempt=%s error=%s",
                    report.user_id,
                    attempt,
                    exc,
                )
        raise LedgerConflictError(
            f"reputation update for {report.user_id} failed after {attempts} attempts"
        )

    def get_report(self, report_id: str, now: Optional[datetime] = None) -> Report:
        now = now or utc_now()
        with db_cursor(self.settings, row_factory=dict_row) as cursor:
            cursor.execute(
                f"select {', '.join(REPORT_COLUMNS)} from reports where id = %s and expires_at > %s",
                (report_id, now),
            )
            row = cursor.fetchone()
            if row is None:
                raise NotFoundError(f"report not found: {report_id}")
            cursor.execute(
                "select source, score, details, recorded_at as timestamp from report_evidence "
                "where report_id = %s order by position",
                (report_id,),
            )
            evidence = [EvidenceEntry.model_validate(item) for item in cursor.fetchall()]
        return Report.model_validate({**row, "evidence": evidence})

    def list_visible_reports(
        self,
        now: Optional[datetime] = None,
        center: Optional[GeoPoint] = None,
        radius_km: Optional[float] = None,
        category: Optional[str] = None,
    ) -> list[Report]:
        now = now or utc_now()
        conditions = ["status = 'published'", "expires_at > %s"]
        params: list[object] = [now]

        if center is not None and radius_km is not None:
            box = bounding_box(center, radius_km)
            # Rows without coordinates stay in; the feed places them last.
            conditions.append(
                "(lat is null or lng is null or (lat between %s and %s and lng between %s and %s))"
            )
            params.extend([box.min_lat, box.max_lat, box.min_lng, box.max_lng])

        if category and category != "All":
            conditions.append("category = %s")
            params.append(category)

        query = (
            f"select {', '.join(REPORT_COLUMNS)} from reports "
            f"where {' and '.join(conditions)} order by created_at"
        )
        with db_cursor(self.settings, row_factory=dict_row) as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [Report.model_validate(row) for row in rows]

    def add_comment(self, comment: Comment) -> Report:
        with db_cursor(self.settings, row_factory=dict_row) as cursor:
            cursor.execute(
                "update reports set comments_count = comments_count + 1 "
                f"where id = %s returning {', '.join(REPORT_COLUMNS)}",
                (comment.report_id,),
            )
            row = cursor.fetchone()
            if row is None:
                raise NotFoundError(f"report not found: {comment.report_id}")
            placeholders = ", ".join(["%s"] * len(COMMENT_COLUMNS))
            cursor.execute(
                f"insert into comments ({', '.join(COMMENT_COLUMNS)}) values ({placeholders})",
                [getattr(comment, column) for column in COMMENT_COLUMNS],
            )
        return Report.model_validate(row)

    def list_comments(self, report_id: str, now: Optional[datetime] = None) -> list[Comment]:
        now = now or utc_now()
        with db_cursor(self.settings, row_factory=dict_row) as cursor:
            cursor.execute(
                f"select {', '.join(COMMENT_COLUMNS)} from comments "
                "where report_id = %s and expires_at > %s order by created_at",
                (report_id, now),
            )
            rows = cursor.fetchall()
        return [Comment.model_validate(row) for row in rows]

    def find_duplicate(self, key: DuplicateKey, submitted_at: datetime) -> Optional[str]:
        return self._duplicates.find_duplicate(key, submitted_at)

    def list_user_reports(
        self,
        user_id: str,
        status: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ReportPage:
        conditions = ["user_id = %s"]
        params: list[object] = [user_id]
        if applies_filter(status):
            conditions.append("status = %s")
            params.append(status)
        if applies_filter(category):
            conditions.append("category = %s")
            params.append(category)
        where = " and ".join(conditions)
        offset = max(0, offset)

        with db_cursor(self.settings, row_factory=dict_row) as cursor:
            cursor.execute(f"select count(*) as total from reports where {where}", params)
            total = cursor.fetchone()["total"]
            cursor.execute(
                f"select {', '.join(REPORT_COLUMNS)} from reports where {where} "
                "order by created_at desc limit %s offset %s",
                [*params, max(0, limit), offset],
            )
            rows = cursor.fetchall()
        return ReportPage(
            reports=[Report.model_validate(row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
            status=status,
            category=category,
        )

    def leaderboard(self, limit: int = 10) -> list[ReputationProfile]:
        with db_cursor(self.settings, row_factory=dict_row) as cursor:
            cursor.execute(
                f"select {', '.join(PROFILE_COLUMNS)} from profiles where reports_published > 0 "
                "order by credibility_score desc, reports_published desc, user_id limit %s",
                (max(0, limit),),
            )
            rows = cursor.fetchall()
        return [ReputationProfile.model_validate(row) for row in rows]

    def city_stats(self, city: str, since: datetime) -> CityStats:
        pattern = "%" + _escape_like(city.strip()) + "%"
        with db_cursor(self.settings, row_factory=dict_row) as cursor:
            cursor.execute(
                "select count(*) as total, count(distinct user_id) as reporters from reports "
                "where status = 'published' and city ilike %s",
                (pattern,),
            )
            totals = cursor.fetchone()
            cursor.execute(
                "select category, count(*) as count, "
                "round(avg(confidence_score)::numeric, 1) as avg_confidence from reports "
                "where status = 'published' and city ilike %s and created_at >= %s "
                "group by category order by count desc, category",
                (pattern, since),
            )
            rows = cursor.fetchall()
        return CityStats(
            city=city,
            total_incidents=totals["total"],
            active_reporters=totals["reporters"],
            since=since,
            categories=[CategoryStats.model_validate(row) for row in rows],
        )

    def _lock_profile(self, cursor: Cursor, user_id: str) -> ReputationProfile:
        # Bounded wait: a stuck lock surfaces as LockNotAvailable and is retried.
        cursor.execute(
            "select set_config('lock_timeout', %s, true)",
            (f"{self.settings.ledger_lock_timeout_ms}ms",),
        )
        cursor.execute(
            "insert into profiles (user_id, credibility_score) values (%s, %s) "
            "on conflict (user_id) do nothing",
            (user_id, self.settings.default_credibility),
        )
        cursor.execute(
            f"select {', '.join(PROFILE_COLUMNS)} from profiles where user_id = %s for update",
            (user_id,),
        )
        row = cursor.fetchone()
        if row is None:
            raise NotFoundError(f"profile not found: {user_id}")
        return ReputationProfile.model_validate(row)

    def _write_profile(self, cursor: Cursor, profile: ReputationProfile) -> None:
        columns = PROFILE_COLUMNS[1:]
        assignments = ", ".join(f"{column} = %s" for column in columns)
        values: list[Any] = [getattr(profile, column) for column in columns]
        cursor.execute(
            f"update profiles set {assignments}, updated_at = now() where user_id = %s",
            [*values, profile.user_id],
        )

    def _insert_report(self, cursor: Cursor, report: Report) -> None:
        placeholders = ", ".join(["%s"] * len(REPORT_COLUMNS))
        cursor.execute(
            f"insert into reports ({', '.join(REPORT_COLUMNS)}) values ({placeholders})",
            [getattr(report, column) for column in REPORT_COLUMNS],
        )
        if not report.evidence:
            return

        row_placeholder = "(%s, %s, %s, %s, %s, %s)"
        values: list[object] = []
        for position, entry in enumerate(report.evidence):
            values.extend(
                [report.id, position, entry.source, entry.score, entry.details, entry.timestamp]
            )
        cursor.execute(
            "insert into report_evidence (report_id, position, source, score, details, recorded_at) "
            "values " + ",".join([row_placeholder] * len(report.evidence)),
            values,
        )
