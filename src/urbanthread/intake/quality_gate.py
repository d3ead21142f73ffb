"""Quality gate for incoming report submissions."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

from urbanthread.config import Settings
from urbanthread.models import (
    CATEGORIES,
    SEVERITIES,
    AcceptDecision,
    NormalizedSubmission,
    RejectDecision,
    ReportSubmission,
)
from urbanthread.utils.text import normalize_for_dedupe, normalize_whitespace
from urbanthread.utils.time import utc_now


MAX_DESCRIPTION_CHARS = 500
MAX_LOCATION_NAME_CHARS = 200

SPAM_TERMS = {
    "test",
    "testing",
    "asdf",
    "asdfasdf",
    "qwerty",
    "1234",
}


@dataclass(frozen=True)
class DuplicateKey:
    """Key for strict duplicate detection."""

    user_id: str
    description: str
    lat_round: float
    lng_round: float


@dataclass
class DuplicateEntry:
    """Tracked duplicate entry for in-process checks."""

    submitted_at: datetime


class DuplicateChecker(Protocol):
    """Protocol for checking duplicates against storage."""

    def find_duplicate(self, key: DuplicateKey, submitted_at: datetime) -> Optional[str]:
        """Return the existing report id if a duplicate is found."""


class QualityGate:
    """Reject malformed submissions before they reach scoring."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        duplicate_checker: Optional[DuplicateChecker] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.duplicate_checker = duplicate_checker
        self._seen: dict[DuplicateKey, list[DuplicateEntry]] = {}
        self._lock = threading.Lock()

    def evaluate(
        self,
        submission: ReportSubmission,
        now: Optional[datetime] = None,
    ) -> AcceptDecision | RejectDecision:
        """Evaluate a submission and return accept/reject decision."""
        now = now or utc_now()

        user_id = (submission.user_id or "").strip()
        if not user_id:
            return RejectDecision(submission=submission, reason="missing_user_id")

        if submission.lat is None or submission.lng is None:
            return RejectDecision(submission=submission, reason="missing_coords")

        if not (math.isfinite(submission.lat) and math.isfinite(submission.lng)):
            return RejectDecision(submission=submission, reason="invalid_coords")

        if not (-90 <= submission.lat <= 90 and -180 <= submission.lng <= 180):
            return RejectDecision(submission=submission, reason="invalid_coords")

        if submission.category not in CATEGORIES:
            return RejectDecision(
                submission=submission,
                reason="invalid_category",
                details={"category": submission.category, "allowed": list(CATEGORIES)},
            )

        severity = submission.severity or "Medium"
        if severity not in SEVERITIES:
            return RejectDecision(
                submission=submission,
                reason="invalid_severity",
                details={"severity": submission.severity},
            )

        description = normalize_whitespace(submission.description or "")
        if not description:
            return RejectDecision(submission=submission, reason="missing_description")

        if len(description) > MAX_DESCRIPTION_CHARS:
            return RejectDecision(
                submission=submission,
                reason="description_too_long",
                details={"length": len(description), "max": MAX_DESCRIPTION_CHARS},
            )

        location_name = normalize_whitespace(submission.location_name or "") or None
        if location_name and len(location_name) > MAX_LOCATION_NAME_CHARS:
            return RejectDecision(
                submission=submission,
                reason="location_name_too_long",
                details={"length": len(location_name), "max": MAX_LOCATION_NAME_CHARS},
            )

        if normalize_for_dedupe(description) in SPAM_TERMS:
            return RejectDecision(submission=submission, reason="spam_text")

        if submission.photo_bytes and len(submission.photo_bytes) > self.settings.max_photo_bytes:
            return RejectDecision(
                submission=submission,
                reason="photo_too_large",
                details={"bytes": len(submission.photo_bytes), "max": self.settings.max_photo_bytes},
            )

        duplicate_id = self._check_duplicate(
            user_id, description, submission.lat, submission.lng, submitted_at=now
        )
        if duplicate_id:
            return RejectDecision(
                submission=submission,
                reason="duplicate_strict",
                details={
                    "duplicate_of": duplicate_id,
                    "window_hours": self.settings.duplicate_window_hours,
                    "coord_precision": self.settings.duplicate_coord_precision,
                },
            )

        normalized = NormalizedSubmission(
            user_id=user_id,
            category=submission.category,
            severity=severity,
            description=description,
            lat=submission.lat,
            lng=submission.lng,
            location_name=location_name,
            photo_ref=submission.photo_ref,
            has_photo=bool(submission.photo_ref or submission.photo_bytes),
        )
        return AcceptDecision(submission=submission, normalized=normalized)

    def _duplicate_key(self, user_id: str, description: str, lat: float, lng: float) -> DuplicateKey:
        precision = self.settings.duplicate_coord_precision
        return DuplicateKey(
            user_id=user_id,
            description=normalize_for_dedupe(description),
            lat_round=round(lat, precision),
            lng_round=round(lng, precision),
        )

    def _check_duplicate(
        self,
        user_id: str,
        description: str,
        lat: float,
        lng: float,
        submitted_at: datetime,
    ) -> Optional[str]:
        """Check for a duplicate and, if there is none, reserve the key.

        The reservation holds until ``release`` drops it, so a concurrent
        identical submission sees it even before the first one is stored.
        """
        key = self._duplicate_key(user_id, description, lat, lng)
        with self._lock:
            self._prune(submitted_at)
            if self._seen.get(key):
                return "in-process"

            if self.duplicate_checker:
                duplicate_id = self.duplicate_checker.find_duplicate(key, submitted_at)
                if duplicate_id:
                    return duplicate_id

            self._seen.setdefault(key, []).append(DuplicateEntry(submitted_at=submitted_at))
        return None

    def release(self, submission: NormalizedSubmission, submitted_at: datetime) -> None:
        """Forget the reservation made for an accepted submission that was never stored."""
        key = self._duplicate_key(submission.user_id, submission.description, submission.lat, submission.lng)
        with self._lock:
            entries = [entry for entry in self._seen.get(key, []) if entry.submitted_at != submitted_at]
            if entries:
                self._seen[key] = entries
            else:
                self._seen.pop(key, None)

    def _prune(self, now: datetime) -> None:
        window = timedelta(hours=self.settings.duplicate_window_hours)
        for key in list(self._seen):
            recent = [entry for entry in self._seen[key] if abs(now - entry.submitted_at) <= window]
            if recent:
                self._seen[key] = recent
            else:
                del self._seen[key]
