"""Report submission pipeline.

One submission runs, in order: quality gate, geocoding (cosmetic), signal
adapters, confidence calculation, reputation ledger update, persistence.
Only validation failures abort; every signal degrades to its default.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from urbanthread.config import Settings
from urbanthread.db.store import ReportStore
from urbanthread.errors import SubmissionRejected
from urbanthread.intake.quality_gate import QualityGate
from urbanthread.models import (
    ImageSignal,
    NormalizedSubmission,
    RejectDecision,
    Report,
    ReportSubmission,
    ReputationProfile,
    SubmissionResult,
)
from urbanthread.scoring.confidence import ConfidenceCalculator, ConfidenceOutcome, clamp_score
from urbanthread.scoring.reputation import apply_report
from urbanthread.signals.base import PlaceInfo, SignalContext, default_place
from urbanthread.utils.logging import get_logger
from urbanthread.utils.time import expiry_from, utc_now


logger = get_logger(__name__)


class SubmissionPipeline:
    """Score, account and persist incoming reports."""

    def __init__(
        self,
        store: ReportStore,
        signals: Optional[SignalContext] = None,
        settings: Optional[Settings] = None,
        gate: Optional[QualityGate] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store
        self.signals = signals or SignalContext()
        self.gate = gate or QualityGate(settings=self.settings, duplicate_checker=store)
        self.calculator = ConfidenceCalculator(self.signals, self.settings)

    def submit(self, submission: ReportSubmission, now: Optional[datetime] = None) -> SubmissionResult:
        """Run one submission end to end; raises SubmissionRejected on invalid input."""
        now = now or utc_now()

        decision = self.gate.evaluate(submission, now=now)
        if isinstance(decision, RejectDecision):
            logger.info(
                "submission.rejected user_id=%s reason=%s details=%s",
                submission.user_id,
                decision.reason,
                decision.details,
            )
            raise SubmissionRejected(decision)

        normalized = decision.normalized
        try:
            return self._score_and_store(submission, normalized, now)
        except Exception:
            self.gate.release(normalized, now)
            raise

    def _score_and_store(
        self,
        submission: ReportSubmission,
        normalized: NormalizedSubmission,
        now: datetime,
    ) -> SubmissionResult:
        place = self._place(normalized)
        outcome = self.calculator.assess(normalized, photo_bytes=submission.photo_bytes, now=now)
        report = self._build_report(normalized, outcome, place, now)
        image_signal = _image_signal(outcome)

        def update(profile: ReputationProfile) -> ReputationProfile:
            return apply_report(
                profile,
                outcome.score,
                image_signal,
                publish_threshold=self.settings.publish_threshold,
                high_credibility_threshold=self.settings.high_credibility_threshold,
                credibility_floor=self.settings.credibility_floor,
                default_credibility=self.settings.default_credibility,
            )

        try:
            profile = self.store.record_submission(report, update)
        except Exception:
            logger.exception("submission.store_failed report_id=%s user_id=%s", report.id, report.user_id)
            raise

        logger.info(
            "submission.stored report_id=%s user_id=%s score=%s status=%s credibility=%s",
            report.id,
            report.user_id,
            report.confidence_score,
            report.status,
            profile.credibility_score,
        )
        return SubmissionResult(report=report, profile=profile, reason=outcome.reason())

    def _place(self, submission: NormalizedSubmission) -> PlaceInfo:
        try:
            return self.signals.geocoder.reverse(submission.lat, submission.lng)
        except Exception as exc:
            logger.warning("submission.geocode_failed error=%s", exc)
            return default_place(submission.lat, submission.lng)

    def _build_report(
        self,
        submission: NormalizedSubmission,
        outcome: ConfidenceOutcome,
        place: PlaceInfo,
        now: datetime,
    ) -> Report:
        image = outcome.image
        image_score = outcome.image_signal
        return Report(
            id=uuid.uuid4().hex,
            user_id=submission.user_id,
            category=submission.category,
            severity=submission.severity,
            description=submission.description,
            lat=submission.lat,
            lng=submission.lng,
            location_name=submission.location_name,
            city=place.city if place.city != "Unknown" else None,
            formatted_address=place.formatted_address or None,
            photo_ref=submission.photo_ref,
            confidence_score=outcome.score,
            status=outcome.status,
            evidence=outcome.evidence,
            image_score=clamp_score(image_score) if image_score is not None else None,
            image_labels=[label.name for label in image.labels] if image and image.success else [],
            safety_rating=image.safety_rating if image and image.success else None,
            created_at=now,
            expires_at=expiry_from(now, self.settings.report_ttl_days),
        )


def _image_signal(outcome: ConfidenceOutcome) -> Optional[ImageSignal]:
    if outcome.image is None or outcome.image_signal is None:
        return None
    return ImageSignal(
        score=outcome.image_signal,
        labels=[label.name for label in outcome.image.labels],
        safety_violation_count=outcome.image.safety_violation_count,
    )


def submit_report(
    submission: ReportSubmission,
    *,
    store: ReportStore,
    signals: Optional[SignalContext] = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> SubmissionResult:
    """Convenience wrapper for a single submission."""
    return SubmissionPipeline(store, signals=signals, settings=settings).submit(submission, now=now)
