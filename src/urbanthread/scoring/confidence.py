"""Report confidence: fuse signal scores and submission quality into 0..100."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from urbanthread.config import Settings
from urbanthread.models import (
    EvidenceEntry,
    ImageAnalysis,
    NormalizedSubmission,
    ReportStatus,
)
from urbanthread.signals.base import SignalContext
from urbanthread.utils.logging import get_logger
from urbanthread.utils.text import truncate
from urbanthread.utils.time import utc_now


logger = get_logger(__name__)

NEUTRAL_SIGNAL = 50
PUBLISH_THRESHOLD = 70
LONG_DESCRIPTION_CHARS = 50

PHOTO_BONUS = 10
LOCATION_NAME_BONUS = 5
LONG_DESCRIPTION_BONUS = 5

# Weights in tenths so the blend stays exact for integer signals.
_BLEND_WITH_IMAGE = (4, 4, 2)  # text, image, neutral prior
_BLEND_TEXT_ONLY = (5, 3)  # text, neutral prior


def sanitize_signal(value: Any) -> Optional[float]:
    """Return the value as a float in [0, 100], or None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or not 0 <= number <= 100:
        return None
    return number


def clamp_score(value: float, low: int = 0, high: int = 100) -> int:
    """Floor into an integer score within [low, high]."""
    if not math.isfinite(value):
        return low
    return int(min(high, max(low, math.floor(value))))


def base_blend(text_signal: float, image_signal: Optional[float], neutral: float) -> int:
    if image_signal is not None:
        w_text, w_image, w_prior = _BLEND_WITH_IMAGE
        total = w_text * text_signal + w_image * image_signal + w_prior * neutral
    else:
        w_text, w_prior = _BLEND_TEXT_ONLY
        total = w_text * text_signal + w_prior * neutral
    return clamp_score(total / 10)


def quality_bonuses(
    has_photo: bool,
    has_location_name: bool,
    description_length: int,
    long_description_chars: int = LONG_DESCRIPTION_CHARS,
) -> list[tuple[str, int]]:
    """Bonuses earned by the submission itself, as (evidence source, points)."""
    bonuses: list[tuple[str, int]] = []
    if has_photo:
        bonuses.append(("photo_attached", PHOTO_BONUS))
    if has_location_name:
        bonuses.append(("location_named", LOCATION_NAME_BONUS))
    if description_length > long_description_chars:
        bonuses.append(("detailed_description", LONG_DESCRIPTION_BONUS))
    return bonuses


def compute_confidence(
    text_signal: Any,
    image_signal: Any,
    has_photo: bool,
    has_location_name: bool,
    description_length: int,
    neutral: int = NEUTRAL_SIGNAL,
    long_description_chars: int = LONG_DESCRIPTION_CHARS,
) -> int:
    """Fuse the signals into an integer confidence score in [0, 100].

    An unusable text signal falls back to ``neutral``; an unusable image
    signal is treated as absent, which switches to the text-only blend.
    """
    text = sanitize_signal(text_signal)
    if text is None:
        text = float(neutral)
    image = sanitize_signal(image_signal)

    score = base_blend(text, image, neutral)
    for _, points in quality_bonuses(
        has_photo, has_location_name, description_length, long_description_chars
    ):
        score = min(100, score + points)
    return clamp_score(score)


def decide_status(score: int, threshold: int = PUBLISH_THRESHOLD) -> ReportStatus:
    """Published iff the score reaches the threshold; nothing is dropped."""
    return "published" if score >= threshold else "unpublished"


@dataclass
class ConfidenceOutcome:
    """Score, decision and the evidence trail that produced them."""

    score: int
    status: ReportStatus
    evidence: list[EvidenceEntry] = field(default_factory=list)
    text_signal: Optional[float] = None
    image: Optional[ImageAnalysis] = None

    @property
    def image_signal(self) -> Optional[float]:
        if self.image is None or not self.image.success:
            return None
        return sanitize_signal(self.image.score)

    def reason(self) -> str:
        return "; ".join(entry.details for entry in self.evidence if entry.details)


class ConfidenceCalculator:
    """Invoke the injected signal adapters and score one submission."""

    def __init__(self, signals: SignalContext, settings: Optional[Settings] = None) -> None:
        self.signals = signals
        self.settings = settings or Settings()

    def assess(
        self,
        submission: NormalizedSubmission,
        photo_bytes: Optional[bytes] = None,
        now: Optional[datetime] = None,
    ) -> ConfidenceOutcome:
        now = now or utc_now()
        neutral = self.settings.neutral_signal

        text_signal = self._text_signal(submission)
        image = self._image_analysis(submission, photo_bytes)
        image_signal = sanitize_signal(image.score) if image and image.success else None

        score = compute_confidence(
            text_signal,
            image_signal,
            has_photo=submission.has_photo,
            has_location_name=bool(submission.location_name),
            description_length=len(submission.description),
            neutral=neutral,
            long_description_chars=self.settings.long_description_chars,
        )
        status = decide_status(score, self.settings.publish_threshold)

        evidence = self._evidence(submission, text_signal, image, image_signal, score, status, now)
        logger.info(
            "confidence.scored user_id=%s text=%s image=%s score=%s status=%s",
            submission.user_id,
            text_signal,
            image_signal,
            score,
            status,
        )
        return ConfidenceOutcome(
            score=score,
            status=status,
            evidence=evidence,
            text_signal=text_signal,
            image=image,
        )

    def _text_signal(self, submission: NormalizedSubmission) -> Optional[float]:
        try:
            raw = self.signals.text_scorer.score(
                category=submission.category,
                description=submission.description,
                location_label=submission.location_name,
                severity=submission.severity,
                has_photo=submission.has_photo,
            )
        except Exception as exc:
            logger.warning("confidence.text_signal.failed: %s", exc)
            return None
        return sanitize_signal(raw)

    def _image_analysis(
        self,
        submission: NormalizedSubmission,
        photo_bytes: Optional[bytes],
    ) -> Optional[ImageAnalysis]:
        if not photo_bytes:
            return None
        try:
            return self.signals.image_analyzer.analyze(photo_bytes, category=submission.category)
        except Exception as exc:
            logger.warning("confidence.image_signal.failed: %s", exc)
            return ImageAnalysis(success=False, error=str(exc))

    def _evidence(
        self,
        submission: NormalizedSubmission,
        text_signal: Optional[float],
        image: Optional[ImageAnalysis],
        image_signal: Optional[float],
        score: int,
        status: ReportStatus,
        now: datetime,
    ) -> list[EvidenceEntry]:
        neutral = self.settings.neutral_signal
        entries: list[EvidenceEntry] = []

        if text_signal is None:
            entries.append(
                _entry("text_plausibility", neutral, "Text plausibility unavailable, neutral default used", now)
            )
        else:
            entries.append(
                _entry("text_plausibility", text_signal, f"Text plausibility {int(text_signal)}/100", now)
            )

        if image_signal is not None and image is not None:
            labels = ", ".join(label.name for label in image.labels[:5]) or "no labels"
            entries.append(
                _entry(
                    "image_content",
                    image_signal,
                    f"Image credibility {int(image_signal)}/100 ({labels}); safety {image.safety_rating}",
                    now,
                )
            )
        elif image is not None:
            entries.append(_entry("image_content", 0, "Image analysis unavailable, scored from text", now))

        for source, points in quality_bonuses(
            submission.has_photo,
            bool(submission.location_name),
            len(submission.description),
            self.settings.long_description_chars,
        ):
            entries.append(_entry(source, points, f"+{points} {source.replace('_', ' ')}", now))

        entries.append(
            _entry(
                "confidence",
                score,
                f"Confidence {score}/100, {status} (threshold {self.settings.publish_threshold})",
                now,
            )
        )
        return entries


def _entry(source: str, score: float, details: str, now: datetime) -> EvidenceEntry:
    return EvidenceEntry(
        source=source,
        score=clamp_score(score),
        details=truncate(details, 300),
        timestamp=now,
    )
