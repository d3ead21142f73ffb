"""Reputation ledger: O(1) running statistics per user.

Each report folds into the profile through ``apply_report``; no per-report
history is kept. Every intermediate value is checked for finiteness so a
corrupt input (NaN, negative, None) can never leave the profile undefined.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional

from urbanthread.models import ImageSignal, ReputationProfile
from urbanthread.scoring.confidence import PUBLISH_THRESHOLD, clamp_score, sanitize_signal


DEFAULT_CREDIBILITY = 75
CREDIBILITY_FLOOR = 20
CREDIBILITY_CEILING = 100
HIGH_CREDIBILITY_THRESHOLD = 80

CONFIDENCE_WEIGHT = 0.7
IMAGE_WEIGHT = 0.3

REPUTATION_LEVELS: tuple[tuple[str, int, int], ...] = (
    # (level, min credibility, min published reports)
    ("Expert", 85, 20),
    ("Trusted", 75, 10),
    ("Contributor", 65, 5),
)


def new_profile(user_id: str, credibility: int = DEFAULT_CREDIBILITY) -> ReputationProfile:
    """Profile as created at account creation."""
    return ReputationProfile(user_id=user_id, credibility_score=credibility)


def running_average(average: float, count: int, value: float) -> float:
    """Fold ``value`` into a mean over ``count`` prior observations."""
    if count <= 0 or not math.isfinite(average):
        return value
    updated = average + (value - average) / (count + 1)
    if not math.isfinite(updated):
        return value
    return min(100.0, max(0.0, updated))


def credibility_from(
    avg_confidence: float,
    avg_image_score: float,
    floor: int = CREDIBILITY_FLOOR,
    default: int = DEFAULT_CREDIBILITY,
) -> int:
    value = CONFIDENCE_WEIGHT * avg_confidence + IMAGE_WEIGHT * avg_image_score
    if not math.isfinite(value):
        return default
    return clamp_score(value, floor, CREDIBILITY_CEILING)


def merge_labels(existing: Iterable[str], incoming: Iterable[Any]) -> list[str]:
    """Append unseen labels, keeping first-insertion order."""
    merged = list(existing)
    seen = set(merged)
    for label in incoming:
        if not isinstance(label, str):
            continue
        name = label.strip()
        if name and name not in seen:
            seen.add(name)
            merged.append(name)
    return merged


def apply_report(
    profile: ReputationProfile,
    confidence_score: Any,
    image_result: Optional[ImageSignal] = None,
    publish_threshold: int = PUBLISH_THRESHOLD,
    high_credibility_threshold: int = HIGH_CREDIBILITY_THRESHOLD,
    credibility_floor: int = CREDIBILITY_FLOOR,
    default_credibility: int = DEFAULT_CREDIBILITY,
) -> ReputationProfile:
    """Return the profile with one report folded in.

    The input profile is not mutated. Callers must run this inside the
    store's per-user atomic update so two reports never read the same prior.
    """
    score = sanitize_signal(confidence_score)
    if score is None:
        score = 0.0

    reports = _count(profile.reports_submitted)
    avg_confidence = running_average(profile.avg_confidence, reports, score)

    image_count = _count(profile.image_analyses)
    avg_image = _bounded(profile.avg_image_score)
    labels = list(profile.detected_labels)
    violations = _count(profile.safety_violations)

    if image_result is not None:
        image_score = sanitize_signal(image_result.score)
        if image_score is not None:
            avg_image = running_average(avg_image, image_count, image_score)
            image_count += 1
            labels = merge_labels(labels, image_result.labels)
            violations += _count(image_result.safety_violation_count)

    return profile.model_copy(
        update={
            "reports_submitted": reports + 1,
            "avg_confidence": avg_confidence,
            "image_analyses": image_count,
            "avg_image_score": avg_image,
            "detected_labels": labels,
            "safety_violations": violations,
            "credibility_score": credibility_from(
                avg_confidence, avg_image, credibility_floor, default_credibility
            ),
            "high_credibility_reports": _count(profile.high_credibility_reports)
            + (1 if score >= high_credibility_threshold else 0),
            "reports_published": _count(profile.reports_published)
            + (1 if score >= publish_threshold else 0),
        }
    )


def reputation_level(profile: ReputationProfile) -> str:
    for level, min_credibility, min_published in REPUTATION_LEVELS:
        if profile.credibility_score >= min_credibility and profile.reports_published >= min_published:
            return level
    if profile.reports_submitted >= 1:
        return "Reporter"
    return "Newcomer"


def success_rate(profile: ReputationProfile) -> int:
    """Share of submitted reports that were published, as a percentage."""
    if profile.reports_submitted <= 0:
        return 0
    return round(profile.reports_published / profile.reports_submitted * 100)


def _count(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return int(number)


def _bounded(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(100.0, max(0.0, value))
