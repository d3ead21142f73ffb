import math

import pytest

from urbanthread.models import ImageSignal, ReputationProfile
from urbanthread.scoring.reputation import (
    apply_report,
    credibility_from,
    merge_labels,
    new_profile,
    reputation_level,
    running_average,
    success_rate,
)


def _base_profile(**overrides) -> ReputationProfile:
    payload = {"user_id": "user-1"}
    payload.update(overrides)
    return ReputationProfile.model_validate(payload)


def _assert_bounded(profile: ReputationProfile) -> None:
    for name in ("avg_confidence", "avg_image_score"):
        value = getattr(profile, name)
        assert math.isfinite(value)
        assert 0 <= value <= 100
    assert 20 <= profile.credibility_score <= 100
    for name in (
        "reports_submitted",
        "image_analyses",
        "high_credibility_reports",
        "reports_published",
        "safety_violations",
    ):
        assert getattr(profile, name) >= 0


def test_new_profile_defaults():
    profile = new_profile("user-1")
    assert profile.credibility_score == 75
    assert profile.reports_submitted == 0
    assert profile.detected_labels == []


def test_first_report_from_end_to_end_example():
    image = ImageSignal(score=80, labels=["Water", "Road"], safety_violation_count=0)
    profile = apply_report(new_profile("user-1"), 81, image)

    assert profile.avg_confidence == 81
    assert profile.avg_image_score == 80
    assert profile.credibility_score == 80
    assert profile.reports_submitted == 1
    assert profile.image_analyses == 1
    assert profile.high_credibility_reports == 1
    assert profile.reports_published == 1
    assert profile.detected_labels == ["Water", "Road"]


def test_apply_report_does_not_mutate_input():
    original = new_profile("user-1")
    apply_report(original, 90)
    assert original.reports_submitted == 0
    assert original.credibility_score == 75


def test_running_average_idempotent():
    profile = new_profile("user-1")
    for _ in range(250):
        profile = apply_report(profile, 73, ImageSignal(score=64))
    assert profile.avg_confidence == pytest.approx(73)
    assert profile.avg_image_score == pytest.approx(64)
    assert profile.reports_submitted == 250
    assert profile.image_analyses == 250


def test_running_average_helper():
    assert running_average(0.0, 0, 42) == 42
    assert running_average(50.0, 1, 100) == 75
    assert running_average(float("nan"), 3, 60) == 60


@pytest.mark.parametrize("bad", [None, float("nan"), float("inf"), -10, 1e308, "oops"])
def test_bad_confidence_counts_as_zero(bad):
    profile = apply_report(_base_profile(reports_submitted=1, avg_confidence=80.0), bad)
    assert profile.reports_submitted == 2
    assert profile.avg_confidence == pytest.approx(40)
    assert profile.high_credibility_reports == 0
    _assert_bounded(profile)


def test_image_result_with_bad_score_is_skipped():
    base = _base_profile(image_analyses=2, avg_image_score=70.0)
    for bad in (None, float("nan"), -1, 120):
        profile = apply_report(base, 60, ImageSignal(score=bad, labels=["Crowd"], safety_violation_count=3))
        assert profile.image_analyses == 2
        assert profile.avg_image_score == 70.0
        assert profile.detected_labels == []
        assert profile.safety_violations == 0


def test_adversarial_sequence_keeps_profile_bounded():
    inputs = [
        (float("nan"), None),
        (-50, ImageSignal(score=float("inf"))),
        (1e12, ImageSignal(score=100, safety_violation_count=float("nan"))),
        (None, ImageSignal(score=0, labels=["", "  ", "Fire"], safety_violation_count=-4)),
        (100, ImageSignal(score=100, safety_violation_count=2)),
        ("70", None),
    ]
    profile = new_profile("user-1")
    for score, image in inputs:
        profile = apply_report(profile, score, image)
        _assert_bounded(profile)
    assert profile.reports_submitted == len(inputs)
    assert profile.safety_violations == 2
    assert profile.detected_labels == ["Fire"]


def test_corrupt_stored_profile_self_heals():
    corrupt = _base_profile(reports_submitted=5, avg_confidence=float("nan"), avg_image_score=float("inf"))
    profile = apply_report(corrupt, 70)
    assert profile.avg_confidence == 70
    assert profile.avg_image_score == 0
    _assert_bounded(profile)


def test_credibility_floor_and_default():
    assert credibility_from(0, 0) == 20
    assert credibility_from(100, 100) == 100
    assert credibility_from(float("nan"), 50) == 75


def test_merge_labels_deduplicates_in_order():
    assert merge_labels(["Road"], ["Car", "Road", " Car ", "Tree"]) == ["Road", "Car", "Tree"]


def test_counters_follow_thresholds():
    profile = new_profile("user-1")
    for score in (79, 80, 69, 70):
        profile = apply_report(profile, score)
    assert profile.high_credibility_reports == 1
    assert profile.reports_published == 3
    assert success_rate(profile) == 75


def test_success_rate_without_reports():
    assert success_rate(new_profile("user-1")) == 0


@pytest.mark.parametrize(
    "credibility,published,submitted,expected",
    [
        (90, 25, 30, "Expert"),
        (85, 19, 30, "Trusted"),
        (75, 10, 12, "Trusted"),
        (70, 10, 12, "Contributor"),
        (65, 5, 6, "Contributor"),
        (60, 4, 6, "Reporter"),
        (75, 0, 0, "Newcomer"),
    ],
)
def test_reputation_level(credibility, published, submitted, expected):
    profile = _base_profile(
        credibility_score=credibility,
        reports_published=published,
        reports_submitted=submitted,
    )
    assert reputation_level(profile) == expected
