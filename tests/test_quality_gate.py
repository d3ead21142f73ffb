from datetime import datetime, timedelta, timezone

from urbanthread.intake.quality_gate import QualityGate
from urbanthread.models import ReportSubmission


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _base_submission(**overrides) -> ReportSubmission:
    payload = {
        "user_id": "user-1",
        "category": "Traffic",
        "severity": "High",
        "description": "Two lanes blocked after a breakdown near the flyover exit",
        "lat": 12.9716,
        "lng": 77.5946,
        "location_name": "MG Road flyover",
    }
    payload.update(overrides)
    return ReportSubmission.model_validate(payload)


def test_quality_gate_accepts_valid_submission():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(), now=NOW)
    assert decision.reason == "accepted"
    assert decision.normalized.category == "Traffic"
    assert decision.normalized.has_photo is False


def test_quality_gate_normalizes_whitespace_and_default_severity():
    gate = QualityGate()
    raw = _base_submission(description="  Water   logging\n at the underpass  ", severity=None)
    decision = gate.evaluate(raw, now=NOW)
    assert decision.reason == "accepted"
    assert decision.normalized.description == "Water logging at the underpass"
    assert decision.normalized.severity == "Medium"


def test_quality_gate_rejects_missing_user_id():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(user_id="  "), now=NOW)
    assert decision.reason == "missing_user_id"


def test_quality_gate_rejects_missing_coords():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(lat=None, lng=None), now=NOW)
    assert decision.reason == "missing_coords"


def test_quality_gate_rejects_invalid_coords():
    gate = QualityGate()
    assert gate.evaluate(_base_submission(lat=200.0), now=NOW).reason == "invalid_coords"
    assert gate.evaluate(_base_submission(lng=float("nan")), now=NOW).reason == "invalid_coords"


def test_quality_gate_rejects_invalid_category():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(category="Aliens"), now=NOW)
    assert decision.reason == "invalid_category"
    assert "Traffic" in decision.details["allowed"]


def test_quality_gate_rejects_invalid_severity():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(severity="Extreme"), now=NOW)
    assert decision.reason == "invalid_severity"


def test_quality_gate_rejects_missing_description():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(description="   "), now=NOW)
    assert decision.reason == "missing_description"


def test_quality_gate_rejects_long_description():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(description="x" * 501), now=NOW)
    assert decision.reason == "description_too_long"
    assert decision.details["max"] == 500


def test_quality_gate_rejects_long_location_name():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(location_name="y" * 201), now=NOW)
    assert decision.reason == "location_name_too_long"


def test_quality_gate_rejects_spam_text():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(description="test"), now=NOW)
    assert decision.reason == "spam_text"


def test_quality_gate_rejects_oversized_photo():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(photo_bytes=b"x" * 5_000_001), now=NOW)
    assert decision.reason == "photo_too_large"


def test_quality_gate_sets_has_photo_flag():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(photo_ref="uploads/a.jpg"), now=NOW)
    assert decision.reason == "accepted"
    assert decision.normalized.has_photo is True
    assert decision.normalized.photo_ref == "uploads/a.jpg"


def test_quality_gate_rejects_strict_duplicate():
    gate = QualityGate()
    first_decision = gate.evaluate(_base_submission(), now=NOW)
    assert first_decision.reason == "accepted"

    second = _base_submission(description="two lanes BLOCKED after a breakdown near the flyover exit")
    second_decision = gate.evaluate(second, now=NOW + timedelta(hours=1))
    assert second_decision.reason == "duplicate_strict"


def test_quality_gate_accepts_repeat_outside_window():
    gate = QualityGate()
    assert gate.evaluate(_base_submission(), now=NOW).reason == "accepted"
    later = gate.evaluate(_base_submission(), now=NOW + timedelta(hours=25))
    assert later.reason == "accepted"


def test_quality_gate_uses_duplicate_checker():
    class _Checker:
        def __init__(self):
            self.keys = []

        def find_duplicate(self, key, submitted_at):
            self.keys.append(key)
            return "report-42"

    checker = _Checker()
    gate = QualityGate(duplicate_checker=checker)
    decision = gate.evaluate(_base_submission(lat=12.97164, lng=77.59461), now=NOW)
    assert decision.reason == "duplicate_strict"
    assert decision.details["duplicate_of"] == "report-42"
    assert checker.keys[0].lat_round == 12.9716
    assert checker.keys[0].lng_round == 77.5946


def test_quality_gate_release_allows_resubmission():
    gate = QualityGate()
    decision = gate.evaluate(_base_submission(), now=NOW)
    assert decision.reason == "accepted"
    assert gate.evaluate(_base_submission(), now=NOW).reason == "duplicate_strict"

    gate.release(decision.normalized, NOW)
    assert gate.evaluate(_base_submission(), now=NOW).reason == "accepted"


def test_quality_gate_forgets_keys_outside_window():
    gate = QualityGate()
    for index in range(5):
        gate.evaluate(_base_submission(description=f"Signal failure at junction {index}"), now=NOW)
    assert len(gate._seen) == 5

    later = NOW + timedelta(hours=25)
    gate.evaluate(_base_submission(description="Fresh pothole on the service road"), now=later)
    assert len(gate._seen) == 1
