"""Scoring package: report confidence and user reputation."""

from urbanthread.scoring.confidence import (
    ConfidenceCalculator,
    ConfidenceOutcome,
    compute_confidence,
    decide_status,
)
from urbanthread.scoring.reputation import apply_report, new_profile, reputation_level

__all__ = [
    "ConfidenceCalculator",
    "ConfidenceOutcome",
    "compute_confidence",
    "decide_status",
    "apply_report",
    "new_profile",
    "reputation_level",
]
