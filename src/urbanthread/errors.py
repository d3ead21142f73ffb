"""Exceptions raised across the service."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from urbanthread.models import RejectDecision


class NotFoundError(LookupError):
    """Entity is missing or past its visibility cut-off."""


class LedgerConflictError(RuntimeError):
    """Reputation update could not be serialized after retries."""


class SubmissionRejected(ValueError):
    """Submission failed input validation."""

    def __init__(self, decision: "RejectDecision") -> None:
        super().__init__(f"submission rejected: {decision.reason}")
        self.decision = decision

    @property
    def reason(self) -> str:
        return self.decision.reason


class InvalidCommentError(ValueError):
    """Comment body or target is not acceptable."""
