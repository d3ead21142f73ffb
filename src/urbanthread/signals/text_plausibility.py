"""Text plausibility scoring backed by Gemini."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from urbanthread.config import Settings
from urbanthread.llm.gemini import GeminiClient
from urbanthread.signals.prompt_loader import load_prompt
from urbanthread.utils.logging import get_logger


logger = get_logger(__name__)


class TextPlausibilityOutput(BaseModel):
    """Structured model output for one report."""

    score: int
    reasoning: str = ""
    flags: list[str] = Field(default_factory=list)

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, value: int) -> int:
        if value < 0:
            return 0
        if value > 100:
            return 100
        return value


def build_input(
    category: str,
    description: str,
    location_label: Optional[str],
    severity: str,
    has_photo: bool,
) -> str:
    return (
        f"Category: {category}\n"
        f"Severity: {severity}\n"
        f"Location: {(location_label or '').strip() or 'not given'}\n"
        f"Photo attached: {'yes' if has_photo else 'no'}\n"
        f"Description:\n{description.strip()}"
    )


class GeminiTextScorer:
    """Text plausibility scorer; returns None whenever the model is unavailable."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[GeminiClient] = None,
        prompt: Optional[str] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.client = client or GeminiClient(self.settings)
        self.prompt = prompt or load_prompt(self.settings.text_prompt_version)

    def score(
        self,
        category: str,
        description: str,
        location_label: Optional[str],
        severity: str,
        has_photo: bool,
    ) -> Optional[int]:
        report_input = build_input(category, description, location_label, severity, has_photo)
        full_prompt = f"{self.prompt}\n\nINPUT:\n{report_input}\n"
        output, latency_ms, attempts, error = self.client.generate_structured(
            full_prompt, TextPlausibilityOutput
        )
        if output is None:
            logger.warning(
                "text_plausibility.failed attempts=%s latency_ms=%s error=%s",
                attempts,
                latency_ms,
                error,
            )
            return None

        logger.info(
            "text_plausibility.ok score=%s flags=%s attempts=%s latency_ms=%s",
            output.score,
            output.flags,
            attempts,
            latency_ms,
        )
        return output.score
