"""Signal adapters feeding the confidence calculator."""

from __future__ import annotations

from typing import Optional

from urbanthread.config import Settings
from urbanthread.signals.base import (
    Geocoder,
    ImageContentAnalyzer,
    NullGeocoder,
    NullImageAnalyzer,
    NullTextScorer,
    PlaceInfo,
    SignalContext,
    TextPlausibilityScorer,
)
from urbanthread.utils.logging import get_logger


logger = get_logger(__name__)


def build_signal_context(settings: Optional[Settings] = None) -> SignalContext:
    """Wire the configured adapters; unconfigured services fall back to nulls."""
    from urbanthread.signals.geocoding import NominatimGeocoder
    from urbanthread.signals.image_content import VisionImageAnalyzer
    from urbanthread.signals.text_plausibility import GeminiTextScorer

    settings = settings or Settings()
    context = SignalContext()

    if settings.google_api_key:
        context.text_scorer = GeminiTextScorer(settings)
    else:
        logger.info("signals.text_scorer.disabled reason=missing_google_api_key")

    if settings.vision_api_key:
        context.image_analyzer = VisionImageAnalyzer(settings)
    else:
        logger.info("signals.image_analyzer.disabled reason=missing_vision_api_key")

    if settings.geocoding_enabled:
        context.geocoder = NominatimGeocoder(settings)

    return context


__all__ = [
    "Geocoder",
    "ImageContentAnalyzer",
    "NullGeocoder",
    "NullImageAnalyzer",
    "NullTextScorer",
    "PlaceInfo",
    "SignalContext",
    "TextPlausibilityScorer",
    "build_signal_context",
]
