"""Signal adapter contracts and the context that carries them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from pydantic import BaseModel

from urbanthread.models import ImageAnalysis


class PlaceInfo(BaseModel):
    """Cosmetic place description for a coordinate."""

    city: str = "Unknown"
    region: str = "Unknown"
    formatted_address: str = ""


class TextPlausibilityScorer(Protocol):
    """Score how plausible a report's text is, 0..100, or None if unavailable."""

    def score(
        self,
        category: str,
        description: str,
        location_label: Optional[str],
        severity: str,
        has_photo: bool,
    ) -> Optional[int]:
        ...


class ImageContentAnalyzer(Protocol):
    """Analyse photo bytes; failures come back as ``success=False``."""

    def analyze(self, image_bytes: bytes, category: Optional[str] = None) -> ImageAnalysis:
        ...


class Geocoder(Protocol):
    """Best-effort reverse geocoding; never raises."""

    def reverse(self, lat: float, lng: float) -> PlaceInfo:
        ...


class NullTextScorer:
    def score(
        self,
        category: str,
        description: str,
        location_label: Optional[str],
        severity: str,
        has_photo: bool,
    ) -> Optional[int]:
        return None


class NullImageAnalyzer:
    def analyze(self, image_bytes: bytes, category: Optional[str] = None) -> ImageAnalysis:
        return ImageAnalysis(success=False, error="image analysis not configured")


class NullGeocoder:
    def reverse(self, lat: float, lng: float) -> PlaceInfo:
        return default_place(lat, lng)


def default_place(lat: float, lng: float) -> PlaceInfo:
    return PlaceInfo(formatted_address=f"{lat}, {lng}")


@dataclass
class SignalContext:
    """Adapters injected into the confidence calculator and pipeline."""

    text_scorer: TextPlausibilityScorer = field(default_factory=NullTextScorer)
    image_analyzer: ImageContentAnalyzer = field(default_factory=NullImageAnalyzer)
    geocoder: Geocoder = field(default_factory=NullGeocoder)
