"""Image credibility from Google Cloud Vision annotations."""

from __future__ import annotations

import base64
from typing import Any, Optional

import httpx

from urbanthread.config import Settings
from urbanthread.models import ImageAnalysis, ImageLabel, SafetyRating
from urbanthread.signals.http import request_with_retry
from urbanthread.utils.logging import get_logger


logger = get_logger(__name__)

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Traffic": ("traffic", "car", "vehicle", "road", "street", "bus", "truck", "motorcycle", "lane", "highway"),
    "Road Work": ("construction", "road", "asphalt", "cone", "excavator", "barrier", "worker", "machine"),
    "Accident": ("car", "vehicle", "collision", "crash", "ambulance", "police", "wreck", "damage"),
    "Flood": ("water", "flood", "rain", "puddle", "river", "waterlogging", "drain"),
    "Public Event": ("crowd", "people", "event", "festival", "stage", "parade", "audience"),
    "Hazard": ("fire", "smoke", "tree", "debris", "pothole", "hole", "wire", "hazard"),
    "Other": (),
}

SAFE_SEARCH_FIELDS: tuple[str, ...] = ("adult", "spoof", "violence", "racy")
VIOLATION_LIKELIHOODS = {"LIKELY", "VERY_LIKELY"}
QUESTIONABLE_LIKELIHOODS = {"POSSIBLE"}

BASE_SCORE = 50
RELEVANT_LABEL_POINTS = 10
RELEVANT_LABEL_CAP = 30
OBJECTS_BONUS = 10
CONFIDENT_LABELS_BONUS = 10
VIOLATION_PENALTY = 15
LABEL_MIN_CONFIDENCE = 0.6
CONFIDENT_LABEL_THRESHOLD = 0.7


def _relevant(label: ImageLabel, keywords: tuple[str, ...]) -> bool:
    name = label.name.lower()
    return label.confidence >= LABEL_MIN_CONFIDENCE and any(word in name for word in keywords)


def safety_from(safe_search: dict[str, Any]) -> tuple[SafetyRating, int]:
    """Return (rating, violation count) for a safeSearchAnnotation block."""
    if not safe_search:
        return "unknown", 0
    values = [str(safe_search.get(field_name, "UNKNOWN")) for field_name in SAFE_SEARCH_FIELDS]
    violations = sum(1 for value in values if value in VIOLATION_LIKELIHOODS)
    if violations:
        return "unsafe", violations
    if any(value in QUESTIONABLE_LIKELIHOODS for value in values):
        return "questionable", 0
    return "safe", 0


def score_annotations(annotation: dict[str, Any], category: Optional[str] = None) -> ImageAnalysis:
    """Turn one Vision ``AnnotateImageResponse`` into an image credibility score."""
    if annotation.get("error"):
        message = (annotation["error"] or {}).get("message", "vision error")
        return ImageAnalysis(success=False, error=str(message))

    labels = [
        ImageLabel(name=str(item.get("description", "")), confidence=float(item.get("score") or 0.0))
        for item in annotation.get("labelAnnotations") or []
        if item.get("description")
    ]
    objects = [
        str(item["name"]) for item in annotation.get("localizedObjectAnnotations") or [] if item.get("name")
    ]
    rating, violations = safety_from(annotation.get("safeSearchAnnotation") or {})

    keywords = CATEGORY_KEYWORDS.get(category or "Other", ())
    relevant_count = sum(1 for label in labels if _relevant(label, keywords))

    score = BASE_SCORE
    score += min(RELEVANT_LABEL_CAP, relevant_count * RELEVANT_LABEL_POINTS)
    if objects:
        score += OBJECTS_BONUS
    if sum(1 for label in labels if label.confidence >= CONFIDENT_LABEL_THRESHOLD) >= 3:
        score += CONFIDENT_LABELS_BONUS
    score -= violations * VIOLATION_PENALTY

    return ImageAnalysis(
        success=True,
        score=float(min(100, max(0, score))),
        labels=labels,
        objects=objects,
        safety_rating=rating,
        safety_violation_count=violations,
    )


class VisionImageAnalyzer:
    """Cloud Vision REST client: labels, objects and safe search."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings or Settings()
        if not self.settings.vision_api_key:
            raise ValueError("VISION_API_KEY must be set for image analysis")
        self._http_client = http_client

    def analyze(self, image_bytes: bytes, category: Optional[str] = None) -> ImageAnalysis:
        max_results = self.settings.vision_max_labels
        body = {
            "requests": [
                {
                    "image": {"content": base64.b64encode(image_bytes).decode("ascii")},
                    "features": [
                        {"type": "LABEL_DETECTION", "maxResults": max_results},
                        {"type": "OBJECT_LOCALIZATION", "maxResults": max_results},
                        {"type": "SAFE_SEARCH_DETECTION"},
                    ],
                }
            ]
        }
        try:
            payload = self._post(body)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("image_content.failed error=%s", exc)
            return ImageAnalysis(success=False, error=str(exc))

        responses = payload.get("responses") or []
        if not responses:
            return ImageAnalysis(success=False, error="empty vision response")

        analysis = score_annotations(responses[0], category)
        logger.info(
            "image_content.analyzed success=%s score=%s labels=%s safety=%s",
            analysis.success,
            analysis.score,
            len(analysis.labels),
            analysis.safety_rating,
        )
        return analysis

    def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        params = {"key": self.settings.vision_api_key}
        if self._http_client is not None:
            return self._send(self._http_client, params, body)
        with httpx.Client(timeout=self.settings.http_timeout_seconds) as client:
            return self._send(client, params, body)

    def _send(self, client: httpx.Client, params: dict[str, Any], body: dict[str, Any]) -> dict[str, Any]:
        response = request_with_retry(
            client,
            "POST",
            self.settings.vision_api_url,
            params=params,
            json=body,
            retries=self.settings.http_max_retries,
        )
        response.raise_for_status()
        return response.json()
