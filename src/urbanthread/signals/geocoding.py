"""Reverse geocoding via a Nominatim-compatible endpoint."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from urbanthread.config import Settings
from urbanthread.signals.base import PlaceInfo, default_place
from urbanthread.signals.http import request_with_retry
from urbanthread.utils.logging import get_logger


logger = get_logger(__name__)

CITY_KEYS = ("city", "town", "village", "suburb", "county")
REGION_KEYS = ("state", "region", "state_district")


def place_from_payload(payload: dict[str, Any], lat: float, lng: float) -> PlaceInfo:
    """Map a Nominatim ``reverse`` response onto PlaceInfo with defaults."""
    fallback = default_place(lat, lng)
    address = payload.get("address") or {}
    city = next((address[key] for key in CITY_KEYS if address.get(key)), fallback.city)
    region = next((address[key] for key in REGION_KEYS if address.get(key)), fallback.region)
    return PlaceInfo(
        city=str(city),
        region=str(region),
        formatted_address=str(payload.get("display_name") or fallback.formatted_address),
    )


class NominatimGeocoder:
    """Best-effort reverse geocoder. Purely cosmetic; never raises."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings or Settings()
        self._http_client = http_client

    def reverse(self, lat: float, lng: float) -> PlaceInfo:
        url = f"{self.settings.geocoding_base_url}/reverse"
        params = {"format": "jsonv2", "lat": lat, "lon": lng, "zoom": 14}
        try:
            if self._http_client is not None:
                payload = self._get(self._http_client, url, params)
            else:
                with httpx.Client(
                    timeout=self.settings.http_timeout_seconds,
                    headers={"User-Agent": self.settings.geocoding_user_agent},
                ) as client:
                    payload = self._get(client, url, params)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("geocoding.failed lat=%s lng=%s error=%s", lat, lng, exc)
            return default_place(lat, lng)

        if not isinstance(payload, dict) or payload.get("error"):
            return default_place(lat, lng)
        return place_from_payload(payload, lat, lng)

    def _get(self, client: httpx.Client, url: str, params: dict[str, Any]) -> Any:
        response = request_with_retry(
            client, "GET", url, params=params, retries=self.settings.http_max_retries
        )
        response.raise_for_status()
        return response.json()
