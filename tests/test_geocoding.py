import httpx

from urbanthread.config import Settings
from urbanthread.signals.geocoding import NominatimGeocoder, place_from_payload


def test_place_from_payload_prefers_city_then_town():
    payload = {
        "display_name": "MG Road, Bengaluru, Karnataka, India",
        "address": {"town": "Whitefield", "city": "Bengaluru", "state": "Karnataka"},
    }
    place = place_from_payload(payload, 12.97, 77.59)
    assert place.city == "Bengaluru"
    assert place.region == "Karnataka"
    assert place.formatted_address.startswith("MG Road")


def test_place_from_payload_defaults():
    place = place_from_payload({}, 12.97, 77.59)
    assert (place.city, place.region, place.formatted_address) == ("Unknown", "Unknown", "12.97, 77.59")


def test_geocoder_never_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    settings = Settings(HTTP_MAX_RETRIES=0)
    geocoder = NominatimGeocoder(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    place = geocoder.reverse(1.5, 2.5)
    assert place.city == "Unknown"
    assert place.formatted_address == "1.5, 2.5"


def test_geocoder_parses_response():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/reverse"
        assert request.url.params.get("lat") == "12.97"
        return httpx.Response(200, json={"display_name": "Somewhere", "address": {"village": "Hosur"}})

    settings = Settings(HTTP_MAX_RETRIES=0, GEOCODING_BASE_URL="https://geo.example.test")
    geocoder = NominatimGeocoder(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    place = geocoder.reverse(12.97, 77.59)
    assert place.city == "Hosur"
    assert place.formatted_address == "Somewhere"
