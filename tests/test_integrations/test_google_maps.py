"""Tests for the Places and Routes client."""

import json

import httpx
import pytest

from healthspot.core.errors import ConfigurationError, UpstreamServiceError
from healthspot.integrations.google_maps import ROUTES_FIELD_MASK, PlacesClient


def _client(handler, api_key="maps-key") -> PlacesClient:
    return PlacesClient(
        api_key=api_key,
        base_url="https://maps.test/api/",
        routes_url="https://routes.test/compute",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_nearby_search_sends_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={"status": "OK", "results": [{"place_id": "p1"}]})

    places = _client(handler)
    results = await places.nearby_search(1.5, 2.5, 3000, place_type="doctor", keyword="healthcare")

    assert results == [{"place_id": "p1"}]
    assert seen["url"].path == "/api/place/nearbysearch/json"
    params = seen["url"].params
    assert params["location"] == "1.5,2.5"
    assert params["radius"] == "3000"
    assert params["type"] == "doctor"
    assert params["keyword"] == "healthcare"
    assert params["key"] == "maps-key"


@pytest.mark.asyncio
async def test_text_search_omits_location_when_unknown():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = request.url.params
        return httpx.Response(200, json={"status": "ZERO_RESULTS"})

    results = await _client(handler).text_search("clinic healthcare", place_type="health")

    assert results == []
    assert "location" not in seen["params"]
    assert "radius" not in seen["params"]
    assert seen["params"]["type"] == "health"


@pytest.mark.asyncio
async def test_place_details_returns_none_without_result():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["fields"] == "reviews"
        return httpx.Response(200, json={"status": "OK"})

    assert await _client(handler).place_details("p1", fields=("reviews",)) is None


@pytest.mark.asyncio
async def test_error_status_raises_with_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"status": "REQUEST_DENIED", "error_message": "The provided API key is invalid."},
        )

    with pytest.raises(UpstreamServiceError) as exc_info:
        await _client(handler).nearby_search(0, 0, 100)

    assert exc_info.value.message == "Google Maps API error: The provided API key is invalid."
    assert exc_info.value.details == {"status": "REQUEST_DENIED"}
    assert exc_info.value.service == "google_maps"


@pytest.mark.asyncio
async def test_transport_failure_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    with pytest.raises(UpstreamServiceError, match="Google Maps request failed"):
        await _client(handler).place_details("p1")


@pytest.mark.asyncio
async def test_missing_key_raises_configuration_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    places = _client(handler, api_key=None)

    assert places.is_configured is False
    with pytest.raises(ConfigurationError):
        await places.nearby_search(0, 0, 100)


@pytest.mark.asyncio
async def test_compute_routes_sends_field_mask():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"routes": [{"distanceMeters": 10}]})

    data = await _client(handler).compute_routes({"travelMode": "DRIVE"})

    assert data == {"routes": [{"distanceMeters": 10}]}
    assert seen["headers"]["X-Goog-Api-Key"] == "maps-key"
    assert seen["headers"]["X-Goog-FieldMask"] == ROUTES_FIELD_MASK
    assert seen["body"] == {"travelMode": "DRIVE"}


@pytest.mark.asyncio
async def test_compute_routes_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"message": "API not enabled"}})

    with pytest.raises(UpstreamServiceError, match="Routes API error: 403 API not enabled"):
        await _client(handler).compute_routes({})
