"""Tests for the postal code geocoding chain."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
from geopy.exc import GeocoderTimedOut
from pytest_mock import MockerFixture

from healthspot.core.errors import GeocodingError, ValidationError
from healthspot.core.geocoding import (
    GeocodeResolver,
    clean_postal_code,
    fallback_result,
    get_fallback_coordinates,
    is_valid_postal_code,
)

STRATEGY_ORDER = [
    "region-specific",
    "country-component",
    "country-name-in-address",
    "direct-postal-code",
    "postal-code-prefix",
    "zipcodebase",
    "postcodes.io",
    "nominatim",
]


def _location(lat=37.77, lng=-122.41, address="San Francisco, CA 94103, USA"):
    return SimpleNamespace(latitude=lat, longitude=lng, address=address)


@pytest.fixture
def geocoders(mocker: MockerFixture) -> MagicMock:
    google = mocker.MagicMock()
    google.geocode.return_value = None
    mocker.patch("healthspot.core.geocoding.service.GoogleV3", return_value=google)
    mocker.patch("healthspot.core.geocoding.service.Nominatim")
    return google


def _resolver(google_api_key="key", zipcodebase_api_key=None):
    http = MagicMock(spec=requests.Session)
    resolver = GeocodeResolver(
        google_api_key=google_api_key,
        zipcodebase_api_key=zipcodebase_api_key,
        timeout=1,
        user_agent="healthspot-tests",
        http=http,
    )
    resolver.nominatim_geocode = MagicMock(return_value=None)
    return resolver


def test_strategy_order(geocoders):
    resolver = _resolver()

    assert [s.name for s in resolver.strategies] == STRATEGY_ORDER


def test_us_zip_uses_region_specific_query(geocoders):
    geocoders.geocode.return_value = _location()
    resolver = _resolver()

    result = resolver.resolve("94103", "us")

    assert result.source == "region-specific-US"
    assert (result.lat, result.lng) == (37.77, -122.41)
    assert not result.is_approximate
    geocoders.geocode.assert_called_once_with("94103 USA", components={"country": "US"})


def test_short_us_zip_is_zero_padded(geocoders):
    geocoders.geocode.return_value = _location()
    resolver = _resolver()

    resolver.resolve("2134", "US")

    geocoders.geocode.assert_called_once_with("02134 USA", components={"country": "US"})


def test_chain_stops_at_first_success(geocoders):
    geocoders.geocode.side_effect = [None, _location(51.5, -0.12, "London")]
    resolver = _resolver()

    result = resolver.resolve("SW1A 1AA", "GB")

    # region-specific does not apply to GB, so the first call is country-component
    assert result.source == "country-name-in-address"
    assert geocoders.geocode.call_count == 2
    resolver.http.get.assert_not_called()
    resolver.nominatim_geocode.assert_not_called()


def test_geocoder_errors_fall_through_to_next_strategy(geocoders):
    geocoders.geocode.side_effect = [GeocoderTimedOut("slow"), _location()]
    resolver = _resolver()

    result = resolver.resolve("94103", "US")

    assert result.source == "country-component"


def test_invalid_coordinates_are_rejected(geocoders):
    geocoders.geocode.side_effect = [_location(lat=123), _location()]
    resolver = _resolver()

    assert resolver.resolve("94103", "US").source == "country-component"


def test_without_google_key_falls_back_to_nominatim(geocoders):
    resolver = _resolver(google_api_key=None)
    resolver.nominatim_geocode.return_value = _location(19.07, 72.87, "Mumbai")

    result = resolver.resolve("400001", "IN")

    assert resolver.google is None
    assert result.source == "nominatim"
    resolver.nominatim_geocode.assert_called_once_with(
        {"postalcode": "400001"}, country_codes="in"
    )
    resolver.http.get.assert_not_called()


def test_zipcodebase_result(geocoders):
    resolver = _resolver(google_api_key=None, zipcodebase_api_key="zkey")
    response = MagicMock()
    response.json.return_value = {
        "results": {
            "10001": [
                {
                    "latitude": "40.75",
                    "longitude": "-73.99",
                    "city": "New York",
                    "state": "NY",
                    "country_code": "US",
                }
            ]
        }
    }
    resolver.http.get.return_value = response

    result = resolver.resolve("10001", "US")

    assert result.source == "zipcodebase"
    assert result.formatted_address == "New York, NY 10001, US"
    assert resolver.http.get.call_args.kwargs["params"] == {
        "apikey": "zkey",
        "codes": "10001",
        "country": "US",
    }


def test_postcodes_io_only_runs_for_uk_or_unknown_country(geocoders):
    resolver = _resolver(google_api_key=None)
    response = MagicMock(status_code=200)
    response.json.return_value = {
        "result": {
            "latitude": 51.5,
            "longitude": -0.14,
            "admin_district": "Westminster",
            "postcode": "SW1A 1AA",
        }
    }
    resolver.http.get.return_value = response

    result = resolver.resolve("SW1A 1AA")

    assert result.source == "postcodes.io"
    assert result.formatted_address == "Westminster, SW1A 1AA, UK"
    resolver.http.get.assert_called_once()
    assert "SW1A1AA" in resolver.http.get.call_args.args[0]


def test_total_failure_reports_every_attempt(geocoders):
    resolver = _resolver()
    resolver.http.get.side_effect = requests.ConnectionError("down")

    with pytest.raises(GeocodingError) as exc_info:
        resolver.resolve("99999", "US")

    attempts = exc_info.value.attempts
    assert [a["method"] for a in attempts] == STRATEGY_ORDER
    assert all(not a["success"] for a in attempts)
    assert attempts[5] == {"method": "zipcodebase", "success": False, "skipped": True}
    assert attempts[6]["skipped"] is True
    assert attempts[7]["error"] == "no results"
    assert exc_info.value.status_code == 400


def test_empty_postal_code_is_rejected(geocoders):
    resolver = _resolver()

    with pytest.raises(ValidationError):
        resolver.resolve(" - ")


def test_clean_postal_code():
    assert clean_postal_code(" 941-03 ") == "94103"
    assert clean_postal_code("SW1A 1AA") == "SW1A1AA"
    assert clean_postal_code("") == ""


@pytest.mark.parametrize(
    "code,country,expected",
    [
        ("94103", "US", True),
        ("94103-1234", "US", True),
        ("9410", "US", False),
        ("560001", "IN", True),
        ("56001", "IN", False),
        ("SW1A 1AA", "GB", True),
        ("K1A 0B1", "CA", True),
        ("2000", "AU", True),
        ("anything", "ZZ", True),
        ("12", None, False),
        ("ABC12", None, True),
        ("", "US", False),
    ],
)
def test_is_valid_postal_code(code, country, expected):
    assert is_valid_postal_code(code, country) is expected


def test_fallback_coordinates():
    assert get_fallback_coordinates("in") == (20.5937, 78.9629)
    assert get_fallback_coordinates("XX") == (0.0, 0.0)
    assert get_fallback_coordinates(None) == (0.0, 0.0)


def test_fallback_result_is_approximate():
    result = fallback_result("us")

    assert result.source == "fallback-centroid"
    assert result.is_approximate
    assert result.formatted_address == "US (approximate)"
    assert result.as_location()["isApproximate"] is True
    assert (fallback_result("XX").lat, fallback_result("XX").lng) == (0.0, 0.0)
