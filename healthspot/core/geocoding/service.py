"""Postal code geocoding with an ordered fallback chain.

The resolver walks a fixed list of strategies and returns the first usable
answer:

- Google Geocoding, in five phrasings of decreasing specificity
- Zipcodebase (only with an API key)
- postcodes.io (UK postcodes only)
- OpenStreetMap Nominatim

Every attempt is logged and recorded, so a total failure can report what
was tried. Country centroids are kept here as the caller's last resort.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NamedTuple, Optional

import requests
from geopy.exc import GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import GoogleV3, Nominatim

from healthspot.core.config import settings
from healthspot.core.coordinates import is_valid_coordinates
from healthspot.core.errors import GeocodingError, ValidationError
from healthspot.core.events import GEOCODING_ATTEMPTS_TOTAL
from healthspot.core.geocoding.constants import (
    COUNTRY_CENTROIDS,
    COUNTRY_NAMES,
    DEFAULT_CENTROID,
    GENERIC_POSTAL_CODE_PATTERN,
    POSTAL_CODE_PATTERNS,
    POSTAL_CODE_SEPARATORS,
    POSTCODES_IO_COUNTRIES,
)

logger = logging.getLogger(__name__)

ZIPCODEBASE_URL = "https://app.zipcodebase.com/api/v1/search"
POSTCODES_IO_URL = "https://api.postcodes.io/postcodes/{code}"


@dataclass(frozen=True)
class GeocodeResult:
    """Coordinates resolved for a postal code."""

    lat: float
    lng: float
    formatted_address: str
    source: str
    is_approximate: bool = False

    def as_location(self) -> dict[str, Any]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "address": self.formatted_address,
            "isApproximate": self.is_approximate,
        }


@dataclass
class GeocodeAttempt:
    method: str
    success: bool
    error: Optional[str] = None
    skipped: bool = False

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"method": self.method, "success": self.success}
        if self.error:
            data["error"] = self.error
        if self.skipped:
            data["skipped"] = True
        return data


StrategyFunc = Callable[[str, Optional[str]], Optional[GeocodeResult]]


class Strategy(NamedTuple):
    """One step of the chain: a name, an applicability check and a resolver."""

    name: str
    applies: Callable[[str, Optional[str]], bool]
    resolve: StrategyFunc


def clean_postal_code(postal_code: str) -> str:
    """Strip whitespace, dashes and dots."""
    return POSTAL_CODE_SEPARATORS.sub("", postal_code or "")


def normalize_country(country: Optional[str]) -> Optional[str]:
    if not country or not country.strip():
        return None
    return country.strip().upper()


def is_valid_postal_code(postal_code: str, country: Optional[str] = None) -> bool:
    """Check a postal code against the known format for its country.

    Unknown countries accept anything; without a country at least three
    alphanumerics are required.
    """
    if not postal_code:
        return False
    code = clean_postal_code(postal_code)
    country = normalize_country(country)
    if country:
        pattern = POSTAL_CODE_PATTERNS.get(country)
        return bool(pattern.match(code)) if pattern else True
    return bool(GENERIC_POSTAL_CODE_PATTERN.match(code))


def get_fallback_coordinates(country: Optional[str]) -> tuple[float, float]:
    """Static centroid for a country code, (0, 0) when unknown."""
    return COUNTRY_CENTROIDS.get(normalize_country(country) or "", DEFAULT_CENTROID)


def fallback_result(country: Optional[str]) -> GeocodeResult:
    lat, lng = get_fallback_coordinates(country)
    label = normalize_country(country) or "Unknown location"
    return GeocodeResult(
        lat=lat,
        lng=lng,
        formatted_address=f"{label} (approximate)",
        source="fallback-centroid",
        is_approximate=True,
    )


def _location_result(location: Any, source: str) -> Optional[GeocodeResult]:
    if not location:
        return None
    return GeocodeResult(
        lat=float(location.latitude),
        lng=float(location.longitude),
        formatted_address=str(location.address or ""),
        source=source,
    )


class GeocodeResolver:
    """Resolve postal codes to coordinates through an ordered strategy list."""

    def __init__(
        self,
        google_api_key: Optional[str] = None,
        zipcodebase_api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        user_agent: Optional[str] = None,
        http: Optional[requests.Session] = None,
    ):
        self.google_api_key = google_api_key
        self.zipcodebase_api_key = zipcodebase_api_key
        self.timeout = timeout or settings.GEOCODING_TIMEOUT
        self.user_agent = user_agent or settings.NOMINATIM_USER_AGENT
        if http is None:
            http = requests.Session()
            http.headers["User-Agent"] = self.user_agent
        self.http = http

        self._init_google()
        self._init_nominatim()

        self.strategies: list[Strategy] = [
            Strategy("region-specific", self._google_applies_regional, self._region_specific),
            Strategy("country-component", self._google_applies_with_country, self._country_component),
            Strategy("country-name-in-address", self._google_applies_with_country, self._country_name_in_address),
            Strategy("direct-postal-code", self._google_applies, self._direct_postal_code),
            Strategy("postal-code-prefix", self._google_applies, self._postal_code_prefix),
            Strategy("zipcodebase", self._zipcodebase_applies, self._zipcodebase),
            Strategy("postcodes.io", self._postcodes_io_applies, self._postcodes_io),
            Strategy("nominatim", self._nominatim_applies, self._nominatim),
        ]

    def _init_google(self) -> None:
        """Initialize the Google geocoder; strategies are skipped without a key."""
        if not self.google_api_key:
            logger.warning("GOOGLE_MAPS_API_KEY not set, Google geocoding disabled")
            self.google = None
            return
        self.google = GoogleV3(api_key=self.google_api_key, timeout=self.timeout)

    def _init_nominatim(self) -> None:
        """Initialize Nominatim with the 1 request/second policy enforced."""
        try:
            self.nominatim = Nominatim(user_agent=self.user_agent, timeout=self.timeout)
            self.nominatim_geocode = RateLimiter(
                self.nominatim.geocode,
                min_delay_seconds=settings.NOMINATIM_RATE_LIMIT,
                max_retries=0,
                swallow_exceptions=False,
            )
        except Exception as e:
            logger.error(f"Failed to initialize Nominatim geocoder: {e}")
            self.nominatim = None
            self.nominatim_geocode = None

    # Applicability checks

    def _google_applies(self, code: str, country: Optional[str]) -> bool:
        return self.google is not None

    def _google_applies_with_country(self, code: str, country: Optional[str]) -> bool:
        return self.google is not None and country is not None

    def _google_applies_regional(self, code: str, country: Optional[str]) -> bool:
        if not self._google_applies_with_country(code, country):
            return False
        if country == "US":
            return code.isdigit()
        if country == "IN":
            return bool(POSTAL_CODE_PATTERNS["IN"].match(code))
        return False

    def _zipcodebase_applies(self, code: str, country: Optional[str]) -> bool:
        return bool(self.zipcodebase_api_key)

    def _postcodes_io_applies(self, code: str, country: Optional[str]) -> bool:
        return country is None or country in POSTCODES_IO_COUNTRIES

    def _nominatim_applies(self, code: str, country: Optional[str]) -> bool:
        return self.nominatim_geocode is not None

    # Google phrasings

    def _google_geocode(
        self, query: str, source: str, country: Optional[str] = None
    ) -> Optional[GeocodeResult]:
        components = {"country": country} if country else None
        location = self.google.geocode(query, components=components)
        return _location_result(location, source)

    def _region_specific(self, code: str, country: Optional[str]) -> Optional[GeocodeResult]:
        if country == "US":
            query = f"{code.zfill(5)[:5]} USA"
        else:
            query = f"{code} India"
        return self._google_geocode(query, f"region-specific-{country}", country)

    def _country_component(self, code: str, country: Optional[str]) -> Optional[GeocodeResult]:
        return self._google_geocode(code, "country-component", country)

    def _country_name_in_address(
        self, code: str, country: Optional[str]
    ) -> Optional[GeocodeResult]:
        name = COUNTRY_NAMES.get(country, country)
        return self._google_geocode(f"{code} {name}", "country-name-in-address")

    def _direct_postal_code(self, code: str, country: Optional[str]) -> Optional[GeocodeResult]:
        return self._google_geocode(code, "direct-postal-code")

    def _postal_code_prefix(self, code: str, country: Optional[str]) -> Optional[GeocodeResult]:
        return self._google_geocode(f"postal code {code}", "postal-code-prefix")

    # Alternative services

    def _zipcodebase(self, code: str, country: Optional[str]) -> Optional[GeocodeResult]:
        params = {"apikey": self.zipcodebase_api_key, "codes": code}
        if country:
            params["country"] = country
        response = self.http.get(ZIPCODEBASE_URL, params=params, timeout=self.timeout)
        response.raise_for_status()
        matches = (response.json().get("results") or {}).get(code) or []
        if not matches:
            return None
        match = matches[0]
        return GeocodeResult(
            lat=float(match["latitude"]),
            lng=float(match["longitude"]),
            formatted_address=(
                f"{match.get('city', '')}, {match.get('state', '')} {code}, "
                f"{match.get('country_code', '')}"
            ),
            source="zipcodebase",
        )

    def _postcodes_io(self, code: str, country: Optional[str]) -> Optional[GeocodeResult]:
        response = self.http.get(POSTCODES_IO_URL.format(code=code), timeout=self.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        result = response.json().get("result")
        if not result:
            return None
        return GeocodeResult(
            lat=float(result["latitude"]),
            lng=float(result["longitude"]),
            formatted_address=f"{result.get('admin_district')}, {result.get('postcode')}, UK",
            source="postcodes.io",
        )

    def _nominatim(self, code: str, country: Optional[str]) -> Optional[GeocodeResult]:
        location = self.nominatim_geocode(
            {"postalcode": code},
            country_codes=country.lower() if country else None,
        )
        return _location_result(location, "nominatim")

    def resolve(self, postal_code: str, country: Optional[str] = None) -> GeocodeResult:
        """Geocode a postal code, trying each strategy in order.

        Args:
            postal_code: Raw postal code as entered by the user
            country: Optional ISO 3166 alpha-2 country hint

        Returns:
            The first result with valid coordinates

        Raises:
            ValidationError: If the postal code is empty after cleaning
            GeocodingError: If every strategy failed
        """
        code = clean_postal_code(postal_code)
        if not code:
            raise ValidationError("Postal code is required")
        country = normalize_country(country)

        if not is_valid_postal_code(code, country):
            logger.warning(
                f"Postal code {code} does not match the expected format for "
                f"{country or 'any country'}, geocoding anyway"
            )

        logger.info(f"Geocoding postal code: {code}{f' ({country})' if country else ''}")
        attempts: list[GeocodeAttempt] = []

        for strategy in self.strategies:
            if not strategy.applies(code, country):
                attempts.append(GeocodeAttempt(strategy.name, success=False, skipped=True))
                continue

            try:
                result = strategy.resolve(code, country)
            except (GeocoderTimedOut, GeocoderUnavailable, GeocoderServiceError) as e:
                self._record_failure(attempts, strategy.name, code, str(e), "error")
                continue
            except requests.RequestException as e:
                self._record_failure(attempts, strategy.name, code, str(e), "error")
                continue
            except Exception as e:
                logger.error(f"Unexpected {strategy.name} error for {code}: {e}")
                self._record_failure(attempts, strategy.name, code, str(e), "error")
                continue

            if result is None:
                self._record_failure(attempts, strategy.name, code, "no results", "empty")
                continue

            if not is_valid_coordinates(result.lat, result.lng):
                self._record_failure(
                    attempts,
                    strategy.name,
                    code,
                    f"invalid coordinates {result.lat},{result.lng}",
                    "invalid",
                )
                continue

            attempts.append(GeocodeAttempt(strategy.name, success=True))
            GEOCODING_ATTEMPTS_TOTAL.labels(strategy=strategy.name, outcome="success").inc()
            logger.info(
                f"Geocoded {code} to {result.lat}, {result.lng} using {result.source}"
            )
            return result

        raise GeocodingError(
            f'No location found for postal code "{postal_code}" after multiple '
            "geocoding attempts",
            attempts=[attempt.as_dict() for attempt in attempts],
        )

    def _record_failure(
        self,
        attempts: list[GeocodeAttempt],
        name: str,
        code: str,
        error: str,
        outcome: str,
    ) -> None:
        logger.warning(f"Geocoding strategy {name} failed for {code}: {error}")
        GEOCODING_ATTEMPTS_TOTAL.labels(strategy=name, outcome=outcome).inc()
        attempts.append(GeocodeAttempt(name, success=False, error=error))


# Singleton instance
_geocode_resolver: Optional[GeocodeResolver] = None


def get_geocode_resolver() -> GeocodeResolver:
    """Get or create the singleton resolver instance.

    Returns:
        GeocodeResolver configured from application settings
    """
    global _geocode_resolver
    if _geocode_resolver is None:
        _geocode_resolver = GeocodeResolver(
            google_api_key=settings.GOOGLE_MAPS_API_KEY,
            zipcodebase_api_key=settings.ZIPCODEBASE_API_KEY,
        )
    return _geocode_resolver
