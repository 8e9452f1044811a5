"""Postal code geocoding.

This package provides:
- GeocodeResolver with its ordered strategy chain
- Postal code cleaning and per-country format validation
- Static country centroids for approximate fallbacks
"""

from healthspot.core.geocoding.constants import COUNTRY_CENTROIDS, COUNTRY_NAMES
from healthspot.core.geocoding.service import (
    GeocodeAttempt,
    GeocodeResolver,
    GeocodeResult,
    Strategy,
    clean_postal_code,
    fallback_result,
    get_fallback_coordinates,
    get_geocode_resolver,
    is_valid_postal_code,
)

__all__ = [
    "COUNTRY_CENTROIDS",
    "COUNTRY_NAMES",
    "GeocodeAttempt",
    "GeocodeResolver",
    "GeocodeResult",
    "Strategy",
    "clean_postal_code",
    "fallback_result",
    "get_fallback_coordinates",
    "get_geocode_resolver",
    "is_valid_postal_code",
]
