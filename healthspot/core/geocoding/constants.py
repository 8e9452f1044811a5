"""Static lookup tables for postal code geocoding.

Country centroids are the last-resort answer when every geocoding
strategy fails; names are used to disambiguate bare postal codes.
"""

import re

# Representative centre of each country, (lat, lng)
COUNTRY_CENTROIDS: dict[str, tuple[float, float]] = {
    "US": (39.8333333, -98.585522),
    "IN": (20.5937, 78.9629),
    "GB": (55.3781, -3.4360),
    "CA": (56.1304, -106.3468),
    "AU": (-25.2744, 133.7751),
    "BR": (-14.2350, -51.9253),
    "MX": (23.6345, -102.5528),
    "ZA": (-30.5595, 22.9375),
    "NG": (9.0820, 8.6753),
    "KE": (0.0236, 37.9062),
}

DEFAULT_CENTROID: tuple[float, float] = (0.0, 0.0)

COUNTRY_NAMES: dict[str, str] = {
    "US": "United States",
    "IN": "India",
    "GB": "United Kingdom",
    "CA": "Canada",
    "AU": "Australia",
    "BR": "Brazil",
    "MX": "Mexico",
    "ZA": "South Africa",
    "NG": "Nigeria",
    "KE": "Kenya",
    "PK": "Pakistan",
    "BD": "Bangladesh",
    "LK": "Sri Lanka",
    "NP": "Nepal",
}

# Applied to the cleaned code (no spaces, dashes or dots)
POSTAL_CODE_PATTERNS: dict[str, re.Pattern[str]] = {
    "US": re.compile(r"^\d{5}(\d{4})?$"),
    "IN": re.compile(r"^\d{6}$"),
    "GB": re.compile(r"^[A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2}$", re.IGNORECASE),
    "CA": re.compile(r"^[A-Z]\d[A-Z]\s*\d[A-Z]\d$", re.IGNORECASE),
    "AU": re.compile(r"^\d{4}$"),
    "BR": re.compile(r"^\d{5}-?\d{3}$"),
    "MX": re.compile(r"^\d{5}$"),
}

GENERIC_POSTAL_CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,}$", re.IGNORECASE)

POSTAL_CODE_SEPARATORS = re.compile(r"[\s\-.]+")

# postcodes.io only knows the United Kingdom
POSTCODES_IO_COUNTRIES = frozenset({"GB", "UK"})
