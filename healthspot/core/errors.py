"""Application exception hierarchy."""

from typing import Any

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_429_TOO_MANY_REQUESTS,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)


class HealthSpotError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # Copied to the top level of the error body
        self.extra = extra or {}


class ValidationError(HealthSpotError):
    """Missing or invalid request input."""

    status_code = HTTP_400_BAD_REQUEST


class NotFoundError(HealthSpotError):
    """An id or placeId could not be resolved."""

    status_code = HTTP_404_NOT_FOUND


class UpstreamServiceError(HealthSpotError):
    """An external API call failed."""

    status_code = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        service: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.service = service


class ConfigurationError(HealthSpotError):
    """A service was invoked without the credentials it needs."""

    status_code = HTTP_503_SERVICE_UNAVAILABLE


class RateLimitExceeded(HealthSpotError):
    """Client exceeded its request budget."""

    status_code = HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            "Too many requests, please try again later",
            {"retryAfter": retry_after},
        )
        self.retry_after = retry_after


class GeocodingError(HealthSpotError):
    """Every geocoding strategy failed for a postal code."""

    status_code = HTTP_400_BAD_REQUEST

    def __init__(self, message: str, attempts: list[dict[str, Any]] | None = None):
        super().__init__(message, {"attempts": attempts or []})
        self.attempts = attempts or []
