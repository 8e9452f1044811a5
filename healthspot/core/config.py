"""Application configuration."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "HealthSpot"
    version: str = "0.1.0"
    api_prefix: str = "/api"

    # CORS Settings
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./healthspot.db"
    DB_ECHO: bool = False

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Google Maps
    GOOGLE_MAPS_API_KEY: str | None = None
    GOOGLE_MAPS_BASE_URL: str = "https://maps.googleapis.com/maps/api"
    GOOGLE_ROUTES_URL: str = "https://routes.googleapis.com/directions/v2:computeRoutes"

    # Geocoding Settings
    ZIPCODEBASE_API_KEY: str | None = None
    NOMINATIM_USER_AGENT: str = "HealthSpot-App/1.0"
    NOMINATIM_RATE_LIMIT: float = 1.1
    GEOCODING_TIMEOUT: int = 10

    # AI completion (OpenAI-compatible)
    DEEPSEEK_API_KEY: str | None = None
    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com"
    DEEPSEEK_MODEL: str = "deepseek-chat"

    # Twilio
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_PHONE_NUMBER: str | None = None
    TWILIO_API_URL: str = "https://api.twilio.com/2010-04-01"

    HTTP_TIMEOUT: float = 15.0

    # Provider search
    PROVIDER_CACHE_MIN_RESULTS: int = Field(default=10, ge=1)
    DEFAULT_SEARCH_RADIUS_METERS: int = Field(default=5000, gt=0)
    DEFAULT_CENTER_LAT: float = 37.7749
    DEFAULT_CENTER_LNG: float = -122.4194

    # Review freshness windows
    GOOGLE_REVIEWS_FRESH_DAYS: int = Field(default=7, ge=0)
    REDDIT_REVIEWS_FRESH_DAYS: int = Field(default=30, ge=0)

    # Rate limiting
    RATE_LIMIT_WINDOW_SECONDS: float = Field(default=60.0, gt=0)
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=60, ge=1)
    RATE_LIMIT_MAX_CLIENTS: int = Field(default=10000, ge=1)

    # Anonymous identity cookie
    ANONYMOUS_ID_COOKIE: str = "anonymousId"
    ANONYMOUS_ID_MAX_AGE_SECONDS: int = 365 * 24 * 60 * 60
    COOKIE_SECURE: bool = False

    PORT: int = 5000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    @model_validator(mode="after")
    def validate_origins(self) -> "Settings":
        """Validate CORS origins."""
        if self.cors_origins == ["*"]:
            self.cors_origins = [
                "http://localhost",
                "http://localhost:3000",
                "http://localhost:5000",
            ]
        return self

    @model_validator(mode="after")
    def use_test_database_for_testing(self) -> "Settings":
        """Use an isolated database when running tests."""
        import os

        if os.getenv("TESTING") == "true":
            self.DATABASE_URL = os.getenv(
                "TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
            )
        return self

    @property
    def google_maps_configured(self) -> bool:
        return bool(self.GOOGLE_MAPS_API_KEY)


settings = Settings()
