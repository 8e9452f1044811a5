"""SQLAlchemy models for providers, reviews and user-facing records."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates

from healthspot.core.coordinates import is_valid_latitude, is_valid_longitude

from .base import Base, utcnow

REVIEW_SOURCES = ("google", "reddit", "other")
SENTIMENT_LABELS = ("positive", "neutral", "negative")


class ProviderModel(Base):
    """A healthcare provider, cached from the Places API."""

    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    place_id = Column(Text, unique=True, nullable=True, index=True)
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    website = Column(Text, nullable=True)
    latitude = Column(Float, nullable=False, index=True)
    longitude = Column(Float, nullable=False, index=True)

    # Set-like fields stored as JSON arrays
    types = Column(JSON, nullable=False, default=list)
    specialties = Column(JSON, nullable=False, default=list)
    insurance_accepted = Column(JSON, nullable=False, default=list)

    rating = Column(Float, nullable=True)
    price_level = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    reviews = relationship(
        "ReviewModel", back_populates="provider", cascade="all, delete-orphan"
    )

    @validates("latitude")
    def _validate_latitude(self, key: str, value: float) -> float:
        if not is_valid_latitude(value):
            raise ValueError(f"Invalid latitude: {value}")
        return float(value)

    @validates("longitude")
    def _validate_longitude(self, key: str, value: float) -> float:
        if not is_valid_longitude(value):
            raise ValueError(f"Invalid longitude: {value}")
        return float(value)


class ReviewModel(Base):
    """A review attached to a provider, fetched or generated."""

    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    place_id = Column(Text, nullable=True)
    source: Column[str] = Column(  # type: ignore[assignment]
        Enum(*REVIEW_SOURCES, name="review_source_enum"),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    author = Column(Text, nullable=True)
    rating = Column(Float, nullable=True)
    sentiment: Column[str] = Column(  # type: ignore[assignment]
        Enum(*SENTIMENT_LABELS, name="review_sentiment_enum"),
        nullable=False,
        default="neutral",
    )
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    provider = relationship("ProviderModel", back_populates="reviews")


class SmsSubscriptionModel(Base):
    """Phone number opted in to provider updates."""

    __tablename__ = "sms_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(Text, unique=True, nullable=False)
    provider_types = Column(JSON, nullable=False, default=list)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    radius = Column(Float, nullable=False, default=10)
    anonymous_id = Column(Text, nullable=True, index=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    last_notification_sent = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SavedProviderModel(Base):
    """Provider bookmarked by an anonymous user."""

    __tablename__ = "saved_providers"
    __table_args__ = (
        UniqueConstraint("anonymous_id", "provider_id", name="uq_saved_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    anonymous_id = Column(Text, nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    provider = relationship("ProviderModel", lazy="joined")


class AnonymousUserModel(Base):
    """Cookie-identified visitor."""

    __tablename__ = "anonymous_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    anonymous_id = Column(Text, unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_access = Column(DateTime, default=utcnow, nullable=False)


class SearchHistoryModel(Base):
    """One provider search performed by an anonymous user."""

    __tablename__ = "search_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    anonymous_id = Column(Text, nullable=False, index=True)
    search_params = Column(JSON, nullable=False, default=dict)
    result_count = Column(Integer, nullable=False, default=0)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
