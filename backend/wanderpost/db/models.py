from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import computed_field, field_validator
from sqlalchemy import JSON, CheckConstraint, Column, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class PoiType(str, Enum):
    ATTRACTION = "attraction"
    RESTAURANT = "restaurant"


class PostType(str, Enum):
    DAILY = "daily"
    TRAVEL = "travel"


# Models
class Location(SQLModel, table=True):
    __tablename__ = "locations"

    __table_args__ = (
        Index("idx_locations_name_country", "name", "country"),
        # at most one row may be the current stop
        Index(
            "uq_locations_single_current",
            "is_current",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
        CheckConstraint("latitude BETWEEN -90 AND 90", name="check_valid_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="check_valid_longitude"),
        CheckConstraint("current_day >= 1", name="check_current_day_positive"),
        CheckConstraint("order_in_journey >= 1", name="check_order_positive"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=200, description="Town name in English")
    country: str = Field(max_length=100)
    region: Optional[str] = Field(default="", max_length=100)
    latitude: float = Field(description="Latitude coordinate")
    longitude: float = Field(description="Longitude coordinate")
    timezone: Optional[str] = Field(default=None, max_length=50)
    currency: Optional[str] = Field(default=None, max_length=10)
    language: Optional[str] = Field(default=None, max_length=50)
    population: Optional[int] = Field(default=None)
    description: Optional[str] = Field(default=None)

    is_current: bool = Field(default=False)
    is_visited: bool = Field(default=False)
    planned_arrival: Optional[date] = Field(default=None)
    planned_departure: Optional[date] = Field(default=None)
    planned_duration: int = Field(default=14, description="Planned stay in days")
    current_day: int = Field(default=1, description="1-indexed day counter at this stop")
    order_in_journey: int = Field(unique=True, description="Position in the itinerary, starting at 1")

    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("name", "country")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Location name and country cannot be empty")
        return v.strip()

    @computed_field
    @property
    def days_remaining(self) -> int:
        return max(0, self.planned_duration - self.current_day)


class PointOfInterest(SQLModel, table=True):
    __tablename__ = "points_of_interest"

    __table_args__ = (
        Index("idx_poi_location_type", "location_id", "type"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    location_id: int = Field(foreign_key="locations.id", nullable=False)
    type: PoiType = Field(description="attraction or restaurant")
    name: str = Field(max_length=300)
    description: Optional[str] = Field(default=None)
    category: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Kind of attraction (museum, church...) or cuisine",
    )
    highlights: Optional[List[str]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="Interesting facts or signature dishes",
    )
    opening_hours: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description='{"weekday": "9:00-17:00", "weekend": "10:00-16:00"}',
    )
    website: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)


class Visit(SQLModel, table=True):
    """A POI consumed (or planned) on a calendar date"""

    __tablename__ = "visits"

    __table_args__ = (
        UniqueConstraint("poi_id", "visit_date", name="uq_visits_poi_date"),
        Index("idx_visits_included", "poi_id", "included_in_post"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    poi_id: int = Field(foreign_key="points_of_interest.id", nullable=False)
    visit_date: date
    included_in_post: bool = Field(default=False)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)


class TransportationLeg(SQLModel, table=True):
    __tablename__ = "transportation_legs"

    __table_args__ = (
        UniqueConstraint("from_location_id", "to_location_id", name="uq_leg_from_to"),
        CheckConstraint("distance_km >= 0", name="check_distance_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    from_location_id: int = Field(foreign_key="locations.id", nullable=False)
    to_location_id: int = Field(foreign_key="locations.id", nullable=False)
    type: str = Field(max_length=20, description="bus, train or airplane")
    departure_time: datetime
    arrival_time: datetime
    duration_minutes: int
    distance_km: int
    price: float
    currency: Optional[str] = Field(default=None, max_length=10)
    created_at: datetime = Field(default_factory=utcnow)


class UsedContentRecord(SQLModel, table=True):
    """Fingerprints of externally sourced assets already used in published content"""

    __tablename__ = "used_content"

    id: Optional[int] = Field(default=None, primary_key=True)
    fingerprint: str = Field(unique=True, index=True, max_length=128)
    provider: str = Field(max_length=50)
    asset_type: Optional[str] = Field(default=None, max_length=50)
    prompt: Optional[str] = Field(default=None)
    url: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow)


class Setting(SQLModel, table=True):
    __tablename__ = "settings"

    key: str = Field(primary_key=True, max_length=100)
    value: str
    description: Optional[str] = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow)


class Post(SQLModel, table=True):
    """Ledger of content items accepted by the publication gateway"""

    __tablename__ = "posts"

    id: Optional[int] = Field(default=None, primary_key=True)
    external_id: Optional[str] = Field(default=None, max_length=100)
    url: Optional[str] = Field(default=None, max_length=1000)
    location_id: Optional[int] = Field(default=None, foreign_key="locations.id")
    type: PostType = Field(default=PostType.DAILY)
    title: str = Field(max_length=500)
    excerpt: Optional[str] = Field(default=None)
    day_number: Optional[int] = Field(default=None)
    weather_temp: Optional[float] = Field(default=None)
    weather_condition: Optional[str] = Field(default=None, max_length=100)
    image_credits: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    published_at: datetime = Field(default_factory=utcnow)


class Accommodation(SQLModel, table=True):
    """Where the traveler sleeps at a stop; one row per location"""

    __tablename__ = "accommodations"

    id: Optional[int] = Field(default=None, primary_key=True)
    location_id: int = Field(foreign_key="locations.id", unique=True, nullable=False)
    name: str = Field(max_length=300)
    address: Optional[str] = Field(default=None, max_length=500)
    price_per_night: Optional[int] = Field(default=None)
    currency: Optional[str] = Field(default=None, max_length=10)
    description: Optional[str] = Field(default=None)
    amenities: Optional[str] = Field(default=None)
    booking_url: Optional[str] = Field(default=None, max_length=1000)
    rating: Optional[float] = Field(default=None)
    check_in_date: Optional[date] = Field(default=None)
    check_out_date: Optional[date] = Field(default=None)
    source: str = Field(default="default", max_length=50, description="google_places or default")
    created_at: datetime = Field(default_factory=utcnow)
