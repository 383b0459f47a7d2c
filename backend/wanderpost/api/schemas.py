from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LocationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    country: str
    region: Optional[str] = None
    latitude: float
    longitude: float
    timezone: Optional[str] = None
    currency: Optional[str] = None
    language: Optional[str] = None
    is_current: bool
    is_visited: bool
    planned_arrival: Optional[date] = None
    planned_departure: Optional[date] = None
    planned_duration: int
    current_day: int
    order_in_journey: int
    days_remaining: int
    created_at: datetime


class MoveDecisionRead(BaseModel):
    location_id: int
    location: str
    should_move: bool
    reason: Optional[str] = None
    current_day: int
    planned_duration: int
    unvisited_attractions: int
    min_days: int
    max_days: int


class CycleOutcomeRead(BaseModel):
    kind: str = Field(..., description="moved, stayed or failed")
    cycle_id: str
    location_id: Optional[int] = None
    moved_location_id: Optional[int] = None
    reason: Optional[str] = None
    post_id: Optional[int] = None
    post_url: Optional[str] = None
    error: Optional[str] = None


class JourneyOverview(BaseModel):
    locations: List[LocationRead]
    total: int
