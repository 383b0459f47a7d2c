"""
Move-or-stay decision for the persona's current stop.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from wanderpost.core.settings import Settings
from wanderpost.db import crud
from wanderpost.db.models import Location, PoiType

MIN_DAYS_KEY = "minDaysPerLocation"
MAX_DAYS_KEY = "maxDaysPerLocation"


class MoveReason(str, Enum):
    MAX_DURATION = "max_duration"
    PLANNED_DURATION = "planned_duration"
    NO_ATTRACTIONS_LEFT = "no_attractions_left"


@dataclass(frozen=True)
class DayBounds:
    min_days: int
    max_days: int


@dataclass(frozen=True)
class MoveDecision:
    should_move: bool
    reason: Optional[MoveReason]
    current_day: int
    planned_duration: int
    unvisited_attractions: int
    bounds: DayBounds


def should_move(location: Location, unvisited_attractions: int, bounds: DayBounds) -> MoveDecision:
    """
    Move when the hard cap or the planned stay is reached, or when every
    attraction has been used and the minimum stay is met. Restaurants never
    gate a move. When several clauses hold, the reason reports the first of
    max duration, planned duration, no attractions left.
    """
    day = location.current_day
    reason = None
    if day >= bounds.max_days:
        reason = MoveReason.MAX_DURATION
    elif day >= location.planned_duration:
        reason = MoveReason.PLANNED_DURATION
    elif unvisited_attractions == 0 and day >= bounds.min_days:
        reason = MoveReason.NO_ATTRACTIONS_LEFT

    return MoveDecision(
        should_move=reason is not None,
        reason=reason,
        current_day=day,
        planned_duration=location.planned_duration,
        unvisited_attractions=unvisited_attractions,
        bounds=bounds,
    )


def _int_or(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


async def load_day_bounds(session: AsyncSession, settings: Settings) -> DayBounds:
    """Environment bounds, overridden by the settings table where a key is present"""
    min_days = _int_or(await crud.get_setting(session, MIN_DAYS_KEY), settings.MIN_DAYS_PER_LOCATION)
    max_days = _int_or(await crud.get_setting(session, MAX_DAYS_KEY), settings.MAX_DAYS_PER_LOCATION)
    return DayBounds(min_days=min_days, max_days=max_days)


async def evaluate(session: AsyncSession, location: Location, settings: Settings) -> MoveDecision:
    bounds = await load_day_bounds(session, settings)
    unvisited = await crud.count_available_pois(session, location.id, PoiType.ATTRACTION)
    return should_move(location, unvisited, bounds)
