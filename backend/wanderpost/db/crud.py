"""
Repository operations over the journey tables.

Functions take an open ``AsyncSession`` and only flush; committing is left to the
caller's ``DatabaseManager.transaction()`` scope so multi-step writes stay atomic.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import and_, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wanderpost.core.errors import JourneyStateError
from wanderpost.db.models import (
    Accommodation,
    Location,
    PointOfInterest,
    PoiType,
    Post,
    Setting,
    TransportationLeg,
    UsedContentRecord,
    Visit,
    utcnow,
)

logger = logging.getLogger(__name__)

# ===== LOCATION OPERATIONS =====

async def get_current_location(session: AsyncSession) -> Optional[Location]:
    """Get the location currently flagged as the persona's stop"""
    result = await session.execute(select(Location).where(Location.is_current == True))  # noqa: E712
    return result.scalars().first()


async def require_current_location(session: AsyncSession) -> Location:
    location = await get_current_location(session)
    if location is None:
        raise JourneyStateError("No current location found")
    return location


async def get_location(session: AsyncSession, location_id: int) -> Optional[Location]:
    return await session.get(Location, location_id)


async def list_locations(session: AsyncSession) -> List[Location]:
    """All locations in itinerary order"""
    result = await session.execute(select(Location).order_by(Location.order_in_journey))
    return list(result.scalars().all())


async def count_locations(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(Location))
    return result.scalar_one()


async def get_next_order(session: AsyncSession) -> int:
    result = await session.execute(select(func.max(Location.order_in_journey)))
    current_max = result.scalar_one_or_none()
    return (current_max or 0) + 1


async def get_visited_pairs(session: AsyncSession) -> Set[Tuple[str, str]]:
    """Lower-cased (name, country) pairs of every visited or current location"""
    result = await session.execute(
        select(Location.name, Location.country).where(
            (Location.is_visited == True) | (Location.is_current == True)  # noqa: E712
        )
    )
    return {(name.lower(), country.lower()) for name, country in result.all()}


async def create_location(session: AsyncSession, **fields: Any) -> Location:
    """Insert a location at the end of the itinerary"""
    if "order_in_journey" not in fields:
        fields["order_in_journey"] = await get_next_order(session)
    location = Location(**fields)
    session.add(location)
    await session.flush()
    logger.info(f"Created location #{location.order_in_journey}: {location.name}, {location.country}")
    return location


async def relocate(
    session: AsyncSession,
    current: Location,
    destination: Dict[str, Any],
    leg: Dict[str, Any],
) -> Tuple[Location, TransportationLeg]:
    """
    Insert the next location and its transportation leg, then hand the
    ``is_current`` flag over. Must run inside a single transaction: the old
    flag is cleared and flushed before the new one is set, so the partial
    unique index never sees two current rows.
    """
    new_location = await create_location(session, is_current=False, is_visited=False, current_day=1, **destination)

    transport = TransportationLeg(
        from_location_id=current.id,
        to_location_id=new_location.id,
        **leg,
    )
    session.add(transport)

    await session.execute(
        update(Location)
        .where(Location.id == current.id)
        .values(is_current=False, is_visited=True)
    )
    await session.flush()

    await session.execute(
        update(Location)
        .where(Location.id == new_location.id)
        .values(is_current=True, current_day=1)
    )
    await session.flush()
    await session.refresh(new_location)
    await session.refresh(current)
    return new_location, transport


async def increment_current_day(session: AsyncSession, location_id: int) -> None:
    await session.execute(
        update(Location)
        .where(Location.id == location_id)
        .values(current_day=Location.current_day + 1)
    )
    await session.flush()


# ===== TRANSPORTATION OPERATIONS =====

async def get_leg(session: AsyncSession, from_id: int, to_id: int) -> Optional[TransportationLeg]:
    result = await session.execute(
        select(TransportationLeg).where(
            and_(
                TransportationLeg.from_location_id == from_id,
                TransportationLeg.to_location_id == to_id,
            )
        )
    )
    return result.scalars().first()


async def total_distance_km(session: AsyncSession) -> int:
    result = await session.execute(select(func.coalesce(func.sum(TransportationLeg.distance_km), 0)))
    return int(result.scalar_one())


# ===== POINT OF INTEREST OPERATIONS =====

def _consumed_visit_exists():
    return exists().where(
        and_(
            Visit.poi_id == PointOfInterest.id,
            Visit.included_in_post == True,  # noqa: E712
        )
    )


async def get_available_pois(
    session: AsyncSession, location_id: int, poi_type: PoiType
) -> List[PointOfInterest]:
    """POIs of a type at a location that no published post has consumed yet"""
    result = await session.execute(
        select(PointOfInterest)
        .where(
            PointOfInterest.location_id == location_id,
            PointOfInterest.type == poi_type,
            ~_consumed_visit_exists(),
        )
        .order_by(PointOfInterest.id)
    )
    return list(result.scalars().all())


async def count_available_pois(session: AsyncSession, location_id: int, poi_type: PoiType) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(PointOfInterest)
        .where(
            PointOfInterest.location_id == location_id,
            PointOfInterest.type == poi_type,
            ~_consumed_visit_exists(),
        )
    )
    return result.scalar_one()


async def get_poi_names(session: AsyncSession, location_id: int, poi_type: PoiType) -> Set[str]:
    result = await session.execute(
        select(PointOfInterest.name).where(
            PointOfInterest.location_id == location_id,
            PointOfInterest.type == poi_type,
        )
    )
    return {name.strip().lower() for name in result.scalars().all()}


async def create_poi(session: AsyncSession, **fields: Any) -> PointOfInterest:
    poi = PointOfInterest(**fields)
    session.add(poi)
    await session.flush()
    return poi


async def set_poi_website(session: AsyncSession, poi_id: int, url: str) -> None:
    await session.execute(
        update(PointOfInterest).where(PointOfInterest.id == poi_id).values(website=url)
    )


async def mark_pois_consumed(session: AsyncSession, poi_ids: Iterable[int], visit_date: date) -> None:
    """Upsert today's visit for each POI with included_in_post set"""
    for poi_id in poi_ids:
        result = await session.execute(
            select(Visit).where(Visit.poi_id == poi_id, Visit.visit_date == visit_date)
        )
        visit = result.scalars().first()
        if visit is None:
            session.add(Visit(poi_id=poi_id, visit_date=visit_date, included_in_post=True))
        else:
            visit.included_in_post = True
    await session.flush()


# ===== CONTENT DEDUP LEDGER =====

async def is_fingerprint_used(session: AsyncSession, fingerprint: str) -> bool:
    result = await session.execute(
        select(UsedContentRecord.id).where(UsedContentRecord.fingerprint == fingerprint)
    )
    return result.first() is not None


async def record_fingerprint(
    session: AsyncSession,
    fingerprint: str,
    provider: str,
    asset_type: Optional[str] = None,
    prompt: Optional[str] = None,
    url: Optional[str] = None,
) -> bool:
    """Record a fingerprint; returns False when it was already present"""
    if await is_fingerprint_used(session, fingerprint):
        return False
    session.add(UsedContentRecord(
        fingerprint=fingerprint,
        provider=provider,
        asset_type=asset_type,
        prompt=prompt,
        url=url,
    ))
    await session.flush()
    return True


# ===== SETTINGS =====

async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    setting = await session.get(Setting, key)
    return setting.value if setting else None


async def set_setting(session: AsyncSession, key: str, value: str, description: Optional[str] = None) -> Setting:
    setting = await session.get(Setting, key)
    if setting is None:
        setting = Setting(key=key, value=value, description=description)
        session.add(setting)
    else:
        setting.value = value
        setting.updated_at = utcnow()
        if description is not None:
            setting.description = description
    await session.flush()
    return setting


# ===== POSTS =====

async def record_post(session: AsyncSession, **fields: Any) -> Post:
    post = Post(**fields)
    session.add(post)
    await session.flush()
    logger.info(f"Recorded {post.type.value} post: {post.title}")
    return post


async def journey_start_date(session: AsyncSession) -> Optional[date]:
    result = await session.execute(
        select(Location.planned_arrival).order_by(Location.order_in_journey).limit(1)
    )
    return result.scalar_one_or_none()


# ===== ACCOMMODATION =====

async def get_accommodation(session: AsyncSession, location_id: int) -> Optional[Accommodation]:
    result = await session.execute(
        select(Accommodation).where(Accommodation.location_id == location_id)
    )
    return result.scalar_one_or_none()


async def create_accommodation(session: AsyncSession, **fields: Any) -> Accommodation:
    accommodation = Accommodation(**fields)
    session.add(accommodation)
    await session.flush()
    logger.info(f"Recorded accommodation for location {accommodation.location_id}: {accommodation.name}")
    return accommodation
