"""
The daily cycle: decide between moving and staying, produce one post, and write
the outcome back to the journey tables.

A move commits the new location, its transportation leg and the ``is_current``
hand-over in one transaction before any content is produced. A stay publishes
first and only then marks the day's POIs consumed and advances the day counter,
so a failed publication leaves the stop exactly as it was.
"""

import random
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog

from wanderpost.core import journey
from wanderpost.core.content import ContentAssembler, ContentDocument, journey_stats, plan_tomorrow
from wanderpost.core.errors import JourneyStateError
from wanderpost.core.geo import (
    Coord,
    classify_transport,
    distance_km,
    estimate_duration_minutes,
    estimate_price,
)
from wanderpost.core.places import PlaceSelector
from wanderpost.core.planner import ItineraryPlanner
from wanderpost.core.settings import Settings
from wanderpost.db import crud
from wanderpost.db.models import Location, utcnow
from wanderpost.db.session import DatabaseManager
from wanderpost.services.images import build_image_service
from wanderpost.services.places import PlacesService
from wanderpost.services.publisher import Publication, Publisher, WordPressPublisher
from wanderpost.services.text_generation import OpenAITextGenerator, TextGenerator
from wanderpost.services.weather import WeatherService

logger = structlog.get_logger(__name__)


@dataclass
class CycleOutcome:
    kind: str  # moved, stayed or failed
    cycle_id: str
    location_id: Optional[int] = None
    moved_location_id: Optional[int] = None
    reason: Optional[str] = None
    post_id: Optional[int] = None
    post_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind != "failed"


def local_today(settings: Settings) -> date:
    return datetime.now(ZoneInfo(settings.SCHEDULER_TIMEZONE)).date()


class DailyCycle:
    def __init__(
        self,
        db: DatabaseManager,
        settings: Settings,
        planner: ItineraryPlanner,
        places: PlaceSelector,
        assembler: ContentAssembler,
        publisher: Publisher,
        weather: WeatherService,
        rng: Optional[random.Random] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.db = db
        self.settings = settings
        self.planner = planner
        self.places = places
        self.assembler = assembler
        self.publisher = publisher
        self.weather = weather
        self.rng = rng or random.Random()
        self.today = today or (lambda: local_today(settings))

    async def run(self) -> CycleOutcome:
        """Run one cycle; failures are logged and reported, never raised"""
        cycle_id = uuid.uuid4().hex[:12]
        structlog.contextvars.bind_contextvars(cycle_id=cycle_id)
        logger.info("cycle_started")
        try:
            outcome = await self._run(cycle_id)
            logger.info("cycle_finished", kind=outcome.kind, location_id=outcome.location_id)
            return outcome
        except Exception as e:
            logger.error("cycle_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
            return CycleOutcome(kind="failed", cycle_id=cycle_id, error=str(e) or type(e).__name__)
        finally:
            structlog.contextvars.unbind_contextvars("cycle_id")

    async def _run(self, cycle_id: str) -> CycleOutcome:
        async with self.db.get_session() as session:
            location = await crud.require_current_location(session)
            decision = await journey.evaluate(session, location, self.settings)

        logger.info(
            "move_decision",
            location=location.name,
            current_day=decision.current_day,
            planned_duration=decision.planned_duration,
            unvisited_attractions=decision.unvisited_attractions,
            should_move=decision.should_move,
            reason=decision.reason.value if decision.reason else None,
        )
        if decision.should_move:
            return await self.move(location, decision.reason, cycle_id)
        return await self.stay(location, decision.bounds, cycle_id)

    async def move(self, location: Location, reason: Optional[journey.MoveReason], cycle_id: str) -> CycleOutcome:
        async with self.db.get_session() as session:
            visited = await crud.get_visited_pairs(session)

        descriptor = await self.planner.select_next_city(location.country, visited)

        distance = distance_km(
            Coord(location.latitude, location.longitude),
            Coord(descriptor.latitude, descriptor.longitude),
            self.settings.DETOUR_FACTOR,
        )
        mode = classify_transport(distance)
        duration = estimate_duration_minutes(distance, mode)
        departure = utcnow()
        arrival = departure + timedelta(minutes=duration)
        planned = self.rng.randint(self.settings.PLANNED_DURATION_MIN_DAYS, self.settings.PLANNED_DURATION_MAX_DAYS)

        destination_fields = descriptor.location_fields()
        destination_fields.update(
            planned_arrival=arrival.date(),
            planned_departure=arrival.date() + timedelta(days=planned),
            planned_duration=planned,
        )
        leg_fields = {
            "type": mode.value,
            "departure_time": departure,
            "arrival_time": arrival,
            "duration_minutes": duration,
            "distance_km": round(distance),
            "price": float(estimate_price(distance, mode)),
            "currency": descriptor.currency,
        }

        async with self.db.transaction() as session:
            current = await crud.require_current_location(session)
            if current.id != location.id:
                raise JourneyStateError(f"Current location changed during cycle ({location.id} -> {current.id})")
            new_location, leg = await crud.relocate(session, current, destination_fields, leg_fields)
        previous = current

        logger.info(
            "move_committed",
            origin=previous.name,
            destination=new_location.name,
            country=new_location.country,
            transport=leg.type,
            distance_km=leg.distance_km,
            reason=reason.value if reason else None,
            source=descriptor.source,
        )

        outcome = CycleOutcome(
            kind="moved",
            cycle_id=cycle_id,
            location_id=new_location.id,
            moved_location_id=new_location.id,
            reason=reason.value if reason else None,
        )
        try:
            document = await self.assembler.travel(previous, new_location, leg)
            publication = await self.publisher.publish(document)
            post_id = await self._record(document, publication, new_location.id)
        except Exception as e:
            # the move stays committed; only the travel post is lost
            logger.error("travel_post_failed", error=str(e), destination=new_location.name)
            outcome.kind = "failed"
            outcome.error = str(e) or type(e).__name__
            return outcome

        logger.info("travel_post_published", url=publication.url)
        outcome.post_id = post_id
        outcome.post_url = publication.url
        return outcome

    async def stay(self, location: Location, bounds: journey.DayBounds, cycle_id: str) -> CycleOutcome:
        today = self.today()
        selection = await self.places.select_places(location.id, today)
        await self.places.enrich_websites(location, selection)
        accommodation = None
        if location.current_day <= 1:
            accommodation = await self.places.accommodation_for(location)
        weather = await self.weather.current(location.latitude, location.longitude)

        async with self.db.get_session() as session:
            tomorrow = await plan_tomorrow(session, location, selection.attraction.id, self.rng, bounds)
            stats = await journey_stats(session, today)

        document = await self.assembler.daily(
            location,
            selection.restaurant,
            selection.attraction,
            weather,
            tomorrow,
            stats,
            accommodation=accommodation,
        )
        publication = await self.publisher.publish(document)

        async with self.db.transaction() as session:
            await crud.mark_pois_consumed(session, [selection.restaurant.id, selection.attraction.id], today)
            await crud.increment_current_day(session, location.id)
            post = await crud.record_post(session, **self._post_fields(document, publication, location.id))
            post_id = post.id

        logger.info(
            "daily_post_published",
            location=location.name,
            day=document.day_number,
            restaurant=selection.restaurant.name,
            attraction=selection.attraction.name,
            url=publication.url,
        )
        return CycleOutcome(
            kind="stayed",
            cycle_id=cycle_id,
            location_id=location.id,
            post_id=post_id,
            post_url=publication.url,
        )

    async def _record(self, document: ContentDocument, publication: Publication, location_id: int) -> int:
        async with self.db.transaction() as session:
            post = await crud.record_post(session, **self._post_fields(document, publication, location_id))
            return post.id

    @staticmethod
    def _post_fields(document: ContentDocument, publication: Publication, location_id: int) -> dict:
        return {
            "external_id": publication.external_id,
            "url": publication.url,
            "location_id": location_id,
            "type": document.post_type,
            "title": document.title,
            "excerpt": document.excerpt,
            "day_number": document.day_number,
            "weather_temp": document.weather.temperature if document.weather else None,
            "weather_condition": document.weather.description if document.weather else None,
            "image_credits": document.image_credits(),
        }


async def initialize_journey(
    db: DatabaseManager,
    planner: ItineraryPlanner,
    settings: Settings,
    today: Optional[date] = None,
) -> Location:
    """Create the first stop of an empty journey"""
    async with db.get_session() as session:
        if await crud.count_locations(session) > 0:
            raise JourneyStateError("Journey already initialized")

    descriptor = await planner.select_next_city(None)
    today = today or local_today(settings)
    duration = settings.FIRST_LOCATION_DURATION_DAYS

    async with db.transaction() as session:
        if await crud.count_locations(session) > 0:
            raise JourneyStateError("Journey already initialized")
        location = await crud.create_location(
            session,
            is_current=True,
            is_visited=False,
            current_day=1,
            order_in_journey=1,
            planned_arrival=today,
            planned_departure=today + timedelta(days=duration),
            planned_duration=duration,
            **descriptor.location_fields(),
        )

    logger.info("journey_initialized", location=location.name, country=location.country)
    return location


def build_daily_cycle(
    settings: Settings,
    db: DatabaseManager,
    generator: Optional[TextGenerator] = None,
    publisher: Optional[Publisher] = None,
    rng: Optional[random.Random] = None,
) -> DailyCycle:
    """Wire a cycle against the real providers"""
    rng = rng or random.Random()
    generator = generator or OpenAITextGenerator(settings)
    images = build_image_service(settings, db, rng)
    return DailyCycle(
        db=db,
        settings=settings,
        planner=ItineraryPlanner(generator, settings, rng),
        places=PlaceSelector(db, generator, settings, rng, places=PlacesService(settings)),
        assembler=ContentAssembler(generator, images, settings),
        publisher=publisher or WordPressPublisher(settings),
        weather=WeatherService(settings),
        rng=rng,
    )
