"""
Daily place selection: one available restaurant and one available attraction for
the current stop, generating fresh POIs when a type runs out. Also resolves POI
websites and the stop's accommodation through the places provider.
"""

import logging
import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from wanderpost.core.errors import JourneyStateError
from wanderpost.core.parsing import parse_generated_list
from wanderpost.core.settings import Settings
from wanderpost.db import crud
from wanderpost.db.models import Accommodation, Location, PointOfInterest, PoiType
from wanderpost.db.session import DatabaseManager
from wanderpost.services.places import PlaceDetails, PlacesService
from wanderpost.services.text_generation import TextGenerator

logger = logging.getLogger(__name__)

ALWAYS_OPEN = {"weekday": "00:00-23:59", "weekend": "00:00-23:59"}

DEFAULT_HOURS = {
    PoiType.ATTRACTION: {"weekday": "9:00-17:00", "weekend": "10:00-16:00"},
    PoiType.RESTAURANT: {"weekday": "12:00-22:00", "weekend": "12:00-23:00"},
}

PROMPTS = {
    PoiType.ATTRACTION: """
Create a JSON array of {count} tourist attractions in {city}, {country}.
Include a mix of historical sites, museums, churches, parks, and scenic viewpoints.

Each attraction should be a JSON object with these properties:
- name: Attraction name in English (and local language if different)
- type: Type of attraction (museum, church, park, etc)
- description: 2-3 sentence description
- weekdayHours: Typical opening hours Mon-Fri (e.g. "9:00-17:00")
- weekendHours: Typical opening hours Sat-Sun
- interestingFacts: Array of 2-3 interesting facts
- website: Official website URL if known

Provide your full answer as a valid JSON array of these objects. Do not include any other text.
""",
    PoiType.RESTAURANT: """
Create a JSON array of {count} authentic local restaurants in {city}, {country}.
Focus on places that serve local cuisine and provide a good dining experience for travelers.

Each restaurant should be a JSON object with these properties:
- name: Restaurant name in English (and local language if different)
- cuisine: Type of cuisine
- description: 2-3 sentence description
- specialties: Array of 2-3 signature dishes
- weekdayHours: Typical opening hours Mon-Fri (e.g. "12:00-22:00")
- weekendHours: Typical opening hours Sat-Sun
- website: Official website URL if known

Provide your full answer as a valid JSON array of these objects. Do not include any other text.
""",
}


@dataclass
class PlaceSelection:
    restaurant: PointOfInterest
    attraction: PointOfInterest


def is_open_on(poi: PointOfInterest, day: date) -> bool:
    """Weekday/weekend schedule lookup; missing or malformed hours count as open"""
    hours = poi.opening_hours
    if not isinstance(hours, dict):
        return True
    text = hours.get("weekend" if day.weekday() >= 5 else "weekday")
    if not isinstance(text, str) or not text.strip():
        return True
    return "closed" not in text.lower()


def _string_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value if v]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def default_poi_fields(location: Location, poi_type: PoiType) -> Dict[str, Any]:
    if poi_type is PoiType.ATTRACTION:
        return {
            "name": f"Historic Center of {location.name}",
            "description": f"The historic center of {location.name} with its charming streets and buildings.",
            "category": "old town",
            "highlights": ["Architectural beauty", "Local atmosphere"],
            "opening_hours": dict(ALWAYS_OPEN),
        }
    return {
        "name": f"Local Restaurant in {location.name}",
        "description": f"A cozy restaurant serving authentic local cuisine in {location.name}.",
        "category": "local cuisine",
        "highlights": ["Traditional dishes", "Local ingredients"],
        "opening_hours": dict(ALWAYS_OPEN),
    }


DEFAULT_AMENITIES = "WiFi, Kitchen, Air conditioning, TV, Washing machine"


def _slug(text: str) -> str:
    return "-".join(text.lower().split())


def estimate_nightly_price(rating: Optional[float], base_price: int) -> int:
    """Scale the base price from 60% at zero stars to 100% at five; unrated places pay the base price"""
    if not rating:
        return base_price
    return round(base_price * (0.6 + rating / 5 * 0.4))


def default_accommodation_fields(location: Location, base_price: int) -> Dict[str, Any]:
    return {
        "name": f"{location.name} City Center Apartment",
        "address": f"City Center, {location.name}",
        "price_per_night": base_price,
        "currency": location.currency,
        "description": f"A cozy apartment in the heart of {location.name}",
        "amenities": DEFAULT_AMENITIES,
        "booking_url": f"https://www.booking.com/city/{_slug(location.country)}/{_slug(location.name)}.html",
        "source": "default",
    }


def lodging_fields(location: Location, lodging: PlaceDetails, base_price: int) -> Dict[str, Any]:
    return {
        "name": lodging.name,
        "address": lodging.address or f"{location.name}, {location.country}",
        "price_per_night": estimate_nightly_price(lodging.rating, base_price),
        "currency": location.currency,
        "description": f"A well-located, comfortable accommodation in {location.name}, {location.country}.",
        "amenities": DEFAULT_AMENITIES,
        "booking_url": lodging.link,
        "rating": lodging.rating,
        "source": "google_places",
    }


class PlaceSelector:
    def __init__(
        self,
        db: DatabaseManager,
        generator: TextGenerator,
        settings: Settings,
        rng: Optional[random.Random] = None,
        places: Optional[PlacesService] = None,
    ):
        self.db = db
        self.generator = generator
        self.settings = settings
        self.rng = rng or random.Random()
        self.places = places

    async def select_places(self, location_id: int, target_date: date) -> PlaceSelection:
        restaurant = await self.select_place(location_id, PoiType.RESTAURANT, target_date)
        attraction = await self.select_place(location_id, PoiType.ATTRACTION, target_date)
        return PlaceSelection(restaurant=restaurant, attraction=attraction)

    async def select_place(self, location_id: int, poi_type: PoiType, target_date: date) -> PointOfInterest:
        candidates = await self.candidates(location_id, poi_type, target_date)
        chosen = self.rng.choice(candidates)
        logger.info(f"Selected {poi_type.value}: {chosen.name}")
        return chosen

    async def candidates(self, location_id: int, poi_type: PoiType, target_date: date) -> List[PointOfInterest]:
        """Available POIs open the day before ``target_date``; never empty"""
        async with self.db.get_session() as session:
            location = await crud.get_location(session, location_id)
            if location is None:
                raise JourneyStateError(f"Location with ID {location_id} not found")
            available = await crud.get_available_pois(session, location_id, poi_type)

        if not available:
            logger.info(f"Generating new {poi_type.value}s for {location.name}...")
            await self.replenish(location, poi_type)
            async with self.db.get_session() as session:
                available = await crud.get_available_pois(session, location_id, poi_type)

        if not available:
            raise JourneyStateError(f"No {poi_type.value} available for {location.name} after replenishing")

        yesterday = target_date - timedelta(days=1)
        open_places = [poi for poi in available if is_open_on(poi, yesterday)]
        return open_places or available

    async def generate_pois(self, location: Location, poi_type: PoiType) -> List[Dict[str, Any]]:
        prompt = PROMPTS[poi_type].format(
            count=self.settings.POI_BATCH_SIZE,
            city=location.name,
            country=location.country,
        )
        try:
            response = await self.generator.generate(prompt, temperature=0.7, max_tokens=2000)
        except Exception as e:
            logger.error(f"Error generating {poi_type.value}s: {e}")
            return []

        items = parse_generated_list(response)
        logger.info(f"Generated {len(items)} {poi_type.value}s for {location.name}")
        return items

    async def replenish(self, location: Location, poi_type: PoiType) -> int:
        """Persist a generated batch, or one default POI when nothing new came back"""
        generated = await self.generate_pois(location, poi_type)
        defaults = DEFAULT_HOURS[poi_type]

        async with self.db.transaction() as session:
            known = await crud.get_poi_names(session, location.id, poi_type)
            created = 0
            for item in generated:
                name = str(item.get("name") or "").strip()
                if not name or name.lower() in known:
                    continue
                known.add(name.lower())
                await crud.create_poi(
                    session,
                    location_id=location.id,
                    type=poi_type,
                    name=name,
                    description=item.get("description") or f"A local {poi_type.value}",
                    category=item.get("type") if poi_type is PoiType.ATTRACTION else item.get("cuisine"),
                    highlights=_string_list(
                        item.get("interestingFacts") if poi_type is PoiType.ATTRACTION else item.get("specialties")
                    ),
                    opening_hours={
                        "weekday": item.get("weekdayHours") or defaults["weekday"],
                        "weekend": item.get("weekendHours") or defaults["weekend"],
                    },
                    website=item.get("website") or None,
                )
                created += 1

            if created == 0:
                logger.info(f"Creating default {poi_type.value} for {location.name}")
                await crud.create_poi(
                    session,
                    location_id=location.id,
                    type=poi_type,
                    **default_poi_fields(location, poi_type),
                )
                created = 1

        return created

    async def enrich_websites(self, location: Location, selection: PlaceSelection) -> None:
        """Look up a link for each chosen POI that has none and store it"""
        if self.places is None:
            return
        locality = f"{location.name}, {location.country}"
        for poi in (selection.restaurant, selection.attraction):
            if poi.website:
                continue
            url = await self.places.website(poi.name, locality)
            if url is None:
                continue
            async with self.db.transaction() as session:
                await crud.set_poi_website(session, poi.id, url)
            poi.website = url
            logger.info(f"Found website for {poi.name}: {url}")

    async def accommodation_for(self, location: Location) -> Accommodation:
        """
        The accommodation for a stop. Looked up once, on arrival, then read back
        from the database; falls back to a generic city-center apartment when the
        places provider has nothing.
        """
        async with self.db.get_session() as session:
            existing = await crud.get_accommodation(session, location.id)
        if existing is not None:
            return existing

        base_price = self.settings.DEFAULT_NIGHTLY_PRICE
        lodging = await self.places.accommodation(location.name, location.country) if self.places else None
        if lodging is not None:
            fields = lodging_fields(location, lodging, base_price)
        else:
            logger.info(f"No accommodation found for {location.name}, using default")
            fields = default_accommodation_fields(location, base_price)

        check_in = location.planned_arrival
        check_out = location.planned_departure
        if check_out is None and check_in is not None:
            check_out = check_in + timedelta(days=location.planned_duration)

        async with self.db.transaction() as session:
            return await crud.create_accommodation(
                session,
                location_id=location.id,
                check_in_date=check_in,
                check_out_date=check_out,
                **fields,
            )
