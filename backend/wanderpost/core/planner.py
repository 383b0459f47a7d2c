"""
Itinerary planning: choose the next country and town for the journey.

Fallback tiers, each tried only when the previous one yields nothing usable:

1. generated candidates for the chosen country, minus visited towns
2. a larger generated batch, minus visited towns
3. the static backup table for the country, minus visited towns
4. backup towns of any other country
5. a synthetic "Outskirts" stop next to a backup town

Generation failures never escape this module; they only move planning down a tier.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from wanderpost.core.catalog import (
    BACKUP_CITIES,
    PRIORITY_COUNTRIES,
    SECONDARY_COUNTRIES,
    BackupCity,
    canonical_country,
    locale_for,
)
from wanderpost.core.parsing import parse_generated_list
from wanderpost.core.settings import Settings
from wanderpost.services.text_generation import TextGenerator

logger = logging.getLogger(__name__)

VisitedSet = Set[Tuple[str, str]]

OUTSKIRTS_JITTER_DEG = 0.025


@dataclass
class LocationDescriptor:
    name: str
    country: str
    latitude: float
    longitude: float
    region: str = ""
    timezone: Optional[str] = None
    currency: Optional[str] = None
    language: Optional[str] = None
    population: Optional[int] = None
    description: Optional[str] = None
    source: str = "generated"

    def __post_init__(self):
        locale = locale_for(self.country)
        self.timezone = self.timezone or locale.timezone
        self.currency = self.currency or locale.currency
        self.language = self.language or locale.language

    def location_fields(self) -> Dict[str, Any]:
        """Column values for a new Location row"""
        return {
            "name": self.name,
            "country": self.country,
            "region": self.region,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timezone": self.timezone,
            "currency": self.currency,
            "language": self.language,
            "population": self.population,
            "description": self.description,
        }


def is_visited(name: str, country: str, visited: VisitedSet) -> bool:
    return (name.strip().lower(), country.strip().lower()) in visited


def _coordinates(candidate: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    coords = candidate.get("coordinates") or {}
    if not isinstance(coords, dict):
        return None
    lat = coords.get("latitude", coords.get("lat"))
    lng = coords.get("longitude", coords.get("lng", coords.get("lon")))
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return lat, lng


def _population(value: Any) -> Optional[int]:
    try:
        return int(str(value).replace(",", "").replace(" ", ""))
    except (TypeError, ValueError):
        return None


class ItineraryPlanner:
    def __init__(self, generator: TextGenerator, settings: Settings, rng: Optional[random.Random] = None):
        self.generator = generator
        self.settings = settings
        self.rng = rng or random.Random()

    async def determine_next_country(self, current_country: Optional[str]) -> str:
        if not current_country:
            return self.settings.START_COUNTRY

        prompt = f"""
{self.settings.PERSONA_NAME} is currently in {current_country}. Given the geographical location and transportation options,
which neighboring or nearby country would be the logical next destination for the journey through Eastern and Southern Europe?

Priority countries: {', '.join(PRIORITY_COUNTRIES)}
Secondary countries: {', '.join(SECONDARY_COUNTRIES)}

The answer should contain only the country name in English.
"""
        try:
            response = await self.generator.generate(prompt, temperature=0.7, max_tokens=100)
            country = canonical_country(response.splitlines()[0] if response else "")
            if country:
                return country
            logger.warning("Country suggestion was empty, choosing at random")
        except Exception as e:
            logger.error(f"Error determining next country: {e}")

        options = [c for c in PRIORITY_COUNTRIES if c != current_country]
        return self.rng.choice(options)

    async def generate_candidates(self, country: str, count: int) -> List[Dict[str, Any]]:
        prompt = f"""
Provide a list of {count} small hidden-gem towns in {country} that meet these criteria:
- NOT the capital city
- Population preferably under 100,000
- Has a historic old town with pre-1930s architecture
- Not a major tourist destination

Format each town as a JSON object with these properties:
- name: Town name in English
- description: 2-3 sentence description
- population: Approximate number
- coordinates: {{"latitude": number, "longitude": number}}
- advantages: List of 2-3 benefits for travelers

Provide your full answer as a valid JSON array of these objects.
"""
        try:
            response = await self.generator.generate(prompt, temperature=0.7, max_tokens=2000)
        except Exception as e:
            logger.error(f"Error generating potential cities: {e}")
            return []

        candidates = parse_generated_list(response)
        logger.info(f"Generated {len(candidates)} potential cities in {country}")
        return candidates

    def filter_unvisited(
        self, candidates: List[Dict[str, Any]], country: str, visited: VisitedSet
    ) -> List[Dict[str, Any]]:
        """Drop visited towns and candidates without a usable name or coordinates"""
        fresh = []
        for candidate in candidates:
            name = str(candidate.get("name") or "").strip()
            if not name or _coordinates(candidate) is None:
                continue
            candidate_country = str(candidate.get("country") or country)
            if is_visited(name, candidate_country, visited):
                continue
            fresh.append(candidate)
        return fresh

    async def select_next_city(
        self, current_country: Optional[str], visited: Optional[VisitedSet] = None
    ) -> LocationDescriptor:
        visited = visited or set()
        country = await self.determine_next_country(current_country)
        logger.info(f"Selected next country: {country}")

        count = self.settings.CITY_CANDIDATE_COUNT
        candidates = await self.generate_candidates(country, count)
        fresh = self.filter_unvisited(candidates, country, visited)
        logger.info(f"Filtered from {len(candidates)} to {len(fresh)} unvisited cities")

        if not fresh:
            larger = math.ceil(count * self.settings.CITY_RETRY_MULTIPLIER)
            logger.info(f"No usable candidates, regenerating {larger} cities in {country}")
            fresh = self.filter_unvisited(await self.generate_candidates(country, larger), country, visited)

        if not fresh:
            logger.info("Using backup city table")
            return self.backup_city(country, visited)

        chosen = self.rng.choice(fresh)
        lat, lng = _coordinates(chosen)
        descriptor = LocationDescriptor(
            name=str(chosen["name"]).strip(),
            country=country,
            region=str(chosen.get("region") or ""),
            latitude=lat,
            longitude=lng,
            population=_population(chosen.get("population")),
            description=chosen.get("description") or None,
        )
        logger.info(f"Selected city: {descriptor.name}, {descriptor.country}")
        return descriptor

    def backup_city(self, country: str, visited: VisitedSet) -> LocationDescriptor:
        if country not in BACKUP_CITIES:
            logger.warning(f"No backup towns for {country}, using {self.settings.START_COUNTRY}")
            country = self.settings.START_COUNTRY

        available = self._unvisited_backups(country, visited)
        if available:
            return self._from_backup(self.rng.choice(available), country)

        for other_country in BACKUP_CITIES:
            if other_country == country:
                continue
            available = self._unvisited_backups(other_country, visited)
            if available:
                logger.info(f"No unvisited backup towns in {country}, using {other_country}")
                return self._from_backup(self.rng.choice(available), other_country)

        return self._outskirts(country, visited)

    def _unvisited_backups(self, country: str, visited: VisitedSet) -> List[BackupCity]:
        return [city for city in BACKUP_CITIES.get(country, []) if not is_visited(city.name, country, visited)]

    def _from_backup(self, city: BackupCity, country: str) -> LocationDescriptor:
        logger.info(f"Selected backup city: {city.name}, {country}")
        return LocationDescriptor(
            name=city.name,
            country=country,
            latitude=city.lat,
            longitude=city.lng,
            source="backup",
        )

    def _outskirts(self, country: str, visited: VisitedSet) -> LocationDescriptor:
        """Every backup town is used up: invent a stop just outside one of them"""
        base = BACKUP_CITIES[country][0]
        suffix = 1
        name = f"{base.name} Outskirts"
        while is_visited(name, country, visited):
            suffix += 1
            name = f"{base.name} Outskirts {suffix}"

        logger.warning(f"All backup cities visited, using synthetic stop {name}")
        return LocationDescriptor(
            name=name,
            country=country,
            latitude=base.lat + self.rng.uniform(-OUTSKIRTS_JITTER_DEG, OUTSKIRTS_JITTER_DEG),
            longitude=base.lng + self.rng.uniform(-OUTSKIRTS_JITTER_DEG, OUTSKIRTS_JITTER_DEG),
            source="synthetic",
        )
