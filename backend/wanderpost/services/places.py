"""
Place lookups against the Google Places API.

Two uses: an official website (or a Maps link) for a restaurant or attraction,
and a real lodging to name as the traveler's accommodation at a new stop.
``find_place`` and ``find_accommodation`` raise ``ProviderError``; ``website``
and ``accommodation`` never do and return None instead.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

import googlemaps

from wanderpost.core.errors import ProviderError
from wanderpost.core.settings import Settings

logger = logging.getLogger(__name__)

FIND_FIELDS = ["place_id", "name", "business_status"]
POI_FIELDS = ["name", "website", "formatted_address", "business_status", "url"]
LODGING_FIELDS = ["name", "rating", "formatted_address", "website", "url", "geometry"]
LODGING_CANDIDATES = 3


def maps_link(place_id: str) -> str:
    return f"https://www.google.com/maps/place/?q=place_id:{place_id}"


@dataclass(frozen=True)
class PlaceDetails:
    place_id: str
    name: str
    website: Optional[str] = None
    maps_url: Optional[str] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    permanently_closed: bool = False

    @property
    def link(self) -> Optional[str]:
        return self.website or self.maps_url


class PlacesService:
    def __init__(self, settings: Settings, client: Optional[googlemaps.Client] = None):
        self.api_key = settings.GOOGLE_PLACES_API_KEY
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _gmaps(self) -> googlemaps.Client:
        if self._client is None:
            if not self.api_key:
                raise ProviderError("google_places", "API key not configured")
            try:
                self._client = googlemaps.Client(key=self.api_key, timeout=self.timeout, retry_timeout=self.timeout)
            except ValueError as e:
                raise ProviderError("google_places", str(e)) from e
        return self._client

    async def _call(self, method: str, **params) -> dict:
        # googlemaps is blocking; ZERO_RESULTS comes back as a normal body
        client = self._gmaps()
        try:
            return await asyncio.to_thread(getattr(client, method), **params)
        except Exception as e:
            raise ProviderError("google_places", str(e) or type(e).__name__) from e

    async def details(self, place_id: str, fields: List[str]) -> Optional[PlaceDetails]:
        data = await self._call("place", place_id=place_id, fields=fields)
        result = data.get("result")
        if not result:
            return None
        coords = (result.get("geometry") or {}).get("location") or {}
        return PlaceDetails(
            place_id=place_id,
            name=result.get("name") or "",
            website=result.get("website") or None,
            maps_url=result.get("url") or maps_link(place_id),
            address=result.get("formatted_address"),
            rating=result.get("rating"),
            latitude=coords.get("lat"),
            longitude=coords.get("lng"),
            permanently_closed=result.get("business_status") == "CLOSED_PERMANENTLY",
        )

    async def find_place(self, name: str, locality: str) -> Optional[PlaceDetails]:
        """First text match for ``name`` in ``locality``, with its details; None when nothing matches"""
        data = await self._call(
            "find_place",
            input=f"{name} {locality}",
            input_type="textquery",
            fields=FIND_FIELDS,
        )
        candidates = data.get("candidates") or []
        if not candidates or not candidates[0].get("place_id"):
            return None

        candidate = candidates[0]
        place_id = candidate["place_id"]
        if candidate.get("business_status") == "CLOSED_PERMANENTLY":
            # the Maps page is the only useful link left
            return PlaceDetails(
                place_id=place_id,
                name=candidate.get("name") or name,
                maps_url=maps_link(place_id),
                permanently_closed=True,
            )
        return await self.details(place_id, POI_FIELDS)

    async def find_accommodation(self, city: str, country: str) -> Optional[PlaceDetails]:
        """Best-rated of the first few lodging matches in the city; None when nothing matches"""
        data = await self._call("places", query=f"accommodation in {city} {country}", type="lodging")
        found: List[PlaceDetails] = []
        for place in (data.get("results") or [])[:LODGING_CANDIDATES]:
            if not place.get("place_id"):
                continue
            details = await self.details(place["place_id"], LODGING_FIELDS)
            if details is not None and details.name:
                found.append(details)

        if not found:
            return None
        return max(found, key=lambda place: place.rating or 0)

    async def website(self, name: str, locality: str) -> Optional[str]:
        if not self.configured:
            return None
        try:
            place = await self.find_place(name, locality)
        except ProviderError as e:
            logger.warning(f"Website lookup failed for {name}: {e}")
            return None
        return place.link if place else None

    async def accommodation(self, city: str, country: str) -> Optional[PlaceDetails]:
        if not self.configured:
            return None
        try:
            return await self.find_accommodation(city, country)
        except ProviderError as e:
            logger.warning(f"Accommodation lookup failed for {city}, {country}: {e}")
            return None
