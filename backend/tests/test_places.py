import json
import random
from datetime import date

import pytest

from fakes import ScriptedGenerator
from wanderpost.core.errors import JourneyStateError
from wanderpost.core.places import PlaceSelection, PlaceSelector, estimate_nightly_price, is_open_on
from wanderpost.db import crud
from wanderpost.db.models import PoiType, PointOfInterest
from wanderpost.services.places import PlaceDetails

# 2024-05-06 is a Monday, so "yesterday" is a Sunday
MONDAY = date(2024, 5, 6)
WEDNESDAY = date(2024, 5, 8)


def attractions(*names):
    return json.dumps([
        {
            "name": name,
            "type": "museum",
            "description": f"{name} description",
            "weekdayHours": "9:00-17:00",
            "weekendHours": "10:00-16:00",
            "interestingFacts": ["Old", "Big"],
        }
        for name in names
    ])


class TestOpeningHours:
    """Weekday/weekend schedule lookup."""

    def test_weekend_and_weekday_lookup(self):
        poi = PointOfInterest(
            location_id=1,
            type=PoiType.RESTAURANT,
            name="Fish Tavern",
            opening_hours={"weekday": "12:00-22:00", "weekend": "Closed"},
        )
        assert is_open_on(poi, date(2024, 5, 5)) is False  # Sunday
        assert is_open_on(poi, date(2024, 5, 4)) is False  # Saturday
        assert is_open_on(poi, date(2024, 5, 6)) is True   # Monday

    def test_missing_or_malformed_hours_count_as_open(self):
        sunday = date(2024, 5, 5)
        assert is_open_on(PointOfInterest(location_id=1, type=PoiType.ATTRACTION, name="a"), sunday)
        assert is_open_on(
            PointOfInterest(location_id=1, type=PoiType.ATTRACTION, name="b", opening_hours={"weekday": "9-5"}),
            sunday,
        )
        assert is_open_on(
            PointOfInterest(location_id=1, type=PoiType.ATTRACTION, name="c", opening_hours={"weekend": 42}),
            sunday,
        )


class TestPlaceSelection:
    """Availability, lazy generation and the consumption ledger."""

    @pytest.mark.asyncio
    async def test_missing_location_is_fatal(self, db, settings):
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1))

        with pytest.raises(JourneyStateError):
            await selector.select_place(999, PoiType.ATTRACTION, MONDAY)

    @pytest.mark.asyncio
    async def test_generates_pois_when_none_exist(self, db, settings, make_location):
        location = await make_location()
        generator = ScriptedGenerator([attractions("Petrovaradin Fortress", "Danube Park", "Name Of Mary Church")])
        selector = PlaceSelector(db, generator, settings, random.Random(1))

        chosen = await selector.select_place(location.id, PoiType.ATTRACTION, WEDNESDAY)

        assert chosen.name in ("Petrovaradin Fortress", "Danube Park", "Name Of Mary Church")
        assert "5 tourist attractions in Novi Sad, Serbia" in generator.prompts[0]
        async with db.get_session() as session:
            stored = await crud.get_available_pois(session, location.id, PoiType.ATTRACTION)
        assert len(stored) == 3
        assert stored[0].highlights == ["Old", "Big"]
        assert stored[0].category == "museum"

    @pytest.mark.asyncio
    async def test_generation_failure_creates_default_restaurant(self, db, settings, make_location):
        location = await make_location()
        selector = PlaceSelector(db, ScriptedGenerator(["no json here"]), settings, random.Random(1))

        chosen = await selector.select_place(location.id, PoiType.RESTAURANT, WEDNESDAY)

        assert chosen.name == "Local Restaurant in Novi Sad"
        assert chosen.opening_hours == {"weekday": "00:00-23:59", "weekend": "00:00-23:59"}

    @pytest.mark.asyncio
    async def test_generation_failure_creates_default_attraction(self, db, settings, make_location):
        location = await make_location()
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1))

        chosen = await selector.select_place(location.id, PoiType.ATTRACTION, WEDNESDAY)

        assert chosen.name == "Historic Center of Novi Sad"

    @pytest.mark.asyncio
    async def test_closed_yesterday_is_filtered_out(self, db, settings, make_location, make_poi):
        location = await make_location()
        await make_poi(location.id, PoiType.RESTAURANT, "Weekday Bistro",
                       opening_hours={"weekday": "12:00-22:00", "weekend": "Closed"})
        await make_poi(location.id, PoiType.RESTAURANT, "Always Open Grill",
                       opening_hours={"weekday": "12:00-22:00", "weekend": "12:00-23:00"})
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1))

        candidates = await selector.candidates(location.id, PoiType.RESTAURANT, MONDAY)

        assert [poi.name for poi in candidates] == ["Always Open Grill"]

    @pytest.mark.asyncio
    async def test_all_closed_falls_back_to_unfiltered(self, db, settings, make_location, make_poi):
        location = await make_location()
        await make_poi(location.id, PoiType.RESTAURANT, "Weekday Bistro",
                       opening_hours={"weekday": "12:00-22:00", "weekend": "closed"})
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1))

        chosen = await selector.select_place(location.id, PoiType.RESTAURANT, MONDAY)

        assert chosen.name == "Weekday Bistro"

    @pytest.mark.asyncio
    async def test_available_set_is_stable_without_publication(self, db, settings, make_location, make_poi):
        location = await make_location()
        for name in ("A", "B", "C"):
            await make_poi(location.id, PoiType.ATTRACTION, name)
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1))

        first = await selector.candidates(location.id, PoiType.ATTRACTION, WEDNESDAY)
        await selector.select_place(location.id, PoiType.ATTRACTION, WEDNESDAY)
        second = await selector.candidates(location.id, PoiType.ATTRACTION, WEDNESDAY)

        assert [p.id for p in first] == [p.id for p in second]

    @pytest.mark.asyncio
    async def test_consumed_poi_is_not_selected_until_type_exhausted(self, db, settings, make_location, make_poi):
        location = await make_location()
        first = await make_poi(location.id, PoiType.ATTRACTION, "Fortress")
        second = await make_poi(location.id, PoiType.ATTRACTION, "Museum")
        generator = ScriptedGenerator([attractions("Fortress", "Clock Tower")])
        selector = PlaceSelector(db, generator, settings, random.Random(1))

        async with db.transaction() as session:
            await crud.mark_pois_consumed(session, [first.id], WEDNESDAY)

        for _ in range(5):
            chosen = await selector.select_place(location.id, PoiType.ATTRACTION, WEDNESDAY)
            assert chosen.id == second.id
        assert generator.prompts == []

        async with db.transaction() as session:
            await crud.mark_pois_consumed(session, [second.id], WEDNESDAY)

        chosen = await selector.select_place(location.id, PoiType.ATTRACTION, WEDNESDAY)

        # regenerated, and the duplicate "Fortress" name was skipped
        assert chosen.name == "Clock Tower"
        assert chosen.id not in (first.id, second.id)
        assert len(generator.prompts) == 1

    @pytest.mark.asyncio
    async def test_marking_consumed_twice_is_idempotent(self, db, make_location, make_poi):
        location = await make_location()
        poi = await make_poi(location.id)

        async with db.transaction() as session:
            await crud.mark_pois_consumed(session, [poi.id], WEDNESDAY)
        async with db.transaction() as session:
            await crud.mark_pois_consumed(session, [poi.id], WEDNESDAY)

        async with db.get_session() as session:
            assert await crud.count_available_pois(session, location.id, PoiType.ATTRACTION) == 0

    @pytest.mark.asyncio
    async def test_select_places_returns_both_types(self, db, settings, make_location, make_poi):
        location = await make_location()
        await make_poi(location.id, PoiType.ATTRACTION, "Fortress")
        await make_poi(location.id, PoiType.RESTAURANT, "Fish Tavern")
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1))

        selection = await selector.select_places(location.id, WEDNESDAY)

        assert selection.attraction.name == "Fortress"
        assert selection.restaurant.name == "Fish Tavern"


class StubPlaces:
    """Places provider answering from fixed tables and recording every lookup"""

    def __init__(self, websites=None, lodging=None):
        self.websites = websites or {}
        self.lodging = lodging
        self.lookups = []

    async def website(self, name, locality):
        self.lookups.append(("website", name, locality))
        return self.websites.get(name)

    async def accommodation(self, city, country):
        self.lookups.append(("accommodation", city, country))
        return self.lodging


class TestWebsiteEnrichment:
    """Links for the day's chosen POIs."""

    @pytest.mark.asyncio
    async def test_missing_websites_are_filled_and_stored(self, db, settings, make_location, make_poi):
        location = await make_location()
        fortress = await make_poi(location.id, PoiType.ATTRACTION, "Fortress")
        tavern = await make_poi(location.id, PoiType.RESTAURANT, "Fish Tavern", website="https://tavern.example")
        places = StubPlaces(websites={"Fortress": "https://fortress.example"})
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1), places=places)

        await selector.enrich_websites(location, PlaceSelection(restaurant=tavern, attraction=fortress))

        assert fortress.website == "https://fortress.example"
        assert places.lookups == [("website", "Fortress", "Novi Sad, Serbia")]
        async with db.get_session() as session:
            stored = await session.get(PointOfInterest, fortress.id)
        assert stored.website == "https://fortress.example"

    @pytest.mark.asyncio
    async def test_no_match_leaves_website_empty(self, db, settings, make_location, make_poi):
        location = await make_location()
        fortress = await make_poi(location.id, PoiType.ATTRACTION, "Fortress")
        tavern = await make_poi(location.id, PoiType.RESTAURANT, "Fish Tavern")
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1), places=StubPlaces())

        await selector.enrich_websites(location, PlaceSelection(restaurant=tavern, attraction=fortress))

        assert fortress.website is None
        assert tavern.website is None


class TestAccommodation:
    """Where the traveler stays at a stop."""

    def test_price_follows_rating(self):
        assert estimate_nightly_price(None, 70) == 70
        assert estimate_nightly_price(5.0, 70) == 70
        assert estimate_nightly_price(2.5, 70) == 56

    @pytest.mark.asyncio
    async def test_default_when_provider_has_nothing(self, db, settings, make_location):
        location = await make_location(name="Novi Sad")
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1), places=StubPlaces())

        accommodation = await selector.accommodation_for(location)

        assert accommodation.name == "Novi Sad City Center Apartment"
        assert accommodation.address == "City Center, Novi Sad"
        assert accommodation.price_per_night == 70
        assert accommodation.currency == "RSD"
        assert accommodation.booking_url == "https://www.booking.com/city/serbia/novi-sad.html"
        assert accommodation.source == "default"
        assert accommodation.check_in_date == date(2024, 5, 1)
        assert accommodation.check_out_date == date(2024, 5, 15)

    @pytest.mark.asyncio
    async def test_without_provider_uses_default(self, db, settings, make_location):
        location = await make_location()
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1))

        accommodation = await selector.accommodation_for(location)

        assert accommodation.source == "default"

    @pytest.mark.asyncio
    async def test_found_lodging_is_stored_once(self, db, settings, make_location):
        location = await make_location()
        lodging = PlaceDetails(
            place_id="abc",
            name="Hotel Danube",
            website="https://danube.example",
            address="Dunavska 1, Novi Sad",
            rating=4.5,
        )
        places = StubPlaces(lodging=lodging)
        selector = PlaceSelector(db, ScriptedGenerator(), settings, random.Random(1), places=places)

        first = await selector.accommodation_for(location)
        second = await selector.accommodation_for(location)

        assert first.name == "Hotel Danube"
        assert first.booking_url == "https://danube.example"
        assert first.price_per_night == 67
        assert first.rating == 4.5
        assert first.source == "google_places"
        assert second.id == first.id
        assert places.lookups == [("accommodation", "Novi Sad", "Serbia")]
