"""
Content assembly for the two post templates.

``travel`` describes a move between two stops; ``daily`` covers one day at the
current stop (weather, the chosen restaurant and attraction, tomorrow's plan and
journey statistics). Prose comes from the text generator; when a generation
call fails the section falls back to a short fixed sentence so a post can
still go out.
"""

import html
import logging
import random
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from wanderpost.core.errors import ProviderError
from wanderpost.core.geo import TransportMode
from wanderpost.core.journey import DayBounds
from wanderpost.core.settings import Settings
from wanderpost.db import crud
from wanderpost.db.models import Accommodation, Location, PoiType, PostType, TransportationLeg
from wanderpost.services.images import ImageAsset, ImageService
from wanderpost.services.text_generation import TextGenerator
from wanderpost.services.weather import Weather

logger = logging.getLogger(__name__)


@dataclass
class ContentDocument:
    post_type: PostType
    title: str
    body: str
    excerpt: str
    tags: List[str] = field(default_factory=list)
    featured_image: Optional[ImageAsset] = None
    images: List[ImageAsset] = field(default_factory=list)
    day_number: Optional[int] = None
    weather: Optional[Weather] = None

    def image_credits(self) -> dict:
        credits = {}
        if self.featured_image is not None:
            credits["featured"] = self.featured_image.credit_info()
        for index, image in enumerate(self.images, start=1):
            credits[f"image_{index}"] = image.credit_info()
        return credits


@dataclass(frozen=True)
class TomorrowPlan:
    kind: str  # travel, poi or explore
    name: str


@dataclass(frozen=True)
class JourneyStats:
    total_days: int
    total_distance_km: int


def transport_image_query(mode: TransportMode, from_country: str, to_country: str) -> str:
    mode = TransportMode(mode)
    if mode is TransportMode.AIRPLANE:
        return "airplane window view sky clouds journey"
    if mode is TransportMode.TRAIN:
        return f"train journey {from_country} {to_country} travel scenery"
    return f"bus journey road travel {to_country} landscape"


def location_image_query(location: Location) -> str:
    return f"{location.name} {location.country} old town street"


def food_image_query(category: Optional[str], location: Location) -> str:
    return f"{category or 'traditional'} food {location.country} cuisine"


def attraction_image_query(name: str, location: Location) -> str:
    return f"{name} {location.name} {location.country}"


async def plan_tomorrow(
    session: AsyncSession,
    location: Location,
    today_attraction_id: Optional[int],
    rng: random.Random,
    bounds: DayBounds,
) -> TomorrowPlan:
    """Teaser for tomorrow, announcing travel when tomorrow's decision will be a move"""
    attractions = [
        poi
        for poi in await crud.get_available_pois(session, location.id, PoiType.ATTRACTION)
        if poi.id != today_attraction_id
    ]
    tomorrow = location.current_day + 1
    if (
        tomorrow >= min(location.planned_duration, bounds.max_days)
        or (not attractions and tomorrow >= bounds.min_days)
    ):
        return TomorrowPlan(kind="travel", name="a new destination")

    if attractions:
        return TomorrowPlan(kind="poi", name=rng.choice(attractions).name)
    return TomorrowPlan(kind="explore", name="around the city")


async def journey_stats(session: AsyncSession, today: date) -> JourneyStats:
    start = await crud.journey_start_date(session)
    total_days = (today - start).days + 1 if start else 1
    return JourneyStats(
        total_days=max(1, total_days),
        total_distance_km=await crud.total_distance_km(session),
    )


def _paragraphs(text: str) -> str:
    blocks = [block.strip() for block in text.split("\n\n") if block.strip()]
    return "\n".join(f"<p>{html.escape(block)}</p>" for block in blocks)


def _heading(text: str) -> str:
    return f"<h2>{html.escape(text)}</h2>"


def _link_line(label: str, name: str, url: Optional[str]) -> str:
    if not url:
        return ""
    return f'<p>{html.escape(label)}: <a href="{html.escape(url)}">{html.escape(name)}</a></p>'


def _tag_line(tags: List[str]) -> str:
    return "<hr/>\n<p>" + ", ".join(html.escape(tag) for tag in tags) + "</p>"


class ContentAssembler:
    def __init__(self, generator: TextGenerator, images: ImageService, settings: Settings):
        self.generator = generator
        self.images = images
        self.persona = settings.PERSONA_NAME

    async def _section(self, prompt: str, fallback: str, max_tokens: int = 600) -> str:
        try:
            return await self.generator.generate(prompt, temperature=0.7, max_tokens=max_tokens)
        except ProviderError as e:
            logger.warning(f"Section generation failed, using fallback text: {e}")
            return fallback

    async def travel(
        self,
        previous: Location,
        destination: Location,
        leg: TransportationLeg,
    ) -> ContentDocument:
        hours, minutes = divmod(leg.duration_minutes, 60)
        prompt = f"""
Write a travel blog post about my journey from {previous.name}, {previous.country} to {destination.name}, {destination.country}.
My journey was by {leg.type} and took {hours} hours and {minutes} minutes.
The distance was approximately {leg.distance_km} kilometers.
I departed at {leg.departure_time:%H:%M} and arrived at {leg.arrival_time:%H:%M}.
The cost was {leg.price} {leg.currency}.

Write in first person as {self.persona}, a travel blogger exploring Eastern and Southern Europe.
Focus on the journey experience, things I saw along the way, and my anticipation of arriving in a new city.
End with my arrival and first impressions of {destination.name}.

Keep the total length between 400-500 words and use a warm, personal tone.
"""
        story = await self._section(
            prompt,
            f"From {previous.name} to {destination.name} by {leg.type}: {leg.distance_km} km of road behind me "
            f"and a new town ahead.",
            max_tokens=1000,
        )
        image = await self.images.get_image(
            transport_image_query(leg.type, previous.country, destination.country),
            "transport",
        )

        tags = [previous.country, destination.country, previous.name, destination.name, leg.type, "journey"]
        body = "\n".join([
            _paragraphs(story),
            _paragraphs(
                f"Tomorrow I'll settle in and get my first proper taste of {destination.name}. Stay tuned!"
            ),
            _tag_line(tags),
        ])
        return ContentDocument(
            post_type=PostType.TRAVEL,
            title=f"Journey: From {previous.name} to {destination.name}",
            body=body,
            excerpt=(
                f"Join {self.persona} on his {leg.type} journey from {previous.name} to {destination.name}, "
                f"traveling through the landscapes of {previous.country} and {destination.country}."
            ),
            tags=list(dict.fromkeys(tags)),
            featured_image=image,
            day_number=destination.current_day,
        )

    async def daily(
        self,
        location: Location,
        restaurant,
        attraction,
        weather: Weather,
        tomorrow: TomorrowPlan,
        stats: JourneyStats,
        accommodation: Optional[Accommodation] = None,
    ) -> ContentDocument:
        intro = await self._section(
            f"""
Write an introduction paragraph for {self.persona}'s travel blog from {location.name}, {location.country}.
Day {location.current_day} of his stay.
The weather is {weather.description} at {weather.temperature}°C.
Use a first-person perspective, include some sensory details, and one phrase in the local language.
Keep it under 150 words.
""",
            f"Day {location.current_day} in {location.name}: {weather.description}, {weather.temperature}°C.",
        )
        stay = None
        if accommodation is not None:
            stay = await self._section(
                f"""
Write a vivid description of {self.persona}'s new accommodation in {location.name}.
Name: {accommodation.name}
Address: {accommodation.address or 'in the city center'}
Price: {accommodation.price_per_night or 70} {accommodation.currency or 'EUR'} per night
Features: {accommodation.amenities or 'cozy, comfortable apartment with a good location'}
Write in first person, describe the first impression, the neighborhood, and why it is a good base for exploring the city.
Keep it under 200 words.
""",
                f"For the next days I'm staying at {accommodation.name}.",
            )
        food =await self._section(
            f"""
Write a section about my dining experience at {restaurant.name} in {location.name}.
Restaurant type: {restaurant.category or 'local restaurant'}
Known for: {', '.join(restaurant.highlights or []) or 'authentic local cuisine'}
Write in first person, describe the atmosphere, the food I tried, and any interactions with staff or locals.
Keep it under 200 words.
""",
            f"Lunch today was at {restaurant.name}.",
        )
        sight = await self._section(
            f"""
Write a section about my visit to {attraction.name} in {location.name}.
Attraction type: {attraction.category or 'historical site'}
Description: {attraction.description or 'a popular local attraction'}
Write in first person, include historical or cultural information about the place.
Add 1-2 interesting facts that a casual visitor might not know.
Keep it under 200 words.
""",
            f"In the afternoon I visited {attraction.name}.",
        )
        if tomorrow.kind == "poi":
            plan_text = f"visiting {tomorrow.name}"
        elif tomorrow.kind == "travel":
            plan_text = f"traveling to {tomorrow.name}"
        else:
            plan_text = f"exploring {tomorrow.name}"
        closing = await self._section(
            f"""
Write a short concluding paragraph for {self.persona}'s travel blog from {location.name}
about his plans for tomorrow ({plan_text}), followed by 3-5 practical travel tips for {location.name}.
Keep the total under 200 words.
""",
            f"Tomorrow: {plan_text}.",
        )

        featured = await self.images.get_image(location_image_query(location), "location")
        food_image = await self.images.get_image(food_image_query(restaurant.category, location), "food")
        attraction_image = await self.images.get_image(attraction_image_query(attraction.name, location), "attraction")

        tags = [location.country, location.name, "travel", "food", "culture"]
        sections = [_paragraphs(intro)]
        if stay is not None:
            sections += [
                _heading("Where I'm Staying"),
                _paragraphs(stay),
                _link_line("Booking", accommodation.name, accommodation.booking_url),
            ]
        sections += [
            _heading("Local Cuisine Discoveries"),
            _paragraphs(food),
            _link_line("Restaurant", restaurant.name, restaurant.website),
            _heading(f"Exploring {attraction.name}"),
            _paragraphs(sight),
            _link_line("Visit", attraction.name, attraction.website),
            _heading("Tomorrow's Adventures"),
            _paragraphs(closing),
            _paragraphs(
                f"Day {stats.total_days} on the road, {stats.total_distance_km} km traveled so far."
            ),
            _tag_line(tags),
        ]
        body = "\n".join(section for section in sections if section)
        return ContentDocument(
            post_type=PostType.DAILY,
            title=f"{location.name}, {location.country}: {restaurant.name} and {attraction.name}",
            body=body,
            excerpt=(
                f"Join {self.persona} on day {location.current_day} of his journey through {location.name}, "
                f"{location.country}, as he enjoys local cuisine at {restaurant.name} and visits {attraction.name}."
            ),
            tags=tags,
            featured_image=featured,
            images=[food_image, attraction_image],
            day_number=location.current_day,
            weather=weather,
        )
