"""
Current-weather lookups against the OpenWeather API.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from wanderpost.core.errors import ProviderError
from wanderpost.core.settings import Settings

logger = logging.getLogger(__name__)

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"


@dataclass(frozen=True)
class Weather:
    temperature: int
    feels_like: int
    description: str
    icon: str = "01d"
    humidity: Optional[int] = None
    wind_speed: Optional[float] = None
    is_default: bool = False


def default_weather() -> Weather:
    return Weather(
        temperature=20,
        feels_like=20,
        description="sunny",
        icon="01d",
        humidity=60,
        wind_speed=5.0,
        is_default=True,
    )


class WeatherService:
    def __init__(self, settings: Settings, session: Optional[aiohttp.ClientSession] = None):
        self.api_key = settings.OPENWEATHER_API_KEY
        self.timeout = aiohttp.ClientTimeout(total=settings.REQUEST_TIMEOUT_SECONDS)
        self._session = session

    async def fetch(self, latitude: float, longitude: float) -> Weather:
        """Raises ProviderError on any network, HTTP or payload problem"""
        params = {"lat": latitude, "lon": longitude, "appid": self.api_key, "units": "metric"}
        try:
            if self._session is not None:
                data = await self._get(self._session, params)
            else:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    data = await self._get(session, params)
            return Weather(
                temperature=round(data["main"]["temp"]),
                feels_like=round(data["main"].get("feels_like", data["main"]["temp"])),
                description=data["weather"][0]["description"],
                icon=data["weather"][0].get("icon", "01d"),
                humidity=data["main"].get("humidity"),
                wind_speed=(data.get("wind") or {}).get("speed"),
            )
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError("openweather", str(e) or type(e).__name__) from e

    async def _get(self, session: aiohttp.ClientSession, params: dict) -> dict:
        async with session.get(OPENWEATHER_URL, params=params, timeout=self.timeout) as response:
            if response.status != 200:
                raise ProviderError("openweather", f"HTTP {response.status}")
            return await response.json()

    async def current(self, latitude: float, longitude: float) -> Weather:
        """Current weather, or a mild sunny default when the provider fails"""
        try:
            return await self.fetch(latitude, longitude)
        except ProviderError as e:
            logger.error(f"Error fetching weather: {e}")
            return default_weather()
