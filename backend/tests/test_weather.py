import pytest

from wanderpost.core.errors import ProviderError
from wanderpost.services.weather import WeatherService


class FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self.payload = payload

    async def json(self):
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, status=200, payload=None):
        self.response = FakeResponse(status, payload)
        self.params = None

    def get(self, url, params=None, timeout=None):
        self.params = params
        return self.response


OPENWEATHER_PAYLOAD = {
    "main": {"temp": 23.6, "feels_like": 24.2, "humidity": 40},
    "weather": [{"description": "scattered clouds", "icon": "03d"}],
    "wind": {"speed": 3.1},
}


@pytest.mark.asyncio
async def test_fetch_parses_payload(settings):
    session = FakeSession(payload=OPENWEATHER_PAYLOAD)
    service = WeatherService(settings.model_copy(update={"OPENWEATHER_API_KEY": "k"}), session=session)

    weather = await service.fetch(45.26, 19.83)

    assert weather.temperature == 24
    assert weather.feels_like == 24
    assert weather.description == "scattered clouds"
    assert weather.wind_speed == 3.1
    assert weather.is_default is False
    assert session.params["units"] == "metric"


@pytest.mark.asyncio
async def test_fetch_raises_on_http_error(settings):
    service = WeatherService(settings, session=FakeSession(status=401, payload={}))

    with pytest.raises(ProviderError, match="HTTP 401"):
        await service.fetch(45.26, 19.83)


@pytest.mark.asyncio
async def test_malformed_payload_falls_back_to_default(settings):
    service = WeatherService(settings, session=FakeSession(payload={"main": {}}))

    weather = await service.current(45.26, 19.83)

    assert weather.is_default is True
    assert weather.temperature == 20
    assert weather.description == "sunny"
