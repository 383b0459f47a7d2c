"""
Shared fixtures: settings for tests and an in-memory database behind the real
DatabaseManager.
"""

import random
from datetime import date
from typing import Callable

import pytest
import pytest_asyncio

from wanderpost.core.settings import Settings
from wanderpost.db import crud
from wanderpost.db.models import Location, PoiType
from wanderpost.db.session import DatabaseManager


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DB_URL="sqlite:///:memory:",
        LOG_FILE=None,
        ENABLE_SCHEDULER=False,
        IMAGE_PROVIDER="unsplash",
    )


@pytest.fixture
def rng():
    return random.Random(42)


@pytest_asyncio.fixture
async def db(settings):
    manager = DatabaseManager(settings)
    await manager.initialize()
    await manager.init_db()
    yield manager
    await manager.close()


@pytest.fixture
def make_location(db) -> Callable:
    """Insert a location; the first one defaults to being the current stop"""

    async def _make(**overrides) -> Location:
        fields = {
            "name": "Novi Sad",
            "country": "Serbia",
            "latitude": 45.2671,
            "longitude": 19.8335,
            "timezone": "Europe/Belgrade",
            "currency": "RSD",
            "language": "Serbian",
            "is_current": True,
            "planned_arrival": date(2024, 5, 1),
            "planned_duration": 14,
            "current_day": 1,
        }
        fields.update(overrides)
        async with db.transaction() as session:
            return await crud.create_location(session, **fields)

    return _make


@pytest.fixture
def make_poi(db) -> Callable:
    async def _make(location_id: int, poi_type: PoiType = PoiType.ATTRACTION, name: str = "Petrovaradin Fortress", **overrides):
        fields = {
            "location_id": location_id,
            "type": poi_type,
            "name": name,
            "description": "A place worth a visit",
            "opening_hours": {"weekday": "9:00-17:00", "weekend": "10:00-16:00"},
        }
        fields.update(overrides)
        async with db.transaction() as session:
            return await crud.create_poi(session, **fields)

    return _make
