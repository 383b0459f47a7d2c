"""
Operations API against the in-memory database. The app is assembled without
the production lifespan so no provider clients or scheduler loop are started.
"""

import random
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from fakes import ScriptedGenerator
from wanderpost.api import journey
from wanderpost.core.cycle import CycleOutcome
from wanderpost.core.planner import ItineraryPlanner
from wanderpost.db.models import PoiType
from wanderpost.db.session import get_db_session
from wanderpost.middleware.logging import RequestLoggingMiddleware
from wanderpost.scheduler import CycleScheduler


class BusyScheduler:
    async def trigger(self):
        return None


@pytest.fixture
def app(db, settings):
    application = FastAPI()
    application.add_middleware(RequestLoggingMiddleware)
    application.include_router(journey.router, prefix="/api/v1/journey")

    async def session_override():
        async with db.get_session() as session:
            yield session

    async def runner():
        return CycleOutcome(kind="stayed", cycle_id="c0ffee", location_id=1, post_id=7, post_url="https://blog.example/posts/7")

    application.dependency_overrides[get_db_session] = session_override
    application.state.settings = settings
    application.state.db = db
    application.state.cycle = SimpleNamespace(
        planner=ItineraryPlanner(ScriptedGenerator(), settings, random.Random(2)),
    )
    application.state.scheduler = CycleScheduler(runner, settings.POST_GENERATION_SCHEDULE)
    return application


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestJourneyEndpoints:
    @pytest.mark.asyncio
    async def test_current_location_missing(self, client):
        response = await client.get("/api/v1/journey/current")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_current_location(self, client, make_location):
        await make_location(current_day=4, planned_duration=10)

        response = await client.get("/api/v1/journey/current")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Novi Sad"
        assert body["is_current"] is True
        assert body["days_remaining"] == 6

    @pytest.mark.asyncio
    async def test_locations_in_order(self, client, make_location):
        await make_location(name="Sombor", is_current=False, is_visited=True)
        await make_location(name="Novi Sad")

        response = await client.get("/api/v1/journey/locations")

        body = response.json()
        assert body["total"] == 2
        assert [loc["name"] for loc in body["locations"]] == ["Sombor", "Novi Sad"]
        assert [loc["order_in_journey"] for loc in body["locations"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_decision_dry_run(self, client, make_location, make_poi):
        location = await make_location(current_day=8)
        await make_poi(location.id, PoiType.ATTRACTION, "Fortress")

        response = await client.get("/api/v1/journey/decision")

        assert response.status_code == 200
        body = response.json()
        assert body["should_move"] is False
        assert body["reason"] is None
        assert body["unvisited_attractions"] == 1
        assert body["min_days"] == 7
        assert body["max_days"] == 21

    @pytest.mark.asyncio
    async def test_decision_reports_reason(self, client, make_location):
        await make_location(current_day=14, planned_duration=14)

        response = await client.get("/api/v1/journey/decision")

        assert response.json()["reason"] == "planned_duration"


class TestOperations:
    @pytest.mark.asyncio
    async def test_manual_cycle(self, client):
        response = await client.post("/api/v1/journey/cycle")

        assert response.status_code == 200
        assert response.json()["kind"] == "stayed"
        assert response.json()["post_url"] == "https://blog.example/posts/7"

    @pytest.mark.asyncio
    async def test_manual_cycle_conflicts_with_running_cycle(self, app, client):
        app.state.scheduler = BusyScheduler()

        response = await client.post("/api/v1/journey/cycle")

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_initialize_once(self, client):
        first = await client.post("/api/v1/journey/initialize")
        second = await client.post("/api/v1/journey/initialize")

        assert first.status_code == 201
        assert first.json()["country"] == "Serbia"
        assert first.json()["order_in_journey"] == 1
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/api/v1/journey/locations", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
