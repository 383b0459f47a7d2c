"""
Operations endpoints for inspecting the journey and triggering cycles by hand.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from wanderpost.api.schemas import CycleOutcomeRead, JourneyOverview, LocationRead, MoveDecisionRead
from wanderpost.core import journey
from wanderpost.core.cycle import initialize_journey
from wanderpost.core.errors import JourneyStateError
from wanderpost.db import crud
from wanderpost.db.session import get_db_session

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/current",
    response_model=LocationRead,
    responses={404: {"description": "Journey not initialized"}},
    summary="Current stop",
)
async def get_current_location(session: AsyncSession = Depends(get_db_session)):
    location = await crud.get_current_location(session)
    if location is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No current location")
    return LocationRead.model_validate(location)


@router.get("/locations",
    response_model=JourneyOverview,
    summary="All stops in itinerary order",
)
async def list_locations(session: AsyncSession = Depends(get_db_session)):
    locations = await crud.list_locations(session)
    return JourneyOverview(
        locations=[LocationRead.model_validate(location) for location in locations],
        total=len(locations),
    )


@router.get("/decision",
    response_model=MoveDecisionRead,
    responses={404: {"description": "Journey not initialized"}},
    summary="Dry-run of today's move decision",
)
async def get_move_decision(request: Request, session: AsyncSession = Depends(get_db_session)):
    location = await crud.get_current_location(session)
    if location is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No current location")

    decision = await journey.evaluate(session, location, request.app.state.settings)
    return MoveDecisionRead(
        location_id=location.id,
        location=f"{location.name}, {location.country}",
        should_move=decision.should_move,
        reason=decision.reason.value if decision.reason else None,
        current_day=decision.current_day,
        planned_duration=decision.planned_duration,
        unvisited_attractions=decision.unvisited_attractions,
        min_days=decision.bounds.min_days,
        max_days=decision.bounds.max_days,
    )


@router.post("/cycle",
    response_model=CycleOutcomeRead,
    responses={409: {"description": "A cycle is already running"}},
    summary="Run one cycle now",
)
async def run_cycle(request: Request):
    outcome = await request.app.state.scheduler.trigger()
    if outcome is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A cycle is already running")
    logger.info(f"Manual cycle finished: {outcome.kind}")
    return CycleOutcomeRead(**asdict(outcome))


@router.post("/initialize",
    response_model=LocationRead,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Journey already initialized"}},
    summary="Create the first stop of the journey",
)
async def initialize(request: Request):
    state = request.app.state
    try:
        location = await initialize_journey(state.db, state.cycle.planner, state.settings)
    except JourneyStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return LocationRead.model_validate(location)
