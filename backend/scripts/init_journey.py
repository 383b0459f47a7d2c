#!/usr/bin/env python3
"""
Seed the first stop of the journey in the start country
"""

import asyncio
import logging
import sys
from pathlib import Path

# Ensure backend/ is on sys.path for "wanderpost.*" imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from wanderpost.core.cycle import initialize_journey
from wanderpost.core.errors import JourneyStateError
from wanderpost.core.planner import ItineraryPlanner
from wanderpost.core.settings import Settings
from wanderpost.db.session import DatabaseManager
from wanderpost.services.text_generation import OpenAITextGenerator

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def init_journey() -> None:
    settings = Settings()
    db = DatabaseManager(settings)
    try:
        await db.initialize()
        await db.init_db()
        planner = ItineraryPlanner(OpenAITextGenerator(settings), settings)
        location = await initialize_journey(db, planner, settings)
        logger.info(f"✅ Journey starts in {location.name}, {location.country}")
    finally:
        await db.close()


if __name__ == "__main__":
    try:
        asyncio.run(init_journey())
    except JourneyStateError as e:
        logger.warning(f"Nothing to do: {e}")
    except Exception as e:
        logger.error(f"❌ Journey initialization failed: {e}")
        sys.exit(1)
