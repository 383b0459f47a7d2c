#!/usr/bin/env python3
"""
Initialize database tables and seed the tunable settings rows
"""

import asyncio
import logging
import sys
from pathlib import Path

# Ensure backend/ is on sys.path for "wanderpost.*" imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from wanderpost.core.journey import MAX_DAYS_KEY, MIN_DAYS_KEY
from wanderpost.core.settings import Settings
from wanderpost.db import crud
from wanderpost.db.session import DatabaseManager
from wanderpost.scheduler import SCHEDULE_KEY

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def init_database() -> None:
    settings = Settings()
    db = DatabaseManager(settings)
    try:
        await db.initialize()
        await db.init_db()

        async with db.transaction() as session:
            defaults = {
                MIN_DAYS_KEY: (settings.MIN_DAYS_PER_LOCATION, "Minimum days to stay in a location"),
                MAX_DAYS_KEY: (settings.MAX_DAYS_PER_LOCATION, "Maximum days to stay in a location"),
                SCHEDULE_KEY: (settings.POST_GENERATION_SCHEDULE, "Cron schedule for post generation"),
            }
            for key, (value, description) in defaults.items():
                if await crud.get_setting(session, key) is None:
                    await crud.set_setting(session, key, str(value), description)

        logger.info("✅ Database tables created successfully")
    finally:
        await db.close()


if __name__ == "__main__":
    try:
        asyncio.run(init_database())
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        sys.exit(1)
