from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wanderpost.api import journey
from wanderpost.core.cycle import build_daily_cycle
from wanderpost.core.log_config import configure_logging
from wanderpost.db.session import db_manager
from wanderpost.middleware.logging import RequestLoggingMiddleware
from wanderpost.scheduler import CycleScheduler, resolve_schedule

settings = db_manager.settings
configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    try:
        await db_manager.initialize()
        await db_manager.init_db()
    except Exception:
        logger.exception("Failed to initialize database manager")
        raise

    cycle = build_daily_cycle(settings, db_manager)
    schedule = await resolve_schedule(db_manager, settings)
    scheduler = CycleScheduler(cycle.run, schedule, settings.SCHEDULER_TIMEZONE)
    app.state.settings = settings
    app.state.db = db_manager
    app.state.cycle = cycle
    app.state.scheduler = scheduler
    if settings.ENABLE_SCHEDULER:
        scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await scheduler.stop()
    try:
        await db_manager.close()
        logger.info("Database connections closed successfully")
    except Exception as e:
        logger.error(f"Error during database cleanup: {e}")


app = FastAPI(
    title="Wanderpost",
    description="Travel-persona blog orchestrator",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.get("/health")
async def health_check():
    """Database health plus scheduler state"""
    db_health = await db_manager.health_check()
    scheduler = getattr(app.state, "scheduler", None)
    healthy = db_health["status"] == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "version": "1.0.0",
            "components": {
                "database": db_health["status"],
                "scheduler": "running" if scheduler is not None and scheduler.running else "stopped",
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


prefix = "/api/v1"

app.include_router(journey.router, prefix=f"{prefix}/journey", tags=["journey"])
