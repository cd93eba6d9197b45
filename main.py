"""
Fleet Analytics API v1.0.0
FastAPI app exposing the fleet metrics engines over posted snapshots

Run:
    uvicorn main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from errors import register_exception_handlers
from logger_config import setup_logging
from routers import include_all_routers
from settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logging."""
    # Configure the root logger so every module logger shares the handlers
    setup_logging(
        name="",
        level=settings.app.log_level,
        log_to_file=settings.app.log_to_file,
        log_dir=settings.app.log_dir,
    )
    logger.info(f"Fleet Analytics API v{settings.app.version} starting...")
    for warning in settings.validate():
        logger.warning(warning)
    logger.info(f"Default usage preset: {settings.analytics.default_preset}")
    logger.debug(f"Settings: {settings.to_dict()}")
    logger.info("API ready for connections")

    yield  # App runs here

    logger.info("Shutting down Fleet Analytics API")


app = FastAPI(
    title="Fleet Analytics API",
    description="""
# Fleet Analytics API

Derived fleet metrics computed from a posted snapshot of vehicles, fuel
records, maintenance records and maintenance requests.

- ⛽ **Fuel efficiency**: distance per liter with implausible odometer pairs rejected
- 📊 **Usage scores**: 0-100 composite with low/medium/high presets
- 🔧 **Retirement**: retirement urgency, upgrade candidates, replacement budget
- 📈 **Forecasts**: consumption, price and cost with trend and confidence
""",
    version=settings.app.version,
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.app.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

include_all_routers(app)
logger.info("✅ Analytics router registered")


@app.get("/health")
@app.get("/fleetAnalytics/api/health")
async def health_check():
    """Liveness check."""
    return {
        "status": "healthy",
        "version": settings.app.version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
