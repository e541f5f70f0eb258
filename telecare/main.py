# telecare/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from telecare.core.config import settings
from telecare.core.logging import setup_logging
from telecare.db.sql import init_db
from telecare.routers import admin, appointments, auth, availability, doctors, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Configure logging and make sure the schema exists before serving.
    """
    setup_logging(settings.LOG_LEVEL)
    logger.info("Starting Telecare API (env=%s)", settings.APP_ENV)
    await init_db()
    yield
    logger.info("Telecare API stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Telecare Booking API",
        lifespan=lifespan,
    )

    app.include_router(health.router, prefix=settings.API_PREFIX, tags=["health"])
    app.include_router(auth.router, prefix=settings.API_PREFIX)
    app.include_router(doctors.router, prefix=settings.API_PREFIX)
    app.include_router(availability.router, prefix=settings.API_PREFIX)
    app.include_router(appointments.router, prefix=settings.API_PREFIX)
    app.include_router(admin.router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root():
        return {"message": "Telecare Booking API running"}

    return app


app = create_app()
