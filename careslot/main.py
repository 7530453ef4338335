# careslot/main.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from careslot.core.config import settings
from careslot.db.sql import AsyncSessionLocal, engine, init_db
from careslot.dependencies import Services, build_services
from careslot.routers import appointments, availability, doctors, health, reminders, users

if settings.APP_ENV != "prod":
    logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: build services, create tables (dev), start the reminder loop.
    Shutdown: stop the loop, wait for in-flight reminder tasks, close the pool.
    """
    owns_engine = not hasattr(app.state, "services")
    if owns_engine:
        if settings.DB_CREATE_ALL:
            await init_db(engine)
        app.state.services = build_services(AsyncSessionLocal)

    services: Services = app.state.services
    task = asyncio.create_task(services.dispatcher.run_forever())
    logger.info(
        "careslot started (env=%s, strategy=%s, reminder poll=%ds)",
        settings.APP_ENV, settings.SEARCH_STRATEGY, settings.REMINDER_POLL_SECONDS,
    )
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    await services.booking.drain()
    if owns_engine:
        await engine.dispose()


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(
        title="careslot",
        description="Doctor matching and slot booking",
        version="0.1.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # Routing
    app.include_router(health.router, prefix=settings.API_PREFIX, tags=["health"])
    app.include_router(appointments.router, prefix=settings.API_PREFIX, tags=["appointments"])
    app.include_router(availability.router, prefix=settings.API_PREFIX, tags=["doctor-availability"])
    app.include_router(doctors.router, prefix=settings.API_PREFIX, tags=["doctors"])
    app.include_router(users.router, prefix=settings.API_PREFIX, tags=["users"])
    app.include_router(reminders.router, prefix=settings.API_PREFIX, tags=["reminders"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        if isinstance(exc, HTTPException):
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
        logger.exception("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "internal_error"})

    @app.get("/")
    def root():
        return {"message": "careslot API running"}

    return app


app = create_app()
