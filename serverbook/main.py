"""
Server Booking API - Main Application Entry Point

Coordinates bookings of ephemeral game servers:
- Booking lifecycle engine driven by chat commands and provisioning callbacks
- Reservation scheduler running as a background task
- Redis caching of the region usage listing
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from serverbook.api.middleware import RequestLoggingMiddleware
from serverbook.api.router import api_router
from serverbook.api.routes import callback
from serverbook.core.config import get_settings
from serverbook.core.exceptions import BookingException
from serverbook.core.logging import get_logger, setup_logging
from serverbook.core.metrics import metrics_endpoint
from serverbook.db.session import AsyncSessionLocal
from serverbook.infrastructure import DiscordNotifier, LighthouseGateway
from serverbook.schemas.message import Severity
from serverbook.services.booking_admin_service import BookingAdminService
from serverbook.services.booking_service import BookingService
from serverbook.services.cache_service import close_redis, get_cache_stats, get_redis
from serverbook.services.catalog import get_catalog
from serverbook.services.scheduler import ReservationScheduler
from serverbook.services.server_tools import ServerTools

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    catalog = get_catalog()
    gateway = LighthouseGateway(settings)
    notifier = DiscordNotifier(settings)
    booking_service = BookingService(catalog, gateway, notifier, settings)

    app.state.booking_service = booking_service
    app.state.admin_service = BookingAdminService(booking_service)
    app.state.server_tools = ServerTools(gateway, settings)

    scheduler = ReservationScheduler(booking_service, AsyncSessionLocal, settings.SCHEDULER_INTERVAL)
    if settings.SCHEDULER_ENABLED:
        scheduler.start()

    yield

    await scheduler.stop()
    await app.state.server_tools.aclose()
    await gateway.aclose()
    await notifier.aclose()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Booking and lifecycle coordinator for ephemeral game servers",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)
app.include_router(callback.router)


@app.exception_handler(BookingException)
async def booking_exception_handler(request: Request, exc: BookingException):
    # Warnings are user-correctable, errors were already logged with detail where they happened
    if exc.severity == Severity.WARNING:
        logger.info("request_rejected", code=exc.code, message=exc.message)
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
