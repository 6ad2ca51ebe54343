"""
Chalet Booking API - Main Application Entry Point

A vacation-rental booking service providing:
- Race-safe date reservation per listing (lock + optimistic version check)
- Deterministic pricing with discounts, cashback and transport add-ons
- Owner/admin listing management and customer support messaging
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from chalet_booking.api.middleware import RequestLoggingMiddleware
from chalet_booking.api.router import api_router
from chalet_booking.core.config import get_settings
from chalet_booking.core.exceptions import BackendUnavailable
from chalet_booking.core.logging import get_logger, setup_logging
from chalet_booking.core.metrics import metrics_endpoint
from chalet_booking.infrastructure.redis_client import close_redis, get_redis
from chalet_booking.services.cache_service import get_cache_stats
from chalet_booking.services.strategy_factory import close_strategies, get_listing_lock, get_message_feed

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        lock_strategy=settings.LOCK_STRATEGY,
        message_feed=settings.MESSAGE_FEED,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache; locks and feed fall back to local")

    get_listing_lock()
    get_message_feed()

    yield

    await close_strategies()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Chalet and farm stay booking API with race-safe reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def backend_unavailable_handler(request: Request, exc: Exception):
    """Database unreachable or connection dropped: report it, never retry writes here."""
    get_logger(__name__).error("backend_unavailable", path=request.url.path, error=str(exc))
    error = BackendUnavailable("The booking database is unavailable. Please try again shortly.")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


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


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
