"""
Interview Booking API - Main Application Entry Point

Booking allocation for interview events:
- Phase-gated booking with a cumulative per-student quota
- Slot capacity that holds under concurrent requests
- Sliding-window throttle for login/signup that fails open
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from interview_booking.core.config import get_settings
from interview_booking.core.errors import BookingCoreError
from interview_booking.core.logging import setup_logging, get_logger
from interview_booking.core.metrics import metrics_endpoint
from interview_booking.api.router import api_router
from interview_booking.api.middleware import RequestLoggingMiddleware
from interview_booking.infrastructure.redis_client import get_redis, close_redis

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
        throttle_backend=settings.THROTTLE_BACKEND,
    )

    if settings.THROTTLE_BACKEND == "redis":
        redis_client = await get_redis()
        if redis_client:
            logger.info("redis_ready")
        else:
            logger.warning("redis_unavailable", message="Throttle using database attempt log")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Interview slot booking with phase quotas and concurrency-safe capacity",
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


@app.exception_handler(BookingCoreError)
async def booking_core_error_handler(request: Request, exc: BookingCoreError):
    if exc.status_code >= 500:
        logger.error("request_unavailable", error=exc.message, kind=type(exc).__name__)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "throttle_backend": settings.THROTTLE_BACKEND,
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
