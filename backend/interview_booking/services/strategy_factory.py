"""
Attempt store factory.
Configures which backend the request throttle keeps its attempt log in.
"""

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.core.config import get_settings
from interview_booking.core.logging import get_logger
from interview_booking.infrastructure.redis_client import get_redis
from interview_booking.services.interfaces.attempt_store import AttemptStore
from interview_booking.services.interfaces.database_attempt_store import DatabaseAttemptStore
from interview_booking.services.redis_attempt_store import RedisAttemptStore
from interview_booking.services.throttle_service import RequestThrottle

logger = get_logger(__name__)


async def get_attempt_store(db: AsyncSession) -> AttemptStore:
    """
    Get configured attempt store.

    - database (default): failed_attempts table, full history
    - redis: sorted sets, shared across instances, no history

    Falls back to the database when Redis is disabled or unreachable.
    """
    settings = get_settings()

    if settings.THROTTLE_BACKEND == "redis":
        client = await get_redis()
        if client is not None:
            retention = timedelta(minutes=settings.RATE_LIMIT_WINDOW_MINUTES)
            return RedisAttemptStore(client, retention=retention)
        logger.warning("redis_unavailable", message="Throttle using database attempt log")

    return DatabaseAttemptStore(db)


async def build_throttle(db: AsyncSession) -> RequestThrottle:
    return RequestThrottle(await get_attempt_store(db))
