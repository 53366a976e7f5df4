"""
Redis attempt store for multi-instance deployments.
Implements AttemptStore using one sorted set per (action, axis, value).

Layout:
  throttle:{action}:email:{email}  -> {attempt_id: unix_ts}
  throttle:{action}:ip:{ip}        -> {attempt_id: unix_ts}

An attempt is written to both of its keys under the same member id, so the
email/IP union is computed client-side by member id and an attempt carrying
both an email and an IP is never counted twice.

Entries older than the retention window are pruned on write and whole keys
expire after it; the database store keeps history, this one does not.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import redis.asyncio as redis
from redis.exceptions import RedisError

from interview_booking.core.errors import AttemptStoreUnavailable
from interview_booking.core.metrics import redis_connection_errors
from interview_booking.schemas.rate_limit import RateLimitAction
from interview_booking.services.interfaces.attempt_store import AttemptStore, AttemptWindow

KEY_PREFIX = "throttle"


def _keys(action: str, identifier: Optional[str], ip_address: str) -> list[str]:
    keys = [f"{KEY_PREFIX}:{action}:ip:{ip_address}"]
    if identifier:
        keys.append(f"{KEY_PREFIX}:{action}:email:{identifier}")
    return keys


class RedisAttemptStore(AttemptStore):

    def __init__(self, client: redis.Redis, retention: timedelta):
        self.redis = client
        self.retention = retention

    async def window(self, identifier, ip_address, action, since) -> AttemptWindow:
        keys = _keys(action, identifier, ip_address)
        try:
            async with self.redis.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.zrangebyscore(key, f"({since.timestamp()}", "+inf", withscores=True)
                replies = await pipe.execute()
        except (RedisError, OSError) as exc:
            redis_connection_errors.inc()
            raise AttemptStoreUnavailable("redis attempt log unreadable") from exc

        attempts: dict[str, float] = {}
        for reply in replies:
            for member, score in reply:
                attempts[member] = score

        if not attempts:
            return AttemptWindow(count=0)

        oldest = datetime.fromtimestamp(min(attempts.values()), tz=timezone.utc)
        return AttemptWindow(count=len(attempts), oldest=oldest)

    async def record(self, identifier, ip_address, action, reason, at: datetime) -> None:
        member = uuid4().hex
        score = at.timestamp()
        horizon = (at - self.retention).timestamp()
        ttl = int(self.retention.total_seconds()) + 60

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                for key in _keys(action, identifier, ip_address):
                    pipe.zadd(key, {member: score})
                    pipe.zremrangebyscore(key, "-inf", horizon)
                    pipe.expire(key, ttl)
                await pipe.execute()
        except (RedisError, OSError) as exc:
            redis_connection_errors.inc()
            raise AttemptStoreUnavailable("redis attempt log unwritable") from exc

    async def clear(self, identifier, ip_address) -> int:
        keys: list[str] = []
        for action in RateLimitAction:
            keys.extend(_keys(action.value, identifier, ip_address))

        try:
            return await self.redis.delete(*keys)
        except (RedisError, OSError) as exc:
            redis_connection_errors.inc()
            raise AttemptStoreUnavailable("redis attempt log unwritable") from exc
