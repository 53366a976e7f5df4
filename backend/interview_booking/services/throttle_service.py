"""
Request throttle for login and signup attempts.

Sliding window, not fixed buckets: an attempt counts while it is younger than
`window`, measured back from "now". Attempts are matched on the union of
email and IP address, so rotating only one of them gains nothing.

Failure-open policy:
  If the attempt store cannot be read, the check answers allowed=True and
  marks the decision degraded. A storage hiccup must not lock every user out
  of login; the throttle is a best-effort defence, not a security boundary.
  Every degraded decision is logged and counted.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from interview_booking.core.clock import resolve_now
from interview_booking.core.config import get_settings
from interview_booking.core.errors import InfrastructureUnavailable
from interview_booking.core.logging import get_logger
from interview_booking.core.metrics import rate_limit_fail_open, record_rate_limit_check
from interview_booking.services.interfaces.attempt_store import AttemptStore

logger = get_logger(__name__)

UNKNOWN_IP = "0.0.0.0"


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining: int
    wait_time: timedelta
    message: str
    degraded: bool = False

    @property
    def wait_time_minutes(self) -> int:
        """Wait time rounded up to whole minutes; never 0 while blocked."""
        seconds = self.wait_time.total_seconds()
        if seconds <= 0:
            return 0 if self.allowed else 1
        return max(1, math.ceil(seconds / 60))


def normalize_identifier(identifier: Optional[str]) -> Optional[str]:
    if identifier is None:
        return None
    identifier = identifier.strip().lower()
    return identifier or None


class RequestThrottle:

    def __init__(
        self,
        store: AttemptStore,
        max_attempts: Optional[int] = None,
        window: Optional[timedelta] = None,
    ):
        settings = get_settings()
        self.store = store
        self.max_attempts = settings.RATE_LIMIT_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.window = timedelta(minutes=settings.RATE_LIMIT_WINDOW_MINUTES) if window is None else window

    async def check_and_record(
        self,
        identifier: Optional[str],
        ip_address: Optional[str],
        action: str,
        max_attempts: Optional[int] = None,
        window: Optional[timedelta] = None,
        record: bool = False,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RateLimitDecision:
        """
        Decide whether another attempt may go through. With record=True an
        allowed attempt is also appended to the log.
        """
        now = resolve_now(now)
        if max_attempts is None:
            max_attempts = self.max_attempts
        if window is None:
            window = self.window
        identifier = normalize_identifier(identifier)
        ip_address = ip_address or UNKNOWN_IP

        try:
            seen = await self.store.window(identifier, ip_address, action, since=now - window)
        except InfrastructureUnavailable as exc:
            return self._fail_open(action, max_attempts, exc)

        if seen.count >= max_attempts:
            oldest = seen.oldest or now
            wait_time = max(oldest + window - now, timedelta(0))
            decision = RateLimitDecision(
                allowed=False,
                remaining=0,
                wait_time=wait_time,
                message="",
            )
            decision.message = (
                f"Too many attempts. Please wait {decision.wait_time_minutes} minute(s)."
            )
            record_rate_limit_check("limited")
            logger.warning(
                "rate_limit_exceeded",
                action=action,
                identifier=identifier,
                ip_address=ip_address,
                attempts=seen.count,
                wait_seconds=int(wait_time.total_seconds()),
            )
            return decision

        remaining = max_attempts - seen.count
        if record and await self._append(identifier, ip_address, action, reason, now):
            remaining -= 1

        record_rate_limit_check("allowed")
        return RateLimitDecision(
            allowed=True,
            remaining=remaining,
            wait_time=timedelta(0),
            message="Rate limit check passed",
        )

    async def check(
        self,
        identifier: Optional[str],
        ip_address: Optional[str],
        action: str,
        now: Optional[datetime] = None,
    ) -> RateLimitDecision:
        """Pre-flight check; never writes to the attempt log."""
        return await self.check_and_record(identifier, ip_address, action, record=False, now=now)

    async def record_failure(
        self,
        identifier: Optional[str],
        ip_address: Optional[str],
        action: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        return await self._append(
            normalize_identifier(identifier),
            ip_address or UNKNOWN_IP,
            action,
            reason,
            resolve_now(now),
        )

    async def clear(self, identifier: Optional[str], ip_address: Optional[str]) -> int:
        """Reset the window after a successful login. Best effort."""
        identifier = normalize_identifier(identifier)
        try:
            removed = await self.store.clear(identifier, ip_address or UNKNOWN_IP)
        except InfrastructureUnavailable as exc:
            logger.warning("rate_limit_clear_failed", identifier=identifier, error=str(exc))
            return 0

        logger.info("rate_limit_cleared", identifier=identifier, removed=removed)
        return removed

    async def _append(self, identifier, ip_address, action, reason, now) -> bool:
        try:
            await self.store.record(identifier, ip_address, action, reason, now)
        except InfrastructureUnavailable as exc:
            rate_limit_fail_open.inc()
            logger.warning(
                "rate_limit_degraded",
                operation="record",
                action=action,
                error=str(exc),
            )
            return False

        logger.info(
            "failed_attempt_recorded",
            action=action,
            identifier=identifier,
            ip_address=ip_address,
            reason=reason,
        )
        return True

    def _fail_open(self, action: str, max_attempts: int, exc: Exception) -> RateLimitDecision:
        rate_limit_fail_open.inc()
        record_rate_limit_check("degraded")
        logger.warning(
            "rate_limit_degraded",
            operation="check",
            action=action,
            error=str(exc),
        )
        return RateLimitDecision(
            allowed=True,
            remaining=max_attempts,
            wait_time=timedelta(0),
            message="Rate limit check unavailable",
            degraded=True,
        )
