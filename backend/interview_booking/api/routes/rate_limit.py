"""
Throttle endpoints called by the login/signup flow before and after it talks
to the identity provider.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.core.config import get_settings
from interview_booking.db.session import get_db
from interview_booking.schemas.rate_limit import (
    FailedAttemptCreate,
    RateLimitCheck,
    RateLimitClear,
    RateLimitResponse,
)
from interview_booking.services.strategy_factory import build_throttle
from interview_booking.services.throttle_service import UNKNOWN_IP, RateLimitDecision, RequestThrottle

router = APIRouter(prefix="/auth/rate-limit", tags=["Rate limiting"])


async def get_throttle(db: AsyncSession = Depends(get_db)) -> RequestThrottle:
    return await build_throttle(db)


def client_ip(request: Request) -> str:
    """
    Address the throttle keys on. X-Forwarded-For is only read when the
    direct peer is one of our proxies, and then from the right: the nearest
    hop not added by a trusted proxy is the client. Entries to its left are
    whatever the client chose to send.
    """
    peer = request.client.host if request.client and request.client.host else None
    trusted = set(get_settings().TRUSTED_PROXIES)

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in trusted:
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        for hop in reversed(hops):
            if hop not in trusted:
                return hop
        if hops:
            return hops[0]

    return peer or UNKNOWN_IP


def _to_response(decision: RateLimitDecision) -> RateLimitResponse:
    return RateLimitResponse(
        allowed=decision.allowed,
        remaining_attempts=decision.remaining,
        wait_time_minutes=decision.wait_time_minutes,
        message=decision.message,
    )


@router.post("/check", response_model=RateLimitResponse)
async def check_rate_limit(
    payload: RateLimitCheck,
    request: Request,
    throttle: RequestThrottle = Depends(get_throttle),
):
    """
    Pre-flight check before forwarding a login/signup attempt.
    429 with Retry-After when the caller must wait; nothing is recorded.
    """
    decision = await throttle.check(payload.email, client_ip(request), payload.action.value)
    body = _to_response(decision)
    if not decision.allowed:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(),
            headers={"Retry-After": str(max(1, int(decision.wait_time.total_seconds())))},
        )
    return body


@router.post("/failures", response_model=RateLimitResponse, status_code=status.HTTP_201_CREATED)
async def record_failed_attempt(
    payload: FailedAttemptCreate,
    request: Request,
    throttle: RequestThrottle = Depends(get_throttle),
):
    """Record a failed login/signup and return the updated allowance."""
    ip_address = client_ip(request)
    await throttle.record_failure(payload.email, ip_address, payload.action.value, payload.reason)
    decision = await throttle.check(payload.email, ip_address, payload.action.value)
    return _to_response(decision)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_rate_limit(
    payload: RateLimitClear,
    request: Request,
    throttle: RequestThrottle = Depends(get_throttle),
):
    """Forget failed attempts after a successful login."""
    await throttle.clear(payload.email, client_ip(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
