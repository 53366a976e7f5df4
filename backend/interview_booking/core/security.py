"""
Caller identity from bearer tokens.

The booking core does not authenticate anyone. The identity provider issues
HS256 JWTs carrying `sub` (the student or admin id), `role` and, for students
who declared an internship, `deprioritized`. This module only verifies them
and exposes the caller to routes as FastAPI dependencies.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from interview_booking.core.config import get_settings

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    role: str
    deprioritized: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def create_access_token(
    subject: str,
    role: str = ROLE_STUDENT,
    expires_delta: Optional[timedelta] = None,
    deprioritized: bool = False,
) -> str:
    """Issue a token the way the identity provider does. Used by tests and tooling."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims = {"sub": str(subject), "role": role, "exp": expire}
    if deprioritized:
        claims["deprioritized"] = True
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CallerIdentity:
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise _unauthorized("Invalid or expired token")

    return CallerIdentity(
        user_id=str(payload["sub"]),
        role=payload.get("role", ROLE_STUDENT),
        deprioritized=payload.get("deprioritized") is True,
    )


async def get_current_student_id(
    identity: CallerIdentity = Depends(get_current_identity),
) -> str:
    return identity.user_id


async def require_admin(
    identity: CallerIdentity = Depends(get_current_identity),
) -> CallerIdentity:
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return identity
