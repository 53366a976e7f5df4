"""
Database attempt store - the default throttle backend.
Reads and appends the `failed_attempts` table in its own short transactions.
Any storage fault, including a driver-level connection error, surfaces as
AttemptStoreUnavailable so the throttle can fail open.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.core.errors import AttemptStoreUnavailable
from interview_booking.db.session import STORAGE_ERRORS, rollback_quietly
from interview_booking.models import FailedAttempt
from interview_booking.services.interfaces.attempt_store import AttemptStore, AttemptWindow


def _matches(identifier: Optional[str], ip_address: str):
    # Union of both axes: rotating only the email or only the IP does not reset the count.
    clauses = [FailedAttempt.ip_address == ip_address]
    if identifier:
        clauses.append(FailedAttempt.identifier == identifier)
    return or_(*clauses)


class DatabaseAttemptStore(AttemptStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def window(self, identifier, ip_address, action, since) -> AttemptWindow:
        try:
            result = await self.db.execute(
                select(func.count(FailedAttempt.id), func.min(FailedAttempt.attempted_at))
                .where(
                    _matches(identifier, ip_address),
                    FailedAttempt.action == action,
                    FailedAttempt.attempted_at > since,
                )
            )
            count, oldest = result.one()
            await self.db.commit()
        except STORAGE_ERRORS as exc:
            await rollback_quietly(self.db)
            raise AttemptStoreUnavailable("attempt log unreadable") from exc

        return AttemptWindow(count=count or 0, oldest=oldest)

    async def record(self, identifier, ip_address, action, reason, at: datetime) -> None:
        try:
            self.db.add(
                FailedAttempt(
                    identifier=identifier,
                    ip_address=ip_address,
                    action=action,
                    reason=reason,
                    attempted_at=at,
                )
            )
            await self.db.commit()
        except STORAGE_ERRORS as exc:
            await rollback_quietly(self.db)
            raise AttemptStoreUnavailable("attempt log unwritable") from exc

    async def clear(self, identifier, ip_address) -> int:
        try:
            result = await self.db.execute(
                delete(FailedAttempt).where(_matches(identifier, ip_address))
            )
            await self.db.commit()
        except STORAGE_ERRORS as exc:
            await rollback_quietly(self.db)
            raise AttemptStoreUnavailable("attempt log unwritable") from exc

        return result.rowcount or 0
