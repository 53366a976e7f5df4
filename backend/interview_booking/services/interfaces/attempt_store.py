"""
Attempt store strategy interface.
Allows swapping where the throttle keeps its failed-attempt log.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class AttemptWindow:
    """Attempts inside the trailing window and the oldest one's timestamp."""

    count: int
    oldest: Optional[datetime] = None


class AttemptStore(ABC):
    """
    Interface for throttle attempt logs.

    Implementations:
    - DatabaseAttemptStore: append-only `failed_attempts` table
    - RedisAttemptStore: sorted sets scored by attempt time

    Every method raises AttemptStoreUnavailable when the backend fails; the
    throttle decides what that means (it fails open).
    """

    @abstractmethod
    async def window(
        self,
        identifier: Optional[str],
        ip_address: str,
        action: str,
        since: datetime,
    ) -> AttemptWindow:
        """
        Attempts for `action` matching the identifier OR the ip address,
        strictly after `since`.
        """

    @abstractmethod
    async def record(
        self,
        identifier: Optional[str],
        ip_address: str,
        action: str,
        reason: Optional[str],
        at: datetime,
    ) -> None:
        """Append one attempt."""

    @abstractmethod
    async def clear(self, identifier: Optional[str], ip_address: str) -> int:
        """
        Forget attempts for the identifier or ip address (after a successful
        login). Returns the number of entries removed where known.
        """
