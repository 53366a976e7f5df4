from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import types


class UTCDateTime(types.TypeDecorator):
    """ Stores datetimes as naive UTC and returns them timezone aware.

    SQLite has no timezone support and Postgres applies the session timezone
    to `timestamptz`; storing naive UTC keeps phase boundaries and throttle
    windows comparable on both.
    """

    impl = types.DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)
