"""
Timezone-safe datetime utilities.

All timestamps are stored in UTC.
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC datetime with timezone info attached.

    Returns:
        datetime: Current UTC datetime (timezone-aware)
    """
    return datetime.now(timezone.utc)
