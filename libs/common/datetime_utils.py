"""Timezone-aware UTC timestamps for models and expiry calculations.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_in(days: int = 0, hours: int = 0) -> datetime:
    """Return a UTC datetime the given distance from now (e.g. cart expiry)."""
    return utc_now() + timedelta(days=days, hours=hours)
