"""Date helpers."""

from datetime import UTC, date, datetime


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(UTC)


def today() -> date:
    """Current calendar date in UTC, used for past-date checks."""
    return utcnow().date()
