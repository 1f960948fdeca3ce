import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch(seconds: int | float | None) -> datetime | None:
    """
    Convert a VCS timestamp (seconds since the epoch) to an aware UTC datetime.

    Returns None for a missing value.
    """
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.warning(f"Invalid epoch timestamp: {seconds}")
        return None


def ensure_aware_utc(dt_value: datetime | None) -> datetime | None:
    """
    Ensure a datetime is timezone-aware UTC.

    PyMongo hands back naive datetimes (stored as UTC) unless the client is
    tz_aware, so values read from the database are normalized before they
    are compared with fresh VCS timestamps.
    """
    if dt_value is None:
        return None

    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value.astimezone(timezone.utc)
