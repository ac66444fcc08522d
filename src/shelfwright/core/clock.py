# ABOUTME: Clock abstraction and timestamp formatting for both database stores.
# ABOUTME: Engines take a Clock so tests can pin "now" to a fixed instant.

from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

# Calibre stores timezone-aware UTC timestamps; Calibre-Web stores naive ones.
_COMPANION_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

# Calibre's sentinel for "no publication date".
UNDEFINED_DATE = datetime(101, 1, 1, tzinfo=UTC)


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Clock backed by the system's UTC time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock that always returns the same instant. Used by tests."""

    def __init__(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant


def catalog_timestamp(dt: datetime) -> str:
    """Format a datetime the way Calibre writes it: UTC, microseconds, offset."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(sep=" ", timespec="microseconds")


def companion_timestamp(dt: datetime) -> str:
    """Format a datetime the way Calibre-Web writes it: naive, microseconds."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)
    return dt.strftime(_COMPANION_FORMAT)


def parse_catalog_timestamp(value: str | None) -> datetime | None:
    """Parse a stored catalog timestamp. Naive values are taken as UTC.

    Returns None for missing or unparseable values and for Calibre's
    undefined-date sentinel.
    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    if dt.year <= UNDEFINED_DATE.year:
        return None
    return dt.astimezone(UTC)
