"""Utility functions for TravelCMS.

Datetime handling (everything is stored as UTC) and small collection
helpers shared by the stores.
"""

import math
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, TypeVar

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]

T = TypeVar("T")


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse an ISO8601 timestamp into a timezone-aware UTC datetime.

    Naive inputs are taken to be UTC already.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Timezone-aware datetime in UTC, or None if input is None or blank

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> parse_datetime("2024-01-15T10:30:00+10:00")
        datetime.datetime(2024, 1, 15, 0, 30, tzinfo=datetime.timezone.utc)
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    if not value.strip():
        return None

    dt = dateutil_parser.isoparse(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the store."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as ISO8601 string with 'Z' suffix.

    Example:
        >>> format_iso(datetime(2024, 1, 15, 10, 30, tzinfo=UTC))
        '2024-01-15T10:30:00Z'
    """
    if dt is None:
        return None
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def page_count(total: int, limit: int) -> int:
    """Number of pages needed to show ``total`` rows ``limit`` at a time."""
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


def unique_in_order(items: Iterable[T]) -> list[T]:
    """Drop repeated items, keeping first occurrences in order.

    Example:
        >>> unique_in_order([3, 1, 3, 2, 1])
        [3, 1, 2]
    """
    seen: set[Any] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def ensure_list(value: Any) -> list[Any]:
    """Ensure value is a list, wrapping if necessary.

    Example:
        >>> ensure_list(42)
        [42]
        >>> ensure_list(None)
        []
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
