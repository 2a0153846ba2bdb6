"""Structured-field codec for JSON-valued columns.

``hours``, ``images`` and ``location_data`` are stored as UTF-8 JSON text.
Decoding is deliberately forgiving: values that are already decoded pass
through untouched and malformed text degrades to an empty container, so
rows written by older code never break a read.

Example:
    >>> encode({"monday": "09:00-17:00"})
    '{"monday":"09:00-17:00"}'
    >>> decode('{"monday": "09:00-17:00"}')
    {'monday': '09:00-17:00'}
    >>> decode("{not json", fallback=list)
    []
"""

import json
from collections.abc import Callable, Mapping
from typing import Any, Optional

from travelcms.logging import logger
from travelcms.types import BusinessHours, Coordinates, ImageData, LocationData
from travelcms.utils import ensure_list


def encode(value: Any) -> Optional[str]:
    """Serialize a structured value for storage.

    Args:
        value: dict/list/scalar to store, an already-encoded string, or None

    Returns:
        JSON text, the input string unchanged, or None for absent values
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def decode(raw: Any, fallback: Callable[[], Any] = dict) -> Any:
    """Deserialize a stored structured value.

    Args:
        raw: Stored text, or a value a native JSON column already decoded
        fallback: Factory for the value used when ``raw`` cannot be parsed

    Returns:
        Decoded value; ``raw`` itself when it is not a string; None for None
    """
    if raw is None:
        return None
    if not isinstance(raw, (str, bytes)):
        return raw
    if not raw.strip():
        return fallback()
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning(f"Discarding malformed JSON field value: {exc}")
        return fallback()


def decode_hours(raw: Any) -> BusinessHours:
    """Decode opening hours, always returning a mapping."""
    value = decode(raw, fallback=dict)
    if not isinstance(value, Mapping):
        if value is not None:
            logger.warning(f"Opening hours are not a mapping: {type(value).__name__}")
        return {}
    hours: dict[str, str] = {}
    for day, text in value.items():
        if isinstance(text, str):
            hours[str(day)] = text
        else:
            logger.warning(f"Dropping opening hours for {day}: {type(text).__name__} is not text")
    return hours  # type: ignore[return-value]


def decode_images(raw: Any) -> list[ImageData]:
    """Decode the ordered image list, always returning a list."""
    value = decode(raw, fallback=list)
    if isinstance(value, Mapping):
        return ensure_list(dict(value))
    if not isinstance(value, list):
        return []
    return value


def decode_location(raw: Any) -> Optional[LocationData]:
    """Decode structured location data; None when absent or unusable."""
    value = decode(raw, fallback=dict)
    if not isinstance(value, Mapping) or not value:
        return None
    return dict(value)  # type: ignore[return-value]


def coordinates_of(location: Optional[Mapping[str, Any]]) -> Optional[Coordinates]:
    """Derive the ``{lat, lng}`` view when both parts are present."""
    if not location:
        return None
    lat, lng = location.get("lat"), location.get("lng")
    if lat is None or lng is None:
        return None
    try:
        return {"lat": float(lat), "lng": float(lng)}
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unusable coordinates: lat={lat!r} lng={lng!r}")
        return None


def normalize_location(
    location: Optional[str],
    location_data: Any,
    prefer_address: bool = False,
) -> Optional[str]:
    """Pick the free-text location for a listing write.

    The address inside ``location_data`` fills in a missing ``location``;
    with ``prefer_address`` (used on update) it replaces it outright.

    Args:
        location: Free-text location supplied by the caller
        location_data: Structured location (mapping or encoded text)
        prefer_address: Let the structured address win over ``location``

    Returns:
        Location text to persist
    """
    data = decode_location(location_data)
    address = (data or {}).get("address")
    if address and (prefer_address or not location):
        return address
    return location


__all__ = [
    "encode",
    "normalize_location",
    "decode",
    "decode_hours",
    "decode_images",
    "decode_location",
    "coordinates_of",
]
