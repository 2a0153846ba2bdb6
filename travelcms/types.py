"""Type definitions for the JSON-valued listing columns.

These TypedDicts describe what :mod:`travelcms.codec` reads and writes for
``hours``, ``images`` and ``location_data``, giving IDE autocomplete on the
decoded values.

Example:
    >>> from travelcms.types import BusinessHours, ImageData
    >>> hours: BusinessHours = {"monday": "09:00-17:00", "sunday": "Closed"}
    >>> image: ImageData = {"url": "/uploads/reef.jpg", "name": "Reef"}
"""

from typing_extensions import NotRequired, Required, TypedDict

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

CLOSED = "Closed"


class BusinessHours(TypedDict, total=False):
    """Opening hours keyed by lower-case weekday.

    Each value is free text such as ``"9:00 AM - 5:00 PM"`` or
    ``"Closed"``. Missing days are unknown, not closed.
    """

    monday: str
    tuesday: str
    wednesday: str
    thursday: str
    friday: str
    saturday: str
    sunday: str


class ImageData(TypedDict, total=False):
    """One entry of a listing's ordered image list.

    Attributes:
        url: Required image URL or media path
        name: Optional display name / alt text
    """

    url: Required[str]
    name: NotRequired[str | None]


class LocationData(TypedDict, total=False):
    """Structured location of a directory listing.

    Attributes:
        lat: Latitude in decimal degrees
        lng: Longitude in decimal degrees
        address: Formatted street address
    """

    lat: float
    lng: float
    address: str


class Coordinates(TypedDict):
    """Denormalized ``{lat, lng}`` view derived from LocationData."""

    lat: float
    lng: float


__all__ = [
    "WEEKDAYS",
    "CLOSED",
    "BusinessHours",
    "ImageData",
    "LocationData",
    "Coordinates",
]
