"""Exception hierarchy for TravelCMS.

Not-found is never an exception: store methods return ``None`` or
``False``. Everything else a caller has to react to derives from
:class:`TravelCMSError`, whose ``code`` mirrors the HTTP status the route
layer is expected to answer with.
"""

from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class TravelCMSError(Exception):
    """Base exception for content store failures."""

    def __init__(self, message: str, code: int = 500, payload: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self) -> dict[str, Any]:
        rv = dict(self.payload or ())
        rv["message"] = self.message
        rv["code"] = self.code
        rv["success"] = False
        return rv


class ContentValidationError(TravelCMSError):
    """Rejected input: missing field, bad format, out-of-range value."""

    def __init__(self, message: str = "Invalid data", payload: Optional[dict[str, Any]] = None):
        super().__init__(message, code=400, payload=payload)


class StaleWriteError(TravelCMSError):
    """Row changed since the caller read it (optimistic lock mismatch)."""

    def __init__(self, entity: str, entity_id: int, expected: int, actual: int):
        super().__init__(
            f"{entity} {entity_id} was modified by someone else "
            f"(expected version {expected}, found {actual})",
            code=409,
            payload={"expected_version": expected, "current_version": actual},
        )


class CategoryInUseError(TravelCMSError):
    """Directory category still referenced by listings."""

    def __init__(self, category_id: int, listing_count: int):
        super().__init__(
            f"Directory category {category_id} still has {listing_count} listing(s)",
            code=409,
            payload={"listing_count": listing_count},
        )


class StoreError(TravelCMSError):
    """Database failure surfaced through the persistence gateway."""

    def __init__(self, message: str = "Database operation failed", payload: Optional[dict[str, Any]] = None):
        super().__init__(message, code=500, payload=payload)


def from_pydantic(exc: ValidationError) -> ContentValidationError:
    """Convert a pydantic ValidationError into a human-readable rejection.

    Args:
        exc: Error raised while parsing a payload model

    Returns:
        ContentValidationError whose message names each offending field,
        e.g. ``"rating: Input should be less than or equal to 5"``
    """
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "payload"
        message = error.get("msg", "invalid value")
        # pydantic prefixes custom ValueError messages
        message = message.removeprefix("Value error, ")
        problems.append(f"{field}: {message}")
    return ContentValidationError("; ".join(problems), payload={"errors": problems})


def parse_payload(model: type[PayloadT], data: Any) -> PayloadT:
    """Coerce a mapping (or an already parsed model) into ``model``.

    Raises:
        ContentValidationError: If pydantic rejects the data
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data or {})
    except ValidationError as exc:
        raise from_pydantic(exc) from exc


__all__ = [
    "TravelCMSError",
    "ContentValidationError",
    "StaleWriteError",
    "CategoryInUseError",
    "StoreError",
    "from_pydantic",
    "parse_payload",
]
