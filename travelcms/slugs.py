"""URL slug generation and per-table uniqueness.

:func:`generate_slug` is pure. Collision handling lives in
:func:`unique_slug`, which every slug-owning entity uses on create and on
slug change: a taken slug gets a time-derived 4-digit suffix instead of
failing the write.

Example:
    >>> generate_slug("Beach Guides")
    'beach-guides'
    >>> generate_slug("  Café & Bar -- Noosa!  ")
    'caf-bar-noosa'
"""

import re
import time
from typing import Any, Optional

from sqlmodel import Session, SQLModel, select

from travelcms.errors import ContentValidationError

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_SEPARATOR_RUNS = re.compile(r"[\s-]+")


def generate_slug(name: str) -> str:
    """Derive a URL-safe identifier from a display name.

    Lower-cases, drops everything outside ``[a-z0-9\\s-]``, collapses
    whitespace/hyphen runs into single hyphens and trims hyphens at the
    ends. An empty or symbol-only name yields ``""``.

    Args:
        name: Display name

    Returns:
        Slug containing only ``a-z``, ``0-9`` and single inner hyphens
    """
    slug = _INVALID_CHARS.sub("", (name or "").lower())
    slug = _SEPARATOR_RUNS.sub("-", slug)
    return slug.strip("-")


def slug_suffix(now_ms: Optional[int] = None) -> str:
    """Last four digits of the epoch time in milliseconds."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return str(now_ms)[-4:]


def slug_exists(
    session: Session,
    model: type[SQLModel],
    slug: str,
    exclude_id: Optional[int] = None,
) -> bool:
    """Check whether ``slug`` is used by a row other than ``exclude_id``."""
    column: Any = model.slug  # type: ignore[attr-defined]
    stmt = select(model.id).where(column == slug)  # type: ignore[attr-defined]
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)  # type: ignore[attr-defined]
    return session.exec(stmt).first() is not None


def unique_slug(
    session: Session,
    model: type[SQLModel],
    base: str,
    exclude_id: Optional[int] = None,
) -> str:
    """Return ``base`` or a suffixed variant not yet used in ``model``'s table.

    Args:
        session: Open session (the check runs inside the caller's transaction)
        model: Table model with ``id`` and ``slug`` columns
        base: Desired slug
        exclude_id: Row being updated, which may keep its own slug

    Returns:
        ``base``, else ``base-NNNN``, else ``base-NNNN-2``, ``base-NNNN-3``...
    """
    if not slug_exists(session, model, base, exclude_id):
        return base

    candidate = f"{base}-{slug_suffix()}"
    stem, counter = candidate, 2
    while slug_exists(session, model, candidate, exclude_id):
        candidate = f"{stem}-{counter}"
        counter += 1
    return candidate


def assign_slug(
    session: Session,
    model: type[SQLModel],
    requested: Optional[str],
    name: str,
    exclude_id: Optional[int] = None,
) -> str:
    """Slug to store for a create or slug change.

    Uses ``requested`` when given, otherwise derives one from ``name``,
    then makes it unique within ``model``'s table.

    Raises:
        ContentValidationError: If no slug can be derived
    """
    base = requested or generate_slug(name)
    if not base:
        raise ContentValidationError(f"slug: cannot derive a slug from '{name}'")
    return unique_slug(session, model, base, exclude_id)


__all__ = ["generate_slug", "slug_suffix", "slug_exists", "unique_slug", "assign_slug"]
