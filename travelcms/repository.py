"""Generic repository for type-safe row access.

``Repository[T]`` wraps one SQLModel table inside a session the caller
already opened through :class:`travelcms.database.Database`. It never
commits: writes are flushed so generated ids are visible, and the
surrounding ``Database.transaction()`` decides whether they stick.

Example:
    >>> from travelcms.repository import Repository
    >>> from travelcms.models import BlogTagRow
    >>>
    >>> with db.transaction("tag") as session:
    ...     tags = Repository(session, BlogTagRow)
    ...     tag = tags.get_by_slug("beach")
    ...     if tag is None:
    ...         tag = tags.create(BlogTagRow(name="Beach", slug="beach"))
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=SQLModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Row-level operations for one table.

    Type Parameter:
        T: SQLModel table type (BlogPostRow, DirectoryListingRow, ...)

    Args:
        session: Open session; transaction boundaries belong to the caller
        model: SQLModel table class
    """

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def get(self, entity_id: int) -> T | None:
        """Get a row by primary key, or None."""
        return self.session.get(self.model, entity_id)

    def get_by_slug(self, slug: str) -> T | None:
        """Get a row by its unique slug, or None.

        Raises:
            AttributeError: If the table has no ``slug`` column
        """
        column: Any = getattr(self.model, "slug")
        return self.session.exec(select(self.model).where(column == slug)).first()

    def get_all(self, limit: int = 100, offset: int = 0, order_by: Any = None) -> Sequence[T]:
        """Get rows with simple pagination."""
        stmt = select(self.model)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        return self.session.exec(stmt.limit(limit).offset(offset)).all()

    def create(self, entity: T) -> T:
        """Add a row and flush so its generated id is populated."""
        self.session.add(entity)
        self.session.flush()
        self.session.refresh(entity)
        return entity

    def save(self, entity: T) -> T:
        """Flush changes made to an already loaded row."""
        self.session.add(entity)
        self.session.flush()
        return entity

    def delete(self, entity_id: int) -> bool:
        """Delete a row by primary key.

        Returns:
            True if deleted, False if not found
        """
        entity = self.get(entity_id)
        if entity is None:
            return False
        self.session.delete(entity)
        self.session.flush()
        return True

    def find_by(self, **filters: Any) -> Sequence[T]:
        """Rows matching equality filters on column names.

        Example:
            >>> Repository(session, BlogPostRow).find_by(category_id=3, published=True)
        """
        return self.session.exec(self._filtered(select(self.model), filters)).all()

    def count(self, **filters: Any) -> int:
        """Count rows, optionally restricted by equality filters."""
        stmt = self._filtered(select(func.count()).select_from(self.model), filters)
        return self.session.exec(stmt).one()

    def exists(self, entity_id: int) -> bool:
        return self.get(entity_id) is not None

    def get_or_create(self, defaults: dict[str, Any], **lookup: Any) -> tuple[T, bool]:
        """Return the row matching ``lookup``, creating it from ``lookup | defaults``.

        Returns:
            Tuple of (row, created)
        """
        existing = self.find_by(**lookup)
        if existing:
            return existing[0], False
        return self.create(self.model(**{**defaults, **lookup})), True

    def _filtered(self, stmt: Any, filters: dict[str, Any]) -> Any:
        for key, value in filters.items():
            if not hasattr(self.model, key):
                raise AttributeError(f"{self.model.__name__} has no column '{key}'")
            stmt = stmt.where(getattr(self.model, key) == value)
        return stmt


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["Repository"]
