"""Persistence gateway for TravelCMS.

This module owns the SQLAlchemy engine and hands out scoped sessions:
- Engine construction from an explicit URL (SQLite by default)
- ``PRAGMA foreign_keys`` and WAL mode on SQLite connections
- Scoped sessions that always release their connection
- Transactions that commit on success and roll back on any error
- Store errors logged, counted and re-raised as StoreError

Example:
    >>> from travelcms.database import Database
    >>>
    >>> db = Database("sqlite:///travelcms.db")
    >>> db.initialize()
    >>>
    >>> with db.transaction("post") as session:
    ...     session.add(BlogPostRow(title="Reef", slug="reef", content="..."))
    >>>
    >>> db.close()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event, func
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from travelcms import models
from travelcms.config import settings
from travelcms.errors import StoreError
from travelcms.logging import entity_scope, logger
from travelcms.metrics import open_sessions, store_errors_total

# Tables reported by ``Database.table_counts`` (CLI ``status``)
COUNTED_TABLES: dict[str, type[SQLModel]] = {
    "users": models.UserRow,
    "blog_categories": models.BlogCategoryRow,
    "blog_tags": models.BlogTagRow,
    "blog_posts": models.BlogPostRow,
    "blog_comments": models.BlogCommentRow,
    "directory_categories": models.DirectoryCategoryRow,
    "directory_listings": models.DirectoryListingRow,
    "directory_reviews": models.DirectoryReviewRow,
    "media_items": models.MediaItemRow,
    "blog_directory_links": models.BlogDirectoryLinkRow,
}


# =============================================================================
# Database
# =============================================================================


class Database:
    """Owns the engine and the scoped acquisition of sessions.

    Construct one per process, call :meth:`initialize` at startup and
    :meth:`close` at shutdown. Stores receive the instance and open one
    session or transaction per operation.

    Args:
        url: SQLAlchemy database URL (defaults to settings.database_url)
        echo: Echo SQL statements (defaults to settings.echo_sql)

    Example:
        >>> db = Database("sqlite:///:memory:")
        >>> db.initialize()
        >>> with db.session() as session:
        ...     session.exec(select(BlogPostRow)).all()
        []
    """

    def __init__(self, url: str | None = None, echo: bool | None = None):
        self.url = url or settings.database_url
        self.echo = settings.echo_sql if echo is None else echo
        self._engine: Engine | None = None

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.url).get_backend_name() == "sqlite"

    @property
    def is_memory(self) -> bool:
        database = make_url(self.url).database
        return self.is_sqlite and database in (None, "", ":memory:")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not initialized")
        return self._engine

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    def initialize(self) -> None:
        """Create the engine and all tables.

        This method:
        1. Creates the SQLite parent directory if needed
        2. Builds a pooled engine (a single static connection for :memory:)
        3. Enables foreign keys (and WAL for SQLite files) on every connection
        4. Creates all tables from SQLModel metadata
        """
        if self._engine is not None:
            return

        engine_args: dict[str, Any] = {"echo": self.echo}
        if self.is_sqlite:
            engine_args["connect_args"] = {"check_same_thread": False}
            if self.is_memory:
                engine_args["poolclass"] = StaticPool
            else:
                Path(make_url(self.url).database).parent.mkdir(parents=True, exist_ok=True)
        if "poolclass" not in engine_args:
            engine_args["pool_size"] = settings.pool_size
            engine_args["pool_timeout"] = settings.pool_timeout

        self._engine = create_engine(self.url, **engine_args)
        if self.is_sqlite:
            event.listen(self._engine, "connect", _sqlite_pragmas(wal=not self.is_memory))

        self.create_all()
        logger.info(f"✅ Database initialized at {settings.redact_url(self.url)}")

    def create_all(self) -> None:
        """Create any missing tables."""
        SQLModel.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop every TravelCMS table (used by ``travelcms init --force``)."""
        SQLModel.metadata.drop_all(self.engine)
        logger.warning("Dropped all tables")

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.debug("Database engine disposed")

    # =========================================================================
    # Scoped Acquisition
    # =========================================================================

    @contextmanager
    def session(self, entity: str = "store") -> Iterator[Session]:
        """Open a session that is always closed on exit.

        Args:
            entity: Label used in logs and the ``store_errors_total`` metric

        Raises:
            StoreError: If SQLAlchemy raises inside the block
        """
        session = Session(self.engine, expire_on_commit=False)
        open_sessions.inc()
        try:
            with entity_scope(entity):
                yield session
        except SQLAlchemyError as exc:
            store_errors_total.labels(entity=entity).inc()
            logger.bind(entity=entity).error(f"Store error: {exc.__class__.__name__}: {exc}")
            raise StoreError(
                f"Database operation on {entity} failed",
                payload={"entity": entity, "error": exc.__class__.__name__},
            ) from exc
        finally:
            session.close()
            open_sessions.dec()

    @contextmanager
    def transaction(self, entity: str = "store") -> Iterator[Session]:
        """Open a session that commits on success and rolls back on error.

        Example:
            >>> with db.transaction("listing") as session:
            ...     session.add(row)
            # committed here, or rolled back if the block raised
        """
        with self.session(entity) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    # =========================================================================
    # Introspection
    # =========================================================================

    def table_counts(self) -> dict[str, int]:
        """Row counts for the main tables."""
        with self.session("status") as session:
            return {
                name: session.exec(select(func.count()).select_from(model)).one()
                for name, model in COUNTED_TABLES.items()
            }


def _sqlite_pragmas(wal: bool):
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        if wal:
            cursor.execute("PRAGMA journal_mode = WAL")
            cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.close()

    return on_connect


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["Database", "COUNTED_TABLES"]
