"""Media library: metadata for uploaded files.

Uploading bytes is handled elsewhere; this store records what was stored
and removes the file again through a :class:`~travelcms.interfaces.MediaStorage`
when an item is deleted.
"""

from typing import Any, Optional

from sqlmodel import select

from travelcms.config import settings
from travelcms.database import Database
from travelcms.errors import parse_payload
from travelcms.interfaces import LocalMediaStorage, MediaStorage
from travelcms.logging import logger
from travelcms.metrics import track_operation
from travelcms.models import MediaCreate, MediaItem, MediaItemRow, MediaUpdate, Page
from travelcms.query import (
    MEDIA_SORT,
    MediaListOptions,
    build_page,
    count_rows,
    media_filters,
    order_clause,
    resolve_window,
)
from travelcms.repository import Repository
from travelcms.utils import utc_now


class MediaStore:
    """Media item metadata.

    Args:
        db: Initialized persistence gateway
        storage: File storage used on delete (defaults to LocalMediaStorage)
    """

    def __init__(self, db: Database, storage: Optional[MediaStorage] = None):
        self.db = db
        self.storage = storage or LocalMediaStorage()

    def list_media(self, options: MediaListOptions | dict[str, Any] | None = None) -> Page[MediaItem]:
        opts = parse_payload(MediaListOptions, options)
        window = resolve_window(opts.page, opts.limit, settings.media_page_size)
        conditions = media_filters(opts)
        with track_operation("media", "list"), self.db.session("media") as session:
            total = count_rows(session, MediaItemRow, conditions)
            stmt = (
                select(MediaItemRow)
                .order_by(*order_clause(MEDIA_SORT, opts.sort_by, opts.sort_order))
                .offset(window.offset)
                .limit(window.limit)
            )
            if conditions:
                stmt = stmt.where(*conditions)
            items = [MediaItem.model_validate(row) for row in session.exec(stmt).all()]
        return build_page(items, total, window)

    def get_media(self, media_id: int) -> Optional[MediaItem]:
        with self.db.session("media") as session:
            row = session.get(MediaItemRow, media_id)
            return MediaItem.model_validate(row) if row else None

    def create_media(self, payload: MediaCreate | dict[str, Any]) -> MediaItem:
        """Record an uploaded file; ``file_type`` is inferred from the MIME type if absent."""
        data = parse_payload(MediaCreate, payload)
        with track_operation("media", "create"), self.db.transaction("media") as session:
            row = MediaItemRow(**data.model_dump(exclude={"file_type"}), file_type=data.file_type.value)  # type: ignore[union-attr]
            Repository(session, MediaItemRow).create(row)
            item = MediaItem.model_validate(row)
        logger.info(f"✅ Added media {item.id} ({item.original_filename}, {item.file_size} bytes)")
        return item

    def update_media(self, media_id: int, patch: MediaUpdate | dict[str, Any]) -> Optional[MediaItem]:
        """Change ``alt_text`` and/or ``caption``."""
        data = parse_payload(MediaUpdate, patch)
        with track_operation("media", "update"), self.db.transaction("media") as session:
            row = session.get(MediaItemRow, media_id)
            if row is None:
                return None
            for name, value in data.provided().items():
                setattr(row, name, value)
            row.updated_at = utc_now()
            Repository(session, MediaItemRow).save(row)
            return MediaItem.model_validate(row)

    def delete_media(self, media_id: int) -> bool:
        """Delete the row, then the stored file.

        A file that cannot be removed is logged and left behind; the row
        deletion stands.
        """
        with track_operation("media", "delete"), self.db.transaction("media") as session:
            row = session.get(MediaItemRow, media_id)
            if row is None:
                return False
            file_path = row.file_path
            session.delete(row)

        try:
            self.storage.delete(file_path)
        except (OSError, ValueError) as exc:
            logger.warning(f"Media {media_id} deleted but file {file_path} was not removed: {exc}")
        return True


__all__ = ["MediaStore"]
