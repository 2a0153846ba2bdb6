"""Protocol interfaces for collaborators outside the data-access core.

Using @runtime_checkable Protocol allows structural subtyping: an upload
service, an object-store client or a test double satisfies
:class:`MediaStorage` just by having the right methods.

Example:
    >>> class RecordingStorage:
    ...     def __init__(self):
    ...         self.deleted = []
    ...     def delete(self, file_path: str) -> bool:
    ...         self.deleted.append(file_path)
    ...         return True
    ...     def exists(self, file_path: str) -> bool:
    ...         return file_path not in self.deleted
    >>> isinstance(RecordingStorage(), MediaStorage)
    True
"""

from pathlib import Path
from typing import Protocol, runtime_checkable

from travelcms.config import settings
from travelcms.logging import logger


@runtime_checkable
class MediaStorage(Protocol):
    """Where uploaded media bytes live.

    Writing files belongs to the upload collaborator; the media library
    only needs to remove a stored file once its row is gone.
    """

    def delete(self, file_path: str) -> bool:
        """Remove a stored file.

        Args:
            file_path: Path as recorded on the media row

        Returns:
            True if a file was removed, False if there was nothing to remove

        Raises:
            OSError: If the file exists but cannot be removed
        """
        ...

    def exists(self, file_path: str) -> bool:
        """Whether a stored file is present."""
        ...


class LocalMediaStorage:
    """Media files on the local filesystem under a root directory.

    Args:
        root: Upload directory (defaults to settings.media_root)
    """

    def __init__(self, root: Path | None = None):
        self.root = Path(root or settings.media_root).expanduser()

    def resolve(self, file_path: str) -> Path:
        """Absolute path for a stored ``file_path``, confined to the root.

        Raises:
            ValueError: If the path escapes the media root
        """
        candidate = (self.root / file_path.lstrip("/")).resolve()
        root = self.root.resolve()
        if candidate != root and root not in candidate.parents:
            raise ValueError(f"Media path escapes media root: {file_path}")
        return candidate

    def delete(self, file_path: str) -> bool:
        path = self.resolve(file_path)
        if not path.is_file():
            logger.debug(f"No media file to delete at {path}")
            return False
        path.unlink()
        logger.debug(f"Deleted media file {path}")
        return True

    def exists(self, file_path: str) -> bool:
        return self.resolve(file_path).is_file()


__all__ = ["MediaStorage", "LocalMediaStorage"]
