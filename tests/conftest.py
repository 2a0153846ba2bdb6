"""Pytest configuration and shared fixtures for TravelCMS tests."""

import json
import os
import sys
import tempfile

# Select the testing profile before travelcms.config builds its settings
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="travelcms-test-"))

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from loguru import logger

from travelcms.blog import BlogStore
from travelcms.comments import CommentStore
from travelcms.database import Database
from travelcms.directory import DirectoryStore
from travelcms.integration import LinkStore
from travelcms.logging import serialize
from travelcms.media import MediaStore
from travelcms.metrics import reset_metrics
from travelcms.models import BlogCategory, BlogPost, BlogTag, DirectoryCategory, DirectoryListing
from travelcms.reviews import ReviewStore
from travelcms.search import SearchService

# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure loguru for tests to avoid I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
        enqueue=True,
    )
    yield
    logger.remove()


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
        enqueue=True,
    )
    yield
    logger.remove()


@pytest.fixture(autouse=True)
def clean_metrics():
    """Start every test from empty Prometheus samples."""
    reset_metrics()
    yield


@pytest.fixture
def json_logs() -> Generator[list[dict[str, Any]], None, None]:
    """Capture INFO+ records as JSON payloads, serialized when emitted."""
    payloads: list[dict[str, Any]] = []
    handler_id = logger.add(
        lambda message: payloads.append(json.loads(serialize(message.record))), level="INFO"
    )
    yield payloads
    logger.remove(handler_id)


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Capture log messages at WARNING and above."""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="WARNING")
    yield messages
    logger.remove(handler_id)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Path for a per-test SQLite database file."""
    return tmp_path / "travelcms_test.db"


@pytest.fixture
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Initialized file-backed database, disposed after the test."""
    database = Database(f"sqlite:///{temp_db_path}")
    database.initialize()
    yield database
    database.close()


class RecordingStorage:
    """MediaStorage double that records deletions."""

    def __init__(self, fail_with: Exception | None = None):
        self.deleted: list[str] = []
        self.fail_with = fail_with

    def delete(self, file_path: str) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.deleted.append(file_path)
        return True

    def exists(self, file_path: str) -> bool:
        return file_path not in self.deleted


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def blog(db: Database) -> BlogStore:
    return BlogStore(db)


@pytest.fixture
def directory(db: Database) -> DirectoryStore:
    return DirectoryStore(db)


@pytest.fixture
def comments(db: Database) -> CommentStore:
    return CommentStore(db)


@pytest.fixture
def reviews(db: Database) -> ReviewStore:
    return ReviewStore(db)


@pytest.fixture
def links(db: Database) -> LinkStore:
    return LinkStore(db)


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def failing_storage() -> RecordingStorage:
    """Storage whose deletes fail like a read-only mount."""
    return RecordingStorage(fail_with=PermissionError("read-only file system"))


@pytest.fixture
def media(db: Database, storage: RecordingStorage) -> MediaStore:
    return MediaStore(db, storage=storage)


@pytest.fixture
def search(db: Database) -> SearchService:
    return SearchService(db)


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def blog_category(blog: BlogStore) -> BlogCategory:
    return blog.create_category({"name": "Destinations", "description": "Places to go"})


@pytest.fixture
def beach_tag(blog: BlogStore) -> BlogTag:
    return blog.create_tag({"name": "Beach"})


@pytest.fixture
def wildlife_tag(blog: BlogStore) -> BlogTag:
    return blog.create_tag({"name": "Wildlife"})


@pytest.fixture
def make_post(blog: BlogStore) -> Callable[..., BlogPost]:
    """Factory creating posts with sensible defaults."""

    def _make(**overrides: Any) -> BlogPost:
        payload: dict[str, Any] = {
            "title": "Sunrise at Uluru",
            "content": "Arrive an hour early and bring a jacket.",
        }
        payload.update(overrides)
        return blog.create_post(payload)

    return _make


@pytest.fixture
def directory_category(directory: DirectoryStore) -> DirectoryCategory:
    return directory.create_category({"name": "Food & Dining"})


@pytest.fixture
def make_listing(
    directory: DirectoryStore,
    directory_category: DirectoryCategory,
) -> Callable[..., DirectoryListing]:
    """Factory creating listings in the sample category."""

    def _make(**overrides: Any) -> DirectoryListing:
        payload: dict[str, Any] = {
            "name": "Reef Cafe",
            "category_id": directory_category.id,
            "location": "Cairns QLD",
            "description": "Coffee and breakfast on the esplanade",
        }
        payload.update(overrides)
        return directory.create_listing(payload)

    return _make


@pytest.fixture
def listing(make_listing: Callable[..., DirectoryListing]) -> DirectoryListing:
    return make_listing()


@pytest.fixture
def valid_review() -> dict[str, Any]:
    return {
        "user_id": "user-17",
        "user_name": "Sam",
        "rating": 4,
        "content": "Great coffee and friendly staff.",
    }
