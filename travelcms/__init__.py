"""TravelCMS - data-access core for a travel blog and business directory.

This package stores blog posts, categories and tags, directory listings
with reviews, media metadata and the links between posts and listings,
behind plain Python stores over SQLModel.

Example:
    >>> from travelcms import BlogStore, Database, DirectoryStore
    >>>
    >>> db = Database("sqlite:///travelcms.db")
    >>> db.initialize()
    >>> blog = BlogStore(db)
    >>> page = blog.list_posts({"published": True, "limit": 5})
    >>> db.close()
"""

__version__ = "0.1.0"

from travelcms.blog import BlogStore
from travelcms.comments import CommentStore
from travelcms.config import settings
from travelcms.database import Database
from travelcms.directory import DirectoryStore
from travelcms.errors import (
    CategoryInUseError,
    ContentValidationError,
    StaleWriteError,
    StoreError,
    TravelCMSError,
)
from travelcms.integration import LinkStore
from travelcms.media import MediaStore
from travelcms.models import (
    BlogCategory,
    BlogComment,
    BlogPost,
    BlogTag,
    BulkResult,
    DirectoryCategory,
    DirectoryListing,
    DirectoryReview,
    MediaItem,
    Page,
    PostStatus,
    PriceRange,
)
from travelcms.reviews import ReviewStore
from travelcms.search import SearchService

__all__ = [
    # Main components
    "Database",
    "BlogStore",
    "CommentStore",
    "DirectoryStore",
    "ReviewStore",
    "LinkStore",
    "MediaStore",
    "SearchService",
    # Configuration
    "settings",
    # Errors
    "TravelCMSError",
    "ContentValidationError",
    "StaleWriteError",
    "CategoryInUseError",
    "StoreError",
    # Read models
    "BlogPost",
    "BlogCategory",
    "BlogComment",
    "BlogTag",
    "DirectoryCategory",
    "DirectoryListing",
    "DirectoryReview",
    "MediaItem",
    "Page",
    "BulkResult",
    "PostStatus",
    "PriceRange",
]
