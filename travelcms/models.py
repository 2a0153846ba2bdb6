"""Data models for TravelCMS.

Models are organized into four sections:
1. Closed variants (StrEnum) for status-like columns
2. SQLModel tables for database persistence
3. Pydantic payload models for create and patch calls
4. Pydantic read models returned to callers

Patch models distinguish an omitted field from an explicit ``None``
through ``model_fields_set``; stores only write fields that were set.
"""

import re
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Generic, Optional, TypeVar
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ConfigDict, Field as PydanticField, field_validator, model_validator
from sqlalchemy import CheckConstraint, Column, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from travelcms.codec import coordinates_of, decode, decode_hours, decode_images, decode_location
from travelcms.config import settings
from travelcms.slugs import generate_slug
from travelcms.types import CLOSED, WEEKDAYS, Coordinates
from travelcms.utils import ensure_utc, parse_datetime, utc_now


# =============================================================================
# Section 1: Closed Variants
# =============================================================================


class PostStatus(StrEnum):
    """Publication state of a blog post."""

    DRAFT = "draft"
    PUBLISHED = "published"
    SCHEDULED = "scheduled"


class PriceRange(StrEnum):
    """Directory listing price band."""

    BUDGET = "$"
    MODERATE = "$$"
    EXPENSIVE = "$$$"
    LUXURY = "$$$$"


class FileType(StrEnum):
    """Coarse media classification."""

    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"

    @classmethod
    def from_mime(cls, mime_type: str) -> "FileType":
        """Classify a MIME type (``image/png`` -> IMAGE)."""
        major = (mime_type or "").split("/", 1)[0].lower()
        if major == "image":
            return cls.IMAGE
        if major == "video":
            return cls.VIDEO
        return cls.DOCUMENT


class SortDirection(StrEnum):
    ASC = "ASC"
    DESC = "DESC"


class SearchScope(StrEnum):
    """Which halves of the content a search covers."""

    ALL = "all"
    BLOG = "blog"
    DIRECTORY = "directory"


class ReportStatus(StrEnum):
    """Moderation state of a comment report."""

    PENDING = "pending"
    REVIEWED = "reviewed"


# =============================================================================
# Section 2: SQLModel Tables for Database Persistence
# =============================================================================


class UserRow(SQLModel, table=True):
    """Author account referenced by blog posts.

    Authentication lives outside this package; only what is needed to
    show an author name is stored.
    """

    __tablename__ = "users"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: Optional[str] = Field(default=None, unique=True)
    created_at: datetime = Field(default_factory=utc_now)


class BlogCategoryRow(SQLModel, table=True):
    """Blog category. Deleting one leaves its posts uncategorized."""

    __tablename__ = "blog_categories"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    slug: str = Field(max_length=150, unique=True, index=True)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BlogTagRow(SQLModel, table=True):
    """Blog tag, linked to posts through BlogPostTagLink."""

    __tablename__ = "blog_tags"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    slug: str = Field(max_length=150, unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)


class BlogPostRow(SQLModel, table=True):
    """Persisted blog post.

    Attributes:
        published: True once the post is publicly visible
        published_at: Publication time; a future value while scheduled
        status: PostStatus value (draft, published, scheduled)
        views_count: Public view counter, only ever incremented
        version: Optimistic-lock counter bumped on every update
    """

    __tablename__ = "blog_posts"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    slug: str = Field(max_length=300, unique=True, index=True)
    content: str = Field(sa_column=Column(Text, nullable=False))
    excerpt: Optional[str] = Field(default=None, sa_column=Column(Text))
    featured_image: Optional[str] = Field(default=None, max_length=255)
    author_id: Optional[int] = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL", index=True
    )
    category_id: Optional[int] = Field(
        default=None, foreign_key="blog_categories.id", ondelete="SET NULL", index=True
    )
    published: bool = Field(default=False, index=True)
    published_at: Optional[datetime] = Field(default=None, index=True)
    status: str = Field(default=PostStatus.DRAFT.value, max_length=20, index=True)
    views_count: int = Field(default=0)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    meta_title: Optional[str] = Field(default=None, max_length=255)
    meta_description: Optional[str] = Field(default=None, sa_column=Column(Text))


class BlogPostTagLink(SQLModel, table=True):
    """Link table between posts and tags (many-to-many)."""

    __tablename__ = "blog_post_tags"  # type: ignore[assignment]

    post_id: int = Field(primary_key=True, foreign_key="blog_posts.id", ondelete="CASCADE")
    tag_id: int = Field(primary_key=True, foreign_key="blog_tags.id", ondelete="CASCADE", index=True)


class BlogCommentRow(SQLModel, table=True):
    """Visitor comment on a post; ``parent_id`` set on replies.

    Replies always point at a top-level comment, so threads are one level
    deep. Removed with the post.
    """

    __tablename__ = "blog_comments"  # type: ignore[assignment]
    __table_args__ = (CheckConstraint("likes >= 0", name="ck_blog_comments_likes"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key="blog_posts.id", ondelete="CASCADE", index=True)
    parent_id: Optional[int] = Field(
        default=None, foreign_key="blog_comments.id", ondelete="CASCADE", index=True
    )
    user_name: str = Field(max_length=100)
    user_email: str = Field(max_length=255)
    content: str = Field(sa_column=Column(Text, nullable=False))
    likes: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)


class BlogCommentReportRow(SQLModel, table=True):
    """Moderation report against a comment."""

    __tablename__ = "blog_comment_reports"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    comment_id: int = Field(foreign_key="blog_comments.id", ondelete="CASCADE", index=True)
    reason: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default=ReportStatus.PENDING.value, max_length=20, index=True)
    reported_at: datetime = Field(default_factory=utc_now)


class DirectoryCategoryRow(SQLModel, table=True):
    """Directory category; every listing belongs to exactly one."""

    __tablename__ = "directory_categories"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    slug: str = Field(max_length=150, unique=True, index=True)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class DirectoryListingRow(SQLModel, table=True):
    """Persisted directory listing.

    ``location_data``, ``hours`` and ``images`` hold JSON text written by
    :func:`travelcms.codec.encode`.
    """

    __tablename__ = "directory_listings"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    slug: str = Field(max_length=300, unique=True, index=True)
    category_id: int = Field(foreign_key="directory_categories.id", index=True)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    location: Optional[str] = Field(default=None, max_length=255, index=True)
    location_data: Optional[str] = Field(default=None, sa_column=Column(Text))
    website: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    price_range: Optional[str] = Field(default=None, max_length=4)
    hours: Optional[str] = Field(default=None, sa_column=Column(Text))
    images: Optional[str] = Field(default=None, sa_column=Column(Text))
    featured: bool = Field(default=False, index=True)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class DirectoryReviewRow(SQLModel, table=True):
    """Visitor review of a listing, removed with the listing."""

    __tablename__ = "directory_reviews"  # type: ignore[assignment]
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_directory_reviews_rating"),
        CheckConstraint("helpful_count >= 0", name="ck_directory_reviews_helpful"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    listing_id: int = Field(foreign_key="directory_listings.id", ondelete="CASCADE", index=True)
    user_id: str
    user_name: str
    rating: int
    content: str = Field(sa_column=Column(Text, nullable=False))
    helpful_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None


class DirectoryReviewResponseRow(SQLModel, table=True):
    """Owner response to a review; at most one per review."""

    __tablename__ = "directory_review_responses"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    review_id: int = Field(foreign_key="directory_reviews.id", ondelete="CASCADE", unique=True)
    content: str = Field(sa_column=Column(Text, nullable=False))
    respondent_name: str
    created_at: datetime = Field(default_factory=utc_now)


class DirectoryReviewReportRow(SQLModel, table=True):
    """Append-only moderation report against a review."""

    __tablename__ = "directory_review_reports"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    review_id: int = Field(foreign_key="directory_reviews.id", ondelete="CASCADE", index=True)
    user_id: str
    reason: Optional[str] = Field(default=None, sa_column=Column(Text))
    reported_at: datetime = Field(default_factory=utc_now)


class MediaItemRow(SQLModel, table=True):
    """Uploaded file metadata; ``file_path`` is relative to the media root."""

    __tablename__ = "media_items"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    filename: str = Field(max_length=255)
    original_filename: str = Field(max_length=255)
    file_path: str = Field(max_length=255)
    file_size: int
    file_type: str = Field(max_length=50, index=True)
    mime_type: str = Field(max_length=100)
    width: Optional[int] = None
    height: Optional[int] = None
    alt_text: Optional[str] = Field(default=None, sa_column=Column(Text))
    caption: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BlogDirectoryLinkRow(SQLModel, table=True):
    """Cross link between a blog post and a directory listing."""

    __tablename__ = "blog_directory_links"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("blog_post_id", "directory_listing_id", name="uq_blog_directory_link"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    blog_post_id: int = Field(foreign_key="blog_posts.id", ondelete="CASCADE", index=True)
    directory_listing_id: int = Field(
        foreign_key="directory_listings.id", ondelete="CASCADE", index=True
    )
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Section 3: Payload Models
# =============================================================================


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[0-9][0-9 ().-]{4,19}$")


def _check_email(v: Optional[str]) -> Optional[str]:
    if v and not _EMAIL_RE.match(v):
        raise ValueError(f"'{v}' is not a valid email address")
    return v or None


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v and not _PHONE_RE.match(v):
        raise ValueError(f"'{v}' is not a valid phone number")
    return v or None


def _check_url(v: Optional[str]) -> Optional[str]:
    if not v:
        return None
    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"'{v}' is not a valid http(s) URL")
    return v


def _check_slug(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if v != generate_slug(v):
        raise ValueError("slug may only contain lowercase letters, digits and single hyphens")
    return v


Slug = Annotated[str, AfterValidator(_check_slug)]
Email = Annotated[str, AfterValidator(_check_email)]
Phone = Annotated[str, AfterValidator(_check_phone)]
WebURL = Annotated[str, AfterValidator(_check_url)]


class PayloadModel(BaseModel):
    """Base for inbound payloads: trims strings, ignores unknown keys."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    def provided(self, *exclude: str) -> dict[str, Any]:
        """Fields the caller explicitly set, minus ``exclude``."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name not in exclude
        }


class CategoryCreate(PayloadModel):
    """New blog or directory category."""

    name: str = PydanticField(min_length=1, max_length=100)
    slug: Optional[Slug] = PydanticField(default=None, max_length=150)
    description: Optional[str] = None


class CategoryUpdate(PayloadModel):
    """Partial category update."""

    name: Optional[str] = PydanticField(default=None, min_length=1, max_length=100)
    slug: Optional[Slug] = PydanticField(default=None, max_length=150)
    description: Optional[str] = None


class TagCreate(PayloadModel):
    """New blog tag."""

    name: str = PydanticField(min_length=1, max_length=100)
    slug: Optional[Slug] = PydanticField(default=None, max_length=150)


class TagUpdate(PayloadModel):
    """Partial tag update."""

    name: Optional[str] = PydanticField(default=None, min_length=1, max_length=100)
    slug: Optional[Slug] = PydanticField(default=None, max_length=150)


class AuthorCreate(PayloadModel):
    """New author record."""

    name: str = PydanticField(min_length=1, max_length=255)
    email: Optional[Email] = None


class _PublicationFields(PayloadModel):
    """Publication intent shared by post create and update payloads."""

    status: Optional[PostStatus] = None
    publish_date: Optional[datetime] = None
    published: Optional[bool] = None

    @field_validator("publish_date", mode="before")
    @classmethod
    def _parse_publish_date(cls, v: Any) -> Optional[datetime]:
        try:
            return parse_datetime(v)
        except (AttributeError, TypeError, ValueError, OverflowError) as exc:
            raise ValueError(f"'{v}' is not a valid date") from exc


class BlogPostCreate(_PublicationFields):
    """New blog post. ``tags`` holds blog tag ids."""

    title: str = PydanticField(min_length=1, max_length=255)
    content: str = PydanticField(min_length=1)
    slug: Optional[Slug] = PydanticField(default=None, max_length=300)
    excerpt: Optional[str] = None
    featured_image: Optional[str] = PydanticField(default=None, max_length=255)
    author_id: Optional[int] = None
    category_id: Optional[int] = None
    tags: list[int] = PydanticField(default_factory=list)
    meta_title: Optional[str] = PydanticField(default=None, max_length=255)
    meta_description: Optional[str] = None


class BlogPostUpdate(_PublicationFields):
    """Partial blog post update.

    ``tags`` replaces the whole tag set when present (``[]`` clears it).
    ``expected_version`` enables the optimistic-lock check.
    """

    title: Optional[str] = PydanticField(default=None, min_length=1, max_length=255)
    content: Optional[str] = PydanticField(default=None, min_length=1)
    slug: Optional[Slug] = PydanticField(default=None, max_length=300)
    excerpt: Optional[str] = None
    featured_image: Optional[str] = PydanticField(default=None, max_length=255)
    author_id: Optional[int] = None
    category_id: Optional[int] = None
    tags: Optional[list[int]] = None
    meta_title: Optional[str] = PydanticField(default=None, max_length=255)
    meta_description: Optional[str] = None
    expected_version: Optional[int] = None


class CommentCreate(PayloadModel):
    """New visitor comment; ``parent_id`` makes it a reply."""

    user_name: str = PydanticField(min_length=1, max_length=100)
    user_email: Email = PydanticField(min_length=1, max_length=255)
    content: str = PydanticField(min_length=1)
    parent_id: Optional[int] = None


class LocationInput(BaseModel):
    """Structured location as submitted by the map picker."""

    model_config = ConfigDict(extra="ignore")

    lat: Optional[float] = PydanticField(default=None, ge=-90, le=90)
    lng: Optional[float] = PydanticField(default=None, ge=-180, le=180)
    address: Optional[str] = None


class ImageInput(BaseModel):
    """One entry of a listing's image list."""

    model_config = ConfigDict(extra="ignore")

    url: str = PydanticField(min_length=1)
    name: Optional[str] = None


class _ListingFields(PayloadModel):
    """Validation shared by listing create and update payloads."""

    description: Optional[str] = None
    location: Optional[str] = PydanticField(default=None, max_length=255)
    location_data: Optional[LocationInput] = None
    website: Optional[WebURL] = None
    phone: Optional[Phone] = None
    email: Optional[Email] = None
    price_range: Optional[PriceRange] = None
    hours: Optional[dict[str, Optional[str]]] = None
    images: Optional[list[ImageInput]] = None

    @field_validator("location_data", "hours", "images", mode="before")
    @classmethod
    def _decode_json_text(cls, v: Any) -> Any:
        # Older clients post these fields as JSON strings
        return decode(v, fallback=lambda: None) if isinstance(v, str) else v

    @field_validator("price_range", mode="before")
    @classmethod
    def _blank_price_range(cls, v: Any) -> Any:
        return None if v == "" else v

    @field_validator("hours")
    @classmethod
    def _check_hours(cls, v: Optional[dict[str, Optional[str]]]) -> Optional[dict[str, str]]:
        if v is None:
            return None
        normalized: dict[str, str] = {}
        for day, value in v.items():
            key = day.strip().lower()
            if key not in WEEKDAYS:
                raise ValueError(f"'{day}' is not a weekday")
            text = (value or "").strip()
            if not text:
                # Days left blank in the admin form are unknown
                continue
            normalized[key] = CLOSED if text.lower() == CLOSED.lower() else text
        return normalized


class ListingCreate(_ListingFields):
    """New directory listing.

    Either ``location`` or an address inside ``location_data`` is required.
    """

    name: str = PydanticField(min_length=1, max_length=255)
    category_id: int
    slug: Optional[Slug] = PydanticField(default=None, max_length=300)
    featured: bool = False

    @model_validator(mode="after")
    def _require_location(self) -> "ListingCreate":
        address = self.location_data.address if self.location_data else None
        if not self.location and not address:
            raise ValueError("location is required")
        return self


class ListingUpdate(_ListingFields):
    """Partial directory listing update."""

    name: Optional[str] = PydanticField(default=None, min_length=1, max_length=255)
    category_id: Optional[int] = None
    slug: Optional[Slug] = PydanticField(default=None, max_length=300)
    featured: Optional[bool] = None
    expected_version: Optional[int] = None


class ReviewCreate(PayloadModel):
    """New review of a directory listing."""

    user_id: str = PydanticField(min_length=1)
    user_name: str = "Anonymous User"
    rating: int = PydanticField(ge=1, le=5)
    content: str

    @field_validator("rating", mode="before")
    @classmethod
    def _reject_bool(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("rating must be a number between 1 and 5")
        return v

    @field_validator("user_name")
    @classmethod
    def _default_name(cls, v: str) -> str:
        return v or "Anonymous User"

    @field_validator("content")
    @classmethod
    def _min_length(cls, v: str) -> str:
        if len(v) < settings.review_min_length:
            raise ValueError(
                f"review content must be at least {settings.review_min_length} characters"
            )
        return v


class MediaCreate(PayloadModel):
    """Metadata for a file the upload collaborator already stored."""

    filename: str = PydanticField(min_length=1, max_length=255)
    original_filename: str = PydanticField(min_length=1, max_length=255)
    file_path: str = PydanticField(min_length=1, max_length=255)
    file_size: int = PydanticField(ge=0)
    mime_type: str = PydanticField(min_length=1, max_length=100)
    file_type: Optional[FileType] = None
    width: Optional[int] = PydanticField(default=None, ge=0)
    height: Optional[int] = PydanticField(default=None, ge=0)
    alt_text: Optional[str] = None
    caption: Optional[str] = None

    @model_validator(mode="after")
    def _infer_file_type(self) -> "MediaCreate":
        if self.file_type is None:
            self.file_type = FileType.from_mime(self.mime_type)
        return self


class MediaUpdate(PayloadModel):
    """Editable media metadata."""

    alt_text: Optional[str] = None
    caption: Optional[str] = None


# =============================================================================
# Section 4: Read Models
# =============================================================================


ItemT = TypeVar("ItemT")


class ReadModel(BaseModel):
    """Base for returned models; naive datetimes from the store become UTC."""

    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="after")
    @classmethod
    def _attach_utc(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return ensure_utc(v)
        return v


class Author(ReadModel):
    id: int
    name: str
    email: Optional[str] = None
    created_at: datetime


class TagRef(ReadModel):
    """Tag as embedded in a post."""

    id: int
    name: str
    slug: str


class BlogTag(ReadModel):
    id: int
    name: str
    slug: str
    created_at: datetime
    post_count: int = 0


class BlogCategory(ReadModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    post_count: int = 0


class BlogPost(ReadModel):
    """Fully hydrated blog post."""

    id: int
    title: str
    slug: str
    content: str
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    author_id: Optional[int] = None
    author_name: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    category_slug: Optional[str] = None
    published: bool
    published_at: Optional[datetime] = None
    status: PostStatus
    views_count: int
    version: int
    created_at: datetime
    updated_at: datetime
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    tags: list[TagRef] = PydanticField(default_factory=list)

    @classmethod
    def from_row(
        cls,
        row: BlogPostRow,
        category: Optional[BlogCategoryRow] = None,
        author: Optional[UserRow] = None,
        tags: Optional[list[BlogTagRow]] = None,
    ) -> "BlogPost":
        """Build from a BlogPostRow and its joined rows."""
        return cls(
            **row.model_dump(),
            author_name=author.name if author else None,
            category_name=category.name if category else None,
            category_slug=category.slug if category else None,
            tags=[TagRef.model_validate(tag) for tag in tags or []],
        )


class BlogComment(ReadModel):
    """Comment as shown publicly; the author's email is never returned."""

    id: int
    post_id: int
    parent_id: Optional[int] = None
    user_name: str
    content: str
    likes: int
    created_at: datetime
    replies: list["BlogComment"] = PydanticField(default_factory=list)


class CommentReport(ReadModel):
    id: int
    comment_id: int
    reason: Optional[str] = None
    status: ReportStatus
    reported_at: datetime


class DirectoryCategory(ReadModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    listing_count: int = 0


class DirectoryListing(ReadModel):
    """Directory listing with JSON columns decoded."""

    id: int
    name: str
    slug: str
    category_id: int
    category_name: Optional[str] = None
    category_slug: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    location_data: Optional[dict[str, Any]] = None
    coordinates: Optional[Coordinates] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    price_range: Optional[PriceRange] = None
    hours: dict[str, str] = PydanticField(default_factory=dict)
    images: list[dict[str, Any]] = PydanticField(default_factory=list)
    featured: bool
    version: int
    created_at: datetime
    updated_at: datetime

    @field_validator("price_range", mode="before")
    @classmethod
    def _unknown_price_range(cls, v: Any) -> Any:
        # Rows written before the column was constrained may hold free text
        return v if v in {p.value for p in PriceRange} else None

    @classmethod
    def from_row(
        cls,
        row: DirectoryListingRow,
        category: Optional[DirectoryCategoryRow] = None,
    ) -> "DirectoryListing":
        """Build from a DirectoryListingRow, decoding structured fields."""
        data = row.model_dump()
        location = decode_location(row.location_data)
        data.update(
            location_data=location,
            coordinates=coordinates_of(location),
            hours=decode_hours(row.hours),
            images=[img for img in decode_images(row.images) if isinstance(img, dict)],
            category_name=category.name if category else None,
            category_slug=category.slug if category else None,
        )
        return cls(**data)


class ReviewResponse(ReadModel):
    id: int
    review_id: int
    content: str
    respondent_name: str
    created_at: datetime


class DirectoryReview(ReadModel):
    id: int
    listing_id: int
    user_id: str
    user_name: str
    rating: int
    content: str
    helpful_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    response: Optional[ReviewResponse] = None


class ReviewReport(ReadModel):
    id: int
    review_id: int
    user_id: str
    reason: Optional[str] = None
    reported_at: datetime


class ReviewSummary(BaseModel):
    listing_id: int
    average_rating: float
    total_reviews: int


class MediaItem(ReadModel):
    id: int
    filename: str
    original_filename: str
    file_path: str
    file_size: int
    file_type: FileType
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    alt_text: Optional[str] = None
    caption: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BlogDirectoryLink(ReadModel):
    id: int
    blog_post_id: int
    directory_listing_id: int
    blog_post_title: Optional[str] = None
    directory_listing_name: Optional[str] = None
    created_at: datetime


class Page(BaseModel, Generic[ItemT]):
    """One page of a filtered list.

    Attributes:
        items: Rows on this page (at most ``limit``)
        total: Rows matching the filter across all pages
        page: 1-based page number
        limit: Page size used
        total_pages: ``ceil(total / limit)``
    """

    items: list[ItemT]
    total: int
    page: int
    limit: int
    total_pages: int


class BulkResult(BaseModel):
    """Outcome of a per-item bulk operation.

    Items are applied independently; successes are kept even when other
    items fail. ``ok`` is True only if every item succeeded.
    """

    operation: str
    succeeded: list[int] = PydanticField(default_factory=list)
    failed: dict[int, str] = PydanticField(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class SearchResults(BaseModel):
    """Combined blog and directory search results."""

    query: str
    page: int
    limit: int
    posts: list[BlogPost] = PydanticField(default_factory=list)
    listings: list[DirectoryListing] = PydanticField(default_factory=list)
    total_posts: int = 0
    total_listings: int = 0

    @property
    def total(self) -> int:
        return self.total_posts + self.total_listings
