"""Filter, sort and paging composition for list queries.

Callers pass loosely-validated option objects (they usually come straight
from query strings); this module turns them into SQLAlchemy conditions
and ordering without ever interpolating user input into SQL:

- sort fields are checked against a per-entity allow-list and fall back
  to the entity default
- sort direction is normalized to ASC/DESC
- page and limit are clamped instead of rejected
- search terms become escaped, case-insensitive substring matches

Example:
    >>> opts = PostListOptions(search="reef", limit=2, sort_by="title; DROP TABLE")
    >>> window = resolve_window(opts.page, opts.limit, settings.posts_page_size)
    >>> order = order_clause(POST_SORT, opts.sort_by, opts.sort_order)
    >>> # ORDER BY blog_posts.created_at DESC, blog_posts.id DESC
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy import func, or_
from sqlmodel import Session, SQLModel, select

from travelcms.config import settings
from travelcms.models import (
    BlogPostRow,
    BlogPostTagLink,
    DirectoryListingRow,
    FileType,
    MediaItemRow,
    Page,
    PostStatus,
    PriceRange,
    SortDirection,
)
from travelcms.utils import page_count

# =============================================================================
# Option Models
# =============================================================================


class ListOptions(BaseModel):
    """Options shared by every list operation."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    search: Optional[str] = None
    page: int = 1
    limit: Optional[int] = None
    sort_by: Optional[str] = Field(default=None, validation_alias=AliasChoices("sort_by", "sort"))
    sort_order: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("sort_order", "order")
    )


class PostListOptions(ListOptions):
    category_id: Optional[int] = None
    tag_id: Optional[int] = None
    author_id: Optional[int] = None
    published: Optional[bool] = None
    status: Optional[PostStatus] = None


class ListingListOptions(ListOptions):
    category_id: Optional[int] = None
    location: Optional[str] = None
    price_range: Optional[PriceRange] = None
    featured: Optional[bool] = None


class MediaListOptions(ListOptions):
    file_type: Optional[FileType] = None


# =============================================================================
# Sorting
# =============================================================================


@dataclass(frozen=True)
class SortPolicy:
    """Allow-listed sort columns for one entity.

    Attributes:
        model: Table whose ``id`` breaks ties for stable paging
        fields: Public sort name -> column
        default_field: Used when the requested field is not allowed
        default_direction: Used when no direction is given
    """

    model: type[SQLModel]
    fields: dict[str, Any]
    default_field: str
    default_direction: SortDirection


POST_SORT = SortPolicy(
    model=BlogPostRow,
    fields={
        "created_at": BlogPostRow.created_at,
        "updated_at": BlogPostRow.updated_at,
        "published_at": BlogPostRow.published_at,
        "title": BlogPostRow.title,
        "views_count": BlogPostRow.views_count,
    },
    default_field="created_at",
    default_direction=SortDirection.DESC,
)

LISTING_SORT = SortPolicy(
    model=DirectoryListingRow,
    fields={
        "name": DirectoryListingRow.name,
        "created_at": DirectoryListingRow.created_at,
        "updated_at": DirectoryListingRow.updated_at,
        "location": DirectoryListingRow.location,
        "price_range": DirectoryListingRow.price_range,
    },
    default_field="name",
    default_direction=SortDirection.ASC,
)

MEDIA_SORT = SortPolicy(
    model=MediaItemRow,
    fields={
        "created_at": MediaItemRow.created_at,
        "updated_at": MediaItemRow.updated_at,
        "original_filename": MediaItemRow.original_filename,
        "file_size": MediaItemRow.file_size,
    },
    default_field="created_at",
    default_direction=SortDirection.DESC,
)


def normalize_direction(
    value: Optional[str],
    default: SortDirection = SortDirection.ASC,
) -> SortDirection:
    """Map a requested direction onto ASC/DESC.

    ``DESC`` in any case gives DESC; any other non-empty value gives ASC;
    an omitted value gives ``default``.

    Example:
        >>> normalize_direction("desc")
        <SortDirection.DESC: 'DESC'>
        >>> normalize_direction("sideways")
        <SortDirection.ASC: 'ASC'>
    """
    if value is None or not str(value).strip():
        return default
    return SortDirection.DESC if str(value).strip().upper() == "DESC" else SortDirection.ASC


def resolve_sort_field(policy: SortPolicy, sort_by: Optional[str]) -> str:
    """Allowed sort field name, or the policy default."""
    return sort_by if sort_by in policy.fields else policy.default_field


def order_clause(
    policy: SortPolicy,
    sort_by: Optional[str],
    sort_order: Optional[str],
) -> list[Any]:
    """ORDER BY terms for a list query, with ``id`` as tie-breaker."""
    column = policy.fields[resolve_sort_field(policy, sort_by)]
    direction = normalize_direction(sort_order, policy.default_direction)
    tie_breaker: Any = policy.model.id  # type: ignore[attr-defined]
    if direction is SortDirection.DESC:
        return [column.desc(), tie_breaker.desc()]
    return [column.asc(), tie_breaker.asc()]


# =============================================================================
# Paging
# =============================================================================


@dataclass(frozen=True)
class PageWindow:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def resolve_window(page: Optional[int], limit: Optional[int], default_limit: int) -> PageWindow:
    """Clamp paging input.

    ``page`` below 1 becomes 1, a missing or non-positive ``limit`` uses
    ``default_limit``, and any limit is capped at ``settings.max_page_size``.
    """
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default_limit
    return PageWindow(page=page, limit=min(limit, settings.max_page_size))


def count_rows(session: Session, model: type[SQLModel], conditions: list[Any]) -> int:
    """COUNT over the same predicate a list query uses, without paging."""
    stmt = select(func.count()).select_from(model)
    if conditions:
        stmt = stmt.where(*conditions)
    return session.exec(stmt).one()


def build_page(items: list[Any], total: int, window: PageWindow) -> Page[Any]:
    return Page(
        items=items,
        total=total,
        page=window.page,
        limit=window.limit,
        total_pages=page_count(total, window.limit),
    )


# =============================================================================
# Filters
# =============================================================================


def search_condition(term: Optional[str], *columns: Any) -> Any:
    """Case-insensitive substring match over ``columns``.

    LIKE wildcards (``%``, ``_``) in ``term`` are escaped so they match
    literally. Returns None for a blank term.
    """
    if term is None or not term.strip():
        return None
    term = term.strip()
    return or_(*(column.icontains(term, autoescape=True) for column in columns))


def post_filters(options: PostListOptions) -> list[Any]:
    """WHERE conditions for a post list."""
    conditions: list[Any] = []
    match = search_condition(options.search, BlogPostRow.title, BlogPostRow.content)
    if match is not None:
        conditions.append(match)
    if options.category_id is not None:
        conditions.append(BlogPostRow.category_id == options.category_id)
    if options.author_id is not None:
        conditions.append(BlogPostRow.author_id == options.author_id)
    if options.published is not None:
        conditions.append(BlogPostRow.published == options.published)
    if options.status is not None:
        conditions.append(BlogPostRow.status == options.status.value)
    if options.tag_id is not None:
        tagged = select(BlogPostTagLink.post_id).where(BlogPostTagLink.tag_id == options.tag_id)
        conditions.append(BlogPostRow.id.in_(tagged))  # type: ignore[union-attr]
    return conditions


def listing_filters(options: ListingListOptions) -> list[Any]:
    """WHERE conditions for a directory listing list."""
    conditions: list[Any] = []
    match = search_condition(
        options.search,
        DirectoryListingRow.name,
        DirectoryListingRow.description,
        DirectoryListingRow.location,
    )
    if match is not None:
        conditions.append(match)
    if options.category_id is not None:
        conditions.append(DirectoryListingRow.category_id == options.category_id)
    near = search_condition(options.location, DirectoryListingRow.location)
    if near is not None:
        conditions.append(near)
    if options.price_range is not None:
        conditions.append(DirectoryListingRow.price_range == options.price_range.value)
    if options.featured is not None:
        conditions.append(DirectoryListingRow.featured == options.featured)
    return conditions


def media_filters(options: MediaListOptions) -> list[Any]:
    """WHERE conditions for a media list."""
    conditions: list[Any] = []
    match = search_condition(
        options.search,
        MediaItemRow.original_filename,
        MediaItemRow.alt_text,
        MediaItemRow.caption,
    )
    if match is not None:
        conditions.append(match)
    if options.file_type is not None:
        conditions.append(MediaItemRow.file_type == options.file_type.value)
    return conditions


# =============================================================================
# Export Public API
# =============================================================================

__all__ = [
    "ListOptions",
    "PostListOptions",
    "ListingListOptions",
    "MediaListOptions",
    "SortPolicy",
    "POST_SORT",
    "LISTING_SORT",
    "MEDIA_SORT",
    "normalize_direction",
    "resolve_sort_field",
    "order_clause",
    "PageWindow",
    "resolve_window",
    "count_rows",
    "build_page",
    "search_condition",
    "post_filters",
    "listing_filters",
    "media_filters",
]
