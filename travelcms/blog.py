"""Blog store: posts, categories, tags and authors.

Every public method opens exactly one session or transaction on the
:class:`~travelcms.database.Database`; a post and its tag links are
always written in the same transaction.

Example:
    >>> blog = BlogStore(db)
    >>> post = blog.create_post({
    ...     "title": "Snorkelling the Outer Reef",
    ...     "content": "...",
    ...     "status": "scheduled",
    ...     "publish_date": "2030-01-01T08:00:00Z",
    ...     "tags": [beach.id],
    ... })
    >>> post.status, post.published
    (<PostStatus.SCHEDULED: 'scheduled'>, False)
    >>> blog.list_posts({"search": "reef", "limit": 2}).total
    1
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from travelcms.comments import delete_post_comments
from travelcms.config import settings
from travelcms.database import Database
from travelcms.errors import ContentValidationError, StaleWriteError, parse_payload
from travelcms.logging import logger
from travelcms.metrics import post_views_total, track_operation
from travelcms.models import (
    Author,
    AuthorCreate,
    BlogCategory,
    BlogCategoryRow,
    BlogDirectoryLinkRow,
    BlogPost,
    BlogPostCreate,
    BlogPostRow,
    BlogPostTagLink,
    BlogPostUpdate,
    BlogTag,
    BlogTagRow,
    CategoryCreate,
    CategoryUpdate,
    Page,
    PostStatus,
    TagCreate,
    TagUpdate,
    UserRow,
)
from travelcms.publishing import initial_publication, resolve_publication
from travelcms.query import (
    POST_SORT,
    PostListOptions,
    build_page,
    count_rows,
    order_clause,
    post_filters,
    resolve_window,
)
from travelcms.repository import Repository
from travelcms.slugs import assign_slug
from travelcms.utils import parse_datetime, unique_in_order, utc_now

# Columns that may not be cleared through a patch
_NOT_NULL = ("title", "content", "slug", "name")


# =============================================================================
# Association Helpers
# =============================================================================


def replace_post_tags(session: Session, post_id: int, tag_ids: Iterable[int]) -> list[int]:
    """Replace a post's tag set inside the caller's transaction.

    Existing links are removed and the new set inserted; repeated ids are
    ignored.

    Returns:
        Linked tag ids in input order

    Raises:
        ContentValidationError: If any tag id does not exist
    """
    wanted = unique_in_order(tag_ids)
    if wanted:
        found = set(session.exec(select(BlogTagRow.id).where(BlogTagRow.id.in_(wanted))).all())  # type: ignore[union-attr]
        missing = [tag_id for tag_id in wanted if tag_id not in found]
        if missing:
            raise ContentValidationError(
                f"tags: unknown tag id(s) {', '.join(map(str, missing))}",
                payload={"missing": missing},
            )

    session.exec(delete(BlogPostTagLink).where(BlogPostTagLink.post_id == post_id))  # type: ignore[call-overload]
    for tag_id in wanted:
        session.add(BlogPostTagLink(post_id=post_id, tag_id=tag_id))
    session.flush()
    return wanted


def tags_for_posts(session: Session, post_ids: list[int]) -> dict[int, list[BlogTagRow]]:
    """Tags of several posts in one lookup, ordered by tag name."""
    if not post_ids:
        return {}
    stmt = (
        select(BlogPostTagLink.post_id, BlogTagRow)
        .join(BlogTagRow, BlogTagRow.id == BlogPostTagLink.tag_id)
        .where(BlogPostTagLink.post_id.in_(post_ids))  # type: ignore[attr-defined]
        .order_by(BlogTagRow.name)
    )
    tags: dict[int, list[BlogTagRow]] = {}
    for post_id, tag in session.exec(stmt).all():
        tags.setdefault(post_id, []).append(tag)
    return tags


def hydrate_post(session: Session, row: BlogPostRow) -> BlogPost:
    """Build a BlogPost with category, author and tags resolved."""
    category = session.get(BlogCategoryRow, row.category_id) if row.category_id else None
    author = session.get(UserRow, row.author_id) if row.author_id else None
    tags = tags_for_posts(session, [row.id]).get(row.id, [])  # type: ignore[list-item]
    return BlogPost.from_row(row, category=category, author=author, tags=tags)


def posts_page(session: Session, options: PostListOptions) -> Page[BlogPost]:
    """Run a filtered, sorted, paged post query in an open session."""
    window = resolve_window(options.page, options.limit, settings.posts_page_size)
    conditions = post_filters(options)
    total = count_rows(session, BlogPostRow, conditions)

    stmt = (
        select(BlogPostRow, BlogCategoryRow, UserRow)
        .outerjoin(BlogCategoryRow, BlogPostRow.category_id == BlogCategoryRow.id)
        .outerjoin(UserRow, BlogPostRow.author_id == UserRow.id)
        .order_by(*order_clause(POST_SORT, options.sort_by, options.sort_order))
        .offset(window.offset)
        .limit(window.limit)
    )
    if conditions:
        stmt = stmt.where(*conditions)
    rows = session.exec(stmt).all()

    tags = tags_for_posts(session, [post.id for post, _, _ in rows])  # type: ignore[misc]
    items = [
        BlogPost.from_row(post, category=category, author=author, tags=tags.get(post.id, []))
        for post, category, author in rows
    ]
    return build_page(items, total, window)


# =============================================================================
# Blog Store
# =============================================================================


class BlogStore:
    """Blog posts, categories, tags and authors.

    Args:
        db: Initialized persistence gateway
    """

    def __init__(self, db: Database):
        self.db = db

    # =========================================================================
    # Posts
    # =========================================================================

    def list_posts(self, options: PostListOptions | dict[str, Any] | None = None) -> Page[BlogPost]:
        """List posts with filtering, sorting and paging.

        Args:
            options: PostListOptions or an equivalent mapping (query-string
                names ``sort``/``order`` are accepted)

        Returns:
            Page of hydrated posts; empty items when nothing matches
        """
        opts = parse_payload(PostListOptions, options)
        with track_operation("post", "list"), self.db.session("post") as session:
            return posts_page(session, opts)

    def get_post(self, post_id: int) -> Optional[BlogPost]:
        with track_operation("post", "get"), self.db.session("post") as session:
            row = session.get(BlogPostRow, post_id)
            return hydrate_post(session, row) if row else None

    def get_post_by_slug(self, slug: str, increment_views: bool = True) -> Optional[BlogPost]:
        """Fetch a post by slug, counting the view.

        The counter is bumped with a single ``views_count + 1`` UPDATE so
        concurrent readers never lose increments.
        """
        with track_operation("post", "view"), self.db.transaction("post") as session:
            row = Repository(session, BlogPostRow).get_by_slug(slug)
            if row is None:
                return None
            if increment_views:
                session.exec(  # type: ignore[call-overload]
                    update(BlogPostRow)
                    .where(BlogPostRow.id == row.id)
                    .values(views_count=BlogPostRow.views_count + 1)
                )
                session.refresh(row)
                post_views_total.inc()
            return hydrate_post(session, row)

    def create_post(self, payload: BlogPostCreate | dict[str, Any]) -> BlogPost:
        """Create a post and its tag links in one transaction.

        Raises:
            ContentValidationError: Missing title/content, unknown category,
                author or tag, or an underivable slug
        """
        data = parse_payload(BlogPostCreate, payload)
        with track_operation("post", "create"), self.db.transaction("post") as session:
            self._check_references(session, data.category_id, data.author_id)
            change = initial_publication(data.status, data.publish_date, data.published)
            row = BlogPostRow(
                title=data.title,
                slug=assign_slug(session, BlogPostRow, data.slug, data.title),
                content=data.content,
                excerpt=data.excerpt,
                featured_image=data.featured_image,
                author_id=data.author_id,
                category_id=data.category_id,
                published=change.published,
                published_at=change.published_at,
                status=change.status.value,
                meta_title=data.meta_title,
                meta_description=data.meta_description,
            )
            Repository(session, BlogPostRow).create(row)
            replace_post_tags(session, row.id, data.tags)  # type: ignore[arg-type]
            post = hydrate_post(session, row)

        logger.info(f"✅ Created post {post.id} '{post.slug}' ({post.status})")
        return post

    def update_post(
        self,
        post_id: int,
        patch: BlogPostUpdate | dict[str, Any],
    ) -> Optional[BlogPost]:
        """Apply a partial update; only fields present in ``patch`` change.

        Returns:
            Updated post, or None if ``post_id`` does not exist

        Raises:
            StaleWriteError: If ``expected_version`` does not match
            ContentValidationError: For invalid or unknown references
        """
        data = parse_payload(BlogPostUpdate, patch)
        fields = data.provided("tags", "expected_version", "status", "publish_date", "published")
        _reject_nulls(fields)

        with track_operation("post", "update"), self.db.transaction("post") as session:
            row = session.get(BlogPostRow, post_id)
            if row is None:
                return None
            if data.expected_version is not None and data.expected_version != row.version:
                raise StaleWriteError("post", post_id, data.expected_version, row.version)

            self._check_references(session, fields.get("category_id"), fields.get("author_id"))
            if "slug" in fields:
                fields["slug"] = assign_slug(session, BlogPostRow, fields["slug"], row.title, row.id)
            for name, value in fields.items():
                setattr(row, name, value)

            change = self._publication_change(data, row)
            if change is not None:
                row.published, row.published_at = change.published, change.published_at
                row.status = change.status.value

            if "tags" in data.model_fields_set and data.tags is not None:
                replace_post_tags(session, post_id, data.tags)

            row.version += 1
            row.updated_at = utc_now()
            Repository(session, BlogPostRow).save(row)
            post = hydrate_post(session, row)

        logger.info(f"Updated post {post_id} to version {post.version}")
        return post

    def delete_post(self, post_id: int) -> bool:
        """Delete a post with its tag links, directory links and comments."""
        with track_operation("post", "delete"), self.db.transaction("post") as session:
            row = session.get(BlogPostRow, post_id)
            if row is None:
                return False
            session.exec(delete(BlogPostTagLink).where(BlogPostTagLink.post_id == post_id))  # type: ignore[call-overload]
            session.exec(  # type: ignore[call-overload]
                delete(BlogDirectoryLinkRow).where(BlogDirectoryLinkRow.blog_post_id == post_id)
            )
            delete_post_comments(session, post_id)
            session.delete(row)

        logger.info(f"Deleted post {post_id}")
        return True

    def publish_due_posts(self, now: Optional[datetime] = None) -> list[int]:
        """Publish scheduled posts whose time has come.

        The scheduled ``published_at`` is kept as the publication time.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            Ids of the posts that were published
        """
        now = parse_datetime(now) if now is not None else utc_now()
        with track_operation("post", "publish_due"), self.db.transaction("post") as session:
            due = session.exec(
                select(BlogPostRow).where(
                    BlogPostRow.status == PostStatus.SCHEDULED.value,
                    BlogPostRow.published_at <= now,  # type: ignore[operator]
                )
            ).all()
            for row in due:
                row.published = True
                row.status = PostStatus.PUBLISHED.value
                row.version += 1
                row.updated_at = utc_now()
                session.add(row)
            published = [row.id for row in due]

        if published:
            logger.info(f"✅ Published {len(published)} scheduled post(s): {published}")
        return published  # type: ignore[return-value]

    # =========================================================================
    # Categories
    # =========================================================================

    def list_categories(self) -> list[BlogCategory]:
        """All categories by name, each with its post count."""
        with self.db.session("blog_category") as session:
            stmt = (
                select(BlogCategoryRow, func.count(BlogPostRow.id))
                .outerjoin(BlogPostRow, BlogPostRow.category_id == BlogCategoryRow.id)
                .group_by(BlogCategoryRow.id)
                .order_by(BlogCategoryRow.name)
            )
            return [
                BlogCategory(**row.model_dump(), post_count=count)
                for row, count in session.exec(stmt).all()
            ]

    def get_category(self, category_id: int) -> Optional[BlogCategory]:
        with self.db.session("blog_category") as session:
            row = session.get(BlogCategoryRow, category_id)
            return self._category(session, row) if row else None

    def get_category_by_slug(self, slug: str) -> Optional[BlogCategory]:
        with self.db.session("blog_category") as session:
            row = Repository(session, BlogCategoryRow).get_by_slug(slug)
            return self._category(session, row) if row else None

    def create_category(self, payload: CategoryCreate | dict[str, Any]) -> BlogCategory:
        data = parse_payload(CategoryCreate, payload)
        with track_operation("blog_category", "create"), self.db.transaction("blog_category") as session:
            row = BlogCategoryRow(
                name=data.name,
                slug=assign_slug(session, BlogCategoryRow, data.slug, data.name),
                description=data.description,
            )
            Repository(session, BlogCategoryRow).create(row)
            return BlogCategory.model_validate(row)

    def update_category(
        self,
        category_id: int,
        patch: CategoryUpdate | dict[str, Any],
    ) -> Optional[BlogCategory]:
        data = parse_payload(CategoryUpdate, patch)
        fields = data.provided()
        _reject_nulls(fields)
        with track_operation("blog_category", "update"), self.db.transaction("blog_category") as session:
            row = session.get(BlogCategoryRow, category_id)
            if row is None:
                return None
            if "slug" in fields:
                fields["slug"] = assign_slug(
                    session, BlogCategoryRow, fields["slug"], row.name, row.id
                )
            for name, value in fields.items():
                setattr(row, name, value)
            row.updated_at = utc_now()
            Repository(session, BlogCategoryRow).save(row)
            return self._category(session, row)

    def delete_category(self, category_id: int) -> bool:
        """Delete a category; its posts become uncategorized."""
        with track_operation("blog_category", "delete"), self.db.transaction("blog_category") as session:
            row = session.get(BlogCategoryRow, category_id)
            if row is None:
                return False
            session.exec(  # type: ignore[call-overload]
                update(BlogPostRow)
                .where(BlogPostRow.category_id == category_id)
                .values(category_id=None)
            )
            session.delete(row)
        logger.info(f"Deleted blog category {category_id}")
        return True

    # =========================================================================
    # Tags
    # =========================================================================

    def list_tags(self) -> list[BlogTag]:
        """All tags by name, each with its post count."""
        with self.db.session("blog_tag") as session:
            stmt = (
                select(BlogTagRow, func.count(BlogPostTagLink.post_id))
                .outerjoin(BlogPostTagLink, BlogPostTagLink.tag_id == BlogTagRow.id)
                .group_by(BlogTagRow.id)
                .order_by(BlogTagRow.name)
            )
            return [
                BlogTag(**row.model_dump(), post_count=count)
                for row, count in session.exec(stmt).all()
            ]

    def get_tag(self, tag_id: int) -> Optional[BlogTag]:
        with self.db.session("blog_tag") as session:
            row = session.get(BlogTagRow, tag_id)
            return self._tag(session, row) if row else None

    def get_tag_by_slug(self, slug: str) -> Optional[BlogTag]:
        with self.db.session("blog_tag") as session:
            row = Repository(session, BlogTagRow).get_by_slug(slug)
            return self._tag(session, row) if row else None

    def create_tag(self, payload: TagCreate | dict[str, Any]) -> BlogTag:
        data = parse_payload(TagCreate, payload)
        with track_operation("blog_tag", "create"), self.db.transaction("blog_tag") as session:
            row = BlogTagRow(
                name=data.name,
                slug=assign_slug(session, BlogTagRow, data.slug, data.name),
            )
            Repository(session, BlogTagRow).create(row)
            return BlogTag.model_validate(row)

    def update_tag(self, tag_id: int, patch: TagUpdate | dict[str, Any]) -> Optional[BlogTag]:
        data = parse_payload(TagUpdate, patch)
        fields = data.provided()
        _reject_nulls(fields)
        with track_operation("blog_tag", "update"), self.db.transaction("blog_tag") as session:
            row = session.get(BlogTagRow, tag_id)
            if row is None:
                return None
            if "slug" in fields:
                fields["slug"] = assign_slug(session, BlogTagRow, fields["slug"], row.name, row.id)
            for name, value in fields.items():
                setattr(row, name, value)
            Repository(session, BlogTagRow).save(row)
            return self._tag(session, row)

    def delete_tag(self, tag_id: int) -> bool:
        """Delete a tag and unlink it from every post."""
        with track_operation("blog_tag", "delete"), self.db.transaction("blog_tag") as session:
            row = session.get(BlogTagRow, tag_id)
            if row is None:
                return False
            session.exec(delete(BlogPostTagLink).where(BlogPostTagLink.tag_id == tag_id))  # type: ignore[call-overload]
            session.delete(row)
        return True

    # =========================================================================
    # Authors
    # =========================================================================

    def create_author(self, payload: AuthorCreate | dict[str, Any]) -> Author:
        """Register an author.

        Raises:
            ContentValidationError: If the email is already used
        """
        data = parse_payload(AuthorCreate, payload)
        with self.db.transaction("author") as session:
            users = Repository(session, UserRow)
            if data.email and users.find_by(email=data.email):
                raise ContentValidationError(f"email: '{data.email}' is already registered")
            row = users.create(UserRow(name=data.name, email=data.email))
            return Author.model_validate(row)

    def get_author(self, author_id: int) -> Optional[Author]:
        with self.db.session("author") as session:
            row = session.get(UserRow, author_id)
            return Author.model_validate(row) if row else None

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _check_references(
        session: Session,
        category_id: Optional[int],
        author_id: Optional[int],
    ) -> None:
        if category_id is not None and session.get(BlogCategoryRow, category_id) is None:
            raise ContentValidationError(f"category_id: blog category {category_id} does not exist")
        if author_id is not None and session.get(UserRow, author_id) is None:
            raise ContentValidationError(f"author_id: author {author_id} does not exist")

    @staticmethod
    def _publication_change(data: BlogPostUpdate, row: BlogPostRow):
        provided = data.model_fields_set
        status = data.status
        if (
            status is None
            and "published" not in provided
            and "publish_date" in provided
            and row.status == PostStatus.SCHEDULED.value
        ):
            # Moving the date of an already scheduled post
            status = PostStatus.SCHEDULED
        return resolve_publication(status, data.publish_date, data.published)

    @staticmethod
    def _category(session: Session, row: BlogCategoryRow) -> BlogCategory:
        count = Repository(session, BlogPostRow).count(category_id=row.id)
        return BlogCategory(**row.model_dump(), post_count=count)

    @staticmethod
    def _tag(session: Session, row: BlogTagRow) -> BlogTag:
        count = Repository(session, BlogPostTagLink).count(tag_id=row.id)
        return BlogTag(**row.model_dump(), post_count=count)


def _reject_nulls(fields: dict[str, Any]) -> None:
    for name in _NOT_NULL:
        if name in fields and fields[name] is None:
            raise ContentValidationError(f"{name}: may not be null")


__all__ = [
    "BlogStore",
    "replace_post_tags",
    "tags_for_posts",
    "hydrate_post",
    "posts_page",
]
