"""Cross links between blog posts and directory listings.

A post can recommend any number of listings and a listing can be featured
in any number of posts; each pair is stored at most once.

Example:
    >>> links = LinkStore(db)
    >>> links.link(post.id, cafe.id)
    True
    >>> [listing.name for listing in links.related_listings(post.id)]
    ['Reef Cafe']
"""

from typing import Optional

from sqlalchemy import delete
from sqlmodel import select

from travelcms.blog import tags_for_posts
from travelcms.database import Database
from travelcms.logging import logger
from travelcms.metrics import track_operation
from travelcms.models import (
    BlogCategoryRow,
    BlogDirectoryLink,
    BlogDirectoryLinkRow,
    BlogPost,
    BlogPostRow,
    DirectoryCategoryRow,
    DirectoryListing,
    DirectoryListingRow,
    UserRow,
)
from travelcms.repository import Repository


class LinkStore:
    """Association manager for post/listing links.

    Args:
        db: Initialized persistence gateway
    """

    def __init__(self, db: Database):
        self.db = db

    def link(self, post_id: int, listing_id: int) -> bool:
        """Link a post to a listing; linking twice is a no-op.

        Returns:
            True if the pair is linked afterwards, False if either side
            does not exist
        """
        with track_operation("link", "create"), self.db.transaction("link") as session:
            if session.get(BlogPostRow, post_id) is None:
                return False
            if session.get(DirectoryListingRow, listing_id) is None:
                return False
            links = Repository(session, BlogDirectoryLinkRow)
            _, created = links.get_or_create(
                {}, blog_post_id=post_id, directory_listing_id=listing_id
            )
        if created:
            logger.info(f"Linked post {post_id} to listing {listing_id}")
        return True

    def unlink(self, post_id: int, listing_id: int) -> bool:
        """Remove a link; False if the pair was not linked."""
        with track_operation("link", "delete"), self.db.transaction("link") as session:
            result = session.exec(  # type: ignore[call-overload]
                delete(BlogDirectoryLinkRow).where(
                    BlogDirectoryLinkRow.blog_post_id == post_id,
                    BlogDirectoryLinkRow.directory_listing_id == listing_id,
                )
            )
            return result.rowcount > 0

    def related_listings(self, post_id: int) -> list[DirectoryListing]:
        """Listings linked to a post, by name."""
        with self.db.session("link") as session:
            stmt = (
                select(DirectoryListingRow, DirectoryCategoryRow)
                .join(
                    BlogDirectoryLinkRow,
                    BlogDirectoryLinkRow.directory_listing_id == DirectoryListingRow.id,
                )
                .join(DirectoryCategoryRow, DirectoryCategoryRow.id == DirectoryListingRow.category_id)
                .where(BlogDirectoryLinkRow.blog_post_id == post_id)
                .order_by(DirectoryListingRow.name)
            )
            return [
                DirectoryListing.from_row(row, category=category)
                for row, category in session.exec(stmt).all()
            ]

    def related_posts(self, listing_id: int, published_only: bool = False) -> list[BlogPost]:
        """Posts linked to a listing, newest first."""
        with self.db.session("link") as session:
            stmt = (
                select(BlogPostRow, BlogCategoryRow, UserRow)
                .join(BlogDirectoryLinkRow, BlogDirectoryLinkRow.blog_post_id == BlogPostRow.id)
                .outerjoin(BlogCategoryRow, BlogCategoryRow.id == BlogPostRow.category_id)
                .outerjoin(UserRow, UserRow.id == BlogPostRow.author_id)
                .where(BlogDirectoryLinkRow.directory_listing_id == listing_id)
                .order_by(BlogPostRow.created_at.desc(), BlogPostRow.id.desc())  # type: ignore[attr-defined,union-attr]
            )
            if published_only:
                stmt = stmt.where(BlogPostRow.published == True)  # noqa: E712
            rows = session.exec(stmt).all()
            tags = tags_for_posts(session, [post.id for post, _, _ in rows])  # type: ignore[misc]
            return [
                BlogPost.from_row(post, category=category, author=author, tags=tags.get(post.id, []))
                for post, category, author in rows
            ]

    def list_links(self, post_id: Optional[int] = None) -> list[BlogDirectoryLink]:
        """All links with post title and listing name, newest first."""
        with self.db.session("link") as session:
            stmt = (
                select(BlogDirectoryLinkRow, BlogPostRow.title, DirectoryListingRow.name)
                .join(BlogPostRow, BlogPostRow.id == BlogDirectoryLinkRow.blog_post_id)
                .join(
                    DirectoryListingRow,
                    DirectoryListingRow.id == BlogDirectoryLinkRow.directory_listing_id,
                )
                .order_by(BlogDirectoryLinkRow.created_at.desc(), BlogDirectoryLinkRow.id.desc())  # type: ignore[attr-defined,union-attr]
            )
            if post_id is not None:
                stmt = stmt.where(BlogDirectoryLinkRow.blog_post_id == post_id)
            return [
                BlogDirectoryLink(
                    **row.model_dump(),
                    blog_post_title=title,
                    directory_listing_name=name,
                )
                for row, title, name in session.exec(stmt).all()
            ]


__all__ = ["LinkStore"]
