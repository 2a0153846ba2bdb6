"""Site-wide search across published blog posts and directory listings.

The two halves are queried independently: if one fails it is logged and
the other still returns results.

Example:
    >>> results = SearchService(db).search("reef", scope="blog", limit=5)
    >>> [post.title for post in results.posts]
    ['Snorkelling the Outer Reef']
"""

import uuid
from typing import Optional

from travelcms.blog import posts_page
from travelcms.database import Database
from travelcms.directory import listings_page
from travelcms.errors import ContentValidationError, TravelCMSError
from travelcms.logging import get_request_context, logger, request_context
from travelcms.metrics import track_operation
from travelcms.models import SearchResults, SearchScope
from travelcms.query import ListingListOptions, PostListOptions

DEFAULT_LIMIT = 20
MAX_LIMIT = 50

# sort name -> ((post sort_by, order), (listing sort_by, order))
SEARCH_SORTS = {
    "relevance": (("published_at", "DESC"), ("name", "ASC")),
    "date": (("published_at", "DESC"), ("created_at", "DESC")),
    "title": (("title", "ASC"), ("name", "ASC")),
}


class SearchService:
    """Combined blog and directory search.

    Args:
        db: Initialized persistence gateway
    """

    def __init__(self, db: Database):
        self.db = db

    def search(
        self,
        query: str,
        scope: SearchScope | str = SearchScope.ALL,
        page: int = 1,
        limit: Optional[int] = None,
        sort: str = "relevance",
    ) -> SearchResults:
        """Search published posts (title, content) and listings (name, description, location).

        Args:
            query: Search term, matched as a case-insensitive substring
            scope: ``all``, ``blog`` or ``directory``
            page: 1-based page applied to each half
            limit: Page size for each half (default 20, at most 50)
            sort: ``relevance``, ``date`` or ``title``

        Raises:
            ContentValidationError: Blank query, unknown scope or sort
        """
        query = (query or "").strip()
        if not query:
            raise ContentValidationError("q: search query is required")
        try:
            scope = SearchScope(scope)
        except ValueError as exc:
            raise ContentValidationError(f"type: unknown search scope '{scope}'") from exc
        if sort not in SEARCH_SORTS:
            raise ContentValidationError(f"sort: unknown search order '{sort}'")

        page = max(page or 1, 1)
        limit = min(limit if limit and limit > 0 else DEFAULT_LIMIT, MAX_LIMIT)
        (post_sort, post_order), (listing_sort, listing_order) = SEARCH_SORTS[sort]
        results = SearchResults(query=query, page=page, limit=limit)

        # Keep the caller's request id when there is one
        request_id = None if get_request_context()["request_id"] else uuid.uuid4().hex
        with request_context(request_id=request_id, operation="search"):
            logger.info(f"Searching '{query}' in {scope} (page {page}, limit {limit}, sort {sort})")
            if scope in (SearchScope.ALL, SearchScope.BLOG):
                post_options = PostListOptions(
                    search=query,
                    published=True,
                    page=page,
                    limit=limit,
                    sort_by=post_sort,
                    sort_order=post_order,
                )
                try:
                    with track_operation("search", "blog"), self.db.session("search") as session:
                        found = posts_page(session, post_options)
                    results.posts, results.total_posts = found.items, found.total
                except TravelCMSError as exc:
                    logger.error(f"Blog search failed, continuing with directory: {exc.message}")

            if scope in (SearchScope.ALL, SearchScope.DIRECTORY):
                listing_options = ListingListOptions(
                    search=query,
                    page=page,
                    limit=limit,
                    sort_by=listing_sort,
                    sort_order=listing_order,
                )
                try:
                    with track_operation("search", "directory"), self.db.session("search") as session:
                        found = listings_page(session, listing_options)
                    results.listings, results.total_listings = found.items, found.total
                except TravelCMSError as exc:
                    logger.error(f"Directory search failed, continuing with blog: {exc.message}")

            logger.debug(
                f"Search '{query}': {len(results.posts)} post(s), {len(results.listings)} listing(s)"
            )
            return results


__all__ = ["SearchService", "SEARCH_SORTS"]
