"""Directory store: categories, listings, facets and bulk operations.

Listings carry three structured fields (``location_data``, ``hours``,
``images``) that are encoded to JSON text on write and decoded on read by
:mod:`travelcms.codec`. A listing always belongs to one directory
category, so a category with listings cannot be deleted.

Example:
    >>> directory = DirectoryStore(db)
    >>> cafe = directory.create_listing({
    ...     "name": "Reef Cafe",
    ...     "category_id": food.id,
    ...     "location_data": {"lat": -16.92, "lng": 145.77, "address": "Cairns QLD"},
    ...     "hours": {"monday": "07:00-15:00", "sunday": "Closed"},
    ... })
    >>> cafe.location, cafe.coordinates
    ('Cairns QLD', {'lat': -16.92, 'lng': 145.77})
    >>> directory.bulk_set_featured([cafe.id, 9999], True).failed
    {9999: 'not found'}
"""

from collections.abc import Callable, Iterable
from typing import Any, Optional

from sqlalchemy import delete, func
from sqlmodel import Session, select

from travelcms.codec import encode, normalize_location
from travelcms.config import settings
from travelcms.database import Database
from travelcms.errors import (
    CategoryInUseError,
    ContentValidationError,
    StaleWriteError,
    TravelCMSError,
    parse_payload,
)
from travelcms.logging import logger
from travelcms.metrics import bulk_items_total, track_operation
from travelcms.models import (
    BlogDirectoryLinkRow,
    BulkResult,
    CategoryCreate,
    CategoryUpdate,
    DirectoryCategory,
    DirectoryCategoryRow,
    DirectoryListing,
    DirectoryListingRow,
    DirectoryReviewReportRow,
    DirectoryReviewResponseRow,
    DirectoryReviewRow,
    ListingCreate,
    ListingUpdate,
    Page,
    PriceRange,
)
from travelcms.query import (
    LISTING_SORT,
    ListingListOptions,
    build_page,
    count_rows,
    listing_filters,
    order_clause,
    resolve_window,
)
from travelcms.repository import Repository
from travelcms.slugs import assign_slug
from travelcms.utils import unique_in_order, utc_now

_NOT_NULL = ("name", "slug", "category_id")


# =============================================================================
# Listing Helpers
# =============================================================================


def encode_listing_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Turn parsed payload values into column values.

    Structured fields become JSON text and the price band its symbol.
    """
    values = dict(fields)
    if "location_data" in values:
        location = values["location_data"]
        values["location_data"] = encode(location.model_dump(exclude_none=True) if location else None)
    if "images" in values:
        images = values["images"]
        values["images"] = encode(
            [image.model_dump(exclude_none=True) for image in images] if images is not None else None
        )
    if "hours" in values:
        values["hours"] = encode(values["hours"])
    if "price_range" in values:
        price = values["price_range"]
        values["price_range"] = price.value if price is not None else None
    return values


def hydrate_listing(session: Session, row: DirectoryListingRow) -> DirectoryListing:
    category = session.get(DirectoryCategoryRow, row.category_id)
    return DirectoryListing.from_row(row, category=category)


def listings_page(
    session: Session,
    options: ListingListOptions,
    extra_conditions: Iterable[Any] = (),
) -> Page[DirectoryListing]:
    """Run a filtered, sorted, paged listing query in an open session."""
    window = resolve_window(options.page, options.limit, settings.listings_page_size)
    conditions = listing_filters(options) + list(extra_conditions)
    total = count_rows(session, DirectoryListingRow, conditions)

    stmt = (
        select(DirectoryListingRow, DirectoryCategoryRow)
        .join(DirectoryCategoryRow, DirectoryListingRow.category_id == DirectoryCategoryRow.id)
        .order_by(*order_clause(LISTING_SORT, options.sort_by, options.sort_order))
        .offset(window.offset)
        .limit(window.limit)
    )
    if conditions:
        stmt = stmt.where(*conditions)
    items = [
        DirectoryListing.from_row(row, category=category)
        for row, category in session.exec(stmt).all()
    ]
    return build_page(items, total, window)


def delete_listing_children(session: Session, listing_id: int) -> None:
    """Remove reviews (with responses and reports) and blog links of a listing."""
    review_ids = select(DirectoryReviewRow.id).where(DirectoryReviewRow.listing_id == listing_id)
    session.exec(  # type: ignore[call-overload]
        delete(DirectoryReviewResponseRow).where(DirectoryReviewResponseRow.review_id.in_(review_ids))  # type: ignore[attr-defined]
    )
    session.exec(  # type: ignore[call-overload]
        delete(DirectoryReviewReportRow).where(DirectoryReviewReportRow.review_id.in_(review_ids))  # type: ignore[attr-defined]
    )
    session.exec(delete(DirectoryReviewRow).where(DirectoryReviewRow.listing_id == listing_id))  # type: ignore[call-overload]
    session.exec(  # type: ignore[call-overload]
        delete(BlogDirectoryLinkRow).where(BlogDirectoryLinkRow.directory_listing_id == listing_id)
    )


# =============================================================================
# Directory Store
# =============================================================================


class DirectoryStore:
    """Directory categories and listings.

    Args:
        db: Initialized persistence gateway
    """

    def __init__(self, db: Database):
        self.db = db

    # =========================================================================
    # Categories
    # =========================================================================

    def list_categories(self) -> list[DirectoryCategory]:
        """All categories by name, each with its listing count."""
        with self.db.session("directory_category") as session:
            stmt = (
                select(DirectoryCategoryRow, func.count(DirectoryListingRow.id))
                .outerjoin(
                    DirectoryListingRow,
                    DirectoryListingRow.category_id == DirectoryCategoryRow.id,
                )
                .group_by(DirectoryCategoryRow.id)
                .order_by(DirectoryCategoryRow.name)
            )
            return [
                DirectoryCategory(**row.model_dump(), listing_count=count)
                for row, count in session.exec(stmt).all()
            ]

    def get_category(self, category_id: int) -> Optional[DirectoryCategory]:
        with self.db.session("directory_category") as session:
            row = session.get(DirectoryCategoryRow, category_id)
            return self._category(session, row) if row else None

    def get_category_by_slug(self, slug: str) -> Optional[DirectoryCategory]:
        with self.db.session("directory_category") as session:
            row = Repository(session, DirectoryCategoryRow).get_by_slug(slug)
            return self._category(session, row) if row else None

    def create_category(self, payload: CategoryCreate | dict[str, Any]) -> DirectoryCategory:
        data = parse_payload(CategoryCreate, payload)
        with (
            track_operation("directory_category", "create"),
            self.db.transaction("directory_category") as session,
        ):
            row = DirectoryCategoryRow(
                name=data.name,
                slug=assign_slug(session, DirectoryCategoryRow, data.slug, data.name),
                description=data.description,
            )
            Repository(session, DirectoryCategoryRow).create(row)
            return DirectoryCategory.model_validate(row)

    def update_category(
        self,
        category_id: int,
        patch: CategoryUpdate | dict[str, Any],
    ) -> Optional[DirectoryCategory]:
        data = parse_payload(CategoryUpdate, patch)
        fields = data.provided()
        _reject_nulls(fields)
        with (
            track_operation("directory_category", "update"),
            self.db.transaction("directory_category") as session,
        ):
            row = session.get(DirectoryCategoryRow, category_id)
            if row is None:
                return None
            if "slug" in fields:
                fields["slug"] = assign_slug(
                    session, DirectoryCategoryRow, fields["slug"], row.name, row.id
                )
            for name, value in fields.items():
                setattr(row, name, value)
            row.updated_at = utc_now()
            Repository(session, DirectoryCategoryRow).save(row)
            return self._category(session, row)

    def delete_category(self, category_id: int) -> bool:
        """Delete an empty category.

        Raises:
            CategoryInUseError: If listings still belong to the category
        """
        with (
            track_operation("directory_category", "delete"),
            self.db.transaction("directory_category") as session,
        ):
            row = session.get(DirectoryCategoryRow, category_id)
            if row is None:
                return False
            in_use = Repository(session, DirectoryListingRow).count(category_id=category_id)
            if in_use:
                raise CategoryInUseError(category_id, in_use)
            session.delete(row)
        logger.info(f"Deleted directory category {category_id}")
        return True

    # =========================================================================
    # Listings
    # =========================================================================

    def list_listings(
        self,
        options: ListingListOptions | dict[str, Any] | None = None,
    ) -> Page[DirectoryListing]:
        """List listings with filtering, sorting and paging.

        Args:
            options: ListingListOptions or an equivalent mapping

        Returns:
            Page of listings with decoded structured fields
        """
        opts = parse_payload(ListingListOptions, options)
        with track_operation("listing", "list"), self.db.session("listing") as session:
            return listings_page(session, opts)

    def list_listings_by_category_slug(
        self,
        slug: str,
        options: ListingListOptions | dict[str, Any] | None = None,
    ) -> Optional[Page[DirectoryListing]]:
        """List the listings of the category with ``slug``; None if it does not exist."""
        opts = parse_payload(ListingListOptions, options)
        with track_operation("listing", "list"), self.db.session("listing") as session:
            category = Repository(session, DirectoryCategoryRow).get_by_slug(slug)
            if category is None:
                return None
            return listings_page(
                session, opts, [DirectoryListingRow.category_id == category.id]
            )

    def get_listing(self, listing_id: int) -> Optional[DirectoryListing]:
        with track_operation("listing", "get"), self.db.session("listing") as session:
            row = session.get(DirectoryListingRow, listing_id)
            return hydrate_listing(session, row) if row else None

    def get_listing_by_slug(self, slug: str) -> Optional[DirectoryListing]:
        with track_operation("listing", "get"), self.db.session("listing") as session:
            row = Repository(session, DirectoryListingRow).get_by_slug(slug)
            return hydrate_listing(session, row) if row else None

    def create_listing(self, payload: ListingCreate | dict[str, Any]) -> DirectoryListing:
        """Create a listing.

        When no ``location`` is given, the address from ``location_data``
        is used.

        Raises:
            ContentValidationError: Missing name/category/location, bad
                email, phone or URL, or an unknown category
        """
        data = parse_payload(ListingCreate, payload)
        location_dict = data.location_data.model_dump(exclude_none=True) if data.location_data else None
        with track_operation("listing", "create"), self.db.transaction("listing") as session:
            self._check_category(session, data.category_id)
            values = encode_listing_fields(data.provided("slug", "location"))
            row = DirectoryListingRow(
                **values,
                slug=assign_slug(session, DirectoryListingRow, data.slug, data.name),
                location=normalize_location(data.location, location_dict),
            )
            Repository(session, DirectoryListingRow).create(row)
            listing = hydrate_listing(session, row)

        logger.info(f"✅ Created listing {listing.id} '{listing.slug}'")
        return listing

    def update_listing(
        self,
        listing_id: int,
        patch: ListingUpdate | dict[str, Any],
    ) -> Optional[DirectoryListing]:
        """Apply a partial update; only fields present in ``patch`` change.

        An address inside a new ``location_data`` replaces ``location``.

        Raises:
            StaleWriteError: If ``expected_version`` does not match
            ContentValidationError: For invalid input or an unknown category
        """
        data = parse_payload(ListingUpdate, patch)
        fields = data.provided("expected_version")
        _reject_nulls(fields)

        with track_operation("listing", "update"), self.db.transaction("listing") as session:
            row = session.get(DirectoryListingRow, listing_id)
            if row is None:
                return None
            if data.expected_version is not None and data.expected_version != row.version:
                raise StaleWriteError("listing", listing_id, data.expected_version, row.version)
            if "category_id" in fields:
                self._check_category(session, fields["category_id"])
            if "slug" in fields:
                fields["slug"] = assign_slug(
                    session, DirectoryListingRow, fields["slug"], row.name, row.id
                )
            if data.location_data is not None:
                fields["location"] = normalize_location(
                    fields.get("location", row.location),
                    data.location_data.model_dump(exclude_none=True),
                    prefer_address=True,
                )

            for name, value in encode_listing_fields(fields).items():
                setattr(row, name, value)
            row.version += 1
            row.updated_at = utc_now()
            Repository(session, DirectoryListingRow).save(row)
            listing = hydrate_listing(session, row)

        logger.info(f"Updated listing {listing_id} to version {listing.version}")
        return listing

    def delete_listing(self, listing_id: int) -> bool:
        """Delete a listing with its reviews and blog links."""
        with track_operation("listing", "delete"), self.db.transaction("listing") as session:
            row = session.get(DirectoryListingRow, listing_id)
            if row is None:
                return False
            delete_listing_children(session, listing_id)
            session.delete(row)
        logger.info(f"Deleted listing {listing_id}")
        return True

    def set_featured(self, listing_id: int, featured: bool) -> Optional[DirectoryListing]:
        """Toggle the featured flag; None if the listing does not exist."""
        with track_operation("listing", "feature"), self.db.transaction("listing") as session:
            row = session.get(DirectoryListingRow, listing_id)
            if row is None:
                return None
            row.featured = featured
            row.version += 1
            row.updated_at = utc_now()
            Repository(session, DirectoryListingRow).save(row)
            return hydrate_listing(session, row)

    # =========================================================================
    # Bulk Operations
    # =========================================================================

    def bulk_set_featured(self, listing_ids: Iterable[int], featured: bool) -> BulkResult:
        """Feature or unfeature several listings, one transaction each."""
        operation = "feature" if featured else "unfeature"
        return self._bulk(
            operation,
            listing_ids,
            lambda listing_id: self.set_featured(listing_id, featured) is not None,
        )

    def bulk_delete(self, listing_ids: Iterable[int]) -> BulkResult:
        """Delete several listings, one transaction each."""
        return self._bulk("delete", listing_ids, self.delete_listing)

    def _bulk(
        self,
        operation: str,
        listing_ids: Iterable[int],
        apply: Callable[[int], bool],
    ) -> BulkResult:
        # Items are independent: a failure never undoes earlier successes
        result = BulkResult(operation=operation)
        for listing_id in unique_in_order(listing_ids):
            try:
                found = apply(listing_id)
            except TravelCMSError as exc:
                logger.warning(f"Bulk {operation} failed for listing {listing_id}: {exc.message}")
                result.failed[listing_id] = exc.message
            else:
                if found:
                    result.succeeded.append(listing_id)
                else:
                    result.failed[listing_id] = "not found"

        bulk_items_total.labels(operation=operation, status="success").inc(len(result.succeeded))
        bulk_items_total.labels(operation=operation, status="failed").inc(len(result.failed))
        logger.info(
            f"Bulk {operation}: {len(result.succeeded)} succeeded, {len(result.failed)} failed"
        )
        return result

    # =========================================================================
    # Facets
    # =========================================================================

    def count_listings_by_location(self, category_id: Optional[int] = None) -> dict[str, int]:
        """Listing counts per location, most common first."""
        with self.db.session("listing") as session:
            count = func.count(DirectoryListingRow.id)
            stmt = (
                select(DirectoryListingRow.location, count)
                .where(DirectoryListingRow.location.is_not(None))  # type: ignore[union-attr]
                .where(DirectoryListingRow.location != "")
                .group_by(DirectoryListingRow.location)
                .order_by(count.desc(), DirectoryListingRow.location)
            )
            if category_id is not None:
                stmt = stmt.where(DirectoryListingRow.category_id == category_id)
            return {location: total for location, total in session.exec(stmt).all()}

    def distinct_price_ranges(self, category_id: Optional[int] = None) -> list[PriceRange]:
        """Price bands in use, cheapest first."""
        with self.db.session("listing") as session:
            stmt = select(DirectoryListingRow.price_range).where(
                DirectoryListingRow.price_range.is_not(None)  # type: ignore[union-attr]
            )
            if category_id is not None:
                stmt = stmt.where(DirectoryListingRow.category_id == category_id)
            used = set(session.exec(stmt.distinct()).all())
        return [price for price in PriceRange if price.value in used]

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _check_category(session: Session, category_id: int) -> None:
        if session.get(DirectoryCategoryRow, category_id) is None:
            raise ContentValidationError(
                f"category_id: directory category {category_id} does not exist"
            )

    @staticmethod
    def _category(session: Session, row: DirectoryCategoryRow) -> DirectoryCategory:
        count = Repository(session, DirectoryListingRow).count(category_id=row.id)
        return DirectoryCategory(**row.model_dump(), listing_count=count)


def _reject_nulls(fields: dict[str, Any]) -> None:
    for name in _NOT_NULL:
        if name in fields and fields[name] is None:
            raise ContentValidationError(f"{name}: may not be null")


__all__ = [
    "DirectoryStore",
    "encode_listing_fields",
    "hydrate_listing",
    "listings_page",
    "delete_listing_children",
]
