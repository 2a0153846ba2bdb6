"""Integration tests for the directory store."""

import pytest

from travelcms.errors import CategoryInUseError, ContentValidationError, StaleWriteError
from travelcms.metrics import registry
from travelcms.models import DirectoryListingRow, PriceRange


class TestCreateListing:
    def test_structured_fields(self, directory, directory_category):
        listing = directory.create_listing(
            {
                "name": "Reef Cafe",
                "category_id": directory_category.id,
                "location_data": {"lat": -16.92, "lng": 145.77, "address": "1 Esplanade, Cairns"},
                "hours": {"Monday": "07:00-15:00", "sunday": "closed"},
                "images": [{"url": "/uploads/front.jpg", "name": "Front"}, {"url": "/uploads/menu.jpg"}],
                "price_range": "$$",
                "email": "hello@reefcafe.com.au",
                "phone": "+61 7 4051 1234",
                "website": "https://reefcafe.com.au",
            }
        )

        assert listing.slug == "reef-cafe"
        assert listing.location == "1 Esplanade, Cairns"
        assert listing.coordinates == {"lat": -16.92, "lng": 145.77}
        assert listing.location_data["address"] == "1 Esplanade, Cairns"
        assert listing.hours == {"monday": "07:00-15:00", "sunday": "Closed"}
        assert [image["url"] for image in listing.images] == ["/uploads/front.jpg", "/uploads/menu.jpg"]
        assert listing.price_range is PriceRange.MODERATE
        assert listing.category_name == "Food & Dining"
        assert listing.featured is False
        assert listing.version == 1

    def test_explicit_location_kept(self, make_listing):
        listing = make_listing(
            location="Cairns CBD",
            location_data={"lat": -16.92, "lng": 145.77, "address": "1 Esplanade, Cairns"},
        )

        assert listing.location == "Cairns CBD"

    def test_json_text_fields_accepted(self, make_listing):
        listing = make_listing(hours='{"friday": "17:00-23:00"}', images="[]")

        assert listing.hours == {"friday": "17:00-23:00"}
        assert listing.images == []

    def test_unknown_category(self, directory):
        with pytest.raises(ContentValidationError, match="does not exist"):
            directory.create_listing({"name": "Ghost", "category_id": 999, "location": "Nowhere"})

    def test_location_required(self, directory, directory_category):
        with pytest.raises(ContentValidationError, match="location is required"):
            directory.create_listing({"name": "Nowhere Inn", "category_id": directory_category.id})

    @pytest.mark.parametrize(
        ("field", "value"),
        [("email", "nope"), ("phone", "ring ring"), ("website", "reefcafe")],
    )
    def test_invalid_contact(self, make_listing, field, value):
        with pytest.raises(ContentValidationError, match=field):
            make_listing(**{field: value})

    def test_duplicate_name_gets_suffix(self, make_listing, monkeypatch):
        monkeypatch.setattr("travelcms.slugs.slug_suffix", lambda now_ms=None: "0042")

        assert make_listing().slug == "reef-cafe"
        assert make_listing().slug == "reef-cafe-0042"


class TestListListings:
    @pytest.fixture
    def listings(self, directory, make_listing):
        stay = directory.create_category({"name": "Accommodation"})
        return {
            "cafe": make_listing(name="Reef Cafe", location="Cairns QLD", price_range="$"),
            "bistro": make_listing(name="Harbour Bistro", location="Sydney NSW", price_range="$$$"),
            "lodge": make_listing(
                name="Daintree Lodge",
                category_id=stay.id,
                location="Daintree QLD",
                price_range="$$$$",
                featured=True,
            ),
        }

    def test_default_sort_by_name(self, directory, listings):
        names = [listing.name for listing in directory.list_listings().items]

        assert names == ["Daintree Lodge", "Harbour Bistro", "Reef Cafe"]

    def test_sort_descending(self, directory, listings):
        names = [listing.name for listing in directory.list_listings({"order": "desc"}).items]

        assert names == ["Reef Cafe", "Harbour Bistro", "Daintree Lodge"]

    def test_filters(self, directory, directory_category, listings):
        assert directory.list_listings({"category_id": directory_category.id}).total == 2
        assert directory.list_listings({"location": "qld"}).total == 2
        assert directory.list_listings({"price_range": "$$$"}).items[0].name == "Harbour Bistro"
        assert directory.list_listings({"featured": True}).items[0].name == "Daintree Lodge"

    def test_search(self, directory, listings):
        page = directory.list_listings({"search": "esplanade"})

        # Matches the default description of every sample listing
        assert page.total == 3
        assert directory.list_listings({"search": "daintree"}).total == 1

    def test_by_category_slug(self, directory, listings):
        page = directory.list_listings_by_category_slug("accommodation")

        assert [listing.name for listing in page.items] == ["Daintree Lodge"]
        assert directory.list_listings_by_category_slug("missing") is None

    def test_paging(self, directory, listings):
        page = directory.list_listings({"limit": 2, "page": 2})

        assert [listing.name for listing in page.items] == ["Reef Cafe"]
        assert page.total == 3
        assert page.total_pages == 2


class TestUpdateListing:
    def test_partial_update(self, directory, listing):
        updated = directory.update_listing(listing.id, {"description": "Now open for dinner"})

        assert updated.description == "Now open for dinner"
        assert updated.name == listing.name
        assert updated.location == listing.location
        assert updated.version == listing.version + 1

    def test_address_replaces_location(self, directory, listing):
        updated = directory.update_listing(
            listing.id,
            {"location_data": {"lat": -16.9, "lng": 145.7, "address": "2 Abbott St, Cairns"}},
        )

        assert updated.location == "2 Abbott St, Cairns"
        assert updated.coordinates == {"lat": -16.9, "lng": 145.7}

    def test_clear_structured_fields(self, directory, make_listing):
        listing = make_listing(hours={"monday": "08:00-16:00"}, price_range="$")

        updated = directory.update_listing(listing.id, {"hours": None, "price_range": None})

        assert updated.hours == {}
        assert updated.price_range is None

    def test_null_name_rejected(self, directory, listing):
        with pytest.raises(ContentValidationError, match="name"):
            directory.update_listing(listing.id, {"name": None})

    def test_unknown_category(self, directory, listing):
        with pytest.raises(ContentValidationError, match="category_id"):
            directory.update_listing(listing.id, {"category_id": 999})

    def test_stale_version(self, directory, listing):
        directory.update_listing(listing.id, {"featured": True, "expected_version": 1})

        with pytest.raises(StaleWriteError):
            directory.update_listing(listing.id, {"featured": False, "expected_version": 1})

        assert directory.get_listing(listing.id).featured is True

    def test_missing(self, directory):
        assert directory.update_listing(404, {"description": "x"}) is None


class TestFeaturedAndBulk:
    def test_set_featured(self, directory, listing):
        featured = directory.set_featured(listing.id, True)

        assert featured.featured is True
        assert featured.version == 2
        assert directory.set_featured(404, True) is None

    def test_bulk_feature_with_missing_id(self, directory, make_listing):
        first = make_listing(name="First")
        second = make_listing(name="Second")

        result = directory.bulk_set_featured([first.id, 9999, second.id, first.id], True)

        assert result.operation == "feature"
        assert result.succeeded == [first.id, second.id]
        assert result.failed == {9999: "not found"}
        assert result.ok is False
        assert directory.get_listing(first.id).featured is True
        assert directory.get_listing(second.id).featured is True
        assert registry.get_sample_value(
            "bulk_items_total", {"operation": "feature", "status": "success"}
        ) == 2.0
        assert registry.get_sample_value(
            "bulk_items_total", {"operation": "feature", "status": "failed"}
        ) == 1.0

    def test_bulk_unfeature(self, directory, make_listing):
        listing = make_listing(featured=True)

        result = directory.bulk_set_featured([listing.id], False)

        assert result.operation == "unfeature"
        assert result.ok
        assert directory.get_listing(listing.id).featured is False

    def test_bulk_delete(self, directory, make_listing):
        keep = make_listing(name="Keep")
        drop = make_listing(name="Drop")

        result = directory.bulk_delete([drop.id, 12345])

        assert result.succeeded == [drop.id]
        assert result.failed == {12345: "not found"}
        assert directory.get_listing(drop.id) is None
        assert directory.get_listing(keep.id) is not None

    def test_bulk_continues_after_error(self, directory, make_listing, monkeypatch):
        first = make_listing(name="First")
        second = make_listing(name="Second")
        original = directory.set_featured

        def flaky(listing_id, featured):
            if listing_id == first.id:
                raise ContentValidationError("listing is locked")
            return original(listing_id, featured)

        monkeypatch.setattr(directory, "set_featured", flaky)

        result = directory.bulk_set_featured([first.id, second.id], True)

        assert result.succeeded == [second.id]
        assert result.failed == {first.id: "listing is locked"}


class TestDirectoryCategories:
    def test_list_with_counts(self, directory, directory_category, make_listing):
        directory.create_category({"name": "Tours", "description": "Guided trips"})
        make_listing()

        counts = {category.slug: category.listing_count for category in directory.list_categories()}

        assert counts == {"food-dining": 1, "tours": 0}

    def test_update(self, directory, directory_category):
        updated = directory.update_category(directory_category.id, {"name": "Eat & Drink"})

        assert updated.name == "Eat & Drink"
        assert updated.slug == "food-dining"

    def test_delete_in_use_refused(self, directory, directory_category, listing):
        with pytest.raises(CategoryInUseError) as exc_info:
            directory.delete_category(directory_category.id)

        assert exc_info.value.payload == {"listing_count": 1}
        assert directory.get_category(directory_category.id) is not None
        assert directory.get_listing(listing.id) is not None

    def test_delete_empty(self, directory):
        empty = directory.create_category({"name": "Tours"})

        assert directory.delete_category(empty.id) is True
        assert directory.get_category_by_slug("tours") is None
        assert directory.delete_category(empty.id) is False


class TestDeleteListing:
    def test_removes_reviews_and_links(self, directory, reviews, links, make_post, listing, valid_review):
        review = reviews.create_review(listing.id, valid_review)
        reviews.respond(review.id, "Thanks!", "Owner")
        reviews.report(review.id, "user-9", "spam")
        post = make_post()
        links.link(post.id, listing.id)

        assert directory.delete_listing(listing.id) is True

        assert directory.get_listing(listing.id) is None
        assert reviews.get_review(review.id) is None
        assert reviews.list_reports(review.id) == []
        assert links.related_listings(post.id) == []

    def test_missing(self, directory):
        assert directory.delete_listing(404) is False


class TestFacets:
    def test_locations_and_price_ranges(self, directory, make_listing):
        make_listing(name="A", location="Cairns QLD", price_range="$$$")
        make_listing(name="B", location="Cairns QLD", price_range="$")
        make_listing(name="C", location="Sydney NSW")

        assert directory.count_listings_by_location() == {"Cairns QLD": 2, "Sydney NSW": 1}
        assert directory.distinct_price_ranges() == [PriceRange.BUDGET, PriceRange.EXPENSIVE]

    def test_scoped_by_category(self, directory, make_listing):
        tours = directory.create_category({"name": "Tours"})
        make_listing(name="A", location="Cairns QLD", price_range="$$")
        make_listing(name="B", category_id=tours.id, location="Port Douglas QLD", price_range="$$$$")

        assert directory.count_listings_by_location(tours.id) == {"Port Douglas QLD": 1}
        assert directory.distinct_price_ranges(tours.id) == [PriceRange.LUXURY]


class TestStoredShapes:
    """Reads of rows whose JSON parses but has an unexpected shape."""

    @pytest.fixture
    def overwrite(self, db):
        def apply(listing_id, **columns):
            with db.transaction("listing") as session:
                row = session.get(DirectoryListingRow, listing_id)
                for key, value in columns.items():
                    setattr(row, key, value)

        return apply

    def test_free_text_hours_round_trip(self, make_listing):
        listing = make_listing(hours={"monday": "8:00 AM - 10:00 PM", "tuesday": "Closed", "wednesday": ""})

        assert listing.hours == {"monday": "8:00 AM - 10:00 PM", "tuesday": "Closed"}

    def test_non_numeric_coordinates(self, directory, listing, overwrite):
        overwrite(listing.id, location_data='{"lat": "n/a", "lng": 145.7}')

        fetched = directory.get_listing(listing.id)

        assert fetched.coordinates is None
        assert fetched.location_data == {"lat": "n/a", "lng": 145.7}

    def test_non_text_hours_do_not_break_page(self, directory, make_listing, overwrite):
        broken = make_listing(name="Broken Hours")
        make_listing(name="Fine Hours", hours={"monday": "9:00 AM - 5:00 PM"})
        overwrite(broken.id, hours='{"monday": null, "tuesday": "Closed"}')

        page = directory.list_listings()

        assert page.total == 2
        by_name = {item.name: item for item in page.items}
        assert by_name["Broken Hours"].hours == {"tuesday": "Closed"}
        assert by_name["Fine Hours"].hours == {"monday": "9:00 AM - 5:00 PM"}
