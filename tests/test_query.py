"""Unit tests for list option parsing, sorting and paging."""

import pytest

from travelcms.config import settings
from travelcms.models import BlogPostRow, SortDirection
from travelcms.query import (
    LISTING_SORT,
    POST_SORT,
    ListingListOptions,
    PostListOptions,
    normalize_direction,
    order_clause,
    resolve_sort_field,
    resolve_window,
    search_condition,
)


class TestSortDirection:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("DESC", SortDirection.DESC),
            ("desc", SortDirection.DESC),
            (" Desc ", SortDirection.DESC),
            ("ASC", SortDirection.ASC),
            ("sideways", SortDirection.ASC),
        ],
    )
    def test_normalize(self, value, expected):
        assert normalize_direction(value) is expected

    def test_missing_uses_default(self):
        assert normalize_direction(None, SortDirection.DESC) is SortDirection.DESC
        assert normalize_direction("", SortDirection.DESC) is SortDirection.DESC


class TestSortField:
    def test_allowed_field(self):
        assert resolve_sort_field(POST_SORT, "title") == "title"

    @pytest.mark.parametrize("field", [None, "password", "title; DROP TABLE blog_posts"])
    def test_unknown_field_falls_back(self, field):
        assert resolve_sort_field(POST_SORT, field) == "created_at"
        assert resolve_sort_field(LISTING_SORT, field) == "name"

    def test_order_clause_has_tie_breaker(self):
        terms = [str(term) for term in order_clause(POST_SORT, "title", "asc")]

        assert terms == ["blog_posts.title ASC", "blog_posts.id ASC"]

    def test_order_clause_default_direction(self):
        terms = [str(term) for term in order_clause(POST_SORT, None, None)]

        assert terms == ["blog_posts.created_at DESC", "blog_posts.id DESC"]


class TestWindow:
    def test_defaults(self):
        window = resolve_window(None, None, 10)

        assert (window.page, window.limit, window.offset) == (1, 10, 0)

    def test_clamps_bad_input(self):
        window = resolve_window(-3, 0, 10)

        assert (window.page, window.limit) == (1, 10)

    def test_offset(self):
        assert resolve_window(3, 20, 10).offset == 40

    def test_caps_limit(self):
        assert resolve_window(1, 10_000, 10).limit == settings.max_page_size


class TestOptions:
    def test_query_string_aliases(self):
        opts = PostListOptions.model_validate({"sort": "title", "order": "desc", "page": "2"})

        assert opts.sort_by == "title"
        assert opts.sort_order == "desc"
        assert opts.page == 2

    def test_field_names_accepted(self):
        opts = ListingListOptions(sort_by="name", sort_order="ASC", price_range="$$")

        assert opts.sort_by == "name"
        assert opts.price_range.value == "$$"

    def test_search_condition_blank(self):
        assert search_condition(None, BlogPostRow.title) is None
        assert search_condition("   ", BlogPostRow.title) is None

    def test_search_condition_escapes_wildcards(self):
        condition = search_condition("100%", BlogPostRow.title)
        compiled = condition.compile(compile_kwargs={"literal_binds": True})

        assert "ESCAPE" in str(compiled).upper()
