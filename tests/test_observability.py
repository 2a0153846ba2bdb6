"""Tests for structured logging and Prometheus metrics helpers."""

import pytest
from loguru import logger

from travelcms.errors import StoreError
from travelcms.logging import (
    clear_request_context,
    get_request_context,
    request_context,
    set_request_context,
)
from travelcms.metrics import generate_metrics_output, registry, track_operation
from travelcms.models import BlogTagRow


class TestJsonLogs:
    def test_serialize_includes_context_and_extras(self, json_logs):
        with request_context(request_id="req-1", actor_id="admin-7", operation="update_post"):
            logger.bind(post_id=12).info("Post updated")

        payload = json_logs[0]

        assert payload["message"] == "Post updated"
        assert payload["level"] == "INFO"
        assert payload["request_id"] == "req-1"
        assert payload["actor_id"] == "admin-7"
        assert payload["operation"] == "update_post"
        assert payload["post_id"] == 12

    def test_serialize_exception(self, json_logs):
        try:
            raise ValueError("bad slug")
        except ValueError:
            logger.exception("Failed")

        payload = json_logs[0]

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["value"] == "bad slug"

    def test_unset_context_omitted(self, json_logs):
        logger.info("Plain")

        assert "request_id" not in json_logs[0]
        assert "entity" not in json_logs[0]

    def test_store_entity_bound(self, db, json_logs):
        with db.session("listing"):
            logger.info("Inside a listing session")
        logger.info("Outside")

        assert json_logs[0]["entity"] == "listing"
        assert "entity" not in json_logs[1]

    def test_store_error_carries_entity(self, db, json_logs):
        with pytest.raises(StoreError):
            with db.transaction("tag") as session:
                session.add(BlogTagRow(name="Beach", slug="beach"))
                session.add(BlogTagRow(name="Beach", slug="beach"))

        errors = [p for p in json_logs if p["level"] == "ERROR"]
        assert errors[0]["entity"] == "tag"


class TestRequestContext:
    def test_set_merges_and_clear_resets(self):
        set_request_context(request_id="abc")
        set_request_context(actor_id="admin-1")
        assert get_request_context() == {"request_id": "abc", "actor_id": "admin-1", "operation": None}

        clear_request_context()
        assert get_request_context() == {"request_id": None, "actor_id": None, "operation": None}

    def test_scoped_context_restores_outer(self):
        with request_context(request_id="outer", actor_id="admin-1"):
            with request_context(operation="search") as inner:
                assert inner.request_id == "outer"
                assert inner.operation == "search"
            assert get_request_context()["operation"] is None
            assert get_request_context()["request_id"] == "outer"

        assert get_request_context()["request_id"] is None

    def test_scoped_context_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with request_context(request_id="req-9"):
                raise RuntimeError("boom")

        assert get_request_context()["request_id"] is None


class TestMetrics:
    def test_track_operation_success(self):
        with track_operation("listing", "create"):
            pass

        assert registry.get_sample_value(
            "content_operations_total",
            {"entity": "listing", "operation": "create", "status": "success"},
        ) == 1.0
        assert registry.get_sample_value(
            "operation_duration_seconds_count",
            {"entity": "listing", "operation": "create"},
        ) == 1.0

    def test_track_operation_error_reraises(self):
        with pytest.raises(KeyError):
            with track_operation("listing", "update"):
                raise KeyError("boom")

        assert registry.get_sample_value(
            "content_operations_total",
            {"entity": "listing", "operation": "update", "status": "error"},
        ) == 1.0

    def test_store_calls_are_counted(self, blog):
        blog.create_tag({"name": "Beach"})

        assert registry.get_sample_value(
            "content_operations_total",
            {"entity": "blog_tag", "operation": "create", "status": "success"},
        ) == 1.0

    def test_exposition_output(self):
        output = generate_metrics_output().decode("utf-8")

        assert "# TYPE content_operations_total counter" in output
        assert "open_sessions" in output
