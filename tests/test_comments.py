"""Integration tests for blog comments, likes and reports."""

import pytest

from travelcms.errors import ContentValidationError
from travelcms.metrics import registry
from travelcms.models import ReportStatus


@pytest.fixture
def post(make_post):
    return make_post(title="Snorkelling the Outer Reef", published=True)


@pytest.fixture
def make_comment(comments, post):
    def _make(**overrides):
        payload = {
            "user_name": "Sam",
            "user_email": "sam@example.com",
            "content": "Which month is best for visibility?",
        }
        payload.update(overrides)
        return comments.create_comment(post.id, payload)

    return _make


class TestCreateComment:
    def test_create(self, make_comment, post):
        comment = make_comment()

        assert comment.post_id == post.id
        assert comment.parent_id is None
        assert comment.likes == 0
        assert comment.replies == []
        assert "user_email" not in comment.model_dump()
        assert registry.get_sample_value(
            "content_operations_total",
            {"entity": "comment", "operation": "create", "status": "success"},
        ) == 1.0

    def test_missing_post(self, comments):
        payload = {"user_name": "Sam", "user_email": "sam@example.com", "content": "Hello"}

        assert comments.create_comment(404, payload) is None

    @pytest.mark.parametrize(
        ("field", "value", "match"),
        [
            ("user_name", "   ", "user_name"),
            ("user_email", "sam-at-example", "not a valid email"),
            ("user_email", "", "user_email"),
            ("content", "", "content"),
        ],
    )
    def test_validation(self, make_comment, field, value, match):
        with pytest.raises(ContentValidationError, match=match):
            make_comment(**{field: value})

    def test_reply_to_unknown_parent(self, make_comment):
        with pytest.raises(ContentValidationError, match="parent_id"):
            make_comment(parent_id=999)

    def test_reply_to_comment_on_other_post(self, comments, make_comment, make_post):
        other = make_post(title="Uluru at Dawn")
        foreign = comments.create_comment(
            other.id, {"user_name": "Alex", "user_email": "alex@example.com", "content": "Cold!"}
        )

        with pytest.raises(ContentValidationError, match="is not on post"):
            make_comment(parent_id=foreign.id)

    def test_reply_to_reply_joins_thread(self, make_comment):
        top = make_comment()
        reply = make_comment(content="June to October.", parent_id=top.id)
        nested = make_comment(content="Agreed, August was perfect.", parent_id=reply.id)

        assert reply.parent_id == top.id
        assert nested.parent_id == top.id


class TestListComments:
    def test_threads(self, comments, make_comment, post):
        first = make_comment(content="First question")
        second = make_comment(content="Second question")
        make_comment(content="Answer one", parent_id=first.id)
        make_comment(content="Answer two", parent_id=first.id)

        threads = comments.list_comments(post.id)

        assert [thread.id for thread in threads] == [second.id, first.id]
        assert [reply.content for reply in threads[1].replies] == ["Answer one", "Answer two"]
        assert threads[0].replies == []

    def test_empty(self, comments, post):
        assert comments.list_comments(post.id) == []


class TestLikesAndReports:
    def test_like(self, comments, make_comment):
        comment = make_comment()

        assert comments.like(comment.id) == 1
        assert comments.like(comment.id) == 2
        assert comments.get_comment(comment.id).likes == 2

    def test_like_missing(self, comments):
        assert comments.like(404) is None

    def test_report_and_review(self, comments, make_comment, log_messages):
        comment = make_comment()

        report = comments.report(comment.id, "  spam link  ")

        assert report.status is ReportStatus.PENDING
        assert report.reason == "spam link"
        assert any(f"Comment {comment.id} reported" in message for message in log_messages)
        assert [r.id for r in comments.list_reports(ReportStatus.PENDING)] == [report.id]

        reviewed = comments.mark_report_reviewed(report.id)

        assert reviewed.status is ReportStatus.REVIEWED
        assert comments.list_reports("pending") == []
        assert len(comments.list_reports()) == 1

    def test_report_missing(self, comments):
        assert comments.report(404) is None
        assert comments.mark_report_reviewed(404) is None


class TestDeleteComments:
    def test_delete_thread(self, comments, make_comment, post):
        top = make_comment()
        reply = make_comment(content="Reply", parent_id=top.id)
        comments.report(reply.id, "rude")
        keep = make_comment(content="Unrelated")

        assert comments.delete_comment(top.id) is True

        assert comments.get_comment(reply.id) is None
        assert comments.list_reports() == []
        assert [thread.id for thread in comments.list_comments(post.id)] == [keep.id]
        assert comments.delete_comment(top.id) is False

    def test_deleting_post_removes_comments(self, blog, comments, make_comment, post, db):
        top = make_comment()
        make_comment(content="Reply", parent_id=top.id)
        comments.report(top.id)

        assert blog.delete_post(post.id) is True

        assert comments.get_comment(top.id) is None
        assert comments.list_reports() == []
        assert db.table_counts()["blog_comments"] == 0
