"""Comment store: visitor comments on blog posts, likes and reports.

Threads are one level deep. A reply to a reply is attached to the
top-level comment it belongs to, so every reply shows up under a thread.

Example:
    >>> comments = CommentStore(db)
    >>> first = comments.create_comment(post.id, {
    ...     "user_name": "Sam",
    ...     "user_email": "sam@example.com",
    ...     "content": "Which month is best for the reef?",
    ... })
    >>> comments.create_comment(post.id, {
    ...     "user_name": "Editor",
    ...     "user_email": "editor@example.com",
    ...     "content": "June to October.",
    ...     "parent_id": first.id,
    ... })
    >>> [len(thread.replies) for thread in comments.list_comments(post.id)]
    [1]
"""

from typing import Any, Optional

from sqlalchemy import delete, update
from sqlmodel import Session, select

from travelcms.database import Database
from travelcms.errors import ContentValidationError, parse_payload
from travelcms.logging import logger
from travelcms.metrics import track_operation
from travelcms.models import (
    BlogComment,
    BlogCommentReportRow,
    BlogCommentRow,
    BlogPostRow,
    CommentCreate,
    CommentReport,
    ReportStatus,
)
from travelcms.repository import Repository


def delete_post_comments(session: Session, post_id: int) -> None:
    """Remove a post's comments and their reports inside the caller's transaction."""
    comment_ids = select(BlogCommentRow.id).where(BlogCommentRow.post_id == post_id)
    session.exec(  # type: ignore[call-overload]
        delete(BlogCommentReportRow).where(BlogCommentReportRow.comment_id.in_(comment_ids))  # type: ignore[attr-defined]
    )
    # Replies first so no statement leaves a dangling parent_id
    session.exec(  # type: ignore[call-overload]
        delete(BlogCommentRow).where(
            BlogCommentRow.post_id == post_id,
            BlogCommentRow.parent_id.is_not(None),  # type: ignore[union-attr]
        )
    )
    session.exec(delete(BlogCommentRow).where(BlogCommentRow.post_id == post_id))  # type: ignore[call-overload]


class CommentStore:
    """Comments on blog posts.

    Args:
        db: Initialized persistence gateway
    """

    def __init__(self, db: Database):
        self.db = db

    def create_comment(
        self,
        post_id: int,
        payload: CommentCreate | dict[str, Any],
    ) -> Optional[BlogComment]:
        """Add a comment, or a reply when ``parent_id`` is given.

        Returns:
            The comment, or None if the post does not exist

        Raises:
            ContentValidationError: Missing name or content, bad email, or a
                parent comment that is not on this post
        """
        data = parse_payload(CommentCreate, payload)
        with track_operation("comment", "create"), self.db.transaction("comment") as session:
            if session.get(BlogPostRow, post_id) is None:
                return None
            parent_id = None
            if data.parent_id is not None:
                parent = session.get(BlogCommentRow, data.parent_id)
                if parent is None or parent.post_id != post_id:
                    raise ContentValidationError(
                        f"parent_id: comment {data.parent_id} is not on post {post_id}"
                    )
                parent_id = parent.parent_id or parent.id
            row = Repository(session, BlogCommentRow).create(
                BlogCommentRow(
                    post_id=post_id,
                    parent_id=parent_id,
                    user_name=data.user_name,
                    user_email=data.user_email,
                    content=data.content,
                )
            )
            comment = BlogComment.model_validate(row)

        kind = f"reply to {parent_id}" if parent_id else "comment"
        logger.info(f"New {kind} {comment.id} on post {post_id} by {comment.user_name}")
        return comment

    def get_comment(self, comment_id: int) -> Optional[BlogComment]:
        with self.db.session("comment") as session:
            row = session.get(BlogCommentRow, comment_id)
            return BlogComment.model_validate(row) if row else None

    def list_comments(self, post_id: int) -> list[BlogComment]:
        """Top-level comments newest first, each with its replies oldest first."""
        with track_operation("comment", "list"), self.db.session("comment") as session:
            rows = session.exec(
                select(BlogCommentRow)
                .where(BlogCommentRow.post_id == post_id)
                .order_by(BlogCommentRow.created_at, BlogCommentRow.id)
            ).all()

        threads = {row.id: BlogComment.model_validate(row) for row in rows if row.parent_id is None}
        for row in rows:
            if row.parent_id is not None and row.parent_id in threads:
                threads[row.parent_id].replies.append(BlogComment.model_validate(row))
        return list(reversed(threads.values()))

    def like(self, comment_id: int) -> Optional[int]:
        """Increment the like counter; returns the new count or None."""
        with self.db.transaction("comment") as session:
            result = session.exec(  # type: ignore[call-overload]
                update(BlogCommentRow)
                .where(BlogCommentRow.id == comment_id)
                .values(likes=BlogCommentRow.likes + 1)
            )
            if result.rowcount == 0:
                return None
            return session.exec(
                select(BlogCommentRow.likes).where(BlogCommentRow.id == comment_id)
            ).one()

    def report(self, comment_id: int, reason: Optional[str] = None) -> Optional[CommentReport]:
        """File a pending moderation report; None if the comment does not exist."""
        reason = (reason or "").strip() or None
        with track_operation("comment", "report"), self.db.transaction("comment") as session:
            if session.get(BlogCommentRow, comment_id) is None:
                return None
            row = Repository(session, BlogCommentReportRow).create(
                BlogCommentReportRow(comment_id=comment_id, reason=reason)
            )
            report = CommentReport.model_validate(row)

        logger.warning(f"Comment {comment_id} reported: {reason or 'no reason given'}")
        return report

    def list_reports(self, status: ReportStatus | str | None = None) -> list[CommentReport]:
        """Reports oldest first, optionally only those in ``status``."""
        stmt = select(BlogCommentReportRow)
        if status is not None:
            stmt = stmt.where(BlogCommentReportRow.status == ReportStatus(status).value)
        with self.db.session("comment") as session:
            rows = session.exec(
                stmt.order_by(BlogCommentReportRow.reported_at, BlogCommentReportRow.id)
            ).all()
            return [CommentReport.model_validate(row) for row in rows]

    def mark_report_reviewed(self, report_id: int) -> Optional[CommentReport]:
        with self.db.transaction("comment") as session:
            row = session.get(BlogCommentReportRow, report_id)
            if row is None:
                return None
            row.status = ReportStatus.REVIEWED.value
            session.add(row)
            session.flush()
            return CommentReport.model_validate(row)

    def delete_comment(self, comment_id: int) -> bool:
        """Remove a comment with its replies and every related report."""
        with track_operation("comment", "delete"), self.db.transaction("comment") as session:
            row = session.get(BlogCommentRow, comment_id)
            if row is None:
                return False
            thread = select(BlogCommentRow.id).where(
                (BlogCommentRow.id == comment_id) | (BlogCommentRow.parent_id == comment_id)
            )
            session.exec(  # type: ignore[call-overload]
                delete(BlogCommentReportRow).where(BlogCommentReportRow.comment_id.in_(thread))  # type: ignore[attr-defined]
            )
            session.exec(delete(BlogCommentRow).where(BlogCommentRow.parent_id == comment_id))  # type: ignore[call-overload]
            session.delete(row)

        logger.info(f"Deleted comment {comment_id}")
        return True


__all__ = ["CommentStore", "delete_post_comments"]
