"""Review store: listing reviews, owner responses and moderation reports.

Example:
    >>> reviews = ReviewStore(db)
    >>> review = reviews.create_review(cafe.id, {
    ...     "user_id": "u-17",
    ...     "rating": 5,
    ...     "content": "Best flat white in Cairns.",
    ... })
    >>> reviews.respond(review.id, "Thanks for visiting!", "Reef Cafe")
    >>> reviews.review_summary(cafe.id)
    ReviewSummary(listing_id=1, average_rating=5.0, total_reviews=1)
"""

from typing import Any, Optional

from sqlalchemy import case, delete, func, update
from sqlmodel import select

from travelcms.database import Database
from travelcms.errors import ContentValidationError, parse_payload
from travelcms.logging import logger
from travelcms.metrics import track_operation
from travelcms.models import (
    DirectoryListingRow,
    DirectoryReview,
    DirectoryReviewReportRow,
    DirectoryReviewResponseRow,
    DirectoryReviewRow,
    ReviewCreate,
    ReviewReport,
    ReviewResponse,
    ReviewSummary,
)
from travelcms.repository import Repository
from travelcms.utils import utc_now


class ReviewStore:
    """Reviews of directory listings.

    Args:
        db: Initialized persistence gateway
    """

    def __init__(self, db: Database):
        self.db = db

    def create_review(
        self,
        listing_id: int,
        payload: ReviewCreate | dict[str, Any],
    ) -> Optional[DirectoryReview]:
        """Add a review to a listing.

        Returns:
            The review, or None if the listing does not exist

        Raises:
            ContentValidationError: Rating outside 1-5 or content too short
        """
        data = parse_payload(ReviewCreate, payload)
        with track_operation("review", "create"), self.db.transaction("review") as session:
            if session.get(DirectoryListingRow, listing_id) is None:
                return None
            row = Repository(session, DirectoryReviewRow).create(
                DirectoryReviewRow(
                    listing_id=listing_id,
                    user_id=data.user_id,
                    user_name=data.user_name,
                    rating=data.rating,
                    content=data.content,
                )
            )
            review = DirectoryReview.model_validate(row)

        logger.info(f"New {review.rating}-star review {review.id} on listing {listing_id}")
        return review

    def get_review(self, review_id: int) -> Optional[DirectoryReview]:
        with self.db.session("review") as session:
            row = session.get(DirectoryReviewRow, review_id)
            if row is None:
                return None
            response = Repository(session, DirectoryReviewResponseRow).find_by(review_id=review_id)
            return DirectoryReview(
                **row.model_dump(),
                response=ReviewResponse.model_validate(response[0]) if response else None,
            )

    def list_reviews(self, listing_id: int) -> list[DirectoryReview]:
        """Reviews of a listing, newest first, each with its response."""
        with track_operation("review", "list"), self.db.session("review") as session:
            stmt = (
                select(DirectoryReviewRow, DirectoryReviewResponseRow)
                .outerjoin(
                    DirectoryReviewResponseRow,
                    DirectoryReviewResponseRow.review_id == DirectoryReviewRow.id,
                )
                .where(DirectoryReviewRow.listing_id == listing_id)
                .order_by(DirectoryReviewRow.created_at.desc(), DirectoryReviewRow.id.desc())  # type: ignore[attr-defined,union-attr]
            )
            return [
                DirectoryReview(
                    **row.model_dump(),
                    response=ReviewResponse.model_validate(response) if response else None,
                )
                for row, response in session.exec(stmt).all()
            ]

    def review_summary(self, listing_id: int) -> ReviewSummary:
        """Average rating and review count; 0.0 average when unreviewed."""
        with self.db.session("review") as session:
            average, total = session.exec(
                select(func.avg(DirectoryReviewRow.rating), func.count(DirectoryReviewRow.id)).where(
                    DirectoryReviewRow.listing_id == listing_id
                )
            ).one()
        return ReviewSummary(
            listing_id=listing_id,
            average_rating=float(average or 0.0),
            total_reviews=total,
        )

    def mark_helpful(self, review_id: int, increment: bool = True) -> Optional[int]:
        """Adjust the helpful counter atomically; it never drops below zero.

        Returns:
            New count, or None if the review does not exist
        """
        counter = DirectoryReviewRow.helpful_count
        new_value: Any = counter + 1 if increment else case((counter > 0, counter - 1), else_=0)
        with self.db.transaction("review") as session:
            result = session.exec(  # type: ignore[call-overload]
                update(DirectoryReviewRow)
                .where(DirectoryReviewRow.id == review_id)
                .values(helpful_count=new_value)
            )
            if result.rowcount == 0:
                return None
            return session.exec(
                select(DirectoryReviewRow.helpful_count).where(DirectoryReviewRow.id == review_id)
            ).one()

    def respond(
        self,
        review_id: int,
        content: str,
        respondent_name: str,
    ) -> Optional[ReviewResponse]:
        """Attach the owner response to a review, replacing any earlier one.

        Returns:
            The response, or None if the review does not exist
        """
        content = (content or "").strip()
        respondent_name = (respondent_name or "").strip()
        if not content:
            raise ContentValidationError("content: response may not be empty")
        if not respondent_name:
            raise ContentValidationError("respondent_name: is required")

        with track_operation("review", "respond"), self.db.transaction("review") as session:
            if session.get(DirectoryReviewRow, review_id) is None:
                return None
            responses = Repository(session, DirectoryReviewResponseRow)
            existing = responses.find_by(review_id=review_id)
            if existing:
                row = existing[0]
                row.content = content
                row.respondent_name = respondent_name
                row.created_at = utc_now()
                responses.save(row)
            else:
                row = responses.create(
                    DirectoryReviewResponseRow(
                        review_id=review_id,
                        content=content,
                        respondent_name=respondent_name,
                    )
                )
            return ReviewResponse.model_validate(row)

    def report(
        self,
        review_id: int,
        user_id: str,
        reason: Optional[str] = None,
    ) -> Optional[ReviewReport]:
        """Record a moderation report; None if the review does not exist."""
        with track_operation("review", "report"), self.db.transaction("review") as session:
            if session.get(DirectoryReviewRow, review_id) is None:
                return None
            row = Repository(session, DirectoryReviewReportRow).create(
                DirectoryReviewReportRow(review_id=review_id, user_id=user_id, reason=reason)
            )
            report = ReviewReport.model_validate(row)

        logger.warning(f"Review {review_id} reported by {user_id}: {reason or 'no reason given'}")
        return report

    def list_reports(self, review_id: int) -> list[ReviewReport]:
        with self.db.session("review") as session:
            rows = session.exec(
                select(DirectoryReviewReportRow)
                .where(DirectoryReviewReportRow.review_id == review_id)
                .order_by(DirectoryReviewReportRow.reported_at, DirectoryReviewReportRow.id)
            ).all()
            return [ReviewReport.model_validate(row) for row in rows]

    def delete_review(self, review_id: int) -> bool:
        """Remove a review with its response and reports."""
        with track_operation("review", "delete"), self.db.transaction("review") as session:
            row = session.get(DirectoryReviewRow, review_id)
            if row is None:
                return False
            session.exec(  # type: ignore[call-overload]
                delete(DirectoryReviewResponseRow).where(
                    DirectoryReviewResponseRow.review_id == review_id
                )
            )
            session.exec(  # type: ignore[call-overload]
                delete(DirectoryReviewReportRow).where(DirectoryReviewReportRow.review_id == review_id)
            )
            session.delete(row)
        return True


__all__ = ["ReviewStore"]
