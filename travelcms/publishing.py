"""Blog post publication rules.

A post's ``(published, published_at, status)`` triple only ever changes
through :func:`resolve_publication`, so the stored values stay consistent:
a published post has a past ``published_at``; a scheduled post has a
future one and is not yet visible; a draft has none.

Example:
    >>> now = datetime(2025, 3, 1, tzinfo=UTC)
    >>> resolve_publication("scheduled", "2025-03-02T09:00:00Z", None, now)
    PublicationChange(published=False, published_at=datetime.datetime(2025, 3, 2, 9, 0, tzinfo=datetime.timezone.utc), status=<PostStatus.SCHEDULED: 'scheduled'>)
    >>> resolve_publication(None, None, None, now) is None
    True
"""

from datetime import UTC, datetime
from typing import NamedTuple, Optional

from travelcms.models import PostStatus
from travelcms.utils import parse_datetime, utc_now


class PublicationChange(NamedTuple):
    """Field values to write for a publication intent."""

    published: bool
    published_at: Optional[datetime]
    status: PostStatus


def resolve_publication(
    status: PostStatus | str | None,
    publish_date: datetime | str | None,
    published: Optional[bool],
    now: Optional[datetime] = None,
) -> Optional[PublicationChange]:
    """Turn a caller's publication intent into stored field values.

    Args:
        status: Requested status; takes precedence over ``published``
        publish_date: Scheduled time (datetime or ISO-8601 text)
        published: Legacy boolean flag used when no status is given
        now: Current time (defaults to ``utc_now()``)

    Returns:
        The change to apply, or None when the caller expressed no intent

    Raises:
        ValueError: If ``status`` or ``publish_date`` cannot be parsed
    """
    now = parse_datetime(now) if now is not None else utc_now()

    if status is None or status == "":
        if published is None:
            return None
        status = PostStatus.PUBLISHED if published else PostStatus.DRAFT
    status = PostStatus(status)

    if status is PostStatus.DRAFT:
        return PublicationChange(False, None, PostStatus.DRAFT)

    if status is PostStatus.SCHEDULED:
        when = parse_datetime(publish_date)
        if when is not None and when > now:
            return PublicationChange(False, when, PostStatus.SCHEDULED)
        # A past or missing date means the post is due now

    return PublicationChange(True, now, PostStatus.PUBLISHED)


def initial_publication(
    status: PostStatus | str | None,
    publish_date: datetime | str | None,
    published: Optional[bool],
    now: Optional[datetime] = None,
) -> PublicationChange:
    """Publication fields for a new post; drafts when nothing is requested."""
    change = resolve_publication(status, publish_date, published, now)
    return change or PublicationChange(False, None, PostStatus.DRAFT)


def is_due(published_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Whether a scheduled timestamp has been reached."""
    if published_at is None:
        return False
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=UTC)
    return published_at <= (now or utc_now())


__all__ = ["PublicationChange", "resolve_publication", "initial_publication", "is_due"]
