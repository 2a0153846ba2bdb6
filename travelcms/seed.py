"""Starter blog categories and tags installed by ``travelcms init --seed``."""

from travelcms.database import Database
from travelcms.logging import logger
from travelcms.models import BlogCategoryRow, BlogTagRow
from travelcms.repository import Repository

DEFAULT_BLOG_CATEGORIES = [
    ("Travel Tips", "travel-tips", "Helpful advice for travelers"),
    ("Destinations", "destinations", "Explore amazing places across Australia"),
    ("Adventure", "adventure", "Thrilling experiences and activities"),
    ("Food & Dining", "food-dining", "Culinary experiences and restaurant reviews"),
    ("Accommodation", "accommodation", "Hotels, resorts, and places to stay"),
]

DEFAULT_BLOG_TAGS = [
    ("Beach", "beach"),
    ("Wildlife", "wildlife"),
    ("City", "city"),
    ("Hiking", "hiking"),
    ("Budget", "budget"),
    ("Luxury", "luxury"),
    ("Family", "family"),
    ("Solo Travel", "solo-travel"),
    ("Road Trip", "road-trip"),
    ("Photography", "photography"),
]


def seed_defaults(db: Database) -> dict[str, int]:
    """Insert the starter categories and tags that are not present yet.

    Rows are matched by slug, so running this twice adds nothing.

    Returns:
        Number of rows created per table
    """
    created = {"blog_categories": 0, "blog_tags": 0}
    with db.transaction("seed") as session:
        categories = Repository(session, BlogCategoryRow)
        for name, slug, description in DEFAULT_BLOG_CATEGORIES:
            _, was_created = categories.get_or_create(
                {"name": name, "description": description}, slug=slug
            )
            created["blog_categories"] += was_created

        tags = Repository(session, BlogTagRow)
        for name, slug in DEFAULT_BLOG_TAGS:
            _, was_created = tags.get_or_create({"name": name}, slug=slug)
            created["blog_tags"] += was_created

    logger.info(
        f"✅ Seeded {created['blog_categories']} categories and {created['blog_tags']} tags"
    )
    return created


__all__ = ["seed_defaults", "DEFAULT_BLOG_CATEGORIES", "DEFAULT_BLOG_TAGS"]
