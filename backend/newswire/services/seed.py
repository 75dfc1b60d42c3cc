"""
Default data for a fresh installation.
"""

import structlog

from newswire.models.domain import DEFAULT_CATEGORY_NAME, NewsSource, SourceKind
from newswire.storage.base import NewsStore

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORIES = [
    "World",
    "Politics",
    "Business",
    "Technology",
    "Sports",
    "Entertainment",
    "Health",
    "Science",
    DEFAULT_CATEGORY_NAME,
]

DEFAULT_SOURCES = [
    NewsSource(
        name="Tech News",
        base_url="https://newsapi.org",
        api_url="/top-headlines",
        kind=SourceKind.API,
        parameters="category=technology",
        priority=1,
        refresh_interval_minutes=60,
    ),
]


async def seed_defaults(store: NewsStore) -> dict:
    """
    Create the default categories and sources if missing. Idempotent.

    Returns:
        Counts of created categories and sources
    """
    existing_categories = {c.name.lower() for c in await store.list_categories()}
    created_categories = 0
    for name in DEFAULT_CATEGORIES:
        await store.find_or_create_category_by_name(name)
        if name.lower() not in existing_categories:
            created_categories += 1

    created_sources = 0
    for source in DEFAULT_SOURCES:
        if await store.find_source_by_name(source.name) is None:
            await store.save_source(source.model_copy())
            created_sources += 1
            logger.info("Created news source", source=source.name)

    logger.info(
        "Seeded default data",
        categories_created=created_categories,
        sources_created=created_sources,
    )
    return {"categories_created": created_categories, "sources_created": created_sources}
