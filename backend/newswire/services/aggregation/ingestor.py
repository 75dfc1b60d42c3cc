"""
Article ingestor.

Turns raw fetcher records into canonical articles: deduplicates by source
URL, resolves the category, derives a unique slug and persists.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

import structlog

from newswire.exceptions import DuplicateArticleError, ParseError, SlugTakenError
from newswire.models.domain import (
    DEFAULT_CATEGORY_NAME,
    Category,
    NewsArticle,
    NewsSource,
    RawArticle,
)
from newswire.storage.base import NewsStore
from newswire.utils.dates import parse_iso_datetime
from newswire.utils.query_params import extract_param
from newswire.utils.slug import unique_slug

logger = structlog.get_logger(__name__)


@dataclass
class IngestStats:
    """Per-batch ingestion counters."""
    new: int = 0
    skipped: int = 0
    failed: int = 0


class ArticleIngestor:
    """
    Maps raw articles to canonical ones and stores each source URL once.

    Features:
    - Dedup by source URL (duplicates are skipped, not errors)
    - Category from the raw hint, the source's ``category`` parameter or "General"
    - Unique slugs derived from the title
    """

    def __init__(
        self,
        store: NewsStore,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.clock = clock

    async def ingest(self, raw: RawArticle, source: NewsSource) -> bool:
        """
        Ingest one raw article.

        Returns:
            True only when a new row was inserted

        Raises:
            ParseError: if the article has no usable title
            PersistenceError: if the store fails for this article
        """
        source_url = (raw.url or "").strip()
        if not source_url:
            logger.debug("Skipping article without URL", source=source.name, title=raw.title)
            return False

        if await self.store.exists_article_by_source_url(source_url):
            return False

        title = (raw.title or "").strip()
        if not title:
            raise ParseError(f"Article has no title: {source_url}")

        category = await self.resolve_category(raw, source)

        article = NewsArticle(
            title=title,
            description=raw.description,
            content=raw.content,
            image_url=raw.image_url,
            source_url=source_url,
            author=raw.author,
            published_at=self.resolve_published_at(raw, source),
            is_active=True,
            category=category,
            source=source,
        )

        while True:
            article.slug = await unique_slug(title, self.store.exists_slug)
            try:
                await self.store.insert_article(article)
            except DuplicateArticleError:
                # Lost a race against another ingestion of the same URL
                logger.debug("Article inserted concurrently, skipping", url=source_url)
                return False
            except SlugTakenError:
                logger.debug("Slug claimed concurrently, re-probing", slug=article.slug)
                continue
            return True

    async def ingest_batch(self, raws: Iterable[RawArticle], source: NewsSource) -> IngestStats:
        """Ingest a batch. Errors are counted per article and never raised."""
        stats = IngestStats()

        for raw in raws:
            try:
                if await self.ingest(raw, source):
                    stats.new += 1
                else:
                    stats.skipped += 1
            except Exception as e:
                stats.failed += 1
                logger.error(
                    "Error ingesting article",
                    source=source.name,
                    url=raw.url,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return stats

    def resolve_published_at(self, raw: RawArticle, source: NewsSource) -> datetime:
        if raw.published_at is None:
            return self.clock()
        try:
            return parse_iso_datetime(raw.published_at)
        except ParseError as e:
            logger.warning(
                "Failed to parse published date, using ingestion time",
                source=source.name,
                url=raw.url,
                value=str(raw.published_at),
                error=str(e),
            )
            return self.clock()

    @staticmethod
    def category_name_for(raw: RawArticle, source: NewsSource) -> str:
        """Explicit hint, then the source's ``category`` parameter, then "General"."""
        if raw.category and raw.category.strip():
            return raw.category.strip()

        from_params = extract_param(source.parameters, "category")
        if from_params:
            return from_params.strip()

        return DEFAULT_CATEGORY_NAME

    async def resolve_category(self, raw: RawArticle, source: NewsSource) -> Category:
        return await self.store.find_or_create_category_by_name(
            self.category_name_for(raw, source)
        )

    async def exists_by_title_and_source(self, title: str, source: NewsSource) -> bool:
        """Alternative duplicate check; not used by the default ingestion flow."""
        return await self.store.exists_article_by_title_and_source(title, source)
