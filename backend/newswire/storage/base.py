"""
Storage interface consumed by the aggregation pipeline.
"""
from abc import ABC, abstractmethod
from typing import Optional

from newswire.models.domain import Category, NewsArticle, NewsSource


class NewsStore(ABC):
    """
    Persistence for sources, categories and canonical articles.

    Implementations must enforce uniqueness of article source URLs and
    slugs themselves: the ingestor's existence check and the insert are
    not atomic with respect to each other.
    """

    # Sources

    @abstractmethod
    async def find_source_by_name(self, name: str) -> Optional[NewsSource]:
        pass

    @abstractmethod
    async def list_active_sources_by_priority_desc(self) -> list[NewsSource]:
        pass

    @abstractmethod
    async def save_source(self, source: NewsSource) -> NewsSource:
        """Insert or update a source (matched by id, then by name)."""
        pass

    # Articles

    @abstractmethod
    async def exists_article_by_source_url(self, source_url: str) -> bool:
        pass

    @abstractmethod
    async def exists_article_by_title_and_source(self, title: str, source: NewsSource) -> bool:
        pass

    @abstractmethod
    async def exists_slug(self, slug: str) -> bool:
        pass

    @abstractmethod
    async def insert_article(self, article: NewsArticle) -> NewsArticle:
        """
        Persist a new article.

        Raises:
            DuplicateArticleError: if the source URL is already stored
            SlugTakenError: if the slug is already stored
            PersistenceError: on any other storage failure
        """
        pass

    @abstractmethod
    async def count_articles(self) -> int:
        pass

    # Categories

    @abstractmethod
    async def find_or_create_category_by_name(self, name: str) -> Category:
        """
        Return the category with this name, creating it if needed.

        Lookup is exact first, then case-insensitive. Repeated calls with
        the same name (in any case) never create a second category.
        """
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    async def close(self) -> None:
        return None
