"""
In-memory store for development and tests.

Mirrors the uniqueness guarantees of the database store. Every operation
completes without awaiting, so each one is atomic on the event loop.
"""
from itertools import count
from typing import Optional

from newswire.exceptions import DuplicateArticleError, SlugTakenError
from newswire.models.domain import Category, NewsArticle, NewsSource
from newswire.storage.base import NewsStore
from newswire.utils.slug import category_slug, numbered_slug


class InMemoryNewsStore(NewsStore):
    """Dict-backed NewsStore."""

    def __init__(self):
        self.sources: dict[int, NewsSource] = {}
        self.categories: dict[int, Category] = {}
        self.articles: dict[int, NewsArticle] = {}
        self._by_url: dict[str, int] = {}
        self._slugs: set[str] = set()
        self._ids = count(1)

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    async def find_source_by_name(self, name: str) -> Optional[NewsSource]:
        for source in self.sources.values():
            if source.name == name:
                return source.model_copy()
        return None

    async def list_active_sources_by_priority_desc(self) -> list[NewsSource]:
        active = [s for s in self.sources.values() if s.is_active]
        active.sort(key=lambda s: (-s.priority, s.id))
        return [s.model_copy() for s in active]

    async def save_source(self, source: NewsSource) -> NewsSource:
        if source.id is None:
            existing = next(
                (s for s in self.sources.values() if s.name == source.name), None
            )
            source = source.model_copy(
                update={"id": existing.id if existing else next(self._ids)}
            )
        self.sources[source.id] = source.model_copy()
        return source

    # -------------------------------------------------------------------------
    # Articles
    # -------------------------------------------------------------------------

    async def exists_article_by_source_url(self, source_url: str) -> bool:
        return source_url in self._by_url

    async def exists_article_by_title_and_source(self, title: str, source: NewsSource) -> bool:
        return any(
            a.is_active and a.title == title and a.source is not None and a.source.name == source.name
            for a in self.articles.values()
        )

    async def exists_slug(self, slug: str) -> bool:
        return slug in self._slugs

    async def insert_article(self, article: NewsArticle) -> NewsArticle:
        if article.source_url in self._by_url:
            raise DuplicateArticleError(article.source_url)
        if article.slug in self._slugs:
            raise SlugTakenError(article.slug)

        stored = article.model_copy(update={"id": next(self._ids)})
        self.articles[stored.id] = stored
        self._by_url[stored.source_url] = stored.id
        self._slugs.add(stored.slug)
        return stored

    async def count_articles(self) -> int:
        return len(self.articles)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def find_or_create_category_by_name(self, name: str) -> Category:
        name = (name or "").strip()
        if not name:
            raise ValueError("Category name cannot be empty")

        for category in self.categories.values():
            if category.name == name:
                return category
        for category in self.categories.values():
            if category.name.lower() == name.lower():
                return category

        base = category_slug(name)
        taken = {c.slug for c in self.categories.values()}
        attempt = 0
        while numbered_slug(base, attempt) in taken:
            attempt += 1

        category = Category(id=next(self._ids), name=name, slug=numbered_slug(base, attempt))
        self.categories[category.id] = category
        return category

    async def list_categories(self) -> list[Category]:
        return sorted(self.categories.values(), key=lambda c: c.name)
