"""
SQLAlchemy-backed NewsStore.

Uniqueness of article source URLs, article slugs and (case-insensitive)
category names is enforced by database constraints; this class translates
constraint violations into the domain exceptions the ingestor expects.
"""
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from newswire.exceptions import DuplicateArticleError, PersistenceError, SlugTakenError
from newswire.models.database import Database, DBCategory, DBNews, DBNewsSource
from newswire.models.domain import Category, NewsArticle, NewsSource, SourceKind
from newswire.storage.base import NewsStore
from newswire.utils.slug import category_slug, numbered_slug

logger = structlog.get_logger(__name__)

# Bounded retries for the rare case where two creators race on a category slug
MAX_CATEGORY_CREATE_ATTEMPTS = 5


def _to_source(row: DBNewsSource) -> NewsSource:
    return NewsSource(
        id=row.id,
        name=row.name,
        base_url=row.base_url,
        api_url=row.api_url,
        kind=SourceKind(row.kind),
        parameters=row.parameters,
        is_active=row.is_active,
        priority=row.priority,
        refresh_interval_minutes=row.refresh_interval_minutes,
        last_updated=row.last_updated,
    )


def _to_category(row: DBCategory) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        slug=row.slug,
        description=row.description,
        is_active=row.is_active,
    )


class SQLAlchemyNewsStore(NewsStore):
    """NewsStore backed by an async SQLAlchemy engine."""

    def __init__(self, database: Database):
        self.database = database

    def _session(self) -> AsyncSession:
        return self.database.async_session()

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    async def find_source_by_name(self, name: str) -> Optional[NewsSource]:
        async with self._session() as session:
            result = await session.execute(
                select(DBNewsSource).where(DBNewsSource.name == name)
            )
            row = result.scalar_one_or_none()
            return _to_source(row) if row else None

    async def list_active_sources_by_priority_desc(self) -> list[NewsSource]:
        async with self._session() as session:
            result = await session.execute(
                select(DBNewsSource)
                .where(DBNewsSource.is_active.is_(True))
                .order_by(DBNewsSource.priority.desc(), DBNewsSource.id)
            )
            return [_to_source(row) for row in result.scalars().all()]

    async def save_source(self, source: NewsSource) -> NewsSource:
        async with self._session() as session:
            row = None
            if source.id is not None:
                row = await session.get(DBNewsSource, source.id)
            if row is None:
                result = await session.execute(
                    select(DBNewsSource).where(DBNewsSource.name == source.name)
                )
                row = result.scalar_one_or_none()
            if row is None:
                row = DBNewsSource()
                session.add(row)

            row.name = source.name
            row.base_url = source.base_url
            row.api_url = source.api_url
            row.kind = source.kind.value
            row.parameters = source.parameters
            row.is_active = source.is_active
            row.priority = source.priority
            row.refresh_interval_minutes = source.refresh_interval_minutes
            row.last_updated = source.last_updated

            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceError(f"Failed to save source {source.name!r}: {e}") from e

            return _to_source(row)

    # -------------------------------------------------------------------------
    # Articles
    # -------------------------------------------------------------------------

    async def exists_article_by_source_url(self, source_url: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(DBNews.id).where(DBNews.source_url == source_url).limit(1)
            )
            return result.first() is not None

    async def exists_article_by_title_and_source(self, title: str, source: NewsSource) -> bool:
        async with self._session() as session:
            query = (
                select(DBNews.id)
                .join(DBNewsSource, DBNews.source_id == DBNewsSource.id)
                .where(
                    DBNews.title == title,
                    DBNews.is_active.is_(True),
                    DBNewsSource.name == source.name,
                )
                .limit(1)
            )
            result = await session.execute(query)
            return result.first() is not None

    async def exists_slug(self, slug: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(DBNews.id).where(DBNews.slug == slug).limit(1)
            )
            return result.first() is not None

    async def insert_article(self, article: NewsArticle) -> NewsArticle:
        row = DBNews(
            title=article.title,
            description=article.description,
            content=article.content,
            image_url=article.image_url,
            source_url=article.source_url,
            author=article.author,
            published_at=article.published_at,
            is_active=article.is_active,
            slug=article.slug,
            category_id=article.category.id if article.category else None,
            source_id=article.source.id if article.source else None,
        )

        async with self._session() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if await self.exists_article_by_source_url(article.source_url):
                    raise DuplicateArticleError(article.source_url) from e
                if await self.exists_slug(article.slug):
                    raise SlugTakenError(article.slug) from e
                raise PersistenceError(f"Failed to insert article {article.source_url}: {e}") from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceError(f"Failed to insert article {article.source_url}: {e}") from e

        return article.model_copy(update={"id": row.id})

    async def count_articles(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count(DBNews.id)))
            return result.scalar() or 0

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def _find_category(self, session: AsyncSession, name: str) -> Optional[DBCategory]:
        result = await session.execute(select(DBCategory).where(DBCategory.name == name))
        row = result.scalar_one_or_none()
        if row is not None:
            return row

        result = await session.execute(
            select(DBCategory).where(func.lower(DBCategory.name) == name.lower()).limit(1)
        )
        return result.scalar_one_or_none()

    async def find_or_create_category_by_name(self, name: str) -> Category:
        name = (name or "").strip()
        if not name:
            raise ValueError("Category name cannot be empty")

        base_slug = category_slug(name)

        for attempt in range(MAX_CATEGORY_CREATE_ATTEMPTS):
            async with self._session() as session:
                row = await self._find_category(session, name)
                if row is not None:
                    return _to_category(row)

                row = DBCategory(name=name, slug=numbered_slug(base_slug, attempt), is_active=True)
                session.add(row)
                try:
                    await session.commit()
                    logger.info("Created category", name=name, slug=row.slug)
                    return _to_category(row)
                except IntegrityError:
                    # Either a concurrent creator won (found on the next pass)
                    # or the slug belongs to a differently named category.
                    await session.rollback()
                    logger.debug("Category insert conflicted, retrying", name=name, attempt=attempt)
                except SQLAlchemyError as e:
                    await session.rollback()
                    raise PersistenceError(f"Failed to create category {name!r}: {e}") from e

        raise PersistenceError(f"Could not create category {name!r}")

    async def list_categories(self) -> list[Category]:
        async with self._session() as session:
            result = await session.execute(select(DBCategory).order_by(DBCategory.name))
            return [_to_category(row) for row in result.scalars().all()]

    async def close(self) -> None:
        await self.database.dispose()
