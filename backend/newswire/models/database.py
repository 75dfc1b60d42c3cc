"""
SQLAlchemy database models for the Newswire aggregator.
Uses SQLAlchemy 2.0 async patterns.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.ext.asyncio import AsyncAttrs, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from newswire.models.domain import SourceKind


# =============================================================================
# Base
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# Sources
# =============================================================================

class DBNewsSource(Base):
    """Configured external source of articles."""
    __tablename__ = "news_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    base_url: Mapped[str] = mapped_column(String(255), nullable=False)
    api_url: Mapped[Optional[str]] = mapped_column(String(255))
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default=SourceKind.API.value)
    parameters: Mapped[Optional[str]] = mapped_column(String(1000))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    priority: Mapped[int] = mapped_column(Integer, default=1)
    refresh_interval_minutes: Mapped[int] = mapped_column(Integer, default=60)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    articles: Mapped[list["DBNews"]] = relationship(back_populates="source")

    __table_args__ = (
        Index("ix_news_sources_active_priority", "is_active", "priority"),
    )


# =============================================================================
# Categories
# =============================================================================

class DBCategory(Base):
    """Article category, created on demand during ingestion."""
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    # Relationships
    articles: Mapped[list["DBNews"]] = relationship(back_populates="category")


# Case-insensitive uniqueness: "Technology" and "technology" are one category
Index("ix_categories_name_lower", func.lower(DBCategory.name), unique=True)


# =============================================================================
# Articles
# =============================================================================

class DBNews(Base):
    """Canonical article. One row per distinct source URL."""
    __tablename__ = "news"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    content: Mapped[Optional[str]] = mapped_column(Text)
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    source_url: Mapped[str] = mapped_column(String(1000), nullable=False, unique=True)
    author: Mapped[Optional[str]] = mapped_column(String(255))
    published_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    source_id: Mapped[Optional[int]] = mapped_column(ForeignKey("news_sources.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    category: Mapped[Optional["DBCategory"]] = relationship(back_populates="articles")
    source: Mapped[Optional["DBNewsSource"]] = relationship(back_populates="articles")

    __table_args__ = (
        Index("ix_news_published_at", "published_at"),
        Index("ix_news_source_title", "source_id", "title"),
    )


# =============================================================================
# Database Connection
# =============================================================================

class Database:
    """Database connection manager."""

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = create_async_engine(
            database_url,
            echo=echo,  # Set to True for SQL logging
        )
        self.async_session = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    async def create_tables(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()
