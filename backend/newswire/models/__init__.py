"""
Domain and database models.
"""
from newswire.models.domain import (
    DEFAULT_CATEGORY_NAME,
    AggregationReport,
    Category,
    NewsArticle,
    NewsSource,
    RawArticle,
    SourceKind,
    SourceRunResult,
)

__all__ = [
    "DEFAULT_CATEGORY_NAME",
    "AggregationReport",
    "Category",
    "NewsArticle",
    "NewsSource",
    "RawArticle",
    "SourceKind",
    "SourceRunResult",
]
