"""
Aggregation pipeline for the Newswire aggregator.

- Due-source selection and bounded concurrent fan-out
- Per-source exclusion across concurrent triggers
- Retry with exponential backoff
- Dedup, category resolution and slugging on ingestion
"""

from newswire.services.aggregation.aggregator import NewsAggregator
from newswire.services.aggregation.ingestor import ArticleIngestor, IngestStats
from newswire.services.aggregation.locks import KeyedLock
from newswire.services.aggregation.retry import RetryingFetcher
from newswire.services.aggregation.scheduler import AggregationScheduler

__all__ = [
    "NewsAggregator",
    "ArticleIngestor",
    "IngestStats",
    "KeyedLock",
    "RetryingFetcher",
    "AggregationScheduler",
]
