"""
Services for the Newswire aggregator.
"""
from newswire.services.aggregation import (
    AggregationScheduler,
    ArticleIngestor,
    KeyedLock,
    NewsAggregator,
    RetryingFetcher,
)
from newswire.services.seed import seed_defaults

__all__ = [
    "AggregationScheduler",
    "ArticleIngestor",
    "KeyedLock",
    "NewsAggregator",
    "RetryingFetcher",
    "seed_defaults",
]
