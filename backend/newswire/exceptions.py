"""
Exception hierarchy for the aggregation pipeline.

Per-article errors stay inside the ingestor, per-source errors stay inside
the aggregator. Only cancellation ends a whole run early.
"""
from typing import Optional


class AggregationError(Exception):
    """Base class for all aggregation errors."""


class ConfigurationError(AggregationError):
    """Missing or placeholder credentials, or an unmapped source kind. Never retried."""


class TransientFetchError(AggregationError):
    """Network failure, timeout or non-2xx response. Retried with backoff."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SourceFetchError(AggregationError):
    """Terminal fetch failure after all retries were exhausted."""

    def __init__(self, source_name: str, kind: str, attempts: int, last_error: BaseException):
        self.source_name = source_name
        self.kind = kind
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Fetch failed for source {source_name!r} ({kind}) "
            f"after {attempts} attempts: {last_error}"
        )


class ParseError(AggregationError):
    """Malformed payload or field. Callers skip the offending item."""


class PersistenceError(AggregationError):
    """Storage failure while writing a single article."""


class DuplicateArticleError(PersistenceError):
    """An article with the same source URL already exists. Not a failure."""

    def __init__(self, source_url: str):
        super().__init__(f"Article already exists: {source_url}")
        self.source_url = source_url


class SlugTakenError(PersistenceError):
    """The slug was claimed by a concurrent insert."""

    def __init__(self, slug: str):
        super().__init__(f"Slug already taken: {slug}")
        self.slug = slug
