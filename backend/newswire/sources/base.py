"""
Base interface for source fetchers.
Every source kind (API, RSS, WEB) implements this interface.
"""
from abc import ABC, abstractmethod

from newswire.models.domain import NewsSource, RawArticle, SourceKind


class SourceFetcher(ABC):
    """Abstract base class for source fetchers."""

    @property
    @abstractmethod
    def kind(self) -> SourceKind:
        """The source kind this fetcher handles."""
        pass

    @property
    def name(self) -> str:
        """Human-readable name of the fetcher."""
        return type(self).__name__

    @abstractmethod
    async def fetch(self, source: NewsSource) -> list[RawArticle]:
        """
        Fetch the current batch of raw articles for a source.

        Args:
            source: The configured source to fetch from

        Returns:
            List of RawArticle records (possibly empty)

        Raises:
            ConfigurationError: if the fetcher cannot run with the current settings
            TransientFetchError: on network, timeout or upstream errors
        """
        pass

    async def aclose(self) -> None:
        """Release any resources held by the fetcher."""
        return None
