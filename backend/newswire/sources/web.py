"""
Web-scrape fetcher for WEB-kind sources. Not implemented; always returns no articles.
"""
import structlog

from newswire.models.domain import NewsSource, RawArticle, SourceKind
from newswire.sources.base import SourceFetcher

logger = structlog.get_logger(__name__)


class WebScrapeFetcher(SourceFetcher):
    """Placeholder fetcher for HTML scraping."""

    @property
    def kind(self) -> SourceKind:
        return SourceKind.WEB

    async def fetch(self, source: NewsSource) -> list[RawArticle]:
        logger.warning(
            "Web scraping not implemented yet",
            source=source.name,
            url=source.base_url,
        )
        return []
