"""
RSS fetcher for RSS-kind sources.

Feed parsing is not implemented: the fetcher reports zero articles and
logs that it was invoked so misconfigured sources stay visible.
"""
from typing import Optional

import structlog

from newswire.config import Settings, get_settings
from newswire.models.domain import NewsSource, RawArticle, SourceKind
from newswire.sources.base import SourceFetcher

logger = structlog.get_logger(__name__)


class RSSFetcher(SourceFetcher):
    """Placeholder fetcher for RSS/Atom feeds."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def kind(self) -> SourceKind:
        return SourceKind.RSS

    async def fetch(self, source: NewsSource) -> list[RawArticle]:
        if not self.settings.rss_enabled:
            logger.debug("RSS fetching disabled, skipping source", source=source.name)
            return []

        logger.warning(
            "RSS feed fetching not implemented yet",
            source=source.name,
            url=source.base_url,
        )
        return []
