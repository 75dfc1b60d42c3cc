"""
Source fetchers for the Newswire aggregator.
"""
from typing import Iterable, Optional

from newswire.config import Settings, get_settings
from newswire.exceptions import ConfigurationError
from newswire.models.domain import SourceKind
from newswire.sources.base import SourceFetcher
from newswire.sources.newsapi import NewsAPIFetcher
from newswire.sources.rss import RSSFetcher
from newswire.sources.web import WebScrapeFetcher


def build_fetchers(
    settings: Optional[Settings] = None,
    overrides: Iterable[SourceFetcher] = (),
) -> dict[SourceKind, SourceFetcher]:
    """
    Build the fetcher registry, one fetcher per source kind.

    Args:
        settings: Application settings (defaults to the cached settings)
        overrides: Fetchers replacing the default one for their kind

    Raises:
        ConfigurationError: if any SourceKind is left without a fetcher
    """
    settings = settings or get_settings()
    fetchers: dict[SourceKind, SourceFetcher] = {
        SourceKind.API: NewsAPIFetcher(settings),
        SourceKind.RSS: RSSFetcher(settings),
        SourceKind.WEB: WebScrapeFetcher(),
    }
    for fetcher in overrides:
        fetchers[fetcher.kind] = fetcher

    missing = [kind.value for kind in SourceKind if kind not in fetchers]
    if missing:
        raise ConfigurationError(f"No fetcher registered for source kinds: {missing}")

    return fetchers


__all__ = [
    "SourceFetcher",
    "NewsAPIFetcher",
    "RSSFetcher",
    "WebScrapeFetcher",
    "build_fetchers",
]
