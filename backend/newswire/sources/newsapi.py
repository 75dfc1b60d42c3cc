"""
NewsAPI fetcher for API-kind sources.
API docs: https://newsapi.org/docs
"""
import json
from typing import Any, Optional

import httpx
import structlog

from newswire.config import Settings, get_settings
from newswire.exceptions import ConfigurationError, ParseError, TransientFetchError
from newswire.models.domain import NewsSource, RawArticle, SourceKind
from newswire.sources.base import SourceFetcher
from newswire.utils.query_params import QueryParams

logger = structlog.get_logger(__name__)

DEFAULT_ENDPOINT = "/everything"
REMOVED_MARKER = "[Removed]"
USER_AGENT = "Newswire/0.1"


class NewsAPIFetcher(SourceFetcher):
    """Fetches articles for API sources from NewsAPI-compatible endpoints."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    @property
    def kind(self) -> SourceKind:
        return SourceKind.API

    @property
    def name(self) -> str:
        return "NewsAPI"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.newsapi_timeout_seconds,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _require_api_key(self) -> str:
        if not self.settings.has_newsapi_key:
            raise ConfigurationError(
                "NewsAPI key is not configured (set NEWSAPI_KEY)"
            )
        return self.settings.newsapi_key.strip()

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    @staticmethod
    def endpoint_for(source: NewsSource) -> str:
        endpoint = (source.api_url or "").strip() or DEFAULT_ENDPOINT
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return endpoint

    def build_params(self, source: NewsSource, endpoint: Optional[str] = None) -> QueryParams:
        """
        Merge source parameters with defaults.

        Source parameters win; defaults fill only missing keys. ``country``
        is only defaulted for top-headlines endpoints.
        """
        endpoint = endpoint or self.endpoint_for(source)
        params = QueryParams.parse(source.parameters)

        params.set_default("pageSize", self.settings.newsapi_page_size)
        params.set_default("language", self.settings.newsapi_language)
        if "top-headlines" in endpoint:
            params.set_default("country", self.settings.newsapi_country)

        return params

    def build_url(self, source: NewsSource) -> str:
        endpoint = self.endpoint_for(source)
        params = self.build_params(source, endpoint)
        url = f"{self.settings.newsapi_base_url}{endpoint}"
        if params:
            url = f"{url}?{params.to_query_string()}"
        return url

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    async def fetch(self, source: NewsSource) -> list[RawArticle]:
        api_key = self._require_api_key()
        url = self.build_url(source)

        # The key travels in a header, so the URL is safe to log
        logger.debug("Fetching from NewsAPI", source=source.name, url=url)

        try:
            response = await self._get_client().get(url, headers={"X-Api-Key": api_key})
        except httpx.TimeoutException as e:
            raise TransientFetchError(f"NewsAPI request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransientFetchError(f"NewsAPI request failed: {e}") from e

        if response.is_error:
            raise TransientFetchError(
                f"NewsAPI returned HTTP {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )

        try:
            data = self.parse_payload(response.text)
        except ParseError as e:
            logger.error("Malformed NewsAPI payload", source=source.name, error=str(e))
            return []

        if data.get("status") == "error":
            raise TransientFetchError(
                f"NewsAPI error: {data.get('code')}: {data.get('message')}"
            )

        articles = self.parse_articles(data)
        logger.debug("Fetched articles from NewsAPI", source=source.name, count=len(articles))
        return articles

    # -------------------------------------------------------------------------
    # Payload parsing
    # -------------------------------------------------------------------------

    @staticmethod
    def parse_payload(body: str) -> dict:
        if not body or not body.strip():
            raise ParseError("empty response body")
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ParseError(f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ParseError(f"expected a JSON object, got {type(data).__name__}")
        return data

    @classmethod
    def parse_articles(cls, data: dict) -> list[RawArticle]:
        """Parse the ``articles`` array, skipping entries that are not objects."""
        items = data.get("articles")
        if not isinstance(items, list):
            logger.warning(
                "NewsAPI payload has no articles array",
                status=data.get("status"),
                keys=sorted(str(k) for k in data)[:10],
            )
            return []

        articles = []
        for item in items:
            if not isinstance(item, dict):
                logger.debug("Skipping non-object article entry", entry=repr(item)[:100])
                continue
            articles.append(cls.parse_article(item))
        return articles

    @staticmethod
    def parse_article(item: dict) -> RawArticle:
        source = item.get("source")
        source_name = _text(source.get("name")) if isinstance(source, dict) else None

        return RawArticle(
            title=_text(item.get("title")),
            description=_text(item.get("description")),
            content=_text(item.get("content")),
            url=_text(item.get("url")),
            image_url=_text(item.get("urlToImage")),
            published_at=_text(item.get("publishedAt")),
            author=_text(item.get("author")),
            category=_text(item.get("category")),
            source_name=source_name,
        )


def _text(value: Any) -> Optional[str]:
    """Coerce a JSON scalar to text; null, blanks and removal markers become None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    if not text or text == REMOVED_MARKER:
        return None
    return text


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or "No error details provided"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("code") or data)[:200]
    return str(data)[:200]
