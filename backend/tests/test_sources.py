"""
Tests for source fetchers.

HTTP is served by httpx.MockTransport, so no network access is needed.
"""

import asyncio
import json

import httpx
import pytest
import structlog
from structlog.testing import capture_logs

from newswire.exceptions import ConfigurationError, TransientFetchError
from newswire.models.domain import SourceKind
from newswire.sources import NewsAPIFetcher, RSSFetcher, WebScrapeFetcher, build_fetchers
from newswire.sources import newsapi as newsapi_module

from tests.fakes import FakeFetcher, make_settings, make_source


SAMPLE_NEWSAPI_RESPONSE = {
    "status": "ok",
    "totalResults": 4,
    "articles": [
        {
            "source": {"id": "reuters", "name": "Reuters"},
            "author": "Jane Doe",
            "title": "Breakthrough in Quantum Computing",
            "description": "Researchers report a new error-correction milestone.",
            "url": "https://example.com/quantum",
            "urlToImage": "https://example.com/quantum.jpg",
            "publishedAt": "2024-01-15T09:00:00Z",
            "content": "Full text...",
        },
        {
            "source": {"id": None, "name": "[Removed]"},
            "author": None,
            "title": "[Removed]",
            "description": "[Removed]",
            "url": "https://removed.com",
            "urlToImage": None,
            "publishedAt": "1970-01-01T00:00:00Z",
            "content": "[Removed]",
        },
        "not an article",
        {
            "title": "   ",
            "url": "https://example.com/untitled",
            "author": {"unexpected": "object"},
        },
    ],
}


class MockNewsAPI:
    """Callable handler for httpx.MockTransport that records requests."""

    def __init__(self, status_code=200, body=None, text=None, error=None):
        self.status_code = status_code
        self.body = SAMPLE_NEWSAPI_RESPONSE if body is None else body
        self.text = text
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.body)


def make_fetcher(handler, **settings_overrides) -> NewsAPIFetcher:
    settings = make_settings(**settings_overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NewsAPIFetcher(settings, client=client)


async def fetch_and_close(fetcher, source):
    try:
        return await fetcher.fetch(source)
    finally:
        await fetcher._get_client().aclose()


class TestNewsAPIRequest:
    """Tests for request URL construction."""

    def test_top_headlines_gets_country_default(self):
        fetcher = NewsAPIFetcher(make_settings())
        source = make_source(api_url="/top-headlines", parameters="category=technology")

        assert fetcher.build_url(source) == (
            "https://newsapi.org/v2/top-headlines"
            "?category=technology&pageSize=20&language=en&country=us"
        )

    def test_everything_has_no_country(self):
        fetcher = NewsAPIFetcher(make_settings())
        source = make_source(api_url="/everything", parameters="q=ai")

        url = fetcher.build_url(source)
        assert url == "https://newsapi.org/v2/everything?q=ai&pageSize=20&language=en"
        assert "country" not in url

    def test_source_parameters_take_precedence(self):
        fetcher = NewsAPIFetcher(make_settings())
        source = make_source(parameters="pageSize=50&language=de&country=de")

        params = fetcher.build_params(source)
        assert params["pageSize"] == "50"
        assert params["language"] == "de"
        assert params["country"] == "de"

    def test_default_endpoint(self):
        source = make_source(api_url=None)
        assert NewsAPIFetcher.endpoint_for(source) == "/everything"
        assert NewsAPIFetcher.endpoint_for(make_source(api_url="top-headlines")) == "/top-headlines"

    def test_base_url_trailing_slash(self):
        fetcher = NewsAPIFetcher(make_settings(newsapi_base_url="https://mirror.example/v2/"))
        assert fetcher.build_url(make_source(parameters=None)).startswith(
            "https://mirror.example/v2/top-headlines?"
        )

    def test_key_sent_as_header_not_in_url(self):
        handler = MockNewsAPI()
        fetcher = make_fetcher(handler, newsapi_key="secret-key")

        asyncio.run(fetch_and_close(fetcher, make_source()))

        assert len(handler.requests) == 1
        request = handler.requests[0]
        assert request.headers["X-Api-Key"] == "secret-key"
        assert "secret-key" not in str(request.url)


class TestNewsAPIConfiguration:
    """Missing credentials fail fast without network traffic."""

    @pytest.mark.parametrize("key", [None, "", "   ", "YOUR_API_KEY_HERE"])
    def test_missing_or_placeholder_key(self, key):
        handler = MockNewsAPI()
        fetcher = make_fetcher(handler, newsapi_key=key)

        with pytest.raises(ConfigurationError):
            asyncio.run(fetch_and_close(fetcher, make_source()))

        assert handler.requests == []


class TestNewsAPIResponses:
    """Tests for response handling and lenient parsing."""

    def test_parse_articles(self):
        fetcher = make_fetcher(MockNewsAPI())
        articles = asyncio.run(fetch_and_close(fetcher, make_source()))

        assert len(articles) == 3

        article = articles[0]
        assert article.title == "Breakthrough in Quantum Computing"
        assert article.url == "https://example.com/quantum"
        assert article.image_url == "https://example.com/quantum.jpg"
        assert article.published_at == "2024-01-15T09:00:00Z"
        assert article.author == "Jane Doe"
        assert article.source_name == "Reuters"

        removed = articles[1]
        assert removed.title is None
        assert removed.description is None
        assert removed.source_name is None
        assert removed.url == "https://removed.com"

        untitled = articles[2]
        assert untitled.title is None
        assert untitled.author is None
        assert untitled.published_at is None

    def test_missing_articles_array(self, monkeypatch):
        # newswire.main caches loggers on first use; rebind so capture_logs sees the event
        monkeypatch.setattr(newsapi_module, "logger", structlog.get_logger(newsapi_module.__name__))
        fetcher = make_fetcher(MockNewsAPI(body={"status": "ok", "totalResults": 0}))

        with capture_logs() as logs:
            assert asyncio.run(fetch_and_close(fetcher, make_source())) == []

        warnings = [e for e in logs if e["log_level"] == "warning"]
        assert any("no articles array" in e["event"] for e in warnings)

    def test_malformed_json_yields_empty_batch(self):
        fetcher = make_fetcher(MockNewsAPI(text="<html>oops</html>"))
        assert asyncio.run(fetch_and_close(fetcher, make_source())) == []

    def test_non_object_payload_yields_empty_batch(self):
        fetcher = make_fetcher(MockNewsAPI(body=[1, 2, 3]))
        assert asyncio.run(fetch_and_close(fetcher, make_source())) == []

    @pytest.mark.parametrize("status_code", [401, 429, 500, 503])
    def test_http_error_is_transient(self, status_code):
        handler = MockNewsAPI(
            status_code=status_code,
            body={"status": "error", "code": "apiKeyInvalid", "message": "Your API key is invalid."},
        )
        fetcher = make_fetcher(handler)

        with pytest.raises(TransientFetchError) as exc_info:
            asyncio.run(fetch_and_close(fetcher, make_source()))

        assert exc_info.value.status_code == status_code
        assert "Your API key is invalid." in str(exc_info.value)

    def test_error_status_in_body_is_transient(self):
        handler = MockNewsAPI(body={"status": "error", "code": "rateLimited", "message": "Slow down"})
        fetcher = make_fetcher(handler)

        with pytest.raises(TransientFetchError):
            asyncio.run(fetch_and_close(fetcher, make_source()))

    def test_timeout_is_transient(self):
        handler = MockNewsAPI(error=lambda request: httpx.ReadTimeout("timed out", request=request))
        fetcher = make_fetcher(handler)

        with pytest.raises(TransientFetchError):
            asyncio.run(fetch_and_close(fetcher, make_source()))

    def test_connection_error_is_transient(self):
        handler = MockNewsAPI(error=lambda request: httpx.ConnectError("refused", request=request))
        fetcher = make_fetcher(handler)

        with pytest.raises(TransientFetchError):
            asyncio.run(fetch_and_close(fetcher, make_source()))

    def test_parse_payload_accepts_object(self):
        body = json.dumps(SAMPLE_NEWSAPI_RESPONSE)
        assert NewsAPIFetcher.parse_payload(body)["status"] == "ok"


class TestPlaceholderFetchers:
    """RSS and web-scrape fetchers report zero articles."""

    def test_rss_enabled(self):
        fetcher = RSSFetcher(make_settings(rss_enabled=True))
        source = make_source(kind=SourceKind.RSS, base_url="https://example.com/feed.xml")
        assert asyncio.run(fetcher.fetch(source)) == []

    def test_rss_disabled(self):
        fetcher = RSSFetcher(make_settings(rss_enabled=False))
        source = make_source(kind=SourceKind.RSS, base_url="https://example.com/feed.xml")
        assert asyncio.run(fetcher.fetch(source)) == []

    def test_web(self):
        source = make_source(kind=SourceKind.WEB, base_url="https://example.com")
        assert asyncio.run(WebScrapeFetcher().fetch(source)) == []


class TestBuildFetchers:
    """Tests for the fetcher registry."""

    def test_every_kind_is_covered(self):
        fetchers = build_fetchers(make_settings())
        assert set(fetchers) == set(SourceKind)
        assert isinstance(fetchers[SourceKind.API], NewsAPIFetcher)

    def test_override_replaces_default(self):
        fake = FakeFetcher(kind=SourceKind.RSS)
        fetchers = build_fetchers(make_settings(), overrides=[fake])
        assert fetchers[SourceKind.RSS] is fake
