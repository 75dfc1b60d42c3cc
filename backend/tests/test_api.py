"""
Tests for the HTTP routes, settings and log masking.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from newswire.api import routes
from newswire.core.logging import REDACTED, SecretMasker
from newswire.services.aggregation.aggregator import NewsAggregator
from newswire.storage.memory import InMemoryNewsStore

from tests.fakes import FakeFetcher, RecordingSleep, fixed_clock, make_articles, make_settings, make_source


@pytest.fixture
def store():
    store = InMemoryNewsStore()
    asyncio.run(store.save_source(make_source("Tech News", priority=2)))
    asyncio.run(store.save_source(make_source("World News", priority=1, parameters="category=world")))
    return store


@pytest.fixture
def client(store):
    fetcher = FakeFetcher(
        batches={
            "Tech News": make_articles("Tech", 2),
            "World News": make_articles("World", 1),
        }
    )
    aggregator = NewsAggregator(
        store,
        settings=make_settings(),
        fetchers={fetcher.kind: fetcher},
        clock=fixed_clock,
        sleep=RecordingSleep(),
    )

    app = FastAPI()
    app.include_router(routes.router, prefix="/api/v1")
    routes.set_aggregator(aggregator)
    yield TestClient(app)
    routes.set_aggregator(None)


class TestRoutes:
    """Tests for the aggregation routes."""

    def test_list_sources(self, client):
        response = client.get("/api/v1/sources")

        assert response.status_code == 200
        data = response.json()
        assert [s["name"] for s in data] == ["Tech News", "World News"]
        assert data[0]["due"] is True
        assert data[0]["locked"] is False
        assert data[0]["next_refresh_at"] is None

    def test_trigger_aggregation(self, client):
        response = client.post("/api/v1/admin/aggregate")

        assert response.status_code == 200
        data = response.json()
        assert data["total_new"] == 3
        assert data["cancelled"] is False
        assert {s["name"] for s in data["sources"]} == {"Tech News", "World News"}

        # Both sources were just updated and are no longer due
        again = client.post("/api/v1/admin/aggregate").json()
        assert again["total_new"] == 0
        assert again["sources"] == []

    def test_refresh_single_source(self, client):
        response = client.post("/api/v1/admin/sources/World News/refresh")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "World News"
        assert data["new"] == 1
        assert data["error"] is None

    def test_refresh_unknown_source(self, client):
        response = client.post("/api/v1/admin/sources/Missing/refresh")
        assert response.status_code == 404

    def test_scheduler_status_without_scheduler(self, client):
        assert client.get("/api/v1/admin/scheduler").json() == {"running": False}

    def test_scheduler_status(self, client):
        scheduler = MagicMock()
        scheduler.get_status.return_value = {"running": True, "interval_minutes": 60}
        routes.set_aggregator(routes._aggregator, scheduler)

        assert client.get("/api/v1/admin/scheduler").json() == {"running": True, "interval_minutes": 60}
        scheduler.get_status.assert_called_once()

    def test_not_initialized(self):
        app = FastAPI()
        app.include_router(routes.router, prefix="/api/v1")
        routes.set_aggregator(None)

        response = TestClient(app).get("/api/v1/sources")
        assert response.status_code == 503


class TestSettings:
    """Tests for derived settings."""

    @pytest.mark.parametrize(
        "key,expected",
        [
            ("real-key", True),
            (None, False),
            ("", False),
            ("YOUR_API_KEY_HERE", False),
            ("changeme", False),
        ],
    )
    def test_has_newsapi_key(self, key, expected):
        assert make_settings(newsapi_key=key).has_newsapi_key is expected

    def test_retry_delays_in_seconds(self):
        assert make_settings().retry_max_delay_seconds is None
        settings = make_settings(retry_base_delay_ms=250, retry_max_delay_ms=1500)
        assert settings.retry_base_delay_seconds == 0.25
        assert settings.retry_max_delay_seconds == 1.5

    def test_retry_delay_in_seconds(self):
        assert make_settings(retry_base_delay_ms=250).retry_base_delay_seconds == 0.25


class TestSecretMasker:
    """API keys never reach log output."""

    def test_masks_nested_values(self):
        masker = SecretMasker(["s3cr3t", None, ""])
        event = {
            "event": "Request failed",
            "url": "https://newsapi.org/v2/everything?apiKey=s3cr3t",
            "headers": {"X-Api-Key": "s3cr3t"},
            "attempts": ["s3cr3t", 3],
            "count": 3,
        }

        masked = masker(None, "error", event)

        assert masked["url"] == f"https://newsapi.org/v2/everything?apiKey={REDACTED}"
        assert masked["headers"] == {"X-Api-Key": REDACTED}
        assert masked["attempts"] == [REDACTED, 3]
        assert masked["count"] == 3
        assert masked["event"] == "Request failed"

    def test_no_secrets_is_passthrough(self):
        event = {"event": "hello"}
        assert SecretMasker([None])(None, "info", event) is event
