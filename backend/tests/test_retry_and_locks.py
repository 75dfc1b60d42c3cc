"""
Tests for retry backoff and the per-source exclusion gate.
"""

import asyncio

import pytest

from newswire.exceptions import ConfigurationError, SourceFetchError, TransientFetchError
from newswire.services.aggregation.locks import KeyedLock
from newswire.services.aggregation.retry import RetryingFetcher

from tests.fakes import FakeFetcher, RecordingSleep, make_articles, make_source


class FlakyFetcher(FakeFetcher):
    """Fails with a transient error a fixed number of times, then succeeds."""

    def __init__(self, failures: int, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures

    async def fetch(self, source):
        if len(self.calls) < self.failures:
            self.calls.append(source.name)
            raise TransientFetchError("HTTP 503", status_code=503)
        return await super().fetch(source)


class TestRetryingFetcher:
    """Tests for bounded exponential backoff."""

    def test_success_without_retry(self):
        source = make_source()
        fetcher = FakeFetcher(batches={source.name: make_articles("Tech", 2)})
        sleep = RecordingSleep()

        articles = asyncio.run(RetryingFetcher(fetcher, sleep=sleep).fetch(source))

        assert len(articles) == 2
        assert sleep.delays == []

    def test_recovers_after_transient_failures(self):
        source = make_source()
        fetcher = FlakyFetcher(failures=2, batches={source.name: make_articles("Tech", 1)})
        sleep = RecordingSleep()

        articles = asyncio.run(RetryingFetcher(fetcher, sleep=sleep).fetch(source))

        assert len(articles) == 1
        assert len(fetcher.calls) == 3
        assert sleep.delays == [1.0, 2.0]

    def test_gives_up_after_max_retries(self):
        source = make_source()
        fetcher = FakeFetcher(errors={source.name: TransientFetchError("HTTP 500", status_code=500)})
        sleep = RecordingSleep()
        retrying = RetryingFetcher(fetcher, max_retries=3, base_delay=1.0, sleep=sleep)

        with pytest.raises(SourceFetchError) as exc_info:
            asyncio.run(retrying.fetch(source))

        assert len(fetcher.calls) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert exc_info.value.attempts == 4
        assert isinstance(exc_info.value.last_error, TransientFetchError)
        assert exc_info.value.source_name == source.name

    def test_backoff_is_capped(self):
        source = make_source()
        fetcher = FakeFetcher(errors={source.name: TransientFetchError("HTTP 503")})
        sleep = RecordingSleep()
        retrying = RetryingFetcher(fetcher, max_retries=4, base_delay=0.5, max_delay=3.0, sleep=sleep)

        with pytest.raises(SourceFetchError) as exc_info:
            asyncio.run(retrying.fetch(source))

        assert retrying.max_attempts == 5
        assert exc_info.value.attempts == 5
        assert sleep.delays == [0.5, 1.0, 2.0, 3.0]

    def test_configuration_error_is_not_retried(self):
        source = make_source()
        fetcher = FakeFetcher(errors={source.name: ConfigurationError("no key")})
        sleep = RecordingSleep()

        with pytest.raises(ConfigurationError):
            asyncio.run(RetryingFetcher(fetcher, sleep=sleep).fetch(source))

        assert len(fetcher.calls) == 1
        assert sleep.delays == []

    def test_unexpected_error_is_not_retried(self):
        source = make_source()
        fetcher = FakeFetcher(errors={source.name: ValueError("bug")})

        with pytest.raises(ValueError):
            asyncio.run(RetryingFetcher(fetcher, sleep=RecordingSleep()).fetch(source))

        assert len(fetcher.calls) == 1

    def test_cancel_during_backoff(self):
        source = make_source()
        fetcher = FakeFetcher(errors={source.name: TransientFetchError("HTTP 503")})
        retrying = RetryingFetcher(fetcher, base_delay=30.0)

        async def scenario():
            task = asyncio.create_task(retrying.fetch(source))
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(task, timeout=0.05)
            return task

        task = asyncio.run(scenario())

        assert task.cancelled()
        assert len(fetcher.calls) == 1


class TestKeyedLock:
    """Tests for the reference-counted keyed lock."""

    def test_same_key_is_serialized(self):
        locks = KeyedLock()
        events = []

        async def worker(tag):
            async with locks.acquire("Tech News"):
                events.append(f"start-{tag}")
                await asyncio.sleep(0.01)
                events.append(f"end-{tag}")

        async def scenario():
            await asyncio.gather(worker("a"), worker("b"), worker("c"))

        asyncio.run(scenario())

        for i in range(0, len(events), 2):
            assert events[i].startswith("start-")
            assert events[i + 1] == events[i].replace("start-", "end-")
        assert len(locks) == 0

    def test_different_keys_run_concurrently(self):
        locks = KeyedLock()
        active = {"now": 0, "max": 0}

        async def worker(key):
            async with locks.acquire(key):
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
                await asyncio.sleep(0.01)
                active["now"] -= 1

        async def scenario():
            await asyncio.gather(worker("A"), worker("B"), worker("C"))

        asyncio.run(scenario())
        assert active["max"] == 3

    def test_waiter_keeps_entry_alive(self):
        locks = KeyedLock()

        async def scenario():
            release = asyncio.Event()
            entered = []

            async def holder():
                async with locks.acquire("k"):
                    entered.append("holder")
                    await release.wait()

            async def waiter():
                async with locks.acquire("k"):
                    entered.append("waiter")

            h = asyncio.create_task(holder())
            await asyncio.sleep(0)
            w = asyncio.create_task(waiter())
            await asyncio.sleep(0)

            assert locks.is_locked("k")
            assert locks.waiters("k") == 1

            release.set()
            await asyncio.gather(h, w)

            assert entered == ["holder", "waiter"]
            assert "k" not in locks

        asyncio.run(scenario())

    def test_released_on_exception(self):
        locks = KeyedLock()

        async def scenario():
            with pytest.raises(RuntimeError):
                async with locks.acquire("k"):
                    raise RuntimeError("boom")

            assert not locks.is_locked("k")
            assert len(locks) == 0

            async with locks.acquire("k"):
                assert locks.is_locked("k")

        asyncio.run(scenario())

    def test_released_on_cancellation(self):
        locks = KeyedLock()

        async def scenario():
            async def hold():
                async with locks.acquire("k"):
                    await asyncio.sleep(10)

            task = asyncio.create_task(hold())
            await asyncio.sleep(0)
            assert locks.is_locked("k")

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            assert "k" not in locks

        asyncio.run(scenario())
