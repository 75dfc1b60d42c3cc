"""
News Aggregator - Orchestrates fetch-and-ingest runs across all sources.

A run selects the active sources that are due for a refresh, processes
each one in its own task behind a bounded worker pool, and sums the number
of new articles. A failing source contributes 0 and never aborts the batch.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog

from newswire.config import Settings, get_settings
from newswire.exceptions import ConfigurationError, SourceFetchError
from newswire.models.domain import AggregationReport, NewsSource, SourceKind, SourceRunResult
from newswire.services.aggregation.ingestor import ArticleIngestor
from newswire.services.aggregation.locks import KeyedLock
from newswire.services.aggregation.retry import RetryingFetcher, Sleep
from newswire.sources import build_fetchers
from newswire.sources.base import SourceFetcher
from newswire.storage.base import NewsStore

logger = structlog.get_logger(__name__)


@dataclass
class _RunState:
    """Mutable state shared by the source tasks of one run."""
    config_error_logged: bool = False


class NewsAggregator:
    """
    Runs aggregation over all due sources.

    Features:
    - Due-source selection by per-source refresh interval
    - Bounded concurrency (one worker pool per run)
    - Per-source exclusion shared across concurrent runs
    - Retry with exponential backoff for transient fetch failures
    - Optional run timeout; committed articles stay committed
    """

    def __init__(
        self,
        store: NewsStore,
        settings: Optional[Settings] = None,
        fetchers: Optional[dict[SourceKind, SourceFetcher]] = None,
        ingestor: Optional[ArticleIngestor] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            store: Storage for sources, categories and articles
            settings: Application settings (defaults to the cached settings)
            fetchers: Fetcher per source kind (defaults to build_fetchers)
            ingestor: Article ingestor (defaults to one over ``store``)
            clock: Returns the current naive-UTC time
            sleep: Coroutine used for retry backoff
        """
        self.settings = settings or get_settings()
        self.store = store
        self.fetchers = fetchers if fetchers is not None else build_fetchers(self.settings)
        self.ingestor = ingestor or ArticleIngestor(store, clock=clock)
        self.clock = clock
        self.locks = KeyedLock()

        self._retrying = {
            kind: RetryingFetcher(
                fetcher,
                max_retries=self.settings.retry_max_attempts,
                base_delay=self.settings.retry_base_delay_seconds,
                max_delay=self.settings.retry_max_delay_seconds,
                sleep=sleep,
            )
            for kind, fetcher in self.fetchers.items()
        }
        self._active_runs: set[asyncio.Task] = set()

        logger.info(
            "News aggregator initialized",
            workers=self.settings.aggregation_workers,
            fetchers={k.value: f.name for k, f in self.fetchers.items()},
        )

    # -------------------------------------------------------------------------
    # Trigger interface
    # -------------------------------------------------------------------------

    async def run_aggregation(self, timeout: Optional[float] = None) -> int:
        """
        Run one aggregation pass and return the number of new articles.

        Never raises for per-source failures. Safe to call concurrently.
        """
        report = await self.run_report(timeout=timeout)
        return report.total_new

    async def run_report(self, timeout: Optional[float] = None) -> AggregationReport:
        """
        Run one aggregation pass and return the per-source breakdown.

        Args:
            timeout: Seconds before unfinished sources are cancelled
                (defaults to ``settings.aggregation_timeout_seconds``)
        """
        if timeout is None:
            timeout = self.settings.aggregation_timeout_seconds

        started = time.monotonic()
        report = AggregationReport(started_at=self.clock())
        logger.info("Starting news aggregation")

        current = asyncio.current_task()
        if current is not None:
            self._active_runs.add(current)

        try:
            due = await self.select_due_sources(now=report.started_at)
            if due:
                await self._run_sources(due, report, timeout)
        finally:
            if current is not None:
                self._active_runs.discard(current)
            report.duration_seconds = time.monotonic() - started

        logger.info(
            "News aggregation completed",
            total_new=report.total_new,
            sources=len(report.results),
            failed_sources=report.failed_sources,
            cancelled=report.cancelled,
            elapsed_seconds=round(report.duration_seconds, 3),
        )
        return report

    async def process_source(self, source: NewsSource) -> SourceRunResult:
        """Process a single source right away, regardless of its refresh interval."""
        return await self._process(source, _RunState())

    # -------------------------------------------------------------------------
    # Source selection
    # -------------------------------------------------------------------------

    async def select_due_sources(self, now: Optional[datetime] = None) -> list[NewsSource]:
        """Active sources whose refresh interval has elapsed, highest priority first."""
        now = now or self.clock()
        active = await self.store.list_active_sources_by_priority_desc()
        due = [source for source in active if source.is_due(now)]

        logger.info("Selected due sources", active=len(active), due=len(due))
        return due

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _run_sources(
        self,
        sources: list[NewsSource],
        report: AggregationReport,
        timeout: Optional[float],
    ) -> None:
        semaphore = asyncio.Semaphore(self.settings.aggregation_workers)
        state = _RunState()

        async def worker(source: NewsSource) -> None:
            async with semaphore:
                report.results.append(await self._process(source, state))

        tasks = [
            asyncio.create_task(worker(source), name=f"aggregate:{source.name}")
            for source in sources
        ]

        try:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
        except asyncio.CancelledError:
            await self._cancel_tasks(tasks)
            raise

        if pending:
            report.cancelled = True
            logger.warning(
                "Aggregation timed out, cancelling unfinished sources",
                timeout_seconds=timeout,
                unfinished=len(pending),
            )
            await self._cancel_tasks(pending)

    @staticmethod
    async def _cancel_tasks(tasks) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _fetcher_for(self, source: NewsSource) -> RetryingFetcher:
        fetcher = self._retrying.get(source.kind)
        if fetcher is None:
            raise ConfigurationError(f"No fetcher registered for source kind {source.kind.value}")
        return fetcher

    async def _process(self, source: NewsSource, state: _RunState) -> SourceRunResult:
        """Fetch and ingest one source under its exclusion lock. Never raises except on cancellation."""
        result = SourceRunResult(source_name=source.name, kind=source.kind)
        started = time.monotonic()
        log = logger.bind(source=source.name, kind=source.kind.value)

        try:
            async with self.locks.acquire(source.name):
                log.debug("Processing news source")
                raw_articles = await self._fetcher_for(source).fetch(source)
                result.fetched = len(raw_articles)

                stats = await self.ingestor.ingest_batch(raw_articles, source)
                result.new = stats.new
                result.skipped = stats.skipped
                result.failed = stats.failed

                if stats.new > 0:
                    source.last_updated = self.clock()
                    await self.store.save_source(source)
                    log.info("Fetched new articles", new=stats.new, skipped=stats.skipped)
                else:
                    log.debug("No new articles", fetched=result.fetched)

        except ConfigurationError as e:
            result.error = str(e)
            if not state.config_error_logged:
                state.config_error_logged = True
                log.error("Source skipped due to configuration error", error=str(e))
            else:
                log.debug("Source skipped due to configuration error", error=str(e))

        except SourceFetchError as e:
            result.error = str(e)
            log.error(
                "Source fetch failed after retries",
                attempts=e.attempts,
                error=str(e.last_error),
                error_type=type(e.last_error).__name__,
            )

        except Exception as e:
            result.error = str(e)
            log.error("Error processing news source", error=str(e), exc_info=True)

        finally:
            result.duration_seconds = time.monotonic() - started

        return result

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def shutdown(self, grace_seconds: float = 5.0) -> None:
        """Cancel in-flight runs, wait up to ``grace_seconds``, then close fetchers."""
        runs = [task for task in self._active_runs if not task.done()]
        if runs:
            logger.info("Cancelling in-flight aggregation runs", runs=len(runs))
            for task in runs:
                task.cancel()
            _, still_running = await asyncio.wait(runs, timeout=grace_seconds)
            if still_running:
                logger.warning("Aggregation runs did not stop within grace period", runs=len(still_running))

        for fetcher in self.fetchers.values():
            await fetcher.aclose()
