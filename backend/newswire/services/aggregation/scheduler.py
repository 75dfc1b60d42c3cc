"""
Aggregation Scheduler - periodic runs on an APScheduler interval trigger.
"""

from datetime import datetime
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from newswire.services.aggregation.aggregator import NewsAggregator

logger = structlog.get_logger(__name__)

JOB_ID = "news_aggregation"


class AggregationScheduler:
    """
    Schedules NewsAggregator.run_aggregation at a fixed interval.

    At most one scheduled run is in flight; missed runs are coalesced.
    Manual triggers go straight to the aggregator and are serialized per
    source by its exclusion gate.
    """

    def __init__(
        self,
        aggregator: NewsAggregator,
        interval_minutes: int = 60,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.aggregator = aggregator
        self.interval_minutes = interval_minutes
        self.scheduler = scheduler or AsyncIOScheduler()

        self._last_run: Optional[datetime] = None
        self._last_total: Optional[int] = None

    def start(self, run_immediately: bool = False) -> None:
        """Register the interval job and start the scheduler (needs a running event loop)."""
        job_kwargs = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now()

        self.scheduler.add_job(
            self.run_once,
            IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            name="News Aggregation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        self.scheduler.start()
        logger.info("Aggregation scheduler started", interval_minutes=self.interval_minutes)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Aggregation scheduler stopped")

    async def run_once(self) -> int:
        """Scheduled job body. Logs instead of raising so the job keeps firing."""
        logger.info("Scheduled news aggregation started")
        try:
            total = await self.aggregator.run_aggregation()
        except Exception as e:
            logger.error("Scheduled news aggregation failed", error=str(e), exc_info=True)
            return 0

        self._last_run = datetime.utcnow()
        self._last_total = total
        logger.info("Scheduled news aggregation completed", new_articles=total)
        return total

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    def get_status(self) -> dict:
        job = self.scheduler.get_job(JOB_ID) if self.scheduler.running else None
        next_run = job.next_run_time if job else None

        return {
            "running": self.is_running,
            "interval_minutes": self.interval_minutes,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_new_articles": self._last_total,
            "next_run": next_run.isoformat() if next_run else None,
        }
