"""
FastAPI routes for the Newswire aggregator.
"""

from datetime import datetime
from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from newswire.services.aggregation.aggregator import NewsAggregator
from newswire.services.aggregation.scheduler import AggregationScheduler

logger = structlog.get_logger(__name__)
router = APIRouter()

_aggregator: Optional[NewsAggregator] = None
_scheduler: Optional[AggregationScheduler] = None


def set_aggregator(aggregator: Optional[NewsAggregator], scheduler: Optional[AggregationScheduler] = None):
    """Register the instances used by the routes (called from the app lifespan)."""
    global _aggregator, _scheduler
    _aggregator = aggregator
    _scheduler = scheduler


def get_aggregator() -> NewsAggregator:
    if _aggregator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Aggregator not initialized",
        )
    return _aggregator


AggregatorDep = Annotated[NewsAggregator, Depends(get_aggregator)]


# ============================================================================
# Response models
# ============================================================================

class SourceStatus(BaseModel):
    name: str
    kind: str
    priority: int
    refresh_interval_minutes: int
    last_updated: Optional[datetime]
    next_refresh_at: Optional[datetime]
    due: bool
    locked: bool


class SourceRunResponse(BaseModel):
    name: str
    kind: str
    fetched: int
    new: int
    skipped: int
    failed: int
    error: Optional[str]


# ============================================================================
# Sources
# ============================================================================

@router.get("/sources", response_model=list[SourceStatus])
async def list_sources(aggregator: AggregatorDep):
    """Active sources with their refresh state."""
    now = aggregator.clock()
    sources = await aggregator.store.list_active_sources_by_priority_desc()
    return [
        SourceStatus(
            name=s.name,
            kind=s.kind.value,
            priority=s.priority,
            refresh_interval_minutes=s.refresh_interval_minutes,
            last_updated=s.last_updated,
            next_refresh_at=s.next_refresh_at(),
            due=s.is_due(now),
            locked=aggregator.locks.is_locked(s.name),
        )
        for s in sources
    ]


# ============================================================================
# Admin triggers
# ============================================================================

@router.post("/admin/aggregate")
async def trigger_aggregation(
    aggregator: AggregatorDep,
    timeout: Annotated[Optional[float], Query(gt=0, description="Run timeout in seconds")] = None,
):
    """Run aggregation now and return the per-source report."""
    logger.info("Manual aggregation triggered", timeout=timeout)
    report = await aggregator.run_report(timeout=timeout)
    return report.to_dict()


@router.post("/admin/sources/{name}/refresh", response_model=SourceRunResponse)
async def refresh_source(name: str, aggregator: AggregatorDep):
    """Fetch one source now, ignoring its refresh interval."""
    source = await aggregator.store.find_source_by_name(name)
    if source is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Source {name!r} not found",
        )

    logger.info("Manual source refresh triggered", source=name)
    result = await aggregator.process_source(source)
    return SourceRunResponse(
        name=result.source_name,
        kind=result.kind.value,
        fetched=result.fetched,
        new=result.new,
        skipped=result.skipped,
        failed=result.failed,
        error=result.error,
    )


@router.get("/admin/scheduler")
async def scheduler_status():
    """Scheduler state (running, last and next run)."""
    if _scheduler is None:
        return {"running": False}
    return _scheduler.get_status()
