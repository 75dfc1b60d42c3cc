"""
Domain models for the Newswire aggregator.
These are the core business entities, independent of database/API representation.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

DEFAULT_CATEGORY_NAME = "General"


# =============================================================================
# Enums
# =============================================================================

class SourceKind(str, Enum):
    """How articles are retrieved from a source."""
    API = "API"
    RSS = "RSS"
    WEB = "WEB"


# =============================================================================
# Sources & Categories
# =============================================================================

class NewsSource(BaseModel):
    """A configured external origin of articles."""
    id: Optional[int] = None
    name: str  # Exclusion-gate key, unique among sources
    base_url: str
    api_url: Optional[str] = None  # Endpoint path for API sources, e.g. /top-headlines
    kind: SourceKind = SourceKind.API
    parameters: Optional[str] = None  # Raw query string, e.g. "category=technology&q=ai"
    is_active: bool = True
    priority: int = 1  # Higher = processed first
    refresh_interval_minutes: int = Field(default=60, ge=0)
    last_updated: Optional[datetime] = None

    @property
    def refresh_interval(self) -> timedelta:
        return timedelta(minutes=self.refresh_interval_minutes)

    def next_refresh_at(self) -> Optional[datetime]:
        if self.last_updated is None:
            return None
        return self.last_updated + self.refresh_interval

    def is_due(self, now: Optional[datetime] = None) -> bool:
        """A source with no prior update is always due."""
        if self.last_updated is None:
            return True
        now = now or datetime.utcnow()
        return now >= self.last_updated + self.refresh_interval


class Category(BaseModel):
    """Article category, created on demand."""
    id: Optional[int] = None
    name: str
    slug: str
    description: Optional[str] = None
    is_active: bool = True


# =============================================================================
# Articles
# =============================================================================

@dataclass
class RawArticle:
    """
    Raw article data from a fetcher before normalization.

    Every field is optional: fetchers copy whatever the upstream payload
    carries and leave validation to the ingestor.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Union[str, datetime, None] = None
    author: Optional[str] = None
    category: Optional[str] = None  # Explicit category hint
    source_name: Optional[str] = None  # Upstream outlet name, e.g. "Reuters"


class NewsArticle(BaseModel):
    """Canonical, deduplicated article. One per distinct source_url."""
    id: Optional[int] = None
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    source_url: str  # Dedup key
    author: Optional[str] = None
    published_at: datetime
    is_active: bool = True
    slug: str = ""
    category: Optional[Category] = None
    source: Optional[NewsSource] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# Run results
# =============================================================================

@dataclass
class SourceRunResult:
    """Outcome of one fetch-and-ingest pass over a single source."""
    source_name: str
    kind: SourceKind
    fetched: int = 0
    new: int = 0
    skipped: int = 0
    failed: int = 0
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        status = "ok" if self.success else "failed"
        return (
            f"[{status}] {self.source_name} ({self.kind.value}): "
            f"fetched={self.fetched}, new={self.new}, "
            f"skipped={self.skipped}, failed={self.failed}, "
            f"time={self.duration_seconds:.1f}s"
        )


@dataclass
class AggregationReport:
    """Summary of one aggregation run."""
    started_at: datetime
    results: list[SourceRunResult] = field(default_factory=list)
    duration_seconds: float = 0.0
    cancelled: bool = False

    @property
    def total_new(self) -> int:
        return sum(r.new for r in self.results)

    @property
    def failed_sources(self) -> list[str]:
        return [r.source_name for r in self.results if not r.success]

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "cancelled": self.cancelled,
            "total_new": self.total_new,
            "sources": [
                {
                    "name": r.source_name,
                    "kind": r.kind.value,
                    "fetched": r.fetched,
                    "new": r.new,
                    "skipped": r.skipped,
                    "failed": r.failed,
                    "error": r.error,
                }
                for r in self.results
            ],
        }
