"""Pure data types for the offline content cache.

These types are defined in core/ because they are shared by the cache store,
the orchestrator and the CLI without pulling in services/.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


class CachePriority(StrEnum):
    """Priority recorded on a cache entry; NORMAL entries are evicted first."""

    NORMAL = "normal"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Sort rank for eviction ordering (lower goes first)."""
        return 0 if self is CachePriority.NORMAL else 1


@dataclass
class CacheEntry:
    """A stored blob and its metadata."""

    content_id: str
    handle: Path
    mime_type: str
    size_bytes: int
    created_at: float = field(default_factory=time.time)
    last_accessed_at: float = field(default_factory=time.time)
    priority: CachePriority = CachePriority.NORMAL

    def touch(self) -> None:
        """Mark the entry as just accessed."""
        self.last_accessed_at = time.time()

    def age_seconds(self) -> float:
        """Seconds since the blob was stored."""
        return time.time() - self.created_at

    def is_fresh(self, max_age_seconds: float) -> bool:
        """Whether the entry is younger than ``max_age_seconds``.

        A non-positive age disables expiry.
        """
        if max_age_seconds <= 0:
            return True
        return self.age_seconds() < max_age_seconds

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the on-disk index (handle stored as a file name)."""
        return {
            "content_id": self.content_id,
            "file": self.handle.name,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
            "last_accessed_at": self.last_accessed_at,
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], blobs_dir: Path) -> CacheEntry:
        """Rebuild an entry from an index record.

        Raises:
            KeyError: When a required field is missing
            ValueError: When a field has the wrong type

        """
        return cls(
            content_id=str(data["content_id"]),
            handle=blobs_dir / str(data["file"]),
            mime_type=str(data["mime_type"]),
            size_bytes=int(data["size_bytes"]),
            created_at=float(data["created_at"]),
            last_accessed_at=float(data["last_accessed_at"]),
            priority=CachePriority(data.get("priority", CachePriority.NORMAL.value)),
        )


class CacheMetrics(BaseModel):
    """Point-in-time snapshot of cache counters."""

    model_config = ConfigDict(frozen=True)

    hit_count: int = Field(default=0, ge=0)
    miss_count: int = Field(default=0, ge=0)
    entry_count: int = Field(default=0, ge=0)
    total_bytes: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_requests(self) -> int:
        """Hits plus misses."""
        return self.hit_count + self.miss_count

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hit_ratio(self) -> float:
        """Fraction of lookups served from the cache (0.0 when idle)."""
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total else 0.0


@dataclass
class WarmingReport:
    """Outcome of a warm or cache_all batch."""

    attempted: int = 0
    cached: int = 0
    skipped: int = 0
    failed: int = 0
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    def get_duration_seconds(self) -> float:
        """Batch duration in seconds (ongoing if not finished)."""
        end = self.finished_at or time.time()
        return end - self.started_at

    def to_dict(self) -> dict[str, Any]:
        """Convert the report to dictionary format."""
        return {
            "attempted": self.attempted,
            "cached": self.cached,
            "skipped": self.skipped,
            "failed": self.failed,
            "duration_seconds": self.get_duration_seconds(),
        }
