"""Hit/miss counters for the offline content cache.

The collector is mutable and owned by one CacheStore; callers only ever see
immutable CacheMetrics snapshots built on demand.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from statistics import mean
from typing import Any

from core.models.cache_types import CacheMetrics


class MetricType(Enum):
    """Types of cache operations that are counted."""

    HIT = "hit"
    MISS = "miss"
    SET = "set"
    REMOVE = "remove"
    EVICT = "evict"
    ERROR = "error"


@dataclass
class CacheMetricsCollector:
    """Operation counters with a bounded window of lookup latencies."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    removals: int = 0
    evictions: int = 0
    errors: int = 0
    lookup_latency_ms: deque[float] = field(default_factory=lambda: deque(maxlen=1000))

    def record_hit(self, duration_ms: float = 0.0) -> None:
        """Record a lookup that found an entry."""
        self.hits += 1
        self.lookup_latency_ms.append(duration_ms)

    def record_miss(self, duration_ms: float = 0.0) -> None:
        """Record a lookup that found nothing."""
        self.misses += 1
        self.lookup_latency_ms.append(duration_ms)

    def record(self, metric: MetricType, count: int = 1) -> None:
        """Increment a non-lookup counter."""
        match metric:
            case MetricType.SET:
                self.sets += count
            case MetricType.REMOVE:
                self.removals += count
            case MetricType.EVICT:
                self.evictions += count
            case MetricType.ERROR:
                self.errors += count
            case MetricType.HIT | MetricType.MISS:
                msg = "use record_hit/record_miss for lookups"
                raise ValueError(msg)

    def get_hit_ratio(self) -> float:
        """Hits over total lookups (0.0 when there were none)."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def snapshot(self, entry_count: int, total_bytes: int) -> CacheMetrics:
        """Build an immutable metrics snapshot."""
        return CacheMetrics(
            hit_count=self.hits,
            miss_count=self.misses,
            entry_count=entry_count,
            total_bytes=total_bytes,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert counters to dictionary format."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "removals": self.removals,
            "evictions": self.evictions,
            "errors": self.errors,
            "hit_ratio": self.get_hit_ratio(),
            "avg_lookup_ms": mean(self.lookup_latency_ms) if self.lookup_latency_ms else 0.0,
        }
