"""Cache eviction policy for the offline content cache.

Entries are evicted least-recently-accessed first. When two entries were last
accessed at the same instant, NORMAL priority entries go before HIGH ones.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.models.cache_types import CacheEntry


class EvictionReason(Enum):
    """Reasons for cache entry eviction."""

    CAPACITY_EXCEEDED = "capacity_exceeded"
    BYTES_EXCEEDED = "bytes_exceeded"


@dataclass
class EvictionMetrics:
    """Metrics tracking for eviction operations."""

    total_evictions: int = 0
    evicted_bytes: int = 0
    evictions_by_reason: dict[EvictionReason, int] = field(default_factory=dict)
    eviction_duration_ms: float = 0.0

    def record_eviction(self, reason: EvictionReason, entry: CacheEntry, duration_ms: float = 0.0) -> None:
        """Record one evicted entry.

        Args:
            reason: Reason for eviction
            entry: Cache entry that was evicted
            duration_ms: Time spent removing the entry

        """
        self.total_evictions += 1
        self.evicted_bytes += entry.size_bytes
        self.evictions_by_reason[reason] = self.evictions_by_reason.get(reason, 0) + 1
        self.eviction_duration_ms += duration_ms

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to dictionary format."""
        return {
            "total_evictions": self.total_evictions,
            "evicted_bytes": self.evicted_bytes,
            "evictions_by_reason": {reason.value: count for reason, count in self.evictions_by_reason.items()},
            "eviction_duration_ms": self.eviction_duration_ms,
        }


@dataclass(frozen=True)
class EvictionCandidate:
    """An entry chosen for eviction and why."""

    content_id: str
    reason: EvictionReason


class EvictionPolicy(ABC):
    """Abstract base class for cache eviction policies."""

    def __init__(self, max_bytes: int, max_entries: int, logger: logging.Logger | None = None) -> None:
        """Initialize eviction policy.

        Args:
            max_bytes: Total blob size the cache may hold
            max_entries: Number of entries the cache may hold
            logger: Logger for eviction events

        """
        self.max_bytes = max_bytes
        self.max_entries = max_entries
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = EvictionMetrics()

    def should_evict(self, entries: Mapping[str, CacheEntry]) -> bool:
        """True when either limit is exceeded."""
        total_bytes = sum(entry.size_bytes for entry in entries.values())
        return len(entries) > self.max_entries or total_bytes > self.max_bytes

    @abstractmethod
    def select_eviction_candidates(self, entries: Mapping[str, CacheEntry]) -> list[EvictionCandidate]:
        """Select entries to remove so the cache fits both limits.

        Args:
            entries: Current cache entries keyed by content id

        Returns:
            Candidates in eviction order

        """

    def get_metrics(self) -> dict[str, Any]:
        """Get eviction policy metrics."""
        return self.metrics.to_dict()


class LRUEvictionPolicy(EvictionPolicy):
    """Least Recently Used eviction bounded by total bytes and entry count."""

    @staticmethod
    def eviction_order(entries: Mapping[str, CacheEntry]) -> list[CacheEntry]:
        """Entries sorted oldest access first, NORMAL before HIGH on ties."""
        return sorted(entries.values(), key=lambda entry: (entry.last_accessed_at, entry.priority.rank))

    def select_eviction_candidates(self, entries: Mapping[str, CacheEntry]) -> list[EvictionCandidate]:
        """Walk entries in LRU order until both limits hold."""
        start = time.perf_counter()
        remaining_entries = len(entries)
        remaining_bytes = sum(entry.size_bytes for entry in entries.values())
        candidates: list[EvictionCandidate] = []

        for entry in self.eviction_order(entries):
            if remaining_entries <= self.max_entries and remaining_bytes <= self.max_bytes:
                break
            reason = EvictionReason.CAPACITY_EXCEEDED if remaining_entries > self.max_entries else EvictionReason.BYTES_EXCEEDED
            candidates.append(EvictionCandidate(entry.content_id, reason))
            remaining_entries -= 1
            remaining_bytes -= entry.size_bytes

        if candidates:
            self.logger.debug(
                "Selected %d LRU candidates from %d entries in %.2fms",
                len(candidates),
                len(entries),
                (time.perf_counter() - start) * 1000,
            )
        return candidates
