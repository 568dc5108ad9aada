"""Tests for cache counters and metric snapshots."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.models.cache_types import CacheMetrics
from services.cache.cache_metrics import CacheMetricsCollector, MetricType


@pytest.mark.unit
class TestCacheMetricsCollector:
    """Tests for CacheMetricsCollector."""

    def test_hit_ratio_idle_is_zero(self) -> None:
        """No lookups means a ratio of zero, not a division error."""
        assert CacheMetricsCollector().get_hit_ratio() == 0.0

    def test_counts_lookups(self) -> None:
        """Hits and misses feed the ratio."""
        collector = CacheMetricsCollector()
        collector.record_hit(0.1)
        collector.record_hit(0.2)
        collector.record_hit(0.1)
        collector.record_miss(0.3)

        assert collector.get_hit_ratio() == 0.75
        assert len(collector.lookup_latency_ms) == 4

    def test_record_non_lookup_counters(self) -> None:
        """SET, REMOVE, EVICT and ERROR have their own counters."""
        collector = CacheMetricsCollector()
        collector.record(MetricType.SET)
        collector.record(MetricType.REMOVE, 2)
        collector.record(MetricType.EVICT, 3)
        collector.record(MetricType.ERROR)

        assert (collector.sets, collector.removals, collector.evictions, collector.errors) == (1, 2, 3, 1)

    def test_record_rejects_lookup_types(self) -> None:
        """Lookups must go through record_hit/record_miss."""
        with pytest.raises(ValueError, match="record_hit"):
            CacheMetricsCollector().record(MetricType.HIT)

    def test_snapshot_is_independent(self) -> None:
        """Snapshots do not change when counters move on."""
        collector = CacheMetricsCollector()
        collector.record_hit()
        snapshot = collector.snapshot(entry_count=1, total_bytes=10)
        collector.record_miss()

        assert snapshot.hit_count == 1
        assert snapshot.miss_count == 0
        assert snapshot.total_requests == 1
        assert snapshot.hit_ratio == 1.0


@pytest.mark.unit
class TestCacheMetricsModel:
    """Tests for the CacheMetrics snapshot model."""

    def test_frozen(self) -> None:
        """Snapshots are immutable."""
        metrics = CacheMetrics(hit_count=1)
        with pytest.raises(ValidationError):
            metrics.hit_count = 2  # type: ignore[misc]

    def test_serializes_computed_fields(self) -> None:
        """hit_ratio and total_requests appear in dumps."""
        dumped = CacheMetrics(hit_count=1, miss_count=3).model_dump()

        assert dumped["total_requests"] == 4
        assert dumped["hit_ratio"] == 0.25
