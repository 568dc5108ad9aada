"""Durable content-id to blob store with LRU eviction and hit/miss counters.

Blobs are written as individual files under ``<cache_dir>/blobs``; entry
metadata lives in ``<cache_dir>/index.json``. All file I/O runs in worker
threads. Eviction and index persistence happen in a background maintenance
task scheduled after every write, so lookups never wait on them.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import tempfile
import time
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

from core.logger import LogFormat
from core.models.cache_types import CacheEntry, CacheMetrics, CachePriority
from services.cache.cache_eviction import LRUEvictionPolicy
from services.cache.cache_metrics import CacheMetricsCollector, MetricType

if TYPE_CHECKING:
    from core.models.app_config import CachingConfig

INDEX_VERSION = 1


class CacheStore:
    """Persistent blob cache keyed by content id."""

    def __init__(self, config: CachingConfig, logger: logging.Logger | None = None) -> None:
        """Initialize the store.

        Args:
            config: ``caching`` configuration section
            logger: Optional logger instance

        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self.cache_dir = Path(config.cache_dir)
        self.blobs_dir = self.cache_dir / "blobs"
        self.index_file = self.cache_dir / "index.json"

        # OrderedDict keeps access order; first item is the least recently used
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._metrics = CacheMetricsCollector()
        self.eviction_policy = LRUEvictionPolicy(config.max_cache_bytes, config.max_entries, self.logger)

        self._maintenance_task: asyncio.Task[None] | None = None
        self._maintenance_pending = False
        self._index_lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self) -> None:
        """Create the cache directories and load the on-disk index."""
        if self._initialized:
            return
        self.logger.info("Initializing %s at %s...", LogFormat.entity("CacheStore"), LogFormat.file(str(self.cache_dir)))

        await asyncio.to_thread(self.blobs_dir.mkdir, parents=True, exist_ok=True)
        restored = await asyncio.to_thread(self._load_index)
        # Entries written before initialization are newer than anything on disk
        for content_id in self._entries:
            restored.pop(content_id, None)
        restored.update(self._entries)
        self._entries = restored
        self._initialized = True

        removed = await self.evict_now()
        self.logger.info(
            "%s initialized with %d entries (%s)%s",
            LogFormat.entity("CacheStore"),
            len(self._entries),
            LogFormat.size(self.total_bytes),
            f", evicted {removed}" if removed else "",
        )

    # =========================== LOOKUP ===========================

    async def get(self, content_id: str) -> CacheEntry | None:
        """Look up an entry, refreshing its recency on a hit.

        Args:
            content_id: Content item identifier

        Returns:
            The entry, or None on a miss

        """
        start = time.perf_counter()
        entry = self._entries.get(content_id)
        if entry is None:
            self._metrics.record_miss((time.perf_counter() - start) * 1000)
            self.logger.debug("Content cache miss: %s", content_id)
            return None

        entry.touch()
        self._entries.move_to_end(content_id)
        self._metrics.record_hit((time.perf_counter() - start) * 1000)
        self.logger.debug("Content cache hit: %s", content_id)
        return entry

    def peek(self, content_id: str) -> CacheEntry | None:
        """Return an entry without counting a lookup or refreshing recency."""
        return self._entries.get(content_id)

    def __contains__(self, content_id: object) -> bool:
        """Membership test without side effects."""
        return content_id in self._entries

    async def read_bytes(self, entry: CacheEntry) -> bytes:
        """Read an entry's blob.

        Raises:
            OSError: When the blob file is missing or unreadable

        """
        return await asyncio.to_thread(entry.handle.read_bytes)

    # =========================== WRITES ===========================

    async def put(
        self,
        content_id: str,
        data: bytes,
        mime_type: str,
        priority: CachePriority = CachePriority.NORMAL,
    ) -> CacheEntry:
        """Store a blob, replacing any previous entry for the same id.

        Args:
            content_id: Content item identifier
            data: Raw file bytes
            mime_type: Mime type reported by the content service
            priority: Eviction priority of the entry

        Returns:
            The new entry

        Raises:
            OSError: When the blob cannot be written

        """
        blob_path = self.blobs_dir / self._blob_name(content_id)
        await asyncio.to_thread(self._write_blob, blob_path, data)

        entry = CacheEntry(
            content_id=content_id,
            handle=blob_path,
            mime_type=mime_type,
            size_bytes=len(data),
            priority=priority,
        )
        previous = self._entries.pop(content_id, None)
        self._entries[content_id] = entry
        self._metrics.record(MetricType.SET)

        if previous is not None and previous.handle != blob_path:
            await self._delete_blob(previous.handle)

        self.logger.debug("Cached %s (%s, %s)", content_id, mime_type, LogFormat.size(len(data)))
        self._schedule_maintenance()
        return entry

    async def remove(self, content_id: str) -> bool:
        """Remove an entry and its blob.

        Returns:
            True if an entry was removed, False if the id was unknown

        """
        entry = self._entries.pop(content_id, None)
        if entry is None:
            return False

        await self._delete_blob(entry.handle)
        self._metrics.record(MetricType.REMOVE)
        self.logger.debug("Removed cached content %s", content_id)
        self._schedule_maintenance()
        return True

    async def clear(self) -> None:
        """Remove every entry and blob."""
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            await self._delete_blob(entry.handle)
        self._metrics.record(MetricType.REMOVE, len(entries))
        await self.save_index()
        self.logger.info("Cleared content cache (%d entries)", len(entries))

    # =========================== EVICTION ===========================

    async def evict_now(self) -> int:
        """Evict least recently used entries until both limits hold.

        Returns:
            Number of entries evicted

        """
        if not self.eviction_policy.should_evict(self._entries):
            return 0

        evicted = 0
        for candidate in self.eviction_policy.select_eviction_candidates(self._entries):
            entry = self._entries.get(candidate.content_id)
            if entry is None:
                continue
            start = time.perf_counter()
            del self._entries[candidate.content_id]
            await self._delete_blob(entry.handle)
            self.eviction_policy.metrics.record_eviction(candidate.reason, entry, (time.perf_counter() - start) * 1000)
            self._metrics.record(MetricType.EVICT)
            evicted += 1

        if evicted:
            self.logger.info(
                "Evicted %d cached items (%s), now %d entries / %s",
                evicted,
                ", ".join(f"{r.value}={c}" for r, c in self.eviction_policy.metrics.evictions_by_reason.items()),
                len(self._entries),
                LogFormat.size(self.total_bytes),
            )
        return evicted

    def _schedule_maintenance(self) -> None:
        """Run eviction and index persistence in the background."""
        if self._maintenance_task is not None and not self._maintenance_task.done():
            self._maintenance_pending = True
            return
        self._maintenance_task = asyncio.create_task(self._maintenance_loop())

    async def _maintenance_loop(self) -> None:
        """Evict and save until no further writes arrived meanwhile."""
        while True:
            self._maintenance_pending = False
            try:
                await self.evict_now()
                await self.save_index()
            except OSError as e:
                self._metrics.record(MetricType.ERROR)
                self.logger.exception("Content cache maintenance failed: %s", e)
            if not self._maintenance_pending:
                return

    async def wait_for_maintenance(self) -> None:
        """Wait for any scheduled eviction/persistence to finish."""
        if self._maintenance_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._maintenance_task

    # =========================== METRICS ===========================

    @property
    def total_bytes(self) -> int:
        """Sum of stored blob sizes."""
        return sum(entry.size_bytes for entry in self._entries.values())

    def __len__(self) -> int:
        """Number of entries."""
        return len(self._entries)

    def metrics(self) -> CacheMetrics:
        """Fresh snapshot of the cache counters."""
        return self._metrics.snapshot(entry_count=len(self._entries), total_bytes=self.total_bytes)

    def get_stats(self) -> dict[str, Any]:
        """Extended statistics for diagnostics."""
        return {
            **self._metrics.to_dict(),
            "entry_count": len(self._entries),
            "total_bytes": self.total_bytes,
            "max_cache_bytes": self.config.max_cache_bytes,
            "max_entries": self.config.max_entries,
            "eviction": self.eviction_policy.get_metrics(),
        }

    # =========================== PERSISTENCE ===========================

    async def save_index(self) -> None:
        """Persist entry metadata atomically."""
        async with self._index_lock:
            snapshot = [entry.to_dict() for entry in self._entries.values()]

            def blocking_save() -> None:
                """Write the index within a worker thread."""
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                payload = {"version": INDEX_VERSION, "entries": snapshot}
                with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=str(self.cache_dir), delete=False) as tmp_file:
                    json.dump(payload, tmp_file, ensure_ascii=False, indent=2)
                    temp_path = Path(tmp_file.name)
                temp_path.replace(self.index_file)

            await asyncio.to_thread(blocking_save)
        self.logger.debug("Content cache index saved (%d entries)", len(snapshot))

    def _load_index(self) -> OrderedDict[str, CacheEntry]:
        """Load the index, skipping malformed records and entries whose blob is gone."""
        restored: OrderedDict[str, CacheEntry] = OrderedDict()
        if not self.index_file.exists():
            self.logger.debug("Content cache index %s not found; starting fresh", self.index_file)
            return restored

        try:
            data = json.loads(self.index_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            self.logger.warning("Failed to load content cache index %s: %s", LogFormat.file(self.index_file.name), e)
            return restored

        records = data.get("entries", []) if isinstance(data, dict) else []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                entry = CacheEntry.from_dict(record, self.blobs_dir)
            except (KeyError, TypeError, ValueError) as e:
                self.logger.debug("Skipping malformed index record %r: %s", record, e)
                continue
            if not entry.handle.is_file():
                self.logger.debug("Skipping %s: blob %s missing", entry.content_id, entry.handle.name)
                continue
            restored[entry.content_id] = entry

        # Rebuild LRU order from recorded access times
        return OrderedDict(sorted(restored.items(), key=lambda item: item[1].last_accessed_at))

    @staticmethod
    def _blob_name(content_id: str) -> str:
        """Unique file name for a new blob of ``content_id``."""
        digest = hashlib.sha256(content_id.encode("utf-8")).hexdigest()[:32]
        return f"{digest}-{uuid.uuid4().hex[:12]}.blob"

    @staticmethod
    def _write_blob(path: Path, data: bytes) -> None:
        """Write a blob atomically (temp file then rename)."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("wb", dir=str(path.parent), delete=False) as tmp_file:
            tmp_file.write(data)
            temp_path = Path(tmp_file.name)
        temp_path.replace(path)

    async def _delete_blob(self, path: Path) -> None:
        """Delete a blob file; a missing file is not an error."""
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            self.logger.warning("Failed to delete cached blob %s: %s", path.name, e)

    # =========================== LIFECYCLE ===========================

    async def close(self) -> None:
        """Finish background maintenance and persist the index."""
        await self.wait_for_maintenance()
        if self._initialized:
            await self.save_index()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, _exc_type: type[BaseException] | None, _exc: BaseException | None, _tb: object) -> None:
        """Async context manager exit."""
        await self.close()
