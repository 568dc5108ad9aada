"""Cache Orchestrator - populates the offline content cache ahead of need.

The orchestrator sits between the content service and the CacheStore:

- ``warm`` fetches the currently expected items (set through ``expect`` or
  ``preload_window``) so the next songs are local before they are shown.
- ``cache_all`` best-effort populates a whole setlist; fresh entries are
  skipped and overlapping calls share one in-flight fetch per content id.
- Individual fetch failures are logged and swallowed; a batch always
  completes with a WarmingReport.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from core.exceptions import ContentFetchError, RetryExhaustionError
from core.logger import LogFormat
from core.models.cache_types import CacheMetrics, CachePriority, WarmingReport
from core.models.content_models import DEFAULT_MIME_TYPE
from core.retry_handler import FetchRetryHandler, RetryPolicy

if TYPE_CHECKING:
    from core.models.app_config import CachingConfig
    from core.models.content_models import SongRef
    from core.models.protocols import ContentServiceProtocol
    from services.cache.cache_store import CacheStore


class WarmOutcome(StrEnum):
    """Result of caching one item."""

    CACHED = "cached"
    SKIPPED = "skipped"
    FAILED = "failed"


class CacheOrchestrator:
    """Warms and populates the content cache from the content service."""

    def __init__(
        self,
        store: CacheStore,
        content_service: ContentServiceProtocol,
        config: CachingConfig,
        console_logger: logging.Logger | None = None,
        error_logger: logging.Logger | None = None,
    ) -> None:
        """Initialize CacheOrchestrator.

        Args:
            store: Shared content cache
            content_service: Source of content files
            config: ``caching`` configuration section
            console_logger: Logger for progress messages
            error_logger: Logger for fetch failures
        """
        self.store = store
        self.content_service = content_service
        self.config = config
        self.console_logger = console_logger or logging.getLogger(__name__)
        self.error_logger = error_logger or self.console_logger

        self.retry_handler = FetchRetryHandler(self.console_logger, RetryPolicy.from_config(config.fetch_retry))
        self._semaphore = asyncio.Semaphore(config.warm_concurrency)

        self._expected: list[SongRef] = []
        self._in_flight: dict[str, asyncio.Task[WarmOutcome]] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._preload_task: asyncio.Task[WarmingReport] | None = None

    async def initialize(self) -> None:
        """Load the store's on-disk index."""
        self.console_logger.info("Initializing %s...", LogFormat.entity("CacheOrchestrator"))
        await self.store.initialize()

    # =========================== EXPECTED ITEMS ===========================

    def expect(self, songs: Sequence[SongRef]) -> None:
        """Replace the set of items ``warm`` will fetch."""
        self._expected = self._unique(songs)

    @property
    def expected_ids(self) -> list[str]:
        """Content ids currently expected, in order."""
        return [song.id for song in self._expected]

    def preload_window(self, songs: Sequence[SongRef], current_index: int | None) -> asyncio.Task[WarmingReport] | None:
        """Expect the songs around ``current_index`` and warm them at HIGH priority.

        The window spans ``preload_behind`` songs before and ``preload_ahead``
        songs after the current one. A newer window supersedes a pending one.

        Returns:
            The scheduled warm task, or None when there is nothing to preload
        """
        if self._preload_task is not None and not self._preload_task.done():
            self._preload_task.cancel()
            self._preload_task = None

        if current_index is None or not 0 <= current_index < len(songs):
            self.expect([])
            return None

        start = max(0, current_index - self.config.preload_behind)
        end = current_index + self.config.preload_ahead + 1
        self.expect(songs[start:end])

        self._preload_task = asyncio.create_task(self.warm(CachePriority.HIGH))
        self._track(self._preload_task)
        return self._preload_task

    # =========================== POPULATION ===========================

    async def warm(self, priority: CachePriority = CachePriority.NORMAL) -> WarmingReport:
        """Fetch and store the currently expected items."""
        return await self._populate(list(self._expected), priority)

    async def cache_all(self, songs: Sequence[SongRef], priority: CachePriority = CachePriority.NORMAL) -> WarmingReport:
        """Best-effort population of every song in a list.

        Safe to call repeatedly: fresh entries are skipped and concurrent
        calls share in-flight fetches.
        """
        return await self._populate(self._unique(songs), priority)

    async def warm_setlist(self, setlist_id: str, priority: CachePriority = CachePriority.NORMAL) -> WarmingReport:
        """List a setlist's songs and cache all of them.

        Raises:
            ContentFetchError: When the setlist itself cannot be listed
        """
        songs = await self.content_service.list_songs(setlist_id)
        self.console_logger.info("Warming setlist %s (%d songs)", LogFormat.entity(setlist_id), len(songs))
        self.expect(songs)
        return await self.cache_all(songs, priority)

    def schedule_cache_all(self, songs: Sequence[SongRef]) -> asyncio.Task[WarmingReport]:
        """Run ``cache_all`` in the background; shutdown() waits for it."""
        task = asyncio.create_task(self.cache_all(list(songs)))
        self._track(task)
        return task

    async def _populate(self, songs: list[SongRef], priority: CachePriority) -> WarmingReport:
        report = WarmingReport(attempted=len(songs))
        if not songs:
            report.finished_at = time.time()
            return report

        outcomes = await asyncio.gather(*(self._cache_one(song, priority) for song in songs))
        for outcome in outcomes:
            match outcome:
                case WarmOutcome.CACHED:
                    report.cached += 1
                case WarmOutcome.SKIPPED:
                    report.skipped += 1
                case WarmOutcome.FAILED:
                    report.failed += 1

        report.finished_at = time.time()
        self.console_logger.debug(
            "Cache population: %d attempted, %d cached, %d skipped, %d failed",
            report.attempted,
            report.cached,
            report.skipped,
            report.failed,
        )
        return report

    async def _cache_one(self, song: SongRef, priority: CachePriority) -> WarmOutcome:
        """Cache a single song unless it is fresh, unfetchable or already being fetched."""
        if not song.remote_url:
            return WarmOutcome.SKIPPED

        entry = self.store.peek(song.id)
        if entry is not None and entry.is_fresh(self.config.entry_max_age_seconds):
            return WarmOutcome.SKIPPED

        task = self._in_flight.get(song.id)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(song, priority))
            self._in_flight[song.id] = task
            task.add_done_callback(lambda done, content_id=song.id: self._forget_in_flight(content_id, done))

        # Shielded so a superseded preload does not abort fetches other callers share
        return await asyncio.shield(task)

    def _forget_in_flight(self, content_id: str, task: asyncio.Task[WarmOutcome]) -> None:
        if self._in_flight.get(content_id) is task:
            del self._in_flight[content_id]

    async def _fetch_and_store(self, song: SongRef, priority: CachePriority) -> WarmOutcome:
        async with self._semaphore:
            try:
                data, mime_type = await self.retry_handler.execute_with_retry(
                    lambda: self.content_service.fetch_content_bytes(song.id, song.remote_url),
                    f"fetch:{song.id}",
                )
                await self.store.put(song.id, data, mime_type or DEFAULT_MIME_TYPE, priority)
            except (ContentFetchError, RetryExhaustionError, OSError, ValueError) as e:
                self.error_logger.warning("Failed to cache content %s: %s", song.id, e)
                return WarmOutcome.FAILED
            except Exception as e:
                self.error_logger.exception("Unexpected error caching content %s: %s", song.id, e)
                return WarmOutcome.FAILED
        return WarmOutcome.CACHED

    # =========================== MAINTENANCE ===========================

    def cache_metrics(self) -> CacheMetrics:
        """Snapshot of the store's counters."""
        return self.store.metrics()

    async def invalidate(self, content_id: str) -> bool:
        """Drop a deleted or replaced content item from the cache."""
        removed = await self.store.remove(content_id)
        if removed:
            self.console_logger.info("Invalidated cached content %s", LogFormat.entity(content_id))
        return removed

    def get_stats(self) -> dict[str, Any]:
        """Orchestrator and store statistics."""
        return {
            **self.store.get_stats(),
            "expected_items": len(self._expected),
            "in_flight_fetches": len(self._in_flight),
            "background_tasks": len(self._background),
        }

    async def shutdown(self, cancel_pending: bool = False) -> None:
        """Wait for (or cancel) background work, then flush the store."""
        if self._preload_task is not None and not self._preload_task.done():
            self._preload_task.cancel()

        pending = list(self._background)
        if cancel_pending:
            for task in pending:
                task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        fetches = list(self._in_flight.values())
        if fetches:
            await asyncio.gather(*fetches, return_exceptions=True)

        await self.store.close()
        self.console_logger.info("%s shut down", LogFormat.entity("CacheOrchestrator"))

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        if (error := task.exception()) is not None:
            self.error_logger.error("Background cache task failed: %s", error, exc_info=error)

    @staticmethod
    def _unique(songs: Sequence[SongRef]) -> list[SongRef]:
        """Drop repeated content ids, keeping the first occurrence."""
        seen: set[str] = set()
        unique: list[SongRef] = []
        for song in songs:
            if song.id not in seen:
                seen.add(song.id)
                unique.append(song)
        return unique

    async def __aenter__(self) -> CacheOrchestrator:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, _exc_type: type[BaseException] | None, _exc: BaseException | None, _tb: object) -> None:
        """Async context manager exit."""
        await self.shutdown()
