"""Resolves a song list to displayable URLs, preferring the local cache.

For each song the session looks in the CacheStore first; a hit is
materialized as a transient handle (``file://`` URL) through the
HandleRegistry. A miss, or any error reading the blob, falls back to the
song's remote URL, then to its embedded file, then to None. Fallbacks carry
no mime type.

Resolution runs in the background whenever the song list's fingerprint
changes. Only the most recent request may publish its result: older
results, and results arriving after close(), are discarded and their
handles released.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Self

from core.models.content_models import ResolvedContent, SongRef
from services.cache.fingerprint_generator import FingerprintGenerator

if TYPE_CHECKING:
    from services.cache.cache_store import CacheStore
    from services.cache.handle_registry import HandleRegistry
    from services.cache.orchestrator import CacheOrchestrator

# (url, mime_type, leased content id)
ResolvedItem = tuple[str | None, str | None, str | None]


class ContentCacheSession:
    """Owns the handles backing one view's resolved URLs."""

    def __init__(
        self,
        store: CacheStore,
        registry: HandleRegistry,
        orchestrator: CacheOrchestrator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            store: Shared content cache
            registry: Handle ownership table
            orchestrator: When given, every new song list is also scheduled for caching
            logger: Optional logger instance

        """
        self.store = store
        self.registry = registry
        self.orchestrator = orchestrator
        self.logger = logger or logging.getLogger(__name__)
        self.fingerprint_generator = FingerprintGenerator(self.logger)

        self._token = 0
        self._fingerprint: str | None = None
        self._snapshot = ResolvedContent()
        self._leases: list[str] = []
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def snapshot(self) -> ResolvedContent:
        """Most recently published resolution."""
        return self._snapshot

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    def update(self, songs: Sequence[SongRef]) -> None:
        """Start resolving ``songs`` unless the list is unchanged.

        While the resolution runs, the snapshot holds the remote fallbacks
        with ``is_loading`` set.
        """
        if self._closed:
            self.logger.debug("Ignoring update on closed content session")
            return

        fingerprint = self.fingerprint_generator.generate_song_list_fingerprint(songs)
        if fingerprint == self._fingerprint:
            return
        self._fingerprint = fingerprint
        self._token += 1

        if not songs:
            self._publish(ResolvedContent(), [])
            self._task = None
            return

        self._snapshot = ResolvedContent(
            urls=tuple(song.fallback_url for song in songs),
            mime_types=(None,) * len(songs),
            is_loading=True,
        )
        self._task = asyncio.create_task(self._resolve(self._token, list(songs)))
        self._pending.add(self._task)
        self._task.add_done_callback(self._pending.discard)

        if self.orchestrator is not None:
            self.orchestrator.schedule_cache_all(songs)

    async def resolve_content(self, songs: Sequence[SongRef]) -> ResolvedContent:
        """Resolve ``songs`` and wait for the latest result."""
        self.update(songs)
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)
        return self._snapshot

    async def _resolve(self, token: int, songs: list[SongRef]) -> None:
        results = await asyncio.gather(*(self._resolve_item(song) for song in songs))
        leases = [lease for _, _, lease in results if lease is not None]

        if self._closed or token != self._token:
            self.logger.debug("Discarding stale resolution %d (current %d)", token, self._token)
            for content_id in leases:
                self.registry.release(content_id)
            return

        self._publish(
            ResolvedContent(
                urls=tuple(url for url, _, _ in results),
                mime_types=tuple(mime for _, mime, _ in results),
                is_loading=False,
            ),
            leases,
        )
        self.logger.debug("Resolved %d songs (%d from cache)", len(songs), len(leases))

    async def _resolve_item(self, song: SongRef) -> ResolvedItem:
        try:
            entry = await self.store.get(song.id)
            if entry is not None:
                data = await self.store.read_bytes(entry)
                handle = await self.registry.acquire(song.id, data, entry.mime_type)
                return handle.url, entry.mime_type, song.id
        except Exception as e:
            # Any cache failure degrades to the remote copy
            self.logger.debug("Cached copy of %s unusable, falling back: %s", song.id, e)
        return song.fallback_url, None, None

    def _publish(self, snapshot: ResolvedContent, leases: list[str]) -> None:
        """Swap in a new result and drop the previous result's leases."""
        previous = self._leases
        self._snapshot = snapshot
        self._leases = leases
        for content_id in previous:
            self.registry.release(content_id)

    def close(self) -> None:
        """Release every handle this session holds."""
        if self._closed:
            return
        self._closed = True
        leases, self._leases = self._leases, []
        for content_id in leases:
            self.registry.release(content_id)

    async def aclose(self) -> None:
        """Close and wait for any in-flight resolution to clean up after itself."""
        self.close()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        return self

    async def __aexit__(self, _exc_type: type[BaseException] | None, _exc: BaseException | None, _tb: object) -> None:
        """Async context manager exit."""
        await self.aclose()
