"""Dense position maintenance for setlist songs.

Positions inside a setlist are always ``1..n``. The store enforces
``UNIQUE(setlist_id, position)``, so shifts that move rows onto occupied
slots go through a clear offset first and are settled afterwards:

- insert at p: rows >= p jump by ``max_position + 1``, then settle to
  ``original + 1``; the new row takes p.
- remove at p: delete, then rows > p move down by one.
- move a -> b: the moved row is parked at -1; rows in (a, b] move down by
  one, or rows in [b, a) move up by one through the offset; the moved row
  then takes b.

Every operation runs in one store transaction under a per-setlist lock, and
the dense invariant is checked before commit.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from core.exceptions import InvalidPositionError, PositionStoreError, ReorderConflictError
from core.logger import LogFormat
from core.models.content_models import PARKED_POSITION, ReorderOperation, ReorderResult, SetlistSong

if TYPE_CHECKING:
    from core.models.protocols import PositionStoreProtocol, PositionTransaction

ReorderBody = Callable[["PositionTransaction"], Awaitable[SetlistSong | None]]


class SetlistPositionManager:
    """Inserts, removes and moves setlist songs while keeping positions dense."""

    def __init__(
        self,
        store: PositionStoreProtocol,
        console_logger: logging.Logger | None = None,
        error_logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Transactional position store
            console_logger: Logger for completed operations
            error_logger: Logger for rejected operations
        """
        self.store = store
        self.console_logger = console_logger or logging.getLogger(__name__)
        self.error_logger = error_logger or self.console_logger
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def list_songs(self, setlist_id: str) -> list[SetlistSong]:
        """Songs of a setlist in position order."""
        async with self.store.transaction(setlist_id) as tx:
            return await tx.list_songs(setlist_id)

    # =========================== OPERATIONS ===========================

    async def insert_song(self, setlist_id: str, content_id: str, position: int, notes: str = "") -> ReorderResult:
        """Insert a content item at ``position`` (1..n+1)."""

        async def body(tx: PositionTransaction) -> SetlistSong:
            songs = await tx.list_songs(setlist_id)
            count = len(songs)
            if not 1 <= position <= count + 1:
                msg = f"Insert position {position} outside 1..{count + 1}"
                raise InvalidPositionError(msg)

            if position <= count:
                offset = max(song.position for song in songs) + 1
                await tx.shift_positions(setlist_id, position, None, offset)
                await tx.shift_positions(setlist_id, position + offset, None, 1 - offset)
            return await tx.insert_song(setlist_id, content_id, position, notes)

        return await self._run(ReorderOperation.INSERT, setlist_id, body)

    async def remove_song(self, song_id: str) -> ReorderResult:
        """Remove a song and close the gap it leaves."""
        setlist_id = await self._owning_setlist(song_id)
        if setlist_id is None:
            return self._unknown_song(ReorderOperation.REMOVE, song_id)

        async def body(tx: PositionTransaction) -> SetlistSong:
            song = await self._require_song(tx, song_id)
            await tx.delete_song(song_id)
            await tx.shift_positions(setlist_id, song.position + 1, None, -1)
            return song

        return await self._run(ReorderOperation.REMOVE, setlist_id, body)

    async def move_song(self, song_id: str, new_position: int) -> ReorderResult:
        """Move a song to ``new_position`` (1..n), shifting the songs in between."""
        setlist_id = await self._owning_setlist(song_id)
        if setlist_id is None:
            return self._unknown_song(ReorderOperation.MOVE, song_id)

        async def body(tx: PositionTransaction) -> SetlistSong:
            song = await self._require_song(tx, song_id)
            songs = await tx.list_songs(setlist_id)
            count = len(songs)
            if not 1 <= new_position <= count:
                msg = f"Move position {new_position} outside 1..{count}"
                raise InvalidPositionError(msg)

            current = song.position
            if current == new_position:
                return song

            await tx.set_position(song_id, PARKED_POSITION)
            if current < new_position:
                await tx.shift_positions(setlist_id, current + 1, new_position, -1)
            else:
                offset = max(s.position for s in songs) + 1
                await tx.shift_positions(setlist_id, new_position, current - 1, offset)
                await tx.shift_positions(setlist_id, new_position + offset, current - 1 + offset, 1 - offset)
            await tx.set_position(song_id, new_position)
            return song.model_copy(update={"position": new_position})

        return await self._run(ReorderOperation.MOVE, setlist_id, body)

    async def renumber(self, setlist_id: str) -> ReorderResult:
        """Rewrite positions of a setlist to ``1..n`` keeping their order.

        Repairs setlists whose rows were written with gaps by other tools.
        """

        async def body(tx: PositionTransaction) -> None:
            songs = await tx.list_songs(setlist_id)
            if not songs:
                return None
            offset = max(song.position for song in songs) + 1
            await tx.shift_positions(setlist_id, songs[0].position, None, offset)
            for index, song in enumerate(songs, start=1):
                await tx.set_position(song.id, index)
            return None

        return await self._run(ReorderOperation.RENUMBER, setlist_id, body)

    # =========================== INTERNALS ===========================

    async def _run(self, operation: ReorderOperation, setlist_id: str, body: ReorderBody) -> ReorderResult:
        """Run ``body`` in one transaction and verify the result before commit."""
        async with self._locks[setlist_id]:
            try:
                async with self.store.transaction(setlist_id) as tx:
                    song = await body(tx)
                    await self._verify_dense(tx, setlist_id)
            except InvalidPositionError as e:
                self.console_logger.warning("Rejected %s on setlist %s: %s", operation.value, setlist_id, e)
                return ReorderResult.failure(operation, str(e), setlist_id)
            except (ReorderConflictError, PositionStoreError) as e:
                self.error_logger.error("%s on setlist %s, rolled back: %s", LogFormat.error(f"Failed {operation.value}"), setlist_id, e)
                return ReorderResult.failure(operation, str(e), setlist_id)

        self.console_logger.info(
            "%s on setlist %s%s",
            LogFormat.success(operation.value),
            LogFormat.entity(setlist_id),
            f" (song {song.id} at {song.position})" if song is not None else "",
        )
        return ReorderResult.success(operation, setlist_id, song)

    @staticmethod
    async def _verify_dense(tx: PositionTransaction, setlist_id: str) -> None:
        """Raise ReorderConflictError unless positions are exactly 1..n."""
        positions = [song.position for song in await tx.list_songs(setlist_id)]
        if sorted(positions) != list(range(1, len(positions) + 1)):
            msg = f"Setlist {setlist_id} positions not dense after reorder: {sorted(positions)}"
            raise ReorderConflictError(msg, setlist_id, sorted(positions))

    @staticmethod
    async def _require_song(tx: PositionTransaction, song_id: str) -> SetlistSong:
        song = await tx.get_song(song_id)
        if song is None:
            msg = f"Unknown setlist song {song_id}"
            raise InvalidPositionError(msg)
        return song

    async def _owning_setlist(self, song_id: str) -> str | None:
        try:
            return await self.store.find_setlist_id(song_id)
        except PositionStoreError as e:
            self.error_logger.error("Could not look up setlist for song %s: %s", song_id, e)
            return None

    def _unknown_song(self, operation: ReorderOperation, song_id: str) -> ReorderResult:
        self.console_logger.warning("Rejected %s: unknown setlist song %s", operation.value, song_id)
        return ReorderResult.failure(operation, f"Unknown setlist song {song_id}")
