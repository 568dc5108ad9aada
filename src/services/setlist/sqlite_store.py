"""SQLite-backed setlist position store.

``(setlist_id, position)`` is UNIQUE and SQLite checks it row by row, so
every multi-row shift is applied one row at a time in an order that never
lands a row on an occupied slot. Each transaction uses a fresh connection,
starts with ``BEGIN IMMEDIATE`` and runs its blocking work in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from core.exceptions import PositionStoreError
from core.models.content_models import SetlistSong

_PERF_WARN_MS = 50.0
logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS setlist_songs (
    id TEXT PRIMARY KEY,
    setlist_id TEXT NOT NULL,
    content_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    notes TEXT NOT NULL DEFAULT '',
    UNIQUE (setlist_id, position)
);
CREATE INDEX IF NOT EXISTS idx_setlist_songs_setlist ON setlist_songs (setlist_id, position);
"""

_SELECT_COLUMNS = "id, setlist_id, content_id, position, notes"


def _row_to_song(row: sqlite3.Row) -> SetlistSong:
    return SetlistSong(
        id=str(row["id"]),
        setlist_id=str(row["setlist_id"]),
        content_id=str(row["content_id"]),
        position=int(row["position"]),
        notes=str(row["notes"] or ""),
    )


def _log_slow_db_op(op: str, *, start: float, **context: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    if elapsed_ms < _PERF_WARN_MS:
        return
    logger.info(
        "Setlist store operation %s took %.1fms",
        op,
        elapsed_ms,
        extra={"event": "setlist_store_slow_query", "operation": op, **context},
    )


class SqlitePositionTransaction:
    """Position operations bound to one open SQLite transaction."""

    def __init__(self, conn: sqlite3.Connection, setlist_id: str) -> None:
        self._conn = conn
        self.setlist_id = setlist_id

    async def list_songs(self, setlist_id: str) -> list[SetlistSong]:
        return await asyncio.to_thread(self._list_songs_sync, setlist_id)

    async def get_song(self, song_id: str) -> SetlistSong | None:
        return await asyncio.to_thread(self._get_song_sync, song_id)

    async def insert_song(self, setlist_id: str, content_id: str, position: int, notes: str = "") -> SetlistSong:
        return await asyncio.to_thread(self._insert_song_sync, setlist_id, content_id, position, notes)

    async def delete_song(self, song_id: str) -> None:
        await asyncio.to_thread(self._delete_song_sync, song_id)

    async def set_position(self, song_id: str, position: int) -> None:
        await asyncio.to_thread(self._set_position_sync, song_id, position)

    async def shift_positions(self, setlist_id: str, lower: int, upper: int | None, delta: int) -> int:
        return await asyncio.to_thread(self._shift_positions_sync, setlist_id, lower, upper, delta)

    def _list_songs_sync(self, setlist_id: str) -> list[SetlistSong]:
        try:
            rows = self._conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM setlist_songs WHERE setlist_id = ? ORDER BY position",  # noqa: S608
                (setlist_id,),
            ).fetchall()
        except sqlite3.Error as e:
            msg = f"Listing setlist {setlist_id} failed: {e}"
            raise PositionStoreError(msg) from e
        return [_row_to_song(row) for row in rows]

    def _get_song_sync(self, song_id: str) -> SetlistSong | None:
        try:
            row = self._conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM setlist_songs WHERE id = ?",  # noqa: S608
                (song_id,),
            ).fetchone()
        except sqlite3.Error as e:
            msg = f"Lookup of song {song_id} failed: {e}"
            raise PositionStoreError(msg) from e
        return _row_to_song(row) if row is not None else None

    def _insert_song_sync(self, setlist_id: str, content_id: str, position: int, notes: str) -> SetlistSong:
        song = SetlistSong(
            id=uuid.uuid4().hex,
            setlist_id=setlist_id,
            content_id=content_id,
            position=position,
            notes=notes,
        )
        try:
            self._conn.execute(
                "INSERT INTO setlist_songs (id, setlist_id, content_id, position, notes) VALUES (?, ?, ?, ?, ?)",
                (song.id, song.setlist_id, song.content_id, song.position, song.notes),
            )
        except sqlite3.Error as e:
            msg = f"Insert into setlist {setlist_id} at position {position} rejected: {e}"
            raise PositionStoreError(msg) from e
        return song

    def _delete_song_sync(self, song_id: str) -> None:
        try:
            self._conn.execute("DELETE FROM setlist_songs WHERE id = ?", (song_id,))
        except sqlite3.Error as e:
            msg = f"Delete of song {song_id} rejected: {e}"
            raise PositionStoreError(msg) from e

    def _set_position_sync(self, song_id: str, position: int) -> None:
        try:
            self._conn.execute("UPDATE setlist_songs SET position = ? WHERE id = ?", (position, song_id))
        except sqlite3.Error as e:
            msg = f"Moving song {song_id} to position {position} rejected: {e}"
            raise PositionStoreError(msg) from e

    def _shift_positions_sync(self, setlist_id: str, lower: int, upper: int | None, delta: int) -> int:
        start = time.perf_counter()
        # Upward shifts start from the top, downward shifts from the bottom
        order = "DESC" if delta > 0 else "ASC"
        try:
            if upper is None:
                rows = self._conn.execute(
                    f"SELECT id, position FROM setlist_songs WHERE setlist_id = ? AND position >= ? ORDER BY position {order}",  # noqa: S608
                    (setlist_id, lower),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    f"SELECT id, position FROM setlist_songs WHERE setlist_id = ? AND position BETWEEN ? AND ? ORDER BY position {order}",  # noqa: S608
                    (setlist_id, lower, upper),
                ).fetchall()
            updates = [(int(row["position"]) + delta, str(row["id"])) for row in rows]
            self._conn.executemany("UPDATE setlist_songs SET position = ? WHERE id = ?", updates)
        except sqlite3.Error as e:
            msg = f"Shifting positions {lower}..{upper or 'end'} by {delta} in setlist {setlist_id} rejected: {e}"
            raise PositionStoreError(msg) from e

        _log_slow_db_op("shift_positions", start=start, setlist_id=setlist_id, rows=len(updates))
        return len(updates)


class SqliteSetlistStore:
    """SQLite persistence for setlist rows with per-call connections."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        await asyncio.to_thread(self._initialize_sync)

    def _connect(self) -> sqlite3.Connection:
        """Create a fresh connection in autocommit mode; transactions are explicit."""
        conn = sqlite3.connect(self._db_path, timeout=30, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _initialize_sync(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
        finally:
            conn.close()
        logger.info("Setlist store ready at %s", self._db_path)

    @asynccontextmanager
    async def transaction(self, setlist_id: str) -> AsyncIterator[SqlitePositionTransaction]:
        """Open a write transaction; commit on success, roll back on any error."""
        conn = await asyncio.to_thread(self._begin_sync)
        try:
            yield SqlitePositionTransaction(conn, setlist_id)
        except BaseException:
            await asyncio.to_thread(conn.rollback)
            raise
        else:
            try:
                await asyncio.to_thread(conn.commit)
            except sqlite3.Error as e:
                msg = f"Commit for setlist {setlist_id} failed: {e}"
                raise PositionStoreError(msg) from e
        finally:
            await asyncio.to_thread(conn.close)

    def _begin_sync(self) -> sqlite3.Connection:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            conn.close()
            msg = f"Could not start setlist transaction: {e}"
            raise PositionStoreError(msg) from e
        return conn

    async def find_setlist_id(self, song_id: str) -> str | None:
        return await asyncio.to_thread(self._find_setlist_id_sync, song_id)

    def _find_setlist_id_sync(self, song_id: str) -> str | None:
        conn = self._connect()
        try:
            row = conn.execute("SELECT setlist_id FROM setlist_songs WHERE id = ?", (song_id,)).fetchone()
        except sqlite3.Error as e:
            msg = f"Lookup of setlist for song {song_id} failed: {e}"
            raise PositionStoreError(msg) from e
        finally:
            conn.close()
        return str(row["setlist_id"]) if row is not None else None
