"""Tests for SqliteSetlistStore and the position manager on a real database."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import allure
import pytest
import pytest_asyncio

from core.exceptions import PositionStoreError
from services.setlist.position_manager import SetlistPositionManager
from services.setlist.sqlite_store import SqliteSetlistStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

SETLIST = "gig-1"


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> AsyncIterator[SqliteSetlistStore]:
    """Initialized store in a temporary database."""
    store = SqliteSetlistStore(tmp_path / "db" / "setlists.db")
    await store.initialize()
    yield store


async def _seed(store: SqliteSetlistStore, content_ids: list[str], setlist_id: str = SETLIST) -> list[str]:
    ids = []
    async with store.transaction(setlist_id) as tx:
        for position, content_id in enumerate(content_ids, start=1):
            song = await tx.insert_song(setlist_id, content_id, position)
            ids.append(song.id)
    return ids


async def _ordered(store: SqliteSetlistStore, setlist_id: str = SETLIST) -> list[tuple[int, str]]:
    async with store.transaction(setlist_id) as tx:
        return [(song.position, song.content_id) for song in await tx.list_songs(setlist_id)]


def _drop_table(store: SqliteSetlistStore) -> None:
    conn = sqlite3.connect(store.db_path)
    try:
        conn.execute("DROP TABLE setlist_songs")
        conn.commit()
    finally:
        conn.close()


@allure.epic("Stage Cache")
@allure.feature("Setlist Store")
@pytest.mark.unit
class TestSqliteStore:
    """Tests for the raw store operations."""

    @pytest.mark.asyncio
    async def test_initialize_creates_schema(self, sqlite_store: SqliteSetlistStore) -> None:
        """initialize creates the database file and table."""
        assert sqlite_store.db_path.exists()
        conn = sqlite3.connect(sqlite_store.db_path)
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        finally:
            conn.close()
        assert "setlist_songs" in tables

    @pytest.mark.asyncio
    async def test_unique_position_enforced(self, sqlite_store: SqliteSetlistStore) -> None:
        """Two rows cannot share a position in one setlist."""
        await _seed(sqlite_store, ["a"])

        with pytest.raises(PositionStoreError):
            async with sqlite_store.transaction(SETLIST) as tx:
                await tx.insert_song(SETLIST, "b", 1)

        assert await _ordered(sqlite_store) == [(1, "a")]

    @pytest.mark.asyncio
    async def test_error_rolls_back_whole_transaction(self, sqlite_store: SqliteSetlistStore) -> None:
        """Writes before a failure inside the block are undone."""
        await _seed(sqlite_store, ["a"])

        with pytest.raises(RuntimeError):
            async with sqlite_store.transaction(SETLIST) as tx:
                await tx.insert_song(SETLIST, "b", 2)
                raise RuntimeError("boom")

        assert await _ordered(sqlite_store) == [(1, "a")]

    @pytest.mark.asyncio
    async def test_shift_positions_upward(self, sqlite_store: SqliteSetlistStore) -> None:
        """An upward shift onto occupied slots succeeds row by row."""
        await _seed(sqlite_store, ["a", "b", "c"])

        async with sqlite_store.transaction(SETLIST) as tx:
            moved = await tx.shift_positions(SETLIST, 1, None, 1)

        assert moved == 3
        assert await _ordered(sqlite_store) == [(2, "a"), (3, "b"), (4, "c")]

    @pytest.mark.asyncio
    async def test_shift_positions_bounded_downward(self, sqlite_store: SqliteSetlistStore) -> None:
        """A bounded downward shift moves only the rows in range."""
        await _seed(sqlite_store, ["a", "b", "c", "d"])

        async with sqlite_store.transaction(SETLIST) as tx:
            await tx.delete_song((await tx.list_songs(SETLIST))[0].id)
            moved = await tx.shift_positions(SETLIST, 2, 3, -1)

        assert moved == 2
        assert await _ordered(sqlite_store) == [(1, "b"), (2, "c"), (4, "d")]

    @pytest.mark.asyncio
    async def test_find_setlist_id(self, sqlite_store: SqliteSetlistStore) -> None:
        """find_setlist_id maps a song to its setlist."""
        ids = await _seed(sqlite_store, ["a"], setlist_id="other")

        assert await sqlite_store.find_setlist_id(ids[0]) == "other"
        assert await sqlite_store.find_setlist_id("missing") is None

    @pytest.mark.asyncio
    async def test_read_failures_raise_store_error(self, sqlite_store: SqliteSetlistStore) -> None:
        """Failed reads surface as PositionStoreError, not raw sqlite errors."""
        _drop_table(sqlite_store)

        with pytest.raises(PositionStoreError, match="Lookup of setlist"):
            await sqlite_store.find_setlist_id("s1")
        with pytest.raises(PositionStoreError, match="Listing setlist"):
            async with sqlite_store.transaction(SETLIST) as tx:
                await tx.list_songs(SETLIST)
        with pytest.raises(PositionStoreError, match="Lookup of song"):
            async with sqlite_store.transaction(SETLIST) as tx:
                await tx.get_song("s1")


@allure.epic("Stage Cache")
@allure.feature("Setlist Store")
@pytest.mark.unit
class TestManagerOnSqlite:
    """The position manager against the UNIQUE-constrained table."""

    @pytest.mark.asyncio
    async def test_insert_and_remove(self, sqlite_store: SqliteSetlistStore) -> None:
        """Insert at 2 then remove it again restores the original order."""
        await _seed(sqlite_store, ["a", "b", "c"])
        manager = SetlistPositionManager(sqlite_store)

        inserted = await manager.insert_song(SETLIST, "new", 2)
        assert inserted.ok
        assert await _ordered(sqlite_store) == [(1, "a"), (2, "new"), (3, "b"), (4, "c")]

        assert inserted.song is not None
        removed = await manager.remove_song(inserted.song.id)
        assert removed.ok
        assert await _ordered(sqlite_store) == [(1, "a"), (2, "b"), (3, "c")]

    @pytest.mark.asyncio
    async def test_moves_both_directions(self, sqlite_store: SqliteSetlistStore) -> None:
        """Moves up and down keep positions unique and dense."""
        ids = await _seed(sqlite_store, ["a", "b", "c", "d", "e"])
        manager = SetlistPositionManager(sqlite_store)

        assert (await manager.move_song(ids[4], 1)).ok
        assert [content for _, content in await _ordered(sqlite_store)] == ["e", "a", "b", "c", "d"]

        assert (await manager.move_song(ids[4], 4)).ok
        assert await _ordered(sqlite_store) == [(1, "a"), (2, "b"), (3, "c"), (4, "e"), (5, "d")]

    @pytest.mark.asyncio
    async def test_invalid_move_leaves_database_untouched(self, sqlite_store: SqliteSetlistStore) -> None:
        """A rejected move rolls back the parked row."""
        ids = await _seed(sqlite_store, ["a", "b"])
        manager = SetlistPositionManager(sqlite_store)

        result = await manager.move_song(ids[0], 3)

        assert not result.ok
        assert await _ordered(sqlite_store) == [(1, "a"), (2, "b")]

    @pytest.mark.asyncio
    async def test_renumber(self, sqlite_store: SqliteSetlistStore) -> None:
        """renumber closes gaps written directly into the table."""
        async with sqlite_store.transaction(SETLIST) as tx:
            for position, content_id in ((2, "a"), (5, "b"), (7, "c")):
                await tx.insert_song(SETLIST, content_id, position)

        result = await SetlistPositionManager(sqlite_store).renumber(SETLIST)

        assert result.ok
        assert await _ordered(sqlite_store) == [(1, "a"), (2, "b"), (3, "c")]

    @pytest.mark.asyncio
    async def test_read_failure_is_failed_result(self, sqlite_store: SqliteSetlistStore) -> None:
        """A broken table yields failed results instead of exceptions."""
        _drop_table(sqlite_store)
        manager = SetlistPositionManager(sqlite_store)

        renumbered = await manager.renumber(SETLIST)
        inserted = await manager.insert_song(SETLIST, "a", 1)
        moved = await manager.move_song("s1", 1)

        assert not renumbered.ok
        assert renumbered.error is not None
        assert "Listing setlist" in renumbered.error
        assert not inserted.ok
        assert not moved.ok
