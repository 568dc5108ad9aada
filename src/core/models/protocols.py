"""Service Protocol Definitions.

This module defines the narrow collaborator interfaces the cache, the
performance view and the setlist reordering depend on. Concrete
implementations live in services/; tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from core.models.content_models import SetlistSong, SongRef


# noinspection PyMissingOrEmptyDocstring
@runtime_checkable
class ContentServiceProtocol(Protocol):
    """Remote source of content files and setlist song lists."""

    async def fetch_content_bytes(self, content_id: str, remote_url: str | None = None) -> tuple[bytes, str]:
        """Download the file backing a content item.

        Args:
            content_id: Content item identifier
            remote_url: Known file URL; looked up by id when omitted

        Returns:
            Tuple of raw bytes and mime type

        Raises:
            ContentFetchError: When the item has no file or the download fails

        """
        ...

    async def list_songs(self, setlist_id: str) -> list[SongRef]:
        """Return the songs of a setlist in position order.

        Raises:
            ContentFetchError: When the setlist cannot be loaded

        """
        ...


# noinspection PyMissingOrEmptyDocstring
class PositionTransaction(Protocol):
    """Operations available inside one position store transaction.

    Every write is applied immediately inside the transaction; a failed write
    raises PositionStoreError and the whole transaction is rolled back.
    """

    async def list_songs(self, setlist_id: str) -> list[SetlistSong]:
        """Rows of a setlist ordered by position."""
        ...

    async def get_song(self, song_id: str) -> SetlistSong | None:
        """Row by id, or None when unknown."""
        ...

    async def insert_song(self, setlist_id: str, content_id: str, position: int, notes: str = "") -> SetlistSong:
        """Insert a row at ``position`` (must be free)."""
        ...

    async def delete_song(self, song_id: str) -> None:
        """Delete a row by id."""
        ...

    async def set_position(self, song_id: str, position: int) -> None:
        """Set one row's position (target must be free)."""
        ...

    async def shift_positions(self, setlist_id: str, lower: int, upper: int | None, delta: int) -> int:
        """Add ``delta`` to every position in ``[lower, upper]`` (open-ended when upper is None).

        Returns:
            Number of rows shifted

        """
        ...


# noinspection PyMissingOrEmptyDocstring
@runtime_checkable
class PositionStoreProtocol(Protocol):
    """Transactional persistence for setlist rows."""

    def transaction(self, setlist_id: str) -> AbstractAsyncContextManager[PositionTransaction]:
        """Open a transaction scoped to one setlist; commit on exit, roll back on error."""
        ...

    async def find_setlist_id(self, song_id: str) -> str | None:
        """Setlist owning a row, or None when the row is unknown."""
        ...
