"""Pydantic models for content items, resolved URLs, render decisions and setlist rows."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Position a moved row occupies while the rest of its setlist is shifted.
PARKED_POSITION = -1

# Mime type used when a download reports none.
DEFAULT_MIME_TYPE = "application/octet-stream"


class ContentType(StrEnum):
    """Kinds of musical material a content item can hold."""

    LYRICS = "Lyrics"
    CHORD_CHART = "Chord Chart"
    GUITAR_TAB = "Guitar Tab"
    SHEET_MUSIC = "Sheet Music"

    @classmethod
    def normalize(cls, value: str | None) -> ContentType | None:
        """Map a display name, short key or id onto a ContentType.

        Accepts "Sheet Music", "sheet", "sheet_music", "Chord Chart", "chords",
        "tablature" and similar spellings. Returns None for unknown values.
        """
        if not value:
            return None
        token = re.sub(r"[\s_-]+", "", value).lower()
        return _CONTENT_TYPE_ALIASES.get(token)

    @property
    def is_sheet_like(self) -> bool:
        """True for types whose content is a rendered file rather than text."""
        return self is ContentType.SHEET_MUSIC


_CONTENT_TYPE_ALIASES: dict[str, ContentType] = {
    "lyrics": ContentType.LYRICS,
    "chordchart": ContentType.CHORD_CHART,
    "chords": ContentType.CHORD_CHART,
    "guitartab": ContentType.GUITAR_TAB,
    "tablature": ContentType.GUITAR_TAB,
    "tab": ContentType.GUITAR_TAB,
    "sheetmusic": ContentType.SHEET_MUSIC,
    "sheet": ContentType.SHEET_MUSIC,
}


class SongRef(BaseModel):
    """Immutable view of a content item as consumed by caching and navigation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str = ""
    artist: str | None = None
    key: str | None = None
    bpm: float | None = None
    content_type: str | None = None
    remote_url: str | None = None
    embedded_text: str | None = None
    embedded_file: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        """Content ids arrive as ints from some backends."""
        return str(value) if isinstance(value, int) else value

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SongRef:
        """Build a SongRef from a content service record.

        Args:
            payload: Content record with ``file_url`` and ``content_data`` keys

        Returns:
            SongRef with remote and embedded references mapped
        """
        content_data = payload.get("content_data") or {}
        if not isinstance(content_data, dict):
            content_data = {}
        return cls(
            id=payload["id"],
            title=payload.get("title") or "",
            artist=payload.get("artist"),
            key=payload.get("key"),
            bpm=payload.get("bpm"),
            content_type=payload.get("content_type"),
            remote_url=payload.get("file_url") or None,
            embedded_text=content_data.get("lyrics") or None,
            embedded_file=content_data.get("file") or None,
        )

    @property
    def normalized_type(self) -> ContentType | None:
        """Declared content type mapped onto ContentType."""
        return ContentType.normalize(self.content_type)

    @property
    def fallback_url(self) -> str | None:
        """URL to use when the item is not in the local cache."""
        return self.remote_url or self.embedded_file or None


class ResolvedContent(BaseModel):
    """Displayable URL and mime type per song, in input order."""

    model_config = ConfigDict(frozen=True)

    urls: tuple[str | None, ...] = ()
    mime_types: tuple[str | None, ...] = ()
    is_loading: bool = False

    def url_at(self, index: int) -> str | None:
        """URL for the song at index, None when out of range."""
        return self.urls[index] if 0 <= index < len(self.urls) else None

    def mime_type_at(self, index: int) -> str | None:
        """Mime type for the song at index, None when unknown or out of range."""
        return self.mime_types[index] if 0 <= index < len(self.mime_types) else None


class RenderKind(StrEnum):
    """How the UI should present a song."""

    DOCUMENT = "document"
    IMAGE = "image"
    TEXT = "text"
    NO_CONTENT = "no_content"
    UNSUPPORTED = "unsupported"


class RenderDecision(BaseModel):
    """Outcome of classifying a song for display."""

    model_config = ConfigDict(frozen=True)

    kind: RenderKind
    url: str | None = None
    mime_type: str | None = None
    text: str | None = None
    content_type: str | None = None

    @property
    def has_content(self) -> bool:
        """True when the UI has something to draw."""
        return self.kind in (RenderKind.DOCUMENT, RenderKind.IMAGE, RenderKind.TEXT)


class SetlistSong(BaseModel):
    """A song row inside a setlist."""

    model_config = ConfigDict(frozen=True)

    id: str
    setlist_id: str
    content_id: str
    position: int
    notes: str = ""

    @field_validator("position")
    @classmethod
    def _valid_position(cls, value: int) -> int:
        """Positions start at 1; only a parked row may sit below that."""
        if value < 1 and value != PARKED_POSITION:
            msg = f"position must be >= 1, got {value}"
            raise ValueError(msg)
        return value


class ReorderOperation(StrEnum):
    """Setlist mutations handled by the position manager."""

    INSERT = "insert"
    REMOVE = "remove"
    MOVE = "move"
    RENUMBER = "renumber"


class ReorderResult(BaseModel):
    """Outcome of a setlist position mutation."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    operation: ReorderOperation
    setlist_id: str | None = None
    song: SetlistSong | None = None
    error: str | None = None

    @classmethod
    def success(cls, operation: ReorderOperation, setlist_id: str, song: SetlistSong | None = None) -> ReorderResult:
        """Build a successful result."""
        return cls(ok=True, operation=operation, setlist_id=setlist_id, song=song)

    @classmethod
    def failure(cls, operation: ReorderOperation, error: str, setlist_id: str | None = None) -> ReorderResult:
        """Build a failed result."""
        return cls(ok=False, operation=operation, setlist_id=setlist_id, error=error)
