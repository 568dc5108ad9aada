"""Shared test factories for Stage Cache.

Provides reusable builders for songs and configuration that any test
module can import.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from core.models.app_config import AppConfig, CachingConfig
from core.models.content_models import SongRef

if TYPE_CHECKING:
    from pathlib import Path

PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24


def make_song(song_id: str = "c1", **overrides: Any) -> SongRef:
    """Build a SongRef; sheet music with a remote PDF by default."""
    data: dict[str, Any] = {
        "id": song_id,
        "title": f"Song {song_id}",
        "content_type": "Sheet Music",
        "remote_url": f"https://files.example.com/{song_id}.pdf",
    }
    data.update(overrides)
    return SongRef(**data)


def make_songs(count: int, **overrides: Any) -> list[SongRef]:
    """Build ``count`` songs with ids c1..cN."""
    return [make_song(f"c{i}", **overrides) for i in range(1, count + 1)]


def create_caching_config(tmp_path: Path, **overrides: Any) -> CachingConfig:
    """CachingConfig rooted under ``tmp_path``."""
    data: dict[str, Any] = {
        "cache_dir": str(tmp_path / "cache"),
        "scratch_dir": str(tmp_path / "handles"),
    }
    data.update(overrides)
    return CachingConfig(**data)


def create_test_app_config(tmp_path: Path, **overrides: Any) -> AppConfig:
    """AppConfig with every path under ``tmp_path``."""
    data: dict[str, Any] = {
        "logs_base_dir": str(tmp_path / "logs"),
        "caching": create_caching_config(tmp_path).model_dump(),
        "setlists": {"database_path": str(tmp_path / "setlists.db")},
    }
    data.update(overrides)
    return AppConfig.model_validate(data)
