"""Data models and protocols."""

from core.models.cache_types import CacheEntry, CacheMetrics, CachePriority, WarmingReport
from core.models.content_models import (
    ContentType,
    RenderDecision,
    RenderKind,
    ReorderOperation,
    ReorderResult,
    ResolvedContent,
    SetlistSong,
    SongRef,
)
from core.models.protocols import ContentServiceProtocol, PositionStoreProtocol, PositionTransaction

__all__ = [
    "CacheEntry",
    "CacheMetrics",
    "CachePriority",
    "ContentServiceProtocol",
    "ContentType",
    "PositionStoreProtocol",
    "PositionTransaction",
    "RenderDecision",
    "RenderKind",
    "ReorderOperation",
    "ReorderResult",
    "ResolvedContent",
    "SetlistSong",
    "SongRef",
    "WarmingReport",
]
