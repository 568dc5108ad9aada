"""Ownership table for transient displayable handles.

A handle is a scratch file holding a cached blob, exposed to the UI as a
``file://`` URL. Handles are reference counted per content id: every
``acquire`` is one lease and must be matched by exactly one ``release``.
The scratch file is deleted when the last lease goes away.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path


@dataclass
class ObjectHandle:
    """A materialized blob the UI can open by URL."""

    content_id: str
    path: Path
    url: str
    mime_type: str
    refcount: int = 1


class HandleRegistry:
    """Creates, shares and releases scratch-file handles."""

    def __init__(self, scratch_dir: str | Path, logger: logging.Logger | None = None) -> None:
        """Initialize the registry.

        Args:
            scratch_dir: Directory holding materialized handles
            logger: Optional logger instance

        """
        self.scratch_dir = Path(scratch_dir)
        self.logger = logger or logging.getLogger(__name__)
        self._handles: dict[str, ObjectHandle] = {}
        self.created = 0
        self.released = 0

    async def acquire(self, content_id: str, data: bytes, mime_type: str) -> ObjectHandle:
        """Take a lease on a handle for ``content_id``, creating it if needed.

        Raises:
            OSError: When the scratch file cannot be written

        """
        existing = self._handles.get(content_id)
        if existing is not None:
            existing.refcount += 1
            return existing

        suffix = mimetypes.guess_extension(mime_type) or ".bin"
        path = (self.scratch_dir / f"{uuid.uuid4().hex}{suffix}").resolve()
        await asyncio.to_thread(self._write, path, data)

        # Another lease may have been created while the file was written
        existing = self._handles.get(content_id)
        if existing is not None:
            existing.refcount += 1
            self._unlink(path)
            return existing

        handle = ObjectHandle(content_id=content_id, path=path, url=path.as_uri(), mime_type=mime_type)
        self._handles[content_id] = handle
        self.created += 1
        self.logger.debug("Created handle for %s at %s", content_id, path.name)
        return handle

    def release(self, content_id: str) -> bool:
        """Drop one lease on ``content_id``; never raises.

        Returns:
            True when a lease was dropped, False when none was held

        """
        handle = self._handles.get(content_id)
        if handle is None:
            self.logger.debug("Release of unknown handle %s ignored", content_id)
            return False

        handle.refcount -= 1
        if handle.refcount > 0:
            return True

        del self._handles[content_id]
        self._unlink(handle.path)
        self.released += 1
        self.logger.debug("Released handle for %s", content_id)
        return True

    def release_all(self) -> int:
        """Revoke every handle regardless of outstanding leases.

        Returns:
            Number of handles revoked

        """
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            self._unlink(handle.path)
        self.released += len(handles)
        return len(handles)

    @property
    def active_handles(self) -> int:
        """Number of live handles."""
        return len(self._handles)

    def lease_count(self, content_id: str) -> int:
        """Outstanding leases on ``content_id``."""
        handle = self._handles.get(content_id)
        return handle.refcount if handle is not None else 0

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.debug("Failed to delete handle file %s: %s", path, e)
