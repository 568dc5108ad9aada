"""HTTP client for the content management service.

Endpoints used:

- ``GET /api/setlists/{id}``: setlist with ``setlist_songs[].content`` records
- ``GET /api/content/{id}``: a single content record (``file_url``, ``content_data``)
- ``GET /api/proxy?url=...``: file bytes proxied from remote storage
"""

from __future__ import annotations

import json
import logging
import ssl
import time
from typing import TYPE_CHECKING, Any, Self

import aiohttp
import certifi

from core.exceptions import ContentFetchError
from core.models.content_models import DEFAULT_MIME_TYPE, SongRef

if TYPE_CHECKING:
    from core.models.app_config import ContentServiceConfig


class HttpContentService:
    """aiohttp implementation of ContentServiceProtocol."""

    def __init__(
        self,
        config: ContentServiceConfig,
        console_logger: logging.Logger | None = None,
        error_logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: ``content_service`` configuration section
            console_logger: Logger for request tracing
            error_logger: Logger for failed requests

        """
        self.config = config
        self.base_url = config.base_url
        self.console_logger = console_logger or logging.getLogger(__name__)
        self.error_logger = error_logger or self.console_logger

        # Session created lazily so the client can be built outside the event loop
        self.session: aiohttp.ClientSession | None = None
        self.request_count = 0

    def _create_client_session(self) -> aiohttp.ClientSession:
        """Create a ClientSession with certifi-backed TLS and the configured timeout."""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(limit_per_host=10, ssl=ssl_context)
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return aiohttp.ClientSession(timeout=timeout, connector=connector, headers=headers)

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = self._create_client_session()
        return self.session

    async def _get(self, path: str, params: dict[str, str] | None = None, *, content_id: str | None = None) -> tuple[bytes, str]:
        """GET a service path and return the body and its mime type.

        Raises:
            ContentFetchError: On non-2xx status, timeout or connection failure

        """
        session = self._ensure_session()
        url = f"{self.base_url}{path}"
        start = time.monotonic()
        self.request_count += 1
        try:
            async with session.get(url, params=params) as response:
                body = await response.read()
                elapsed = time.monotonic() - start
                self.console_logger.debug("GET %s - Status: %d (%.3fs)", url, response.status, elapsed)
                if not response.ok:
                    snippet = body[:200].decode("utf-8", errors="replace")
                    msg = f"GET {path} failed with status {response.status}: {snippet}"
                    raise ContentFetchError(msg, content_id=content_id, status=response.status)
                return body, response.content_type or DEFAULT_MIME_TYPE
        except (TimeoutError, aiohttp.ClientError) as e:
            msg = f"GET {path} failed: {type(e).__name__}: {e}"
            raise ContentFetchError(msg, content_id=content_id) from e

    async def _get_json(self, path: str, *, content_id: str | None = None) -> dict[str, Any]:
        body, _ = await self._get(path, content_id=content_id)
        try:
            payload = json.loads(body)
        except ValueError as e:
            msg = f"GET {path} returned invalid JSON: {e}"
            raise ContentFetchError(msg, content_id=content_id) from e
        if not isinstance(payload, dict):
            msg = f"GET {path} returned {type(payload).__name__}, expected an object"
            raise ContentFetchError(msg, content_id=content_id)
        return payload

    async def get_content(self, content_id: str) -> SongRef:
        """Fetch one content record."""
        payload = await self._get_json(f"/api/content/{content_id}", content_id=content_id)
        return SongRef.from_payload(payload)

    async def fetch_content_bytes(self, content_id: str, remote_url: str | None = None) -> tuple[bytes, str]:
        """Download the file backing a content item through the proxy endpoint."""
        if not remote_url:
            remote_url = (await self.get_content(content_id)).remote_url
        if not remote_url:
            msg = f"Content {content_id} has no file to download"
            raise ContentFetchError(msg, content_id=content_id)

        data, mime_type = await self._get("/api/proxy", {"url": remote_url}, content_id=content_id)
        self.console_logger.debug("Fetched %d bytes for %s (%s)", len(data), content_id, mime_type)
        return data, mime_type

    async def list_songs(self, setlist_id: str) -> list[SongRef]:
        """Songs of a setlist in position order."""
        payload = await self._get_json(f"/api/setlists/{setlist_id}")
        rows = payload.get("setlist_songs") or []
        ordered = sorted((row for row in rows if isinstance(row, dict)), key=lambda row: row.get("position") or 0)

        songs: list[SongRef] = []
        for row in ordered:
            content = row.get("content")
            if not isinstance(content, dict) or "id" not in content:
                self.error_logger.warning("Setlist %s row %s has no content record; skipped", setlist_id, row.get("id"))
                continue
            songs.append(SongRef.from_payload(content))
        return songs

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.console_logger.debug("Content service session closed after %d requests", self.request_count)

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        return self

    async def __aexit__(self, _exc_type: type[BaseException] | None, _exc: BaseException | None, _tb: object) -> None:
        """Async context manager exit."""
        await self.close()
