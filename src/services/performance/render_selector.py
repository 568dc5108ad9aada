"""Decides how a song is presented in performance view.

Sheet-like items are shown as a document (PDF) or an image depending on
their resolved URL and mime type. Everything else is shown as text when
embedded lyrics or chords exist. The selector is pure: no I/O, no state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from core.models.content_models import RenderDecision, RenderKind, ResolvedContent, SongRef

if TYPE_CHECKING:
    from services.performance.navigator import NavigationState

PDF_MIME_TYPE = "application/pdf"
IMAGE_EXTENSIONS: frozenset[str] = frozenset({"png", "jpg", "jpeg", "gif", "webp", "svg"})


def _extension(url: str) -> str:
    """Lowercased file extension of a URL path, ignoring query and fragment."""
    path = urlsplit(url).path if "://" in url else url.split("?", 1)[0].split("#", 1)[0]
    name = path.rsplit("/", 1)[-1]
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def is_pdf(url: str | None, mime_type: str | None = None) -> bool:
    """Whether a URL/mime pair denotes a PDF. A present mime type is authoritative."""
    if mime_type:
        return mime_type.lower().split(";", 1)[0].strip() == PDF_MIME_TYPE
    if not url:
        return False
    if url.startswith("data:"):
        return url.lower().startswith(f"data:{PDF_MIME_TYPE}")
    if url.startswith("blob:"):
        return False
    return _extension(url) == "pdf"


def is_image(url: str | None, mime_type: str | None = None) -> bool:
    """Whether a URL/mime pair denotes an image. A present mime type is authoritative."""
    if mime_type:
        return mime_type.lower().startswith("image/")
    if not url:
        return False
    if url.startswith("data:"):
        return url.lower().startswith("data:image/")
    if url.startswith("blob:"):
        return False
    return _extension(url) in IMAGE_EXTENSIONS


class ContentRenderSelector:
    """Maps a song plus its resolved URL onto a RenderDecision."""

    @staticmethod
    def select(
        item: SongRef,
        resolved_url: str | None,
        mime_type: str | None = None,
        embedded_text: str | None = None,
    ) -> RenderDecision:
        """Classify one song for display.

        Args:
            item: The song being shown
            resolved_url: URL from the content session (cached handle or fallback)
            mime_type: Mime type of a cached handle; None for fallbacks
            embedded_text: Lyrics/chords text; defaults to the song's own

        Returns:
            The render decision
        """
        text = embedded_text if embedded_text is not None else item.embedded_text
        content_type = item.normalized_type

        if content_type is not None and content_type.is_sheet_like:
            if not resolved_url:
                return RenderDecision(kind=RenderKind.NO_CONTENT, content_type=content_type.value)
            if is_pdf(resolved_url, mime_type):
                kind = RenderKind.DOCUMENT
            elif is_image(resolved_url, mime_type):
                kind = RenderKind.IMAGE
            else:
                kind = RenderKind.UNSUPPORTED
            return RenderDecision(kind=kind, url=resolved_url, mime_type=mime_type, content_type=content_type.value)

        label = content_type.value if content_type is not None else item.content_type
        if text and text.strip():
            return RenderDecision(kind=RenderKind.TEXT, text=text, content_type=label)
        return RenderDecision(kind=RenderKind.NO_CONTENT, content_type=label)

    @classmethod
    def select_for(cls, state: NavigationState, resolved: ResolvedContent) -> RenderDecision | None:
        """Decision for the navigator's current song, or None when the list is empty."""
        if state.current_index is None or state.current_song is None:
            return None
        index = state.current_index
        return cls.select(state.current_song, resolved.url_at(index), resolved.mime_type_at(index))

