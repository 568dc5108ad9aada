"""Tests for ContentRenderSelector and the URL classifiers."""

from __future__ import annotations

import allure
import pytest

from core.models.content_models import RenderKind, ResolvedContent
from services.performance.navigator import PerformanceNavigator
from services.performance.render_selector import ContentRenderSelector, is_image, is_pdf
from tests.factories import make_song, make_songs


@allure.epic("Stage Cache")
@allure.feature("Render Selection")
@pytest.mark.unit
class TestClassifiers:
    """Tests for is_pdf and is_image."""

    @pytest.mark.parametrize(
        ("url", "mime", "expected"),
        [
            ("https://x.test/a.pdf", None, True),
            ("https://x.test/a.PDF?token=1", None, True),
            ("https://x.test/a.pdf#page=2", None, True),
            ("data:application/pdf;base64,JVBE", None, True),
            ("blob:https://x.test/1234", None, False),
            ("file:///tmp/abc.bin", "application/pdf", True),
            ("https://x.test/a.pdf", "image/png", False),
            ("https://x.test/a.png", None, False),
            (None, None, False),
        ],
    )
    def test_is_pdf(self, url: str | None, mime: str | None, expected: bool) -> None:
        """PDF detection honours mime type first, then data prefix, then extension."""
        assert is_pdf(url, mime) is expected

    @pytest.mark.parametrize(
        ("url", "mime", "expected"),
        [
            ("https://x.test/a.png", None, True),
            ("https://x.test/a.JPEG", None, True),
            ("https://x.test/a.webp?v=2", None, True),
            ("data:image/gif;base64,R0lG", None, True),
            ("blob:https://x.test/1234", "image/jpeg", True),
            ("https://x.test/a.png", "application/pdf", False),
            ("https://x.test/a", None, False),
            ("", None, False),
        ],
    )
    def test_is_image(self, url: str | None, mime: str | None, expected: bool) -> None:
        """Image detection honours mime type first, then data prefix, then extension."""
        assert is_image(url, mime) is expected


@allure.epic("Stage Cache")
@allure.feature("Render Selection")
@pytest.mark.unit
class TestSelect:
    """Tests for ContentRenderSelector.select."""

    def test_sheet_music_pdf_is_document(self) -> None:
        """Sheet music with a PDF URL renders as a document."""
        decision = ContentRenderSelector.select(make_song(), "https://files.example.com/c1.pdf")

        assert decision.kind is RenderKind.DOCUMENT
        assert decision.url == "https://files.example.com/c1.pdf"
        assert decision.has_content

    def test_cached_handle_uses_mime_type(self) -> None:
        """A local handle without a telling extension is classified by mime type."""
        decision = ContentRenderSelector.select(make_song(), "file:///tmp/handles/9f2c.bin", "image/png")

        assert decision.kind is RenderKind.IMAGE
        assert decision.mime_type == "image/png"

    def test_sheet_music_without_url(self) -> None:
        """Sheet music with nothing resolved has no content."""
        decision = ContentRenderSelector.select(make_song(remote_url=None), None)

        assert decision.kind is RenderKind.NO_CONTENT
        assert decision.content_type == "Sheet Music"
        assert not decision.has_content

    def test_sheet_music_unknown_format(self) -> None:
        """A URL that is neither PDF nor image is unsupported."""
        decision = ContentRenderSelector.select(make_song(), "https://files.example.com/c1.docx")

        assert decision.kind is RenderKind.UNSUPPORTED

    @pytest.mark.parametrize("content_type", ["Lyrics", "Chord Chart", "Guitar Tab", "chords"])
    def test_text_types_render_text(self, content_type: str) -> None:
        """Text content types render their embedded text, ignoring the URL."""
        song = make_song(content_type=content_type, embedded_text="[G]Amazing grace")

        decision = ContentRenderSelector.select(song, "https://files.example.com/c1.pdf")

        assert decision.kind is RenderKind.TEXT
        assert decision.text == "[G]Amazing grace"

    def test_blank_text_has_no_content(self) -> None:
        """Whitespace-only text counts as missing."""
        song = make_song(content_type="Lyrics", embedded_text="  \n ")

        assert ContentRenderSelector.select(song, None).kind is RenderKind.NO_CONTENT

    def test_explicit_text_overrides_song(self) -> None:
        """Text passed by the caller wins over the song's embedded text."""
        song = make_song(content_type="Lyrics", embedded_text="old")

        decision = ContentRenderSelector.select(song, None, embedded_text="new")

        assert decision.text == "new"

    def test_unknown_type_keeps_label(self) -> None:
        """Unrecognized content types fall through to text handling with their raw label."""
        song = make_song(content_type="Setlist Notes", embedded_text="Capo 2")

        decision = ContentRenderSelector.select(song, None)

        assert decision.kind is RenderKind.TEXT
        assert decision.content_type == "Setlist Notes"

    def test_select_for_navigation_state(self) -> None:
        """select_for classifies the navigator's current song."""
        songs = make_songs(2)
        navigator = PerformanceNavigator(songs, starting_index=1)
        resolved = ResolvedContent(urls=(None, "file:///tmp/h/2.bin"), mime_types=(None, "application/pdf"))

        decision = ContentRenderSelector.select_for(navigator.state, resolved)

        assert decision is not None
        assert decision.kind is RenderKind.DOCUMENT
        assert decision.url == "file:///tmp/h/2.bin"

    def test_select_for_empty_list(self) -> None:
        """No songs means no decision."""
        assert ContentRenderSelector.select_for(PerformanceNavigator([]).state, ResolvedContent()) is None
