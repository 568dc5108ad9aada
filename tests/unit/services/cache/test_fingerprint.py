"""Tests for song list fingerprinting."""

from __future__ import annotations

import re

import pytest
from hypothesis import given, settings
import hypothesis.strategies as st

from services.cache.fingerprint_generator import FingerprintGenerator
from tests.factories import make_song, make_songs

HEX_64_PATTERN = re.compile(r"^[0-9a-f]{64}$")


@pytest.mark.unit
class TestFingerprintGenerator:
    """Tests for FingerprintGenerator."""

    def test_same_list_same_fingerprint(self) -> None:
        """Equal lists hash equally."""
        generator = FingerprintGenerator()
        assert generator.generate_song_list_fingerprint(make_songs(3)) == generator.generate_song_list_fingerprint(make_songs(3))

    def test_display_fields_ignored(self) -> None:
        """Title and key changes do not change what is fetched."""
        generator = FingerprintGenerator()
        before = generator.generate_song_list_fingerprint([make_song("a", title="One", key="C")])
        after = generator.generate_song_list_fingerprint([make_song("a", title="Uno", key="D")])

        assert before == after

    def test_order_and_urls_matter(self) -> None:
        """Reordering or changing a URL produces a new fingerprint."""
        generator = FingerprintGenerator()
        songs = make_songs(2)
        base = generator.generate_song_list_fingerprint(songs)

        assert generator.generate_song_list_fingerprint(list(reversed(songs))) != base
        changed = [songs[0], make_song("c2", remote_url="https://files.example.com/other.pdf")]
        assert generator.generate_song_list_fingerprint(changed) != base

    def test_empty_list(self) -> None:
        """An empty list has a stable fingerprint."""
        assert HEX_64_PATTERN.match(FingerprintGenerator().generate_song_list_fingerprint([]))

    @given(ids=st.lists(st.text(min_size=1, max_size=20), max_size=10))
    @settings(max_examples=50)
    def test_format_invariant(self, ids: list[str]) -> None:
        """Output is always 64-char lowercase hex."""
        songs = [make_song(song_id) for song_id in ids]
        assert HEX_64_PATTERN.match(FingerprintGenerator().generate_song_list_fingerprint(songs))
