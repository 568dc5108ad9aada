"""Song list fingerprinting.

A content session re-resolves URLs only when the ordered list of
``(id, remote_url, embedded_file)`` triples changes. The fingerprint is a
SHA-256 hash of the canonical JSON of those triples; titles, keys and other
display fields are left out because they never change what is fetched.
"""

import hashlib
import json
import logging
from collections.abc import Sequence

from core.models.content_models import SongRef


class FingerprintGenerator:
    """Generates deterministic fingerprints for song lists."""

    ENCODING = "utf-8"
    HASH_ALGORITHM = "sha256"

    def __init__(self, logger: logging.Logger | None = None) -> None:
        """Initialize fingerprint generator.

        Args:
            logger: Logger for debugging fingerprint generation (optional)
        """
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def fingerprint_properties(song: SongRef) -> list[str | None]:
        """Fields of a song that decide what gets fetched and displayed."""
        return [song.id, song.remote_url, song.embedded_file]

    def generate_song_list_fingerprint(self, songs: Sequence[SongRef]) -> str:
        """Generate SHA-256 fingerprint for an ordered song list.

        Args:
            songs: Songs in display order

        Returns:
            SHA-256 hash string (64 hex characters)
        """
        canonical_json = json.dumps(
            [self.fingerprint_properties(song) for song in songs],
            separators=(",", ":"),
            ensure_ascii=False,
        )
        hash_object = hashlib.new(self.HASH_ALGORITHM)
        hash_object.update(canonical_json.encode(self.ENCODING))
        fingerprint = hash_object.hexdigest()

        self.logger.debug("Generated fingerprint for %d songs: %s...", len(songs), fingerprint[:16])
        return fingerprint
