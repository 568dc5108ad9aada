"""Core exceptions for configuration, content fetching and setlist reordering.

This module contains shared exception classes to avoid circular imports
between the config, cache and setlist modules.
"""


class ConfigurationError(Exception):
    """Raised when configuration loading or parsing fails."""

    def __init__(self, message: str, config_path: str | None = None) -> None:
        """Initialize the configuration error.

        Args:
            message: Error description
            config_path: Path to the config file that caused the error

        """
        super().__init__(message)
        self.config_path = config_path


class ContentFetchError(Exception):
    """Raised when the content service cannot deliver a file or a song list."""

    def __init__(self, message: str, content_id: str | None = None, status: int | None = None) -> None:
        """Initialize the fetch error.

        Args:
            message: Error description
            content_id: Content item that failed to load (if known)
            status: HTTP status code returned by the service (if any)

        """
        super().__init__(message)
        self.content_id = content_id
        self.status = status


class SetlistError(Exception):
    """Base exception for setlist position operations."""


class InvalidPositionError(SetlistError):
    """Raised when a reorder request references an unknown song or an out-of-range position."""


class PositionStoreError(SetlistError):
    """Raised by a position store when a write is rejected."""


class ReorderConflictError(SetlistError):
    """Raised when a reorder would leave duplicate or gapped positions."""

    def __init__(self, message: str, setlist_id: str, positions: list[int] | None = None) -> None:
        """Initialize the conflict error.

        Args:
            message: Error description
            setlist_id: Setlist whose ordering is inconsistent
            positions: Positions observed when the conflict was detected

        """
        super().__init__(message)
        self.setlist_id = setlist_id
        self.positions = positions or []


class RetryError(Exception):
    """Base exception for retry-related errors."""


class RetryExhaustionError(RetryError):
    """Raised when retry attempts are exhausted."""

    def __init__(self, message: str, attempts: int, last_error: Exception | None = None) -> None:
        """Initialize retry exhaustion error.

        Args:
            message: Error description
            attempts: Number of attempts made
            last_error: The last error that occurred before giving up

        """
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
