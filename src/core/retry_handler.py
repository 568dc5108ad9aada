"""Retry handler with exponential backoff for content fetches.

Warming is single-attempt by default; a non-zero ``max_retries`` makes the
handler back off and retry transient fetch failures before giving up.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from core.exceptions import ContentFetchError, RetryExhaustionError
from core.models.app_config import FetchRetryConfig

# Type variable for retry operation return types
RetryResult = TypeVar("RetryResult")

# HTTP statuses that are worth retrying
TRANSIENT_STATUSES: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})


@dataclass
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff.

    Defines retry parameters including maximum attempts, delay settings,
    and jitter for spreading concurrent retries over time.
    """

    max_retries: int = 0
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0
    exponential_base: float = 2.0
    jitter_range: float = 0.1  # +/-10% randomization

    @classmethod
    def from_config(cls, config: FetchRetryConfig) -> "RetryPolicy":
        """Build a policy from the ``caching.fetch_retry`` section."""
        return cls(
            max_retries=config.max_retries,
            base_delay_seconds=config.base_delay_seconds,
            max_delay_seconds=config.max_delay_seconds,
            jitter_range=config.jitter_range,
        )


class FetchRetryHandler:
    """Runs content fetches under a RetryPolicy."""

    def __init__(self, logger: logging.Logger, policy: RetryPolicy | None = None) -> None:
        """Initialize retry handler with logging and policy.

        Args:
            logger: Logger instance for retry tracking
            policy: Retry policy for fetches (no retries when omitted)

        """
        self.logger = logger
        self.policy = policy or RetryPolicy()

    @staticmethod
    def is_transient_error(error: Exception) -> bool:
        """Determine if a fetch error is transient and worth retrying.

        Args:
            error: Exception to analyze

        Returns:
            True for timeouts, connection failures and retryable HTTP statuses

        """
        if isinstance(error, ContentFetchError):
            return error.status is None or error.status in TRANSIENT_STATUSES
        return isinstance(error, ConnectionError | TimeoutError | OSError)

    @staticmethod
    def calculate_delay_seconds(attempt_number: int, policy: RetryPolicy) -> float:
        """Calculate delay for retry attempt with exponential backoff and jitter.

        Args:
            attempt_number: Current attempt number (0-based)
            policy: Retry policy configuration

        Returns:
            Delay in seconds before next retry attempt

        """
        exponential_delay = policy.base_delay_seconds * (policy.exponential_base**attempt_number)
        capped_delay = min(exponential_delay, policy.max_delay_seconds)

        # Deterministic jitter keyed on the attempt number
        jitter_amount = capped_delay * policy.jitter_range
        jitter_seed = (attempt_number * 31 + 17) % 100 / 100.0
        jitter_offset = (jitter_seed - 0.5) * 2 * jitter_amount

        return max(0.0, capped_delay + jitter_offset)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[RetryResult]],
        operation_id: str,
        policy: RetryPolicy | None = None,
    ) -> RetryResult:
        """Execute operation with retry logic.

        Args:
            operation: Async callable to execute with retry
            operation_id: Identifier used in log messages
            policy: Retry policy overriding the handler default

        Returns:
            Result from successful operation execution

        Raises:
            RetryExhaustionError: When retries were configured and all attempts failed
            Exception: The original error for non-transient failures or single-attempt policies

        """
        retry_policy = policy or self.policy
        last_error: Exception | None = None

        for attempt in range(retry_policy.max_retries + 1):
            try:
                return await operation()
            except (ContentFetchError, ConnectionError, TimeoutError, OSError) as error:
                last_error = error
                if retry_policy.max_retries == 0 or not self.is_transient_error(error):
                    raise
                if attempt >= retry_policy.max_retries:
                    break

                delay_seconds = self.calculate_delay_seconds(attempt, retry_policy)
                self.logger.warning(
                    "Operation '%s' failed on attempt %d/%d: %s. Retrying in %.2fs...",
                    operation_id,
                    attempt + 1,
                    retry_policy.max_retries + 1,
                    error,
                    delay_seconds,
                )
                await asyncio.sleep(delay_seconds)

        attempts = retry_policy.max_retries + 1
        msg = f"Operation '{operation_id}' failed after {attempts} attempts: {last_error}"
        raise RetryExhaustionError(msg, attempts=attempts, last_error=last_error)
