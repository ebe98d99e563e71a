"""
Resilient Executor - Pacing, timeout, and retry around one backend call.

Every completion and embedding request the dispatcher sends to a candidate passes through
a ResilientExecutor:

1. Pacing: attempts issued through the same executor start at least
   min_interval_ms apart. A call that arrives early is delayed, never
   rejected.
2. Timeout: each attempt is bounded by asyncio.wait_for. Expiry cancels the
   in-flight attempt and raises AttemptTimeoutError without retrying.
3. Retry: rate-limit signals and other errors are retried up to
   max_retries times with exponential backoff (base, 2x base, 4x base, ...).
   A RateLimitError carrying retry_after_ms waits that long instead.
4. Exhaustion: the last observed error is re-raised.

The only state kept between calls is the last-attempt timestamp, guarded
by an asyncio.Lock so concurrent callers sharing an executor are paced
one after another.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from llm_router.errors import (
    AttemptTimeoutError,
    ConfigurationError,
    RateLimitError,
    UnsupportedOperationError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MIN_INTERVAL_MS = 1000
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY_MS = 2000

# Errors describing a bad request rather than a flaky backend.
_NON_RETRYABLE = (ValidationError, ConfigurationError, UnsupportedOperationError)


class ResilientExecutor:
    """
    Wraps outbound calls with pacing, a hard timeout, and bounded retry.

    Usage:
        executor = ResilientExecutor(min_interval_ms=500)
        response = await executor.execute(
            lambda: provider.generate_completion(text, options),
            timeout_ms=10_000,
            label="openai:gpt-4o",
        )
    """

    def __init__(
        self,
        min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS,
        default_timeout_ms: float = DEFAULT_TIMEOUT_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay_ms: float = DEFAULT_RETRY_BASE_DELAY_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the executor.

        Args:
            min_interval_ms: Minimum spacing between attempt starts
            default_timeout_ms: Per-attempt timeout when execute() gets none
            max_retries: Retries after the first attempt
            retry_base_delay_ms: Backoff before the first retry
            clock: Monotonic time source in seconds
            sleep: Coroutine used for pacing and backoff delays
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.min_interval_ms = min_interval_ms
        self.default_timeout_ms = default_timeout_ms
        self.max_retries = max_retries
        self.retry_base_delay_ms = retry_base_delay_ms
        self._clock = clock
        self._sleep = sleep

        self._lock = asyncio.Lock()
        self._last_attempt_at: float | None = None

    @property
    def last_attempt_at(self) -> float | None:
        """Clock reading at the start of the most recent attempt."""
        return self._last_attempt_at

    def backoff_ms(self, retry_index: int) -> float:
        """Backoff before retry number retry_index (0-based)."""
        return self.retry_base_delay_ms * (2**retry_index)

    async def _pace(self) -> None:
        async with self._lock:
            if self._last_attempt_at is not None:
                elapsed_ms = (self._clock() - self._last_attempt_at) * 1000
                wait_ms = self.min_interval_ms - elapsed_ms
                if wait_ms > 0:
                    logger.debug(f"Pacing: delaying attempt by {wait_ms:.0f}ms")
                    await self._sleep(wait_ms / 1000)
            self._last_attempt_at = self._clock()

    async def execute(
        self,
        attempt_fn: Callable[[], Awaitable[T]],
        timeout_ms: float | None = None,
        label: str = "",
    ) -> T:
        """
        Run attempt_fn with pacing, timeout, and retry.

        Args:
            attempt_fn: Zero-argument callable returning a fresh awaitable
                        for each attempt
            timeout_ms: Per-attempt timeout override
            label: Name used in log messages (typically the candidate key)

        Returns:
            The result of the first successful attempt

        Raises:
            AttemptTimeoutError: An attempt exceeded its timeout
            Exception: The last error once the retry budget is spent
        """
        timeout = timeout_ms if timeout_ms is not None else self.default_timeout_ms
        attempts = self.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            await self._pace()

            try:
                return await asyncio.wait_for(attempt_fn(), timeout=timeout / 1000)
            except asyncio.TimeoutError as e:
                logger.warning(f"Attempt {attempt + 1} for {label or 'call'} timed out")
                raise AttemptTimeoutError(timeout, label) from e
            except _NON_RETRYABLE:
                raise
            except RateLimitError as e:
                last_error = e
                delay_ms = (
                    e.retry_after_ms
                    if e.retry_after_ms is not None
                    else self.backoff_ms(attempt)
                )
            except Exception as e:
                last_error = e
                delay_ms = self.backoff_ms(attempt)

            if attempt < attempts - 1:
                logger.warning(
                    f"Attempt {attempt + 1}/{attempts} for {label or 'call'} failed, "
                    f"retrying in {delay_ms:.0f}ms: {last_error}"
                )
                await self._sleep(delay_ms / 1000)

        logger.error(
            f"{label or 'Call'} failed after {attempts} attempts: {last_error}"
        )
        assert last_error is not None
        raise last_error
