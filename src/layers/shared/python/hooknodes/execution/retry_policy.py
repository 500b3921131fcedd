"""Retry policy with exponential backoff and jitter.

Provides the backoff arithmetic shared by the delivery client and a generic
async retry wrapper:
- Exponential backoff capped at a maximum delay
- +/-10% jitter to spread retry attempts
- Retry decisions driven by the error classifier's retryability verdict

Usage:
    config = RetryConfig(max_retries=3, base_delay=1.0)

    async def my_operation():
        return await external_api_call()

    result = await with_retry(my_operation, config)
"""

import asyncio
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

import structlog

if TYPE_CHECKING:
    from hooknodes.execution.error_classifier import ErrorStats

logger = structlog.get_logger()

T = TypeVar("T")

JITTER_RATIO = 0.1


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 30.0  # Maximum delay cap
    backoff_factor: float = 2.0
    jitter: bool = True


def calculate_retry_delay(
    attempt: int,
    config: RetryConfig | None = None,
    rng: Callable[[], float] = random.random,
) -> float:
    """Calculate delay before the next retry.

    Args:
        attempt: Attempt number that just failed (1-indexed).
        config: Retry configuration.
        rng: Source of uniform floats in [0, 1).

    Returns:
        Delay in seconds, never negative.
    """
    config = config or RetryConfig()

    delay = config.base_delay * (config.backoff_factor ** (attempt - 1))
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * JITTER_RATIO
        delay += (rng() * 2 - 1) * jitter_range

    return max(delay, 0.0)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    stats: "ErrorStats | None" = None,
    on_retry: Callable[[int, float, Exception], Any] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Execute an async operation with retry logic.

    Every failure is converted to a coded error first; only codes the
    classifier marks retryable are attempted again.

    Args:
        operation: Async callable to execute.
        config: Retry configuration.
        stats: Optional error statistics to update.
        on_retry: Called with (attempt, delay, error) before each sleep.
        sleep: Awaitable sleep function.

    Returns:
        Operation result.

    Raises:
        ChatApiError: The last classified error once retries stop.
    """
    from hooknodes.execution.error_classifier import create_generic_error, is_retryable

    config = config or RetryConfig()
    attempt = 0

    while True:
        try:
            result = await operation()
        except Exception as e:
            error = create_generic_error(e)
            attempt += 1

            if stats is not None:
                stats.record_error(error, is_retry=attempt > 1)

            if attempt > config.max_retries or not is_retryable(error.code):
                logger.warning(
                    "Operation failed permanently",
                    error=error.message,
                    error_code=error.code,
                    attempts=attempt,
                )
                if error is e:
                    raise
                raise error from e

            delay = calculate_retry_delay(attempt, config)

            logger.info(
                "Retrying operation",
                error=error.message,
                error_code=error.code,
                attempt=attempt,
                next_delay=delay,
            )

            if on_retry is not None:
                on_retry(attempt, delay, error)

            await sleep(delay)
            continue

        if attempt > 0 and stats is not None:
            stats.record_successful_retry()

        return result
