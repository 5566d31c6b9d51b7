"""Connect-with-backoff helper shared by the backend adapters."""

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

import structlog

from ..errors import BackendConnectionError, sanitize_message

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with jitter, capped at ``max_delay`` plus jitter."""
    jitter = random.uniform(0, 1) if base_delay > 0 else 0.0  # nosec B311
    return min(base_delay * (2**attempt), max_delay) + jitter


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    base_delay: float,
    max_delay: float,
    description: str,
) -> T:
    """
    Run ``operation`` until it succeeds or ``max_retries`` attempts fail.

    Args:
        operation: Zero-argument coroutine factory
        max_retries: Maximum number of attempts (at least one is made)
        base_delay: Initial delay between attempts in seconds
        max_delay: Maximum delay between attempts in seconds
        description: Human-readable name of the backend for logs and errors

    Raises:
        BackendConnectionError: If every attempt failed
    """
    attempts = max(1, max_retries)
    last_exception: Exception = RuntimeError("no attempt made")

    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as e:
            last_exception = e

            if attempt < attempts - 1:
                delay = backoff_delay(attempt, base_delay, max_delay)
                logger.warning(
                    f"Failed to connect to {description}, retrying",
                    attempt=attempt + 1,
                    max_retries=attempts,
                    next_retry_seconds=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)

    logger.error(
        f"{description} connection failed permanently",
        attempts=attempts,
        error=str(last_exception),
    )
    raise BackendConnectionError(
        f"Failed to connect to {description} after {attempts} attempts: "
        f"{sanitize_message(str(last_exception))}"
    ) from last_exception
