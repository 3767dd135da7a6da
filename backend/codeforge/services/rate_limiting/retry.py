"""
Retry logic with exponential backoff for handling transient failures.
"""

import asyncio
import logging
import random
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

import aiohttp

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Jitter multiplier is drawn from [JITTER_MIN, JITTER_MIN + JITTER_SPAN)
JITTER_MIN = 0.8
JITTER_SPAN = 0.4


def compute_backoff_delay(
    attempt: int,
    base_delay: float = 0.3,
    max_delay: float = 3.0,
    factor: float = 2.0,
    random_source: Callable[[], float] = random.random,
) -> float:
    """
    Delay in seconds before the retry that follows failure number `attempt` (1-based).
    """
    jitter = JITTER_MIN + random_source() * JITTER_SPAN
    return min(max_delay, base_delay * (factor ** (attempt - 1)) * jitter)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay: float = 0.3,
    max_delay: float = 3.0,
    factor: float = 2.0,
    retry_condition: Optional[Callable[[BaseException], bool]] = None,
    random_source: Callable[[], float] = random.random,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Await `operation()` until it succeeds, retrying failures with jittered backoff.

    `max_retries` bounds the total number of calls. The last error is
    re-raised unchanged once attempts are exhausted or `retry_condition`
    rejects it.

    Usage:
        data = await retry_with_backoff(
            lambda: client.fetch_stats("tourist"),
            retry_condition=is_transient_error,
        )
    """
    attempt = 0
    name = getattr(operation, "__name__", "operation")

    while True:
        try:
            return await operation()
        except Exception as exc:
            attempt += 1

            should_retry = attempt < max_retries and (
                retry_condition is None or retry_condition(exc)
            )
            if not should_retry:
                if attempt >= max_retries:
                    logger.warning(
                        "%s: All %d attempts failed: %s",
                        name,
                        attempt,
                        exc,
                    )
                raise

            delay = compute_backoff_delay(
                attempt,
                base_delay=base_delay,
                max_delay=max_delay,
                factor=factor,
                random_source=random_source,
            )
            logger.debug(
                "%s: Attempt %d/%d failed (%s), retrying in %.2fs",
                name,
                attempt,
                max_retries,
                type(exc).__name__,
                delay,
            )
            await sleep(delay)


def with_backoff(**options):
    """
    Decorator form of retry_with_backoff for async functions.

    Usage:
        @with_backoff(max_retries=3, retry_condition=is_transient_error)
        async def fetch_data():
            ...
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            async def call():
                return await func(*args, **kwargs)

            call.__name__ = func.__name__
            return await retry_with_backoff(call, **options)

        return wrapper

    return decorator


def is_transient_error(exc: BaseException) -> bool:
    """
    Retry condition for outbound HTTP calls.

    Server errors, 429 and network failures are worth retrying; other
    client errors (4xx) are not. Errors carrying a `transient` attribute
    decide for themselves.
    """
    transient = getattr(exc, "transient", None)
    if isinstance(transient, bool):
        return transient

    # Don't retry on client errors (4xx except 429)
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status == 429 or exc.status >= 500

    return isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError))
