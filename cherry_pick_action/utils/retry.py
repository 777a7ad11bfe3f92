"""Retry utilities for handling transient failures.

Provides a decorator and a call helper for retrying async operations with
exponential backoff. Used for remote API calls whose errors are marked
retryable (see :func:`cherry_pick_action.exceptions.is_retryable`).

Key Features:
    - Exponential backoff from a configurable initial delay
    - Exception filtering by type and by predicate
    - Maximum attempt limiting
    - Structured logging of retry attempts

Example:
    >>> from cherry_pick_action.exceptions import is_retryable
    >>> from cherry_pick_action.utils.retry import async_retry
    >>>
    >>> @async_retry(max_attempts=3, retry_if=is_retryable)
    ... async def fetch_pull_request(number: int) -> PRMetadata:
    ...     return await client.get_pull_request("rancher", "repo", number)

Backoff Formula:
    delay = initial_delay * backoff_factor ** (attempt_number - 1)
    For initial_delay=1.0, backoff_factor=2.0: 1s, 2s, 4s, ...
"""

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

log = structlog.get_logger(__name__)

T = TypeVar("T")


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    retry_if: Callable[[BaseException], bool] | None = None,
    name: str = "",
) -> T:
    """Await ``func()`` until it succeeds or attempts are exhausted.

    Args:
        func: Zero-argument coroutine factory; called once per attempt.
        max_attempts: Maximum number of calls (original + retries).
        initial_delay: Seconds to wait before the first retry.
        backoff_factor: Multiplier applied to the delay after each retry.
        exceptions: Exception types eligible for retry. Others propagate
            immediately.
        retry_if: Optional predicate; an eligible exception is retried only
            when it returns True.
        name: Operation name used in log events.

    Returns:
        The value returned by the first successful call.

    Raises:
        The last caught exception once attempts are exhausted, or any
        exception that is not eligible for retry.
    """
    attempts = max(1, max_attempts)
    delay = initial_delay

    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except exceptions as e:
            if retry_if is not None and not retry_if(e):
                raise
            if attempt == attempts:
                log.error("retry_exhausted", function=name, attempts=attempt, error=str(e))
                raise

            log.warning(
                "retry_attempt",
                function=name,
                attempt=attempt,
                max_attempts=attempts,
                delay=delay,
                error=str(e),
            )
            if delay > 0:
                await asyncio.sleep(delay)
            delay *= backoff_factor

    raise RuntimeError("Retry logic error")


def async_retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    retry_if: Callable[[BaseException], bool] | None = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Decorator form of :func:`call_with_retry`.

    Warning:
        With max_attempts=5 and the defaults, the total wait before the final
        failure is 1 + 2 + 4 + 8 = 15 seconds (not counting execution time).
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await call_with_retry(
                lambda: func(*args, **kwargs),
                max_attempts=max_attempts,
                initial_delay=initial_delay,
                backoff_factor=backoff_factor,
                exceptions=exceptions,
                retry_if=retry_if,
                name=func.__name__,
            )

        return wrapper

    return decorator
