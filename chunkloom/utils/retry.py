"""Retry with exponential backoff for transient collaborator failures.

Errors are classified by type and by message. Network failures, rate limits,
5xx responses and timeouts are retried; everything else propagates on the
first attempt.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import aiohttp
import tenacity
from loguru import logger

from chunkloom.core.exceptions import TaskCancelledError

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], None]

RETRYABLE_MESSAGES: tuple[str, ...] = (
    "network",
    "econnreset",
    "econnrefused",
    "etimedout",
    "socket hang up",
    "dns",
    "429",
    "rate limit",
    "too many requests",
    "500",
    "502",
    "503",
    "504",
    "timeout",
    "timed out",
)


@dataclass
class RetryOptions:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter: float = 0.1
    on_retry: RetryCallback | None = None


def is_retryable_error(error: BaseException) -> bool:
    """Check if an error is a transient failure worth retrying."""
    if isinstance(error, (asyncio.TimeoutError, ConnectionError, aiohttp.ClientConnectionError)):
        return True

    message = str(error).lower()
    return any(token in message for token in RETRYABLE_MESSAGES)


def compute_delay(attempt: int, options: RetryOptions) -> float:
    """Delay before retry number ``attempt`` (1-based), jitter included."""
    base = options.initial_delay * (options.backoff_factor ** (attempt - 1))
    capped = min(base, options.max_delay)
    spread = capped * options.jitter
    return max(0.0, capped + random.uniform(-spread, spread))


def _log_retry(retry_state: tenacity.RetryCallState, options: RetryOptions) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if exc is None:
        return

    next_delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        f"[RETRY] Attempt {retry_state.attempt_number} failed: "
        f"{type(exc).__name__}: {exc} (retrying in {next_delay:.2f}s)"
    )
    if options.on_retry is not None:
        options.on_retry(retry_state.attempt_number, exc, next_delay)


async def _abortable_sleep(delay: float, abort_signal: asyncio.Event) -> None:
    """Sleep for ``delay`` seconds, raising as soon as ``abort_signal`` is set."""
    try:
        await asyncio.wait_for(abort_signal.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise TaskCancelledError()


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    abort_signal: asyncio.Event | None = None,
) -> T:
    """Run an async operation, retrying transient failures.

    Args:
        fn: Zero-argument coroutine function to invoke
        options: Backoff settings; defaults allow 3 retries (4 calls total)
        abort_signal: When set, pending backoff waits end with TaskCancelledError

    Returns:
        The operation's result

    Raises:
        The original exception when it is not retryable or retries run out
        TaskCancelledError: If ``abort_signal`` is set before a retry
    """
    options = options or RetryOptions()

    async def sleep(delay: float) -> None:
        if abort_signal is None:
            await asyncio.sleep(delay)
        else:
            await _abortable_sleep(delay, abort_signal)

    retrying = tenacity.AsyncRetrying(
        retry=tenacity.retry_if_exception(is_retryable_error),
        stop=tenacity.stop_after_attempt(options.max_retries + 1),
        wait=lambda state: compute_delay(state.attempt_number, options),
        before_sleep=lambda state: _log_retry(state, options),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(fn)
