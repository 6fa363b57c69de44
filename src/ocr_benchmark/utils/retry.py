"""Bounded exponential-backoff retry for throttled provider calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ocr_benchmark.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

THROTTLING_STATUS_CODES = (429,)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits. Delays are in milliseconds."""
    max_retries: int = 5
    base_delay: float = 1000
    max_delay: float = 30000

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based)."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


def is_transient_error(error: BaseException) -> bool:
    """Default classifier: the error's ``retryable`` flag, else an HTTP 429 status."""
    retryable = getattr(error, "retryable", None)
    if retryable is not None:
        return bool(retryable)

    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status in THROTTLING_STATUS_CODES


async def execute_with_retry(
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        *,
        is_transient: Callable[[BaseException], bool] = is_transient_error,
        operation_name: str = "operation",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> T:
    """Run ``operation`` until it succeeds, fails permanently, or retries run out.

    Transient failures are retried up to ``policy.max_retries`` times with
    ``min(base_delay * 2 ** (attempt - 1), max_delay)`` between attempts.
    Anything ``is_transient`` rejects is re-raised at once. Once retries are
    exhausted a :class:`RetryExhaustedError` chained to the last error is
    raised. ``sleep`` receives seconds and only suspends the calling task.
    """
    policy = policy or RetryPolicy()
    attempt = 0

    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_transient(e):
                raise

            attempt += 1
            if attempt > policy.max_retries:
                raise RetryExhaustedError(operation_name, attempt, e) from e

            delay = policy.delay_for(attempt)
            logger.warning(
                "%s: throttled (%s), retry %d/%d in %.0fms",
                operation_name, e, attempt, policy.max_retries, delay
            )
            await sleep(delay / 1000)
