"""Retry and timeout combinators for remote calls.

Only ``TransientIOError`` is retried; anything else (a backend rejecting the
request, a validation failure) propagates on the first attempt.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from qr_feedback.domain.exceptions import TransientIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    timeout: Optional[float] = 15.0

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            attempts=settings.retry_attempts,
            base_delay=settings.retry_base_delay_seconds,
            factor=settings.retry_backoff_factor,
            timeout=settings.operation_timeout_seconds,
        )


DEFAULT_POLICY = RetryPolicy()


async def with_timeout(awaitable: Awaitable[T], seconds: Optional[float], name: str = "operation") -> T:
    """Await with a deadline; a timeout counts as a transient failure."""
    if seconds is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise TransientIOError(f"{name} timed out after {seconds}s") from e


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy = DEFAULT_POLICY,
    name: str = "operation",
) -> T:
    """Run ``operation`` with a per-attempt timeout and exponential backoff."""
    delay = policy.base_delay

    for attempt in range(1, policy.attempts + 1):
        try:
            return await with_timeout(operation(), policy.timeout, name)
        except TransientIOError as e:
            if attempt < policy.attempts:
                logger.warning(f"{name} failed (attempt {attempt}/{policy.attempts}): {e}")
                await asyncio.sleep(delay)
                delay *= policy.factor
            else:
                logger.error(f"{name} failed after {policy.attempts} attempts: {e}")
                raise

    # attempts < 1
    raise TransientIOError(f"{name} was not attempted")
