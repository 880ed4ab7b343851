"""Retry with exponential backoff.

Delays double per attempt starting from ``base_delay`` (2s then 4s with
three attempts). The sleep function is injectable so callers and tests can
run without real waiting.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterator, Tuple, Type, TypeVar

__all__ = ["backoff_delays", "retry_call", "retry_async"]

T = TypeVar("T")
logger = logging.getLogger(__name__)


def backoff_delays(attempts: int, base_delay: float) -> Iterator[float]:
    """Yield the delay to wait after each failed attempt except the last."""
    for attempt in range(1, attempts):
        yield base_delay * (2 ** (attempt - 1))


def retry_call(func: Callable[..., T], *args: Any,
               attempts: int = 3, base_delay: float = 2.0,
               retry_on: Tuple[Type[BaseException], ...] = (Exception,),
               sleep: Callable[[float], None] = time.sleep,
               **kwargs: Any) -> T:
    """Call ``func`` until it succeeds or ``attempts`` are used up.

    The last exception is re-raised once the budget is exhausted.
    Exceptions outside ``retry_on`` propagate immediately.
    """
    delays = list(backoff_delays(attempts, base_delay))
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except retry_on as e:
            if attempt == attempts:
                raise
            delay = delays[attempt - 1]
            logger.warning("Attempt %d/%d of %s failed: %s. Retrying in %.1fs",
                           attempt, attempts, getattr(func, "__name__", "call"), e, delay)
            sleep(delay)
    raise RuntimeError("retry_call needs at least one attempt")


async def retry_async(func: Callable[..., Awaitable[T]], *args: Any,
                      attempts: int = 3, base_delay: float = 2.0,
                      retry_on: Tuple[Type[BaseException], ...] = (Exception,),
                      sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                      **kwargs: Any) -> T:
    """Async variant of ``retry_call``."""
    delays = list(backoff_delays(attempts, base_delay))
    for attempt in range(1, attempts + 1):
        try:
            return await func(*args, **kwargs)
        except retry_on as e:
            if attempt == attempts:
                raise
            delay = delays[attempt - 1]
            logger.warning("Attempt %d/%d of %s failed: %s. Retrying in %.1fs",
                           attempt, attempts, getattr(func, "__name__", "call"), e, delay)
            await sleep(delay)
    raise RuntimeError("retry_async needs at least one attempt")
