"""Bounded retry combinators shared by every blocking network operation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .errors import NetworkError

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait in between.

    ``linear`` scales the wait by the attempt number, matching the step
    executor backoff; otherwise the interval is fixed.
    """

    attempts: int = 3
    interval: float = 1.0
    linear: bool = False

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must be non-negative")

    def delay(self, attempt: int) -> float:
        return self.interval * attempt if self.linear else self.interval


async def poll(
    fetch: Callable[[], Awaitable[Optional[T]]],
    policy: RetryPolicy,
    *,
    label: str = "poll",
) -> Optional[T]:
    """Call ``fetch`` until it returns a value or the attempts run out.

    Returns ``None`` once ``policy.attempts`` calls came back empty. There is
    no sleep after the final attempt. Exceptions raised by ``fetch`` and task
    cancellation propagate unchanged.
    """

    for attempt in range(1, policy.attempts + 1):
        result = await fetch()
        if result is not None:
            return result
        if attempt < policy.attempts:
            _LOGGER.debug("%s: nothing yet (attempt %d/%d)", label, attempt, policy.attempts)
            await asyncio.sleep(policy.delay(attempt))
    return None


async def call_with_retry(
    call: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (NetworkError,),
    label: str = "call",
) -> T:
    """Run ``call`` and retry it on ``retry_on`` failures, re-raising the last one."""

    for attempt in range(1, policy.attempts + 1):
        try:
            return await call()
        except retry_on as exc:
            if attempt >= policy.attempts:
                _LOGGER.error("%s failed after %d attempts: %s", label, attempt, exc)
                raise
            _LOGGER.warning("%s failed (attempt %d/%d): %s", label, attempt, policy.attempts, exc)
            await asyncio.sleep(policy.delay(attempt))
    raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["RetryPolicy", "call_with_retry", "poll"]
