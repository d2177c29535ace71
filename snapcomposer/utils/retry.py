"""Retry policy decoupled from the transport call."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryHook = Callable[[int, float, BaseException], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed delay schedule: one attempt per entry in ``delays``.

    The delay is slept before its attempt, so a leading ``0`` means the
    first attempt starts immediately.
    """

    delays: Tuple[float, ...] = (0, 3, 5, 10, 20)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False, repr=False)

    def __post_init__(self):
        if not self.delays:
            raise ValueError("retry policy needs at least one attempt")

    @property
    def max_attempts(self) -> int:
        return len(self.delays)

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        should_retry: Callable[[BaseException], bool],
        on_retry: Optional[RetryHook] = None,
    ) -> T:
        """
        Run ``operation(attempt)`` until it succeeds or attempts run out.

        Exceptions rejected by ``should_retry`` propagate immediately; the
        last retryable exception is raised once the schedule is exhausted.
        """
        last_exc: Optional[BaseException] = None
        for attempt, delay in enumerate(self.delays, 1):
            if attempt > 1 and on_retry is not None and last_exc is not None:
                await on_retry(attempt, delay, last_exc)
            if delay > 0:
                await self.sleep(delay)
            try:
                return await operation(attempt)
            except Exception as exc:
                if not should_retry(exc):
                    raise
                last_exc = exc
                logger.warning(
                    f"[retry] attempt {attempt}/{self.max_attempts} failed: {exc}"
                )

        assert last_exc is not None
        raise last_exc
