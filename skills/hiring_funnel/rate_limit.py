"""Pacing primitives for remote ATS calls."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


async def cancellable_sleep(seconds: float, cancel_event: Optional[asyncio.Event] = None) -> None:
    """Sleep for `seconds`, returning early once `cancel_event` is set."""
    if seconds <= 0:
        return
    if cancel_event is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return


class TokenBucket:
    """Token bucket: `rate` tokens per second, bursts up to `capacity`.

    A non-positive rate disables limiting.
    """

    def __init__(
        self,
        rate: float,
        capacity: Optional[float] = None,
        *,
        clock: ClockFn = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.rate = float(rate)
        self.capacity = float(capacity) if capacity is not None else max(1.0, self.rate)
        if self.capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._clock = clock
        self._sleep = sleep
        self._tokens = self.capacity
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    @property
    def unlimited(self) -> bool:
        return self.rate <= 0

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated_at = now

    async def acquire(self, tokens: float = 1.0) -> float:
        """Take `tokens`, waiting for the refill if needed. Returns seconds waited."""
        if self.unlimited:
            return 0.0
        if tokens > self.capacity:
            raise ValueError(f"cannot acquire {tokens} tokens from a bucket of {self.capacity}")
        async with self._lock:
            waited = 0.0
            self._refill()
            if self._tokens < tokens:
                waited = (tokens - self._tokens) / self.rate
                await self._sleep(waited)
                self._refill()
            self._tokens = max(0.0, self._tokens - tokens)
            return waited


class BatchPacer:
    """Enforces a minimum pause between one batch settling and the next starting."""

    def __init__(self, pause_seconds: float, *, clock: ClockFn = time.monotonic, sleep: SleepFn = asyncio.sleep):
        if pause_seconds < 0:
            raise ValueError("pause_seconds must be >= 0")
        self.pause_seconds = float(pause_seconds)
        self._clock = clock
        self._sleep = sleep
        self._settled_at: Optional[float] = None

    def reset(self) -> None:
        self._settled_at = None

    def mark_settled(self) -> None:
        self._settled_at = self._clock()

    async def wait(self) -> float:
        if self._settled_at is None or self.pause_seconds <= 0:
            return 0.0
        remaining = self.pause_seconds - (self._clock() - self._settled_at)
        if remaining <= 0:
            return 0.0
        await self._sleep(remaining)
        return remaining
