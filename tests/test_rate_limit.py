import asyncio

import pytest

from skills.hiring_funnel.rate_limit import BatchPacer, TokenBucket, cancellable_sleep


class FakeTime:
    """Clock plus sleep that advances the clock instead of waiting."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_token_bucket_allows_burst_then_waits():
    t = FakeTime()
    bucket = TokenBucket(2, capacity=2, clock=t.clock, sleep=t.sleep)

    async def scenario():
        return [await bucket.acquire() for _ in range(3)]

    waits = asyncio.run(scenario())

    assert waits[:2] == [0.0, 0.0]
    assert waits[2] == pytest.approx(0.5)
    assert t.sleeps == [pytest.approx(0.5)]


def test_token_bucket_unlimited_never_sleeps():
    t = FakeTime()
    bucket = TokenBucket(0, clock=t.clock, sleep=t.sleep)

    async def scenario():
        for _ in range(50):
            await bucket.acquire()

    asyncio.run(scenario())
    assert t.sleeps == []


def test_token_bucket_rejects_oversized_request():
    bucket = TokenBucket(1, capacity=1)
    with pytest.raises(ValueError):
        asyncio.run(bucket.acquire(2))


def test_batch_pacer_waits_remaining_pause_only():
    t = FakeTime()
    pacer = BatchPacer(5, clock=t.clock, sleep=t.sleep)

    async def scenario():
        first = await pacer.wait()
        pacer.mark_settled()
        t.now += 2
        second = await pacer.wait()
        pacer.mark_settled()
        t.now += 7
        third = await pacer.wait()
        return first, second, third

    first, second, third = asyncio.run(scenario())
    assert first == 0.0
    assert second == pytest.approx(3.0)
    assert third == 0.0


def test_batch_pacer_reset_skips_next_wait():
    t = FakeTime()
    pacer = BatchPacer(5, clock=t.clock, sleep=t.sleep)
    pacer.mark_settled()
    pacer.reset()
    assert asyncio.run(pacer.wait()) == 0.0
    assert t.sleeps == []


def test_cancellable_sleep_returns_when_event_set():
    async def scenario():
        event = asyncio.Event()
        event.set()
        await asyncio.wait_for(cancellable_sleep(30, event), timeout=1)

    asyncio.run(scenario())
