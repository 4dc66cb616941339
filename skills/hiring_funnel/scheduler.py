"""Batched, paced fan-out of count requests across jobs."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Sequence

from skills.hiring_funnel.rate_limit import BatchPacer, ClockFn, SleepFn, TokenBucket, cancellable_sleep
from skills.hiring_funnel.sources.count_source import CountSource
from skills.hiring_funnel.taxonomy import CHANNELS, Channel
from skills.hiring_funnel.types import (
    ChannelCount,
    DegradedSignal,
    FailureKind,
    FetchResult,
    Job,
    MonthWindow,
    StageCountsReply,
    StatusFilter,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 3
DEFAULT_BATCH_PAUSE_SECONDS = 5.0


class FetchCancelled(Exception):
    """Raised inside the scheduler once the cancel event is observed."""


def chunk_jobs(jobs: Sequence[Job], size: int) -> list[list[Job]]:
    if size <= 0:
        raise ValueError("batch size must be > 0")
    return [list(jobs[i:i + size]) for i in range(0, len(jobs), size)]


class BatchScheduler:
    def __init__(
        self,
        source: CountSource,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause_seconds: float = DEFAULT_BATCH_PAUSE_SECONDS,
        limiter: Optional[TokenBucket] = None,
        cancel_event: Optional[asyncio.Event] = None,
        degraded: Optional[DegradedSignal] = None,
        sleep: Optional[SleepFn] = None,
        clock: ClockFn = time.monotonic,
        channels: Sequence[Channel] = CHANNELS,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.source = source
        self.batch_size = batch_size
        self.cancel_event = cancel_event
        self.degraded = degraded if degraded is not None else DegradedSignal()
        self.channels = tuple(channels)
        sleep_fn = sleep or partial(cancellable_sleep, cancel_event=cancel_event)
        self.limiter = limiter or TokenBucket(0)
        self.pacer = BatchPacer(batch_pause_seconds, clock=clock, sleep=sleep_fn)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _check_cancelled(self) -> None:
        if self.cancelled:
            raise FetchCancelled()

    async def _call(self, fetch: Callable[[], Awaitable[FetchResult[Any]]], empty: Any) -> FetchResult[Any]:
        await self.limiter.acquire()
        try:
            result = await fetch()
        except Exception as exc:  # noqa: BLE001
            # Sources are expected to absorb their own failures; anything else
            # still must not take down sibling calls.
            logger.warning("[FETCH ERROR] unexpected source error: %s", exc)
            result = FetchResult(empty, failure=FailureKind.TRANSPORT, detail=str(exc))
        self.degraded.record(result)
        return result

    async def _fetch_job(self, job: Job, window: MonthWindow) -> tuple[StageCountsReply, StageCountsReply]:
        active, rejected = await asyncio.gather(
            self._call(partial(self.source.fetch_stage_counts, job.id, window, StatusFilter.ACTIVE), StageCountsReply()),
            self._call(partial(self.source.fetch_stage_counts, job.id, window, StatusFilter.REJECTED), StageCountsReply()),
        )
        return active.value, rejected.value

    async def fetch_month_stage_replies(
        self, jobs: Sequence[Job], window: MonthWindow
    ) -> list[tuple[StageCountsReply, StageCountsReply]]:
        """Per-job (active, rejected) replies for one month, batch by batch."""
        batches = chunk_jobs(jobs, self.batch_size)
        replies: list[tuple[StageCountsReply, StageCountsReply]] = []
        self.pacer.reset()
        for idx, batch in enumerate(batches, start=1):
            self._check_cancelled()
            waited = await self.pacer.wait()
            self._check_cancelled()
            logger.info(
                "[BATCH] month=%s batch=%s/%s jobs=%s waited_s=%.2f",
                window.key,
                idx,
                len(batches),
                len(batch),
                waited,
            )
            replies.extend(await asyncio.gather(*(self._fetch_job(job, window) for job in batch)))
            self.pacer.mark_settled()
        return replies

    async def fetch_month_channel_counts(self, jobs: Sequence[Job], window: MonthWindow) -> list[ChannelCount]:
        """Channel totals for one month; every (channel, job, status) read runs one at a time."""
        out: list[ChannelCount] = []
        for channel in self.channels:
            active = 0
            rejected = 0
            for job in jobs:
                for status in (StatusFilter.ACTIVE, StatusFilter.REJECTED):
                    self._check_cancelled()
                    result = await self._call(
                        partial(
                            self.source.fetch_channel_count,
                            job.id,
                            window,
                            channel.category.value,
                            channel.source_name,
                            status,
                        ),
                        0,
                    )
                    if status is StatusFilter.ACTIVE:
                        active += result.value
                    else:
                        rejected += result.value
            out.append(ChannelCount(channel=channel, active=active, rejected=rejected))
        return out
