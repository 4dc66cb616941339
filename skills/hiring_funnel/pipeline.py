"""Main hiring funnel orchestrator."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional, Sequence

import httpx

from .cache import ResultCache, credential_fingerprint
from .config import Settings, load_settings
from .jobs import load_jobs, select_jobs
from .metrics import combine_months, compute_monthly_metrics, merge_stage_replies
from .months import resolve_windows
from .rate_limit import ClockFn, SleepFn, TokenBucket
from .scheduler import BatchScheduler, FetchCancelled
from .sources.ats_http import AtsClient
from .sources.count_source import CountSource, RemoteCountSource
from .sources.sample_source import SampleCountSource
from .types import DashboardResult, DegradedSignal, FailureKind, Job, MonthlyMetrics, MonthWindow

logger = logging.getLogger(__name__)


def _run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def build_limiter(
    settings: Settings, *, clock: ClockFn = time.monotonic, sleep: Optional[SleepFn] = None
) -> TokenBucket:
    return TokenBucket(
        settings.max_requests_per_second,
        capacity=max(settings.max_requests_per_second, 2 * settings.batch_size),
        clock=clock,
        sleep=sleep or asyncio.sleep,
    )


async def collect_monthly_metrics(
    jobs: Sequence[Job],
    windows: Sequence[MonthWindow],
    source: CountSource,
    *,
    settings: Optional[Settings] = None,
    degraded: Optional[DegradedSignal] = None,
    cancel_event: Optional[asyncio.Event] = None,
    limiter: Optional[TokenBucket] = None,
    sleep: Optional[SleepFn] = None,
    clock: ClockFn = time.monotonic,
) -> DashboardResult:
    """Fetch and aggregate every window in order, one month at a time.

    On cancellation the month in flight is dropped and the months already
    finished are returned with `cancelled=True`. Pass a `limiter` to share one
    request budget across concurrent runs; otherwise each run gets its own.
    """
    settings = settings or Settings()
    degraded = degraded if degraded is not None else DegradedSignal()
    if not jobs:
        return DashboardResult(months=(), degraded=degraded, run_id=_run_id())

    if limiter is None:
        limiter = build_limiter(settings, clock=clock, sleep=sleep)
    scheduler = BatchScheduler(
        source,
        batch_size=settings.batch_size,
        batch_pause_seconds=settings.batch_pause_seconds,
        limiter=limiter,
        cancel_event=cancel_event,
        degraded=degraded,
        sleep=sleep,
        clock=clock,
    )

    months: list[MonthlyMetrics] = []
    cancelled = False
    for window in windows:
        try:
            replies = await scheduler.fetch_month_stage_replies(jobs, window)
            channel_counts = await scheduler.fetch_month_channel_counts(jobs, window)
        except FetchCancelled:
            cancelled = True
            logger.info("[CANCELLED] month=%s completed_months=%s", window.key, len(months))
            break
        totals = merge_stage_replies(replies, degraded)
        metrics = compute_monthly_metrics(window, totals, channel_counts)
        logger.info(
            "[MONTH] month=%s applicants=%s scheduled=%s offers=%s",
            window.key,
            metrics.total_applicants,
            metrics.scheduled,
            metrics.total_offers,
        )
        months.append(metrics)

    if degraded.degraded:
        logger.warning(
            "[DEGRADED] auth_failures=%s transport_failures=%s",
            degraded.auth_failures,
            degraded.transport_failures,
        )
    return DashboardResult(months=tuple(months), degraded=degraded, cancelled=cancelled, run_id=_run_id())


async def generate_monthly_metrics(
    jobs: Sequence[Job],
    token: Optional[str],
    *,
    settings: Optional[Settings] = None,
    cache: Optional[ResultCache] = None,
    windows: Optional[Sequence[MonthWindow]] = None,
    cancel_event: Optional[asyncio.Event] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    limiter: Optional[TokenBucket] = None,
    sleep: Optional[SleepFn] = None,
) -> DashboardResult:
    """Full ATS run: credential check, probe, then per-month collection.

    Cached reads are scoped to the token, and expired entries are purged
    before the run starts.
    """
    settings = settings or Settings()
    degraded = DegradedSignal()
    if not token or not token.strip():
        degraded.missing_credential = True
        logger.warning("[DEGRADED] missing_credential=true")
        return DashboardResult(months=(), degraded=degraded, run_id=_run_id())
    if not jobs:
        return DashboardResult(months=(), degraded=degraded, run_id=_run_id())

    windows = list(windows) if windows is not None else resolve_windows()
    if cache is not None:
        purged = cache.purge_expired()
        if purged:
            logger.debug("[CACHE] purged=%s remaining=%s", purged, len(cache))
    async with AtsClient(
        token.strip(),
        base_url=settings.api_base_url,
        org_id=settings.org_id,
        timeout_seconds=settings.request_timeout_seconds,
        transport=transport,
    ) as client:
        source = RemoteCountSource(client, cache, scope=credential_fingerprint(token.strip()))
        probe = await source.probe()
        degraded.record(probe)
        if probe.failure is FailureKind.AUTH:
            logger.warning("[DEGRADED] credential rejected: %s", probe.detail)
            return DashboardResult(months=(), degraded=degraded, run_id=_run_id())
        if not probe.ok:
            logger.warning("[PROBE] transport failure, continuing: %s", probe.detail)

        return await collect_monthly_metrics(
            jobs,
            windows,
            source,
            settings=settings,
            degraded=degraded,
            cancel_event=cancel_event,
            limiter=limiter,
            sleep=sleep,
        )


def _save_metrics_json(path: Path, result: DashboardResult) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")


def run(
    source: Literal["ats", "sample"],
    jobs_path: str,
    token: Optional[str] = None,
    start_month: Optional[str] = None,
    end_month: Optional[str] = None,
    job_ids: Optional[Sequence[str]] = None,
    out_dir: str = "output",
    combine: bool = False,
    dry_run: bool = False,
    settings: Optional[Settings] = None,
) -> DashboardResult:
    settings = settings or load_settings()
    windows = resolve_windows(start_month, end_month)
    jobs = select_jobs(load_jobs(jobs_path), job_ids)

    if source == "ats":
        cache = ResultCache(settings.cache_ttl_seconds)
        result = asyncio.run(
            generate_monthly_metrics(jobs, token, settings=settings, cache=cache, windows=windows)
        )
    elif source == "sample":
        result = asyncio.run(
            collect_monthly_metrics(
                jobs,
                windows,
                SampleCountSource(),
                settings=replace(settings, batch_pause_seconds=0.0, max_requests_per_second=0.0),
            )
        )
    else:
        raise ValueError(f"Unsupported source: {source}")

    if combine:
        result.combined = combine_months(result.months)

    if not dry_run:
        json_path = Path(out_dir) / "monthly_metrics.json"
        _save_metrics_json(json_path, result)
        result.artifacts["json_path"] = str(json_path)
    return result
