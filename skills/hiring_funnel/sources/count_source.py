"""RemoteCountSource: cached ATS reads that never raise past this boundary."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from skills.hiring_funnel.cache import ResultCache, build_cache_key
from skills.hiring_funnel.sources.ats_http import (
    AtsAuthError,
    AtsClient,
    AtsRequestError,
    build_channel_count_payload,
    build_stage_count_payload,
)
from skills.hiring_funnel.types import FailureKind, FetchResult, MonthWindow, StageCountsReply, StatusFilter

logger = logging.getLogger(__name__)

STAGE_COUNTS_KIND = "stage_counts"
CHANNEL_COUNT_KIND = "channel_count"


class CountSource(Protocol):
    async def fetch_stage_counts(
        self, job_id: str, window: MonthWindow, status: StatusFilter
    ) -> FetchResult[StageCountsReply]: ...

    async def fetch_channel_count(
        self,
        job_id: str,
        window: MonthWindow,
        source_category: str,
        source_name: str,
        status: StatusFilter,
    ) -> FetchResult[int]: ...

    async def probe(self) -> FetchResult[bool]: ...


def _as_int(raw: Any) -> int:
    if isinstance(raw, bool):
        raise AtsRequestError(f"Expected an integer count, got {raw!r}")
    try:
        value = int(raw or 0)
    except (TypeError, ValueError) as exc:
        raise AtsRequestError(f"Expected an integer count, got {raw!r}") from exc
    return max(0, value)


def parse_stage_counts(payload: dict[str, Any]) -> StageCountsReply:
    raw_stages = payload.get("StagesCount") or {}
    if not isinstance(raw_stages, dict):
        raise AtsRequestError("StagesCount is not an object")
    stages = {str(code): _as_int(count) for code, count in raw_stages.items()}
    return StageCountsReply(total=_as_int(payload.get("TotalFilteredCount")), stages=stages)


def _failure_kind(exc: Exception) -> FailureKind:
    return FailureKind.AUTH if isinstance(exc, AtsAuthError) else FailureKind.TRANSPORT


class RemoteCountSource:
    """Reads counts through an AtsClient, memoized in an injected ResultCache.

    Failures come back as empty values tagged with a FailureKind and are
    never cached.
    """

    def __init__(self, client: AtsClient, cache: Optional[ResultCache] = None, *, scope: str = ""):
        self.client = client
        self.cache = cache
        self.scope = scope

    def _cached(self, key: str) -> Any | None:
        return self.cache.get(key) if self.cache is not None else None

    def _store(self, key: str, value: Any) -> None:
        if self.cache is not None:
            self.cache.put(key, value)

    async def fetch_stage_counts(
        self, job_id: str, window: MonthWindow, status: StatusFilter
    ) -> FetchResult[StageCountsReply]:
        key = build_cache_key(
            STAGE_COUNTS_KIND, job_id, window.start_iso, window.end_iso, int(status), scope=self.scope
        )
        cached = self._cached(key)
        if cached is not None:
            return FetchResult(cached)

        payload = build_stage_count_payload(job_id, window, status)
        try:
            data = await self.client.filtered_count(job_id, payload, op=STAGE_COUNTS_KIND)
            reply = parse_stage_counts(data)
        except (AtsAuthError, AtsRequestError) as exc:
            logger.info(
                "[FETCH FAILED] op=%s job_id=%s month=%s status=%s reason=%s",
                STAGE_COUNTS_KIND,
                job_id,
                window.key,
                int(status),
                exc,
            )
            return FetchResult(StageCountsReply(), failure=_failure_kind(exc), detail=str(exc))

        self._store(key, reply)
        return FetchResult(reply)

    async def fetch_channel_count(
        self,
        job_id: str,
        window: MonthWindow,
        source_category: str,
        source_name: str,
        status: StatusFilter,
    ) -> FetchResult[int]:
        key = build_cache_key(
            CHANNEL_COUNT_KIND,
            job_id,
            window.start_iso,
            window.end_iso,
            int(status),
            source_category=source_category,
            source_name=source_name,
            scope=self.scope,
        )
        cached = self._cached(key)
        if cached is not None:
            return FetchResult(cached)

        payload = build_channel_count_payload(window, source_category, source_name, status)
        try:
            data = await self.client.filtered_count(job_id, payload, op=CHANNEL_COUNT_KIND)
            count = _as_int(data.get("TotalFilteredCount"))
        except (AtsAuthError, AtsRequestError) as exc:
            logger.info(
                "[FETCH FAILED] op=%s job_id=%s month=%s source=%s/%s status=%s reason=%s",
                CHANNEL_COUNT_KIND,
                job_id,
                window.key,
                source_category,
                source_name,
                int(status),
                exc,
            )
            return FetchResult(0, failure=_failure_kind(exc), detail=str(exc))

        self._store(key, count)
        return FetchResult(count)

    async def probe(self) -> FetchResult[bool]:
        try:
            await self.client.partial_jobs()
        except (AtsAuthError, AtsRequestError) as exc:
            return FetchResult(False, failure=_failure_kind(exc), detail=str(exc))
        return FetchResult(True)
