"""Sample count source for local demo without an ATS token."""

from __future__ import annotations

import hashlib

from skills.hiring_funnel.taxonomy import ALL_STAGES, code_for_stage
from skills.hiring_funnel.types import FetchResult, MonthWindow, StageCountsReply, StatusFilter

# Rough funnel shape: most candidates sit early, a few reach offer.
_ACTIVE_WEIGHTS = (40, 18, 6, 8, 5, 3, 2, 1, 1, 2, 1, 2)
_REJECTED_WEIGHTS = (6, 9, 4, 5, 3, 2, 1, 0, 0, 0, 0, 0)


def _seed(*parts: str) -> int:
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


class SampleCountSource:
    """Deterministic counts derived from (job, month), stable across runs."""

    async def fetch_stage_counts(
        self, job_id: str, window: MonthWindow, status: StatusFilter
    ) -> FetchResult[StageCountsReply]:
        weights = _ACTIVE_WEIGHTS if status is StatusFilter.ACTIVE else _REJECTED_WEIGHTS
        scale = 1 + _seed(job_id, window.key) % 3
        stages = {str(code_for_stage(stage)): w * scale for stage, w in zip(ALL_STAGES, weights) if w}
        return FetchResult(StageCountsReply(total=sum(stages.values()), stages=stages))

    async def fetch_channel_count(
        self,
        job_id: str,
        window: MonthWindow,
        source_category: str,
        source_name: str,
        status: StatusFilter,
    ) -> FetchResult[int]:
        base = _seed(job_id, window.key, source_category, source_name) % 12
        return FetchResult(base if status is StatusFilter.ACTIVE else base // 4)

    async def probe(self) -> FetchResult[bool]:
        return FetchResult(True)
