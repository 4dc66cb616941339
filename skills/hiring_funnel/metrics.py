"""Fold raw stage/channel counts into monthly funnel metrics."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

from skills.hiring_funnel.taxonomy import (
    ALL_STAGES,
    L1_SCHEDULE_STAGES,
    L2_SELECT_STAGES,
    OFFER_STAGES,
    Channel,
    SourceCategory,
    Stage,
    UnknownStageCode,
    stage_for_code,
    stages_after,
)
from skills.hiring_funnel.types import (
    ChannelCount,
    ChannelRecord,
    DegradedSignal,
    MonthlyMetrics,
    MonthWindow,
    PipelineStageRow,
    StageConversionRate,
    StageCountsReply,
)

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def pct(num: int, den: int) -> str:
    if den <= 0 or num <= 0:
        return "0%"
    return f"{min(100, _round_half_up(num / den * 100.0))}%"


@dataclass(slots=True)
class StageTotals:
    active: dict[Stage, int] = field(default_factory=dict)
    rejected: dict[Stage, int] = field(default_factory=dict)

    def a(self, stage: Stage) -> int:
        return self.active.get(stage, 0)

    def r(self, stage: Stage) -> int:
        return self.rejected.get(stage, 0)

    def add_active(self, stage: Stage, count: int) -> None:
        self.active[stage] = self.active.get(stage, 0) + count

    def add_rejected(self, stage: Stage, count: int) -> None:
        self.rejected[stage] = self.rejected.get(stage, 0) + count

    def sum_active(self, stages: Iterable[Stage]) -> int:
        return sum(self.a(s) for s in stages)

    def sum_rejected(self, stages: Iterable[Stage]) -> int:
        return sum(self.r(s) for s in stages)


def _coerce_count(raw: object) -> int:
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    return max(0, value)


def _fold_reply(
    reply: StageCountsReply,
    add: Callable[[Stage, int], None],
    degraded: Optional[DegradedSignal],
) -> None:
    for code, raw_count in reply.stages.items():
        try:
            stage = stage_for_code(code)
        except UnknownStageCode:
            logger.warning("[STAGE UNKNOWN] code=%s count=%s", code, raw_count)
            if degraded is not None:
                degraded.unknown_stage_codes.add(str(code))
            continue
        if stage is Stage.REJECT:
            continue
        add(stage, _coerce_count(raw_count))


def merge_stage_replies(
    replies: Iterable[tuple[StageCountsReply, StageCountsReply]],
    degraded: Optional[DegradedSignal] = None,
) -> StageTotals:
    """Sum per-job (active, rejected) replies into one set of stage totals."""
    totals = StageTotals()
    for active_reply, rejected_reply in replies:
        _fold_reply(active_reply, totals.add_active, degraded)
        _fold_reply(rejected_reply, totals.add_rejected, degraded)
    return totals


def build_pipeline_stages(totals: StageTotals) -> tuple[PipelineStageRow, ...]:
    return tuple(PipelineStageRow(stage=s.value, active=totals.a(s), rejected=totals.r(s)) for s in ALL_STAGES)


def compute_stage_conversion_rates(totals: StageTotals) -> dict[str, StageConversionRate]:
    rates: dict[str, StageConversionRate] = {}
    for stage in ALL_STAGES:
        later = stages_after(stage)
        selection = totals.sum_active(later) + totals.sum_rejected(later)
        rejection = totals.r(stage)
        total = selection + rejection
        rates[stage.value] = StageConversionRate(
            selection_rate=pct(selection, total),
            rejection_rate=pct(rejection, total),
        )
    return rates


def build_channel_records(channel_counts: Sequence[ChannelCount], total_applicants: int) -> tuple[ChannelRecord, ...]:
    records: list[ChannelRecord] = []
    for item in channel_counts:
        total = item.active + item.rejected
        records.append(
            ChannelRecord(
                name=item.channel.label,
                category=item.channel.category.value,
                source_name=item.channel.source_name,
                active=item.active,
                rejected=item.rejected,
                total=total,
                percentage=pct(total, total_applicants),
            )
        )
    return tuple(records)


def compute_monthly_metrics(
    window: MonthWindow,
    totals: StageTotals,
    channel_counts: Sequence[ChannelCount] = (),
) -> MonthlyMetrics:
    total_applicants = totals.sum_active(ALL_STAGES) + totals.sum_rejected(ALL_STAGES)

    processed = (
        totals.a(Stage.POOL)
        + totals.a(Stage.HR_SCREENING)
        + totals.r(Stage.POOL)
        + totals.r(Stage.HR_SCREENING)
    )
    scheduled = totals.sum_active(L1_SCHEDULE_STAGES) + totals.sum_rejected(L1_SCHEDULE_STAGES)
    attended = scheduled - totals.a(Stage.L1_INTERVIEW)
    # Equals A[L1 Interview].
    no_show = scheduled - attended

    l2_selected = totals.sum_active(L2_SELECT_STAGES)
    l1_select = l2_selected + totals.a(Stage.L2_INTERVIEW) + totals.r(Stage.L2_INTERVIEW)
    l2_scheduled = l1_select
    l1_reject = totals.r(Stage.L1_INTERVIEW)
    l2_rejected = totals.r(Stage.L2_INTERVIEW)

    total_rejected = totals.sum_rejected(ALL_STAGES)
    offer = totals.a(Stage.OFFER)
    total_offers = totals.sum_active(OFFER_STAGES)
    active_pipeline = abs(totals.sum_active(ALL_STAGES) - total_offers)

    return MonthlyMetrics(
        month=window.label,
        month_key=window.key,
        start=window.start,
        end=window.end,
        total_applicants=total_applicants,
        processed=processed,
        scheduled=scheduled,
        attended=attended,
        no_show=no_show,
        l1_select=l1_select,
        l1_reject=l1_reject,
        l2_scheduled=l2_scheduled,
        l2_selected=l2_selected,
        l2_rejected=l2_rejected,
        total_rejected=total_rejected,
        total_offers=total_offers,
        active_pipeline=active_pipeline,
        offer=offer,
        processed_to_scheduled=pct(scheduled, total_applicants),
        l1_no_show_rate=pct(no_show, scheduled),
        l1_rejection_rate=pct(l1_reject, scheduled),
        l2_rejection_rate=pct(l2_rejected, l2_scheduled),
        offer_percentage=pct(offer, scheduled),
        channel_data=build_channel_records(channel_counts, total_applicants),
        pipeline_stages=build_pipeline_stages(totals),
        stage_conversion_rates=compute_stage_conversion_rates(totals),
    )


def empty_monthly_metrics(window: MonthWindow) -> MonthlyMetrics:
    return compute_monthly_metrics(window, StageTotals(), ())


def combine_months(months: Sequence[MonthlyMetrics], label: str = "All") -> Optional[MonthlyMetrics]:
    """Roll several months into one record, recomputing every rate from the summed counts."""
    if not months:
        return None

    totals = StageTotals()
    by_stage = {s.value: s for s in ALL_STAGES}
    for month in months:
        for row in month.pipeline_stages:
            stage = by_stage.get(row.stage)
            if stage is None:
                continue
            totals.add_active(stage, row.active)
            totals.add_rejected(stage, row.rejected)

    channel_sums: dict[tuple[str, str], list[int]] = {}
    for month in months:
        for rec in month.channel_data:
            bucket = channel_sums.setdefault((rec.category, rec.source_name), [0, 0])
            bucket[0] += rec.active
            bucket[1] += rec.rejected
    channel_counts = [
        ChannelCount(channel=Channel(SourceCategory(category), source_name), active=a, rejected=r)
        for (category, source_name), (a, r) in channel_sums.items()
    ]

    start = min(m.start for m in months)
    end = max(m.end for m in months)
    first_key = min(m.month_key for m in months)
    last_key = max(m.month_key for m in months)
    window = MonthWindow(key=f"{first_key}..{last_key}", label=label, start=start, end=end)
    return compute_monthly_metrics(window, totals, channel_counts)
