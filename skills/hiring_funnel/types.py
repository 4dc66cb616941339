"""Public typed contracts for hiring_funnel."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Generic, Literal, Mapping, Optional, TypeVar

from skills.hiring_funnel.taxonomy import Channel

T = TypeVar("T")

MonthOrder = Literal["newest_first", "oldest_first"]


class StatusFilter(int, Enum):
    ACTIVE = -1
    REJECTED = 1


class FailureKind(str, Enum):
    AUTH = "auth"
    TRANSPORT = "transport"


def iso_millis(dt: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a trailing Z."""
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


@dataclass(frozen=True, slots=True)
class Job:
    id: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class MonthWindow:
    key: str
    label: str
    start: datetime
    end: datetime

    @property
    def start_iso(self) -> str:
        return iso_millis(self.start)

    @property
    def end_iso(self) -> str:
        return iso_millis(self.end)


@dataclass(frozen=True, slots=True)
class StageCountsReply:
    total: int = 0
    stages: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Payload of a remote read plus the reason it is empty, if it failed."""

    value: T
    failure: Optional[FailureKind] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True, slots=True)
class ChannelCount:
    channel: Channel
    active: int
    rejected: int


@dataclass(frozen=True, slots=True)
class ChannelRecord:
    name: str
    category: str
    source_name: str
    active: int
    rejected: int
    total: int
    percentage: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "sourceName": self.source_name,
            "value": self.total,
            "active": self.active,
            "rejected": self.rejected,
            "percentage": self.percentage,
        }


@dataclass(frozen=True, slots=True)
class PipelineStageRow:
    stage: str
    active: int
    rejected: int


@dataclass(frozen=True, slots=True)
class StageConversionRate:
    selection_rate: str
    rejection_rate: str


@dataclass(frozen=True, slots=True)
class MonthlyMetrics:
    month: str
    month_key: str
    start: datetime
    end: datetime
    total_applicants: int
    processed: int
    scheduled: int
    attended: int
    no_show: int
    l1_select: int
    l1_reject: int
    l2_scheduled: int
    l2_selected: int
    l2_rejected: int
    total_rejected: int
    total_offers: int
    active_pipeline: int
    offer: int
    processed_to_scheduled: str
    l1_no_show_rate: str
    l1_rejection_rate: str
    l2_rejection_rate: str
    offer_percentage: str
    channel_data: tuple[ChannelRecord, ...]
    pipeline_stages: tuple[PipelineStageRow, ...]
    stage_conversion_rates: Mapping[str, StageConversionRate]

    def __post_init__(self) -> None:
        if not isinstance(self.stage_conversion_rates, MappingProxyType):
            object.__setattr__(self, "stage_conversion_rates", MappingProxyType(dict(self.stage_conversion_rates)))

    def to_dict(self) -> dict[str, Any]:
        """camelCase payload consumed by the dashboard."""
        return {
            "month": self.month,
            "monthKey": self.month_key,
            "startDate": iso_millis(self.start),
            "endDate": iso_millis(self.end),
            "totalApplicants": self.total_applicants,
            "processed": self.processed,
            "scheduled": self.scheduled,
            "attended": self.attended,
            "noShow": self.no_show,
            "l1Select": self.l1_select,
            "l1Reject": self.l1_reject,
            "l2Scheduled": self.l2_scheduled,
            "l2Selected": self.l2_selected,
            "l2Rejected": self.l2_rejected,
            "totalRejected": self.total_rejected,
            "totalOffers": self.total_offers,
            "activePipeline": self.active_pipeline,
            "offer": self.offer,
            "processedToScheduled": self.processed_to_scheduled,
            "l1NoShowRate": self.l1_no_show_rate,
            "l1RejectionRate": self.l1_rejection_rate,
            "l2RejectionRate": self.l2_rejection_rate,
            "offerPercentage": self.offer_percentage,
            "channelData": [c.to_dict() for c in self.channel_data],
            "pipelineStages": [
                {"stage": row.stage, "active": row.active, "rejected": row.rejected} for row in self.pipeline_stages
            ],
            "stageConversionRates": {
                stage: {"selectionRate": rate.selection_rate, "rejectionRate": rate.rejection_rate}
                for stage, rate in self.stage_conversion_rates.items()
            },
        }


@dataclass(slots=True)
class DegradedSignal:
    """Failures observed underneath a run, kept apart from the numbers."""

    auth_failures: int = 0
    transport_failures: int = 0
    missing_credential: bool = False
    unknown_stage_codes: set[str] = field(default_factory=set)

    @property
    def auth_degraded(self) -> bool:
        return self.missing_credential or self.auth_failures > 0

    @property
    def degraded(self) -> bool:
        return self.auth_degraded or self.transport_failures > 0

    def record(self, result: FetchResult[Any]) -> None:
        if result.failure is FailureKind.AUTH:
            self.auth_failures += 1
        elif result.failure is FailureKind.TRANSPORT:
            self.transport_failures += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "degraded": self.degraded,
            "authDegraded": self.auth_degraded,
            "authFailures": self.auth_failures,
            "transportFailures": self.transport_failures,
            "missingCredential": self.missing_credential,
            "unknownStageCodes": sorted(self.unknown_stage_codes),
        }


@dataclass(slots=True)
class DashboardResult:
    months: tuple[MonthlyMetrics, ...]
    degraded: DegradedSignal
    order: MonthOrder = "newest_first"
    cancelled: bool = False
    run_id: str = ""
    combined: Optional[MonthlyMetrics] = None
    artifacts: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "order": self.order,
            "cancelled": self.cancelled,
            "months": [m.to_dict() for m in self.months],
            "combined": self.combined.to_dict() if self.combined is not None else None,
            "degraded": self.degraded.to_dict(),
        }
