"""Stage taxonomy and channel set for the ATS candidate pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Stage(str, Enum):
    POOL = "Pool"
    HR_SCREENING = "HR Screening"
    XOBIN_TEST = "Xobin Test"
    L1_INTERVIEW = "L1 Interview"
    L2_INTERVIEW = "L2 Interview"
    FINAL_ROUND = "Final Round"
    HR_ROUND = "HR Round"
    PRE_OFFER_DOCUMENTATION = "Pre Offer Documentation"
    OFFER_APPROVAL = "Offer Approval"
    OFFER = "Offer"
    NURTURING_CAMPAIGN = "Nurturing Campaign"
    HIRED = "Hired"
    REJECT = "Reject"


REJECT_CODE = 1

STAGE_BY_CODE: dict[int, Stage] = {
    0: Stage.POOL,
    14: Stage.HR_SCREENING,
    15: Stage.XOBIN_TEST,
    9: Stage.L1_INTERVIEW,
    10: Stage.L2_INTERVIEW,
    11: Stage.FINAL_ROUND,
    16: Stage.HR_ROUND,
    17: Stage.PRE_OFFER_DOCUMENTATION,
    18: Stage.OFFER_APPROVAL,
    5: Stage.OFFER,
    19: Stage.NURTURING_CAMPAIGN,
    6: Stage.HIRED,
    REJECT_CODE: Stage.REJECT,
}

CODE_BY_STAGE: dict[Stage, int] = {stage: code for code, stage in STAGE_BY_CODE.items()}

# Funnel order. Reject is a pseudo-stage and never part of it.
ALL_STAGES: tuple[Stage, ...] = (
    Stage.POOL,
    Stage.HR_SCREENING,
    Stage.XOBIN_TEST,
    Stage.L1_INTERVIEW,
    Stage.L2_INTERVIEW,
    Stage.FINAL_ROUND,
    Stage.HR_ROUND,
    Stage.PRE_OFFER_DOCUMENTATION,
    Stage.OFFER_APPROVAL,
    Stage.OFFER,
    Stage.NURTURING_CAMPAIGN,
    Stage.HIRED,
)

L1_SCHEDULE_STAGES: tuple[Stage, ...] = ALL_STAGES[ALL_STAGES.index(Stage.L1_INTERVIEW):]
L2_SELECT_STAGES: tuple[Stage, ...] = ALL_STAGES[ALL_STAGES.index(Stage.FINAL_ROUND):]
OFFER_STAGES: tuple[Stage, ...] = (Stage.OFFER, Stage.NURTURING_CAMPAIGN, Stage.HIRED)


class UnknownStageCode(ValueError):
    """Raised when the ATS reports a stage code outside the fixed table."""

    def __init__(self, code: object):
        super().__init__(f"Unknown stage code: {code!r}")
        self.code = code


def stage_for_code(code: int | str) -> Stage:
    """Map a raw stage code (int or its string form) to a Stage."""
    try:
        key = int(str(code).strip())
    except ValueError as exc:
        raise UnknownStageCode(code) from exc
    stage = STAGE_BY_CODE.get(key)
    if stage is None:
        raise UnknownStageCode(code)
    return stage


def code_for_stage(stage: Stage) -> int:
    return CODE_BY_STAGE[stage]


def stages_after(stage: Stage) -> tuple[Stage, ...]:
    """Stages strictly later than `stage` in funnel order."""
    if stage not in ALL_STAGES:
        raise ValueError(f"{stage.value} is not a funnel stage")
    return ALL_STAGES[ALL_STAGES.index(stage) + 1:]


class SourceCategory(str, Enum):
    JOB_BOARDS = "JobBoards"
    REFERRAL = "Referral"
    RECRUITMENT_PARTNERS = "RecruitmentPartners"
    CAREER_PAGE = "CareerPage"


@dataclass(frozen=True, slots=True)
class Channel:
    category: SourceCategory
    source_name: str = ""

    @property
    def label(self) -> str:
        # An empty source name means "any source in the category".
        if not self.source_name:
            return self.category.value
        return self.source_name[:1].upper() + self.source_name[1:]


CHANNELS: tuple[Channel, ...] = (
    Channel(SourceCategory.JOB_BOARDS, "naukri"),
    Channel(SourceCategory.JOB_BOARDS, "linkedin"),
    Channel(SourceCategory.REFERRAL, "referral"),
    Channel(SourceCategory.RECRUITMENT_PARTNERS, ""),
    Channel(SourceCategory.CAREER_PAGE, "CareerPage"),
)
