"""
Step tables for the legal case types.

Each case type follows a fixed, ordered sequence of steps. The tables here are
pure data; the transition rules live in caseflow.legal.workflow.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from caseflow.legal.errors import UnknownStep


class LegalCaseType(str, Enum):
    """Workflow families a legal case can belong to."""

    OVERSTAY_APPEAL = "overstay_appeal"
    PROHIBITED_PERSONS = "prohibited_persons"  # V-list
    HIGH_COURT_EXPEDITION = "high_court_expedition"
    APPEALS_8_4 = "appeals_8_4"
    APPEALS_8_6 = "appeals_8_6"


class LegalCaseStatus(str, Enum):
    """Status of a legal case."""

    ACTIVE = "active"
    CLOSED = "closed"
    LOST = "lost"
    SETTLED = "settled"
    APPEALING = "appealing"
    ON_HOLD = "on_hold"


TERMINAL_STATUSES = frozenset({
    LegalCaseStatus.CLOSED,
    LegalCaseStatus.LOST,
    LegalCaseStatus.SETTLED,
})


class StepStatus(str, Enum):
    """Status of a single workflow step."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class CasePriority(str, Enum):
    """Priority levels for cases."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class OverstayAppealStep(IntEnum):
    REACH_OUT = 1
    PREPARE_APPLICATION = 2
    SUBMIT_APPLICATION = 3
    FOLLOW_UPS = 4
    OUTCOME = 5


class ProhibitedPersonsStep(IntEnum):
    REACH_OUT = 1
    PREPARE_APPLICATION = 2
    SUBMISSION = 3
    FOLLOW_UPS = 4
    OUTCOME = 5


class HighCourtStep(IntEnum):
    LETTER_OF_DEMAND = 1
    FOUNDING_AFFIDAVIT = 2
    COMMISSIONER_OF_OATHS = 3
    ISSUING_AT_HIGH_COURT = 4
    SHERIFF = 5
    RETURN_OF_SERVICE = 6
    SETTLEMENT_AGREEMENT = 7
    HIGH_COURT = 8
    COMPLETE = 9


class Section8AppealStep(IntEnum):
    """Steps shared by section 8(4) and 8(6) appeals."""

    REACH_OUT = 1
    PREPARE_APPEAL = 2
    SUBMIT_AT_VFS = 3
    FOLLOW_UPS = 4
    OUTCOME = 5


OVERSTAY_APPEAL_STEPS: dict[int, str] = {
    OverstayAppealStep.REACH_OUT: "Reach Out to Client",
    OverstayAppealStep.PREPARE_APPLICATION: "Prepare Application (Drafting)",
    OverstayAppealStep.SUBMIT_APPLICATION: "Submit Application",
    OverstayAppealStep.FOLLOW_UPS: "Follow ups with DHA",
    OverstayAppealStep.OUTCOME: "Outcome",
}

PROHIBITED_PERSONS_STEPS: dict[int, str] = {
    ProhibitedPersonsStep.REACH_OUT: "Reach Out to Client",
    ProhibitedPersonsStep.PREPARE_APPLICATION: "Prepare Application (Drafting)",
    ProhibitedPersonsStep.SUBMISSION: "Submission",
    ProhibitedPersonsStep.FOLLOW_UPS: "Follow ups with DHA",
    ProhibitedPersonsStep.OUTCOME: "Outcome",
}

HIGH_COURT_STEPS: dict[int, str] = {
    HighCourtStep.LETTER_OF_DEMAND: "Letter of Demand",
    HighCourtStep.FOUNDING_AFFIDAVIT: "Founding Affidavit (Drafting)",
    HighCourtStep.COMMISSIONER_OF_OATHS: "Commissioner of Oaths",
    HighCourtStep.ISSUING_AT_HIGH_COURT: "Issuing at the High Court",
    HighCourtStep.SHERIFF: "Sheriff",
    HighCourtStep.RETURN_OF_SERVICE: "Return of Service",
    HighCourtStep.SETTLEMENT_AGREEMENT: "Settlement / Agreement",
    HighCourtStep.HIGH_COURT: "High Court",
    HighCourtStep.COMPLETE: "Complete",
}

SECTION_8_APPEAL_STEPS: dict[int, str] = {
    Section8AppealStep.REACH_OUT: "Reach Out to Client",
    Section8AppealStep.PREPARE_APPEAL: "Prepare Appeal (Drafting)",
    Section8AppealStep.SUBMIT_AT_VFS: "Submit Appeal at VFS Centre",
    Section8AppealStep.FOLLOW_UPS: "Follow ups with DHA",
    Section8AppealStep.OUTCOME: "Outcome",
}

CASE_TYPE_LABELS: dict[LegalCaseType, str] = {
    LegalCaseType.OVERSTAY_APPEAL: "Overstay Appeal",
    LegalCaseType.PROHIBITED_PERSONS: "Prohibited Persons (V-list)",
    LegalCaseType.HIGH_COURT_EXPEDITION: "High Court/Expedition",
    LegalCaseType.APPEALS_8_4: "Appeals 8(4)",
    LegalCaseType.APPEALS_8_6: "Appeals 8(6)",
}

# Case reference prefix by type
CASE_PREFIXES: dict[LegalCaseType, str] = {
    LegalCaseType.OVERSTAY_APPEAL: "OA",
    LegalCaseType.PROHIBITED_PERSONS: "PP",
    LegalCaseType.HIGH_COURT_EXPEDITION: "HC",
    LegalCaseType.APPEALS_8_4: "A84",
    LegalCaseType.APPEALS_8_6: "A86",
}

VFS_CENTERS = (
    "Johannesburg",
    "Cape Town",
    "Durban",
    "Pretoria",
    "Port Elizabeth",
    "Bloemfontein",
    "Nelspruit",
    "Polokwane",
)

SECTION_8_TYPES = frozenset({LegalCaseType.APPEALS_8_4, LegalCaseType.APPEALS_8_6})


@dataclass(frozen=True)
class StepDefinition:
    """A named step in a case type's workflow."""

    step_id: int
    name: str
    is_outcome: bool = False
    is_settlement: bool = False
    is_terminal: bool = False
    side_effect: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "name": self.name,
            "is_outcome": self.is_outcome,
            "is_settlement": self.is_settlement,
            "is_terminal": self.is_terminal,
            "side_effect": self.side_effect,
        }


def _step_table(case_type: LegalCaseType) -> dict[int, str]:
    if case_type == LegalCaseType.OVERSTAY_APPEAL:
        return OVERSTAY_APPEAL_STEPS
    if case_type == LegalCaseType.PROHIBITED_PERSONS:
        return PROHIBITED_PERSONS_STEPS
    if case_type == LegalCaseType.HIGH_COURT_EXPEDITION:
        return HIGH_COURT_STEPS
    if case_type in SECTION_8_TYPES:
        return SECTION_8_APPEAL_STEPS
    raise ValueError(f"Unknown case type: {case_type}")


def terminal_step_for(case_type: LegalCaseType) -> int:
    """Last step of the case type's workflow."""
    return int(max(_step_table(LegalCaseType(case_type))))


def outcome_step_for(case_type: LegalCaseType) -> Optional[int]:
    """Step at which an approved/rejected or success/lost outcome is recorded."""
    case_type = LegalCaseType(case_type)
    if case_type == LegalCaseType.HIGH_COURT_EXPEDITION:
        return None
    return terminal_step_for(case_type)


def settlement_step_for(case_type: LegalCaseType) -> Optional[int]:
    """Settlement decision step; only High Court cases have one."""
    if LegalCaseType(case_type) == LegalCaseType.HIGH_COURT_EXPEDITION:
        return int(HighCourtStep.SETTLEMENT_AGREEMENT)
    return None


def valid_outcomes_for(case_type: LegalCaseType) -> tuple[str, ...]:
    """Outcome values accepted at the outcome step."""
    case_type = LegalCaseType(case_type)
    if case_type == LegalCaseType.PROHIBITED_PERSONS:
        return ("success", "lost")
    if case_type == LegalCaseType.HIGH_COURT_EXPEDITION:
        return ()
    return ("approved", "rejected")


def side_effect_for(case_type: LegalCaseType, step_number: int) -> Optional[str]:
    """Side-effect action required when a case enters the given step."""
    case_type = LegalCaseType(case_type)
    if case_type == LegalCaseType.OVERSTAY_APPEAL and step_number == OverstayAppealStep.SUBMIT_APPLICATION:
        return "email_submission"
    if case_type in SECTION_8_TYPES and step_number == Section8AppealStep.SUBMIT_AT_VFS:
        return "vfs_submission"
    return None


def get_steps(case_type: LegalCaseType) -> list[StepDefinition]:
    """
    Get the ordered step table for a case type.

    Args:
        case_type: LegalCaseType enum value or its string form

    Returns:
        StepDefinitions ordered by step_id
    """
    case_type = LegalCaseType(case_type)
    table = _step_table(case_type)
    terminal = terminal_step_for(case_type)
    outcome = outcome_step_for(case_type)
    settlement = settlement_step_for(case_type)

    return [
        StepDefinition(
            step_id=int(step_id),
            name=name,
            is_outcome=step_id == outcome,
            is_settlement=step_id == settlement,
            is_terminal=step_id == terminal,
            side_effect=side_effect_for(case_type, step_id),
        )
        for step_id, name in sorted(table.items())
    ]


def get_step_name(case_type: LegalCaseType, step_number: int) -> str:
    """
    Get the name of a step.

    Raises:
        UnknownStep: If step_number is outside the case type's table
    """
    table = _step_table(LegalCaseType(case_type))
    try:
        return table[step_number]
    except KeyError:
        raise UnknownStep(
            f"Step {step_number} does not exist for {LegalCaseType(case_type).value} "
            f"(valid steps: 1-{len(table)})"
        ) from None
