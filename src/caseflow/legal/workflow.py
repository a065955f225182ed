"""
Legal case workflow engine.

Transitions are pure functions: each takes a case snapshot and returns a
TransitionResult holding either a new snapshot or the reason the transition
was rejected. Nothing here performs I/O; persistence and side-effect delivery
belong to the caller.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from caseflow.config import settings
from caseflow.legal.deadlines import (
    NOTIFICATION_PERIOD,
    SETTLEMENT_WINDOW,
    next_deadline_for,
)
from caseflow.legal.errors import (
    AppealNotAllowed,
    CannotAdvance,
    InvalidOutcome,
    InvalidTransition,
    WorkflowError,
)
from caseflow.legal.models import (
    AppealRecord,
    HighCourtData,
    LegalCase,
    OverstayAppealData,
    ProhibitedPersonsData,
    Section8AppealData,
    WorkflowConstraint,
    utcnow,
    workflow_data_from_dict,
)
from caseflow.legal.steps import (
    CASE_TYPE_LABELS,
    SECTION_8_TYPES,
    VFS_CENTERS,
    CasePriority,
    HighCourtStep,
    LegalCaseStatus,
    LegalCaseType,
    StepStatus,
    outcome_step_for,
    settlement_step_for,
    side_effect_for,
    terminal_step_for,
    valid_outcomes_for,
)

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    """Result of a workflow transition."""

    success: bool
    case: LegalCase
    previous_step: int
    current_step: int
    message: str = ""
    next_actions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    requires_action: Optional[str] = None  # Side effect the caller must deliver
    error: Optional[WorkflowError] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "case": self.case.to_dict(),
            "previous_step": self.previous_step,
            "current_step": self.current_step,
            "message": self.message,
            "next_actions": list(self.next_actions),
            "warnings": list(self.warnings),
            "requires_action": self.requires_action,
        }


@dataclass
class AppealResult:
    """Result of triggering an appeal: the updated parent and the new appeal case."""

    success: bool
    parent: LegalCase
    appeal_case: Optional[LegalCase] = None
    message: str = ""
    error: Optional[WorkflowError] = None


@dataclass
class StepProgress:
    completed: int
    total: int
    percentage: int

    def to_dict(self) -> dict[str, int]:
        return {
            "completed": self.completed,
            "total": self.total,
            "percentage": self.percentage,
        }


def _reject(case: LegalCase, error: WorkflowError, operation: str) -> TransitionResult:
    logger.info(f"Rejected {operation} on case {case.case_reference or case.case_id}: {error}")
    return TransitionResult(
        success=False,
        case=case,
        previous_step=case.current_step,
        current_step=case.current_step,
        message=error.message,
        error=error,
    )


def _label(case: LegalCase) -> str:
    return CASE_TYPE_LABELS[case.case_type]


def _next_actions(case: LegalCase) -> list[str]:
    """Actions available to the user at the case's current state."""
    if case.case_status == LegalCaseStatus.LOST and case.case_type == LegalCaseType.PROHIBITED_PERSONS:
        return ["Trigger appeal"]
    if case.case_status != LegalCaseStatus.ACTIVE:
        return []

    step = case.current_step
    if step == outcome_step_for(case.case_type):
        return [f"Record outcome ({' or '.join(valid_outcomes_for(case.case_type))})"]
    if step == settlement_step_for(case.case_type):
        return ["Record settlement decision (settled or not settled)"]
    if case.case_type == LegalCaseType.HIGH_COURT_EXPEDITION and step >= HighCourtStep.HIGH_COURT:
        return ["Record judgment and complete the case"]

    actions = [f"Complete step {step}: {case.current_step_name}"]
    effect = side_effect_for(case.case_type, step)
    if effect == "email_submission" and not case.workflow_data.email_submission_sent:
        actions.append("Send submission email to DHA")
    elif effect == "vfs_submission" and case.workflow_data.vfs_submission_date is None:
        actions.append("Submit appeal at a VFS centre")
    return actions


def _complete_entry(
    case: LegalCase,
    step_id: int,
    now: datetime,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> None:
    entry = case.get_history_entry(step_id)
    entry.status = StepStatus.COMPLETED
    entry.started_at = entry.started_at or now
    entry.completed_at = now
    if notes:
        entry.notes = notes
    if performed_by:
        entry.performed_by = performed_by


def _start_entry(case: LegalCase, step_id: int, now: datetime) -> None:
    entry = case.get_history_entry(step_id)
    entry.status = StepStatus.IN_PROGRESS
    entry.started_at = now


def create_legal_case(
    case_type: LegalCaseType,
    case_title: str,
    client_name: str,
    client_email: Optional[str] = None,
    client_phone: Optional[str] = None,
    client_id: Optional[int] = None,
    priority: CasePriority = CasePriority.MEDIUM,
    assigned_case_manager_id: Optional[int] = None,
    assigned_case_manager_name: Optional[str] = None,
    assigned_paralegal_id: Optional[int] = None,
    assigned_paralegal_name: Optional[str] = None,
    notes: Optional[str] = None,
    tags: Optional[list[str]] = None,
    workflow_data: Optional[dict[str, Any]] = None,
    parent_case_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> LegalCase:
    """
    Build a new case at step 1.

    The case has no id or reference yet; the repository assigns both on
    insert. High Court cases open the Letter of Demand notification period
    immediately.

    Args:
        case_type: Workflow family of the case
        case_title: Short description
        client_name: Client the case is for
        workflow_data: Optional overrides for the type-specific payload

    Returns:
        The new LegalCase
    """
    now = now or utcnow()
    case_type = LegalCaseType(case_type)

    case = LegalCase(
        case_type=case_type,
        case_title=case_title,
        case_status=LegalCaseStatus.ACTIVE,
        client_id=client_id,
        client_name=client_name,
        client_email=client_email,
        client_phone=client_phone,
        assigned_case_manager_id=assigned_case_manager_id,
        assigned_case_manager_name=assigned_case_manager_name,
        assigned_paralegal_id=assigned_paralegal_id,
        assigned_paralegal_name=assigned_paralegal_name,
        current_step=1,
        workflow_data=workflow_data_from_dict(
            {**(workflow_data or {}), "type": case_type.value}, case_type
        ),
        parent_case_id=parent_case_id,
        created_at=now,
        updated_at=now,
        started_at=now,
        priority=CasePriority(priority),
        notes=notes,
        tags=list(tags or []),
    )

    if case_type == LegalCaseType.HIGH_COURT_EXPEDITION:
        data: HighCourtData = case.workflow_data
        period_end = now + timedelta(days=settings.notification_period_days)
        data.letter_of_demand_date = data.letter_of_demand_date or now
        data.notification_period_start = now
        data.notification_period_end = period_end
        case.constraints.append(
            WorkflowConstraint(
                key=NOTIFICATION_PERIOD,
                description=f"{settings.notification_period_days}-day notification period after Letter of Demand",
                value={"days": settings.notification_period_days},
                due_date=period_end,
            )
        )
        case.next_deadline = period_end

    logger.info(f"Built {case_type.value} case '{case_title}' for {client_name}")
    return case


def advance_step(
    case: LegalCase,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Complete the current step and move to the next one.

    Outcome and settlement steps are decided through set_outcome and
    set_settlement, never advanced past directly.
    """
    now = now or utcnow()
    step = case.current_step

    if case.case_status != LegalCaseStatus.ACTIVE:
        return _reject(
            case,
            CannotAdvance(f"Case is {case.case_status.value}; only active cases can advance"),
            "advance",
        )
    if step == outcome_step_for(case.case_type):
        return _reject(
            case,
            CannotAdvance("Case is at the outcome step; record an outcome instead"),
            "advance",
        )
    if step == settlement_step_for(case.case_type):
        return _reject(
            case,
            CannotAdvance("Case is at the settlement step; record the settlement decision instead"),
            "advance",
        )
    if step >= terminal_step_for(case.case_type):
        return _reject(
            case,
            CannotAdvance(f"Case is already at the final step ({case.current_step_name})"),
            "advance",
        )

    updated = copy.deepcopy(case)
    warnings = []

    if updated.case_type == LegalCaseType.HIGH_COURT_EXPEDITION and step == HighCourtStep.LETTER_OF_DEMAND:
        data: HighCourtData = updated.workflow_data
        period_over = data.notification_period_satisfied or (
            data.notification_period_end is not None and now >= data.notification_period_end
        )
        if not period_over:
            # Extension point: hard block when the firm requires the full period
            if settings.enforce_notification_period:
                return _reject(
                    case,
                    CannotAdvance(
                        "Notification period after the Letter of Demand has not ended "
                        f"(ends {data.notification_period_end:%Y-%m-%d})"
                    ),
                    "advance",
                )
            warnings.append(
                "Advanced before the notification period ended "
                f"({data.notification_period_end:%Y-%m-%d})"
            )
        else:
            data.notification_period_satisfied = True
        constraint = updated.get_constraint(NOTIFICATION_PERIOD)
        if constraint is not None:
            constraint.is_satisfied = True
            if not period_over:
                constraint.value["advanced_before_period_end"] = True

    _complete_entry(updated, step, now, notes, performed_by)
    new_step = step + 1
    updated.current_step = new_step
    _start_entry(updated, new_step, now)

    if updated.case_type == LegalCaseType.HIGH_COURT_EXPEDITION:
        warnings.extend(_enter_high_court_step(updated, new_step, now))

    updated.next_deadline = next_deadline_for(updated)
    updated.updated_at = now

    requires_action = side_effect_for(updated.case_type, new_step)
    message = f"Advanced to step {new_step}: {updated.current_step_name}"
    logger.info(f"Case {updated.case_reference or updated.case_id}: {message}")

    return TransitionResult(
        success=True,
        case=updated,
        previous_step=step,
        current_step=new_step,
        message=message,
        next_actions=_next_actions(updated),
        warnings=warnings,
        requires_action=requires_action,
    )


def _enter_high_court_step(case: LegalCase, step: int, now: datetime) -> list[str]:
    """Apply High Court deadline rules when the case enters a step."""
    data: HighCourtData = case.workflow_data
    warnings = []

    if step == HighCourtStep.RETURN_OF_SERVICE:
        window_end = now + timedelta(days=settings.settlement_window_days)
        data.return_of_service_date = now
        data.settlement_window_end = window_end
        constraint = case.get_constraint(SETTLEMENT_WINDOW)
        if constraint is None:
            constraint = WorkflowConstraint(
                key=SETTLEMENT_WINDOW,
                description=f"{settings.settlement_window_days}-day window from Return of Service to Settlement",
                value={"days": settings.settlement_window_days},
            )
            case.constraints.append(constraint)
        constraint.due_date = window_end
        constraint.is_satisfied = False

    elif step == HighCourtStep.SETTLEMENT_AGREEMENT:
        constraint = case.get_constraint(SETTLEMENT_WINDOW)
        if data.settlement_window_end is not None and now > data.settlement_window_end:
            # Soft flag: the transition goes ahead, reporting picks up the breach
            data.settlement_window_exceeded = True
            if constraint is not None:
                constraint.is_satisfied = False
                constraint.value["exceeded"] = True
            elapsed = (now - data.return_of_service_date).days if data.return_of_service_date else None
            warnings.append(
                f"Settlement reached {elapsed} days after Return of Service "
                f"(limit {settings.settlement_window_days} days)"
            )
        elif constraint is not None:
            constraint.is_satisfied = True

    return warnings


def set_outcome(
    case: LegalCase,
    outcome: str,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Record the outcome at the outcome step.

    Overstay and section 8 appeals accept approved or rejected and close the
    case. Prohibited Persons accepts success (closed) or lost; a lost case
    may be appealed.
    """
    now = now or utcnow()
    outcome_step = outcome_step_for(case.case_type)

    if outcome_step is None:
        return _reject(
            case,
            InvalidTransition(f"{_label(case)} cases have no outcome step; use the settlement decision"),
            "set_outcome",
        )
    if case.case_status != LegalCaseStatus.ACTIVE:
        return _reject(
            case,
            InvalidTransition(f"Case already {case.case_status.value}"),
            "set_outcome",
        )
    if case.current_step != outcome_step:
        return _reject(
            case,
            InvalidTransition(
                f"Not at outcome step (current step {case.current_step}: {case.current_step_name}, "
                f"outcome step {outcome_step})"
            ),
            "set_outcome",
        )

    value = (outcome or "").strip().lower()
    valid = valid_outcomes_for(case.case_type)
    if value not in valid:
        return _reject(
            case,
            InvalidOutcome(f"Invalid outcome '{outcome}' for {_label(case)}; expected one of: {', '.join(valid)}"),
            "set_outcome",
        )

    updated = copy.deepcopy(case)
    updated.workflow_data.outcome_result = value
    _complete_entry(updated, outcome_step, now, notes, performed_by)

    if updated.case_type == LegalCaseType.PROHIBITED_PERSONS and value == "lost":
        updated.case_status = LegalCaseStatus.LOST
    else:
        updated.case_status = LegalCaseStatus.CLOSED
    updated.closed_at = now
    updated.next_deadline = None
    updated.updated_at = now

    message = f"Outcome recorded: {value}; case {updated.case_status.value}"
    logger.info(f"Case {updated.case_reference or updated.case_id}: {message}")

    return TransitionResult(
        success=True,
        case=updated,
        previous_step=case.current_step,
        current_step=updated.current_step,
        message=message,
        next_actions=_next_actions(updated),
    )


def set_settlement(
    case: LegalCase,
    settled: bool,
    amount: Optional[float] = None,
    terms: Optional[str] = None,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Record the settlement decision of a High Court case.

    A settlement closes the case at step 7 and skips the court steps. Without
    one the case moves on to the High Court proceeding.
    """
    now = now or utcnow()
    settlement_step = settlement_step_for(case.case_type)

    if settlement_step is None:
        return _reject(
            case,
            InvalidTransition(f"Settlement only applies to High Court/Expedition cases, not {_label(case)}"),
            "set_settlement",
        )
    if case.case_status != LegalCaseStatus.ACTIVE:
        return _reject(
            case,
            InvalidTransition(f"Case already {case.case_status.value}"),
            "set_settlement",
        )
    if case.current_step != settlement_step:
        return _reject(
            case,
            InvalidTransition(
                f"Not at settlement step (current step {case.current_step}: {case.current_step_name}, "
                f"settlement step {settlement_step})"
            ),
            "set_settlement",
        )

    updated = copy.deepcopy(case)
    data: HighCourtData = updated.workflow_data
    data.settlement_outcome = "settled" if settled else "not_settled"
    data.settlement_date = now
    if amount is not None:
        data.settlement_amount = amount
    if terms:
        data.settlement_terms = terms

    _complete_entry(updated, settlement_step, now, notes, performed_by)

    if settled:
        updated.case_status = LegalCaseStatus.SETTLED
        updated.closed_at = now
        for step_id in (HighCourtStep.HIGH_COURT, HighCourtStep.COMPLETE):
            updated.get_history_entry(step_id).status = StepStatus.SKIPPED
        message = "Case settled"
    else:
        updated.current_step = settlement_step + 1
        _start_entry(updated, updated.current_step, now)
        message = f"Not settled; proceeding to step {updated.current_step}: {updated.current_step_name}"

    updated.next_deadline = None if settled else next_deadline_for(updated)
    updated.updated_at = now
    logger.info(f"Case {updated.case_reference or updated.case_id}: {message}")

    return TransitionResult(
        success=True,
        case=updated,
        previous_step=case.current_step,
        current_step=updated.current_step,
        message=message,
        next_actions=_next_actions(updated),
    )


def trigger_appeal(
    parent: LegalCase,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AppealResult:
    """
    Spawn an appeal from a lost Prohibited Persons case.

    The parent stays lost and gains an AppealRecord; the appeal is a new case
    at step 1 linked through parent_case_id. Both must be persisted together.
    """
    now = now or utcnow()

    error = None
    if parent.case_type != LegalCaseType.PROHIBITED_PERSONS:
        error = AppealNotAllowed(f"Only Prohibited Persons cases can be appealed, not {_label(parent)}")
    elif parent.case_status != LegalCaseStatus.LOST:
        error = AppealNotAllowed(f"Appeal requires a lost case; case is {parent.case_status.value}")
    elif parent.workflow_data.outcome_result != "lost":
        error = AppealNotAllowed("Appeal requires a recorded lost outcome")
    elif parent.case_id is None:
        error = AppealNotAllowed("Case must be saved before it can be appealed")

    if error is not None:
        logger.info(f"Rejected appeal on case {parent.case_reference or parent.case_id}: {error}")
        return AppealResult(success=False, parent=parent, message=error.message, error=error)

    updated_parent = copy.deepcopy(parent)
    updated_parent.appeal_count += 1
    appeal_number = updated_parent.appeal_count
    parent_data: ProhibitedPersonsData = parent.workflow_data

    appeal_case = create_legal_case(
        LegalCaseType.PROHIBITED_PERSONS,
        case_title=f"{parent.case_title} - Appeal {appeal_number}",
        client_name=parent.client_name,
        client_email=parent.client_email,
        client_phone=parent.client_phone,
        client_id=parent.client_id,
        priority=parent.priority,
        assigned_case_manager_id=parent.assigned_case_manager_id,
        assigned_case_manager_name=parent.assigned_case_manager_name,
        assigned_paralegal_id=parent.assigned_paralegal_id,
        assigned_paralegal_name=parent.assigned_paralegal_name,
        notes=notes,
        tags=parent.tags,
        workflow_data={
            "vlist_reference": parent_data.vlist_reference,
            "dha_reference_number": parent_data.dha_reference_number,
            "is_appeal": True,
            "appeal_number": appeal_number,
        },
        parent_case_id=parent.case_id,
        now=now,
    )
    if parent.case_reference:
        appeal_case.case_reference = f"{parent.case_reference}-APPEAL-{appeal_number}"
    if performed_by:
        appeal_case.step_history[0].performed_by = performed_by

    updated_parent.appeals.append(
        AppealRecord(
            appeal_number=appeal_number,
            parent_case_id=parent.case_id,
            appeal_case_reference=appeal_case.case_reference or None,
            started_at=now,
            notes=notes,
        )
    )
    updated_parent.updated_at = now

    message = f"Appeal {appeal_number} created"
    logger.info(f"Case {parent.case_reference or parent.case_id}: {message}")
    return AppealResult(success=True, parent=updated_parent, appeal_case=appeal_case, message=message)


def record_email_submission(
    case: LegalCase,
    recipient: str,
    dha_reference: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Record that the Overstay Appeal submission email went out."""
    now = now or utcnow()

    if case.case_type != LegalCaseType.OVERSTAY_APPEAL:
        return _reject(
            case,
            InvalidTransition("Email submission only applies to Overstay Appeal cases"),
            "record_email_submission",
        )
    if case.case_status != LegalCaseStatus.ACTIVE:
        return _reject(
            case,
            InvalidTransition(f"Case already {case.case_status.value}"),
            "record_email_submission",
        )

    updated = copy.deepcopy(case)
    data: OverstayAppealData = updated.workflow_data
    data.email_submission_sent = True
    data.email_submission_date = now
    data.email_recipient = recipient
    if dha_reference:
        data.dha_reference_number = dha_reference
    updated.updated_at = now

    message = f"Submission email recorded to {recipient}"
    logger.info(f"Case {updated.case_reference or updated.case_id}: {message}")
    return TransitionResult(
        success=True,
        case=updated,
        previous_step=case.current_step,
        current_step=updated.current_step,
        message=message,
        next_actions=_next_actions(updated),
    )


def record_vfs_submission(
    case: LegalCase,
    vfs_center: Optional[str] = None,
    dha_reference: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Record that a section 8 appeal was lodged at a VFS centre."""
    now = now or utcnow()

    if case.case_type not in SECTION_8_TYPES:
        return _reject(
            case,
            InvalidTransition("VFS submission only applies to section 8(4) and 8(6) appeals"),
            "record_vfs_submission",
        )
    if case.case_status != LegalCaseStatus.ACTIVE:
        return _reject(
            case,
            InvalidTransition(f"Case already {case.case_status.value}"),
            "record_vfs_submission",
        )

    data: Section8AppealData = case.workflow_data
    center = vfs_center or data.vfs_center
    if center not in VFS_CENTERS:
        return _reject(
            case,
            InvalidTransition(f"Unknown VFS centre '{center}'; expected one of: {', '.join(VFS_CENTERS)}"),
            "record_vfs_submission",
        )

    updated = copy.deepcopy(case)
    data = updated.workflow_data
    data.vfs_center = center
    data.vfs_submission_date = now
    if dha_reference:
        data.dha_reference_number = dha_reference
    updated.updated_at = now

    message = f"Appeal {data.section} submitted at VFS {center}"
    logger.info(f"Case {updated.case_reference or updated.case_id}: {message}")
    return TransitionResult(
        success=True,
        case=updated,
        previous_step=case.current_step,
        current_step=updated.current_step,
        message=message,
        next_actions=_next_actions(updated),
    )


def mark_notification_period_satisfied(
    case: LegalCase,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Manually mark the Letter of Demand notification period as satisfied."""
    now = now or utcnow()

    if case.case_type != LegalCaseType.HIGH_COURT_EXPEDITION:
        return _reject(
            case,
            InvalidTransition("Notification period only applies to High Court/Expedition cases"),
            "mark_notification_period_satisfied",
        )

    updated = copy.deepcopy(case)
    updated.workflow_data.notification_period_satisfied = True
    constraint = updated.get_constraint(NOTIFICATION_PERIOD)
    if constraint is not None:
        constraint.is_satisfied = True
        constraint.value["overridden"] = True
    updated.next_deadline = next_deadline_for(updated)
    updated.updated_at = now

    message = "Notification period marked as satisfied"
    logger.info(f"Case {updated.case_reference or updated.case_id}: {message}")
    return TransitionResult(
        success=True,
        case=updated,
        previous_step=case.current_step,
        current_step=updated.current_step,
        message=message,
        next_actions=_next_actions(updated),
    )


def complete_high_court_case(
    case: LegalCase,
    judgment_outcome: str,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Record the judgment of an unsettled High Court case and close it."""
    now = now or utcnow()

    if case.case_type != LegalCaseType.HIGH_COURT_EXPEDITION:
        return _reject(
            case,
            InvalidTransition("Completion by judgment only applies to High Court/Expedition cases"),
            "complete_high_court_case",
        )
    if case.case_status != LegalCaseStatus.ACTIVE:
        return _reject(
            case,
            InvalidTransition(f"Case already {case.case_status.value}"),
            "complete_high_court_case",
        )
    if case.current_step < HighCourtStep.HIGH_COURT:
        return _reject(
            case,
            InvalidTransition(
                f"Case has not reached the High Court step (current step {case.current_step}: "
                f"{case.current_step_name})"
            ),
            "complete_high_court_case",
        )

    updated = copy.deepcopy(case)
    data: HighCourtData = updated.workflow_data
    data.judgment_outcome = judgment_outcome
    data.final_judgment_date = now

    _complete_entry(updated, HighCourtStep.HIGH_COURT, now, notes, performed_by)
    _complete_entry(updated, HighCourtStep.COMPLETE, now, None, performed_by)
    updated.current_step = int(HighCourtStep.COMPLETE)
    updated.case_status = LegalCaseStatus.CLOSED
    updated.closed_at = now
    updated.next_deadline = None
    updated.updated_at = now

    message = f"High Court case completed: {judgment_outcome}"
    logger.info(f"Case {updated.case_reference or updated.case_id}: {message}")
    return TransitionResult(
        success=True,
        case=updated,
        previous_step=case.current_step,
        current_step=updated.current_step,
        message=message,
    )


EDITABLE_FIELDS = frozenset({
    "case_title",
    "client_id",
    "client_name",
    "client_email",
    "client_phone",
    "assigned_case_manager_id",
    "assigned_case_manager_name",
    "assigned_paralegal_id",
    "assigned_paralegal_name",
    "priority",
    "case_status",
    "notes",
    "tags",
})


REQUIRED_FIELDS = frozenset({"case_title", "client_name", "priority", "case_status"})


def apply_edit(case: LegalCase, changes: dict[str, Any], now: Optional[datetime] = None) -> LegalCase:
    """
    Apply a direct edit outside the workflow rules.

    Status overrides are limited to non-terminal statuses (active, on_hold,
    appealing). Closed, lost and settled are only reached by recording an
    outcome, settlement or judgment. Reopening a terminal case puts its
    current step back in progress.

    Raises:
        ValueError: If a field is not editable, a required field is cleared,
            or the status override is terminal
    """
    now = now or utcnow()
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be edited directly: {', '.join(sorted(unknown))}")
    cleared = sorted(name for name in REQUIRED_FIELDS & set(changes) if changes[name] is None)
    if cleared:
        raise ValueError(f"Fields cannot be cleared: {', '.join(cleared)}")

    updated = copy.deepcopy(case)
    for name, value in changes.items():
        if name == "priority":
            value = CasePriority(value)
        elif name == "case_status":
            value = LegalCaseStatus(value)
        elif name == "tags":
            value = list(value or [])
        setattr(updated, name, value)

    # Status override bookkeeping
    if "case_status" in changes and updated.case_status != case.case_status:
        if updated.is_terminal:
            raise ValueError(
                f"Status {updated.case_status.value} is set by recording an outcome, "
                "settlement or judgment, not by a direct edit"
            )
        if case.is_terminal:
            updated.closed_at = None
            for entry in updated.step_history:
                if entry.step_id == updated.current_step:
                    entry.status = StepStatus.IN_PROGRESS
                    entry.completed_at = None
                elif entry.step_id > updated.current_step and entry.status == StepStatus.SKIPPED:
                    entry.status = StepStatus.NOT_STARTED
        logger.info(
            f"Case {case.case_reference or case.case_id} status overridden: "
            f"{case.case_status.value} -> {updated.case_status.value}"
        )

    updated.updated_at = now
    return updated


def get_step_progress(case: LegalCase) -> StepProgress:
    """Completed steps out of the case's step history."""
    total = len(case.step_history)
    completed = sum(1 for e in case.step_history if e.status == StepStatus.COMPLETED)
    percentage = round(100 * completed / total) if total else 0
    return StepProgress(completed=completed, total=total, percentage=percentage)

