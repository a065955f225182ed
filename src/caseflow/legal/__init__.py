"""
Legal case workflow module for Caseflow.

Provides:
- Step tables for each case type
- The LegalCase data model and workflow payloads
- Pure workflow transitions (advance, outcome, settlement, appeal)
- Deadline projections
"""

from caseflow.legal.steps import (
    CasePriority,
    LegalCaseStatus,
    LegalCaseType,
    StepDefinition,
    StepStatus,
    get_step_name,
    get_steps,
)
from caseflow.legal.errors import (
    AppealNotAllowed,
    CannotAdvance,
    InvalidOutcome,
    InvalidTransition,
    UnknownStep,
    WorkflowError,
)
from caseflow.legal.models import (
    AppealRecord,
    HighCourtData,
    LegalCase,
    OverstayAppealData,
    ProhibitedPersonsData,
    Section8AppealData,
    StepHistoryEntry,
    WorkflowConstraint,
)
from caseflow.legal.workflow import (
    AppealResult,
    StepProgress,
    TransitionResult,
    advance_step,
    create_legal_case,
    get_step_progress,
    set_outcome,
    set_settlement,
    trigger_appeal,
)

__all__ = [
    # Step tables
    "CasePriority",
    "LegalCaseStatus",
    "LegalCaseType",
    "StepDefinition",
    "StepStatus",
    "get_step_name",
    "get_steps",
    # Errors
    "AppealNotAllowed",
    "CannotAdvance",
    "InvalidOutcome",
    "InvalidTransition",
    "UnknownStep",
    "WorkflowError",
    # Models
    "AppealRecord",
    "HighCourtData",
    "LegalCase",
    "OverstayAppealData",
    "ProhibitedPersonsData",
    "Section8AppealData",
    "StepHistoryEntry",
    "WorkflowConstraint",
    # Workflow
    "AppealResult",
    "StepProgress",
    "TransitionResult",
    "advance_step",
    "create_legal_case",
    "get_step_progress",
    "set_outcome",
    "set_settlement",
    "trigger_appeal",
]
