"""
Case type API routes.

Read-only view of the step tables, used by the front end to render workflow
progress.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from caseflow.legal.steps import (
    CASE_TYPE_LABELS,
    CASE_PREFIXES,
    SECTION_8_TYPES,
    VFS_CENTERS,
    LegalCaseType,
    get_steps,
    outcome_step_for,
    settlement_step_for,
    terminal_step_for,
    valid_outcomes_for,
)

router = APIRouter()


class StepResponse(BaseModel):
    step_id: int
    name: str
    is_outcome: bool
    is_settlement: bool
    is_terminal: bool
    side_effect: Optional[str] = None


class CaseTypeResponse(BaseModel):
    """Response model for a case type and its steps."""

    case_type: str
    label: str
    reference_prefix: str
    outcome_step: Optional[int]
    settlement_step: Optional[int]
    terminal_step: int
    valid_outcomes: list[str]
    vfs_centers: list[str]
    steps: list[StepResponse]


def _describe(case_type: LegalCaseType) -> CaseTypeResponse:
    return CaseTypeResponse(
        case_type=case_type.value,
        label=CASE_TYPE_LABELS[case_type],
        reference_prefix=CASE_PREFIXES[case_type],
        outcome_step=outcome_step_for(case_type),
        settlement_step=settlement_step_for(case_type),
        terminal_step=terminal_step_for(case_type),
        valid_outcomes=list(valid_outcomes_for(case_type)),
        vfs_centers=list(VFS_CENTERS) if case_type in SECTION_8_TYPES else [],
        steps=[StepResponse(**s.to_dict()) for s in get_steps(case_type)],
    )


@router.get("", response_model=list[CaseTypeResponse])
async def list_case_types():
    """List every case type with its step table."""
    return [_describe(case_type) for case_type in LegalCaseType]


@router.get("/{case_type}/steps", response_model=list[StepResponse])
async def get_case_type_steps(case_type: str):
    """Get the ordered steps of one case type."""
    try:
        parsed = LegalCaseType(case_type)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown case type: {case_type}")
    return [StepResponse(**s.to_dict()) for s in get_steps(parsed)]
