"""
Legal case API routes.

Thin handlers: load the case, run a workflow transition, persist the result
with compare-and-swap on updated_at, write an audit entry and return the new
state. Required side effects are handed to the notifier after the response.
"""

import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from caseflow.api.deps import AuditRepo, CaseRepo, CurrentActor, NotifierDep
from caseflow.config import settings
from caseflow.db.repositories import (
    CaseFilters,
    CaseNotFoundError,
    PersistenceError,
)
from caseflow.legal.bulk import run_bulk
from caseflow.legal.deadlines import check_notification_period, is_overdue, upcoming_deadlines
from caseflow.legal.models import LegalCase
from caseflow.legal.steps import CasePriority, LegalCaseStatus, LegalCaseType
from caseflow.legal.workflow import (
    TransitionResult,
    advance_step,
    apply_edit,
    complete_high_court_case,
    create_legal_case,
    get_step_progress,
    mark_notification_period_satisfied,
    record_email_submission,
    record_vfs_submission,
    set_outcome,
    set_settlement,
    trigger_appeal,
)
from caseflow.notifications import dispatch_required_action

logger = logging.getLogger(__name__)

router = APIRouter()


# === Request / response models ===


class LegalCaseCreate(BaseModel):
    """Request model for creating a legal case."""

    case_type: LegalCaseType
    case_title: str = Field(..., min_length=1, max_length=500)
    client_name: str = Field(..., min_length=1, max_length=255)
    client_email: Optional[str] = Field(None, max_length=255)
    client_phone: Optional[str] = Field(None, max_length=50)
    client_id: Optional[int] = None
    priority: CasePriority = CasePriority.MEDIUM
    assigned_case_manager_id: Optional[int] = None
    assigned_case_manager_name: Optional[str] = Field(None, max_length=255)
    assigned_paralegal_id: Optional[int] = None
    assigned_paralegal_name: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    workflow_data: Optional[dict[str, Any]] = Field(
        None, description="Initial values for the case type's workflow fields"
    )


class LegalCaseUpdate(BaseModel):
    """Request model for editing a legal case outside the workflow."""

    model_config = ConfigDict(extra="forbid")

    case_title: Optional[str] = Field(None, min_length=1, max_length=500)
    client_id: Optional[int] = None
    client_name: Optional[str] = Field(None, min_length=1, max_length=255)
    client_email: Optional[str] = Field(None, max_length=255)
    client_phone: Optional[str] = Field(None, max_length=50)
    assigned_case_manager_id: Optional[int] = None
    assigned_case_manager_name: Optional[str] = Field(None, max_length=255)
    assigned_paralegal_id: Optional[int] = None
    assigned_paralegal_name: Optional[str] = Field(None, max_length=255)
    priority: Optional[CasePriority] = None
    case_status: Optional[LegalCaseStatus] = Field(None, description="Status override")
    notes: Optional[str] = None
    tags: Optional[list[str]] = None

    @field_validator("case_title", "client_name", "priority", "case_status")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class AdvanceRequest(BaseModel):
    notes: Optional[str] = None


class OutcomeRequest(BaseModel):
    outcome: str = Field(..., min_length=1, description="approved/rejected or success/lost")
    notes: Optional[str] = None


class SettlementRequest(BaseModel):
    settlement_outcome: Literal["settled", "not_settled"]
    settlement_amount: Optional[float] = Field(None, ge=0)
    settlement_terms: Optional[str] = None
    notes: Optional[str] = None


class AppealRequest(BaseModel):
    notes: Optional[str] = None


class EmailSubmissionRequest(BaseModel):
    email_recipient: str = Field(..., min_length=3, max_length=255)
    dha_reference_number: Optional[str] = Field(None, max_length=100)


class VfsSubmissionRequest(BaseModel):
    vfs_center: Optional[str] = None
    dha_reference_number: Optional[str] = Field(None, max_length=100)


class CompleteRequest(BaseModel):
    judgment_outcome: str = Field(..., min_length=1, max_length=255)
    notes: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    case_ids: list[int] = Field(..., min_length=1)

    @field_validator("case_ids")
    @classmethod
    def validate_size(cls, v: list[int]) -> list[int]:
        if len(v) > settings.bulk_delete_max:
            raise ValueError(f"At most {settings.bulk_delete_max} cases per bulk delete")
        return v


class TransitionResponse(BaseModel):
    """Response model for workflow transitions."""

    case: dict[str, Any]
    previous_step: int
    current_step: int
    message: str
    next_actions: list[str]
    warnings: list[str]
    requires_action: Optional[str] = None


class AppealResponse(BaseModel):
    case: dict[str, Any]
    appeal_case: dict[str, Any]
    message: str


class PaginatedLegalCasesResponse(BaseModel):
    """Paginated legal cases response."""

    items: list[dict[str, Any]]
    total: int
    page: int
    limit: int


class BulkItemErrorResponse(BaseModel):
    case_id: int
    error: str


class BulkDeleteResponse(BaseModel):
    """Aggregate result of a bulk delete."""

    model_config = ConfigDict(populate_by_name=True)

    success_count: int = Field(..., alias="successCount")
    error_count: int = Field(..., alias="errorCount")
    errors: list[BulkItemErrorResponse]


class ProgressResponse(BaseModel):
    case_id: int
    current_step: int
    current_step_name: str
    completed: int
    total: int
    percentage: int


class DeadlinesResponse(BaseModel):
    case_id: int
    next_deadline: Optional[str]
    overdue: bool
    notification_period: dict[str, Any]
    upcoming: list[dict[str, Any]]


class AppealsResponse(BaseModel):
    case_id: int
    appeal_count: int
    children: list[dict[str, Any]]
    chain: list[dict[str, Any]]


# === Helpers ===


def _check(result: TransitionResult) -> None:
    if not result.success:
        raise HTTPException(status_code=result.error.http_status, detail=result.message)


async def _persist(
    original: LegalCase,
    result: TransitionResult,
    case_repo,
    audit_repo,
    actor,
    action: str,
    details: Optional[dict[str, Any]] = None,
) -> LegalCase:
    """Save a successful transition and record it in the audit log."""
    _check(result)
    saved = await case_repo.save(result.case, original.updated_at)
    await audit_repo.log(
        user_id=actor.user_id,
        user_name=actor.user_name,
        action=action,
        resource_id=saved.case_id,
        details={
            "previous_step": result.previous_step,
            "current_step": result.current_step,
            "case_status": saved.case_status.value,
            **(details or {}),
        },
    )
    return saved


def _transition_response(result: TransitionResult, saved: LegalCase) -> TransitionResponse:
    return TransitionResponse(
        case=saved.to_dict(),
        previous_step=result.previous_step,
        current_step=result.current_step,
        message=result.message,
        next_actions=result.next_actions,
        warnings=result.warnings,
        requires_action=result.requires_action,
    )


# === Collection routes ===


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_case(
    request: LegalCaseCreate,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
) -> dict[str, Any]:
    """Create a legal case at step 1."""
    try:
        case = create_legal_case(**request.model_dump())
    except (TypeError, ValueError) as e:
        logger.warning(f"Rejected workflow data for new {request.case_type.value} case: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid workflow data: {e}")

    created = await case_repo.create(case)
    await audit_repo.log(
        user_id=actor.user_id,
        user_name=actor.user_name,
        action="create",
        resource_id=created.case_id,
        details={"case_reference": created.case_reference, "case_type": created.case_type.value},
    )
    return created.to_dict()


@router.get("", response_model=PaginatedLegalCasesResponse)
async def list_cases(
    case_repo: CaseRepo,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=200, description="Items per page"),
    case_type: Optional[LegalCaseType] = Query(None, description="Filter by case type"),
    case_status: Optional[LegalCaseStatus] = Query(None, description="Filter by status"),
    priority: Optional[CasePriority] = Query(None, description="Filter by priority"),
    assigned_case_manager_id: Optional[int] = Query(None, description="Filter by case manager"),
    search: Optional[str] = Query(None, max_length=200, description="Title, client or reference"),
):
    """List legal cases with pagination and filters."""
    filters = CaseFilters(
        case_type=case_type,
        case_status=case_status,
        priority=priority,
        assigned_case_manager_id=assigned_case_manager_id,
        search=search,
    )
    cases = await case_repo.list_cases(filters, limit=limit, offset=(page - 1) * limit)
    total = await case_repo.count(filters)

    return PaginatedLegalCasesResponse(
        items=[c.to_dict() for c in cases],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/stats")
async def get_stats(case_repo: CaseRepo) -> dict[str, Any]:
    """Case counts by status, type and priority."""
    return await case_repo.get_statistics()


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete(
    request: BulkDeleteRequest,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
):
    """Delete several cases; failures are reported per case."""

    async def delete_one(case_id: int) -> None:
        # Savepoint per case so a failed item leaves the others intact
        async with case_repo.session.begin_nested():
            await case_repo.delete(case_id)
            await audit_repo.log(
                user_id=actor.user_id,
                user_name=actor.user_name,
                action="delete",
                resource_id=case_id,
                details={"bulk": True},
            )

    result = await run_bulk(
        request.case_ids,
        delete_one,
        expected_errors=(CaseNotFoundError, PersistenceError),
        label="delete",
    )
    return BulkDeleteResponse(
        success_count=result.success_count,
        error_count=result.error_count,
        errors=[BulkItemErrorResponse(**e.to_dict()) for e in result.errors],
    )


# === Single case routes ===


@router.get("/{case_id}")
async def get_case(case_id: int, case_repo: CaseRepo) -> dict[str, Any]:
    """Get a legal case."""
    case = await case_repo.get(case_id)
    return case.to_dict()


@router.patch("/{case_id}")
async def update_case(
    case_id: int,
    request: LegalCaseUpdate,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
) -> dict[str, Any]:
    """Edit case details. Workflow state changes go through the transition routes."""
    case = await case_repo.get(case_id)
    changes = request.model_dump(exclude_unset=True)
    if not changes:
        return case.to_dict()

    try:
        updated = apply_edit(case, changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    saved = await case_repo.save(updated, case.updated_at)
    await audit_repo.log(
        user_id=actor.user_id,
        user_name=actor.user_name,
        action="update",
        resource_id=case_id,
        details={"fields": sorted(changes)},
    )
    return saved.to_dict()


@router.delete("/{case_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_case(
    case_id: int,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
) -> None:
    """Hard-delete a legal case. Appeals spawned from it are kept."""
    await case_repo.delete(case_id)
    await audit_repo.log(
        user_id=actor.user_id,
        user_name=actor.user_name,
        action="delete",
        resource_id=case_id,
    )


# === Workflow transitions ===


@router.post("/{case_id}/advance", response_model=TransitionResponse)
async def advance_case(
    case_id: int,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
    request: Optional[AdvanceRequest] = None,
):
    """Complete the current step and move to the next."""
    case = await case_repo.get(case_id)
    result = advance_step(
        case,
        notes=request.notes if request else None,
        performed_by=actor.user_name,
    )
    saved = await _persist(case, result, case_repo, audit_repo, actor, "advance")

    if result.requires_action:
        background_tasks.add_task(dispatch_required_action, notifier, result.requires_action, saved)

    return _transition_response(result, saved)


@router.post("/{case_id}/outcome", response_model=TransitionResponse)
async def record_outcome(
    case_id: int,
    request: OutcomeRequest,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
):
    """Record the outcome at the outcome step."""
    case = await case_repo.get(case_id)
    result = set_outcome(case, request.outcome, notes=request.notes, performed_by=actor.user_name)
    saved = await _persist(
        case, result, case_repo, audit_repo, actor, "set_outcome", {"outcome": request.outcome}
    )
    return _transition_response(result, saved)


@router.post("/{case_id}/settlement", response_model=TransitionResponse)
async def record_settlement(
    case_id: int,
    request: SettlementRequest,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
):
    """Record the settlement decision of a High Court case."""
    case = await case_repo.get(case_id)
    result = set_settlement(
        case,
        settled=request.settlement_outcome == "settled",
        amount=request.settlement_amount,
        terms=request.settlement_terms,
        notes=request.notes,
        performed_by=actor.user_name,
    )
    saved = await _persist(
        case,
        result,
        case_repo,
        audit_repo,
        actor,
        "set_settlement",
        {"settlement_outcome": request.settlement_outcome},
    )
    return _transition_response(result, saved)


@router.post(
    "/{case_id}/appeal",
    response_model=AppealResponse,
    status_code=status.HTTP_201_CREATED,
)
async def appeal_case(
    case_id: int,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
    request: Optional[AppealRequest] = None,
):
    """Spawn an appeal case from a lost Prohibited Persons case."""
    case = await case_repo.get(case_id)
    result = trigger_appeal(
        case,
        notes=request.notes if request else None,
        performed_by=actor.user_name,
    )
    if not result.success:
        raise HTTPException(status_code=result.error.http_status, detail=result.message)

    parent, appeal = await case_repo.save_appeal(result.parent, result.appeal_case, case.updated_at)
    await audit_repo.log(
        user_id=actor.user_id,
        user_name=actor.user_name,
        action="trigger_appeal",
        resource_id=parent.case_id,
        details={"appeal_case_id": appeal.case_id, "appeal_number": parent.appeal_count},
    )
    return AppealResponse(case=parent.to_dict(), appeal_case=appeal.to_dict(), message=result.message)


@router.post("/{case_id}/email-submission", response_model=TransitionResponse)
async def email_submission(
    case_id: int,
    request: EmailSubmissionRequest,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
):
    """Record the Overstay Appeal submission email."""
    case = await case_repo.get(case_id)
    result = record_email_submission(case, request.email_recipient, request.dha_reference_number)
    saved = await _persist(case, result, case_repo, audit_repo, actor, "email_submission")
    return _transition_response(result, saved)


@router.post("/{case_id}/vfs-submission", response_model=TransitionResponse)
async def vfs_submission(
    case_id: int,
    request: VfsSubmissionRequest,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
):
    """Record a section 8 appeal lodged at a VFS centre."""
    case = await case_repo.get(case_id)
    result = record_vfs_submission(case, request.vfs_center, request.dha_reference_number)
    saved = await _persist(case, result, case_repo, audit_repo, actor, "vfs_submission")
    return _transition_response(result, saved)


@router.post("/{case_id}/notification-period/satisfy", response_model=TransitionResponse)
async def satisfy_notification_period(
    case_id: int,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
):
    """Mark the Letter of Demand notification period as satisfied."""
    case = await case_repo.get(case_id)
    result = mark_notification_period_satisfied(case)
    saved = await _persist(case, result, case_repo, audit_repo, actor, "notification_period_satisfied")
    return _transition_response(result, saved)


@router.post("/{case_id}/complete", response_model=TransitionResponse)
async def complete_case(
    case_id: int,
    request: CompleteRequest,
    case_repo: CaseRepo,
    audit_repo: AuditRepo,
    actor: CurrentActor,
):
    """Record the judgment of an unsettled High Court case and close it."""
    case = await case_repo.get(case_id)
    result = complete_high_court_case(
        case, request.judgment_outcome, notes=request.notes, performed_by=actor.user_name
    )
    saved = await _persist(
        case, result, case_repo, audit_repo, actor, "complete", {"judgment_outcome": request.judgment_outcome}
    )
    return _transition_response(result, saved)


# === Projections ===


@router.get("/{case_id}/progress", response_model=ProgressResponse)
async def get_progress(case_id: int, case_repo: CaseRepo):
    """Completed steps out of the total."""
    case = await case_repo.get(case_id)
    progress = get_step_progress(case)
    return ProgressResponse(
        case_id=case.case_id,
        current_step=case.current_step,
        current_step_name=case.current_step_name,
        **progress.to_dict(),
    )


@router.get("/{case_id}/deadlines", response_model=DeadlinesResponse)
async def get_deadlines(
    case_id: int,
    case_repo: CaseRepo,
    within_days: Optional[int] = Query(None, ge=0, le=365, description="Look-ahead window in days"),
):
    """Notification period, upcoming and overdue deadlines of a case."""
    case = await case_repo.get(case_id)
    return DeadlinesResponse(
        case_id=case.case_id,
        next_deadline=case.next_deadline.isoformat() if case.next_deadline else None,
        overdue=is_overdue(case),
        notification_period=check_notification_period(case).to_dict(),
        upcoming=[c.to_dict() for c in upcoming_deadlines(case, within_days)],
    )


@router.get("/{case_id}/appeals", response_model=AppealsResponse)
async def get_appeals(case_id: int, case_repo: CaseRepo):
    """Appeals spawned from a case and the chain of cases it descends from."""
    case = await case_repo.get(case_id)
    children = await case_repo.list_children(case_id)
    chain = await case_repo.appeal_chain(case_id)
    return AppealsResponse(
        case_id=case.case_id,
        appeal_count=case.appeal_count,
        children=[c.to_dict() for c in children],
        chain=[c.to_dict() for c in chain],
    )
