"""
Legal case data model.

LegalCase is the aggregate root. Each case type carries its own workflow
payload, tagged by ``type`` so it can be rehydrated from JSON storage.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from caseflow.legal.steps import (
    SECTION_8_TYPES,
    TERMINAL_STATUSES,
    CasePriority,
    LegalCaseStatus,
    LegalCaseType,
    StepStatus,
    get_step_name,
    get_steps,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _is_datetime_field(annotation: Any) -> bool:
    return annotation is datetime or datetime in getattr(annotation, "__args__", ())


def _dump(obj: Any) -> dict[str, Any]:
    """Serialize a flat dataclass to JSON-compatible values."""
    data = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        data[f.name] = value
    return data


def _load(cls, data: dict[str, Any]):
    """Build a flat dataclass from a dict, ignoring unknown keys."""
    kwargs = {}
    for f in fields(cls):
        if not f.init or f.name not in data:
            continue
        value = data[f.name]
        if _is_datetime_field(f.type):
            value = _parse_datetime(value)
        kwargs[f.name] = value
    return cls(**kwargs)


@dataclass
class StepHistoryEntry:
    """Audit trail entry for one step of a case."""

    step_id: int
    step_name: str
    status: StepStatus = StepStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "step_name": self.step_name,
            "status": self.status.value,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "notes": self.notes,
            "performed_by": self.performed_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepHistoryEntry":
        return cls(
            step_id=int(data["step_id"]),
            step_name=data["step_name"],
            status=StepStatus(data.get("status", StepStatus.NOT_STARTED.value)),
            started_at=_parse_datetime(data.get("started_at")),
            completed_at=_parse_datetime(data.get("completed_at")),
            notes=data.get("notes"),
            performed_by=data.get("performed_by"),
        )


@dataclass
class WorkflowConstraint:
    """A time-bound condition attached to a case (e.g. 14-day notification period)."""

    key: str
    description: str
    constraint_type: str = "time_period"
    value: dict[str, Any] = field(default_factory=dict)
    is_satisfied: bool = False
    due_date: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return _dump(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowConstraint":
        return _load(cls, data)


@dataclass
class AppealRecord:
    """Appeal spawned from a lost Prohibited Persons case."""

    appeal_number: int
    parent_case_id: Optional[int] = None
    appeal_case_id: Optional[int] = None
    appeal_case_reference: Optional[str] = None
    started_at: Optional[datetime] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _dump(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppealRecord":
        return _load(cls, data)


# === Workflow payloads ===


@dataclass
class OverstayAppealData:
    type: LegalCaseType = field(default=LegalCaseType.OVERSTAY_APPEAL, init=False)
    email_submission_sent: bool = False
    email_submission_date: Optional[datetime] = None
    email_recipient: Optional[str] = None
    dha_reference_number: Optional[str] = None
    outcome_result: Optional[str] = None  # approved, rejected


@dataclass
class ProhibitedPersonsData:
    type: LegalCaseType = field(default=LegalCaseType.PROHIBITED_PERSONS, init=False)
    vlist_reference: Optional[str] = None
    dha_reference_number: Optional[str] = None
    outcome_result: Optional[str] = None  # success, lost
    is_appeal: bool = False
    appeal_number: int = 0


@dataclass
class HighCourtData:
    type: LegalCaseType = field(default=LegalCaseType.HIGH_COURT_EXPEDITION, init=False)

    # Letter of Demand notification period
    letter_of_demand_date: Optional[datetime] = None
    notification_period_start: Optional[datetime] = None
    notification_period_end: Optional[datetime] = None
    notification_period_satisfied: bool = False

    # Return of Service -> Settlement window
    return_of_service_date: Optional[datetime] = None
    settlement_window_end: Optional[datetime] = None
    settlement_window_exceeded: bool = False

    # Court
    court_case_number: Optional[str] = None
    court_filing_date: Optional[datetime] = None
    sheriff_service_date: Optional[datetime] = None

    # Settlement
    settlement_outcome: Optional[str] = None  # settled, not_settled
    settlement_date: Optional[datetime] = None
    settlement_amount: Optional[float] = None
    settlement_terms: Optional[str] = None

    # Judgment
    final_judgment_date: Optional[datetime] = None
    judgment_outcome: Optional[str] = None


@dataclass
class Section8AppealData:
    """Payload for appeals under section 8(4) and 8(6)."""

    type: LegalCaseType = LegalCaseType.APPEALS_8_4
    vfs_center: Optional[str] = None
    vfs_submission_date: Optional[datetime] = None
    dha_reference_number: Optional[str] = None
    outcome_result: Optional[str] = None  # approved, rejected

    @property
    def section(self) -> str:
        return "8(4)" if self.type == LegalCaseType.APPEALS_8_4 else "8(6)"


WorkflowData = Union[OverstayAppealData, ProhibitedPersonsData, HighCourtData, Section8AppealData]


def workflow_data_for(case_type: LegalCaseType) -> WorkflowData:
    """Default workflow payload for a case type."""
    case_type = LegalCaseType(case_type)
    if case_type == LegalCaseType.OVERSTAY_APPEAL:
        return OverstayAppealData()
    if case_type == LegalCaseType.PROHIBITED_PERSONS:
        return ProhibitedPersonsData()
    if case_type == LegalCaseType.HIGH_COURT_EXPEDITION:
        return HighCourtData()
    if case_type in SECTION_8_TYPES:
        return Section8AppealData(type=case_type)
    raise ValueError(f"Unknown case type: {case_type}")


def workflow_data_to_dict(data: WorkflowData) -> dict[str, Any]:
    payload = _dump(data)
    if isinstance(data, Section8AppealData):
        payload["section"] = data.section
    return payload


def workflow_data_from_dict(
    data: Optional[dict[str, Any]],
    case_type: LegalCaseType,
) -> WorkflowData:
    """Rehydrate a workflow payload; the stored tag must match the case type."""
    case_type = LegalCaseType(case_type)
    if not data:
        return workflow_data_for(case_type)

    tag = LegalCaseType(data.get("type", case_type.value))
    if tag != case_type:
        raise ValueError(f"Workflow data tagged {tag.value} on a {case_type.value} case")

    default = workflow_data_for(case_type)
    loaded = _load(type(default), {k: v for k, v in data.items() if k != "type"})
    if isinstance(loaded, Section8AppealData):
        loaded.type = case_type
    return loaded


def initial_step_history(case_type: LegalCaseType, now: Optional[datetime] = None) -> list[StepHistoryEntry]:
    """One entry per step; step 1 starts in progress."""
    now = now or utcnow()
    return [
        StepHistoryEntry(
            step_id=step.step_id,
            step_name=step.name,
            status=StepStatus.IN_PROGRESS if step.step_id == 1 else StepStatus.NOT_STARTED,
            started_at=now if step.step_id == 1 else None,
        )
        for step in get_steps(case_type)
    ]


@dataclass
class LegalCase:
    """A legal case and its workflow state."""

    case_id: Optional[int] = None  # Assigned by the repository
    case_reference: str = ""
    case_type: LegalCaseType = LegalCaseType.OVERSTAY_APPEAL
    case_title: str = ""
    case_status: LegalCaseStatus = LegalCaseStatus.ACTIVE

    # Client
    client_id: Optional[int] = None
    client_name: str = ""
    client_email: Optional[str] = None
    client_phone: Optional[str] = None

    # Assignment
    assigned_case_manager_id: Optional[int] = None
    assigned_case_manager_name: Optional[str] = None
    assigned_paralegal_id: Optional[int] = None
    assigned_paralegal_name: Optional[str] = None

    # Workflow state
    current_step: int = 1
    step_history: list[StepHistoryEntry] = field(default_factory=list)
    workflow_data: Optional[WorkflowData] = None

    # Appeals (Prohibited Persons)
    appeal_count: int = 0
    appeals: list[AppealRecord] = field(default_factory=list)
    parent_case_id: Optional[int] = None

    # Timestamps
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    # Deadlines
    constraints: list[WorkflowConstraint] = field(default_factory=list)
    next_deadline: Optional[datetime] = None

    priority: CasePriority = CasePriority.MEDIUM
    notes: Optional[str] = None
    tags: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.case_type = LegalCaseType(self.case_type)
        self.case_status = LegalCaseStatus(self.case_status)
        self.priority = CasePriority(self.priority)
        if self.workflow_data is None:
            self.workflow_data = workflow_data_for(self.case_type)
        if not self.step_history:
            self.step_history = initial_step_history(self.case_type, self.created_at)

    @property
    def current_step_name(self) -> str:
        """Derived from the step table, never stored."""
        return get_step_name(self.case_type, self.current_step)

    @property
    def is_terminal(self) -> bool:
        return self.case_status in TERMINAL_STATUSES

    @property
    def is_appeal(self) -> bool:
        return self.parent_case_id is not None

    def get_history_entry(self, step_id: int) -> Optional[StepHistoryEntry]:
        """Get the history entry for a step."""
        for entry in self.step_history:
            if entry.step_id == step_id:
                return entry
        return None

    def get_constraint(self, key: str) -> Optional[WorkflowConstraint]:
        for constraint in self.constraints:
            if constraint.key == key:
                return constraint
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "case_id": self.case_id,
            "case_reference": self.case_reference,
            "case_type": self.case_type.value,
            "case_title": self.case_title,
            "case_status": self.case_status.value,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "assigned_case_manager_id": self.assigned_case_manager_id,
            "assigned_case_manager_name": self.assigned_case_manager_name,
            "assigned_paralegal_id": self.assigned_paralegal_id,
            "assigned_paralegal_name": self.assigned_paralegal_name,
            "current_step": self.current_step,
            "current_step_name": self.current_step_name,
            "step_history": [e.to_dict() for e in self.step_history],
            "workflow_data": workflow_data_to_dict(self.workflow_data),
            "appeal_count": self.appeal_count,
            "appeals": [a.to_dict() for a in self.appeals],
            "parent_case_id": self.parent_case_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "started_at": _iso(self.started_at),
            "closed_at": _iso(self.closed_at),
            "constraints": [c.to_dict() for c in self.constraints],
            "next_deadline": _iso(self.next_deadline),
            "priority": self.priority.value,
            "notes": self.notes,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LegalCase":
        case_type = LegalCaseType(data["case_type"])
        return cls(
            case_id=data.get("case_id"),
            case_reference=data.get("case_reference", ""),
            case_type=case_type,
            case_title=data.get("case_title", ""),
            case_status=LegalCaseStatus(data.get("case_status", LegalCaseStatus.ACTIVE.value)),
            client_id=data.get("client_id"),
            client_name=data.get("client_name", ""),
            client_email=data.get("client_email"),
            client_phone=data.get("client_phone"),
            assigned_case_manager_id=data.get("assigned_case_manager_id"),
            assigned_case_manager_name=data.get("assigned_case_manager_name"),
            assigned_paralegal_id=data.get("assigned_paralegal_id"),
            assigned_paralegal_name=data.get("assigned_paralegal_name"),
            current_step=int(data.get("current_step", 1)),
            step_history=[StepHistoryEntry.from_dict(e) for e in data.get("step_history") or []],
            workflow_data=workflow_data_from_dict(data.get("workflow_data"), case_type),
            appeal_count=int(data.get("appeal_count", 0)),
            appeals=[AppealRecord.from_dict(a) for a in data.get("appeals") or []],
            parent_case_id=data.get("parent_case_id"),
            created_at=_parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=_parse_datetime(data.get("updated_at")) or utcnow(),
            started_at=_parse_datetime(data.get("started_at")),
            closed_at=_parse_datetime(data.get("closed_at")),
            constraints=[WorkflowConstraint.from_dict(c) for c in data.get("constraints") or []],
            next_deadline=_parse_datetime(data.get("next_deadline")),
            priority=CasePriority(data.get("priority", CasePriority.MEDIUM.value)),
            notes=data.get("notes"),
            tags=list(data.get("tags") or []),
        )
