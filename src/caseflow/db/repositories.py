"""
Database repositories for data access layer.

LegalCaseRepository maps LegalCase snapshots to rows. Writes use
compare-and-swap on updated_at so two transitions on the same case cannot
both succeed from the same starting state.
"""

import dataclasses
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.config import settings
from caseflow.db.orm import AuditLog, LegalCaseRecord
from caseflow.legal.models import (
    AppealRecord,
    LegalCase,
    StepHistoryEntry,
    WorkflowConstraint,
    utcnow,
    workflow_data_from_dict,
    workflow_data_to_dict,
)
from caseflow.legal.steps import (
    CASE_PREFIXES,
    TERMINAL_STATUSES,
    CasePriority,
    LegalCaseStatus,
    LegalCaseType,
)

logger = logging.getLogger(__name__)


class CaseNotFoundError(Exception):
    """No case with the given ID or reference."""

    http_status = 404


class ConcurrentUpdateError(Exception):
    """The case changed since it was read."""

    http_status = 409


class PersistenceError(Exception):
    """Storage failure."""

    http_status = 503


@contextmanager
def _translate_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Database error during {operation}: {e}")
        raise PersistenceError(f"Database error during {operation}") from e


def _case_values(case: LegalCase) -> dict[str, Any]:
    """Column values for a case row (excluding id)."""
    return {
        "case_reference": case.case_reference or None,
        "case_type": case.case_type.value,
        "case_title": case.case_title,
        "case_status": case.case_status.value,
        "client_id": case.client_id,
        "client_name": case.client_name,
        "client_email": case.client_email,
        "client_phone": case.client_phone,
        "assigned_case_manager_id": case.assigned_case_manager_id,
        "assigned_case_manager_name": case.assigned_case_manager_name,
        "assigned_paralegal_id": case.assigned_paralegal_id,
        "assigned_paralegal_name": case.assigned_paralegal_name,
        "current_step": case.current_step,
        "step_history": [e.to_dict() for e in case.step_history],
        "workflow_data": workflow_data_to_dict(case.workflow_data),
        "appeal_count": case.appeal_count,
        "appeals": [a.to_dict() for a in case.appeals],
        "parent_case_id": case.parent_case_id,
        "created_at": case.created_at,
        "updated_at": case.updated_at,
        "started_at": case.started_at,
        "closed_at": case.closed_at,
        "constraints": [c.to_dict() for c in case.constraints],
        "next_deadline": case.next_deadline,
        "priority": case.priority.value,
        "notes": case.notes,
        "tags": list(case.tags),
    }


def record_to_case(record: LegalCaseRecord) -> LegalCase:
    """Build a LegalCase from its row."""
    case_type = LegalCaseType(record.case_type)
    return LegalCase(
        case_id=record.id,
        case_reference=record.case_reference or "",
        case_type=case_type,
        case_title=record.case_title,
        case_status=LegalCaseStatus(record.case_status),
        client_id=record.client_id,
        client_name=record.client_name,
        client_email=record.client_email,
        client_phone=record.client_phone,
        assigned_case_manager_id=record.assigned_case_manager_id,
        assigned_case_manager_name=record.assigned_case_manager_name,
        assigned_paralegal_id=record.assigned_paralegal_id,
        assigned_paralegal_name=record.assigned_paralegal_name,
        current_step=record.current_step,
        step_history=[StepHistoryEntry.from_dict(e) for e in record.step_history or []],
        workflow_data=workflow_data_from_dict(record.workflow_data, case_type),
        appeal_count=record.appeal_count,
        appeals=[AppealRecord.from_dict(a) for a in record.appeals or []],
        parent_case_id=record.parent_case_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
        started_at=record.started_at,
        closed_at=record.closed_at,
        constraints=[WorkflowConstraint.from_dict(c) for c in record.constraints or []],
        next_deadline=record.next_deadline,
        priority=CasePriority(record.priority),
        notes=record.notes,
        tags=list(record.tags or []),
    )


def generate_case_reference(case_type: LegalCaseType, case_id: int, created_at: datetime) -> str:
    """Reference such as OA-2026-00042."""
    return f"{CASE_PREFIXES[LegalCaseType(case_type)]}-{created_at.year}-{case_id:05d}"


@dataclass
class CaseFilters:
    """Filters for listing cases."""

    case_type: Optional[LegalCaseType] = None
    case_status: Optional[LegalCaseStatus] = None
    priority: Optional[CasePriority] = None
    assigned_case_manager_id: Optional[int] = None
    parent_case_id: Optional[int] = None
    search: Optional[str] = None


class LegalCaseRepository:
    """Repository for LegalCase CRUD operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _select(self):
        # Rows may have been changed by core UPDATEs in this session
        return select(LegalCaseRecord).execution_options(populate_existing=True)

    def _apply_filters(self, stmt, filters: Optional[CaseFilters]):
        if filters is None:
            return stmt
        if filters.case_type:
            stmt = stmt.where(LegalCaseRecord.case_type == LegalCaseType(filters.case_type).value)
        if filters.case_status:
            stmt = stmt.where(LegalCaseRecord.case_status == LegalCaseStatus(filters.case_status).value)
        if filters.priority:
            stmt = stmt.where(LegalCaseRecord.priority == CasePriority(filters.priority).value)
        if filters.assigned_case_manager_id is not None:
            stmt = stmt.where(LegalCaseRecord.assigned_case_manager_id == filters.assigned_case_manager_id)
        if filters.parent_case_id is not None:
            stmt = stmt.where(LegalCaseRecord.parent_case_id == filters.parent_case_id)
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(
                or_(
                    LegalCaseRecord.case_title.ilike(pattern),
                    LegalCaseRecord.client_name.ilike(pattern),
                    LegalCaseRecord.case_reference.ilike(pattern),
                )
            )
        return stmt

    async def get_by_id(self, case_id: int) -> Optional[LegalCase]:
        """Get case by ID."""
        with _translate_errors("get_by_id"):
            result = await self.session.execute(
                self._select().where(LegalCaseRecord.id == case_id)
            )
            record = result.scalar_one_or_none()
        return record_to_case(record) if record else None

    async def get(self, case_id: int) -> LegalCase:
        """
        Get case by ID.

        Raises:
            CaseNotFoundError: If the case does not exist
        """
        case = await self.get_by_id(case_id)
        if case is None:
            raise CaseNotFoundError(f"Legal case {case_id} not found")
        return case

    async def get_by_reference(self, case_reference: str) -> Optional[LegalCase]:
        """Get case by reference."""
        with _translate_errors("get_by_reference"):
            result = await self.session.execute(
                self._select().where(LegalCaseRecord.case_reference == case_reference)
            )
            record = result.scalar_one_or_none()
        return record_to_case(record) if record else None

    async def list_cases(
        self,
        filters: Optional[CaseFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LegalCase]:
        """List cases, newest first."""
        stmt = self._apply_filters(self._select(), filters)
        stmt = stmt.order_by(LegalCaseRecord.created_at.desc(), LegalCaseRecord.id.desc())
        stmt = stmt.offset(offset).limit(limit)

        with _translate_errors("list_cases"):
            result = await self.session.execute(stmt)
            records = list(result.scalars().all())
        return [record_to_case(r) for r in records]

    async def count(self, filters: Optional[CaseFilters] = None) -> int:
        """Count cases matching filters."""
        stmt = self._apply_filters(select(func.count(LegalCaseRecord.id)), filters)
        with _translate_errors("count"):
            return (await self.session.execute(stmt)).scalar() or 0

    async def create(self, case: LegalCase) -> LegalCase:
        """
        Insert a new case.

        Assigns case_id and, when the case has none, a reference built from
        the type prefix, creation year and id.
        """
        with _translate_errors("create"):
            record = LegalCaseRecord(**_case_values(case))
            self.session.add(record)
            await self.session.flush()

            if not record.case_reference:
                record.case_reference = generate_case_reference(case.case_type, record.id, case.created_at)
                await self.session.flush()

        logger.info(f"Created legal case {record.case_reference} ({case.case_type.value})")
        return dataclasses.replace(case, case_id=record.id, case_reference=record.case_reference)

    async def save(self, case: LegalCase, expected_updated_at: datetime) -> LegalCase:
        """
        Persist a case if it has not changed since it was read.

        Args:
            case: New snapshot to store
            expected_updated_at: updated_at of the snapshot the change was computed from

        Raises:
            CaseNotFoundError: If the case no longer exists
            ConcurrentUpdateError: If another write got there first
        """
        values = _case_values(case)
        values.pop("created_at")

        stmt = (
            update(LegalCaseRecord)
            .where(
                LegalCaseRecord.id == case.case_id,
                LegalCaseRecord.updated_at == expected_updated_at,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        with _translate_errors("save"):
            result = await self.session.execute(stmt)
            if result.rowcount == 0:
                exists = (
                    await self.session.execute(
                        select(LegalCaseRecord.id).where(LegalCaseRecord.id == case.case_id)
                    )
                ).scalar_one_or_none()
                if exists is None:
                    raise CaseNotFoundError(f"Legal case {case.case_id} not found")
                raise ConcurrentUpdateError(
                    f"Legal case {case.case_id} was modified by another request; reload and retry"
                )

        logger.debug(f"Saved legal case {case.case_reference} at step {case.current_step}")
        return case

    async def save_appeal(
        self,
        parent: LegalCase,
        appeal_case: LegalCase,
        expected_updated_at: datetime,
    ) -> tuple[LegalCase, LegalCase]:
        """
        Persist an appealed parent and its new appeal case together.

        Both writes share the session transaction. Any failure raises before
        the caller commits, so either both land or neither does.
        """
        await self.save(parent, expected_updated_at)
        created = await self.create(appeal_case)

        appeals = [dataclasses.replace(a) for a in parent.appeals]
        if appeals:
            appeals[-1].appeal_case_id = created.case_id
            appeals[-1].appeal_case_reference = created.case_reference
        linked_parent = dataclasses.replace(parent, appeals=appeals)

        with _translate_errors("save_appeal"):
            await self.session.execute(
                update(LegalCaseRecord)
                .where(LegalCaseRecord.id == parent.case_id)
                .values(appeals=[a.to_dict() for a in appeals])
                .execution_options(synchronize_session=False)
            )

        logger.info(
            f"Appeal {created.case_reference} created from legal case {parent.case_reference}"
        )
        return linked_parent, created

    async def delete(self, case_id: int) -> None:
        """
        Hard-delete a case.

        Raises:
            CaseNotFoundError: If the case does not exist
        """
        with _translate_errors("delete"):
            result = await self.session.execute(
                delete(LegalCaseRecord)
                .where(LegalCaseRecord.id == case_id)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            raise CaseNotFoundError(f"Legal case {case_id} not found")
        logger.info(f"Deleted legal case {case_id}")

    async def list_children(self, case_id: int) -> list[LegalCase]:
        """Appeal cases spawned directly from a case, oldest first."""
        with _translate_errors("list_children"):
            result = await self.session.execute(
                self._select()
                .where(LegalCaseRecord.parent_case_id == case_id)
                .order_by(LegalCaseRecord.created_at, LegalCaseRecord.id)
            )
            records = list(result.scalars().all())
        return [record_to_case(r) for r in records]

    async def appeal_chain(self, case_id: int, max_depth: Optional[int] = None) -> list[LegalCase]:
        """
        Ancestors of a case through parent_case_id, nearest first.

        The walk stops at max_depth ancestors, at a missing parent, or when a
        case repeats.

        Raises:
            CaseNotFoundError: If the starting case does not exist
        """
        if max_depth is None:
            max_depth = settings.max_appeal_chain_depth

        case = await self.get(case_id)
        chain = []
        seen = {case.case_id}

        while case.parent_case_id is not None and len(chain) < max_depth:
            if case.parent_case_id in seen:
                logger.warning(f"Appeal chain of legal case {case_id} loops at {case.parent_case_id}")
                break
            parent = await self.get_by_id(case.parent_case_id)
            if parent is None:
                break
            chain.append(parent)
            seen.add(parent.case_id)
            case = parent

        return chain

    async def get_statistics(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Get case statistics."""
        now = now or utcnow()
        terminal = [s.value for s in TERMINAL_STATUSES]

        with _translate_errors("get_statistics"):
            total = (await self.session.execute(select(func.count(LegalCaseRecord.id)))).scalar() or 0

            by_status = {}
            by_type = {}
            by_priority = {}
            for column, bucket in (
                (LegalCaseRecord.case_status, by_status),
                (LegalCaseRecord.case_type, by_type),
                (LegalCaseRecord.priority, by_priority),
            ):
                result = await self.session.execute(
                    select(column, func.count(LegalCaseRecord.id)).group_by(column)
                )
                for value, count in result.all():
                    bucket[value] = count

            manager = LegalCaseRecord.assigned_case_manager_name
            result = await self.session.execute(
                select(manager, func.count(LegalCaseRecord.id))
                .where(manager.is_not(None))
                .group_by(manager)
            )
            per_manager = {name: count for name, count in result.all()}

            overdue = (
                await self.session.execute(
                    select(func.count(LegalCaseRecord.id)).where(
                        LegalCaseRecord.case_status.not_in(terminal),
                        LegalCaseRecord.next_deadline.is_not(None),
                        LegalCaseRecord.next_deadline < now,
                    )
                )
            ).scalar() or 0

            appeals = (
                await self.session.execute(
                    select(func.count(LegalCaseRecord.id)).where(
                        LegalCaseRecord.parent_case_id.is_not(None)
                    )
                )
            ).scalar() or 0

        return {
            "total": total,
            "open": total - sum(by_status.get(s, 0) for s in terminal),
            "by_status": by_status,
            "by_type": by_type,
            "by_priority": by_priority,
            "cases_per_case_manager": per_manager,
            "overdue": overdue,
            "appeals": appeals,
        }


class AuditLogRepository:
    """Repository for AuditLog operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        user_id: str,
        user_name: str,
        action: str,
        resource_type: str = "legal_case",
        resource_id: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> AuditLog:
        """Create an audit log entry."""
        with _translate_errors("audit log"):
            log = AuditLog(
                user_id=user_id,
                user_name=user_name,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=details or {},
            )
            self.session.add(log)
            await self.session.flush()
        return log

    async def get_for_resource(
        self,
        resource_id: int,
        resource_type: str = "legal_case",
        limit: int = 100,
    ) -> list[AuditLog]:
        """Get audit logs for a specific resource."""
        with _translate_errors("audit log lookup"):
            result = await self.session.execute(
                select(AuditLog)
                .where(
                    AuditLog.resource_type == resource_type,
                    AuditLog.resource_id == resource_id,
                )
                .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
