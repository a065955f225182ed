"""
SQLAlchemy database models for Caseflow.

Legal cases are stored one row per case. Step history, workflow payload,
appeal records, constraints and tags are JSON columns (JSONB on PostgreSQL).
Appeal cases point at their parent through parent_case_id; the link has no
foreign key so deleting a parent leaves its appeals in place.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from caseflow.legal.models import utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in development and tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class LegalCaseRecord(Base):
    """A legal case and its workflow state."""

    __tablename__ = "legal_cases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_reference: Mapped[Optional[str]] = mapped_column(String(100), unique=True, index=True)
    case_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    case_title: Mapped[str] = mapped_column(String(500), nullable=False)
    case_status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)

    # Client
    client_id: Mapped[Optional[int]] = mapped_column(Integer)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(255))
    client_phone: Mapped[Optional[str]] = mapped_column(String(50))

    # Assignment
    assigned_case_manager_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    assigned_case_manager_name: Mapped[Optional[str]] = mapped_column(String(255))
    assigned_paralegal_id: Mapped[Optional[int]] = mapped_column(Integer)
    assigned_paralegal_name: Mapped[Optional[str]] = mapped_column(String(255))

    # Workflow state
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    step_history: Mapped[list] = mapped_column(JSONType, default=list)
    workflow_data: Mapped[dict] = mapped_column(JSONType, default=dict)

    # Appeals
    appeal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    appeals: Mapped[list] = mapped_column(JSONType, default=list)
    parent_case_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Deadlines
    constraints: Mapped[list] = mapped_column(JSONType, default=list)
    next_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)

    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[list] = mapped_column(JSONType, default=list)

    __table_args__ = (
        Index("ix_legal_cases_type_status", "case_type", "case_status"),
    )


class AuditLog(Base):
    """
    Append-only record of changes to legal cases.

    Every mutation through the API writes one entry: who, what, when.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Who
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # What
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # 'create', 'advance', 'delete', ...
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    details: Mapped[dict] = mapped_column(JSONType, default=dict)

    # When
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_log_resource", "resource_type", "resource_id"),
    )
