"""
FastAPI dependencies for the API.

Provides:
- Database session management
- Acting user identification
- Repositories and the side-effect notifier
"""

import logging
from dataclasses import dataclass
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.db.repositories import AuditLogRepository, LegalCaseRepository
from caseflow.notifications import Notifier

logger = logging.getLogger(__name__)


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session from request state.

    Uses the session factory stored during app startup.
    """
    async with request.app.state.db_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Type alias for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@dataclass
class Actor:
    """User performing a request, as reported by the front end."""

    user_id: str
    user_name: str


async def get_actor(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_name: Annotated[Optional[str], Header()] = None,
) -> Actor:
    """
    Identify the acting user from X-User-* headers.

    Authentication happens upstream; requests without headers are attributed
    to "system".
    """
    if not x_user_id:
        return Actor(user_id="system", user_name="System")
    return Actor(user_id=x_user_id, user_name=x_user_name or x_user_id)


CurrentActor = Annotated[Actor, Depends(get_actor)]


def get_case_repo(session: DbSession) -> LegalCaseRepository:
    """Get legal case repository."""
    return LegalCaseRepository(session)


def get_audit_repo(session: DbSession) -> AuditLogRepository:
    """Get audit log repository."""
    return AuditLogRepository(session)


def get_notifier(request: Request) -> Notifier:
    """Get the notifier created at startup."""
    return request.app.state.notifier


# Type aliases for repositories
CaseRepo = Annotated[LegalCaseRepository, Depends(get_case_repo)]
AuditRepo = Annotated[AuditLogRepository, Depends(get_audit_repo)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]
