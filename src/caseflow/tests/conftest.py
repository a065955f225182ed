"""
Pytest configuration and shared fixtures for Caseflow tests.
"""

from datetime import datetime
from typing import Callable

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from caseflow.config import settings
from caseflow.db.orm import Base
from caseflow.legal.models import LegalCase
from caseflow.legal.steps import LegalCaseType
from caseflow.legal.workflow import advance_step, create_legal_case


@pytest.fixture
def now() -> datetime:
    """Fixed clock for deterministic transitions."""
    return datetime(2026, 3, 2, 9, 0, 0)


def _build(case_type: LegalCaseType, case_id: int, reference: str, now: datetime) -> LegalCase:
    case = create_legal_case(
        case_type,
        case_title="Test Matter",
        client_name="Thandi Nkosi",
        client_email="thandi@example.com",
        client_phone="+27 82 555 0100",
        now=now,
    )
    case.case_id = case_id
    case.case_reference = reference
    return case


@pytest.fixture
def overstay_case(now) -> LegalCase:
    """An Overstay Appeal case at step 1."""
    return _build(LegalCaseType.OVERSTAY_APPEAL, 1, "OA-2026-00001", now)


@pytest.fixture
def prohibited_case(now) -> LegalCase:
    """A Prohibited Persons case at step 1."""
    return _build(LegalCaseType.PROHIBITED_PERSONS, 2, "PP-2026-00002", now)


@pytest.fixture
def high_court_case(now) -> LegalCase:
    """A High Court case at step 1, notification period running."""
    return _build(LegalCaseType.HIGH_COURT_EXPEDITION, 3, "HC-2026-00003", now)


@pytest.fixture
def section_8_case(now) -> LegalCase:
    """An Appeals 8(4) case at step 1."""
    return _build(LegalCaseType.APPEALS_8_4, 4, "A84-2026-00004", now)


@pytest.fixture
def advance_to() -> Callable[..., LegalCase]:
    """Advance a case step by step until it reaches ``step``."""

    def _advance(case: LegalCase, step: int, now: datetime) -> LegalCase:
        while case.current_step < step:
            result = advance_step(case, now=now)
            assert result.success, result.message
            case = result.case
        return case

    return _advance


@pytest_asyncio.fixture
async def session(tmp_path):
    """Async session against a fresh SQLite database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'repo.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def client(tmp_path, monkeypatch) -> TestClient:
    """Test client running the full app against a temporary database."""
    from caseflow.main import app, limiter

    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setattr(settings, "auto_create_schema", True)
    monkeypatch.setattr(settings, "notification_webhook_url", None)
    monkeypatch.setattr(limiter, "enabled", False)

    with TestClient(app) as test_client:
        yield test_client
