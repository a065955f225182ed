"""
Deadline projections for legal cases.

Read-only views over a case's constraints: the High Court notification
period, upcoming deadlines and overdue checks.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from caseflow.config import settings
from caseflow.legal.models import HighCourtData, LegalCase, WorkflowConstraint, utcnow
from caseflow.legal.steps import LegalCaseType

NOTIFICATION_PERIOD = "notification_period"
SETTLEMENT_WINDOW = "settlement_window"


@dataclass
class NotificationPeriodStatus:
    """State of the Letter of Demand notification period."""

    satisfied: bool
    days_remaining: int
    end_date: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "satisfied": self.satisfied,
            "days_remaining": self.days_remaining,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


def check_notification_period(
    case: LegalCase,
    now: Optional[datetime] = None,
) -> NotificationPeriodStatus:
    """
    Check whether the notification period of a High Court case has elapsed.

    Other case types have no notification period and always report satisfied.
    """
    if case.case_type != LegalCaseType.HIGH_COURT_EXPEDITION:
        return NotificationPeriodStatus(satisfied=True, days_remaining=0)

    data: HighCourtData = case.workflow_data
    if data.notification_period_satisfied:
        return NotificationPeriodStatus(
            satisfied=True, days_remaining=0, end_date=data.notification_period_end
        )
    if data.notification_period_end is None:
        return NotificationPeriodStatus(
            satisfied=False, days_remaining=settings.notification_period_days
        )

    now = now or utcnow()
    remaining = (data.notification_period_end - now) / timedelta(days=1)
    days_remaining = math.ceil(remaining)
    return NotificationPeriodStatus(
        satisfied=days_remaining <= 0,
        days_remaining=max(0, days_remaining),
        end_date=data.notification_period_end,
    )


def _open(constraint: WorkflowConstraint) -> bool:
    return constraint.due_date is not None and not constraint.is_satisfied


def next_deadline_for(case: LegalCase) -> Optional[datetime]:
    """Earliest due date among the case's unsatisfied constraints."""
    due = [c.due_date for c in case.constraints if _open(c)]
    return min(due) if due else None


def upcoming_deadlines(
    case: LegalCase,
    within_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[WorkflowConstraint]:
    """Unsatisfied constraints falling due within the next ``within_days`` days."""
    if case.is_terminal:
        return []

    now = now or utcnow()
    if within_days is None:
        within_days = settings.deadline_warning_days
    horizon = now + timedelta(days=within_days)

    upcoming = [c for c in case.constraints if _open(c) and now <= c.due_date <= horizon]
    return sorted(upcoming, key=lambda c: c.due_date)


def is_overdue(case: LegalCase, now: Optional[datetime] = None) -> bool:
    """True if any unsatisfied constraint is past its due date."""
    if case.is_terminal:
        return False
    now = now or utcnow()
    return any(_open(c) and c.due_date < now for c in case.constraints)
