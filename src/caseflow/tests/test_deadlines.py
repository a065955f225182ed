"""
Tests for deadline projections.
"""

from datetime import timedelta

from caseflow.legal.deadlines import (
    check_notification_period,
    is_overdue,
    next_deadline_for,
    upcoming_deadlines,
)
from caseflow.legal.workflow import advance_step, mark_notification_period_satisfied, set_settlement


class TestCheckNotificationPeriod:
    """Tests for the Letter of Demand notification period."""

    def test_other_types_always_satisfied(self, overstay_case, now):
        """Cases without a notification period report satisfied."""
        status = check_notification_period(overstay_case, now=now)

        assert status.satisfied is True
        assert status.days_remaining == 0
        assert status.end_date is None

    def test_period_running(self, high_court_case, now):
        """Days remaining count down from the period length."""
        status = check_notification_period(high_court_case, now=now + timedelta(days=4))

        assert status.satisfied is False
        assert status.days_remaining == 10
        assert status.end_date == now + timedelta(days=14)

    def test_partial_day_rounds_up(self, high_court_case, now):
        """A part day still counts as a day remaining."""
        status = check_notification_period(high_court_case, now=now + timedelta(days=13, hours=1))
        assert status.days_remaining == 1

    def test_period_elapsed(self, high_court_case, now):
        """After the end date the period is satisfied."""
        status = check_notification_period(high_court_case, now=now + timedelta(days=20))

        assert status.satisfied is True
        assert status.days_remaining == 0

    def test_manual_override(self, high_court_case, now):
        """A manually satisfied period reports satisfied immediately."""
        case = mark_notification_period_satisfied(high_court_case, now=now).case
        assert check_notification_period(case, now=now).satisfied is True

    def test_missing_end_date(self, high_court_case, now):
        """Without an end date the full period remains."""
        high_court_case.workflow_data.notification_period_end = None
        status = check_notification_period(high_court_case, now=now)

        assert status.satisfied is False
        assert status.days_remaining == 14

    def test_to_dict(self, high_court_case, now):
        """End date is serialized as ISO text."""
        data = check_notification_period(high_court_case, now=now).to_dict()
        assert data["end_date"] == "2026-03-16T09:00:00"


class TestUpcomingDeadlines:
    """Tests for upcoming and overdue deadlines."""

    def test_deadline_outside_horizon(self, high_court_case, now):
        """The 14-day period is not upcoming within a 7-day horizon."""
        assert upcoming_deadlines(high_court_case, within_days=7, now=now) == []

    def test_deadline_within_horizon(self, high_court_case, now):
        """Deadlines inside the horizon are returned."""
        upcoming = upcoming_deadlines(high_court_case, within_days=30, now=now)

        assert [c.key for c in upcoming] == ["notification_period"]

    def test_no_deadlines_for_closed_cases(self, high_court_case, advance_to, now):
        """Terminal cases have nothing upcoming and are never overdue."""
        case = advance_to(high_court_case, 7, now)
        settled = set_settlement(case, True, now=now).case

        assert upcoming_deadlines(settled, within_days=365, now=now) == []
        assert is_overdue(settled, now=now + timedelta(days=365)) is False

    def test_overdue_after_due_date(self, high_court_case, now):
        """An unsatisfied constraint past its due date is overdue."""
        assert is_overdue(high_court_case, now=now) is False
        assert is_overdue(high_court_case, now=now + timedelta(days=15)) is True

    def test_overdue_when_settlement_window_exceeded(self, high_court_case, advance_to, now):
        """A breached settlement window keeps the case overdue."""
        case = advance_to(high_court_case, 6, now)
        late = advance_step(case, now=now + timedelta(days=20)).case

        assert is_overdue(late, now=now + timedelta(days=20)) is True

    def test_next_deadline_ignores_satisfied(self, high_court_case, now):
        """Satisfied constraints do not set the next deadline."""
        assert next_deadline_for(high_court_case) == now + timedelta(days=14)

        high_court_case.constraints[0].is_satisfied = True
        assert next_deadline_for(high_court_case) is None
