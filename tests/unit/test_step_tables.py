"""
Unit tests for the legal case step tables.
"""

import pytest

from caseflow.legal.errors import UnknownStep
from caseflow.legal.steps import (
    CASE_PREFIXES,
    LegalCaseType,
    get_step_name,
    get_steps,
    outcome_step_for,
    settlement_step_for,
    side_effect_for,
    terminal_step_for,
    valid_outcomes_for,
)


class TestStepTables:
    """Tests for the per-type step tables."""

    @pytest.mark.parametrize(
        "case_type,steps",
        [
            (LegalCaseType.OVERSTAY_APPEAL, 5),
            (LegalCaseType.PROHIBITED_PERSONS, 5),
            (LegalCaseType.HIGH_COURT_EXPEDITION, 9),
            (LegalCaseType.APPEALS_8_4, 5),
            (LegalCaseType.APPEALS_8_6, 5),
        ],
    )
    def test_step_counts(self, case_type, steps):
        """Steps are numbered 1..N without gaps."""
        table = get_steps(case_type)

        assert [s.step_id for s in table] == list(range(1, steps + 1))
        assert terminal_step_for(case_type) == steps
        assert table[-1].is_terminal

    def test_high_court_names(self):
        """High Court steps follow the litigation sequence."""
        names = [s.name for s in get_steps(LegalCaseType.HIGH_COURT_EXPEDITION)]

        assert names[0] == "Letter of Demand"
        assert names[5] == "Return of Service"
        assert names[6] == "Settlement / Agreement"
        assert names[8] == "Complete"

    def test_decision_steps(self):
        """Outcome and settlement steps by type."""
        assert outcome_step_for(LegalCaseType.OVERSTAY_APPEAL) == 5
        assert outcome_step_for(LegalCaseType.HIGH_COURT_EXPEDITION) is None
        assert settlement_step_for(LegalCaseType.HIGH_COURT_EXPEDITION) == 7
        assert settlement_step_for(LegalCaseType.PROHIBITED_PERSONS) is None

    def test_valid_outcomes(self):
        """Prohibited Persons uses success/lost, the rest approved/rejected."""
        assert valid_outcomes_for(LegalCaseType.PROHIBITED_PERSONS) == ("success", "lost")
        assert valid_outcomes_for(LegalCaseType.APPEALS_8_6) == ("approved", "rejected")
        assert valid_outcomes_for(LegalCaseType.HIGH_COURT_EXPEDITION) == ()

    def test_side_effects(self):
        """Submission steps name their external action."""
        assert side_effect_for(LegalCaseType.OVERSTAY_APPEAL, 3) == "email_submission"
        assert side_effect_for(LegalCaseType.APPEALS_8_4, 3) == "vfs_submission"
        assert side_effect_for(LegalCaseType.PROHIBITED_PERSONS, 3) is None

    def test_string_case_type_accepted(self):
        """Lookups accept the enum's string value."""
        assert get_step_name("overstay_appeal", 3) == "Submit Application"

    def test_unknown_step(self):
        """Out-of-range steps raise UnknownStep."""
        with pytest.raises(UnknownStep, match="valid steps: 1-9"):
            get_step_name(LegalCaseType.HIGH_COURT_EXPEDITION, 10)

    def test_prefixes_unique(self):
        """Every type has its own reference prefix."""
        assert len(set(CASE_PREFIXES.values())) == len(LegalCaseType)
