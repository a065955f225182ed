"""
Tests for legal case domain models.
"""

import pytest

from caseflow.legal.models import (
    HighCourtData,
    LegalCase,
    Section8AppealData,
    workflow_data_for,
    workflow_data_from_dict,
)
from caseflow.legal.steps import LegalCaseType, StepStatus


class TestWorkflowData:
    """Tests for the per-type workflow payloads."""

    def test_payload_matches_case_type(self):
        """Each case type gets its own payload variant."""
        assert isinstance(workflow_data_for(LegalCaseType.HIGH_COURT_EXPEDITION), HighCourtData)
        assert workflow_data_for(LegalCaseType.APPEALS_8_6).type == LegalCaseType.APPEALS_8_6

    def test_mismatched_tag_rejected(self):
        """Stored payloads must carry the case's own tag."""
        with pytest.raises(ValueError, match="tagged high_court_expedition"):
            workflow_data_from_dict({"type": "high_court_expedition"}, LegalCaseType.OVERSTAY_APPEAL)

    def test_unknown_keys_ignored(self):
        """Keys from older payload versions are dropped on load."""
        data = workflow_data_from_dict(
            {"type": "appeals_8_6", "vfs_center": "Durban", "legacy_field": 1, "section": "8(6)"},
            LegalCaseType.APPEALS_8_6,
        )

        assert isinstance(data, Section8AppealData)
        assert data.vfs_center == "Durban"
        assert data.section == "8(6)"

    def test_timestamps_parsed(self):
        """ISO strings, including a Z suffix, load as naive UTC datetimes."""
        data = workflow_data_from_dict(
            {"notification_period_end": "2026-03-16T09:00:00Z"},
            LegalCaseType.HIGH_COURT_EXPEDITION,
        )

        assert data.notification_period_end.isoformat() == "2026-03-16T09:00:00"


class TestLegalCase:
    """Tests for LegalCase."""

    def test_dict_round_trip(self, high_court_case):
        """A case survives to_dict/from_dict unchanged."""
        high_court_case.tags = ["urgent", "gauteng"]
        restored = LegalCase.from_dict(high_court_case.to_dict())

        assert restored == high_court_case

    def test_to_dict_includes_step_name(self, overstay_case):
        """The serialized case names its current step."""
        data = overstay_case.to_dict()

        assert data["current_step_name"] == "Reach Out to Client"
        assert data["case_type"] == "overstay_appeal"
        assert data["workflow_data"]["type"] == "overstay_appeal"

    def test_defaults_filled(self):
        """A bare case gets a payload and a full step history."""
        case = LegalCase(case_type="prohibited_persons", case_title="T", client_name="C")

        assert case.case_type == LegalCaseType.PROHIBITED_PERSONS
        assert len(case.step_history) == 5
        assert case.step_history[0].status == StepStatus.IN_PROGRESS
        assert case.is_appeal is False
        assert case.is_terminal is False
