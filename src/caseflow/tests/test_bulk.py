"""
Tests for bulk operations.
"""

from unittest.mock import AsyncMock

import pytest

from caseflow.db.repositories import CaseNotFoundError
from caseflow.legal.bulk import run_bulk, unique_ids


class TestUniqueIds:
    def test_keeps_first_seen_order(self):
        """Duplicates are dropped without reordering."""
        assert unique_ids([3, 1, 3, 2, 1]) == [3, 1, 2]


class TestRunBulk:
    """Tests for run_bulk."""

    @pytest.mark.asyncio
    async def test_partial_failure(self):
        """A missing case is recorded and the rest still succeed."""

        async def delete(case_id):
            if case_id == 99:
                raise CaseNotFoundError(f"Legal case {case_id} not found")

        result = await run_bulk([1, 99, 2], delete, (CaseNotFoundError,), label="delete")

        assert result.success_count == 2
        assert result.error_count == 1
        assert result.succeeded == [1, 2]
        assert result.errors[0].case_id == 99
        assert "not found" in result.errors[0].error

    @pytest.mark.asyncio
    async def test_each_id_processed_once(self):
        """Repeated IDs call the operation once."""
        operation = AsyncMock()

        result = await run_bulk([5, 5, 6], operation, (CaseNotFoundError,))

        assert operation.await_count == 2
        assert result.success_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self):
        """Only the expected error types are recorded per item."""
        operation = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await run_bulk([1], operation, (CaseNotFoundError,))

    @pytest.mark.asyncio
    async def test_empty_input(self):
        """No IDs means no work."""
        result = await run_bulk([], AsyncMock(), (CaseNotFoundError,))

        assert result.success_count == 0
        assert result.error_count == 0
