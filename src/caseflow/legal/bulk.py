"""
Bulk operations over many cases.

Each item is processed on its own; a failing item is recorded and the run
continues with the rest.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass
class BulkItemError:
    case_id: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"case_id": self.case_id, "error": self.error}


@dataclass
class BulkResult:
    """Aggregate outcome of a bulk operation."""

    success_count: int = 0
    error_count: int = 0
    succeeded: list[int] = field(default_factory=list)
    errors: list[BulkItemError] = field(default_factory=list)

    def record_success(self, case_id: int) -> None:
        self.success_count += 1
        self.succeeded.append(case_id)

    def record_error(self, case_id: int, error: str) -> None:
        self.error_count += 1
        self.errors.append(BulkItemError(case_id=case_id, error=error))


def unique_ids(case_ids: Iterable[int]) -> list[int]:
    """Drop repeated IDs, keeping first-seen order."""
    seen = set()
    ordered = []
    for case_id in case_ids:
        if case_id not in seen:
            seen.add(case_id)
            ordered.append(case_id)
    return ordered


async def run_bulk(
    case_ids: Iterable[int],
    operation: Callable[[int], Awaitable[Any]],
    expected_errors: tuple[type[Exception], ...],
    label: str = "operation",
) -> BulkResult:
    """
    Apply an async operation to each case ID.

    Args:
        case_ids: IDs to process, duplicates ignored
        operation: Coroutine function called once per ID
        expected_errors: Exception types recorded as item failures; anything
            else propagates
        label: Name used in log messages

    Returns:
        BulkResult with per-item failures
    """
    result = BulkResult()

    for case_id in unique_ids(case_ids):
        try:
            await operation(case_id)
        except expected_errors as e:
            logger.warning(f"Bulk {label} failed for case {case_id}: {e}")
            result.record_error(case_id, str(e))
        else:
            result.record_success(case_id)

    logger.info(
        f"Bulk {label} finished: {result.success_count} succeeded, {result.error_count} failed"
    )
    return result
