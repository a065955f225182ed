"""
Workflow error taxonomy.

Transition functions never raise these across the engine boundary; they are
returned on TransitionResult.error so the API layer can map them to HTTP
responses.
"""


class WorkflowError(Exception):
    """Base class for workflow precondition violations."""

    http_status = 409

    @property
    def message(self) -> str:
        return str(self)


class InvalidTransition(WorkflowError):
    """Operation does not apply to the case type or the current step."""


class CannotAdvance(WorkflowError):
    """Case cannot move to the next step."""


class InvalidOutcome(WorkflowError):
    """Outcome value is not valid for the case type."""

    http_status = 400


class AppealNotAllowed(WorkflowError):
    """Appeal requested for a case that cannot be appealed."""


class UnknownStep(WorkflowError):
    """Step number is outside the case type's step table."""

    http_status = 400
