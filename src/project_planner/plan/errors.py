"""Domain errors raised by the plan store and plan service.

Every error carries a stable ``code`` and ``status_code`` so the HTTP layer
can render it without inspecting the message.
"""

from __future__ import annotations


class PlanError(Exception):
    """Base class for plan domain errors."""

    code = "plan_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "detail": self.message}


class InvalidArgument(PlanError):
    """Missing or malformed identifiers, positions or sequence orders."""

    code = "invalid_argument"
    status_code = 400


class NotFound(PlanError):
    """The project or task does not exist."""

    code = "not_found"
    status_code = 404


class NotInPlan(PlanError):
    """The task exists but has no entry in the project's plan."""

    code = "not_in_plan"
    status_code = 404


class AlreadyExists(PlanError):
    """The task already occupies a position in the project's plan."""

    code = "already_exists"
    status_code = 409


class Conflict(PlanError):
    """A request contradicts itself, e.g. two tasks asking for one position."""

    code = "conflict"
    status_code = 409


class InvariantViolation(PlanError):
    """The task belongs to a different project than the one addressed."""

    code = "invariant_violation"
    status_code = 422


class StorageFailure(PlanError):
    """The backing store failed; the enclosing operation was rolled back."""

    code = "storage_failure"
    status_code = 500
