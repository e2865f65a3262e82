from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clerkship_scheduler.services.constraint_validator import Violation


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised when a write breaks one or more scheduling rules.

    Carries every violation found for the attempt, not just the first one.
    """
    def __init__(self, violations: Sequence[Violation] | Sequence[str], details: dict | None = None):
        self.violations = list(violations)
        messages = [getattr(item, "message", str(item)) for item in self.violations]
        payload = dict(details or {})
        payload.setdefault(
            "violations",
            [item.as_dict() if hasattr(item, "as_dict") else {"message": str(item)} for item in self.violations],
        )
        super().__init__("; ".join(messages) or "Validation failed", status_code=400, details=payload)

    @property
    def errors(self) -> list[str]:
        return [getattr(item, "message", str(item)) for item in self.violations]


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)


class ConflictError(AppError):
    """Raised when the store rejects a write that slipped past validation."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=409, details=details)


class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class InvalidDateRangeError(SchedulerError):
    def __init__(self, start, end):
        super().__init__(
            f"Invalid date range: end {end} is before start {start}",
            details={"start": str(start), "end": str(end)},
        )
