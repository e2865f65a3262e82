"""Manual schedule edits layered on ``AssignmentService``.

Each edit validates the merged record first and, with ``dry_run``, stops
there. Rule violations come back as data on ``EditResult``; only a missing
assignment raises.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date

from clerkship_scheduler.core.exceptions import AppError, ValidationError
from clerkship_scheduler.models.schedule_assignment import ScheduleAssignment
from clerkship_scheduler.services.assignment_service import AssignmentService, write_lock
from clerkship_scheduler.services.audit import log_activity
from clerkship_scheduler.services.constraint_validator import AssignmentValidator, ValidationResult, Violation
from clerkship_scheduler.services.providers import (
    AssignmentFilter,
    AssignmentRecord,
    ProposedAssignment,
    SchedulingFacts,
)

logger = logging.getLogger(__name__)


@dataclass
class EditResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)
    assignments: list[ScheduleAssignment] = field(default_factory=list)

    @classmethod
    def from_validation(cls, result: ValidationResult) -> EditResult:
        return cls(valid=result.valid, errors=result.messages, violations=list(result.errors))

    @property
    def assignment(self) -> ScheduleAssignment | None:
        return self.assignments[0] if self.assignments else None


@dataclass
class BulkReassignFailure:
    id: str
    errors: list[str]


@dataclass
class BulkReassignResult:
    successful: list[str] = field(default_factory=list)
    failed: list[BulkReassignFailure] = field(default_factory=list)


def _merged(assignment: ScheduleAssignment, changes: dict) -> ProposedAssignment:
    return ProposedAssignment(
        student_id=changes.get("student_id") or assignment.student_id,
        preceptor_id=changes.get("preceptor_id") or assignment.preceptor_id,
        clerkship_id=changes.get("clerkship_id") or assignment.clerkship_id,
        date=changes.get("date") or assignment.date,
        status=changes.get("status") or assignment.status,
    )


def validate_edit(service: AssignmentService, assignment_id: str, changes: dict) -> EditResult:
    assignment = service.get_assignment(assignment_id)
    result = service.validate_assignment(_merged(assignment, changes), exclude_assignment_id=assignment_id)
    return EditResult.from_validation(result)


def _apply_edit(service: AssignmentService, assignment_id: str, changes: dict, dry_run: bool) -> EditResult:
    outcome = validate_edit(service, assignment_id, changes)
    if not outcome.valid or dry_run:
        return outcome
    try:
        updated = service.update_assignment(assignment_id, changes)
    except ValidationError as exc:
        # Facts moved between the check above and the locked write.
        return EditResult(
            valid=False,
            errors=exc.errors,
            violations=[item for item in exc.violations if isinstance(item, Violation)],
        )
    outcome.assignments.append(updated)
    return outcome


def reassign_to_preceptor(
    service: AssignmentService,
    assignment_id: str,
    new_preceptor_id: str,
    *,
    dry_run: bool = False,
) -> EditResult:
    return _apply_edit(service, assignment_id, {"preceptor_id": new_preceptor_id}, dry_run)


def change_assignment_date(
    service: AssignmentService,
    assignment_id: str,
    new_date: date,
    *,
    dry_run: bool = False,
) -> EditResult:
    return _apply_edit(service, assignment_id, {"date": new_date}, dry_run)


class _SwapOverlay:
    """Store view in which two assignments already hold each other's preceptor."""

    def __init__(self, facts: SchedulingFacts, swapped: dict[str, str]) -> None:
        self.facts = facts
        self.swapped = swapped

    def __getattr__(self, name):
        return getattr(self.facts, name)

    def list_assignments(self, filters: AssignmentFilter) -> list[AssignmentRecord]:
        widened = replace(filters, preceptor_id=None)
        found: list[AssignmentRecord] = []
        for item in self.facts.list_assignments(widened):
            if item.id in self.swapped:
                item = replace(item, preceptor_id=self.swapped[item.id])
            if filters.matches(item):
                found.append(item)
        return found


def swap_preceptors(
    service: AssignmentService,
    first_id: str,
    second_id: str,
    *,
    dry_run: bool = False,
) -> EditResult:
    """Exchange the preceptors of two assignments.

    Each half is validated as if the other half had already happened, and
    errors from both halves are reported together. Both updates commit in
    one transaction.
    """
    if first_id == second_id:
        return EditResult(valid=False, errors=["Cannot swap an assignment with itself"])

    with write_lock:
        first = service.get_assignment(first_id)
        second = service.get_assignment(second_id)
        overlay = _SwapOverlay(service.store, {first.id: second.preceptor_id, second.id: first.preceptor_id})
        validator = AssignmentValidator(overlay, service.policy)
        first_check = validator.validate(_merged(first, {"preceptor_id": second.preceptor_id}), first.id)
        second_check = validator.validate(_merged(second, {"preceptor_id": first.preceptor_id}), second.id)

        violations = list(first_check.errors) + list(second_check.errors)
        outcome = EditResult(valid=not violations, errors=[item.message for item in violations], violations=violations)
        if not outcome.valid or dry_run:
            return outcome

        before = {first.id: first.preceptor_id, second.id: second.preceptor_id}
        timestamp = service.clock()
        try:
            first.preceptor_id, second.preceptor_id = second.preceptor_id, first.preceptor_id
            first.updated_at = timestamp
            second.updated_at = timestamp
            log_activity(
                service.db,
                actor=service.actor,
                action="assignment.swap",
                entity_type="schedule_assignment",
                details={
                    "before": before,
                    "after": {first.id: first.preceptor_id, second.id: second.preceptor_id},
                },
            )
            service.db.commit()
        except Exception:
            service.db.rollback()
            raise
        service.db.refresh(first)
        service.db.refresh(second)

    logger.info("Swapped preceptors of assignments %s and %s", first_id, second_id)
    outcome.assignments.extend([first, second])
    return outcome


def bulk_reassign(
    service: AssignmentService,
    assignment_ids: Iterable[str],
    new_preceptor_id: str,
) -> BulkReassignResult:
    result = BulkReassignResult()
    for assignment_id in assignment_ids:
        try:
            outcome = reassign_to_preceptor(service, assignment_id, new_preceptor_id)
        except AppError as exc:
            result.failed.append(BulkReassignFailure(id=assignment_id, errors=[exc.message]))
            continue
        if outcome.valid:
            result.successful.append(assignment_id)
        else:
            result.failed.append(BulkReassignFailure(id=assignment_id, errors=outcome.errors))
    logger.info(
        "Bulk reassign to preceptor %s: %d reassigned, %d failed",
        new_preceptor_id,
        len(result.successful),
        len(result.failed),
    )
    return result
