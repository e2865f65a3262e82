"""Rules deciding whether a (student, preceptor, clerkship, date) tuple is legal.

The validator never raises for a broken rule. Every violation found is
returned so a caller can show all of them at once; the write boundary
decides whether to turn them into a ``ValidationError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clerkship_scheduler.services.providers import (
    AssignmentFilter,
    ClerkshipRecord,
    PreceptorRecord,
    ProposedAssignment,
    SchedulingFacts,
    StudentRecord,
)

if TYPE_CHECKING:
    from clerkship_scheduler.core.config import Settings

RULE_EXISTENCE = "existence"
RULE_SPECIALTY_MATCH = "specialty_match"
RULE_STUDENT_CONFLICT = "student_conflict"
RULE_PRECEPTOR_CAPACITY = "preceptor_capacity"
RULE_PRECEPTOR_AVAILABILITY = "preceptor_availability"
RULE_BLACKOUT = "blackout"

RULE_ORDER = (
    RULE_EXISTENCE,
    RULE_SPECIALTY_MATCH,
    RULE_STUDENT_CONFLICT,
    RULE_PRECEPTOR_CAPACITY,
    RULE_PRECEPTOR_AVAILABILITY,
    RULE_BLACKOUT,
)


@dataclass(frozen=True)
class ValidationPolicy:
    enforce_specialty_match: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> ValidationPolicy:
        return cls(enforce_specialty_match=settings.enforce_specialty_match)


@dataclass(frozen=True)
class Violation:
    rule: str
    message: str
    conflicting_assignment_id: str | None = None

    def as_dict(self) -> dict:
        return {
            "rule": self.rule,
            "message": self.message,
            "conflicting_assignment_id": self.conflicting_assignment_id,
        }


@dataclass(frozen=True)
class ValidationResult:
    errors: list[Violation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def messages(self) -> list[str]:
        return [item.message for item in self.errors]

    @property
    def rules(self) -> list[str]:
        return [item.rule for item in self.errors]


@dataclass(frozen=True)
class _Entities:
    student: StudentRecord
    preceptor: PreceptorRecord
    clerkship: ClerkshipRecord


class AssignmentValidator:
    def __init__(self, facts: SchedulingFacts, policy: ValidationPolicy | None = None) -> None:
        self.facts = facts
        self.policy = policy or ValidationPolicy()

    def validate(self, proposed: ProposedAssignment, exclude_assignment_id: str | None = None) -> ValidationResult:
        student = self.facts.get_student(proposed.student_id)
        preceptor = self.facts.get_preceptor(proposed.preceptor_id)
        clerkship = self.facts.get_clerkship(proposed.clerkship_id)

        missing: list[Violation] = []
        if student is None:
            missing.append(Violation(RULE_EXISTENCE, f"Student {proposed.student_id} not found"))
        if preceptor is None:
            missing.append(Violation(RULE_EXISTENCE, f"Preceptor {proposed.preceptor_id} not found"))
        if clerkship is None:
            missing.append(Violation(RULE_EXISTENCE, f"Clerkship {proposed.clerkship_id} not found"))
        if missing:
            return ValidationResult(errors=missing)

        entities = _Entities(student=student, preceptor=preceptor, clerkship=clerkship)
        checks = (
            self._check_specialty,
            self._check_student_conflict,
            self._check_preceptor_capacity,
            self._check_preceptor_availability,
            self._check_blackout,
        )
        errors: list[Violation] = []
        for check in checks:
            violation = check(proposed, entities, exclude_assignment_id)
            if violation is not None:
                errors.append(violation)
        return ValidationResult(errors=errors)

    def _check_specialty(self, proposed, entities: _Entities, exclude_assignment_id) -> Violation | None:
        if not self.policy.enforce_specialty_match:
            return None
        required = entities.clerkship.specialty
        if entities.preceptor.specialty == required:
            return None
        return Violation(
            RULE_SPECIALTY_MATCH,
            f"Preceptor specialty ({entities.preceptor.specialty or 'none'}) "
            f"does not match clerkship specialty ({required or 'none'})",
        )

    def _check_student_conflict(self, proposed, entities, exclude_assignment_id) -> Violation | None:
        existing = self.facts.list_assignments(
            AssignmentFilter(
                student_id=proposed.student_id,
                start_date=proposed.date,
                end_date=proposed.date,
                exclude_assignment_id=exclude_assignment_id,
            )
        )
        if not existing:
            return None
        return Violation(
            RULE_STUDENT_CONFLICT,
            f"Student already has an assignment on {proposed.date.isoformat()}",
            conflicting_assignment_id=existing[0].id,
        )

    def _check_preceptor_capacity(self, proposed, entities: _Entities, exclude_assignment_id) -> Violation | None:
        existing = self.facts.list_assignments(
            AssignmentFilter(
                preceptor_id=proposed.preceptor_id,
                start_date=proposed.date,
                end_date=proposed.date,
                exclude_assignment_id=exclude_assignment_id,
            )
        )
        capacity = entities.preceptor.max_students
        # No capacity on record means no room.
        if capacity is not None and len(existing) < capacity:
            return None
        return Violation(
            RULE_PRECEPTOR_CAPACITY,
            f"Preceptor has reached maximum student capacity ({capacity or 0}) "
            f"for {proposed.date.isoformat()}",
            conflicting_assignment_id=existing[0].id if existing else None,
        )

    def _check_preceptor_availability(self, proposed, entities, exclude_assignment_id) -> Violation | None:
        available = self.facts.get_availability(proposed.preceptor_id, proposed.date)
        if available is None or available:
            return None
        return Violation(
            RULE_PRECEPTOR_AVAILABILITY,
            f"Preceptor is not available on {proposed.date.isoformat()}",
        )

    def _check_blackout(self, proposed, entities, exclude_assignment_id) -> Violation | None:
        if not self.facts.is_blackout(proposed.date):
            return None
        return Violation(RULE_BLACKOUT, f"{proposed.date.isoformat()} is a blackout date")


def validate_assignment(
    facts: SchedulingFacts,
    proposed: ProposedAssignment,
    exclude_assignment_id: str | None = None,
    policy: ValidationPolicy | None = None,
) -> ValidationResult:
    return AssignmentValidator(facts, policy).validate(proposed, exclude_assignment_id)
