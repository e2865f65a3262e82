from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from clerkship_scheduler.services.providers import AssignmentRecord, ClerkshipRecord, StudentRecord

if TYPE_CHECKING:
    from clerkship_scheduler.services.context_builder import SchedulingContext

logger = logging.getLogger(__name__)

RequirementKey = tuple[str, str]


@dataclass(frozen=True)
class RequirementCredit:
    remaining: dict[RequirementKey, int]
    credited: dict[RequirementKey, int]
    total_assignments: int

    @property
    def students_with_credit(self) -> int:
        return len({student_id for student_id, _ in self.credited})


@dataclass(frozen=True)
class UnmetRequirement:
    student_id: str
    student_name: str
    clerkship_id: str
    clerkship_name: str
    required_days: int
    assigned_days: int
    remaining_days: int


def initialize_requirements(
    students: Iterable[StudentRecord],
    clerkships: Iterable[ClerkshipRecord],
) -> dict[RequirementKey, int]:
    clerkship_list = list(clerkships)
    requirements: dict[RequirementKey, int] = {}
    for student in students:
        for clerkship in clerkship_list:
            requirements[(student.id, clerkship.id)] = max(0, int(clerkship.required_days))
    logger.debug(
        "Initialized %d requirement counters across %d clerkships",
        len(requirements),
        len(clerkship_list),
    )
    return requirements


def credit_assignments(
    remaining: Mapping[RequirementKey, int],
    assignments: Iterable[AssignmentRecord],
) -> RequirementCredit:
    """Pay down remaining days with already-held assignments.

    Returns fresh maps; ``remaining`` is left untouched so the same history
    always produces the same numbers. Counters never go below zero and pairs
    outside ``remaining`` earn no credit.
    """
    updated = dict(remaining)
    credited: dict[RequirementKey, int] = {}
    total = 0
    for assignment in assignments:
        total += 1
        key = (assignment.student_id, assignment.clerkship_id)
        days_needed = updated.get(key, 0)
        if days_needed <= 0:
            continue
        updated[key] = days_needed - 1
        credited[key] = credited.get(key, 0) + 1
    return RequirementCredit(remaining=updated, credited=credited, total_assignments=total)


def unmet_requirements(context: SchedulingContext) -> list[UnmetRequirement]:
    unmet: list[UnmetRequirement] = []
    for (student_id, clerkship_id), days_needed in sorted(context.remaining_requirements.items()):
        if days_needed <= 0:
            continue
        student = context.students.get(student_id)
        clerkship = context.clerkships.get(clerkship_id)
        if student is None or clerkship is None:
            continue
        unmet.append(
            UnmetRequirement(
                student_id=student_id,
                student_name=student.name,
                clerkship_id=clerkship_id,
                clerkship_name=clerkship.name,
                required_days=clerkship.required_days,
                assigned_days=clerkship.required_days - days_needed,
                remaining_days=days_needed,
            )
        )
    if unmet:
        logger.warning("Unmet requirements: %d across %d students", len(unmet), len(context.students))
    return unmet


def students_needing_assignments(context: SchedulingContext) -> list[StudentRecord]:
    needing = {student_id for (student_id, _), days in context.remaining_requirements.items() if days > 0}
    return [context.students[student_id] for student_id in sorted(needing) if student_id in context.students]


def most_needed_clerkship(context: SchedulingContext, student_id: str) -> ClerkshipRecord | None:
    best_id: str | None = None
    best_days = 0
    for (owner_id, clerkship_id), days in sorted(context.remaining_requirements.items()):
        if owner_id != student_id:
            continue
        if days > best_days:
            best_days = days
            best_id = clerkship_id
    if best_id is None:
        return None
    return context.clerkships.get(best_id)
