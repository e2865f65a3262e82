"""Read-only preview of what a regeneration would do."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from clerkship_scheduler.services.constraint_validator import ValidationPolicy
from clerkship_scheduler.services.context_builder import SchedulingContext
from clerkship_scheduler.services.providers import AssignmentRecord
from clerkship_scheduler.services.regeneration import (
    AffectedAssignment,
    RegenerationStrategy,
    plan_regeneration,
)
from clerkship_scheduler.services.requirements import UnmetRequirement, unmet_requirements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequirementProgress:
    student_id: str
    clerkship_id: str
    required_days: int
    completed_days: int
    remaining_days: int


@dataclass(frozen=True)
class ImpactReport:
    strategy: RegenerationStrategy
    cutover_date: date
    window_end: date
    past_assignments: tuple[AssignmentRecord, ...]
    preserved_assignments: tuple[AssignmentRecord, ...]
    deleted_assignments: tuple[AssignmentRecord, ...]
    affected_assignments: tuple[AffectedAssignment, ...]
    progress: tuple[RequirementProgress, ...]
    unmet: tuple[UnmetRequirement, ...] = field(default=())

    @property
    def past_count(self) -> int:
        return len(self.past_assignments)

    @property
    def preserved_count(self) -> int:
        return len(self.preserved_assignments)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_assignments)

    @property
    def affected_count(self) -> int:
        return len(self.affected_assignments)

    @property
    def replaceable_count(self) -> int:
        return sum(1 for item in self.affected_assignments if item.has_replacement)

    @property
    def summary(self) -> dict:
        return {
            "strategy": self.strategy.value,
            "cutover_date": self.cutover_date.isoformat(),
            "window_end": self.window_end.isoformat(),
            "past_preserved": self.past_count,
            "future_preserved": self.preserved_count,
            "to_delete": self.deleted_count,
            "affected": self.affected_count,
            "replaceable": self.replaceable_count,
            "unmet_requirements": len(self.unmet),
        }


def analyze_regeneration_impact(
    context: SchedulingContext,
    cutover_date: date,
    window_end: date,
    strategy: RegenerationStrategy | str,
    policy: ValidationPolicy | None = None,
) -> ImpactReport:
    """Describe the outcome of a regeneration without touching any store.

    Past assignments are always kept. Progress per (student, clerkship) pair
    counts only the preserved past as completed; ``unmet`` lists what a
    generator would still have to fill once kept future work is counted.
    """
    plan = plan_regeneration(context, cutover_date, window_end, strategy, policy)
    credited = plan.context

    progress: list[RequirementProgress] = []
    for student_id, clerkship_id in sorted(credited.remaining_requirements):
        clerkship = credited.clerkships.get(clerkship_id)
        if clerkship is None:
            continue
        progress.append(
            RequirementProgress(
                student_id=student_id,
                clerkship_id=clerkship_id,
                required_days=clerkship.required_days,
                completed_days=credited.completed_days(student_id, clerkship_id),
                remaining_days=credited.remaining_days(student_id, clerkship_id),
            )
        )

    report = ImpactReport(
        strategy=plan.strategy,
        cutover_date=cutover_date,
        window_end=window_end,
        past_assignments=plan.past,
        preserved_assignments=plan.preserved,
        deleted_assignments=plan.to_delete,
        affected_assignments=plan.affected,
        progress=tuple(progress),
        unmet=tuple(unmet_requirements(plan.generator_context())),
    )
    logger.info("Regeneration impact: %s", report.summary)
    return report
