"""Re-planning a schedule from a cutover date.

``plan_regeneration`` is a pure decision over a ``SchedulingContext``: it
says what to delete, what to keep and which preceptor could take over an
assignment that no longer validates. ``apply_regeneration`` is the only
step that writes, and it re-reads the store and re-plans under the write
lock instead of trusting an earlier preview.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum

from clerkship_scheduler.core.exceptions import InvalidDateRangeError, SchedulerError
from clerkship_scheduler.models.schedule_assignment import ScheduleAssignment
from clerkship_scheduler.services.assignment_service import (
    AssignmentService,
    BulkFailure,
    write_lock,
)
from clerkship_scheduler.services.audit import log_activity
from clerkship_scheduler.services.constraint_validator import (
    AssignmentValidator,
    ValidationPolicy,
    Violation,
)
from clerkship_scheduler.services.context_builder import SchedulingContext, load_context
from clerkship_scheduler.services.providers import (
    AssignmentFilter,
    AssignmentRecord,
    ClerkshipRecord,
    PreceptorRecord,
    ProposedAssignment,
    StudentRecord,
    sort_assignments,
)
from clerkship_scheduler.services.requirements import RequirementCredit

logger = logging.getLogger(__name__)


class RegenerationStrategy(str, Enum):
    full_reoptimize = "full-reoptimize"
    minimal_change = "minimal-change"
    completion = "completion"


ScheduleGenerator = Callable[[SchedulingContext, date, date], Iterable[ProposedAssignment]]


@dataclass(frozen=True)
class AffectedAssignment:
    original: AssignmentRecord
    replacement_preceptor_id: str | None
    reasons: tuple[Violation, ...] = ()

    @property
    def has_replacement(self) -> bool:
        return self.replacement_preceptor_id is not None


@dataclass(frozen=True)
class RegenerationPlan:
    strategy: RegenerationStrategy
    cutover_date: date
    window_end: date
    past: tuple[AssignmentRecord, ...]
    future: tuple[AssignmentRecord, ...]
    to_delete: tuple[AssignmentRecord, ...]
    preserved: tuple[AssignmentRecord, ...]
    affected: tuple[AffectedAssignment, ...]
    credit: RequirementCredit
    # Credited by the preserved past; assignments are the post-apply schedule.
    context: SchedulingContext

    @property
    def replaced(self) -> tuple[AffectedAssignment, ...]:
        return tuple(item for item in self.affected if item.has_replacement)

    @property
    def unresolved(self) -> tuple[AffectedAssignment, ...]:
        return tuple(item for item in self.affected if not item.has_replacement)

    def kept_future(self) -> list[AssignmentRecord]:
        kept = list(self.preserved)
        kept.extend(
            replace(item.original, preceptor_id=item.replacement_preceptor_id) for item in self.replaced
        )
        return sort_assignments(kept)

    def generator_context(self) -> SchedulingContext:
        """Context for a generator filling ``[cutover, window_end]``.

        Remaining days are also paid down by the future assignments the plan
        keeps, so a generator only fills the real gaps. ``completion`` plans
        have already credited them.
        """
        if self.strategy is RegenerationStrategy.completion:
            return self.context
        adjusted, _ = self.context.with_credit(self.kept_future())
        return adjusted


class _WorkingSchedule:
    """Mutable overlay used while one plan is being worked out.

    Entity and calendar facts come from the immutable context; the
    assignment set starts from the preserved past and grows as future
    assignments are kept.
    """

    def __init__(self, context: SchedulingContext, assignments: Iterable[AssignmentRecord]) -> None:
        self.context = context
        self.assignments: list[AssignmentRecord] = list(assignments)

    def add(self, assignment: AssignmentRecord) -> None:
        self.assignments.append(assignment)

    def get_student(self, student_id: str) -> StudentRecord | None:
        return self.context.get_student(student_id)

    def get_preceptor(self, preceptor_id: str) -> PreceptorRecord | None:
        return self.context.get_preceptor(preceptor_id)

    def get_clerkship(self, clerkship_id: str) -> ClerkshipRecord | None:
        return self.context.get_clerkship(clerkship_id)

    def get_availability(self, preceptor_id: str, on_date: date) -> bool | None:
        return self.context.get_availability(preceptor_id, on_date)

    def is_blackout(self, on_date: date) -> bool:
        return self.context.is_blackout(on_date)

    def list_assignments(self, filters: AssignmentFilter) -> list[AssignmentRecord]:
        return sort_assignments(item for item in self.assignments if filters.matches(item))

    def load_on(self, preceptor_id: str, on_date: date) -> int:
        return sum(1 for item in self.assignments if item.preceptor_id == preceptor_id and item.date == on_date)


def _as_proposal(assignment: AssignmentRecord, preceptor_id: str | None = None) -> ProposedAssignment:
    return ProposedAssignment(
        student_id=assignment.student_id,
        preceptor_id=preceptor_id or assignment.preceptor_id,
        clerkship_id=assignment.clerkship_id,
        date=assignment.date,
        status=assignment.status,
    )


def _check_window(context: SchedulingContext, cutover_date: date, window_end: date) -> None:
    if window_end < cutover_date:
        raise InvalidDateRangeError(cutover_date, window_end)
    if cutover_date < context.window_start or window_end > context.window_end:
        raise SchedulerError(
            f"Regeneration range {cutover_date}..{window_end} falls outside the context window "
            f"{context.window_start}..{context.window_end}",
            details={
                "cutover_date": cutover_date.isoformat(),
                "window_end": window_end.isoformat(),
                "context_start": context.window_start.isoformat(),
                "context_end": context.window_end.isoformat(),
            },
        )


def find_replacement_preceptor(
    assignment: AssignmentRecord,
    schedule: _WorkingSchedule,
    policy: ValidationPolicy | None = None,
) -> str | None:
    """Pick a preceptor who can take ``assignment`` over on the same date.

    Candidates come from the clerkship's preceptor pool and must pass the
    full validator against the working schedule. Among those, preceptors
    with an explicit availability record beat ones with no record, then the
    lowest load on that date wins, then the smallest id.
    """
    context = schedule.context
    validator = AssignmentValidator(schedule, policy)
    ranked: list[tuple[int, int, str]] = []
    for candidate in context.preceptor_pool(assignment.clerkship_id):
        if candidate.id == assignment.preceptor_id:
            continue
        result = validator.validate(_as_proposal(assignment, candidate.id))
        if not result.valid:
            continue
        explicit = 0 if context.get_availability(candidate.id, assignment.date) else 1
        ranked.append((explicit, schedule.load_on(candidate.id, assignment.date), candidate.id))
    if not ranked:
        return None
    ranked.sort()
    return ranked[0][2]


def plan_regeneration(
    context: SchedulingContext,
    cutover_date: date,
    window_end: date,
    strategy: RegenerationStrategy | str,
    policy: ValidationPolicy | None = None,
) -> RegenerationPlan:
    strategy = RegenerationStrategy(strategy)
    _check_window(context, cutover_date, window_end)
    logger.debug(
        "Planning %s regeneration from %s to %s over %d assignments",
        strategy.value,
        cutover_date,
        window_end,
        len(context.assignments),
    )

    past = context.assignments_before(cutover_date)
    future = context.assignments_from(cutover_date, window_end)
    beyond = [item for item in context.assignments if item.date > window_end]

    preserved: list[AssignmentRecord] = []
    affected: list[AffectedAssignment] = []
    to_delete: list[AssignmentRecord] = []

    if strategy is RegenerationStrategy.full_reoptimize:
        to_delete = list(future)
        kept = past
        credited_history = past
    elif strategy is RegenerationStrategy.completion:
        preserved = list(future)
        kept = past + future
        credited_history = past + future
    else:
        schedule = _WorkingSchedule(context, past + beyond)
        validator = AssignmentValidator(schedule, policy)
        pending: list[tuple[AssignmentRecord, tuple[Violation, ...]]] = []
        for assignment in future:
            result = validator.validate(_as_proposal(assignment))
            if result.valid:
                preserved.append(assignment)
                schedule.add(assignment)
            else:
                pending.append((assignment, tuple(result.errors)))

        # Replacements only compete for capacity left after every valid assignment is kept.
        for assignment, reasons in pending:
            replacement_id = find_replacement_preceptor(assignment, schedule, policy)
            if replacement_id is not None:
                schedule.add(replace(assignment, preceptor_id=replacement_id))
            else:
                to_delete.append(assignment)
            affected.append(
                AffectedAssignment(original=assignment, replacement_preceptor_id=replacement_id, reasons=reasons)
            )
        kept = past + preserved + [
            replace(item.original, preceptor_id=item.replacement_preceptor_id)
            for item in affected
            if item.has_replacement
        ]
        credited_history = past

    credited, credit = context.with_credit(credited_history)
    planned_context = replace(credited, assignments=tuple(sort_assignments(kept + beyond)))

    plan = RegenerationPlan(
        strategy=strategy,
        cutover_date=cutover_date,
        window_end=window_end,
        past=tuple(past),
        future=tuple(future),
        to_delete=tuple(to_delete),
        preserved=tuple(preserved),
        affected=tuple(affected),
        credit=credit,
        context=planned_context,
    )
    logger.info(
        "Regeneration planned (%s from %s): past=%d future=%d preserved=%d affected=%d delete=%d",
        strategy.value,
        cutover_date,
        len(plan.past),
        len(plan.future),
        len(plan.preserved),
        len(plan.affected),
        len(plan.to_delete),
    )
    return plan


@dataclass
class RegenerationApplyResult:
    strategy: RegenerationStrategy
    deleted_count: int
    preserved_count: int
    new_assignments: list[ScheduleAssignment] = field(default_factory=list)
    unresolved: list[AssignmentRecord] = field(default_factory=list)
    generation_failures: list[BulkFailure] = field(default_factory=list)
    plan: RegenerationPlan | None = None


def apply_regeneration(
    service: AssignmentService,
    context: SchedulingContext,
    cutover_date: date,
    window_end: date,
    strategy: RegenerationStrategy | str,
    *,
    generator: ScheduleGenerator | None = None,
) -> RegenerationApplyResult:
    """Carry out a regeneration against the store behind ``service``.

    ``context`` only supplies the window; facts are re-read and the plan is
    re-derived under the write lock, so nothing decided by an earlier preview
    is trusted blindly. Deletes and preceptor swaps commit together. The
    optional ``generator`` then proposes assignments for the freed range,
    which go through the normal validated bulk-create path.
    """
    strategy = RegenerationStrategy(strategy)
    db = service.db
    with write_lock:
        fresh = load_context(service.store, context.window_start, context.window_end)
        plan = plan_regeneration(fresh, cutover_date, window_end, strategy, service.policy)

        replaced_models: list[ScheduleAssignment] = []
        try:
            delete_ids = [item.id for item in plan.to_delete]
            deleted = service.clear_assignments(assignment_ids=delete_ids, commit=False) if delete_ids else 0
            for item in plan.replaced:
                model = service.get_assignment(item.original.id)
                model.preceptor_id = item.replacement_preceptor_id
                model.updated_at = service.clock()
                replaced_models.append(model)
            log_activity(
                db,
                actor=service.actor,
                action="schedule.regenerate",
                entity_type="schedule",
                details={
                    "strategy": strategy.value,
                    "cutover_date": cutover_date.isoformat(),
                    "window_end": window_end.isoformat(),
                    "deleted": deleted,
                    "preserved": len(plan.preserved),
                    "replaced": [
                        {"assignment_id": item.original.id, "preceptor_id": item.replacement_preceptor_id}
                        for item in plan.replaced
                    ],
                    "unresolved": [item.original.id for item in plan.unresolved],
                },
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        for model in replaced_models:
            db.refresh(model)

        result = RegenerationApplyResult(
            strategy=strategy,
            deleted_count=deleted,
            preserved_count=len(plan.preserved),
            new_assignments=list(replaced_models),
            unresolved=[item.original for item in plan.unresolved],
            plan=plan,
        )

        if generator is not None:
            proposals = list(generator(plan.generator_context(), cutover_date, window_end))
            outcome = service.bulk_create_assignments(proposals)
            result.new_assignments.extend(outcome.successful)
            result.generation_failures.extend(outcome.failed)

    if result.unresolved:
        logger.warning(
            "Regeneration left %d assignments without a replacement preceptor", len(result.unresolved)
        )
    logger.info(
        "Regeneration applied (%s from %s): deleted=%d preserved=%d new=%d",
        strategy.value,
        cutover_date,
        result.deleted_count,
        result.preserved_count,
        len(result.new_assignments),
    )
    return result
