"""Immutable snapshot of everything a planning operation reasons over."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from types import MappingProxyType

from clerkship_scheduler.core.exceptions import InvalidDateRangeError
from clerkship_scheduler.services.providers import (
    AssignmentFilter,
    AssignmentRecord,
    AvailabilityRecord,
    ClerkshipRecord,
    PreceptorRecord,
    SqlSchedulingStore,
    StudentRecord,
    TeamRecord,
    sort_assignments,
)
from clerkship_scheduler.services.requirements import (
    RequirementCredit,
    RequirementKey,
    credit_assignments,
    initialize_requirements,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextOptions:
    blackout_dates: tuple[date, ...] = ()
    assignments: tuple[AssignmentRecord, ...] = ()


@dataclass(frozen=True, eq=False)
class SchedulingContext:
    window_start: date
    window_end: date
    students: Mapping[str, StudentRecord]
    preceptors: Mapping[str, PreceptorRecord]
    clerkships: Mapping[str, ClerkshipRecord]
    teams: tuple[TeamRecord, ...]
    availability: Mapping[tuple[str, date], bool]
    blackout_dates: frozenset[date]
    assignments: tuple[AssignmentRecord, ...]
    remaining_requirements: Mapping[RequirementKey, int]
    credited_days: Mapping[RequirementKey, int] = field(default_factory=lambda: MappingProxyType({}))

    # SchedulingFacts

    def get_student(self, student_id: str) -> StudentRecord | None:
        return self.students.get(student_id)

    def get_preceptor(self, preceptor_id: str) -> PreceptorRecord | None:
        return self.preceptors.get(preceptor_id)

    def get_clerkship(self, clerkship_id: str) -> ClerkshipRecord | None:
        return self.clerkships.get(clerkship_id)

    def get_availability(self, preceptor_id: str, on_date: date) -> bool | None:
        return self.availability.get((preceptor_id, on_date))

    def is_blackout(self, on_date: date) -> bool:
        return on_date in self.blackout_dates

    def list_assignments(self, filters: AssignmentFilter) -> list[AssignmentRecord]:
        return [item for item in self.assignments if filters.matches(item)]

    # Derived lookups

    def remaining_days(self, student_id: str, clerkship_id: str) -> int:
        return self.remaining_requirements.get((student_id, clerkship_id), 0)

    def completed_days(self, student_id: str, clerkship_id: str) -> int:
        return self.credited_days.get((student_id, clerkship_id), 0)

    def assignments_before(self, cutover: date) -> list[AssignmentRecord]:
        return [item for item in self.assignments if item.date < cutover]

    def assignments_from(self, cutover: date, until: date | None = None) -> list[AssignmentRecord]:
        return [
            item
            for item in self.assignments
            if item.date >= cutover and (until is None or item.date <= until)
        ]

    def preceptor_pool(self, clerkship_id: str) -> list[PreceptorRecord]:
        """Preceptors that may serve ``clerkship_id``.

        Team membership defines the pool when the clerkship has teams;
        otherwise every preceptor in scope is eligible.
        """
        member_ids: set[str] = set()
        for team in self.teams:
            if team.clerkship_id == clerkship_id:
                member_ids.update(team.preceptor_ids)
        if not member_ids:
            return [self.preceptors[key] for key in sorted(self.preceptors)]
        return [self.preceptors[key] for key in sorted(member_ids) if key in self.preceptors]

    def with_credit(self, history: Iterable[AssignmentRecord]) -> tuple[SchedulingContext, RequirementCredit]:
        """Return a new context whose remaining days are paid down by ``history``."""
        credit = credit_assignments(self.remaining_requirements, history)
        merged = dict(self.credited_days)
        for key, days in credit.credited.items():
            merged[key] = merged.get(key, 0) + days
        credited = replace(
            self,
            remaining_requirements=MappingProxyType(credit.remaining),
            credited_days=MappingProxyType(merged),
        )
        return credited, credit


def build_context(
    students: Iterable[StudentRecord],
    preceptors: Iterable[PreceptorRecord],
    clerkships: Iterable[ClerkshipRecord],
    teams: Iterable[TeamRecord],
    availability_records: Iterable[AvailabilityRecord],
    window_start: date,
    window_end: date,
    options: ContextOptions | None = None,
) -> SchedulingContext:
    if window_end < window_start:
        raise InvalidDateRangeError(window_start, window_end)
    options = options or ContextOptions()

    student_list = list(students)
    clerkship_list = list(clerkships)

    availability: dict[tuple[str, date], bool] = {}
    for record in availability_records:
        if window_start <= record.date <= window_end:
            availability[(record.preceptor_id, record.date)] = bool(record.is_available)

    assignments = tuple(
        sort_assignments(item for item in options.assignments if window_start <= item.date <= window_end)
    )

    context = SchedulingContext(
        window_start=window_start,
        window_end=window_end,
        students=MappingProxyType({item.id: item for item in student_list}),
        preceptors=MappingProxyType({item.id: item for item in preceptors}),
        clerkships=MappingProxyType({item.id: item for item in clerkship_list}),
        teams=tuple(teams),
        availability=MappingProxyType(availability),
        blackout_dates=frozenset(options.blackout_dates),
        assignments=assignments,
        remaining_requirements=MappingProxyType(initialize_requirements(student_list, clerkship_list)),
    )
    logger.debug(
        "Built scheduling context %s..%s: %d students, %d preceptors, %d clerkships, %d assignments",
        window_start,
        window_end,
        len(context.students),
        len(context.preceptors),
        len(context.clerkships),
        len(context.assignments),
    )
    return context


def load_context(store: SqlSchedulingStore, window_start: date, window_end: date) -> SchedulingContext:
    """Read a fresh snapshot for ``[window_start, window_end]`` from the store."""
    if window_end < window_start:
        raise InvalidDateRangeError(window_start, window_end)
    options = ContextOptions(
        blackout_dates=tuple(store.list_blackout_dates(window_start, window_end)),
        assignments=tuple(
            store.list_assignments(AssignmentFilter(start_date=window_start, end_date=window_end))
        ),
    )
    return build_context(
        store.list_students(),
        store.list_preceptors(),
        store.list_clerkships(),
        store.list_teams(),
        store.list_availability(window_start, window_end),
        window_start,
        window_end,
        options,
    )
