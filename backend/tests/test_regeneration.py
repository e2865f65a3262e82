from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from clerkship_scheduler.core.exceptions import InvalidDateRangeError, SchedulerError
from clerkship_scheduler.models import ScheduleAssignment
from clerkship_scheduler.services.audit import list_activity
from clerkship_scheduler.services.constraint_validator import (
    RULE_PRECEPTOR_AVAILABILITY,
    ValidationPolicy,
    validate_assignment,
)
from clerkship_scheduler.services.context_builder import ContextOptions, build_context, load_context
from clerkship_scheduler.services.providers import (
    AssignmentRecord,
    AvailabilityRecord,
    ClerkshipRecord,
    PreceptorRecord,
    ProposedAssignment,
    StudentRecord,
    TeamRecord,
)
from clerkship_scheduler.services.regeneration import (
    RegenerationStrategy,
    apply_regeneration,
    plan_regeneration,
)

START = date(2026, 3, 1)
END = date(2026, 3, 31)
CUTOVER = date(2026, 3, 10)
D = date(2026, 3, 12)


def _context(*, preceptors, assignments, availability=(), teams=(), blackouts=(), required_days=5):
    return build_context(
        students=[StudentRecord("s1", "Ada"), StudentRecord("s2", "Grace")],
        preceptors=preceptors,
        clerkships=[ClerkshipRecord("c1", "Surgery", required_days)],
        teams=teams,
        availability_records=availability,
        window_start=START,
        window_end=END,
        options=ContextOptions(blackout_dates=tuple(blackouts), assignments=tuple(assignments)),
    )


def _a(assignment_id, on_date, *, student_id="s1", preceptor_id="p1"):
    return AssignmentRecord(assignment_id, student_id, preceptor_id, "c1", on_date)


def _proposal(record):
    return ProposedAssignment(record.student_id, record.preceptor_id, record.clerkship_id, record.date)


def test_full_reoptimize_credits_history_and_deletes_all_future():
    assignments = [
        _a("past-1", date(2026, 3, 2)),
        _a("past-2", date(2026, 3, 3)),
        _a("future-1", CUTOVER),
        _a("future-2", D, student_id="s2"),
    ]
    context = _context(preceptors=[PreceptorRecord("p1", "Dr. One", 2)], assignments=assignments)

    plan = plan_regeneration(context, CUTOVER, END, RegenerationStrategy.full_reoptimize)

    assert plan.preserved == ()
    assert [item.id for item in plan.to_delete] == ["future-1", "future-2"]
    assert len(plan.to_delete) == len([item for item in assignments if item.date >= CUTOVER])
    assert plan.context.remaining_days("s1", "c1") == 3
    assert plan.context.remaining_days("s2", "c1") == 5
    assert plan.context.completed_days("s1", "c1") == 2
    assert [item.id for item in plan.context.assignments] == ["past-1", "past-2"]


def test_minimal_change_keeps_valid_and_flags_invalid():
    assignments = [
        _a("past", date(2026, 3, 2)),
        _a("keep", CUTOVER),
        _a("moved", D, student_id="s2"),
    ]
    context = _context(
        preceptors=[PreceptorRecord("p1", "Dr. One", 1)],
        assignments=assignments,
        availability=[AvailabilityRecord("p1", D, False)],
    )

    plan = plan_regeneration(context, CUTOVER, END, "minimal-change")

    assert [item.id for item in plan.preserved] == ["keep"]
    assert [item.original.id for item in plan.affected] == ["moved"]
    assert plan.affected[0].reasons[0].rule == RULE_PRECEPTOR_AVAILABILITY
    assert len(plan.preserved) + len(plan.affected) == len(plan.future)
    for record in plan.preserved:
        assert validate_assignment(plan.context, _proposal(record), exclude_assignment_id=record.id).valid


def test_minimal_change_proposes_available_replacement():
    context = _context(
        preceptors=[PreceptorRecord("p1", "Dr. One", 1), PreceptorRecord("p2", "Dr. Two", 1)],
        assignments=[_a("a1", D)],
        availability=[AvailabilityRecord("p1", D, False)],
    )

    plan = plan_regeneration(context, CUTOVER, END, RegenerationStrategy.minimal_change)

    assert len(plan.affected) == 1
    assert plan.affected[0].replacement_preceptor_id == "p2"
    assert plan.to_delete == ()
    assert [item.preceptor_id for item in plan.kept_future()] == ["p2"]


def test_minimal_change_reports_missing_replacement_as_null():
    context = _context(
        preceptors=[PreceptorRecord("p1", "Dr. One", 1), PreceptorRecord("p2", "Dr. Two", 1)],
        assignments=[_a("a1", D), _a("busy", D, student_id="s2", preceptor_id="p2")],
        availability=[AvailabilityRecord("p1", D, False)],
    )

    plan = plan_regeneration(context, CUTOVER, END, RegenerationStrategy.minimal_change)

    assert [item.id for item in plan.preserved] == ["busy"]
    assert [(item.original.id, item.replacement_preceptor_id) for item in plan.affected] == [("a1", None)]
    assert [item.original.id for item in plan.unresolved] == ["a1"]
    assert "a1" not in {item.id for item in plan.preserved}


def test_replacement_tie_break_prefers_explicit_availability_then_load_then_id():
    preceptors = [
        PreceptorRecord("p1", "Dr. One", 1),
        PreceptorRecord("p2", "Dr. Two", 3),
        PreceptorRecord("p3", "Dr. Three", 3),
        PreceptorRecord("p4", "Dr. Four", 3),
    ]
    unavailable = AvailabilityRecord("p1", D, False)

    by_id = _context(preceptors=preceptors, assignments=[_a("a1", D)], availability=[unavailable])
    by_load = _context(
        preceptors=preceptors,
        assignments=[_a("a1", D), _a("x", D, student_id="s2", preceptor_id="p2")],
        availability=[unavailable],
    )
    by_record = _context(
        preceptors=preceptors,
        assignments=[_a("a1", D)],
        availability=[unavailable, AvailabilityRecord("p4", D, True)],
    )

    def pick(context):
        return plan_regeneration(context, CUTOVER, END, "minimal-change").affected[0].replacement_preceptor_id

    assert pick(by_id) == "p2"
    assert pick(by_load) == "p3"
    assert pick(by_record) == "p4"


def test_replacement_pool_limited_to_clerkship_team():
    context = _context(
        preceptors=[PreceptorRecord(pid, pid, 1) for pid in ("p1", "p2", "p3")],
        assignments=[_a("a1", D)],
        availability=[AvailabilityRecord("p1", D, False)],
        teams=[TeamRecord("t1", "c1", ("p1", "p3"))],
    )

    plan = plan_regeneration(context, CUTOVER, END, "minimal-change")

    assert plan.affected[0].replacement_preceptor_id == "p3"


def test_replacement_respects_specialty_policy():
    context = build_context(
        students=[StudentRecord("s1", "Ada")],
        preceptors=[
            PreceptorRecord("p1", "Dr. One", 1, specialty="surgery"),
            PreceptorRecord("p2", "Dr. Two", 1, specialty="pediatrics"),
        ],
        clerkships=[ClerkshipRecord("c1", "Surgery", 5, specialty="surgery")],
        teams=[],
        availability_records=[AvailabilityRecord("p1", D, False)],
        window_start=START,
        window_end=END,
        options=ContextOptions(assignments=(_a("a1", D),)),
    )

    lenient = plan_regeneration(context, CUTOVER, END, "minimal-change")
    strict = plan_regeneration(context, CUTOVER, END, "minimal-change", ValidationPolicy(enforce_specialty_match=True))

    assert lenient.affected[0].replacement_preceptor_id == "p2"
    assert strict.affected[0].replacement_preceptor_id is None


def test_planning_is_pure_and_repeatable():
    context = _context(
        preceptors=[PreceptorRecord("p1", "Dr. One", 2)],
        assignments=[_a("past", date(2026, 3, 2)), _a("future", D)],
    )
    before = dict(context.remaining_requirements)

    first = plan_regeneration(context, CUTOVER, END, "full-reoptimize")
    second = plan_regeneration(context, CUTOVER, END, "full-reoptimize")

    assert dict(first.context.remaining_requirements) == dict(second.context.remaining_requirements)
    assert first.credit == second.credit
    assert dict(context.remaining_requirements) == before
    assert len(context.assignments) == 2


def test_completion_keeps_everything_and_credits_it():
    context = _context(
        preceptors=[PreceptorRecord("p1", "Dr. One", 2)],
        assignments=[_a("past", date(2026, 3, 2)), _a("future", D)],
        availability=[AvailabilityRecord("p1", D, False)],
    )

    plan = plan_regeneration(context, CUTOVER, END, RegenerationStrategy.completion)

    assert plan.to_delete == ()
    assert [item.id for item in plan.preserved] == ["future"]
    assert plan.context.remaining_days("s1", "c1") == 3
    assert plan.generator_context().remaining_days("s1", "c1") == 3


def test_generator_context_counts_kept_future_work():
    context = _context(
        preceptors=[PreceptorRecord("p1", "Dr. One", 2)],
        assignments=[_a("past", date(2026, 3, 2)), _a("future", D)],
    )

    plan = plan_regeneration(context, CUTOVER, END, "minimal-change")

    assert plan.context.remaining_days("s1", "c1") == 4
    assert plan.generator_context().remaining_days("s1", "c1") == 3


def test_cutover_must_fall_inside_the_window():
    context = _context(preceptors=[PreceptorRecord("p1", "Dr. One", 1)], assignments=[])

    with pytest.raises(SchedulerError, match="outside the context window"):
        plan_regeneration(context, date(2026, 2, 1), END, "full-reoptimize")
    with pytest.raises(InvalidDateRangeError):
        plan_regeneration(context, D, CUTOVER, "full-reoptimize")
    with pytest.raises(ValueError):
        plan_regeneration(context, CUTOVER, END, "shuffle")


def _count(db) -> int:
    return db.execute(select(func.count()).select_from(ScheduleAssignment)).scalar_one()


@pytest.fixture()
def stored(seed):
    ada = seed.student("Ada", id="s1")
    grace = seed.student("Grace", id="s2")
    house = seed.preceptor("House", id="p1", max_students=1)
    wilson = seed.preceptor("Wilson", id="p2", max_students=1)
    surgery = seed.clerkship("Surgery", id="c1", required_days=5)
    return {
        "ada": ada,
        "grace": grace,
        "house": house,
        "wilson": wilson,
        "surgery": surgery,
        "past": [seed.assignment(ada, house, surgery, date(2026, 3, 2 + n)) for n in range(2)],
    }


def test_apply_full_reoptimize_deletes_future_and_keeps_past(service, stored, seed, db_session):
    seed.assignment(stored["ada"], stored["house"], stored["surgery"], D)
    seed.assignment(stored["grace"], stored["wilson"], stored["surgery"], D)
    context = load_context(service.store, START, END)

    result = apply_regeneration(service, context, CUTOVER, END, RegenerationStrategy.full_reoptimize)

    assert result.deleted_count == 2
    assert result.preserved_count == 0
    assert result.new_assignments == []
    assert _count(db_session) == 2
    assert list_activity(db_session, action="schedule.regenerate")[0].details["deleted"] == 2


def test_apply_minimal_change_swaps_preceptor_and_removes_unresolved(service, stored, seed, db_session):
    affected = seed.assignment(stored["ada"], stored["house"], stored["surgery"], D)
    seed.availability(stored["house"], D, is_available=False)
    other_day = D + timedelta(days=1)
    stuck = seed.assignment(stored["grace"], stored["house"], stored["surgery"], other_day)
    seed.availability(stored["house"], other_day, is_available=False)
    seed.availability(stored["wilson"], other_day, is_available=False)
    context = load_context(service.store, START, END)

    result = apply_regeneration(service, context, CUTOVER, END, "minimal-change")

    assert [item.id for item in result.new_assignments] == [affected.id]
    assert result.new_assignments[0].preceptor_id == stored["wilson"].id
    assert [item.id for item in result.unresolved] == [stuck.id]
    assert result.deleted_count == 1
    assert _count(db_session) == 3


def test_apply_rederives_plan_from_current_facts(service, stored, seed, db_session):
    seed.assignment(stored["ada"], stored["house"], stored["surgery"], D)
    stale = load_context(service.store, START, END)
    preview = plan_regeneration(stale, CUTOVER, END, "minimal-change")
    assert preview.affected == ()

    seed.availability(stored["house"], D, is_available=False)
    result = apply_regeneration(service, stale, CUTOVER, END, "minimal-change")

    assert result.preserved_count == 0
    assert result.new_assignments[0].preceptor_id == stored["wilson"].id


def test_apply_hands_generator_an_adjusted_context(service, stored, db_session):
    seen = {}

    def generator(context, cutover, window_end):
        seen["remaining"] = context.remaining_days("s1", "c1")
        seen["range"] = (cutover, window_end)
        return [
            ProposedAssignment("s1", "p2", "c1", D),
            ProposedAssignment("s2", "p2", "c1", D),
        ]

    context = load_context(service.store, START, END)
    result = apply_regeneration(service, context, CUTOVER, END, "full-reoptimize", generator=generator)

    assert seen == {"remaining": 3, "range": (CUTOVER, END)}
    assert [item.student_id for item in result.new_assignments] == ["s1"]
    assert [item.index for item in result.generation_failures] == [1]
    assert _count(db_session) == 3
