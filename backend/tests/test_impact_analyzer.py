from datetime import date

from sqlalchemy import func, select

from clerkship_scheduler.models import ActivityLog, ScheduleAssignment
from clerkship_scheduler.services.context_builder import load_context
from clerkship_scheduler.services.impact_analyzer import analyze_regeneration_impact
from clerkship_scheduler.services.regeneration import RegenerationStrategy

START = date(2026, 3, 1)
END = date(2026, 3, 31)
CUTOVER = date(2026, 3, 10)
D = date(2026, 3, 12)


def _snapshot(db):
    rows = db.execute(select(ScheduleAssignment).order_by(ScheduleAssignment.id)).scalars()
    return [(row.id, row.student_id, row.preceptor_id, row.clerkship_id, row.date, row.status) for row in rows]


def _populate(seed):
    ada = seed.student("Ada", id="s1")
    grace = seed.student("Grace", id="s2")
    house = seed.preceptor("House", id="p1", max_students=1)
    seed.preceptor("Wilson", id="p2", max_students=1)
    surgery = seed.clerkship("Surgery", id="c1", required_days=5)
    seed.assignment(ada, house, surgery, date(2026, 3, 2))
    seed.assignment(ada, house, surgery, date(2026, 3, 3))
    seed.assignment(ada, house, surgery, D)
    seed.assignment(grace, house, surgery, date(2026, 3, 13))
    seed.availability(house, D, is_available=False)


def test_preview_never_mutates_the_store(seed, service, db_session):
    _populate(seed)
    before = _snapshot(db_session)
    logs_before = db_session.execute(select(func.count()).select_from(ActivityLog)).scalar_one()

    for strategy in RegenerationStrategy:
        context = load_context(service.store, START, END)
        analyze_regeneration_impact(context, CUTOVER, END, strategy)

    db_session.expire_all()
    assert _snapshot(db_session) == before
    assert db_session.execute(select(func.count()).select_from(ActivityLog)).scalar_one() == logs_before


def test_minimal_change_report_counts_and_progress(seed, service):
    _populate(seed)
    context = load_context(service.store, START, END)

    report = analyze_regeneration_impact(context, CUTOVER, END, "minimal-change")

    assert report.past_count == 2
    assert report.preserved_count == 1
    assert report.affected_count == 1
    assert report.deleted_count == 0
    assert report.replaceable_count == 1
    assert report.affected_assignments[0].replacement_preceptor_id == "p2"
    progress = {(item.student_id, item.clerkship_id): item for item in report.progress}
    assert progress[("s1", "c1")].completed_days == 2
    assert progress[("s1", "c1")].remaining_days == 3
    assert progress[("s2", "c1")].completed_days == 0
    assert report.summary["future_preserved"] == 1


def test_full_reoptimize_report_lists_deletions(seed, service):
    _populate(seed)
    context = load_context(service.store, START, END)

    report = analyze_regeneration_impact(context, CUTOVER, END, RegenerationStrategy.full_reoptimize)

    assert report.preserved_count == 0
    assert report.deleted_count == 2
    assert report.affected_count == 0
    assert {item.student_id for item in report.unmet} == {"s1", "s2"}


def test_repeated_previews_agree(seed, service):
    _populate(seed)
    context = load_context(service.store, START, END)

    first = analyze_regeneration_impact(context, CUTOVER, END, "minimal-change")
    second = analyze_regeneration_impact(context, CUTOVER, END, "minimal-change")

    assert first.summary == second.summary
    assert first.progress == second.progress
