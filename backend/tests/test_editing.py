from datetime import date

import pytest

from clerkship_scheduler.core.exceptions import NotFoundError
from clerkship_scheduler.services import editing
from clerkship_scheduler.services.audit import list_activity
from clerkship_scheduler.services.constraint_validator import RULE_PRECEPTOR_AVAILABILITY


@pytest.fixture()
def world(seed, day):
    ada = seed.student("Ada")
    grace = seed.student("Grace")
    house = seed.preceptor("House", max_students=1)
    wilson = seed.preceptor("Wilson", max_students=1)
    cuddy = seed.preceptor("Cuddy", max_students=1)
    surgery = seed.clerkship("Surgery")
    return {
        "ada": ada,
        "grace": grace,
        "house": house,
        "wilson": wilson,
        "cuddy": cuddy,
        "surgery": surgery,
        "first": seed.assignment(ada, house, surgery, day),
        "second": seed.assignment(grace, wilson, surgery, day),
    }


def test_reassign_to_free_preceptor(service, world):
    result = editing.reassign_to_preceptor(service, world["first"].id, world["cuddy"].id)

    assert result.valid
    assert result.assignment.preceptor_id == world["cuddy"].id


def test_reassign_dry_run_changes_nothing(service, world, db_session):
    result = editing.reassign_to_preceptor(service, world["first"].id, world["cuddy"].id, dry_run=True)

    assert result.valid
    assert result.assignments == []
    db_session.expire_all()
    assert service.get_assignment(world["first"].id).preceptor_id == world["house"].id


def test_reassign_to_full_preceptor_reports_errors(service, world, seed, day):
    seed.availability(world["cuddy"], day, is_available=False)

    result = editing.reassign_to_preceptor(service, world["first"].id, world["cuddy"].id)

    assert not result.valid
    assert [item.rule for item in result.violations] == [RULE_PRECEPTOR_AVAILABILITY]
    assert result.errors == [f"Preceptor is not available on {day.isoformat()}"]


def test_change_date_validates_against_new_day(service, world, seed):
    seed.blackout(date(2026, 3, 11))

    blocked = editing.change_assignment_date(service, world["first"].id, date(2026, 3, 11))
    moved = editing.change_assignment_date(service, world["first"].id, date(2026, 3, 10))

    assert blocked.errors == ["2026-03-11 is a blackout date"]
    assert moved.valid
    assert moved.assignment.date == date(2026, 3, 10)


def test_validate_edit_merges_patch(service, world, seed):
    result = editing.validate_edit(service, world["first"].id, {"preceptor_id": world["wilson"].id})

    assert not result.valid
    assert "maximum student capacity" in result.errors[0]


def test_edit_of_missing_assignment_raises(service, world):
    with pytest.raises(NotFoundError):
        editing.reassign_to_preceptor(service, "missing", world["cuddy"].id)


def test_swap_on_the_same_day_at_full_capacity(service, world, db_session):
    result = editing.swap_preceptors(service, world["first"].id, world["second"].id)

    assert result.valid
    first, second = result.assignments
    assert first.preceptor_id == world["wilson"].id
    assert second.preceptor_id == world["house"].id
    assert list_activity(db_session, action="assignment.swap")


def test_swap_reports_errors_from_both_halves(service, world, seed, day):
    seed.availability(world["house"], day, is_available=False)
    seed.availability(world["wilson"], day, is_available=False)

    result = editing.swap_preceptors(service, world["first"].id, world["second"].id, dry_run=True)

    assert not result.valid
    assert len(result.errors) == 2


def test_swap_dry_run_leaves_both_records(service, world, db_session):
    result = editing.swap_preceptors(service, world["first"].id, world["second"].id, dry_run=True)

    assert result.valid
    db_session.expire_all()
    assert service.get_assignment(world["first"].id).preceptor_id == world["house"].id


def test_bulk_reassign_reports_partial_success(service, world, seed):
    third = seed.assignment(world["ada"], world["house"], world["surgery"], date(2026, 3, 20))

    result = editing.bulk_reassign(service, [world["first"].id, "missing", third.id], world["wilson"].id)

    assert result.successful == [third.id]
    assert [item.id for item in result.failed] == [world["first"].id, "missing"]
    assert "maximum student capacity" in result.failed[0].errors[0]
    assert result.failed[1].errors == ["Assignment with id missing not found"]
