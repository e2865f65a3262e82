import itertools
from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clerkship_scheduler import main
from clerkship_scheduler.api.deps import get_db
from clerkship_scheduler.db import bootstrap
from clerkship_scheduler.db.base import Base
from clerkship_scheduler.db.session import create_db_engine
from clerkship_scheduler.models import (
    BlackoutDate,
    Clerkship,
    Preceptor,
    PreceptorAvailability,
    PreceptorTeam,
    PreceptorTeamMember,
    ScheduleAssignment,
    Student,
)
from clerkship_scheduler.services.assignment_service import AssignmentService

FIXED_NOW = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _with_id(value):
    return {"id": value} if value is not None else {}


class Seed:
    """Inserts reference data straight into the store, bypassing the validator."""

    def __init__(self, db):
        self.db = db
        self._counter = itertools.count(1)

    def _commit(self, item):
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def student(self, name="Student", *, id=None):
        n = next(self._counter)
        return self._commit(Student(**_with_id(id), name=f"{name} {n}", email=f"student{n}@example.com"))

    def preceptor(self, name="Preceptor", *, id=None, max_students=1, specialty=None, site_id=None):
        n = next(self._counter)
        return self._commit(
            Preceptor(
                **_with_id(id),
                name=f"{name} {n}",
                email=f"preceptor{n}@example.com",
                max_students=max_students,
                specialty=specialty,
                site_id=site_id,
            )
        )

    def clerkship(self, name="Family Medicine", *, id=None, required_days=5, specialty=None):
        return self._commit(Clerkship(**_with_id(id), name=name, required_days=required_days, specialty=specialty))

    def team(self, clerkship, preceptors, *, name=None):
        team = PreceptorTeam(clerkship_id=clerkship.id, name=name)
        team.members = [
            PreceptorTeamMember(preceptor_id=preceptor.id, priority=priority)
            for priority, preceptor in enumerate(preceptors, start=1)
        ]
        return self._commit(team)

    def availability(self, preceptor, on_date, is_available=True):
        preceptor_id = getattr(preceptor, "id", preceptor)
        return self._commit(
            PreceptorAvailability(preceptor_id=preceptor_id, date=on_date, is_available=is_available)
        )

    def blackout(self, on_date, reason="Holiday"):
        return self._commit(BlackoutDate(date=on_date, reason=reason))

    def assignment(self, student, preceptor, clerkship, on_date, *, status="scheduled"):
        return self._commit(
            ScheduleAssignment(
                student_id=student.id,
                preceptor_id=preceptor.id,
                clerkship_id=clerkship.id,
                date=on_date,
                status=status,
                created_at=FIXED_NOW,
                updated_at=FIXED_NOW,
            )
        )


@pytest.fixture()
def engine():
    db_engine = create_db_engine("sqlite+pysqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=db_engine)
    yield db_engine
    Base.metadata.drop_all(bind=db_engine)
    db_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def seed(db_session):
    return Seed(db_session)


@pytest.fixture()
def store_seed(session_factory):
    """Seeds through its own session, for tests that drive the HTTP client."""
    db = session_factory()
    try:
        yield Seed(db)
    finally:
        db.close()


@pytest.fixture()
def service(db_session):
    return AssignmentService(db_session, actor="tests", clock=lambda: FIXED_NOW)


@pytest.fixture()
def day():
    """A Monday inside every test window."""
    return date(2026, 3, 9)


@pytest.fixture()
def client(engine, session_factory, monkeypatch):
    monkeypatch.setattr(main, "ensure_runtime_schema", lambda: bootstrap.ensure_runtime_schema(engine))

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = override_get_db

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.clear()
