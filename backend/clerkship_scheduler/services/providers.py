"""Read-side data providers for the scheduling engine.

The validator and the planners only ever see the ``SchedulingFacts``
protocol. ``SqlSchedulingStore`` answers it from the database; the
immutable ``SchedulingContext`` answers it from an in-memory snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from clerkship_scheduler.models.blackout_date import BlackoutDate
from clerkship_scheduler.models.clerkship import Clerkship
from clerkship_scheduler.models.preceptor import Preceptor, PreceptorAvailability
from clerkship_scheduler.models.schedule_assignment import DEFAULT_ASSIGNMENT_STATUS, ScheduleAssignment
from clerkship_scheduler.models.student import Student
from clerkship_scheduler.models.team import PreceptorTeam


@dataclass(frozen=True)
class StudentRecord:
    id: str
    name: str
    email: str | None = None

    @classmethod
    def from_model(cls, student: Student) -> StudentRecord:
        return cls(id=student.id, name=student.name, email=student.email)


@dataclass(frozen=True)
class PreceptorRecord:
    id: str
    name: str
    max_students: int | None
    specialty: str | None = None
    site_id: str | None = None

    @classmethod
    def from_model(cls, preceptor: Preceptor) -> PreceptorRecord:
        return cls(
            id=preceptor.id,
            name=preceptor.name,
            max_students=preceptor.max_students,
            specialty=preceptor.specialty,
            site_id=preceptor.site_id,
        )


@dataclass(frozen=True)
class ClerkshipRecord:
    id: str
    name: str
    required_days: int
    specialty: str | None = None

    @classmethod
    def from_model(cls, clerkship: Clerkship) -> ClerkshipRecord:
        return cls(
            id=clerkship.id,
            name=clerkship.name,
            required_days=int(clerkship.required_days),
            specialty=clerkship.specialty,
        )


@dataclass(frozen=True)
class TeamRecord:
    id: str
    clerkship_id: str
    preceptor_ids: tuple[str, ...]
    name: str | None = None

    @classmethod
    def from_model(cls, team: PreceptorTeam) -> TeamRecord:
        members = sorted(team.members, key=lambda member: (member.priority, member.preceptor_id))
        return cls(
            id=team.id,
            clerkship_id=team.clerkship_id,
            preceptor_ids=tuple(member.preceptor_id for member in members),
            name=team.name,
        )


@dataclass(frozen=True)
class AvailabilityRecord:
    preceptor_id: str
    date: date
    is_available: bool

    @classmethod
    def from_model(cls, record: PreceptorAvailability) -> AvailabilityRecord:
        return cls(preceptor_id=record.preceptor_id, date=record.date, is_available=bool(record.is_available))


@dataclass(frozen=True)
class AssignmentRecord:
    id: str
    student_id: str
    preceptor_id: str
    clerkship_id: str
    date: date
    status: str = DEFAULT_ASSIGNMENT_STATUS
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, assignment: ScheduleAssignment) -> AssignmentRecord:
        return cls(
            id=assignment.id,
            student_id=assignment.student_id,
            preceptor_id=assignment.preceptor_id,
            clerkship_id=assignment.clerkship_id,
            date=assignment.date,
            status=assignment.status,
            created_at=assignment.created_at,
            updated_at=assignment.updated_at,
        )


@dataclass(frozen=True)
class ProposedAssignment:
    student_id: str
    preceptor_id: str
    clerkship_id: str
    date: date
    status: str = DEFAULT_ASSIGNMENT_STATUS


@dataclass(frozen=True)
class AssignmentFilter:
    student_id: str | None = None
    preceptor_id: str | None = None
    clerkship_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    exclude_assignment_id: str | None = None

    def matches(self, assignment: AssignmentRecord) -> bool:
        if self.exclude_assignment_id is not None and assignment.id == self.exclude_assignment_id:
            return False
        if self.student_id is not None and assignment.student_id != self.student_id:
            return False
        if self.preceptor_id is not None and assignment.preceptor_id != self.preceptor_id:
            return False
        if self.clerkship_id is not None and assignment.clerkship_id != self.clerkship_id:
            return False
        if self.start_date is not None and assignment.date < self.start_date:
            return False
        if self.end_date is not None and assignment.date > self.end_date:
            return False
        return True


def sort_assignments(assignments) -> list[AssignmentRecord]:
    return sorted(assignments, key=lambda item: (item.date, item.id))


class SchedulingFacts(Protocol):
    def get_student(self, student_id: str) -> StudentRecord | None: ...

    def get_preceptor(self, preceptor_id: str) -> PreceptorRecord | None: ...

    def get_clerkship(self, clerkship_id: str) -> ClerkshipRecord | None: ...

    def get_availability(self, preceptor_id: str, on_date: date) -> bool | None: ...

    def is_blackout(self, on_date: date) -> bool: ...

    def list_assignments(self, filters: AssignmentFilter) -> list[AssignmentRecord]: ...


class SqlSchedulingStore:
    """``SchedulingFacts`` backed by a SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_student(self, student_id: str) -> StudentRecord | None:
        student = self.db.get(Student, student_id)
        return StudentRecord.from_model(student) if student is not None else None

    def get_preceptor(self, preceptor_id: str) -> PreceptorRecord | None:
        preceptor = self.db.get(Preceptor, preceptor_id)
        return PreceptorRecord.from_model(preceptor) if preceptor is not None else None

    def get_clerkship(self, clerkship_id: str) -> ClerkshipRecord | None:
        clerkship = self.db.get(Clerkship, clerkship_id)
        return ClerkshipRecord.from_model(clerkship) if clerkship is not None else None

    def get_availability(self, preceptor_id: str, on_date: date) -> bool | None:
        record = self.db.execute(
            select(PreceptorAvailability).where(
                PreceptorAvailability.preceptor_id == preceptor_id,
                PreceptorAvailability.date == on_date,
            )
        ).scalar_one_or_none()
        if record is None:
            return None
        return bool(record.is_available)

    def is_blackout(self, on_date: date) -> bool:
        found = self.db.execute(select(BlackoutDate.id).where(BlackoutDate.date == on_date)).first()
        return found is not None

    def list_assignments(self, filters: AssignmentFilter) -> list[AssignmentRecord]:
        query = select(ScheduleAssignment)
        if filters.student_id is not None:
            query = query.where(ScheduleAssignment.student_id == filters.student_id)
        if filters.preceptor_id is not None:
            query = query.where(ScheduleAssignment.preceptor_id == filters.preceptor_id)
        if filters.clerkship_id is not None:
            query = query.where(ScheduleAssignment.clerkship_id == filters.clerkship_id)
        if filters.start_date is not None:
            query = query.where(ScheduleAssignment.date >= filters.start_date)
        if filters.end_date is not None:
            query = query.where(ScheduleAssignment.date <= filters.end_date)
        if filters.exclude_assignment_id is not None:
            query = query.where(ScheduleAssignment.id != filters.exclude_assignment_id)
        query = query.order_by(ScheduleAssignment.date.asc(), ScheduleAssignment.id.asc())
        return [AssignmentRecord.from_model(item) for item in self.db.execute(query).scalars()]

    # Bulk loaders used when assembling a SchedulingContext.

    def list_students(self) -> list[StudentRecord]:
        query = select(Student).order_by(Student.id)
        return [StudentRecord.from_model(item) for item in self.db.execute(query).scalars()]

    def list_preceptors(self) -> list[PreceptorRecord]:
        query = select(Preceptor).order_by(Preceptor.id)
        return [PreceptorRecord.from_model(item) for item in self.db.execute(query).scalars()]

    def list_clerkships(self) -> list[ClerkshipRecord]:
        query = select(Clerkship).order_by(Clerkship.id)
        return [ClerkshipRecord.from_model(item) for item in self.db.execute(query).scalars()]

    def list_teams(self) -> list[TeamRecord]:
        query = select(PreceptorTeam).order_by(PreceptorTeam.id)
        return [TeamRecord.from_model(item) for item in self.db.execute(query).scalars()]

    def list_availability(self, start_date: date, end_date: date) -> list[AvailabilityRecord]:
        query = (
            select(PreceptorAvailability)
            .where(PreceptorAvailability.date >= start_date, PreceptorAvailability.date <= end_date)
            .order_by(PreceptorAvailability.preceptor_id, PreceptorAvailability.date)
        )
        return [AvailabilityRecord.from_model(item) for item in self.db.execute(query).scalars()]

    def list_blackout_dates(self, start_date: date, end_date: date) -> list[date]:
        query = (
            select(BlackoutDate.date)
            .where(BlackoutDate.date >= start_date, BlackoutDate.date <= end_date)
            .order_by(BlackoutDate.date)
        )
        return list(self.db.execute(query).scalars())
