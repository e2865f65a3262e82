"""The only writer of schedule assignments.

Every create and update runs the constraint validator against the merged
record first. Validate-then-commit happens under a process-wide write
lock, and the store's unique ``(student_id, date)`` constraint catches
anything that still slips through; such a miss becomes ``ConflictError``
and the write is re-validated before it is retried.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Literal, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clerkship_scheduler.core.exceptions import ConflictError, NotFoundError, ValidationError
from clerkship_scheduler.models.clerkship import Clerkship
from clerkship_scheduler.models.schedule_assignment import DEFAULT_ASSIGNMENT_STATUS, ScheduleAssignment
from clerkship_scheduler.models.student import Student
from clerkship_scheduler.services.audit import log_activity
from clerkship_scheduler.services.constraint_validator import (
    AssignmentValidator,
    ValidationPolicy,
    ValidationResult,
    Violation,
)
from clerkship_scheduler.services.providers import (
    AssignmentFilter,
    ProposedAssignment,
    SqlSchedulingStore,
)

logger = logging.getLogger(__name__)

BulkMode = Literal["best_effort", "all_or_nothing"]
UPDATABLE_FIELDS = ("student_id", "preceptor_id", "clerkship_id", "date", "status")

T = TypeVar("T")

# Serialises validate-then-commit for every writer in this process.
write_lock = threading.RLock()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BulkFailure:
    index: int
    proposed: ProposedAssignment
    errors: list[str]
    violations: list[Violation] = field(default_factory=list)


@dataclass
class BulkCreateResult:
    mode: BulkMode
    successful: list[ScheduleAssignment] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)
    rolled_back: bool = False


@dataclass(frozen=True)
class ClerkshipProgress:
    clerkship_id: str
    clerkship_name: str
    required_days: int
    completed_days: int
    percentage: int


class AssignmentService:
    def __init__(
        self,
        db: Session,
        *,
        policy: ValidationPolicy | None = None,
        conflict_retry_attempts: int = 1,
        bulk_mode: BulkMode = "best_effort",
        actor: str | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.db = db
        self.store = SqlSchedulingStore(db)
        self.policy = policy or ValidationPolicy()
        self.validator = AssignmentValidator(self.store, self.policy)
        self.conflict_retry_attempts = max(0, conflict_retry_attempts)
        self.bulk_mode = bulk_mode
        self.actor = actor
        self.clock = clock

    # Reads

    def list_assignments(self, filters: AssignmentFilter | None = None) -> list[ScheduleAssignment]:
        filters = filters or AssignmentFilter()
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
        query = query.order_by(ScheduleAssignment.date.asc(), ScheduleAssignment.id.asc())
        return list(self.db.execute(query).scalars())

    def get_assignment(self, assignment_id: str) -> ScheduleAssignment:
        assignment = self.db.get(ScheduleAssignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        return assignment

    def validate_assignment(
        self,
        proposed: ProposedAssignment,
        exclude_assignment_id: str | None = None,
    ) -> ValidationResult:
        return self.validator.validate(proposed, exclude_assignment_id)

    def student_progress(self, student_id: str) -> list[ClerkshipProgress]:
        if self.db.get(Student, student_id) is None:
            raise NotFoundError("Student", student_id)
        counts: dict[str, int] = {}
        for assignment in self.store.list_assignments(AssignmentFilter(student_id=student_id)):
            counts[assignment.clerkship_id] = counts.get(assignment.clerkship_id, 0) + 1

        progress: list[ClerkshipProgress] = []
        clerkships = self.db.execute(select(Clerkship).order_by(Clerkship.name, Clerkship.id)).scalars()
        for clerkship in clerkships:
            completed = counts.get(clerkship.id, 0)
            required = int(clerkship.required_days)
            if required <= 0:
                percentage = 100
            else:
                percentage = min(100, math.floor(completed * 100 / required + 0.5))
            progress.append(
                ClerkshipProgress(
                    clerkship_id=clerkship.id,
                    clerkship_name=clerkship.name,
                    required_days=required,
                    completed_days=completed,
                    percentage=percentage,
                )
            )
        return progress

    # Writes

    def create_assignment(self, proposed: ProposedAssignment) -> ScheduleAssignment:
        logger.debug(
            "Creating assignment student=%s preceptor=%s clerkship=%s date=%s",
            proposed.student_id,
            proposed.preceptor_id,
            proposed.clerkship_id,
            proposed.date,
        )

        def stage() -> ScheduleAssignment:
            self._ensure_valid(proposed)
            timestamp = self.clock()
            assignment = ScheduleAssignment(
                student_id=proposed.student_id,
                preceptor_id=proposed.preceptor_id,
                clerkship_id=proposed.clerkship_id,
                date=proposed.date,
                status=proposed.status or DEFAULT_ASSIGNMENT_STATUS,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self.db.add(assignment)
            self.db.flush()
            log_activity(
                self.db,
                actor=self.actor,
                action="assignment.create",
                entity_type="schedule_assignment",
                entity_id=assignment.id,
                details=_proposal_details(proposed),
            )
            return assignment

        assignment = self._write(stage, description=f"create for student {proposed.student_id} on {proposed.date}")
        logger.info(
            "Assignment created id=%s student=%s preceptor=%s date=%s",
            assignment.id,
            assignment.student_id,
            assignment.preceptor_id,
            assignment.date,
        )
        return assignment

    def update_assignment(self, assignment_id: str, changes: dict) -> ScheduleAssignment:
        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError([f"Unknown assignment field(s): {', '.join(unknown)}"])

        def stage() -> ScheduleAssignment:
            assignment = self.get_assignment(assignment_id)
            merged = ProposedAssignment(
                student_id=changes.get("student_id") or assignment.student_id,
                preceptor_id=changes.get("preceptor_id") or assignment.preceptor_id,
                clerkship_id=changes.get("clerkship_id") or assignment.clerkship_id,
                date=changes.get("date") or assignment.date,
                status=changes.get("status") or assignment.status,
            )
            self._ensure_valid(merged, exclude_assignment_id=assignment_id)
            previous = _assignment_details(assignment)
            assignment.student_id = merged.student_id
            assignment.preceptor_id = merged.preceptor_id
            assignment.clerkship_id = merged.clerkship_id
            assignment.date = merged.date
            assignment.status = merged.status
            assignment.updated_at = self.clock()
            self.db.flush()
            log_activity(
                self.db,
                actor=self.actor,
                action="assignment.update",
                entity_type="schedule_assignment",
                entity_id=assignment.id,
                details={"before": previous, "after": _assignment_details(assignment)},
            )
            return assignment

        assignment = self._write(stage, description=f"update of assignment {assignment_id}")
        logger.info("Assignment updated id=%s", assignment.id)
        return assignment

    def delete_assignment(self, assignment_id: str) -> None:
        with write_lock:
            assignment = self.get_assignment(assignment_id)
            details = _assignment_details(assignment)
            try:
                self.db.delete(assignment)
                log_activity(
                    self.db,
                    actor=self.actor,
                    action="assignment.delete",
                    entity_type="schedule_assignment",
                    entity_id=assignment_id,
                    details=details,
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        logger.info("Assignment deleted id=%s", assignment_id)

    def bulk_create_assignments(
        self,
        proposals: Iterable[ProposedAssignment],
        mode: BulkMode | None = None,
    ) -> BulkCreateResult:
        """Create many assignments.

        ``best_effort`` validates and commits each item on its own and reports
        per-item failures. ``all_or_nothing`` validates every item against the
        store plus the items staged before it, and commits only if all pass.
        """
        items = list(proposals)
        mode = mode or self.bulk_mode
        result = BulkCreateResult(mode=mode)
        if not items:
            logger.info("Bulk create called with no assignments")
            return result

        if mode == "all_or_nothing":
            self._bulk_create_atomic(items, result)
        else:
            for index, proposed in enumerate(items):
                try:
                    result.successful.append(self.create_assignment(proposed))
                except ValidationError as exc:
                    result.failed.append(
                        BulkFailure(index=index, proposed=proposed, errors=exc.errors, violations=_violations(exc))
                    )
                except ConflictError as exc:
                    result.failed.append(BulkFailure(index=index, proposed=proposed, errors=[exc.message]))

        logger.info(
            "Bulk create (%s): %d requested, %d created, %d failed",
            mode,
            len(items),
            len(result.successful),
            len(result.failed),
        )
        return result

    def clear_assignments(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        *,
        assignment_ids: Iterable[str] | None = None,
        commit: bool = True,
    ) -> int:
        statement = delete(ScheduleAssignment)
        if start_date is not None:
            statement = statement.where(ScheduleAssignment.date >= start_date)
        if end_date is not None:
            statement = statement.where(ScheduleAssignment.date <= end_date)
        ids: list[str] | None = None
        if assignment_ids is not None:
            ids = list(assignment_ids)
            if not ids:
                return 0
            statement = statement.where(ScheduleAssignment.id.in_(ids))
        with write_lock:
            deleted = self.db.execute(statement).rowcount or 0
            log_activity(
                self.db,
                actor=self.actor,
                action="assignment.clear",
                entity_type="schedule_assignment",
                details={
                    "start_date": start_date.isoformat() if start_date else None,
                    "end_date": end_date.isoformat() if end_date else None,
                    "assignment_ids": ids,
                    "deleted": deleted,
                },
            )
            if commit:
                self.db.commit()
        logger.info("Cleared %d assignments (%s..%s)", deleted, start_date, end_date)
        return deleted

    # Internals

    def _ensure_valid(self, proposed: ProposedAssignment, exclude_assignment_id: str | None = None) -> None:
        result = self.validator.validate(proposed, exclude_assignment_id)
        if not result.valid:
            logger.warning(
                "Assignment rejected student=%s date=%s: %s",
                proposed.student_id,
                proposed.date,
                "; ".join(result.messages),
            )
            raise ValidationError(result.errors)

    def _write(self, stage: Callable[[], T], *, description: str) -> T:
        with write_lock:
            attempt = 0
            while True:
                try:
                    staged = stage()
                    self.db.commit()
                except IntegrityError as exc:
                    self.db.rollback()
                    if attempt >= self.conflict_retry_attempts:
                        raise ConflictError(
                            f"Store rejected {description}: a conflicting assignment was written concurrently",
                            details={"error": str(exc.orig)},
                        ) from exc
                    attempt += 1
                    logger.warning("Uniqueness conflict on %s; re-validating (attempt %d)", description, attempt)
                    continue
                except Exception:
                    self.db.rollback()
                    raise
                self.db.refresh(staged)
                return staged

    def _bulk_create_atomic(self, items: list[ProposedAssignment], result: BulkCreateResult) -> None:
        with write_lock:
            staged: list[ScheduleAssignment] = []
            timestamp = self.clock()
            for index, proposed in enumerate(items):
                outcome = self.validator.validate(proposed)
                if not outcome.valid:
                    result.failed.append(
                        BulkFailure(index=index, proposed=proposed, errors=outcome.messages, violations=outcome.errors)
                    )
                    continue
                assignment = ScheduleAssignment(
                    student_id=proposed.student_id,
                    preceptor_id=proposed.preceptor_id,
                    clerkship_id=proposed.clerkship_id,
                    date=proposed.date,
                    status=proposed.status or DEFAULT_ASSIGNMENT_STATUS,
                    created_at=timestamp,
                    updated_at=timestamp,
                )
                self.db.add(assignment)
                try:
                    self.db.flush()
                except IntegrityError as exc:
                    self.db.rollback()
                    result.failed.append(BulkFailure(index=index, proposed=proposed, errors=[str(exc.orig)]))
                    result.rolled_back = True
                    return
                staged.append(assignment)

            if result.failed:
                self.db.rollback()
                result.rolled_back = True
                return

            log_activity(
                self.db,
                actor=self.actor,
                action="assignment.bulk_create",
                entity_type="schedule_assignment",
                details={"count": len(staged), "assignment_ids": [item.id for item in staged]},
            )
            self.db.commit()
            for assignment in staged:
                self.db.refresh(assignment)
            result.successful.extend(staged)


def _violations(exc: ValidationError) -> list[Violation]:
    return [item for item in exc.violations if isinstance(item, Violation)]


def _proposal_details(proposed: ProposedAssignment) -> dict:
    return {
        "student_id": proposed.student_id,
        "preceptor_id": proposed.preceptor_id,
        "clerkship_id": proposed.clerkship_id,
        "date": proposed.date.isoformat(),
        "status": proposed.status,
    }


def _assignment_details(assignment: ScheduleAssignment) -> dict:
    return _proposal_details(
        ProposedAssignment(
            student_id=assignment.student_id,
            preceptor_id=assignment.preceptor_id,
            clerkship_id=assignment.clerkship_id,
            date=assignment.date,
            status=assignment.status,
        )
    )
