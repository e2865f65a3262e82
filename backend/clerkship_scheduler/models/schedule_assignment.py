import uuid
from datetime import date as date_type, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from clerkship_scheduler.db.base import Base

DEFAULT_ASSIGNMENT_STATUS = "scheduled"


class ScheduleAssignment(Base):
    __tablename__ = "schedule_assignments"
    __table_args__ = (
        # A student is in one place per day; backstop for the validator's check.
        UniqueConstraint("student_id", "date", name="uq_schedule_assignments_student_date"),
        Index("ix_schedule_assignments_preceptor_date", "preceptor_id", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    preceptor_id: Mapped[str] = mapped_column(String(36), ForeignKey("preceptors.id"), nullable=False)
    clerkship_id: Mapped[str] = mapped_column(String(36), ForeignKey("clerkships.id"), nullable=False, index=True)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=DEFAULT_ASSIGNMENT_STATUS)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
