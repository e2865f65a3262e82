from collections.abc import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from clerkship_scheduler.core.config import get_settings
from clerkship_scheduler.db.session import SessionLocal
from clerkship_scheduler.services.assignment_service import AssignmentService
from clerkship_scheduler.services.constraint_validator import ValidationPolicy


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_validation_policy() -> ValidationPolicy:
    return ValidationPolicy.from_settings(get_settings())


def get_assignment_service(
    db: Session = Depends(get_db),
    policy: ValidationPolicy = Depends(get_validation_policy),
    actor: str | None = Header(default=None, alias="X-Actor", max_length=200),
) -> AssignmentService:
    settings = get_settings()
    return AssignmentService(
        db,
        policy=policy,
        conflict_retry_attempts=settings.conflict_retry_attempts,
        bulk_mode=settings.bulk_create_mode,
        actor=actor,
    )
