from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from clerkship_scheduler.db.base import Base
from clerkship_scheduler.db.session import engine as default_engine
import clerkship_scheduler.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "students": {"id", "name", "email"},
    "preceptors": {"id", "name", "max_students", "specialty", "site_id"},
    "clerkships": {"id", "name", "required_days", "specialty"},
    "preceptor_availability": {"id", "preceptor_id", "date", "is_available"},
    "blackout_dates": {"id", "date"},
    "schedule_assignments": {
        "id",
        "student_id",
        "preceptor_id",
        "clerkship_id",
        "date",
        "status",
        "created_at",
        "updated_at",
    },
}

STUDENT_DATE_UNIQUE_COLUMNS = ["student_id", "date"]


def _assert_required_columns(db_engine: Engine) -> None:
    with db_engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def _assert_student_date_backstop(db_engine: Engine) -> None:
    with db_engine.begin() as connection:
        inspector = inspect(connection)
        unique_sets = [
            list(item.get("column_names") or [])
            for item in inspector.get_unique_constraints("schedule_assignments")
        ]
        unique_sets.extend(
            list(item.get("column_names") or [])
            for item in inspector.get_indexes("schedule_assignments")
            if item.get("unique")
        )
        if not any(sorted(columns) == sorted(STUDENT_DATE_UNIQUE_COLUMNS) for columns in unique_sets):
            raise RuntimeError("schedule_assignments is missing the (student_id, date) uniqueness constraint")


def ensure_runtime_schema(db_engine: Engine | None = None) -> None:
    target = db_engine if db_engine is not None else default_engine
    try:
        Base.metadata.create_all(bind=target)
        _assert_required_columns(target)
        _assert_student_date_backstop(target)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc
