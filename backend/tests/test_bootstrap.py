import pytest
from sqlalchemy import text

from clerkship_scheduler.db import bootstrap
from clerkship_scheduler.db.session import create_db_engine


def _raise_error(message: str):
    raise RuntimeError(message)


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch, engine):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda db_engine: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema bootstrap failed"):
        bootstrap.ensure_runtime_schema(engine)


def test_runtime_schema_bootstrap_accepts_fresh_schema(engine):
    bootstrap.ensure_runtime_schema(engine)


def test_bootstrap_detects_missing_student_date_backstop():
    legacy = create_db_engine("sqlite+pysqlite://")
    with legacy.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE schedule_assignments ("
                "id VARCHAR(36) PRIMARY KEY, student_id VARCHAR(36), preceptor_id VARCHAR(36), "
                "clerkship_id VARCHAR(36), date DATE, status VARCHAR(50), "
                "created_at DATETIME, updated_at DATETIME)"
            )
        )

    with pytest.raises(RuntimeError, match="student_id, date"):
        bootstrap._assert_student_date_backstop(legacy)
    legacy.dispose()


def test_sqlite_connections_wait_on_locks(engine):
    with engine.connect() as connection:
        assert connection.execute(text("PRAGMA busy_timeout")).scalar_one() == 5000
        assert connection.execute(text("PRAGMA foreign_keys")).scalar_one() == 1
