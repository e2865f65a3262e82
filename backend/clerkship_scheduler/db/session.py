from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from clerkship_scheduler.core.config import get_settings


def create_db_engine(database_url: str, *, busy_timeout_seconds: float = 5.0, **kwargs) -> Engine:
    connect_args = dict(kwargs.pop("connect_args", {}))
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args.setdefault("check_same_thread", False)
        # Writers wait on a locked database instead of failing straight away.
        connect_args.setdefault("timeout", busy_timeout_seconds)

    db_engine = create_engine(database_url, connect_args=connect_args, **kwargs)

    if is_sqlite:
        busy_timeout_ms = int(busy_timeout_seconds * 1000)

        @event.listens_for(db_engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

    return db_engine


settings = get_settings()

engine = create_db_engine(settings.database_url, busy_timeout_seconds=settings.sqlite_busy_timeout_seconds)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
