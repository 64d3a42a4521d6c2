"""DB helpers for tests: bootstrap a temporary SQLite DB from the ORM metadata."""

from __future__ import annotations

from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from sqlalchemy import func, select


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    return url


def count_rows(database_url: str, model: type) -> int:
    with session_scope(database_url=database_url) as session:
        return int(session.execute(select(func.count()).select_from(model)).scalar_one())
