"""Shared SQLAlchemy engine for reconciliation results and proofs.

One engine per process, bound to ``DATABASE_URL`` or an explicit URL.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def get_engine(*, database_url: str | None = None) -> Engine:
    """Create the engine on first use; a different URL later is an error."""

    global _engine, _sessions
    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set and no database_url was given")
    if _engine is None:
        _engine = create_engine(url, pool_pre_ping=True)
        _sessions = sessionmaker(bind=_engine, expire_on_commit=False)
    elif _engine.url != make_url(url):
        raise RuntimeError("engine already bound to another database; call reset_engine() first")
    return _engine


def reset_engine() -> None:
    global _engine, _sessions
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Commit on success, roll back on error, always close."""

    get_engine(database_url=database_url)
    assert _sessions is not None
    session = _sessions()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["get_engine", "reset_engine", "session_scope"]
