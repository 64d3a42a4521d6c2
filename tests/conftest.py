"""Pytest configuration for test isolation.

The fallback cache and session snapshots live under a project-relative
directory (``./.cache``) by default. Tests that exercise persistence failures
append to that file, so each test gets its own cache root to stay hermetic.
The shared SQLAlchemy engine is a process-wide singleton; it is reset after
every test so file-backed SQLite databases do not leak between tests.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make the workspace packages importable without an install
_ROOT = Path(__file__).resolve().parents[1]
_PATHS = [_ROOT / "packages", _ROOT / "libs/db/src", _ROOT]
sys.path[:0] = [str(p) for p in _PATHS if str(p) not in sys.path]


@pytest.fixture(autouse=True)
def _isolate_cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Force a per-test cache root and drop any ambient ``DATABASE_URL``."""

    cache_root = tmp_path / "cache"
    cache_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("RECON_CACHE_DIR", os.fspath(cache_root))
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture(autouse=True)
def _reset_db_engine() -> Iterator[None]:
    from db.client import reset_engine

    reset_engine()
    yield
    reset_engine()
