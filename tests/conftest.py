"""Pytest configuration for test isolation.

Every test gets:

- ``packages/``, ``libs/db/src`` and the repo root on ``sys.path`` so
  ``spend_tracker``, ``db`` and ``tests.helpers`` import without an install;
- an environment scrubbed of ``DATABASE_URL`` and ``SPEND_TRACKER_*`` so a
  developer's ``.env`` or shell never leaks into assertions;
- a fresh shared engine (``db.client`` caches one per process), since each
  test binds its own SQLite file.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in [str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT)]
    if p not in sys.path
]

from db.client import dispose_engine  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    for name in list(os.environ):
        if name == "DATABASE_URL" or name.startswith("SPEND_TRACKER_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SPEND_TRACKER_LOG_LEVEL", "WARNING")
    # The CLI loads ./.env; run from an empty directory.
    monkeypatch.chdir(tmp_path)

    dispose_engine()
    yield
    dispose_engine()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    from tests.helpers.db import bootstrap_sqlite_db

    return bootstrap_sqlite_db(tmp_path / "db" / "spend.sqlite3")
