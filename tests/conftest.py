import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# Point the application engine at a throwaway database before anything imports it.
_DB_DIR = tempfile.mkdtemp(prefix="retention-tests-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_DB_DIR, "app.db")

from retention.schemas.attendance import AttendanceFact  # noqa: E402
from retention.schemas.progress import ProgressSnapshot  # noqa: E402

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_progress(now):
    def _make(**overrides):
        data = dict(
            trainee_id=1,
            program_id=1,
            last_activity=now,
            started_at=now - timedelta(days=10),
        )
        data.update(overrides)
        return ProgressSnapshot(**data)
    return _make


@pytest.fixture
def make_fact():
    def _make(**overrides):
        return AttendanceFact(**overrides)
    return _make
