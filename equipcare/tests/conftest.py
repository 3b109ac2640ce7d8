from __future__ import annotations

import os
import tempfile

# Point settings at a throwaway SQLite database before any equipcare module reads them.
_DB_DIR = tempfile.mkdtemp(prefix="equipcare-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/equipcare.db"
os.environ["REDIS_URL"] = ""
os.environ["NOTIFICATION_SENDER"] = "fake"
os.environ["AUTH_DEV_BYPASS"] = "true"

import pytest

from equipcare.domain.models import Base
from equipcare.persistence.db import engine
from equipcare.services import run_locks
from equipcare.services.telemetry import reset_telemetry


@pytest.fixture(autouse=True)
async def reset_schema_between_tests() -> None:
    # Rebuild tables per test so seeded rows never leak across cases.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    run_locks._local_owners.clear()
    reset_telemetry()
    yield
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()
