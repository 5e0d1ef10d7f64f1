from __future__ import annotations

from pathlib import Path

import pytest

from academy.auth.audit import AuditLog
from tests.fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def audit_log(tmp_path: Path, clock: FakeClock):
    log = AuditLog(database_path=tmp_path / "audit.db", clock=clock)
    yield log
    log.close()
