from __future__ import annotations

from pathlib import Path

import pytest

from branchtale.config import settings
from branchtale.db import session as db_session
from tests.support.db_runtime import prepare_sqlite_db


@pytest.fixture(autouse=True)
def _reset_db_and_defaults(tmp_path: Path) -> None:
    settings.require_published_story = True
    settings.session_lock_timeout_s = 10.0
    prepare_sqlite_db(tmp_path, "branchtale_test.db")
    yield
    db_session.engine.dispose()
