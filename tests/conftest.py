from __future__ import annotations

from pathlib import Path

import pytest

from app.config import settings
from app.db import session as db_session
from app.db.bootstrap import init_db
from app.main import app
from app.modules.session.registry import get_session_registry
from app.modules.telemetry.service import reset_action_telemetry


@pytest.fixture(autouse=True)
def _reset_db_and_defaults(tmp_path: Path) -> None:
    settings.llm_api_key = ""
    settings.llm_default_model = "gpt-4o-mini"
    settings.llm_allowed_models = ["gpt-4o-mini", "gpt-4o"]
    settings.throttle_default_min_interval_ms = 0
    settings.throttle_save_min_interval_ms = 0
    settings.throttle_content_min_interval_ms = 0
    settings.comments_max_length = 4000
    db_session.rebind_engine(f"sqlite+pysqlite:///{tmp_path / 'test.db'}")
    init_db()
    get_session_registry().reset()
    reset_action_telemetry()
    yield
    app.dependency_overrides.clear()
    get_session_registry().reset()
    reset_action_telemetry()
    db_session.engine.dispose()
