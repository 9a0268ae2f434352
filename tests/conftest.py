"""
Test Fixtures and Configuration
------------------------------
This module contains fixtures and configuration for pytest testing.
Every test gets its own SQLite file database under ``tmp_path``.
"""

import json
from pathlib import Path
from typing import Any, AsyncGenerator, Dict

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from driftwatch.core.config import settings
from driftwatch.core.database import build_engine, build_session_factory, create_db_and_tables
from driftwatch.core.drift.types import Policy, Rule
from driftwatch.services.audit_store import AuditStore

WEB_IN = {"id": "web-in", "port": 80, "protocol": "tcp"}
SSH_IN = {"id": "ssh-in", "port": 22, "protocol": "tcp"}
ROGUE = {"id": "rogue", "port": 4444, "protocol": "tcp"}

WEB_SG_POLICY_YAML = """\
resource_name: web-sg
rules:
  - id: web-in
    port: 80
    protocol: tcp
  - id: ssh-in
    port: 22
    protocol: tcp
"""


@pytest.fixture(autouse=True)
def disable_alerts(monkeypatch):
    """Never post to a real webhook from tests"""
    monkeypatch.setattr(settings, "DRIFT_ALERT_ENABLED", False)
    monkeypatch.setattr(settings, "DRIFT_ALERT_WEBHOOK", None)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'drift_history.db'}"


@pytest.fixture
async def db_engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database and tables"""
    engine = build_engine(database_url)
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(db_engine: AsyncEngine) -> AuditStore:
    return AuditStore(build_session_factory(db_engine))


@pytest.fixture
def web_sg_policy() -> Policy:
    return Policy(resource_name="web-sg", rules=[WEB_IN, SSH_IN])


@pytest.fixture
def rules():
    """Rule objects keyed by id"""
    return {data["id"]: Rule(**data) for data in (WEB_IN, SSH_IN, ROGUE)}


@pytest.fixture
def policies_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "policies"
    directory.mkdir()
    (directory / "web-sg.yaml").write_text(WEB_SG_POLICY_YAML, encoding="utf-8")
    return directory


def write_live_state(path: Path, data: Dict[str, Any]) -> Path:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def live_state_path(tmp_path: Path) -> Path:
    """Live state for web-sg with one missing and one extra rule"""
    return write_live_state(
        tmp_path / "live-state.json",
        {"web-sg": {"active_rules": [WEB_IN, ROGUE]}}
    )
