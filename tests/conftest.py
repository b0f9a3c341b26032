from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from autoshop.config import Settings
from autoshop.main import create_app
from autoshop.services.core import build_core
from autoshop.services.orchestrator import SessionOrchestrator

ADMIN_TOKEN = "test-admin-token"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2024, 5, 6, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def make_settings(database_url: str = "sqlite:///:memory:", **overrides) -> Settings:
    return Settings(
        database_url=database_url,
        admin_token=ADMIN_TOKEN,
        maintenance_enabled=False,
        _env_file=None,
        **overrides,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def core(settings, clock):
    return build_core(settings, clock=clock)


@pytest.fixture
def orchestrator(core):
    return SessionOrchestrator(core)


@pytest.fixture
def sessions(orchestrator):
    return orchestrator.sessions


@pytest.fixture
def log(orchestrator):
    return orchestrator.log


@pytest.fixture
def client(core):
    app = create_app(core=core)
    with TestClient(app) as test_client:
        test_client.headers.update({"X-Admin-Token": ADMIN_TOKEN})
        yield test_client


@pytest.fixture
def file_core(tmp_path):
    """File-backed SQLite with the real clock; each thread gets its own connection."""
    return build_core(make_settings(f"sqlite:///{tmp_path / 'autoshop.db'}"))
