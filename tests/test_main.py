import asyncio

import pytest

from autoshop.config import Settings
from autoshop.main import _cors_origins, _is_maintenance_enabled, _periodic


def make_settings(**overrides):
    return Settings(database_url="sqlite:///:memory:", _env_file=None, **overrides)


class TestSettingsHelpers:
    def test_cors_origins_split(self):
        settings = make_settings(cors_allow_origins="https://a.example, https://b.example")
        assert _cors_origins(settings) == ["https://a.example", "https://b.example"]

    def test_cors_origins_default(self):
        assert _cors_origins(make_settings(cors_allow_origins=" , ")) == ["*"]

    def test_maintenance_disabled_under_pytest(self):
        assert _is_maintenance_enabled(make_settings(maintenance_enabled=True)) is False


class TestPeriodic:
    @pytest.mark.asyncio
    async def test_runs_job_until_cancelled(self):
        calls = []
        task = asyncio.create_task(_periodic("job", 0.1, lambda: calls.append(1) or len(calls)))

        while len(calls) < 2:
            await asyncio.sleep(0.05)
        task.cancel()
        await task

        assert task.done()
        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_survives_failing_job(self):
        calls = []

        def job():
            calls.append(1)
            raise RuntimeError("boom")

        task = asyncio.create_task(_periodic("job", 0.1, job))
        while len(calls) < 2:
            await asyncio.sleep(0.05)
        task.cancel()
        await task

        assert len(calls) >= 2
