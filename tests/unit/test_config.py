"""Tests for settings, logging and dependency wiring."""

import json
import logging
import sys
import warnings

import pytest

from tenant_orchestrator.common.config import OrchestratorSettings
from tenant_orchestrator.common.database import DatabaseManager
from tenant_orchestrator.common.exceptions import PersistenceError
from tenant_orchestrator.common.logging import JSONFormatter, setup_logging


class TestSettings:
    def test_defaults(self):
        settings = OrchestratorSettings()
        assert settings.seed_subnet == "172.100.0.0/24"
        assert settings.base_domain == "app.bythewise.com"
        assert settings.readiness_max_attempts == 30
        assert settings.readiness_interval == 2.0
        assert settings.metrics_window_days == 30

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ORCH_BASE_DOMAIN", "tenants.example.org")
        monkeypatch.setenv("ORCH_READINESS_MAX_ATTEMPTS", "5")
        settings = OrchestratorSettings()
        assert settings.base_domain == "tenants.example.org"
        assert settings.readiness_max_attempts == 5

    def test_production_rejects_default_key(self):
        settings = OrchestratorSettings(environment="production")
        with pytest.raises(RuntimeError, match="ORCH_API_KEY"):
            settings.validate_for_production()

    def test_production_accepts_real_key(self):
        settings = OrchestratorSettings(environment="production", api_key="s3cret-key")
        settings.validate_for_production()

    def test_development_warns(self):
        settings = OrchestratorSettings(environment="development")
        with pytest.warns(UserWarning):
            settings.validate_for_production()

    def test_development_custom_key_silent(self):
        settings = OrchestratorSettings(api_key="s3cret-key")
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            settings.validate_for_production()


class TestJSONFormatter:
    def _record(self, **extra):
        record = logging.LogRecord(
            "tenant_orchestrator.test", logging.WARNING, __file__, 1,
            "Step %s failed", ("start_stack",), None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(self._record()))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "tenant_orchestrator.test"
        assert entry["message"] == "Step start_stack failed"
        assert "timestamp" in entry

    def test_extra_fields(self):
        entry = json.loads(JSONFormatter().format(self._record(tenant_id="t-1", step="readiness")))
        assert entry["tenant_id"] == "t-1"
        assert entry["step"] == "readiness"
        assert "args" not in entry

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestSetupLogging:
    def test_idempotent(self):
        setup_logging("DEBUG")
        setup_logging("WARNING")
        logger = logging.getLogger("tenant_orchestrator")
        json_handlers = [h for h in logger.handlers if isinstance(h.formatter, JSONFormatter)]
        assert len(json_handlers) == 1
        assert logger.level == logging.WARNING


class TestDeps:
    def test_memory_runtime(self, monkeypatch):
        from tenant_orchestrator.common.config import get_settings
        from tenant_orchestrator.deps import get_orchestrator, get_runtime, reset_singletons
        from tenant_orchestrator.provisioning.runtime import InMemoryRuntime

        monkeypatch.setenv("ORCH_RUNTIME_DRIVER", "memory")
        monkeypatch.setenv("ORCH_API_KEY", "s3cret-key")
        get_settings.cache_clear()
        reset_singletons()
        try:
            assert isinstance(get_runtime(), InMemoryRuntime)
            assert get_orchestrator().runtime is get_runtime()
        finally:
            get_settings.cache_clear()
            reset_singletons()

    def test_docker_runtime(self, monkeypatch):
        from tenant_orchestrator.common.config import get_settings
        from tenant_orchestrator.deps import get_runtime, reset_singletons
        from tenant_orchestrator.provisioning.runtime import DockerDriver

        monkeypatch.setenv("ORCH_RUNTIME_DRIVER", "docker")
        monkeypatch.setenv("ORCH_DOCKER_BINARY", "/opt/docker")
        monkeypatch.setenv("ORCH_API_KEY", "s3cret-key")
        get_settings.cache_clear()
        reset_singletons()
        try:
            runtime = get_runtime()
            assert isinstance(runtime, DockerDriver)
            assert runtime.binary == "/opt/docker"
        finally:
            get_settings.cache_clear()
            reset_singletons()


class TestDatabaseManager:
    async def test_ping(self):
        db = DatabaseManager(OrchestratorSettings(db_url="sqlite+aiosqlite://"))
        await db.init()
        try:
            assert await db.ping() is True
        finally:
            await db.close()

    async def test_ping_unreachable_store(self, tmp_path):
        db = DatabaseManager(OrchestratorSettings(
            db_url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'store.db'}"
        ))
        await db.init()
        try:
            assert await db.ping() is False
        finally:
            await db.close()

    async def test_uninitialized(self):
        db = DatabaseManager(OrchestratorSettings(db_url="sqlite+aiosqlite://"))
        assert await db.ping() is False
        with pytest.raises(PersistenceError):
            async with db.get_session():
                pass
        with pytest.raises(PersistenceError):
            await db.create_all()
