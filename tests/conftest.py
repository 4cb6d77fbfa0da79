"""Shared test fixtures for the tenant orchestrator."""

import pytest
from httpx import ASGITransport, AsyncClient


API_KEY = "test-admin-api-key"


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Create a test app with in-memory DB and in-memory container runtime."""
    monkeypatch.setenv("ORCH_DB_URL", "sqlite+aiosqlite://")
    monkeypatch.setenv("ORCH_API_KEY", API_KEY)
    monkeypatch.setenv("ORCH_RUNTIME_DRIVER", "memory")
    monkeypatch.setenv("ORCH_MANIFEST_DIR", str(tmp_path / "tenants"))
    monkeypatch.setenv("ORCH_READINESS_INTERVAL", "0")
    monkeypatch.setenv("ORCH_READINESS_MAX_ATTEMPTS", "3")

    # Clear caches and singletons so new env vars take effect
    from tenant_orchestrator.common.config import get_settings
    get_settings.cache_clear()

    from tenant_orchestrator.deps import reset_singletons
    reset_singletons()

    from tenant_orchestrator.app import create_app
    yield create_app()

    get_settings.cache_clear()
    reset_singletons()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from tenant_orchestrator.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def runtime(app):
    """The in-memory runtime the app's orchestrator drives."""
    from tenant_orchestrator.deps import get_runtime
    return get_runtime()


@pytest.fixture
def admin_headers():
    return {"X-Api-Key": API_KEY}
