"""Tests for the execution service."""

import pytest

from tenant_orchestrator.common.config import OrchestratorSettings
from tenant_orchestrator.common.database import DatabaseManager
from tenant_orchestrator.common.exceptions import TenantNotFoundError
from tenant_orchestrator.executions.service import ExecutionService
from tenant_orchestrator.provisioning.allocator import SubnetAllocator
from tenant_orchestrator.tenants.repository import TenantRepository


@pytest.fixture
async def db():
    manager = DatabaseManager(OrchestratorSettings(db_url="sqlite+aiosqlite://"))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def repo():
    return TenantRepository()


@pytest.fixture
def svc(repo):
    return ExecutionService(repo)


@pytest.fixture
async def tenant_id(db, repo):
    async with db.get_session() as session:
        tenant = await repo.insert_with_allocation(
            session,
            SubnetAllocator(),
            name="Acme",
            subdomain="acme",
            plan_tier="pro",
            db_password="p",
            cache_password="p",
            base_domain="app.example.com",
        )
    return tenant.id


class TestRecordExecution:
    async def test_record(self, db, svc, tenant_id):
        async with db.get_session() as session:
            record = await svc.record_execution(
                session, tenant_id, workflow_id="wf-1", status="success", duration_ms=120
            )
            assert record.id is not None
            assert record.tenant_id == tenant_id
            assert record.duration_ms == 120
            assert record.created_at is not None

    async def test_unknown_status(self, db, svc, tenant_id):
        async with db.get_session() as session:
            with pytest.raises(ValueError):
                await svc.record_execution(session, tenant_id, workflow_id="wf", status="done")

    async def test_unknown_tenant(self, db, svc):
        with pytest.raises(TenantNotFoundError):
            async with db.get_session() as session:
                await svc.record_execution(session, "nope", workflow_id="wf", status="success")

    async def test_deleted_tenant(self, db, svc, repo, tenant_id):
        async with db.get_session() as session:
            await repo.mark_deleted(session, await repo.get_by_id(session, tenant_id))
        with pytest.raises(TenantNotFoundError):
            async with db.get_session() as session:
                await svc.record_execution(session, tenant_id, workflow_id="wf", status="error")


class TestListRecent:
    async def test_newest_first_with_limit(self, db, svc, tenant_id):
        for i in range(5):
            async with db.get_session() as session:
                await svc.record_execution(session, tenant_id, workflow_id=f"wf-{i}", status="success")
        async with db.get_session() as session:
            records = await svc.list_recent(session, tenant_id, limit=3)
        assert [r.workflow_id for r in records] == ["wf-4", "wf-3", "wf-2"]

    async def test_unknown_tenant(self, db, svc):
        with pytest.raises(TenantNotFoundError):
            async with db.get_session() as session:
                await svc.list_recent(session, "nope")
