"""Execution service: ingest and read per-tenant workflow executions.

The workflow layer reports executions here; the orchestrator only aggregates
them for status and metrics views.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_orchestrator.common.exceptions import TenantNotFoundError
from tenant_orchestrator.executions.models import EXECUTION_STATUSES, ExecutionModel
from tenant_orchestrator.tenants.repository import TenantRepository


class ExecutionService:
    """Workflow execution records."""

    def __init__(self, repository: TenantRepository):
        self.repository = repository

    async def record_execution(
        self,
        session: AsyncSession,
        tenant_id: str,
        workflow_id: str,
        status: str,
        duration_ms: int | None = None,
    ) -> ExecutionModel:
        if status not in EXECUTION_STATUSES:
            raise ValueError(f"Unknown execution status: {status}")
        if await self.repository.get_live(session, tenant_id) is None:
            raise TenantNotFoundError(f"Tenant {tenant_id} not found")

        record = ExecutionModel(
            tenant_id=tenant_id,
            workflow_id=workflow_id,
            status=status,
            duration_ms=duration_ms,
        )
        session.add(record)
        await session.flush()
        return record

    async def list_recent(
        self,
        session: AsyncSession,
        tenant_id: str,
        limit: int = 20,
    ) -> list[ExecutionModel]:
        if await self.repository.get_live(session, tenant_id) is None:
            raise TenantNotFoundError(f"Tenant {tenant_id} not found")
        result = await session.execute(
            select(ExecutionModel)
            .where(ExecutionModel.tenant_id == tenant_id)
            .order_by(ExecutionModel.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
