"""Tenant persistence, the source of truth for tenant identity and resources."""

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_orchestrator.common.exceptions import (
    DuplicateSubdomainError,
    DuplicateSubnetError,
    TenantNotFoundError,
)
from tenant_orchestrator.common.models import utcnow
from tenant_orchestrator.executions.models import ExecutionModel
from tenant_orchestrator.provisioning.allocator import SubnetAllocator
from tenant_orchestrator.tenants.models import (
    STATUS_DELETED,
    STATUS_PROVISIONING,
    TenantModel,
)
from tenant_orchestrator.tenants.schemas import ExecutionCounts


class TenantRepository:
    """Tenant CRUD plus the allocate-and-insert primitive."""

    def __init__(self):
        self._allocation_lock = asyncio.Lock()

    @asynccontextmanager
    async def reserve(self) -> AsyncIterator[None]:
        """Serialize allocate-and-insert on this host.

        Hold it around the whole session block so the lock outlives the commit;
        across processes the row lock taken by the allocator does the same job.
        """
        async with self._allocation_lock:
            yield

    async def insert_with_allocation(
        self,
        session: AsyncSession,
        allocator: SubnetAllocator,
        *,
        name: str,
        subdomain: str,
        plan_tier: str,
        db_password: str,
        cache_password: str,
        base_domain: str,
    ) -> TenantModel:
        """Check the subdomain, take the next subnet and insert a provisioning row."""
        if await self.get_live_by_subdomain(session, subdomain) is not None:
            raise DuplicateSubdomainError(f"Subdomain {subdomain} already exists")

        subnet = await allocator.allocate(session)
        tenant = TenantModel(
            name=name,
            subdomain=subdomain,
            plan_tier=plan_tier,
            status=STATUS_PROVISIONING,
            db_password=db_password,
            cache_password=cache_password,
            subnet_cidr=subnet,
            app_url=f"https://{subdomain}.{base_domain}",
        )
        session.add(tenant)
        try:
            await session.flush()
        except IntegrityError as exc:
            conflict = translate_integrity_error(exc, subdomain, subnet)
            if conflict is None:
                raise
            raise conflict from exc
        return tenant

    # ── Reads ──

    async def get_by_id(
        self, session: AsyncSession, tenant_id: str
    ) -> TenantModel | None:
        return await session.get(TenantModel, tenant_id)

    async def get_live(
        self, session: AsyncSession, tenant_id: str
    ) -> TenantModel | None:
        tenant = await self.get_by_id(session, tenant_id)
        if tenant is None or tenant.status == STATUS_DELETED:
            return None
        return tenant

    async def get_live_by_subdomain(
        self, session: AsyncSession, subdomain: str
    ) -> TenantModel | None:
        result = await session.execute(
            select(TenantModel).where(
                TenantModel.subdomain == subdomain,
                TenantModel.status != STATUS_DELETED,
            )
        )
        return result.scalar_one_or_none()

    async def list_tenants(
        self,
        session: AsyncSession,
        status: str | None = None,
        plan: str | None = None,
        include_deleted: bool = False,
    ) -> list[TenantModel]:
        query = select(TenantModel)
        if status is not None:
            query = query.where(TenantModel.status == status)
        elif not include_deleted:
            query = query.where(TenantModel.status != STATUS_DELETED)
        if plan is not None:
            query = query.where(TenantModel.plan_tier == plan)
        query = query.order_by(TenantModel.created_at.desc())
        result = await session.execute(query)
        return list(result.scalars().all())

    async def count_recent_executions(
        self, session: AsyncSession, tenant_id: str, days: int = 30
    ) -> ExecutionCounts:
        """Aggregate a tenant's executions over the last ``days`` days."""
        since = utcnow() - timedelta(days=days)
        result = await session.execute(
            select(
                func.count(ExecutionModel.id),
                func.sum(case((ExecutionModel.status == "success", 1), else_=0)),
                func.sum(case((ExecutionModel.status == "error", 1), else_=0)),
            ).where(
                ExecutionModel.tenant_id == tenant_id,
                ExecutionModel.created_at >= since,
            )
        )
        total, successful, failed = result.one()
        return ExecutionCounts(
            total_executions=total or 0,
            successful_executions=successful or 0,
            failed_executions=failed or 0,
        )

    # ── Writes ──

    async def update_containers(
        self,
        session: AsyncSession,
        tenant: TenantModel,
        app: str | None,
        database: str | None,
        cache: str | None,
        status: str,
    ) -> TenantModel:
        """Replace the container ids wholesale and move to ``status``."""
        tenant.app_container_id = app
        tenant.database_container_id = database
        tenant.cache_container_id = cache
        tenant.status = status
        tenant.updated_at = utcnow()
        await session.flush()
        return tenant

    async def set_status(
        self, session: AsyncSession, tenant: TenantModel, status: str
    ) -> TenantModel:
        tenant.status = status
        tenant.updated_at = utcnow()
        await session.flush()
        return tenant

    async def mark_deleted(
        self, session: AsyncSession, tenant: TenantModel
    ) -> TenantModel:
        """Soft delete: the row stays, its subdomain and subnet are released.

        The update only matches a live row, so of two racing deletes exactly
        one wins and the other raises ``TenantNotFoundError``.
        """
        now = utcnow()
        result = await session.execute(
            update(TenantModel)
            .where(
                TenantModel.id == tenant.id,
                TenantModel.status != STATUS_DELETED,
            )
            .values(status=STATUS_DELETED, deleted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TenantNotFoundError(f"Tenant {tenant.id} not found")
        await session.refresh(tenant)
        return tenant


# Index names (PostgreSQL) and table.column (SQLite). Neither can occur in a
# subdomain, which is limited to [a-z0-9-].
_SUBNET_MARKERS = ("uq_tenants_live_subnet", "tenants.subnet_cidr")
_SUBDOMAIN_MARKERS = ("uq_tenants_live_subdomain", "tenants.subdomain")


def translate_integrity_error(
    exc: IntegrityError, subdomain: str, subnet: str
) -> Exception | None:
    """Map a live-uniqueness violation to the matching conflict error."""
    detail = str(exc.orig)
    if any(marker in detail for marker in _SUBNET_MARKERS):
        return DuplicateSubnetError(f"Subnet {subnet} already allocated")
    if any(marker in detail for marker in _SUBDOMAIN_MARKERS):
        return DuplicateSubdomainError(f"Subdomain {subdomain} already exists")
    return None
