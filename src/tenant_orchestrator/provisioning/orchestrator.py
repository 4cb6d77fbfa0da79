"""LifecycleOrchestrator: turns tenant records into running, isolated stacks.

Create saga:
1. Validate plan, derive subdomain
2. Reserve subdomain + subnet and insert a ``provisioning`` row (commit point)
3. Render and save the stack manifest
4. Create the tenant network, start the stack
5. Look up container ids, wait for the app to become ready (best effort)
6. Record container ids and mark the tenant ``active``

Anything that fails before the commit point aborts the call with no side
effects. Anything that fails after it is logged and returned as a warning on
the result; the committed row is never rolled back.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_orchestrator.common.config import OrchestratorSettings
from tenant_orchestrator.common.database import DatabaseManager
from tenant_orchestrator.common.exceptions import (
    InvalidTransitionError,
    OrchestratorError,
    PersistenceError,
    TenantNotFoundError,
)
from tenant_orchestrator.plans.catalog import PlanCatalog
from tenant_orchestrator.provisioning.allocator import SubnetAllocator
from tenant_orchestrator.provisioning.credentials import generate_secret
from tenant_orchestrator.provisioning.manifest import (
    ManifestContext,
    ManifestRenderer,
    ManifestStore,
)
from tenant_orchestrator.provisioning.readiness import ReadinessProber
from tenant_orchestrator.provisioning.runtime import (
    MANAGED_SERVICES,
    STATE_NOT_FOUND,
    RuntimeDriver,
    container_selector,
)
from tenant_orchestrator.tenants.models import (
    STATUS_ACTIVE,
    STATUS_DELETED,
    STATUS_PROVISIONING,
    STATUS_SUSPENDED,
    TenantModel,
)
from tenant_orchestrator.tenants.naming import derive_subdomain
from tenant_orchestrator.tenants.repository import TenantRepository
from tenant_orchestrator.tenants.schemas import (
    ContainerRefs,
    PlanLimitsView,
    ProvisioningWarning,
    TenantDeletedView,
    TenantMetrics,
    TenantMetricsResponse,
    TenantStatusView,
    TenantSummaryView,
    TenantView,
)

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[str, frozenset[str]] = {
    # A tenant stuck in provisioning can still be torn down.
    STATUS_PROVISIONING: frozenset({STATUS_ACTIVE, STATUS_DELETED}),
    STATUS_ACTIVE: frozenset({STATUS_SUSPENDED, STATUS_DELETED}),
    STATUS_SUSPENDED: frozenset({STATUS_ACTIVE, STATUS_DELETED}),
    STATUS_DELETED: frozenset(),
}


def check_transition(current: str, target: str) -> None:
    """Raise ``InvalidTransitionError`` unless ``current → target`` is allowed."""
    if target not in _TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(
            f"Cannot move tenant from {current} to {target}"
        )


class LifecycleOrchestrator:
    """Sequences catalog, allocator, repository and runtime into tenant sagas."""

    def __init__(
        self,
        settings: OrchestratorSettings,
        db: DatabaseManager,
        repository: TenantRepository,
        runtime: RuntimeDriver,
        prober: ReadinessProber,
        manifests: ManifestStore,
        renderer: ManifestRenderer,
        catalog: PlanCatalog,
        allocator: SubnetAllocator,
    ):
        self.settings = settings
        self.db = db
        self.repository = repository
        self.runtime = runtime
        self.prober = prober
        self.manifests = manifests
        self.renderer = renderer
        self.catalog = catalog
        self.allocator = allocator

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.db.get_session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Tenant store unavailable: {exc}") from exc

    # ── Create ──

    async def create_tenant(
        self,
        name: str,
        plan: str = "starter",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TenantView:
        """Create a tenant record and bring up its stack."""
        self.catalog.get(plan)
        tier = self.catalog.normalize(plan)
        subdomain = derive_subdomain(name)

        async with self.repository.reserve():
            async with self._transaction() as session:
                tenant = await self.repository.insert_with_allocation(
                    session,
                    self.allocator,
                    name=name,
                    subdomain=subdomain,
                    plan_tier=tier,
                    db_password=generate_secret(),
                    cache_password=generate_secret(),
                    base_domain=self.settings.base_domain,
                )

        logger.info(
            "Tenant record committed",
            extra={"tenant_id": tenant.id, "subdomain": subdomain, "subnet": tenant.subnet_cidr},
        )

        warnings: list[ProvisioningWarning] = []
        refs: dict[str, Optional[str]] = {role: None for role in MANAGED_SERVICES}

        manifest_path = self._write_manifest(tenant, warnings)
        if manifest_path is not None and await self._start_stack(tenant, manifest_path, warnings):
            for role in MANAGED_SERVICES:
                try:
                    refs[role] = await self.runtime.find_container(
                        container_selector(role, tenant.id)
                    )
                except Exception as exc:
                    self._warn(warnings, tenant.id, f"find_container:{role}", exc)

            if refs["app"]:
                try:
                    await self.prober.wait_until_ready(refs["app"], cancel_event=cancel_event)
                except Exception as exc:
                    # Slow cold starts are expected; the tenant still goes active.
                    self._warn(warnings, tenant.id, "readiness", exc)
            else:
                logger.info(
                    "App container not reported yet, skipping readiness probe",
                    extra={"tenant_id": tenant.id},
                )

            try:
                async with self._transaction() as session:
                    row = await self.repository.get_by_id(session, tenant.id)
                    check_transition(row.status, STATUS_ACTIVE)
                    tenant = await self.repository.update_containers(
                        session, row, status=STATUS_ACTIVE, **refs
                    )
            except Exception as exc:
                self._warn(warnings, tenant.id, "activate", exc)

        if tenant.status == STATUS_ACTIVE:
            logger.info("Tenant created", extra={"tenant_id": tenant.id})
        else:
            logger.warning(
                "Tenant left in %s", tenant.status,
                extra={"tenant_id": tenant.id, "warnings": len(warnings)},
            )
        return self._tenant_view(tenant, warnings, ContainerRefs(**refs))

    def _write_manifest(
        self, tenant: TenantModel, warnings: list[ProvisioningWarning]
    ) -> Optional[str]:
        try:
            manifest = self.renderer.render(self._manifest_context(tenant))
            path = self.manifests.save(tenant.id, manifest)
        except Exception as exc:
            self._warn(warnings, tenant.id, "write_manifest", exc)
            return None
        logger.info("Manifest written to %s", path, extra={"tenant_id": tenant.id})
        return str(path)

    async def _start_stack(
        self,
        tenant: TenantModel,
        manifest_path: str,
        warnings: list[ProvisioningWarning],
    ) -> bool:
        try:
            await self.runtime.create_network(tenant.id, tenant.subnet_cidr)
        except Exception as exc:
            # The stack start below decides whether the missing network matters.
            self._warn(warnings, tenant.id, "create_network", exc)
        try:
            await self.runtime.start_stack(manifest_path)
        except Exception as exc:
            self._warn(warnings, tenant.id, "start_stack", exc)
            return False
        return True

    def _manifest_context(self, tenant: TenantModel) -> ManifestContext:
        return ManifestContext(
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            plan=tenant.plan_tier,
            subdomain=tenant.subdomain,
            base_domain=self.settings.base_domain,
            app_url=tenant.app_url,
            db_password=tenant.db_password,
            cache_password=tenant.cache_password,
            subnet=tenant.subnet_cidr,
            limits=self.catalog.get(tenant.plan_tier),
        )

    # ── Delete ──

    async def delete_tenant(self, tenant_id: str) -> TenantDeletedView:
        """Tear down a tenant's stack and network, then soft delete the record."""
        tenant = await self._load_live(tenant_id)
        check_transition(tenant.status, STATUS_DELETED)

        warnings: list[ProvisioningWarning] = []
        manifest_path = str(self.manifests.path_for(tenant.id))
        try:
            await self.runtime.stop_stack(manifest_path, remove_volumes=True)
        except Exception as exc:
            self._warn(warnings, tenant.id, "stop_stack", exc)
        try:
            await self.runtime.remove_network(tenant.id)
        except Exception as exc:
            self._warn(warnings, tenant.id, "remove_network", exc)

        async with self._transaction() as session:
            row = await self.repository.get_live(session, tenant_id)
            if row is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")
            tenant = await self.repository.mark_deleted(session, row)

        logger.info("Tenant deleted", extra={"tenant_id": tenant.id, "warnings": len(warnings)})
        return TenantDeletedView(
            id=tenant.id,
            name=tenant.name,
            status=STATUS_DELETED,
            deleted_at=tenant.deleted_at,
            warnings=warnings,
        )

    # ── Suspend / resume ──

    async def suspend_tenant(self, tenant_id: str) -> TenantView:
        """Stop an active tenant's stack, keeping its volumes."""
        tenant = await self._load_live(tenant_id)
        check_transition(tenant.status, STATUS_SUSPENDED)

        warnings: list[ProvisioningWarning] = []
        try:
            await self.runtime.stop_stack(
                str(self.manifests.path_for(tenant.id)), remove_volumes=False
            )
        except Exception as exc:
            self._warn(warnings, tenant.id, "stop_stack", exc)

        tenant = await self._set_status(tenant_id, STATUS_SUSPENDED)
        logger.info("Tenant suspended", extra={"tenant_id": tenant.id})
        return self._tenant_view(tenant, warnings)

    async def resume_tenant(self, tenant_id: str) -> TenantView:
        """Restart a suspended tenant's stack."""
        tenant = await self._load_live(tenant_id)
        check_transition(tenant.status, STATUS_ACTIVE)

        warnings: list[ProvisioningWarning] = []
        manifest_path: Optional[str] = str(self.manifests.path_for(tenant.id))
        if not self.manifests.exists(tenant.id):
            # Credentials are stored, so a lost manifest renders identically.
            manifest_path = self._write_manifest(tenant, warnings)
        if manifest_path is not None:
            try:
                await self.runtime.start_stack(manifest_path)
            except Exception as exc:
                self._warn(warnings, tenant.id, "start_stack", exc)

        tenant = await self._set_status(tenant_id, STATUS_ACTIVE)
        logger.info("Tenant resumed", extra={"tenant_id": tenant.id})
        return self._tenant_view(tenant, warnings)

    async def _set_status(self, tenant_id: str, status: str) -> TenantModel:
        async with self._transaction() as session:
            row = await self.repository.get_live(session, tenant_id)
            if row is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")
            check_transition(row.status, status)
            return await self.repository.set_status(session, row, status)

    # ── Queries ──

    async def get_tenant_status(self, tenant_id: str) -> TenantStatusView:
        """Persisted record joined with execution counts and live container state."""
        window = self.settings.metrics_window_days
        async with self._transaction() as session:
            tenant = await self.repository.get_live(session, tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")
            counts = await self.repository.count_recent_executions(
                session, tenant.id, days=window
            )

        containers = {}
        for role in MANAGED_SERVICES:
            containers[role] = await self._inspect(
                tenant.id, getattr(tenant, f"{role}_container_id")
            )

        return TenantStatusView(
            id=tenant.id,
            name=tenant.name,
            subdomain=tenant.subdomain,
            plan=tenant.plan_tier,
            status=tenant.status,
            url=tenant.app_url,
            containers=containers,
            metrics=TenantMetrics(window_days=window, **counts.model_dump()),
            limits=self._limits_view(tenant.plan_tier),
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
        )

    async def get_tenant_metrics(self, tenant_id: str) -> TenantMetricsResponse:
        """Execution counters and plan ceilings, without touching the runtime."""
        window = self.settings.metrics_window_days
        async with self._transaction() as session:
            tenant = await self.repository.get_live(session, tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")
            counts = await self.repository.count_recent_executions(
                session, tenant.id, days=window
            )
        limits = self.catalog.get(tenant.plan_tier)
        return TenantMetricsResponse(
            tenant_id=tenant.id,
            window_days=window,
            max_workflows=limits.max_workflows,
            max_executions_per_month=limits.max_executions_per_month,
            max_content_units_per_week=limits.max_content_units_per_week,
            **counts.model_dump(),
        )

    async def list_tenants(
        self,
        status: Optional[str] = None,
        plan: Optional[str] = None,
        include_deleted: bool = False,
    ) -> list[TenantSummaryView]:
        """Point-in-time snapshot of tenant records, newest first."""
        if plan is not None:
            plan = self.catalog.normalize(plan)
        async with self._transaction() as session:
            tenants = await self.repository.list_tenants(
                session, status=status, plan=plan, include_deleted=include_deleted
            )
        return [
            TenantSummaryView(
                id=t.id,
                name=t.name,
                subdomain=t.subdomain,
                plan=t.plan_tier,
                status=t.status,
                url=t.app_url,
                created_at=t.created_at,
            )
            for t in tenants
        ]

    # ── Helpers ──

    async def _load_live(self, tenant_id: str) -> TenantModel:
        async with self._transaction() as session:
            tenant = await self.repository.get_live(session, tenant_id)
        if tenant is None:
            raise TenantNotFoundError(f"Tenant {tenant_id} not found")
        return tenant

    async def _inspect(self, tenant_id: str, container_ref: Optional[str]) -> str:
        if not container_ref:
            return STATE_NOT_FOUND
        try:
            return await self.runtime.inspect_state(container_ref)
        except Exception:
            logger.warning(
                "Inspecting container %s failed", container_ref,
                exc_info=True, extra={"tenant_id": tenant_id},
            )
            return STATE_NOT_FOUND

    def _limits_view(self, tier: str) -> PlanLimitsView:
        return PlanLimitsView(**self.catalog.get(tier).to_dict())

    def _tenant_view(
        self,
        tenant: TenantModel,
        warnings: list[ProvisioningWarning],
        containers: Optional[ContainerRefs] = None,
    ) -> TenantView:
        if containers is None:
            containers = ContainerRefs(
                app=tenant.app_container_id,
                database=tenant.database_container_id,
                cache=tenant.cache_container_id,
            )
        return TenantView(
            id=tenant.id,
            name=tenant.name,
            subdomain=tenant.subdomain,
            plan=tenant.plan_tier,
            status=tenant.status,
            url=tenant.app_url,
            containers=containers,
            limits=self._limits_view(tenant.plan_tier),
            warnings=warnings,
            created_at=tenant.created_at,
        )

    @staticmethod
    def _warn(
        warnings: list[ProvisioningWarning],
        tenant_id: str,
        step: str,
        exc: Exception,
    ) -> None:
        if isinstance(exc, OrchestratorError):
            code, message = exc.code, exc.message
        elif isinstance(exc, SQLAlchemyError):
            code, message = "PERSISTENCE_ERROR", str(exc)
        else:
            code, message = "INFRASTRUCTURE_ERROR", str(exc) or type(exc).__name__
        logger.warning(
            "Step %s failed for tenant %s: %s", step, tenant_id, message,
            exc_info=exc,
            extra={"tenant_id": tenant_id, "step": step, "code": code},
        )
        warnings.append(ProvisioningWarning(step=step, code=code, message=message))
