"""Dependency injection singletons for the tenant orchestrator."""

from tenant_orchestrator.common.config import get_settings
from tenant_orchestrator.common.database import DatabaseManager
from tenant_orchestrator.executions.service import ExecutionService
from tenant_orchestrator.plans.catalog import PlanCatalog
from tenant_orchestrator.provisioning.allocator import SubnetAllocator
from tenant_orchestrator.provisioning.manifest import ManifestRenderer, ManifestStore
from tenant_orchestrator.provisioning.orchestrator import LifecycleOrchestrator
from tenant_orchestrator.provisioning.readiness import ReadinessProber
from tenant_orchestrator.provisioning.runtime import (
    DockerDriver,
    InMemoryRuntime,
    RuntimeDriver,
)
from tenant_orchestrator.tenants.repository import TenantRepository

_db: DatabaseManager | None = None
_catalog: PlanCatalog | None = None
_repository: TenantRepository | None = None
_runtime: RuntimeDriver | None = None
_orchestrator: LifecycleOrchestrator | None = None
_executions: ExecutionService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_catalog() -> PlanCatalog:
    global _catalog
    if _catalog is None:
        _catalog = PlanCatalog()
    return _catalog


def get_repository() -> TenantRepository:
    global _repository
    if _repository is None:
        _repository = TenantRepository()
    return _repository


def get_runtime() -> RuntimeDriver:
    global _runtime
    if _runtime is None:
        settings = get_settings()
        if settings.runtime_driver == "memory":
            _runtime = InMemoryRuntime()
        elif settings.runtime_driver == "docker":
            _runtime = DockerDriver(
                binary=settings.docker_binary,
                timeout=settings.command_timeout,
                health_url=settings.app_health_url,
            )
        else:
            raise ValueError(
                f"Unknown runtime driver {settings.runtime_driver!r}, expected 'docker' or 'memory'"
            )
    return _runtime


def get_orchestrator() -> LifecycleOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        runtime = get_runtime()
        _orchestrator = LifecycleOrchestrator(
            settings,
            db=get_db(),
            repository=get_repository(),
            runtime=runtime,
            prober=ReadinessProber(
                runtime,
                max_attempts=settings.readiness_max_attempts,
                interval=settings.readiness_interval,
            ),
            manifests=ManifestStore(settings.manifest_dir),
            renderer=ManifestRenderer(settings.manifest_template or None),
            catalog=get_catalog(),
            allocator=SubnetAllocator(settings.seed_subnet),
        )
    return _orchestrator


def get_execution_service() -> ExecutionService:
    global _executions
    if _executions is None:
        _executions = ExecutionService(get_repository())
    return _executions


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _catalog, _repository, _runtime, _orchestrator, _executions
    _db = None
    _catalog = None
    _repository = None
    _runtime = None
    _orchestrator = None
    _executions = None
