"""Tenant Orchestrator: provisions and manages isolated per-tenant workflow stacks."""

from tenant_orchestrator.plans.catalog import DEFAULT_PLANS, PlanCatalog, PlanLimits
from tenant_orchestrator.tenants.naming import derive_subdomain

__all__ = [
    "DEFAULT_PLANS",
    "PlanCatalog",
    "PlanLimits",
    "derive_subdomain",
]
__version__ = "0.1.0"
