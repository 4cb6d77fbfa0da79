"""Pydantic schemas for tenant endpoints and orchestrator results."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    plan: str = "starter"


class PlanResponse(BaseModel):
    tier: str
    max_workflows: int
    max_executions_per_month: int
    max_content_units_per_week: int
    price: int


class PlanLimitsView(BaseModel):
    max_workflows: int
    max_executions_per_month: int
    max_content_units_per_week: int
    price: int


class ProvisioningWarning(BaseModel):
    """A non-fatal problem hit after the tenant row was committed."""
    step: str
    code: str
    message: str


class ContainerRefs(BaseModel):
    app: Optional[str] = None
    database: Optional[str] = None
    cache: Optional[str] = None


class TenantView(BaseModel):
    id: str
    name: str
    subdomain: str
    plan: str
    status: str
    url: str
    containers: ContainerRefs
    limits: PlanLimitsView
    warnings: list[ProvisioningWarning] = []
    created_at: datetime


class TenantDeletedView(BaseModel):
    id: str
    name: str
    status: str = "deleted"
    deleted_at: datetime
    warnings: list[ProvisioningWarning] = []


class ExecutionCounts(BaseModel):
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0


class TenantMetrics(ExecutionCounts):
    window_days: int


class TenantStatusView(BaseModel):
    id: str
    name: str
    subdomain: str
    plan: str
    status: str
    url: str
    containers: dict[str, str]
    metrics: TenantMetrics
    limits: PlanLimitsView
    created_at: datetime
    updated_at: datetime


class TenantSummaryView(BaseModel):
    id: str
    name: str
    subdomain: str
    plan: str
    status: str
    url: str
    created_at: datetime


class TenantMetricsResponse(TenantMetrics):
    """Dashboard-facing counters plus the plan ceilings they are measured against."""
    tenant_id: str
    max_workflows: int
    max_executions_per_month: int
    max_content_units_per_week: int
