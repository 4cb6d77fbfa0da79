"""Tenant lifecycle API router. Every tenant route requires the operator API key."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from tenant_orchestrator.common.exceptions import OrchestratorError
from tenant_orchestrator.common.schemas import ErrorResponse
from tenant_orchestrator.common.security import require_api_key
from tenant_orchestrator.tenants.models import TenantStatus
from tenant_orchestrator.tenants.schemas import (
    PlanResponse,
    TenantCreate,
    TenantDeletedView,
    TenantMetricsResponse,
    TenantStatusView,
    TenantSummaryView,
    TenantView,
)

router = APIRouter(tags=["tenants"])

_STATUS_CODES = {
    "INVALID_PLAN": 400,
    "INVALID_NAME": 400,
    "NOT_FOUND": 404,
    "DUPLICATE_SUBDOMAIN": 409,
    "DUPLICATE_SUBNET": 409,
    "INVALID_TRANSITION": 409,
    "ADDRESS_SPACE_EXHAUSTED": 503,
    "PERSISTENCE_ERROR": 503,
}


def _get_orchestrator():
    from tenant_orchestrator.deps import get_orchestrator
    return get_orchestrator()


def _get_catalog():
    from tenant_orchestrator.deps import get_catalog
    return get_catalog()


def _http_error(e: OrchestratorError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_CODES.get(e.code, 500),
        detail=ErrorResponse(error=e.message, code=e.code).model_dump(),
    )


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans():
    return [
        PlanResponse(tier=tier, **limits.to_dict())
        for tier, limits in _get_catalog()
    ]


@router.post("/tenants", response_model=TenantView, status_code=201)
async def create_tenant(body: TenantCreate, _=Depends(require_api_key)):
    try:
        return await _get_orchestrator().create_tenant(body.name, body.plan)
    except OrchestratorError as e:
        raise _http_error(e)


@router.get("/tenants", response_model=list[TenantSummaryView])
async def list_tenants(
    status: Optional[TenantStatus] = None,
    plan: Optional[str] = None,
    include_deleted: bool = Query(default=False),
    _=Depends(require_api_key),
):
    try:
        return await _get_orchestrator().list_tenants(
            status=status, plan=plan, include_deleted=include_deleted
        )
    except OrchestratorError as e:
        raise _http_error(e)


@router.get("/tenants/{tenant_id}/status", response_model=TenantStatusView)
async def get_tenant_status(tenant_id: str, _=Depends(require_api_key)):
    try:
        return await _get_orchestrator().get_tenant_status(tenant_id)
    except OrchestratorError as e:
        raise _http_error(e)


@router.get("/tenants/{tenant_id}/metrics", response_model=TenantMetricsResponse)
async def get_tenant_metrics(tenant_id: str, _=Depends(require_api_key)):
    try:
        return await _get_orchestrator().get_tenant_metrics(tenant_id)
    except OrchestratorError as e:
        raise _http_error(e)


@router.post("/tenants/{tenant_id}/suspend", response_model=TenantView)
async def suspend_tenant(tenant_id: str, _=Depends(require_api_key)):
    try:
        return await _get_orchestrator().suspend_tenant(tenant_id)
    except OrchestratorError as e:
        raise _http_error(e)


@router.post("/tenants/{tenant_id}/resume", response_model=TenantView)
async def resume_tenant(tenant_id: str, _=Depends(require_api_key)):
    try:
        return await _get_orchestrator().resume_tenant(tenant_id)
    except OrchestratorError as e:
        raise _http_error(e)


@router.delete("/tenants/{tenant_id}", response_model=TenantDeletedView)
async def delete_tenant(tenant_id: str, _=Depends(require_api_key)):
    try:
        return await _get_orchestrator().delete_tenant(tenant_id)
    except OrchestratorError as e:
        raise _http_error(e)
