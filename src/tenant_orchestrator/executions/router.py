"""Execution reporting API router."""

from fastapi import APIRouter, Depends, HTTPException, Query

from tenant_orchestrator.common.exceptions import TenantNotFoundError
from tenant_orchestrator.common.schemas import ErrorResponse
from tenant_orchestrator.common.security import require_api_key
from tenant_orchestrator.executions.schemas import (
    ExecutionRecordRequest,
    ExecutionResponse,
)

router = APIRouter(prefix="/tenants", tags=["executions"])


def _get_service():
    from tenant_orchestrator.deps import get_execution_service
    return get_execution_service()


def _get_db():
    from tenant_orchestrator.deps import get_db
    return get_db()


@router.post("/{tenant_id}/executions", response_model=ExecutionResponse, status_code=201)
async def record_execution(
    tenant_id: str, body: ExecutionRecordRequest, _=Depends(require_api_key)
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            record = await svc.record_execution(
                session,
                tenant_id,
                workflow_id=body.workflow_id,
                status=body.status,
                duration_ms=body.duration_ms,
            )
            return ExecutionResponse.model_validate(record)
    except TenantNotFoundError as e:
        raise HTTPException(
            status_code=404,
            detail=ErrorResponse(error=e.message, code=e.code).model_dump(),
        )


@router.get("/{tenant_id}/executions", response_model=list[ExecutionResponse])
async def list_executions(
    tenant_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            records = await svc.list_recent(session, tenant_id, limit=limit)
            return [ExecutionResponse.model_validate(r) for r in records]
    except TenantNotFoundError as e:
        raise HTTPException(
            status_code=404,
            detail=ErrorResponse(error=e.message, code=e.code).model_dump(),
        )
