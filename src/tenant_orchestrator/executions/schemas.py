"""Pydantic schemas for workflow execution reporting."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ExecutionRecordRequest(BaseModel):
    workflow_id: str = Field(..., min_length=1, max_length=255)
    status: Literal["success", "error", "running"]
    duration_ms: Optional[int] = Field(default=None, ge=0)


class ExecutionResponse(BaseModel):
    id: str
    tenant_id: str
    workflow_id: str
    status: str
    duration_ms: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}
