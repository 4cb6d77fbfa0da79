"""Shared Pydantic schemas for the tenant orchestrator."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "tenant-orchestrator"
    database: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: str = ""
