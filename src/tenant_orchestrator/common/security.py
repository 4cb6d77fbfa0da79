"""API key authentication dependency.

Token issuance and per-tenant access checks live upstream; the orchestrator
API only accepts calls carrying the operator key.
"""

from fastapi import Header, HTTPException


async def require_api_key(
    x_api_key: str = Header(..., alias="X-Api-Key"),
) -> str:
    """FastAPI dependency that validates the operator API key from header."""
    from tenant_orchestrator.common.config import get_settings

    settings = get_settings()
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_api_key
