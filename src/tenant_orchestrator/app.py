"""FastAPI application factory for the tenant orchestrator."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tenant_orchestrator.common.config import get_settings
from tenant_orchestrator.common.schemas import HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from tenant_orchestrator.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        from tenant_orchestrator.deps import get_db
        if await get_db().ping():
            return HealthResponse(version=settings.api_version)
        return HealthResponse(
            status="degraded", version=settings.api_version, database="unavailable"
        )

    # Mount routers
    from tenant_orchestrator.tenants.router import router as tenant_router
    from tenant_orchestrator.executions.router import router as execution_router

    prefix = settings.api_prefix
    app.include_router(tenant_router, prefix=prefix)
    app.include_router(execution_router, prefix=prefix)

    return app
