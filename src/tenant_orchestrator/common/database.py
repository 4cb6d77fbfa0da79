"""Async access to the tenant metadata store."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tenant_orchestrator.common.config import OrchestratorSettings, get_settings
from tenant_orchestrator.common.exceptions import PersistenceError
from tenant_orchestrator.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import tenant_orchestrator.tenants.models  # noqa: F401
import tenant_orchestrator.executions.models  # noqa: F401

logger = logging.getLogger(__name__)


class DatabaseManager:
    """One engine for the tenant store; sessions commit or roll back as a unit."""

    def __init__(self, settings: OrchestratorSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self._settings.db_url.startswith("sqlite")

    async def init(self) -> None:
        kwargs = {}
        if not self.is_sqlite:
            # The pool size is the ceiling on sagas in flight at once.
            kwargs["pool_size"] = self._settings.db_pool_size
            kwargs["pool_pre_ping"] = True
        self.engine = create_async_engine(self._settings.db_url, echo=False, **kwargs)
        self._session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None or self._session_factory is None:
            raise PersistenceError("Tenant store not initialized, call init() first")
        return self.engine

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        self._require_engine()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Return whether the store answers a trivial query."""
        try:
            async with self._require_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, PersistenceError) as exc:
            logger.warning("Tenant store ping failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
