"""SQLAlchemy model for tenants."""

from typing import Literal, get_args

from sqlalchemy import Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from tenant_orchestrator.common.models import (
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    generate_uuid,
)

STATUS_PROVISIONING = "provisioning"
STATUS_ACTIVE = "active"
STATUS_SUSPENDED = "suspended"
STATUS_DELETED = "deleted"

TenantStatus = Literal["provisioning", "active", "suspended", "deleted"]
TENANT_STATUSES: tuple[str, ...] = get_args(TenantStatus)

_LIVE = "status != 'deleted'"


class TenantModel(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "tenants"
    __table_args__ = (
        # Partial indexes: uniqueness only binds tenants that are still live.
        Index(
            "uq_tenants_live_subdomain",
            "subdomain",
            unique=True,
            sqlite_where=text(_LIVE),
            postgresql_where=text(_LIVE),
        ),
        Index(
            "uq_tenants_live_subnet",
            "subnet_cidr",
            unique=True,
            sqlite_where=text(_LIVE),
            postgresql_where=text(_LIVE),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subdomain: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    plan_tier: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), default=STATUS_PROVISIONING, nullable=False, index=True
    )

    db_password: Mapped[str] = mapped_column(String(64), nullable=False)
    cache_password: Mapped[str] = mapped_column(String(64), nullable=False)
    subnet_cidr: Mapped[str] = mapped_column(String(18), nullable=False)
    app_url: Mapped[str] = mapped_column(String(255), nullable=False)

    app_container_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    database_container_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    cache_container_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
