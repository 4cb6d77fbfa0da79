"""Private subnet allocation for tenant networks."""

import logging
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_orchestrator.common.exceptions import AddressSpaceExhaustedError
from tenant_orchestrator.tenants.models import STATUS_DELETED, TenantModel

logger = logging.getLogger(__name__)

_SUBNET_PATTERN = re.compile(r"^(\d{1,3})\.(\d{1,3})\.0\.0/24$")


class SubnetAllocator:
    """Hands out ``A.N.0.0/24`` blocks by bumping the second octet.

    The policy only looks at the most recently created live tenant; the
    partial unique index on ``subnet_cidr`` rejects anything it gets wrong.
    """

    def __init__(self, seed_subnet: str = "172.100.0.0/24"):
        match = _SUBNET_PATTERN.match(seed_subnet)
        if match is None:
            raise ValueError(f"Seed subnet must look like A.B.0.0/24, got {seed_subnet!r}")
        self.seed_subnet = seed_subnet
        self._first_octet = int(match.group(1))

    def next_subnet(self, last_subnet: str | None) -> str:
        if not last_subnet:
            return self.seed_subnet

        match = _SUBNET_PATTERN.match(last_subnet)
        if match is None or int(match.group(1)) != self._first_octet:
            logger.warning(
                "Unrecognized subnet %r on latest tenant, falling back to seed block",
                last_subnet,
            )
            return self.seed_subnet

        next_octet = int(match.group(2)) + 1
        if next_octet > 255:
            raise AddressSpaceExhaustedError(
                f"No subnet left after {last_subnet} in {self._first_octet}.0.0.0/8"
            )
        return f"{self._first_octet}.{next_octet}.0.0/24"

    async def allocate(self, session: AsyncSession) -> str:
        """Compute the next block inside the caller's transaction.

        Locks the newest live tenant row so concurrent creations queue on it.
        """
        result = await session.execute(
            select(TenantModel.subnet_cidr)
            .where(TenantModel.status != STATUS_DELETED)
            .order_by(TenantModel.created_at.desc())
            .limit(1)
            .with_for_update()
        )
        return self.next_subnet(result.scalar_one_or_none())
