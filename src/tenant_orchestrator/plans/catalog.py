"""Plan tiers and the resource limits each one grants.

Every tenant carries only its tier tag; limits are always looked up here.

Tier ladder:
- starter     → small teams, a handful of workflows
- pro         → 25 workflows, 50k executions / month
- business    → unlimited workflows, 250k executions / month
- enterprise  → effectively unlimited
"""

from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Iterator, Mapping

from tenant_orchestrator.common.exceptions import InvalidPlanError

# Sentinel used by the upper tiers for "no practical limit".
UNLIMITED = 999_999


@dataclass(frozen=True)
class PlanLimits:
    max_workflows: int
    max_executions_per_month: int
    max_content_units_per_week: int
    price: int  # USD / month

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


DEFAULT_PLANS: Mapping[str, PlanLimits] = MappingProxyType({
    "starter": PlanLimits(
        max_workflows=5,
        max_executions_per_month=10_000,
        max_content_units_per_week=2,
        price=49,
    ),
    "pro": PlanLimits(
        max_workflows=25,
        max_executions_per_month=50_000,
        max_content_units_per_week=8,
        price=149,
    ),
    "business": PlanLimits(
        max_workflows=UNLIMITED,
        max_executions_per_month=250_000,
        max_content_units_per_week=20,
        price=499,
    ),
    "enterprise": PlanLimits(
        max_workflows=UNLIMITED,
        max_executions_per_month=UNLIMITED,
        max_content_units_per_week=UNLIMITED,
        price=999,
    ),
})


class PlanCatalog:
    """Read-only lookup of tier name → limits."""

    def __init__(self, plans: Mapping[str, PlanLimits] = DEFAULT_PLANS):
        self._plans = MappingProxyType(dict(plans))

    @staticmethod
    def normalize(tier: str) -> str:
        return (tier or "").strip().lower()

    def get(self, tier: str) -> PlanLimits:
        """Return the limits for a tier.

        Raises:
            InvalidPlanError: If the tier is not one of the catalog names.
        """
        key = self.normalize(tier)
        try:
            return self._plans[key]
        except KeyError:
            raise InvalidPlanError(
                f"Invalid plan: {tier}. Must be one of: {', '.join(self.tiers())}"
            ) from None

    def tiers(self) -> list[str]:
        return list(self._plans)

    def __contains__(self, tier: object) -> bool:
        return isinstance(tier, str) and self.normalize(tier) in self._plans

    def __iter__(self) -> Iterator[tuple[str, PlanLimits]]:
        return iter(self._plans.items())
