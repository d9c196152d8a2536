"""
realtyhub/plans.py

Plan catalog for agency subscriptions.

The catalog is read-only and is consulted only when an agency registers,
subscribes, or renews. Usage checks never look here: the limits are copied
onto the agency's SubscriptionState at subscribe time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

try:
    from realtyhub.models import BillingCycle, PlanTier
except ModuleNotFoundError:
    from models import BillingCycle, PlanTier


GIB = 1024 * 1024 * 1024


@dataclass(frozen=True)
class PlanDefinition:
    """Server-side plan definition (source of truth for limits and prices)."""
    tier: PlanTier
    display_name: str
    description: str
    price_monthly: float
    price_yearly: float
    storage_limit_bytes: int
    listing_limit: int
    features: Tuple[str, ...] = field(default_factory=tuple)

    def price_for(self, cycle: BillingCycle) -> float:
        if cycle == BillingCycle.yearly:
            return self.price_yearly
        return self.price_monthly

    def to_dict(self) -> Dict[str, object]:
        return {
            "plan_tier": self.tier.value,
            "display_name": self.display_name,
            "description": self.description,
            "price_monthly": self.price_monthly,
            "price_yearly": self.price_yearly,
            "storage_limit_bytes": self.storage_limit_bytes,
            "listing_limit": self.listing_limit,
            "features": list(self.features),
        }


DEFAULT_PLANS: Tuple[PlanDefinition, ...] = (
    PlanDefinition(
        tier=PlanTier.basic,
        display_name="Basic Plan",
        description="Perfect for individual brokers and small agencies",
        price_monthly=29.0,
        price_yearly=290.0,
        storage_limit_bytes=1 * GIB,
        listing_limit=10,
        features=(
            "10 property listings",
            "1GB storage",
            "Basic support",
            "Property search optimization",
            "Agency profile page",
        ),
    ),
    PlanDefinition(
        tier=PlanTier.pro,
        display_name="Professional Plan",
        description="Ideal for growing agencies with multiple agents",
        price_monthly=79.0,
        price_yearly=790.0,
        storage_limit_bytes=5 * GIB,
        listing_limit=50,
        features=(
            "50 property listings",
            "5GB storage",
            "Priority support",
            "Featured listings",
            "Advanced analytics",
            "Custom branding",
            "Lead management",
        ),
    ),
    PlanDefinition(
        tier=PlanTier.enterprise,
        display_name="Enterprise Plan",
        description="For large agencies and real estate networks",
        price_monthly=199.0,
        price_yearly=1990.0,
        storage_limit_bytes=10 * GIB,
        listing_limit=200,
        features=(
            "200 property listings",
            "10GB storage",
            "24/7 Premium support",
            "Unlimited featured listings",
            "Advanced analytics & reports",
            "Custom branding & domain",
            "API access",
            "Multi-agent management",
            "CRM integration",
        ),
    ),
)


class PlanCatalog:
    """Lookup of plan definitions by tier."""

    def __init__(self, plans: Iterable[PlanDefinition] = DEFAULT_PLANS):
        self._plans: Dict[PlanTier, PlanDefinition] = {p.tier: p for p in plans}

    def get(self, tier: PlanTier) -> Optional[PlanDefinition]:
        return self._plans.get(PlanTier(tier))

    def all(self) -> List[PlanDefinition]:
        """All plans, cheapest first."""
        return sorted(self._plans.values(), key=lambda p: p.price_monthly)


DEFAULT_CATALOG = PlanCatalog()
