"""
realtyhub/subscription.py

Subscription state for agencies.

This module centralizes the logic for:
- Validity of an agency's subscription window
- Snapshotting plan limits at subscribe time
- Calendar-aware billing windows (monthly / yearly)
- Building replacement states on subscribe, renew and cancel

Key principles:
- Pure query/compute: nothing here touches the store or raises on gating;
  callers decide what an invalid subscription means for them
- SubscriptionState is a value object, replaced wholesale
- Limits are copied from the catalog by value, so later catalog edits
  never reach existing agencies until they resubscribe
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

try:
    from realtyhub.errors import MalformedInput
    from realtyhub.models import BillingCycle, PlanTier, SubscriptionState, utcnow
    from realtyhub.plans import DEFAULT_CATALOG, PlanCatalog
except ModuleNotFoundError:
    from errors import MalformedInput
    from models import BillingCycle, PlanTier, SubscriptionState, utcnow
    from plans import DEFAULT_CATALOG, PlanCatalog


# ============================================================================
# Parsing
# ============================================================================

def ensure_tier(value: Union[str, PlanTier]) -> PlanTier:
    """Parse a plan tier, rejecting unknown names with MalformedInput."""
    try:
        return PlanTier(str(value.value if isinstance(value, PlanTier) else value).lower())
    except ValueError:
        raise MalformedInput(f"Unknown plan '{value}'", field="plan_tier")


def ensure_cycle(value: Union[str, BillingCycle]) -> BillingCycle:
    """Parse a billing cycle, rejecting unknown names with MalformedInput."""
    try:
        return BillingCycle(str(value.value if isinstance(value, BillingCycle) else value).lower())
    except ValueError:
        raise MalformedInput(f"Unknown billing cycle '{value}'", field="billing_cycle")


# ============================================================================
# Queries
# ============================================================================

def is_valid(state: SubscriptionState, now: Optional[datetime] = None) -> bool:
    """True iff end_date is set and strictly after now."""
    return state.is_valid(now)


def snapshot_limits(plan_tier: PlanTier, catalog: PlanCatalog = DEFAULT_CATALOG) -> Tuple[int, int]:
    """
    Map a tier to (storage_limit_bytes, listing_limit).

    Used by agency registration and by subscribe/renew. The returned ints are
    copied onto the SubscriptionState; nothing keeps a reference to the plan.
    """
    plan = catalog.get(plan_tier)
    if plan is None:
        raise MalformedInput(f"Plan '{plan_tier}' is not in the catalog", field="plan_tier")
    return int(plan.storage_limit_bytes), int(plan.listing_limit)


def compute_billing_window(cycle: BillingCycle, start_date: datetime) -> datetime:
    """
    End of the billing window starting at start_date.

    Calendar arithmetic via relativedelta: the day is clamped to the last
    day of the target month, so Jan 31 + 1 month is Feb 28 (Feb 29 in leap
    years) and Feb 29 + 1 year is Feb 28.
    """
    if ensure_cycle(cycle) == BillingCycle.yearly:
        return start_date + relativedelta(years=1)
    return start_date + relativedelta(months=1)


def charge_amount(plan_tier: PlanTier, cycle: BillingCycle, catalog: PlanCatalog = DEFAULT_CATALOG) -> float:
    """Amount the (mocked) payment step charges for a tier and cycle."""
    plan = catalog.get(plan_tier)
    if plan is None:
        raise MalformedInput(f"Plan '{plan_tier}' is not in the catalog", field="plan_tier")
    return plan.price_for(ensure_cycle(cycle))


# ============================================================================
# State transitions (each returns a new value)
# ============================================================================

def subscribe(
    plan_tier: Union[str, PlanTier],
    billing_cycle: Union[str, BillingCycle] = BillingCycle.monthly,
    now: Optional[datetime] = None,
    catalog: PlanCatalog = DEFAULT_CATALOG,
) -> SubscriptionState:
    """
    Build a fresh subscription starting now.

    Used for registration, plan changes and renewals alike: the window
    always restarts at now and the limits are re-snapshotted.
    """
    tier = ensure_tier(plan_tier)
    cycle = ensure_cycle(billing_cycle)
    start = now or utcnow()
    storage_limit, listing_limit = snapshot_limits(tier, catalog)

    return SubscriptionState(
        plan_tier=tier,
        billing_cycle=cycle,
        start_date=start,
        end_date=compute_billing_window(cycle, start),
        storage_limit_bytes=storage_limit,
        listing_limit=listing_limit,
    )


def cancel(state: SubscriptionState, now: Optional[datetime] = None) -> SubscriptionState:
    """Immediate cancellation: the window ends now, not at period end."""
    return state.model_copy(update={"end_date": now or utcnow()})
