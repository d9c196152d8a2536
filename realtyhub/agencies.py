"""
realtyhub/agencies.py

Agency accounts: registration, profile, dashboard statistics, the public
directory, and subscribe / status / cancel.

AgencyService shares its TenantLocks with ListingManager. Every write here
saves the full agency row (ledger fields included), so it must not interleave
with a listing mutation of the same agency.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

try:
    from realtyhub import ledger, subscription
    from realtyhub.config import IS_DEV
    from realtyhub.errors import MalformedInput, NotFound
    from realtyhub.listings import TenantLocks
    from realtyhub.models import Agency, Availability, SubscriptionState, utcnow
    from realtyhub.plans import DEFAULT_CATALOG, PlanCatalog, PlanDefinition
    from realtyhub.schemas import AgencyProfileUpdate, AgencyRegisterRequest
    from realtyhub.store import ListingQuery, Store
except ModuleNotFoundError:
    import ledger
    import subscription
    from config import IS_DEV
    from errors import MalformedInput, NotFound
    from listings import TenantLocks
    from models import Agency, Availability, SubscriptionState, utcnow
    from plans import DEFAULT_CATALOG, PlanCatalog, PlanDefinition
    from schemas import AgencyProfileUpdate, AgencyRegisterRequest
    from store import ListingQuery, Store


# Profile fields an owner may edit; everything else is system-managed
PROFILE_FIELDS = ("agency_name", "description", "phone", "address", "website", "social_links")

# Fields never shown on the public agency page
PRIVATE_FIELDS = {"subscription", "storage_used_bytes", "listing_ids"}


def public_agency(agency: Agency) -> Dict[str, Any]:
    return agency.model_dump(mode="json", exclude=PRIVATE_FIELDS)


class AgencyService:
    def __init__(
        self,
        store: Store,
        locks: Optional[TenantLocks] = None,
        catalog: PlanCatalog = DEFAULT_CATALOG,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.locks = locks or TenantLocks()
        self.catalog = catalog
        self.clock = clock

    def _agency_for(self, owner_id: int) -> Agency:
        agency = self.store.find_agency_by_owner(owner_id)
        if agency is None:
            raise NotFound("Agency not found")
        return agency

    def _plan(self, plan_tier: Any) -> PlanDefinition:
        try:
            tier = subscription.ensure_tier(plan_tier)
        except MalformedInput:
            raise NotFound("Plan not found")
        plan = self.catalog.get(tier)
        if plan is None:
            raise NotFound("Plan not found")
        return plan

    # ---- plans ----------------------------------------------------------

    def list_plans(self) -> List[PlanDefinition]:
        return self.catalog.all()

    def get_plan(self, plan_tier: str) -> PlanDefinition:
        return self._plan(plan_tier)

    # ---- account --------------------------------------------------------

    def register(self, owner_id: int, request: AgencyRegisterRequest) -> Agency:
        """
        Create the user's agency with a fresh subscription on the chosen plan.

        Limits are snapshotted from the catalog now. One agency per owner.
        """
        if self.store.find_agency_by_owner(owner_id) is not None:
            raise MalformedInput("An agency is already registered for this user", field="owner_id")

        state = subscription.subscribe(
            request.plan_tier, request.billing_cycle, now=self.clock(), catalog=self.catalog
        )
        agency = Agency(
            owner_id=owner_id,
            agency_name=request.agency_name,
            email=request.email,
            phone=request.phone,
            description=request.description,
            address=request.address,
            website=request.website,
            social_links=request.social_links,
            subscription=state,
            created_at=self.clock(),
        )
        with self.store.transaction():
            self.store.insert_agency(agency)

        if IS_DEV:
            print(f"[SUBSCRIPTION] Registered agency_id={agency.id} owner_id={owner_id} "
                  f"plan={state.plan_tier.value} cycle={state.billing_cycle.value} ends={state.end_date}")
        return agency

    def get_profile(self, owner_id: int) -> Dict[str, Any]:
        agency = self._agency_for(owner_id)
        data = agency.model_dump(mode="json")
        data["subscription_valid"] = agency.subscription.is_valid(self.clock())
        return data

    def update_profile(self, owner_id: int, update: AgencyProfileUpdate) -> Agency:
        agency_id = self._agency_for(owner_id).id
        with self.locks.hold(agency_id):
            agency = self._agency_for(owner_id)
            for name in PROFILE_FIELDS:
                if name in update.model_fields_set and getattr(update, name) is not None:
                    setattr(agency, name, getattr(update, name))
            with self.store.transaction():
                self.store.update_agency(agency)
        return agency

    def dashboard_stats(self, owner_id: int) -> Dict[str, Any]:
        agency = self._agency_for(owner_id)
        listings = self.store.find_listings(ListingQuery(is_active=None, agency_id=agency.id))
        stats: Dict[str, Any] = {
            "total_properties": len(listings),
            "available_properties": sum(1 for p in listings if p.availability == Availability.available),
            "sold_properties": sum(1 for p in listings if p.availability == Availability.sold),
            "total_views": sum(p.views for p in listings),
            "subscription_valid": agency.subscription.is_valid(self.clock()),
            "subscription_end_date": agency.subscription.end_date,
        }
        stats.update(ledger.usage_summary(agency))
        return stats

    # ---- public directory -----------------------------------------------

    def list_public(self, search: Optional[str] = None, page: int = 1, limit: int = 12) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        page = max(1, int(page))
        limit = max(1, int(limit))
        agencies, total = self.store.list_agencies(search=search, limit=limit, offset=(page - 1) * limit)
        pagination = {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}
        return [public_agency(a) for a in agencies], pagination

    def get_public(self, agency_id: int) -> Dict[str, Any]:
        agency = self.store.get_agency(agency_id)
        if agency is None or not agency.is_active:
            raise NotFound("Agency not found")
        return public_agency(agency)

    # ---- subscription ---------------------------------------------------

    def subscribe(self, owner_id: int, plan_tier: str, billing_cycle: str = "monthly", payment_method: Optional[str] = None) -> Dict[str, Any]:
        """
        Subscribe, upgrade, downgrade or renew. The window restarts now and
        the plan's limits are copied onto the agency. Payment is mocked.
        """
        plan = self._plan(plan_tier)
        cycle = subscription.ensure_cycle(billing_cycle)
        agency_id = self._agency_for(owner_id).id

        with self.locks.hold(agency_id):
            agency = self._agency_for(owner_id)
            amount = plan.price_for(cycle)
            print(f"[SUBSCRIPTION] Processing mock payment of ${amount} via {payment_method or 'unspecified'} "
                  f"for agency_id={agency.id}")

            agency.subscription = subscription.subscribe(plan.tier, cycle, now=self.clock(), catalog=self.catalog)
            with self.store.transaction():
                self.store.update_agency(agency)

        state = agency.subscription
        if IS_DEV:
            print(f"[SUBSCRIPTION] agency_id={agency.id} plan={state.plan_tier.value} "
                  f"cycle={state.billing_cycle.value} ends={state.end_date}")
        return {
            "plan": state.plan_tier,
            "billing_cycle": state.billing_cycle,
            "start_date": state.start_date,
            "end_date": state.end_date,
            "amount": amount,
        }

    def subscription_status(self, owner_id: int) -> Dict[str, Any]:
        agency = self._agency_for(owner_id)
        state = agency.subscription
        plan = self.catalog.get(state.plan_tier)
        status: Dict[str, Any] = state.model_dump(mode="json")
        status["is_valid"] = state.is_valid(self.clock())
        status["plan_details"] = plan.to_dict() if plan else None
        status.update(ledger.usage_summary(agency))
        return status

    def cancel_subscription(self, owner_id: int) -> SubscriptionState:
        """Immediate cancellation: listing creation is blocked from now on."""
        agency_id = self._agency_for(owner_id).id
        with self.locks.hold(agency_id):
            agency = self._agency_for(owner_id)
            agency.subscription = subscription.cancel(agency.subscription, now=self.clock())
            with self.store.transaction():
                self.store.update_agency(agency)

        if IS_DEV:
            print(f"[SUBSCRIPTION] Cancelled agency_id={agency.id} at {agency.subscription.end_date}")
        return agency.subscription
