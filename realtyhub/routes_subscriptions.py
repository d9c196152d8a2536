"""
realtyhub/routes_subscriptions.py

Plan catalog and agency subscription endpoints.

- GET /plans and /plans/{tier} are public
- subscribe / status / cancel act on the caller's own agency
- Payment is mocked: the amount is computed and logged, nothing is charged
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Path

try:
    from realtyhub.auth_context import AuthContext
    from realtyhub.agencies import AgencyService
    from realtyhub.config import IS_DEV
    from realtyhub.dependencies import AGENCY_ROLES, get_agency_service, http_error, require_role
    from realtyhub.errors import MarketplaceError
    from realtyhub.schemas import SubscribeRequest, SubscriptionReceipt
except ModuleNotFoundError:
    from auth_context import AuthContext
    from agencies import AgencyService
    from config import IS_DEV
    from dependencies import AGENCY_ROLES, get_agency_service, http_error, require_role
    from errors import MarketplaceError
    from schemas import SubscribeRequest, SubscriptionReceipt


router = APIRouter(
    prefix="/api/subscriptions",
    tags=["subscriptions"],
)


def _db_error(action: str, e: sqlite3.Error) -> HTTPException:
    if IS_DEV:
        print(f"[SUBSCRIPTION] DB error on {action}: {e}")
    return HTTPException(status_code=500, detail="Database error")


@router.get("/plans")
def list_plans(service: AgencyService = Depends(get_agency_service)) -> Dict[str, Any]:
    """All plans, cheapest first."""
    return {"plans": [p.to_dict() for p in service.list_plans()]}


@router.get("/plans/{plan_tier}")
def get_plan(
    plan_tier: str = Path(..., min_length=1, max_length=50),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    try:
        plan = service.get_plan(plan_tier)
    except MarketplaceError as e:
        http_error(e)
    return {"plan": plan.to_dict()}


@router.post("/subscribe")
def subscribe(
    request: SubscribeRequest,
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    """
    Subscribe to, change, or renew a plan.

    The billing window restarts now and the plan's limits are snapshotted
    onto the agency.

    Raises:
        HTTPException(400): Unknown billing cycle
        HTTPException(404): Unknown plan, or caller has no agency
    """
    try:
        receipt = service.subscribe(
            ctx.user_id,
            request.plan_tier,
            billing_cycle=request.billing_cycle,
            payment_method=request.payment_method,
        )
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("subscribe", e)

    return {
        "message": "Subscription updated successfully",
        "subscription": SubscriptionReceipt(**receipt).model_dump(mode="json"),
    }


@router.get("/status")
def subscription_status(
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    """Current plan snapshot, validity, plan details and usage."""
    try:
        status = service.subscription_status(ctx.user_id)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("status", e)

    return {"subscription": status}


@router.post("/cancel")
def cancel_subscription(
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    """Cancel immediately: the window ends now."""
    try:
        state = service.cancel_subscription(ctx.user_id)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("cancel", e)

    return {
        "message": "Subscription cancelled successfully",
        "end_date": state.end_date.isoformat() if state.end_date else None,
    }
