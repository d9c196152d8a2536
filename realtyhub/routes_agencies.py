"""
realtyhub/routes_agencies.py

Agency registration, profile, dashboard and public directory endpoints.

Security guarantees:
- /all and /public/{id} are public and never expose subscription or ledger fields
- Everything else acts on the caller's own agency (owner = token user id)
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

try:
    from realtyhub.auth_context import AuthContext
    from realtyhub.agencies import AgencyService
    from realtyhub.config import IS_DEV
    from realtyhub.dependencies import AGENCY_ROLES, get_agency_service, http_error, require_role
    from realtyhub.errors import MarketplaceError
    from realtyhub.models import UserRole
    from realtyhub.schemas import AgencyProfileUpdate, AgencyRegisterRequest
except ModuleNotFoundError:
    from auth_context import AuthContext
    from agencies import AgencyService
    from config import IS_DEV
    from dependencies import AGENCY_ROLES, get_agency_service, http_error, require_role
    from errors import MarketplaceError
    from models import UserRole
    from schemas import AgencyProfileUpdate, AgencyRegisterRequest


router = APIRouter(
    prefix="/api/agencies",
    tags=["agencies"],
)


def _db_error(action: str, e: sqlite3.Error) -> HTTPException:
    if IS_DEV:
        print(f"[AGENCIES] DB error on {action}: {e}")
    return HTTPException(status_code=500, detail="Database error")


@router.get("/all")
def list_agencies(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=200),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    """Active, verified agencies, newest first."""
    try:
        agencies, pagination = service.list_public(search=search, page=page, limit=limit)
    except sqlite3.Error as e:
        raise _db_error("list", e)
    return {"agencies": agencies, "pagination": pagination}


@router.get("/public/{agency_id}")
def get_public_agency(
    agency_id: int = Path(..., ge=1),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    try:
        agency = service.get_public(agency_id)
    except MarketplaceError as e:
        http_error(e)
    return {"agency": agency}


@router.post("/register", status_code=201)
def register_agency(
    request: AgencyRegisterRequest,
    ctx: AuthContext = Depends(require_role(UserRole.agency, UserRole.admin)),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    """
    Create the caller's agency on the chosen plan.

    Raises:
        HTTPException(400): Caller already has an agency
    """
    try:
        agency = service.register(ctx.user_id, request)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("register", e)

    return {
        "message": "Agency registered successfully",
        "agency": agency.model_dump(mode="json"),
    }


@router.get("/profile")
def get_profile(
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    try:
        agency = service.get_profile(ctx.user_id)
    except MarketplaceError as e:
        http_error(e)
    return {"agency": agency}


@router.put("/profile")
def update_profile(
    update: AgencyProfileUpdate,
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    """Update owner-editable profile fields; anything else in the body is ignored."""
    try:
        agency = service.update_profile(ctx.user_id, update)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("update profile", e)

    return {
        "message": "Agency updated successfully",
        "agency": agency.model_dump(mode="json"),
    }


@router.get("/dashboard/stats")
def dashboard_stats(
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    service: AgencyService = Depends(get_agency_service),
) -> Dict[str, Any]:
    try:
        stats = service.dashboard_stats(ctx.user_id)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("dashboard stats", e)
    return {"stats": stats}
