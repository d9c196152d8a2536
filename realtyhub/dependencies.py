"""
realtyhub/dependencies.py

Reusable FastAPI dependencies: role enforcement, service wiring, and the
translation of core errors into HTTP errors.
"""

from __future__ import annotations

from typing import Callable, NoReturn

from fastapi import Depends, HTTPException

# Import auth context from dedicated module (breaks circular import)
try:
    from realtyhub.auth_context import require_auth_context, AuthContext, get_store
    from realtyhub.agencies import AgencyService
    from realtyhub.config import IS_DEV, UPLOAD_DIR
    from realtyhub.errors import MarketplaceError
    from realtyhub.listings import ListingManager, TenantLocks
    from realtyhub.models import UserRole
    from realtyhub.store import Store
except ModuleNotFoundError:
    from auth_context import require_auth_context, AuthContext, get_store
    from agencies import AgencyService
    from config import IS_DEV, UPLOAD_DIR
    from errors import MarketplaceError
    from listings import ListingManager, TenantLocks
    from models import UserRole
    from store import Store


# One lock table for the process, shared by every service instance
TENANT_LOCKS = TenantLocks()

AGENCY_ROLES = (UserRole.agency, UserRole.broker, UserRole.admin)


def get_upload_dir() -> str:
    return UPLOAD_DIR


def get_listing_manager(
    store: Store = Depends(get_store),
    upload_dir: str = Depends(get_upload_dir),
) -> ListingManager:
    return ListingManager(store, upload_dir=upload_dir, locks=TENANT_LOCKS)


def get_agency_service(store: Store = Depends(get_store)) -> AgencyService:
    return AgencyService(store, locks=TENANT_LOCKS)


def require_role(*roles: UserRole) -> Callable:
    """
    FastAPI dependency factory for role authorization.

    Usage in routes:
        @router.post("", dependencies=[Depends(require_role(*AGENCY_ROLES))])
        def create(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Raises:
        HTTPException(403): If the token's role is not one of `roles`
    """
    def _check_role(ctx: AuthContext = Depends(require_auth_context)) -> AuthContext:
        if ctx.role not in roles:
            if IS_DEV:
                print(f"[AUTHZ] Role denied: user_id={ctx.user_id}, role={ctx.role.value}, "
                      f"required={[r.value for r in roles]}")
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. Required role: {', '.join(r.value for r in roles)}",
            )
        return ctx

    return _check_role


def http_error(err: MarketplaceError) -> NoReturn:
    """Re-raise a core rejection as the HTTPException the client sees."""
    if IS_DEV:
        print(f"[API] {type(err).__name__}: {err.message}")
    raise HTTPException(status_code=err.status_code, detail=err.message)
