"""
realtyhub/auth_context.py

Shared authentication context primitives for FastAPI dependency injection.
This module breaks the circular import between main.py and the route modules.

Contains:
- AuthContext: Immutable identity derived from the bearer token
- require_auth_context: FastAPI dependency for auth enforcement
- get_store: Process-wide SQLiteStore
- verify_token: JWT token verification

Tokens are issued by the auth service; this backend only verifies them.
This module MUST NOT import realtyhub.main to avoid circular dependencies.
"""

from __future__ import annotations

import threading
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict

try:
    from realtyhub.config import SECRET_KEY, ALGORITHM, DATABASE_PATH, IS_DEV
    from realtyhub.models import UserRole
    from realtyhub.store import SQLiteStore, Store
except ModuleNotFoundError:
    from config import SECRET_KEY, ALGORITHM, DATABASE_PATH, IS_DEV
    from models import UserRole
    from store import SQLiteStore, Store

# Security scheme for HTTPBearer
security = HTTPBearer()

_store: Optional[SQLiteStore] = None
_store_lock = threading.Lock()


# ---------------------------------------------------------
# Store Helper
# ---------------------------------------------------------
def get_store() -> Store:
    """
    Return the process-wide store, opening it (and bootstrapping the schema)
    on first use. Tests override this dependency with an in-memory store.
    """
    global _store
    with _store_lock:
        if _store is None:
            _store = SQLiteStore(DATABASE_PATH)
        return _store


# ---------------------------------------------------------
# JWT Token Verification
# ---------------------------------------------------------
def verify_token(token: str) -> dict:
    """
    Verify JWT access token and return decoded payload.

    Raises:
        HTTPException(401): If token is expired or invalid
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


# ---------------------------------------------------------
# AuthContext
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Identity of the caller, derived from the verified token only.
    Never trust user ids or agency ids from request bodies or query params.

    Fields:
        user_id: User ID from the `sub` claim
        role: user / agency / broker / admin from the `role` claim
    """
    model_config = ConfigDict(frozen=True)

    user_id: int
    role: UserRole = UserRole.user


def require_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthContext:
    """
    Auth dependency for protected routes.

    Usage:
        @router.get("/protected")
        def protected_route(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Raises:
        HTTPException(401): If the token is invalid, expired, or has no usable subject
    """
    payload = verify_token(credentials.credentials)
    subject = payload.get("sub")

    if subject is None:
        print("[AUTH] Missing sub in token payload")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        print(f"[AUTH] Non-numeric sub in token payload: {subject!r}")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    try:
        role = UserRole(payload.get("role") or UserRole.user.value)
    except ValueError:
        print(f"[AUTH] Unknown role in token payload: user_id={user_id}")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    ctx = AuthContext(user_id=user_id, role=role)

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}, role={ctx.role.value}")

    return ctx
