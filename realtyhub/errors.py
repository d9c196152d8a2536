"""
realtyhub/errors.py

Error taxonomy for the listing/subscription accounting core.

Every rejection raised by the core is a MarketplaceError carrying the HTTP
status the routes should answer with. Messages are user-facing: they name the
specific limit that was breached so the caller can upgrade or free space.
"""

from __future__ import annotations

from typing import Optional


class MarketplaceError(Exception):
    """Base class for all deterministic core rejections."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SubscriptionExpired(MarketplaceError):
    status_code = 403

    def __init__(self, message: str = "Subscription expired. Please renew to add properties."):
        super().__init__(message)


class ListingLimitReached(MarketplaceError):
    """Raised when an agency already owns as many listings as its plan allows."""
    status_code = 403

    def __init__(self, limit: int):
        super().__init__(
            f"Listing limit reached. Your plan allows {limit} properties. Please upgrade."
        )
        self.limit = limit


class StorageLimitExceeded(MarketplaceError):
    """Raised when an upload batch would push storage usage over the plan limit."""
    status_code = 403

    def __init__(self, requested_bytes: int, used_bytes: int, limit_bytes: int, hint: str = "delete some properties"):
        super().__init__(
            f"Storage limit exceeded: {used_bytes} + {requested_bytes} bytes > {limit_bytes} bytes. "
            f"Please upgrade your plan or {hint}."
        )
        self.requested_bytes = requested_bytes
        self.used_bytes = used_bytes
        self.limit_bytes = limit_bytes


class Forbidden(MarketplaceError):
    status_code = 403


class NotFound(MarketplaceError):
    status_code = 404


class MalformedInput(MarketplaceError):
    """Raised when a serialized sub-object (location, area, ...) cannot be decoded."""
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class PartialCleanupFailure(MarketplaceError):
    """
    A physical file could not be deleted during best-effort cleanup.

    Never raised across the core boundary: it is built, logged and dropped.
    """
    status_code = 500

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not delete {path}: {reason}")
        self.path = path
        self.reason = reason


class LedgerIntegrityError(MarketplaceError):
    """
    The ledger disagrees with the store, e.g. a new listing id is already
    recorded on the agency. Raised inside the store transaction so the write
    rolls back.
    """
    status_code = 500

    def __init__(self, message: str, agency_id: Optional[int] = None):
        super().__init__(message)
        self.agency_id = agency_id
