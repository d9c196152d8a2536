"""
Quota ledger for agencies: storage bytes used and listing count.

The ledger fields on Agency (storage_used_bytes, listing_ids) are owned by
the listing lifecycle manager; it is the only caller of the mutators below.
Checks here are plain checks, not locks: callers hold the per-tenant scope
from listings.TenantLocks around check + mutate.
"""

from __future__ import annotations

from typing import Any, Dict

try:
    from realtyhub.config import IS_DEV
    from realtyhub.errors import LedgerIntegrityError, ListingLimitReached, StorageLimitExceeded
    from realtyhub.models import Agency
except ModuleNotFoundError:
    from config import IS_DEV
    from errors import LedgerIntegrityError, ListingLimitReached, StorageLimitExceeded
    from models import Agency


# ---- Checks -------------------------------------------------------------


def has_storage_headroom(agency: Agency, additional_bytes: int) -> bool:
    limit = agency.subscription.storage_limit_bytes
    return agency.storage_used_bytes + max(0, int(additional_bytes)) <= limit


def can_add_listing(agency: Agency) -> bool:
    # Strict: the limit bounds the count *after* the add.
    return agency.listing_count < agency.subscription.listing_limit


def require_listing_slot(agency: Agency) -> None:
    """Raise ListingLimitReached if the agency cannot own one more listing."""
    if not can_add_listing(agency):
        raise ListingLimitReached(agency.subscription.listing_limit)


def require_storage_headroom(agency: Agency, additional_bytes: int, hint: str = "delete some properties") -> None:
    """Raise StorageLimitExceeded if additional_bytes would not fit."""
    if not has_storage_headroom(agency, additional_bytes):
        raise StorageLimitExceeded(
            requested_bytes=int(additional_bytes),
            used_bytes=agency.storage_used_bytes,
            limit_bytes=agency.subscription.storage_limit_bytes,
            hint=hint,
        )


# ---- Mutators -----------------------------------------------------------


def reserve(agency: Agency, nbytes: int) -> None:
    agency.storage_used_bytes += max(0, int(nbytes))
    if IS_DEV:
        print(f"[LEDGER] reserve agency_id={agency.id} bytes={nbytes} used={agency.storage_used_bytes}")


def release(agency: Agency, nbytes: int) -> None:
    """Give bytes back; floors at zero to absorb double release or size drift."""
    agency.storage_used_bytes = max(0, agency.storage_used_bytes - max(0, int(nbytes)))
    if IS_DEV:
        print(f"[LEDGER] release agency_id={agency.id} bytes={nbytes} used={agency.storage_used_bytes}")


def record_listing(agency: Agency, listing_id: int) -> None:
    """
    Append a newly created listing id.

    The id must be new: a duplicate means listing_ids holds a stale entry and
    the new listing would go uncounted, so it raises LedgerIntegrityError.
    """
    if listing_id in agency.listing_ids:
        print(f"[LEDGER] WARNING: listing_id={listing_id} already recorded on agency_id={agency.id}")
        raise LedgerIntegrityError(
            f"Listing {listing_id} is already recorded for this agency",
            agency_id=agency.id,
        )
    agency.listing_ids.append(listing_id)


def forget_listing(agency: Agency, listing_id: int) -> None:
    agency.listing_ids = [lid for lid in agency.listing_ids if lid != listing_id]


# ---- Usage stats --------------------------------------------------------


def _percent(used: int, limit: int) -> float:
    if limit <= 0:
        return 0.0
    return round(used / limit * 100, 2)


def usage_summary(agency: Agency) -> Dict[str, Any]:
    """Current usage against the snapshotted limits."""
    sub = agency.subscription
    return {
        "storage_used": agency.storage_used_bytes,
        "storage_limit": sub.storage_limit_bytes,
        "storage_used_percent": _percent(agency.storage_used_bytes, sub.storage_limit_bytes),
        "listing_count": agency.listing_count,
        "listing_limit": sub.listing_limit,
        "listing_used_percent": _percent(agency.listing_count, sub.listing_limit),
    }
