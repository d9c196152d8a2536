"""
realtyhub/listings.py

Listing lifecycle: create, update and delete of properties, each of which
touches the listing record and the owning agency's quota ledger together.

Guarantees:
- Every mutation of one agency runs under that agency's lock (TenantLocks),
  and the agency is re-read inside the lock, so check-then-reserve cannot
  race with another request for the same agency
- Listing row and agency ledger are written in one store transaction
- Freshly uploaded files are deleted on every rejection and every rollback
- File deletion failures are logged, never raised
"""

from __future__ import annotations

import math
import os
import threading
import weakref
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

try:
    from realtyhub import ledger
    from realtyhub.config import IS_DEV, UPLOAD_DIR
    from realtyhub.errors import Forbidden, NotFound, SubscriptionExpired
    from realtyhub.models import Agency, Listing, ListingImage, utcnow
    from realtyhub.plans import DEFAULT_CATALOG, PlanCatalog
    from realtyhub.schemas import ListingDraft, ListingPatch, ListingQueryParams, decode_draft, decode_patch
    from realtyhub.store import ListingQuery, Store
    from realtyhub.uploads import UploadedFile, discard_files, discard_uploads, public_url, size_of
except ModuleNotFoundError:
    import ledger
    from config import IS_DEV, UPLOAD_DIR
    from errors import Forbidden, NotFound, SubscriptionExpired
    from models import Agency, Listing, ListingImage, utcnow
    from plans import DEFAULT_CATALOG, PlanCatalog
    from schemas import ListingDraft, ListingPatch, ListingQueryParams, decode_draft, decode_patch
    from store import ListingQuery, Store
    from uploads import UploadedFile, discard_files, discard_uploads, public_url, size_of


# Browse accepts the camelCase sort keys older clients send
SORT_ALIASES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


class TenantMutex:
    """A lock that can be weakly referenced from the TenantLocks table."""

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self) -> "TenantMutex":
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()


class TenantLocks:
    """
    One mutex per agency id, created on first use.

    Entries are weak: a mutex lives as long as some request holds or waits on
    it, so the table stays bounded by the agencies currently being written.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[int, TenantMutex]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, agency_id: int) -> TenantMutex:
        with self._guard:
            lock = self._locks.get(agency_id)
            if lock is None:
                lock = TenantMutex()
                self._locks[agency_id] = lock
            return lock

    @contextmanager
    def hold(self, agency_id: int) -> Iterator[None]:
        with self.lock_for(agency_id):
            yield


def listing_to_dict(listing: Listing) -> Dict[str, Any]:
    """JSON-ready listing, with the derived total_image_size."""
    data = listing.model_dump(mode="json")
    data["total_image_size"] = listing.total_image_size
    return data


class ListingManager:
    """
    Owns every mutation of Listing records and of the ledger fields on
    Agency (storage_used_bytes, listing_ids).
    """

    def __init__(
        self,
        store: Store,
        upload_dir: str = UPLOAD_DIR,
        catalog: PlanCatalog = DEFAULT_CATALOG,
        clock: Callable[[], datetime] = utcnow,
        locks: Optional[TenantLocks] = None,
    ):
        self.store = store
        self.upload_dir = upload_dir
        self.catalog = catalog
        self.clock = clock
        self.locks = locks or TenantLocks()

    # ---- lookups --------------------------------------------------------

    def _agency_for(self, user_id: int) -> Agency:
        agency = self.store.find_agency_by_owner(user_id)
        if agency is None:
            raise NotFound("Agency not found. Please register as an agency first.")
        return agency

    def _listing(self, listing_id: int) -> Listing:
        listing = self.store.get_listing(listing_id)
        if listing is None:
            raise NotFound("Property not found")
        return listing

    def _owned_listing(self, user_id: int, listing_id: int, action: str) -> Tuple[Listing, Agency]:
        listing = self._listing(listing_id)
        agency = self.store.find_agency_by_owner(user_id)
        if agency is None or listing.agency_id != agency.id:
            raise Forbidden(f"You can only {action} your own properties")
        return listing, agency

    def _image_records(self, uploads: Sequence[UploadedFile], sizes: Sequence[int]) -> List[ListingImage]:
        return [
            ListingImage(url=public_url(u.storage_key), size_bytes=size, storage_key=u.storage_key)
            for u, size in zip(uploads, sizes)
        ]

    # ---- mutations ------------------------------------------------------

    def create(self, user_id: int, draft: ListingDraft, uploads: Optional[Sequence[UploadedFile]] = None) -> Listing:
        """
        Create a listing for the user's agency.

        Raises NotFound, SubscriptionExpired, ListingLimitReached,
        StorageLimitExceeded, MalformedInput or LedgerIntegrityError; in
        every failure case the uploaded files are gone and the ledger is
        unchanged.
        """
        uploads = list(uploads or [])
        try:
            agency_id = self._agency_for(user_id).id
            with self.locks.hold(agency_id):
                agency = self._agency_for(user_id)

                if not agency.subscription.is_valid(self.clock()):
                    raise SubscriptionExpired()
                ledger.require_listing_slot(agency)

                sizes = [size_of(u) for u in uploads]
                nbytes = sum(sizes)
                ledger.require_storage_headroom(agency, nbytes, hint="delete some properties")

                fields = decode_draft(draft)
                now = self.clock()
                listing = Listing(
                    agency_id=agency.id,
                    broker_id=user_id,
                    images=self._image_records(uploads, sizes),
                    created_at=now,
                    updated_at=now,
                    **fields,
                )

                with self.store.transaction():
                    self.store.insert_listing(listing)
                    ledger.record_listing(agency, listing.id)
                    ledger.reserve(agency, nbytes)
                    self.store.update_agency(agency)
        except BaseException:
            discard_uploads(uploads)
            raise

        if IS_DEV:
            print(f"[LISTINGS] Created listing_id={listing.id} agency_id={agency.id} "
                  f"images={len(uploads)} bytes={nbytes}")
        return listing

    def update(
        self,
        user_id: int,
        listing_id: int,
        patch: ListingPatch,
        uploads: Optional[Sequence[UploadedFile]] = None,
    ) -> Listing:
        """
        Patch whitelisted fields and append any new images.

        Existing images are never removed here. Only the new bytes are
        checked against the storage limit.
        """
        uploads = list(uploads or [])
        try:
            _, owner = self._owned_listing(user_id, listing_id, "update")
            with self.locks.hold(owner.id):
                listing, agency = self._owned_listing(user_id, listing_id, "update")

                for name, value in decode_patch(patch).items():
                    setattr(listing, name, value)

                nbytes = 0
                if uploads:
                    sizes = [size_of(u) for u in uploads]
                    nbytes = sum(sizes)
                    ledger.require_storage_headroom(agency, nbytes, hint="delete some images")
                    listing.images = listing.images + self._image_records(uploads, sizes)
                    ledger.reserve(agency, nbytes)

                listing.updated_at = self.clock()
                with self.store.transaction():
                    self.store.update_listing(listing)
                    self.store.update_agency(agency)
        except BaseException:
            discard_uploads(uploads)
            raise

        if IS_DEV:
            print(f"[LISTINGS] Updated listing_id={listing.id} new_images={len(uploads)} bytes={nbytes}")
        return listing

    def delete(self, user_id: int, listing_id: int) -> int:
        """
        Delete a listing and its image files. Returns the bytes released.

        File deletion is best-effort: failures are logged as
        PartialCleanupFailure and the delete still goes through.
        """
        _, owner = self._owned_listing(user_id, listing_id, "delete")
        with self.locks.hold(owner.id):
            listing, agency = self._owned_listing(user_id, listing_id, "delete")
            nbytes = listing.total_image_size

            failures = discard_files(
                os.path.join(self.upload_dir, img.storage_key) for img in listing.images
            )

            with self.store.transaction():
                self.store.delete_listing(listing.id)
                ledger.forget_listing(agency, listing.id)
                ledger.release(agency, nbytes)
                self.store.update_agency(agency)

        if IS_DEV:
            print(f"[LISTINGS] Deleted listing_id={listing_id} released={nbytes} "
                  f"cleanup_failures={len(failures)}")
        return nbytes

    # ---- reads ----------------------------------------------------------

    def get_listing(self, listing_id: int, count_view: bool = True) -> Listing:
        listing = self._listing(listing_id)
        if count_view:
            self.store.increment_views(listing_id)
            listing.views += 1
        return listing

    def agency_listings(self, user_id: int) -> Tuple[List[Listing], Dict[str, Any]]:
        """Every listing of the user's agency (active or not), newest first, plus usage."""
        agency = self._agency_for(user_id)
        listings = self.store.find_listings(ListingQuery(is_active=None, agency_id=agency.id))
        plan = self.catalog.get(agency.subscription.plan_tier)
        summary = {
            "id": agency.id,
            "name": agency.agency_name,
            "plan": plan.display_name if plan else agency.subscription.plan_tier.value,
            "subscription_valid": agency.subscription.is_valid(self.clock()),
        }
        summary.update(ledger.usage_summary(agency))
        return listings, summary

    def browse(
        self,
        filters: Optional[ListingQueryParams] = None,
        page: int = 1,
        limit: int = 12,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Listing], Dict[str, int]]:
        """Public paginated search over active listings."""
        filters = filters or ListingQueryParams()
        query = ListingQuery(is_active=True, **filters.model_dump())
        page = max(1, int(page))
        limit = max(1, int(limit))

        total = self.store.count_listings(query)
        listings = self.store.find_listings(
            query,
            limit=limit,
            offset=(page - 1) * limit,
            sort_by=SORT_ALIASES.get(sort_by, sort_by),
            sort_order=sort_order,
        )
        pagination = {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        }
        return listings, pagination
