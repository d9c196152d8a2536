"""
realtyhub/test_ledger.py

Tests for the quota ledger: headroom checks, listing slots, release floor,
listing id bookkeeping and usage summaries.
"""

import pytest

from realtyhub import ledger
from realtyhub.errors import LedgerIntegrityError, ListingLimitReached, StorageLimitExceeded
from realtyhub.models import Agency, SubscriptionState


def agency_with(used=0, limit=1000, listing_ids=(), listing_limit=3):
    return Agency(
        id=7,
        owner_id=1,
        agency_name="Ledger Realty",
        email="ledger@example.com",
        phone="555-0101",
        subscription=SubscriptionState(storage_limit_bytes=limit, listing_limit=listing_limit),
        storage_used_bytes=used,
        listing_ids=list(listing_ids),
    )


class TestStorageHeadroom:
    def test_exactly_at_limit_fits(self):
        assert ledger.has_storage_headroom(agency_with(used=600, limit=1000), 400)

    def test_one_byte_over_does_not_fit(self):
        assert not ledger.has_storage_headroom(agency_with(used=600, limit=1000), 401)

    def test_zero_bytes_always_fit(self):
        assert ledger.has_storage_headroom(agency_with(used=1000, limit=1000), 0)
        ledger.require_storage_headroom(agency_with(used=1000, limit=1000), 0)

    def test_require_reports_numbers(self):
        with pytest.raises(StorageLimitExceeded) as exc:
            ledger.require_storage_headroom(agency_with(used=900, limit=1000), 200)
        err = exc.value
        assert (err.requested_bytes, err.used_bytes, err.limit_bytes) == (200, 900, 1000)
        assert err.status_code == 403


class TestListingSlots:
    def test_strictly_below_limit(self):
        assert ledger.can_add_listing(agency_with(listing_ids=[1, 2], listing_limit=3))
        assert not ledger.can_add_listing(agency_with(listing_ids=[1, 2, 3], listing_limit=3))

    def test_limit_error_carries_limit(self):
        with pytest.raises(ListingLimitReached) as exc:
            ledger.require_listing_slot(agency_with(listing_ids=[1, 2, 3], listing_limit=3))
        assert exc.value.limit == 3
        assert "3 properties" in exc.value.message


class TestMutators:
    def test_reserve_then_release(self):
        agency = agency_with(used=100)
        ledger.reserve(agency, 250)
        assert agency.storage_used_bytes == 350
        ledger.release(agency, 250)
        assert agency.storage_used_bytes == 100

    def test_release_floors_at_zero(self):
        agency = agency_with(used=100)
        ledger.release(agency, 5000)
        assert agency.storage_used_bytes == 0

    def test_record_listing_appends_in_order(self):
        agency = agency_with()
        ledger.record_listing(agency, 5)
        ledger.record_listing(agency, 6)
        assert agency.listing_ids == [5, 6]
        assert agency.listing_count == 2

    def test_record_listing_rejects_duplicate_id(self):
        agency = agency_with(listing_ids=[5])
        with pytest.raises(LedgerIntegrityError) as exc:
            ledger.record_listing(agency, 5)
        assert exc.value.agency_id == 7
        assert exc.value.status_code == 500
        assert agency.listing_ids == [5]

    def test_forget_listing(self):
        agency = agency_with(listing_ids=[4, 5, 6])
        ledger.forget_listing(agency, 5)
        assert agency.listing_ids == [4, 6]


def test_usage_summary():
    summary = ledger.usage_summary(agency_with(used=250, limit=1000, listing_ids=[1], listing_limit=4))
    assert summary == {
        "storage_used": 250,
        "storage_limit": 1000,
        "storage_used_percent": 25.0,
        "listing_count": 1,
        "listing_limit": 4,
        "listing_used_percent": 25.0,
    }
