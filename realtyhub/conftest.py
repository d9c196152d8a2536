"""
Shared pytest fixtures: in-memory store, temporary upload directory, a fixed
clock, and factories for agencies, uploaded files and listings.
"""

import itertools
import os
from datetime import datetime, timedelta, timezone

import pytest

from realtyhub.listings import ListingManager
from realtyhub.models import Agency, Listing, Location, PlanTier, SubscriptionState
from realtyhub.plans import DEFAULT_CATALOG
from realtyhub.schemas import ListingDraft
from realtyhub.store import SQLiteStore
from realtyhub.uploads import UploadedFile


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

_file_counter = itertools.count(1)


@pytest.fixture
def store():
    s = SQLiteStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return str(path)


@pytest.fixture
def manager(store, upload_dir):
    return ListingManager(store, upload_dir=upload_dir, clock=lambda: NOW)


@pytest.fixture
def make_agency(store):
    """Insert an agency with a subscription valid for 30 days (unless told otherwise)."""
    def _make(
        owner_id=1,
        plan_tier=PlanTier.basic,
        end_date=NOW + timedelta(days=30),
        storage_used_bytes=0,
        listing_ids=None,
        storage_limit_bytes=None,
        listing_limit=None,
        is_verified=False,
        agency_name=None,
        city=None,
    ):
        plan = DEFAULT_CATALOG.get(plan_tier)
        state = SubscriptionState(
            plan_tier=plan_tier,
            start_date=NOW - timedelta(days=1),
            end_date=end_date,
            storage_limit_bytes=plan.storage_limit_bytes if storage_limit_bytes is None else storage_limit_bytes,
            listing_limit=plan.listing_limit if listing_limit is None else listing_limit,
        )
        agency = Agency(
            owner_id=owner_id,
            agency_name=agency_name or f"Agency {owner_id}",
            email=f"agency{owner_id}@example.com",
            phone="555-0100",
            address={"city": city} if city else None,
            subscription=state,
            storage_used_bytes=storage_used_bytes,
            listing_ids=list(listing_ids or []),
            is_verified=is_verified,
            created_at=NOW,
        )
        return store.insert_agency(agency)

    return _make


@pytest.fixture
def make_upload(upload_dir):
    """Write a file of exactly `size` bytes into the upload dir."""
    def _make(size, ext=".jpg"):
        name = f"property-test-{next(_file_counter)}{ext}"
        path = os.path.join(upload_dir, name)
        with open(path, "wb") as f:
            f.write(b"\0" * size)
        return UploadedFile(path=path, original_filename=f"photo{ext}", mime_type="image/jpeg")

    return _make


@pytest.fixture
def make_listing(store):
    """Insert a listing row directly (bypasses the ledger)."""
    def _make(agency_id, **overrides):
        fields = {
            "agency_id": agency_id,
            "title": "Sunny apartment",
            "description": "Two balconies",
            "price": 400000,
            "property_type": "apartment",
            "listing_type": "sale",
            "location": Location(address="1 Ocean Dr", city="Miami"),
            "bedrooms": 3,
            "created_at": NOW,
            "updated_at": NOW,
        }
        fields.update(overrides)
        return store.insert_listing(Listing(**fields))

    return _make


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample_draft():
    """ListingDraft factory with JSON-text sub-objects, as a multipart form sends them."""
    def _make(**overrides):
        fields = {
            "title": "Harbor view condo",
            "description": "Corner unit with parking",
            "price": 350000,
            "property_type": "condo",
            "listing_type": "sale",
            "location": '{"address": "12 Pier St", "city": "Boston", "country": "US"}',
            "area": '{"value": 950, "unit": "sqft"}',
            "features": '["parking", "gym"]',
            "bedrooms": 2,
            "bathrooms": 1,
        }
        fields.update(overrides)
        return ListingDraft(**fields)

    return _make
