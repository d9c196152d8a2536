"""
realtyhub/test_routes.py

Integration tests for the HTTP surface.

Tests verify:
1. Agency registration snapshots plan limits
2. Multipart listing create/update/delete moves storage usage through the API
3. Core rejections surface with the right status codes
4. Role checks on agency endpoints
5. Public browse, plans and assistant endpoints
"""

import os

import jwt
import pytest
from fastapi.testclient import TestClient

from realtyhub.auth_context import get_store
from realtyhub.config import ALGORITHM, SECRET_KEY
from realtyhub.dependencies import get_upload_dir
from realtyhub.main import app
from realtyhub.store import SQLiteStore


# ============================================================================
# Fixtures
# ============================================================================

def token_for(user_id, role="agency"):
    return jwt.encode({"sub": str(user_id), "role": role}, SECRET_KEY, algorithm=ALGORITHM)


def auth(user_id, role="agency"):
    return {"Authorization": f"Bearer {token_for(user_id, role)}"}


@pytest.fixture
def api_upload_dir(tmp_path):
    path = tmp_path / "api-uploads"
    path.mkdir()
    return str(path)


@pytest.fixture
def client(api_upload_dir):
    store = SQLiteStore(":memory:")
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_upload_dir] = lambda: api_upload_dir
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    store.close()


@pytest.fixture
def agency_owner(client):
    """Register an agency for user 1 on the basic plan; return its auth headers."""
    resp = client.post(
        "/api/agencies/register",
        json={
            "agency_name": "Harbor Homes",
            "email": "hello@harborhomes.example",
            "phone": "555-0123",
            "address": {"city": "Boston"},
        },
        headers=auth(1),
    )
    assert resp.status_code == 201
    return auth(1)


def listing_form(**overrides):
    form = {
        "title": "Harbor view condo",
        "description": "Corner unit",
        "price": "350000",
        "property_type": "condo",
        "listing_type": "sale",
        "location": '{"address": "12 Pier St", "city": "Boston"}',
        "bedrooms": "2",
        "features": '["parking"]',
    }
    form.update(overrides)
    return form


def image(name="photo.jpg", size=1000, content_type="image/jpeg"):
    return ("images", (name, b"\xff" * size, content_type))


# ============================================================================
# Health / plans
# ============================================================================

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_plans_sorted_by_price(client):
    resp = client.get("/api/subscriptions/plans")
    assert resp.status_code == 200
    tiers = [p["plan_tier"] for p in resp.json()["plans"]]
    assert tiers == ["basic", "pro", "enterprise"]


def test_unknown_plan_is_404(client):
    assert client.get("/api/subscriptions/plans/gold").status_code == 404
    assert client.get("/api/subscriptions/plans/pro").json()["plan"]["listing_limit"] == 50


# ============================================================================
# Agencies
# ============================================================================

def test_register_snapshots_limits(client, agency_owner):
    resp = client.get("/api/agencies/profile", headers=agency_owner)
    assert resp.status_code == 200
    agency = resp.json()["agency"]
    assert agency["agency_name"] == "Harbor Homes"
    assert agency["subscription"]["plan_tier"] == "basic"
    assert agency["subscription"]["storage_limit_bytes"] == 1073741824
    assert agency["subscription"]["listing_limit"] == 10
    assert agency["subscription_valid"] is True


def test_register_twice_is_rejected(client, agency_owner):
    resp = client.post(
        "/api/agencies/register",
        json={"agency_name": "Again", "email": "a@b.example", "phone": "1"},
        headers=agency_owner,
    )
    assert resp.status_code == 400


def test_plain_user_cannot_register_agency(client):
    resp = client.post(
        "/api/agencies/register",
        json={"agency_name": "Nope", "email": "n@example.com", "phone": "1"},
        headers=auth(5, role="user"),
    )
    assert resp.status_code == 403


def test_profile_update_ignores_system_fields(client, agency_owner):
    resp = client.put(
        "/api/agencies/profile",
        json={"description": "Waterfront specialists", "storage_used_bytes": 0, "is_verified": True},
        headers=agency_owner,
    )
    assert resp.status_code == 200
    agency = resp.json()["agency"]
    assert agency["description"] == "Waterfront specialists"
    assert agency["is_verified"] is False


def test_public_agency_hides_subscription(client, agency_owner):
    agency_id = client.get("/api/agencies/profile", headers=agency_owner).json()["agency"]["id"]
    resp = client.get(f"/api/agencies/public/{agency_id}")
    assert resp.status_code == 200
    public = resp.json()["agency"]
    assert public["agency_name"] == "Harbor Homes"
    assert "subscription" not in public
    assert "storage_used_bytes" not in public


def test_unverified_agencies_are_not_listed(client, agency_owner):
    resp = client.get("/api/agencies/all")
    assert resp.status_code == 200
    assert resp.json()["agencies"] == []
    assert resp.json()["pagination"]["total"] == 0


# ============================================================================
# Listings
# ============================================================================

def test_create_update_delete_moves_storage(client, agency_owner, api_upload_dir):
    resp = client.post(
        "/api/properties",
        data=listing_form(),
        files=[image(size=1000), image("b.png", 2500, "image/png")],
        headers=agency_owner,
    )
    assert resp.status_code == 201, resp.text
    listing = resp.json()["property"]
    assert listing["total_image_size"] == 3500
    assert listing["images"][0]["url"].startswith("/uploads/property-")
    assert len(os.listdir(api_upload_dir)) == 2

    status = client.get("/api/subscriptions/status", headers=agency_owner).json()["subscription"]
    assert status["storage_used"] == 3500
    assert status["listing_count"] == 1

    resp = client.put(
        f"/api/properties/{listing['id']}",
        data={"title": "Harbor view condo, renovated"},
        files=[image("c.webp", 500, "image/webp")],
        headers=agency_owner,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["property"]["title"] == "Harbor view condo, renovated"
    assert len(resp.json()["property"]["images"]) == 3

    stats = client.get("/api/agencies/dashboard/stats", headers=agency_owner).json()["stats"]
    assert stats["storage_used"] == 4000
    assert stats["total_properties"] == 1

    resp = client.delete(f"/api/properties/{listing['id']}", headers=agency_owner)
    assert resp.status_code == 200
    assert resp.json()["released_bytes"] == 4000
    assert os.listdir(api_upload_dir) == []

    status = client.get("/api/subscriptions/status", headers=agency_owner).json()["subscription"]
    assert status["storage_used"] == 0
    assert status["listing_count"] == 0


def test_rejected_file_type_leaves_no_files(client, agency_owner, api_upload_dir):
    resp = client.post(
        "/api/properties",
        data=listing_form(),
        files=[image(size=100), image("notes.txt", 10, "text/plain")],
        headers=agency_owner,
    )
    assert resp.status_code == 400
    assert "Invalid file format" in resp.json()["detail"]
    assert os.listdir(api_upload_dir) == []


def test_malformed_location_is_400(client, agency_owner, api_upload_dir):
    resp = client.post(
        "/api/properties",
        data=listing_form(location="{oops"),
        files=[image(size=100)],
        headers=agency_owner,
    )
    assert resp.status_code == 400
    assert os.listdir(api_upload_dir) == []


def test_update_rejects_negative_price_and_blank_title(client, agency_owner, api_upload_dir):
    listing_id = client.post("/api/properties", data=listing_form(), headers=agency_owner).json()["property"]["id"]

    for bad in ({"price": "-1"}, {"title": "   "}):
        resp = client.put(
            f"/api/properties/{listing_id}",
            data=bad,
            files=[image(size=100)],
            headers=agency_owner,
        )
        assert resp.status_code == 400
    assert os.listdir(api_upload_dir) == []

    listing = client.get(f"/api/properties/{listing_id}").json()["property"]
    assert listing["price"] == 350000
    assert listing["title"] == "Harbor view condo"


def test_cancelled_subscription_blocks_create(client, agency_owner, api_upload_dir):
    assert client.post("/api/subscriptions/cancel", headers=agency_owner).status_code == 200

    resp = client.post(
        "/api/properties",
        data=listing_form(),
        files=[image(size=100)],
        headers=agency_owner,
    )
    assert resp.status_code == 403
    assert "Subscription expired" in resp.json()["detail"]
    assert os.listdir(api_upload_dir) == []


def test_resubscribe_restores_access_with_new_limits(client, agency_owner):
    client.post("/api/subscriptions/cancel", headers=agency_owner)
    resp = client.post(
        "/api/subscriptions/subscribe",
        json={"plan_tier": "pro", "billing_cycle": "yearly", "payment_method": "card"},
        headers=agency_owner,
    )
    assert resp.status_code == 200
    receipt = resp.json()["subscription"]
    assert receipt["plan"] == "pro"
    assert receipt["amount"] == 790.0

    status = client.get("/api/subscriptions/status", headers=agency_owner).json()["subscription"]
    assert status["is_valid"] is True
    assert status["listing_limit"] == 50
    assert status["plan_details"]["display_name"] == "Professional Plan"

    resp = client.post("/api/properties", data=listing_form(), headers=agency_owner)
    assert resp.status_code == 201


def test_subscribe_unknown_plan_is_404(client, agency_owner):
    resp = client.post("/api/subscriptions/subscribe", json={"plan_tier": "gold"}, headers=agency_owner)
    assert resp.status_code == 404


def test_create_requires_agency_role(client):
    resp = client.post("/api/properties", data=listing_form(), headers=auth(9, role="user"))
    assert resp.status_code == 403


def test_create_requires_token(client):
    resp = client.post("/api/properties", data=listing_form())
    assert resp.status_code in (401, 403)


def test_invalid_token_is_401(client):
    resp = client.get("/api/agencies/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_broker_without_agency_gets_404(client):
    resp = client.post("/api/properties", data=listing_form(), headers=auth(3, role="broker"))
    assert resp.status_code == 404


def test_cannot_delete_another_agencys_listing(client, agency_owner):
    listing_id = client.post("/api/properties", data=listing_form(), headers=agency_owner).json()["property"]["id"]
    client.post(
        "/api/agencies/register",
        json={"agency_name": "Rival", "email": "r@example.com", "phone": "2"},
        headers=auth(2),
    )
    resp = client.delete(f"/api/properties/{listing_id}", headers=auth(2))
    assert resp.status_code == 403


def test_browse_and_detail(client, agency_owner):
    client.post("/api/properties", data=listing_form(), headers=agency_owner)
    client.post(
        "/api/properties",
        data=listing_form(title="Miami loft", location='{"address": "9 Bay Rd", "city": "Miami"}'),
        headers=agency_owner,
    )

    resp = client.get("/api/properties", params={"city": "mia"})
    assert resp.status_code == 200
    body = resp.json()
    assert [p["title"] for p in body["properties"]] == ["Miami loft"]
    assert body["pagination"]["total"] == 1

    listing_id = body["properties"][0]["id"]
    assert client.get(f"/api/properties/{listing_id}").json()["property"]["views"] == 1
    assert client.get("/api/properties/9999").status_code == 404

    mine = client.get("/api/properties/agency/my-properties", headers=agency_owner).json()
    assert len(mine["properties"]) == 2
    assert mine["agency"]["listing_count"] == 2


# ============================================================================
# Assistant
# ============================================================================

def test_chatbot_greeting(client):
    resp = client.post("/api/ai/chatbot", json={"message": "hi"})
    assert resp.status_code == 200
    assert resp.json()["properties"] == []
    assert resp.json()["preferences"] == {}


def test_chatbot_finds_listing(client, agency_owner):
    client.post(
        "/api/properties",
        data=listing_form(title="Back Bay condo", bedrooms="2"),
        headers=agency_owner,
    )
    resp = client.post("/api/ai/chatbot", json={"message": "2 bed condo in Boston under 400k"})
    assert resp.status_code == 200
    body = resp.json()
    assert [p["title"] for p in body["properties"]] == ["Back Bay condo"]
    assert body["properties"][0]["agency_name"] == "Harbor Homes"


def test_voicebot_returns_transcription(client):
    resp = client.post("/api/ai/voicebot", json={"audio_data": "UklGRg=="})
    assert resp.status_code == 200
    assert resp.json()["transcription"].startswith("I'm looking for a 3 bedroom apartment")
