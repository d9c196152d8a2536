"""
realtyhub/routes_properties.py

Property listing endpoints.

Security guarantees:
- Browse and detail are public
- Create, update, delete and the owner dashboard require an agency/broker/admin token
- The acting agency is resolved from the token's user id, never from the request
- Structured fields arrive as JSON text in multipart forms and are decoded by the core
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, Query, UploadFile
from pydantic import ValidationError

try:
    from realtyhub.auth_context import AuthContext
    from realtyhub.config import IS_DEV
    from realtyhub.dependencies import (
        AGENCY_ROLES,
        get_listing_manager,
        get_upload_dir,
        http_error,
        require_role,
    )
    from realtyhub.errors import MarketplaceError
    from realtyhub.listings import ListingManager, listing_to_dict
    from realtyhub.models import Availability, FurnishedState, ListingType, PropertyType
    from realtyhub.schemas import ListingDraft, ListingPatch, ListingQueryParams
    from realtyhub.uploads import save_uploads
except ModuleNotFoundError:
    from auth_context import AuthContext
    from config import IS_DEV
    from dependencies import (
        AGENCY_ROLES,
        get_listing_manager,
        get_upload_dir,
        http_error,
        require_role,
    )
    from errors import MarketplaceError
    from listings import ListingManager, listing_to_dict
    from models import Availability, FurnishedState, ListingType, PropertyType
    from schemas import ListingDraft, ListingPatch, ListingQueryParams
    from uploads import save_uploads


router = APIRouter(
    prefix="/api/properties",
    tags=["properties"],
)


def _validation_detail(e: ValidationError) -> str:
    first = e.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"{loc}: {first.get('msg', 'invalid value')}" if loc else first.get("msg", "invalid value")


def _db_error(action: str, e: sqlite3.Error) -> HTTPException:
    # Log error but don't expose internal details
    if IS_DEV:
        print(f"[LISTINGS] DB error on {action}: {e}")
    return HTTPException(status_code=500, detail="Database error")


@router.get("")
def browse_properties(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=200),
    property_type: Optional[PropertyType] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    city: Optional[str] = Query(None, max_length=100),
    bedrooms: Optional[int] = Query(None, ge=0),
    furnished: Optional[FurnishedState] = Query(None),
    availability: Optional[Availability] = Query(None),
    listing_type: Optional[ListingType] = Query(None),
    agency_id: Optional[int] = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    manager: ListingManager = Depends(get_listing_manager),
) -> Dict[str, Any]:
    """
    Public paginated listing search.

    Only active listings are returned. City and search are case-insensitive
    substring matches; price bounds are inclusive.
    """
    filters = ListingQueryParams(
        search=search,
        property_type=property_type,
        min_price=min_price,
        max_price=max_price,
        city=city,
        bedrooms=bedrooms,
        furnished=furnished,
        availability=availability,
        listing_type=listing_type,
        agency_id=agency_id,
    )
    try:
        listings, pagination = manager.browse(filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)
    except sqlite3.Error as e:
        raise _db_error("browse", e)

    return {
        "properties": [listing_to_dict(p) for p in listings],
        "pagination": pagination,
    }


@router.get("/agency/my-properties")
def my_properties(
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    manager: ListingManager = Depends(get_listing_manager),
) -> Dict[str, Any]:
    """All listings of the caller's agency plus its storage/listing usage."""
    try:
        listings, summary = manager.agency_listings(ctx.user_id)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("my-properties", e)

    return {
        "properties": [listing_to_dict(p) for p in listings],
        "agency": summary,
    }


@router.get("/{listing_id}")
def get_property(
    listing_id: int = Path(..., ge=1),
    manager: ListingManager = Depends(get_listing_manager),
) -> Dict[str, Any]:
    """Public listing detail. Each call counts one view."""
    try:
        listing = manager.get_listing(listing_id)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("get", e)

    return {"property": listing_to_dict(listing)}


@router.post("", status_code=201)
def create_property(
    title: str = Form(...),
    description: str = Form(...),
    price: float = Form(...),
    property_type: str = Form(...),
    listing_type: str = Form(...),
    location: str = Form(...),
    google_maps_link: Optional[str] = Form(None),
    bedrooms: int = Form(0),
    bathrooms: int = Form(0),
    area: Optional[str] = Form(None),
    furnished: Optional[str] = Form(None),
    availability: Optional[str] = Form(None),
    features: Optional[str] = Form(None),
    contact_details: Optional[str] = Form(None),
    social_links: Optional[str] = Form(None),
    is_featured: bool = Form(False),
    images: Optional[List[UploadFile]] = File(None),
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    manager: ListingManager = Depends(get_listing_manager),
    upload_dir: str = Depends(get_upload_dir),
) -> Dict[str, Any]:
    """
    Create a listing (multipart).

    Raises:
        HTTPException(400): Malformed field or rejected image file
        HTTPException(403): Subscription expired, listing limit or storage limit reached
        HTTPException(404): Caller has no agency
        HTTPException(500): Database error
    """
    try:
        draft = ListingDraft(
            title=title,
            description=description,
            price=price,
            property_type=property_type,
            listing_type=listing_type,
            location=location,
            google_maps_link=google_maps_link,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            area=area,
            furnished=furnished,
            availability=availability,
            features=features,
            contact_details=contact_details,
            social_links=social_links,
            is_featured=is_featured,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_detail(e))

    try:
        saved = save_uploads(images, upload_dir)
        listing = manager.create(ctx.user_id, draft, saved)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("create", e)

    return {
        "message": "Property created successfully",
        "property": listing_to_dict(listing),
    }


@router.put("/{listing_id}")
def update_property(
    listing_id: int = Path(..., ge=1),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    property_type: Optional[str] = Form(None),
    listing_type: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    google_maps_link: Optional[str] = Form(None),
    bedrooms: Optional[int] = Form(None),
    bathrooms: Optional[int] = Form(None),
    area: Optional[str] = Form(None),
    furnished: Optional[str] = Form(None),
    availability: Optional[str] = Form(None),
    features: Optional[str] = Form(None),
    contact_details: Optional[str] = Form(None),
    social_links: Optional[str] = Form(None),
    is_active: Optional[bool] = Form(None),
    is_featured: Optional[bool] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    manager: ListingManager = Depends(get_listing_manager),
    upload_dir: str = Depends(get_upload_dir),
) -> Dict[str, Any]:
    """
    Patch a listing the caller's agency owns, appending any new images.

    Only the fields actually sent are changed. Images are never removed here.
    """
    sent = {
        "title": title,
        "description": description,
        "price": price,
        "property_type": property_type,
        "listing_type": listing_type,
        "location": location,
        "google_maps_link": google_maps_link,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "area": area,
        "furnished": furnished,
        "availability": availability,
        "features": features,
        "contact_details": contact_details,
        "social_links": social_links,
        "is_active": is_active,
        "is_featured": is_featured,
    }
    try:
        patch = ListingPatch(**{k: v for k, v in sent.items() if v is not None})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_detail(e))

    try:
        saved = save_uploads(images, upload_dir)
        listing = manager.update(ctx.user_id, listing_id, patch, saved)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("update", e)

    return {
        "message": "Property updated successfully",
        "property": listing_to_dict(listing),
    }


@router.delete("/{listing_id}")
def delete_property(
    listing_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_role(*AGENCY_ROLES)),
    manager: ListingManager = Depends(get_listing_manager),
) -> Dict[str, Any]:
    """Delete a listing the caller's agency owns and release its image storage."""
    try:
        released = manager.delete(ctx.user_id, listing_id)
    except MarketplaceError as e:
        http_error(e)
    except sqlite3.Error as e:
        raise _db_error("delete", e)

    return {
        "message": "Property deleted successfully",
        "released_bytes": released,
    }
