"""
realtyhub/schemas.py

Pydantic schemas for listings, agencies, subscriptions and the assistant.

Listing drafts and patches arrive from multipart forms, where structured
sub-objects (location, area, contact_details, social_links, features) are
JSON text. Drafts keep those raw; decode_draft()/decode_patch() turn them into
typed values and raise MalformedInput when they cannot.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

try:
    from realtyhub.errors import MalformedInput
    from realtyhub.models import (
        AgencyAddress,
        AgencySocialLinks,
        Area,
        Availability,
        BillingCycle,
        ContactDetails,
        FurnishedState,
        ListingSocialLinks,
        ListingType,
        Location,
        PlanTier,
        PropertyType,
    )
except ModuleNotFoundError:
    from errors import MalformedInput
    from models import (
        AgencyAddress,
        AgencySocialLinks,
        Area,
        Availability,
        BillingCycle,
        ContactDetails,
        FurnishedState,
        ListingSocialLinks,
        ListingType,
        Location,
        PlanTier,
        PropertyType,
    )


# Sub-objects that may arrive as JSON text, and the model each decodes into
SUB_OBJECT_MODELS: Dict[str, Type[BaseModel]] = {
    "location": Location,
    "area": Area,
    "contact_details": ContactDetails,
    "social_links": ListingSocialLinks,
}

# Fields an owner may change on an existing listing. images, agency_id, id,
# views and the timestamps are system-managed.
PATCHABLE_FIELDS = (
    "title",
    "description",
    "price",
    "property_type",
    "listing_type",
    "location",
    "google_maps_link",
    "bedrooms",
    "bathrooms",
    "area",
    "furnished",
    "availability",
    "features",
    "contact_details",
    "social_links",
    "is_active",
    "is_featured",
)


# ========================================================================
# DECODING
# ========================================================================

def _parse_json(name: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedInput(f"Invalid JSON for '{name}': {e}", field=name)


def decode_sub_object(name: str, raw: Any, model: Type[BaseModel]) -> Optional[BaseModel]:
    """
    Decode one structured sub-object.

    Accepts a model instance, a dict, or JSON text. None and blank strings
    decode to None. Anything else raises MalformedInput naming the field.
    """
    if raw is None:
        return None
    if isinstance(raw, model):
        return raw
    if isinstance(raw, str):
        if not raw.strip():
            return None
        raw = _parse_json(name, raw)
    if not isinstance(raw, dict):
        raise MalformedInput(f"'{name}' must be an object", field=name)
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise MalformedInput(f"Invalid '{name}': {e.errors()[0].get('msg', 'validation error')}", field=name)


def decode_features(raw: Any) -> List[str]:
    """features: JSON array text or a list; None means no features."""
    if raw is None:
        return []
    if isinstance(raw, str):
        if not raw.strip():
            return []
        raw = _parse_json("features", raw)
    if not isinstance(raw, list):
        raise MalformedInput("'features' must be a list", field="features")
    return [str(f) for f in raw]


def decode_enum(name: str, raw: Any, enum_cls: Type[Any]) -> Any:
    try:
        return enum_cls(getattr(raw, "value", raw))
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise MalformedInput(f"Invalid {name} '{raw}'. Allowed: {allowed}", field=name)


_ENUM_FIELDS: Dict[str, Type[Any]] = {
    "property_type": PropertyType,
    "listing_type": ListingType,
    "furnished": FurnishedState,
    "availability": Availability,
}


def _decode_field(name: str, raw: Any) -> Any:
    if name in SUB_OBJECT_MODELS:
        return decode_sub_object(name, raw, SUB_OBJECT_MODELS[name])
    if name == "features":
        return decode_features(raw)
    if name in _ENUM_FIELDS:
        return decode_enum(name, raw, _ENUM_FIELDS[name])
    return raw


# ========================================================================
# LISTING INPUT
# ========================================================================

class ListingDraft(BaseModel):
    """Input for creating a listing. Sub-objects may still be JSON text."""
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    property_type: Any
    listing_type: Any
    location: Any
    google_maps_link: Optional[str] = None
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)
    area: Any = None
    furnished: Any = None
    availability: Any = None
    features: Any = None
    contact_details: Any = None
    social_links: Any = None
    is_featured: bool = False

    @field_validator("title", "description", mode="before")
    @classmethod
    def trim_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


def decode_draft(draft: ListingDraft) -> Dict[str, Any]:
    """
    Typed Listing field values for a draft.

    Optional enums fall back to the listing defaults. A missing or blank
    location is rejected since every listing needs an address and city.
    """
    fields: Dict[str, Any] = {
        "title": draft.title,
        "description": draft.description,
        "price": draft.price,
        "google_maps_link": draft.google_maps_link,
        "bedrooms": draft.bedrooms,
        "bathrooms": draft.bathrooms,
        "is_featured": draft.is_featured,
    }
    for name in ("property_type", "listing_type", "location", "area", "features", "contact_details", "social_links"):
        fields[name] = _decode_field(name, getattr(draft, name))
    for name in ("furnished", "availability"):
        raw = getattr(draft, name)
        if raw is not None and raw != "":
            fields[name] = _decode_field(name, raw)

    if fields["location"] is None:
        raise MalformedInput("'location' is required", field="location")
    return fields


class ListingPatch(BaseModel):
    """Partial update. Unset fields are left alone; unknown fields are dropped."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    property_type: Any = None
    listing_type: Any = None
    location: Any = None
    google_maps_link: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area: Any = None
    furnished: Any = None
    availability: Any = None
    features: Any = None
    contact_details: Any = None
    social_links: Any = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def trim_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


def decode_patch(patch: ListingPatch) -> Dict[str, Any]:
    """Decoded values for the whitelisted fields the caller actually sent."""
    changes: Dict[str, Any] = {}
    for name in PATCHABLE_FIELDS:
        if name not in patch.model_fields_set:
            continue
        raw = getattr(patch, name)
        if raw is None:
            continue
        value = _decode_field(name, raw)
        if name == "location" and value is None:
            continue
        changes[name] = value
    return changes


# ========================================================================
# LISTING OUTPUT
# ========================================================================

class ListingQueryParams(BaseModel):
    """Public browse filters (query string)."""
    search: Optional[str] = None
    property_type: Optional[PropertyType] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    city: Optional[str] = None
    bedrooms: Optional[int] = None
    furnished: Optional[FurnishedState] = None
    availability: Optional[Availability] = None
    listing_type: Optional[ListingType] = None
    agency_id: Optional[int] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# ========================================================================
# AGENCY SCHEMAS
# ========================================================================

class AgencyRegisterRequest(BaseModel):
    agency_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=200)
    phone: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    address: Optional[AgencyAddress] = None
    website: Optional[str] = None
    social_links: Optional[AgencySocialLinks] = None
    plan_tier: PlanTier = PlanTier.basic
    billing_cycle: BillingCycle = BillingCycle.monthly

    @field_validator("agency_name", "email", "phone", mode="before")
    @classmethod
    def trim(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class AgencyProfileUpdate(BaseModel):
    """Owner-editable agency profile fields."""
    model_config = ConfigDict(extra="ignore")

    agency_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[AgencyAddress] = None
    website: Optional[str] = None
    social_links: Optional[AgencySocialLinks] = None


# ========================================================================
# SUBSCRIPTION SCHEMAS
# ========================================================================

class SubscribeRequest(BaseModel):
    plan_tier: str = Field(..., min_length=1)
    billing_cycle: str = "monthly"
    payment_method: Optional[str] = None


class SubscriptionReceipt(BaseModel):
    plan: PlanTier
    billing_cycle: BillingCycle
    start_date: datetime
    end_date: Optional[datetime]
    amount: float


# ========================================================================
# ASSISTANT SCHEMAS
# ========================================================================

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    language: str = "en"

    @field_validator("message", mode="before")
    @classmethod
    def trim_message(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class AssistantResponse(BaseModel):
    response: str
    properties: List[Dict[str, Any]] = Field(default_factory=list)
    preferences: Dict[str, Any] = Field(default_factory=dict)
    transcription: Optional[str] = None
