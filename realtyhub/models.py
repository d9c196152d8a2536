from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class UserRole(str, Enum):
    user = "user"
    agency = "agency"
    broker = "broker"
    admin = "admin"

class PlanTier(str, Enum):
    basic = "basic"
    pro = "pro"
    enterprise = "enterprise"

class BillingCycle(str, Enum):
    monthly = "monthly"
    yearly = "yearly"

class PropertyType(str, Enum):
    apartment = "apartment"
    house = "house"
    villa = "villa"
    condo = "condo"
    townhouse = "townhouse"
    land = "land"
    commercial = "commercial"
    office = "office"

class ListingType(str, Enum):
    sale = "sale"
    rent = "rent"

class FurnishedState(str, Enum):
    furnished = "furnished"
    semi_furnished = "semi-furnished"
    unfurnished = "unfurnished"

class Availability(str, Enum):
    available = "available"
    sold = "sold"
    rented = "rented"
    unavailable = "unavailable"

class AreaUnit(str, Enum):
    sqft = "sqft"
    sqm = "sqm"


# Structured sub-objects (arrive as JSON text on multipart requests)
class Coordinates(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class Location(BaseModel):
    address: str
    city: str
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    coordinates: Optional[Coordinates] = None

class Area(BaseModel):
    value: Optional[float] = None
    unit: AreaUnit = AreaUnit.sqft

class ContactDetails(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None

class ListingSocialLinks(BaseModel):
    instagram: Optional[str] = None
    whatsapp: Optional[str] = None
    website: Optional[str] = None

class AgencySocialLinks(BaseModel):
    instagram: Optional[str] = None
    whatsapp: Optional[str] = None
    facebook: Optional[str] = None
    linkedin: Optional[str] = None

class AgencyAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


# Models
class SubscriptionState(BaseModel):
    """
    Plan snapshot embedded in an agency.

    Value object: replaced wholesale on subscribe/renew/cancel, never edited
    in place. Limits are copied from the plan catalog at subscribe time.
    """
    model_config = ConfigDict(frozen=True)

    plan_tier: PlanTier = PlanTier.basic
    billing_cycle: BillingCycle = BillingCycle.monthly
    start_date: datetime = Field(default_factory=utcnow)
    end_date: Optional[datetime] = None
    storage_limit_bytes: int = 1073741824
    listing_limit: int = 10

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """True iff end_date is set and strictly in the future."""
        if self.end_date is None:
            return False
        return (now or utcnow()) < self.end_date


class Agency(BaseModel):
    """Tenant. storage_used_bytes and listing_ids are ledger fields."""
    id: Optional[int] = None
    owner_id: int
    agency_name: str
    email: str
    phone: str
    description: Optional[str] = None
    address: Optional[AgencyAddress] = None
    website: Optional[str] = None
    logo: Optional[str] = None
    social_links: Optional[AgencySocialLinks] = None
    subscription: SubscriptionState = Field(default_factory=SubscriptionState)
    storage_used_bytes: int = 0
    listing_ids: List[int] = Field(default_factory=list)
    is_active: bool = True
    is_verified: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def listing_count(self) -> int:
        return len(self.listing_ids)


class ListingImage(BaseModel):
    url: str
    size_bytes: int = 0
    storage_key: str


class Listing(BaseModel):
    id: Optional[int] = None
    agency_id: int
    broker_id: Optional[int] = None
    title: str
    description: str
    price: float
    property_type: PropertyType
    listing_type: ListingType
    location: Location
    google_maps_link: Optional[str] = None
    images: List[ListingImage] = Field(default_factory=list)
    bedrooms: int = 0
    bathrooms: int = 0
    area: Optional[Area] = None
    furnished: FurnishedState = FurnishedState.unfurnished
    availability: Availability = Availability.available
    features: List[str] = Field(default_factory=list)
    contact_details: Optional[ContactDetails] = None
    social_links: Optional[ListingSocialLinks] = None
    views: int = 0
    is_active: bool = True
    is_featured: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def total_image_size(self) -> int:
        """Sum of image sizes, recomputed on every access."""
        return sum(img.size_bytes or 0 for img in self.images)
