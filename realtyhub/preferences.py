"""
realtyhub/preferences.py

Rule-based extraction of property preferences from free text, and the
translation of those preferences into a listing store query.

Every rule is independent and the first match wins per field. Price text only
ever produces max_price; nothing in the text rules produces min_price, though
build_query honors one if a caller sets it.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

try:
    from realtyhub.models import Availability, FurnishedState, Listing, PropertyType
    from realtyhub.store import ListingQuery, Store
except ModuleNotFoundError:
    from models import Availability, FurnishedState, Listing, PropertyType
    from store import ListingQuery, Store


# Vocabulary order decides ties, not position in the text
PROPERTY_TYPE_VOCABULARY = [t.value for t in PropertyType]

_CURRENCY = r"(?:\$|usd|dollars?)"
_AMOUNT = r"(\d+k?)"
PRICE_PATTERN = re.compile(
    rf"{_CURRENCY}\s*{_AMOUNT}"
    rf"|{_AMOUNT}\s*{_CURRENCY}"
    rf"|under\s+{_AMOUNT}"
    rf"|below\s+{_AMOUNT}"
    rf"|up\s+to\s+{_AMOUNT}",
    re.IGNORECASE,
)
BEDROOM_PATTERN = re.compile(r"(\d+)\s*(?:bed|bedroom|br)", re.IGNORECASE)
CITY_PATTERN = re.compile(r"in\s+([a-z\s]+?)(?:\s|,|$)", re.IGNORECASE)


@dataclass
class PreferenceSet:
    """Structured filter pulled out of a chat message. None = not mentioned."""
    max_price: Optional[int] = None
    min_price: Optional[int] = None
    bedrooms: Optional[int] = None
    property_type: Optional[str] = None
    city: Optional[str] = None
    furnished: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def _parse_amount(text: str) -> int:
    return int(text.lower().replace("k", "000"))


def extract_price(text: str) -> Optional[int]:
    match = PRICE_PATTERN.search(text)
    if not match:
        return None
    amount = next(g for g in match.groups() if g is not None)
    return _parse_amount(amount)


def extract_bedrooms(text: str) -> Optional[int]:
    match = BEDROOM_PATTERN.search(text)
    return int(match.group(1)) if match else None


def extract_property_type(text: str) -> Optional[str]:
    lowered = text.lower()
    for candidate in PROPERTY_TYPE_VOCABULARY:
        if candidate in lowered:
            return candidate
    return None


def extract_city(text: str) -> Optional[str]:
    """The word(s) after 'in', casing preserved. Not checked against any gazetteer."""
    match = CITY_PATTERN.search(text)
    if not match:
        return None
    city = match.group(1).strip()
    return city or None


def extract_furnished(text: str) -> Optional[str]:
    lowered = text.lower()
    if "unfurnished" in lowered:
        return FurnishedState.unfurnished.value
    if "furnished" in lowered:
        return FurnishedState.furnished.value
    return None


def extract(text: str) -> PreferenceSet:
    """Parse free text into a PreferenceSet."""
    text = text or ""
    return PreferenceSet(
        max_price=extract_price(text),
        bedrooms=extract_bedrooms(text),
        property_type=extract_property_type(text),
        city=extract_city(text),
        furnished=extract_furnished(text),
    )


def build_query(prefs: PreferenceSet) -> ListingQuery:
    """
    Store filter for a PreferenceSet: active and available listings only,
    inclusive price bounds, case-insensitive city substring, exact match on
    everything else.
    """
    return ListingQuery(
        is_active=True,
        availability=Availability.available.value,
        min_price=prefs.min_price,
        max_price=prefs.max_price,
        bedrooms=prefs.bedrooms,
        property_type=prefs.property_type,
        city=prefs.city,
        furnished=prefs.furnished,
    )


def find_matches(store: Store, prefs: PreferenceSet, limit: int) -> List[Listing]:
    """Up to `limit` matches in the store's default order (newest first)."""
    return store.find_listings(build_query(prefs), limit=limit)
