"""
realtyhub/assistant.py

Rule-based property assistant.

chat() answers a text message by extracting preferences and listing matches.
voice() stands in for a speech pipeline: it uses a fixed transcription and
answers through the same extraction path. Neither calls an external model.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

try:
    from realtyhub.config import CHAT_RESULT_LIMIT, IS_DEV, VOICE_RESULT_LIMIT
    from realtyhub.models import Listing
    from realtyhub.preferences import extract, find_matches
    from realtyhub.store import Store
except ModuleNotFoundError:
    from config import CHAT_RESULT_LIMIT, IS_DEV, VOICE_RESULT_LIMIT
    from models import Listing
    from preferences import extract, find_matches
    from store import Store


MOCK_TRANSCRIPTION = "I'm looking for a 3 bedroom apartment in New York under 500000"

GREETING = """Hello! I'm your real estate assistant. I can help you find properties based on your preferences. You can tell me about:

- Your budget range
- Preferred location (city)
- Number of bedrooms
- Property type (apartment, house, villa, etc.)
- Furnished or unfurnished

What are you looking for?"""


def format_price(price: float) -> str:
    if float(price).is_integer():
        return f"{int(price):,}"
    return f"{price:,.2f}"


def _agency_name(store: Store, agency_id: int, cache: Dict[int, Optional[str]]) -> Optional[str]:
    if agency_id not in cache:
        agency = store.get_agency(agency_id)
        cache[agency_id] = agency.agency_name if agency else None
    return cache[agency_id]


def summarize(store: Store, listings: List[Listing]) -> List[Dict[str, Any]]:
    """Compact listing cards for assistant replies."""
    names: Dict[int, Optional[str]] = {}
    return [
        {
            "id": p.id,
            "title": p.title,
            "price": p.price,
            "location": p.location.city,
            "bedrooms": p.bedrooms,
            "property_type": p.property_type.value,
            "image": p.images[0].url if p.images else None,
            "agency_name": _agency_name(store, p.agency_id, names),
        }
        for p in listings
    ]


def chat(store: Store, message: str, language: str = "en") -> Dict[str, Any]:
    """
    Answer a chat message.

    Three shapes of reply: matches found, preferences understood but nothing
    matched, or a greeting when nothing could be extracted.
    """
    prefs = extract(message)
    listings: List[Listing] = []
    if not prefs.is_empty():
        listings = find_matches(store, prefs, CHAT_RESULT_LIMIT)
    cards = summarize(store, listings)

    if cards:
        lines = [f"I found {len(cards)} properties matching your criteria:", ""]
        for i, card in enumerate(cards, start=1):
            lines.append(f"{i}. **{card['title']}**")
            lines.append(f"   Price: ${format_price(card['price'])}")
            lines.append(f"   Location: {card['location']}")
            lines.append(f"   Type: {card['property_type']}")
            lines.append(f"   Bedrooms: {card['bedrooms']}")
            lines.append(f"   Listed by: {card['agency_name'] or 'Unknown agency'}")
            lines.append("")
        lines.append("Would you like more details about any of these properties?")
        reply = "\n".join(lines)
    elif not prefs.is_empty():
        reply = (
            f"I understand you're looking for properties with these criteria: {prefs.to_dict()}. "
            "Unfortunately, I couldn't find exact matches. Would you like to adjust your search criteria?"
        )
    else:
        reply = GREETING

    if IS_DEV:
        print(f"[ASSISTANT] chat language={language} prefs={prefs.to_dict()} matches={len(cards)}")

    return {
        "response": reply,
        "properties": cards,
        "preferences": prefs.to_dict(),
    }


def voice(store: Store, audio: Optional[Any] = None, language: str = "en") -> Dict[str, Any]:
    """
    Voice query. The audio payload is accepted but not transcribed; the fixed
    MOCK_TRANSCRIPTION is used instead.
    """
    transcription = MOCK_TRANSCRIPTION
    prefs = extract(transcription)
    listings = find_matches(store, prefs, VOICE_RESULT_LIMIT)
    cards = summarize(store, listings)

    if cards:
        first = cards[0]
        reply = (
            f"I found {len(cards)} properties matching your search. "
            f"{first['title']} for ${format_price(first['price'])} in {first['location']}."
        )
    else:
        reply = "I couldn't find properties matching your criteria. Would you like to adjust your search?"

    if IS_DEV:
        print(f"[ASSISTANT] voice language={language} audio={'yes' if audio else 'no'} matches={len(cards)}")

    return {
        "transcription": transcription,
        "response": reply,
        "properties": cards,
        "preferences": prefs.to_dict(),
    }
