"""Flight idempotency: a trip never gets the same flight number twice."""

from typing import Iterable, Optional

from itinerary_ingest.models import ItemDraft, ItemType
from itinerary_ingest.normalize.flight_enricher import canonical_flight_number
from itinerary_ingest.store import ItineraryStore


def flight_key(raw_number: Optional[str]) -> str:
    """Idempotency key for a flight; empty when the number is missing."""
    return canonical_flight_number(raw_number)


def is_duplicate_flight(
    store: ItineraryStore,
    trip_id: str,
    raw_number: Optional[str],
    pending: Iterable[ItemDraft] = (),
) -> bool:
    """True if the trip already has a flight whose title contains the number.

    ``pending`` covers drafts from the current document that are not yet
    persisted, so a flight listed twice in one document is created once.
    """
    key = flight_key(raw_number)
    if not key:
        return False

    if store.find_items(trip_id, item_type=ItemType.FLIGHT, title_contains=key):
        return True

    needle = key.lower()
    return any(
        d.type == ItemType.FLIGHT and needle in (d.title or "").lower()
        for d in pending
    )
