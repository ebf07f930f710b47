"""Resolve free-text place names to canonical Place records.

Lookup order: batch-local cache -> persisted store (short code) -> Google
Places text search -> bare record. A provider miss or error never aborts the
batch; it degrades to a Place carrying only the name and kind.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from itinerary_ingest.config import (
    GOOGLE_PLACES_API_KEY,
    GOOGLE_PLACES_URL,
    HTTP_TIMEOUT_SECONDS,
)
from itinerary_ingest.models import BatchContext, Place, PlaceKind
from itinerary_ingest.store import ItineraryStore

logger = logging.getLogger(__name__)

_KIND_DESCRIPTIONS = {
    PlaceKind.AIRPORT: "Airport",
    PlaceKind.HOTEL: "Hotel",
    PlaceKind.RESTAURANT: "Restaurant",
    PlaceKind.VENUE: "Venue",
    PlaceKind.ATTRACTION: "Attraction",
}

_FIELD_MASK = ",".join([
    "places.displayName",
    "places.formattedAddress",
    "places.addressComponents",
    "places.location",
    "places.id",
    "places.internationalPhoneNumber",
    "places.websiteUri",
    "places.editorialSummary",
    "places.utcOffsetMinutes",
    "places.types",
    "places.primaryType",
])


class GooglePlacesClient:
    """Thin wrapper over the Places API (New) text search."""

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def search_text(self, query: str) -> List[Dict[str, Any]]:
        """Return ranked candidates; raises requests.RequestException on failure."""
        resp = self.session.post(
            GOOGLE_PLACES_URL,
            headers={
                "Content-Type": "application/json",
                "X-Goog-Api-Key": self.api_key,
                "X-Goog-FieldMask": _FIELD_MASK,
            },
            json={"textQuery": query, "languageCode": "en"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json().get("places") or []


def default_places_client() -> Optional[GooglePlacesClient]:
    if not GOOGLE_PLACES_API_KEY:
        logger.warning("GOOGLE_PLACES_API_KEY not set, places will be created with name only")
        return None
    return GooglePlacesClient(GOOGLE_PLACES_API_KEY)


def format_utc_offset(minutes: Optional[int]) -> Optional[str]:
    """330 -> "+05:30", -240 -> "-04:00"."""
    if minutes is None:
        return None
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(int(minutes)), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def parse_address_components(components: List[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """Map Google address components onto our address fields."""
    street = None
    parsed: Dict[str, Optional[str]] = {
        "city": None, "state": None, "country": None, "postal_code": None,
    }
    for component in components or []:
        types = component.get("types") or []
        long_text = component.get("longText") or component.get("shortText")
        short_text = component.get("shortText") or component.get("longText")

        if "street_number" in types or "route" in types:
            street = f"{street} {long_text}" if street else long_text
        if "locality" in types:
            parsed["city"] = long_text
        if "administrative_area_level_1" in types:
            parsed["state"] = short_text
        if "country" in types:
            parsed["country"] = short_text
        if "postal_code" in types:
            parsed["postal_code"] = long_text

    parsed["address"] = street
    return parsed


def place_from_candidate(
    candidate: Dict[str, Any],
    name: str,
    kind: PlaceKind,
    short_code: Optional[str] = None,
) -> Place:
    address = parse_address_components(candidate.get("addressComponents") or [])
    location = candidate.get("location") or {}
    return Place(
        name=(candidate.get("displayName") or {}).get("text") or name,
        kind=kind,
        short_code=short_code,
        description=(candidate.get("editorialSummary") or {}).get("text") or _KIND_DESCRIPTIONS[kind],
        address=address["address"] or candidate.get("formattedAddress"),
        city=address["city"],
        state=address["state"],
        country=address["country"],
        postal_code=address["postal_code"],
        lat=location.get("latitude"),
        lng=location.get("longitude"),
        timezone=format_utc_offset(candidate.get("utcOffsetMinutes")),
        phone=candidate.get("internationalPhoneNumber"),
        website=candidate.get("websiteUri"),
        external_id=candidate.get("id"),
    )


class PlaceResolver:
    def __init__(
        self,
        store: ItineraryStore,
        context: BatchContext,
        client: Optional[GooglePlacesClient] = None,
    ):
        self.store = store
        self.context = context
        self.client = client

    def resolve(
        self,
        name: str,
        kind: PlaceKind,
        city: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
        short_code: Optional[str] = None,
    ) -> Optional[str]:
        """Return the id of the Place for ``name``, creating one if needed."""
        if not name:
            return None

        cached = self.context.lookup(kind, name)
        if cached:
            logger.info("Already resolved %s in this batch: %s -> %s", kind.value, name, cached)
            return cached

        if short_code:
            existing = self.store.find_place(kind, short_code)
            if existing:
                logger.info("Found existing %s by code: %s -> %s", kind.value, short_code, existing.id)
                self.context.remember(kind, name, existing.id)
                return existing.id

        candidate = self._search(name, city, state, country)
        if candidate is None:
            place = Place(
                name=name,
                kind=kind,
                short_code=short_code,
                description=_KIND_DESCRIPTIONS[kind],
            )
            return self._create(place, name)

        external_id = candidate.get("id")
        if external_id:
            existing = (
                self.context.find_by_external_id(external_id)
                or self.store.find_place_by_external_id(external_id)
            )
            if existing:
                logger.info("Found existing %s by external id: %s -> %s", kind.value, name, existing.id)
                self.context.remember(kind, name, existing.id)
                return existing.id

        return self._create(place_from_candidate(candidate, name, kind, short_code), name)

    def _search(
        self,
        name: str,
        city: Optional[str],
        state: Optional[str],
        country: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        if self.client is None:
            return None

        query = " ".join(part for part in (name, city, state, country) if part)
        logger.info("Place search query: %r", query)
        try:
            results = self.client.search_text(query)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Place search failed for %s: %s", name, e)
            return None

        if not results:
            logger.warning("No place search results for %s", name)
            return None
        return results[0]

    def _create(self, place: Place, key: str) -> str:
        self.context.add_place(place, key=key)
        logger.info("Created %s place: %s -> %s", place.kind.value, key, place.id)
        return place.id
