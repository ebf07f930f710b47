"""Per-type normalization of raw extracted records into ItemDrafts."""

import logging
from typing import Any, Dict, Iterable, Optional

from itinerary_ingest.models import (
    ActivityData,
    FlightData,
    HotelData,
    ItemDraft,
    ItemType,
    PlaceKind,
    RestaurantData,
    TransferData,
)
from itinerary_ingest.normalize.date_parser import parse_local_datetime
from itinerary_ingest.normalize.flight_enricher import FlightEnricher, canonical_flight_number
from itinerary_ingest.normalize.place_resolver import PlaceResolver

logger = logging.getLogger(__name__)

_STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to",
    "for", "of", "with", "by", "from", "&", "-",
}

_FLIGHT_KEYS = {"flightNumber", "departureDateTime", "arrivalDateTime", "clientBooked", "class", "confirmationNumber"}
_HOTEL_KEYS = {"hotelName", "checkInDateTime", "checkOutDateTime", "roomCategory", "perks",
               "confirmationNumber", "city", "state", "country"}
_TRANSFER_KEYS = {"contactName", "pickupDateTime", "dropoffDateTime", "service", "vehicleType",
                  "pickupLocation", "dropoffLocation", "confirmationNumber"}
_RESTAURANT_KEYS = {"restaurantName", "reservationDateTime", "endDateTime", "contactName", "cuisineType",
                    "partySize", "confirmationNumber", "dietaryRequests", "city", "state", "country"}
_ACTIVITY_KEYS = {"activityName", "activityTitle", "startDateTime", "endDateTime", "contactName", "service",
                  "activityType", "vehicleType", "confirmationNumber", "notes", "description"}


def synthesize_activity_title(activity_name: str) -> str:
    """Build a short (max 5 word) title from a long activity name.

    Stop words and single-character tokens are dropped. If fewer than three
    meaningful words survive, the first five raw words are used instead.
    """
    if not activity_name:
        return "Activity"

    words = activity_name.split()
    meaningful = [w for w in words if w.lower() not in _STOP_WORDS and len(w) > 1]
    title_words = meaningful[:5]
    if len(title_words) < 3:
        return " ".join(words[:5])
    return " ".join(title_words)


def _text(raw: Dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _extra(raw: Dict[str, Any], known: Iterable[str]) -> Dict[str, Any]:
    """Raw fields we have no slot for, kept for review."""
    skip = set(known) | {"type"}
    return {k: v for k, v in raw.items() if k not in skip and v not in (None, "", [], {})}


def normalize_flight(raw: Dict[str, Any], enricher: Optional[FlightEnricher] = None) -> ItemDraft:
    flight_number = canonical_flight_number(raw.get("flightNumber"))
    service_class = _text(raw, "class")

    draft = ItemDraft(
        type=ItemType.FLIGHT,
        title=flight_number or "Flight",
        start_time=parse_local_datetime(raw.get("departureDateTime")),
        end_time=parse_local_datetime(raw.get("arrivalDateTime")),
        confirmation_number=_text(raw, "confirmationNumber"),
        client_arranged=_flag(raw.get("clientBooked")),
        data=FlightData(
            flight_number=flight_number or None,
            service_class=service_class.capitalize() if service_class else None,
            extra=_extra(raw, _FLIGHT_KEYS),
        ),
    )

    if enricher is not None and flight_number:
        enriched = enricher.enrich(
            flight_number,
            raw.get("departureDateTime"),
            raw.get("arrivalDateTime"),
        )
        if enriched is not None:
            # Provider local times supersede the extracted ones
            draft.start_time = enriched.start_time or draft.start_time
            draft.end_time = enriched.end_time or draft.end_time
            draft.origin_place_id = enriched.origin_place_id
            draft.destination_place_id = enriched.destination_place_id
            draft.origin_location_detail = enriched.origin_terminal
            draft.destination_location_detail = enriched.destination_terminal
            draft.data.carrier_code = enriched.carrier_code
            draft.data.origin_code = enriched.origin_code
            draft.data.destination_code = enriched.destination_code
            if enriched.carrier_code and enriched.flight_number:
                draft.data.flight_number = f"{enriched.carrier_code} {enriched.flight_number}"
        else:
            logger.warning("No schedule data for flight %s, keeping extracted fields", flight_number)

    return draft


def normalize_hotel(raw: Dict[str, Any], resolver: PlaceResolver) -> ItemDraft:
    hotel_name = _text(raw, "hotelName")
    place_id = None
    if hotel_name:
        place_id = resolver.resolve(
            hotel_name,
            PlaceKind.HOTEL,
            _text(raw, "city"),
            _text(raw, "state"),
            _text(raw, "country"),
        )

    perks = raw.get("perks") or []
    if isinstance(perks, str):
        perks = [perks]

    return ItemDraft(
        type=ItemType.HOTEL,
        title=hotel_name or "Hotel Stay",
        start_time=parse_local_datetime(raw.get("checkInDateTime")),
        end_time=parse_local_datetime(raw.get("checkOutDateTime")),
        origin_place_id=place_id,
        confirmation_number=_text(raw, "confirmationNumber"),
        data=HotelData(
            hotel_name=hotel_name,
            room_category=_text(raw, "roomCategory"),
            perks=[str(p) for p in perks],
            extra=_extra(raw, _HOTEL_KEYS),
        ),
    )


def normalize_restaurant(raw: Dict[str, Any], resolver: PlaceResolver) -> ItemDraft:
    restaurant_name = _text(raw, "restaurantName")
    place_id = None
    if restaurant_name:
        place_id = resolver.resolve(
            restaurant_name,
            PlaceKind.RESTAURANT,
            _text(raw, "city"),
            _text(raw, "state"),
            _text(raw, "country"),
        )
    dietary = _text(raw, "dietaryRequests")

    return ItemDraft(
        type=ItemType.RESTAURANT,
        title=restaurant_name or "Restaurant",
        description=restaurant_name or "",
        info=dietary or "",
        start_time=parse_local_datetime(raw.get("reservationDateTime")),
        end_time=parse_local_datetime(raw.get("endDateTime")),
        origin_place_id=place_id,
        confirmation_number=_text(raw, "confirmationNumber"),
        data=RestaurantData(
            restaurant_name=restaurant_name,
            contact_name=_text(raw, "contactName"),
            cuisine_type=_text(raw, "cuisineType"),
            party_size=_text(raw, "partySize"),
            dietary_requests=dietary,
            extra=_extra(raw, _RESTAURANT_KEYS),
        ),
    )


def normalize_transfer(raw: Dict[str, Any]) -> ItemDraft:
    # Places are assigned later by the transfer linker
    contact_name = _text(raw, "contactName")
    return ItemDraft(
        type=ItemType.TRANSFER,
        title=contact_name or "Transfer Service",
        start_time=parse_local_datetime(raw.get("pickupDateTime")),
        end_time=parse_local_datetime(raw.get("dropoffDateTime")),
        confirmation_number=_text(raw, "confirmationNumber"),
        data=TransferData(
            contact_name=contact_name,
            service=_text(raw, "service"),
            vehicle_type=_text(raw, "vehicleType"),
            pickup_location=_text(raw, "pickupLocation"),
            dropoff_location=_text(raw, "dropoffLocation"),
            extra=_extra(raw, _TRANSFER_KEYS),
        ),
    )


def normalize_activity(raw: Dict[str, Any]) -> ItemDraft:
    activity_name = _text(raw, "activityName") or ""
    return ItemDraft(
        type=ItemType.ACTIVITY,
        title=_text(raw, "activityTitle") or synthesize_activity_title(activity_name),
        description=activity_name,
        info=_text(raw, "notes") or _text(raw, "description") or "",
        start_time=parse_local_datetime(raw.get("startDateTime")),
        end_time=parse_local_datetime(raw.get("endDateTime")),
        confirmation_number=_text(raw, "confirmationNumber"),
        data=ActivityData(
            contact_name=_text(raw, "contactName"),
            service=_text(raw, "service"),
            activity_type=_text(raw, "activityType"),
            vehicle_type=_text(raw, "vehicleType"),
            extra=_extra(raw, _ACTIVITY_KEYS),
        ),
    )


def item_type_of(raw: Dict[str, Any]) -> Optional[ItemType]:
    value = raw.get("type")
    if not isinstance(value, str):
        return None
    try:
        return ItemType(value.strip().lower())
    except ValueError:
        return None


class ItemNormalizer:
    """Dispatch raw records to the normalizer for their type tag."""

    def __init__(self, place_resolver: PlaceResolver, flight_enricher: Optional[FlightEnricher] = None):
        self.place_resolver = place_resolver
        self.flight_enricher = flight_enricher

    def normalize(self, raw: Dict[str, Any]) -> Optional[ItemDraft]:
        item_type = item_type_of(raw)
        if item_type is None:
            logger.warning("Skipping record with unknown type: %r", raw.get("type"))
            return None

        if item_type == ItemType.FLIGHT:
            return normalize_flight(raw, self.flight_enricher)
        if item_type == ItemType.HOTEL:
            return normalize_hotel(raw, self.place_resolver)
        if item_type == ItemType.RESTAURANT:
            return normalize_restaurant(raw, self.place_resolver)
        if item_type == ItemType.TRANSFER:
            return normalize_transfer(raw)
        return normalize_activity(raw)
