"""Link transfer drafts to the Places of flights and hotels in the same batch.

Pickup hints point at where the traveller is coming from: the destination
airport of an arriving flight, or a hotel being checked out of. Dropoff hints
point at where they are going: the origin airport of a departing flight, or a
hotel being checked into. When no hint resolves, the closest flight or hotel
within a time window around the pickup is used instead.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Mapping, Optional

from itinerary_ingest.config import TRANSFER_MATCH_WINDOW_HOURS
from itinerary_ingest.models import ItemDraft, ItemType, Place

logger = logging.getLogger(__name__)

PICKUP = "pickup"
DROPOFF = "dropoff"

_AIRPORT_CODE = re.compile(r'^[A-Z]{3}$')
_UNKNOWN_DELTA = timedelta.max


@dataclass
class LinkCandidate:
    place_id: str
    delta: timedelta
    flight_after: bool = False  # the flight happens after the transfer


def _rank(candidate: LinkCandidate):
    # Flights after the transfer first, then the nearest in time
    return (not candidate.flight_after, candidate.delta)


def _best(candidates: List[LinkCandidate]) -> Optional[str]:
    if not candidates:
        return None
    return sorted(candidates, key=_rank)[0].place_id


def _flight_side(flight: ItemDraft, direction: str):
    """(place id, airport code, time) of the flight end a hint refers to."""
    if direction == PICKUP:
        return (
            flight.destination_place_id,
            flight.data.destination_code,
            flight.end_time or flight.start_time,
        )
    return (
        flight.origin_place_id,
        flight.data.origin_code,
        flight.start_time or flight.end_time,
    )


def _timing(other: Optional[datetime], transfer_time: Optional[datetime]):
    if other is None or transfer_time is None:
        return _UNKNOWN_DELTA, False
    return abs(other - transfer_time), other > transfer_time


def match_flight(
    hint: str,
    direction: str,
    transfer_time: Optional[datetime],
    flights: List[ItemDraft],
    places: Mapping[str, Place],
) -> Optional[str]:
    text = hint.strip()
    lowered = text.lower()
    is_code = bool(_AIRPORT_CODE.match(text))
    is_airport_text = "airport" in lowered or "international" in lowered
    if not (is_code or is_airport_text):
        return None

    candidates = []
    for flight in flights:
        place_id, code, flight_time = _flight_side(flight, direction)
        if not place_id:
            continue
        place = places.get(place_id)

        if is_code:
            if not flight.data.carrier_code:
                continue
            known_code = code or (place.short_code if place else None)
            if known_code and known_code.upper() != text:
                continue
        else:
            if place is None:
                continue
            name = place.name.lower()
            code_in_hint = bool(place.short_code) and place.short_code.upper() in text.upper().split()
            if not (name in lowered or lowered in name or code_in_hint):
                continue

        delta, after = _timing(flight_time, transfer_time)
        candidates.append(LinkCandidate(place_id, delta, after))

    return _best(candidates)


def match_hotel(
    hint: str,
    direction: str,
    transfer_time: Optional[datetime],
    hotels: List[ItemDraft],
    places: Mapping[str, Place],
) -> Optional[str]:
    lowered = hint.strip().lower()
    generic = lowered == "hotel"

    candidates = []
    for hotel in hotels:
        if not hotel.origin_place_id:
            continue
        place = places.get(hotel.origin_place_id)
        names = {
            n.lower() for n in (hotel.data.hotel_name, place.name if place else None) if n
        }
        if not generic and not any(n in lowered or lowered in n for n in names):
            continue

        hotel_time = hotel.end_time if direction == PICKUP else hotel.start_time
        delta, _ = _timing(hotel_time, transfer_time)
        candidates.append(LinkCandidate(hotel.origin_place_id, delta))

    if not candidates:
        return None
    return sorted(candidates, key=lambda c: c.delta)[0].place_id


def closest_before(
    when: datetime,
    flights: List[ItemDraft],
    hotels: List[ItemDraft],
    window: timedelta,
) -> Optional[str]:
    """Arrival or checkout at or before ``when`` within the window."""
    candidates = []
    for flight in flights:
        if flight.end_time and flight.destination_place_id and flight.end_time <= when:
            candidates.append(LinkCandidate(flight.destination_place_id, when - flight.end_time))
    for hotel in hotels:
        if hotel.end_time and hotel.origin_place_id and hotel.end_time <= when:
            candidates.append(LinkCandidate(hotel.origin_place_id, when - hotel.end_time))
    candidates = [c for c in candidates if c.delta <= window]
    if not candidates:
        return None
    return min(candidates, key=lambda c: c.delta).place_id


def earliest_after(
    when: datetime,
    flights: List[ItemDraft],
    hotels: List[ItemDraft],
    window: timedelta,
) -> Optional[str]:
    """Departure or check-in at or after ``when`` within the window."""
    candidates = []
    for flight in flights:
        if flight.start_time and flight.origin_place_id and flight.start_time >= when:
            candidates.append(LinkCandidate(flight.origin_place_id, flight.start_time - when))
    for hotel in hotels:
        if hotel.start_time and hotel.origin_place_id and hotel.start_time >= when:
            candidates.append(LinkCandidate(hotel.origin_place_id, hotel.start_time - when))
    candidates = [c for c in candidates if c.delta <= window]
    if not candidates:
        return None
    return min(candidates, key=lambda c: c.delta).place_id


def link_transfer(
    transfer: ItemDraft,
    flights: List[ItemDraft],
    hotels: List[ItemDraft],
    places: Mapping[str, Place],
    window: timedelta,
):
    pickup_hint = transfer.data.pickup_location
    dropoff_hint = transfer.data.dropoff_location
    pickup_time = transfer.start_time
    dropoff_time = transfer.end_time or transfer.start_time

    origin = None
    destination = None
    if pickup_hint:
        origin = (
            match_flight(pickup_hint, PICKUP, pickup_time, flights, places)
            or match_hotel(pickup_hint, PICKUP, pickup_time, hotels, places)
        )
    if dropoff_hint:
        destination = (
            match_flight(dropoff_hint, DROPOFF, dropoff_time, flights, places)
            or match_hotel(dropoff_hint, DROPOFF, dropoff_time, hotels, places)
        )

    if origin is None and destination is None and transfer.start_time:
        origin = closest_before(transfer.start_time, flights, hotels, window)
        destination = earliest_after(transfer.start_time, flights, hotels, window)

    transfer.origin_place_id = origin
    transfer.destination_place_id = destination
    logger.info(
        "Transfer %s: pickup=%r -> %s, dropoff=%r -> %s",
        transfer.title, pickup_hint, origin, dropoff_hint, destination,
    )


def link_transfers(
    drafts: List[ItemDraft],
    places: Mapping[str, Place],
    window: timedelta = timedelta(hours=TRANSFER_MATCH_WINDOW_HOURS),
) -> int:
    """Assign origin/destination places to every transfer draft in place.

    Returns the number of transfers that received at least one place.
    """
    flights = [d for d in drafts if d.type == ItemType.FLIGHT]
    hotels = [d for d in drafts if d.type == ItemType.HOTEL]

    linked = 0
    for transfer in (d for d in drafts if d.type == ItemType.TRANSFER):
        link_transfer(transfer, flights, hotels, places, window)
        if transfer.origin_place_id or transfer.destination_place_id:
            linked += 1
    return linked
