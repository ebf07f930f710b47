"""Data models for the itinerary ingest pipeline."""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


def new_id() -> str:
    return str(uuid.uuid4())


class ItemType(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"
    TRANSFER = "transfer"
    RESTAURANT = "restaurant"
    ACTIVITY = "activity"


class PlaceKind(str, Enum):
    AIRPORT = "airport"
    HOTEL = "hotel"
    RESTAURANT = "restaurant"
    VENUE = "venue"
    ATTRACTION = "attraction"


class DocumentStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class Place:
    name: str
    kind: PlaceKind
    id: str = field(default_factory=new_id)
    short_code: Optional[str] = None  # IATA code for airports
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    timezone: Optional[str] = None  # "+HH:MM" offset or IANA name from the provider
    phone: Optional[str] = None
    website: Optional[str] = None
    external_id: Optional[str] = None  # Google Place id, used for dedup


# ---------------------------------------------------------------------------
# Type-specific item data (one dataclass per ItemType)
# ---------------------------------------------------------------------------

@dataclass
class FlightData:
    flight_number: Optional[str] = None
    carrier_code: Optional[str] = None  # only set from the schedule provider
    service_class: Optional[str] = None
    origin_code: Optional[str] = None
    destination_code: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class HotelData:
    hotel_name: Optional[str] = None
    room_category: Optional[str] = None
    perks: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferData:
    contact_name: Optional[str] = None
    service: Optional[str] = None
    vehicle_type: Optional[str] = None
    pickup_location: Optional[str] = None  # free-text hint, resolved by the linker
    dropoff_location: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class RestaurantData:
    restaurant_name: Optional[str] = None
    contact_name: Optional[str] = None
    cuisine_type: Optional[str] = None
    party_size: Optional[str] = None
    dietary_requests: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActivityData:
    contact_name: Optional[str] = None
    service: Optional[str] = None
    activity_type: Optional[str] = None
    vehicle_type: Optional[str] = None
    places_visited: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)


ItemData = Union[FlightData, HotelData, TransferData, RestaurantData, ActivityData]

DATA_TYPES: dict[ItemType, type] = {
    ItemType.FLIGHT: FlightData,
    ItemType.HOTEL: HotelData,
    ItemType.TRANSFER: TransferData,
    ItemType.RESTAURANT: RestaurantData,
    ItemType.ACTIVITY: ActivityData,
}


@dataclass
class ItemDraft:
    """A not-yet-persisted itinerary item.

    Times are local wall-clock digits stored in a UTC-labelled datetime;
    no timezone conversion happens anywhere in the pipeline.
    """
    type: ItemType
    title: str = ""
    description: str = ""
    info: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    origin_place_id: Optional[str] = None
    destination_place_id: Optional[str] = None
    origin_location_detail: Optional[str] = None  # terminal, lobby, room...
    destination_location_detail: Optional[str] = None
    confirmation_number: Optional[str] = None
    client_arranged: bool = False
    data: Optional[ItemData] = None

    def __post_init__(self):
        if self.data is None:
            self.data = DATA_TYPES[self.type]()
        elif not isinstance(self.data, DATA_TYPES[self.type]):
            raise TypeError(
                f"{self.type.value} item cannot carry {type(self.data).__name__}"
            )


@dataclass
class Item(ItemDraft):
    trip_id: str = ""
    id: str = field(default_factory=new_id)
    created_at: Optional[datetime] = None

    @classmethod
    def from_draft(cls, draft: ItemDraft, trip_id: str, created_at: datetime) -> Item:
        return cls(
            type=draft.type,
            title=draft.title,
            description=draft.description,
            info=draft.info,
            start_time=draft.start_time,
            end_time=draft.end_time,
            origin_place_id=draft.origin_place_id,
            destination_place_id=draft.destination_place_id,
            origin_location_detail=draft.origin_location_detail,
            destination_location_detail=draft.destination_location_detail,
            confirmation_number=draft.confirmation_number,
            client_arranged=draft.client_arranged,
            data=draft.data,
            trip_id=trip_id,
            created_at=created_at,
        )


@dataclass
class Trip:
    client_name: str
    id: str = field(default_factory=new_id)
    index_id: Optional[str] = None  # knowledge index (vector store) for the trip's documents


@dataclass
class Document:
    trip_id: str
    original_name: str
    path: str  # blob location; local filesystem path
    id: str = field(default_factory=new_id)
    mime_type: str = "application/pdf"
    status: DocumentStatus = DocumentStatus.UPLOADED
    index_file_id: Optional[str] = None
    extracted_data: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class EnrichedFlight:
    """Canonical fields mapped from the first schedule-provider instance."""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    carrier_code: Optional[str] = None
    flight_number: Optional[str] = None
    origin_code: Optional[str] = None
    destination_code: Optional[str] = None
    origin_place_id: Optional[str] = None
    destination_place_id: Optional[str] = None
    origin_terminal: Optional[str] = None
    destination_terminal: Optional[str] = None


@dataclass
class BatchContext:
    """Per-document state passed to resolvers and normalizers; ``resolved`` is seeded from the run."""
    trip_id: str
    created_places: list[Place] = field(default_factory=list)
    drafts: list[ItemDraft] = field(default_factory=list)
    # (kind, name or code as looked up) -> place id; the provider may rename places
    resolved: dict[tuple[PlaceKind, str], str] = field(default_factory=dict)

    def lookup(self, kind: PlaceKind, key: str) -> Optional[str]:
        return self.resolved.get((kind, key))

    def remember(self, kind: PlaceKind, key: str, place_id: str):
        self.resolved[(kind, key)] = place_id

    def add_place(self, place: Place, key: Optional[str] = None):
        self.created_places.append(place)
        self.remember(place.kind, key or place.name, place.id)

    def get_place(self, place_id: str) -> Optional[Place]:
        for place in self.created_places:
            if place.id == place_id:
                return place
        return None

    def find_by_external_id(self, external_id: str) -> Optional[Place]:
        for place in self.created_places:
            if place.external_id == external_id:
                return place
        return None


@dataclass
class BatchResult:
    trip_id: str
    processed_documents: list[str] = field(default_factory=list)
    failed_documents: list[str] = field(default_factory=list)
    created_items: list[Item] = field(default_factory=list)
    created_places: list[Place] = field(default_factory=list)
    skipped_flights: list[str] = field(default_factory=list)
