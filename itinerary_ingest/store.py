"""JSON-file backed store for trips, documents, places and items.

Pass ``path=None`` for a purely in-memory store.
"""

import json
import logging
from dataclasses import asdict, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from itinerary_ingest.models import (
    DATA_TYPES,
    Document,
    DocumentStatus,
    Item,
    ItemType,
    Place,
    PlaceKind,
    Trip,
)

logger = logging.getLogger(__name__)


def _json_default(obj: Any):
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Cannot serialize {type(obj).__name__}")


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _place_from_dict(raw: Dict[str, Any]) -> Place:
    raw = dict(raw)
    raw["kind"] = PlaceKind(raw["kind"])
    return Place(**raw)


def _item_from_dict(raw: Dict[str, Any]) -> Item:
    raw = dict(raw)
    item_type = ItemType(raw["type"])
    raw["type"] = item_type
    raw["data"] = DATA_TYPES[item_type](**(raw.get("data") or {}))
    for key in ("start_time", "end_time", "created_at"):
        raw[key] = _parse_dt(raw.get(key))
    return Item(**raw)


def _document_from_dict(raw: Dict[str, Any]) -> Document:
    raw = dict(raw)
    raw["status"] = DocumentStatus(raw["status"])
    return Document(**raw)


class ItineraryStore:
    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self.trips: Dict[str, Trip] = {}
        self.documents: Dict[str, Document] = {}
        self.places: Dict[str, Place] = {}
        self.items: Dict[str, Item] = {}
        self._load()

    def _load(self):
        if self.path is None or not self.path.exists():
            return
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.trips = {t["id"]: Trip(**t) for t in data.get("trips", [])}
        self.documents = {d["id"]: _document_from_dict(d) for d in data.get("documents", [])}
        self.places = {p["id"]: _place_from_dict(p) for p in data.get("places", [])}
        self.items = {i["id"]: _item_from_dict(i) for i in data.get("items", [])}
        logger.info(
            "Loaded store %s: %d trips, %d documents, %d places, %d items",
            self.path, len(self.trips), len(self.documents), len(self.places), len(self.items),
        )

    def _save(self):
        if self.path is None:
            return
        data = {
            "trips": [asdict(t) for t in self.trips.values()],
            "documents": [asdict(d) for d in self.documents.values()],
            "places": [asdict(p) for p in self.places.values()],
            "items": [asdict(i) for i in self.items.values()],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False, default=_json_default),
            encoding="utf-8",
        )

    # --- trips -------------------------------------------------------------

    def add_trip(self, trip: Trip) -> Trip:
        self.trips[trip.id] = trip
        self._save()
        return trip

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        return self.trips.get(trip_id)

    def update_trip(self, trip_id: str, **changes) -> Trip:
        trip = self.trips[trip_id]
        _apply(trip, changes)
        self._save()
        return trip

    # --- documents ---------------------------------------------------------

    def add_document(self, document: Document) -> Document:
        self.documents[document.id] = document
        self._save()
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        return self.documents.get(document_id)

    def documents_for_trip(
        self,
        trip_id: str,
        statuses: Optional[Iterable[DocumentStatus]] = None,
        mime_type: Optional[str] = None,
    ) -> List[Document]:
        wanted = set(statuses) if statuses is not None else None
        return [
            d for d in self.documents.values()
            if d.trip_id == trip_id
            and (wanted is None or d.status in wanted)
            and (mime_type is None or d.mime_type == mime_type)
        ]

    def update_document(self, document_id: str, **changes) -> Document:
        document = self.documents[document_id]
        _apply(document, changes)
        self._save()
        return document

    # --- places ------------------------------------------------------------

    def add_place(self, place: Place) -> Place:
        if place.external_id and self.find_place_by_external_id(place.external_id):
            raise ValueError(f"Place with external id {place.external_id} already exists")
        self.places[place.id] = place
        self._save()
        return place

    def get_place(self, place_id: str) -> Optional[Place]:
        return self.places.get(place_id)

    def find_place(self, kind: PlaceKind, short_code: str) -> Optional[Place]:
        for place in self.places.values():
            if place.kind == kind and place.short_code == short_code:
                return place
        return None

    def find_place_by_external_id(self, external_id: str) -> Optional[Place]:
        for place in self.places.values():
            if place.external_id == external_id:
                return place
        return None

    # --- items -------------------------------------------------------------

    def add_item(self, item: Item) -> Item:
        if not item.trip_id:
            raise ValueError("Item must belong to a trip")
        self.items[item.id] = item
        self._save()
        return item

    def find_items(
        self,
        trip_id: str,
        item_type: Optional[ItemType] = None,
        title_contains: Optional[str] = None,
    ) -> List[Item]:
        needle = title_contains.lower() if title_contains else None
        return [
            i for i in self.items.values()
            if i.trip_id == trip_id
            and (item_type is None or i.type == item_type)
            and (needle is None or needle in (i.title or "").lower())
        ]


def _apply(record, changes: Dict[str, Any]):
    names = {f.name for f in fields(record)}
    for key, value in changes.items():
        if key not in names:
            raise AttributeError(f"{type(record).__name__} has no field {key!r}")
        setattr(record, key, value)
