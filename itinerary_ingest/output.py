"""Output formatters: human-readable trip timeline and JSON export."""

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from itinerary_ingest.models import Item, ItemType, Place, Trip
from itinerary_ingest.normalize.date_parser import format_local_datetime

_TYPE_LABELS = {
    ItemType.FLIGHT: "FLIGHT",
    ItemType.HOTEL: "HOTEL",
    ItemType.TRANSFER: "TRANSFER",
    ItemType.RESTAURANT: "DINING",
    ItemType.ACTIVITY: "ACTIVITY",
}


def _time_str(dt: Optional[datetime]) -> str:
    if dt is None:
        return "?"
    return format_local_datetime(dt).replace("T", " ")


def _place_str(place_id: Optional[str], places: Dict[str, Place], detail: Optional[str] = None) -> str:
    if not place_id:
        return "?"
    place = places.get(place_id)
    if place is None:
        return "?"
    label = f"{place.name} ({place.short_code})" if place.short_code else place.name
    if detail:
        label = f"{label}, {detail}"
    return label


def _sort_key(item: Item):
    # Undated items go last, in creation order
    return (item.start_time is None, item.start_time or datetime.min)


# ---------------------------------------------------------------------------
# Human-readable timeline
# ---------------------------------------------------------------------------

def format_timeline(trip: Trip, items: List[Item], places: Dict[str, Place]) -> str:
    """Produce a day-by-day listing of a trip's items."""
    lines = []
    lines.append("=" * 72)
    lines.append(f"  ITINERARY: {trip.client_name}")
    lines.append("=" * 72)

    current_day = None
    for item in sorted(items, key=_sort_key):
        day = item.start_time.date().isoformat() if item.start_time else "Undated"
        if day != current_day:
            current_day = day
            lines.append(f"\n--- {day} {'-' * (64 - len(day))}")

        start = _time_str(item.start_time)[11:] if item.start_time else "--:--"
        label = _TYPE_LABELS[item.type]
        flag = "  [client arranged]" if item.client_arranged else ""
        lines.append(f"\n  {start}  {label:<9} {item.title}{flag}")

        if item.type in (ItemType.FLIGHT, ItemType.TRANSFER):
            origin = _place_str(item.origin_place_id, places, item.origin_location_detail)
            destination = _place_str(item.destination_place_id, places, item.destination_location_detail)
            lines.append(f"    {origin}  ->  {destination}")
        elif item.origin_place_id:
            lines.append(f"    @ {_place_str(item.origin_place_id, places)}")

        if item.end_time:
            lines.append(f"    until {_time_str(item.end_time)}")
        if item.description and item.description != item.title:
            lines.append(f"    {item.description}")
        if item.info:
            lines.append(f"    Note: {item.info}")
        if item.confirmation_number:
            lines.append(f"    Ref: {item.confirmation_number}")

    lines.append(f"\n{'=' * 72}")
    counts = ", ".join(
        f"{sum(1 for i in items if i.type == t)} {t.value}" for t in ItemType
    )
    lines.append(f"  Total: {len(items)} items ({counts})")
    lines.append("=" * 72)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# JSON output
# ---------------------------------------------------------------------------

def _item_to_dict(item: Item) -> dict:
    data = asdict(item)
    data["type"] = item.type.value
    data["start_time"] = format_local_datetime(item.start_time) or None
    data["end_time"] = format_local_datetime(item.end_time) or None
    data["created_at"] = item.created_at.isoformat() if item.created_at else None
    return data


def _place_to_dict(place: Place) -> dict:
    data = asdict(place)
    data["kind"] = place.kind.value
    return data


def to_json(trip: Trip, items: List[Item], places: Dict[str, Place], path: Path):
    """Write a trip's items and the places they reference as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    referenced = {
        pid for i in items for pid in (i.origin_place_id, i.destination_place_id) if pid
    }
    data = {
        "trip": {"id": trip.id, "client_name": trip.client_name},
        "items": [_item_to_dict(i) for i in sorted(items, key=_sort_key)],
        "places": [_place_to_dict(places[pid]) for pid in sorted(referenced) if pid in places],
        "summary": {
            "total_items": len(items),
            "by_type": {t.value: sum(1 for i in items if i.type == t) for t in ItemType},
        },
    }
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
