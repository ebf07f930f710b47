"""Shared fakes for HTTP providers and the extraction client."""

from types import SimpleNamespace

import pytest
import requests

from itinerary_ingest.models import BatchContext, Trip
from itinerary_ingest.store import ItineraryStore


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload if payload is not None else {}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        return self.payload


class FakeSession:
    """Returns queued responses in order; an Exception in the queue is raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"unexpected {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


class FakeExtractor:
    """Stands in for DocumentExtractor; maps document names to raw model text."""

    def __init__(self, outputs=None, errors=None):
        self.outputs = outputs or {}
        self.errors = errors or {}
        self.index_calls = 0
        self.registered = []
        self.extracted = []

    def ensure_index(self, trip):
        self.index_calls += 1
        return trip.index_id or "vs_trip"

    def ensure_registered(self, index_id, document, content):
        self.registered.append(document.original_name)
        return f"file_{document.original_name}"

    def extract(self, index_id, document):
        self.extracted.append(document.original_name)
        if document.original_name in self.errors:
            raise self.errors[document.original_name]
        return self.outputs[document.original_name]


def places_payload(*candidates):
    return {"places": list(candidates)}


def google_candidate(place_id, name, city="Chicago", country="US", offset=-300):
    return {
        "id": place_id,
        "displayName": {"text": name},
        "formattedAddress": f"1 Main St, {city}",
        "addressComponents": [
            {"longText": "1", "shortText": "1", "types": ["street_number"]},
            {"longText": "Main St", "shortText": "Main St", "types": ["route"]},
            {"longText": city, "shortText": city, "types": ["locality", "political"]},
            {"longText": "Illinois", "shortText": "IL", "types": ["administrative_area_level_1"]},
            {"longText": "United States", "shortText": country, "types": ["country"]},
            {"longText": "60601", "shortText": "60601", "types": ["postal_code"]},
        ],
        "location": {"latitude": 41.88, "longitude": -87.62},
        "utcOffsetMinutes": offset,
        "internationalPhoneNumber": "+1 312-555-0100",
        "websiteUri": "https://example.com",
    }


def airport_payload(code, name, city):
    return {
        "code_iata": code,
        "name": name,
        "city": city,
        "state": None,
        "country_code": "US",
        "latitude": 40.0,
        "longitude": -73.0,
        "timezone": "America/New_York",
    }


def oag_instance(carrier, number, origin, destination, dep, arr, dep_terminal=None, arr_terminal=None):
    dep_date, dep_time = dep.split("T")
    arr_date, arr_time = arr.split("T")
    return {
        "carrier": {"iata": carrier},
        "flightNumber": int(number),
        "departure": {
            "airport": {"iata": origin},
            "terminal": dep_terminal,
            "date": {"local": dep_date},
            "time": {"local": dep_time},
        },
        "arrival": {
            "airport": {"iata": destination},
            "terminal": arr_terminal,
            "date": {"local": arr_date},
            "time": {"local": arr_time},
        },
    }


@pytest.fixture
def store():
    return ItineraryStore()


@pytest.fixture
def trip(store):
    return store.add_trip(Trip(client_name="Jane Doe"))


@pytest.fixture
def context(trip):
    return BatchContext(trip_id=trip.id)


@pytest.fixture
def no_sleep():
    delays = []
    sleeper = delays.append
    return SimpleNamespace(delays=delays, sleep=sleeper)
