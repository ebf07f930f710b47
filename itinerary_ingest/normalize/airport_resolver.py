"""Resolve IATA airport codes to airport Places via FlightAware AeroAPI.

Unlike general place resolution, an airport the provider cannot confirm is
left unresolved (None) instead of being created from the code alone.
"""

import logging
from typing import Any, Dict, Optional

import requests

from itinerary_ingest.config import (
    FLIGHTAWARE_AIRPORTS_URL,
    FLIGHTAWARE_API_KEY,
    HTTP_TIMEOUT_SECONDS,
)
from itinerary_ingest.models import BatchContext, Place, PlaceKind
from itinerary_ingest.store import ItineraryStore

logger = logging.getLogger(__name__)


class AviationDataClient:
    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_airport(self, iata_code: str) -> Dict[str, Any]:
        resp = self.session.get(
            FLIGHTAWARE_AIRPORTS_URL.format(code=iata_code),
            headers={"x-apikey": self.api_key, "Accept": "application/json"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()


def default_aviation_client() -> Optional[AviationDataClient]:
    if not FLIGHTAWARE_API_KEY:
        logger.warning("FLIGHTAWARE_API_KEY not set, new airports cannot be resolved")
        return None
    return AviationDataClient(FLIGHTAWARE_API_KEY)


def airport_from_data(iata_code: str, data: Dict[str, Any]) -> Place:
    return Place(
        name=data.get("name") or f"{iata_code} Airport",
        kind=PlaceKind.AIRPORT,
        short_code=iata_code,
        description=f"Airport ({iata_code})",
        city=data.get("city"),
        state=data.get("state"),
        country=data.get("country_code"),
        lat=data.get("latitude"),
        lng=data.get("longitude"),
        timezone=data.get("timezone"),
    )


class AirportResolver:
    def __init__(
        self,
        store: ItineraryStore,
        context: BatchContext,
        client: Optional[AviationDataClient] = None,
    ):
        self.store = store
        self.context = context
        self.client = client

    def resolve_airport(self, iata_code: str) -> Optional[str]:
        if not iata_code:
            return None
        code = iata_code.strip().upper()

        cached = self.context.lookup(PlaceKind.AIRPORT, code)
        if cached:
            return cached

        existing = self.store.find_place(PlaceKind.AIRPORT, code)
        if existing:
            logger.info("Found existing airport: %s -> %s", code, existing.id)
            self.context.remember(PlaceKind.AIRPORT, code, existing.id)
            return existing.id

        if self.client is None:
            return None

        try:
            data = self.client.get_airport(code)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Airport lookup failed for %s: %s", code, e)
            return None

        airport = airport_from_data(code, data)
        self.context.add_place(airport, key=code)
        logger.info("Created airport place: %s -> %s", code, airport.id)
        return airport.id
