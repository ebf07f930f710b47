"""Flight schedule enrichment from the OAG flight-instances API."""

import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from itinerary_ingest.config import (
    FLIGHT_LOOKUP_BACKOFF_SECONDS,
    FLIGHT_LOOKUP_MAX_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    OAG_FLIGHT_INSTANCES_URL,
    OAG_PRIMARY_KEY,
)
from itinerary_ingest.models import EnrichedFlight
from itinerary_ingest.normalize.airport_resolver import AirportResolver
from itinerary_ingest.normalize.date_parser import combine_local, iso_date

logger = logging.getLogger(__name__)

_FLIGHT_NUMBER = re.compile(r'^([A-Z]{2,3})(\d+)$')
_SINGLE_CHAR_TERMINAL = re.compile(r'^[0-9A-Za-z]$')


def parse_flight_number(raw: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split e.g. "AA 123" into ("AA", "123"); None unless letters then digits."""
    if not raw:
        return None
    m = _FLIGHT_NUMBER.match(re.sub(r'\s+', '', raw).upper())
    if not m:
        return None
    return m.group(1), m.group(2)


def canonical_flight_number(raw: Optional[str]) -> str:
    """Display form used for titles and the idempotency key: "AA 123"."""
    if not raw:
        return ""
    parsed = parse_flight_number(raw)
    if parsed:
        return f"{parsed[0]} {parsed[1]}"
    return raw.strip()


def normalize_terminal(raw: Optional[str]) -> Optional[str]:
    """Prefix a bare single-character terminal with T; pass longer names through."""
    if raw is None:
        return None
    terminal = str(raw).strip()
    if not terminal:
        return None
    if _SINGLE_CHAR_TERMINAL.match(terminal):
        return f"T{terminal}"
    return terminal


class LookupStatus(str, Enum):
    FOUND = "found"
    EMPTY = "empty"
    EXHAUSTED = "exhausted"


@dataclass
class FlightLookup:
    status: LookupStatus
    instances: List[Dict[str, Any]] = field(default_factory=list)
    attempts: int = 0


class FlightScheduleClient:
    def __init__(
        self,
        subscription_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.subscription_key = subscription_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_instances(
        self,
        carrier_code: str,
        flight_number: str,
        departure_date: str = "",
        arrival_date: str = "",
    ) -> List[Dict[str, Any]]:
        """One request; raises requests.RequestException on transport or HTTP errors."""
        resp = self.session.get(
            OAG_FLIGHT_INSTANCES_URL,
            params={
                "version": "v2",
                "CarrierCode": carrier_code,
                "FlightNumber": flight_number,
                "CodeType": "IATA",
                "DepartureDateTime": departure_date,
                "ArrivalDateTime": arrival_date,
            },
            headers={
                "Subscription-Key": self.subscription_key,
                "Accept": "application/json",
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json().get("data") or []


def default_schedule_client() -> Optional[FlightScheduleClient]:
    if not OAG_PRIMARY_KEY:
        logger.warning("OAG_PRIMARY_KEY not set, flights will keep extracted fields only")
        return None
    return FlightScheduleClient(OAG_PRIMARY_KEY)


class FlightEnricher:
    def __init__(
        self,
        client: Optional[FlightScheduleClient],
        airport_resolver: AirportResolver,
        max_retries: int = FLIGHT_LOOKUP_MAX_RETRIES,
        backoff_seconds: float = FLIGHT_LOOKUP_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.airport_resolver = airport_resolver
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def lookup(
        self,
        carrier_code: str,
        flight_number: str,
        departure_date: str = "",
        arrival_date: str = "",
    ) -> FlightLookup:
        """Query the provider with linear backoff between attempts."""
        ident = f"{carrier_code}{flight_number}"
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            if attempt > 0:
                logger.info("Retrying schedule lookup for %s (attempt %d)", ident, attempt + 1)
                self.sleep(self.backoff_seconds * attempt)
            try:
                instances = self.client.fetch_instances(
                    carrier_code, flight_number, departure_date, arrival_date
                )
            except (requests.RequestException, ValueError) as e:
                logger.warning("Schedule lookup error for %s (attempt %d): %s", ident, attempt + 1, e)
                continue
            status = LookupStatus.FOUND if instances else LookupStatus.EMPTY
            return FlightLookup(status=status, instances=instances, attempts=attempt + 1)

        logger.warning("Giving up on schedule lookup for %s after %d attempts", ident, attempts)
        return FlightLookup(status=LookupStatus.EXHAUSTED, attempts=attempts)

    def enrich(
        self,
        flight_number: Optional[str],
        departure_hint=None,
        arrival_hint=None,
    ) -> Optional[EnrichedFlight]:
        """Return provider data for the flight, or None if none is available."""
        if self.client is None:
            return None

        parsed = parse_flight_number(flight_number)
        if not parsed:
            logger.warning("Invalid flight number format, skipping enrichment: %r", flight_number)
            return None
        carrier_code, number = parsed

        result = self.lookup(carrier_code, number, iso_date(departure_hint), iso_date(arrival_hint))
        if result.status != LookupStatus.FOUND:
            return None
        return self._map_instance(result.instances[0])

    def _map_instance(self, instance: Dict[str, Any]) -> EnrichedFlight:
        departure = instance.get("departure") or {}
        arrival = instance.get("arrival") or {}
        carrier = instance.get("carrier") or {}

        enriched = EnrichedFlight(
            start_time=_local_time(departure),
            end_time=_local_time(arrival),
            carrier_code=carrier.get("iata"),
            flight_number=str(instance["flightNumber"]) if instance.get("flightNumber") else None,
            origin_code=(departure.get("airport") or {}).get("iata"),
            destination_code=(arrival.get("airport") or {}).get("iata"),
            origin_terminal=normalize_terminal(departure.get("terminal")),
            destination_terminal=normalize_terminal(arrival.get("terminal")),
        )
        if enriched.origin_code:
            enriched.origin_place_id = self.airport_resolver.resolve_airport(enriched.origin_code)
        if enriched.destination_code:
            enriched.destination_place_id = self.airport_resolver.resolve_airport(enriched.destination_code)
        return enriched


def _local_time(endpoint: Dict[str, Any]):
    return combine_local(
        (endpoint.get("date") or {}).get("local"),
        (endpoint.get("time") or {}).get("local"),
    )
