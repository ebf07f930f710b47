from datetime import datetime, timezone

import pytest
import requests

from conftest import FakeResponse, FakeSession, airport_payload, oag_instance
from itinerary_ingest.normalize.airport_resolver import AirportResolver, AviationDataClient
from itinerary_ingest.normalize.flight_enricher import (
    FlightEnricher,
    FlightScheduleClient,
    LookupStatus,
    canonical_flight_number,
    normalize_terminal,
    parse_flight_number,
)


def _enricher(store, context, schedule_responses, airport_responses=(), sleep=None):
    schedule_session = FakeSession(*schedule_responses)
    airports = AirportResolver(
        store, context, AviationDataClient("key", session=FakeSession(*airport_responses))
    )
    enricher = FlightEnricher(
        FlightScheduleClient("sub", session=schedule_session),
        airports,
        sleep=sleep or (lambda s: None),
    )
    return enricher, schedule_session


@pytest.mark.parametrize("raw, expected", [
    ("AA123", ("AA", "123")),
    ("aa 123", ("AA", "123")),
    ("FI 622", ("FI", "622")),
    ("BAW 12", ("BAW", "12")),
    ("123", None),
    ("A1 23", None),
    ("", None),
    (None, None),
])
def test_parse_flight_number(raw, expected):
    assert parse_flight_number(raw) == expected


def test_canonical_flight_number():
    assert canonical_flight_number("AA123") == "AA 123"
    assert canonical_flight_number(" 4U 9 ") == "4U 9"
    assert canonical_flight_number(None) == ""


@pytest.mark.parametrize("raw, expected", [
    ("2", "T2"),
    ("B", "TB"),
    ("Main Terminal", "Main Terminal"),
    ("T5", "T5"),
    ("", None),
    (None, None),
])
def test_normalize_terminal(raw, expected):
    assert normalize_terminal(raw) == expected


def test_enrich_maps_first_instance(store, context):
    enricher, session = _enricher(
        store, context,
        [FakeResponse({"data": [
            oag_instance("FI", "622", "JFK", "KEF", "2025-10-06T20:30", "2025-10-07T06:15",
                         dep_terminal="7", arr_terminal="Main Terminal"),
            oag_instance("FI", "622", "JFK", "KEF", "2025-10-07T20:30", "2025-10-08T06:15"),
        ]})],
        [
            FakeResponse(airport_payload("JFK", "John F Kennedy Intl", "New York")),
            FakeResponse(airport_payload("KEF", "Keflavik International Airport", "Reykjavik")),
        ],
    )

    enriched = enricher.enrich("FI622", "2025-10-06T20:00:00", None)

    assert enriched.start_time == datetime(2025, 10, 6, 20, 30, tzinfo=timezone.utc)
    assert enriched.end_time == datetime(2025, 10, 7, 6, 15, tzinfo=timezone.utc)
    assert enriched.carrier_code == "FI"
    assert enriched.flight_number == "622"
    assert enriched.origin_terminal == "T7"
    assert enriched.destination_terminal == "Main Terminal"
    assert context.get_place(enriched.origin_place_id).short_code == "JFK"
    assert context.get_place(enriched.destination_place_id).short_code == "KEF"

    params = session.calls[0][2]["params"]
    assert params["CarrierCode"] == "FI"
    assert params["FlightNumber"] == "622"
    assert params["CodeType"] == "IATA"
    assert params["DepartureDateTime"] == "2025-10-06"
    assert params["ArrivalDateTime"] == ""
    assert session.calls[0][2]["headers"]["Subscription-Key"] == "sub"


def test_retries_with_linear_backoff_then_succeeds(store, context, no_sleep):
    enricher, session = _enricher(
        store, context,
        [
            requests.ConnectionError("reset"),
            FakeResponse({}, status_code=503),
            FakeResponse({"data": [oag_instance("AA", "100", "JFK", "LHR", "2024-03-15T18:00", "2024-03-16T06:00")]}),
        ],
        [FakeResponse({}, status_code=404), FakeResponse({}, status_code=404)],
        sleep=no_sleep.sleep,
    )

    result = enricher.lookup("AA", "100")

    assert result.status == LookupStatus.FOUND
    assert result.attempts == 3
    assert no_sleep.delays == [1.0, 2.0]
    assert len(session.calls) == 3


def test_gives_up_after_three_attempts(store, context, no_sleep):
    enricher, session = _enricher(
        store, context,
        [requests.Timeout("slow")] * 3,
        sleep=no_sleep.sleep,
    )

    assert enricher.enrich("AA 100") is None
    assert len(session.calls) == 3
    assert no_sleep.delays == [1.0, 2.0]


def test_empty_result_is_not_retried(store, context, no_sleep):
    enricher, session = _enricher(store, context, [FakeResponse({"data": []})], sleep=no_sleep.sleep)

    result = enricher.lookup("AA", "100")

    assert result.status == LookupStatus.EMPTY
    assert len(session.calls) == 1
    assert no_sleep.delays == []


def test_malformed_number_skips_lookup(store, context):
    enricher, session = _enricher(store, context, [])
    assert enricher.enrich("Flight to Paris") is None
    assert session.calls == []


def test_unresolvable_airport_leaves_place_empty(store, context):
    enricher, _ = _enricher(
        store, context,
        [FakeResponse({"data": [oag_instance("AA", "100", "JFK", "ZZZ", "2024-03-15T18:00", "2024-03-16T06:00")]})],
        [
            FakeResponse(airport_payload("JFK", "John F Kennedy Intl", "New York")),
            FakeResponse({}, status_code=404),
        ],
    )
    enriched = enricher.enrich("AA100")
    assert enriched.origin_place_id is not None
    assert enriched.destination_place_id is None
    assert enriched.destination_code == "ZZZ"


def test_no_client_means_no_enrichment(store, context):
    airports = AirportResolver(store, context, client=None)
    assert FlightEnricher(None, airports).enrich("AA100") is None
