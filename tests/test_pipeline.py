import json

import pytest

from conftest import (
    FakeExtractor,
    FakeResponse,
    FakeSession,
    airport_payload,
    google_candidate,
    oag_instance,
    places_payload,
)
from itinerary_ingest.errors import ExtractionError, IngestError, ProviderHardError
from itinerary_ingest.extract.cache import ExtractionCache
from itinerary_ingest.models import Document, DocumentStatus, ItemType, PlaceKind
from itinerary_ingest.normalize.airport_resolver import AviationDataClient
from itinerary_ingest.normalize.flight_enricher import FlightScheduleClient
from itinerary_ingest.normalize.place_resolver import GooglePlacesClient
from itinerary_ingest.pipeline import BatchOrchestrator


def items_json(*items):
    return json.dumps({"items": list(items)})


FLIGHT = {
    "type": "flight",
    "flightNumber": "AA100",
    "departureDateTime": "2024-03-15T08:00:00",
    "arrivalDateTime": "2024-03-15T14:00:00",
    "confirmationNumber": "PNR1",
}
HOTEL = {
    "type": "hotel",
    "hotelName": "Marriott Downtown",
    "checkInDateTime": "2024-03-15T15:00:00",
    "checkOutDateTime": "2024-03-18T11:00:00",
}
TRANSFER = {
    "type": "transfer",
    "contactName": "Elite Car Service",
    "pickupDateTime": "2024-03-15T14:30:00",
    "pickupLocation": "JFK",
    "dropoffLocation": "Marriott Downtown",
}
ACTIVITY = {
    "type": "activity",
    "activityName": "Full Day Tour Wonders of the South Coast & Katla Ice Cave",
    "startDateTime": "2024-03-16T09:00:00",
}


def add_document(store, trip, name, status=DocumentStatus.UPLOADED, mime_type="application/pdf"):
    return store.add_document(Document(
        trip_id=trip.id, original_name=name, path=f"/docs/{name}", status=status, mime_type=mime_type,
    ))


def orchestrator(store, extractor, **kwargs):
    kwargs.setdefault("blob_reader", lambda d: d.original_name.encode())
    kwargs.setdefault("sleep", lambda s: None)
    return BatchOrchestrator(store, extractor, **kwargs)


def test_document_processed_end_to_end(store, trip):
    doc = add_document(store, trip, "itinerary.pdf")
    raw = items_json(FLIGHT, HOTEL, TRANSFER, ACTIVITY)
    extractor = FakeExtractor({"itinerary.pdf": raw})

    result = orchestrator(store, extractor).run(trip.id)

    assert result.processed_documents == ["itinerary.pdf"]
    assert result.failed_documents == []
    assert len(result.created_items) == 4
    stored = store.get_document(doc.id)
    assert stored.status == DocumentStatus.PROCESSED
    assert stored.extracted_data == raw
    assert stored.index_file_id == "file_itinerary.pdf"
    assert store.get_trip(trip.id).index_id == "vs_trip"

    activity = store.find_items(trip.id, item_type=ItemType.ACTIVITY)[0]
    assert activity.title == "Full Day Tour Wonders South"
    flight = store.find_items(trip.id, item_type=ItemType.FLIGHT)[0]
    assert flight.title == "AA 100"
    assert flight.trip_id == trip.id
    assert flight.created_at is not None


def test_places_persisted_before_items_reference_them(store, trip):
    add_document(store, trip, "itinerary.pdf")
    extractor = FakeExtractor({"itinerary.pdf": items_json(HOTEL, TRANSFER)})

    result = orchestrator(store, extractor).run(trip.id)

    assert [p.name for p in result.created_places] == ["Marriott Downtown"]
    for item in result.created_items:
        for place_id in (item.origin_place_id, item.destination_place_id):
            assert place_id is None or store.get_place(place_id) is not None
    transfer = store.find_items(trip.id, item_type=ItemType.TRANSFER)[0]
    assert transfer.destination_place_id == result.created_places[0].id


def test_rerun_creates_no_duplicate_flights(store, trip):
    doc = add_document(store, trip, "itinerary.pdf")
    extractor = FakeExtractor({"itinerary.pdf": items_json(FLIGHT)})
    orchestrator(store, extractor).run(trip.id)

    store.update_document(doc.id, status=DocumentStatus.UPLOADED)
    result = orchestrator(store, extractor).run(trip.id)

    assert result.created_items == []
    assert result.skipped_flights == ["AA 100"]
    assert len(store.find_items(trip.id, item_type=ItemType.FLIGHT)) == 1
    assert store.get_document(doc.id).status == DocumentStatus.PROCESSED


def test_flight_repeated_in_one_document_created_once(store, trip):
    add_document(store, trip, "itinerary.pdf")
    repeat = dict(FLIGHT, flightNumber="aa 100")
    extractor = FakeExtractor({"itinerary.pdf": items_json(FLIGHT, repeat)})

    result = orchestrator(store, extractor).run(trip.id)

    assert len(store.find_items(trip.id, item_type=ItemType.FLIGHT)) == 1
    assert result.skipped_flights == ["AA 100"]


def test_duplicate_check_runs_before_enrichment(store, trip):
    add_document(store, trip, "first.pdf")
    add_document(store, trip, "second.pdf")
    schedule = FakeSession(FakeResponse({"data": []}))
    extractor = FakeExtractor({
        "first.pdf": items_json(FLIGHT),
        "second.pdf": items_json(FLIGHT),
    })

    orchestrator(store, extractor, schedule_client=FlightScheduleClient("sub", session=schedule)).run(trip.id)

    # Only the first document's flight reached the schedule provider
    assert len(schedule.calls) == 1


def test_failed_document_does_not_stop_batch(store, trip):
    bad = add_document(store, trip, "bad.pdf")
    good = add_document(store, trip, "good.pdf")
    extractor = FakeExtractor(
        {"good.pdf": items_json(ACTIVITY)},
        errors={"bad.pdf": ExtractionError("No analysis result for bad.pdf")},
    )

    result = orchestrator(store, extractor).run(trip.id)

    assert result.failed_documents == ["bad.pdf"]
    assert result.processed_documents == ["good.pdf"]
    assert store.get_document(bad.id).status == DocumentStatus.FAILED
    assert store.get_document(bad.id).error_message == "No analysis result for bad.pdf"
    assert store.get_document(good.id).status == DocumentStatus.PROCESSED


def test_failed_document_retried_on_next_run(store, trip):
    doc = add_document(store, trip, "retry.pdf", status=DocumentStatus.FAILED)
    extractor = FakeExtractor({"retry.pdf": items_json(ACTIVITY)})

    result = orchestrator(store, extractor).run(trip.id)

    assert result.processed_documents == ["retry.pdf"]
    assert store.get_document(doc.id).error_message is None


def test_provider_hard_error_aborts_run(store, trip):
    first = add_document(store, trip, "first.pdf")
    second = add_document(store, trip, "second.pdf")
    extractor = FakeExtractor(
        {"second.pdf": items_json(ACTIVITY)},
        errors={"first.pdf": ProviderHardError(ProviderHardError.QUOTA, "OpenAI quota exceeded")},
    )

    with pytest.raises(ProviderHardError) as exc:
        orchestrator(store, extractor).run(trip.id)

    assert exc.value.result.failed_documents == ["first.pdf"]
    assert store.get_document(first.id).status == DocumentStatus.FAILED
    assert store.get_document(second.id).status == DocumentStatus.UPLOADED
    assert extractor.extracted == ["first.pdf"]


def test_unparsable_output_creates_review_placeholder(store, trip):
    doc = add_document(store, trip, "scan.pdf")
    extractor = FakeExtractor({"scan.pdf": "I could not read this document."})

    result = orchestrator(store, extractor).run(trip.id)

    assert store.get_document(doc.id).status == DocumentStatus.PROCESSED
    [item] = result.created_items
    assert item.type == ItemType.ACTIVITY
    assert item.title == "Document: scan.pdf"
    assert "I could not read this document." in item.info
    assert item.data.extra["needsReview"] is True


def test_only_eligible_pdfs_processed(store, trip):
    add_document(store, trip, "done.pdf", status=DocumentStatus.PROCESSED)
    add_document(store, trip, "skip.pdf", status=DocumentStatus.IGNORED)
    add_document(store, trip, "photo.jpg", mime_type="image/jpeg")
    add_document(store, trip, "new.pdf")
    extractor = FakeExtractor({"new.pdf": items_json(ACTIVITY)})

    result = orchestrator(store, extractor).run(trip.id)

    assert result.processed_documents == ["new.pdf"]
    assert extractor.extracted == ["new.pdf"]


def test_extraction_cache_skips_model_call(store, trip, tmp_path):
    cache = ExtractionCache(tmp_path / "cache.json")
    add_document(store, trip, "itinerary.pdf")
    extractor = FakeExtractor({"itinerary.pdf": items_json(ACTIVITY)})
    orchestrator(store, extractor, cache=cache).run(trip.id)

    copy = add_document(store, trip, "copy.pdf")
    rerun = FakeExtractor()
    orchestrator(store, rerun, cache=cache, blob_reader=lambda d: b"itinerary.pdf").run(trip.id)

    assert rerun.extracted == []
    assert rerun.registered == ["copy.pdf"]
    assert store.get_document(copy.id).status == DocumentStatus.PROCESSED


def test_enriched_flight_links_transfer_to_airport(store, trip):
    add_document(store, trip, "itinerary.pdf")
    schedule = FakeSession(FakeResponse({"data": [
        oag_instance("AA", "100", "LHR", "JFK", "2024-03-15T08:05", "2024-03-15T14:10", arr_terminal="4"),
    ]}))
    aviation = FakeSession(
        FakeResponse(airport_payload("LHR", "London Heathrow", "London")),
        FakeResponse(airport_payload("JFK", "John F Kennedy Intl", "New York")),
    )
    extractor = FakeExtractor({"itinerary.pdf": items_json(TRANSFER, FLIGHT)})

    orchestrator(
        store, extractor,
        schedule_client=FlightScheduleClient("sub", session=schedule),
        aviation_client=AviationDataClient("key", session=aviation),
    ).run(trip.id)

    flight = store.find_items(trip.id, item_type=ItemType.FLIGHT)[0]
    transfer = store.find_items(trip.id, item_type=ItemType.TRANSFER)[0]
    jfk = store.find_place(PlaceKind.AIRPORT, "JFK")

    assert flight.destination_place_id == jfk.id
    assert flight.destination_location_detail == "T4"
    assert transfer.origin_place_id == jfk.id


def test_unknown_trip_raises(store):
    with pytest.raises(IngestError):
        orchestrator(store, FakeExtractor()).run("missing")


RITZ = {"type": "hotel", "hotelName": "Ritz Carlton"}


def test_hotel_in_two_documents_creates_one_place(store, trip):
    add_document(store, trip, "booking.pdf")
    add_document(store, trip, "confirmation.pdf")
    extractor = FakeExtractor({
        "booking.pdf": items_json(RITZ),
        "confirmation.pdf": items_json(RITZ),
    })

    result = orchestrator(store, extractor).run(trip.id)

    assert len(result.created_places) == 1
    hotels = store.find_items(trip.id, item_type=ItemType.HOTEL)
    assert len(hotels) == 2
    assert hotels[0].origin_place_id == hotels[1].origin_place_id == result.created_places[0].id


def test_hotel_in_two_documents_searched_once(store, trip):
    add_document(store, trip, "booking.pdf")
    add_document(store, trip, "confirmation.pdf")
    session = FakeSession(FakeResponse(places_payload(google_candidate("g-ritz", "The Ritz-Carlton"))))
    extractor = FakeExtractor({
        "booking.pdf": items_json(RITZ),
        "confirmation.pdf": items_json(RITZ),
    })

    result = orchestrator(
        store, extractor, places_client=GooglePlacesClient("key", session=session),
    ).run(trip.id)

    assert len(session.calls) == 1
    assert [p.external_id for p in result.created_places] == ["g-ritz"]


def test_places_of_failed_document_not_reused(store, trip, monkeypatch):
    add_document(store, trip, "broken.pdf")
    add_document(store, trip, "booking.pdf")
    extractor = FakeExtractor({
        "broken.pdf": items_json(RITZ),
        "booking.pdf": items_json(RITZ),
    })
    add_place = store.add_place
    calls = []

    def add_place_once_failing(place):
        calls.append(place)
        if len(calls) == 1:
            raise OSError("disk full")
        return add_place(place)

    monkeypatch.setattr(store, "add_place", add_place_once_failing)
    result = orchestrator(store, extractor).run(trip.id)

    assert result.failed_documents == ["broken.pdf"]
    assert result.processed_documents == ["booking.pdf"]
    [hotel] = store.find_items(trip.id, item_type=ItemType.HOTEL)
    assert store.get_place(hotel.origin_place_id) is not None


def test_unparsable_output_not_cached(store, trip, tmp_path):
    cache = ExtractionCache(tmp_path / "cache.json")
    add_document(store, trip, "scan.pdf")
    orchestrator(store, FakeExtractor({"scan.pdf": "I could not read this document."}), cache=cache).run(trip.id)

    copy = add_document(store, trip, "rescan.pdf")
    rerun = FakeExtractor({"rescan.pdf": items_json(ACTIVITY)})
    result = orchestrator(store, rerun, cache=cache, blob_reader=lambda d: b"scan.pdf").run(trip.id)

    assert rerun.extracted == ["rescan.pdf"]
    assert [i.type for i in result.created_items] == [ItemType.ACTIVITY]
    assert result.created_items[0].title == "Full Day Tour Wonders South"
    assert store.get_document(copy.id).status == DocumentStatus.PROCESSED
