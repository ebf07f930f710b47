"""Orchestrates one batch: extract -> normalize -> link transfers -> persist."""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from itinerary_ingest.assemble.dedup import flight_key, is_duplicate_flight
from itinerary_ingest.assemble.transfer_linker import link_transfers
from itinerary_ingest.errors import IngestError, ProviderHardError
from itinerary_ingest.extract.cache import ExtractionCache
from itinerary_ingest.extract.documents import PDF_MIME_TYPE, document_hash, load_document_bytes
from itinerary_ingest.extract.llm_extractor import DocumentExtractor, parse_extraction
from itinerary_ingest.models import (
    BatchContext,
    BatchResult,
    Document,
    DocumentStatus,
    Item,
    ItemDraft,
    ItemType,
    Place,
    Trip,
)
from itinerary_ingest.normalize.airport_resolver import AirportResolver, AviationDataClient
from itinerary_ingest.normalize.flight_enricher import FlightEnricher, FlightScheduleClient
from itinerary_ingest.normalize.items import ItemNormalizer, item_type_of
from itinerary_ingest.normalize.place_resolver import GooglePlacesClient, PlaceResolver
from itinerary_ingest.store import ItineraryStore

logger = logging.getLogger(__name__)

_ELIGIBLE_STATUSES = (DocumentStatus.UPLOADED, DocumentStatus.FAILED)


class BatchOrchestrator:
    def __init__(
        self,
        store: ItineraryStore,
        extractor: DocumentExtractor,
        places_client: Optional[GooglePlacesClient] = None,
        aviation_client: Optional[AviationDataClient] = None,
        schedule_client: Optional[FlightScheduleClient] = None,
        cache: Optional[ExtractionCache] = None,
        blob_reader: Callable[[Document], bytes] = load_document_bytes,
        sleep: Callable[[float], None] = time.sleep,
        verbose: bool = False,
    ):
        self.store = store
        self.extractor = extractor
        self.places_client = places_client
        self.aviation_client = aviation_client
        self.schedule_client = schedule_client
        self.cache = cache
        self.blob_reader = blob_reader
        self.sleep = sleep
        self.verbose = verbose

    def log(self, msg: str):
        if self.verbose:
            print(msg, file=sys.stderr)

    def run(self, trip_id: str) -> BatchResult:
        """Process every uploaded or previously failed PDF of the trip.

        Per-document errors mark that document failed and the batch moves on.
        ProviderHardError marks the current document failed and is re-raised
        with the partial BatchResult attached as ``.result``.
        """
        trip = self.store.get_trip(trip_id)
        if trip is None:
            raise IngestError(f"Trip not found: {trip_id}")

        documents = self.store.documents_for_trip(
            trip_id, statuses=_ELIGIBLE_STATUSES, mime_type=PDF_MIME_TYPE
        )
        result = BatchResult(trip_id=trip_id)
        # (kind, name) -> place id, for places stored by earlier documents of this run
        resolved = {}
        self.log(f"Trip {trip.client_name} ({trip_id}): {len(documents)} documents to process")

        for i, document in enumerate(documents):
            self.log(f"  [{i + 1}/{len(documents)}] {document.original_name}")
            try:
                self.process_document(trip, document, result, resolved)
            except ProviderHardError as e:
                self._fail(document, str(e), result)
                e.result = result
                raise
            except Exception as e:
                logger.debug("Traceback for %s", document.original_name, exc_info=True)
                self._fail(document, str(e), result)
                continue

        self.log(
            f"  Done: {len(result.processed_documents)} processed, "
            f"{len(result.failed_documents)} failed, {len(result.created_items)} items, "
            f"{len(result.created_places)} places, {len(result.skipped_flights)} duplicate flights skipped"
        )
        return result

    def process_document(
        self,
        trip: Trip,
        document: Document,
        result: BatchResult,
        resolved: Optional[Dict] = None,
    ):
        """Extract, normalize and persist one document.

        ``resolved`` carries place lookups across documents; it is only
        updated once this document's places are stored.
        """
        self.store.update_document(document.id, status=DocumentStatus.PROCESSING, error_message=None)
        content = self.blob_reader(document)

        index_id = self._ensure_index(trip)
        file_id = self.extractor.ensure_registered(index_id, document, content)
        if file_id != document.index_file_id:
            self.store.update_document(document.id, index_file_id=file_id)

        content_hash = document_hash(content)
        raw_text = self.cache.get(content_hash) if self.cache is not None else None
        from_cache = raw_text is not None
        if from_cache:
            self.log("    extraction cache hit")
        else:
            raw_text = self.extractor.extract(index_id, document)

        records, ok = parse_extraction(raw_text, document.original_name)
        if not ok:
            self.log("    could not parse extraction, created a review placeholder")
        elif self.cache is not None and not from_cache:
            # Unparsable output is never cached, so a re-run asks the model again
            self.cache.put(content_hash, raw_text)

        context = BatchContext(trip_id=trip.id, resolved=dict(resolved or {}))
        pending = self._normalize(context, records, result)
        link_transfers(context.drafts, self._place_map(context))
        created = self._persist(trip.id, context, pending, result)
        if resolved is not None:
            resolved.update(context.resolved)

        self.store.update_document(
            document.id,
            status=DocumentStatus.PROCESSED,
            extracted_data=raw_text,
            error_message=None,
        )
        result.processed_documents.append(document.original_name)
        self.log(f"    {len(records)} records -> {created} items, {len(context.created_places)} new places")

    def _ensure_index(self, trip: Trip) -> str:
        index_id = self.extractor.ensure_index(trip)
        if index_id != trip.index_id:
            self.store.update_trip(trip.id, index_id=index_id)
        return index_id

    def _normalize(
        self,
        context: BatchContext,
        records: List[Dict],
        result: BatchResult,
    ) -> List[Tuple[ItemDraft, str]]:
        """Draft every record; returns (draft, flight key) pairs in creation order."""
        place_resolver = PlaceResolver(self.store, context, self.places_client)
        airport_resolver = AirportResolver(self.store, context, self.aviation_client)
        enricher = FlightEnricher(self.schedule_client, airport_resolver, sleep=self.sleep)
        normalizer = ItemNormalizer(place_resolver, enricher)

        pending = []
        transfers = []
        for raw in records:
            item_type = item_type_of(raw)
            if item_type == ItemType.TRANSFER:
                # Linked against this batch's flights and hotels, so drafted last
                transfers.append(raw)
                continue

            key = ""
            if item_type == ItemType.FLIGHT:
                key = flight_key(raw.get("flightNumber"))
                if is_duplicate_flight(self.store, context.trip_id, key, context.drafts):
                    logger.info("Flight %s already on trip %s, skipping", key, context.trip_id)
                    result.skipped_flights.append(key)
                    continue

            draft = normalizer.normalize(raw)
            if draft is not None:
                context.drafts.append(draft)
                pending.append((draft, key))

        for raw in transfers:
            draft = normalizer.normalize(raw)
            context.drafts.append(draft)
            pending.append((draft, ""))
        return pending

    def _place_map(self, context: BatchContext) -> Dict[str, Place]:
        places = {}
        for draft in context.drafts:
            for place_id in (draft.origin_place_id, draft.destination_place_id):
                if not place_id or place_id in places:
                    continue
                place = context.get_place(place_id) or self.store.get_place(place_id)
                if place is not None:
                    places[place_id] = place
        return places

    def _persist(
        self,
        trip_id: str,
        context: BatchContext,
        pending: List[Tuple[ItemDraft, str]],
        result: BatchResult,
    ) -> int:
        # Places first so every item reference points at a stored record
        for place in context.created_places:
            self.store.add_place(place)
            result.created_places.append(place)

        now = datetime.now(timezone.utc)
        created = 0
        for draft, key in pending:
            if key and is_duplicate_flight(self.store, trip_id, key):
                logger.info("Flight %s appeared on trip %s meanwhile, skipping", key, trip_id)
                result.skipped_flights.append(key)
                continue
            item = self.store.add_item(Item.from_draft(draft, trip_id, now))
            result.created_items.append(item)
            created += 1
        return created

    def _fail(self, document: Document, message: str, result: BatchResult):
        logger.error("Document %s failed: %s", document.original_name, message)
        self.store.update_document(document.id, status=DocumentStatus.FAILED, error_message=message)
        result.failed_documents.append(document.original_name)
        self.log(f"    FAILED: {message}")
