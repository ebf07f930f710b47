#!/usr/bin/env python3
"""CLI entry point for the itinerary ingest pipeline.

Usage:
    python ingest_itinerary.py --client-name "Jane Doe" --documents docs/
    python ingest_itinerary.py --trip-id <id> [--documents docs/] [--format json]

Options:
    --trip-id ID        Existing trip to process
    --client-name NAME  Create a new trip for this client
    --documents DIR     Register every PDF in DIR against the trip first
    --store PATH        JSON store file (default: from config)
    --output-dir DIR    Directory for output files (default: output/)
    --format FMT        Output format: timeline, json, all (default: all)
    --no-cache          Always call the extraction model
    --dry-run           Register documents and show what would be processed
    --verbose           Progress and info logging on stderr
"""

import argparse
import logging
import sys
from pathlib import Path

from itinerary_ingest.config import EXTRACTION_CACHE_PATH, OUTPUT_DIR, STORE_PATH
from itinerary_ingest.errors import IngestError, ProviderHardError
from itinerary_ingest.extract.cache import ExtractionCache
from itinerary_ingest.extract.documents import PDF_MIME_TYPE, discover_documents
from itinerary_ingest.extract.llm_extractor import DocumentExtractor
from itinerary_ingest.models import DocumentStatus, Trip
from itinerary_ingest.normalize.airport_resolver import default_aviation_client
from itinerary_ingest.normalize.flight_enricher import default_schedule_client
from itinerary_ingest.normalize.place_resolver import default_places_client
from itinerary_ingest.output import format_timeline, to_json
from itinerary_ingest.pipeline import BatchOrchestrator
from itinerary_ingest.store import ItineraryStore

EXIT_PROVIDER_ERROR = 2

_HARD_ERROR_MESSAGES = {
    ProviderHardError.QUOTA: "The extraction service quota is exhausted. Add credit and re-run; "
                             "processed documents will not be repeated.",
    ProviderHardError.AUTH: "The extraction service rejected the API key. Check OPENAI_API_KEY.",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Turn travel document PDFs into a normalized trip itinerary.",
    )
    trip = parser.add_mutually_exclusive_group(required=True)
    trip.add_argument("--trip-id", help="Existing trip to process")
    trip.add_argument("--client-name", help="Create a new trip for this client")
    parser.add_argument(
        "--documents",
        type=Path,
        help="Directory of PDFs to register against the trip",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=STORE_PATH,
        help="JSON store file",
    )
    parser.add_argument(
        "--output-dir",
        default=str(OUTPUT_DIR),
        help="Output directory",
    )
    parser.add_argument(
        "--format",
        choices=["timeline", "json", "all"],
        default="all",
        help="Output format (timeline, json, all)",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not read or write the extraction cache",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the documents that would be processed, don't call any provider",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print progress and info logs",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = ItineraryStore(args.store)
    if args.client_name:
        trip = store.add_trip(Trip(client_name=args.client_name))
        print(f"Created trip {trip.id} for {trip.client_name}")
    else:
        trip = store.get_trip(args.trip_id)
        if trip is None:
            print(f"Trip not found: {args.trip_id}", file=sys.stderr)
            return 1

    if args.documents:
        added = discover_documents(args.documents, trip.id, store)
        print(f"Registered {len(added)} new documents from {args.documents}")

    if args.dry_run:
        eligible = store.documents_for_trip(
            trip.id,
            statuses=(DocumentStatus.UPLOADED, DocumentStatus.FAILED),
            mime_type=PDF_MIME_TYPE,
        )
        print(f"\nDry run: {len(eligible)} documents would be processed for trip {trip.id}")
        for document in eligible:
            print(f"  {document.original_name} [{document.status.value}]")
        return 0

    orchestrator = BatchOrchestrator(
        store,
        DocumentExtractor(),
        places_client=default_places_client(),
        aviation_client=default_aviation_client(),
        schedule_client=default_schedule_client(),
        cache=None if args.no_cache else ExtractionCache(EXTRACTION_CACHE_PATH),
        verbose=args.verbose,
    )

    try:
        result = orchestrator.run(trip.id)
    except ProviderHardError as e:
        print(_HARD_ERROR_MESSAGES.get(e.kind, str(e)), file=sys.stderr)
        if e.result is not None:
            print(
                f"Stopped after {len(e.result.processed_documents)} processed documents.",
                file=sys.stderr,
            )
        return EXIT_PROVIDER_ERROR
    except IngestError as e:
        print(str(e), file=sys.stderr)
        return 1

    print(
        f"\nProcessed {len(result.processed_documents)} documents "
        f"({len(result.failed_documents)} failed): {len(result.created_items)} items, "
        f"{len(result.created_places)} new places"
    )
    if result.skipped_flights:
        print(f"Skipped flights already on the trip: {', '.join(result.skipped_flights)}")
    for name in result.failed_documents:
        print(f"  FAILED: {name}")

    items = store.find_items(trip.id)
    places = {
        pid: store.get_place(pid)
        for i in items for pid in (i.origin_place_id, i.destination_place_id)
        if pid and store.get_place(pid) is not None
    }

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if args.format in ("timeline", "all"):
        timeline_text = format_timeline(trip, items, places)
        timeline_path = output_dir / f"itinerary_{trip.id}.txt"
        timeline_path.write_text(timeline_text, encoding="utf-8")
        print(f"\nTimeline written to: {timeline_path}")
        print(timeline_text)

    if args.format in ("json", "all"):
        json_path = output_dir / f"itinerary_{trip.id}.json"
        to_json(trip, items, places, json_path)
        print(f"JSON written to: {json_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
