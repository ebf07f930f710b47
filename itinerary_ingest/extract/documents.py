"""Local document blobs: hashing, reading and directory discovery."""

import hashlib
import logging
from pathlib import Path
from typing import List

from itinerary_ingest.models import Document
from itinerary_ingest.store import ItineraryStore

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


def document_hash(content: bytes) -> str:
    """Stable hash of the document bytes; the extraction cache key."""
    return hashlib.sha256(content).hexdigest()


def load_document_bytes(document: Document) -> bytes:
    return Path(document.path).read_bytes()


def discover_documents(directory: Path, trip_id: str, store: ItineraryStore) -> List[Document]:
    """Register every PDF in ``directory`` that the trip does not already have.

    Returns only the newly registered documents.
    """
    known = {d.original_name for d in store.documents_for_trip(trip_id)}
    added = []
    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.suffix.lower() != ".pdf":
            continue
        if path.name in known:
            continue
        document = store.add_document(Document(
            trip_id=trip_id,
            original_name=path.name,
            path=str(path),
            mime_type=PDF_MIME_TYPE,
        ))
        logger.info("Registered document %s -> %s", path.name, document.id)
        added.append(document)
    return added
