"""Document extraction through the OpenAI file-search tooling.

Each trip owns one vector store (its knowledge index). Documents are uploaded
into it once, then the Responses API is asked to extract the items of a single
document by filename.
"""

import json
import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

import openai
from openai import OpenAI

from itinerary_ingest.config import EXTRACTION_MODEL, OPENAI_API_KEY, RESPONSE_PREVIEW_CHARS
from itinerary_ingest.errors import ExtractionError, ProviderHardError
from itinerary_ingest.extract.prompt import EXTRACTION_INSTRUCTIONS, build_user_message
from itinerary_ingest.models import Document, Trip

logger = logging.getLogger(__name__)

_client: Optional[OpenAI] = None


def _get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=OPENAI_API_KEY)
    return _client


@contextmanager
def provider_errors():
    """Turn quota and credential failures into ProviderHardError."""
    try:
        yield
    except openai.AuthenticationError as e:
        raise ProviderHardError(
            ProviderHardError.AUTH, f"OpenAI rejected the API key: {e}"
        ) from e
    except openai.APIStatusError as e:
        if e.code == "insufficient_quota":
            raise ProviderHardError(
                ProviderHardError.QUOTA, f"OpenAI quota exceeded: {e}"
            ) from e
        if e.code == "invalid_api_key":
            raise ProviderHardError(
                ProviderHardError.AUTH, f"OpenAI rejected the API key: {e}"
            ) from e
        raise


class DocumentExtractor:
    def __init__(self, client: Optional[OpenAI] = None, model: str = EXTRACTION_MODEL):
        self.client = client or _get_client()
        self.model = model

    def ensure_index(self, trip: Trip) -> str:
        """Return the trip's vector store id, creating the store if needed."""
        if trip.index_id:
            return trip.index_id
        with provider_errors():
            store = self.client.vector_stores.create(name=f"trip-{trip.id}")
        logger.info("Created knowledge index %s for trip %s", store.id, trip.id)
        return store.id

    def ensure_registered(self, index_id: str, document: Document, content: bytes) -> str:
        """Upload the document into the index unless a file of that name is there."""
        with provider_errors():
            for vs_file in self.client.vector_stores.files.list(vector_store_id=index_id):
                if vs_file.id == document.index_file_id:
                    return vs_file.id
                info = self.client.files.retrieve(vs_file.id)
                if info.filename == document.original_name:
                    logger.info("Reusing indexed file %s for %s", vs_file.id, document.original_name)
                    return vs_file.id

            uploaded = self.client.files.create(
                file=(document.original_name, content),
                purpose="assistants",
            )
            self.client.vector_stores.files.create_and_poll(
                file_id=uploaded.id,
                vector_store_id=index_id,
                attributes={"filename": document.original_name},
            )
        logger.info("Indexed %s as %s", document.original_name, uploaded.id)
        return uploaded.id

    def extract(self, index_id: str, document: Document) -> str:
        """Run the extraction prompt against one indexed document; returns raw text."""
        with provider_errors():
            response = self.client.responses.create(
                model=self.model,
                instructions=EXTRACTION_INSTRUCTIONS,
                input=build_user_message(document.original_name),
                tools=[{
                    "type": "file_search",
                    "vector_store_ids": [index_id],
                    "filters": {"type": "eq", "key": "filename", "value": document.original_name},
                }],
                temperature=0.0,
            )

        if getattr(response, "status", None) == "failed":
            raise ExtractionError(f"Extraction run failed for {document.original_name}")
        text = response.output_text or ""
        if not text.strip():
            raise ExtractionError(f"No analysis result for {document.original_name}")
        return text


def placeholder_item(filename: str, raw_text: str) -> Dict[str, Any]:
    """Activity record standing in for a document whose output could not be parsed."""
    preview = raw_text[:RESPONSE_PREVIEW_CHARS]
    return {
        "type": "activity",
        "activityName": f"Document: {filename}",
        "activityTitle": f"Document: {filename}",
        "notes": (
            "AI analysis failed to parse this document. Please review manually. "
            f"Original response: {preview}..."
        ),
        "needsReview": True,
    }


def parse_extraction(text: str, filename: str) -> Tuple[List[Dict[str, Any]], bool]:
    """Parse model output into raw item records.

    Returns (records, ok). On failure the single record is a placeholder
    flagging the document for review.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned)
        cleaned = re.sub(r"\s*```$", "", cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("Could not parse extraction for %s: %s", filename, e)
        return [placeholder_item(filename, text)], False

    if isinstance(data, dict):
        items = data.get("items")
    elif isinstance(data, list):
        items = data
    else:
        items = None

    if not isinstance(items, list):
        logger.warning("Extraction for %s has no item list", filename)
        return [placeholder_item(filename, text)], False

    return [item for item in items if isinstance(item, dict)], True
