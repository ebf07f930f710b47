"""Configuration: .env loading, API keys, paths, constants."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Project root = parent of itinerary_ingest/
PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

# --- Extraction (OpenAI) ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
EXTRACTION_MODEL = os.getenv("EXTRACTION_MODEL", "gpt-4o-mini")

# --- Lookup providers ---
GOOGLE_PLACES_API_KEY = os.getenv("GOOGLE_PLACES_API_KEY", "")
FLIGHTAWARE_API_KEY = os.getenv("FLIGHTAWARE_API_KEY", "")
OAG_PRIMARY_KEY = os.getenv("OAG_PRIMARY_KEY", "")

GOOGLE_PLACES_URL = "https://places.googleapis.com/v1/places:searchText"
FLIGHTAWARE_AIRPORTS_URL = "https://aeroapi.flightaware.com/aeroapi/airports/{code}"
OAG_FLIGHT_INSTANCES_URL = "https://api.oag.com/flight-instances/"

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))

# --- Paths ---
STORE_PATH = Path(os.getenv("STORE_PATH", str(PROJECT_ROOT / "itinerary_store.json")))
EXTRACTION_CACHE_PATH = Path(
    os.getenv("EXTRACTION_CACHE_PATH", str(PROJECT_ROOT / "extraction_cache.json"))
)
OUTPUT_DIR = PROJECT_ROOT / "output"

# --- Flight enrichment ---
FLIGHT_LOOKUP_MAX_RETRIES = 2  # extra attempts after the first call
FLIGHT_LOOKUP_BACKOFF_SECONDS = 1.0  # multiplied by the attempt number

# --- Transfer linking ---
TRANSFER_MATCH_WINDOW_HOURS = 6

# --- Extraction output ---
RESPONSE_PREVIEW_CHARS = 100  # raw model text kept on the placeholder item
