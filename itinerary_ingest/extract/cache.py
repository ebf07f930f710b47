"""Hash-keyed cache of raw extraction responses, so re-runs skip the model call."""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from itinerary_ingest.config import EXTRACTION_CACHE_PATH

logger = logging.getLogger(__name__)


class ExtractionCache:
    def __init__(self, path: Path = EXTRACTION_CACHE_PATH):
        self.path = path
        self._data: Dict[str, str] = {}
        self._load()

    def _load(self):
        if self.path.exists():
            try:
                self._data = json.loads(self.path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable extraction cache %s: %s", self.path, e)
                self._data = {}

    def get(self, content_hash: str) -> Optional[str]:
        return self._data.get(content_hash)

    def put(self, content_hash: str, raw_text: str):
        self._data[content_hash] = raw_text
        self._save()

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(self._data, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
