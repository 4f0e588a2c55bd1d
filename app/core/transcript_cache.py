"""
Durable transcript cache: source URL → finished transcript text.
Loaded once from the key-value store, written back on every addition.
"""

import logging
import threading
from typing import Iterator

from app.core.constants import StorageKey
from app.core.db_sqlite import KeyValueStore

logger = logging.getLogger(__name__)


class TranscriptCache:
    """
    Append-only mapping of completed transcripts.
    Presence of a key means the URL is done and is skipped by later runs.
    """

    def __init__(self, store: KeyValueStore, key: str = StorageKey.TRANSCRIPT_CACHE):
        self._store = store
        self._key = key
        self._lock = threading.Lock()
        loaded = store.get(key, {})
        if not isinstance(loaded, dict):
            logger.warning("Transcript cache has unexpected type %s — starting empty",
                           type(loaded).__name__)
            loaded = {}
        self._data: dict[str, str] = {str(k): str(v) for k, v in loaded.items()}

    def __contains__(self, source_url: object) -> bool:
        return source_url in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(dict(self._data))

    def get(self, source_url: str, default: str | None = None) -> str | None:
        return self._data.get(source_url, default)

    def add(self, source_url: str, transcript: str):
        """Record a finished transcript and persist the whole mapping."""
        with self._lock:
            updated = dict(self._data)
            updated[source_url] = transcript
            # persist first so memory never claims more than the store holds
            self._store.set(self._key, updated)
            self._data = updated
        logger.info("Cached transcript for %s (%d chars)", source_url, len(transcript))

    def as_dict(self) -> dict[str, str]:
        return dict(self._data)
