"""
Diagnostics: storage and credential checks shown in the Diagnostics tab.
"""

import logging
import platform
from pathlib import Path

import requests

from app.core.constants import StorageKey, DB_PATH
from app.core.db_sqlite import KeyValueStore

logger = logging.getLogger(__name__)


def check_database_file(db_path: Path | None = None) -> dict:
    """Check if the store file exists and return info."""
    path = db_path or DB_PATH
    info = {"detected": False, "path": str(path), "size_bytes": 0, "last_modified": None}
    if path.exists():
        info["detected"] = True
        stat = path.stat()
        info["size_bytes"] = stat.st_size
        from datetime import datetime, timezone
        info["last_modified"] = datetime.fromtimestamp(
            stat.st_mtime, tz=timezone.utc
        ).isoformat()
    return info


def get_diagnostics(store: KeyValueStore, db_path: Path | None = None) -> dict:
    """Gather all diagnostic information. Never returns credential values."""
    cache = store.get(StorageKey.TRANSCRIPT_CACHE, {})
    return {
        "python_version": platform.python_version(),
        "requests_version": requests.__version__,
        "apify_token_set": bool(store.get(StorageKey.APIFY_TOKEN, "")),
        "gemini_key_set": bool(store.get(StorageKey.GEMINI_API_KEY, "")),
        "cached_transcripts": len(cache) if isinstance(cache, dict) else 0,
        "database": check_database_file(db_path),
    }
