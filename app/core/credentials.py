"""
Credential persistence for the Apify token and the Gemini API key.
Values live in the key-value store; absence reads back as "".
"""

import logging

from app.core.constants import StorageKey
from app.core.db_sqlite import KeyValueStore

logger = logging.getLogger(__name__)

CREDENTIAL_KEYS = (StorageKey.APIFY_TOKEN, StorageKey.GEMINI_API_KEY)


def get_credential(store: KeyValueStore, key: str) -> str:
    value = store.get(key, "")
    if not isinstance(value, str):
        logger.warning("Stored credential %s has unexpected type — ignoring", key)
        return ""
    return value


def set_credential(store: KeyValueStore, key: str, value: str) -> None:
    """Store or clear a credential. An empty value removes it."""
    if key not in CREDENTIAL_KEYS:
        raise KeyError(f"Unknown credential key: {key}")
    value = (value or "").strip()
    if value:
        store.set(key, value)
    else:
        store.delete(key)
    # Never log the value itself
    logger.info("Credential %s %s", key, "updated" if value else "cleared")


def mask_secret(value: str, visible: int = 4) -> str:
    """Show only the last few characters of a secret."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
