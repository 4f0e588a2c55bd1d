"""
Application configuration manager.
Stores settings in a JSON file under Application Support.
Credentials live in the key-value store, not here.
"""

import json
import logging
from pathlib import Path

from app.core.constants import (
    CONFIG_PATH, DEFAULT_OUTPUT_ROOT, DEFAULT_RESULTS_LIMIT, API_CALL_DELAY_SEC,
    TRANSCRIPT_LANGUAGE, GEMINI_MODEL, REQUEST_TIMEOUT_SEC,
)

# Validation bounds
_RESULTS_LIMIT_MIN = 1
_RESULTS_LIMIT_MAX = 1000
_DELAY_MIN = 0.0
_DELAY_MAX = 60.0
_TIMEOUT_MIN = 10
_TIMEOUT_MAX = 900

logger = logging.getLogger(__name__)

_DEFAULTS = {
    'output_root': str(DEFAULT_OUTPUT_ROOT),
    'results_limit': DEFAULT_RESULTS_LIMIT,
    'api_call_delay_sec': API_CALL_DELAY_SEC,
    'transcript_language': TRANSCRIPT_LANGUAGE,
    'gemini_model': GEMINI_MODEL,
    'request_timeout_sec': REQUEST_TIMEOUT_SEC,
}


class AppConfig:
    """Manages application configuration stored as JSON."""

    def __init__(self, config_path: Path | None = None):
        self.path = config_path or CONFIG_PATH
        self._data: dict = {}
        self.load()

    def load(self):
        """Load config from disk, merging with defaults."""
        self._data = dict(_DEFAULTS)
        if self.path.exists():
            try:
                with open(self.path, 'r') as f:
                    saved = json.load(f)
                for key, value in saved.items():
                    self._data[key] = self._validate(key, value)
            except (OSError, ValueError, AttributeError) as e:
                logger.warning("Failed to load config: %s", e)

    def save(self):
        """Persist config to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(self._data, f, indent=2)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value):
        value = self._validate(key, value)
        self._data[key] = value
        self.save()

    def _validate(self, key: str, value):
        """Validate and coerce config values to safe ranges."""
        if key == 'results_limit':
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Invalid results_limit %r — using default", value)
                return DEFAULT_RESULTS_LIMIT
            return max(_RESULTS_LIMIT_MIN, min(_RESULTS_LIMIT_MAX, value))

        if key == 'api_call_delay_sec':
            try:
                value = float(value)
            except (TypeError, ValueError):
                logger.warning("Invalid api_call_delay_sec %r — using default", value)
                return API_CALL_DELAY_SEC
            return max(_DELAY_MIN, min(_DELAY_MAX, value))

        if key == 'request_timeout_sec':
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Invalid request_timeout_sec %r — using default", value)
                return REQUEST_TIMEOUT_SEC
            return max(_TIMEOUT_MIN, min(_TIMEOUT_MAX, value))

        if key in ('transcript_language', 'gemini_model'):
            value = str(value).strip() if value is not None else ""
            return value or _DEFAULTS[key]

        return value

    def as_dict(self) -> dict:
        return dict(self._data)

    @property
    def output_root(self) -> str:
        return self._data.get('output_root', str(DEFAULT_OUTPUT_ROOT))

    @output_root.setter
    def output_root(self, value: str):
        self._data['output_root'] = value
        self.save()

    @property
    def results_limit(self) -> int:
        return self._data.get('results_limit', DEFAULT_RESULTS_LIMIT)

    @results_limit.setter
    def results_limit(self, value: int):
        self.set('results_limit', value)
