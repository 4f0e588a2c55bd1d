"""
Shared constants for ChannelTranscriber.
Single source of truth — imported by every other module.
"""

import pathlib

# ── Application identity ──────────────────────────────────────────────
APP_NAME = "ChannelTranscriber"
APP_DISPLAY_NAME = "Channel Transcriber"
APP_VERSION = "1.0.0"

# ── Filesystem paths ─────────────────────────────────────────────────
HOME = pathlib.Path.home()

DEFAULT_OUTPUT_ROOT = HOME / "Downloads" / "Channel Transcripts"
APP_SUPPORT_DIR = HOME / "Library" / "Application Support" / APP_NAME
LOG_DIR = HOME / "Library" / "Logs" / APP_NAME
DB_PATH = APP_SUPPORT_DIR / "app.db"
CONFIG_PATH = APP_SUPPORT_DIR / "config.json"

# ── Persisted storage keys ───────────────────────────────────────────
class StorageKey:
    APIFY_TOKEN = "apify_token"
    GEMINI_API_KEY = "gemini_api_key"
    TRANSCRIPT_CACHE = "transcript_cache"

# ── Per-item transcript status ───────────────────────────────────────
class TranscriptStatus:
    PENDING = "pending"
    FETCHING = "fetching"
    TRANSCRIBING = "transcribing"
    SUCCESS = "success"
    ERROR = "error"

# Forward-only ordering used to reject regressions in the live view
STATUS_ORDER = {
    TranscriptStatus.PENDING: 0,
    TranscriptStatus.FETCHING: 1,
    TranscriptStatus.TRANSCRIBING: 2,
    TranscriptStatus.SUCCESS: 3,
    TranscriptStatus.ERROR: 3,
}

# ── Pipeline event kinds ─────────────────────────────────────────────
class EventKind:
    ITEM = "item"
    PROGRESS = "progress"
    FINISHED = "finished"

# ── Error codes ───────────────────────────────────────────────────────
class ErrorCode:
    # Non-retryable
    VALIDATION = "ERR_VALIDATION"
    INVALID_CONTENT_TYPE = "ERR_INVALID_CONTENT_TYPE"
    UPSTREAM_FORMAT = "ERR_UPSTREAM_FORMAT"

    # Retryable (by a later run)
    NETWORK = "ERR_NETWORK"
    TRANSCRIPTION_FAILED = "ERR_TRANSCRIPTION_FAILED"

RETRYABLE_ERRORS = {
    ErrorCode.NETWORK,
    ErrorCode.TRANSCRIPTION_FAILED,
}

# ── Pipeline defaults ────────────────────────────────────────────────
# Gemini free tier allows 15 requests per minute
API_CALL_DELAY_SEC = 4.0
DEFAULT_RESULTS_LIMIT = 20
REQUEST_TIMEOUT_SEC = 120

# ── Apify (channel scan) ─────────────────────────────────────────────
APIFY_API_BASE = "https://api.apify.com/v2"
APIFY_ACTOR_ID = "0FXVyOXXEmdGcV88a"
APIFY_RUN_SYNC_URL = f"{APIFY_API_BASE}/acts/{APIFY_ACTOR_ID}/run-sync-get-dataset-items"
SCAN_TIMEOUT_SEC = 300

# ── Gemini (transcription) ───────────────────────────────────────────
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL = "gemini-2.5-flash"
TRANSCRIPT_LANGUAGE = "Vietnamese"
TRANSCRIBE_PROMPT = (
    "Transcribe the spoken content of this audio file accurately into {language} text. "
    "Return only the spoken words, without any introduction, commentary or notes."
)

# ── CSV export ───────────────────────────────────────────────────────
EXPORT_FILENAME = "tiktok_transcripts_full.csv"
MISSING_TRANSCRIPT = "N/A"
CSV_HEADERS = [
    "ID", "URL", "Timestamp ISO", "Author Name", "Author Nickname", "Author Avatar",
    "Description", "Likes", "Comments", "Shares", "Plays", "Duration (s)",
    "Video Height", "Video Width", "Music Name", "Music Author", "Original Music",
    "Transcript",
]
