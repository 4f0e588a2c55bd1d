"""
Google Gemini speech-to-text integration.
Sends inline base64 audio to generateContent, single attempt, no retries.
"""

import json
import logging
import requests

from app.core.error_codes import ValidationError, NetworkError, TranscriptionError
from app.core.constants import (
    GEMINI_API_BASE, GEMINI_MODEL, TRANSCRIPT_LANGUAGE, TRANSCRIBE_PROMPT,
    REQUEST_TIMEOUT_SEC,
)

logger = logging.getLogger(__name__)


def _generate_url(model: str) -> str:
    return f"{GEMINI_API_BASE}/models/{model}:generateContent"


def verify_api_key(api_key: str) -> tuple[bool, str]:
    """
    Verify a Gemini API key with a lightweight request.
    Returns (success: bool, message: str).
    """
    try:
        resp = requests.get(
            f"{GEMINI_API_BASE}/models",
            headers={"x-goog-api-key": api_key},
            params={"pageSize": 1},
            timeout=10,
        )
        if resp.status_code == 200:
            return True, "Key verified"
        elif resp.status_code in (400, 401, 403):
            return False, "Key invalid or rejected"
        else:
            return False, f"Unexpected response: {resp.status_code}"
    except requests.exceptions.ConnectionError:
        return False, "Network error — could not reach Gemini"
    except requests.exceptions.Timeout:
        return False, "Network error — request timed out"
    except requests.exceptions.RequestException as e:
        return False, f"Network error: {e}"


def transcribe_audio(data_base64: str, mime_type: str, api_key: str,
                     language: str = TRANSCRIPT_LANGUAGE,
                     model: str = GEMINI_MODEL,
                     timeout: float = REQUEST_TIMEOUT_SEC) -> str:
    """
    Transcribe base64-encoded audio. Returns the transcript text.
    """
    if not api_key:
        raise ValidationError("Google AI API key is not provided.")

    body = {
        "contents": [{
            "parts": [
                {"text": TRANSCRIBE_PROMPT.format(language=language)},
                {"inline_data": {"mime_type": mime_type, "data": data_base64}},
            ],
        }],
    }
    headers = {
        "x-goog-api-key": api_key,
        "Content-Type": "application/json",
    }

    try:
        resp = requests.post(_generate_url(model), headers=headers,
                             json=body, timeout=timeout)
    except requests.exceptions.Timeout:
        raise NetworkError("Gemini request timed out")
    except requests.exceptions.ConnectionError:
        raise NetworkError("Network error connecting to Gemini")
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Gemini request failed: {e}")

    if resp.status_code != 200:
        # Never echo the key; the body holds Google's error description
        raise NetworkError(f"Gemini returned {resp.status_code}",
                           detail=resp.text[:300] if resp.text else None)

    try:
        result = resp.json()
    except json.JSONDecodeError:
        raise TranscriptionError("Failed to parse Gemini response JSON")

    text = extract_transcript_text(result)
    if not text:
        reason = _block_reason(result)
        raise TranscriptionError("Gemini returned no transcript.", detail=reason)
    return text


def extract_transcript_text(response: dict) -> str:
    """
    Join the text parts of the first candidate.
    Returns "" when the response carries no text.
    """
    try:
        candidates = response.get('candidates') or []
        if not candidates:
            return ""
        parts = (candidates[0].get('content') or {}).get('parts') or []
        text = ''.join(p.get('text', '') for p in parts if isinstance(p, dict))
        return text.strip()
    except (AttributeError, TypeError) as e:
        logger.warning("Error extracting transcript: %s", e)
    return ""


def _block_reason(response: dict) -> str | None:
    if not isinstance(response, dict):
        return None
    feedback = response.get('promptFeedback') or {}
    if feedback.get('blockReason'):
        return f"blocked: {feedback['blockReason']}"
    candidates = response.get('candidates') or []
    if candidates and candidates[0].get('finishReason'):
        return f"finish reason: {candidates[0]['finishReason']}"
    return None
