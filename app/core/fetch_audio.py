"""
Audio retrieval over HTTP.
Returns the payload base64-encoded, ready for the transcription request.
"""

import base64
import logging
import requests

from app.core.error_codes import NetworkError, InvalidContentTypeError
from app.core.models import AudioPayload
from app.core.constants import REQUEST_TIMEOUT_SEC

logger = logging.getLogger(__name__)

FETCH_FAILED_MESSAGE = (
    "Could not fetch audio. The host may be refusing direct or cross-origin "
    "downloads; make sure the audio URL is publicly accessible."
)


def fetch_audio(audio_url: str, timeout: float = REQUEST_TIMEOUT_SEC) -> AudioPayload:
    """
    Download an audio file and base64-encode it.
    Raises NetworkError or InvalidContentTypeError; both carry the same
    user-facing message with the original condition in .detail.
    """
    try:
        resp = requests.get(audio_url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise NetworkError(FETCH_FAILED_MESSAGE,
                           detail=f"{type(e).__name__}: {e}")

    if not resp.ok:
        raise NetworkError(FETCH_FAILED_MESSAGE,
                           detail=f"Response was not ok, status: {resp.status_code}")

    content_type = resp.headers.get('Content-Type', '')
    mime_type = content_type.split(';', 1)[0].strip().lower()
    if not mime_type.startswith('audio/'):
        raise InvalidContentTypeError(
            FETCH_FAILED_MESSAGE,
            detail=f"Fetched file is not an audio file. Type: {mime_type or 'unknown'}",
        )

    data = base64.b64encode(resp.content).decode('ascii')
    logger.info("Fetched audio %s (%s, %d bytes)", audio_url, mime_type, len(resp.content))
    return AudioPayload(data_base64=data, mime_type=mime_type)
