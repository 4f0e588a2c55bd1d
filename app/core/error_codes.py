"""
Standardised error handling for ChannelTranscriber.
"""

from app.core.constants import ErrorCode, RETRYABLE_ERRORS


class PipelineError(Exception):
    """Raised when a step hits a known error condition."""

    code = ErrorCode.VALIDATION

    def __init__(self, message: str, detail: str | None = None,
                 code: str | None = None):
        if code is not None:
            self.code = code
        self.message = message
        # original low-level condition, kept apart from the user-facing text
        self.detail = detail
        self.retryable = self.code in RETRYABLE_ERRORS
        super().__init__(f"[{self.code}] {message}")


class ValidationError(PipelineError):
    """Missing or malformed user input."""
    code = ErrorCode.VALIDATION


class NetworkError(PipelineError):
    """Transport-level failure reaching the scan, audio or transcription endpoint."""
    code = ErrorCode.NETWORK


class InvalidContentTypeError(PipelineError):
    """Fetched resource does not declare an audio payload."""
    code = ErrorCode.INVALID_CONTENT_TYPE


class UpstreamFormatError(PipelineError):
    """Scan response is not in the expected shape."""
    code = ErrorCode.UPSTREAM_FORMAT


class TranscriptionError(PipelineError):
    """Transcription service returned no usable content."""
    code = ErrorCode.TRANSCRIPTION_FAILED


def is_retryable(code: str) -> bool:
    return code in RETRYABLE_ERRORS
