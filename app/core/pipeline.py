"""
Transcription pipeline controller.
Processes one matched video at a time: fetch audio → transcribe → cache.
"""

import logging
import threading
from typing import Callable, Optional

from app.core.constants import (
    TranscriptStatus, EventKind, STATUS_ORDER,
    API_CALL_DELAY_SEC, TRANSCRIPT_LANGUAGE, GEMINI_MODEL, REQUEST_TIMEOUT_SEC,
)
from app.core.error_codes import PipelineError, ValidationError
from app.core.models import (
    VideoRecord, TranscriptState, PipelineEvent, RunSummary, AudioPayload,
)
from app.core.transcript_cache import TranscriptCache
from app.core.fetch_audio import fetch_audio
from app.core.transcribe_gemini import transcribe_audio

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative stop signal for a single run."""

    def __init__(self):
        self._event = threading.Event()
        self._aborted = False

    def cancel(self):
        self._event.set()

    def abort(self):
        """Cancel and also drop the in-flight item before its transcription call."""
        self._aborted = True
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def is_aborted(self) -> bool:
        return self._aborted

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; returns early (True) once cancelled."""
        return self._event.wait(timeout)


def build_work_set(videos: list[VideoRecord], audio_map: dict[str, str],
                   cache: TranscriptCache) -> list[VideoRecord]:
    """Matched, not-yet-cached videos, in scanned order."""
    return [v for v in videos
            if v.source_url in audio_map and v.source_url not in cache]


def describe_error(error: Exception) -> str:
    if isinstance(error, PipelineError):
        if error.detail:
            return f"{error.message} ({error.detail})"
        return error.message
    return str(error) or type(error).__name__


class TranscriptionPipeline:
    """
    Runs the per-video state machine and emits PipelineEvents for UI updates.
    The cache and the live status map are written only from here.
    """

    def __init__(self, cache: TranscriptCache, config: dict | None = None,
                 fetcher: Callable[..., AudioPayload] = fetch_audio,
                 transcriber: Callable[..., str] = transcribe_audio):
        self.cache = cache
        self.config = config or {}
        self._fetch = fetcher
        self._transcribe = transcriber
        self._worker_thread: Optional[threading.Thread] = None
        self._token: Optional[CancelToken] = None
        self._running = False
        self._lock = threading.Lock()
        self.states: dict[str, TranscriptState] = {}
        self.last_summary: Optional[RunSummary] = None

        # Callbacks
        self.on_event: Optional[Callable[[PipelineEvent], None]] = None

    # ── Config helpers ────────────────────────────────────────────────

    @property
    def delay_sec(self) -> float:
        return float(self.config.get('api_call_delay_sec', API_CALL_DELAY_SEC))

    @property
    def language(self) -> str:
        return self.config.get('transcript_language', TRANSCRIPT_LANGUAGE)

    @property
    def model(self) -> str:
        return self.config.get('gemini_model', GEMINI_MODEL)

    @property
    def request_timeout(self) -> float:
        return float(self.config.get('request_timeout_sec', REQUEST_TIMEOUT_SEC))

    # ── Run control ───────────────────────────────────────────────────

    def start(self, videos: list[VideoRecord], audio_map: dict[str, str],
              api_key: str) -> CancelToken:
        """Validate inputs and run the pipeline on a worker thread."""
        self._validate(audio_map, api_key)
        with self._lock:
            if self._running:
                raise ValidationError("A transcription run is already in progress.")
            token = CancelToken()
            self._token = token
            self._running = True
        self._worker_thread = threading.Thread(
            target=self._worker_loop,
            args=(list(videos), dict(audio_map), api_key, token),
            daemon=True,
        )
        self._worker_thread.start()
        return token

    def stop(self):
        """Request a stop; the current item finishes, the next one never starts."""
        token = self._token
        if token and not token.is_cancelled:
            token.cancel()
            self._emit(PipelineEvent(kind=EventKind.PROGRESS,
                                     message="Stop requested..."))

    def shutdown(self, timeout: float = 5.0) -> bool:
        """
        Teardown hook: abort the run and wait for the worker.
        A download still in flight is never followed by a transcription call.
        Returns True once the worker has exited; only then may the store be closed.
        """
        if self._token:
            self._token.abort()
        thread = self._worker_thread
        if thread is None:
            return True
        if thread is threading.current_thread():
            return False
        if thread.is_alive():
            thread.join(timeout)
        if thread.is_alive():
            logger.warning("Pipeline worker still busy after %.1fs shutdown wait", timeout)
            return False
        return True

    def is_running(self) -> bool:
        return self._running

    def reset_states(self):
        """Drop live status (start over); the durable cache is untouched."""
        with self._lock:
            self.states.clear()

    # ── Worker loop ───────────────────────────────────────────────────

    def _worker_loop(self, videos, audio_map, api_key, token: CancelToken):
        try:
            self.run(videos, audio_map, api_key, token)
        except Exception as e:
            logger.error("Pipeline worker error: %s", e, exc_info=True)
            self._finish(RunSummary(message=f"Error: {describe_error(e)}"))

    def run(self, videos: list[VideoRecord], audio_map: dict[str, str],
            api_key: str, token: CancelToken | None = None) -> RunSummary:
        """
        Process the work-set synchronously and return the run summary.
        Pass a fresh token per run; a cancelled token stops before the next item.
        """
        token = token or CancelToken()
        self._validate(audio_map, api_key)

        work = build_work_set(videos, audio_map, self.cache)
        total = len(work)
        summary = RunSummary(total=total)
        logger.info("Transcription run started: %d item(s), %d already cached",
                    total, sum(1 for v in videos
                               if v.source_url in audio_map and v.source_url in self.cache))

        with self._lock:
            for video in work:
                self.states[video.source_url] = TranscriptState()
        for idx, video in enumerate(work, start=1):
            self._emit_state(video, self.states[video.source_url], idx, total)

        for i, video in enumerate(work):
            if token.is_cancelled:
                summary.stopped = True
                break

            self._emit(PipelineEvent(
                kind=EventKind.PROGRESS,
                message=f"Processing {i + 1} of {total}: {video.author.nickname}",
                identity=video.identity, source_url=video.source_url,
                index=i + 1, total=total,
            ))

            summary.attempted += 1
            outcome = self._process_item(video, audio_map[video.source_url], api_key,
                                         token, i + 1, total)
            if outcome is None:
                summary.stopped = True
                break
            if outcome:
                summary.succeeded += 1
            else:
                summary.failed += 1

            # Rate limit: wait between calls, never after the last one
            if i < total - 1 and not token.is_cancelled:
                token.wait(self.delay_sec)

        if summary.stopped:
            summary.message = (f"Stopped by user after {summary.succeeded} "
                               f"new transcript(s).")
        else:
            summary.message = (f"Transcription complete. {summary.succeeded} "
                               f"new transcript(s) created.")
        if summary.failed:
            summary.message += f" {summary.failed} failed."

        logger.info("Transcription run finished: %s", summary.message)
        self._finish(summary)
        return summary

    def _finish(self, summary: RunSummary):
        # Observers may start the next run from the FINISHED handler
        self.last_summary = summary
        self._running = False
        self._emit(PipelineEvent(kind=EventKind.FINISHED, message=summary.message,
                                 index=summary.attempted, total=summary.total))

    def _validate(self, audio_map: dict[str, str], api_key: str):
        if not audio_map:
            raise ValidationError("No matched videos to transcribe.")
        if not api_key:
            raise ValidationError("Google AI API key is not provided.")

    # ── Per-item state machine ────────────────────────────────────────

    def _process_item(self, video: VideoRecord, audio_url: str, api_key: str,
                      token: CancelToken, index: int, total: int) -> Optional[bool]:
        """
        Drive one video to success or error. Returns True on success, False on
        error, None when the run was aborted before the transcription call.
        """
        try:
            self._set_state(video, TranscriptStatus.FETCHING,
                            "Downloading audio...", index, total)
            payload = self._fetch(audio_url, timeout=self.request_timeout)

            if token.is_aborted:
                logger.info("Run aborted after fetching %s; skipping transcription",
                            video.identity)
                self._set_state(video, TranscriptStatus.ERROR,
                                "Stopped before transcription.", index, total)
                return None

            self._set_state(video, TranscriptStatus.TRANSCRIBING,
                            "Transcribing with AI...", index, total)
            transcript = self._transcribe(
                payload.data_base64, payload.mime_type, api_key,
                language=self.language, model=self.model,
                timeout=self.request_timeout,
            )

            # The cache is authoritative; live status follows it
            self.cache.add(video.source_url, transcript)
            self._set_state(video, TranscriptStatus.SUCCESS, transcript, index, total)
            return True

        except PipelineError as e:
            logger.warning("Item %s failed [%s]: %s", video.identity, e.code,
                           describe_error(e))
            self._set_state(video, TranscriptStatus.ERROR,
                            f"Error: {describe_error(e)}", index, total)
        except Exception as e:
            logger.error("Unexpected error processing %s: %s", video.identity, e,
                         exc_info=True)
            self._set_state(video, TranscriptStatus.ERROR,
                            f"Error: {describe_error(e)}", index, total)
        return False

    def _set_state(self, video: VideoRecord, status: str, detail: str,
                   index: int, total: int):
        state = TranscriptState(status=status, detail=detail)
        with self._lock:
            previous = self.states.get(video.source_url)
            if previous and STATUS_ORDER[status] <= STATUS_ORDER[previous.status] \
                    and previous.status != TranscriptStatus.PENDING:
                logger.warning("Ignoring status regression %s -> %s for %s",
                               previous.status, status, video.identity)
                return
            self.states[video.source_url] = state
        self._emit_state(video, state, index, total)

    def _emit_state(self, video: VideoRecord, state: TranscriptState,
                    index: int, total: int):
        self._emit(PipelineEvent(
            kind=EventKind.ITEM, message=state.detail,
            identity=video.identity, source_url=video.source_url,
            state=state, index=index, total=total,
        ))

    def _emit(self, event: PipelineEvent):
        if self.on_event:
            self.on_event(event)
