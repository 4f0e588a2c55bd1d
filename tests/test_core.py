#!/usr/bin/env python3
"""
Unit tests for Channel Transcriber core modules.
Tests cover: URL parsing, matching, audio fetch, Gemini client, channel scan,
storage, transcript cache, pipeline controller, CSV export, config.
"""

import sys
import csv
import base64
import tempfile
import threading
from pathlib import Path
from unittest import mock

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import unittest

import requests

from app.core.constants import (
    ErrorCode, StorageKey, TranscriptStatus, EventKind, CSV_HEADERS,
    EXPORT_FILENAME, API_CALL_DELAY_SEC, DEFAULT_RESULTS_LIMIT,
)
from app.core.error_codes import (
    PipelineError, ValidationError, NetworkError, InvalidContentTypeError,
    UpstreamFormatError, TranscriptionError, is_retryable,
)
from app.core.models import VideoRecord, AuthorMeta, MusicMeta, AudioPayload
from app.core.url_parse import (
    extract_profile_name, is_http_url, parse_input_lines, parse_input_file,
)
from app.core.matcher import match_urls
from app.core.fetch_audio import fetch_audio, FETCH_FAILED_MESSAGE
from app.core.transcribe_gemini import transcribe_audio, extract_transcript_text
from app.core.channel_scan import fetch_channel_videos, video_from_item
from app.core.db_sqlite import Database, MemoryStore
from app.core.credentials import get_credential, set_credential, mask_secret
from app.core.transcript_cache import TranscriptCache
from app.core.pipeline import TranscriptionPipeline, CancelToken, build_work_set
from app.core.output_writer import write_results_csv, build_csv_rows
from app.core.config import AppConfig
from app.core.diagnostics import get_diagnostics


def make_video(n: int, **kwargs) -> VideoRecord:
    return VideoRecord(
        identity=f"id{n}",
        source_url=f"https://www.tiktok.com/@user/video/{n}",
        author=AuthorMeta(name="user", nickname=f"User {n}"),
        **kwargs,
    )


def mock_response(status=200, headers=None, content=b"", json_data=None, text=""):
    resp = mock.MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.headers = headers or {}
    resp.content = content
    resp.text = text
    resp.reason = "Error"
    resp.json.return_value = json_data
    return resp


class TestURLParsing(unittest.TestCase):
    """Test input parsing helpers."""

    def test_profile_from_url(self):
        self.assertEqual(extract_profile_name("https://www.tiktok.com/@someone"), "someone")
        self.assertEqual(
            extract_profile_name("https://www.tiktok.com/@someone/video/123"), "someone")

    def test_profile_from_handle(self):
        self.assertEqual(extract_profile_name("@someone"), "someone")
        self.assertEqual(extract_profile_name("  someone "), "someone")
        self.assertEqual(extract_profile_name(""), "")

    def test_is_http_url(self):
        self.assertTrue(is_http_url("https://example.com/a.mp3"))
        self.assertFalse(is_http_url("example.com/a.mp3"))
        self.assertFalse(is_http_url("ftp://example.com/a.mp3"))

    def test_parse_input_lines_keeps_order_and_drops_blanks(self):
        text = """
        https://example.com/b.mp3

        https://example.com/a.mp3
        """
        self.assertEqual(parse_input_lines(text),
                         ["https://example.com/b.mp3", "https://example.com/a.mp3"])

    def test_parse_input_lines_empty(self):
        self.assertEqual(parse_input_lines(""), [])
        self.assertEqual(parse_input_lines("   \n\n  "), [])

    def test_parse_csv_with_header(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "urls.csv"
            path.write_text("name,url\nfirst,https://example.com/1.mp3\n"
                            "second,https://example.com/2.mp3\n", encoding="utf-8")
            self.assertEqual(parse_input_file(str(path)),
                             ["https://example.com/1.mp3", "https://example.com/2.mp3"])

    def test_parse_txt_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "urls.txt"
            path.write_text("https://example.com/1.mp3\n\nhttps://example.com/2.mp3\n",
                            encoding="utf-8")
            self.assertEqual(len(parse_input_file(str(path))), 2)


class TestMatcher(unittest.TestCase):
    """Test positional URL matching."""

    def test_example_mapping(self):
        result = match_urls(["a.mp3", "b.mp3"], ["v1", "v2"], {"v1"})
        self.assertEqual(result.mapping, {"v1": "a.mp3"})
        self.assertEqual(result.matched_count, 1)

    def test_size_equals_known_overlap(self):
        audio = ["a.mp3", "b.mp3", "c.mp3", "d.mp3"]
        video = ["v1", "v2", "v3", "v4"]
        known = ["v4", "v2", "v9"]
        result = match_urls(audio, video, known)
        self.assertEqual(result.matched_count, 2)
        self.assertEqual(result.mapping, {"v4": "d.mp3", "v2": "b.mp3"})
        # scanned order, not pasted order
        self.assertEqual(list(result.mapping), ["v4", "v2"])

    def test_length_mismatch_fails(self):
        with self.assertRaises(ValidationError):
            match_urls(["a.mp3", "b.mp3"], ["v1"], {"v1"})
        with self.assertRaises(ValidationError):
            match_urls(["a.mp3"], ["v1", "v2", "v3"], {"v1", "v2", "v3"})

    def test_blank_lines_ignored_before_length_check(self):
        result = match_urls(["a.mp3", "", "  "], ["v1"], {"v1"})
        self.assertEqual(result.mapping, {"v1": "a.mp3"})

    def test_empty_side_fails(self):
        with self.assertRaises(ValidationError):
            match_urls([], ["v1"], {"v1"})
        with self.assertRaises(ValidationError):
            match_urls(["a.mp3"], [], {"v1"})

    def test_zero_matches_is_not_an_error(self):
        result = match_urls(["a.mp3"], ["v1"], {"other"})
        self.assertEqual(result.matched_count, 0)
        self.assertEqual(result.mapping, {})

    def test_idempotent(self):
        args = (["a.mp3", "b.mp3"], ["v1", "v2"], ["v1", "v2"])
        self.assertEqual(match_urls(*args).mapping, match_urls(*args).mapping)


class TestErrorCodes(unittest.TestCase):
    """Test error taxonomy."""

    def test_codes(self):
        self.assertEqual(ValidationError("x").code, ErrorCode.VALIDATION)
        self.assertEqual(NetworkError("x").code, ErrorCode.NETWORK)
        self.assertEqual(InvalidContentTypeError("x").code, ErrorCode.INVALID_CONTENT_TYPE)
        self.assertEqual(UpstreamFormatError("x").code, ErrorCode.UPSTREAM_FORMAT)
        self.assertEqual(TranscriptionError("x").code, ErrorCode.TRANSCRIPTION_FAILED)

    def test_retryable(self):
        self.assertTrue(NetworkError("x").retryable)
        self.assertTrue(TranscriptionError("x").retryable)
        self.assertFalse(ValidationError("x").retryable)
        self.assertFalse(is_retryable(ErrorCode.INVALID_CONTENT_TYPE))

    def test_all_are_pipeline_errors(self):
        for cls in (ValidationError, NetworkError, InvalidContentTypeError,
                    UpstreamFormatError, TranscriptionError):
            self.assertTrue(issubclass(cls, PipelineError))


class TestFetchAudio(unittest.TestCase):
    """Test audio download and validation."""

    @mock.patch("app.core.fetch_audio.requests.get")
    def test_success(self, mock_get):
        mock_get.return_value = mock_response(
            headers={"Content-Type": "audio/mpeg; charset=binary"}, content=b"ID3data")
        payload = fetch_audio("https://example.com/a.mp3")
        self.assertEqual(payload.mime_type, "audio/mpeg")
        self.assertEqual(base64.b64decode(payload.data_base64), b"ID3data")

    @mock.patch("app.core.fetch_audio.requests.get")
    def test_http_error(self, mock_get):
        mock_get.return_value = mock_response(status=404)
        with self.assertRaises(NetworkError) as ctx:
            fetch_audio("https://example.com/a.mp3")
        self.assertEqual(ctx.exception.message, FETCH_FAILED_MESSAGE)
        self.assertIn("404", ctx.exception.detail)

    @mock.patch("app.core.fetch_audio.requests.get")
    def test_not_audio(self, mock_get):
        mock_get.return_value = mock_response(
            headers={"Content-Type": "text/html"}, content=b"<html>")
        with self.assertRaises(InvalidContentTypeError) as ctx:
            fetch_audio("https://example.com/a.mp3")
        self.assertEqual(ctx.exception.message, FETCH_FAILED_MESSAGE)
        self.assertIn("text/html", ctx.exception.detail)

    @mock.patch("app.core.fetch_audio.requests.get")
    def test_transport_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(NetworkError):
            fetch_audio("https://example.com/a.mp3")


class TestTranscribeGemini(unittest.TestCase):
    """Test the Gemini transcription client."""

    @mock.patch("app.core.transcribe_gemini.requests.post")
    def test_missing_key_makes_no_call(self, mock_post):
        with self.assertRaises(ValidationError):
            transcribe_audio("QUJD", "audio/mpeg", "")
        mock_post.assert_not_called()

    @mock.patch("app.core.transcribe_gemini.requests.post")
    def test_success(self, mock_post):
        mock_post.return_value = mock_response(json_data={
            "candidates": [{"content": {"parts": [{"text": " Xin chào "}]}}],
        })
        text = transcribe_audio("QUJD", "audio/mpeg", "key", language="Vietnamese")
        self.assertEqual(text, "Xin chào")

        body = mock_post.call_args.kwargs["json"]
        parts = body["contents"][0]["parts"]
        self.assertIn("Vietnamese", parts[0]["text"])
        self.assertEqual(parts[1]["inline_data"], {"mime_type": "audio/mpeg", "data": "QUJD"})
        self.assertEqual(mock_post.call_args.kwargs["headers"]["x-goog-api-key"], "key")

    @mock.patch("app.core.transcribe_gemini.requests.post")
    def test_empty_response(self, mock_post):
        mock_post.return_value = mock_response(json_data={
            "candidates": [{"content": {"parts": []}, "finishReason": "SAFETY"}],
        })
        with self.assertRaises(TranscriptionError) as ctx:
            transcribe_audio("QUJD", "audio/mpeg", "key")
        self.assertIn("SAFETY", ctx.exception.detail)

    @mock.patch("app.core.transcribe_gemini.requests.post")
    def test_http_error(self, mock_post):
        mock_post.return_value = mock_response(status=429, text="quota")
        with self.assertRaises(NetworkError):
            transcribe_audio("QUJD", "audio/mpeg", "key")
        self.assertEqual(mock_post.call_count, 1)

    def test_extract_transcript_text(self):
        self.assertEqual(extract_transcript_text({}), "")
        self.assertEqual(extract_transcript_text({"candidates": [
            {"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]}), "ab")


class TestChannelScan(unittest.TestCase):
    """Test scan response mapping and failure modes."""

    def test_item_defaults(self):
        video = video_from_item({"webVideoUrl": "https://t/v/1", "authorMeta": {"name": "bob"}})
        self.assertEqual(video.identity, "https://t/v/1")
        self.assertEqual(video.author.nickname, "bob")
        self.assertEqual(video.music.name, "N/A")
        self.assertFalse(video.music.original)
        self.assertEqual(video.play_count, 0)

    def test_item_full(self):
        video = video_from_item({
            "id": "123", "webVideoUrl": "https://t/v/123", "text": "hi",
            "diggCount": 5, "videoMeta": {"duration": 12},
            "musicMeta": {"musicName": "song", "musicOriginal": True},
        })
        self.assertEqual(video.identity, "123")
        self.assertEqual(video.digg_count, 5)
        self.assertEqual(video.video.duration, 12)
        self.assertTrue(video.music.original)

    def test_item_fallback_identity(self):
        video = video_from_item({})
        self.assertTrue(video.identity.startswith("fallback-"))

    def test_missing_inputs(self):
        with self.assertRaises(ValidationError):
            fetch_channel_videos("", "https://www.tiktok.com/@x", 10)
        with self.assertRaises(ValidationError):
            fetch_channel_videos("token", "  ", 10)

    @mock.patch("app.core.channel_scan.requests.post")
    def test_success(self, mock_post):
        mock_post.return_value = mock_response(json_data=[
            {"id": "1", "webVideoUrl": "https://t/v/1"},
            {"id": "2", "webVideoUrl": "https://t/v/2"},
        ])
        videos = fetch_channel_videos("token", "https://www.tiktok.com/@someone", 2)
        self.assertEqual([v.identity for v in videos], ["1", "2"])
        body = mock_post.call_args.kwargs["json"]
        self.assertEqual(body["profiles"], ["someone"])
        self.assertEqual(body["resultsPerPage"], 2)

    @mock.patch("app.core.channel_scan.requests.post")
    def test_unexpected_format(self, mock_post):
        mock_post.return_value = mock_response(json_data={"items": []})
        with self.assertRaises(UpstreamFormatError):
            fetch_channel_videos("token", "@someone", 2)

    @mock.patch("app.core.channel_scan.requests.post")
    def test_http_error_message(self, mock_post):
        mock_post.return_value = mock_response(
            status=401, json_data={"error": {"message": "User was not found"}})
        with self.assertRaises(NetworkError) as ctx:
            fetch_channel_videos("token", "@someone", 2)
        self.assertIn("User was not found", ctx.exception.message)


class TestStorage(unittest.TestCase):
    """Test the SQLite key-value store and credentials."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmpdir.name) / "app.db"
        self.db = Database(self.db_path)

    def tearDown(self):
        self.db.close()
        self.tmpdir.cleanup()

    def test_defaults_when_absent(self):
        self.assertEqual(self.db.get(StorageKey.APIFY_TOKEN, ""), "")
        self.assertEqual(self.db.get(StorageKey.TRANSCRIPT_CACHE, {}), {})

    def test_survives_reopen(self):
        self.db.set(StorageKey.TRANSCRIPT_CACHE, {"u": "lời thoại"})
        self.db.close()
        self.db = Database(self.db_path)
        self.assertEqual(self.db.get(StorageKey.TRANSCRIPT_CACHE), {"u": "lời thoại"})

    def test_delete(self):
        self.db.set("k", 1)
        self.db.delete("k")
        self.assertIsNone(self.db.get("k"))

    def test_credentials(self):
        self.assertEqual(get_credential(self.db, StorageKey.GEMINI_API_KEY), "")
        set_credential(self.db, StorageKey.GEMINI_API_KEY, "  secret  ")
        self.assertEqual(get_credential(self.db, StorageKey.GEMINI_API_KEY), "secret")
        set_credential(self.db, StorageKey.GEMINI_API_KEY, "")
        self.assertEqual(get_credential(self.db, StorageKey.GEMINI_API_KEY), "")
        with self.assertRaises(KeyError):
            set_credential(self.db, "other", "x")

    def test_mask_secret(self):
        self.assertEqual(mask_secret("abcdefgh"), "****efgh")
        self.assertEqual(mask_secret("abc"), "***")
        self.assertEqual(mask_secret(""), "")

    def test_diagnostics_hide_values(self):
        set_credential(self.db, StorageKey.APIFY_TOKEN, "apify-secret-0123")
        diag = get_diagnostics(self.db, self.db_path)
        self.assertTrue(diag["apify_token_set"])
        self.assertFalse(diag["gemini_key_set"])
        self.assertNotIn("apify-secret-0123", str(diag))


class TestTranscriptCache(unittest.TestCase):
    """Test the durable transcript cache."""

    def test_add_persists(self):
        store = MemoryStore()
        cache = TranscriptCache(store)
        cache.add("u1", "text one")
        self.assertIn("u1", cache)
        self.assertEqual(store.get(StorageKey.TRANSCRIPT_CACHE), {"u1": "text one"})
        # a fresh session sees the same data
        self.assertEqual(TranscriptCache(store).get("u1"), "text one")

    def test_bad_stored_value(self):
        store = MemoryStore({StorageKey.TRANSCRIPT_CACHE: ["not", "a", "dict"]})
        self.assertEqual(len(TranscriptCache(store)), 0)


class CountingToken(CancelToken):
    """CancelToken that records waits instead of sleeping."""

    def __init__(self, cancel_after_waits: int | None = None):
        super().__init__()
        self.waits: list[float] = []
        self.cancel_after_waits = cancel_after_waits

    def wait(self, timeout: float) -> bool:
        self.waits.append(timeout)
        if self.cancel_after_waits is not None and len(self.waits) >= self.cancel_after_waits:
            self.cancel()
        return self.is_cancelled


class FakeFetcher:
    def __init__(self, fail_urls=(), non_audio_urls=()):
        self.calls: list[str] = []
        self.fail_urls = set(fail_urls)
        self.non_audio_urls = set(non_audio_urls)

    def __call__(self, url, timeout=None):
        self.calls.append(url)
        if url in self.fail_urls:
            raise NetworkError(FETCH_FAILED_MESSAGE, detail="status: 404")
        if url in self.non_audio_urls:
            raise InvalidContentTypeError(FETCH_FAILED_MESSAGE, detail="Type: text/html")
        return AudioPayload(data_base64=url, mime_type="audio/mpeg")


class FakeTranscriber:
    def __init__(self, empty_for=(), on_call=None):
        self.calls: list[str] = []
        self.empty_for = set(empty_for)
        self.on_call = on_call

    def __call__(self, data_base64, mime_type, api_key, **kwargs):
        self.calls.append(data_base64)
        if self.on_call:
            self.on_call(len(self.calls))
        if data_base64 in self.empty_for:
            raise TranscriptionError("Gemini returned no transcript.")
        return f"transcript of {data_base64}"


class TestPipeline(unittest.TestCase):
    """Test the transcription pipeline controller."""

    def setUp(self):
        self.videos = [make_video(n) for n in range(1, 5)]
        self.audio_map = {v.source_url: f"https://cdn.example.com/{v.identity}.mp3"
                          for v in self.videos}
        self.store = MemoryStore()
        self.cache = TranscriptCache(self.store)
        self.fetcher = FakeFetcher()
        self.transcriber = FakeTranscriber()
        self.events = []
        self.pipeline = self._make_pipeline()

    def _make_pipeline(self, config=None):
        pipeline = TranscriptionPipeline(self.cache, config or {},
                                         fetcher=self.fetcher,
                                         transcriber=self.transcriber)
        pipeline.on_event = self.events.append
        return pipeline

    def _item_statuses(self, source_url):
        return [e.state.status for e in self.events
                if e.kind == EventKind.ITEM and e.source_url == source_url]

    def test_processes_all_items_with_n_minus_one_waits(self):
        token = CountingToken()
        summary = self.pipeline.run(self.videos, self.audio_map, "key", token)

        self.assertEqual(len(self.fetcher.calls), 4)
        self.assertEqual(len(self.transcriber.calls), 4)
        self.assertEqual(token.waits, [API_CALL_DELAY_SEC] * 3)
        self.assertEqual(summary.succeeded, 4)
        self.assertFalse(summary.stopped)
        self.assertIn("4 new transcript(s)", summary.message)
        self.assertEqual(self.events[-1].kind, EventKind.FINISHED)

    def test_fetches_in_scanned_order(self):
        self.pipeline.run(self.videos, self.audio_map, "key", CountingToken())
        self.assertEqual(self.fetcher.calls,
                         [self.audio_map[v.source_url] for v in self.videos])

    def test_configured_delay(self):
        pipeline = self._make_pipeline({"api_call_delay_sec": 0.5})
        token = CountingToken()
        pipeline.run(self.videos[:2], self.audio_map, "key", token)
        self.assertEqual(token.waits, [0.5])

    def test_stop_before_next_item(self):
        token = CountingToken()
        # stop arrives while item 2 is being transcribed
        self.transcriber.on_call = lambda n: token.cancel() if n == 2 else None
        summary = self.pipeline.run(self.videos, self.audio_map, "key", token)

        self.assertEqual(len(self.fetcher.calls), 2)
        self.assertEqual(summary.succeeded, 2)
        self.assertTrue(summary.stopped)
        self.assertIn("Stopped", summary.message)
        # no wait once the stop has been observed
        self.assertEqual(len(token.waits), 1)
        for video in self.videos[2:]:
            self.assertNotIn(video.source_url, self.cache)

    def test_stop_during_delay(self):
        token = CountingToken(cancel_after_waits=1)
        summary = self.pipeline.run(self.videos, self.audio_map, "key", token)
        self.assertEqual(len(self.fetcher.calls), 1)
        self.assertEqual(summary.succeeded, 1)
        self.assertTrue(summary.stopped)

    def test_cancelled_token_starts_nothing(self):
        token = CountingToken()
        token.cancel()
        summary = self.pipeline.run(self.videos, self.audio_map, "key", token)
        self.assertEqual(self.fetcher.calls, [])
        self.assertEqual(summary.succeeded, 0)
        self.assertTrue(summary.stopped)

    def test_cached_items_excluded(self):
        cached = self.videos[1]
        self.cache.add(cached.source_url, "old text")
        work = build_work_set(self.videos, self.audio_map, self.cache)
        self.assertNotIn(cached, work)

        self.pipeline.run(self.videos, self.audio_map, "key", CountingToken())
        self.assertNotIn(self.audio_map[cached.source_url], self.fetcher.calls)
        self.assertEqual(self.cache.get(cached.source_url), "old text")

    def test_unmatched_items_excluded(self):
        audio_map = {self.videos[0].source_url: "https://cdn.example.com/a.mp3"}
        token = CountingToken()
        summary = self.pipeline.run(self.videos, audio_map, "key", token)
        self.assertEqual(summary.total, 1)
        self.assertEqual(token.waits, [])

    def test_success_is_cached_with_exact_text(self):
        self.pipeline.run(self.videos, self.audio_map, "key", CountingToken())
        for video in self.videos:
            expected = f"transcript of {self.audio_map[video.source_url]}"
            self.assertEqual(self.cache.get(video.source_url), expected)
            self.assertEqual(self.pipeline.states[video.source_url].status,
                             TranscriptStatus.SUCCESS)
        self.assertEqual(len(self.store.get(StorageKey.TRANSCRIPT_CACHE)), 4)

    def test_state_sequence(self):
        self.pipeline.run(self.videos[:1], self.audio_map, "key", CountingToken())
        self.assertEqual(self._item_statuses(self.videos[0].source_url), [
            TranscriptStatus.PENDING, TranscriptStatus.FETCHING,
            TranscriptStatus.TRANSCRIBING, TranscriptStatus.SUCCESS,
        ])

    def test_failures_do_not_abort_run(self):
        bad_fetch = self.audio_map[self.videos[1].source_url]
        bad_type = self.audio_map[self.videos[2].source_url]
        empty = self.audio_map[self.videos[3].source_url]
        self.fetcher.fail_urls = {bad_fetch}
        self.fetcher.non_audio_urls = {bad_type}
        self.transcriber.empty_for = {empty}

        summary = self.pipeline.run(self.videos, self.audio_map, "key", CountingToken())

        self.assertEqual(summary.attempted, 4)
        self.assertEqual(summary.succeeded, 1)
        self.assertEqual(summary.failed, 3)
        for video in self.videos[1:]:
            state = self.pipeline.states[video.source_url]
            self.assertEqual(state.status, TranscriptStatus.ERROR)
            self.assertTrue(state.detail.startswith("Error:"))
            self.assertNotIn(video.source_url, self.cache)
        self.assertEqual(self._item_statuses(self.videos[1].source_url)[-2:],
                         [TranscriptStatus.FETCHING, TranscriptStatus.ERROR])

    def test_failed_item_retried_by_next_run(self):
        url = self.audio_map[self.videos[0].source_url]
        self.fetcher.fail_urls = {url}
        self.pipeline.run(self.videos[:1], self.audio_map, "key", CountingToken())
        self.assertNotIn(self.videos[0].source_url, self.cache)

        self.fetcher.fail_urls = set()
        summary = self.pipeline.run(self.videos[:1], self.audio_map, "key", CountingToken())
        self.assertEqual(summary.succeeded, 1)
        self.assertEqual(self.fetcher.calls, [url, url])

    def test_unexpected_exception_marks_item_error(self):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")
        pipeline = TranscriptionPipeline(self.cache, {}, fetcher=self.fetcher,
                                         transcriber=broken)
        summary = pipeline.run(self.videos[:2], self.audio_map, "key", CountingToken())
        self.assertEqual(summary.failed, 2)
        self.assertIn("boom", pipeline.states[self.videos[0].source_url].detail)

    def test_requires_matches_and_key(self):
        with self.assertRaises(ValidationError):
            self.pipeline.run(self.videos, {}, "key", CountingToken())
        with self.assertRaises(ValidationError):
            self.pipeline.run(self.videos, self.audio_map, "", CountingToken())
        self.assertEqual(self.fetcher.calls, [])

    def test_start_runs_in_background(self):
        pipeline = self._make_pipeline({"api_call_delay_sec": 0})
        token = pipeline.start(self.videos, self.audio_map, "key")
        pipeline._worker_thread.join(5)
        self.assertFalse(pipeline.is_running())
        self.assertFalse(token.is_cancelled)
        self.assertEqual(pipeline.last_summary.succeeded, 4)

    def test_each_start_gets_fresh_token(self):
        pipeline = self._make_pipeline({"api_call_delay_sec": 0})
        first = pipeline.start(self.videos[:1], self.audio_map, "key")
        pipeline._worker_thread.join(5)
        pipeline.stop()
        self.assertTrue(first.is_cancelled)

        second = pipeline.start(self.videos[1:2], self.audio_map, "key")
        pipeline._worker_thread.join(5)
        self.assertFalse(second.is_cancelled)
        self.assertEqual(pipeline.last_summary.succeeded, 1)

    def test_shutdown_stops_further_calls(self):
        pipeline = self._make_pipeline({"api_call_delay_sec": 0})
        self.transcriber.on_call = lambda n: pipeline.shutdown() if n == 1 else None
        pipeline.start(self.videos, self.audio_map, "key")
        pipeline._worker_thread.join(5)
        self.assertEqual(len(self.fetcher.calls), 1)
        self.assertTrue(pipeline.last_summary.stopped)
        self.assertEqual(pipeline.last_summary.succeeded, 1)

    def test_shutdown_during_fetch_skips_transcription(self):
        fetch_started = threading.Event()
        release = threading.Event()

        def slow_fetch(url, timeout=None):
            self.fetcher.calls.append(url)
            fetch_started.set()
            release.wait(5)
            return AudioPayload(data_base64=url, mime_type="audio/mpeg")

        pipeline = TranscriptionPipeline(self.cache, {"api_call_delay_sec": 0},
                                         fetcher=slow_fetch, transcriber=self.transcriber)
        pipeline.start(self.videos, self.audio_map, "key")
        self.assertTrue(fetch_started.wait(5))
        # worker is still inside the download
        self.assertFalse(pipeline.shutdown(timeout=0.1))

        release.set()
        pipeline._worker_thread.join(5)
        self.assertTrue(pipeline.shutdown())

        self.assertEqual(self.transcriber.calls, [])
        self.assertEqual(len(self.fetcher.calls), 1)
        self.assertTrue(pipeline.last_summary.stopped)
        self.assertEqual(pipeline.last_summary.succeeded, 0)
        self.assertEqual(len(self.cache), 0)
        self.assertEqual(pipeline.states[self.videos[0].source_url].status,
                         TranscriptStatus.ERROR)

    def test_stop_during_fetch_finishes_current_item(self):
        token = CountingToken()

        def fetch_then_stop(url, timeout=None):
            token.cancel()
            return AudioPayload(data_base64=url, mime_type="audio/mpeg")

        pipeline = TranscriptionPipeline(self.cache, {}, fetcher=fetch_then_stop,
                                         transcriber=self.transcriber)
        summary = pipeline.run(self.videos, self.audio_map, "key", token)
        self.assertEqual(len(self.transcriber.calls), 1)
        self.assertEqual(summary.succeeded, 1)
        self.assertTrue(summary.stopped)

    def test_shutdown_without_run(self):
        self.assertTrue(self.pipeline.shutdown())

    def test_not_running_when_finished_is_emitted(self):
        pipeline = self._make_pipeline({"api_call_delay_sec": 0})
        running_at_finish = []

        def on_event(event):
            if event.kind == EventKind.FINISHED:
                running_at_finish.append(pipeline.is_running())

        pipeline.on_event = on_event
        pipeline.start(self.videos[:1], self.audio_map, "key")
        pipeline._worker_thread.join(5)
        self.assertEqual(running_at_finish, [False])


class TestOutputWriter(unittest.TestCase):
    """Test CSV export."""

    def test_no_records_writes_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertIsNone(write_results_csv([], {}, Path(tmpdir)))
            self.assertFalse((Path(tmpdir) / EXPORT_FILENAME).exists())

    def test_quoting_round_trip(self):
        tricky = 'Hello, "world"\nsecond line'
        videos = [make_video(1, text=tricky), make_video(2)]
        cache = {videos[0].source_url: "xin chào"}
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_results_csv(videos, cache, Path(tmpdir))
            self.assertEqual(path.name, EXPORT_FILENAME)
            raw = path.read_bytes()
            self.assertTrue(raw.startswith(b"\xef\xbb\xbf"))
            self.assertIn(b'"Hello, ""world""', raw)

            with open(path, encoding="utf-8-sig", newline="") as f:
                rows = list(csv.reader(f))

        self.assertEqual(rows[0], CSV_HEADERS)
        self.assertEqual(len(rows[0]), 18)
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[1][6], tricky)
        self.assertEqual(rows[1][17], "xin chào")
        self.assertEqual(rows[2][17], "N/A")

    def test_row_values(self):
        video = make_video(1, digg_count=7, music=MusicMeta(name="s", author="a", original=True))
        row = build_csv_rows([video], {})[0]
        self.assertEqual(row[0], "id1")
        self.assertEqual(row[7], "7")
        self.assertEqual(row[16], "true")


class TestConfig(unittest.TestCase):
    """Test configuration defaults and coercion."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmpdir.name) / "config.json"

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_defaults(self):
        config = AppConfig(self.path)
        self.assertEqual(config.results_limit, DEFAULT_RESULTS_LIMIT)
        self.assertEqual(config.get('api_call_delay_sec'), API_CALL_DELAY_SEC)

    def test_clamping(self):
        config = AppConfig(self.path)
        config.set('results_limit', 5000)
        self.assertEqual(config.results_limit, 1000)
        config.set('api_call_delay_sec', "-3")
        self.assertEqual(config.get('api_call_delay_sec'), 0.0)
        config.set('results_limit', "abc")
        self.assertEqual(config.results_limit, DEFAULT_RESULTS_LIMIT)

    def test_persists(self):
        AppConfig(self.path).set('transcript_language', 'English')
        self.assertEqual(AppConfig(self.path).get('transcript_language'), 'English')

    def test_corrupt_file(self):
        self.path.write_text("{not json", encoding="utf-8")
        self.assertEqual(AppConfig(self.path).results_limit, DEFAULT_RESULTS_LIMIT)


if __name__ == "__main__":
    unittest.main()
