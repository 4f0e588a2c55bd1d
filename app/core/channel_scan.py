"""
Channel scanning via the Apify TikTok scraper (run-sync dataset endpoint).
"""

import json
import logging
import uuid
import requests

from app.core.error_codes import ValidationError, NetworkError, UpstreamFormatError
from app.core.models import VideoRecord, AuthorMeta, VideoMeta, MusicMeta
from app.core.url_parse import extract_profile_name
from app.core.constants import APIFY_RUN_SYNC_URL, SCAN_TIMEOUT_SEC

logger = logging.getLogger(__name__)

_EPOCH_ISO = "1970-01-01T00:00:00.000Z"


def fetch_channel_videos(apify_token: str, channel_url: str, limit: int,
                         timeout: float = SCAN_TIMEOUT_SEC) -> list[VideoRecord]:
    """
    Scan a channel and return its latest videos, newest first.
    """
    if not apify_token:
        raise ValidationError("Apify API token is required.")
    if not channel_url or not channel_url.strip():
        raise ValidationError("TikTok channel URL is required.")

    profile = extract_profile_name(channel_url)
    body = {
        "profiles": [profile],
        "resultsPerPage": int(limit),
        "profileScrapeSections": ["videos"],
        "profileSorting": "latest",
        "excludePinnedPosts": False,
        "shouldDownloadVideos": False,
        "shouldDownloadCovers": False,
        "shouldDownloadSubtitles": False,
        "shouldDownloadSlideshowImages": False,
        "shouldDownloadAvatars": False,
    }

    logger.info("Scanning profile %s (limit %d)", profile, limit)
    try:
        resp = requests.post(
            APIFY_RUN_SYNC_URL,
            params={"token": apify_token},
            json=body,
            timeout=timeout,
        )
    except requests.exceptions.Timeout:
        raise NetworkError("Apify request timed out")
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Apify request failed: {type(e).__name__}")

    if not resp.ok:
        raise NetworkError(f"Apify API Error: {_apify_error_message(resp)}")

    try:
        raw = resp.json()
    except json.JSONDecodeError:
        raise UpstreamFormatError("Apify returned an unexpected data format.")

    if not isinstance(raw, list):
        raise UpstreamFormatError("Apify returned an unexpected data format.")

    videos = [video_from_item(item) for item in raw if isinstance(item, dict)]
    logger.info("Scan returned %d video(s)", len(videos))
    return videos


def _apify_error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.reason or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        error = data.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
    return resp.reason or f"HTTP {resp.status_code}"


def _value(data: dict | None, key: str, default):
    """Field lookup tolerating missing containers and explicit nulls."""
    if not isinstance(data, dict):
        return default
    value = data.get(key)
    return default if value is None else value


def video_from_item(item: dict) -> VideoRecord:
    """
    Map one raw dataset item to a VideoRecord, defaulting field by field.
    """
    source_url = str(_value(item, 'webVideoUrl', ''))
    identity = _value(item, 'id', None) or source_url or f"fallback-{uuid.uuid4()}"

    author = item.get('authorMeta')
    name = _value(author, 'name', 'Unknown')
    video = item.get('videoMeta')
    music = item.get('musicMeta')

    return VideoRecord(
        identity=str(identity),
        source_url=source_url,
        text=str(_value(item, 'text', '')),
        create_time=_value(item, 'createTime', 0),
        create_time_iso=str(_value(item, 'createTimeISO', _EPOCH_ISO)),
        author=AuthorMeta(
            name=name,
            nickname=_value(author, 'nickName', name),
            avatar=_value(author, 'avatar', ''),
        ),
        digg_count=_value(item, 'diggCount', 0),
        comment_count=_value(item, 'commentCount', 0),
        share_count=_value(item, 'shareCount', 0),
        play_count=_value(item, 'playCount', 0),
        video=VideoMeta(
            duration=_value(video, 'duration', 0),
            height=_value(video, 'height', 0),
            width=_value(video, 'width', 0),
        ),
        music=MusicMeta(
            name=_value(music, 'musicName', 'N/A'),
            author=_value(music, 'musicAuthor', 'N/A'),
            original=bool(_value(music, 'musicOriginal', False)),
        ),
    )
