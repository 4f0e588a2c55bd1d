"""
Pair scanned videos with user-supplied audio URLs by line position.
"""

import logging
from typing import Iterable

from app.core.error_codes import ValidationError
from app.core.models import MatchResult

logger = logging.getLogger(__name__)


def match_urls(audio_lines: list[str], video_lines: list[str],
               known_source_urls: Iterable[str]) -> MatchResult:
    """
    Build a source_url -> audio URL mapping.

    Line i of audio_lines belongs to line i of video_lines. The result only
    keeps video URLs present in known_source_urls, in scanned order; the rest
    are dropped and show up only in the count. Callers must replace their
    previous mapping with the returned one, never merge.
    """
    audio = [line.strip() for line in audio_lines if line and line.strip()]
    video = [line.strip() for line in video_lines if line and line.strip()]

    if not audio or not video:
        raise ValidationError("Please enter URLs in both lists.")

    if len(audio) != len(video):
        raise ValidationError(
            f"Number of audio URLs ({len(audio)}) does not match "
            f"number of video URLs ({len(video)})."
        )

    pairs: dict[str, str] = {}
    for video_url, audio_url in zip(video, audio):
        pairs[video_url] = audio_url

    known = list(dict.fromkeys(known_source_urls))
    mapping = {url: pairs[url] for url in known if url in pairs}

    logger.info("Matched %d of %d pasted URL(s) against %d scanned video(s)",
                len(mapping), len(video), len(known))
    return MatchResult(mapping=mapping, matched_count=len(mapping),
                       total_scanned=len(known))
