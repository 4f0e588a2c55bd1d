"""
Output writer: exports scanned videos and cached transcripts as CSV.
"""

import csv
import logging
from pathlib import Path
from typing import Mapping

from app.core.constants import CSV_HEADERS, EXPORT_FILENAME, MISSING_TRANSCRIPT
from app.core.models import VideoRecord

logger = logging.getLogger(__name__)


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_csv_rows(videos: list[VideoRecord], transcripts: Mapping[str, str]) -> list[list[str]]:
    """One row per video, in CSV_HEADERS order."""
    rows = []
    for video in videos:
        transcript = transcripts.get(video.source_url) or MISSING_TRANSCRIPT
        rows.append([_cell(v) for v in (
            video.identity,
            video.source_url,
            video.create_time_iso,
            video.author.name,
            video.author.nickname,
            video.author.avatar,
            video.text,
            video.digg_count,
            video.comment_count,
            video.share_count,
            video.play_count,
            video.video.duration,
            video.video.height,
            video.video.width,
            video.music.name,
            video.music.author,
            video.music.original,
            transcript,
        )])
    return rows


def write_results_csv(videos: list[VideoRecord], transcripts: Mapping[str, str],
                      output_dir: Path) -> Path | None:
    """
    Write <output_dir>/tiktok_transcripts_full.csv (UTF-8 with BOM).
    Returns None without touching the disk when there is nothing to export.
    """
    if not videos:
        logger.info("No data to export")
        return None

    output_dir.mkdir(parents=True, exist_ok=True)
    output_file = output_dir / EXPORT_FILENAME

    with open(output_file, 'w', encoding='utf-8-sig', newline='') as f:
        writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL)
        writer.writerow(CSV_HEADERS)
        writer.writerows(build_csv_rows(videos, transcripts))

    logger.info("Wrote %d row(s) to %s", len(videos), output_file)
    return output_file
