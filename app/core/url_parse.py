"""
URL list parsing and channel reference handling.
"""

import csv
from urllib.parse import urlparse


def extract_profile_name(channel_ref: str) -> str:
    """
    Turn a channel reference into a bare profile name.
    Accepts https://www.tiktok.com/@name[/...], @name or name.
    """
    ref = channel_ref.strip()
    if not ref:
        return ""

    parsed = urlparse(ref)
    if parsed.scheme and parsed.netloc:
        for part in parsed.path.split('/'):
            if part.startswith('@') and len(part) > 1:
                return part[1:]
        return ref

    if ref.startswith('@'):
        return ref[1:]
    return ref


def is_http_url(value: str) -> bool:
    """Quick check if a string looks like an http(s) URL."""
    parsed = urlparse(value.strip())
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def parse_input_lines(text: str) -> list[str]:
    """
    Split pasted text into lines.
    - Trims whitespace
    - Ignores empty lines
    - Keeps order (positional matching depends on it)
    """
    lines = []
    for line in text.splitlines():
        line = line.strip()
        if line:
            lines.append(line)
    return lines


def parse_csv_file(filepath: str) -> list[str]:
    """
    Parse a CSV file for URLs.
    - If header includes 'url' (case-insensitive), use that column
    - Else use first column
    - Blank cells are skipped
    """
    with open(filepath, 'r', encoding='utf-8-sig', errors='replace', newline='') as f:
        rows = list(csv.reader(f))

    if not rows:
        return []

    header = rows[0]
    url_col_idx = 0
    for i, col in enumerate(header):
        if col.strip().lower() in ('url', 'audio_url', 'video_url'):
            url_col_idx = i
            rows = rows[1:]
            break
    else:
        # No recognized header: keep the first row only if it is itself a URL
        if not (header and is_http_url(header[0])):
            rows = rows[1:]

    urls = []
    for row in rows:
        if url_col_idx < len(row):
            cell = row[url_col_idx].strip()
            if cell:
                urls.append(cell)
    return urls


def parse_txt_file(filepath: str) -> list[str]:
    """Parse a .txt file containing one URL per line."""
    with open(filepath, 'r', encoding='utf-8', errors='replace') as f:
        return parse_input_lines(f.read())


def parse_input_file(filepath: str) -> list[str]:
    """Parse a .txt or .csv file into an ordered URL list."""
    ext = filepath.lower().rsplit('.', 1)[-1] if '.' in filepath else ''
    if ext == 'csv':
        return parse_csv_file(filepath)
    return parse_txt_file(filepath)
