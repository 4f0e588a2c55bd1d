"""
Data models (plain dataclasses) for ChannelTranscriber.
"""

from dataclasses import dataclass, field
from typing import Optional

from app.core.constants import TranscriptStatus


@dataclass(frozen=True)
class AuthorMeta:
    name: str = "Unknown"
    nickname: str = "Unknown"
    avatar: str = ""


@dataclass(frozen=True)
class VideoMeta:
    duration: float = 0
    height: int = 0
    width: int = 0


@dataclass(frozen=True)
class MusicMeta:
    name: str = "N/A"
    author: str = "N/A"
    original: bool = False


@dataclass(frozen=True)
class VideoRecord:
    identity: str                    # platform id, else canonical URL
    source_url: str                  # join key against audio URLs and cache
    text: str = ""
    create_time: int = 0
    create_time_iso: str = ""
    author: AuthorMeta = field(default_factory=AuthorMeta)
    digg_count: int = 0
    comment_count: int = 0
    share_count: int = 0
    play_count: int = 0
    video: VideoMeta = field(default_factory=VideoMeta)
    music: MusicMeta = field(default_factory=MusicMeta)


@dataclass
class MatchResult:
    mapping: dict[str, str]          # source_url -> audio URL
    matched_count: int
    total_scanned: int = 0


@dataclass(frozen=True)
class AudioPayload:
    data_base64: str
    mime_type: str


@dataclass(frozen=True)
class TranscriptState:
    status: str = TranscriptStatus.PENDING
    detail: str = ""


@dataclass(frozen=True)
class PipelineEvent:
    kind: str
    message: str = ""
    identity: Optional[str] = None
    source_url: Optional[str] = None
    state: Optional[TranscriptState] = None
    index: int = 0                   # 1-based position in the work-set
    total: int = 0


@dataclass
class RunSummary:
    total: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    stopped: bool = False
    message: str = ""
