"""Capture-related data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class CaptureKind(Enum):
    """Kind of media a recorder captures."""
    AUDIO = "audio"
    VIDEO = "video"
    SCREEN = "screen"


@dataclass(frozen=True)
class CaptureSettings:
    """Resolved capture settings for one recorder."""
    kind: CaptureKind
    bit_rate: int
    constraints: Dict[str, Any]
    codec_candidates: Tuple[str, ...]
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class RecorderOptions:
    """Options passed to the device recorder when capture begins."""
    audio_bits_per_second: Optional[int] = None
    video_bits_per_second: Optional[int] = None
    video_width: Optional[int] = None
    video_height: Optional[int] = None
    mime_type: Optional[str] = None  # None means the recorder's default codec


@dataclass(frozen=True)
class UploadDestination:
    """Where a finished recording is uploaded to."""
    repository_id: int
    draft_item_id: int
    context_id: int
    max_upload_size: int = -1  # bytes, -1 means unbounded

    @property
    def is_bounded(self) -> bool:
        return self.max_upload_size >= 0


@dataclass(frozen=True)
class MediaPayload:
    """A finalized recording: all fragments in capture order."""
    fragments: Tuple[bytes, ...]
    mime_type: str
    size: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "size", sum(len(f) for f in self.fragments))

    @property
    def data(self) -> bytes:
        return b"".join(self.fragments)
