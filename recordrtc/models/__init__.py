"""Data models for the RecordRTC recorder."""

from .capture import CaptureKind, CaptureSettings, RecorderOptions, UploadDestination, MediaPayload
from .session import SessionState, SessionStatus, UploadState, DEVICE_STATES, STARTABLE_STATES
from .upload import UploadOutcome, UploadTask, UploadResult
from .events import ChunkFrame, SessionEvent

__all__ = [
    "CaptureKind",
    "CaptureSettings",
    "RecorderOptions",
    "UploadDestination",
    "MediaPayload",
    "SessionState",
    "SessionStatus",
    "UploadState",
    "DEVICE_STATES",
    "STARTABLE_STATES",
    "UploadOutcome",
    "UploadTask",
    "UploadResult",
    "ChunkFrame",
    "SessionEvent",
]
