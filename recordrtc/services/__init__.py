"""Services layer for RecordRTC session logic."""

from .publisher import SessionPublisher
from .recording_session import RecordingSession
from .session_group import SessionGroup, build_session_group

__all__ = [
    "SessionPublisher",
    "RecordingSession",
    "SessionGroup",
    "build_session_group",
]
