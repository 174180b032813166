"""Session-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .capture import CaptureKind


class SessionState(Enum):
    """Lifecycle state of a recording session."""
    NEW = "new"
    STARTING = "starting"
    CAPTURING = "capturing"
    PAUSED = "paused"
    STOPPED = "stopped"  # finalizing, waiting for the device to confirm
    RECORDED = "recorded"
    FAILED = "failed"


# States in which the session owns a device handle
DEVICE_STATES = frozenset({SessionState.STARTING, SessionState.CAPTURING, SessionState.PAUSED})

# States from which a new capture attempt may begin
STARTABLE_STATES = frozenset({SessionState.NEW, SessionState.RECORDED, SessionState.FAILED})


class UploadState(Enum):
    """Progress of the upload of the current recording."""
    IDLE = "idle"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    FAILED = "failed"


@dataclass
class SessionStatus:
    """Snapshot of a session for the presentation layer."""
    session_id: str
    kind: CaptureKind
    state: SessionState
    elapsed_ms: int
    remaining_ms: int
    elapsed_label: str
    remaining_label: str
    bytes_accumulated: int
    upload_state: UploadState
    upload_progress: float
    button_label: str
    pause_label: str
    placeholder: Optional[str]
    progress_animating: bool
    controls_enabled: bool = True
