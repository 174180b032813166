"""Interface to the external capture device subsystem.

The recorder never captures or encodes media itself. A platform binding
implements MediaDevices and MediaRecorder; streams and tracks are plain
containers the binding fills in.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from ..models.capture import RecorderOptions

logger = logging.getLogger(__name__)


class MediaTrack:
    """One audio or video track of a stream."""

    def __init__(self, kind: str, label: str = ""):
        self.kind = kind
        self.label = label
        self.ready_state = "live"
        self._ended_listeners: List[Callable[[], None]] = []

    def stop(self) -> None:
        """Release the underlying source. Does not fire 'ended' listeners."""
        self.ready_state = "ended"

    def add_ended_listener(self, listener: Callable[[], None]) -> None:
        self._ended_listeners.append(listener)

    def remove_ended_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._ended_listeners:
            self._ended_listeners.remove(listener)

    def end(self) -> None:
        """Called by the platform when the source goes away on its own."""
        if self.ready_state == "ended":
            return
        self.ready_state = "ended"
        for listener in list(self._ended_listeners):
            listener()


class MediaStream:
    """An ordered set of tracks."""

    def __init__(self, tracks: Optional[List[MediaTrack]] = None):
        self.tracks: List[MediaTrack] = list(tracks or [])

    def add_track(self, track: MediaTrack) -> None:
        self.tracks.append(track)

    def get_tracks(self) -> List[MediaTrack]:
        return list(self.tracks)

    def get_audio_tracks(self) -> List[MediaTrack]:
        return [t for t in self.tracks if t.kind == "audio"]

    def get_video_tracks(self) -> List[MediaTrack]:
        return [t for t in self.tracks if t.kind == "video"]

    def stop(self) -> None:
        """Stop every track."""
        for track in self.tracks:
            track.stop()


class RecorderState(Enum):
    INACTIVE = "inactive"
    RECORDING = "recording"
    PAUSED = "paused"


class MediaRecorder(ABC):
    """Recorder over a stream that emits encoded chunks.

    Bindings call ``on_data_available`` with each chunk (in capture order)
    and ``on_stop`` once the device has fully stopped, after the last chunk.
    ``on_error`` reports a device failure during capture.
    """

    default_mime_type = "application/octet-stream"

    def __init__(self, stream: MediaStream, options: RecorderOptions):
        self.stream = stream
        self.options = options
        self.state = RecorderState.INACTIVE
        self.on_data_available: Optional[Callable[[bytes], None]] = None
        self.on_stop: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[BaseException], None]] = None

    @property
    def mime_type(self) -> str:
        return self.options.mime_type or self.default_mime_type

    @abstractmethod
    def start(self, timeslice_ms: int) -> None:
        """Begin recording, emitting a chunk every timeslice_ms."""
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def resume(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        """Request the recorder to stop; completion is signalled via on_stop."""
        pass


class MediaDevices(ABC):
    """Entry point to the platform's device subsystem."""

    @abstractmethod
    async def get_user_media(self, constraints: Dict[str, Any]) -> MediaStream:
        """Request camera/microphone access.

        Raises:
            Exception: Device-layer error; a ``name`` attribute such as
                'NotAllowedError' identifies its category
        """
        pass

    @abstractmethod
    async def get_display_media(self, constraints: Dict[str, Any]) -> MediaStream:
        """Request screen-share access."""
        pass

    @abstractmethod
    def is_type_supported(self, mime_type: str) -> bool:
        pass

    @abstractmethod
    def create_recorder(self, stream: MediaStream, options: RecorderOptions) -> MediaRecorder:
        pass

    async def enumerate_devices(self) -> List[Dict[str, Any]]:
        return []


LOCAL_HOSTS = ("localhost", "127.0.0.1")


def check_can_work(devices: Optional[MediaDevices], page_url: str) -> str:
    """Verify that recording can work in this environment.

    Returns:
        'ok', 'nowebrtc' if there is no device subsystem, or 'nothttps' if
        the page is served insecurely from a non-local host
    """
    if devices is None:
        return "nowebrtc"

    parsed = urlparse(page_url)
    if parsed.scheme == "https" or parsed.hostname in LOCAL_HOSTS:
        return "ok"
    logger.warning(f"Recording needs https, page is {page_url}")
    return "nothttps"
