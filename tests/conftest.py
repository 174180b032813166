"""Pytest configuration and fixtures for RecordRTC tests."""

import pytest
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import MagicMock

import yaml
from aiohttp.test_utils import TestServer

from recordrtc.capture.device import MediaDevices, MediaRecorder, MediaStream, MediaTrack, RecorderState
from recordrtc.capture.settings import resolve_capture_settings
from recordrtc.capture.timer import CountdownTimer
from recordrtc.models.capture import CaptureKind, UploadDestination
from recordrtc.models.session import DEVICE_STATES
from recordrtc.services.recording_session import RecordingSession


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: fast tests of a single component")
    config.addinivalue_line("markers", "integration: tests spanning several components")


class DeviceError(Exception):
    """Device-layer error carrying a DOMException style name."""

    def __init__(self, name: str, message: str = ""):
        super().__init__(message or name)
        self.name = name


class FakeRecorder(MediaRecorder):
    """Recorder driven by the test: emit() delivers chunks, confirm_stopped() ends it."""

    default_mime_type = "video/webm"

    def __init__(self, stream, options, sync_stop=False):
        super().__init__(stream, options)
        self.sync_stop = sync_stop
        self.timeslice_ms = None
        self.calls = []

    def start(self, timeslice_ms):
        self.timeslice_ms = timeslice_ms
        self.state = RecorderState.RECORDING
        self.calls.append("start")

    def pause(self):
        self.state = RecorderState.PAUSED
        self.calls.append("pause")

    def resume(self):
        self.state = RecorderState.RECORDING
        self.calls.append("resume")

    def stop(self):
        self.state = RecorderState.INACTIVE
        self.calls.append("stop")
        if self.sync_stop:
            self.confirm_stopped()

    def emit(self, data: bytes):
        self.on_data_available(data)

    def confirm_stopped(self):
        if self.on_stop:
            self.on_stop()


class FakeMediaDevices(MediaDevices):
    """Device subsystem returning fake streams and recorders."""

    def __init__(self, supported=(), user_media_error=None, display_media_error=None,
                 mic_error=None, sync_stop=False):
        self.supported = set(supported)
        self.user_media_error = user_media_error
        self.display_media_error = display_media_error
        self.mic_error = mic_error
        self.sync_stop = sync_stop
        self.requests = []
        self.streams = []
        self.recorders = []

    @property
    def recorder(self) -> FakeRecorder:
        return self.recorders[-1]

    async def get_user_media(self, constraints):
        self.requests.append(("user", constraints))
        if constraints == {"audio": True} and self.mic_error is not None:
            raise self.mic_error
        if self.user_media_error is not None:
            raise self.user_media_error
        tracks = [MediaTrack("audio", "microphone")]
        if constraints.get("video"):
            tracks.append(MediaTrack("video", "camera"))
        stream = MediaStream(tracks)
        self.streams.append(stream)
        return stream

    async def get_display_media(self, constraints):
        self.requests.append(("display", constraints))
        if self.display_media_error is not None:
            raise self.display_media_error
        stream = MediaStream([MediaTrack("video", "screen"), MediaTrack("audio", "system")])
        self.streams.append(stream)
        return stream

    def is_type_supported(self, mime_type):
        return mime_type in self.supported

    def create_recorder(self, stream, options):
        recorder = FakeRecorder(stream, options, sync_stop=self.sync_stop)
        self.recorders.append(recorder)
        return recorder


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def assert_device_invariant(session):
    """The device handle is held exactly in the device-owning states."""
    assert (session.device_handle is not None) == (session.state in DEVICE_STATES)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def devices():
    return FakeMediaDevices(supported={"audio/ogg;codecs=opus", "video/webm;codecs=h264,opus",
                                       "video/webm;codecs=vp8,opus"})


@pytest.fixture
def owner():
    """Mock session owner that records the state seen at each notification."""
    mock = MagicMock()
    mock.states = []

    def on_state_changed(session):
        assert_device_invariant(session)
        mock.states.append(session.state)

    mock.notify_state_changed.side_effect = on_state_changed
    return mock


@pytest.fixture
def make_session(devices, clock, owner):
    """Factory for sessions wired to the fake devices, clock and owner."""
    def _make(kind="audio", max_upload_size=-1, max_duration_s=5, **kwargs):
        kind = CaptureKind(kind)
        if kind is CaptureKind.AUDIO:
            settings = resolve_capture_settings(kind, 128000)
        else:
            settings = resolve_capture_settings(kind, 2500000, 640, 480)
        kwargs.setdefault("owner", owner)
        kwargs.setdefault("timer", CountdownTimer(period_ms=100, clock=clock, auto_tick=False))
        return RecordingSession(
            session_id=kwargs.pop("session_id", f"{kind.value}-widget"),
            settings=settings,
            devices=kwargs.pop("devices", devices),
            destination=UploadDestination(repository_id=4, draft_item_id=1234, context_id=56,
                                          max_upload_size=max_upload_size),
            max_duration_s=max_duration_s,
            **kwargs,
        )
    return _make


@pytest.fixture
def write_config(tmp_path):
    """Write a YAML config file and return its path."""
    def _write(data: dict) -> Path:
        path = tmp_path / "recordrtc.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f)
        return path
    return _write


@asynccontextmanager
async def serve(app):
    """Run an aiohttp application on a local test server."""
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()
