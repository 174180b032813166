"""Recording session that drives one capture device through its lifecycle."""

import asyncio
import logging
from typing import Any, Callable, Optional

from ..capture.buffer import ChunkBuffer
from ..capture.device import MediaDevices, MediaRecorder, MediaStream, RecorderState
from ..capture.preview import create_object_url, revoke_object_url
from ..capture.settings import recorder_options
from ..capture.timer import CountdownTimer, format_time_label
from ..errors import CaptureError, InvalidTransitionError, UploadAborted, classify_capture_error
from ..models.capture import CaptureKind, CaptureSettings, MediaPayload, UploadDestination
from ..models.events import SessionEvent
from ..models.session import DEVICE_STATES, STARTABLE_STATES, SessionState, SessionStatus, UploadState
from ..models.upload import UploadResult
from ..upload.pipeline import UploadPipeline
from .publisher import SessionPublisher

logger = logging.getLogger(__name__)

SIZE_LIMIT_ALERT = "nearingmaxsize"

START_LABELS = {
    CaptureKind.AUDIO: "startrecording",
    CaptureKind.VIDEO: "startcamera",
    CaptureKind.SCREEN: "startsharescreen",
}


class RecordingSession:
    """State machine owning one device handle, one timer and one chunk buffer.

    States: NEW -> STARTING (video/screen only) -> CAPTURING <-> PAUSED ->
    STOPPED -> RECORDED, or FAILED on a device/permission error. A new
    attempt may begin from NEW, RECORDED or FAILED.

    The owner (usually a SessionGroup) is notified through show_alert,
    notify_state_changed, notify_recording_complete and
    notify_upload_finished.
    """

    def __init__(self,
                 session_id: str,
                 settings: CaptureSettings,
                 devices: MediaDevices,
                 destination: UploadDestination,
                 max_duration_s: int,
                 pipeline: Optional[UploadPipeline] = None,
                 publisher: Optional[SessionPublisher] = None,
                 owner: Any = None,
                 notify_data_changed: Optional[Callable[[], None]] = None,
                 filename: Optional[str] = None,
                 timer: Optional[CountdownTimer] = None,
                 timeslice_ms: int = 1000):
        """Initialize recording session.

        Args:
            session_id: Identifier of the widget this session drives
            settings: Resolved capture settings
            devices: Device subsystem to acquire streams and recorders from
            destination: Upload destination, including the maximum upload size
            max_duration_s: Maximum recording duration in seconds
            pipeline: Upload pipeline used once a recording is finalized
            publisher: Publishes state changes for the presentation layer
            owner: Group coordinator receiving alerts and notifications
            notify_data_changed: Called once per chunk, to flag unsaved data
            filename: Name the recording is uploaded as
            timer: Countdown timer (a default 100ms ticking timer if None)
            timeslice_ms: How often the recorder emits a chunk
        """
        self.session_id = session_id
        self.settings = settings
        self.devices = devices
        self.destination = destination
        self.max_duration_ms = int(max_duration_s) * 1000
        self.pipeline = pipeline
        self.publisher = publisher
        self.owner = owner
        self.notify_data_changed = notify_data_changed
        self.filename = filename or self._default_filename(settings.kind)
        self.timeslice_ms = timeslice_ms

        self.timer = timer or CountdownTimer()
        self.timer.on_tick = self._handle_tick
        self.timer.on_expire = self._handle_time_limit
        self.buffer = ChunkBuffer()

        self.state = SessionState.NEW
        self.recorder: Optional[MediaRecorder] = None
        self.payload: Optional[MediaPayload] = None
        self.preview_url: Optional[str] = None
        self.last_error: Optional[CaptureError] = None
        self.placeholder: Optional[str] = None
        self.size_limit_alerted = False
        self.controls_enabled = True

        self.upload_state = UploadState.IDLE
        self.upload_progress = 0.0
        self.upload_result: Optional[UploadResult] = None

        self._stream: Optional[MediaStream] = None
        self._acquiring = False
        self._composing = False
        self._stopping = False
        self._stop_confirmed = False
        self._attempt = 0
        self._finalized = asyncio.Event()

        logger.info(f"RecordingSession {session_id} created for {settings.kind.value}")

    @staticmethod
    def _default_filename(kind: CaptureKind) -> str:
        return "recording.ogg" if kind is CaptureKind.AUDIO else "recording.webm"

    @property
    def kind(self) -> CaptureKind:
        return self.settings.kind

    @property
    def device_handle(self) -> Optional[MediaStream]:
        return self._stream

    @property
    def bytes_accumulated(self) -> int:
        return self.buffer.total_bytes

    @property
    def time_remaining_ms(self) -> int:
        if self.state in (SessionState.NEW, SessionState.STARTING, SessionState.FAILED):
            return self.max_duration_ms
        return max(0, self.timer.remaining_ms)

    @property
    def deadline_epoch_ms(self) -> Optional[int]:
        return self.timer.deadline_ms if self.timer.running else None

    @property
    def is_active(self) -> bool:
        """True while the session holds, or is acquiring, the device."""
        return self._acquiring or self.state in DEVICE_STATES or self.state is SessionState.STOPPED

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Request the capture device and begin a new attempt."""
        if self.state not in STARTABLE_STATES or self._acquiring:
            raise InvalidTransitionError(f"Cannot start from {self.state.value}")
        if self.upload_state is UploadState.UPLOADING:
            raise InvalidTransitionError("Cannot start while the previous recording uploads")

        if self.state is not SessionState.NEW:
            self._set_state(SessionState.NEW)
        self._begin_attempt()
        attempt = self._attempt
        self._acquiring = True
        self._notify_owner()
        logger.info(f"Session {self.session_id}: requesting {self.kind.value} device")

        try:
            if self.kind is CaptureKind.SCREEN:
                stream = await self.devices.get_display_media(self.settings.constraints)
            else:
                stream = await self.devices.get_user_media(self.settings.constraints)
        except Exception as e:
            if attempt != self._attempt:
                logger.info(f"Session {self.session_id}: ignoring device error of a superseded attempt: {e}")
                return
            self._acquiring = False
            self._handle_capture_failed(e)
            return

        if attempt != self._attempt:
            # Closed or restarted while the device request was pending.
            logger.info(f"Session {self.session_id}: releasing device granted to a superseded attempt")
            stream.stop()
            return

        self._acquiring = False
        self._handle_capture_starting(stream)

    async def confirm_start(self) -> None:
        """Start recording once the preview is showing (video/screen)."""
        if self.state is not SessionState.STARTING or self._composing:
            raise InvalidTransitionError(f"Cannot confirm start from {self.state.value}")

        if self.kind is CaptureKind.SCREEN:
            self._composing = True
            try:
                await self._compose_screen_stream()
            finally:
                self._composing = False
            if self.state is not SessionState.STARTING:
                # Sharing ended while the microphone was being acquired.
                return

        self._start_saving()

    def pause(self) -> None:
        if self.state is not SessionState.CAPTURING or self._stopping:
            raise InvalidTransitionError(f"Cannot pause from {self.state.value}")
        self.timer.pause()
        self.recorder.pause()
        self._set_state(SessionState.PAUSED)

    def resume(self) -> None:
        if self.state is not SessionState.PAUSED:
            raise InvalidTransitionError(f"Cannot resume from {self.state.value}")
        self.timer.resume()
        self.recorder.resume()
        self._set_state(SessionState.CAPTURING)

    def stop(self) -> None:
        """Stop capturing and release the device.

        The payload is assembled only once the recorder confirms it has
        fully stopped, so the last chunk is never lost.
        """
        if self.state not in (SessionState.CAPTURING, SessionState.PAUSED) or self._stopping:
            raise InvalidTransitionError(f"Cannot stop from {self.state.value}")

        logger.info(f"Session {self.session_id}: stopping capture")
        self.timer.stop()
        self._stopping = True
        self._stop_confirmed = False
        self.recorder.stop()
        self._release_device()
        self._set_state(SessionState.STOPPED)

        if self._stop_confirmed:
            self._finalize()

    def handle_device_error(self, error: BaseException) -> None:
        """Report a device failure that happened while the device is held."""
        if self.state not in DEVICE_STATES:
            logger.warning(f"Session {self.session_id}: ignoring device error in {self.state.value}: {error}")
            return
        self._handle_capture_failed(error)

    async def upload(self) -> UploadResult:
        """Upload the finalized recording through the pipeline."""
        if self.state is not SessionState.RECORDED or self.preview_url is None:
            raise InvalidTransitionError(f"Nothing to upload in {self.state.value}")
        if self.pipeline is None:
            raise InvalidTransitionError("Session has no upload pipeline")
        if self.upload_state is UploadState.UPLOADING:
            raise InvalidTransitionError("Upload already in progress")

        attempt = self._attempt
        self.upload_state = UploadState.UPLOADING
        self.upload_progress = 0.0
        self._publish("upload")

        try:
            result = await self.pipeline.upload(self.preview_url, self.destination, self.filename,
                                                progress=self._handle_upload_progress)
        except asyncio.CancelledError:
            if attempt == self._attempt:
                logger.warning(f"Session {self.session_id}: upload cancelled")
                self.upload_state = UploadState.FAILED
                self.placeholder = UploadAborted.placeholder
                self._publish("upload", outcome="cancelled")
                if self.owner:
                    self.owner.notify_upload_finished(self)
            raise

        if attempt != self._attempt:
            logger.warning(f"Session {self.session_id}: discarding result of a superseded upload")
            return result

        self.upload_result = result
        if result.succeeded:
            self.upload_state = UploadState.UPLOADED
            self.upload_progress = 1.0
        else:
            self.upload_state = UploadState.FAILED
            self.placeholder = result.placeholder
        self._publish("upload", outcome=result.outcome.value)
        if self.owner:
            self.owner.notify_upload_finished(self)
        return result

    def abort_upload(self) -> bool:
        if self.pipeline is None:
            return False
        return self.pipeline.abort()

    async def wait_until_finalized(self) -> SessionState:
        """Wait until the current attempt is RECORDED, FAILED or back to NEW."""
        await self._finalized.wait()
        return self.state

    def close(self) -> None:
        """Tear the session down: release the device and drop the recording."""
        logger.info(f"Session {self.session_id}: closing")
        self.timer.stop()
        self._attempt += 1
        if self.pipeline is not None:
            self.pipeline.abort()
        recorder, self.recorder = self.recorder, None
        if recorder is not None and recorder.state is not RecorderState.INACTIVE:
            recorder.stop()
        self._release_device()
        self._revoke_preview()
        self.buffer.reset()
        self.payload = None
        self.upload_state = UploadState.IDLE
        self.upload_progress = 0.0
        self.upload_result = None
        self.last_error = None
        self.placeholder = None
        self._acquiring = False
        self._stopping = False
        if self.state is not SessionState.NEW:
            self._set_state(SessionState.NEW)
        else:
            self._finalized.set()
            self._notify_owner()

    # ------------------------------------------------------------------
    # Device callbacks
    # ------------------------------------------------------------------

    def _handle_capture_starting(self, stream: MediaStream) -> None:
        self._stream = stream
        if self.kind is CaptureKind.AUDIO:
            self._start_saving()
            return

        if self.kind is CaptureKind.SCREEN:
            video_tracks = stream.get_video_tracks()
            if video_tracks:
                video_tracks[0].add_ended_listener(self._handle_stop_sharing)
        self._set_state(SessionState.STARTING)

    async def _compose_screen_stream(self) -> None:
        """Combine the screen video with a separately acquired microphone.

        Audio tracks of the screen stream are stopped and discarded.
        """
        try:
            await self.devices.enumerate_devices()
            mic_stream = await self.devices.get_user_media({"audio": True})
        except Exception as e:
            # The recording goes ahead without microphone sound.
            logger.debug(f"Session {self.session_id}: microphone unavailable for screen capture: {e}")
            return

        if self.state is not SessionState.STARTING or self._stream is None:
            mic_stream.stop()
            return

        composed = MediaStream()
        for track in self._stream.get_tracks():
            if track.kind == "video":
                composed.add_track(track)
            else:
                track.stop()
        for mic_track in mic_stream.get_audio_tracks():
            composed.add_track(mic_track)
        self._stream = composed
        logger.debug(f"Session {self.session_id}: composed stream with {len(composed.tracks)} tracks")

    def _start_saving(self) -> None:
        options = recorder_options(self.settings, self.devices.is_type_supported)
        self.buffer.reset()
        self.size_limit_alerted = False
        try:
            self.recorder = self.devices.create_recorder(self._stream, options)
            self.recorder.on_data_available = self._handle_data_available
            self.recorder.on_stop = self._handle_recording_has_stopped
            self.recorder.on_error = self.handle_device_error
            self.recorder.start(self.timeslice_ms)
        except Exception as e:
            self._handle_capture_failed(e)
            return

        logger.info(f"Session {self.session_id}: recording with {options.mime_type or 'default codec'}")
        self.timer.start(self.max_duration_ms)
        self._set_state(SessionState.CAPTURING)

    def _handle_data_available(self, data: bytes) -> None:
        if not data:
            return  # Happens around pausing.
        if self.state not in (SessionState.CAPTURING, SessionState.PAUSED, SessionState.STOPPED):
            logger.debug(f"Session {self.session_id}: dropping chunk in {self.state.value}")
            return

        total = self.buffer.append(data)
        if self.notify_data_changed:
            self.notify_data_changed()

        if (self.destination.is_bounded
                and total >= self.destination.max_upload_size
                and not self.size_limit_alerted
                and self.state in (SessionState.CAPTURING, SessionState.PAUSED)
                and not self._stopping):
            self.size_limit_alerted = True
            logger.warning(f"Session {self.session_id}: {total} bytes reached the "
                           f"{self.destination.max_upload_size} byte limit, stopping")
            self.stop()
            self._alert(SIZE_LIMIT_ALERT)

    def _handle_recording_has_stopped(self) -> None:
        if self.state is SessionState.STOPPED:
            self._finalize()
        elif self._stopping:
            self._stop_confirmed = True
        else:
            # The recorder was stopped after a failure or teardown.
            logger.debug(f"Session {self.session_id}: recorder stopped in {self.state.value}")

    def _finalize(self) -> None:
        payload = self.buffer.finalize(self.recorder.mime_type)
        self.payload = payload
        self.preview_url = create_object_url(payload)
        self.recorder = None
        self._stopping = False
        self._stop_confirmed = False
        self._set_state(SessionState.RECORDED)

        if len(self.buffer) > 0 and self.owner:
            self.owner.notify_recording_complete(self)

    def _handle_stop_sharing(self) -> None:
        """The platform ended the screen share."""
        logger.info(f"Session {self.session_id}: screen sharing ended in {self.state.value}")
        if self.state is SessionState.STARTING:
            self._release_device()
            self._set_state(SessionState.NEW)
        elif self.state in (SessionState.CAPTURING, SessionState.PAUSED) and not self._stopping:
            self.stop()

    def _handle_capture_failed(self, error: BaseException) -> None:
        capture_error = classify_capture_error(error)
        logger.error(f"Session {self.session_id}: capture failed ({capture_error.reason}): {error}")

        self.timer.stop()
        recorder, self.recorder = self.recorder, None
        self._stopping = False
        if recorder is not None and recorder.state is not RecorderState.INACTIVE:
            recorder.stop()
        self._release_device()

        self.last_error = capture_error
        self.placeholder = "recordingfailed"
        self._set_state(SessionState.FAILED)
        self._alert(capture_error.alert_subject)

    def _handle_tick(self, elapsed_ms: int, remaining_ms: int) -> None:
        self._publish("tick", elapsed_ms=elapsed_ms, remaining_ms=remaining_ms)

    def _handle_time_limit(self) -> None:
        if self.state in (SessionState.CAPTURING, SessionState.PAUSED) and not self._stopping:
            logger.info(f"Session {self.session_id}: time limit reached")
            self.stop()

    def _handle_upload_progress(self, sent: int, total: int) -> None:
        self.upload_progress = sent / total if total else 0.0
        self._publish("progress", percent=round(self.upload_progress * 100))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_attempt(self) -> None:
        self._attempt += 1
        self._revoke_preview()
        self.buffer.reset()
        self.timer.stop()
        self.recorder = None
        self.payload = None
        self.last_error = None
        self.placeholder = None
        self.size_limit_alerted = False
        self.upload_state = UploadState.IDLE
        self.upload_progress = 0.0
        self.upload_result = None
        self._stopping = False
        self._stop_confirmed = False
        self._finalized.clear()

    def _release_device(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        for track in stream.get_tracks():
            track.remove_ended_listener(self._handle_stop_sharing)
            track.stop()
        logger.debug(f"Session {self.session_id}: device released")

    def _revoke_preview(self) -> None:
        if self.preview_url:
            revoke_object_url(self.preview_url)
        self.preview_url = None

    def _set_state(self, new_state: SessionState) -> None:
        old_state = self.state
        self.state = new_state
        logger.info(f"Session {self.session_id}: {old_state.value} -> {new_state.value}")

        if new_state in (SessionState.RECORDED, SessionState.FAILED, SessionState.NEW):
            self._finalized.set()

        self._publish("state", previous_state=old_state)
        self._notify_owner()

    def _notify_owner(self) -> None:
        if self.owner:
            self.owner.notify_state_changed(self)

    def _alert(self, subject: str) -> None:
        if self.owner:
            self.owner.show_alert(self, subject)
        elif self.publisher:
            self.publisher.publish_alert(self.session_id, subject)

    def _publish(self, event_type: str, previous_state: Optional[SessionState] = None, **metadata) -> None:
        if not self.publisher:
            return
        self.publisher.publish_event(SessionEvent(
            session_id=self.session_id,
            event_type=event_type,
            state=self.state,
            previous_state=previous_state,
            metadata=metadata,
        ))

    def status(self) -> SessionStatus:
        """Snapshot of everything the presentation layer displays."""
        remaining_ms = self.time_remaining_ms
        max_seconds = self.max_duration_ms // 1000
        seconds_remaining = round(remaining_ms / 1000)

        return SessionStatus(
            session_id=self.session_id,
            kind=self.kind,
            state=self.state,
            elapsed_ms=self.max_duration_ms - remaining_ms,
            remaining_ms=remaining_ms,
            elapsed_label=format_time_label(max_seconds - seconds_remaining),
            remaining_label=format_time_label(seconds_remaining),
            bytes_accumulated=self.bytes_accumulated,
            upload_state=self.upload_state,
            upload_progress=self.upload_progress,
            button_label=self._button_label(),
            pause_label="resume" if self.state is SessionState.PAUSED else "pause",
            placeholder=self.placeholder,
            progress_animating=self.state is SessionState.CAPTURING,
            controls_enabled=self.controls_enabled,
        )

    def _button_label(self) -> str:
        if self.state is SessionState.NEW:
            return START_LABELS[self.kind]
        if self.state is SessionState.STARTING:
            return "startrecording"
        if self.state in (SessionState.CAPTURING, SessionState.PAUSED, SessionState.STOPPED):
            return "stoprecording"
        if self.upload_state is UploadState.UPLOADING:
            return "uploadprogress" if self.upload_progress > 0 else "uploadpreparing"
        return "recordagainx"
