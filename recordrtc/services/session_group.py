"""Coordinator for the recording sessions of one question."""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from ..capture.device import MediaDevices, check_can_work
from ..capture.timer import CountdownTimer
from ..config import RecordRTCConfig
from ..models.capture import CaptureKind
from ..models.session import SessionState
from ..upload.pipeline import UploadPipeline
from .publisher import SessionPublisher
from .recording_session import RecordingSession

logger = logging.getLogger(__name__)


class SessionGroup:
    """Aggregates the sessions of one question instance.

    While one session holds (or is acquiring) a capture device every other
    session's controls, and the submit control, are disabled. Device access
    itself is not arbitrated here.
    """

    def __init__(self,
                 group_id: str,
                 publisher: Optional[SessionPublisher] = None,
                 auto_upload: bool = True):
        """Initialize session group.

        Args:
            group_id: Identifier of the question the sessions belong to
            publisher: Publishes alerts for the presentation layer
            auto_upload: Upload each recording as soon as it is complete
        """
        self.group_id = group_id
        self.publisher = publisher
        self.auto_upload = auto_upload

        self.sessions: Dict[str, RecordingSession] = {}
        self.active_session: Optional[RecordingSession] = None
        self.submit_enabled = False
        self.alerts: List[tuple] = []
        self.upload_tasks: Set[asyncio.Task] = set()

        logger.info(f"SessionGroup {group_id} initialized")

    def add_session(self, session: RecordingSession) -> RecordingSession:
        if session.session_id in self.sessions:
            raise ValueError(f"Duplicate session id: {session.session_id}")
        session.owner = self
        self.sessions[session.session_id] = session
        self._update_controls()
        return session

    def get_session(self, session_id: str) -> RecordingSession:
        return self.sessions[session_id]

    def is_any_recorded(self) -> bool:
        """True iff at least one session holds a finished recording."""
        return any(s.state is SessionState.RECORDED for s in self.sessions.values())

    def controls_enabled(self, session_id: str) -> bool:
        return self.sessions[session_id].controls_enabled

    # ------------------------------------------------------------------
    # Session owner callbacks
    # ------------------------------------------------------------------

    def notify_state_changed(self, session: RecordingSession) -> None:
        if session.is_active:
            if self.active_session is not None and self.active_session is not session:
                logger.warning(f"Session {session.session_id} became active while "
                               f"{self.active_session.session_id} holds the device")
            self.active_session = session
        elif self.active_session is session:
            self.active_session = None
        self._update_controls()

    def notify_recording_complete(self, session: RecordingSession) -> None:
        logger.info(f"Recording complete in session {session.session_id}")
        if not self.auto_upload or session.pipeline is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop running, upload for {session.session_id} not started")
            return
        task = loop.create_task(session.upload())
        self.upload_tasks.add(task)
        task.add_done_callback(self.upload_tasks.discard)

    def notify_upload_finished(self, session: RecordingSession) -> None:
        result = session.upload_result
        logger.info(f"Upload for session {session.session_id} finished: "
                    f"{result.outcome.value if result else 'none'}")
        self._update_controls()

    def show_alert(self, session: RecordingSession, subject: str) -> None:
        logger.info(f"Alert for session {session.session_id}: {subject}")
        self.alerts.append((session.session_id, subject))
        if self.publisher:
            self.publisher.publish_alert(session.session_id, subject)

    # ------------------------------------------------------------------

    def _update_controls(self) -> None:
        active = self.active_session
        for session in self.sessions.values():
            session.controls_enabled = active is None or session is active
        self.submit_enabled = active is None and self.is_any_recorded()
        logger.debug(f"Group {self.group_id}: active={active.session_id if active else None}, "
                     f"submit_enabled={self.submit_enabled}")

    async def wait_for_uploads(self) -> None:
        if self.upload_tasks:
            await asyncio.gather(*list(self.upload_tasks), return_exceptions=True)

    def close(self) -> None:
        for task in list(self.upload_tasks):
            task.cancel()
        for session in self.sessions.values():
            session.close()


def build_session_group(config: RecordRTCConfig,
                        group_id: str,
                        devices: Optional[MediaDevices],
                        page_url: str,
                        widgets: List[dict],
                        notify_data_changed: Optional[Callable[[], None]] = None,
                        timer_factory: Optional[Callable[[], CountdownTimer]] = None) -> SessionGroup:
    """Create a group with one session per widget description.

    Each widget is a dict with 'id', 'kind', 'repository_id', 'draft_item_id',
    'context_id' and optionally 'filename'.

    Raises:
        RuntimeError: If recording cannot work in this environment
    """
    result = check_can_work(devices, page_url)
    if result != "ok":
        raise RuntimeError(f"Recording is not possible here: {result}")

    publisher = SessionPublisher(
        topic=config.get('pubsub.session_topic', 'recordrtc_session'),
        alert_topic=config.get('pubsub.alert_topic', 'recordrtc_alert'),
    )
    group = SessionGroup(group_id, publisher=publisher)
    tick_ms = config.get('timer.tick_ms', 100)

    for widget in widgets:
        kind = CaptureKind(widget['kind'])
        destination = config.upload_destination(
            widget['repository_id'], widget['draft_item_id'], widget['context_id'])
        session = RecordingSession(
            session_id=widget['id'],
            settings=config.capture_settings(kind),
            devices=devices,
            destination=destination,
            max_duration_s=config.get('limits.max_recording_duration', 30),
            pipeline=config.upload_pipeline(),
            publisher=publisher,
            notify_data_changed=notify_data_changed,
            filename=widget.get('filename'),
            timer=timer_factory() if timer_factory else CountdownTimer(period_ms=tick_ms),
            timeslice_ms=config.get('capture.timeslice_ms', 1000),
        )
        group.add_session(session)

    logger.info(f"Built group {group_id} with {len(group.sessions)} sessions")
    return group
