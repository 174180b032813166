"""Session publisher module for pub/sub event publishing."""

import logging
from pubsub import pub

from ..models.events import SessionEvent

logger = logging.getLogger(__name__)


class SessionPublisher:
    """Publishes session events and alerts using pubsub.pub."""

    def __init__(self, topic: str = "recordrtc_session", alert_topic: str = "recordrtc_alert"):
        """Initialize session publisher.

        Args:
            topic: Pub/sub topic name for session events
            alert_topic: Pub/sub topic name for user alerts
        """
        self.topic = topic
        self.alert_topic = alert_topic
        logger.info(f"SessionPublisher initialized with topics: {topic}, {alert_topic}")

    def publish_event(self, event: SessionEvent) -> None:
        """Publish a session event to the pub/sub topic."""
        pub.sendMessage(self.topic, event=event)
        # logger.debug(f"Published session event: {event.event_type}")

    def publish_alert(self, session_id: str, subject: str) -> None:
        """Publish an alert that the presentation layer shows as a modal."""
        pub.sendMessage(self.alert_topic, session_id=session_id, subject=subject)
        logger.debug(f"Published alert {subject} for {session_id}")
