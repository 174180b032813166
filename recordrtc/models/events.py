"""Event models for pub/sub session observation."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .session import SessionState


@dataclass
class ChunkFrame:
    """A single captured media fragment with its arrival metadata."""
    data: bytes
    timestamp: float  # Time when this fragment arrived
    sequence_number: int


@dataclass
class SessionEvent:
    """Session lifecycle event."""
    session_id: str
    event_type: str  # "state", "tick", "progress", "upload"
    state: SessionState
    previous_state: Optional[SessionState] = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
