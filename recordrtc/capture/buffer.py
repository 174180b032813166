"""Chunk buffer that accumulates captured media fragments in arrival order."""

import time
import logging
from typing import List, Tuple

from ..models.capture import MediaPayload
from ..models.events import ChunkFrame

logger = logging.getLogger(__name__)


class ChunkBuffer:
    """Ordered store of media fragments for the current capture attempt."""

    def __init__(self):
        self.frames: List[ChunkFrame] = []
        self.total_bytes = 0
        self.start_time = None

    def __len__(self) -> int:
        return len(self.frames)

    @property
    def fragments(self) -> Tuple[bytes, ...]:
        return tuple(frame.data for frame in self.frames)

    def reset(self) -> None:
        """Drop all fragments. Only done when a new capture attempt begins."""
        self.frames.clear()
        self.total_bytes = 0
        self.start_time = None
        logger.debug("Chunk buffer cleared")

    def append(self, fragment: bytes) -> int:
        """Add a fragment to the end of the buffer.

        Args:
            fragment: Encoded media bytes, in capture order

        Returns:
            Cumulative size of all fragments in bytes
        """
        current_time = time.time()
        if self.start_time is None:
            self.start_time = current_time

        self.frames.append(ChunkFrame(
            data=fragment,
            timestamp=current_time,
            sequence_number=len(self.frames),
        ))
        self.total_bytes += len(fragment)

        logger.debug(f"Added chunk: {len(fragment)} bytes, "
                     f"buffer now has {len(self.frames)} chunks ({self.total_bytes} bytes)")
        return self.total_bytes

    def finalize(self, mime_type: str) -> MediaPayload:
        """Assemble all fragments into one payload of the given media type."""
        payload = MediaPayload(fragments=self.fragments, mime_type=mime_type)
        logger.info(f"Finalized {len(self.frames)} chunks into {payload.size} byte {mime_type} payload")
        return payload

    def get_buffer_stats(self) -> dict:
        """Get buffer statistics."""
        return {
            "chunk_count": len(self.frames),
            "total_bytes": self.total_bytes,
            "start_time": self.start_time,
            "newest_timestamp": self.frames[-1].timestamp if self.frames else None,
        }
