"""Upload-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .capture import UploadDestination


class UploadOutcome(Enum):
    """Classified result of one upload attempt."""
    SUCCESS = "success"
    FETCH_ERROR = "fetch_error"
    TRANSPORT_ERROR = "transport_error"
    APPLICATION_ERROR = "application_error"
    ABORTED = "aborted"


@dataclass
class UploadTask:
    """One upload attempt in flight."""
    blob: bytes
    filename: str
    destination: UploadDestination
    bytes_total: int = 0
    bytes_sent: int = 0

    @property
    def progress(self) -> float:
        if not self.bytes_total:
            return 0.0
        return self.bytes_sent / self.bytes_total


@dataclass
class UploadResult:
    """Terminal outcome of an upload attempt."""
    outcome: UploadOutcome
    status: Optional[int] = None
    error_code: Optional[str] = None
    message: str = ""
    placeholder: Optional[str] = None
    bytes_sent: int = 0
    bytes_total: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome is UploadOutcome.SUCCESS
