"""Error taxonomy for capture and upload failures."""

import logging
from typing import Dict, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RecordRTCError(Exception):
    """Base class for all recorder errors."""


class InvalidTransitionError(RecordRTCError):
    """Raised when a lifecycle operation is not legal in the current state."""


class CaptureError(RecordRTCError):
    """A capture device or permission problem.

    Attributes:
        reason: Normalized reason string (e.g. 'permission', 'notfound')
        original: The exception raised by the device layer, if any
    """

    def __init__(self, reason: str, message: str = "", original: Optional[BaseException] = None):
        super().__init__(message or reason)
        self.reason = reason
        self.original = original

    @property
    def alert_subject(self) -> str:
        """Alert subject shown to the user, e.g. 'gumpermission'."""
        return f"gum{self.reason}"


class CapturePermissionError(CaptureError):
    """Access to the capture device was denied."""


class DeviceUnavailableError(CaptureError):
    """No capture device matching the constraints could be used."""


class UnknownCaptureError(CaptureError):
    """Fallback for device errors of an unrecognised category."""


class UploadError(RecordRTCError):
    """Base class for upload failures.

    Attributes:
        placeholder: Message key shown in place of the media preview
    """

    placeholder = "uploadfailed"


class FetchError(UploadError):
    """The finalized payload could not be retrieved for upload."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransportError(UploadError):
    """The upload endpoint answered with a non-success HTTP status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def placeholder(self) -> str:
        if self.status == 404:
            return "uploadfailed404"
        return "uploadfailed"


class ApplicationError(UploadError):
    """The transfer succeeded but the server rejected the content."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.error_code = error_code


class UploadAborted(UploadError):
    """The upload was cancelled by the user or the environment."""

    placeholder = "uploadaborted"


# Device error names (DOMException style) -> (reason, error class)
_CAPTURE_ERRORS: Dict[str, Tuple[str, Type[CaptureError]]] = {
    "NotAllowedError": ("permission", CapturePermissionError),
    "PermissionDeniedError": ("permission", CapturePermissionError),
    "PermissionError": ("permission", CapturePermissionError),
    "SecurityError": ("security", CapturePermissionError),
    "NotFoundError": ("notfound", DeviceUnavailableError),
    "DevicesNotFoundError": ("notfound", DeviceUnavailableError),
    "NotReadableError": ("notreadable", DeviceUnavailableError),
    "TrackStartError": ("notreadable", DeviceUnavailableError),
    "OverconstrainedError": ("overconstrained", DeviceUnavailableError),
    "AbortError": ("abort", UnknownCaptureError),
    "TypeError": ("type", UnknownCaptureError),
}


def classify_capture_error(exc: BaseException) -> CaptureError:
    """Normalize an exception raised by the device layer into a CaptureError.

    The category is taken from the exception's ``name`` attribute when the
    device layer provides one, otherwise from its class name.

    Args:
        exc: Exception raised while requesting or using a capture device

    Returns:
        CaptureError subclass instance carrying the normalized reason
    """
    if isinstance(exc, CaptureError):
        return exc

    name = getattr(exc, "name", None)
    if not isinstance(name, str):
        name = type(exc).__name__

    reason, error_class = _CAPTURE_ERRORS.get(name, ("unknown", UnknownCaptureError))
    logger.debug(f"Classified capture error {name!r} as {reason!r}")
    return error_class(reason, str(exc) or name, original=exc)
