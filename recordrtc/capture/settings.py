"""Capture settings resolver: constraints and codec preferences per media kind."""

import logging
from typing import Callable, Optional, Union

from ..models.capture import CaptureKind, CaptureSettings, RecorderOptions

logger = logging.getLogger(__name__)


AUDIO_CODECS = (
    "audio/webm;codecs=opus",
    "audio/ogg;codecs=opus",
)

VIDEO_CODECS = (
    "video/webm;codecs=vp9,opus",
    "video/webm;codecs=h264,opus",
    "video/webm;codecs=vp8,opus",
)

# VP8 first: the most broadly supported codec for screen content.
SCREEN_CODECS = (
    "video/webm;codecs=vp8,opus",
    "video/webm;codecs=vp9,opus",
    "video/webm;codecs=h264,opus",
)

SCREEN_FRAME_RATE = 24


def _to_int(value: Union[int, str, None], name: str) -> Optional[int]:
    if value is None:
        return None
    number = int(value)
    if number < 0:
        raise ValueError(f"{name} must be >= 0, got {number}")
    return number


def resolve_capture_settings(kind: Union[CaptureKind, str],
                             bit_rate: Union[int, str],
                             width: Union[int, str, None] = None,
                             height: Union[int, str, None] = None) -> CaptureSettings:
    """Build the capture settings for a media kind.

    Args:
        kind: Media kind (or its name, e.g. 'video')
        bit_rate: Desired bit rate in bits per second
        width: Desired frame width (video and screen only)
        height: Desired frame height (video and screen only)

    Returns:
        CaptureSettings with the device constraints and codec candidates
    """
    kind = CaptureKind(kind)
    bit_rate = _to_int(bit_rate, "bit_rate")
    width = _to_int(width, "width")
    height = _to_int(height, "height")

    if kind is CaptureKind.AUDIO:
        return CaptureSettings(
            kind=kind,
            bit_rate=bit_rate,
            constraints={"audio": True},
            codec_candidates=AUDIO_CODECS,
        )

    if width is None or height is None:
        raise ValueError(f"{kind.value} capture needs width and height")

    if kind is CaptureKind.VIDEO:
        constraints = {
            "audio": True,
            "video": {
                "width": {"ideal": width},
                "height": {"ideal": height},
            },
        }
        codecs = VIDEO_CODECS
    else:
        # Some platforms reject ideal width/height for screen capture.
        constraints = {
            "audio": True,
            "systemAudio": "exclude",
            "video": {
                "displaySurface": "monitor",
                "frameRate": {"ideal": SCREEN_FRAME_RATE},
                "width": {"max": width},
                "height": {"max": height},
            },
        }
        codecs = SCREEN_CODECS

    return CaptureSettings(
        kind=kind,
        bit_rate=bit_rate,
        constraints=constraints,
        codec_candidates=codecs,
        width=width,
        height=height,
    )


def select_codec(settings: CaptureSettings, is_supported: Callable[[str], bool]) -> Optional[str]:
    """Return the first codec candidate the runtime supports, or None."""
    for mime_type in settings.codec_candidates:
        if is_supported(mime_type):
            return mime_type
    logger.info(f"No preferred codec supported for {settings.kind.value}, using recorder default")
    return None


def recorder_options(settings: CaptureSettings, is_supported: Callable[[str], bool]) -> RecorderOptions:
    """Build the recorder options for the given settings."""
    mime_type = select_codec(settings, is_supported)
    if settings.kind is CaptureKind.AUDIO:
        return RecorderOptions(audio_bits_per_second=settings.bit_rate, mime_type=mime_type)
    return RecorderOptions(
        video_bits_per_second=settings.bit_rate,
        video_width=settings.width,
        video_height=settings.height,
        mime_type=mime_type,
    )
