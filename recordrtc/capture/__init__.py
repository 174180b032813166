"""Capture settings, timing, buffering and the device interface."""

from .settings import resolve_capture_settings, select_codec, recorder_options
from .timer import CountdownTimer, format_time_label
from .buffer import ChunkBuffer
from .device import MediaDevices, MediaRecorder, MediaStream, MediaTrack, RecorderState, check_can_work

__all__ = [
    'resolve_capture_settings',
    'select_codec',
    'recorder_options',
    'CountdownTimer',
    'format_time_label',
    'ChunkBuffer',
    'MediaDevices',
    'MediaRecorder',
    'MediaStream',
    'MediaTrack',
    'RecorderState',
    'check_can_work',
]
