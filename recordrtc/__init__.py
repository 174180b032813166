"""RecordRTC - client-side audio/video/screen recording controller."""

__version__ = "0.1.0"
