"""Frame input and frame log utilities."""

from .frame import FrameInput
from .frame_log import FrameLog, FrameLogLoader

__all__ = [
    "FrameInput",
    "FrameLog",
    "FrameLogLoader",
]
