"""Per-frame input bundle delivered by the sensor/detector subsystem."""

import numpy as np
from typing import Optional
from dataclasses import dataclass

from ..depth.frames import CameraIntrinsics, DepthFrame
from ..hand.landmarks import LandmarkSet


@dataclass
class FrameInput:
    """
    One frame's worth of tracker input.

    Either ``landmarks`` is given directly, or ``image`` is given and the
    pipeline runs its landmark detector on it. ``depth`` is None when the
    sensor delivered no depth this frame.
    """
    timestamp: float
    landmarks: Optional[LandmarkSet] = None
    depth: Optional[DepthFrame] = None
    intrinsics: Optional[CameraIntrinsics] = None
    freeze: bool = False
    image: Optional[np.ndarray] = None
