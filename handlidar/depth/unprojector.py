"""
Landmark Unprojection

Lifts normalized 2D landmarks to camera-space 3D points using a depth
sample and pinhole intrinsics.

Conventions:
    - Landmarks are normalized with origin bottom-left, y up.
    - Pixel coordinates are top-left, y down: px = u * W, py = (1 - v) * H.
    - The depth buffer may have a lower resolution than the image; pixels
      map to it by nearest neighbour.
    - Camera space: x right, z forward (meters). With ``flip_y`` (default)
      y points up: y = -(py - cy) / fy * z.

Usage:
    from handlidar.depth.unprojector import Unprojector, JOINT_DEPTH_RANGE

    unprojector = Unprojector(JOINT_DEPTH_RANGE)
    with depth_frame.read_only() as view:
        joints3d = unprojector.unproject_landmarks(landmarks, view, intrinsics)
"""

import math
import numpy as np
from typing import Dict, Optional, Tuple
from dataclasses import dataclass

from .frames import CameraIntrinsics, DepthView
from ..hand.landmarks import Joint, LandmarkSet


@dataclass(frozen=True)
class DepthRange:
    """Accepted depth interval (exclusive bounds, meters)."""
    near: float
    far: float

    def accepts(self, z: Optional[float]) -> bool:
        return z is not None and math.isfinite(z) and self.near < z < self.far


JOINT_DEPTH_RANGE = DepthRange(0.08, 2.5)
CLOUD_DEPTH_RANGE = DepthRange(0.10, 2.5)


def map_to_buffer(px: float, py: float, image_size: Tuple[int, int],
                  buffer_size: Tuple[int, int]) -> Tuple[int, int]:
    """Nearest-neighbour mapping of an image pixel into a buffer of another resolution."""
    img_w, img_h = image_size
    buf_w, buf_h = buffer_size
    return (int(round(px * buf_w / img_w)), int(round(py * buf_h / img_h)))


class Unprojector:
    """
    Converts normalized landmarks plus depth into camera-space points.

    A point is "absent" (None) when its depth pixel falls outside the
    buffer or its depth is non-finite or outside ``depth_range``; callers
    must treat that as "not currently observable", never as zero.
    """

    def __init__(self, depth_range: DepthRange = JOINT_DEPTH_RANGE, flip_y: bool = True):
        """
        Args:
            depth_range: Accepted near/far interval
            flip_y: Negate camera-space y so that it points up
        """
        self.depth_range = depth_range
        self.flip_y = flip_y

    @staticmethod
    def to_pixel(u: float, v: float, intrinsics: CameraIntrinsics) -> Tuple[float, float]:
        """Normalized bottom-left (u, v) -> top-left pixel (px, py)."""
        return (u * intrinsics.width, (1.0 - v) * intrinsics.height)

    def back_project(self, px: float, py: float, z: float,
                     intrinsics: CameraIntrinsics) -> np.ndarray:
        """Pinhole back-projection of a pixel at depth z."""
        x = (px - intrinsics.cx) / intrinsics.fx * z
        y = (py - intrinsics.cy) / intrinsics.fy * z
        if self.flip_y:
            y = -y
        return np.array([x, y, z])

    def project(self, point: np.ndarray, intrinsics: CameraIntrinsics) -> Tuple[float, float]:
        """Camera-space point -> top-left pixel; inverse of ``back_project``."""
        x, y, z = (float(c) for c in point)
        if self.flip_y:
            y = -y
        return (x / z * intrinsics.fx + intrinsics.cx,
                y / z * intrinsics.fy + intrinsics.cy)

    def sample_depth(self, px: float, py: float, view: DepthView,
                     intrinsics: CameraIntrinsics) -> Optional[float]:
        """Accepted depth under an image pixel, None when rejected."""
        col, row = map_to_buffer(px, py, intrinsics.resolution, view.depth_shape)
        z = view.depth_at(col, row)
        if not self.depth_range.accepts(z):
            return None
        return z

    def unproject(self, u: float, v: float, view: DepthView,
                  intrinsics: CameraIntrinsics) -> Optional[np.ndarray]:
        """
        Lift a normalized 2D point to camera space.

        Returns:
            (x, y, z) in meters, or None when no accepted depth exists
        """
        px, py = self.to_pixel(u, v, intrinsics)
        z = self.sample_depth(px, py, view, intrinsics)
        if z is None:
            return None
        return self.back_project(px, py, z, intrinsics)

    def unproject_landmarks(self, landmarks: LandmarkSet, view: DepthView,
                            intrinsics: CameraIntrinsics) -> Dict[Joint, np.ndarray]:
        """Lift every landmark that has an accepted depth; others are left out."""
        out = {}
        for joint in landmarks:
            lm = landmarks.get(joint)
            point = self.unproject(lm.x, lm.y, view, intrinsics)
            if point is not None:
                out[joint] = point
        return out
