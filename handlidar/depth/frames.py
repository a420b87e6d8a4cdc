"""
Depth Frame Buffers

Holds the per-frame depth buffer, the optional depth-confidence buffer and
the pinhole intrinsics of the color image they are aligned to.

Buffers are read through ``DepthFrame.read_only()``, which yields a
bounds-checked read-only view for the duration of one frame's processing
and releases it when the block exits, including on error paths.

Usage:
    from handlidar.depth.frames import DepthFrame, CameraIntrinsics

    frame = DepthFrame(depth, confidence)
    with frame.read_only() as view:
        z = view.depth_at(10, 20)
"""

import numpy as np
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple
from dataclasses import dataclass


@dataclass(frozen=True)
class CameraIntrinsics:
    """Pinhole intrinsics in pixel units plus the image resolution."""
    fx: float
    fy: float
    cx: float
    cy: float
    width: int
    height: int

    @classmethod
    def from_matrix(cls, K: np.ndarray, resolution: Tuple[int, int]) -> 'CameraIntrinsics':
        """
        Build from a 3x3 camera matrix.

        Args:
            K: [[fx, 0, cx], [0, fy, cy], [0, 0, 1]]
            resolution: (width, height) of the image K belongs to
        """
        K = np.asarray(K, dtype=np.float64)
        width, height = resolution
        return cls(float(K[0, 0]), float(K[1, 1]), float(K[0, 2]), float(K[1, 2]),
                   int(width), int(height))

    @property
    def matrix(self) -> np.ndarray:
        return np.array([
            [self.fx, 0.0, self.cx],
            [0.0, self.fy, self.cy],
            [0.0, 0.0, 1.0]
        ])

    @property
    def resolution(self) -> Tuple[int, int]:
        return (self.width, self.height)


class DepthView:
    """
    Read-only, bounds-checked access to one frame's depth and confidence.

    Only valid inside the ``DepthFrame.read_only()`` block that created it.
    """

    def __init__(self, depth: np.ndarray, confidence: Optional[np.ndarray]):
        self._depth = depth
        self._confidence = confidence

    @property
    def depth_shape(self) -> Tuple[int, int]:
        """(width, height) of the depth buffer."""
        self._check_open()
        h, w = self._depth.shape
        return (w, h)

    @property
    def confidence_shape(self) -> Optional[Tuple[int, int]]:
        """(width, height) of the confidence buffer, None when absent."""
        self._check_open()
        if self._confidence is None:
            return None
        h, w = self._confidence.shape
        return (w, h)

    @property
    def has_confidence(self) -> bool:
        self._check_open()
        return self._confidence is not None

    def depth_at(self, col: int, row: int) -> Optional[float]:
        """Depth in meters at (col, row), None when out of bounds."""
        self._check_open()
        h, w = self._depth.shape
        if not (0 <= col < w and 0 <= row < h):
            return None
        return float(self._depth[row, col])

    def confidence_at(self, col: int, row: int) -> Optional[int]:
        """
        Confidence tier at (col, row).

        Indices are clamped into the buffer; None only when there is no
        confidence buffer.
        """
        self._check_open()
        if self._confidence is None:
            return None
        h, w = self._confidence.shape
        col = min(max(col, 0), w - 1)
        row = min(max(row, 0), h - 1)
        return int(self._confidence[row, col])

    def release(self) -> None:
        self._depth = None
        self._confidence = None

    def _check_open(self) -> None:
        if self._depth is None:
            raise RuntimeError("DepthView used after its frame was released")


class DepthFrame:
    """
    Dense depth buffer (meters, float) with an optional uint8 confidence
    buffer of possibly different resolution.

    Values in the confidence buffer are ordinal tiers (0 low, 1 medium,
    2 high).
    """

    def __init__(self, depth: np.ndarray, confidence: Optional[np.ndarray] = None):
        depth = np.asarray(depth, dtype=np.float32)
        if depth.ndim != 2 or depth.size == 0:
            raise ValueError(f"Depth buffer must be a non-empty 2D array, got shape {depth.shape}")

        if confidence is not None:
            confidence = np.asarray(confidence, dtype=np.uint8)
            if confidence.ndim != 2 or confidence.size == 0:
                raise ValueError(
                    f"Confidence buffer must be a non-empty 2D array, got shape {confidence.shape}"
                )

        self.depth = depth
        self.confidence = confidence

    @property
    def width(self) -> int:
        return self.depth.shape[1]

    @property
    def height(self) -> int:
        return self.depth.shape[0]

    @contextmanager
    def read_only(self) -> Iterator[DepthView]:
        """Scoped read-only view; released unconditionally on exit."""
        depth = self.depth.view()
        depth.flags.writeable = False
        confidence = None
        if self.confidence is not None:
            confidence = self.confidence.view()
            confidence.flags.writeable = False

        view = DepthView(depth, confidence)
        try:
            yield view
        finally:
            view.release()
