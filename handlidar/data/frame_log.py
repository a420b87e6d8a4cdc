"""
Frame Log Loader

Loads and saves recorded frame logs so a tracking session can be replayed
deterministically. A log is a single ``.npz`` archive:

    timestamps   (T,)          monotonic frame time, seconds
    landmarks    (T, 21, 3)    x, y, confidence; NaN rows = joint not reported
    depth        (T, H, W)     float32 meters (optional)
    has_depth    (T,)          bool, frames without a depth buffer are False
    confidence   (T, h, w)     uint8 tiers (optional)
    intrinsics   (4,)|(T, 4)   fx, fy, cx, cy
    image_size   (2,)          width, height of the color image
    freeze       (T,)          bool (optional)

Usage:
    from handlidar.data.frame_log import FrameLogLoader

    log = FrameLogLoader().load("session.npz")
    for frame in log.frames():
        pipeline.process_frame(frame)
"""

import numpy as np
from pathlib import Path
from typing import Iterator, List, Optional, Union
from dataclasses import dataclass

from ..depth.frames import CameraIntrinsics, DepthFrame
from ..hand.landmarks import LandmarkSet, NUM_JOINTS
from .frame import FrameInput
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass
class FrameLog:
    """In-memory frame log."""
    timestamps: np.ndarray
    landmarks: np.ndarray
    intrinsics: np.ndarray
    image_size: tuple
    depth: Optional[np.ndarray] = None
    has_depth: Optional[np.ndarray] = None
    confidence: Optional[np.ndarray] = None
    freeze: Optional[np.ndarray] = None
    name: str = ""

    def __len__(self) -> int:
        return len(self.timestamps)

    @property
    def duration(self) -> float:
        if len(self.timestamps) < 2:
            return 0.0
        return float(self.timestamps[-1] - self.timestamps[0])

    def intrinsics_at(self, idx: int) -> CameraIntrinsics:
        k = self.intrinsics if self.intrinsics.ndim == 1 else self.intrinsics[idx]
        width, height = self.image_size
        return CameraIntrinsics(float(k[0]), float(k[1]), float(k[2]), float(k[3]),
                                int(width), int(height))

    def frame(self, idx: int) -> FrameInput:
        """Build the FrameInput for frame ``idx``."""
        depth = None
        if self.depth is not None and (self.has_depth is None or self.has_depth[idx]):
            conf = self.confidence[idx] if self.confidence is not None else None
            depth = DepthFrame(self.depth[idx], conf)

        return FrameInput(
            timestamp=float(self.timestamps[idx]),
            landmarks=LandmarkSet.from_array(self.landmarks[idx]),
            depth=depth,
            intrinsics=self.intrinsics_at(idx),
            freeze=bool(self.freeze[idx]) if self.freeze is not None else False
        )

    def frames(self) -> Iterator[FrameInput]:
        for idx in range(len(self)):
            yield self.frame(idx)


class FrameLogLoader:
    """Reads and writes ``.npz`` frame logs."""

    REQUIRED_KEYS = ('timestamps', 'landmarks', 'intrinsics', 'image_size')

    def load(self, path: Union[str, Path]) -> FrameLog:
        """
        Load a frame log.

        Args:
            path: Path to a ``.npz`` log

        Returns:
            FrameLog
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Frame log not found: {path}")

        with np.load(path, allow_pickle=False) as data:
            missing = [k for k in self.REQUIRED_KEYS if k not in data.files]
            if missing:
                raise ValueError(f"Frame log {path.name} is missing arrays: {missing}")

            log = FrameLog(
                timestamps=np.asarray(data['timestamps'], dtype=np.float64),
                landmarks=np.asarray(data['landmarks'], dtype=np.float64),
                intrinsics=np.asarray(data['intrinsics'], dtype=np.float64),
                image_size=tuple(int(v) for v in data['image_size']),
                depth=data['depth'] if 'depth' in data.files else None,
                has_depth=data['has_depth'].astype(bool) if 'has_depth' in data.files else None,
                confidence=data['confidence'] if 'confidence' in data.files else None,
                freeze=data['freeze'].astype(bool) if 'freeze' in data.files else None,
                name=path.stem
            )

        self._validate(log)
        logger.info(f"Loaded frame log {log.name}: {len(log)} frames, {log.duration:.2f}s")
        return log

    def save(self, path: Union[str, Path], log: FrameLog) -> Path:
        """Write ``log`` to ``path`` (compressed)."""
        self._validate(log)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        arrays = {
            'timestamps': log.timestamps,
            'landmarks': log.landmarks,
            'intrinsics': log.intrinsics,
            'image_size': np.asarray(log.image_size, dtype=np.int64),
        }
        for key in ('depth', 'has_depth', 'confidence', 'freeze'):
            value = getattr(log, key)
            if value is not None:
                arrays[key] = value

        np.savez_compressed(path, **arrays)
        return path

    @staticmethod
    def from_frames(frames: List[FrameInput], name: str = "") -> FrameLog:
        """
        Collect FrameInputs into a FrameLog.

        All frames must share one image size; depth/confidence buffers must
        share a shape where present.
        """
        if not frames:
            raise ValueError("Cannot build a frame log from zero frames")

        first_intr = next((f.intrinsics for f in frames if f.intrinsics is not None), None)
        if first_intr is None:
            raise ValueError("At least one frame needs camera intrinsics")

        depth_shape = next((f.depth.depth.shape for f in frames if f.depth is not None), None)
        conf_shape = next((f.depth.confidence.shape for f in frames
                           if f.depth is not None and f.depth.confidence is not None), None)

        T = len(frames)
        depth = np.zeros((T,) + depth_shape, dtype=np.float32) if depth_shape else None
        confidence = np.zeros((T,) + conf_shape, dtype=np.uint8) if conf_shape else None
        has_depth = np.zeros(T, dtype=bool)
        intrinsics = np.zeros((T, 4))

        for i, f in enumerate(frames):
            k = f.intrinsics or first_intr
            intrinsics[i] = (k.fx, k.fy, k.cx, k.cy)
            if f.depth is not None and depth is not None:
                depth[i] = f.depth.depth
                has_depth[i] = True
                if confidence is not None and f.depth.confidence is not None:
                    confidence[i] = f.depth.confidence

        return FrameLog(
            timestamps=np.array([f.timestamp for f in frames]),
            landmarks=np.stack([(f.landmarks or LandmarkSet.empty()).to_array() for f in frames]),
            intrinsics=intrinsics,
            image_size=first_intr.resolution,
            depth=depth,
            has_depth=has_depth if depth is not None else None,
            confidence=confidence,
            freeze=np.array([f.freeze for f in frames], dtype=bool),
            name=name
        )

    @staticmethod
    def _validate(log: FrameLog) -> None:
        T = len(log.timestamps)
        if log.landmarks.shape != (T, NUM_JOINTS, 3):
            raise ValueError(f"landmarks must have shape ({T}, 21, 3), got {log.landmarks.shape}")
        if np.any(np.diff(log.timestamps) < 0):
            raise ValueError("Frame timestamps must be monotonic")
        if log.intrinsics.shape not in ((4,), (T, 4)):
            raise ValueError(f"intrinsics must have shape (4,) or ({T}, 4), got {log.intrinsics.shape}")
        for key in ('depth', 'has_depth', 'confidence', 'freeze'):
            value = getattr(log, key)
            if value is not None and len(value) != T:
                raise ValueError(f"{key} has {len(value)} frames, expected {T}")
