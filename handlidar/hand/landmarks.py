"""
Hand Landmark Model

Per-frame 2D hand landmarks as reported by the landmark detector.

21-Keypoint Structure (MediaPipe order):
    0: Wrist
    1-4: Thumb (CMC, MCP, IP, TIP)
    5-8: Index (MCP, PIP, DIP, TIP)
    9-12: Middle (MCP, PIP, DIP, TIP)
    13-16: Ring (MCP, PIP, DIP, TIP)
    17-20: Pinky (MCP, PIP, DIP, TIP)

Coordinates are normalized to [0, 1] with the origin at the bottom-left of
the image and y pointing up.

Usage:
    from handlidar.hand.landmarks import LandmarkSet, Joint

    landmarks = LandmarkSet.from_array(arr)   # (21, 3): x, y, confidence
    confident = landmarks.confident(0.35)
"""

import numpy as np
from enum import IntEnum
from typing import Dict, Iterator, List, Optional, Tuple
from dataclasses import dataclass, field


class Joint(IntEnum):
    """Named hand joints, valued by their landmark index."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


NUM_JOINTS = len(Joint)

FINGERTIPS = (Joint.THUMB_TIP, Joint.INDEX_TIP, Joint.MIDDLE_TIP,
              Joint.RING_TIP, Joint.PINKY_TIP)

# Joint classes used for per-joint smoothing strength
TIP_JOINTS = frozenset(FINGERTIPS)
DIP_JOINTS = frozenset([Joint.THUMB_IP, Joint.INDEX_DIP, Joint.MIDDLE_DIP,
                        Joint.RING_DIP, Joint.PINKY_DIP])
PIP_JOINTS = frozenset([Joint.INDEX_PIP, Joint.MIDDLE_PIP,
                        Joint.RING_PIP, Joint.PINKY_PIP])

@dataclass(frozen=True)
class Landmark:
    """A single normalized 2D landmark with detector confidence."""
    x: float
    y: float
    confidence: float = 1.0

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class LandmarkSet:
    """
    Immutable snapshot of the landmarks detected in one frame.

    Joints the detector did not report are simply absent. An empty set
    means no hand was found, which is routine rather than an error.
    """
    landmarks: Dict[Joint, Landmark] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> 'LandmarkSet':
        return cls({})

    @classmethod
    def from_array(cls, arr: np.ndarray) -> 'LandmarkSet':
        """
        Build from an array of shape (21, 3) holding (x, y, confidence).

        Rows containing NaN are treated as missing joints.
        """
        arr = np.asarray(arr, dtype=np.float64)
        if arr.shape != (NUM_JOINTS, 3):
            raise ValueError(f"Expected landmark array of shape (21, 3), got {arr.shape}")

        landmarks = {}
        for joint in Joint:
            x, y, conf = arr[joint]
            if np.isnan(x) or np.isnan(y) or np.isnan(conf):
                continue
            landmarks[joint] = Landmark(float(x), float(y), float(conf))
        return cls(landmarks)

    @classmethod
    def from_points(
        cls,
        points: Dict[Joint, Tuple[float, float]],
        confidence: float = 1.0
    ) -> 'LandmarkSet':
        """Build from a joint -> (x, y) mapping with a shared confidence."""
        return cls({Joint(j): Landmark(float(x), float(y), confidence)
                    for j, (x, y) in points.items()})

    def to_array(self) -> np.ndarray:
        """Convert to a (21, 3) array; missing joints are NaN."""
        arr = np.full((NUM_JOINTS, 3), np.nan)
        for joint, lm in self.landmarks.items():
            arr[joint] = (lm.x, lm.y, lm.confidence)
        return arr

    def confident(self, min_confidence: float) -> 'LandmarkSet':
        """Subset of joints whose confidence is strictly above ``min_confidence``."""
        return LandmarkSet({j: lm for j, lm in self.landmarks.items()
                            if lm.confidence > min_confidence})

    def get(self, joint: Joint) -> Optional[Landmark]:
        return self.landmarks.get(joint)

    def confidence_of(self, joint: Joint) -> float:
        """Confidence of a joint, 0.0 when it was not reported."""
        lm = self.landmarks.get(joint)
        return lm.confidence if lm is not None else 0.0

    def joints(self) -> List[Joint]:
        """Present joints in landmark order."""
        return sorted(self.landmarks)

    def positions(self) -> np.ndarray:
        """(N, 2) array of present positions in landmark order."""
        if not self.landmarks:
            return np.zeros((0, 2))
        return np.array([self.landmarks[j].position for j in self.joints()])

    def __contains__(self, joint) -> bool:
        return joint in self.landmarks

    def __len__(self) -> int:
        return len(self.landmarks)

    def __iter__(self) -> Iterator[Joint]:
        return iter(self.joints())

    @property
    def wrist(self) -> Optional[Landmark]:
        """Get wrist landmark."""
        return self.landmarks.get(Joint.WRIST)

    @property
    def thumb_tip(self) -> Optional[Landmark]:
        """Get thumb tip landmark."""
        return self.landmarks.get(Joint.THUMB_TIP)

    @property
    def index_tip(self) -> Optional[Landmark]:
        """Get index finger tip landmark."""
        return self.landmarks.get(Joint.INDEX_TIP)
