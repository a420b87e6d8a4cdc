"""
Hand Skeleton Geometry

Bone topology over the 21 joints and per-frame bone/palm geometry derived
from stabilized 3D joints, for hand-off to a renderer.

Usage:
    from handlidar.hand.skeleton import bone_segments, palm_facing

    bones = bone_segments(stable_joints)
    facing = palm_facing(stable_joints)
"""

import numpy as np
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass

from .landmarks import Joint

# Wrist -> base -> ... -> tip, one chain per digit
BONE_CHAINS: Tuple[Tuple[Joint, ...], ...] = (
    (Joint.WRIST, Joint.THUMB_CMC, Joint.THUMB_MCP, Joint.THUMB_IP, Joint.THUMB_TIP),
    (Joint.WRIST, Joint.INDEX_MCP, Joint.INDEX_PIP, Joint.INDEX_DIP, Joint.INDEX_TIP),
    (Joint.WRIST, Joint.MIDDLE_MCP, Joint.MIDDLE_PIP, Joint.MIDDLE_DIP, Joint.MIDDLE_TIP),
    (Joint.WRIST, Joint.RING_MCP, Joint.RING_PIP, Joint.RING_DIP, Joint.RING_TIP),
    (Joint.WRIST, Joint.PINKY_MCP, Joint.PINKY_PIP, Joint.PINKY_DIP, Joint.PINKY_TIP),
)

BONES: Tuple[Tuple[Joint, Joint], ...] = tuple(
    (chain[i], chain[i + 1]) for chain in BONE_CHAINS for i in range(len(chain) - 1)
)

MIN_BONE_LENGTH = 1e-4


@dataclass
class BoneSegment:
    """A bone between two present joints."""
    start_joint: Joint
    end_joint: Joint
    start: np.ndarray
    end: np.ndarray

    @property
    def midpoint(self) -> np.ndarray:
        return (self.start + self.end) * 0.5

    @property
    def length(self) -> float:
        return max(float(np.linalg.norm(self.end - self.start)), MIN_BONE_LENGTH)

    @property
    def direction(self) -> np.ndarray:
        """Unit vector from start to end (+y for degenerate bones)."""
        d = self.end - self.start
        n = float(np.linalg.norm(d))
        if n < MIN_BONE_LENGTH:
            return np.array([0.0, 1.0, 0.0])
        return d / n


def bone_segments(joints: Dict[Joint, np.ndarray]) -> List[BoneSegment]:
    """Bones whose two joints are both present, in chain order."""
    segments = []
    for a, b in BONES:
        if a in joints and b in joints:
            segments.append(BoneSegment(a, b,
                                        np.asarray(joints[a], dtype=np.float64),
                                        np.asarray(joints[b], dtype=np.float64)))
    return segments


def palm_normal(joints: Dict[Joint, np.ndarray]) -> Optional[np.ndarray]:
    """
    Unit palm normal from wrist, index MCP and pinky MCP.

    Returns None when a joint is missing or the three are collinear.
    """
    try:
        w = np.asarray(joints[Joint.WRIST], dtype=np.float64)
        i = np.asarray(joints[Joint.INDEX_MCP], dtype=np.float64)
        p = np.asarray(joints[Joint.PINKY_MCP], dtype=np.float64)
    except KeyError:
        return None

    n = np.cross(i - w, p - w)
    norm = float(np.linalg.norm(n))
    if norm < 1e-9:
        return None
    return n / norm


def palm_facing(joints: Dict[Joint, np.ndarray]) -> Optional[float]:
    """Palm facing in [0, 1]: 1 toward +z, 0 toward -z."""
    n = palm_normal(joints)
    if n is None:
        return None
    return float(np.clip((n[2] + 1.0) * 0.5, 0.0, 1.0))
