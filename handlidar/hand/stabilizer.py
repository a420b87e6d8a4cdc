"""
Temporal Stabilization for 3D Hand Joints

Turns a per-frame, possibly jittery set of camera-space joints into a
temporally coherent skeleton, and tracks how present the hand is.

Pipeline per joint:
1. Jump clamp against the last stable position (suppresses one-frame teleports)
2. Exponential smoothing with a per-joint-class factor
3. Write-back of the blended value as the new smoothed/stable state

Usage:
    from handlidar.hand.stabilizer import JointStabilizer, PresenceFader

    stabilizer = JointStabilizer(smoothing_base=0.8)
    stable = stabilizer.update(joints3d)
"""

import numpy as np
from typing import Dict, Optional
from dataclasses import dataclass, field

from .landmarks import Joint, TIP_JOINTS, DIP_JOINTS, PIP_JOINTS

MAX_SMOOTHING = 0.95


@dataclass
class StabilizationState:
    """
    Per-hand smoothing history.

    Entries are never removed; a joint that goes unobserved keeps its last
    value and must be treated as invalid once presence has faded out.
    """
    smoothed: Dict[Joint, np.ndarray] = field(default_factory=dict)
    stable: Dict[Joint, np.ndarray] = field(default_factory=dict)

    def reset(self) -> None:
        self.smoothed.clear()
        self.stable.clear()


def clamp_jump(prev: np.ndarray, raw: np.ndarray, max_jump: float) -> np.ndarray:
    """
    Limit the displacement from ``prev`` to ``max_jump``.

    A sample farther than ``max_jump`` is moved onto the ray from ``prev``
    toward ``raw`` at exactly ``max_jump`` distance.
    """
    delta = raw - prev
    dist = float(np.linalg.norm(delta))
    if np.isfinite(dist) and dist > max_jump and dist > 0:
        return prev + delta / dist * max_jump
    return raw


class JointStabilizer:
    """
    Jump clamp + class-weighted exponential smoothing for 21 hand joints.

    Extremity joints move faster and get more smoothing; the wrist anchors
    the hand and gets the least.
    """

    def __init__(
        self,
        smoothing_base: float = 0.80,
        max_jump: float = 0.10,
        state: Optional[StabilizationState] = None
    ):
        """
        Args:
            smoothing_base: Base EMA weight of the previous value, in [0, 0.95]
            max_jump: Maximum per-frame displacement in meters
            state: Existing history to continue from
        """
        self.smoothing_base = smoothing_base
        self.max_jump = max_jump
        self.state = state if state is not None else StabilizationState()

    def smoothing_for(self, joint: Joint) -> float:
        """EMA weight of the previous value for ``joint``."""
        base = self.smoothing_base
        if joint == Joint.WRIST:
            s = base - 0.15
        elif joint in TIP_JOINTS:
            s = base + 0.10
        elif joint in DIP_JOINTS:
            s = base + 0.06
        elif joint in PIP_JOINTS:
            s = base + 0.03
        else:
            s = base
        return float(np.clip(s, 0.0, MAX_SMOOTHING))

    def update(self, joints: Dict[Joint, np.ndarray]) -> Dict[Joint, np.ndarray]:
        """
        Stabilize one frame of joints.

        Args:
            joints: Raw camera-space joints observed this frame

        Returns:
            Stabilized positions for the same joints
        """
        out = {}

        for joint, raw in joints.items():
            raw = np.asarray(raw, dtype=np.float64)

            prev_stable = self.state.stable.get(joint)
            clamped = raw if prev_stable is None else clamp_jump(prev_stable, raw, self.max_jump)

            prev = self.state.smoothed.get(joint)
            if prev is None:
                blended = clamped
            else:
                s = self.smoothing_for(joint)
                blended = prev * s + clamped * (1.0 - s)

            out[joint] = blended
            self.state.smoothed[joint] = blended
            self.state.stable[joint] = blended

        return out

    def reset(self) -> None:
        self.state.reset()


class PresenceFader:
    """
    Hand presence alpha in [0, 1].

    Rises by a fixed step on every detected frame and decays linearly at
    ``1 / fade_seconds`` per second of elapsed frame time otherwise.

    ``last_seen`` holds the timestamp of the last detected frame for status
    consumers; the fade itself only depends on elapsed frame time.
    """

    VISIBLE_THRESHOLD = 0.01

    def __init__(
        self,
        fade_seconds: float = 0.25,
        step: float = 0.22,
        nominal_interval: float = 1.0 / 15.0
    ):
        """
        Args:
            fade_seconds: Time to fade from 1 to 0 (floored at 0.05)
            step: Alpha increment per detected frame
            nominal_interval: Elapsed time assumed for the very first update
        """
        self.fade_seconds = fade_seconds
        self.step = step
        self.nominal_interval = nominal_interval

        self.alpha = 0.0
        self.last_seen: Optional[float] = None
        self._last_update: Optional[float] = None

    def peek(self, timestamp: float, detected: bool) -> float:
        """Alpha that ``update`` would produce, without changing state."""
        if detected:
            return min(1.0, self.alpha + self.step)

        if self._last_update is None:
            dt = self.nominal_interval
        else:
            dt = max(0.0, timestamp - self._last_update)
        decay_per_second = 1.0 / max(0.05, self.fade_seconds)
        return max(0.0, self.alpha - decay_per_second * dt)

    def update(self, timestamp: float, detected: bool) -> float:
        """Apply one frame's presence outcome and return the new alpha."""
        self.alpha = self.peek(timestamp, detected)
        self._last_update = timestamp
        if detected:
            self.last_seen = timestamp
        return self.alpha

    @property
    def visible(self) -> bool:
        return self.alpha > self.VISIBLE_THRESHOLD
