"""
Pinch Tap Detector

Triggers capture on two thumb-index pinch taps made while the other three
fingers are curled into a fist.

Gates:
    fist  - at least 2 of the middle/ring/pinky tips are confident, their
            mean distance to the wrist is small and the distances are
            roughly equal (fingers curled uniformly)
    pinch - thumb and index tips confident, wrist loosely confident, and
            thumb-index distance below the pinch threshold

A tap is a rising edge of the pinch while fisted. Losing the fist or
exceeding the tap window resets the count.

Usage:
    from handlidar.gestures.tap import PinchTapDetector

    detector = PinchTapDetector()
    event = detector.update(landmarks, timestamp)
"""

import math
from typing import Optional
from dataclasses import dataclass

from .events import GestureEvent
from ..hand.landmarks import Joint, LandmarkSet
from ..utils.config import TapConfig
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

FIST_TIPS = (Joint.MIDDLE_TIP, Joint.RING_TIP, Joint.PINKY_TIP)


@dataclass
class TapState:
    """Tap counting state."""
    tap_count: int = 0
    first_tap_time: Optional[float] = None
    last_pinch: bool = False
    last_trigger: Optional[float] = None

    def reset_taps(self) -> None:
        self.tap_count = 0
        self.first_tap_time = None
        self.last_pinch = False


def _distance(a, b) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


class PinchTapDetector:
    """Counts pinch taps under a fist gate and emits CAPTURE_TRIGGERED."""

    def __init__(self, config: Optional[TapConfig] = None):
        self.config = config or TapConfig()
        self.state = TapState()

    def is_fist(self, landmarks: LandmarkSet) -> bool:
        cfg = self.config
        wrist = landmarks.wrist
        if wrist is None:
            return False

        tips = [landmarks.get(j) for j in FIST_TIPS]
        confident = [t for t in tips if t is not None and t.confidence > cfg.fist_tip_confidence]
        if len(confident) < 2:
            return False

        dists = [_distance(t, wrist) for t in confident]
        avg = sum(dists) / len(dists)
        spread = max(dists) - min(dists)
        return avg < cfg.fist_max_distance and spread < cfg.fist_max_spread

    def pinch_state(self, landmarks: LandmarkSet) -> Optional[bool]:
        """Pinch boolean, or None when the confidence gate fails."""
        cfg = self.config
        if (landmarks.confidence_of(Joint.THUMB_TIP) <= cfg.pinch_tip_confidence
                or landmarks.confidence_of(Joint.INDEX_TIP) <= cfg.pinch_tip_confidence
                or landmarks.confidence_of(Joint.WRIST) <= cfg.wrist_confidence):
            return None
        return _distance(landmarks.thumb_tip, landmarks.index_tip) < cfg.pinch_threshold

    def update(self, landmarks: LandmarkSet, now: float) -> Optional[GestureEvent]:
        """
        Feed one frame of raw landmarks.

        Args:
            landmarks: Unfiltered landmarks with confidences (may be empty)
            now: Frame timestamp in seconds

        Returns:
            CAPTURE_TRIGGERED or None
        """
        cfg = self.config
        state = self.state

        if len(landmarks) == 0:
            state.reset_taps()
            return None

        pinching = self.pinch_state(landmarks)
        if pinching is None:
            return None

        if not self.is_fist(landmarks):
            state.reset_taps()
            state.last_pinch = pinching
            return None

        event = None
        if pinching and not state.last_pinch:
            if state.tap_count == 0 or now - state.first_tap_time > cfg.tap_window_seconds:
                state.first_tap_time = now
                state.tap_count = 1
            else:
                state.tap_count += 1

            if state.tap_count >= cfg.taps_required:
                state.reset_taps()
                event = self._trigger(now)

        if state.tap_count > 0 and now - state.first_tap_time > cfg.tap_window_seconds:
            state.reset_taps()

        state.last_pinch = pinching
        return event

    def _trigger(self, now: float) -> Optional[GestureEvent]:
        last = self.state.last_trigger
        if last is not None and now - last <= self.config.trigger_cooldown_seconds:
            logger.debug(f"Capture suppressed by cooldown at t={now:.3f}")
            return None
        self.state.last_trigger = now
        logger.info(f"Capture gesture at t={now:.3f}")
        return GestureEvent.CAPTURE_TRIGGERED
