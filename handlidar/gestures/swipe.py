"""
Four-Finger Swipe Detector

Opens the menu on a leftward swipe and closes it on a rightward swipe,
using the centroid of the index, middle, ring and pinky tips.

A swipe fires when, within a short window, the accumulated horizontal
centroid displacement and the instantaneous velocity both exceed their
thresholds in the same direction. A cooldown after each trigger keeps a
continuing motion from toggling again.

Usage:
    from handlidar.gestures.swipe import SwipeDetector

    detector = SwipeDetector()
    event = detector.update(confident_landmarks, timestamp)
"""

from enum import Enum, auto
from typing import Callable, Optional
from dataclasses import dataclass

from .events import GestureEvent
from ..hand.landmarks import Joint, LandmarkSet
from ..utils.config import SwipeConfig
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

SWIPE_TIPS = (Joint.INDEX_TIP, Joint.MIDDLE_TIP, Joint.RING_TIP, Joint.PINKY_TIP)

MIN_DT = 1e-4


class SwipePhase(Enum):
    IDLE = auto()
    TRACKING = auto()
    COOLDOWN = auto()


@dataclass
class GestureWindow:
    """Rolling swipe window state."""
    last_x: Optional[float] = None
    last_time: Optional[float] = None
    window_start: float = 0.0
    accum_dx: float = 0.0
    last_trigger: Optional[float] = None

    def restart(self, x: float, t: float) -> None:
        self.last_x = x
        self.last_time = t
        self.window_start = t
        self.accum_dx = 0.0


class SwipeDetector:
    """
    Windowed horizontal swipe state machine.

    The current menu state is read through ``menu_state`` when given;
    otherwise the detector tracks it from its own emitted events. Swipes
    that would not change the menu state emit nothing.
    """

    def __init__(
        self,
        config: Optional[SwipeConfig] = None,
        menu_state: Optional[Callable[[], bool]] = None,
        menu_open: bool = False
    ):
        """
        Args:
            config: Thresholds and timings
            menu_state: Getter for the menu-open flag owned by the UI
            menu_open: Initial menu state when no getter is given
        """
        self.config = config or SwipeConfig()
        self.window = GestureWindow()
        self._menu_state = menu_state
        self._menu_open = menu_open

    @property
    def menu_open(self) -> bool:
        if self._menu_state is not None:
            return bool(self._menu_state())
        return self._menu_open

    def phase(self, now: float) -> SwipePhase:
        """Current detector phase, reported for UI and status overlays."""
        if self._in_cooldown(now):
            return SwipePhase.COOLDOWN
        if self.window.last_x is None:
            return SwipePhase.IDLE
        return SwipePhase.TRACKING

    def reset_if_stale(self, now: float) -> None:
        """Drop tracking once the four-tip signal has been gone long enough."""
        w = self.window
        if w.last_time is None or now - w.last_time > self.config.reset_after_seconds:
            w.last_x = None
            w.accum_dx = 0.0
            w.window_start = 0.0

    def update(self, landmarks: LandmarkSet, now: float) -> Optional[GestureEvent]:
        """
        Feed one frame of confident landmarks.

        Args:
            landmarks: Confidence-filtered landmarks (may be empty)
            now: Frame timestamp in seconds

        Returns:
            MENU_OPEN, MENU_CLOSE or None
        """
        cfg = self.config
        tips = [landmarks.get(j) for j in SWIPE_TIPS]
        if any(tip is None for tip in tips):
            self.reset_if_stale(now)
            return None

        index, _, _, pinky = tips
        cx = sum(tip.x for tip in tips) / 4.0

        # Closed or fist-like shapes are not swipes
        spread = max(abs(index.x - pinky.x), abs(index.y - pinky.y))
        if spread < cfg.min_spread:
            self.reset_if_stale(now)
            return None

        w = self.window
        if self._in_cooldown(now) or w.last_x is None:
            w.restart(cx, now)
            return None

        dt = max(MIN_DT, now - w.last_time)
        dx = cx - w.last_x

        w.accum_dx += dx
        w.last_x = cx
        w.last_time = now

        if now - w.window_start > cfg.window_seconds:
            w.window_start = now
            w.accum_dx = 0.0

        velocity = dx / dt
        event = None

        if w.accum_dx < -cfg.required_dx and velocity < -cfg.required_velocity:
            if not self.menu_open:
                event = self._trigger(GestureEvent.MENU_OPEN, now)
            w.window_start = now
            w.accum_dx = 0.0
        elif w.accum_dx > cfg.required_dx and velocity > cfg.required_velocity:
            if self.menu_open:
                event = self._trigger(GestureEvent.MENU_CLOSE, now)
            w.window_start = now
            w.accum_dx = 0.0

        return event

    def _trigger(self, event: GestureEvent, now: float) -> GestureEvent:
        self.window.last_trigger = now
        self._menu_open = event == GestureEvent.MENU_OPEN
        logger.info(f"Swipe gesture: {event.value} at t={now:.3f}")
        return event

    def _in_cooldown(self, now: float) -> bool:
        last = self.window.last_trigger
        return last is not None and now - last < self.config.cooldown_seconds
