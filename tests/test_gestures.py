"""Tests for swipe and pinch-tap gesture detection."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from handlidar.gestures.events import GestureEvent, EventChannel, MenuState
from handlidar.gestures.swipe import SwipeDetector, SwipePhase
from handlidar.gestures.tap import PinchTapDetector
from handlidar.hand.landmarks import Joint, Landmark, LandmarkSet
from handlidar.utils.config import SwipeConfig, TapConfig


def swipe_hand(cx, spread=0.10):
    """Open hand whose four fingertips are centered on ``cx``."""
    half = spread / 2.0
    return LandmarkSet.from_points({
        Joint.INDEX_TIP: (cx - half, 0.6),
        Joint.MIDDLE_TIP: (cx - half / 3.0, 0.62),
        Joint.RING_TIP: (cx + half / 3.0, 0.62),
        Joint.PINKY_TIP: (cx + half, 0.6),
    }, confidence=0.9)


def run_swipe(detector, start_x, velocity, t_end, dt=0.05):
    """Move the fingertip centroid at constant velocity, collect events."""
    events = []
    steps = int(round(t_end / dt))
    for i in range(steps + 1):
        t = round(i * dt, 4)
        event = detector.update(swipe_hand(start_x + velocity * t), t)
        if event is not None:
            events.append((t, event))
    return events


def swipe_from(detector, t_start, start_x, velocity, duration, dt=0.05):
    """Constant-velocity swipe starting at ``t_start``, collect events."""
    events = []
    for i in range(int(round(duration / dt)) + 1):
        t = round(t_start + i * dt, 4)
        x = start_x + velocity * (t - t_start)
        event = detector.update(swipe_hand(x), t)
        if event is not None:
            events.append((t, event))
    return events


def tap_hand(pinch=False, fist=True, tip_conf=0.9, wrist_conf=0.9):
    """Hand with the three outer fingers curled (or open) and a thumb-index gap."""
    tip_y = 0.45 if fist else 0.8
    return LandmarkSet({
        Joint.WRIST: Landmark(0.5, 0.3, wrist_conf),
        Joint.MIDDLE_TIP: Landmark(0.5, tip_y, 0.9),
        Joint.RING_TIP: Landmark(0.55, tip_y - 0.01, 0.9),
        Joint.PINKY_TIP: Landmark(0.45, tip_y - 0.01, 0.9),
        Joint.THUMB_TIP: Landmark(0.6, 0.4, tip_conf),
        Joint.INDEX_TIP: Landmark(0.62 if pinch else 0.72, 0.4, tip_conf),
    })


def fist_hand(tips, conf=(0.9, 0.9, 0.9)):
    """Wrist at (0.5, 0.3) with middle, ring and pinky tips at the given points."""
    joints = {Joint.WRIST: Landmark(0.5, 0.3, 0.9)}
    for joint, (x, y), c in zip((Joint.MIDDLE_TIP, Joint.RING_TIP, Joint.PINKY_TIP), tips, conf):
        joints[joint] = Landmark(x, y, c)
    return LandmarkSet(joints)


def run_taps(detector, edges, t_end, open_at=()):
    """Fist held throughout; pinch for 0.1 s starting at each edge time."""
    events = []
    for i in range(int(round(t_end / 0.05)) + 1):
        t = round(i * 0.05, 2)
        pinch = any(e <= t < e + 0.1 - 1e-9 for e in edges)
        fist = not any(abs(t - o) < 1e-9 for o in open_at)
        event = detector.update(tap_hand(pinch=pinch, fist=fist), t)
        if event is not None:
            events.append((t, event))
    return events


class TestSwipeDetector:
    """Tests for SwipeDetector."""

    def test_left_swipe_opens_once(self):
        """0.7 -> 0.3 over 0.3 s opens the menu once, nothing during cooldown."""
        detector = SwipeDetector(SwipeConfig())

        events = run_swipe(detector, start_x=0.7, velocity=-0.4 / 0.3, t_end=0.9)

        assert [e for _, e in events] == [GestureEvent.MENU_OPEN]
        assert events[0][0] <= 0.30
        assert detector.menu_open

    def test_right_swipe_closes_open_menu(self):
        detector = SwipeDetector(menu_open=True)

        events = run_swipe(detector, start_x=0.3, velocity=1.5, t_end=0.3)

        assert [e for _, e in events] == [GestureEvent.MENU_CLOSE]
        assert not detector.menu_open

    def test_swipe_matching_menu_state_is_silent(self):
        """A right swipe with the menu closed changes nothing."""
        detector = SwipeDetector(menu_open=False)

        assert run_swipe(detector, start_x=0.3, velocity=1.5, t_end=0.3) == []

    def test_menu_state_getter(self):
        """The UI-owned flag takes precedence over the detector's mirror."""
        detector = SwipeDetector(menu_state=lambda: True)

        assert run_swipe(detector, start_x=0.7, velocity=-1.5, t_end=0.3) == []

    def test_slow_motion_ignored(self):
        detector = SwipeDetector()

        assert run_swipe(detector, start_x=0.8, velocity=-0.2, t_end=2.0) == []

    def test_closed_hand_ignored(self):
        """Fingertips bunched together are not a swipe."""
        detector = SwipeDetector()
        events = []
        for i in range(8):
            t = i * 0.05
            event = detector.update(swipe_hand(0.7 - 1.5 * t, spread=0.03), t)
            if event is not None:
                events.append(event)

        assert events == []
        assert detector.phase(0.4) == SwipePhase.IDLE

    def test_stale_signal_resets_tracking(self):
        detector = SwipeDetector()
        detector.update(swipe_hand(0.6), 0.0)
        detector.update(swipe_hand(0.58), 0.05)
        assert detector.phase(0.05) == SwipePhase.TRACKING

        detector.update(LandmarkSet.empty(), 0.10)
        assert detector.window.last_x is not None

        detector.update(LandmarkSet.empty(), 0.40)
        assert detector.window.last_x is None
        assert detector.phase(0.40) == SwipePhase.IDLE

    def test_cooldown_phase(self):
        detector = SwipeDetector()
        events = run_swipe(detector, start_x=0.7, velocity=-1.5, t_end=0.2)
        t_trigger = events[0][0]

        assert detector.phase(t_trigger + 0.3) == SwipePhase.COOLDOWN
        assert detector.phase(t_trigger + 0.61) != SwipePhase.COOLDOWN

    def test_reverse_swipe_within_cooldown_is_silent(self):
        """A fast right swipe right after opening does not close the menu."""
        detector = SwipeDetector()
        opened = run_swipe(detector, start_x=0.7, velocity=-1.5, t_end=0.15)
        assert opened == [(0.15, GestureEvent.MENU_OPEN)]

        events = swipe_from(detector, t_start=0.20, start_x=0.1, velocity=1.0, duration=0.30)

        assert events == []
        assert detector.menu_open
        assert detector.phase(0.50) == SwipePhase.COOLDOWN

    def test_reverse_swipe_after_cooldown_closes(self):
        """The same right swipe started once the 0.60 s cooldown has passed."""
        detector = SwipeDetector()
        run_swipe(detector, start_x=0.7, velocity=-1.5, t_end=0.15)

        events = swipe_from(detector, t_start=0.80, start_x=0.1, velocity=1.0, duration=0.30)

        assert [e for _, e in events] == [GestureEvent.MENU_CLOSE]
        assert events[0][0] >= 0.15 + 0.60
        assert not detector.menu_open


class TestPinchTapDetector:
    """Tests for PinchTapDetector."""

    def test_double_tap_triggers(self):
        """Taps at 0.10 and 0.60 trigger exactly one capture."""
        detector = PinchTapDetector(TapConfig())

        events = run_taps(detector, edges=[0.10, 0.60], t_end=0.8)

        assert events == [(0.6, GestureEvent.CAPTURE_TRIGGERED)]

    def test_taps_outside_window(self):
        """Taps at 0.10 and 1.50 are too far apart."""
        detector = PinchTapDetector()

        assert run_taps(detector, edges=[0.10, 1.50], t_end=1.8) == []
        assert detector.state.tap_count == 1

    def test_fist_loss_resets_count(self):
        detector = PinchTapDetector()

        events = run_taps(detector, edges=[0.10, 0.60], t_end=0.8, open_at=[0.35])

        assert events == []

    def test_cooldown_suppresses_second_capture(self):
        detector = PinchTapDetector()

        events = run_taps(detector, edges=[0.1, 0.6, 1.0, 1.3, 3.0, 3.2], t_end=3.5)

        assert [t for t, _ in events] == [0.6, 3.2]

    def test_held_pinch_counts_once(self):
        """Only rising edges are taps."""
        detector = PinchTapDetector()
        for i in range(10):
            detector.update(tap_hand(pinch=True), i * 0.05)

        assert detector.state.tap_count == 1

    def test_low_confidence_frame_is_noop(self):
        """A failed pinch gate keeps the tap count."""
        detector = PinchTapDetector()
        detector.update(tap_hand(pinch=False), 0.0)
        detector.update(tap_hand(pinch=True), 0.05)
        assert detector.state.tap_count == 1

        assert detector.update(tap_hand(pinch=False, tip_conf=0.4), 0.10) is None
        assert detector.state.tap_count == 1
        assert detector.state.last_pinch is True

    def test_no_hand_resets(self):
        detector = PinchTapDetector()
        detector.update(tap_hand(pinch=True), 0.0)

        detector.update(LandmarkSet.empty(), 0.05)

        assert detector.state.tap_count == 0
        assert detector.state.last_pinch is False

    def test_is_fist(self):
        detector = PinchTapDetector()
        assert detector.is_fist(tap_hand(fist=True))
        assert not detector.is_fist(tap_hand(fist=False))
        assert not detector.is_fist(LandmarkSet.empty())

    def test_uneven_curl_is_not_fist(self):
        """Average distance under the limit but tips spread 0.25 apart."""
        detector = PinchTapDetector()
        hand = fist_hand([(0.5, 0.35), (0.5, 0.50), (0.5, 0.60)])

        assert not detector.is_fist(hand)

    def test_fist_ignores_low_confidence_tip(self):
        """Two confident curled tips are enough; the uncertain one is ignored."""
        detector = PinchTapDetector()
        hand = fist_hand([(0.5, 0.45), (0.55, 0.44), (0.5, 0.90)], conf=(0.9, 0.9, 0.2))

        assert detector.is_fist(hand)

    def test_fist_needs_two_confident_tips(self):
        detector = PinchTapDetector()
        hand = fist_hand([(0.5, 0.45), (0.55, 0.44), (0.45, 0.44)], conf=(0.9, 0.2, 0.2))

        assert not detector.is_fist(hand)

    def test_pinch_state(self):
        detector = PinchTapDetector()
        assert detector.pinch_state(tap_hand(pinch=True)) is True
        assert detector.pinch_state(tap_hand(pinch=False)) is False
        assert detector.pinch_state(tap_hand(pinch=True, wrist_conf=0.1)) is None


class TestEventChannel:
    """Tests for the event hand-off."""

    def test_drain_in_order(self):
        channel = EventChannel()
        channel.publish(GestureEvent.MENU_OPEN, 1.0)
        channel.publish(GestureEvent.CAPTURE_TRIGGERED, 2.0)

        assert len(channel) == 2
        messages = channel.drain()

        assert [m.event for m in messages] == [GestureEvent.MENU_OPEN,
                                               GestureEvent.CAPTURE_TRIGGERED]
        assert len(channel) == 0
        assert channel.drain() == []

    def test_menu_state_applies_events(self):
        channel = EventChannel()
        menu = MenuState()
        channel.publish(GestureEvent.MENU_OPEN, 1.0)
        channel.publish(GestureEvent.CAPTURE_TRIGGERED, 1.5)

        menu.drain(channel)

        assert menu.is_open
        assert menu.captures == 1
        assert menu.last_capture_time == 1.5

        channel.publish(GestureEvent.MENU_CLOSE, 2.0)
        menu.drain(channel)
        assert not menu.is_open

    def test_toggle(self):
        menu = MenuState()
        assert menu.toggle() is True
        assert menu.toggle() is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
