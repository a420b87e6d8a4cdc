"""Gesture recognition module."""

from .events import GestureEvent, GestureMessage, EventChannel, MenuState
from .swipe import SwipeDetector, GestureWindow, SwipePhase
from .tap import PinchTapDetector, TapState

__all__ = [
    "GestureEvent",
    "GestureMessage",
    "EventChannel",
    "MenuState",
    "SwipeDetector",
    "GestureWindow",
    "SwipePhase",
    "PinchTapDetector",
    "TapState",
]
