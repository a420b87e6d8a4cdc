"""
Gesture Events

Gesture detectors never touch UI state directly. They emit events onto an
``EventChannel``; a single consumer that owns the UI state (``MenuState``)
drains it. The channel is a thread-safe queue, so the consumer may live on
a different thread than the frame-processing path.

Usage:
    channel = EventChannel()
    channel.publish(GestureEvent.MENU_OPEN, timestamp=1.2)

    menu = MenuState()
    menu.drain(channel)
"""

from enum import Enum
from queue import Queue, Empty
from typing import List, Optional
from dataclasses import dataclass

from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


class GestureEvent(Enum):
    """Discrete, edge-triggered gesture outcomes."""
    MENU_OPEN = "menu_open"
    MENU_CLOSE = "menu_close"
    CAPTURE_TRIGGERED = "capture_triggered"


@dataclass(frozen=True)
class GestureMessage:
    """An event with the frame timestamp that produced it."""
    event: GestureEvent
    timestamp: float


class EventChannel:
    """Unbounded FIFO hand-off between the frame path and UI consumers."""

    def __init__(self):
        self._queue: Queue = Queue()

    def publish(self, event: GestureEvent, timestamp: float) -> None:
        self._queue.put(GestureMessage(event, timestamp))

    def drain(self) -> List[GestureMessage]:
        """Remove and return everything queued so far, oldest first."""
        messages = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except Empty:
                break
        return messages

    def __len__(self) -> int:
        return self._queue.qsize()


class MenuState:
    """
    UI-owned menu visibility, updated only from drained gesture events.

    Capture events are counted so a capture collaborator can act on them.
    """

    def __init__(self, is_open: bool = False):
        self.is_open = is_open
        self.captures = 0
        self.last_capture_time: Optional[float] = None

    def apply(self, message: GestureMessage) -> None:
        if message.event == GestureEvent.MENU_OPEN:
            self.is_open = True
        elif message.event == GestureEvent.MENU_CLOSE:
            self.is_open = False
        elif message.event == GestureEvent.CAPTURE_TRIGGERED:
            self.captures += 1
            self.last_capture_time = message.timestamp

    def drain(self, channel: EventChannel) -> List[GestureMessage]:
        """Apply all pending messages from ``channel``."""
        messages = channel.drain()
        for message in messages:
            self.apply(message)
        if messages:
            logger.debug(f"Applied {len(messages)} gesture events, menu open={self.is_open}")
        return messages

    def toggle(self) -> bool:
        """Menu button."""
        self.is_open = not self.is_open
        return self.is_open
