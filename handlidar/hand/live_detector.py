"""
Landmark Detection

The tracker treats the 2D landmark detector as an opaque capability:
anything with ``detect(image) -> LandmarkSet`` will do. This lets the
pipeline run on synthetic landmark sequences or replayed logs without any
vision dependency.

``MediaPipeLandmarkDetector`` is the live implementation backed by
MediaPipe Hands, tracking a single hand in video mode.

References:
    - Zhang et al. (2020): MediaPipe Hands: On-device Real-time Hand Tracking

Usage:
    from handlidar.hand.live_detector import MediaPipeLandmarkDetector

    with MediaPipeLandmarkDetector() as detector:
        landmarks = detector.detect(frame_bgr)
"""

import cv2
import numpy as np
from typing import Optional, Protocol
from dataclasses import dataclass

from .landmarks import Joint, Landmark, LandmarkSet

try:
    import mediapipe as mp
except ImportError:
    mp = None


class LandmarkDetector(Protocol):
    """Anything that turns an image into a (possibly empty) LandmarkSet."""

    def detect(self, image: np.ndarray) -> LandmarkSet:
        ...


@dataclass
class LiveDetectionConfig:
    """Configuration for live hand detection."""
    # MediaPipe model parameters
    model_complexity: int = 1           # 0 = lite, 1 = full (more accurate)
    min_detection_confidence: float = 0.3   # lower → detect more (even blurry)
    min_tracking_confidence: float = 0.3    # lower → keep tracking longer
    # Video mode gives temporal tracking (much better than static_image_mode)
    static_image_mode: bool = False
    # Input frames are BGR (OpenCV capture); set False for RGB input
    bgr_input: bool = True


class MediaPipeLandmarkDetector:
    """
    Detect a single hand per frame using MediaPipe Hands.

    MediaPipe reports landmarks with a top-left origin; they are flipped to
    the bottom-left convention used throughout the tracker. MediaPipe has
    no per-joint confidence, so every joint carries the handedness score.
    """

    def __init__(self, config: Optional[LiveDetectionConfig] = None):
        if mp is None:
            raise ImportError(
                "mediapipe is required for live hand detection. "
                "Install with: pip install mediapipe"
            )
        self.config = config or LiveDetectionConfig()

        cfg = self.config
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=cfg.static_image_mode,
            max_num_hands=1,
            model_complexity=cfg.model_complexity,
            min_detection_confidence=cfg.min_detection_confidence,
            min_tracking_confidence=cfg.min_tracking_confidence,
        )

    def detect(self, image: np.ndarray) -> LandmarkSet:
        """
        Detect hand landmarks in one frame.

        Args:
            image: HxWx3 uint8 frame

        Returns:
            LandmarkSet, empty when no hand was found
        """
        frame_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB) if self.config.bgr_input else image
        results = self._hands.process(frame_rgb)

        if not results.multi_hand_landmarks:
            return LandmarkSet.empty()

        hand_lm = results.multi_hand_landmarks[0]
        score = 1.0
        if results.multi_handedness:
            score = float(results.multi_handedness[0].classification[0].score)

        landmarks = {
            joint: Landmark(float(lm.x), 1.0 - float(lm.y), score)
            for joint, lm in zip(Joint, hand_lm.landmark)
        }
        return LandmarkSet(landmarks)

    def close(self) -> None:
        self._hands.close()

    def __enter__(self) -> 'MediaPipeLandmarkDetector':
        return self

    def __exit__(self, *exc) -> None:
        self.close()
