"""
Hand Tracking Pipeline

Per-frame controller that turns 2D landmarks plus depth into a stabilized
3D skeleton, a presence alpha, a sampled point cloud and gesture events.

Usage:
    python -m handlidar.pipeline --config configs/default.yaml --log session.npz
"""

import argparse
from typing import Dict, Iterable, Iterator, List, Optional, Callable
from dataclasses import dataclass, field

import numpy as np
from tqdm import tqdm

from .data.frame import FrameInput
from .data.frame_log import FrameLog, FrameLogLoader
from .depth.frames import CameraIntrinsics, DepthView
from .depth.unprojector import Unprojector, DepthRange
from .depth.sampler import RoiPointSampler, SampledCloud
from .hand.landmarks import Joint, LandmarkSet
from .hand.stabilizer import JointStabilizer, PresenceFader
from .hand.skeleton import BoneSegment, bone_segments
from .hand.live_detector import LandmarkDetector
from .gestures.events import GestureEvent, EventChannel
from .gestures.swipe import SwipeDetector
from .gestures.tap import PinchTapDetector
from .utils.config import load_config, Config
from .utils.logging_utils import setup_logging_from_config, get_logger

logger = get_logger(__name__)

# Settings that may be changed while running, by config section
RUNTIME_SETTINGS = {
    'smoothing_base': 'tracking',
    'hand_fade_seconds': 'tracking',
    'min_joint_confidence': 'tracking',
    'global_alpha': 'cloud',
    'sample_radius': 'cloud',
    'jitter': 'cloud',
    'joint_bias': 'cloud',
    'pinch_threshold': 'tap',
    'tap_window_seconds': 'tap',
    'trigger_cooldown_seconds': 'tap',
}


class FrameThrottle:
    """Drops frames that arrive faster than ``max_rate_hz``."""

    TOLERANCE = 1e-6

    def __init__(self, max_rate_hz: float = 15.0):
        self.interval = 1.0 / max_rate_hz
        self.last_accepted: Optional[float] = None

    def accept(self, timestamp: float) -> bool:
        if (self.last_accepted is not None
                and timestamp - self.last_accepted < self.interval - self.TOLERANCE):
            return False
        self.last_accepted = timestamp
        return True


@dataclass
class FrameResult:
    """Tracker output for one processed frame."""
    timestamp: float
    stabilized_joints: Dict[Joint, np.ndarray] = field(default_factory=dict)
    presence_alpha: float = 0.0
    sampled_points: SampledCloud = field(default_factory=SampledCloud)
    events: List[GestureEvent] = field(default_factory=list)
    detected: bool = False

    @property
    def visible(self) -> bool:
        """Derived output should be shown at all."""
        return self.presence_alpha > PresenceFader.VISIBLE_THRESHOLD

    @property
    def bones(self) -> List[BoneSegment]:
        if not self.visible:
            return []
        return bone_segments(self.stabilized_joints)


class HandTrackingPipeline:
    """
    Single-hand tracking core.

    Stages per frame:
    1. Throttle - frames faster than the configured rate are dropped
    2. Detection - landmarks from the frame or the injected detector
    3. Gestures - swipe and pinch-tap detectors on the 2D landmarks
    4. Lifting - confident joints unprojected through the depth buffer
    5. Stabilization and presence
    6. Point sampling around the hand

    Every failure path decays presence and returns a well-formed result.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        detector: Optional[LandmarkDetector] = None,
        channel: Optional[EventChannel] = None,
        menu_state: Optional[Callable[[], bool]] = None
    ):
        """
        Args:
            config: Configuration object
            detector: Landmark detector used for frames that carry an image
            channel: Event channel gesture events are published to
            menu_state: Getter for the UI-owned menu-open flag
        """
        self.config = config or Config()
        self.detector = detector
        self.channel = channel or EventChannel()

        trk = self.config.tracking
        cld = self.config.cloud

        self.throttle = FrameThrottle(trk.max_rate_hz)
        self.unprojector = Unprojector(
            DepthRange(trk.joint_depth_near, trk.joint_depth_far),
            flip_y=trk.flip_y
        )
        self.stabilizer = JointStabilizer(
            smoothing_base=trk.smoothing_base,
            max_jump=trk.max_jump
        )
        self.presence = PresenceFader(
            fade_seconds=trk.hand_fade_seconds,
            step=trk.presence_step,
            nominal_interval=1.0 / trk.max_rate_hz
        )
        self.sampler = RoiPointSampler(
            max_points=cld.max_points,
            pad=cld.pad,
            grid_steps=(cld.grid_x, cld.grid_y),
            bias_fraction=cld.bias_fraction,
            annulus=(cld.annulus_inner, cld.annulus_outer),
            bucket_count=cld.bucket_count,
            min_confidence_tier=cld.min_confidence_tier,
            depth_range=DepthRange(cld.depth_near, cld.depth_far),
            flip_y=trk.flip_y,
            seed=cld.seed
        )

        self.swipe = SwipeDetector(self.config.swipe, menu_state=menu_state)
        self.tap = PinchTapDetector(self.config.tap)

        self.skeleton_enabled = True
        self.cloud_enabled = True
        self._last_joints: Dict[Joint, np.ndarray] = {}

        logger.info("Pipeline initialized")

    def update_settings(self, **settings) -> None:
        """
        Apply runtime tunables; values are clamped to their valid range.

        Raises:
            ValueError: for a name that is not a runtime setting
        """
        for name, value in settings.items():
            section = RUNTIME_SETTINGS.get(name)
            if section is None:
                raise ValueError(f"Unknown runtime setting: {name}")
            setattr(getattr(self.config, section), name, value)

        self.stabilizer.smoothing_base = self.config.tracking.smoothing_base
        self.presence.fade_seconds = self.config.tracking.hand_fade_seconds

    def process_frame(self, frame: FrameInput) -> Optional[FrameResult]:
        """
        Process one frame.

        Args:
            frame: Landmarks (or an image), depth, intrinsics and timestamp

        Returns:
            FrameResult, or None when the frame was dropped by the throttle
        """
        if not self.throttle.accept(frame.timestamp):
            return None

        t = frame.timestamp
        result = FrameResult(timestamp=t)

        if frame.freeze:
            return self._miss(result)

        raw = self._detect(frame)
        confident = raw.confident(self.config.tracking.min_joint_confidence)
        enough_joints = len(confident) >= self.config.tracking.min_confident_joints

        # Gestures run on the 2D landmarks regardless of depth
        self._run_gestures(raw, confident, enough_joints, result)

        if not enough_joints or frame.depth is None or frame.intrinsics is None:
            return self._miss(result)

        try:
            with frame.depth.read_only() as view:
                return self._lift_and_sample(confident, view, frame.intrinsics, result)
        except Exception:
            logger.debug(f"Depth processing failed at t={t:.3f}", exc_info=True)
            return self._miss(result)

    def run(self, frames: Iterable[FrameInput]) -> Iterator[FrameResult]:
        """Process a stream of frames, yielding results for accepted ones."""
        for frame in frames:
            result = self.process_frame(frame)
            if result is not None:
                yield result

    def drain_events(self):
        return self.channel.drain()

    def _detect(self, frame: FrameInput) -> LandmarkSet:
        if frame.landmarks is not None:
            return frame.landmarks
        if self.detector is None or frame.image is None:
            return LandmarkSet.empty()
        try:
            return self.detector.detect(frame.image)
        except Exception:
            logger.debug(f"Landmark detector failed at t={frame.timestamp:.3f}", exc_info=True)
            return LandmarkSet.empty()

    def _run_gestures(
        self,
        raw: LandmarkSet,
        confident: LandmarkSet,
        enough_joints: bool,
        result: FrameResult
    ) -> None:
        t = result.timestamp

        if enough_joints:
            swipe_event = self.swipe.update(confident, t)
        else:
            swipe_event = None
            self.swipe.reset_if_stale(t)

        tap_event = self.tap.update(raw, t)

        for event in (swipe_event, tap_event):
            if event is not None:
                result.events.append(event)
                self.channel.publish(event, t)

    def _lift_and_sample(
        self,
        confident: LandmarkSet,
        view: DepthView,
        intrinsics: CameraIntrinsics,
        result: FrameResult
    ) -> FrameResult:
        trk = self.config.tracking
        cld = self.config.cloud
        t = result.timestamp

        joints3d = self.unprojector.unproject_landmarks(confident, view, intrinsics)
        if len(joints3d) < trk.min_confident_joints:
            return self._miss(result)

        alpha = self.presence.peek(t, detected=True)
        cloud = SampledCloud(max_points=self.sampler.max_points)
        if self.cloud_enabled and alpha > PresenceFader.VISIBLE_THRESHOLD:
            cloud = self.sampler.sample(
                confident, view, intrinsics,
                jitter=cld.jitter,
                joint_bias=cld.joint_bias,
                global_alpha=cld.global_alpha,
                presence_alpha=alpha
            )
        cloud.point_radius = cld.sample_radius

        # Commit state only once nothing else can fail
        result.presence_alpha = self.presence.update(t, detected=True)
        stable = self.stabilizer.update(joints3d)
        self._last_joints = stable

        result.detected = True
        result.stabilized_joints = dict(stable) if self.skeleton_enabled else {}
        result.sampled_points = cloud
        return result

    def _miss(self, result: FrameResult) -> FrameResult:
        """Hand not observed: decay presence, keep joints only while visible."""
        result.presence_alpha = self.presence.update(result.timestamp, detected=False)
        result.sampled_points = SampledCloud(max_points=self.sampler.max_points)
        if result.visible and self.skeleton_enabled:
            result.stabilized_joints = dict(self._last_joints)
        return result


def replay_log(pipeline: HandTrackingPipeline, log: FrameLog, progress: bool = False) -> Dict:
    """
    Replay a frame log through ``pipeline``.

    Returns:
        Summary dictionary (frames, processed, detected, events, peak presence)
    """
    frames = log.frames()
    if progress:
        frames = tqdm(frames, total=len(log), desc=log.name or "replay")

    summary = {
        'name': log.name,
        'frames': len(log),
        'processed': 0,
        'detected': 0,
        'peak_presence': 0.0,
        'max_points': 0,
        'events': []
    }

    for result in pipeline.run(frames):
        summary['processed'] += 1
        summary['detected'] += int(result.detected)
        summary['peak_presence'] = max(summary['peak_presence'], result.presence_alpha)
        summary['max_points'] = max(summary['max_points'], len(result.sampled_points))
        for event in result.events:
            summary['events'].append({'event': event.value, 'timestamp': result.timestamp})
            logger.info(f"  t={result.timestamp:.3f}s {event.value}")

    return summary


def main():
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Replay a hand tracking frame log"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/default.yaml",
        help="Configuration file"
    )
    parser.add_argument(
        "--log",
        type=str,
        required=True,
        help="Frame log (.npz) to replay"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging_from_config(config.logging, verbose=args.verbose, use_tqdm=True)

    logger.info("Hand Tracking Replay")
    logger.info(f"Config: {args.config}")

    pipeline = HandTrackingPipeline(config)
    log = FrameLogLoader().load(args.log)

    summary = replay_log(pipeline, log, progress=True)

    logger.info(f"Processed {summary['processed']}/{summary['frames']} frames, "
                f"hand detected in {summary['detected']}")
    logger.info(f"Peak presence: {summary['peak_presence']:.2f}, "
                f"events: {len(summary['events'])}")


if __name__ == "__main__":
    main()
