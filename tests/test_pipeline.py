"""Tests for the tracking pipeline, configuration and frame logs."""

import logging
import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from handlidar.data.frame import FrameInput
from handlidar.data.frame_log import FrameLogLoader
from handlidar.depth.frames import CameraIntrinsics, DepthFrame
from handlidar.gestures.events import GestureEvent, MenuState
from handlidar.hand.landmarks import Joint, LandmarkSet
from handlidar.pipeline import HandTrackingPipeline, FrameThrottle, replay_log
from handlidar.utils.config import (
    Config, TrackingConfig, CloudConfig, LoggingConfig, load_config, save_config, merge_configs
)
from handlidar.utils.logging_utils import (
    setup_logging, setup_logging_from_config, resolve_level, get_logger
)

FRAME_DT = 1.0 / 15.0


def make_hand(shift=0.0, conf=0.9):
    """Full 21-joint open hand, digits side by side."""
    points = {Joint.WRIST: (0.5 + shift, 0.3)}
    for d in range(5):
        x = 0.3 + 0.1 * d + shift
        for k in range(4):
            points[Joint(1 + 4 * d + k)] = (x, 0.4 + 0.05 * k)
    return LandmarkSet.from_points(points, confidence=conf)


@pytest.fixture
def intrinsics():
    return CameraIntrinsics(fx=500.0, fy=500.0, cx=320.0, cy=240.0, width=640, height=480)


@pytest.fixture
def make_frame(intrinsics):
    def _make(t, landmarks=None, depth=0.5, freeze=False, image=None):
        depth_frame = None if depth is None else DepthFrame(np.full((120, 160), depth))
        return FrameInput(
            timestamp=t,
            landmarks=make_hand() if landmarks is None and image is None else landmarks,
            depth=depth_frame,
            intrinsics=intrinsics,
            freeze=freeze,
            image=image
        )
    return _make


class FailingDetector:
    def detect(self, image):
        raise RuntimeError("detector crashed")


class FixedDetector:
    def __init__(self, landmarks):
        self.landmarks = landmarks

    def detect(self, image):
        return self.landmarks


class TestFrameThrottle:
    """Tests for FrameThrottle."""

    def test_rate_limit(self):
        throttle = FrameThrottle(15.0)

        assert throttle.accept(0.0)
        assert not throttle.accept(0.03)
        assert throttle.accept(FRAME_DT)
        assert not throttle.accept(FRAME_DT + 0.05)
        assert throttle.accept(2 * FRAME_DT)

    def test_dropped_frame_returns_none(self, make_frame):
        pipeline = HandTrackingPipeline()
        assert pipeline.process_frame(make_frame(0.0)) is not None
        assert pipeline.process_frame(make_frame(0.01)) is None


class TestHandTrackingPipeline:
    """Tests for HandTrackingPipeline."""

    @pytest.fixture
    def pipeline(self):
        return HandTrackingPipeline(Config())

    def test_detected_frame(self, pipeline, make_frame):
        result = pipeline.process_frame(make_frame(0.0))

        assert result.detected
        assert result.presence_alpha == pytest.approx(0.22)
        assert len(result.stabilized_joints) == 21
        assert 0 < len(result.sampled_points) <= 1200
        assert result.events == []
        assert len(result.bones) == 20

    def test_cloud_carries_point_radius(self, pipeline, make_frame):
        pipeline.update_settings(sample_radius=0.004)

        result = pipeline.process_frame(make_frame(0.0))

        assert result.sampled_points.point_radius == pytest.approx(0.004)
        assert pipeline.presence.last_seen == 0.0

    def test_presence_rises_to_one(self, pipeline, make_frame):
        alphas = [pipeline.process_frame(make_frame(i * FRAME_DT)).presence_alpha
                  for i in range(6)]

        assert all(b >= a for a, b in zip(alphas, alphas[1:]))
        assert alphas[-1] == 1.0

    def test_missing_depth_decays_without_raising(self, pipeline, make_frame):
        pipeline.process_frame(make_frame(0.0))
        pipeline.process_frame(make_frame(FRAME_DT))
        smoothed = {j: p.copy() for j, p in pipeline.stabilizer.state.smoothed.items()}

        result = pipeline.process_frame(make_frame(2 * FRAME_DT, depth=None))

        assert not result.detected
        assert len(result.sampled_points) == 0
        assert result.presence_alpha == pytest.approx(0.44 - 4.0 / 15.0)
        for joint, point in pipeline.stabilizer.state.smoothed.items():
            assert np.array_equal(point, smoothed[joint])

    def test_freeze_is_a_miss(self, pipeline, make_frame):
        pipeline.process_frame(make_frame(0.0))

        result = pipeline.process_frame(make_frame(FRAME_DT, freeze=True))

        assert not result.detected
        assert result.presence_alpha < 0.22

    def test_low_confidence_landmarks_are_a_miss(self, pipeline, make_frame):
        result = pipeline.process_frame(make_frame(0.0, landmarks=make_hand(conf=0.2)))

        assert not result.detected
        assert result.presence_alpha == 0.0
        assert result.stabilized_joints == {}

    def test_out_of_range_depth_is_a_miss(self, pipeline, make_frame):
        result = pipeline.process_frame(make_frame(0.0, depth=5.0))

        assert not result.detected
        assert len(result.sampled_points) == 0

    def test_detector_failure_is_a_miss(self, make_frame):
        pipeline = HandTrackingPipeline(detector=FailingDetector())
        image = np.zeros((480, 640, 3), dtype=np.uint8)

        result = pipeline.process_frame(make_frame(0.0, image=image))

        assert result is not None
        assert not result.detected

    def test_detector_landmarks_used(self, make_frame):
        pipeline = HandTrackingPipeline(detector=FixedDetector(make_hand()))
        image = np.zeros((480, 640, 3), dtype=np.uint8)

        result = pipeline.process_frame(make_frame(0.0, image=image))

        assert result.detected

    def test_joints_kept_until_faded(self, pipeline, make_frame):
        for i in range(5):
            pipeline.process_frame(make_frame(i * FRAME_DT))

        misses = [pipeline.process_frame(make_frame(i * FRAME_DT, depth=None))
                  for i in range(5, 9)]

        assert [len(r.stabilized_joints) for r in misses] == [21, 21, 21, 0]
        assert [r.visible for r in misses] == [True, True, True, False]

    def test_skeleton_disabled(self, pipeline, make_frame):
        pipeline.skeleton_enabled = False

        result = pipeline.process_frame(make_frame(0.0))

        assert result.detected
        assert result.stabilized_joints == {}
        assert len(result.sampled_points) > 0

    def test_cloud_disabled(self, pipeline, make_frame):
        pipeline.cloud_enabled = False

        result = pipeline.process_frame(make_frame(0.0))

        assert result.detected
        assert len(result.sampled_points) == 0

    def test_update_settings_clamps(self, pipeline):
        pipeline.update_settings(smoothing_base=2.0, hand_fade_seconds=0.01, jitter=-1.0)

        assert pipeline.config.tracking.smoothing_base == 0.95
        assert pipeline.stabilizer.smoothing_base == 0.95
        assert pipeline.presence.fade_seconds == 0.05
        assert pipeline.config.cloud.jitter == 0.0

    def test_update_settings_unknown(self, pipeline):
        with pytest.raises(ValueError):
            pipeline.update_settings(max_jump=1.0)

    def test_swipe_event_published(self, pipeline, make_frame):
        """A fast leftward hand motion opens the menu through the channel."""
        events = []
        for i in range(5):
            frame = make_frame(i * FRAME_DT, landmarks=make_hand(shift=0.2 - 0.1 * i))
            events.extend(pipeline.process_frame(frame).events)

        assert events == [GestureEvent.MENU_OPEN]

        menu = MenuState()
        messages = menu.drain(pipeline.channel)
        assert len(messages) == 1
        assert menu.is_open

    def test_run_skips_dropped_frames(self, pipeline, make_frame):
        frames = [make_frame(t) for t in (0.0, 0.02, FRAME_DT, 0.1, 2 * FRAME_DT)]

        results = list(pipeline.run(frames))

        assert len(results) == 3


class TestConfig:
    """Tests for configuration handling."""

    def test_defaults(self):
        config = Config()
        assert config.tracking.smoothing_base == 0.80
        assert config.cloud.max_points == 1200
        assert config.tap.pinch_threshold == 0.06
        assert config.swipe.cooldown_seconds == 0.60

    def test_values_clamped_on_assignment(self):
        tracking = TrackingConfig(smoothing_base=1.5, min_joint_confidence=0.0)
        assert tracking.smoothing_base == 0.95
        assert tracking.min_joint_confidence == 0.10

        cloud = CloudConfig()
        cloud.max_points = 10_000
        assert cloud.max_points == 5000
        assert isinstance(cloud.max_points, int)

    def test_from_dict_partial(self):
        config = Config.from_dict({
            'tracking': {'hand_fade_seconds': 0.5, 'unknown_key': 1},
            'gestures': {'tap': {'trigger_cooldown_seconds': 20.0}}
        })

        assert config.tracking.hand_fade_seconds == 0.5
        assert config.tracking.smoothing_base == 0.80
        assert config.tap.trigger_cooldown_seconds == 10.0

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_save_and_load(self, tmp_path):
        config = Config()
        config.cloud.jitter = 0.3
        path = tmp_path / "config.yaml"

        save_config(config, str(path))
        loaded = load_config(str(path))

        assert loaded.cloud.jitter == 0.3
        assert loaded.to_dict() == config.to_dict()

    def test_default_yaml_matches_defaults(self):
        path = Path(__file__).parent.parent / "configs" / "default.yaml"
        assert load_config(str(path)).to_dict() == Config().to_dict()

    def test_merge_configs(self):
        merged = merge_configs(
            {'tracking': {'smoothing_base': 0.8, 'max_jump': 0.1}},
            {'tracking': {'smoothing_base': 0.5}}
        )
        assert merged == {'tracking': {'smoothing_base': 0.5, 'max_jump': 0.1}}


class TestLogging:
    """Tests for logging setup."""

    def test_level_name_and_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "replay.log"
        setup_logging(level="debug", log_file=str(log_file))
        try:
            get_logger("handlidar.test").debug("frame dropped")
            root = logging.getLogger()
            assert root.level == logging.DEBUG
            for handler in root.handlers:
                handler.flush()
            assert "frame dropped" in log_file.read_text()
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            logging.getLogger().handlers = []

    def test_resolve_level(self):
        assert resolve_level("warning") == logging.WARNING
        assert resolve_level(logging.DEBUG) == logging.DEBUG
        assert resolve_level("") == logging.INFO
        assert resolve_level("chatty") == logging.INFO

    def test_from_config(self, tmp_path):
        log_file = tmp_path / "session.log"
        config = LoggingConfig(level="WARNING", log_file=str(log_file))
        try:
            setup_logging_from_config(config)
            root = logging.getLogger()
            assert root.level == logging.WARNING
            assert len(root.handlers) == 2
            assert logging.getLogger("absl").level == logging.WARNING

            setup_logging_from_config(config, verbose=True)
            assert root.level == logging.DEBUG
            assert logging.getLogger("absl").level == logging.WARNING
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            logging.getLogger().handlers = []


class TestFrameLog:
    """Tests for frame log save/load and replay."""

    @pytest.fixture
    def frames(self, make_frame):
        frames = [make_frame(i * FRAME_DT, landmarks=make_hand(shift=0.01 * i))
                  for i in range(10)]
        frames[4] = make_frame(4 * FRAME_DT, depth=None)
        return frames

    def test_save_and_load(self, tmp_path, frames):
        loader = FrameLogLoader()
        log = loader.from_frames(frames, name="session")

        path = loader.save(tmp_path / "session.npz", log)
        loaded = loader.load(path)

        assert len(loaded) == 10
        assert loaded.name == "session"
        assert np.allclose(loaded.timestamps, log.timestamps)
        assert np.allclose(loaded.landmarks, log.landmarks, equal_nan=True)
        assert loaded.frame(4).depth is None
        assert loaded.frame(3).depth is not None

    def test_replay_is_deterministic(self, tmp_path, frames):
        loader = FrameLogLoader()
        path = loader.save(tmp_path / "session.npz", loader.from_frames(frames, name="session"))
        log = loader.load(path)

        first = replay_log(HandTrackingPipeline(), log)
        second = replay_log(HandTrackingPipeline(), log)

        assert first == second
        assert first['processed'] == 10
        assert first['detected'] == 9

    def test_missing_log(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FrameLogLoader().load(tmp_path / "missing.npz")

    def test_malformed_log(self, tmp_path):
        path = tmp_path / "bad.npz"
        np.savez(path, timestamps=np.zeros(3))

        with pytest.raises(ValueError):
            FrameLogLoader().load(path)

    def test_non_monotonic_rejected(self, tmp_path, frames):
        log = FrameLogLoader.from_frames(frames)
        log.timestamps[5] = 0.0

        with pytest.raises(ValueError):
            FrameLogLoader().save(tmp_path / "bad.npz", log)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
