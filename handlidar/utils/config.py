"""
Configuration Management

Handles loading, merging and saving configuration files. Numeric tunables
are clamped to their documented range whenever they are assigned, so a
config file or a UI slider can never push the tracker out of range.

Usage:
    from handlidar.utils.config import load_config

    config = load_config('configs/default.yaml')
"""

import yaml
from pathlib import Path
from typing import Dict, Any, ClassVar, Tuple
from dataclasses import dataclass, field


class RangeClamped:
    """
    Mixin that clamps numeric attributes to ``RANGES`` on every assignment.

    Values outside the range are pulled to the nearest bound, never rejected.
    """
    RANGES: ClassVar[Dict[str, Tuple[float, float]]] = {}

    def __setattr__(self, name: str, value: Any) -> None:
        bounds = self.RANGES.get(name)
        if bounds is not None and value is not None:
            lo, hi = bounds
            value = type(lo)(max(lo, min(hi, value)))
        super().__setattr__(name, value)


@dataclass
class TrackingConfig(RangeClamped):
    """Joint lifting, stabilization and presence configuration."""
    RANGES = {
        'smoothing_base': (0.0, 0.95),
        'hand_fade_seconds': (0.05, 0.75),
        'min_joint_confidence': (0.10, 0.75),
    }

    smoothing_base: float = 0.80
    hand_fade_seconds: float = 0.25
    min_joint_confidence: float = 0.35
    min_confident_joints: int = 8
    max_jump: float = 0.10           # meters per frame
    presence_step: float = 0.22
    joint_depth_near: float = 0.08
    joint_depth_far: float = 2.5
    flip_y: bool = True              # y = -(py - cy) / fy * z
    max_rate_hz: float = 15.0


@dataclass
class CloudConfig(RangeClamped):
    """ROI point sampler configuration."""
    RANGES = {
        'global_alpha': (0.05, 1.0),
        'sample_radius': (0.0012, 0.0060),
        'jitter': (0.0, 1.0),
        'joint_bias': (0.0, 1.0),
        'max_points': (1, 5000),
    }

    global_alpha: float = 0.65
    sample_radius: float = 0.0028    # rendering only
    jitter: float = 0.65
    joint_bias: float = 0.65
    max_points: int = 1200
    pad: float = 0.12
    grid_x: int = 40
    grid_y: int = 30
    bias_fraction: float = 0.20
    annulus_inner: float = 0.018
    annulus_outer: float = 0.038
    bucket_count: int = 10
    min_confidence_tier: int = 1
    depth_near: float = 0.10
    depth_far: float = 2.5
    seed: int = 0


@dataclass
class SwipeConfig:
    """Four-finger swipe (menu) detector configuration."""
    min_spread: float = 0.06
    window_seconds: float = 0.35
    cooldown_seconds: float = 0.60
    required_dx: float = 0.18
    required_velocity: float = 0.85
    reset_after_seconds: float = 0.25


@dataclass
class TapConfig(RangeClamped):
    """Pinch tap / fist gate (capture) detector configuration."""
    RANGES = {
        'pinch_threshold': (0.005, 0.5),
        'tap_window_seconds': (0.1, 5.0),
        'trigger_cooldown_seconds': (0.0, 10.0),
    }

    pinch_threshold: float = 0.06
    tap_window_seconds: float = 1.0
    trigger_cooldown_seconds: float = 2.0
    pinch_tip_confidence: float = 0.5
    wrist_confidence: float = 0.2
    fist_tip_confidence: float = 0.3
    fist_max_distance: float = 0.28
    fist_max_spread: float = 0.10
    taps_required: int = 2


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_file: str = ""


@dataclass
class Config:
    """Main configuration container."""
    project_name: str = "handlidar"
    version: str = "1.0.0"

    # Sub-configurations
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    cloud: CloudConfig = field(default_factory=CloudConfig)
    swipe: SwipeConfig = field(default_factory=SwipeConfig)
    tap: TapConfig = field(default_factory=TapConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'Config':
        """Create Config from dictionary. Missing keys keep their defaults."""
        config = cls()
        config_dict = config_dict or {}

        # Project settings
        project = config_dict.get('project', {})
        config.project_name = project.get('name', config.project_name)
        config.version = project.get('version', config.version)

        config.tracking = TrackingConfig(**_known(TrackingConfig, config_dict.get('tracking', {})))
        config.cloud = CloudConfig(**_known(CloudConfig, config_dict.get('cloud', {})))

        gestures = config_dict.get('gestures', {})
        config.swipe = SwipeConfig(**_known(SwipeConfig, gestures.get('swipe', {})))
        config.tap = TapConfig(**_known(TapConfig, gestures.get('tap', {})))

        config.logging = LoggingConfig(**_known(LoggingConfig, config_dict.get('logging', {})))

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Nested dictionary in the same layout ``from_dict`` reads."""
        return {
            'project': {
                'name': self.project_name,
                'version': self.version
            },
            'tracking': dict(vars(self.tracking)),
            'cloud': dict(vars(self.cloud)),
            'gestures': {
                'swipe': dict(vars(self.swipe)),
                'tap': dict(vars(self.tap))
            },
            'logging': dict(vars(self.logging))
        }


def _known(section_cls, values: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only keys that are fields of ``section_cls``."""
    names = section_cls.__dataclass_fields__.keys()
    return {k: v for k, v in (values or {}).items() if k in names}


def load_config(config_path: str) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML config file

    Returns:
        Config object
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        config_dict = yaml.safe_load(f)

    return Config.from_dict(config_dict)


def merge_configs(base: Dict, override: Dict) -> Dict:
    """
    Merge two config dictionaries.

    Args:
        base: Base configuration
        override: Override values

    Returns:
        Merged configuration
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def save_config(config: Config, path: str):
    """Save configuration to YAML file."""
    with open(path, 'w') as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False)
