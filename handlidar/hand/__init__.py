"""Hand landmark, stabilization and skeleton module."""

from .landmarks import Joint, Landmark, LandmarkSet
from .stabilizer import JointStabilizer, StabilizationState, PresenceFader
from .skeleton import BoneSegment, bone_segments, palm_normal, palm_facing
from .live_detector import LandmarkDetector, MediaPipeLandmarkDetector, LiveDetectionConfig

__all__ = [
    "Joint",
    "Landmark",
    "LandmarkSet",
    "JointStabilizer",
    "StabilizationState",
    "PresenceFader",
    "BoneSegment",
    "bone_segments",
    "palm_normal",
    "palm_facing",
    "LandmarkDetector",
    "MediaPipeLandmarkDetector",
    "LiveDetectionConfig",
]
