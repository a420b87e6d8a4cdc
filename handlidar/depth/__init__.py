"""Depth buffers, unprojection and point sampling module."""

from .frames import DepthFrame, DepthView, CameraIntrinsics
from .unprojector import Unprojector, DepthRange, JOINT_DEPTH_RANGE, CLOUD_DEPTH_RANGE
from .sampler import RoiPointSampler, SampledPoint, SampledCloud

__all__ = [
    "DepthFrame",
    "DepthView",
    "CameraIntrinsics",
    "Unprojector",
    "DepthRange",
    "JOINT_DEPTH_RANGE",
    "CLOUD_DEPTH_RANGE",
    "RoiPointSampler",
    "SampledPoint",
    "SampledCloud",
]
