"""
ROI Point Sampler

Draws a sparse, confidence-aware 3D point sample around the visible hand.

Steps:
1. Padded 2D bounding box of the landmarks, clamped to [0, 1]
2. Landmark-biased samples in an annulus around each landmark (round-robin)
3. Jittered regular grid over the box for the remaining budget
4. Unprojection of every candidate; out-of-range or low-confidence samples
   are skipped
5. Per-point depth color bucket and blended alpha

Usage:
    from handlidar.depth.sampler import RoiPointSampler

    sampler = RoiPointSampler(max_points=1200)
    with depth_frame.read_only() as view:
        cloud = sampler.sample(landmarks, view, intrinsics, presence_alpha=0.8)
"""

import math
import numpy as np
from typing import List, Optional, Tuple
from dataclasses import dataclass, field

from .frames import CameraIntrinsics, DepthView
from .unprojector import Unprojector, DepthRange, CLOUD_DEPTH_RANGE, map_to_buffer
from ..hand.landmarks import LandmarkSet

# Alpha multiplier per depth-confidence tier
TIER_ALPHA = {2: 1.00, 1: 0.70}
OTHER_TIER_ALPHA = 0.40


@dataclass
class SampledPoint:
    """One accepted cloud sample."""
    position: np.ndarray          # camera-space (x, y, z), meters
    color_tier: int               # depth bucket, 0 = nearest (lightest)
    alpha: float
    confidence_tier: Optional[int] = None
    shade: float = 0.85           # grey level of the color tier


@dataclass
class SampledCloud:
    """A frame's sample; slots past ``len(points)`` are inactive."""
    points: List[SampledPoint] = field(default_factory=list)
    max_points: int = 0
    roi: Optional[Tuple[float, float, float, float]] = None   # (min_x, min_y, max_x, max_y)
    point_radius: float = 0.0     # render size per point, meters

    @property
    def active_count(self) -> int:
        return len(self.points)

    @property
    def inactive_count(self) -> int:
        return max(0, self.max_points - len(self.points))

    def active_mask(self) -> np.ndarray:
        """Boolean slot mask of length ``max_points``."""
        mask = np.zeros(self.max_points, dtype=bool)
        mask[:len(self.points)] = True
        return mask

    def positions(self) -> np.ndarray:
        """(N, 3) array of active point positions."""
        if not self.points:
            return np.zeros((0, 3))
        return np.array([p.position for p in self.points])

    def __len__(self) -> int:
        return len(self.points)


def confidence_multiplier(tier: Optional[int]) -> float:
    """Alpha multiplier for a confidence tier; 1.0 without a confidence buffer."""
    if tier is None:
        return 1.0
    return TIER_ALPHA.get(tier, OTHER_TIER_ALPHA)


class RoiPointSampler:
    """
    Samples 3D points from depth around the hand's 2D region of interest.

    Never fails hard: unmappable or rejected samples are skipped and an
    empty landmark set yields an empty cloud.
    """

    def __init__(
        self,
        max_points: int = 1200,
        pad: float = 0.12,
        grid_steps: Tuple[int, int] = (40, 30),
        bias_fraction: float = 0.20,
        annulus: Tuple[float, float] = (0.018, 0.038),
        bucket_count: int = 10,
        min_confidence_tier: int = 1,
        depth_range: DepthRange = CLOUD_DEPTH_RANGE,
        flip_y: bool = True,
        seed: Optional[int] = None
    ):
        """
        Args:
            max_points: Fixed point budget
            pad: Bounding-box padding in normalized units
            grid_steps: (columns, rows) of the sampling grid
            bias_fraction: Share of the budget available to landmark-biased samples
            annulus: (inner, outer) radius around landmarks, normalized units
            bucket_count: Number of depth color buckets
            min_confidence_tier: Samples below this confidence tier are dropped
            depth_range: Accepted depth interval
            flip_y: Camera-space y convention, see Unprojector
            seed: Seed for the jitter RNG
        """
        self.max_points = int(max_points)
        self.pad = pad
        self.grid_steps = grid_steps
        self.bias_fraction = bias_fraction
        self.annulus = annulus
        self.bucket_count = bucket_count
        self.min_confidence_tier = min_confidence_tier
        self.unprojector = Unprojector(depth_range, flip_y=flip_y)
        self.rng = np.random.default_rng(seed)

    @property
    def depth_range(self) -> DepthRange:
        return self.unprojector.depth_range

    def region_of_interest(self, landmarks: LandmarkSet) -> Optional[Tuple[float, float, float, float]]:
        """Padded bounding box (min_x, min_y, max_x, max_y) clamped to [0, 1]."""
        pts = landmarks.positions()
        if len(pts) == 0:
            return None
        min_x, min_y = pts.min(axis=0)
        max_x, max_y = pts.max(axis=0)
        return (max(0.0, float(min_x) - self.pad), max(0.0, float(min_y) - self.pad),
                min(1.0, float(max_x) + self.pad), min(1.0, float(max_y) + self.pad))

    def bucket_index(self, z: float) -> int:
        """Depth color bucket; nearer depth -> lower index (lighter)."""
        near, far = self.depth_range.near, self.depth_range.far
        zn = min(max(z, near), far)
        t = (zn - near) / (far - near)
        idx = int(round(t * (self.bucket_count - 1)))
        return min(max(idx, 0), self.bucket_count - 1)

    def bucket_shade(self, bucket: int) -> float:
        """Grey level for a bucket: 0.85 for the nearest down to 0.50."""
        t = bucket / max(1, self.bucket_count - 1)
        return 0.85 - 0.35 * t

    def bias_budget(self, joint_bias: float) -> int:
        joint_bias = min(max(joint_bias, 0.0), 1.0)
        return int(round(self.max_points * self.bias_fraction * joint_bias))

    def sample(
        self,
        landmarks: LandmarkSet,
        view: DepthView,
        intrinsics: CameraIntrinsics,
        jitter: float = 0.65,
        joint_bias: float = 0.65,
        global_alpha: float = 0.65,
        presence_alpha: float = 1.0
    ) -> SampledCloud:
        """
        Sample points around the hand.

        Args:
            landmarks: Confident 2D landmarks of this frame
            view: Depth/confidence view for this frame
            intrinsics: Camera intrinsics for this frame
            jitter: Grid jitter weight in [0, 1]
            joint_bias: Weight of landmark-biased samples in [0, 1]
            global_alpha: Base alpha of the cloud
            presence_alpha: Current hand presence alpha

        Returns:
            SampledCloud with at most ``max_points`` active points
        """
        cloud = SampledCloud(max_points=self.max_points)
        roi = self.region_of_interest(landmarks)
        if roi is None:
            return cloud
        cloud.roi = roi
        min_x, min_y, max_x, max_y = roi

        def accept(nx: float, ny: float) -> None:
            point = self._place(nx, ny, view, intrinsics, global_alpha, presence_alpha)
            if point is not None:
                cloud.points.append(point)

        # Landmark-biased samples
        anchors = landmarks.positions()
        inner, outer = self.annulus
        for s in range(self.bias_budget(joint_bias)):
            if len(cloud.points) >= self.max_points:
                break
            jx, jy = anchors[s % len(anchors)]
            r = inner + self.rng.uniform(0.0, outer - inner)
            ang = self.rng.uniform(0.0, 2.0 * math.pi)
            nx = min(max(jx + math.cos(ang) * r, min_x), max_x)
            ny = min(max(jy + math.sin(ang) * r, min_y), max_y)
            accept(nx, ny)

        # Jittered grid for the rest of the budget
        steps_x, steps_y = self.grid_steps
        cell_w = (max_x - min_x) / max(1, steps_x - 1)
        cell_h = (max_y - min_y) / max(1, steps_y - 1)
        jitter = min(max(jitter, 0.0), 1.0)

        for gy in range(steps_y):
            if len(cloud.points) >= self.max_points:
                break
            for gx in range(steps_x):
                if len(cloud.points) >= self.max_points:
                    break
                base_x = min_x + gx * cell_w
                base_y = min_y + gy * cell_h
                jx = self.rng.uniform(-0.5, 0.5) * cell_w * jitter
                jy = self.rng.uniform(-0.5, 0.5) * cell_h * jitter
                nx = min(max(base_x + jx, min_x), max_x)
                ny = min(max(base_y + jy, min_y), max_y)
                accept(nx, ny)

        return cloud

    def _place(
        self,
        nx: float,
        ny: float,
        view: DepthView,
        intrinsics: CameraIntrinsics,
        global_alpha: float,
        presence_alpha: float
    ) -> Optional[SampledPoint]:
        """Unproject one candidate and grade it, None when rejected."""
        px, py = self.unprojector.to_pixel(nx, ny, intrinsics)

        tier = None
        if view.has_confidence:
            cu, cv = map_to_buffer(px, py, intrinsics.resolution, view.confidence_shape)
            tier = view.confidence_at(cu, cv)
            if tier < self.min_confidence_tier:
                return None

        z = self.unprojector.sample_depth(px, py, view, intrinsics)
        if z is None:
            return None

        alpha = global_alpha * confidence_multiplier(tier) * presence_alpha
        bucket = self.bucket_index(z)
        return SampledPoint(
            position=self.unprojector.back_project(px, py, z, intrinsics),
            color_tier=bucket,
            alpha=float(min(max(alpha, 0.0), 1.0)),
            confidence_tier=tier,
            shade=self.bucket_shade(bucket)
        )
