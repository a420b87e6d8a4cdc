"""
Hand LiDAR Tracking Package

Single-hand 3D skeleton reconstruction, stabilization, depth point sampling
and gesture recognition from 2D landmarks and a depth sensor.
"""

__version__ = "1.0.0"

from . import data
from . import depth
from . import hand
from . import gestures
from . import utils
