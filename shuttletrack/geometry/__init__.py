"""
Geometry module - camera rays, planes and depth estimation.
"""
from .camera import CameraPose
from .plane import (
    SurfacePlane,
    NetGeometry,
    signed_distance,
    intersect_ray_plane,
    plane_basis,
)
from .depth import DepthConfig, DepthEstimate, DepthEstimator

__all__ = [
    "CameraPose",
    "SurfacePlane",
    "NetGeometry",
    "signed_distance",
    "intersect_ray_plane",
    "plane_basis",
    "DepthConfig",
    "DepthEstimate",
    "DepthEstimator",
]
