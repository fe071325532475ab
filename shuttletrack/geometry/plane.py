"""
Plane primitives shared by depth estimation and net collision.
"""
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import numpy as np
from numpy.typing import NDArray

from shuttletrack.core import PlaneRegion, as_vector

logger = logging.getLogger(__name__)

PARALLEL_EPSILON = 1e-9


@dataclass
class SurfacePlane:
    """Infinite real-world surface (floor, wall) used for depth ray hits."""
    point: NDArray[np.float64]
    normal: NDArray[np.float64]

    def __post_init__(self):
        self.point = as_vector(self.point)
        normal = as_vector(self.normal)
        length = np.linalg.norm(normal)
        if length < PARALLEL_EPSILON:
            raise ValueError("Surface normal must be non-zero")
        self.normal = normal / length


def signed_distance(point, plane_point, unit_normal) -> float:
    """Signed distance of a point to a plane (positive on the normal side)."""
    return float(np.dot(np.asarray(point, dtype=np.float64) - plane_point, unit_normal))


def intersect_ray_plane(origin, direction, plane_point, unit_normal) -> Optional[float]:
    """
    Ray parameter of the intersection with a plane.

    Returns:
        t such that origin + t * direction lies on the plane, or None when
        the ray is parallel to the plane
    """
    denom = float(np.dot(direction, unit_normal))
    if abs(denom) < PARALLEL_EPSILON:
        return None
    return float(np.dot(plane_point - origin, unit_normal)) / denom


def plane_basis(unit_normal, up_axis) -> Optional[Tuple[NDArray[np.float64], NDArray[np.float64]]]:
    """
    Orthonormal in-plane (right, up) basis.

    `up_axis` is projected into the plane; returns None when it is parallel
    to the normal.
    """
    right = np.cross(up_axis, unit_normal)
    length = np.linalg.norm(right)
    if length < PARALLEL_EPSILON:
        return None
    right = right / length
    up = np.cross(unit_normal, right)
    return right, up


class NetGeometry:
    """
    Cached plane equation and local frame of a PlaneRegion.

    `degenerate` is set when the region can never be hit (zero area or an
    up axis parallel to the normal); the normal itself must be non-zero.
    """

    def __init__(self, region: PlaneRegion):
        normal = as_vector(region.normal)
        length = np.linalg.norm(normal)
        if length < PARALLEL_EPSILON:
            raise ValueError("PlaneRegion normal must be non-zero")

        self.region = region
        self.origin = as_vector(region.origin)
        self.normal = normal / length
        self.half_width = region.width / 2.0
        self.half_height = region.height / 2.0
        self.half_thickness = max(0.0, region.half_thickness)

        basis = plane_basis(self.normal, as_vector(region.up_axis))
        self.degenerate = basis is None or region.width <= 0 or region.height <= 0
        if basis is None:
            self.right = np.zeros(3)
            self.up = np.zeros(3)
        else:
            self.right, self.up = basis

        if self.degenerate:
            logger.warning(
                "Net region is degenerate (width=%.3f, height=%.3f); collisions disabled",
                region.width, region.height,
            )

    def signed_distance(self, point) -> float:
        return signed_distance(point, self.origin, self.normal)

    def to_local(self, point) -> NDArray[np.float64]:
        """Coordinates (right, up, normal) relative to the region centre."""
        offset = np.asarray(point, dtype=np.float64) - self.origin
        return np.array([
            np.dot(offset, self.right),
            np.dot(offset, self.up),
            np.dot(offset, self.normal),
        ])

    def contains(self, point, tolerance: float = 1e-9) -> bool:
        """True when the point lies inside the finite slab of the net."""
        if self.degenerate:
            return False
        x, y, z = self.to_local(point)
        return (
            abs(x) <= self.half_width + tolerance
            and abs(y) <= self.half_height + tolerance
            and abs(z) <= self.half_thickness + tolerance
        )

    def intersect_ray(self, origin, direction, max_distance: float) -> Optional[float]:
        """
        Slab-method intersection of a ray with the net's oriented box.

        Returns:
            Entry distance along the (normalised) ray, or None on a miss
        """
        if self.degenerate:
            return None

        direction = np.asarray(direction, dtype=np.float64)
        length = np.linalg.norm(direction)
        if length < PARALLEL_EPSILON:
            return None
        direction = direction / length

        local_origin = self.to_local(origin)
        local_dir = np.array([
            np.dot(direction, self.right),
            np.dot(direction, self.up),
            np.dot(direction, self.normal),
        ])
        half_extents = (self.half_width, self.half_height, self.half_thickness)

        t_min, t_max = 0.0, max_distance
        for axis in range(3):
            o = local_origin[axis]
            d = local_dir[axis]
            h = half_extents[axis]
            if abs(d) < PARALLEL_EPSILON:
                if abs(o) > h:
                    return None
                continue
            t1 = (-h - o) / d
            t2 = (h - o) / d
            if t1 > t2:
                t1, t2 = t2, t1
            t_min = max(t_min, t1)
            t_max = min(t_max, t2)
            if t_min > t_max:
                return None

        return float(t_min)
